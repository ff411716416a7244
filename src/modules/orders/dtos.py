"""Order value objects and DTOs.

Framework-agnostic pydantic v2 models.  Everything here is immutable
(``frozen=True``): an order only changes through the repository, which
stores a ``model_copy`` with the new ``status`` or ``notes``.

Field aliases are camelCase so the persisted order lists keep the record
shape shared with the storefront front end (``ownerId``, ``unitPrice``...).
Python code always uses the snake_case names.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modules.orders.constants import TERMINAL_STATES, OrderStatus

CENT = Decimal("0.01")


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


# ---------------------------------------------------------------------------
# Snapshots embedded in an order
# ---------------------------------------------------------------------------


class Address(_Record):
    street: str
    city: str
    zip: str
    country: str


class CustomerInfo(_Record):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: Address


class PaymentInfo(_Record):
    method: Literal["card", "paypal", "bank"]
    last4: Optional[str] = None
    brand: Optional[Literal["visa", "mastercard", "amex", "paypal", "other"]] = None


class OrderItem(_Record):
    """A purchased line.  ``qty`` is fixed at creation and never mutated."""

    product_id: str
    variant_id: Optional[str] = None
    title: str
    unit_price: Decimal = Field(ge=0)
    qty: int = Field(gt=0)
    image_url: str = ""
    variant_label: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.qty

    @property
    def stock_key(self) -> tuple[str, Optional[str]]:
        """The stock counter this line draws from."""
        return (self.product_id, self.variant_id)


class Order(_Record):
    id: str
    owner_id: Optional[str] = None
    created_at: datetime
    items: List[OrderItem] = Field(min_length=1)
    subtotal: Decimal
    taxes: Decimal
    shipping: Decimal
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    customer: CustomerInfo
    payment: PaymentInfo
    notes: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


# ---------------------------------------------------------------------------
# Stock reconciliation
# ---------------------------------------------------------------------------


class Shortfall(_Record):
    """An item whose requested quantity exceeds the available stock."""

    product_id: str
    variant_id: Optional[str] = None
    title: str
    requested: int
    available: int

    def describe(self) -> str:
        return f"{self.title}: requested {self.requested}, available {self.available}"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class PlaceOrderDTO(_Record):
    """Buyer-side input for order placement; the lines come from the cart."""

    customer: CustomerInfo
    payment: PaymentInfo
    shipping: Decimal = Field(default=Decimal("0.00"), ge=0)


class LoyaltyAccrual(_Record):
    """Payload handed to the loyalty collaborator after a successful debit."""

    order_id: str
    amount_after_discounts: Decimal
    items: List[OrderItem]
