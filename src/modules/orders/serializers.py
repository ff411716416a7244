"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.  Output serializers read the
DTO attributes directly.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

# ---------------------------------------------------------------------------
# Shared snapshots
# ---------------------------------------------------------------------------


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=120)
    zip = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=80)


class CustomerSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=120)
    last_name = serializers.CharField(max_length=120)
    email = serializers.EmailField()
    phone = serializers.CharField(
        max_length=40, required=False, allow_null=True, default=None
    )
    address = AddressSerializer()


class PaymentSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=["card", "paypal", "bank"])
    last4 = serializers.RegexField(
        r"^\d{4}$", required=False, allow_null=True, default=None
    )
    brand = serializers.ChoiceField(
        choices=["visa", "mastercard", "amex", "paypal", "other"],
        required=False,
        allow_null=True,
        default=None,
    )


class OrderItemSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    variant_id = serializers.CharField(
        max_length=64, required=False, allow_null=True, default=None
    )
    title = serializers.CharField(max_length=255)
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0")
    )
    qty = serializers.IntegerField(min_value=1)
    image_url = serializers.CharField(required=False, allow_blank=True, default="")
    variant_label = serializers.CharField(
        max_length=120, required=False, allow_null=True, default=None
    )


# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CartItemSerializer(OrderItemSerializer):
    """A cart line; ``max_qty`` is the stock ceiling the storefront shows."""

    max_qty = serializers.IntegerField(min_value=0, required=False)


class CartSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True, allow_empty=True)
    taxes = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )


class PlaceOrderSerializer(serializers.Serializer):
    """Validates the checkout payload: buyer, payment and the cart snapshot."""

    customer = CustomerSerializer()
    payment = PaymentSerializer()
    shipping = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    cart = CartSerializer()


class UpdateOrderSerializer(serializers.Serializer):
    """Validates PATCH payloads.  Status names are checked by the service."""

    status = serializers.CharField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError(
                "Provide at least one of 'status' or 'notes'."
            )
        return attrs


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderSerializer(serializers.Serializer):
    """Read serializer for a full order."""

    id = serializers.CharField(read_only=True)
    owner_id = serializers.CharField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)
    status = serializers.CharField(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    taxes = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    customer = CustomerSerializer(read_only=True)
    payment = PaymentSerializer(read_only=True)
    notes = serializers.CharField(read_only=True)


class OrderListSerializer(serializers.Serializer):
    """Lightweight serializer for order list (no nested snapshots)."""

    id = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    status = serializers.CharField(read_only=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    item_count = serializers.SerializerMethodField()

    def get_item_count(self, order) -> int:
        return sum(item.qty for item in order.items)


class ShortfallSerializer(serializers.Serializer):
    product_id = serializers.CharField()
    variant_id = serializers.CharField(allow_null=True)
    title = serializers.CharField()
    requested = serializers.IntegerField()
    available = serializers.IntegerField()
