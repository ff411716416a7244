"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.

Orders are readable by guests: anonymous callers work on the guest
store, authenticated callers (JWT) on their own store.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import ViewSet

from modules.core.notifications import LogNotifier
from modules.core.pagination import StandardResultsSetPagination
from modules.inventory.gateways import ProductDjangoGateway
from modules.orders.dtos import OrderItem, PlaceOrderDTO
from modules.orders.exceptions import (
    EmptyCart,
    InsufficientStock,
    InvalidOrderStatus,
    OrderNotFound,
    PersistenceFailure,
)
from modules.orders.integrations.cart import SubmittedCart
from modules.orders.integrations.loyalty import build_loyalty_program
from modules.orders.reconciler import StockReconciler
from modules.orders.repositories import OrderCacheRepository
from modules.orders.serializers import (
    OrderListSerializer,
    OrderSerializer,
    PlaceOrderSerializer,
    ShortfallSerializer,
    UpdateOrderSerializer,
)
from modules.orders.services import OrderService
from shared.infrastructure.bus import event_bus

NOT_FOUND = {"detail": "Order not found."}
UNAVAILABLE = {"detail": "The order could not be saved. Please try again later."}


def _insufficient_stock(exc: InsufficientStock) -> Response:
    return Response(
        {
            "detail": str(exc),
            "shortfalls": ShortfallSerializer(exc.shortfalls, many=True).data,
        },
        status=status.HTTP_409_CONFLICT,
    )


class OrderViewSet(ViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected collaborators (DIP).  The order
    repository is pointed at the caller's store before each action.
    """

    permission_classes = [AllowAny]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._repository = OrderCacheRepository()
        self._service = OrderService(
            order_repository=self._repository,
            reconciler=StockReconciler(ProductDjangoGateway()),
            notifier=LogNotifier(),
            event_bus=event_bus,
            loyalty=_loyalty_program(),
        )

    def initial(self, request: Request, *args, **kwargs) -> None:
        super().initial(request, *args, **kwargs)
        self._repository.switch_owner(_owner_id(request))

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scope per action."""
        throttle_scope: Optional[str]
        if self.action == "create":
            throttle_scope = "order_placement"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Places a ``pending`` order from the submitted cart.  Stock is
        checked, not debited.
        """
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        lines = data["cart"]["items"]
        items = [
            OrderItem(**{k: v for k, v in line.items() if k != "max_qty"})
            for line in lines
        ]
        cart = SubmittedCart(
            items,
            taxes=data["cart"]["taxes"],
            stock_ceilings={
                item.stock_key: line["max_qty"]
                for item, line in zip(items, lines)
                if "max_qty" in line
            },
        )
        dto = PlaceOrderDTO(
            customer=data["customer"],
            payment=data["payment"],
            shipping=data["shipping"],
        )

        try:
            order = self._service.place_order(dto, cart)
        except EmptyCart as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except InsufficientStock as exc:
            return _insufficient_stock(exc)
        except PersistenceFailure:
            return Response(UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        body = dict(OrderSerializer(order).data)
        if cart.stock_ceilings:
            body["stock_ceilings"] = [
                {"product_id": product_id, "variant_id": variant_id, "max_qty": max_qty}
                for (product_id, variant_id), max_qty in cart.stock_ceilings.items()
            ]
        return Response(body, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/?status=

        Newest first.  Results are paginated.
        """
        try:
            orders = self._service.list_orders(status=request.query_params.get("status"))
        except PersistenceFailure:
            return Response(UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(orders, request, view=self)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: Optional[str] = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except PersistenceFailure:
            return Response(UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status / notes update
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: Optional[str] = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        ``status`` runs the lifecycle transition (with its stock side
        effects); ``notes`` replaces the internal notes.
        """
        serializer = UpdateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            if "status" in data:
                order = self._service.transition(pk, data["status"])
            if "notes" in data:
                order = self._service.update_notes(pk, data["notes"])
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except InsufficientStock as exc:
            return _insufficient_stock(exc)
        except PersistenceFailure:
            return Response(UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def destroy(self, request: Request, pk: Optional[str] = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        try:
            self._service.delete_order(pk)
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except PersistenceFailure:
            return Response(UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(status=status.HTTP_204_NO_CONTENT)


@lru_cache(maxsize=1)
def _loyalty_program():
    return build_loyalty_program()


def _owner_id(request: Request) -> Optional[str]:
    user = request.user
    if user is not None and user.is_authenticated:
        return str(user.pk)
    return None
