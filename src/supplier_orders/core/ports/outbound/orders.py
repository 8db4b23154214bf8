from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.idempotency import IdempotencyRecord
from supplier_orders.core.domain.model.order import (
    Order,
    OrderId,
    OrderItem,
    OrderStatus,
    PartnerId,
)


class OrderRepository(Protocol):
    """
    Backing store contract for orders and their items.

    A real database enforces UNIQUE (partner_id, partner_order_id); the loser of
    a concurrent insert gets ``DuplicateRecord(constraint="partner_order")``.
    An idempotency key passed to ``create_order`` is inserted in the same unit;
    a key that already exists gives ``DuplicateRecord(constraint="idempotency_key")``
    and leaves no order behind.
    Every lookup reports a missing row as ``NotFound``.
    """

    def create_order(
        self,
        order: Order,
        items: Sequence[OrderItem],
        idempotency: IdempotencyRecord | None = None,
    ) -> Result[Order, OrderError]:
        """Insert the order, its item batch and the key binding as one unit."""
        ...

    def get_order(self, order_id: OrderId) -> Result[Order, OrderError]: ...

    def get_order_by_partner_order_id(
        self, partner_id: PartnerId, partner_order_id: str
    ) -> Result[Order, OrderError]: ...

    def get_order_items(
        self, order_id: OrderId
    ) -> Result[Sequence[OrderItem], OrderError]: ...

    def update_status(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        status: OrderStatus,
        reason: str | None = None,
    ) -> Result[None, OrderError]:
        """Compare-and-set: applies only while the stored status equals ``expected``."""
        ...

    def update_tracking(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None,
    ) -> Result[None, OrderError]:
        """Stores tracking fields and moves the order to SHIPPED in one write."""
        ...

    def update_provisional_downstream_id(
        self, order_id: OrderId, provisional_id: int
    ) -> Result[None, OrderError]:
        """Write-once.

        A stored id gives ``DuplicateRecord(constraint="downstream_provisional_id")``.
        """
        ...

    def update_finalized_downstream_id(
        self, order_id: OrderId, finalized_id: int
    ) -> Result[None, OrderError]:
        """Write-once, and only after a provisional id is stored.

        No provisional id gives ``PersistenceError``; a stored finalized id gives
        ``DuplicateRecord(constraint="downstream_finalized_id")``.
        """
        ...

    def list_by_status(
        self, status: OrderStatus, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]: ...

    def list_by_partner(
        self, partner_id: PartnerId, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]: ...
