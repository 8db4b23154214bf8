from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence, Tuple

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import (
    DuplicateRecord,
    InvalidStateTransition,
    NotFound,
    OrderError,
    PersistenceError,
)
from supplier_orders.core.domain.model.idempotency import IdempotencyRecord
from supplier_orders.core.domain.model.order import (
    Order,
    OrderId,
    OrderItem,
    OrderStatus,
    PartnerId,
    now_utc,
)
from supplier_orders.core.ports.outbound.idempotency import IdempotencyRepository
from supplier_orders.core.ports.outbound.orders import OrderRepository


@dataclass
class InMemoryOrderRepository(OrderRepository):
    """Dict-backed order store.

    ``idempotency`` is the key store written by ``create_order``; the write
    happens under this store's lock, after the uniqueness checks and before
    the order becomes visible.
    """

    idempotency: IdempotencyRepository | None = None
    _store: Dict[str, Order] = field(default_factory=dict)
    _items: Dict[str, Tuple[OrderItem, ...]] = field(default_factory=dict)
    _by_partner_order: Dict[Tuple[str, str], str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def create_order(
        self,
        order: Order,
        items: Sequence[OrderItem],
        idempotency: IdempotencyRecord | None = None,
    ) -> Result[Order, OrderError]:
        key = str(order.order_id)
        unique = (str(order.partner_id), order.partner_order_id)
        with self._lock:
            if key in self._store:
                return Failure(PersistenceError(message="order_id already exists"))
            if unique in self._by_partner_order:
                return Failure(
                    DuplicateRecord(
                        message="partner order already exists",
                        constraint="partner_order",
                    )
                )
            if idempotency is not None:
                if self.idempotency is None:
                    return Failure(
                        PersistenceError(message="no idempotency store configured")
                    )
                bound = self.idempotency.create(idempotency)
                if isinstance(bound, Failure):
                    return bound
            self._store[key] = order
            self._items[key] = tuple(items)
            self._by_partner_order[unique] = key
        return Success(order)

    def get_order(self, order_id: OrderId) -> Result[Order, OrderError]:
        key = str(order_id)
        order = self._store.get(key)
        if order is None:
            return Failure(_not_found(key))
        return Success(order)

    def get_order_by_partner_order_id(
        self, partner_id: PartnerId, partner_order_id: str
    ) -> Result[Order, OrderError]:
        key = self._by_partner_order.get((str(partner_id), partner_order_id))
        if key is None:
            return Failure(_not_found(f"{partner_id}/{partner_order_id}"))
        return Success(self._store[key])

    def get_order_items(
        self, order_id: OrderId
    ) -> Result[Sequence[OrderItem], OrderError]:
        key = str(order_id)
        if key not in self._store:
            return Failure(_not_found(key))
        return Success(self._items.get(key, ()))

    def update_status(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        status: OrderStatus,
        reason: str | None = None,
    ) -> Result[None, OrderError]:
        changes: dict = {"status": status}
        if reason is not None:
            changes["rejection_reason"] = reason
        return self._compare_and_set(order_id, expected, status, changes)

    def update_tracking(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None,
    ) -> Result[None, OrderError]:
        return self._compare_and_set(
            order_id,
            expected,
            OrderStatus.SHIPPED,
            {
                "status": OrderStatus.SHIPPED,
                "tracking_carrier": carrier,
                "tracking_number": tracking_number,
                "tracking_url": tracking_url,
            },
        )

    def update_provisional_downstream_id(
        self, order_id: OrderId, provisional_id: int
    ) -> Result[None, OrderError]:
        key = str(order_id)
        with self._lock:
            order = self._store.get(key)
            if order is None:
                return Failure(_not_found(key))
            if order.downstream_provisional_id is not None:
                return Failure(_already_stored("downstream_provisional_id"))
            self._store[key] = replace(
                order, downstream_provisional_id=provisional_id, updated_at=now_utc()
            )
        return Success(None)

    def update_finalized_downstream_id(
        self, order_id: OrderId, finalized_id: int
    ) -> Result[None, OrderError]:
        key = str(order_id)
        with self._lock:
            order = self._store.get(key)
            if order is None:
                return Failure(_not_found(key))
            if order.downstream_provisional_id is None:
                return Failure(
                    PersistenceError(
                        message="finalized id requires a stored provisional id"
                    )
                )
            if order.downstream_finalized_id is not None:
                return Failure(_already_stored("downstream_finalized_id"))
            self._store[key] = replace(
                order, downstream_finalized_id=finalized_id, updated_at=now_utc()
            )
        return Success(None)

    def list_by_status(
        self, status: OrderStatus, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]:
        return Success(
            _page([o for o in self._store.values() if o.status == status], limit, offset)
        )

    def list_by_partner(
        self, partner_id: PartnerId, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]:
        return Success(
            _page(
                [o for o in self._store.values() if o.partner_id == partner_id],
                limit,
                offset,
            )
        )

    def _compare_and_set(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        target: OrderStatus,
        changes: dict,
    ) -> Result[None, OrderError]:
        key = str(order_id)
        with self._lock:
            order = self._store.get(key)
            if order is None:
                return Failure(_not_found(key))
            if order.status != expected:
                return Failure(
                    InvalidStateTransition(
                        message="order status changed concurrently",
                        from_status=order.status.value,
                        to_status=target.value,
                    )
                )
            self._store[key] = replace(order, updated_at=now_utc(), **changes)
        return Success(None)


def _page(orders: List[Order], limit: int, offset: int) -> Tuple[Order, ...]:
    # newest first; insertion order breaks timestamp ties
    ordered = sorted(enumerate(orders), key=lambda p: (p[1].created_at, p[0]), reverse=True)
    return tuple(o for _, o in ordered[offset : offset + limit])


def _not_found(key: str) -> NotFound:
    return NotFound(message="order not found", resource="order", resource_id=key)


def _already_stored(column: str) -> DuplicateRecord:
    return DuplicateRecord(message=f"{column} is already set", constraint=column)
