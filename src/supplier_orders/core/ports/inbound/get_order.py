from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import (
    Order,
    OrderEvent,
    OrderItem,
    PartnerId,
)


@dataclass(frozen=True)
class GetOrderQuery:
    order_id: str  # UUID string
    partner_id: PartnerId | None = None  # None: no ownership check (admin)


@dataclass(frozen=True)
class OrderView:
    order: Order
    items: Sequence[OrderItem]
    events: Sequence[OrderEvent] = ()


class GetOrderUseCase(Protocol):
    def get_order(self, query: GetOrderQuery) -> Result[OrderView, OrderError]: ...
