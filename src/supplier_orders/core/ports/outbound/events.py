from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import OrderEvent, OrderId


class OrderEventRepository(Protocol):
    """Append-only audit log. Events are never updated or deleted."""

    def append(self, event: OrderEvent) -> Result[None, OrderError]: ...

    def list_for_order(
        self, order_id: OrderId
    ) -> Result[Sequence[OrderEvent], OrderError]: ...
