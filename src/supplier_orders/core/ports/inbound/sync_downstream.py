from __future__ import annotations

from typing import Protocol

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import Order, OrderId


class SyncDownstreamUseCase(Protocol):
    """Re-entrant: safe to call repeatedly for the same order."""

    def sync(self, order_id: OrderId) -> Result[Order, OrderError]: ...
