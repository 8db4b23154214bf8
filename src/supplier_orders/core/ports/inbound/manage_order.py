from __future__ import annotations

from typing import Protocol

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import Order, OrderId


class ManageOrderUseCase(Protocol):
    def confirm(self, order_id: OrderId) -> Result[Order, OrderError]: ...

    def reject(self, order_id: OrderId, reason: str) -> Result[Order, OrderError]: ...

    def ship(
        self,
        order_id: OrderId,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None = None,
    ) -> Result[Order, OrderError]: ...

    def deliver(self, order_id: OrderId) -> Result[Order, OrderError]: ...

    def cancel(
        self, order_id: OrderId, reason: str | None = None
    ) -> Result[Order, OrderError]: ...
