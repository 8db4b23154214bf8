from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import (
    Forbidden,
    OrderError,
    ValidationError,
)
from supplier_orders.core.domain.model.order import Order, OrderId
from supplier_orders.core.ports.inbound.get_order import (
    GetOrderQuery,
    GetOrderUseCase,
    OrderView,
)
from supplier_orders.core.ports.outbound.events import OrderEventRepository
from supplier_orders.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class GetOrderDeps:
    orders: OrderRepository
    events: OrderEventRepository


@dataclass(frozen=True)
class GetOrderService(GetOrderUseCase):
    deps: GetOrderDeps

    def get_order(self, query: GetOrderQuery) -> Result[OrderView, OrderError]:
        try:
            oid = OrderId(UUID(query.order_id))
        except ValueError:
            return Failure(ValidationError(message="order_id must be a valid UUID"))

        return (
            self.deps.orders.get_order(oid)
            .bind(lambda order: _check_owner(order, query))
            .bind(self._to_view)
        )

    def _to_view(self, order: Order) -> Result[OrderView, OrderError]:
        items = self.deps.orders.get_order_items(order.order_id)
        if isinstance(items, Failure):
            return items
        events = self.deps.events.list_for_order(order.order_id)
        if isinstance(events, Failure):
            return events
        return Success(
            OrderView(
                order=order,
                items=tuple(items.unwrap()),
                events=tuple(events.unwrap()),
            )
        )


def _check_owner(order: Order, query: GetOrderQuery) -> Result[Order, OrderError]:
    if query.partner_id is not None and order.partner_id != query.partner_id:
        return Failure(Forbidden(message="order belongs to another partner"))
    return Success(order)
