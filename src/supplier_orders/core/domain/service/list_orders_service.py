from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result

from supplier_orders.core.domain.model.errors import OrderError, ValidationError
from supplier_orders.core.domain.model.order import Order, OrderStatus
from supplier_orders.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
)
from supplier_orders.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class ListOrdersDeps:
    orders: OrderRepository


@dataclass(frozen=True)
class ListOrdersService(ListOrdersUseCase):
    deps: ListOrdersDeps

    def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[Order], OrderError]:
        if query.offset < 0:
            return Failure(ValidationError(message="offset must be >= 0"))
        if query.limit <= 0:
            return Failure(ValidationError(message="limit must be > 0"))
        if query.limit > 100:
            return Failure(ValidationError(message="limit must be <= 100"))

        if query.status is None:
            return self.deps.orders.list_by_partner(
                query.partner_id, query.limit, query.offset
            )

        status = OrderStatus.parse(query.status)
        if status is None:
            allowed = ", ".join(s.value for s in OrderStatus)
            return Failure(ValidationError(message=f"status must be one of: {allowed}"))
        return self.deps.orders.list_by_status(status, query.limit, query.offset)
