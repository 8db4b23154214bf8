from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import Order, PartnerId


@dataclass(frozen=True)
class ListOrdersQuery:
    partner_id: PartnerId
    status: str | None = None  # filters across partners when given
    limit: int = 50
    offset: int = 0


class ListOrdersUseCase(Protocol):
    def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[Order], OrderError]: ...
