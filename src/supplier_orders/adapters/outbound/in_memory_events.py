from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Sequence

from returns.result import Result, Success

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import OrderEvent, OrderId
from supplier_orders.core.ports.outbound.events import OrderEventRepository


@dataclass
class InMemoryOrderEventRepository(OrderEventRepository):
    _store: list[OrderEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def append(self, event: OrderEvent) -> Result[None, OrderError]:
        with self._lock:
            self._store.append(event)
        return Success(None)

    def list_for_order(
        self, order_id: OrderId
    ) -> Result[Sequence[OrderEvent], OrderError]:
        return Success(tuple(e for e in self._store if e.order_id == order_id))
