from __future__ import annotations

import threading
from dataclasses import dataclass, field

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import DuplicateRecord, OrderError
from supplier_orders.core.domain.model.idempotency import IdempotencyRecord
from supplier_orders.core.ports.outbound.idempotency import IdempotencyRepository


@dataclass
class InMemoryIdempotencyRepository(IdempotencyRepository):
    _store: dict[str, IdempotencyRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self, key: str) -> Result[IdempotencyRecord | None, OrderError]:
        return Success(self._store.get(key))

    def create(self, record: IdempotencyRecord) -> Result[None, OrderError]:
        with self._lock:
            if record.key in self._store:
                return Failure(
                    DuplicateRecord(
                        message="idempotency key already exists",
                        constraint="idempotency_key",
                    )
                )
            self._store[record.key] = record
        return Success(None)
