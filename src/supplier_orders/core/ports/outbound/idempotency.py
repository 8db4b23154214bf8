from __future__ import annotations

from typing import Protocol

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.idempotency import IdempotencyRecord


class IdempotencyRepository(Protocol):
    """
    In a real database ``key`` carries a UNIQUE constraint so that ``create``
    is the atomic "first writer wins" step across service instances.
    """

    def get(self, key: str) -> Result[IdempotencyRecord | None, OrderError]: ...

    def create(self, record: IdempotencyRecord) -> Result[None, OrderError]:
        """Returns ``DuplicateRecord(constraint="idempotency_key")`` if the key exists."""
        ...
