from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.ports.outbound.commerce import (
    CommercePlatform,
    ProvisionalOrderInput,
)


@dataclass
class FakeCommercePlatform(CommercePlatform):
    """Deterministic in-process commerce platform for development and tests.

    Ids are sequential: provisional ids count up from 1000, finalized ids
    from 5000. ``configure`` makes either step fail with a given error.
    """

    create_error: OrderError | None = None
    finalize_error: OrderError | None = None
    created: list[ProvisionalOrderInput] = field(default_factory=list)
    finalized: list[int] = field(default_factory=list)
    _provisional_ids: "itertools.count[int]" = field(
        default_factory=lambda: itertools.count(1000), repr=False
    )
    _finalized_ids: "itertools.count[int]" = field(
        default_factory=lambda: itertools.count(5000), repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def configure(
        self,
        create_error: OrderError | None = None,
        finalize_error: OrderError | None = None,
    ) -> None:
        self.create_error = create_error
        self.finalize_error = finalize_error

    def create_provisional_order(
        self, draft: ProvisionalOrderInput
    ) -> Result[int, OrderError]:
        if self.create_error is not None:
            return Failure(self.create_error)
        with self._lock:
            self.created.append(draft)
            return Success(next(self._provisional_ids))

    def finalize_provisional_order(
        self, provisional_id: int
    ) -> Result[int, OrderError]:
        if self.finalize_error is not None:
            return Failure(self.finalize_error)
        with self._lock:
            self.finalized.append(provisional_id)
            return Success(next(self._finalized_ids))
