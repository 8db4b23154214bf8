from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from supplier_orders.core.domain.model.order import OrderId, PartnerId


@dataclass(frozen=True)
class IdempotencyRecord:
    key: str
    partner_id: PartnerId
    request_hash: str
    order_id: OrderId
    created_at: datetime


@dataclass(frozen=True)
class Fresh:
    """No prior record: the caller runs the full pipeline."""

    request_hash: str | None = None


@dataclass(frozen=True)
class Replay:
    """Same key, same body: return the earlier order, run no side effects."""

    order_id: OrderId


@dataclass(frozen=True)
class Conflict:
    """Same key, different body (or different owner)."""

    key: str


IdempotencyOutcome = Union[Fresh, Replay, Conflict]
