from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Mapping

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import OrderError, ValidationError
from supplier_orders.core.domain.model.idempotency import (
    Conflict,
    Fresh,
    IdempotencyOutcome,
    IdempotencyRecord,
    Replay,
)
from supplier_orders.core.domain.model.order import PartnerId
from supplier_orders.core.ports.outbound.idempotency import IdempotencyRepository


@dataclass(frozen=True)
class IdempotencyGuard:
    """Deduplicates order creation by client key + request body digest.

    ``begin`` only reads. The key itself is written together with the order
    (``OrderRepository.create_order``), so a request that failed before
    creating anything leaves the key free and a retry starts over as
    ``Fresh``. Losing that write to a concurrent request means calling
    ``begin`` again: the winner is then a ``Replay`` or a ``Conflict``.
    """

    records: IdempotencyRepository

    def begin(
        self,
        key: str | None,
        partner_id: PartnerId,
        request_body: Mapping[str, Any],
    ) -> Result[IdempotencyOutcome, OrderError]:
        if key is None:
            return Success(Fresh())
        if not key.strip():
            return Failure(ValidationError("idempotency_key must be non-empty when provided"))

        req_hash = request_hash(request_body)
        return self.records.get(key).map(
            lambda rec: _outcome(rec, key, partner_id, req_hash)
        )


def _outcome(
    rec: IdempotencyRecord | None,
    key: str,
    partner_id: PartnerId,
    req_hash: str,
) -> IdempotencyOutcome:
    if rec is None:
        return Fresh(request_hash=req_hash)
    if rec.partner_id != partner_id or rec.request_hash != req_hash:
        return Conflict(key=key)
    return Replay(order_id=rec.order_id)


def request_hash(body: Mapping[str, Any]) -> str:
    blob = json.dumps(
        body, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str
    ).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()
