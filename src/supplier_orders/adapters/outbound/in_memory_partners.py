from __future__ import annotations

import threading
from dataclasses import dataclass, field

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import (
    DuplicateRecord,
    NotFound,
    OrderError,
    Unauthorized,
)
from supplier_orders.core.domain.model.order import PartnerId
from supplier_orders.core.domain.model.partner import Partner, hash_api_key
from supplier_orders.core.ports.outbound.partners import PartnerRepository


@dataclass
class InMemoryPartnerRepository(PartnerRepository):
    salt: str = ""
    _store: dict[str, Partner] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def authenticate(self, api_key: str) -> Result[Partner, OrderError]:
        digest = hash_api_key(api_key, self.salt)
        for partner in list(self._store.values()):
            if partner.api_key_hash == digest and partner.is_active:
                return Success(partner)
        return Failure(Unauthorized(message="invalid api key"))

    def get(self, partner_id: PartnerId) -> Result[Partner, OrderError]:
        partner = self._store.get(str(partner_id))
        if partner is None:
            return Failure(
                NotFound(
                    message="partner not found",
                    resource="partner",
                    resource_id=str(partner_id),
                )
            )
        return Success(partner)

    def add(self, partner: Partner) -> Result[None, OrderError]:
        with self._lock:
            if any(p.api_key_hash == partner.api_key_hash for p in self._store.values()):
                return Failure(
                    DuplicateRecord(message="api key already in use", constraint="api_key_hash")
                )
            self._store[str(partner.partner_id)] = partner
        return Success(None)
