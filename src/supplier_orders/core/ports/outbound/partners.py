from __future__ import annotations

from typing import Protocol

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import PartnerId
from supplier_orders.core.domain.model.partner import Partner


class PartnerRepository(Protocol):
    def authenticate(self, api_key: str) -> Result[Partner, OrderError]:
        """Active partner owning ``api_key``, otherwise ``Unauthorized``."""
        ...

    def get(self, partner_id: PartnerId) -> Result[Partner, OrderError]: ...

    def add(self, partner: Partner) -> Result[None, OrderError]: ...
