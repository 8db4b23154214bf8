from __future__ import annotations

from typing import Protocol

from returns.result import Result

from supplier_orders.core.domain.model.catalog import SKUMapping
from supplier_orders.core.domain.model.errors import OrderError


class SkuMappingRepository(Protocol):
    """Read-only view of the supplier catalog (kept in sync by another process)."""

    def get_by_sku(self, sku: str) -> Result[SKUMapping, OrderError]: ...
