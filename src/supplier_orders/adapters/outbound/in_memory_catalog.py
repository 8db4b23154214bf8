from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.catalog import SKUMapping
from supplier_orders.core.domain.model.errors import NotFound, OrderError
from supplier_orders.core.ports.outbound.sku_mappings import SkuMappingRepository


@dataclass
class InMemorySkuMappingRepository(SkuMappingRepository):
    """Read-only reference data; seeded at startup."""

    _store: dict[str, SKUMapping] = field(default_factory=dict)

    @classmethod
    def of(cls, mappings: Iterable[SKUMapping]) -> "InMemorySkuMappingRepository":
        return cls(_store={m.sku: m for m in mappings})

    def get_by_sku(self, sku: str) -> Result[SKUMapping, OrderError]:
        mapping = self._store.get(sku)
        if mapping is None:
            return Failure(
                NotFound(message="sku mapping not found", resource="sku_mapping", resource_id=sku)
            )
        return Success(mapping)
