from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

import structlog
from returns.result import Failure

from supplier_orders.core.domain.model.catalog import SKUMapping
from supplier_orders.core.domain.model.errors import NotFound
from supplier_orders.core.ports.inbound.submit_cart import CartLine
from supplier_orders.core.ports.outbound.sku_mappings import SkuMappingRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Classification:
    has_supplier_item: bool
    mappings: Mapping[str, SKUMapping] = field(default_factory=dict)

    def mapping_for(self, sku: str) -> SKUMapping | None:
        return self.mappings.get(sku)


@dataclass(frozen=True)
class SkuClassifier:
    sku_mappings: SkuMappingRepository

    def classify(self, lines: Sequence[CartLine]) -> Classification:
        """Splits cart lines into supplier-fulfilled and pass-through SKUs.

        Only SKUs with an active mapping end up in the result. Lookups are
        independent: a failing lookup counts as "not a supplier item" and does
        not stop the remaining SKUs from being classified.
        """
        found: dict[str, SKUMapping] = {}
        for line in lines:
            if line.sku in found:
                continue
            result = self.sku_mappings.get_by_sku(line.sku)
            if isinstance(result, Failure):
                err = result.failure()
                if not isinstance(err, NotFound):
                    logger.warning(
                        "SKU lookup failed, treating as pass-through",
                        sku=line.sku,
                        error=str(err),
                        error_type=type(err).__name__,
                    )
                continue
            mapping = result.unwrap()
            if mapping.is_active:
                found[line.sku] = mapping

        return Classification(has_supplier_item=bool(found), mappings=found)
