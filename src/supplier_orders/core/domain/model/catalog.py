from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SKUMapping:
    """Supplier catalog entry: partner-facing SKU -> downstream product/variant."""

    sku: str
    downstream_product_id: int
    downstream_variant_id: int
    is_active: bool = True
