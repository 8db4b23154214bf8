from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from returns.result import Failure, Result, Success

from supplier_orders.adapters.outbound.shopify.client import ShopifyGraphQLClient
from supplier_orders.adapters.outbound.shopify.commerce import extract_id_from_gid
from supplier_orders.core.domain.model.errors import OrderError

logger = structlog.get_logger(__name__)

PRODUCTS_PAGE = """
query products($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    pageInfo {
      hasNextPage
      endCursor
    }
    edges {
      node {
        id
        title
        variants(first: 250) {
          edges {
            node {
              id
              sku
              title
              price
            }
          }
        }
      }
    }
  }
}
"""


@dataclass(frozen=True)
class VariantMatch:
    sku: str
    product_id: int
    product_title: str
    variant_id: int
    variant_title: str
    price: str


def find_variant_by_sku(
    client: ShopifyGraphQLClient, sku: str, page_size: int = 50
) -> Result[VariantMatch | None, OrderError]:
    """Walks the product catalog page by page until a variant's SKU matches exactly.

    ``Success(None)`` means the whole catalog was read without a match.
    """
    after: str | None = None
    pages = 0
    while True:
        data = client.execute(PRODUCTS_PAGE, {"first": page_size, "after": after})
        if isinstance(data, Failure):
            return data
        pages += 1

        products = data.unwrap().get("products") or {}
        for edge in products.get("edges") or []:
            product = edge.get("node") or {}
            for vedge in (product.get("variants") or {}).get("edges") or []:
                variant = vedge.get("node") or {}
                if variant.get("sku") == sku:
                    return _match(sku, product, variant)

        page_info = products.get("pageInfo") or {}
        if not page_info.get("hasNextPage"):
            logger.info("SKU not found in catalog", sku=sku, pages=pages)
            return Success(None)
        after = page_info.get("endCursor")


def _match(
    sku: str, product: dict[str, Any], variant: dict[str, Any]
) -> Result[VariantMatch | None, OrderError]:
    product_id = extract_id_from_gid(str(product.get("id", "")))
    if isinstance(product_id, Failure):
        return product_id
    variant_id = extract_id_from_gid(str(variant.get("id", "")))
    if isinstance(variant_id, Failure):
        return variant_id
    return Success(
        VariantMatch(
            sku=sku,
            product_id=product_id.unwrap(),
            product_title=str(product.get("title", "")),
            variant_id=variant_id.unwrap(),
            variant_title=str(variant.get("title", "")),
            price=str(variant.get("price", "")),
        )
    )
