from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from returns.result import Failure, Result, Success

from supplier_orders.adapters.outbound.shopify.client import ShopifyGraphQLClient
from supplier_orders.adapters.outbound.shopify.mutations import (
    DRAFT_ORDER_COMPLETE,
    DRAFT_ORDER_CREATE,
)
from supplier_orders.core.domain.model.errors import (
    DownstreamRejected,
    DownstreamUnavailable,
    OrderError,
)
from supplier_orders.core.ports.outbound.commerce import (
    CommercePlatform,
    ProvisionalAddress,
    ProvisionalLineItem,
    ProvisionalOrderInput,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShopifyCommercePlatform(CommercePlatform):
    """Draft orders are the provisional step; completing a draft finalizes it."""

    client: ShopifyGraphQLClient

    def create_provisional_order(
        self, draft: ProvisionalOrderInput
    ) -> Result[int, OrderError]:
        variables = {"input": draft_order_input(draft)}
        return self.client.execute(DRAFT_ORDER_CREATE, variables).bind(
            lambda data: _parse_mutation(
                data, "draftOrderCreate", ("draftOrder", "id")
            )
        )

    def finalize_provisional_order(
        self, provisional_id: int
    ) -> Result[int, OrderError]:
        variables = {"id": f"gid://shopify/DraftOrder/{provisional_id}"}
        return self.client.execute(DRAFT_ORDER_COMPLETE, variables).bind(
            lambda data: _parse_mutation(
                data, "draftOrderComplete", ("draftOrder", "order", "id")
            )
        )


def draft_order_input(draft: ProvisionalOrderInput) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "lineItems": [_line_item(li) for li in draft.line_items],
        "shippingAddress": _address(draft.shipping_address),
    }
    if draft.tags:
        payload["tags"] = list(draft.tags)
    if draft.note:
        payload["note"] = draft.note
    return payload


def _line_item(li: ProvisionalLineItem) -> dict[str, Any]:
    if not li.is_custom:
        return {
            "variantId": f"gid://shopify/ProductVariant/{li.variant_id}",
            "quantity": li.quantity,
        }
    item: dict[str, Any] = {
        "title": li.title or "",
        "originalUnitPrice": f"{li.unit_price or 0:.2f}",
        "quantity": li.quantity,
    }
    if li.attributes:
        item["customAttributes"] = [{"key": k, "value": v} for k, v in li.attributes]
    return item


def _address(addr: ProvisionalAddress) -> dict[str, Any]:
    out: dict[str, Any] = {
        "firstName": addr.first_name,
        "address1": addr.address1,
        "city": addr.city,
        "zip": addr.zip,
        "country": addr.country,
    }
    if addr.last_name:
        out["lastName"] = addr.last_name
    if addr.province:
        out["province"] = addr.province
    if addr.phone:
        out["phone"] = addr.phone
    return out


def _parse_mutation(
    data: dict[str, Any], mutation: str, id_path: tuple[str, ...]
) -> Result[int, OrderError]:
    body = data.get(mutation)
    if not isinstance(body, dict):
        return Failure(
            DownstreamUnavailable(message=f"{mutation}: missing payload in response")
        )

    user_errors = body.get("userErrors") or []
    if user_errors:
        messages = tuple(_format_user_error(e) for e in user_errors)
        logger.warning("Shopify rejected mutation", mutation=mutation, errors=messages)
        return Failure(
            DownstreamRejected(
                message=f"{mutation} rejected by shopify", user_errors=messages
            )
        )

    node: Any = body
    for key in id_path:
        node = node.get(key) if isinstance(node, dict) else None
    if not isinstance(node, str):
        return Failure(
            DownstreamUnavailable(message=f"{mutation}: response carries no id")
        )
    return extract_id_from_gid(node)


def _format_user_error(err: Any) -> str:
    if not isinstance(err, dict):
        return str(err)
    field = err.get("field")
    message = str(err.get("message", ""))
    if field:
        path = ".".join(str(f) for f in field) if isinstance(field, list) else str(field)
        return f"{path}: {message}"
    return message


def extract_id_from_gid(gid: str) -> Result[int, OrderError]:
    """``gid://shopify/DraftOrder/123456`` -> ``123456``."""
    parts = gid.split("/")
    if len(parts) < 4 or not parts[-1].isdigit():
        return Failure(DownstreamUnavailable(message=f"invalid GID format: {gid}"))
    return Success(int(parts[-1]))
