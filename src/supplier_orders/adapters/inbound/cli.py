from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from typing import Sequence
from uuid import UUID

from returns.result import Success

from supplier_orders.adapters.outbound.shopify.catalog import find_variant_by_sku
from supplier_orders.adapters.outbound.shopify.client import ShopifyGraphQLClient
from supplier_orders.core.domain.model.order import OrderId, PartnerId
from supplier_orders.core.domain.model.partner import (
    Partner,
    generate_api_key,
    hash_api_key,
)
from supplier_orders.core.ports.inbound.sync_downstream import SyncDownstreamUseCase
from supplier_orders.core.ports.outbound.partners import PartnerRepository


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supplier-orders",
        description="Partner cart intake and supplier order orchestration",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None, help="defaults to $PORT")
    serve.add_argument("--reload", action="store_true")

    create = sub.add_parser("create-partner", help="register a partner and print its API key")
    create.add_argument("name")
    create.add_argument("--webhook-url", default=None)

    sync = sub.add_parser(
        "sync-downstream", help="retry the downstream order sync for one order"
    )
    sync.add_argument("order_id")

    find = sub.add_parser(
        "find-sku", help="look up a SKU in the commerce catalog and print its ids"
    )
    find.add_argument("sku")

    return parser


def create_partner(
    partners: PartnerRepository, salt: str, name: str, webhook_url: str | None = None
) -> int:
    """
    Prints the generated API key once; only its hash is stored.
    """
    if not name.strip():
        print("[ng] name is required")
        return 2

    api_key = generate_api_key()
    partner = Partner(
        partner_id=PartnerId.new(),
        name=name.strip(),
        api_key_hash=hash_api_key(api_key, salt),
        webhook_url=webhook_url,
    )
    result = partners.add(partner)
    if not isinstance(result, Success):
        print("[ng]", str(result.failure()))
        return 1

    print(
        "[ok]",
        json.dumps(
            {"partner_id": str(partner.partner_id), "name": partner.name, "api_key": api_key}
        ),
    )
    return 0


def sync_downstream(usecase: SyncDownstreamUseCase, raw_order_id: str) -> int:
    try:
        order_id = OrderId(UUID(raw_order_id))
    except ValueError:
        print(f"invalid_input: not a UUID: {raw_order_id}")
        return 2

    result = usecase.sync(order_id)
    if isinstance(result, Success):
        order = result.unwrap()
        print(
            "[ok]",
            json.dumps(
                {
                    "order_id": str(order.order_id),
                    "status": order.status.value,
                    "provisional_order_id": order.downstream_provisional_id,
                    "finalized_order_id": order.downstream_finalized_id,
                }
            ),
        )
        return 0

    print("[ng]", str(result.failure()))
    return 1


def find_sku(client: ShopifyGraphQLClient, sku: str) -> int:
    """
    Prints the product and variant ids to use for a SKU mapping.
    """
    if not sku.strip():
        print("[ng] sku is required")
        return 2

    result = find_variant_by_sku(client, sku.strip())
    if not isinstance(result, Success):
        print("[ng]", str(result.failure()))
        return 1

    match = result.unwrap()
    if match is None:
        print(f"[ng] sku not found: {sku.strip()}")
        return 1

    print("[ok]", json.dumps(asdict(match)))
    return 0


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
