from __future__ import annotations

import sys

import structlog
import uvicorn

from supplier_orders.adapters.inbound.cli import (
    create_partner,
    find_sku,
    parse_args,
    sync_downstream,
)
from supplier_orders.bootstrap import (
    build_repositories,
    build_shopify_client,
    build_usecases,
)
from supplier_orders.config import ConfigError, load_settings
from supplier_orders.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"config_error: {e}")
        return 2
    configure_logging(settings.log_level, json=settings.log_json)

    if args.command == "serve":
        uvicorn.run(
            "supplier_orders.asgi:create_asgi_app",
            factory=True,
            host=args.host,
            port=args.port or settings.port,
            reload=args.reload,
            log_config=None,
        )
        return 0

    if args.command == "find-sku":
        try:
            client = build_shopify_client(settings)
        except ConfigError as e:
            print(f"config_error: {e}")
            return 2
        return find_sku(client, args.sku)

    if not settings.database_url:
        logger.warning("DATABASE_URL is not set; changes will not outlive this process")

    repos = build_repositories(settings)
    if args.command == "create-partner":
        return create_partner(
            repos.partners, settings.api_key_hash_salt, args.name, args.webhook_url
        )
    if args.command == "sync-downstream":
        return sync_downstream(build_usecases(settings, repos=repos).sync_downstream, args.order_id)

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
