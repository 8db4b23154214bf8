from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from supplier_orders.adapters.outbound.fake_commerce import FakeCommercePlatform
from supplier_orders.adapters.outbound.in_memory_catalog import (
    InMemorySkuMappingRepository,
)
from supplier_orders.adapters.outbound.in_memory_events import (
    InMemoryOrderEventRepository,
)
from supplier_orders.adapters.outbound.in_memory_idempotency import (
    InMemoryIdempotencyRepository,
)
from supplier_orders.adapters.outbound.in_memory_orders import InMemoryOrderRepository
from supplier_orders.adapters.outbound.in_memory_partners import (
    InMemoryPartnerRepository,
)
from supplier_orders.adapters.outbound.shopify.client import ShopifyGraphQLClient
from supplier_orders.adapters.outbound.shopify.commerce import ShopifyCommercePlatform
from supplier_orders.adapters.outbound.sql.repositories import (
    SqlIdempotencyRepository,
    SqlOrderEventRepository,
    SqlOrderRepository,
    SqlPartnerRepository,
    SqlSkuMappingRepository,
)
from supplier_orders.adapters.outbound.sql.tables import create_schema
from supplier_orders.config import ConfigError, Settings
from supplier_orders.core.domain.model.catalog import SKUMapping
from supplier_orders.core.domain.service.fulfillment_saga import (
    FulfillmentSaga,
    FulfillmentSagaDeps,
)
from supplier_orders.core.domain.service.get_order_service import (
    GetOrderDeps,
    GetOrderService,
)
from supplier_orders.core.domain.service.idempotency_guard import IdempotencyGuard
from supplier_orders.core.domain.service.list_orders_service import (
    ListOrdersDeps,
    ListOrdersService,
)
from supplier_orders.core.domain.service.order_lifecycle_service import (
    OrderLifecycleDeps,
    OrderLifecycleService,
)
from supplier_orders.core.domain.service.sku_classifier import SkuClassifier
from supplier_orders.core.domain.service.submit_cart_service import (
    SubmitCartDeps,
    SubmitCartService,
)
from supplier_orders.core.ports.outbound.commerce import CommercePlatform
from supplier_orders.core.ports.outbound.events import OrderEventRepository
from supplier_orders.core.ports.outbound.idempotency import IdempotencyRepository
from supplier_orders.core.ports.outbound.orders import OrderRepository
from supplier_orders.core.ports.outbound.partners import PartnerRepository
from supplier_orders.core.ports.outbound.sku_mappings import SkuMappingRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Repositories:
    orders: OrderRepository
    events: OrderEventRepository
    idempotency: IdempotencyRepository
    sku_mappings: SkuMappingRepository
    partners: PartnerRepository


@dataclass(frozen=True)
class UseCases:
    submit_cart: SubmitCartService
    manage_order: OrderLifecycleService
    sync_downstream: FulfillmentSaga
    get_order: GetOrderService
    list_orders: ListOrdersService
    partners: PartnerRepository


def build_engine(url: str) -> Engine:
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        # one shared connection, otherwise each checkout sees an empty database
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    return create_engine(url, pool_pre_ping=True)


def build_repositories(
    settings: Settings, sku_mappings: Iterable[SKUMapping] = ()
) -> Repositories:
    salt = settings.api_key_hash_salt
    if settings.database_url:
        engine = build_engine(settings.database_url)
        create_schema(engine)
        catalog = SqlSkuMappingRepository(engine)
        for mapping in sku_mappings:
            catalog.upsert(mapping)
        return Repositories(
            orders=SqlOrderRepository(engine),
            events=SqlOrderEventRepository(engine),
            idempotency=SqlIdempotencyRepository(engine),
            sku_mappings=catalog,
            partners=SqlPartnerRepository(engine, salt=salt),
        )

    idempotency = InMemoryIdempotencyRepository()
    return Repositories(
        orders=InMemoryOrderRepository(idempotency=idempotency),
        events=InMemoryOrderEventRepository(),
        idempotency=idempotency,
        sku_mappings=InMemorySkuMappingRepository.of(sku_mappings),
        partners=InMemoryPartnerRepository(salt=salt),
    )


def build_shopify_client(settings: Settings) -> ShopifyGraphQLClient:
    if settings.shopify is None:
        raise ConfigError("SHOPIFY_SHOP_DOMAIN and SHOPIFY_ACCESS_TOKEN are required")
    return ShopifyGraphQLClient(
        shop_domain=settings.shopify.shop_domain,
        access_token=settings.shopify.access_token,
        api_version=settings.shopify.api_version,
        timeout=settings.shopify.timeout_seconds,
    )


def build_commerce(settings: Settings) -> CommercePlatform:
    if settings.commerce_adapter == "shopify":
        return ShopifyCommercePlatform(build_shopify_client(settings))
    return FakeCommercePlatform()


def build_usecases(
    settings: Settings,
    repos: Repositories | None = None,
    commerce: CommercePlatform | None = None,
) -> UseCases:
    repos = repos or build_repositories(settings)
    commerce = commerce or build_commerce(settings)
    logger.info(
        "Wiring use cases",
        storage="sql" if settings.database_url else "memory",
        commerce=type(commerce).__name__,
    )

    lifecycle = OrderLifecycleService(
        OrderLifecycleDeps(orders=repos.orders, events=repos.events)
    )
    saga = FulfillmentSaga(
        FulfillmentSagaDeps(
            orders=repos.orders,
            events=repos.events,
            commerce=commerce,
            partners=repos.partners,
        )
    )
    submit_cart = SubmitCartService(
        SubmitCartDeps(
            orders=repos.orders,
            guard=IdempotencyGuard(repos.idempotency),
            classifier=SkuClassifier(repos.sku_mappings),
            lifecycle=lifecycle,
            saga=saga,
        )
    )
    get_order = GetOrderService(GetOrderDeps(orders=repos.orders, events=repos.events))
    list_orders = ListOrdersService(ListOrdersDeps(orders=repos.orders))

    return UseCases(
        submit_cart=submit_cart,
        manage_order=lifecycle,
        sync_downstream=saga,
        get_order=get_order,
        list_orders=list_orders,
        partners=repos.partners,
    )
