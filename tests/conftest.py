from decimal import Decimal
from pathlib import Path

import pytest

from supplier_orders.adapters.outbound.fake_commerce import FakeCommercePlatform
from supplier_orders.bootstrap import Repositories, build_repositories, build_usecases
from supplier_orders.config import Settings
from supplier_orders.core.domain.model.catalog import SKUMapping
from supplier_orders.core.domain.model.order import PartnerId
from supplier_orders.core.domain.model.partner import Partner, hash_api_key
from supplier_orders.core.ports.inbound.submit_cart import (
    CartLine,
    CartTotals,
    CustomerInfo,
    ShippingInfo,
    SubmitCartCommand,
)

SALT = "test-salt"
API_KEY = "test-api-key"
OTHER_API_KEY = "other-api-key"

MAPPINGS = (
    SKUMapping(sku="SKU-A", downstream_product_id=11, downstream_variant_id=111),
    SKUMapping(sku="SKU-C", downstream_product_id=33, downstream_variant_id=333),
    SKUMapping(
        sku="SKU-OLD", downstream_product_id=99, downstream_variant_id=999, is_active=False
    ),
)


def pytest_collection_modifyitems(config, items):
    """Mark tests by directory."""
    for item in items:
        parts = Path(str(item.fspath)).parts
        for marker in ("domain", "application", "adapters"):
            if marker in parts:
                item.add_marker(getattr(pytest.mark, marker))


def pytest_configure(config):
    for marker in ("domain", "application", "adapters"):
        config.addinivalue_line("markers", f"{marker}: {marker} layer tests")


@pytest.fixture
def settings():
    return Settings(api_key_hash_salt=SALT)


@pytest.fixture
def partner():
    return Partner(
        partner_id=PartnerId.new(),
        name="acme",
        api_key_hash=hash_api_key(API_KEY, SALT),
    )


@pytest.fixture
def other_partner():
    return Partner(
        partner_id=PartnerId.new(),
        name="globex",
        api_key_hash=hash_api_key(OTHER_API_KEY, SALT),
    )


@pytest.fixture
def repos(settings, partner, other_partner) -> Repositories:
    repos = build_repositories(settings, sku_mappings=MAPPINGS)
    repos.partners.add(partner)
    repos.partners.add(other_partner)
    return repos


@pytest.fixture
def api_headers():
    return {"X-API-Key": API_KEY}


@pytest.fixture
def other_api_headers():
    return {"X-API-Key": OTHER_API_KEY}


@pytest.fixture
def commerce():
    return FakeCommercePlatform()


@pytest.fixture
def usecases(settings, repos, commerce):
    return build_usecases(settings, repos=repos, commerce=commerce)


@pytest.fixture
def make_command(partner):
    """Factory for cart submissions; ``request_body`` mirrors the fields."""

    def _make(
        lines=None,
        partner_order_id="PO-1",
        idempotency_key=None,
        partner_id=None,
        customer_name="Ana Maria Souza",
        total="25.00",
    ):
        lines = lines if lines is not None else [
            CartLine(sku="SKU-A", title="Mug", price=Decimal("10.00"), quantity=2),
            CartLine(
                sku="SKU-B",
                title="Poster",
                price=Decimal("5.00"),
                quantity=1,
                product_url="https://shop.example/poster",
            ),
        ]
        body = {
            "partner_order_id": partner_order_id,
            "items": [
                {
                    "sku": ln.sku,
                    "title": ln.title,
                    "price": str(ln.price),
                    "quantity": ln.quantity,
                    "product_url": ln.product_url,
                }
                for ln in lines
            ],
            "customer": {"name": customer_name},
            "total": total,
        }
        return SubmitCartCommand(
            partner_id=partner_id or partner.partner_id,
            partner_order_id=partner_order_id,
            items=tuple(lines),
            customer=CustomerInfo(name=customer_name, phone="+1-555-0100"),
            shipping=ShippingInfo(
                street="1 Main St",
                city="Springfield",
                state="IL",
                postal_code="62701",
                country="US",
            ),
            totals=CartTotals(
                subtotal=Decimal(total), total=Decimal(total)
            ),
            payment_status="paid",
            payment_method="card",
            idempotency_key=idempotency_key,
            request_body=body,
        )

    return _make
