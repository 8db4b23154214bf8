import pytest

from supplier_orders.bootstrap import build_commerce
from supplier_orders.adapters.outbound.fake_commerce import FakeCommercePlatform
from supplier_orders.adapters.outbound.shopify.commerce import ShopifyCommercePlatform
from supplier_orders.config import DEFAULT_SALT, ConfigError, load_settings


def test_defaults():
    s = load_settings(environ={})

    assert s.port == 8080
    assert s.environment == "development"
    assert s.database_url is None
    assert s.commerce_adapter == "fake"
    assert s.shopify is None
    assert s.api_key_hash_salt == DEFAULT_SALT
    assert isinstance(build_commerce(s), FakeCommercePlatform)


def test_shopify_settings():
    s = load_settings(
        environ={
            "ENVIRONMENT": "Production",
            "PORT": "9000",
            "LOG_JSON": "true",
            "COMMERCE_ADAPTER": "shopify",
            "SHOPIFY_SHOP_DOMAIN": "https://acme.myshopify.com/",
            "SHOPIFY_ACCESS_TOKEN": "shpat_x",
            "SHOPIFY_TIMEOUT_SECONDS": "12.5",
            "DATABASE_URL": "sqlite://",
        }
    )

    assert s.is_production
    assert s.port == 9000
    assert s.log_json is True
    assert s.shopify.shop_domain == "acme.myshopify.com"
    assert s.shopify.timeout_seconds == 12.5
    assert s.database_url == "sqlite://"
    assert isinstance(build_commerce(s), ShopifyCommercePlatform)


@pytest.mark.parametrize(
    "environ",
    [
        {"PORT": "eighty"},
        {"PORT": "0"},
        {"COMMERCE_ADAPTER": "magento"},
        {"COMMERCE_ADAPTER": "shopify", "SHOPIFY_ACCESS_TOKEN": "t"},
        {"COMMERCE_ADAPTER": "shopify", "SHOPIFY_SHOP_DOMAIN": "acme.myshopify.com"},
    ],
)
def test_invalid_settings(environ):
    with pytest.raises(ConfigError):
        load_settings(environ=environ)
