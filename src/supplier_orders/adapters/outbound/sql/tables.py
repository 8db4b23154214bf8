from __future__ import annotations

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

partners = Table(
    "partners",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("api_key_hash", String(64), nullable=False, unique=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("webhook_url", Text, nullable=True),
)

orders = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("partner_id", String(36), nullable=False, index=True),
    Column("partner_order_id", String(255), nullable=False),
    Column("status", String(32), nullable=False, index=True),
    Column("customer_name", String(255), nullable=False),
    Column("customer_phone", String(64), nullable=True),
    Column("shipping_address", JSON, nullable=False),
    Column("cart_total", Numeric(12, 2), nullable=False),
    Column("payment_status", String(64), nullable=True),
    Column("payment_method", String(64), nullable=True),
    Column("rejection_reason", Text, nullable=True),
    Column("tracking_carrier", String(128), nullable=True),
    Column("tracking_number", String(128), nullable=True),
    Column("tracking_url", Text, nullable=True),
    Column("downstream_provisional_id", BigInteger, nullable=True),
    Column("downstream_finalized_id", BigInteger, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("partner_id", "partner_order_id", name="uq_orders_partner_order"),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "order_id",
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("position", Integer, nullable=False),
    Column("sku", String(255), nullable=False),
    Column("title", Text, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("product_url", Text, nullable=True),
    Column("is_supplier_item", Boolean, nullable=False),
    Column("downstream_variant_id", BigInteger, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

sku_mappings = Table(
    "sku_mappings",
    metadata,
    Column("sku", String(255), primary_key=True),
    Column("downstream_product_id", BigInteger, nullable=False),
    Column("downstream_variant_id", BigInteger, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
)

idempotency_keys = Table(
    "idempotency_keys",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("partner_id", String(36), nullable=False),
    Column("request_hash", String(64), nullable=False),
    Column("order_id", String(36), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

order_events = Table(
    "order_events",
    metadata,
    # autoincrement id gives creation order
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_id", String(36), nullable=False, unique=True),
    Column("order_id", String(36), nullable=False, index=True),
    Column("event_type", String(64), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)
