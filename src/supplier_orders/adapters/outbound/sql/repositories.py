from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Sequence, TypeVar
from uuid import UUID

import structlog
from returns.result import Failure, Result, Success
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from supplier_orders.adapters.outbound.sql import tables as t
from supplier_orders.core.domain.model.catalog import SKUMapping
from supplier_orders.core.domain.model.errors import (
    DuplicateRecord,
    InvalidStateTransition,
    NotFound,
    OrderError,
    PersistenceError,
    Unauthorized,
)
from supplier_orders.core.domain.model.idempotency import IdempotencyRecord
from supplier_orders.core.domain.model.order import (
    Order,
    OrderEvent,
    OrderId,
    OrderItem,
    OrderStatus,
    PartnerId,
    now_utc,
)
from supplier_orders.core.domain.model.partner import Partner, hash_api_key
from supplier_orders.core.ports.outbound.events import OrderEventRepository
from supplier_orders.core.ports.outbound.idempotency import IdempotencyRepository
from supplier_orders.core.ports.outbound.orders import OrderRepository
from supplier_orders.core.ports.outbound.partners import PartnerRepository
from supplier_orders.core.ports.outbound.sku_mappings import SkuMappingRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# substrings identifying a unique constraint in driver messages
# (postgres reports the constraint name, sqlite the column list)
_CONSTRAINTS = {
    "partner_order": ("uq_orders_partner_order", "orders.partner_id, orders.partner_order_id"),
    "idempotency_key": ("idempotency_keys_pkey", "idempotency_keys.key"),
    "api_key_hash": ("partners_api_key_hash", "partners.api_key_hash"),
}


def _constraint_of(exc: IntegrityError) -> str:
    text = str(exc.orig)
    for name, markers in _CONSTRAINTS.items():
        if any(m in text for m in markers):
            return name
    return "unknown"


def _run(op: str, fn: Callable[[], Result[T, OrderError]]) -> Result[T, OrderError]:
    try:
        return fn()
    except IntegrityError as e:
        constraint = _constraint_of(e)
        logger.info("Unique constraint violated", operation=op, constraint=constraint)
        return Failure(DuplicateRecord(message=f"{op}: duplicate record", constraint=constraint))
    except SQLAlchemyError as e:
        logger.error("Database operation failed", operation=op, error=str(e))
        return Failure(PersistenceError(message=f"{op}: database error"))


def _utc(value: datetime) -> datetime:
    # sqlite drops tzinfo
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _order_not_found(key: str) -> NotFound:
    return NotFound(message="order not found", resource="order", resource_id=key)


def _already_stored(column: str) -> DuplicateRecord:
    return DuplicateRecord(message=f"{column} is already set", constraint=column)


# ---- orders ----------------------------------------------------------------


def _order_row(order: Order) -> dict[str, Any]:
    return {
        "id": str(order.order_id),
        "partner_id": str(order.partner_id),
        "partner_order_id": order.partner_order_id,
        "status": order.status.value,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "shipping_address": dict(order.shipping_address),
        "cart_total": order.cart_total,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "rejection_reason": order.rejection_reason,
        "tracking_carrier": order.tracking_carrier,
        "tracking_number": order.tracking_number,
        "tracking_url": order.tracking_url,
        "downstream_provisional_id": order.downstream_provisional_id,
        "downstream_finalized_id": order.downstream_finalized_id,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _to_order(row: Row) -> Order:
    m = row._mapping
    return Order(
        order_id=OrderId(UUID(m["id"])),
        partner_id=PartnerId(UUID(m["partner_id"])),
        partner_order_id=m["partner_order_id"],
        status=OrderStatus(m["status"]),
        customer_name=m["customer_name"],
        customer_phone=m["customer_phone"],
        shipping_address=dict(m["shipping_address"] or {}),
        cart_total=Decimal(str(m["cart_total"])),
        payment_status=m["payment_status"],
        payment_method=m["payment_method"],
        rejection_reason=m["rejection_reason"],
        tracking_carrier=m["tracking_carrier"],
        tracking_number=m["tracking_number"],
        tracking_url=m["tracking_url"],
        downstream_provisional_id=m["downstream_provisional_id"],
        downstream_finalized_id=m["downstream_finalized_id"],
        created_at=_utc(m["created_at"]),
        updated_at=_utc(m["updated_at"]),
    )


def _idempotency_row(record: IdempotencyRecord) -> dict[str, Any]:
    return {
        "key": record.key,
        "partner_id": str(record.partner_id),
        "request_hash": record.request_hash,
        "order_id": str(record.order_id),
        "created_at": record.created_at,
    }


def _to_item(row: Row) -> OrderItem:
    m = row._mapping
    return OrderItem(
        item_id=UUID(m["id"]),
        order_id=OrderId(UUID(m["order_id"])),
        sku=m["sku"],
        title=m["title"],
        unit_price=Decimal(str(m["unit_price"])),
        quantity=m["quantity"],
        product_url=m["product_url"],
        is_supplier_item=m["is_supplier_item"],
        downstream_variant_id=m["downstream_variant_id"],
        created_at=_utc(m["created_at"]),
    )


@dataclass(frozen=True)
class SqlOrderRepository(OrderRepository):
    engine: Engine

    def create_order(
        self,
        order: Order,
        items: Sequence[OrderItem],
        idempotency: IdempotencyRecord | None = None,
    ) -> Result[Order, OrderError]:
        rows = [
            {
                "id": str(it.item_id),
                "order_id": str(order.order_id),
                "position": i,
                "sku": it.sku,
                "title": it.title,
                "unit_price": it.unit_price,
                "quantity": it.quantity,
                "product_url": it.product_url,
                "is_supplier_item": it.is_supplier_item,
                "downstream_variant_id": it.downstream_variant_id,
                "created_at": it.created_at,
            }
            for i, it in enumerate(items)
        ]

        def op() -> Result[Order, OrderError]:
            with self.engine.begin() as conn:
                conn.execute(insert(t.orders).values(**_order_row(order)))
                if rows:
                    conn.execute(insert(t.order_items), rows)
                if idempotency is not None:
                    conn.execute(
                        insert(t.idempotency_keys).values(**_idempotency_row(idempotency))
                    )
            return Success(order)

        return _run("create_order", op)

    def get_order(self, order_id: OrderId) -> Result[Order, OrderError]:
        def op() -> Result[Order, OrderError]:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(t.orders).where(t.orders.c.id == str(order_id))
                ).first()
            if row is None:
                return Failure(_order_not_found(str(order_id)))
            return Success(_to_order(row))

        return _run("get_order", op)

    def get_order_by_partner_order_id(
        self, partner_id: PartnerId, partner_order_id: str
    ) -> Result[Order, OrderError]:
        def op() -> Result[Order, OrderError]:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(t.orders).where(
                        t.orders.c.partner_id == str(partner_id),
                        t.orders.c.partner_order_id == partner_order_id,
                    )
                ).first()
            if row is None:
                return Failure(_order_not_found(f"{partner_id}/{partner_order_id}"))
            return Success(_to_order(row))

        return _run("get_order_by_partner_order_id", op)

    def get_order_items(
        self, order_id: OrderId
    ) -> Result[Sequence[OrderItem], OrderError]:
        def op() -> Result[Sequence[OrderItem], OrderError]:
            with self.engine.connect() as conn:
                if not self._exists(conn, order_id):
                    return Failure(_order_not_found(str(order_id)))
                rows = conn.execute(
                    select(t.order_items)
                    .where(t.order_items.c.order_id == str(order_id))
                    .order_by(t.order_items.c.position)
                ).all()
            return Success(tuple(_to_item(r) for r in rows))

        return _run("get_order_items", op)

    def update_status(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        status: OrderStatus,
        reason: str | None = None,
    ) -> Result[None, OrderError]:
        values: dict[str, Any] = {"status": status.value}
        if reason is not None:
            values["rejection_reason"] = reason
        return self._compare_and_set(order_id, expected, status, values)

    def update_tracking(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None,
    ) -> Result[None, OrderError]:
        return self._compare_and_set(
            order_id,
            expected,
            OrderStatus.SHIPPED,
            {
                "status": OrderStatus.SHIPPED.value,
                "tracking_carrier": carrier,
                "tracking_number": tracking_number,
                "tracking_url": tracking_url,
            },
        )

    def update_provisional_downstream_id(
        self, order_id: OrderId, provisional_id: int
    ) -> Result[None, OrderError]:
        def op() -> Result[None, OrderError]:
            with self.engine.begin() as conn:
                res = conn.execute(
                    update(t.orders)
                    .where(
                        t.orders.c.id == str(order_id),
                        t.orders.c.downstream_provisional_id.is_(None),
                    )
                    .values(downstream_provisional_id=provisional_id, updated_at=now_utc())
                )
                if res.rowcount == 0:
                    if not self._exists(conn, order_id):
                        return Failure(_order_not_found(str(order_id)))
                    return Failure(_already_stored("downstream_provisional_id"))
            return Success(None)

        return _run("update_provisional_downstream_id", op)

    def update_finalized_downstream_id(
        self, order_id: OrderId, finalized_id: int
    ) -> Result[None, OrderError]:
        def op() -> Result[None, OrderError]:
            with self.engine.begin() as conn:
                res = conn.execute(
                    update(t.orders)
                    .where(
                        t.orders.c.id == str(order_id),
                        t.orders.c.downstream_provisional_id.is_not(None),
                        t.orders.c.downstream_finalized_id.is_(None),
                    )
                    .values(downstream_finalized_id=finalized_id, updated_at=now_utc())
                )
                if res.rowcount == 1:
                    return Success(None)
                row = conn.execute(
                    select(
                        t.orders.c.downstream_provisional_id,
                        t.orders.c.downstream_finalized_id,
                    ).where(t.orders.c.id == str(order_id))
                ).first()
            if row is None:
                return Failure(_order_not_found(str(order_id)))
            if row.downstream_provisional_id is None:
                return Failure(
                    PersistenceError(message="finalized id requires a stored provisional id")
                )
            return Failure(_already_stored("downstream_finalized_id"))

        return _run("update_finalized_downstream_id", op)

    def list_by_status(
        self, status: OrderStatus, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]:
        return self._list("list_by_status", t.orders.c.status == status.value, limit, offset)

    def list_by_partner(
        self, partner_id: PartnerId, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]:
        return self._list(
            "list_by_partner", t.orders.c.partner_id == str(partner_id), limit, offset
        )

    def _list(
        self, op_name: str, where: Any, limit: int, offset: int
    ) -> Result[Sequence[Order], OrderError]:
        def op() -> Result[Sequence[Order], OrderError]:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(t.orders)
                    .where(where)
                    .order_by(t.orders.c.created_at.desc())
                    .limit(limit)
                    .offset(offset)
                ).all()
            return Success(tuple(_to_order(r) for r in rows))

        return _run(op_name, op)

    def _compare_and_set(
        self,
        order_id: OrderId,
        expected: OrderStatus,
        target: OrderStatus,
        values: dict[str, Any],
    ) -> Result[None, OrderError]:
        def op() -> Result[None, OrderError]:
            with self.engine.begin() as conn:
                res = conn.execute(
                    update(t.orders)
                    .where(
                        t.orders.c.id == str(order_id),
                        t.orders.c.status == expected.value,
                    )
                    .values(updated_at=now_utc(), **values)
                )
                if res.rowcount == 1:
                    return Success(None)
                current = conn.execute(
                    select(t.orders.c.status).where(t.orders.c.id == str(order_id))
                ).scalar()
            if current is None:
                return Failure(_order_not_found(str(order_id)))
            return Failure(
                InvalidStateTransition(
                    message="order status changed concurrently",
                    from_status=current,
                    to_status=target.value,
                )
            )

        return _run("update_status", op)

    @staticmethod
    def _exists(conn: Connection, order_id: OrderId) -> bool:
        return (
            conn.execute(
                select(t.orders.c.id).where(t.orders.c.id == str(order_id))
            ).first()
            is not None
        )


# ---- reference data / idempotency / events / partners ------------------------


@dataclass(frozen=True)
class SqlSkuMappingRepository(SkuMappingRepository):
    engine: Engine

    def get_by_sku(self, sku: str) -> Result[SKUMapping, OrderError]:
        def op() -> Result[SKUMapping, OrderError]:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(t.sku_mappings).where(t.sku_mappings.c.sku == sku)
                ).first()
            if row is None:
                return Failure(
                    NotFound(
                        message="sku mapping not found",
                        resource="sku_mapping",
                        resource_id=sku,
                    )
                )
            m = row._mapping
            return Success(
                SKUMapping(
                    sku=m["sku"],
                    downstream_product_id=m["downstream_product_id"],
                    downstream_variant_id=m["downstream_variant_id"],
                    is_active=m["is_active"],
                )
            )

        return _run("get_sku_mapping", op)

    def upsert(self, mapping: SKUMapping) -> Result[None, OrderError]:
        """Seeding helper for the catalog owner; the order flow only reads."""

        def op() -> Result[None, OrderError]:
            values = {
                "downstream_product_id": mapping.downstream_product_id,
                "downstream_variant_id": mapping.downstream_variant_id,
                "is_active": mapping.is_active,
            }
            with self.engine.begin() as conn:
                res = conn.execute(
                    update(t.sku_mappings)
                    .where(t.sku_mappings.c.sku == mapping.sku)
                    .values(**values)
                )
                if res.rowcount == 0:
                    conn.execute(insert(t.sku_mappings).values(sku=mapping.sku, **values))
            return Success(None)

        return _run("upsert_sku_mapping", op)


@dataclass(frozen=True)
class SqlIdempotencyRepository(IdempotencyRepository):
    engine: Engine

    def get(self, key: str) -> Result[IdempotencyRecord | None, OrderError]:
        def op() -> Result[IdempotencyRecord | None, OrderError]:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(t.idempotency_keys).where(t.idempotency_keys.c.key == key)
                ).first()
            if row is None:
                return Success(None)
            m = row._mapping
            return Success(
                IdempotencyRecord(
                    key=m["key"],
                    partner_id=PartnerId(UUID(m["partner_id"])),
                    request_hash=m["request_hash"],
                    order_id=OrderId(UUID(m["order_id"])),
                    created_at=_utc(m["created_at"]),
                )
            )

        return _run("get_idempotency_key", op)

    def create(self, record: IdempotencyRecord) -> Result[None, OrderError]:
        def op() -> Result[None, OrderError]:
            with self.engine.begin() as conn:
                conn.execute(insert(t.idempotency_keys).values(**_idempotency_row(record)))
            return Success(None)

        result = _run("create_idempotency_key", op)
        if isinstance(result, Failure) and isinstance(result.failure(), DuplicateRecord):
            # the primary key is the only unique column on this table
            return Failure(
                DuplicateRecord(
                    message="idempotency key already exists", constraint="idempotency_key"
                )
            )
        return result


@dataclass(frozen=True)
class SqlOrderEventRepository(OrderEventRepository):
    engine: Engine

    def append(self, event: OrderEvent) -> Result[None, OrderError]:
        def op() -> Result[None, OrderError]:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(t.order_events).values(
                        event_id=str(event.event_id),
                        order_id=str(event.order_id),
                        event_type=event.event_type,
                        payload=dict(event.payload),
                        created_at=event.created_at,
                    )
                )
            return Success(None)

        return _run("append_order_event", op)

    def list_for_order(
        self, order_id: OrderId
    ) -> Result[Sequence[OrderEvent], OrderError]:
        def op() -> Result[Sequence[OrderEvent], OrderError]:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(t.order_events)
                    .where(t.order_events.c.order_id == str(order_id))
                    .order_by(t.order_events.c.id)
                ).all()
            return Success(
                tuple(
                    OrderEvent(
                        event_id=UUID(r._mapping["event_id"]),
                        order_id=order_id,
                        event_type=r._mapping["event_type"],
                        payload=dict(r._mapping["payload"] or {}),
                        created_at=_utc(r._mapping["created_at"]),
                    )
                    for r in rows
                )
            )

        return _run("list_order_events", op)


@dataclass(frozen=True)
class SqlPartnerRepository(PartnerRepository):
    engine: Engine
    salt: str = ""

    def authenticate(self, api_key: str) -> Result[Partner, OrderError]:
        digest = hash_api_key(api_key, self.salt)

        def op() -> Result[Partner, OrderError]:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(t.partners).where(
                        t.partners.c.api_key_hash == digest,
                        t.partners.c.is_active.is_(True),
                    )
                ).first()
            if row is None:
                return Failure(Unauthorized(message="invalid api key"))
            return Success(_to_partner(row))

        return _run("authenticate_partner", op)

    def get(self, partner_id: PartnerId) -> Result[Partner, OrderError]:
        def op() -> Result[Partner, OrderError]:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(t.partners).where(t.partners.c.id == str(partner_id))
                ).first()
            if row is None:
                return Failure(
                    NotFound(
                        message="partner not found",
                        resource="partner",
                        resource_id=str(partner_id),
                    )
                )
            return Success(_to_partner(row))

        return _run("get_partner", op)

    def add(self, partner: Partner) -> Result[None, OrderError]:
        def op() -> Result[None, OrderError]:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(t.partners).values(
                        id=str(partner.partner_id),
                        name=partner.name,
                        api_key_hash=partner.api_key_hash,
                        is_active=partner.is_active,
                        webhook_url=partner.webhook_url,
                    )
                )
            return Success(None)

        return _run("add_partner", op)


def _to_partner(row: Row) -> Partner:
    m = row._mapping
    return Partner(
        partner_id=PartnerId(UUID(m["id"])),
        name=m["name"],
        api_key_hash=m["api_key_hash"],
        is_active=m["is_active"],
        webhook_url=m["webhook_url"],
    )
