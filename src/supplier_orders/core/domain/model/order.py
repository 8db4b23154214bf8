from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True)
class OrderId:
    value: UUID

    @staticmethod
    def new() -> "OrderId":
        return OrderId(uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PartnerId:
    value: UUID

    @staticmethod
    def new() -> "PartnerId":
        return PartnerId(uuid4())

    def __str__(self) -> str:
        return str(self.value)


class OrderStatus(str, Enum):
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _VALID_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self]

    @classmethod
    def parse(cls, raw: str) -> "OrderStatus | None":
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


_VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_CONFIRMATION: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.REJECTED, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    # terminal
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    partner_id: PartnerId
    partner_order_id: str
    status: OrderStatus
    customer_name: str
    shipping_address: dict[str, str]
    cart_total: Decimal
    created_at: datetime
    updated_at: datetime
    customer_phone: str | None = None
    payment_status: str | None = None
    payment_method: str | None = None
    rejection_reason: str | None = None
    tracking_carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    downstream_provisional_id: int | None = None
    downstream_finalized_id: int | None = None

    @property
    def is_downstream_synced(self) -> bool:
        return self.downstream_finalized_id is not None


@dataclass(frozen=True)
class OrderItem:
    item_id: UUID
    order_id: OrderId
    sku: str
    title: str
    unit_price: Decimal
    quantity: int
    is_supplier_item: bool
    created_at: datetime
    product_url: str | None = None
    downstream_variant_id: int | None = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1: {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price must be >= 0: {self.unit_price}")
        # variant id is set iff the item is fulfilled by the supplier
        if self.is_supplier_item != (self.downstream_variant_id is not None):
            raise ValueError(f"supplier flag and variant id disagree for sku={self.sku}")


@dataclass(frozen=True)
class OrderEvent:
    event_id: UUID
    order_id: OrderId
    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: now_utc())

    @staticmethod
    def new(order_id: OrderId, event_type: str, payload: dict[str, Any]) -> "OrderEvent":
        return OrderEvent(uuid4(), order_id, event_type, dict(payload), now_utc())


def to_amount(value: Decimal | int | str | float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
