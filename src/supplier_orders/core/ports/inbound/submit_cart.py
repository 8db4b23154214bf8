from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Protocol, Sequence

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError
from supplier_orders.core.domain.model.order import Order, OrderItem, PartnerId


@dataclass(frozen=True)
class CartLine:
    sku: str
    title: str
    price: Decimal
    quantity: int
    product_url: str | None = None


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    phone: str | None = None


@dataclass(frozen=True)
class ShippingInfo:
    street: str
    city: str
    postal_code: str
    country: str
    state: str | None = None


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    total: Decimal
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")


@dataclass(frozen=True)
class SubmitCartCommand:
    partner_id: PartnerId
    partner_order_id: str
    items: Sequence[CartLine]
    customer: CustomerInfo
    shipping: ShippingInfo
    totals: CartTotals
    payment_status: str | None = None
    payment_method: str | None = None
    idempotency_key: str | None = None
    # parsed request body as received; hashed for replay detection
    request_body: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CartSubmissionReceipt:
    order: Order | None
    items: Sequence[OrderItem] = ()
    has_supplier_item: bool = False
    replayed: bool = False


class SubmitCartUseCase(Protocol):
    def submit(
        self, command: SubmitCartCommand
    ) -> Result[CartSubmissionReceipt, OrderError]: ...
