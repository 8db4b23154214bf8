from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol, Sequence

from returns.result import Result

from supplier_orders.core.domain.model.errors import OrderError


@dataclass(frozen=True)
class ProvisionalLineItem:
    quantity: int
    variant_id: int | None = None
    title: str | None = None
    unit_price: Decimal | None = None
    attributes: tuple[tuple[str, str], ...] = ()

    @property
    def is_custom(self) -> bool:
        return self.variant_id is None


@dataclass(frozen=True)
class ProvisionalAddress:
    first_name: str
    address1: str
    city: str
    zip: str
    country: str
    last_name: str | None = None
    province: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class ProvisionalOrderInput:
    line_items: Sequence[ProvisionalLineItem]
    shipping_address: ProvisionalAddress
    tags: Sequence[str] = field(default_factory=tuple)
    note: str | None = None


class CommercePlatform(Protocol):
    """
    Downstream platform as an opaque RPC boundary.

    Both operations return the platform's numeric identifier. Input refused by
    the platform is ``DownstreamRejected``; transport problems and timeouts are
    ``DownstreamUnavailable``.
    """

    def create_provisional_order(
        self, draft: ProvisionalOrderInput
    ) -> Result[int, OrderError]: ...

    def finalize_provisional_order(
        self, provisional_id: int
    ) -> Result[int, OrderError]: ...
