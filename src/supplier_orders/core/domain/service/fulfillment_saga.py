from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import structlog
from returns.result import Failure, Result

from supplier_orders.core.domain.model.errors import (
    DuplicateRecord,
    InvalidStateTransition,
    OrderError,
)
from supplier_orders.core.domain.model.order import (
    Order,
    OrderEvent,
    OrderId,
    OrderItem,
    OrderStatus,
)
from supplier_orders.core.ports.inbound.sync_downstream import SyncDownstreamUseCase
from supplier_orders.core.ports.outbound.commerce import (
    CommercePlatform,
    ProvisionalAddress,
    ProvisionalLineItem,
    ProvisionalOrderInput,
)
from supplier_orders.core.ports.outbound.events import OrderEventRepository
from supplier_orders.core.ports.outbound.orders import OrderRepository
from supplier_orders.core.ports.outbound.partners import PartnerRepository

logger = structlog.get_logger(__name__)

# orders that must never reach the commerce platform
_CLOSED = frozenset({OrderStatus.REJECTED, OrderStatus.CANCELLED})


@dataclass(frozen=True)
class FulfillmentSagaDeps:
    orders: OrderRepository
    events: OrderEventRepository
    commerce: CommercePlatform
    partners: PartnerRepository


@dataclass(frozen=True)
class FulfillmentSaga(SyncDownstreamUseCase):
    """Mirrors an order into the commerce platform in two persisted steps.

    Step A creates a provisional (draft) order, step B completes it. Each
    step's id is written to the order before the next step starts, so the
    saga can be resumed from whatever was stored. A stored provisional id
    with no finalized id is a valid resting state; nothing is rolled back.

    Both ids are write-once. A sync that loses the provisional write to an
    overlapping sync leaves its own draft orphaned: it records a
    ``downstream_provisional_orphaned`` event and stops without finalizing.
    Rejected and cancelled orders are never synced.
    """

    deps: FulfillmentSagaDeps

    def sync(self, order_id: OrderId) -> Result[Order, OrderError]:
        loaded = self.deps.orders.get_order(order_id)
        if isinstance(loaded, Failure):
            return loaded
        order = loaded.unwrap()

        if order.downstream_finalized_id is not None:
            return loaded
        if order.status in _CLOSED:
            logger.info(
                "Downstream sync refused for closed order",
                order_id=str(order_id),
                status=order.status.value,
            )
            return Failure(
                InvalidStateTransition(
                    message=f"{order.status.value.lower()} orders are not synced downstream",
                    from_status=order.status.value,
                    to_status="DOWNSTREAM_SYNCED",
                )
            )

        provisional_id = order.downstream_provisional_id
        if provisional_id is None:
            created = self._create_provisional(order)
            if isinstance(created, Failure):
                return created
            provisional_id = created.unwrap()

        finalized = self.deps.commerce.finalize_provisional_order(provisional_id)
        if isinstance(finalized, Failure):
            logger.warning(
                "Downstream finalization failed; provisional order kept",
                order_id=str(order_id),
                provisional_id=provisional_id,
                error=str(finalized.failure()),
                error_type=type(finalized.failure()).__name__,
            )
            return finalized
        finalized_id = finalized.unwrap()

        stored = self.deps.orders.update_finalized_downstream_id(order_id, finalized_id)
        if isinstance(stored, Failure) and _is_duplicate(stored.failure()):
            # an overlapping sync completed the same draft first
            logger.warning(
                "Finalized downstream id already stored",
                order_id=str(order_id),
                provisional_id=provisional_id,
                finalized_id=finalized_id,
            )
            return self.deps.orders.get_order(order_id)
        if isinstance(stored, Failure):
            logger.error(
                "Failed to store finalized downstream id",
                order_id=str(order_id),
                finalized_id=finalized_id,
                error=str(stored.failure()),
            )
            return stored

        self._append_event(
            OrderEvent.new(
                order_id,
                "downstream_finalized",
                {"provisional_id": provisional_id, "finalized_id": finalized_id},
            )
        )
        logger.info(
            "Downstream order finalized",
            order_id=str(order_id),
            provisional_id=provisional_id,
            finalized_id=finalized_id,
        )
        return self.deps.orders.get_order(order_id)

    def _create_provisional(self, order: Order) -> Result[int, OrderError]:
        items = self.deps.orders.get_order_items(order.order_id)
        if isinstance(items, Failure):
            logger.error(
                "Failed to load order items for downstream sync",
                order_id=str(order.order_id),
                error=str(items.failure()),
            )
            return items

        draft = build_provisional_order(order, items.unwrap(), self._partner_tag(order))
        created = self.deps.commerce.create_provisional_order(draft)
        if isinstance(created, Failure):
            logger.warning(
                "Downstream provisional order creation failed",
                order_id=str(order.order_id),
                error=str(created.failure()),
                error_type=type(created.failure()).__name__,
            )
            return created
        provisional_id = created.unwrap()

        stored = self.deps.orders.update_provisional_downstream_id(
            order.order_id, provisional_id
        )
        if isinstance(stored, Failure) and _is_duplicate(stored.failure()):
            self._report_orphan(order.order_id, provisional_id)
            return stored
        if isinstance(stored, Failure):
            # the draft exists downstream but is not linked; a retry creates another
            logger.error(
                "Failed to store provisional downstream id",
                order_id=str(order.order_id),
                provisional_id=provisional_id,
                error=str(stored.failure()),
            )
            return stored

        self._append_event(
            OrderEvent.new(
                order.order_id,
                "downstream_provisional_created",
                {"provisional_id": provisional_id},
            )
        )
        logger.info(
            "Downstream provisional order created",
            order_id=str(order.order_id),
            provisional_id=provisional_id,
        )
        return created

    def _report_orphan(self, order_id: OrderId, orphaned_id: int) -> None:
        current = self.deps.orders.get_order(order_id)
        stored_id = (
            current.unwrap().downstream_provisional_id
            if not isinstance(current, Failure)
            else None
        )
        logger.warning(
            "Provisional order lost to an overlapping sync; draft left orphaned",
            order_id=str(order_id),
            orphaned_provisional_id=orphaned_id,
            provisional_id=stored_id,
        )
        self._append_event(
            OrderEvent.new(
                order_id,
                "downstream_provisional_orphaned",
                {"orphaned_provisional_id": orphaned_id, "provisional_id": stored_id},
            )
        )

    def _partner_tag(self, order: Order) -> str:
        partner = self.deps.partners.get(order.partner_id)
        if isinstance(partner, Failure):
            return f"partner:{order.partner_id}"
        return f"partner:{partner.unwrap().name}"

    def _append_event(self, event: OrderEvent) -> None:
        appended = self.deps.events.append(event)
        if isinstance(appended, Failure):
            logger.error(
                "Failed to append order event",
                order_id=str(event.order_id),
                event_type=event.event_type,
                error=str(appended.failure()),
            )


def _is_duplicate(err: OrderError) -> bool:
    return isinstance(err, DuplicateRecord) and err.constraint.startswith("downstream_")


def split_customer_name(full_name: str) -> tuple[str, str | None]:
    """``"Ana Maria Souza"`` -> ``("Ana", "Maria Souza")``; one token has no last name."""
    parts = full_name.split()
    if not parts:
        return "", None
    if len(parts) == 1:
        return parts[0], None
    return parts[0], " ".join(parts[1:])


def build_provisional_order(
    order: Order, items: Sequence[OrderItem], partner_tag: str
) -> ProvisionalOrderInput:
    lines = []
    for item in items:
        if item.is_supplier_item:
            lines.append(
                ProvisionalLineItem(
                    quantity=item.quantity, variant_id=item.downstream_variant_id
                )
            )
        else:
            attrs = (("product_url", item.product_url),) if item.product_url else ()
            lines.append(
                ProvisionalLineItem(
                    quantity=item.quantity,
                    title=item.title,
                    unit_price=item.unit_price,
                    attributes=attrs,
                )
            )

    first, last = split_customer_name(order.customer_name)
    addr = order.shipping_address
    address = ProvisionalAddress(
        first_name=first,
        last_name=last,
        address1=addr.get("street", ""),
        city=addr.get("city", ""),
        province=addr.get("state"),
        zip=addr.get("postal_code", ""),
        country=addr.get("country", ""),
        phone=order.customer_phone,
    )

    tags = [
        partner_tag,
        f"partner_order:{order.partner_order_id}",
        OrderStatus.PENDING_CONFIRMATION.value.lower(),
    ]
    has_supplier = any(it.is_supplier_item for it in items)
    has_passthrough = any(not it.is_supplier_item for it in items)
    if has_supplier and has_passthrough:
        tags.append("mixed_cart")

    return ProvisionalOrderInput(
        line_items=tuple(lines),
        shipping_address=address,
        tags=tuple(tags),
        note=f"Partner Order ID: {order.partner_order_id}",
    )
