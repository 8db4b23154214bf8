from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

import structlog
from returns.result import Failure, Result

from supplier_orders.core.domain.model.errors import (
    InvalidStateTransition,
    OrderError,
    ValidationError,
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
    to_amount,
)
from supplier_orders.core.domain.service.sku_classifier import Classification
from supplier_orders.core.ports.inbound.manage_order import ManageOrderUseCase
from supplier_orders.core.ports.inbound.submit_cart import SubmitCartCommand
from supplier_orders.core.ports.outbound.events import OrderEventRepository
from supplier_orders.core.ports.outbound.orders import OrderRepository

logger = structlog.get_logger(__name__)

StatusWrite = Callable[[Order], Result[None, OrderError]]


@dataclass(frozen=True)
class OrderLifecycleDeps:
    orders: OrderRepository
    events: OrderEventRepository


@dataclass(frozen=True)
class OrderLifecycleService(ManageOrderUseCase):
    """Owns the order state machine and its audit trail.

    Every transition loads the order, checks the transition table, writes the
    new status (compare-and-set against the status it checked), appends a
    ``status_change`` event and returns a fresh read of the order.
    """

    deps: OrderLifecycleDeps

    def create_from_cart(
        self,
        partner_id: PartnerId,
        command: SubmitCartCommand,
        classification: Classification,
        request_hash: str | None = None,
    ) -> Result[Order, OrderError]:
        """Persists the order and its items.

        With an idempotency key on the command and its ``request_hash``, the
        key is bound to the new order in the same repository write.
        """
        order, items = _build_order(partner_id, command, classification)
        binding = None
        if command.idempotency_key is not None and request_hash is not None:
            binding = IdempotencyRecord(
                key=command.idempotency_key,
                partner_id=partner_id,
                request_hash=request_hash,
                order_id=order.order_id,
                created_at=order.created_at,
            )

        def on_created(created: Order) -> Order:
            logger.info(
                "Order created",
                order_id=str(created.order_id),
                partner_order_id=created.partner_order_id,
                items=len(items),
                supplier_items=sum(1 for it in items if it.is_supplier_item),
            )
            self._append_event(
                OrderEvent.new(
                    created.order_id,
                    "order_created",
                    {
                        "partner_order_id": created.partner_order_id,
                        "status": created.status.value,
                    },
                )
            )
            return created

        return self.deps.orders.create_order(order, items, binding).map(on_created)

    def confirm(self, order_id: OrderId) -> Result[Order, OrderError]:
        return self._transition(
            order_id,
            OrderStatus.CONFIRMED,
            lambda o: self.deps.orders.update_status(
                order_id, o.status, OrderStatus.CONFIRMED
            ),
        )

    def reject(self, order_id: OrderId, reason: str) -> Result[Order, OrderError]:
        if not reason or not reason.strip():
            return Failure(ValidationError("reason is required"))
        return self._transition(
            order_id,
            OrderStatus.REJECTED,
            lambda o: self.deps.orders.update_status(
                order_id, o.status, OrderStatus.REJECTED, reason=reason
            ),
            details={"reason": reason},
        )

    def ship(
        self,
        order_id: OrderId,
        carrier: str,
        tracking_number: str,
        tracking_url: str | None = None,
    ) -> Result[Order, OrderError]:
        if not carrier or not carrier.strip():
            return Failure(ValidationError("carrier is required"))
        if not tracking_number or not tracking_number.strip():
            return Failure(ValidationError("tracking_number is required"))

        details: dict[str, Any] = {"carrier": carrier, "tracking_number": tracking_number}
        if tracking_url is not None:
            details["tracking_url"] = tracking_url

        return self._transition(
            order_id,
            OrderStatus.SHIPPED,
            lambda o: self.deps.orders.update_tracking(
                order_id, o.status, carrier, tracking_number, tracking_url
            ),
            details=details,
        )

    def deliver(self, order_id: OrderId) -> Result[Order, OrderError]:
        return self._transition(
            order_id,
            OrderStatus.DELIVERED,
            lambda o: self.deps.orders.update_status(
                order_id, o.status, OrderStatus.DELIVERED
            ),
        )

    def cancel(
        self, order_id: OrderId, reason: str | None = None
    ) -> Result[Order, OrderError]:
        return self._transition(
            order_id,
            OrderStatus.CANCELLED,
            lambda o: self.deps.orders.update_status(
                order_id, o.status, OrderStatus.CANCELLED
            ),
            details={"reason": reason} if reason else None,
        )

    # ---- internals ---------------------------------------------------------

    def _transition(
        self,
        order_id: OrderId,
        target: OrderStatus,
        write: StatusWrite,
        details: dict[str, Any] | None = None,
    ) -> Result[Order, OrderError]:
        loaded = self.deps.orders.get_order(order_id)
        if isinstance(loaded, Failure):
            return loaded
        current = loaded.unwrap()

        if not current.status.can_transition_to(target):
            return Failure(
                InvalidStateTransition(
                    message="transition not allowed",
                    from_status=current.status.value,
                    to_status=target.value,
                )
            )

        written = write(current)
        if isinstance(written, Failure):
            return written

        payload: dict[str, Any] = {"from": current.status.value, "to": target.value}
        payload.update(details or {})
        self._append_event(OrderEvent.new(order_id, "status_change", payload))
        logger.info(
            "Order status changed",
            order_id=str(order_id),
            from_status=current.status.value,
            to_status=target.value,
        )

        # the write does not hand back the row; read it again
        return self.deps.orders.get_order(order_id)

    def _append_event(self, event: OrderEvent) -> None:
        appended = self.deps.events.append(event)
        if isinstance(appended, Failure):
            logger.error(
                "Failed to append order event",
                order_id=str(event.order_id),
                event_type=event.event_type,
                error=str(appended.failure()),
            )


def _build_order(
    partner_id: PartnerId,
    cmd: SubmitCartCommand,
    classification: Classification,
) -> tuple[Order, tuple[OrderItem, ...]]:
    now = now_utc()
    order_id = OrderId.new()

    address = {
        "street": cmd.shipping.street,
        "city": cmd.shipping.city,
        "postal_code": cmd.shipping.postal_code,
        "country": cmd.shipping.country,
    }
    if cmd.shipping.state:
        address["state"] = cmd.shipping.state

    order = Order(
        order_id=order_id,
        partner_id=partner_id,
        partner_order_id=cmd.partner_order_id,
        status=OrderStatus.PENDING_CONFIRMATION,
        customer_name=cmd.customer.name,
        customer_phone=cmd.customer.phone,
        shipping_address=address,
        cart_total=to_amount(cmd.totals.total),
        payment_status=cmd.payment_status,
        payment_method=cmd.payment_method,
        created_at=now,
        updated_at=now,
    )

    items = []
    for line in cmd.items:
        mapping = classification.mapping_for(line.sku)
        items.append(
            OrderItem(
                item_id=uuid4(),
                order_id=order_id,
                sku=line.sku,
                title=line.title,
                unit_price=to_amount(line.price),
                quantity=line.quantity,
                product_url=line.product_url,
                is_supplier_item=mapping is not None,
                downstream_variant_id=mapping.downstream_variant_id if mapping else None,
                created_at=now,
            )
        )
    return order, tuple(items)
