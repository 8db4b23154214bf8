from __future__ import annotations

from dataclasses import dataclass

import structlog
from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import (
    DuplicateRecord,
    IdempotencyKeyConflict,
    OrderError,
    PersistenceError,
    ValidationError,
)
from supplier_orders.core.domain.model.idempotency import Conflict, Fresh, Replay
from supplier_orders.core.domain.model.order import Order, OrderId
from supplier_orders.core.domain.service.fulfillment_saga import FulfillmentSaga
from supplier_orders.core.domain.service.idempotency_guard import IdempotencyGuard
from supplier_orders.core.domain.service.order_lifecycle_service import (
    OrderLifecycleService,
)
from supplier_orders.core.domain.service.sku_classifier import SkuClassifier
from supplier_orders.core.ports.inbound.submit_cart import (
    CartSubmissionReceipt,
    SubmitCartCommand,
    SubmitCartUseCase,
)
from supplier_orders.core.ports.outbound.orders import OrderRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SubmitCartDeps:
    orders: OrderRepository
    guard: IdempotencyGuard
    classifier: SkuClassifier
    lifecycle: OrderLifecycleService
    saga: FulfillmentSaga


@dataclass(frozen=True)
class SubmitCartService(SubmitCartUseCase):
    deps: SubmitCartDeps

    def submit(
        self, command: SubmitCartCommand
    ) -> Result[CartSubmissionReceipt, OrderError]:
        validated = _validate_command(command)
        if isinstance(validated, Failure):
            return validated

        began = self.deps.guard.begin(
            command.idempotency_key, command.partner_id, command.request_body
        )
        if isinstance(began, Failure):
            return began
        outcome = began.unwrap()

        if not isinstance(outcome, Fresh):
            return self._settle(command, outcome)

        classification = self.deps.classifier.classify(command.items)
        if not classification.has_supplier_item:
            logger.info(
                "Cart has no supplier items; nothing to do",
                partner_id=str(command.partner_id),
                partner_order_id=command.partner_order_id,
            )
            return Success(CartSubmissionReceipt(order=None))

        created = self.deps.lifecycle.create_from_cart(
            command.partner_id, command, classification, outcome.request_hash
        )
        if isinstance(created, Failure):
            err = created.failure()
            if isinstance(err, DuplicateRecord) and err.constraint == "idempotency_key":
                return self._settle_lost_key(command)
            if isinstance(err, DuplicateRecord) and err.constraint == "partner_order":
                return self._replay_by_partner_order(command)
            return created
        order = created.unwrap()

        synced = self.deps.saga.sync(order.order_id)
        if isinstance(synced, Failure):
            logger.warning(
                "Downstream sync did not complete; order kept for retry",
                order_id=str(order.order_id),
                error=str(synced.failure()),
                error_type=type(synced.failure()).__name__,
            )

        return self._receipt(order.order_id, replayed=False)

    def _settle(
        self, command: SubmitCartCommand, outcome: Replay | Conflict
    ) -> Result[CartSubmissionReceipt, OrderError]:
        if isinstance(outcome, Replay):
            logger.info(
                "Replaying cart submission",
                idempotency_key=command.idempotency_key,
                order_id=str(outcome.order_id),
            )
            return self._receipt(outcome.order_id, replayed=True)

        logger.info(
            "Idempotency key reused with a different request",
            idempotency_key=outcome.key,
            partner_id=str(command.partner_id),
        )
        return Failure(
            IdempotencyKeyConflict(
                message="idempotency key was used with a different request",
                key=outcome.key,
            )
        )

    def _settle_lost_key(
        self, command: SubmitCartCommand
    ) -> Result[CartSubmissionReceipt, OrderError]:
        # another request bound the key between our check and our insert
        again = self.deps.guard.begin(
            command.idempotency_key, command.partner_id, command.request_body
        )
        if isinstance(again, Failure):
            return again
        outcome = again.unwrap()
        if isinstance(outcome, Fresh):
            return Failure(
                PersistenceError(message="idempotency key vanished after a duplicate insert")
            )
        return self._settle(command, outcome)

    def _replay_by_partner_order(
        self, command: SubmitCartCommand
    ) -> Result[CartSubmissionReceipt, OrderError]:
        if command.idempotency_key is not None:
            # the winner may hold our key with another body
            again = self.deps.guard.begin(
                command.idempotency_key, command.partner_id, command.request_body
            )
            if isinstance(again, Failure):
                return again
            if not isinstance(again.unwrap(), Fresh):
                return self._settle(command, again.unwrap())

        existing = self.deps.orders.get_order_by_partner_order_id(
            command.partner_id, command.partner_order_id
        )
        if isinstance(existing, Failure):
            return existing
        order: Order = existing.unwrap()
        logger.info(
            "Partner order already exists; returning it",
            order_id=str(order.order_id),
            partner_order_id=command.partner_order_id,
        )
        return self._receipt(order.order_id, replayed=True)

    def _receipt(
        self, order_id: OrderId, replayed: bool
    ) -> Result[CartSubmissionReceipt, OrderError]:
        # re-read so the receipt carries whatever downstream ids got stored
        loaded = self.deps.orders.get_order(order_id)
        if isinstance(loaded, Failure):
            return loaded
        items = self.deps.orders.get_order_items(order_id)
        if isinstance(items, Failure):
            return items
        return Success(
            CartSubmissionReceipt(
                order=loaded.unwrap(),
                items=tuple(items.unwrap()),
                has_supplier_item=any(it.is_supplier_item for it in items.unwrap()),
                replayed=replayed,
            )
        )


def _validate_command(
    cmd: SubmitCartCommand,
) -> Result[SubmitCartCommand, OrderError]:
    if not cmd.partner_order_id.strip():
        return Failure(ValidationError("partner_order_id is required"))
    if not cmd.items:
        return Failure(ValidationError("at least one item is required"))
    if not cmd.customer.name.strip():
        return Failure(ValidationError("customer.name is required"))
    if cmd.idempotency_key is not None and not cmd.idempotency_key.strip():
        return Failure(ValidationError("idempotency_key must be non-empty when provided"))

    for i, ln in enumerate(cmd.items):
        if not ln.sku.strip():
            return Failure(ValidationError(f"items[{i}].sku is required"))
        if not ln.title.strip():
            return Failure(ValidationError(f"items[{i}].title is required"))
        if ln.price < 0:
            return Failure(ValidationError(f"items[{i}].price must be >= 0"))
        if ln.quantity < 1:
            return Failure(ValidationError(f"items[{i}].quantity must be >= 1"))

    t = cmd.totals
    for name, value in (
        ("subtotal", t.subtotal),
        ("tax", t.tax),
        ("shipping", t.shipping),
        ("total", t.total),
    ):
        if value < 0:
            return Failure(ValidationError(f"totals.{name} must be >= 0"))

    return Success(cmd)
