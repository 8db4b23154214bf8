from decimal import Decimal

from returns.result import Failure, Success

from supplier_orders.core.domain.model.errors import (
    DownstreamUnavailable,
    IdempotencyKeyConflict,
    PersistenceError,
    ValidationError,
)
from supplier_orders.core.domain.model.order import OrderStatus
from supplier_orders.core.domain.service.order_lifecycle_service import (
    OrderLifecycleDeps,
    OrderLifecycleService,
)
from supplier_orders.core.domain.service.submit_cart_service import (
    SubmitCartDeps,
    SubmitCartService,
)
from supplier_orders.core.ports.inbound.submit_cart import CartLine


def _order_count(repos, partner):
    return len(repos.orders.list_by_partner(partner.partner_id, 100, 0).unwrap())


class TestSubmitCart:
    def test_creates_and_syncs_order(self, usecases, repos, make_command, partner):
        receipt = usecases.submit_cart.submit(make_command()).unwrap()

        assert receipt.has_supplier_item is True
        assert receipt.replayed is False
        assert receipt.order.status is OrderStatus.PENDING_CONFIRMATION
        assert receipt.order.downstream_provisional_id == 1000
        assert receipt.order.downstream_finalized_id == 5000
        assert {it.sku for it in receipt.items} == {"SKU-A", "SKU-B"}
        assert _order_count(repos, partner) == 1

    def test_cart_without_supplier_items_persists_nothing(
        self, usecases, repos, make_command, partner, commerce
    ):
        cmd = make_command(
            lines=[CartLine(sku="SKU-B", title="Poster", price=Decimal("5"), quantity=1)],
            idempotency_key="k-none",
        )

        receipt = usecases.submit_cart.submit(cmd).unwrap()

        assert receipt.order is None
        assert receipt.has_supplier_item is False
        assert _order_count(repos, partner) == 0
        assert repos.idempotency.get("k-none").unwrap() is None
        assert commerce.created == []

    def test_downstream_failure_still_returns_created_order(
        self, usecases, repos, make_command, commerce
    ):
        commerce.configure(finalize_error=DownstreamUnavailable("timed out"))

        result = usecases.submit_cart.submit(make_command(idempotency_key="k-1"))

        assert isinstance(result, Success)
        order = result.unwrap().order
        assert order.downstream_provisional_id == 1000
        assert order.downstream_finalized_id is None
        assert repos.idempotency.get("k-1").unwrap().order_id == order.order_id

    def test_invalid_command_is_rejected(self, usecases, make_command):
        cmd = make_command(
            lines=[CartLine(sku="SKU-A", title="Mug", price=Decimal("-1"), quantity=1)]
        )

        assert isinstance(usecases.submit_cart.submit(cmd).failure(), ValidationError)

    def test_blank_partner_order_id_is_rejected(self, usecases, make_command):
        result = usecases.submit_cart.submit(make_command(partner_order_id=" "))
        assert isinstance(result.failure(), ValidationError)


class TestIdempotentSubmission:
    def test_same_key_same_body_replays(self, usecases, repos, make_command, partner, commerce):
        first = usecases.submit_cart.submit(make_command(idempotency_key="k-1")).unwrap()
        second = usecases.submit_cart.submit(make_command(idempotency_key="k-1")).unwrap()

        assert second.replayed is True
        assert second.order.order_id == first.order.order_id
        assert _order_count(repos, partner) == 1
        assert len(commerce.created) == 1

    def test_same_key_different_body_conflicts(self, usecases, repos, make_command, partner):
        usecases.submit_cart.submit(make_command(idempotency_key="k-1"))

        result = usecases.submit_cart.submit(
            make_command(idempotency_key="k-1", partner_order_id="PO-2")
        )

        assert isinstance(result.failure(), IdempotencyKeyConflict)
        assert _order_count(repos, partner) == 1

    def test_key_is_free_again_after_a_failed_creation(
        self, usecases, repos, make_command, partner
    ):
        class FailOnce:
            def __init__(self, delegate):
                self.delegate = delegate
                self.failed = False

            def __getattr__(self, name):
                return getattr(self.delegate, name)

            def create_order(self, order, items, idempotency=None):
                if not self.failed:
                    self.failed = True
                    return Failure(PersistenceError("connection lost"))
                return self.delegate.create_order(order, items, idempotency)

        svc = usecases.submit_cart
        lifecycle_orders = FailOnce(repos.orders)
        flaky = SubmitCartService(
            SubmitCartDeps(
                orders=repos.orders,
                guard=svc.deps.guard,
                classifier=svc.deps.classifier,
                lifecycle=OrderLifecycleService(
                    OrderLifecycleDeps(orders=lifecycle_orders, events=repos.events)
                ),
                saga=svc.deps.saga,
            )
        )

        first = flaky.submit(make_command(idempotency_key="k-1"))
        second = flaky.submit(make_command(idempotency_key="k-1"))

        assert isinstance(first.failure(), PersistenceError)
        assert second.unwrap().replayed is False
        assert _order_count(repos, partner) == 1

    def test_resubmitting_partner_order_without_key_returns_existing(
        self, usecases, repos, make_command, partner
    ):
        first = usecases.submit_cart.submit(make_command()).unwrap()
        second = usecases.submit_cart.submit(make_command()).unwrap()

        assert second.replayed is True
        assert second.order.order_id == first.order.order_id
        assert _order_count(repos, partner) == 1

    def test_same_partner_order_id_for_different_partners(
        self, usecases, repos, make_command, partner, other_partner
    ):
        a = usecases.submit_cart.submit(make_command()).unwrap()
        b = usecases.submit_cart.submit(
            make_command(partner_id=other_partner.partner_id)
        ).unwrap()

        assert a.order.order_id != b.order.order_id


class TestOverlappingSubmissions:
    """A second request with the same key arrives while the first is in flight."""

    def test_reused_key_during_downstream_sync_conflicts(
        self, usecases, repos, make_command, partner, commerce
    ):
        create = commerce.create_provisional_order
        competing = []

        def create_and_compete(draft):
            if not competing:
                competing.append(
                    usecases.submit_cart.submit(
                        make_command(idempotency_key="k-1", partner_order_id="PO-2")
                    )
                )
            return create(draft)

        commerce.create_provisional_order = create_and_compete

        first = usecases.submit_cart.submit(make_command(idempotency_key="k-1"))

        assert isinstance(first, Success)
        assert isinstance(competing[0].failure(), IdempotencyKeyConflict)
        assert _order_count(repos, partner) == 1
        assert len(commerce.created) == 1
        assert repos.idempotency.get("k-1").unwrap().order_id == first.unwrap().order.order_id

    def _racing_service(self, usecases, repos, competitor):
        class CompeteFirst:
            def __init__(self, delegate):
                self.delegate = delegate

            def __getattr__(self, name):
                return getattr(self.delegate, name)

            def create_order(self, order, items, idempotency=None):
                competitor()
                return self.delegate.create_order(order, items, idempotency)

        svc = usecases.submit_cart
        return SubmitCartService(
            SubmitCartDeps(
                orders=repos.orders,
                guard=svc.deps.guard,
                classifier=svc.deps.classifier,
                lifecycle=OrderLifecycleService(
                    OrderLifecycleDeps(orders=CompeteFirst(repos.orders), events=repos.events)
                ),
                saga=svc.deps.saga,
            )
        )

    def test_key_taken_between_check_and_insert_conflicts(
        self, usecases, repos, make_command, partner
    ):
        winner = []
        racing = self._racing_service(
            usecases,
            repos,
            lambda: winner.append(
                usecases.submit_cart.submit(
                    make_command(idempotency_key="k-1", partner_order_id="PO-2")
                ).unwrap()
            ),
        )

        loser = racing.submit(make_command(idempotency_key="k-1"))

        assert isinstance(loser.failure(), IdempotencyKeyConflict)
        orders = repos.orders.list_by_partner(partner.partner_id, 100, 0).unwrap()
        assert [o.order_id for o in orders] == [winner[0].order.order_id]
        assert isinstance(
            repos.orders.get_order_by_partner_order_id(partner.partner_id, "PO-1"), Failure
        )

    def test_same_request_taken_between_check_and_insert_replays(
        self, usecases, repos, make_command, partner
    ):
        winner = []
        racing = self._racing_service(
            usecases,
            repos,
            lambda: winner.append(
                usecases.submit_cart.submit(make_command(idempotency_key="k-1")).unwrap()
            ),
        )

        loser = racing.submit(make_command(idempotency_key="k-1")).unwrap()

        assert loser.replayed is True
        assert loser.order.order_id == winner[0].order.order_id
        assert _order_count(repos, partner) == 1
