from decimal import Decimal

import pytest
from returns.result import Failure

from supplier_orders.core.domain.model.errors import (
    DownstreamRejected,
    DownstreamUnavailable,
    DuplicateRecord,
    InvalidStateTransition,
    NotFound,
    PersistenceError,
)
from supplier_orders.core.domain.model.order import OrderId
from supplier_orders.core.domain.service.fulfillment_saga import (
    FulfillmentSaga,
    FulfillmentSagaDeps,
    split_customer_name,
)
from supplier_orders.core.domain.service.sku_classifier import SkuClassifier
from supplier_orders.core.ports.inbound.submit_cart import CartLine


@pytest.fixture
def saga(usecases):
    return usecases.sync_downstream


@pytest.fixture
def create_order(repos, usecases, make_command, partner):
    def _create(**kwargs):
        cmd = make_command(**kwargs)
        classification = SkuClassifier(repos.sku_mappings).classify(cmd.items)
        return usecases.manage_order.create_from_cart(
            partner.partner_id, cmd, classification
        ).unwrap()

    return _create


def _event_types(repos, order_id):
    return [e.event_type for e in repos.events.list_for_order(order_id).unwrap()]


class TestSplitCustomerName:
    @pytest.mark.parametrize(
        "full, expected",
        [
            ("Ana Maria Souza", ("Ana", "Maria Souza")),
            ("Cher", ("Cher", None)),
            ("  John   Smith ", ("John", "Smith")),
            ("", ("", None)),
        ],
    )
    def test_split(self, full, expected):
        assert split_customer_name(full) == expected


class TestProvisionalOrderInput:
    def test_builds_lines_address_tags_and_note(self, saga, create_order, commerce):
        order = create_order()

        saga.sync(order.order_id)

        draft = commerce.created[0]
        supplier, custom = draft.line_items
        assert (supplier.variant_id, supplier.quantity, supplier.title) == (111, 2, None)
        assert custom.is_custom
        assert custom.title == "Poster"
        assert custom.unit_price == Decimal("5.00")
        assert custom.attributes == (("product_url", "https://shop.example/poster"),)

        addr = draft.shipping_address
        assert (addr.first_name, addr.last_name) == ("Ana", "Maria Souza")
        assert (addr.address1, addr.city, addr.province, addr.zip, addr.country) == (
            "1 Main St",
            "Springfield",
            "IL",
            "62701",
            "US",
        )
        assert list(draft.tags) == [
            "partner:acme",
            "partner_order:PO-1",
            "pending_confirmation",
            "mixed_cart",
        ]
        assert draft.note == "Partner Order ID: PO-1"

    def test_supplier_only_cart_has_no_mixed_tag(self, saga, create_order, commerce):
        order = create_order(
            lines=[CartLine(sku="SKU-A", title="Mug", price=Decimal("10"), quantity=1)]
        )

        saga.sync(order.order_id)

        assert "mixed_cart" not in commerce.created[0].tags

    def test_unknown_partner_falls_back_to_id(self, repos, commerce, create_order):
        class NoPartners:
            def get(self, partner_id):
                return Failure(NotFound("gone", resource="partner", resource_id=str(partner_id)))

        saga = FulfillmentSaga(
            FulfillmentSagaDeps(
                orders=repos.orders, events=repos.events, commerce=commerce, partners=NoPartners()
            )
        )
        order = create_order()

        saga.sync(order.order_id)

        assert commerce.created[0].tags[0] == f"partner:{order.partner_id}"


class TestSync:
    def test_both_steps_store_ids_and_events(self, repos, saga, create_order):
        order = create_order()

        synced = saga.sync(order.order_id).unwrap()

        assert synced.downstream_provisional_id == 1000
        assert synced.downstream_finalized_id == 5000
        assert _event_types(repos, order.order_id)[-2:] == [
            "downstream_provisional_created",
            "downstream_finalized",
        ]

    def test_finalize_timeout_keeps_provisional_id(self, repos, saga, create_order, commerce):
        commerce.configure(finalize_error=DownstreamUnavailable("timed out"))
        order = create_order()

        result = saga.sync(order.order_id)

        assert isinstance(result.failure(), DownstreamUnavailable)
        stored = repos.orders.get_order(order.order_id).unwrap()
        assert stored.downstream_provisional_id == 1000
        assert stored.downstream_finalized_id is None

    def test_retry_resumes_from_stored_provisional_id(self, repos, saga, create_order, commerce):
        commerce.configure(finalize_error=DownstreamUnavailable("timed out"))
        order = create_order()
        saga.sync(order.order_id)
        commerce.configure()

        synced = saga.sync(order.order_id).unwrap()

        assert len(commerce.created) == 1
        assert commerce.finalized == [1000]
        assert synced.downstream_provisional_id == 1000
        assert synced.downstream_finalized_id == 5000

    def test_sync_of_finalized_order_is_a_no_op(self, saga, create_order, commerce):
        order = create_order()
        first = saga.sync(order.order_id).unwrap()

        again = saga.sync(order.order_id).unwrap()

        assert again == first
        assert len(commerce.created) == 1
        assert len(commerce.finalized) == 1

    def test_rejected_draft_leaves_order_unlinked(self, repos, saga, create_order, commerce):
        commerce.configure(create_error=DownstreamRejected("bad input", user_errors=("zip: invalid",)))
        order = create_order()

        result = saga.sync(order.order_id)

        assert isinstance(result.failure(), DownstreamRejected)
        stored = repos.orders.get_order(order.order_id).unwrap()
        assert stored.downstream_provisional_id is None
        assert commerce.finalized == []

    def test_item_fetch_failure_stops_before_downstream(self, repos, commerce, create_order):
        class ItemsDown:
            def __getattr__(self, name):
                return getattr(repos.orders, name)

            def get_order_items(self, order_id):
                return Failure(PersistenceError("items table unavailable"))

        saga = FulfillmentSaga(
            FulfillmentSagaDeps(
                orders=ItemsDown(),
                events=repos.events,
                commerce=commerce,
                partners=repos.partners,
            )
        )
        order = create_order()

        result = saga.sync(order.order_id)

        assert isinstance(result.failure(), PersistenceError)
        assert commerce.created == []

    def test_unknown_order(self, saga):
        assert isinstance(saga.sync(OrderId.new()).failure(), NotFound)


class TestClosedOrders:
    def test_rejected_order_is_not_synced(self, repos, usecases, saga, create_order, commerce):
        order = create_order()
        usecases.manage_order.reject(order.order_id, "out of stock").unwrap()

        result = saga.sync(order.order_id)

        assert isinstance(result.failure(), InvalidStateTransition)
        assert result.failure().from_status == "REJECTED"
        assert commerce.created == []
        assert commerce.finalized == []
        stored = repos.orders.get_order(order.order_id).unwrap()
        assert stored.downstream_provisional_id is None

    def test_cancelled_order_is_not_synced(self, usecases, saga, create_order, commerce):
        order = create_order()
        usecases.manage_order.cancel(order.order_id).unwrap()

        result = saga.sync(order.order_id)

        assert isinstance(result.failure(), InvalidStateTransition)
        assert commerce.created == []

    def test_cancelled_after_draft_is_not_finalized(
        self, repos, usecases, saga, create_order, commerce
    ):
        commerce.configure(finalize_error=DownstreamUnavailable("timed out"))
        order = create_order()
        saga.sync(order.order_id)
        commerce.configure()
        usecases.manage_order.cancel(order.order_id).unwrap()

        result = saga.sync(order.order_id)

        assert isinstance(result.failure(), InvalidStateTransition)
        assert commerce.finalized == []
        stored = repos.orders.get_order(order.order_id).unwrap()
        assert stored.downstream_provisional_id == 1000
        assert stored.downstream_finalized_id is None


class TestOverlappingSyncs:
    def test_losing_provisional_write_orphans_its_draft(
        self, repos, saga, create_order, commerce
    ):
        order = create_order()
        create = commerce.create_provisional_order
        inner = []

        def create_after_other_sync(draft):
            if not inner:
                inner.append(None)
                inner[0] = saga.sync(order.order_id)
            return create(draft)

        commerce.create_provisional_order = create_after_other_sync

        outer = saga.sync(order.order_id)

        assert inner[0].unwrap().downstream_finalized_id == 5000
        assert isinstance(outer.failure(), DuplicateRecord)
        assert outer.failure().constraint == "downstream_provisional_id"
        assert len(commerce.created) == 2
        assert commerce.finalized == [1000]
        stored = repos.orders.get_order(order.order_id).unwrap()
        assert (stored.downstream_provisional_id, stored.downstream_finalized_id) == (1000, 5000)
        orphaned = [
            e for e in repos.events.list_for_order(order.order_id).unwrap()
            if e.event_type == "downstream_provisional_orphaned"
        ]
        assert [e.payload for e in orphaned] == [
            {"orphaned_provisional_id": 1001, "provisional_id": 1000}
        ]

    def test_losing_finalized_write_returns_stored_order(
        self, repos, saga, create_order, commerce
    ):
        order = create_order()
        finalize = commerce.finalize_provisional_order
        inner = []

        def finalize_after_other_sync(provisional_id):
            if not inner:
                inner.append(None)
                inner[0] = saga.sync(order.order_id)
            return finalize(provisional_id)

        commerce.finalize_provisional_order = finalize_after_other_sync

        outer = saga.sync(order.order_id).unwrap()

        assert outer.downstream_finalized_id == 5000
        assert inner[0].unwrap().downstream_finalized_id == 5000
        assert commerce.finalized == [1000, 1000]
        assert _event_types(repos, order.order_id).count("downstream_finalized") == 1
