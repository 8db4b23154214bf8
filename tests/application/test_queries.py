from supplier_orders.core.domain.model.errors import Forbidden, NotFound, ValidationError
from supplier_orders.core.domain.model.order import OrderStatus
from supplier_orders.core.ports.inbound.get_order import GetOrderQuery
from supplier_orders.core.ports.inbound.list_orders import ListOrdersQuery


class TestGetOrder:
    def test_returns_order_items_and_events(self, usecases, make_command, partner):
        order = usecases.submit_cart.submit(make_command()).unwrap().order

        view = usecases.get_order.get_order(
            GetOrderQuery(order_id=str(order.order_id), partner_id=partner.partner_id)
        ).unwrap()

        assert view.order.order_id == order.order_id
        assert len(view.items) == 2
        assert [e.event_type for e in view.events] == [
            "order_created",
            "downstream_provisional_created",
            "downstream_finalized",
        ]

    def test_invalid_uuid(self, usecases):
        result = usecases.get_order.get_order(GetOrderQuery(order_id="not-a-uuid"))
        assert isinstance(result.failure(), ValidationError)

    def test_missing_order(self, usecases):
        result = usecases.get_order.get_order(
            GetOrderQuery(order_id="00000000-0000-0000-0000-000000000000")
        )
        assert isinstance(result.failure(), NotFound)

    def test_other_partners_order_is_forbidden(self, usecases, make_command, other_partner):
        order = usecases.submit_cart.submit(make_command()).unwrap().order

        result = usecases.get_order.get_order(
            GetOrderQuery(order_id=str(order.order_id), partner_id=other_partner.partner_id)
        )

        assert isinstance(result.failure(), Forbidden)


class TestListOrders:
    def test_by_partner_newest_first(self, usecases, make_command, partner):
        ids = [
            usecases.submit_cart.submit(make_command(partner_order_id=f"PO-{i}"))
            .unwrap()
            .order.order_id
            for i in range(3)
        ]

        orders = usecases.list_orders.list_orders(
            ListOrdersQuery(partner_id=partner.partner_id)
        ).unwrap()

        assert [o.order_id for o in orders] == list(reversed(ids))

    def test_by_status_with_paging(self, usecases, make_command, partner):
        for i in range(3):
            usecases.submit_cart.submit(make_command(partner_order_id=f"PO-{i}"))
        first = usecases.list_orders.list_orders(
            ListOrdersQuery(partner_id=partner.partner_id, limit=1)
        ).unwrap()[0]
        usecases.manage_order.confirm(first.order_id)

        pending = usecases.list_orders.list_orders(
            ListOrdersQuery(partner_id=partner.partner_id, status="pending_confirmation", limit=1, offset=1)
        ).unwrap()
        confirmed = usecases.list_orders.list_orders(
            ListOrdersQuery(partner_id=partner.partner_id, status="CONFIRMED")
        ).unwrap()

        assert len(pending) == 1
        assert pending[0].status is OrderStatus.PENDING_CONFIRMATION
        assert [o.order_id for o in confirmed] == [first.order_id]

    def test_rejects_bad_paging_and_status(self, usecases, partner):
        lo = usecases.list_orders
        pid = partner.partner_id

        assert isinstance(lo.list_orders(ListOrdersQuery(pid, limit=0)).failure(), ValidationError)
        assert isinstance(lo.list_orders(ListOrdersQuery(pid, limit=101)).failure(), ValidationError)
        assert isinstance(lo.list_orders(ListOrdersQuery(pid, offset=-1)).failure(), ValidationError)
        assert isinstance(lo.list_orders(ListOrdersQuery(pid, status="LOST")).failure(), ValidationError)
