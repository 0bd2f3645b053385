"""Tests for the unpaid order group expiry sweep."""
from datetime import datetime, timedelta

import pytz

from marketplace.models.order import Order, OrderStatus
from marketplace.models.order_status_change import OrderStatusChange
from marketplace.services.order_group_service import EXPIRY_ACTOR, expire_unpaid_groups
from tests.conftest import confirm_proposal, two_supplier_proposal


def _booked(client):
    proposal = two_supplier_proposal(client, "client-1")
    return confirm_proposal(client, proposal["proposal_id"], "client-1").json()


def _later(hours):
    return datetime.now(pytz.utc) + timedelta(hours=hours)


class TestExpireUnpaid:
    def test_disabled_by_default(self, client, db):
        _booked(client)
        result = expire_unpaid_groups(db, now=_later(1000))
        assert result.ttl_hours == 0
        assert result.orders_cancelled == 0
        assert {o.status for o in db.query(Order)} == {OrderStatus.pending}

    def test_cancels_pending_orders_after_ttl(self, client, db):
        group = _booked(client)
        result = expire_unpaid_groups(db, now=_later(49), ttl_hours=48)
        assert result.groups_expired == [group["group_id"]]
        assert result.orders_cancelled == 2
        assert {o.status for o in db.query(Order)} == {OrderStatus.cancelled}
        actors = {c.actor_id for c in db.query(OrderStatusChange)}
        assert actors == {EXPIRY_ACTOR}

    def test_recent_groups_untouched(self, client, db):
        _booked(client)
        result = expire_unpaid_groups(db, now=_later(1), ttl_hours=48)
        assert result.groups_expired == []

    def test_paid_groups_untouched(self, client, db, gateway):
        group = _booked(client)
        gateway.succeed("ref-paid", group["group_id"], group["payable_amount"])
        client.get("/api/payments/ref-paid/reconcile")
        result = expire_unpaid_groups(db, now=_later(100), ttl_hours=48)
        assert result.groups_expired == []
        assert {o.status for o in db.query(Order)} == {OrderStatus.confirmed}

    def test_failed_payment_does_not_protect_group(self, client, db, gateway):
        group = _booked(client)
        gateway.fail("ref-declined", group["group_id"])
        client.get("/api/payments/ref-declined/reconcile")
        result = expire_unpaid_groups(db, now=_later(100), ttl_hours=48)
        assert result.orders_cancelled == 2

    def test_route(self, client):
        _booked(client)
        resp = client.post("/api/order-groups/expire-unpaid", params={"ttl_hours": 0})
        assert resp.status_code == 200
        assert resp.json() == {"ttl_hours": 0, "groups_expired": [], "orders_cancelled": 0}
