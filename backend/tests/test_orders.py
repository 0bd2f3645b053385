"""Tests for the order status state machine and the transition route.

Covers:
- Valid transition table, terminal states
- Version bump and status-change ledger
- Supplier/client permissions on POST /api/orders/{id}/transition
- payment_succeeded is reserved for reconciliation
- Optimistic version check: a stale writer gets 409 and never overwrites a newer status
"""
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from marketplace.errors import InvalidTransition
from marketplace.models.order import Order, OrderStatus
from marketplace.models.order_status_change import OrderStatusChange
from marketplace.services import order_fsm
from marketplace.services.order_fsm import OrderEvent, next_status
from marketplace.services.order_store import SqlOrderStore
from tests.conftest import confirm_proposal, two_supplier_proposal


def _booked(client):
    proposal = two_supplier_proposal(client, "client-1")
    return confirm_proposal(client, proposal["proposal_id"], "client-1").json()


class TestTransitionTable:
    def test_happy_path(self):
        assert next_status(OrderStatus.pending, OrderEvent.payment_succeeded) == OrderStatus.confirmed
        assert next_status(OrderStatus.confirmed, OrderEvent.start) == OrderStatus.in_progress
        assert next_status(OrderStatus.in_progress, OrderEvent.complete) == OrderStatus.completed

    def test_cancel_allowed_until_completion(self):
        for status in (OrderStatus.pending, OrderStatus.confirmed, OrderStatus.in_progress):
            assert next_status(status, OrderEvent.cancel) == OrderStatus.cancelled

    def test_terminal_states_accept_nothing(self):
        for status in order_fsm.TERMINAL_STATUSES:
            for event in OrderEvent:
                assert next_status(status, event) is None

    def test_no_skipping(self):
        assert next_status(OrderStatus.pending, OrderEvent.start) is None
        assert next_status(OrderStatus.confirmed, OrderEvent.payment_succeeded) is None


class TestTransitionWrites:
    """transition() and SqlOrderStore.update_order_status against the database."""

    def test_transition_bumps_version_and_records_change(self, client, db):
        group = _booked(client)
        order = db.query(Order).filter(Order.group_id == group["group_id"]).first()
        order_fsm.transition(db, order, OrderEvent.payment_succeeded, actor_id="system", payment_reference="ref-9")
        db.commit()
        db.refresh(order)

        assert order.status == OrderStatus.confirmed
        assert order.version == 2
        change = db.query(OrderStatusChange).filter(OrderStatusChange.order_id == order.order_id).one()
        assert (change.from_status, change.to_status, change.event) == ("pending", "confirmed", "payment_succeeded")
        assert change.payment_reference == "ref-9"

    def test_invalid_transition_raises(self, client, db):
        group = _booked(client)
        order = db.query(Order).filter(Order.group_id == group["group_id"]).first()
        with pytest.raises(InvalidTransition) as exc_info:
            order_fsm.transition(db, order, OrderEvent.complete)
        assert exc_info.value.extra["status"] == "pending"
        assert order.version == 1

    def test_store_maps_target_status_to_event(self, client, db):
        group = _booked(client)
        store = SqlOrderStore(db)
        order = store.find_orders_by_group(group["group_id"])[0]
        store.update_order_status(order.order_id, OrderStatus.cancelled, actor_id=order.client_id)
        db.commit()
        assert store.find_orders_by_group(group["group_id"])[0].status == OrderStatus.cancelled
        with pytest.raises(InvalidTransition):
            store.update_order_status(order.order_id, OrderStatus.confirmed)

    def test_cancel_racing_payment_does_not_overwrite_it(self, client, db_engine, gateway):
        group = _booked(client)
        order_id = group["orders"][0]["order_id"]
        canceller = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
        try:
            order = canceller.get(Order, order_id)
            assert order.status == OrderStatus.pending

            gateway.succeed("ref-race", group["group_id"], 57750)
            assert client.get("/api/payments/ref-race/reconcile").status_code == 200

            order_fsm.transition(canceller, order, OrderEvent.cancel, actor_id="client-1")
            with pytest.raises(StaleDataError):
                canceller.commit()
            canceller.rollback()
        finally:
            canceller.close()

        stored = client.get(f"/api/orders/{order_id}").json()
        assert stored["status"] == "confirmed"
        assert stored["version"] == 2


class TestTransitionRoute:
    """POST /api/orders/{id}/transition."""

    def test_supplier_cannot_start_unpaid_order(self, client):
        order = _booked(client)["orders"][0]
        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": order["supplier_id"], "event": "start",
        })
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "invalid_transition"

    def test_client_can_cancel(self, client):
        order = _booked(client)["orders"][0]
        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": "client-1", "event": "cancel",
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["version"] == 2

    def test_client_cannot_start(self, client):
        order = _booked(client)["orders"][0]
        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": "client-1", "event": "start",
        })
        assert resp.status_code == 403

    def test_payment_event_reserved(self, client):
        order = _booked(client)["orders"][0]
        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": order["supplier_id"], "event": "payment_succeeded",
        })
        assert resp.status_code == 403

    def test_unknown_event(self, client):
        order = _booked(client)["orders"][0]
        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": order["supplier_id"], "event": "teleport",
        })
        assert resp.status_code == 422

    def test_stale_version_rejected(self, client, gateway):
        group = _booked(client)
        order = group["orders"][0]
        gateway.succeed("ref-v", group["group_id"], 57750)
        assert client.get("/api/payments/ref-v/reconcile").status_code == 200

        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": "client-1", "event": "cancel", "version": 1,
        })
        assert resp.status_code == 409
        assert "Version mismatch" in resp.json()["detail"]
        assert client.get(f"/api/orders/{order['order_id']}").json()["status"] == "confirmed"

    def test_matching_version_accepted(self, client):
        order = _booked(client)["orders"][0]
        resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
            "actor_id": "client-1", "event": "cancel", "version": 1,
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["version"] == 2

    def test_supplier_fulfils_paid_order(self, client, gateway):
        group = _booked(client)
        gateway.succeed("ref-ok", group["group_id"], group["payable_amount"])
        assert client.get("/api/payments/ref-ok/reconcile").status_code == 200
        order = group["orders"][0]
        for event, expected in (("start", "in_progress"), ("complete", "completed")):
            resp = client.post(f"/api/orders/{order['order_id']}/transition", json={
                "actor_id": order["supplier_id"], "event": event,
            })
            assert resp.json()["status"] == expected

    def test_list_orders_by_supplier(self, client):
        group = _booked(client)
        supplier_id = group["orders"][0]["supplier_id"]
        orders = client.get("/api/orders/", params={"supplier_id": supplier_id}).json()
        assert [o["supplier_id"] for o in orders] == [supplier_id]
        assert client.get("/api/orders/missing").status_code == 404
