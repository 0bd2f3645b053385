"""Tests for proposal editing.

Covers:
- Pure editor operations (clamping, unknown ids, derived totals)
- Budget and availability notices after edits
- PATCH / DELETE line routes, ownership and confirmed-proposal guards
"""
from marketplace.errors import Notice
from marketplace.services import proposal_editor
from marketplace.services.proposal_editor import DraftLine, ProposalDraft
from tests.conftest import (
    confirm_proposal,
    create_test_offering,
    create_test_proposal,
    create_test_supplier,
    two_supplier_proposal,
)


def _draft(budget_max=100000):
    return ProposalDraft(
        budget_max=budget_max,
        lines=[
            DraftLine(line_id="l1", offering_id="o1", offering_name="Arche", category="decoration",
                      needed_category="decoration", supplier_id="s1", price_per_day=20000, available_quantity=3),
            DraftLine(line_id="l2", offering_id="o2", offering_name="Sono", category="sonorisation",
                      needed_category="sonorisation", supplier_id="s2", price_per_day=35000, available_quantity=1),
        ],
    )


class TestEditor:
    """In-memory edits never raise."""

    def test_total_is_derived(self):
        draft = _draft()
        assert draft.total == 55000
        proposal_editor.set_quantity(draft, "l1", 2)
        proposal_editor.set_rental_days(draft, "l1", 3)
        assert draft.find_line("l1").subtotal == 120000
        assert draft.total == 155000

    def test_values_clamped_to_one(self):
        draft = _draft()
        proposal_editor.set_quantity(draft, "l1", 0)
        proposal_editor.set_rental_days(draft, "l2", -4)
        assert draft.find_line("l1").quantity == 1
        assert draft.find_line("l2").rental_days == 1

    def test_unknown_line_is_a_no_op(self):
        draft = _draft()
        proposal_editor.set_quantity(draft, "missing", 5)
        proposal_editor.remove_line(draft, "missing")
        assert draft.total == 55000
        assert len(draft.lines) == 2

    def test_remove_line(self):
        draft = proposal_editor.remove_line(_draft(), "l2")
        assert [line.line_id for line in draft.lines] == ["l1"]
        assert draft.total == 20000

    def test_budget_exceeded_is_a_notice(self):
        draft = proposal_editor.set_rental_days(_draft(budget_max=60000), "l2", 2)
        assert draft.total == 90000
        assert Notice.budget_exceeded_by_edit in draft.notices

    def test_quantity_above_availability_is_a_notice(self):
        draft = proposal_editor.set_quantity(_draft(budget_max=10 ** 7), "l2", 2)
        assert draft.notices == [Notice.quantity_exceeds_availability]

    def test_removing_every_line_reports_no_match(self):
        draft = _draft()
        proposal_editor.remove_line(draft, "l1")
        proposal_editor.remove_line(draft, "l2")
        assert draft.total == 0
        assert draft.notices == [Notice.no_matching_offerings]


class TestLineRoutes:
    """PATCH and DELETE /api/proposals/{id}/lines/{line_id}."""

    def test_update_quantity_and_days(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        line = proposal["lines"][0]
        resp = client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/{line['line_id']}",
            params={"client_id": "client-1"},
            json={"quantity": 2, "rental_days": 2},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        edited = next(l for l in data["lines"] if l["line_id"] == line["line_id"])
        assert edited["quantity"] == 2
        assert edited["rental_days"] == 2
        assert edited["subtotal"] == line["price_per_day"] * 4
        assert data["total"] == sum(l["subtotal"] for l in data["lines"])

    def test_edit_over_budget_is_allowed_with_notice(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        line = proposal["lines"][1]
        resp = client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/{line['line_id']}",
            params={"client_id": "client-1"},
            json={"rental_days": 5},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] > data["budget_max"]
        assert "budget_exceeded_by_edit" in [n["code"] for n in data["notices"]]

    def test_quantity_clamped_through_api(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        line = proposal["lines"][0]
        resp = client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/{line['line_id']}",
            params={"client_id": "client-1"},
            json={"quantity": 0},
        )
        assert resp.json()["lines"][0]["quantity"] == 1

    def test_edits_are_persisted(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        line = proposal["lines"][0]
        client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/{line['line_id']}",
            params={"client_id": "client-1"},
            json={"quantity": 3},
        )
        data = client.get(f"/api/proposals/{proposal['proposal_id']}").json()
        assert data["lines"][0]["quantity"] == 3

    def test_remove_line(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        removed = proposal["lines"][1]
        resp = client.delete(
            f"/api/proposals/{proposal['proposal_id']}/lines/{removed['line_id']}",
            params={"client_id": "client-1"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert [l["line_id"] for l in data["lines"]] == [proposal["lines"][0]["line_id"]]
        assert data["unmatched_categories"] == ["sonorisation"]

    def test_unknown_line_is_404(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        resp = client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/nope",
            params={"client_id": "client-1"},
            json={"quantity": 2},
        )
        assert resp.status_code == 404

    def test_other_client_cannot_edit(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        resp = client.delete(
            f"/api/proposals/{proposal['proposal_id']}/lines/{proposal['lines'][0]['line_id']}",
            params={"client_id": "intruder"},
        )
        assert resp.status_code == 403

    def test_confirmed_proposal_is_read_only(self, client):
        proposal = two_supplier_proposal(client, "client-1")
        assert confirm_proposal(client, proposal["proposal_id"], "client-1").status_code == 201
        resp = client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/{proposal['lines'][0]['line_id']}",
            params={"client_id": "client-1"},
            json={"quantity": 2},
        )
        assert resp.status_code == 409

    def test_availability_notice(self, client):
        sup = create_test_supplier(client)
        create_test_offering(client, sup["supplier_id"], category="mobilier", price_per_day=1000, quantity_available=4)
        proposal = create_test_proposal(client, "client-1", ["mobilier"])
        resp = client.patch(
            f"/api/proposals/{proposal['proposal_id']}/lines/{proposal['lines'][0]['line_id']}",
            params={"client_id": "client-1"},
            json={"quantity": 5},
        )
        assert [n["code"] for n in resp.json()["notices"]] == ["quantity_exceeds_availability"]

    def test_get_unknown_proposal(self, client):
        assert client.get("/api/proposals/does-not-exist").status_code == 404
