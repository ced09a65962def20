# Overview: Pytest coverage for the HTTP layer; authentication, status codes and end-to-end flows.

"""
API Tests

Drives the blueprints through the Flask test client with real bearer
sessions. Service semantics are covered in the service tests; these check
the wiring: auth, error rendering and response shapes.
"""

import pytest

from eventpay.models import Event
from eventpay.models.payments import MODEL_CONSIGNMENT, MODEL_CREDIT_CARD
from eventpay.services import payment_config_service, seller_service


class TestAuthentication:
    @pytest.mark.parametrize("method,path", [
        ("post", "/api/payment-config/events/1"),
        ("get", "/api/payment-config/mine"),
        ("post", "/api/consignment/events/1/settle"),
        ("post", "/api/sellers/events/1/root"),
        ("post", "/api/tickets/events/1/purchase"),
        ("get", "/api/credits/"),
    ])
    def test_missing_token(self, client, db_session, method, path):
        response = getattr(client, method)(path, json={})
        assert response.status_code == 401
        assert response.get_json()["error"] == "AUTHENTICATION_REQUIRED"

    def test_bad_token(self, client, db_session):
        response = client.get("/api/payment-config/mine", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_health_is_public(self, client, db_session, organizer):
        response = client.get("/api/system/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["users"] == 1


class TestPaymentConfigApi:
    def test_select_and_read(self, client, db_session, organizer, event, auth_headers):
        headers = auth_headers(organizer)

        response = client.post(
            f"/api/payment-config/events/{event.id}",
            json={"model": MODEL_CREDIT_CARD, "charity_discount": True},
            headers=headers,
        )
        assert response.status_code == 201
        config = response.get_json()["config"]
        assert config["platform_fee_bps"] == 185
        assert config["platform_fee_percent"] == "1.85"

        status = client.get(f"/api/payment-config/events/{event.id}/status", headers=headers).get_json()
        assert status == {"has_config": True, "is_active": True, "payment_model": MODEL_CREDIT_CARD}

    def test_second_selection_conflicts(self, client, db_session, organizer, event, auth_headers):
        headers = auth_headers(organizer)
        client.post(f"/api/payment-config/events/{event.id}", json={"model": MODEL_CREDIT_CARD}, headers=headers)

        response = client.post(
            f"/api/payment-config/events/{event.id}",
            json={"model": MODEL_CONSIGNMENT, "floated_tickets": 10},
            headers=headers,
        )
        assert response.status_code == 409
        assert response.get_json()["error"] == "ALREADY_CONFIGURED"

    def test_model_required(self, client, db_session, organizer, event, auth_headers):
        response = client.post(f"/api/payment-config/events/{event.id}", json={}, headers=auth_headers(organizer))
        assert response.status_code == 400

    def test_non_owner_forbidden(self, client, db_session, other_organizer, event, auth_headers):
        response = client.post(
            f"/api/payment-config/events/{event.id}",
            json={"model": MODEL_CREDIT_CARD},
            headers=auth_headers(other_organizer),
        )
        assert response.status_code == 403
        assert response.get_json()["error"] == "NOT_EVENT_OWNER"

    def test_incomplete_onboarding(self, client, db_session, other_organizer, auth_headers):
        ev = Event(organizer_id=other_organizer.id, name="Unready")
        db_session.add(ev)
        db_session.commit()

        response = client.post(
            f"/api/payment-config/events/{ev.id}",
            json={"model": MODEL_CREDIT_CARD},
            headers=auth_headers(other_organizer),
        )
        assert response.status_code == 424
        assert "guidance" in response.get_json()

    def test_insufficient_credits_reports_shortfall(self, client, db_session, organizer, event, auth_headers):
        response = client.post(
            f"/api/payment-config/events/{event.id}",
            json={"model": "PREPAY", "tickets_allocated": 25},
            headers=auth_headers(organizer),
        )
        assert response.status_code == 422
        assert response.get_json()["shortfall"] == 25

    def test_bad_due_date(self, client, db_session, organizer, event, auth_headers):
        response = client.post(
            f"/api/payment-config/events/{event.id}",
            json={"model": MODEL_CONSIGNMENT, "floated_tickets": 10, "settlement_due_at": "next week"},
            headers=auth_headers(organizer),
        )
        assert response.status_code == 400

    def test_fee_preview(self, client, db_session, buyer, auth_headers):
        response = client.get(
            "/api/payment-config/fees/preview?ticket_price_cents=10000&model=CREDIT_CARD",
            headers=auth_headers(buyer),
        )
        assert response.status_code == 200
        assert response.get_json()["total_cents"] == 10855

    def test_order_fees(self, client, db_session, organizer, event, auth_headers):
        headers = auth_headers(organizer)
        client.post(f"/api/payment-config/events/{event.id}", json={"model": MODEL_CREDIT_CARD}, headers=headers)

        response = client.post(
            f"/api/payment-config/events/{event.id}/fees", json={"subtotal_cents": 10000}, headers=headers
        )
        assert response.status_code == 200
        assert response.get_json()["total_cents"] == 10855

    def test_audit_trail(self, client, db_session, organizer, event, auth_headers):
        headers = auth_headers(organizer)
        client.post(f"/api/payment-config/events/{event.id}", json={"model": MODEL_CREDIT_CARD}, headers=headers)
        client.post(f"/api/payment-config/events/{event.id}/deactivate", headers=headers)

        response = client.get(f"/api/payment-config/events/{event.id}/audit", headers=headers)
        actions = [row["action"] for row in response.get_json()["events"]]
        assert actions == ["payment_model.selected", "payment_model.deactivated"]


class TestConsignmentApi:
    def test_setup_preview_settle(self, client, db_session, organizer, event, tier, make_ticket, auth_headers):
        headers = auth_headers(organizer)

        response = client.post(
            f"/api/consignment/events/{event.id}/setup", json={"floated_tickets": 100}, headers=headers
        )
        assert response.status_code == 200
        assert response.get_json()["floated_tickets"] == 100
        assert response.get_json()["settlement_due"] == "2026-12-01T20:00:00Z"

        for _ in range(5):
            make_ticket(event, tier.id)

        preview = client.get(f"/api/consignment/events/{event.id}/settlement", headers=headers).get_json()
        assert preview["settlement_amount_cents"] == 8735
        assert preview["unsold_tickets"] == 95

        settled = client.post(f"/api/consignment/events/{event.id}/settle", json={}, headers=headers)
        assert settled.status_code == 200
        assert settled.get_json()["settlement_amount_cents"] == 8735
        assert settled.get_json()["tickets_sold"] == 5

        again = client.post(f"/api/consignment/events/{event.id}/settle", json={}, headers=headers)
        assert again.status_code == 409
        assert again.get_json()["error"] == "ALREADY_SETTLED"

    def test_settle_non_owner(self, client, db_session, organizer, other_organizer, event, auth_headers):
        payment_config_service.setup_consignment(event.id, 10, caller=organizer)
        response = client.post(
            f"/api/consignment/events/{event.id}/settle", json={}, headers=auth_headers(other_organizer)
        )
        assert response.status_code == 403

    def test_list_for_admin(self, client, db_session, admin, organizer, event, auth_headers):
        payment_config_service.setup_consignment(event.id, 10, caller=organizer)
        response = client.get(
            f"/api/consignment/events?organizer_id={organizer.id}", headers=auth_headers(admin)
        )
        events = response.get_json()["events"]
        assert [e["event_id"] for e in events] == [event.id]
        assert events[0]["event_name"] == "Summer Show"


class TestSellersApi:
    def test_delegation_flow(self, client, db_session, organizer, event, auth_headers):
        headers = auth_headers(organizer)

        root = client.post(
            f"/api/sellers/events/{event.id}/root", json={"allocated_tickets": 100}, headers=headers
        ).get_json()["seller"]

        first = client.post(
            f"/api/sellers/{root['id']}/sub-sellers",
            json={"name": "A", "allocated_tickets": 60, "commission": {"type": "PERCENTAGE", "percent": "12.5"}},
            headers=headers,
        )
        assert first.status_code == 201
        assert first.get_json()["seller"]["commission"] == {"type": "PERCENTAGE", "value": 1250, "percent": "12.5"}

        second = client.post(
            f"/api/sellers/{root['id']}/sub-sellers",
            json={"name": "B", "allocated_tickets": 50},
            headers=headers,
        )
        assert second.status_code == 422
        assert second.get_json()["error"] == "CAPACITY_EXCEEDED"
        assert second.get_json()["available"] == 40

        tree = client.get(f"/api/sellers/events/{event.id}/tree", headers=headers).get_json()["tree"]
        assert [c["name"] for c in tree["children"]] == ["A"]

    def test_capability_denied(self, client, db_session, organizer, event, tier, auth_headers):
        headers = auth_headers(organizer)
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        seller_service.create_root_allocation(event.id, 10, caller=organizer)
        staff = seller_service.add_staff(event.id, caller=organizer, name="Door", allocated_tickets=5)

        response = client.post(f"/api/sellers/{staff.id}/sales", json={"tier_id": tier.id}, headers=headers)
        assert response.status_code == 403
        assert response.get_json()["error"] == "CAPABILITY_DENIED"

    def test_missing_tree(self, client, db_session, organizer, event, auth_headers):
        response = client.get(f"/api/sellers/events/{event.id}/tree", headers=auth_headers(organizer))
        assert response.status_code == 404


class TestTicketsAndCreditsApi:
    def test_purchase_and_refund(self, client, db_session, organizer, buyer, event, tier, auth_headers):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)

        bought = client.post(
            f"/api/tickets/events/{event.id}/purchase", json={"tier_id": tier.id}, headers=auth_headers(buyer)
        )
        assert bought.status_code == 201
        ticket_id = bought.get_json()["ticket"]["id"]

        refunded = client.post(f"/api/tickets/{ticket_id}/refund", headers=auth_headers(organizer))
        assert refunded.status_code == 200
        assert refunded.get_json()["ticket"]["status"] == "REFUNDED"

    def test_unknown_action(self, client, db_session, organizer, auth_headers):
        response = client.post("/api/tickets/1/teleport", headers=auth_headers(organizer))
        assert response.status_code == 404

    def test_credits_admin_only(self, client, db_session, admin, organizer, auth_headers):
        denied = client.post(
            f"/api/credits/organizers/{organizer.id}", json={"amount": 10}, headers=auth_headers(organizer)
        )
        assert denied.status_code == 403

        granted = client.post(
            f"/api/credits/organizers/{organizer.id}", json={"amount": 10}, headers=auth_headers(admin)
        )
        assert granted.status_code == 200
        assert granted.get_json()["credits_remaining"] == 10

        mine = client.get("/api/credits/", headers=auth_headers(organizer)).get_json()
        assert mine["credits_remaining"] == 10


class TestStaffApi:
    def test_transfer_flow(self, client, db_session, organizer, event, auth_headers):
        headers = auth_headers(organizer)
        root = seller_service.create_root_allocation(event.id, 50, caller=organizer)
        a = seller_service.assign_sub_seller(root.id, caller=organizer, name="A", allocated_tickets=20)
        b = seller_service.assign_sub_seller(root.id, caller=organizer, name="B", allocated_tickets=10)

        too_many = client.post(
            f"/api/sellers/{a.id}/transfers", json={"to_seller_id": b.id, "ticket_quantity": 25}, headers=headers
        )
        assert too_many.status_code == 422
        assert too_many.get_json()["available"] == 20

        requested = client.post(
            f"/api/sellers/{a.id}/transfers", json={"to_seller_id": b.id, "ticket_quantity": 5}, headers=headers
        )
        assert requested.status_code == 201
        transfer_id = requested.get_json()["transfer"]["id"]

        capacity = client.get(f"/api/sellers/{a.id}", headers=headers).get_json()["capacity"]
        assert capacity["reserved"] == 5

        accepted = client.post(f"/api/sellers/transfers/{transfer_id}/accept", headers=headers)
        assert accepted.status_code == 200
        assert accepted.get_json()["transfer"]["to_balance_after"] == 15

        again = client.post(f"/api/sellers/transfers/{transfer_id}/cancel", headers=headers)
        assert again.status_code == 409
        assert again.get_json()["error"] == "TRANSFER_NOT_PENDING"

        listed = client.get(f"/api/sellers/events/{event.id}/transfers?status=ACCEPTED", headers=headers)
        assert [t["id"] for t in listed.get_json()["transfers"]] == [transfer_id]

    def test_unknown_transfer_action(self, client, db_session, organizer, auth_headers):
        response = client.post("/api/sellers/transfers/1/teleport", headers=auth_headers(organizer))
        assert response.status_code == 404

    def test_mark_payout(self, client, db_session, organizer, other_organizer, event, auth_headers):
        root = seller_service.create_root_allocation(event.id, 10, caller=organizer)
        staff = seller_service.add_staff(event.id, caller=organizer, name="Door")

        denied = client.post(f"/api/sellers/{staff.id}/settlement/paid", json={}, headers=auth_headers(other_organizer))
        assert denied.status_code == 403

        paid = client.post(
            f"/api/sellers/{staff.id}/settlement/paid", json={"notes": "Venmo"}, headers=auth_headers(organizer)
        )
        assert paid.status_code == 200
        assert paid.get_json()["seller"]["settlement_status"] == "PAID"

        rows = client.get(
            f"/api/sellers/events/{event.id}/staff-settlement", headers=auth_headers(organizer)
        ).get_json()["sellers"]
        row = next(r for r in rows if r["seller_id"] == staff.id)
        assert row["settlement_notes"] == "Venmo"
        assert next(r for r in rows if r["seller_id"] == root.id)["settlement_status"] == "PENDING"

        reset = client.post(f"/api/sellers/{staff.id}/settlement/pending", headers=auth_headers(organizer))
        assert reset.get_json()["seller"]["settlement_status"] == "PENDING"
