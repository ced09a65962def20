# Overview: Pytest coverage for staff ticket transfers and staff payout status.

"""
Staff Transfer Tests

Two sibling sellers under the event's root, each with their own login:
runner_a starts with 20 tickets, runner_b with 10.
"""

from datetime import timedelta

import pytest

from eventpay import signals
from eventpay.errors import (
    AuthenticationRequired,
    CapacityExceeded,
    NotEventOwner,
    TransferExpired,
    TransferNotFound,
    TransferNotPending,
    Unauthorized,
    ValidationError,
)
from eventpay.models import User
from eventpay.models.accounts import ROLE_USER
from eventpay.models.payments import MODEL_CREDIT_CARD
from eventpay.models.sellers import (
    SELLER_ROLE_ASSOCIATE,
    SELLER_ROLE_TEAM_MEMBER,
    SETTLEMENT_PAID,
    SETTLEMENT_PENDING,
    TRANSFER_ACCEPTED,
    TRANSFER_CANCELLED,
    TRANSFER_EXPIRED,
    TRANSFER_PENDING,
    TRANSFER_REJECTED,
)
from eventpay.models.events import PAYMENT_METHOD_CASH
from eventpay.services import payment_config_service, seller_service, staff_service
from eventpay.utils import utcnow


def _user(session, username):
    user = User(username=username, email=f"{username}@eventpay.test", role=ROLE_USER, is_active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def user_a(db_session):
    return _user(db_session, "runner_a")


@pytest.fixture
def user_b(db_session):
    return _user(db_session, "runner_b")


@pytest.fixture
def root(db_session, organizer, event):
    return seller_service.create_root_allocation(event.id, 100, caller=organizer)


@pytest.fixture
def runner_a(db_session, organizer, root, user_a):
    return seller_service.assign_sub_seller(
        root.id, caller=organizer, name="Runner A", allocated_tickets=20, user_id=user_a.id
    )


@pytest.fixture
def runner_b(db_session, organizer, root, user_b):
    return seller_service.assign_sub_seller(
        root.id, caller=organizer, name="Runner B", allocated_tickets=10, user_id=user_b.id
    )


@pytest.fixture
def pending(db_session, user_a, runner_a, runner_b):
    return staff_service.request_transfer(runner_a.id, runner_b.id, 5, caller=user_a, reason="Running low")


class TestRequestTransfer:
    def test_request_reserves_sender_allocation(self, db_session, pending, runner_a):
        assert pending.status == TRANSFER_PENDING
        assert pending.reason == "Running low"
        assert pending.expires_at - pending.requested_at == timedelta(hours=48)

        summary = seller_service.capacity_summary(runner_a.id)
        assert summary["allocated"] == 20
        assert summary["reserved"] == 5
        assert summary["available"] == 15

    def test_reservation_limits_further_requests(self, db_session, user_a, runner_a, runner_b, pending):
        with pytest.raises(CapacityExceeded) as exc:
            staff_service.request_transfer(runner_a.id, runner_b.id, 16, caller=user_a)
        assert exc.value.available == 15

    def test_reservation_limits_shrinking(self, db_session, organizer, runner_a, pending):
        with pytest.raises(CapacityExceeded):
            seller_service.reassign_allocation(runner_a.id, 4, caller=organizer)
        seller_service.reassign_allocation(runner_a.id, 5, caller=organizer)

    def test_reservation_limits_sales(self, db_session, organizer, event, tier, user_a, runner_a, runner_b):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        staff_service.request_transfer(runner_a.id, runner_b.id, 20, caller=user_a)

        with pytest.raises(CapacityExceeded):
            seller_service.sell_ticket(runner_a.id, tier.id, caller=user_a)

    def test_only_between_siblings(self, db_session, organizer, root, runner_a, runner_b):
        lead = seller_service.assign_sub_seller(
            root.id, caller=organizer, name="Lead", allocated_tickets=10, role=SELLER_ROLE_TEAM_MEMBER
        )
        nested = seller_service.assign_sub_seller(
            lead.id, caller=organizer, name="Nested", allocated_tickets=5, role=SELLER_ROLE_ASSOCIATE
        )

        with pytest.raises(ValidationError):
            staff_service.request_transfer(runner_a.id, nested.id, 1, caller=organizer)
        with pytest.raises(ValidationError):
            staff_service.request_transfer(root.id, runner_a.id, 1, caller=organizer)

    def test_same_seller_rejected(self, db_session, organizer, runner_a):
        with pytest.raises(ValidationError):
            staff_service.request_transfer(runner_a.id, runner_a.id, 1, caller=organizer)

    @pytest.mark.parametrize("quantity", [0, -3, "5", True])
    def test_quantity_must_be_positive_integer(self, db_session, organizer, runner_a, runner_b, quantity):
        with pytest.raises(ValidationError):
            staff_service.request_transfer(runner_a.id, runner_b.id, quantity, caller=organizer)

    def test_recipient_cannot_request_for_sender(self, db_session, user_b, runner_a, runner_b):
        with pytest.raises(Unauthorized):
            staff_service.request_transfer(runner_a.id, runner_b.id, 1, caller=user_b)

    def test_anonymous_caller_rejected(self, db_session, runner_a, runner_b):
        with pytest.raises(AuthenticationRequired):
            staff_service.request_transfer(runner_a.id, runner_b.id, 1, caller=None)


class TestAcceptTransfer:
    def test_accept_moves_allocation(self, db_session, user_b, root, runner_a, runner_b, pending):
        transfer = staff_service.accept_transfer(pending.id, caller=user_b)

        assert transfer.status == TRANSFER_ACCEPTED
        assert transfer.responded_by_user_id == user_b.id
        assert (transfer.from_balance_before, transfer.from_balance_after) == (20, 15)
        assert (transfer.to_balance_before, transfer.to_balance_after) == (10, 15)

        assert seller_service.get_node(runner_a.id).allocated_tickets == 15
        assert seller_service.get_node(runner_b.id).allocated_tickets == 15
        assert seller_service.capacity_summary(runner_a.id)["reserved"] == 0
        # Parent's delegated total is unchanged
        assert seller_service.capacity_summary(root.id)["delegated"] == 30

    def test_sender_cannot_accept(self, db_session, user_a, pending):
        with pytest.raises(Unauthorized):
            staff_service.accept_transfer(pending.id, caller=user_a)

    def test_event_owner_may_accept(self, db_session, organizer, pending):
        assert staff_service.accept_transfer(pending.id, caller=organizer).status == TRANSFER_ACCEPTED

    def test_accept_twice(self, db_session, user_b, pending):
        staff_service.accept_transfer(pending.id, caller=user_b)
        with pytest.raises(TransferNotPending):
            staff_service.accept_transfer(pending.id, caller=user_b)

    def test_expired_request_is_marked_and_rejected(self, db_session, user_b, runner_a, runner_b, pending):
        pending.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        with pytest.raises(TransferExpired):
            staff_service.accept_transfer(pending.id, caller=user_b)

        assert staff_service.get_transfer(pending.id).status == TRANSFER_EXPIRED
        assert seller_service.get_node(runner_a.id).allocated_tickets == 20
        assert seller_service.get_node(runner_b.id).allocated_tickets == 10

    def test_expired_request_stops_reserving(self, db_session, runner_a, pending):
        pending.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert seller_service.capacity_summary(runner_a.id)["available"] == 20

    def test_unknown_transfer(self, db_session, organizer):
        with pytest.raises(TransferNotFound):
            staff_service.accept_transfer(99999, caller=organizer)

    def test_signal_sent_after_commit(self, db_session, user_b, runner_a, runner_b, pending):
        received = []

        def receiver(sender, **payload):
            received.append(payload)

        with signals.staff_transfer_accepted.connected_to(receiver):
            staff_service.accept_transfer(pending.id, caller=user_b)

        assert received == [{
            "event_id": pending.event_id,
            "transfer_id": pending.id,
            "from_seller_id": runner_a.id,
            "to_seller_id": runner_b.id,
            "ticket_quantity": 5,
        }]


class TestRejectAndCancel:
    def test_reject_releases_reservation(self, db_session, user_b, runner_a, pending):
        transfer = staff_service.reject_transfer(pending.id, caller=user_b, reason="Not needed")

        assert transfer.status == TRANSFER_REJECTED
        assert transfer.rejection_reason == "Not needed"
        assert seller_service.capacity_summary(runner_a.id)["available"] == 20

    def test_sender_cannot_reject(self, db_session, user_a, pending):
        with pytest.raises(Unauthorized):
            staff_service.reject_transfer(pending.id, caller=user_a)

    def test_cancel_by_sender(self, db_session, user_a, user_b, pending):
        assert staff_service.cancel_transfer(pending.id, caller=user_a).status == TRANSFER_CANCELLED

        with pytest.raises(TransferNotPending):
            staff_service.accept_transfer(pending.id, caller=user_b)

    def test_recipient_cannot_cancel(self, db_session, user_b, pending):
        with pytest.raises(Unauthorized):
            staff_service.cancel_transfer(pending.id, caller=user_b)


class TestListTransfers:
    def test_owner_sees_all(self, db_session, organizer, event, user_a, runner_a, runner_b, pending):
        second = staff_service.request_transfer(runner_a.id, runner_b.id, 2, caller=user_a)

        transfers = staff_service.list_transfers(event.id, caller=organizer)
        assert [t.id for t in transfers] == [second.id, pending.id]

        accepted = staff_service.list_transfers(event.id, caller=organizer, status=TRANSFER_ACCEPTED)
        assert accepted == []

    def test_seller_scoped_view(self, db_session, event, user_b, runner_b, pending):
        transfers = staff_service.list_transfers(event.id, caller=user_b, seller_id=runner_b.id)
        assert [t.id for t in transfers] == [pending.id]

    def test_seller_cannot_list_whole_event(self, db_session, event, user_b, pending):
        with pytest.raises(NotEventOwner):
            staff_service.list_transfers(event.id, caller=user_b)


class TestPayoutStatus:
    def test_defaults_to_pending(self, db_session, organizer, event, runner_a):
        rows = {r["seller_id"]: r for r in seller_service.staff_settlement(event.id, caller=organizer)}
        assert rows[runner_a.id]["settlement_status"] == SETTLEMENT_PENDING
        assert rows[runner_a.id]["settlement_paid_at"] is None

    def test_mark_paid_then_pending(self, db_session, organizer, event, runner_a):
        node = staff_service.mark_settlement_paid(runner_a.id, caller=organizer, notes="Cash handed over")
        assert node.settlement_status == SETTLEMENT_PAID
        assert node.settlement_paid_at is not None

        rows = {r["seller_id"]: r for r in seller_service.staff_settlement(event.id, caller=organizer)}
        assert rows[runner_a.id]["settlement_status"] == SETTLEMENT_PAID
        assert rows[runner_a.id]["settlement_notes"] == "Cash handed over"

        node = staff_service.mark_settlement_pending(runner_a.id, caller=organizer)
        assert node.settlement_status == SETTLEMENT_PENDING
        assert node.settlement_paid_at is None
        assert node.settlement_notes is None

    def test_paid_status_does_not_change_amounts(self, db_session, organizer, event, tier, runner_a):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        seller_service.sell_ticket(runner_a.id, tier.id, caller=organizer, payment_method=PAYMENT_METHOD_CASH)
        before = {r["seller_id"]: r for r in seller_service.staff_settlement(event.id, caller=organizer)}

        staff_service.mark_settlement_paid(runner_a.id, caller=organizer)
        after = {r["seller_id"]: r for r in seller_service.staff_settlement(event.id, caller=organizer)}

        assert after[runner_a.id]["net_cents"] == before[runner_a.id]["net_cents"] == -2000

    def test_only_event_owner(self, db_session, other_organizer, user_a, runner_a):
        with pytest.raises(NotEventOwner):
            staff_service.mark_settlement_paid(runner_a.id, caller=other_organizer)
        with pytest.raises(NotEventOwner):
            staff_service.mark_settlement_paid(runner_a.id, caller=user_a)
