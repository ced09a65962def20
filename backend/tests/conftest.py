"""
Pytest fixtures for EventPay backend tests.

Provides test database setup, users, events, tiers and a test client.
"""

from datetime import datetime

import pytest
from eventpay import create_app
from eventpay.extensions import db
from eventpay.models import Event, Ticket, TicketTier, User
from eventpay.models.accounts import ROLE_ADMIN, ROLE_ORGANIZER, ROLE_USER
from eventpay.models.events import PAYMENT_METHOD_ONLINE, TICKET_VALID
from eventpay.services import credit_service, ledger_service, session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(session, username, role, **kwargs):
    user = User(username=username, email=f"{username}@eventpay.test", role=role, is_active=True, **kwargs)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    """Platform admin."""
    return _make_user(db_session, "admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def organizer(db_session):
    """Organizer with a fully onboarded processor account."""
    return _make_user(
        db_session,
        "organizer",
        ROLE_ORGANIZER,
        payment_account_id="acct_organizer",
        payment_setup_complete=True,
    )


@pytest.fixture(scope='function')
def other_organizer(db_session):
    """Organizer who owns nothing used in the test."""
    return _make_user(db_session, "other_organizer", ROLE_ORGANIZER)


@pytest.fixture(scope='function')
def buyer(db_session):
    return _make_user(db_session, "buyer", ROLE_USER)


@pytest.fixture(scope='function')
def event(db_session, organizer):
    """Event owned by organizer, no payment model yet."""
    ev = Event(organizer_id=organizer.id, name="Summer Show", starts_at=datetime(2026, 12, 1, 20, 0))
    db_session.add(ev)
    db_session.commit()
    return ev


@pytest.fixture(scope='function')
def tier(db_session, event):
    """General admission tier at $20.00."""
    t = TicketTier(event_id=event.id, name="General", price_cents=2000, quantity=None)
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def vip_tier(db_session, event):
    t = TicketTier(event_id=event.id, name="VIP", price_cents=5000, quantity=2)
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def organizer_credits(db_session, organizer, admin):
    """Organizer holds 100 prepaid credits."""
    return credit_service.add_credits(organizer.id, 100, actor=admin)


@pytest.fixture(scope='function')
def make_ticket(db_session):
    """
    Write a ticket straight into the ledger.

    Bypasses the sale path so tests can build any ledger state (statuses,
    sellers, payment methods) without a payment model being active.
    """
    def _make(event, tier_id, *, status=TICKET_VALID, seller=None, payment_method=PAYMENT_METHOD_ONLINE):
        ticket = Ticket(
            event_id=event.id,
            tier_id=tier_id,
            ticket_code=ledger_service.generate_ticket_code(),
            status=status,
            payment_method=payment_method,
            sold_by_seller_id=seller.id if seller is not None else None,
        )
        db_session.add(ticket)
        db_session.commit()
        return ticket
    return _make


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Bearer headers for a user (creates a real session)."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
