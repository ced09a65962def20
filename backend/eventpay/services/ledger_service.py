# Overview: Service-layer operations for the ticket ledger; issuing, status transitions and revenue aggregation.

"""
Ticket Ledger

The ledger is the source of truth for what was sold. Settlement and
commission never trust a stored counter; they aggregate from here.

Counted tickets: PENDING, VALID, SCANNED. CANCELLED and REFUNDED tickets
contribute neither to the sold count nor to revenue.

Transitions:
    PENDING -> VALID | CANCELLED
    VALID   -> SCANNED | CANCELLED | REFUNDED
    SCANNED -> REFUNDED

A counted ticket whose tier cannot be resolved is a data-integrity error
(MissingTicketTier), never silently worth zero.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, asdict

from ..extensions import db
from ..errors import (
    EventNotFound,
    InvalidTicketTransition,
    MissingTicketTier,
    TicketNotFound,
    TicketsNotOnSale,
    TierNotFound,
    TierSoldOut,
    ValidationError,
)
from ..models import Event, PaymentModelConfig, Ticket, TicketTier, User
from ..models.events import (
    COUNTED_TICKET_STATUSES,
    PAYMENT_METHOD_ONLINE,
    TICKET_CANCELLED,
    TICKET_PENDING,
    TICKET_REFUNDED,
    TICKET_SCANNED,
    TICKET_VALID,
    VALID_PAYMENT_METHODS,
)
from ..models.payments import MODEL_PREPAY
from ..permissions import require_caller, require_event_owner
from .. import signals
from ..utils import utcnow
from . import credit_service
from .concurrency import after_commit, lock_for_update, run_in_transaction

_TRANSITIONS = {
    TICKET_PENDING: {TICKET_VALID, TICKET_CANCELLED},
    TICKET_VALID: {TICKET_SCANNED, TICKET_CANCELLED, TICKET_REFUNDED},
    TICKET_SCANNED: {TICKET_REFUNDED},
    TICKET_CANCELLED: set(),
    TICKET_REFUNDED: set(),
}


@dataclass(frozen=True)
class SalesSummary:
    sold_tickets: int
    total_revenue_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# AGGREGATION
# =============================================================================

def counted_tickets_query(event_id: int):
    return db.session.query(Ticket).filter(
        Ticket.event_id == event_id,
        Ticket.status.in_(COUNTED_TICKET_STATUSES),
    )


def tier_prices(event_id: int) -> dict[int, int]:
    rows = db.session.query(TicketTier.id, TicketTier.price_cents).filter_by(event_id=event_id).all()
    return {tier_id: price for tier_id, price in rows}


def summarize_tickets(tickets: list[Ticket], prices: dict[int, int]) -> SalesSummary:
    """Count and price a set of tickets. Raises MissingTicketTier."""
    revenue = 0
    for ticket in tickets:
        price = prices.get(ticket.tier_id)
        if price is None:
            raise MissingTicketTier(
                f"Ticket {ticket.id} references missing tier {ticket.tier_id}",
                ticket_id=ticket.id,
                tier_id=ticket.tier_id,
            )
        revenue += price
    return SalesSummary(sold_tickets=len(tickets), total_revenue_cents=revenue)


def summarize_sales(event_id: int) -> SalesSummary:
    """Sold count and revenue over the counted tickets of an event."""
    tickets = counted_tickets_query(event_id).all()
    return summarize_tickets(tickets, tier_prices(event_id))


def count_sold_by_seller(seller_id: int) -> int:
    return (
        db.session.query(db.func.count(Ticket.id))
        .filter(Ticket.sold_by_seller_id == seller_id, Ticket.status.in_(COUNTED_TICKET_STATUSES))
        .scalar()
        or 0
    )


def tickets_sold_by_seller(seller_id: int) -> list[Ticket]:
    return (
        db.session.query(Ticket)
        .filter(Ticket.sold_by_seller_id == seller_id, Ticket.status.in_(COUNTED_TICKET_STATUSES))
        .order_by(Ticket.id)
        .all()
    )


# =============================================================================
# ISSUING
# =============================================================================

def generate_ticket_code() -> str:
    return secrets.token_hex(6).upper()


def get_ticket(ticket_id: int) -> Ticket:
    ticket = db.session.get(Ticket, ticket_id)
    if not ticket:
        raise TicketNotFound(f"Ticket {ticket_id} not found")
    return ticket


def get_ticket_by_code(ticket_code: str) -> Ticket:
    ticket = db.session.query(Ticket).filter_by(ticket_code=ticket_code).first()
    if not ticket:
        raise TicketNotFound(f"Ticket {ticket_code} not found")
    return ticket


def issue_ticket_locked(
    event: Event,
    tier_id: int,
    *,
    payment_method: str = PAYMENT_METHOD_ONLINE,
    seller_id: int | None = None,
    buyer_user_id: int | None = None,
    pending: bool = False,
) -> Ticket:
    """
    Append a ticket inside the caller's transaction.

    Sales are open only while the event has an active payment config and
    visible tickets. PREPAY events burn one organizer credit per ticket.
    """
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}")

    config = db.session.query(PaymentModelConfig).filter_by(event_id=event.id).first()
    if not config or not config.is_active or not event.tickets_visible:
        raise TicketsNotOnSale(f"Tickets for event {event.id} are not on sale")

    tier = lock_for_update(db.session.query(TicketTier).filter_by(id=tier_id, event_id=event.id)).first()
    if not tier:
        raise TierNotFound(f"Ticket tier {tier_id} not found for event {event.id}")

    if tier.quantity is not None:
        taken = (
            db.session.query(db.func.count(Ticket.id))
            .filter(Ticket.tier_id == tier.id, Ticket.status.in_(COUNTED_TICKET_STATUSES))
            .scalar()
            or 0
        )
        if taken >= tier.quantity:
            raise TierSoldOut(
                f"Only {tier.quantity - taken} tickets available for tier {tier.name}",
                requested=1,
                available=max(tier.quantity - taken, 0),
            )
        # Version bump on the tier serializes concurrent sales of the last seats
        tier.updated_at = utcnow()

    if config.payment_model == MODEL_PREPAY:
        credit_service.consume_credits_locked(event.organizer_id, 1)

    ticket = Ticket(
        event_id=event.id,
        tier_id=tier.id,
        ticket_code=generate_ticket_code(),
        status=TICKET_PENDING if pending else TICKET_VALID,
        payment_method=payment_method,
        sold_by_seller_id=seller_id,
        buyer_user_id=buyer_user_id,
        created_at=utcnow(),
    )
    db.session.add(ticket)
    db.session.flush()

    ticket_id, event_id = ticket.id, event.id
    after_commit(lambda: signals.emit(signals.ticket_sold, event_id=event_id, ticket_id=ticket_id, seller_id=seller_id))
    return ticket


def purchase_ticket(
    event_id: int,
    tier_id: int,
    *,
    caller: User | None,
    payment_method: str = PAYMENT_METHOD_ONLINE,
    pending: bool = False,
) -> Ticket:
    """Direct purchase by a buyer, not attributed to any seller."""
    buyer = require_caller(caller)

    def _op():
        event = db.session.get(Event, event_id)
        if not event:
            raise EventNotFound(f"Event {event_id} not found")
        return issue_ticket_locked(
            event,
            tier_id,
            payment_method=payment_method,
            buyer_user_id=buyer.id,
            pending=pending,
        )

    return run_in_transaction(_op)


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def transition_locked(ticket: Ticket, new_status: str) -> Ticket:
    if new_status not in _TRANSITIONS.get(ticket.status, set()):
        raise InvalidTicketTransition(
            f"Cannot move ticket {ticket.id} from {ticket.status} to {new_status}",
            ticket_id=ticket.id,
            status=ticket.status,
        )
    now = utcnow()
    ticket.status = new_status
    if new_status == TICKET_CANCELLED:
        ticket.cancelled_at = now
    elif new_status == TICKET_REFUNDED:
        ticket.refunded_at = now
    elif new_status == TICKET_SCANNED:
        ticket.scanned_at = now
    return ticket


def _owner_transition(ticket_id: int, new_status: str, caller: User | None) -> Ticket:
    def _op():
        ticket = lock_for_update(db.session.query(Ticket).filter_by(id=ticket_id)).first()
        if not ticket:
            raise TicketNotFound(f"Ticket {ticket_id} not found")
        require_event_owner(caller, db.session.get(Event, ticket.event_id))
        return transition_locked(ticket, new_status)

    return run_in_transaction(_op)


def activate_ticket(ticket_id: int, *, caller: User | None) -> Ticket:
    return _owner_transition(ticket_id, TICKET_VALID, caller)


def cancel_ticket(ticket_id: int, *, caller: User | None) -> Ticket:
    return _owner_transition(ticket_id, TICKET_CANCELLED, caller)


def refund_ticket(ticket_id: int, *, caller: User | None) -> Ticket:
    return _owner_transition(ticket_id, TICKET_REFUNDED, caller)
