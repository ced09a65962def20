# Overview: Events, ticket tiers and the ticket ledger.

from __future__ import annotations

from ..extensions import db
from ..utils import to_utc_z

# Ticket lifecycle
TICKET_PENDING = "PENDING"
TICKET_VALID = "VALID"
TICKET_SCANNED = "SCANNED"
TICKET_CANCELLED = "CANCELLED"
TICKET_REFUNDED = "REFUNDED"

VALID_TICKET_STATUSES = [
    TICKET_PENDING,
    TICKET_VALID,
    TICKET_SCANNED,
    TICKET_CANCELLED,
    TICKET_REFUNDED,
]

# Statuses that count toward revenue, settlement and commission.
COUNTED_TICKET_STATUSES = (TICKET_PENDING, TICKET_VALID, TICKET_SCANNED)

# Declared payment methods (how money moved is not our concern)
PAYMENT_METHOD_ONLINE = "ONLINE"
PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_CASH_APP = "CASH_APP"
PAYMENT_METHOD_CARD = "CARD"

VALID_PAYMENT_METHODS = [
    PAYMENT_METHOD_ONLINE,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CASH_APP,
    PAYMENT_METHOD_CARD,
]


class Event(db.Model):
    """
    Event record owned by an organizer.

    Only the flags the payment engine drives live here; descriptive event
    data is managed elsewhere.
    """
    __tablename__ = "events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    organizer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    starts_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Tickets are not purchasable until a payment model is selected
    payment_model_selected = db.Column(db.Boolean, nullable=False, default=False)
    tickets_visible = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organizer = db.relationship("User", backref=db.backref("events", lazy=True))

    def __repr__(self) -> str:
        return f"<Event id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organizer_id": self.organizer_id,
            "name": self.name,
            "starts_at": to_utc_z(self.starts_at),
            "payment_model_selected": self.payment_model_selected,
            "tickets_visible": self.tickets_visible,
        }


class TicketTier(db.Model):
    """
    Price class for an event's tickets.

    Every sale from a limited tier writes the tier row, so the version
    check serializes concurrent sales against the same quantity.
    """
    __tablename__ = "ticket_tiers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    # None means unlimited
    quantity = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    event = db.relationship("Event", backref=db.backref("tiers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
        }


class Ticket(db.Model):
    """
    Ticket ledger entry.

    Append-mostly: rows are never deleted, only status moves forward.
    tier_id is a plain integer so a deleted tier leaves the ticket behind
    (that case is surfaced as MissingTicketTier when aggregating).
    """
    __tablename__ = "tickets"
    __table_args__ = (
        db.Index("ix_tickets_event_status", "event_id", "status"),
        db.Index("ix_tickets_seller_status", "sold_by_seller_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False)
    tier_id = db.Column(db.Integer, nullable=False, index=True)
    ticket_code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=TICKET_VALID)
    payment_method = db.Column(db.String(16), nullable=True)

    # Seller attribution (commission is computed from this, never rolled up)
    sold_by_seller_id = db.Column(db.Integer, db.ForeignKey("seller_nodes.id"), nullable=True)
    buyer_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    scanned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    scanned_by_seller_id = db.Column(db.Integer, db.ForeignKey("seller_nodes.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    event = db.relationship("Event", backref=db.backref("tickets", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "tier_id": self.tier_id,
            "ticket_code": self.ticket_code,
            "status": self.status,
            "payment_method": self.payment_method,
            "sold_by_seller_id": self.sold_by_seller_id,
            "buyer_user_id": self.buyer_user_id,
            "created_at": to_utc_z(self.created_at),
            "scanned_at": to_utc_z(self.scanned_at),
            "scanned_by_seller_id": self.scanned_by_seller_id,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "refunded_at": to_utc_z(self.refunded_at),
        }
