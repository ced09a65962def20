# Overview: Payment model configuration per event and its audit trail.

from __future__ import annotations

from ..extensions import db
from ..utils import to_utc_z, bps_to_percent

MODEL_PREPAY = "PREPAY"
MODEL_CREDIT_CARD = "CREDIT_CARD"
MODEL_CONSIGNMENT = "CONSIGNMENT"

VALID_PAYMENT_MODELS = [MODEL_PREPAY, MODEL_CREDIT_CARD, MODEL_CONSIGNMENT]

PROCESSOR_STRIPE = "STRIPE"
PROCESSOR_SQUARE = "SQUARE"
PROCESSOR_PAYPAL = "PAYPAL"

VALID_MERCHANT_PROCESSORS = [PROCESSOR_STRIPE, PROCESSOR_SQUARE, PROCESSOR_PAYPAL]


class PaymentModelConfig(db.Model):
    """
    How an event collects money. At most one row per event.

    The UNIQUE constraint on event_id is the storage-level guarantee behind
    "a model is selected exactly once"; the service translates the
    IntegrityError into AlreadyConfigured.

    Rows are never deleted. Deactivation flips is_active; consignment
    settlement flips consignment_settled, which is terminal.
    """
    __tablename__ = "payment_model_configs"
    __table_args__ = (
        db.UniqueConstraint("event_id", name="uq_payment_model_configs_event"),
        db.Index("ix_payment_model_configs_model", "payment_model"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False)
    organizer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    payment_model = db.Column(db.String(16), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Fee parameters (percentages in basis points, fixed in cents)
    platform_fee_bps = db.Column(db.Integer, nullable=False, default=0)
    platform_fee_fixed_cents = db.Column(db.Integer, nullable=False, default=0)
    processing_fee_bps = db.Column(db.Integer, nullable=False, default=0)
    charity_discount = db.Column(db.Boolean, nullable=False, default=False)
    low_price_discount = db.Column(db.Boolean, nullable=False, default=False)

    # PREPAY
    tickets_allocated = db.Column(db.Integer, nullable=True)

    # Payment method options
    merchant_processor = db.Column(db.String(16), nullable=True)
    credit_card_enabled = db.Column(db.Boolean, nullable=False, default=True)
    cash_app_enabled = db.Column(db.Boolean, nullable=False, default=False)

    # CONSIGNMENT
    floated_tickets = db.Column(db.Integer, nullable=True)
    # Snapshot only; recomputed from the ticket ledger at settlement time
    sold_tickets = db.Column(db.Integer, nullable=True)
    settlement_due_at = db.Column(db.DateTime(timezone=True), nullable=True)
    consignment_settled = db.Column(db.Boolean, nullable=False, default=False)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    settled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    settlement_amount_cents = db.Column(db.Integer, nullable=True)
    settlement_revenue_cents = db.Column(db.Integer, nullable=True)
    settlement_fees_cents = db.Column(db.Integer, nullable=True)
    settlement_notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    event = db.relationship("Event", backref=db.backref("payment_config", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_consignment(self) -> bool:
        return self.payment_model == MODEL_CONSIGNMENT

    def __repr__(self) -> str:
        return f"<PaymentModelConfig event_id={self.event_id} model={self.payment_model} active={self.is_active}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "organizer_id": self.organizer_id,
            "payment_model": self.payment_model,
            "is_active": self.is_active,
            "activated_at": to_utc_z(self.activated_at),
            "deactivated_at": to_utc_z(self.deactivated_at),
            "platform_fee_bps": self.platform_fee_bps,
            "platform_fee_percent": bps_to_percent(self.platform_fee_bps),
            "platform_fee_fixed_cents": self.platform_fee_fixed_cents,
            "processing_fee_bps": self.processing_fee_bps,
            "processing_fee_percent": bps_to_percent(self.processing_fee_bps),
            "charity_discount": self.charity_discount,
            "low_price_discount": self.low_price_discount,
            "tickets_allocated": self.tickets_allocated,
            "merchant_processor": self.merchant_processor,
            "credit_card_enabled": self.credit_card_enabled,
            "cash_app_enabled": self.cash_app_enabled,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if self.is_consignment:
            data.update({
                "floated_tickets": self.floated_tickets,
                "sold_tickets": self.sold_tickets,
                "settlement_due_at": to_utc_z(self.settlement_due_at),
                "settled": self.consignment_settled,
                "settled_at": to_utc_z(self.settled_at),
                "settlement_amount_cents": self.settlement_amount_cents,
                "settlement_notes": self.settlement_notes,
            })
        return data


class PaymentAuditEvent(db.Model):
    """
    Append-only audit row for every payment configuration mutation.

    Written inside the same transaction as the change it records.
    """
    __tablename__ = "payment_audit_events"
    __table_args__ = (
        db.Index("ix_payment_audit_events_event_occurred", "event_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False)
    config_id = db.Column(db.Integer, db.ForeignKey("payment_model_configs.id"), nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "config_id": self.config_id,
            "action": self.action,
            "actor_user_id": self.actor_user_id,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
