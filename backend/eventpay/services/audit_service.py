# Overview: Service-layer operations for the payment audit trail.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import PaymentAuditEvent
from ..utils import utcnow
"""
Payment audit invariants

- Append-only. No updates, no deletes.
- No business logic here; callers decide what to record.
- Rows are written inside the same transaction as the change they record,
  so a rolled-back change leaves no audit row behind.
"""

ACTION_MODEL_SELECTED = "payment_model.selected"
ACTION_MODEL_DEACTIVATED = "payment_model.deactivated"
ACTION_LOW_PRICE_DISCOUNT = "payment_model.low_price_discount"
ACTION_METHODS_UPDATED = "payment_model.methods_updated"
ACTION_CONSIGNMENT_SETUP = "consignment.setup"
ACTION_CONSIGNMENT_SETTLED = "consignment.settled"


def append_audit_event(
    *,
    event_id: int,
    action: str,
    config_id: int | None = None,
    actor_user_id: int | None = None,
    payload: Optional[dict] = None,
    occurred_at: Optional[datetime] = None,
) -> PaymentAuditEvent:
    ev = PaymentAuditEvent(
        event_id=event_id,
        config_id=config_id,
        action=action,
        actor_user_id=actor_user_id,
        payload=payload,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_audit_events(event_id: int, action: str | None = None) -> list[PaymentAuditEvent]:
    query = db.session.query(PaymentAuditEvent).filter_by(event_id=event_id)
    if action:
        query = query.filter_by(action=action)
    return query.order_by(PaymentAuditEvent.occurred_at, PaymentAuditEvent.id).all()
