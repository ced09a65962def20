# Overview: Service-layer operations for consignment settlement; preview, one-time settle and listing.

"""
Consignment Settlement Engine

Under consignment the organizer is floated tickets up front and settles
once, after sales. Preview and settle share one computation:

    sold          = counted tickets in the ledger (never a stored counter)
    revenue       = sum of each counted ticket's tier price
    fixed total   = fixed platform fee * sold
    variable      = pct(revenue), rounded half-up
    settlement    = revenue - (fixed total + variable)
    unsold        = floated - sold   (negative when oversold; reported, not an error)

A positive settlement amount is what the platform owes the organizer net of
fees.

settle() is one-time: it freezes the snapshot onto the config and sets the
terminal settled flag. The config row is version-locked, so of two
concurrent settle() calls exactly one commits and the other, on retry,
sees settled=True and fails with AlreadySettled.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import AlreadySettled, ConfigNotFound, EventNotFound, WrongPaymentModel
from ..models import Event, PaymentModelConfig, User
from ..models.payments import MODEL_CONSIGNMENT
from ..permissions import require_event_owner
from .. import signals
from ..utils import to_utc_z, utcnow
from . import audit_service, fee_service, ledger_service
from .concurrency import after_commit, lock_for_update, run_in_transaction


@dataclass(frozen=True)
class SettlementSnapshot:
    event_id: int
    floated_tickets: int
    sold_tickets: int
    unsold_tickets: int
    total_revenue_cents: int
    platform_fee_fixed_total_cents: int
    platform_fee_variable_cents: int
    total_platform_fee_cents: int
    settlement_amount_cents: int
    settlement_due_at: datetime | None
    settled: bool
    settled_at: datetime | None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["settlement_due_at"] = to_utc_z(self.settlement_due_at)
        data["settled_at"] = to_utc_z(self.settled_at)
        return data


def _require_consignment_config(event_id: int, *, lock: bool = False) -> PaymentModelConfig:
    query = db.session.query(PaymentModelConfig).filter_by(event_id=event_id)
    if lock:
        query = lock_for_update(query)
    config = query.first()
    if not config:
        raise ConfigNotFound(f"Payment configuration not found for event {event_id}")
    if config.payment_model != MODEL_CONSIGNMENT:
        raise WrongPaymentModel(f"Event {event_id} is not using the consignment payment model")
    return config


def compute_snapshot(config: PaymentModelConfig) -> SettlementSnapshot:
    """Live snapshot from the ledger, whatever the settled flag says."""
    sales = ledger_service.summarize_sales(config.event_id)
    fees = fee_service.consignment_fees(
        sales.total_revenue_cents,
        sales.sold_tickets,
        fee_service.FeeParams.from_config(config),
    )
    floated = config.floated_tickets or 0
    return SettlementSnapshot(
        event_id=config.event_id,
        floated_tickets=floated,
        sold_tickets=sales.sold_tickets,
        unsold_tickets=floated - sales.sold_tickets,
        total_revenue_cents=sales.total_revenue_cents,
        platform_fee_fixed_total_cents=fees.platform_fee_fixed_total_cents,
        platform_fee_variable_cents=fees.platform_fee_variable_cents,
        total_platform_fee_cents=fees.total_platform_fee_cents,
        settlement_amount_cents=sales.total_revenue_cents - fees.total_platform_fee_cents,
        settlement_due_at=config.settlement_due_at,
        settled=bool(config.consignment_settled),
        settled_at=config.settled_at,
    )


def frozen_snapshot(config: PaymentModelConfig) -> SettlementSnapshot:
    """Snapshot as persisted at settlement time."""
    floated = config.floated_tickets or 0
    sold = config.sold_tickets or 0
    fixed_total = config.platform_fee_fixed_cents * sold
    total_fees = config.settlement_fees_cents or 0
    return SettlementSnapshot(
        event_id=config.event_id,
        floated_tickets=floated,
        sold_tickets=sold,
        unsold_tickets=floated - sold,
        total_revenue_cents=config.settlement_revenue_cents or 0,
        platform_fee_fixed_total_cents=fixed_total,
        platform_fee_variable_cents=total_fees - fixed_total,
        total_platform_fee_cents=total_fees,
        settlement_amount_cents=config.settlement_amount_cents or 0,
        settlement_due_at=config.settlement_due_at,
        settled=True,
        settled_at=config.settled_at,
    )


def preview_settlement(event_id: int) -> SettlementSnapshot:
    """Read-only recomputation; callable at any time, even after settling."""
    config = _require_consignment_config(event_id)
    return compute_snapshot(config)


def settle(event_id: int, *, caller: User | None, notes: str | None = None) -> SettlementSnapshot:
    """
    Finalize a consignment exactly once.

    Raises:
        AlreadySettled: settled flag already set (stored values untouched)
        WrongPaymentModel: config is not CONSIGNMENT
    """
    def _op():
        event = db.session.get(Event, event_id)
        if not event:
            raise EventNotFound(f"Event {event_id} not found")
        actor = require_event_owner(caller, event)

        config = _require_consignment_config(event_id, lock=True)
        if config.consignment_settled:
            raise AlreadySettled(f"Consignment for event {event_id} is already settled")

        snapshot = compute_snapshot(config)
        now = utcnow()

        config.consignment_settled = True
        config.settled_at = now
        config.settled_by_user_id = actor.id
        config.sold_tickets = snapshot.sold_tickets
        config.settlement_revenue_cents = snapshot.total_revenue_cents
        config.settlement_fees_cents = snapshot.total_platform_fee_cents
        config.settlement_amount_cents = snapshot.settlement_amount_cents
        config.settlement_notes = notes

        audit_service.append_audit_event(
            event_id=event_id,
            config_id=config.id,
            action=audit_service.ACTION_CONSIGNMENT_SETTLED,
            actor_user_id=actor.id,
            payload={
                "sold_tickets": snapshot.sold_tickets,
                "total_revenue_cents": snapshot.total_revenue_cents,
                "total_platform_fee_cents": snapshot.total_platform_fee_cents,
                "settlement_amount_cents": snapshot.settlement_amount_cents,
            },
            occurred_at=now,
        )

        final = frozen_snapshot(config)
        after_commit(lambda: signals.emit(
            signals.consignment_settled,
            event_id=event_id,
            settlement_amount_cents=final.settlement_amount_cents,
        ))
        return final

    final = run_in_transaction(_op)
    current_app.logger.info(
        "Consignment settled for event %s: amount=%s sold=%s",
        event_id, final.settlement_amount_cents, final.sold_tickets,
    )
    return final


def list_consignment_events(*, caller: User, organizer_id: int | None = None) -> list[dict]:
    """
    Every CONSIGNMENT event visible to the caller with its snapshot.

    Settled events show the frozen values; unsettled ones are computed live.
    Admins see all events (optionally filtered by organizer); organizers
    see only their own.
    """
    query = db.session.query(PaymentModelConfig).filter_by(payment_model=MODEL_CONSIGNMENT)
    if not caller.is_admin:
        query = query.filter_by(organizer_id=caller.id)
    elif organizer_id is not None:
        query = query.filter_by(organizer_id=organizer_id)

    results = []
    for config in query.order_by(PaymentModelConfig.event_id).all():
        event = db.session.get(Event, config.event_id)
        if not event:
            continue
        snapshot = frozen_snapshot(config) if config.consignment_settled else compute_snapshot(config)
        results.append({
            **snapshot.to_dict(),
            "event_name": event.name,
            "event_starts_at": to_utc_z(event.starts_at),
            "payment_config_id": config.id,
            "settlement_notes": config.settlement_notes,
        })
    return results
