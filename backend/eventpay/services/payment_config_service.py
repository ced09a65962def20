# Overview: Service-layer operations for per-event payment model configuration.

"""
Payment Model Configuration Store

One configuration per event, selected exactly once:

    NoConfig -> Configured(Active) -> Deactivated

CONSIGNMENT adds an orthogonal Unsettled -> Settled dimension (see
settlement_service). Deactivation never deletes the row; settlement history
and the audit trail survive it.

Selection guarantees:
- UNIQUE(event_id) at the storage layer; a lost insert race surfaces as
  AlreadyConfigured, never as two configs.
- Selecting a model flips the event's payment_model_selected and
  tickets_visible flags in the same transaction.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AlreadyConfigured,
    AlreadySettled,
    ConfigNotFound,
    EventNotFound,
    InsufficientCredits,
    PaymentModelInactive,
    PaymentSetupIncomplete,
    ValidationError,
    WrongPaymentModel,
)
from ..models import Event, PaymentModelConfig, User
from ..models.payments import (
    MODEL_PREPAY,
    MODEL_CREDIT_CARD,
    MODEL_CONSIGNMENT,
    VALID_PAYMENT_MODELS,
    VALID_MERCHANT_PROCESSORS,
)
from ..permissions import require_event_owner
from .. import signals
from ..utils import utcnow
from . import audit_service, credit_service, fee_service
from .concurrency import after_commit, lock_for_update, run_in_transaction


# =============================================================================
# LOOKUPS
# =============================================================================

def get_event(event_id: int) -> Event:
    event = db.session.get(Event, event_id)
    if not event:
        raise EventNotFound(f"Event {event_id} not found")
    return event


def get_config(event_id: int) -> PaymentModelConfig | None:
    return db.session.query(PaymentModelConfig).filter_by(event_id=event_id).first()


def require_config(event_id: int) -> PaymentModelConfig:
    config = get_config(event_id)
    if not config:
        raise ConfigNotFound(f"Payment configuration not found for event {event_id}")
    return config


def _lock_config(event_id: int) -> PaymentModelConfig:
    config = lock_for_update(db.session.query(PaymentModelConfig).filter_by(event_id=event_id)).first()
    if not config:
        raise ConfigNotFound(f"Payment configuration not found for event {event_id}")
    return config


def has_payment_configured(event_id: int) -> dict:
    config = get_config(event_id)
    return {
        "has_config": config is not None,
        "is_active": bool(config and config.is_active),
        "payment_model": config.payment_model if config else None,
    }


def list_organizer_configs(organizer_id: int) -> list[PaymentModelConfig]:
    return (
        db.session.query(PaymentModelConfig)
        .filter_by(organizer_id=organizer_id)
        .order_by(PaymentModelConfig.id)
        .all()
    )


# =============================================================================
# SELECTION
# =============================================================================

def _non_negative_int(value, field: str, *, required: bool = True) -> int | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def _create_config_locked(
    event: Event,
    model: str,
    *,
    actor: User,
    tickets_allocated: int | None = None,
    charity_discount: bool = False,
    floated_tickets: int | None = None,
    settlement_due_at: datetime | None = None,
) -> PaymentModelConfig:
    """Insert the single config row for an event and open ticket sales."""
    if get_config(event.id) is not None:
        raise AlreadyConfigured(f"Payment model already configured for event {event.id}")

    params = fee_service.default_params(model, charity=charity_discount)
    now = utcnow()

    config = PaymentModelConfig(
        event_id=event.id,
        organizer_id=event.organizer_id,
        payment_model=model,
        is_active=True,
        activated_at=now,
        platform_fee_bps=params.platform_fee_bps,
        platform_fee_fixed_cents=params.platform_fee_fixed_cents,
        processing_fee_bps=params.processing_fee_bps,
        charity_discount=bool(charity_discount and model == MODEL_CREDIT_CARD),
        low_price_discount=False,
    )
    if model == MODEL_PREPAY:
        config.tickets_allocated = tickets_allocated
    elif model == MODEL_CONSIGNMENT:
        config.floated_tickets = floated_tickets
        config.sold_tickets = 0
        config.settlement_due_at = settlement_due_at or event.starts_at
        config.consignment_settled = False

    db.session.add(config)
    db.session.flush()

    event.payment_model_selected = True
    event.tickets_visible = True

    audit_service.append_audit_event(
        event_id=event.id,
        config_id=config.id,
        action=audit_service.ACTION_MODEL_SELECTED,
        actor_user_id=actor.id,
        payload={
            "payment_model": model,
            "platform_fee_bps": config.platform_fee_bps,
            "platform_fee_fixed_cents": config.platform_fee_fixed_cents,
            "processing_fee_bps": config.processing_fee_bps,
            "charity_discount": config.charity_discount,
        },
    )
    selected_event_id = event.id
    after_commit(lambda: signals.emit(
        signals.payment_model_selected, event_id=selected_event_id, payment_model=model
    ))
    return config


def select_model(
    event_id: int,
    model: str,
    *,
    caller: User | None,
    tickets_allocated: int | None = None,
    charity_discount: bool = False,
    floated_tickets: int | None = None,
    settlement_due_at: datetime | None = None,
) -> PaymentModelConfig:
    """
    Select the payment model for an event (exactly once).

    Raises:
        AlreadyConfigured: a config exists (whatever its model)
        NotEventOwner: caller does not own the event
        PaymentSetupIncomplete: CREDIT_CARD without a finished processor account
        InsufficientCredits: PREPAY allocation above the organizer's balance
    """
    if model not in VALID_PAYMENT_MODELS:
        raise ValidationError(f"Invalid payment model: {model}. Must be one of {VALID_PAYMENT_MODELS}")

    if model == MODEL_PREPAY:
        tickets_allocated = _non_negative_int(tickets_allocated, "tickets_allocated")
    elif model == MODEL_CONSIGNMENT:
        floated_tickets = _non_negative_int(floated_tickets, "floated_tickets")

    def _op():
        event = lock_for_update(db.session.query(Event).filter_by(id=event_id)).first()
        if not event:
            raise EventNotFound(f"Event {event_id} not found")
        actor = require_event_owner(caller, event)

        if get_config(event_id) is not None:
            raise AlreadyConfigured(f"Payment model already configured for event {event_id}")

        organizer = db.session.get(User, event.organizer_id)

        if model == MODEL_CREDIT_CARD:
            if not organizer.payment_account_id or not organizer.payment_setup_complete:
                raise PaymentSetupIncomplete(
                    "A fully onboarded payment processor account is required for the CREDIT_CARD model"
                )

        if model == MODEL_PREPAY:
            available = credit_service.get_available_credits(organizer.id)
            if available < tickets_allocated:
                raise InsufficientCredits(
                    f"Insufficient credits. Available: {available}, Needed: {tickets_allocated}",
                    requested=tickets_allocated,
                    available=available,
                )

        return _create_config_locked(
            event,
            model,
            actor=actor,
            tickets_allocated=tickets_allocated,
            charity_discount=charity_discount,
            floated_tickets=floated_tickets,
            settlement_due_at=settlement_due_at,
        )

    try:
        config = run_in_transaction(_op)
    except IntegrityError:
        raise AlreadyConfigured(f"Payment model already configured for event {event_id}")

    current_app.logger.info("Payment model %s selected for event %s", model, event_id)
    return config


# =============================================================================
# CONSIGNMENT SETUP
# =============================================================================

def setup_consignment(
    event_id: int,
    floated_tickets: int,
    *,
    caller: User | None,
    settlement_due_at: datetime | None = None,
) -> PaymentModelConfig:
    """
    Create a CONSIGNMENT config, or adjust the float/due date of an
    unsettled one. The due date defaults to the event start.
    """
    floated_tickets = _non_negative_int(floated_tickets, "floated_tickets")

    def _op():
        event = lock_for_update(db.session.query(Event).filter_by(id=event_id)).first()
        if not event:
            raise EventNotFound(f"Event {event_id} not found")
        actor = require_event_owner(caller, event)

        config = lock_for_update(db.session.query(PaymentModelConfig).filter_by(event_id=event_id)).first()
        if config is None:
            return _create_config_locked(
                event,
                MODEL_CONSIGNMENT,
                actor=actor,
                floated_tickets=floated_tickets,
                settlement_due_at=settlement_due_at,
            )

        if config.payment_model != MODEL_CONSIGNMENT:
            raise AlreadyConfigured(
                f"Event {event_id} already uses the {config.payment_model} payment model"
            )
        if config.consignment_settled:
            raise AlreadySettled(f"Consignment for event {event_id} is already settled")

        config.floated_tickets = floated_tickets
        config.settlement_due_at = settlement_due_at or config.settlement_due_at or event.starts_at

        audit_service.append_audit_event(
            event_id=event_id,
            config_id=config.id,
            action=audit_service.ACTION_CONSIGNMENT_SETUP,
            actor_user_id=actor.id,
            payload={"floated_tickets": floated_tickets},
        )
        return config

    try:
        return run_in_transaction(_op)
    except IntegrityError:
        raise AlreadyConfigured(f"Payment model already configured for event {event_id}")


# =============================================================================
# LIFECYCLE
# =============================================================================

def deactivate(event_id: int, *, caller: User | None) -> PaymentModelConfig:
    """Stop sales: is_active=False and tickets hidden. The row is kept."""
    def _op():
        event = get_event(event_id)
        actor = require_event_owner(caller, event)
        config = _lock_config(event_id)

        config.is_active = False
        config.deactivated_at = utcnow()
        event.tickets_visible = False

        audit_service.append_audit_event(
            event_id=event_id,
            config_id=config.id,
            action=audit_service.ACTION_MODEL_DEACTIVATED,
            actor_user_id=actor.id,
        )
        after_commit(lambda: signals.emit(signals.payment_model_deactivated, event_id=event_id))
        return config

    config = run_in_transaction(_op)
    current_app.logger.info("Payment model deactivated for event %s", event_id)
    return config


def apply_low_price_discount(event_id: int, *, caller: User | None) -> PaymentModelConfig:
    """
    Reset platform fees to half of the default constants (CREDIT_CARD only).

    Never compounds with the charity discount. Re-applying is allowed and
    writes the same values again; each application gets its own audit row.
    """
    def _op():
        event = get_event(event_id)
        actor = require_event_owner(caller, event)
        config = _lock_config(event_id)

        if config.payment_model != MODEL_CREDIT_CARD:
            raise WrongPaymentModel("Low-price discount only applies to the CREDIT_CARD payment model")

        params = fee_service.discounted_params()
        previous = {
            "platform_fee_bps": config.platform_fee_bps,
            "platform_fee_fixed_cents": config.platform_fee_fixed_cents,
        }
        config.platform_fee_bps = params.platform_fee_bps
        config.platform_fee_fixed_cents = params.platform_fee_fixed_cents
        config.low_price_discount = True
        config.updated_at = utcnow()

        audit_service.append_audit_event(
            event_id=event_id,
            config_id=config.id,
            action=audit_service.ACTION_LOW_PRICE_DISCOUNT,
            actor_user_id=actor.id,
            payload={
                "previous": previous,
                "platform_fee_bps": params.platform_fee_bps,
                "platform_fee_fixed_cents": params.platform_fee_fixed_cents,
            },
        )
        return config

    return run_in_transaction(_op)


def update_payment_methods(
    event_id: int,
    *,
    caller: User | None,
    merchant_processor: str,
    credit_card_enabled: bool,
    cash_app_enabled: bool,
) -> PaymentModelConfig:
    if merchant_processor not in VALID_MERCHANT_PROCESSORS:
        raise ValidationError(
            f"Invalid merchant processor: {merchant_processor}. Must be one of {VALID_MERCHANT_PROCESSORS}"
        )

    def _op():
        event = get_event(event_id)
        actor = require_event_owner(caller, event)
        config = _lock_config(event_id)

        config.merchant_processor = merchant_processor
        config.credit_card_enabled = bool(credit_card_enabled)
        config.cash_app_enabled = bool(cash_app_enabled)

        audit_service.append_audit_event(
            event_id=event_id,
            config_id=config.id,
            action=audit_service.ACTION_METHODS_UPDATED,
            actor_user_id=actor.id,
            payload={
                "merchant_processor": merchant_processor,
                "credit_card_enabled": config.credit_card_enabled,
                "cash_app_enabled": config.cash_app_enabled,
            },
        )
        return config

    return run_in_transaction(_op)


# =============================================================================
# ORDER FEES
# =============================================================================

def calculate_order_fees(event_id: int, subtotal_cents: int) -> fee_service.FeeBreakdown:
    """Fees for an order on this event, using the event's stored parameters."""
    config = require_config(event_id)
    if not config.is_active:
        raise PaymentModelInactive(f"Payment configuration for event {event_id} is deactivated")
    return fee_service.compute_fees(
        config.payment_model,
        subtotal_cents,
        fee_service.FeeParams.from_config(config),
    )
