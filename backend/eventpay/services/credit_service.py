# Overview: Service-layer operations for organizer prepaid credits.

from __future__ import annotations

from ..extensions import db
from ..errors import InsufficientCredits, UserNotFound, ValidationError, Unauthorized
from ..models import OrganizerCredits, User
from .concurrency import lock_for_update, run_in_transaction


def get_available_credits(organizer_id: int) -> int:
    credits = db.session.query(OrganizerCredits).filter_by(organizer_id=organizer_id).first()
    return credits.credits_remaining if credits else 0


def get_credit_account(organizer_id: int) -> OrganizerCredits | None:
    return db.session.query(OrganizerCredits).filter_by(organizer_id=organizer_id).first()


def _get_or_create_locked(organizer_id: int) -> OrganizerCredits:
    credits = lock_for_update(
        db.session.query(OrganizerCredits).filter_by(organizer_id=organizer_id)
    ).first()
    if credits is None:
        credits = OrganizerCredits(organizer_id=organizer_id, credits_total=0, credits_used=0)
        db.session.add(credits)
        db.session.flush()
    return credits


def add_credits(organizer_id: int, amount: int, *, actor: User) -> OrganizerCredits:
    """Grant purchased credits to an organizer (platform admin only)."""
    if not actor.is_admin:
        raise Unauthorized("Only platform admins can grant credits")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("amount must be a positive integer")

    def _op():
        if not db.session.get(User, organizer_id):
            raise UserNotFound(f"User {organizer_id} not found")
        credits = _get_or_create_locked(organizer_id)
        credits.credits_total = (credits.credits_total or 0) + amount
        return credits

    return run_in_transaction(_op)


def consume_credits_locked(organizer_id: int, count: int) -> OrganizerCredits:
    """
    Deduct credits inside the caller's transaction (one per ticket sold).

    Raises InsufficientCredits with the shortfall.
    """
    credits = _get_or_create_locked(organizer_id)
    available = credits.credits_remaining
    if available < count:
        raise InsufficientCredits(
            f"Insufficient credits. Available: {available}, Needed: {count}",
            requested=count,
            available=available,
        )
    credits.credits_used = (credits.credits_used or 0) + count
    return credits
