# Overview: Service-layer operations for staff ticket transfers and staff payout status.

"""
Staff Transfers and Payouts

Transfers move part of one node's allocation to a sibling node of the
same event. Keeping both ends under the same parent leaves the parent's
delegated total unchanged, so no other node's capacity moves.

    PENDING -> ACCEPTED | REJECTED | CANCELLED | EXPIRED

While PENDING the quantity is reserved on the sender (see
seller_service.reserved_tickets). A pending transfer past expires_at no
longer reserves anything; it is marked EXPIRED when someone tries to
accept it.

Payout status is a per-node flag the organizer flips once commission and
cash collected have been squared off. It does not feed back into any
calculation.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import (
    CapacityExceeded,
    TransferExpired,
    TransferNotFound,
    TransferNotPending,
    ValidationError,
)
from ..models import SellerNode, StaffTransfer, User
from ..models.sellers import (
    SETTLEMENT_PAID,
    SETTLEMENT_PENDING,
    TRANSFER_ACCEPTED,
    TRANSFER_CANCELLED,
    TRANSFER_EXPIRED,
    TRANSFER_PENDING,
    TRANSFER_REJECTED,
)
from ..permissions import require_event_owner, require_node_actor
from .. import signals
from ..utils import utcnow
from . import seller_service
from .concurrency import after_commit, lock_for_update, run_in_transaction


# =============================================================================
# LOOKUPS
# =============================================================================

def get_transfer(transfer_id: int) -> StaffTransfer:
    transfer = db.session.get(StaffTransfer, transfer_id)
    if not transfer:
        raise TransferNotFound(f"Transfer {transfer_id} not found")
    return transfer


def _lock_transfer(transfer_id: int) -> StaffTransfer:
    transfer = lock_for_update(db.session.query(StaffTransfer).filter_by(id=transfer_id)).first()
    if not transfer:
        raise TransferNotFound(f"Transfer {transfer_id} not found")
    return transfer


def _require_pending(transfer: StaffTransfer) -> None:
    if transfer.status != TRANSFER_PENDING:
        raise TransferNotPending(
            f"Transfer {transfer.id} is already {transfer.status.lower()}",
            transfer_id=transfer.id,
            status=transfer.status,
        )


def list_transfers(
    event_id: int,
    *,
    caller: User | None,
    seller_id: int | None = None,
    status: str | None = None,
) -> list[StaffTransfer]:
    """
    Transfers for an event, newest first.

    With seller_id, only transfers sent or received by that node; the
    caller must be able to act for it. Without, the caller must own the event.
    """
    event = seller_service.get_event(event_id)
    query = db.session.query(StaffTransfer).filter(StaffTransfer.event_id == event_id)

    if seller_id is not None:
        node = seller_service.get_node(seller_id)
        if node.event_id != event_id:
            raise ValidationError(f"Seller {seller_id} does not belong to event {event_id}")
        require_node_actor(caller, node, event)
        query = query.filter(
            or_(StaffTransfer.from_seller_id == seller_id, StaffTransfer.to_seller_id == seller_id)
        )
    else:
        require_event_owner(caller, event)

    if status is not None:
        query = query.filter(StaffTransfer.status == status)
    return query.order_by(StaffTransfer.requested_at.desc(), StaffTransfer.id.desc()).all()


# =============================================================================
# TRANSFERS
# =============================================================================

def request_transfer(
    from_seller_id: int,
    to_seller_id: int,
    ticket_quantity: int,
    *,
    caller: User | None,
    reason: str | None = None,
    notes: str | None = None,
) -> StaffTransfer:
    """
    Offer part of a node's free allocation to a sibling node.

    Raises:
        ValidationError: same node, different event or parent, inactive recipient
        CapacityExceeded: quantity exceeds the sender's available tickets
    """
    if isinstance(ticket_quantity, bool) or not isinstance(ticket_quantity, int) or ticket_quantity < 1:
        raise ValidationError("ticket_quantity must be a positive integer")
    if from_seller_id == to_seller_id:
        raise ValidationError("Cannot transfer tickets to the same seller")

    def _op():
        sender = seller_service.lock_node(from_seller_id)
        event = seller_service.get_event(sender.event_id)
        actor = require_node_actor(caller, sender, event)

        recipient = seller_service.get_node(to_seller_id)
        if recipient.event_id != sender.event_id:
            raise ValidationError(f"Seller {recipient.id} is not staff for event {sender.event_id}")
        if sender.parent_id is None or recipient.parent_id != sender.parent_id:
            raise ValidationError("Transfers are only allowed between sellers with the same parent")
        if not sender.is_active or not recipient.is_active:
            raise ValidationError("Both sellers must be active")

        available = seller_service.available_tickets(sender)
        if ticket_quantity > available:
            raise CapacityExceeded(
                f"Insufficient tickets; seller {sender.id} has {max(available, 0)} available",
                requested=ticket_quantity,
                available=max(available, 0),
            )

        now = utcnow()
        hours = current_app.config.get("STAFF_TRANSFER_EXPIRY_HOURS", 48)
        transfer = StaffTransfer(
            event_id=sender.event_id,
            from_seller_id=sender.id,
            to_seller_id=recipient.id,
            ticket_quantity=ticket_quantity,
            status=TRANSFER_PENDING,
            reason=reason,
            notes=notes,
            requested_by_user_id=actor.id,
            requested_at=now,
            expires_at=now + timedelta(hours=hours),
        )
        db.session.add(transfer)
        # Version bump on the sender serializes the reservation with sales and delegation
        sender.updated_at = now
        db.session.flush()
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info(
        "Transfer %s requested: %s tickets from seller %s to %s",
        transfer.id, ticket_quantity, from_seller_id, to_seller_id,
    )
    return transfer


def accept_transfer(transfer_id: int, *, caller: User | None) -> StaffTransfer:
    """
    Recipient accepts: the allocation moves from sender to recipient.

    An expired request is marked EXPIRED (and that sticks) before
    TransferExpired is raised.
    """
    def _op():
        transfer = _lock_transfer(transfer_id)
        recipient = seller_service.lock_node(transfer.to_seller_id)
        event = seller_service.get_event(transfer.event_id)
        actor = require_node_actor(caller, recipient, event)
        _require_pending(transfer)

        now = utcnow()
        if now >= transfer.expires_at:
            transfer.status = TRANSFER_EXPIRED
            transfer.responded_at = now
            return transfer, True

        sender = seller_service.lock_node(transfer.from_seller_id)
        available = seller_service.available_tickets(sender, exclude_transfer_id=transfer.id)
        if transfer.ticket_quantity > available:
            raise CapacityExceeded(
                f"Seller {sender.id} no longer has {transfer.ticket_quantity} tickets to transfer",
                requested=transfer.ticket_quantity,
                available=max(available, 0),
            )

        transfer.from_balance_before = sender.allocated_tickets
        transfer.to_balance_before = recipient.allocated_tickets
        sender.allocated_tickets -= transfer.ticket_quantity
        recipient.allocated_tickets += transfer.ticket_quantity
        transfer.from_balance_after = sender.allocated_tickets
        transfer.to_balance_after = recipient.allocated_tickets

        transfer.status = TRANSFER_ACCEPTED
        transfer.responded_at = now
        transfer.responded_by_user_id = actor.id

        payload = {
            "event_id": transfer.event_id,
            "transfer_id": transfer.id,
            "from_seller_id": sender.id,
            "to_seller_id": recipient.id,
            "ticket_quantity": transfer.ticket_quantity,
        }
        after_commit(lambda: signals.emit(signals.staff_transfer_accepted, **payload))
        return transfer, False

    transfer, expired = run_in_transaction(_op)
    if expired:
        raise TransferExpired(f"Transfer {transfer_id} has expired", transfer_id=transfer_id)

    current_app.logger.info("Transfer %s accepted", transfer_id)
    return transfer


def reject_transfer(transfer_id: int, *, caller: User | None, reason: str | None = None) -> StaffTransfer:
    """Recipient declines; the sender's reservation is released."""
    def _op():
        transfer = _lock_transfer(transfer_id)
        recipient = seller_service.get_node(transfer.to_seller_id)
        actor = require_node_actor(caller, recipient, seller_service.get_event(transfer.event_id))
        _require_pending(transfer)

        transfer.status = TRANSFER_REJECTED
        transfer.rejection_reason = reason
        transfer.responded_at = utcnow()
        transfer.responded_by_user_id = actor.id
        return transfer

    return run_in_transaction(_op)


def cancel_transfer(transfer_id: int, *, caller: User | None) -> StaffTransfer:
    """Sender withdraws a pending request."""
    def _op():
        transfer = _lock_transfer(transfer_id)
        sender = seller_service.get_node(transfer.from_seller_id)
        actor = require_node_actor(caller, sender, seller_service.get_event(transfer.event_id))
        _require_pending(transfer)

        transfer.status = TRANSFER_CANCELLED
        transfer.responded_at = utcnow()
        transfer.responded_by_user_id = actor.id
        return transfer

    return run_in_transaction(_op)


# =============================================================================
# PAYOUT STATUS
# =============================================================================

def mark_settlement_paid(seller_id: int, *, caller: User | None, notes: str | None = None) -> SellerNode:
    def _op():
        node = seller_service.lock_node(seller_id)
        require_event_owner(caller, seller_service.get_event(node.event_id))
        node.settlement_status = SETTLEMENT_PAID
        node.settlement_paid_at = utcnow()
        node.settlement_notes = notes
        return node

    node = run_in_transaction(_op)
    current_app.logger.info("Seller %s payout marked paid", seller_id)
    return node


def mark_settlement_pending(seller_id: int, *, caller: User | None) -> SellerNode:
    """Undo a paid mark; clears the paid timestamp and notes."""
    def _op():
        node = seller_service.lock_node(seller_id)
        require_event_owner(caller, seller_service.get_event(node.event_id))
        node.settlement_status = SETTLEMENT_PENDING
        node.settlement_paid_at = None
        node.settlement_notes = None
        return node

    return run_in_transaction(_op)
