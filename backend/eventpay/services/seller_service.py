# Overview: Service-layer operations for the seller hierarchy; delegation, capacity, commission, sales and scans.

"""
Staff Commission Hierarchy

One tree per event, stored flat (seller_nodes, parent by id). The root
holds the organizer's total allocation; every other node holds a portion
carved out of its parent.

Capacity is local to a node:

    delegated  = sum(direct children.allocated_tickets)
    sold       = counted tickets attributed to the node itself
    reserved   = pending, unexpired outgoing staff transfers
    available  = allocated - delegated - sold - reserved

Delegating a block moves it out of the parent's sellable capacity and into
the child's subtree. Commission covers the node's own attributed sales
only; nothing rolls up from descendants.

Every write that depends on a parent's capacity also bumps the parent row.
SellerNode is version-locked, so two concurrent delegations from the same
parent cannot both commit against the same snapshot: the loser retries and
sees the winner's child.
"""

from __future__ import annotations

import secrets

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AlreadyConfigured,
    CapacityExceeded,
    DelegationNotPermitted,
    EventNotFound,
    HierarchyDepthExceeded,
    SellerNotFound,
    SubSellerLimitReached,
    TicketNotFound,
    UserNotFound,
    ValidationError,
)
from ..models import Capability, Event, SellerNode, StaffTransfer, Ticket, User
from ..models.events import PAYMENT_METHOD_CASH, PAYMENT_METHOD_ONLINE, TICKET_SCANNED
from ..models.sellers import (
    COMMISSION_FIXED,
    COMMISSION_PERCENTAGE,
    DEFAULT_ROLE_CAPABILITIES,
    SELLER_ROLE_ASSOCIATE,
    SELLER_ROLE_ORGANIZER,
    SELLER_ROLE_STAFF,
    TRANSFER_PENDING,
    VALID_COMMISSION_TYPES,
    VALID_SELLER_ROLES,
)
from ..permissions import require_capability, require_event_owner, require_node_actor
from .. import signals
from ..utils import apply_bps, to_utc_z, utcnow
from . import ledger_service
from .concurrency import after_commit, lock_for_update, run_in_transaction

MAX_PERCENTAGE_BPS = 10_000


# =============================================================================
# LOOKUPS
# =============================================================================

def get_node(node_id: int) -> SellerNode:
    node = db.session.get(SellerNode, node_id)
    if not node:
        raise SellerNotFound(f"Seller {node_id} not found")
    return node


def get_root(event_id: int) -> SellerNode | None:
    return db.session.query(SellerNode).filter_by(event_id=event_id, parent_id=None).first()


def get_children(node_id: int) -> list[SellerNode]:
    return db.session.query(SellerNode).filter_by(parent_id=node_id).order_by(SellerNode.id).all()


def lock_node(node_id: int) -> SellerNode:
    node = lock_for_update(db.session.query(SellerNode).filter_by(id=node_id)).first()
    if not node:
        raise SellerNotFound(f"Seller {node_id} not found")
    return node


def get_event(event_id: int) -> Event:
    event = db.session.get(Event, event_id)
    if not event:
        raise EventNotFound(f"Event {event_id} not found")
    return event


def delegated_tickets(node_id: int, *, exclude_child_id: int | None = None) -> int:
    query = db.session.query(db.func.coalesce(db.func.sum(SellerNode.allocated_tickets), 0)).filter(
        SellerNode.parent_id == node_id
    )
    if exclude_child_id is not None:
        query = query.filter(SellerNode.id != exclude_child_id)
    return int(query.scalar() or 0)


def reserved_tickets(node_id: int, *, exclude_transfer_id: int | None = None) -> int:
    """Tickets held by the node's pending, unexpired outgoing transfers."""
    query = db.session.query(db.func.coalesce(db.func.sum(StaffTransfer.ticket_quantity), 0)).filter(
        StaffTransfer.from_seller_id == node_id,
        StaffTransfer.status == TRANSFER_PENDING,
        StaffTransfer.expires_at > utcnow(),
    )
    if exclude_transfer_id is not None:
        query = query.filter(StaffTransfer.id != exclude_transfer_id)
    return int(query.scalar() or 0)


def available_tickets(node: SellerNode, *, exclude_transfer_id: int | None = None) -> int:
    return (
        node.allocated_tickets
        - delegated_tickets(node.id)
        - ledger_service.count_sold_by_seller(node.id)
        - reserved_tickets(node.id, exclude_transfer_id=exclude_transfer_id)
    )


def capacity_summary(node_id: int) -> dict:
    node = get_node(node_id)
    delegated = delegated_tickets(node.id)
    sold = ledger_service.count_sold_by_seller(node.id)
    reserved = reserved_tickets(node.id)
    return {
        "seller_id": node.id,
        "allocated": node.allocated_tickets,
        "delegated": delegated,
        "sold_directly": sold,
        "reserved": reserved,
        "available": node.allocated_tickets - delegated - sold - reserved,
    }


def get_tree(event_id: int) -> dict | None:
    """Nested view of the event's tree, built from the flat table in one query."""
    nodes = db.session.query(SellerNode).filter_by(event_id=event_id).order_by(SellerNode.id).all()
    if not nodes:
        return None

    views = {node.id: {**node.to_dict(), "children": []} for node in nodes}
    root = None
    for node in nodes:
        if node.parent_id is None:
            root = views[node.id]
        elif node.parent_id in views:
            views[node.parent_id]["children"].append(views[node.id])
    return root


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_count(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def _validate_commission(commission_type: str, commission_value) -> tuple[str, int]:
    if commission_type not in VALID_COMMISSION_TYPES:
        raise ValidationError(f"Invalid commission type: {commission_type}. Must be one of {VALID_COMMISSION_TYPES}")
    value = _validate_count(commission_value, "commission_value")
    if commission_type == COMMISSION_PERCENTAGE and value > MAX_PERCENTAGE_BPS:
        raise ValidationError("Percentage commission cannot exceed 100%")
    return commission_type, value


def _resolve_capabilities(role: str, capabilities) -> Capability:
    if capabilities is None:
        return DEFAULT_ROLE_CAPABILITIES[role]
    if isinstance(capabilities, Capability):
        return capabilities
    try:
        return Capability.from_names(capabilities)
    except ValueError as e:
        raise ValidationError(str(e))


def generate_referral_code() -> str:
    while True:
        code = secrets.token_hex(4).upper()
        if not db.session.query(SellerNode.id).filter_by(referral_code=code).first():
            return code


# =============================================================================
# TREE CONSTRUCTION
# =============================================================================

def create_root_allocation(
    event_id: int,
    allocated_tickets: int,
    *,
    caller: User | None,
    name: str | None = None,
    max_sub_sellers: int | None = None,
) -> SellerNode:
    """Create the organizer's root node holding the event's total allocation."""
    allocated_tickets = _validate_count(allocated_tickets, "allocated_tickets")
    if max_sub_sellers is not None:
        max_sub_sellers = _validate_count(max_sub_sellers, "max_sub_sellers")

    def _op():
        event = get_event(event_id)
        actor = require_event_owner(caller, event)
        if get_root(event_id) is not None:
            raise AlreadyConfigured(f"Seller tree already exists for event {event_id}")

        root = SellerNode(
            event_id=event_id,
            parent_id=None,
            user_id=event.organizer_id,
            name=name or event.name,
            role=SELLER_ROLE_ORGANIZER,
            depth=0,
            referral_code=generate_referral_code(),
            allocated_tickets=allocated_tickets,
            max_sub_sellers=max_sub_sellers,
            commission_type=COMMISSION_FIXED,
            commission_value=0,
            capabilities=DEFAULT_ROLE_CAPABILITIES[SELLER_ROLE_ORGANIZER],
            is_active=True,
            created_by_user_id=actor.id,
        )
        db.session.add(root)
        db.session.flush()
        return root

    try:
        return run_in_transaction(_op)
    except IntegrityError:
        raise AlreadyConfigured(f"Seller tree already exists for event {event_id}")


def assign_sub_seller(
    parent_id: int,
    *,
    caller: User | None,
    name: str,
    allocated_tickets: int,
    commission_type: str = COMMISSION_FIXED,
    commission_value: int = 0,
    role: str = SELLER_ROLE_ASSOCIATE,
    capabilities=None,
    user_id: int | None = None,
    max_sub_sellers: int | None = None,
) -> SellerNode:
    """
    Carve a block out of a parent's capacity into a new child node.

    Raises:
        DelegationNotPermitted: parent lacks ASSIGN_SUB_SELLERS (or is inactive)
        CapacityExceeded: requested + delegated + sold directly > parent allocation
        SubSellerLimitReached: parent already has max_sub_sellers children
        HierarchyDepthExceeded: child would sit below MAX_SELLER_DEPTH
    """
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    if role not in VALID_SELLER_ROLES or role == SELLER_ROLE_ORGANIZER:
        raise ValidationError(f"Invalid seller role: {role}")
    allocated_tickets = _validate_count(allocated_tickets, "allocated_tickets")
    commission_type, commission_value = _validate_commission(commission_type, commission_value)
    if max_sub_sellers is not None:
        max_sub_sellers = _validate_count(max_sub_sellers, "max_sub_sellers")
    child_caps = _resolve_capabilities(role, capabilities)

    def _op():
        parent = lock_node(parent_id)
        event = get_event(parent.event_id)
        actor = require_node_actor(caller, parent, event)

        require_capability(parent, Capability.ASSIGN_SUB_SELLERS, error=DelegationNotPermitted)

        max_depth = current_app.config.get("MAX_SELLER_DEPTH", 5)
        if parent.depth + 1 > max_depth:
            raise HierarchyDepthExceeded(
                f"Sub-sellers cannot be nested deeper than {max_depth} levels",
                max_depth=max_depth,
            )

        if parent.max_sub_sellers is not None:
            child_count = db.session.query(db.func.count(SellerNode.id)).filter_by(parent_id=parent.id).scalar() or 0
            if child_count >= parent.max_sub_sellers:
                raise SubSellerLimitReached(
                    f"Seller {parent.id} already has {child_count} sub-sellers",
                    requested=1,
                    available=max(parent.max_sub_sellers - child_count, 0),
                )

        available = available_tickets(parent)
        if allocated_tickets > available:
            raise CapacityExceeded(
                f"Cannot allocate {allocated_tickets} tickets; only {max(available, 0)} remain",
                requested=allocated_tickets,
                available=max(available, 0),
            )

        if user_id is not None and not db.session.get(User, user_id):
            raise UserNotFound(f"User {user_id} not found")

        child = SellerNode(
            event_id=parent.event_id,
            parent_id=parent.id,
            user_id=user_id,
            name=str(name).strip(),
            role=role,
            depth=parent.depth + 1,
            referral_code=generate_referral_code(),
            allocated_tickets=allocated_tickets,
            max_sub_sellers=max_sub_sellers,
            commission_type=commission_type,
            commission_value=commission_value,
            capabilities=child_caps,
            is_active=True,
            created_by_user_id=actor.id,
        )
        db.session.add(child)
        # Version bump on the parent serializes concurrent delegations
        parent.updated_at = utcnow()
        db.session.flush()

        child_id, event_id = child.id, parent.event_id
        after_commit(lambda: signals.emit(
            signals.sub_seller_assigned, event_id=event_id, parent_id=parent_id, seller_id=child_id
        ))
        return child

    child = run_in_transaction(_op)
    current_app.logger.info(
        "Sub-seller %s assigned under %s with %s tickets", child.id, parent_id, allocated_tickets
    )
    return child


def add_staff(event_id: int, *, caller: User | None, name: str, **kwargs) -> SellerNode:
    """Shortcut for assigning a sub-seller directly under the event's root."""
    root = get_root(event_id)
    if root is None:
        raise SellerNotFound(f"Event {event_id} has no seller tree")
    kwargs.setdefault("role", SELLER_ROLE_STAFF)
    kwargs.setdefault("allocated_tickets", 0)
    return assign_sub_seller(root.id, caller=caller, name=name, **kwargs)


def reassign_allocation(node_id: int, allocated_tickets: int, *, caller: User | None) -> SellerNode:
    """
    Resize a node's allocation.

    The node must still cover what it delegated, sold and has reserved for
    pending transfers, and the parent must still cover its other children
    plus this one.
    """
    allocated_tickets = _validate_count(allocated_tickets, "allocated_tickets")

    def _op():
        node = lock_node(node_id)
        require_event_owner(caller, get_event(node.event_id))

        committed = node.allocated_tickets - available_tickets(node)
        if allocated_tickets < committed:
            raise CapacityExceeded(
                f"Seller {node.id} has already committed {committed} tickets",
                requested=committed,
                available=allocated_tickets,
            )

        if node.parent_id is not None:
            parent = lock_node(node.parent_id)
            others = delegated_tickets(parent.id, exclude_child_id=node.id)
            parent_sold = ledger_service.count_sold_by_seller(parent.id)
            available = parent.allocated_tickets - others - parent_sold - reserved_tickets(parent.id)
            if allocated_tickets > available:
                raise CapacityExceeded(
                    f"Cannot allocate {allocated_tickets} tickets; parent has {max(available, 0)} available",
                    requested=allocated_tickets,
                    available=max(available, 0),
                )
            parent.updated_at = utcnow()

        node.allocated_tickets = allocated_tickets
        return node

    return run_in_transaction(_op)


def update_capabilities(node_id: int, capabilities, *, caller: User | None) -> SellerNode:
    """Replace a node's capability set; effective on the very next attempt."""
    def _op():
        node = lock_node(node_id)
        require_event_owner(caller, get_event(node.event_id))
        node.capabilities = _resolve_capabilities(node.role, capabilities)
        return node

    return run_in_transaction(_op)


# =============================================================================
# COMMISSION
# =============================================================================

def _earnings(node: SellerNode, tickets: list[Ticket], prices: dict[int, int]) -> int:
    summary = ledger_service.summarize_tickets(tickets, prices)
    if node.commission_type == COMMISSION_PERCENTAGE:
        return apply_bps(summary.total_revenue_cents, node.commission_value)
    return summary.sold_tickets * node.commission_value


def compute_earnings(node_id: int) -> int:
    """Commission in cents on the node's own counted sales."""
    node = get_node(node_id)
    tickets = ledger_service.tickets_sold_by_seller(node.id)
    return _earnings(node, tickets, ledger_service.tier_prices(node.event_id))


def staff_settlement(event_id: int, *, caller: User | None) -> list[dict]:
    """
    Per-node payout view.

    net_cents = commission - cash collected. Negative means the seller is
    holding cash owed to the organizer.
    """
    event = get_event(event_id)
    require_event_owner(caller, event)

    prices = ledger_service.tier_prices(event_id)
    nodes = db.session.query(SellerNode).filter_by(event_id=event_id).order_by(SellerNode.depth, SellerNode.id).all()

    rows = []
    for node in nodes:
        tickets = ledger_service.tickets_sold_by_seller(node.id)
        commission = _earnings(node, tickets, prices)
        cash_tickets = [t for t in tickets if t.payment_method == PAYMENT_METHOD_CASH]
        cash = ledger_service.summarize_tickets(cash_tickets, prices).total_revenue_cents
        rows.append({
            "seller_id": node.id,
            "name": node.name,
            "role": node.role,
            "tickets_sold": len(tickets),
            "cash_collected_cents": cash,
            "commission_cents": commission,
            "net_cents": commission - cash,
            "settlement_status": node.settlement_status,
            "settlement_paid_at": to_utc_z(node.settlement_paid_at),
            "settlement_notes": node.settlement_notes,
        })
    return rows


# =============================================================================
# SALES AND SCANS
# =============================================================================

def sell_ticket(
    node_id: int,
    tier_id: int,
    *,
    caller: User | None,
    payment_method: str = PAYMENT_METHOD_ONLINE,
    buyer_user_id: int | None = None,
) -> Ticket:
    """Sell one ticket attributed to the node. Requires SELL and free capacity."""
    def _op():
        node = lock_node(node_id)
        event = get_event(node.event_id)
        require_node_actor(caller, node, event)
        require_capability(node, Capability.SELL)

        available = available_tickets(node)
        if available < 1:
            raise CapacityExceeded(
                f"Seller {node.id} has no tickets left to sell",
                requested=1,
                available=max(available, 0),
            )

        ticket = ledger_service.issue_ticket_locked(
            event,
            tier_id,
            payment_method=payment_method,
            seller_id=node.id,
            buyer_user_id=buyer_user_id,
        )
        node.updated_at = utcnow()
        return ticket

    return run_in_transaction(_op)


def scan_ticket_as(node_id: int, ticket_code: str, *, caller: User | None) -> Ticket:
    """Scan a ticket at the door on behalf of a node. Requires SCAN."""
    def _op():
        node = lock_node(node_id)
        event = get_event(node.event_id)
        require_node_actor(caller, node, event)
        require_capability(node, Capability.SCAN)

        ticket = lock_for_update(db.session.query(Ticket).filter_by(ticket_code=ticket_code)).first()
        if not ticket:
            raise TicketNotFound(f"Ticket {ticket_code} not found")
        if ticket.event_id != node.event_id:
            raise ValidationError(
                f"Ticket {ticket_code} does not belong to event {node.event_id}",
                ticket_event_id=ticket.event_id,
            )

        ledger_service.transition_locked(ticket, TICKET_SCANNED)
        ticket.scanned_by_seller_id = node.id
        return ticket

    return run_in_transaction(_op)
