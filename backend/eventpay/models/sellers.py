# Overview: Seller tree nodes, capabilities, staff transfers and payout status.

from __future__ import annotations

from enum import IntFlag

from ..extensions import db
from ..utils import to_utc_z, bps_to_percent

SELLER_ROLE_ORGANIZER = "ORGANIZER"
SELLER_ROLE_TEAM_MEMBER = "TEAM_MEMBER"
SELLER_ROLE_ASSOCIATE = "ASSOCIATE"
SELLER_ROLE_STAFF = "STAFF"

VALID_SELLER_ROLES = [
    SELLER_ROLE_ORGANIZER,
    SELLER_ROLE_TEAM_MEMBER,
    SELLER_ROLE_ASSOCIATE,
    SELLER_ROLE_STAFF,
]

COMMISSION_FIXED = "FIXED"
COMMISSION_PERCENTAGE = "PERCENTAGE"

VALID_COMMISSION_TYPES = [COMMISSION_FIXED, COMMISSION_PERCENTAGE]

# Staff payout status, set by the organizer once cash and commission are squared
SETTLEMENT_PENDING = "PENDING"
SETTLEMENT_PAID = "PAID"

VALID_SETTLEMENT_STATUSES = [SETTLEMENT_PENDING, SETTLEMENT_PAID]

TRANSFER_PENDING = "PENDING"
TRANSFER_ACCEPTED = "ACCEPTED"
TRANSFER_REJECTED = "REJECTED"
TRANSFER_CANCELLED = "CANCELLED"
TRANSFER_EXPIRED = "EXPIRED"

VALID_TRANSFER_STATUSES = [
    TRANSFER_PENDING,
    TRANSFER_ACCEPTED,
    TRANSFER_REJECTED,
    TRANSFER_CANCELLED,
    TRANSFER_EXPIRED,
]


class Capability(IntFlag):
    """What a seller node may do. Stored as a bitmask."""
    NONE = 0
    SCAN = 1
    SELL = 2
    ASSIGN_SUB_SELLERS = 4

    @classmethod
    def from_names(cls, names) -> "Capability":
        caps = cls.NONE
        for name in names or []:
            try:
                caps |= cls[str(name).upper()]
            except KeyError:
                raise ValueError(f"Unknown capability: {name}")
        return caps

    def names(self) -> list[str]:
        return [c.name for c in (Capability.SCAN, Capability.SELL, Capability.ASSIGN_SUB_SELLERS) if c in self]


# Defaults by role when the caller does not pass capabilities explicitly
DEFAULT_ROLE_CAPABILITIES = {
    SELLER_ROLE_ORGANIZER: Capability.SCAN | Capability.SELL | Capability.ASSIGN_SUB_SELLERS,
    SELLER_ROLE_TEAM_MEMBER: Capability.SELL | Capability.ASSIGN_SUB_SELLERS,
    SELLER_ROLE_ASSOCIATE: Capability.SELL,
    SELLER_ROLE_STAFF: Capability.SCAN,
}


class SellerNode(db.Model):
    """
    One node of an event's seller tree (arena storage: flat table, parent by id).

    The root (parent_id NULL) holds the organizer's total allocation. Every
    other node holds a portion carved out of its parent. For every node:

        sum(children.allocated_tickets) + tickets sold by the node itself
            <= allocated_tickets

    The invariant is local, so checks only ever read direct children.
    Commission applies to the node's own attributed sales only.
    """
    __tablename__ = "seller_nodes"
    __table_args__ = (
        db.Index("ix_seller_nodes_event_parent", "event_id", "parent_id"),
        db.Index(
            "uq_seller_nodes_event_root",
            "event_id",
            unique=True,
            sqlite_where=db.text("parent_id IS NULL"),
            postgresql_where=db.text("parent_id IS NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("seller_nodes.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(16), nullable=False)
    depth = db.Column(db.Integer, nullable=False, default=0)
    referral_code = db.Column(db.String(16), nullable=False, unique=True)

    allocated_tickets = db.Column(db.Integer, nullable=False, default=0)
    max_sub_sellers = db.Column(db.Integer, nullable=True)

    commission_type = db.Column(db.String(16), nullable=False, default=COMMISSION_FIXED)
    # FIXED: cents per ticket. PERCENTAGE: basis points of ticket price.
    commission_value = db.Column(db.Integer, nullable=False, default=0)

    capability_flags = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    settlement_status = db.Column(db.String(16), nullable=False, default=SETTLEMENT_PENDING)
    settlement_paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    settlement_notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", foreign_keys=[user_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def capabilities(self) -> Capability:
        return Capability(self.capability_flags or 0)

    @capabilities.setter
    def capabilities(self, value: Capability) -> None:
        self.capability_flags = int(value)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self) -> str:
        return f"<SellerNode id={self.id} event_id={self.event_id} parent_id={self.parent_id} allocated={self.allocated_tickets}>"

    def commission_to_dict(self) -> dict:
        data = {"type": self.commission_type, "value": self.commission_value}
        if self.commission_type == COMMISSION_PERCENTAGE:
            data["percent"] = bps_to_percent(self.commission_value)
        return data

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "parent_id": self.parent_id,
            "user_id": self.user_id,
            "name": self.name,
            "role": self.role,
            "depth": self.depth,
            "referral_code": self.referral_code,
            "allocated_tickets": self.allocated_tickets,
            "max_sub_sellers": self.max_sub_sellers,
            "commission": self.commission_to_dict(),
            "capabilities": self.capabilities.names(),
            "is_active": self.is_active,
            "settlement_status": self.settlement_status,
            "settlement_paid_at": to_utc_z(self.settlement_paid_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class StaffTransfer(db.Model):
    """
    Request to move part of one node's allocation to a sibling node.

    While PENDING (and unexpired) the quantity is reserved on the sender: it
    cannot be sold, delegated or transferred again. Accepting moves the
    allocation; the shared parent's delegated total does not change.
    """
    __tablename__ = "staff_transfers"
    __table_args__ = (
        db.Index("ix_staff_transfers_from_status", "from_seller_id", "status"),
        db.Index("ix_staff_transfers_to_status", "to_seller_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False, index=True)
    from_seller_id = db.Column(db.Integer, db.ForeignKey("seller_nodes.id"), nullable=False)
    to_seller_id = db.Column(db.Integer, db.ForeignKey("seller_nodes.id"), nullable=False)
    ticket_quantity = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=TRANSFER_PENDING)
    reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    responded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Allocation snapshots, filled in on accept
    from_balance_before = db.Column(db.Integer, nullable=True)
    from_balance_after = db.Column(db.Integer, nullable=True)
    to_balance_before = db.Column(db.Integer, nullable=True)
    to_balance_after = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StaffTransfer id={self.id} from={self.from_seller_id} to={self.to_seller_id} "
            f"qty={self.ticket_quantity} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "from_seller_id": self.from_seller_id,
            "to_seller_id": self.to_seller_id,
            "ticket_quantity": self.ticket_quantity,
            "status": self.status,
            "reason": self.reason,
            "notes": self.notes,
            "rejection_reason": self.rejection_reason,
            "requested_by_user_id": self.requested_by_user_id,
            "responded_by_user_id": self.responded_by_user_id,
            "requested_at": to_utc_z(self.requested_at),
            "expires_at": to_utc_z(self.expires_at),
            "responded_at": to_utc_z(self.responded_at),
            "from_balance_before": self.from_balance_before,
            "from_balance_after": self.from_balance_after,
            "to_balance_before": self.to_balance_before,
            "to_balance_after": self.to_balance_after,
        }
