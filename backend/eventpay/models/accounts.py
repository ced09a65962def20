# Overview: User accounts, bearer sessions and organizer credits.

from __future__ import annotations

from ..extensions import db
from ..utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_ORGANIZER = "organizer"
ROLE_USER = "user"

VALID_ROLES = [ROLE_ADMIN, ROLE_ORGANIZER, ROLE_USER]


class User(db.Model):
    """
    Resolved caller identity.

    Identity itself is established elsewhere; the engine only needs to know
    who is calling, whether they are a platform admin, and whether their
    external payment processor account finished onboarding.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_USER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # External processor onboarding (CREDIT_CARD model prerequisite)
    payment_account_id = db.Column(db.String(128), nullable=True)
    payment_setup_complete = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "payment_account_id": self.payment_account_id,
            "payment_setup_complete": self.payment_setup_complete,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """Bearer session. Only the SHA-256 hash of the token is stored."""
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))


class OrganizerCredits(db.Model):
    """
    Prepaid ticket credits for an organizer (PREPAY model).

    One credit covers one ticket. credits_remaining is derived, never stored.
    """
    __tablename__ = "organizer_credits"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    organizer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)
    credits_total = db.Column(db.Integer, nullable=False, default=0)
    credits_used = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organizer = db.relationship("User")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def credits_remaining(self) -> int:
        return (self.credits_total or 0) - (self.credits_used or 0)

    def to_dict(self) -> dict:
        return {
            "organizer_id": self.organizer_id,
            "credits_total": self.credits_total,
            "credits_used": self.credits_used,
            "credits_remaining": self.credits_remaining,
            "updated_at": to_utc_z(self.updated_at),
        }
