# Overview: Shared authorization checks for events and seller nodes.

"""
Authorization

All mutating operations require a resolved caller. There is no anonymous
path and no testing bypass.

- Event ownership: the organizer who owns the event, or a platform admin.
- Node capabilities: one check, require_capability(), used at the point of
  sale, scan and delegation. Capabilities are read at the moment of the
  attempt, so revoking one takes effect immediately.
"""

from __future__ import annotations

from .errors import AuthenticationRequired, CapabilityDenied, NotEventOwner, Unauthorized
from .models import Capability, Event, SellerNode, User


def require_caller(caller: User | None) -> User:
    if caller is None:
        raise AuthenticationRequired("Authentication required")
    if not caller.is_active:
        raise Unauthorized("User account is inactive")
    return caller


def is_event_owner(caller: User, event: Event) -> bool:
    return caller.is_admin or event.organizer_id == caller.id


def require_event_owner(caller: User | None, event: Event) -> User:
    caller = require_caller(caller)
    if not is_event_owner(caller, event):
        raise NotEventOwner(f"Only the organizer of event {event.id} can do this")
    return caller


def require_capability(node: SellerNode, capability: Capability, *, error=CapabilityDenied) -> None:
    """Raise error (CapabilityDenied unless the caller names a narrower one)."""
    if not node.is_active:
        raise error(f"Seller {node.id} is inactive", seller_id=node.id)
    if capability not in node.capabilities:
        raise error(
            f"Seller {node.id} lacks the {capability.name} capability",
            seller_id=node.id,
            capability=capability.name,
        )


def can_act_as_node(caller: User, node: SellerNode, event: Event) -> bool:
    """The node's own user, the event owner, or an admin."""
    return is_event_owner(caller, event) or (node.user_id is not None and node.user_id == caller.id)


def require_node_actor(caller: User | None, node: SellerNode, event: Event) -> User:
    caller = require_caller(caller)
    if not can_act_as_node(caller, node, event):
        raise Unauthorized(f"Not authorized to act for seller {node.id}")
    return caller
