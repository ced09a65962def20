# Overview: Model registry for the EventPay schema.

from .accounts import User, SessionToken, OrganizerCredits
from .events import Event, TicketTier, Ticket
from .payments import PaymentModelConfig, PaymentAuditEvent
from .sellers import SellerNode, Capability, StaffTransfer

__all__ = [
    'User', 'SessionToken', 'OrganizerCredits',
    'Event', 'TicketTier', 'Ticket',
    'PaymentModelConfig', 'PaymentAuditEvent',
    'SellerNode', 'Capability', 'StaffTransfer',
]
