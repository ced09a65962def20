# Overview: Business error taxonomy raised by services and rendered by routes.

"""
Engine errors

Every rejection the engine produces is an EngineError subclass. Services
raise them; routes render them with to_dict() and status_code. None of them
are retried: they are business-rule rejections, not infrastructure failures.

Families:
- AuthorizationError: caller lacks rights over the event or node
- StateConflictError: precondition violated; caller should refresh state
- CapacityError: aggregate limit exceeded; carries the computed shortfall
- DependencyError: an external prerequisite is not met
- NotFoundError: referenced entity does not exist
"""

from __future__ import annotations


class EngineError(Exception):
    code = "ENGINE_ERROR"
    status_code = 400

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class ValidationError(EngineError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    status_code = 400


# =============================================================================
# AUTHORIZATION
# =============================================================================

class AuthenticationRequired(EngineError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401


class AuthorizationError(EngineError):
    code = "FORBIDDEN"
    status_code = 403


class Unauthorized(AuthorizationError):
    code = "UNAUTHORIZED"


class NotEventOwner(AuthorizationError):
    code = "NOT_EVENT_OWNER"


class CapabilityDenied(AuthorizationError):
    code = "CAPABILITY_DENIED"


class DelegationNotPermitted(AuthorizationError):
    code = "DELEGATION_NOT_PERMITTED"


# =============================================================================
# STATE CONFLICTS
# =============================================================================

class StateConflictError(EngineError):
    code = "STATE_CONFLICT"
    status_code = 409


class AlreadyConfigured(StateConflictError):
    code = "ALREADY_CONFIGURED"


class AlreadySettled(StateConflictError):
    code = "ALREADY_SETTLED"


class WrongPaymentModel(StateConflictError):
    code = "WRONG_PAYMENT_MODEL"


class PaymentModelInactive(StateConflictError):
    code = "PAYMENT_MODEL_INACTIVE"


class TicketsNotOnSale(StateConflictError):
    code = "TICKETS_NOT_ON_SALE"


class InvalidTicketTransition(StateConflictError):
    code = "INVALID_TICKET_TRANSITION"


class MissingTicketTier(StateConflictError):
    """A counted ticket references a tier that no longer exists."""
    code = "MISSING_TICKET_TIER"


class TransferNotPending(StateConflictError):
    code = "TRANSFER_NOT_PENDING"


class TransferExpired(StateConflictError):
    code = "TRANSFER_EXPIRED"


# =============================================================================
# CAPACITY
# =============================================================================

class CapacityError(EngineError):
    code = "CAPACITY_ERROR"
    status_code = 422

    def __init__(self, message: str | None = None, *, requested: int, available: int, **details):
        super().__init__(
            message,
            requested=requested,
            available=available,
            shortfall=max(requested - available, 0),
            **details,
        )
        self.requested = requested
        self.available = available
        self.shortfall = max(requested - available, 0)


class InsufficientCredits(CapacityError):
    code = "INSUFFICIENT_CREDITS"


class CapacityExceeded(CapacityError):
    code = "CAPACITY_EXCEEDED"


class TierSoldOut(CapacityError):
    code = "TIER_SOLD_OUT"


class SubSellerLimitReached(CapacityError):
    code = "SUB_SELLER_LIMIT_REACHED"


class HierarchyDepthExceeded(EngineError):
    code = "HIERARCHY_DEPTH_EXCEEDED"
    status_code = 422


# =============================================================================
# DEPENDENCIES
# =============================================================================

class DependencyError(EngineError):
    code = "DEPENDENCY_ERROR"
    status_code = 424


class PaymentSetupIncomplete(DependencyError):
    code = "PAYMENT_SETUP_INCOMPLETE"

    def __init__(self, message: str | None = None, **details):
        details.setdefault(
            "guidance",
            "Finish onboarding your payment processor account, then select the model again.",
        )
        super().__init__(message, **details)


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(EngineError):
    code = "NOT_FOUND"
    status_code = 404


class EventNotFound(NotFoundError):
    code = "EVENT_NOT_FOUND"


class ConfigNotFound(NotFoundError):
    code = "CONFIG_NOT_FOUND"


class SellerNotFound(NotFoundError):
    code = "SELLER_NOT_FOUND"


class TicketNotFound(NotFoundError):
    code = "TICKET_NOT_FOUND"


class TierNotFound(NotFoundError):
    code = "TIER_NOT_FOUND"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"


class TransferNotFound(NotFoundError):
    code = "TRANSFER_NOT_FOUND"
