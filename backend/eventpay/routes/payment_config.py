# Overview: Flask API routes for payment model configuration and fees; parses input and returns JSON responses.

"""
Payment Model Configuration API Routes

- Select an event's payment model (PREPAY, CREDIT_CARD, CONSIGNMENT), once
- Deactivate, apply the low-price discount, change payment methods
- Order fee calculation against the event's stored parameters
- Fee preview for a ticket price before any config exists

SECURITY:
- Every route requires a bearer session
- Mutations require the event's organizer or a platform admin
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError, ValidationError
from ..permissions import require_event_owner
from ..services import audit_service, fee_service, payment_config_service
from ..decorators import require_auth
from ..utils import parse_iso_datetime


payment_config_bp = Blueprint("payment_config", __name__, url_prefix="/api/payment-config")


def _parse_due_date(data: dict):
    try:
        return parse_iso_datetime(data.get("settlement_due_at"))
    except (TypeError, ValueError):
        raise ValidationError("settlement_due_at must be an ISO-8601 datetime")


def _parse_bool_arg(name: str) -> bool:
    return request.args.get(name, "false").lower() in ("1", "true", "yes")


# =============================================================================
# SELECTION
# =============================================================================

@payment_config_bp.post("/events/<int:event_id>")
@require_auth
def select_model_route(event_id: int):
    """
    Select the payment model for an event.

    Request body:
    {
        "model": "PREPAY" | "CREDIT_CARD" | "CONSIGNMENT",
        "tickets_allocated": 100,          (PREPAY)
        "charity_discount": false,         (CREDIT_CARD)
        "floated_tickets": 100,            (CONSIGNMENT)
        "settlement_due_at": "2026-12-01T00:00:00Z"  (CONSIGNMENT, optional)
    }

    Returns:
        201: {config_id, config}
        400: Invalid input
        403: Not the event organizer
        409: Already configured
        422: Insufficient credits
        424: Payment processor onboarding incomplete
    """
    try:
        data = request.get_json(silent=True) or {}

        model = data.get("model")
        if not model:
            return jsonify({"error": "VALIDATION_ERROR", "message": "model required"}), 400

        config = payment_config_service.select_model(
            event_id,
            model,
            caller=g.current_user,
            tickets_allocated=data.get("tickets_allocated"),
            charity_discount=bool(data.get("charity_discount", False)),
            floated_tickets=data.get("floated_tickets"),
            settlement_due_at=_parse_due_date(data),
        )

        return jsonify({"config_id": config.id, "config": config.to_dict()}), 201

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to select payment model")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@payment_config_bp.get("/events/<int:event_id>")
@require_auth
def get_config_route(event_id: int):
    try:
        config = payment_config_service.require_config(event_id)
        return jsonify({"config": config.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load payment config")
        return jsonify({"error": "Internal server error"}), 500


@payment_config_bp.get("/events/<int:event_id>/status")
@require_auth
def config_status_route(event_id: int):
    """Returns {has_config, is_active, model}."""
    try:
        payment_config_service.get_event(event_id)
        return jsonify(payment_config_service.has_payment_configured(event_id)), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load payment config status")
        return jsonify({"error": "Internal server error"}), 500


@payment_config_bp.get("/mine")
@require_auth
def list_my_configs_route():
    try:
        configs = payment_config_service.list_organizer_configs(g.current_user.id)
        return jsonify({"configs": [c.to_dict() for c in configs]}), 200
    except Exception:
        current_app.logger.exception("Failed to list payment configs")
        return jsonify({"error": "Internal server error"}), 500


@payment_config_bp.get("/events/<int:event_id>/audit")
@require_auth
def audit_trail_route(event_id: int):
    """Audit trail of config mutations (organizer or admin)."""
    try:
        event = payment_config_service.get_event(event_id)
        require_event_owner(g.current_user, event)
        events = audit_service.list_audit_events(event_id, action=request.args.get("action"))
        return jsonify({"events": [ev.to_dict() for ev in events]}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load payment audit trail")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# MUTATIONS
# =============================================================================

@payment_config_bp.post("/events/<int:event_id>/deactivate")
@require_auth
def deactivate_route(event_id: int):
    try:
        config = payment_config_service.deactivate(event_id, caller=g.current_user)
        return jsonify({"config": config.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate payment model")
        return jsonify({"error": "Internal server error"}), 500


@payment_config_bp.post("/events/<int:event_id>/low-price-discount")
@require_auth
def low_price_discount_route(event_id: int):
    """Halve the default platform fees (CREDIT_CARD only)."""
    try:
        config = payment_config_service.apply_low_price_discount(event_id, caller=g.current_user)
        return jsonify({"config": config.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply low-price discount")
        return jsonify({"error": "Internal server error"}), 500


@payment_config_bp.patch("/events/<int:event_id>/payment-methods")
@require_auth
def update_payment_methods_route(event_id: int):
    """
    Request body:
    {
        "merchant_processor": "STRIPE" | "SQUARE" | "PAYPAL",
        "credit_card_enabled": true,
        "cash_app_enabled": false
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        config = payment_config_service.update_payment_methods(
            event_id,
            caller=g.current_user,
            merchant_processor=data.get("merchant_processor"),
            credit_card_enabled=data.get("credit_card_enabled", False),
            cash_app_enabled=data.get("cash_app_enabled", False),
        )
        return jsonify({"config": config.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update payment methods")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# FEES
# =============================================================================

@payment_config_bp.post("/events/<int:event_id>/fees")
@require_auth
def order_fees_route(event_id: int):
    """
    Request body: {"subtotal_cents": 10000}

    Returns the fee breakdown in integer cents.
    """
    try:
        data = request.get_json(silent=True) or {}
        breakdown = payment_config_service.calculate_order_fees(event_id, data.get("subtotal_cents"))
        return jsonify(breakdown.to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to calculate order fees")
        return jsonify({"error": "Internal server error"}), 500


@payment_config_bp.get("/fees/preview")
@require_auth
def preview_fees_route():
    """
    Query: ticket_price_cents, model, charity, low_price
    """
    try:
        price = request.args.get("ticket_price_cents", type=int)
        if price is None:
            return jsonify({"error": "VALIDATION_ERROR", "message": "ticket_price_cents required"}), 400

        preview = fee_service.preview_fees(
            price,
            request.args.get("model", ""),
            charity=_parse_bool_arg("charity"),
            low_price=_parse_bool_arg("low_price"),
        )
        return jsonify(preview), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to preview fees")
        return jsonify({"error": "Internal server error"}), 500
