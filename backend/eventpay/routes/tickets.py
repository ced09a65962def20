# Overview: Flask API routes for the ticket ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..permissions import require_event_owner
from ..services import ledger_service, payment_config_service
from ..decorators import require_auth


tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")


@tickets_bp.post("/events/<int:event_id>/purchase")
@require_auth
def purchase_ticket_route(event_id: int):
    """
    Buy one ticket directly (no seller attribution).

    Request body:
    {
        "tier_id": 1,
        "payment_method": "ONLINE",   (optional)
        "pending": false              (optional; PENDING until activated)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        kwargs = {}
        if data.get("payment_method"):
            kwargs["payment_method"] = data["payment_method"]
        ticket = ledger_service.purchase_ticket(
            event_id,
            data.get("tier_id"),
            caller=g.current_user,
            pending=bool(data.get("pending", False)),
            **kwargs,
        )
        return jsonify({"ticket": ticket.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to purchase ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.get("/code/<string:ticket_code>")
@require_auth
def get_ticket_route(ticket_code: str):
    try:
        ticket = ledger_service.get_ticket_by_code(ticket_code)
        return jsonify({"ticket": ticket.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load ticket")
        return jsonify({"error": "Internal server error"}), 500


@tickets_bp.get("/events/<int:event_id>/summary")
@require_auth
def sales_summary_route(event_id: int):
    """Counted tickets and revenue in cents (organizer or admin)."""
    try:
        require_event_owner(g.current_user, payment_config_service.get_event(event_id))
        return jsonify(ledger_service.summarize_sales(event_id).to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to summarize sales")
        return jsonify({"error": "Internal server error"}), 500


_TRANSITION_HANDLERS = {
    "activate": ledger_service.activate_ticket,
    "cancel": ledger_service.cancel_ticket,
    "refund": ledger_service.refund_ticket,
}


@tickets_bp.post("/<int:ticket_id>/<string:action>")
@require_auth
def transition_ticket_route(ticket_id: int, action: str):
    """activate (PENDING->VALID), cancel, refund; organizer or admin."""
    handler = _TRANSITION_HANDLERS.get(action)
    if handler is None:
        return jsonify({"error": "NOT_FOUND", "message": f"Unknown ticket action: {action}"}), 404
    try:
        ticket = handler(ticket_id, caller=g.current_user)
        return jsonify({"ticket": ticket.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to %s ticket", action)
        return jsonify({"error": "Internal server error"}), 500
