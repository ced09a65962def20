# Overview: Flask API routes for consignment setup and settlement; parses input and returns JSON responses.

"""
Consignment API Routes

- Set up or adjust a consignment float
- Preview the settlement snapshot (read-only, any time)
- Settle once; a second settle is rejected with 409 ALREADY_SETTLED
- List consignment events (admins see all, organizers their own)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError, ValidationError
from ..permissions import require_event_owner
from ..services import payment_config_service, settlement_service
from ..decorators import require_auth
from ..utils import parse_iso_datetime, to_utc_z


consignment_bp = Blueprint("consignment", __name__, url_prefix="/api/consignment")


@consignment_bp.post("/events/<int:event_id>/setup")
@require_auth
def setup_consignment_route(event_id: int):
    """
    Request body:
    {
        "floated_tickets": 100,
        "settlement_due_at": "2026-12-01T00:00:00Z"  (optional, defaults to event start)
    }

    Returns:
        200: {success, floated_tickets, settlement_due}
        409: Another model selected, or already settled
    """
    try:
        data = request.get_json(silent=True) or {}
        try:
            due_at = parse_iso_datetime(data.get("settlement_due_at"))
        except (TypeError, ValueError):
            raise ValidationError("settlement_due_at must be an ISO-8601 datetime")

        config = payment_config_service.setup_consignment(
            event_id,
            data.get("floated_tickets"),
            caller=g.current_user,
            settlement_due_at=due_at,
        )
        return jsonify({
            "success": True,
            "floated_tickets": config.floated_tickets,
            "settlement_due": to_utc_z(config.settlement_due_at),
        }), 200

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set up consignment")
        return jsonify({"error": "Internal server error"}), 500


@consignment_bp.get("/events/<int:event_id>/settlement")
@require_auth
def preview_settlement_route(event_id: int):
    """Live settlement snapshot; never writes."""
    try:
        require_event_owner(g.current_user, payment_config_service.get_event(event_id))
        snapshot = settlement_service.preview_settlement(event_id)
        return jsonify(snapshot.to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to calculate settlement")
        return jsonify({"error": "Internal server error"}), 500


@consignment_bp.post("/events/<int:event_id>/settle")
@require_auth
def settle_route(event_id: int):
    """
    Request body: {"notes": "..."} (optional)

    Returns:
        200: {settlement_amount_cents, tickets_sold, total_revenue_cents, total_fees_cents}
        409: Already settled, or not a consignment event
    """
    try:
        data = request.get_json(silent=True) or {}
        snapshot = settlement_service.settle(event_id, caller=g.current_user, notes=data.get("notes"))
        return jsonify({
            "settlement_amount_cents": snapshot.settlement_amount_cents,
            "tickets_sold": snapshot.sold_tickets,
            "total_revenue_cents": snapshot.total_revenue_cents,
            "total_fees_cents": snapshot.total_platform_fee_cents,
            "settled_at": to_utc_z(snapshot.settled_at),
        }), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle consignment")
        return jsonify({"error": "Internal server error"}), 500


@consignment_bp.get("/events")
@require_auth
def list_consignment_events_route():
    try:
        organizer_id = request.args.get("organizer_id", type=int)
        events = settlement_service.list_consignment_events(caller=g.current_user, organizer_id=organizer_id)
        return jsonify({"events": events}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list consignment events")
        return jsonify({"error": "Internal server error"}), 500
