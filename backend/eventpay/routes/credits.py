# Overview: Flask API routes for organizer prepaid credits; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..models.accounts import ROLE_ADMIN
from ..services import credit_service
from ..decorators import require_auth, require_role


credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


@credits_bp.get("/")
@require_auth
def my_credits_route():
    try:
        account = credit_service.get_credit_account(g.current_user.id)
        if account is None:
            return jsonify({
                "organizer_id": g.current_user.id,
                "credits_total": 0,
                "credits_used": 0,
                "credits_remaining": 0,
            }), 200
        return jsonify(account.to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to load credits")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.post("/organizers/<int:organizer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def add_credits_route(organizer_id: int):
    """
    Grant credits to an organizer.

    Request body: {"amount": 100}

    Available to: admin
    """
    try:
        data = request.get_json(silent=True) or {}
        account = credit_service.add_credits(organizer_id, data.get("amount"), actor=g.current_user)
        return jsonify(account.to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add credits")
        return jsonify({"error": "Internal server error"}), 500
