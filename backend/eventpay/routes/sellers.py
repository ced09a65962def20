# Overview: Flask API routes for the seller hierarchy; parses input and returns JSON responses.

"""
Seller Hierarchy API Routes

- Root allocation, sub-seller delegation, staff shortcut
- Allocation and capability changes
- Tree, capacity and earnings queries
- Sales and door scans on behalf of a node
- Staff settlement summary and payout status
- Staff ticket transfers between sibling sellers
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError, ValidationError
from ..permissions import require_node_actor
from ..services import seller_service, staff_service
from ..decorators import require_auth
from ..utils import percent_to_bps


sellers_bp = Blueprint("sellers", __name__, url_prefix="/api/sellers")

_ASSIGN_FIELDS = (
    "allocated_tickets",
    "commission_type",
    "commission_value",
    "role",
    "capabilities",
    "user_id",
    "max_sub_sellers",
)


def _assignment_kwargs(data: dict) -> dict:
    kwargs = {k: data[k] for k in _ASSIGN_FIELDS if k in data}
    commission = data.get("commission")
    if isinstance(commission, dict):
        kwargs.setdefault("commission_type", commission.get("type"))
        if "percent" in commission:
            # {"type": "PERCENTAGE", "percent": "12.5"} -> 1250 bps
            try:
                kwargs.setdefault("commission_value", percent_to_bps(commission["percent"]))
            except ValueError as e:
                raise ValidationError(str(e))
        else:
            kwargs.setdefault("commission_value", commission.get("value"))
    return kwargs


# =============================================================================
# TREE CONSTRUCTION
# =============================================================================

@sellers_bp.post("/events/<int:event_id>/root")
@require_auth
def create_root_route(event_id: int):
    """
    Request body: {"allocated_tickets": 500, "name": "...", "max_sub_sellers": 10}
    """
    try:
        data = request.get_json(silent=True) or {}
        root = seller_service.create_root_allocation(
            event_id,
            data.get("allocated_tickets"),
            caller=g.current_user,
            name=data.get("name"),
            max_sub_sellers=data.get("max_sub_sellers"),
        )
        return jsonify({"seller": root.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create root allocation")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.post("/<int:parent_id>/sub-sellers")
@require_auth
def assign_sub_seller_route(parent_id: int):
    """
    Request body:
    {
        "name": "Jordan",
        "allocated_tickets": 40,
        "commission": {"type": "FIXED" | "PERCENTAGE", "value": 150},
        "role": "ASSOCIATE",                 (optional)
        "capabilities": ["SELL", "SCAN"],    (optional, defaults by role)
        "user_id": 12,                       (optional)
        "max_sub_sellers": 3                 (optional)
    }

    FIXED commission values are cents per ticket; PERCENTAGE values are
    basis points (1000 = 10%).

    Returns:
        201: {seller_id, seller}
        403: Delegation not permitted
        422: Capacity exceeded, sub-seller limit, depth limit
    """
    try:
        data = request.get_json(silent=True) or {}
        child = seller_service.assign_sub_seller(
            parent_id,
            caller=g.current_user,
            name=data.get("name"),
            **_assignment_kwargs(data),
        )
        return jsonify({"seller_id": child.id, "seller": child.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign sub-seller")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.post("/events/<int:event_id>/staff")
@require_auth
def add_staff_route(event_id: int):
    """Same body as sub-seller assignment; attaches under the event's root."""
    try:
        data = request.get_json(silent=True) or {}
        staff = seller_service.add_staff(
            event_id,
            caller=g.current_user,
            name=data.get("name"),
            **_assignment_kwargs(data),
        )
        return jsonify({"seller_id": staff.id, "seller": staff.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add staff")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.patch("/<int:node_id>/allocation")
@require_auth
def reassign_allocation_route(node_id: int):
    try:
        data = request.get_json(silent=True) or {}
        node = seller_service.reassign_allocation(node_id, data.get("allocated_tickets"), caller=g.current_user)
        return jsonify({"seller": node.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reassign allocation")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.put("/<int:node_id>/capabilities")
@require_auth
def update_capabilities_route(node_id: int):
    """Request body: {"capabilities": ["SCAN"]}"""
    try:
        data = request.get_json(silent=True) or {}
        node = seller_service.update_capabilities(node_id, data.get("capabilities") or [], caller=g.current_user)
        return jsonify({"seller": node.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update capabilities")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@sellers_bp.get("/events/<int:event_id>/tree")
@require_auth
def get_tree_route(event_id: int):
    try:
        tree = seller_service.get_tree(event_id)
        if tree is None:
            return jsonify({"error": "SELLER_NOT_FOUND", "message": f"Event {event_id} has no seller tree"}), 404
        return jsonify({"tree": tree}), 200
    except Exception:
        current_app.logger.exception("Failed to load seller tree")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.get("/<int:node_id>")
@require_auth
def get_seller_route(node_id: int):
    try:
        node = seller_service.get_node(node_id)
        return jsonify({
            "seller": node.to_dict(),
            "capacity": seller_service.capacity_summary(node_id),
        }), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load seller")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.get("/<int:node_id>/earnings")
@require_auth
def earnings_route(node_id: int):
    """Commission on the node's own sales, in cents."""
    try:
        node = seller_service.get_node(node_id)
        require_node_actor(g.current_user, node, seller_service.get_event(node.event_id))
        return jsonify({"seller_id": node_id, "earnings_cents": seller_service.compute_earnings(node_id)}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute earnings")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.get("/events/<int:event_id>/staff-settlement")
@require_auth
def staff_settlement_route(event_id: int):
    try:
        rows = seller_service.staff_settlement(event_id, caller=g.current_user)
        return jsonify({"sellers": rows}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build staff settlement")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SALES AND SCANS
# =============================================================================

@sellers_bp.post("/<int:node_id>/sales")
@require_auth
def sell_ticket_route(node_id: int):
    """Request body: {"tier_id": 1, "payment_method": "CASH"}"""
    try:
        data = request.get_json(silent=True) or {}
        kwargs = {}
        if data.get("payment_method"):
            kwargs["payment_method"] = data["payment_method"]
        ticket = seller_service.sell_ticket(
            node_id,
            data.get("tier_id"),
            caller=g.current_user,
            buyer_user_id=data.get("buyer_user_id"),
            **kwargs,
        )
        return jsonify({"ticket": ticket.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sell ticket")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.post("/<int:node_id>/scans")
@require_auth
def scan_ticket_route(node_id: int):
    """Request body: {"ticket_code": "A1B2C3D4E5F6"}"""
    try:
        data = request.get_json(silent=True) or {}
        ticket = seller_service.scan_ticket_as(node_id, data.get("ticket_code"), caller=g.current_user)
        return jsonify({"ticket": ticket.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to scan ticket")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# STAFF PAYOUTS
# =============================================================================

@sellers_bp.post("/<int:node_id>/settlement/paid")
@require_auth
def mark_settlement_paid_route(node_id: int):
    """Request body: {"notes": "Cash handed over at close"}"""
    try:
        data = request.get_json(silent=True) or {}
        node = staff_service.mark_settlement_paid(node_id, caller=g.current_user, notes=data.get("notes"))
        return jsonify({"seller": node.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark settlement paid")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.post("/<int:node_id>/settlement/pending")
@require_auth
def mark_settlement_pending_route(node_id: int):
    try:
        node = staff_service.mark_settlement_pending(node_id, caller=g.current_user)
        return jsonify({"seller": node.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark settlement pending")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# STAFF TRANSFERS
# =============================================================================

@sellers_bp.post("/<int:node_id>/transfers")
@require_auth
def request_transfer_route(node_id: int):
    """
    Request body:
    {
        "to_seller_id": 7,
        "ticket_quantity": 10,
        "reason": "...",     (optional)
        "notes": "..."       (optional)
    }

    Returns:
        201: {transfer}
        400: Not a sibling, same seller, bad quantity
        422: Sender lacks available tickets
    """
    try:
        data = request.get_json(silent=True) or {}
        transfer = staff_service.request_transfer(
            node_id,
            data.get("to_seller_id"),
            data.get("ticket_quantity"),
            caller=g.current_user,
            reason=data.get("reason"),
            notes=data.get("notes"),
        )
        return jsonify({"transfer": transfer.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request transfer")
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.post("/transfers/<int:transfer_id>/<string:action>")
@require_auth
def respond_transfer_route(transfer_id: int, action: str):
    """accept | reject (body: {"reason": "..."}) | cancel"""
    try:
        data = request.get_json(silent=True) or {}
        if action == "accept":
            transfer = staff_service.accept_transfer(transfer_id, caller=g.current_user)
        elif action == "reject":
            transfer = staff_service.reject_transfer(transfer_id, caller=g.current_user, reason=data.get("reason"))
        elif action == "cancel":
            transfer = staff_service.cancel_transfer(transfer_id, caller=g.current_user)
        else:
            return jsonify({"error": "NOT_FOUND", "message": f"Unknown transfer action: {action}"}), 404
        return jsonify({"transfer": transfer.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update transfer %s", transfer_id)
        return jsonify({"error": "Internal server error"}), 500


@sellers_bp.get("/events/<int:event_id>/transfers")
@require_auth
def list_transfers_route(event_id: int):
    """Query params: seller_id (optional), status (optional)"""
    try:
        transfers = staff_service.list_transfers(
            event_id,
            caller=g.current_user,
            seller_id=request.args.get("seller_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list transfers")
        return jsonify({"error": "Internal server error"}), 500
