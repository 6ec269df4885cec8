# Overview: Flask API routes for point charge (top-up) requests.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ExchangeError
from ..services import charge_request_service
from ..decorators import require_auth, require_admin


charge_requests_bp = Blueprint("charge_requests", __name__, url_prefix="/api/point-charge-requests")


@charge_requests_bp.post("")
@require_auth
def create_charge_request_route():
    """
    File a top-up request after paying out of band.

    Body: {"amount": number, "description"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        amount = data.get("amount")
        if amount in (None, ""):
            return jsonify({"success": False, "error": "amount required"}), 400

        charge_request = charge_request_service.create_charge_request(
            g.current_user.id,
            amount,
            description=data.get("description"),
        )
        return jsonify({"success": True, "charge_request": charge_request.to_dict()}), 201

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create point charge request")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@charge_requests_bp.get("")
@require_auth
def list_charge_requests_route():
    try:
        user = g.current_user
        user_id = request.args.get("user_id", type=int) if user.is_admin else user.id
        rows = charge_request_service.list_charge_requests(
            user_id=user_id,
            status=request.args.get("status"),
        )
        return jsonify({"success": True, "charge_requests": [r.to_dict() for r in rows]}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status


@charge_requests_bp.post("/<int:request_id>")
@require_auth
@require_admin
def review_charge_request_route(request_id: int):
    """
    Approve (charge the points) or reject a pending request.

    Body: {"action": "approve" | "reject", "adminNotes"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        action = data.get("action")
        if not action:
            return jsonify({"success": False, "error": "action required"}), 400

        charge_request = charge_request_service.review_charge_request(
            request_id,
            action,
            g.current_user.id,
            admin_notes=data.get("adminNotes"),
        )
        return jsonify({"success": True, "charge_request": charge_request.to_dict()}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to review point charge request %s", request_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500
