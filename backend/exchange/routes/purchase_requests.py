# Overview: Flask API routes for purchase requests; parses input and returns JSON responses.

"""
Purchase request API

The approve route is the entry point of the order fulfillment workflow.
Admin role is enforced by the decorator and again inside the service.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ExchangeError
from ..services import fulfillment_service, purchase_request_service
from ..decorators import require_auth, require_admin, actor_matches


purchase_requests_bp = Blueprint("purchase_requests", __name__, url_prefix="/api/purchase-requests")


@purchase_requests_bp.post("")
@require_auth
def create_purchase_request_route():
    """Buyer creates a pending purchase request."""
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        quantity = data.get("quantity")

        if not all([product_id, quantity]):
            return jsonify({"success": False, "error": "product_id and quantity required"}), 400

        purchase_request = purchase_request_service.create_purchase_request(
            buyer_id=g.current_user.id,
            product_id=product_id,
            quantity=quantity,
            shipping_address=data.get("shipping_address"),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "purchase_request": purchase_request.to_dict()}), 201

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create purchase request")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@purchase_requests_bp.get("")
@require_auth
def list_purchase_requests_route():
    """
    Admins see every request (optionally filtered by status).
    Other users see requests they made, or with ?as=seller, requests
    against their listings.
    """
    try:
        status = request.args.get("status")
        user = g.current_user
        if user.is_admin:
            rows = purchase_request_service.list_purchase_requests(status=status)
        elif request.args.get("as") == "seller":
            rows = purchase_request_service.list_purchase_requests(status=status, seller_id=user.id)
        else:
            rows = purchase_request_service.list_purchase_requests(status=status, buyer_id=user.id)
        return jsonify({"success": True, "purchase_requests": [r.to_dict() for r in rows]}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status


@purchase_requests_bp.get("/<int:purchase_request_id>")
@require_auth
def get_purchase_request_route(purchase_request_id: int):
    try:
        purchase_request = purchase_request_service.get_purchase_request(purchase_request_id)
    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status

    user = g.current_user
    seller_id = purchase_request.product.seller_id if purchase_request.product else None
    if not (user.is_admin or user.id in (purchase_request.buyer_id, seller_id)):
        return jsonify({"success": False, "error": "Purchase request not found"}), 404

    return jsonify({"success": True, "purchase_request": purchase_request.to_dict()}), 200


@purchase_requests_bp.post("/<int:purchase_request_id>/approve")
@require_auth
@require_admin
def review_purchase_request_route(purchase_request_id: int):
    """
    Approve or reject a purchase request.

    Body: {"status": "approved" | "rejected", "adminUserId"?: int}
    """
    try:
        data = request.get_json(silent=True) or {}
        decision = data.get("status")

        if not decision:
            return jsonify({"success": False, "error": "status required"}), 400
        if not actor_matches(data.get("adminUserId")):
            return jsonify({"success": False, "error": "adminUserId does not match the authenticated user"}), 403

        result = fulfillment_service.review_purchase_request(
            purchase_request_id,
            decision,
            g.current_user.id,
        )
        return jsonify(result.to_dict()), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to review purchase request %s", purchase_request_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500


@purchase_requests_bp.post("/<int:purchase_request_id>/cancel")
@require_auth
def cancel_purchase_request_route(purchase_request_id: int):
    try:
        purchase_request = purchase_request_service.cancel_purchase_request(purchase_request_id, g.current_user.id)
        return jsonify({"success": True, "purchase_request": purchase_request.to_dict()}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel purchase request %s", purchase_request_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500
