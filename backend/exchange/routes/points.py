# Overview: Flask API routes for point balances, ledger history and admin movements.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ExchangeError, ValidationError
from ..money import format_amount
from ..services import points_service
from ..decorators import require_auth, require_admin
from ..time_utils import parse_iso_date


points_bp = Blueprint("points", __name__, url_prefix="/api/points")


def _int_field(value, field: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _target_user_id() -> int:
    """Admins may look at any user via ?user_id=; everyone else sees themselves."""
    user = g.current_user
    if user.is_admin:
        return request.args.get("user_id", type=int) or user.id
    return user.id


@points_bp.get("/balance")
@require_auth
def balance_route():
    user_id = _target_user_id()
    return jsonify({
        "success": True,
        "data": {"userId": user_id, "balance": format_amount(points_service.get_balance(user_id))},
    }), 200


@points_bp.get("/transactions")
@require_auth
def transactions_route():
    """Ledger history, newest first. Optional startDate/endDate (ISO dates) and type."""
    try:
        try:
            start = parse_iso_date(request.args.get("startDate"))
            end = parse_iso_date(request.args.get("endDate"), end_of_day=True)
        except ValueError:
            raise ValidationError("startDate/endDate must be ISO-8601 dates")

        user_id = _target_user_id()
        rows = points_service.list_transactions(
            user_id,
            start=start,
            end=end,
            transaction_type=request.args.get("type"),
        )
        return jsonify({
            "success": True,
            "data": {
                "userId": user_id,
                "balance": format_amount(points_service.get_balance(user_id)),
                "transactions": [tx.to_dict() for tx in rows],
            },
        }), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status


@points_bp.post("/charge")
@require_auth
@require_admin
def charge_route():
    """
    Admin top-up.

    Body: {"userId": int, "amount": number, "description"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        user_id = data.get("userId")
        amount = data.get("amount")

        if not user_id or amount in (None, ""):
            return jsonify({"success": False, "error": "userId and amount required"}), 400

        movement = points_service.charge(
            _int_field(user_id, "userId"),
            amount,
            g.current_user.id,
            description=data.get("description"),
        )
        return jsonify({"success": True, "data": movement.to_dict()}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to charge points")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@points_bp.post("/refund")
@require_auth
@require_admin
def refund_route():
    """
    Admin credit back into an account.

    Body: {"userId": int, "amount": number, "referenceType"?: str,
           "referenceId"?: int, "description"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        user_id = data.get("userId")
        amount = data.get("amount")

        if not user_id or amount in (None, ""):
            return jsonify({"success": False, "error": "userId and amount required"}), 400

        reference_id = data.get("referenceId")
        if reference_id is not None:
            reference_id = _int_field(reference_id, "referenceId")

        movement = points_service.refund(
            _int_field(user_id, "userId"),
            amount,
            g.current_user.id,
            reference_type=data.get("referenceType"),
            reference_id=reference_id,
            description=data.get("description"),
        )
        return jsonify({"success": True, "data": movement.to_dict()}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to refund points")
        return jsonify({"success": False, "error": "Internal server error"}), 500
