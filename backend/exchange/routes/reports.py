# Overview: Flask API routes for sales approval reports and buyer-info disclosure.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ExchangeError
from ..services import disclosure_service, report_service
from ..decorators import require_auth, actor_matches


reports_bp = Blueprint("reports", __name__, url_prefix="/api/sales-approval-reports")


@reports_bp.get("")
@require_auth
def list_reports_route():
    """
    Admins may filter by seller_id; sellers always get their own reports,
    and only once an admin has sent them.
    Buyer details are masked per report until revealed.
    """
    try:
        user = g.current_user
        status = request.args.get("status")
        seller_id = request.args.get("seller_id", type=int) if user.is_admin else user.id

        reports = report_service.list_reports(seller_id=seller_id, status=status, sent_only=not user.is_admin)
        return jsonify({
            "success": True,
            "reports": [report_service.report_view(r, user) for r in reports],
        }), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status


@reports_bp.get("/<int:report_id>")
@require_auth
def get_report_route(report_id: int):
    try:
        report = report_service.get_report(report_id)
    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status

    if not report_service.can_view(report, g.current_user):
        return jsonify({"success": False, "error": "Sales approval report not found"}), 404

    return jsonify({"success": True, "report": report_service.report_view(report, g.current_user)}), 200


@reports_bp.post("/<int:report_id>")
@require_auth
def report_action_route(report_id: int):
    """
    Advance the report lifecycle.

    Body: {"action": "send" | "confirm" | "ship" | "complete",
           "tracking_number"?: str, "notes"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        action = data.get("action")
        if not action:
            return jsonify({"success": False, "error": "action required"}), 400

        report = report_service.apply_action(
            report_id,
            action,
            g.current_user.id,
            tracking_number=data.get("tracking_number"),
            notes=data.get("notes"),
        )
        return jsonify({
            "success": True,
            "message": f"Report {report.report_number} is now {report.status}",
            "report": report_service.report_view(report, g.current_user),
        }), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update report %s", report_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500


@reports_bp.post("/<int:report_id>/reveal-buyer-info")
@require_auth
def reveal_buyer_info_route(report_id: int):
    """
    Pay the report's commission in points and reveal the buyer.

    Body: {"sellerId"?: int}
    400 with code INSUFFICIENT_POINTS when the balance is too low.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not actor_matches(data.get("sellerId")):
            return jsonify({"success": False, "error": "sellerId does not match the authenticated user"}), 403

        disclosure = disclosure_service.reveal_buyer_info(report_id, g.current_user.id)
        body = disclosure.to_dict()
        report = report_service.get_report(report_id)
        body["report"] = report_service.report_view(report, g.current_user)
        return jsonify(body), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to reveal buyer info for report %s", report_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500
