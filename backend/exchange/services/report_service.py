# Overview: Sales approval report lifecycle and role-aware views.

"""
Report lifecycle (forward-only, no backward transitions):

    created -> sent -> confirmed -> shipped -> completed

    action     from        to          actor
    send       created     sent        admin
    confirm    sent        confirmed   report's seller
    ship       confirmed   shipped     report's seller (tracking number required)
    complete   shipped     completed   admin

Reports created by purchase-request approval start at 'sent', so 'send'
only applies to reports created in 'created'.

A report in 'created' has not been released to its seller yet: the seller
cannot list, open, act on or pay to reveal it until an admin sends it.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import SalesApprovalReport, User
from ..errors import Forbidden, InvalidReportTransition, ReportNotFound, ValidationError
from ..models.settlement import REPORT_STATUSES
from ..time_utils import utcnow
from . import audit_service
from .auth_service import get_user
from .concurrency import begin_immediate, lock_for_update, run_with_retry


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str
    timestamp_field: str
    actor: str  # "admin" or "seller"


UNSENT_STATUS = "created"


TRANSITIONS = {
    "send": Transition("created", "sent", "sent_at", "admin"),
    "confirm": Transition("sent", "confirmed", "confirmed_at", "seller"),
    "ship": Transition("confirmed", "shipped", "shipped_at", "seller"),
    "complete": Transition("shipped", "completed", "completed_at", "admin"),
}


def get_report(report_id: int) -> SalesApprovalReport:
    report = db.session.get(SalesApprovalReport, report_id)
    if not report:
        raise ReportNotFound(report_id)
    return report


def _check_actor(report: SalesApprovalReport, transition: Transition, actor: User) -> None:
    if transition.actor == "admin":
        if not actor.is_admin:
            raise Forbidden("Administrator privileges required")
    elif actor.id != report.seller_id:
        raise Forbidden("Only the report's seller can perform this action")


def apply_action(
    report_id: int,
    action: str,
    actor_user_id: int,
    tracking_number: str | None = None,
    notes: str | None = None,
) -> SalesApprovalReport:
    """Advance a report one step along its lifecycle."""
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise ValidationError(f"action must be one of: {', '.join(TRANSITIONS)}")

    tracking_number = (tracking_number or "").strip() or None
    if action == "ship" and not tracking_number:
        raise ValidationError("tracking_number required to ship")

    actor = get_user(actor_user_id)

    def _op() -> SalesApprovalReport:
        begin_immediate()
        report = lock_for_update(
            db.session.query(SalesApprovalReport).filter_by(id=report_id)
        ).first()
        if not report:
            raise ReportNotFound(report_id)
        if report.seller_id == actor.id and not can_view(report, actor):
            raise ReportNotFound(report_id)

        _check_actor(report, transition, actor)

        if report.status != transition.from_status:
            raise InvalidReportTransition(
                f"Cannot {action} a report with status '{report.status}'",
                details={"status": report.status, "required_status": transition.from_status},
            )

        report.status = transition.to_status
        setattr(report, transition.timestamp_field, utcnow())
        if tracking_number:
            report.tracking_number = tracking_number
        if notes is not None:
            report.notes = notes

        audit_service.append_event(
            event_type=f"report.{transition.to_status}",
            entity_type="sales_approval_report",
            entity_id=report.id,
            actor_user_id=actor.id,
            note=tracking_number,
        )
        db.session.commit()
        return report

    return run_with_retry(_op)


def list_reports(
    seller_id: int | None = None,
    status: str | None = None,
    sent_only: bool = False,
) -> list[SalesApprovalReport]:
    """sent_only drops reports still in 'created' (the seller's listing)."""
    if status and status not in REPORT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(REPORT_STATUSES)}")
    q = db.session.query(SalesApprovalReport)
    if seller_id:
        q = q.filter(SalesApprovalReport.seller_id == seller_id)
    if status:
        q = q.filter(SalesApprovalReport.status == status)
    if sent_only:
        q = q.filter(SalesApprovalReport.status != UNSENT_STATUS)
    return q.order_by(SalesApprovalReport.created_at.desc(), SalesApprovalReport.id.desc()).all()


def can_view(report: SalesApprovalReport, viewer: User) -> bool:
    if viewer.is_admin:
        return True
    return viewer.id == report.seller_id and report.status != UNSENT_STATUS


def report_view(report: SalesApprovalReport, viewer: User) -> dict:
    """
    Report as seen by viewer.

    Admins always see the buyer; the seller sees the buyer block only once
    buyer_info_revealed is set (after the points deduction).
    """
    data = report.to_dict()
    data["seller"] = report.seller.contact_dict() if report.seller else None
    if viewer.is_admin or report.buyer_info_revealed:
        data["buyer"] = report.buyer.contact_dict() if report.buyer else None
    else:
        data["buyer"] = None
        data["buyer_id"] = None
        data["shipping_address"] = None
    return data
