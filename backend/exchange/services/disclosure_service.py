# Overview: Buyer-info disclosure gated behind a points deduction.

"""
Disclosure Gate

A seller sees the buyer's contact details on a sales approval report only
after paying the report's commission in points.

- required points = commission rounded half-up to a whole point (minimum 1)
- the deduction, the transaction row and the report flip commit together
- a report that is already revealed returns success without deducting again

Two concurrent reveals for the same report serialize on the report row
(FOR UPDATE / BEGIN IMMEDIATE); the loser of a version_id compare-and-swap
is retried and then observes buyer_info_revealed=True, so exactly one
deduction is ever written. The unique (type, reference) constraint on
points_transactions backs this at the storage level.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import SalesApprovalReport
from ..errors import Forbidden, ReportNotFound
from ..money import WHOLE, format_amount, round_points
from ..time_utils import utcnow
from . import audit_service, points_service, report_service
from .concurrency import begin_immediate, lock_for_update, run_with_retry


REFERENCE_TYPE = "sales_approval_report"


@dataclass(frozen=True)
class Disclosure:
    report_id: int
    buyer_info_revealed: bool
    already_deducted: bool
    points_deducted: Decimal
    balance_before: Decimal | None
    balance_after: Decimal
    transaction_id: int | None = None

    def to_dict(self) -> dict:
        body = {
            "success": True,
            "data": {
                "salesApprovalReportId": self.report_id,
                "buyerInfoRevealed": self.buyer_info_revealed,
                "pointsDeducted": format_amount(self.points_deducted),
                "balanceBefore": format_amount(self.balance_before),
                "balanceAfter": format_amount(self.balance_after),
                "transactionId": self.transaction_id,
            },
        }
        if self.already_deducted:
            body["alreadyDeducted"] = True
        return body


def required_points(commission: Decimal) -> Decimal:
    """Points owed to reveal buyer info: the commission, rounded half-up to whole points."""
    return max(round_points(Decimal(commission)), WHOLE)


def reveal_buyer_info(report_id: int, seller_id: int) -> Disclosure:
    """
    Deduct the report's commission in points and reveal the buyer.

    Raises ReportNotFound, Forbidden (caller does not own the report), or
    InsufficientPoints (required, balance, shortfall); nothing is persisted
    when any of these is raised.
    """
    def _op() -> Disclosure:
        begin_immediate()
        report = lock_for_update(
            db.session.query(SalesApprovalReport).filter_by(id=report_id)
        ).first()
        # Unsent reports are invisible to the seller
        if not report or report.status == report_service.UNSENT_STATUS:
            raise ReportNotFound(report_id)
        if report.seller_id != seller_id:
            raise Forbidden("Only the report's seller can reveal buyer information")

        if report.buyer_info_revealed:
            balance = points_service.get_balance(seller_id)
            db.session.commit()
            return Disclosure(
                report_id=report.id,
                buyer_info_revealed=True,
                already_deducted=True,
                points_deducted=report.points_deducted,
                balance_before=None,
                balance_after=balance,
            )

        required = required_points(report.commission)
        movement = points_service.record_movement(
            user_id=seller_id,
            transaction_type=points_service.DEDUCT,
            amount=required,
            reference_type=REFERENCE_TYPE,
            reference_id=report.id,
            description=f"Buyer information for {report.report_number}",
        )

        report.buyer_info_revealed = True
        report.buyer_info_revealed_at = utcnow()
        report.points_deducted = required
        db.session.flush()

        audit_service.append_event(
            event_type="report.buyer_info_revealed",
            entity_type="sales_approval_report",
            entity_id=report.id,
            actor_user_id=seller_id,
            payload={"points": format_amount(required), "transaction_id": movement.transaction.id},
        )
        db.session.commit()

        return Disclosure(
            report_id=report.id,
            buyer_info_revealed=True,
            already_deducted=False,
            points_deducted=required,
            balance_before=movement.balance_before,
            balance_after=movement.balance_after,
            transaction_id=movement.transaction.id,
        )

    disclosure = run_with_retry(_op)
    if not disclosure.already_deducted:
        current_app.logger.info(
            "Buyer info revealed on report %s for seller %s (%s points, balance %s)",
            report_id, seller_id,
            format_amount(disclosure.points_deducted), format_amount(disclosure.balance_after),
        )
    return disclosure
