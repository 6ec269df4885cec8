# Overview: Purchase order + sales approval report creation for an approved sale.

"""
Settlement Recorder

create_settlement() writes the two artifacts of an approved sale inside the
caller's transaction:

- PurchaseOrder: commission split bookkeeping (status='approved')
- SalesApprovalReport: the settlement document, auto-delivered to the seller
  (status='sent', sent_at=now)

The report is the authoritative artifact. The purchase order is written in a
savepoint; if it fails, the report is still created with
purchase_order_id=None and a warning is returned, unless
SETTLEMENT_REQUIRE_PURCHASE_ORDER is set, in which case the failure aborts
the settlement.

IDEMPOTENCY: both tables are unique on purchase_request_id, and an existing
report for the request is returned instead of creating a second one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import DataError, IntegrityError

from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseRequest, ReportSequence, SalesApprovalReport
from ..errors import SettlementFailed
from ..time_utils import current_year, utcnow


REPORT_PREFIX = "SAR"
REPORT_NUMBER_PAD = 4

PURCHASE_ORDER_WARNING = "Purchase order could not be recorded; the sales approval report was created without it"


@dataclass
class Settlement:
    purchase_order: PurchaseOrder | None
    report: SalesApprovalReport
    warnings: list[str] = field(default_factory=list)
    created: bool = True


def format_report_number(year: int, sequence: int) -> str:
    return f"{REPORT_PREFIX}-{year:04d}-{sequence:0{REPORT_NUMBER_PAD}d}"


def _highest_issued(year: int) -> int:
    """Largest sequence already used for the year (reports created before the counter existed)."""
    prefix = f"{REPORT_PREFIX}-{year:04d}-"
    numbers = (
        db.session.query(SalesApprovalReport.report_number)
        .filter(SalesApprovalReport.report_number.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def _increment(year: int) -> int | None:
    stmt = (
        update(ReportSequence)
        .where(ReportSequence.year == year)
        .values(next_number=ReportSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(ReportSequence.next_number)
        .filter_by(year=year)
        .scalar()
    )
    return current - 1


def allocate_report_number(year: int | None = None) -> str:
    """
    Atomically allocate the next report number for a year.

    The per-year counter row is bumped with a single UPDATE, which takes the
    row lock, so concurrent approvals never see the same value. The first
    allocation of a year inserts the row; if another transaction inserted it
    first, the unique constraint on year fires and we fall back to the UPDATE.
    Does not commit.
    """
    year = year or current_year()

    sequence = _increment(year)
    if sequence is not None:
        return format_report_number(year, sequence)

    first = _highest_issued(year) + 1
    try:
        with db.session.begin_nested():
            db.session.add(ReportSequence(year=year, next_number=first + 1))
        return format_report_number(year, first)
    except IntegrityError:
        sequence = _increment(year)
        if sequence is None:
            raise
        return format_report_number(year, sequence)


def find_settlement(purchase_request_id: int) -> Settlement | None:
    report = db.session.query(SalesApprovalReport).filter_by(purchase_request_id=purchase_request_id).first()
    if not report:
        return None
    order = db.session.query(PurchaseOrder).filter_by(purchase_request_id=purchase_request_id).first()
    return Settlement(purchase_order=order, report=report, warnings=[], created=False)


def _record_purchase_order(
    purchase_request: PurchaseRequest,
    product: Product,
    commission: Decimal,
    seller_net: Decimal,
    total_amount: Decimal,
) -> PurchaseOrder:
    order = PurchaseOrder(
        purchase_request_id=purchase_request.id,
        seller_id=product.seller_id,
        product_id=product.id,
        product_name=product.product_name,
        quantity=purchase_request.quantity,
        purchase_price=seller_net,
        commission=commission,
        total_amount=total_amount,
        status="approved",
    )
    db.session.add(order)
    db.session.flush()
    return order


def create_settlement(
    purchase_request: PurchaseRequest,
    product: Product,
    commission: Decimal,
    seller_net: Decimal,
    total_amount: Decimal,
) -> Settlement:
    """
    Record the purchase order and sales approval report for an approved request.

    Flushes, does not commit.
    """
    existing = find_settlement(purchase_request.id)
    if existing:
        return existing

    warnings: list[str] = []
    order = None
    try:
        with db.session.begin_nested():
            order = _record_purchase_order(purchase_request, product, commission, seller_net, total_amount)
    except (IntegrityError, DataError) as exc:
        if current_app.config.get("SETTLEMENT_REQUIRE_PURCHASE_ORDER"):
            current_app.logger.critical(
                "Purchase order creation failed for purchase request %s", purchase_request.id
            )
            raise SettlementFailed(
                "Purchase order could not be recorded",
                details={"purchase_request_id": purchase_request.id, "error": str(exc.orig)},
            )
        current_app.logger.warning(
            "Purchase order creation failed for purchase request %s: %s",
            purchase_request.id, exc.orig,
        )
        warnings.append(PURCHASE_ORDER_WARNING)
        order = None

    now = utcnow()
    report = SalesApprovalReport(
        report_number=allocate_report_number(now.year),
        purchase_request_id=purchase_request.id,
        purchase_order_id=order.id if order else None,
        seller_id=product.seller_id,
        buyer_id=purchase_request.buyer_id,
        product_id=product.id,
        product_name=product.product_name,
        quantity=purchase_request.quantity,
        unit_price=product.selling_price,
        total_amount=total_amount,
        commission=commission,
        seller_amount=seller_net,
        status="sent",
        sent_at=now,
        buyer_info_revealed=False,
        points_deducted=Decimal("0.00"),
        shipping_address=purchase_request.shipping_address,
    )
    db.session.add(report)
    db.session.flush()

    return Settlement(purchase_order=order, report=report, warnings=warnings, created=True)
