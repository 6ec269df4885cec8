# Overview: Admin review of purchase requests (the order fulfillment workflow).

"""
Order Fulfillment Orchestrator

    pending --(approve)--> validate stock -> decrement stock -> commission -> settlement --> approved
    pending --(reject)---> rejected

The whole approval is one database transaction: status update, stock
decrement, purchase order, report and audit events commit together or not
at all. If any step raises, the request stays 'pending' and stock is
untouched.

Re-reviewing a request that is no longer pending is rejected with
PurchaseRequestAlreadyReviewed, so a retried approval can never produce a
second settlement.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import PurchaseRequest
from ..errors import PurchaseRequestAlreadyReviewed, PurchaseRequestNotFound, ValidationError
from ..money import format_amount
from ..time_utils import utcnow
from . import audit_service, commission_service, inventory_service, settlement_service
from .auth_service import require_admin
from .concurrency import begin_immediate, lock_for_update, run_with_retry


DECISIONS = ("approved", "rejected")


@dataclass
class FulfillmentResult:
    success: bool
    message: str
    purchase_request_id: int
    status: str
    purchase_order_id: int | None = None
    report_id: int | None = None
    report_number: str | None = None
    commission: str | None = None
    seller_net: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        body = {
            "success": self.success,
            "message": self.message,
            "purchaseRequestId": self.purchase_request_id,
            "status": self.status,
        }
        if self.purchase_order_id is not None:
            body["purchaseOrderId"] = self.purchase_order_id
        if self.report_id is not None:
            body["reportId"] = self.report_id
            body["reportNumber"] = self.report_number
        if self.commission is not None:
            body["commission"] = self.commission
            body["sellerNet"] = self.seller_net
        if self.warnings:
            body["warnings"] = list(self.warnings)
        return body


def _reject(purchase_request: PurchaseRequest, admin_user_id: int) -> FulfillmentResult:
    purchase_request.status = "rejected"
    purchase_request.reviewed_at = utcnow()
    purchase_request.reviewed_by = admin_user_id

    audit_service.append_event(
        event_type="purchase_request.rejected",
        entity_type="purchase_request",
        entity_id=purchase_request.id,
        actor_user_id=admin_user_id,
    )
    return FulfillmentResult(
        success=True,
        message="Purchase request rejected",
        purchase_request_id=purchase_request.id,
        status="rejected",
    )


def _approve(purchase_request: PurchaseRequest, admin_user_id: int) -> FulfillmentResult:
    stock = inventory_service.decrement_stock(purchase_request.product_id, purchase_request.quantity)
    product = purchase_request.product

    split = commission_service.compute(purchase_request.total_price)

    purchase_request.status = "approved"
    purchase_request.reviewed_at = utcnow()
    purchase_request.reviewed_by = admin_user_id

    settlement = settlement_service.create_settlement(
        purchase_request,
        product,
        split.commission,
        split.seller_net,
        split.total,
    )
    report = settlement.report

    audit_service.append_event(
        event_type="purchase_request.approved",
        entity_type="purchase_request",
        entity_id=purchase_request.id,
        actor_user_id=admin_user_id,
        note=f"Report {report.report_number}",
        payload={
            "product_id": product.id,
            "quantity": purchase_request.quantity,
            "previous_quantity": stock.previous_quantity,
            "product_status": stock.new_status,
            "total": format_amount(split.total),
            "commission": format_amount(split.commission),
            "seller_net": format_amount(split.seller_net),
            "purchase_order_id": settlement.purchase_order.id if settlement.purchase_order else None,
            "report_id": report.id,
        },
    )

    return FulfillmentResult(
        success=True,
        message="Purchase request approved",
        purchase_request_id=purchase_request.id,
        status="approved",
        purchase_order_id=settlement.purchase_order.id if settlement.purchase_order else None,
        report_id=report.id,
        report_number=report.report_number,
        commission=format_amount(split.commission),
        seller_net=format_amount(split.seller_net),
        warnings=settlement.warnings,
    )


def review_purchase_request(purchase_request_id: int, decision: str, admin_user_id: int | None) -> FulfillmentResult:
    """
    Approve or reject a pending purchase request.

    Raises Forbidden (caller is not an admin), ValidationError (bad
    decision), PurchaseRequestNotFound, PurchaseRequestAlreadyReviewed,
    ProductNotFound, SellerProfileMissing, InsufficientStock, or
    TransientConflict after exhausting concurrency retries. Nothing is
    persisted when any of these is raised.
    """
    require_admin(admin_user_id)
    if decision not in DECISIONS:
        raise ValidationError(f"status must be one of: {', '.join(DECISIONS)}")

    def _op() -> FulfillmentResult:
        begin_immediate()
        purchase_request = lock_for_update(
            db.session.query(PurchaseRequest).filter_by(id=purchase_request_id)
        ).first()
        if not purchase_request:
            raise PurchaseRequestNotFound(purchase_request_id)

        if purchase_request.status != "pending":
            raise PurchaseRequestAlreadyReviewed(purchase_request.id, purchase_request.status)

        if decision == "rejected":
            result = _reject(purchase_request, admin_user_id)
        else:
            result = _approve(purchase_request, admin_user_id)

        db.session.commit()
        return result

    result = run_with_retry(_op)

    current_app.logger.info(
        "Purchase request %s %s by admin %s (report=%s, warnings=%d)",
        result.purchase_request_id, result.status, admin_user_id,
        result.report_number, len(result.warnings),
    )
    return result
