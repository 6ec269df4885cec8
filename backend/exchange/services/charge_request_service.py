# Overview: User top-up requests reviewed by admins.

"""
Point charge requests

A user pays out of band and files a request; an admin approves (the points
are charged in the same transaction, referencing the request) or rejects.
1 currency unit = 1 point, whole units only.
"""

from __future__ import annotations

from ..extensions import db
from ..models import PointChargeRequest
from ..errors import ChargeRequestAlreadyReviewed, ChargeRequestNotFound, ValidationError
from ..money import format_amount, round_points, to_decimal
from ..time_utils import utcnow
from . import audit_service, points_service
from .auth_service import get_user, require_admin
from .concurrency import begin_immediate, lock_for_update, run_with_retry


REVIEW_ACTIONS = ("approve", "reject")
CHARGE_REQUEST_STATUSES = ("pending", "approved", "rejected")


def create_charge_request(user_id: int, amount, description: str | None = None) -> PointChargeRequest:
    get_user(user_id)
    value = to_decimal(amount, "amount")
    if value <= 0 or value != round_points(value):
        raise ValidationError("amount must be a positive whole number")

    request = PointChargeRequest(
        user_id=user_id,
        requested_amount=value,
        requested_points=value,
        status="pending",
        description=description,
        created_at=utcnow(),
    )
    db.session.add(request)
    db.session.commit()
    return request


def review_charge_request(
    request_id: int,
    action: str,
    admin_user_id: int | None,
    admin_notes: str | None = None,
) -> PointChargeRequest:
    require_admin(admin_user_id)
    if action not in REVIEW_ACTIONS:
        raise ValidationError(f"action must be one of: {', '.join(REVIEW_ACTIONS)}")

    def _op() -> PointChargeRequest:
        begin_immediate()
        request = lock_for_update(
            db.session.query(PointChargeRequest).filter_by(id=request_id)
        ).first()
        if not request:
            raise ChargeRequestNotFound(request_id)
        if request.status != "pending":
            raise ChargeRequestAlreadyReviewed(request.id, request.status)

        request.admin_user_id = admin_user_id
        request.admin_notes = admin_notes
        request.reviewed_at = utcnow()

        if action == "approve":
            movement = points_service.record_movement(
                user_id=request.user_id,
                transaction_type=points_service.CHARGE,
                amount=request.requested_points,
                reference_type="point_charge_request",
                reference_id=request.id,
                admin_user_id=admin_user_id,
                description=f"Charge request #{request.id} ({format_amount(request.requested_amount)})",
            )
            request.status = "approved"
            request.points_transaction_id = movement.transaction.id
        else:
            request.status = "rejected"
            audit_service.append_event(
                event_type="charge_request.rejected",
                entity_type="point_charge_request",
                entity_id=request.id,
                actor_user_id=admin_user_id,
                note=admin_notes,
            )

        db.session.commit()
        return request

    return run_with_retry(_op)


def list_charge_requests(user_id: int | None = None, status: str | None = None) -> list[PointChargeRequest]:
    if status and status not in CHARGE_REQUEST_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(CHARGE_REQUEST_STATUSES)}")
    q = db.session.query(PointChargeRequest)
    if user_id:
        q = q.filter(PointChargeRequest.user_id == user_id)
    if status:
        q = q.filter(PointChargeRequest.status == status)
    return q.order_by(PointChargeRequest.created_at.desc(), PointChargeRequest.id.desc()).all()
