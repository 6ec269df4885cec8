"""Point charge (top-up) requests."""

from decimal import Decimal

import pytest

from exchange.errors import ChargeRequestAlreadyReviewed, ChargeRequestNotFound, Forbidden, ValidationError
from exchange.models import PointsTransaction
from exchange.services import charge_request_service, points_service


def test_create_pending_request(db_session, seller):
    request = charge_request_service.create_charge_request(seller.id, 300, description="Transfer ref 8841")
    assert request.status == "pending"
    assert request.requested_amount == Decimal("300.00")
    assert request.requested_points == Decimal("300.00")
    assert points_service.get_balance(seller.id) == Decimal("0.00")


@pytest.mark.parametrize("amount", [0, -10, "12.50", "abc", None])
def test_amount_must_be_positive_whole_number(db_session, seller, amount):
    with pytest.raises(ValidationError):
        charge_request_service.create_charge_request(seller.id, amount)


def test_approve_charges_points(db_session, admin, seller):
    request = charge_request_service.create_charge_request(seller.id, 300)

    reviewed = charge_request_service.review_charge_request(request.id, "approve", admin.id, admin_notes="Deposit seen")

    assert reviewed.status == "approved"
    assert reviewed.admin_user_id == admin.id
    assert reviewed.reviewed_at is not None
    assert points_service.get_balance(seller.id) == Decimal("300.00")

    tx = db_session.get(PointsTransaction, reviewed.points_transaction_id)
    assert tx.transaction_type == "charge"
    assert tx.reference_type == "point_charge_request"
    assert tx.reference_id == request.id


def test_reject_leaves_balance(db_session, admin, seller):
    request = charge_request_service.create_charge_request(seller.id, 300)
    reviewed = charge_request_service.review_charge_request(request.id, "reject", admin.id, admin_notes="No deposit")

    assert reviewed.status == "rejected"
    assert reviewed.admin_notes == "No deposit"
    assert points_service.get_balance(seller.id) == Decimal("0.00")
    assert db_session.query(PointsTransaction).count() == 0


def test_cannot_review_twice(db_session, admin, seller):
    request = charge_request_service.create_charge_request(seller.id, 300)
    charge_request_service.review_charge_request(request.id, "approve", admin.id)

    with pytest.raises(ChargeRequestAlreadyReviewed):
        charge_request_service.review_charge_request(request.id, "approve", admin.id)
    assert points_service.get_balance(seller.id) == Decimal("300.00")


def test_non_admin_cannot_review(db_session, seller):
    request = charge_request_service.create_charge_request(seller.id, 300)
    with pytest.raises(Forbidden):
        charge_request_service.review_charge_request(request.id, "approve", seller.id)


def test_unknown_action(db_session, admin, seller):
    request = charge_request_service.create_charge_request(seller.id, 300)
    with pytest.raises(ValidationError):
        charge_request_service.review_charge_request(request.id, "maybe", admin.id)


def test_missing_request(db_session, admin):
    with pytest.raises(ChargeRequestNotFound):
        charge_request_service.review_charge_request(99999, "approve", admin.id)


def test_list_filters(db_session, admin, seller, buyer):
    a = charge_request_service.create_charge_request(seller.id, 100)
    b = charge_request_service.create_charge_request(buyer.id, 200)
    charge_request_service.review_charge_request(a.id, "approve", admin.id)

    assert [r.id for r in charge_request_service.list_charge_requests(user_id=buyer.id)] == [b.id]
    assert [r.id for r in charge_request_service.list_charge_requests(status="approved")] == [a.id]
    assert len(charge_request_service.list_charge_requests()) == 2
