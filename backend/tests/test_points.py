"""
Points ledger.

Verifies:
- Admin charge/refund append exactly one transaction per balance change
- Balance always equals the fold of the transaction log
- Non-admin callers and bad amounts are rejected without side effects
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from exchange.errors import Conflict, Forbidden, UserNotFound, ValidationError
from exchange.models import PointsAccount, PointsTransaction
from exchange.services import audit_service, points_service
from exchange.time_utils import utcnow


class TestCharge:

    def test_first_charge_creates_account(self, db_session, admin, seller):
        assert points_service.get_balance(seller.id) == Decimal("0.00")

        movement = points_service.charge(seller.id, 100, admin.id, description="Bank transfer #1")

        assert movement.balance_before == Decimal("0.00")
        assert movement.balance_after == Decimal("100.00")
        assert movement.transaction.transaction_type == "charge"
        assert movement.transaction.admin_user_id == admin.id
        assert movement.transaction.description == "Bank transfer #1"
        assert points_service.get_balance(seller.id) == Decimal("100.00")
        assert db_session.query(PointsAccount).filter_by(user_id=seller.id).count() == 1

    def test_charges_accumulate(self, db_session, admin, seller):
        points_service.charge(seller.id, "100.00", admin.id)
        movement = points_service.charge(seller.id, "25.50", admin.id)

        assert movement.balance_before == Decimal("100.00")
        assert movement.balance_after == Decimal("125.50")
        assert db_session.query(PointsTransaction).filter_by(user_id=seller.id).count() == 2

    def test_no_upper_bound(self, db_session, admin, seller):
        movement = points_service.charge(seller.id, "999999999.00", admin.id)
        assert movement.balance_after == Decimal("999999999.00")

    def test_to_dict(self, db_session, admin, seller):
        body = points_service.charge(seller.id, 40, admin.id).to_dict()
        assert body["userId"] == seller.id
        assert body["type"] == "charge"
        assert body["amount"] == "40.00"
        assert body["balanceBefore"] == "0.00"
        assert body["balanceAfter"] == "40.00"

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, True, "1.005"])
    def test_invalid_amount(self, db_session, admin, seller, amount):
        with pytest.raises(ValidationError):
            points_service.charge(seller.id, amount, admin.id)
        assert db_session.query(PointsTransaction).count() == 0

    def test_non_admin_forbidden(self, db_session, seller, buyer):
        with pytest.raises(Forbidden):
            points_service.charge(seller.id, 100, buyer.id)
        assert points_service.get_balance(seller.id) == Decimal("0.00")
        assert db_session.query(PointsTransaction).count() == 0

    def test_unknown_user(self, db_session, admin):
        with pytest.raises(UserNotFound):
            points_service.charge(99999, 100, admin.id)

    def test_audit_event_per_movement(self, db_session, admin, seller):
        movement = points_service.charge(seller.id, 10, admin.id)
        events = audit_service.list_events("points_transaction", movement.transaction.id)
        assert len(events) == 1
        event = events[0]
        assert event.event_type == "points.charge"
        assert event.actor_user_id == admin.id


class TestRefund:

    def test_refund_credits_balance(self, db_session, admin, seller):
        points_service.charge(seller.id, 50, admin.id)
        movement = points_service.refund(
            seller.id, 20, admin.id,
            reference_type="sales_approval_report", reference_id=7,
            description="Duplicate reveal refund",
        )
        assert movement.transaction.transaction_type == "refund"
        assert movement.balance_after == Decimal("70.00")
        assert movement.transaction.reference_id == 7

    def test_same_reference_refunded_once(self, db_session, admin, seller):
        points_service.refund(seller.id, 20, admin.id, reference_type="sales_approval_report", reference_id=7)

        with pytest.raises(Conflict):
            points_service.refund(seller.id, 20, admin.id, reference_type="sales_approval_report", reference_id=7)

        assert points_service.get_balance(seller.id) == Decimal("20.00")
        assert db_session.query(PointsTransaction).count() == 1

    def test_non_admin_forbidden(self, db_session, seller):
        with pytest.raises(Forbidden):
            points_service.refund(seller.id, 20, seller.id)


class TestLedgerConsistency:

    def test_balance_equals_fold(self, db_session, admin, seller):
        points_service.charge(seller.id, 100, admin.id)
        points_service.charge(seller.id, "12.34", admin.id)
        points_service.refund(seller.id, 5, admin.id)

        assert points_service.fold_transactions(seller.id) == Decimal("117.34")
        assert points_service.get_balance(seller.id) == Decimal("117.34")
        assert points_service.verify_account(seller.id) == []

    def test_transaction_chain(self, db_session, admin, seller):
        for amount in (10, 20, 30):
            points_service.charge(seller.id, amount, admin.id)

        rows = (
            db_session.query(PointsTransaction)
            .filter_by(user_id=seller.id)
            .order_by(PointsTransaction.id)
            .all()
        )
        assert rows[0].balance_before == Decimal("0.00")
        for prev, cur in zip(rows, rows[1:]):
            assert cur.balance_before == prev.balance_after
        assert rows[-1].balance_after == Decimal("60.00")

    def test_verify_detects_drift(self, db_session, admin, seller):
        points_service.charge(seller.id, 100, admin.id)

        account = db_session.query(PointsAccount).filter_by(user_id=seller.id).one()
        account.balance = Decimal("90.00")
        db_session.commit()

        problems = points_service.verify_account(seller.id)
        assert len(problems) == 1
        assert "stored balance 90.00" in problems[0]

    def test_user_without_account_is_clean(self, db_session, buyer):
        assert points_service.verify_account(buyer.id) == []


class TestListTransactions:

    def test_newest_first_and_type_filter(self, db_session, admin, seller):
        points_service.charge(seller.id, 10, admin.id)
        points_service.refund(seller.id, 3, admin.id)
        points_service.charge(seller.id, 20, admin.id)

        rows = points_service.list_transactions(seller.id)
        assert [r.amount for r in rows] == [Decimal("20.00"), Decimal("3.00"), Decimal("10.00")]

        charges = points_service.list_transactions(seller.id, transaction_type="charge")
        assert len(charges) == 2

    def test_date_window(self, db_session, admin, seller):
        points_service.charge(seller.id, 10, admin.id)

        now = utcnow()
        assert len(points_service.list_transactions(seller.id, start=now - timedelta(days=1))) == 1
        assert points_service.list_transactions(seller.id, start=now + timedelta(days=1)) == []
        assert points_service.list_transactions(seller.id, end=now - timedelta(days=1)) == []

    def test_only_own_rows(self, db_session, admin, seller, buyer):
        points_service.charge(seller.id, 10, admin.id)
        points_service.charge(buyer.id, 10, admin.id)
        assert len(points_service.list_transactions(buyer.id)) == 1
