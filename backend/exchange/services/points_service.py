# Overview: Points ledger (balances + append-only transactions).

"""
Points Ledger

APPEND-ONLY: every change to PointsAccount.balance is paired with exactly
one PointsTransaction written in the same unit of work. Nothing else in the
codebase assigns PointsAccount.balance.

CONCURRENCY: the account row is read FOR UPDATE (BEGIN IMMEDIATE on SQLite)
and written through its version_id column, so two movements against the
same account serialize; a lost compare-and-swap raises StaleDataError and is
retried by run_with_retry. A deduction that would take the balance below
zero raises InsufficientPoints before anything is written.

1 point = 1 currency unit. Points are prepaid, non-refundable to cash and
non-transferable; refunds here are admin credits back into the account.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PointsAccount, PointsTransaction, User
from ..errors import Conflict, InsufficientPoints, UserNotFound, ValidationError
from ..money import ZERO, format_amount, to_decimal
from . import audit_service
from .auth_service import require_admin
from .concurrency import begin_immediate, lock_for_update, run_with_retry


CHARGE = "charge"
DEDUCT = "deduct"
REFUND = "refund"

CREDIT_TYPES = (CHARGE, REFUND)


@dataclass(frozen=True)
class PointsMovement:
    transaction: PointsTransaction
    balance_before: Decimal
    balance_after: Decimal

    def to_dict(self) -> dict:
        return {
            "transactionId": self.transaction.id,
            "userId": self.transaction.user_id,
            "type": self.transaction.transaction_type,
            "amount": format_amount(self.transaction.amount),
            "balanceBefore": format_amount(self.balance_before),
            "balanceAfter": format_amount(self.balance_after),
        }


def _positive_amount(amount) -> Decimal:
    value = to_decimal(amount, "amount")
    if value <= 0:
        raise ValidationError("amount must be greater than zero")
    return value


def _account_for_update(user_id: int) -> PointsAccount:
    """Locked account row, created with a zero balance on first use."""
    account = lock_for_update(db.session.query(PointsAccount).filter_by(user_id=user_id)).first()
    if account:
        return account

    try:
        with db.session.begin_nested():
            account = PointsAccount(user_id=user_id, balance=ZERO)
            db.session.add(account)
    except IntegrityError:
        account = lock_for_update(db.session.query(PointsAccount).filter_by(user_id=user_id)).first()
    return account


def get_balance(user_id: int) -> Decimal:
    balance = db.session.query(PointsAccount.balance).filter_by(user_id=user_id).scalar()
    return balance if balance is not None else ZERO


def record_movement(
    *,
    user_id: int,
    transaction_type: str,
    amount: Decimal,
    reference_type: str | None = None,
    reference_id: int | None = None,
    admin_user_id: int | None = None,
    description: str | None = None,
) -> PointsMovement:
    """
    Apply one movement to a user's balance and append its transaction row.

    Runs inside the caller's transaction: flushes, does not commit.
    Raises InsufficientPoints for a deduction larger than the balance.
    """
    if transaction_type not in (CHARGE, DEDUCT, REFUND):
        raise ValidationError(f"Unknown points transaction type: {transaction_type}")
    amount = _positive_amount(amount)

    if not db.session.get(User, user_id):
        raise UserNotFound(user_id)

    account = _account_for_update(user_id)
    before = account.balance

    if transaction_type == DEDUCT:
        if before < amount:
            raise InsufficientPoints(required=amount, balance=before)
        after = before - amount
    else:
        after = before + amount

    account.balance = after
    tx = PointsTransaction(
        user_id=user_id,
        transaction_type=transaction_type,
        amount=amount,
        balance_before=before,
        balance_after=after,
        reference_type=reference_type,
        reference_id=reference_id,
        admin_user_id=admin_user_id,
        description=description,
    )
    db.session.add(tx)
    try:
        db.session.flush()
    except IntegrityError:
        raise Conflict(
            "A points transaction already exists for this reference",
            details={"reference_type": reference_type, "reference_id": reference_id},
        )

    audit_service.append_event(
        event_type=f"points.{transaction_type}",
        entity_type="points_transaction",
        entity_id=tx.id,
        actor_user_id=admin_user_id or user_id,
        note=description,
        payload={
            "user_id": user_id,
            "amount": format_amount(amount),
            "balance_before": format_amount(before),
            "balance_after": format_amount(after),
        },
    )
    return PointsMovement(transaction=tx, balance_before=before, balance_after=after)


def _admin_credit(transaction_type: str, user_id: int, amount, admin_user_id: int | None, **kwargs) -> PointsMovement:
    require_admin(admin_user_id)
    value = _positive_amount(amount)

    def _op() -> PointsMovement:
        begin_immediate()
        movement = record_movement(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=value,
            admin_user_id=admin_user_id,
            **kwargs,
        )
        db.session.commit()
        return movement

    movement = run_with_retry(_op)
    current_app.logger.info(
        "Points %s for user %s by admin %s: %s -> %s",
        transaction_type, user_id, admin_user_id,
        format_amount(movement.balance_before), format_amount(movement.balance_after),
    )
    return movement


def charge(user_id: int, amount, admin_user_id: int | None, description: str | None = None) -> PointsMovement:
    """Admin top-up. No upper bound on the resulting balance."""
    value = _positive_amount(amount)
    return _admin_credit(
        CHARGE, user_id, value, admin_user_id,
        description=description or f"Admin points charge ({format_amount(value)}p)",
    )


def refund(
    user_id: int,
    amount,
    admin_user_id: int | None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
) -> PointsMovement:
    """Admin credit back into an account, optionally tied to a reference."""
    return _admin_credit(
        REFUND, user_id, amount, admin_user_id,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description or "Admin points refund",
    )


def list_transactions(
    user_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    transaction_type: str | None = None,
) -> list[PointsTransaction]:
    q = db.session.query(PointsTransaction).filter_by(user_id=user_id)
    if start:
        q = q.filter(PointsTransaction.created_at >= start)
    if end:
        q = q.filter(PointsTransaction.created_at <= end)
    if transaction_type:
        q = q.filter(PointsTransaction.transaction_type == transaction_type)
    return q.order_by(PointsTransaction.id.desc()).all()


def fold_transactions(user_id: int) -> Decimal:
    """Balance implied by replaying a user's transactions in order."""
    balance = ZERO
    rows = (
        db.session.query(PointsTransaction)
        .filter_by(user_id=user_id)
        .order_by(PointsTransaction.id.asc())
        .all()
    )
    for tx in rows:
        balance += tx.signed_amount
    return balance


def verify_account(user_id: int) -> list[str]:
    """
    Check the ledger invariants for one user; returns a list of problems.

    - stored balance equals the fold of all transactions
    - each row's balance_before equals the previous row's balance_after
    - each row's balance_after equals balance_before +/- amount
    """
    problems = []
    expected_before = ZERO
    rows = (
        db.session.query(PointsTransaction)
        .filter_by(user_id=user_id)
        .order_by(PointsTransaction.id.asc())
        .all()
    )
    for tx in rows:
        if tx.balance_before != expected_before:
            problems.append(
                f"transaction {tx.id}: balance_before {format_amount(tx.balance_before)} "
                f"!= previous balance {format_amount(expected_before)}"
            )
        if tx.balance_after != tx.balance_before + tx.signed_amount:
            problems.append(f"transaction {tx.id}: balance_after does not match amount")
        expected_before = tx.balance_after

    stored = get_balance(user_id)
    folded = fold_transactions(user_id)
    if stored != folded:
        problems.append(
            f"stored balance {format_amount(stored)} != transaction total {format_amount(folded)}"
        )
    return problems
