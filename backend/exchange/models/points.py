from __future__ import annotations

from ..extensions import db
from ..money import Money, format_amount
from ..time_utils import to_utc_z


POINTS_TRANSACTION_TYPES = ("charge", "deduct", "refund")


class PointsAccount(db.Model):
    """
    Prepaid brokerage-fee balance for a user (1 point = 1 currency unit).

    INVARIANT: balance equals the running fold of the user's
    PointsTransactions and never goes negative. The balance is only written
    by points_service together with a transaction row.
    """
    __tablename__ = "points_accounts"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_points_accounts_user"),
        db.CheckConstraint("balance >= 0", name="ck_points_accounts_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    balance = db.Column(Money(), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("points_account", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "balance": format_amount(self.balance),
            "updated_at": to_utc_z(self.updated_at),
        }


class PointsTransaction(db.Model):
    """
    Append-only ledger of point movements.

    TRANSACTION TYPES:
    - charge: admin top-up (balance_after = balance_before + amount)
    - deduct: brokerage fee paid (balance_after = balance_before - amount)
    - refund: admin credit back (balance_after = balance_before + amount)

    IMMUTABLE: Records are never updated or deleted. A reference
    (reference_type, reference_id) can be used at most once per type, which
    makes a second deduction for the same report impossible.
    """
    __tablename__ = "points_transactions"
    __table_args__ = (
        db.UniqueConstraint(
            "transaction_type", "reference_type", "reference_id",
            name="uq_points_transactions_reference",
        ),
        db.CheckConstraint("amount > 0", name="ck_points_transactions_amount_positive"),
        db.CheckConstraint("balance_after >= 0", name="ck_points_transactions_balance_non_negative"),
        db.CheckConstraint(
            "transaction_type IN ('charge', 'deduct', 'refund')",
            name="ck_points_transactions_type",
        ),
        db.Index("ix_points_transactions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(Money(), nullable=False)
    balance_before = db.Column(Money(), nullable=False)
    balance_after = db.Column(Money(), nullable=False)

    reference_type = db.Column(db.String(64), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    admin_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    @property
    def signed_amount(self):
        return -self.amount if self.transaction_type == "deduct" else self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "transaction_type": self.transaction_type,
            "amount": format_amount(self.amount),
            "balance_before": format_amount(self.balance_before),
            "balance_after": format_amount(self.balance_after),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "admin_user_id": self.admin_user_id,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class PointChargeRequest(db.Model):
    """
    A user's request for a points top-up after paying out of band.

    LIFECYCLE: pending -> approved (points charged) | rejected
    """
    __tablename__ = "point_charge_requests"
    __table_args__ = (
        db.CheckConstraint("requested_amount > 0", name="ck_point_charge_requests_amount_positive"),
        db.Index("ix_point_charge_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    requested_amount = db.Column(Money(), nullable=False)
    requested_points = db.Column(Money(), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    description = db.Column(db.String(255), nullable=True)
    admin_notes = db.Column(db.String(255), nullable=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    points_transaction_id = db.Column(db.Integer, db.ForeignKey("points_transactions.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "requested_amount": format_amount(self.requested_amount),
            "requested_points": format_amount(self.requested_points),
            "status": self.status,
            "description": self.description,
            "admin_notes": self.admin_notes,
            "admin_user_id": self.admin_user_id,
            "points_transaction_id": self.points_transaction_id,
            "created_at": to_utc_z(self.created_at),
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
        }
