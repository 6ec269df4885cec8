from __future__ import annotations

from ..extensions import db
from ..money import Money, format_amount
from ..time_utils import to_utc_z


REPORT_STATUSES = ("created", "sent", "confirmed", "shipped", "completed")


class PurchaseOrder(db.Model):
    """
    Bookkeeping line for an approved sale's commission split.

    One per approved purchase request (unique purchase_request_id).
    purchase_price is the seller's net; total_amount is what the buyer pays.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("purchase_request_id", name="uq_purchase_orders_request"),
        db.CheckConstraint("quantity > 0", name="ck_purchase_orders_quantity_positive"),
        db.CheckConstraint("commission >= 0", name="ck_purchase_orders_commission_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_request_id = db.Column(db.Integer, db.ForeignKey("purchase_requests.id"), nullable=False)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    purchase_price = db.Column(Money(), nullable=False)
    commission = db.Column(Money(), nullable=False)
    total_amount = db.Column(Money(), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="approved")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase_request = db.relationship("PurchaseRequest", backref=db.backref("purchase_order", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_request_id": self.purchase_request_id,
            "seller_id": self.seller_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "purchase_price": format_amount(self.purchase_price),
            "commission": format_amount(self.commission),
            "total_amount": format_amount(self.total_amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class SalesApprovalReport(db.Model):
    """
    Settlement document delivered to the seller for an approved sale.

    LIFECYCLE (forward-only): created -> sent -> confirmed -> shipped -> completed

    DISCLOSURE: buyer contact details stay hidden from the seller until
    buyer_info_revealed flips, which happens exactly once and only together
    with a points deduction referencing this report.
    """
    __tablename__ = "sales_approval_reports"
    __table_args__ = (
        db.UniqueConstraint("report_number", name="uq_sales_reports_number"),
        db.UniqueConstraint("purchase_request_id", name="uq_sales_reports_request"),
        db.Index("ix_sales_reports_seller_status", "seller_id", "status"),
        db.CheckConstraint(
            "status IN ('created', 'sent', 'confirmed', 'shipped', 'completed')",
            name="ck_sales_reports_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "SAR-2026-0001"
    report_number = db.Column(db.String(32), nullable=False)

    purchase_request_id = db.Column(db.Integer, db.ForeignKey("purchase_requests.id"), nullable=False)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(Money(), nullable=False)
    total_amount = db.Column(Money(), nullable=False)
    commission = db.Column(Money(), nullable=False)
    seller_amount = db.Column(Money(), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="created", index=True)

    buyer_info_revealed = db.Column(db.Boolean, nullable=False, default=False)
    buyer_info_revealed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    points_deducted = db.Column(Money(), nullable=False, default=0)

    shipping_address = db.Column(db.String(512), nullable=True)
    tracking_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchase_order = db.relationship("PurchaseOrder")
    purchase_request = db.relationship("PurchaseRequest", backref=db.backref("report", uselist=False, lazy=True))
    seller = db.relationship("User", foreign_keys=[seller_id])
    buyer = db.relationship("User", foreign_keys=[buyer_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "report_number": self.report_number,
            "purchase_request_id": self.purchase_request_id,
            "purchase_order_id": self.purchase_order_id,
            "seller_id": self.seller_id,
            "buyer_id": self.buyer_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": format_amount(self.unit_price),
            "total_amount": format_amount(self.total_amount),
            "commission": format_amount(self.commission),
            "seller_amount": format_amount(self.seller_amount),
            "status": self.status,
            "buyer_info_revealed": self.buyer_info_revealed,
            "buyer_info_revealed_at": to_utc_z(self.buyer_info_revealed_at) if self.buyer_info_revealed_at else None,
            "points_deducted": format_amount(self.points_deducted),
            "shipping_address": self.shipping_address,
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
            "shipped_at": to_utc_z(self.shipped_at) if self.shipped_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }


class ReportSequence(db.Model):
    """
    Atomic per-year report number counter.

    WHY: "read max, then insert" hands out duplicate numbers under concurrent
    approvals. The counter row is incremented with a single UPDATE instead.
    """
    __tablename__ = "report_sequences"
    __table_args__ = (
        db.UniqueConstraint("year", name="uq_report_sequences_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
