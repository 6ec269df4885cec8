from __future__ import annotations

from ..extensions import db
from ..money import Money, format_amount
from ..time_utils import to_utc_z


SALES_LIST_STATUSES = ("pending", "approved", "rejected")
PRODUCT_STATUSES = ("active", "sold", "inactive")
PURCHASE_REQUEST_STATUSES = ("pending", "approved", "rejected", "cancelled")


class SalesList(db.Model):
    """
    A seller's submission of surplus stock, awaiting admin review.

    LIFECYCLE: pending -> approved | rejected (admin, exactly once).
    Approval turns every item into an active Product.
    """
    __tablename__ = "sales_lists"
    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_sales_lists_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    seller = db.relationship("User", foreign_keys=[seller_id])
    items = db.relationship(
        "SalesListItem",
        backref="sales_list",
        order_by="SalesListItem.line_no",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "status": self.status,
            "notes": self.notes,
            "admin_notes": self.admin_notes,
            "created_at": to_utc_z(self.created_at),
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "reviewed_by": self.reviewed_by,
            "items": [item.to_dict() for item in self.items],
        }


class SalesListItem(db.Model):
    """One line of a sales list; copied into a Product on approval."""
    __tablename__ = "sales_list_items"
    __table_args__ = (
        db.UniqueConstraint("sales_list_id", "line_no", name="uq_sales_list_items_line"),
        db.CheckConstraint("quantity > 0", name="ck_sales_list_items_quantity_positive"),
        db.CheckConstraint("selling_price > 0", name="ck_sales_list_items_price_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_list_id = db.Column(db.Integer, db.ForeignKey("sales_lists.id"), nullable=False, index=True)
    line_no = db.Column(db.Integer, nullable=False)

    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    manufacturer = db.Column(db.String(255), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    selling_price = db.Column(Money(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "line_no": self.line_no,
            "product_name": self.product_name,
            "specification": self.specification,
            "manufacturer": self.manufacturer,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "quantity": self.quantity,
            "selling_price": format_amount(self.selling_price),
        }


class Product(db.Model):
    """
    Dead/excess stock listed by a seller.

    QUANTITY: storage requires quantity > 0. A fully consumed listing keeps
    quantity=1 and status='sold'; status is the source of truth for depletion.

    Created by catalog_service when a sales list is approved, then mutated
    only by inventory_service during purchase approval. version_id guards the
    decrement against concurrent approvals (optimistic compare-and-swap).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_products_quantity_positive"),
        db.CheckConstraint("selling_price >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("status IN ('active', 'sold', 'inactive')", name="ck_products_status"),
        db.Index("ix_products_seller_status", "seller_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    sales_list_id = db.Column(db.Integer, db.ForeignKey("sales_lists.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    specification = db.Column(db.String(255), nullable=True)
    manufacturer = db.Column(db.String(255), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    selling_price = db.Column(Money(), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    seller = db.relationship("User", foreign_keys=[seller_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_quantity(self) -> int:
        return self.quantity if self.status == "active" else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "sales_list_id": self.sales_list_id,
            "product_name": self.product_name,
            "specification": self.specification,
            "manufacturer": self.manufacturer,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "quantity": self.quantity,
            "available_quantity": self.available_quantity,
            "selling_price": format_amount(self.selling_price),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class PurchaseRequest(db.Model):
    """
    A buyer's offer to buy a quantity of a product, awaiting admin review.

    LIFECYCLE: pending -> approved | rejected (admin, exactly once)
               pending -> cancelled (buyer)
    """
    __tablename__ = "purchase_requests"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_requests_quantity_positive"),
        db.CheckConstraint("total_price >= 0", name="ck_purchase_requests_total_non_negative"),
        db.Index("ix_purchase_requests_status_requested", "status", "requested_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(Money(), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    shipping_address = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    product = db.relationship("Product", backref=db.backref("purchase_requests", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyer_id": self.buyer_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "total_price": format_amount(self.total_price),
            "status": self.status,
            "shipping_address": self.shipping_address,
            "notes": self.notes,
            "requested_at": to_utc_z(self.requested_at),
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "reviewed_by": self.reviewed_by,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
        }
