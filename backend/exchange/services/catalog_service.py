# Overview: Seller sales lists, admin listing approval and the public product catalog.

"""
Listing pipeline

    seller submits sales list (pending)
      -> admin approves: every item becomes an active Product
      -> admin rejects: nothing is listed

Items are validated when the list is submitted, so approval either lists
every item or (on any failure) nothing. Products are only ever created here.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Product, SalesList, SalesListItem
from ..models.catalog import SALES_LIST_STATUSES
from ..errors import ProductNotFound, SalesListAlreadyReviewed, SalesListNotFound, ValidationError
from ..money import to_decimal
from ..time_utils import utcnow
from . import audit_service
from .auth_service import get_user, require_admin
from .concurrency import begin_immediate, lock_for_update, run_with_retry


REVIEW_DECISIONS = ("approved", "rejected")

MAX_ITEMS_PER_LIST = 200


def _text(value, field: str, required: bool = False, max_len: int = 255) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters")
    return value


def _quantity(value, line_no: int) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"items[{line_no}].quantity must be a positive integer")
    return value


def _expiry(value, line_no: int) -> date | None:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"items[{line_no}].expiry_date must be an ISO date (YYYY-MM-DD)")


def _parse_item(raw, line_no: int) -> SalesListItem:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{line_no}] must be an object")

    price = to_decimal(raw.get("selling_price"), f"items[{line_no}].selling_price")
    if price <= 0:
        raise ValidationError(f"items[{line_no}].selling_price must be positive")

    return SalesListItem(
        line_no=line_no,
        product_name=_text(raw.get("product_name"), f"items[{line_no}].product_name", required=True),
        specification=_text(raw.get("specification"), f"items[{line_no}].specification"),
        manufacturer=_text(raw.get("manufacturer"), f"items[{line_no}].manufacturer"),
        expiry_date=_expiry(raw.get("expiry_date"), line_no),
        quantity=_quantity(raw.get("quantity"), line_no),
        selling_price=price,
    )


def create_sales_list(seller_id: int, items, notes: str | None = None) -> SalesList:
    """Validate every item and store the list as pending."""
    get_user(seller_id)
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    if len(items) > MAX_ITEMS_PER_LIST:
        raise ValidationError(f"A sales list may hold at most {MAX_ITEMS_PER_LIST} items")

    sales_list = SalesList(
        seller_id=seller_id,
        status="pending",
        notes=notes,
        created_at=utcnow(),
        items=[_parse_item(raw, i) for i, raw in enumerate(items)],
    )
    db.session.add(sales_list)
    db.session.flush()

    audit_service.append_event(
        event_type="sales_list.created",
        entity_type="sales_list",
        entity_id=sales_list.id,
        actor_user_id=seller_id,
        payload={"items": len(sales_list.items)},
    )
    db.session.commit()
    return sales_list


def review_sales_list(
    sales_list_id: int,
    decision: str,
    admin_user_id: int | None,
    admin_notes: str | None = None,
) -> tuple[SalesList, list[Product]]:
    """
    Approve or reject a pending sales list.

    Approval creates one active Product per item in the same transaction as
    the status flip. Returns the list and the products created (empty on
    rejection).
    """
    require_admin(admin_user_id)
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(f"status must be one of: {', '.join(REVIEW_DECISIONS)}")

    def _op() -> tuple[SalesList, list[Product]]:
        begin_immediate()
        sales_list = lock_for_update(
            db.session.query(SalesList).filter_by(id=sales_list_id)
        ).first()
        if not sales_list:
            raise SalesListNotFound(sales_list_id)
        if sales_list.status != "pending":
            raise SalesListAlreadyReviewed(sales_list.id, sales_list.status)

        sales_list.status = decision
        sales_list.reviewed_at = utcnow()
        sales_list.reviewed_by = admin_user_id
        sales_list.admin_notes = admin_notes

        products = []
        if decision == "approved":
            for item in sales_list.items:
                product = Product(
                    seller_id=sales_list.seller_id,
                    sales_list_id=sales_list.id,
                    product_name=item.product_name,
                    specification=item.specification,
                    manufacturer=item.manufacturer,
                    expiry_date=item.expiry_date,
                    quantity=item.quantity,
                    selling_price=item.selling_price,
                    status="active",
                )
                db.session.add(product)
                products.append(product)
            db.session.flush()

        audit_service.append_event(
            event_type=f"sales_list.{decision}",
            entity_type="sales_list",
            entity_id=sales_list.id,
            actor_user_id=admin_user_id,
            note=admin_notes,
            payload={"product_ids": [p.id for p in products]} if products else None,
        )
        db.session.commit()
        return sales_list, products

    sales_list, products = run_with_retry(_op)
    current_app.logger.info(
        "Sales list %s %s by admin %s (%d products listed)",
        sales_list.id, decision, admin_user_id, len(products),
    )
    return sales_list, products


def list_sales_lists(seller_id: int | None = None, status: str | None = None) -> list[SalesList]:
    if status and status not in SALES_LIST_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SALES_LIST_STATUSES)}")
    q = db.session.query(SalesList)
    if seller_id:
        q = q.filter(SalesList.seller_id == seller_id)
    if status:
        q = q.filter(SalesList.status == status)
    return q.order_by(SalesList.created_at.desc(), SalesList.id.desc()).all()


def get_sales_list(sales_list_id: int) -> SalesList:
    sales_list = db.session.get(SalesList, sales_list_id)
    if not sales_list:
        raise SalesListNotFound(sales_list_id)
    return sales_list


def list_products(seller_id: int | None = None, search: str | None = None) -> list[Product]:
    """Purchasable products only: status 'active', newest first."""
    q = db.session.query(Product).filter(Product.status == "active")
    if seller_id:
        q = q.filter(Product.seller_id == seller_id)
    if search and search.strip():
        q = q.filter(Product.product_name.ilike(f"%{search.strip()}%"))
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound(product_id)
    return product
