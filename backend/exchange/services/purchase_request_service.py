# Overview: Buyer-side purchase request creation, cancellation and listing.

from __future__ import annotations

from ..extensions import db
from ..models import Product, PurchaseRequest
from ..models.catalog import PURCHASE_REQUEST_STATUSES
from ..errors import (
    Forbidden,
    InsufficientStock,
    ProductNotFound,
    PurchaseRequestAlreadyReviewed,
    PurchaseRequestNotFound,
    ValidationError,
)
from ..money import round_money
from ..time_utils import utcnow
from . import audit_service
from .auth_service import get_user
from .concurrency import begin_immediate, lock_for_update, run_with_retry


def _parse_quantity(quantity) -> int:
    if isinstance(quantity, bool):
        raise ValidationError("quantity must be a positive integer")
    if isinstance(quantity, str) and quantity.strip().isdigit():
        quantity = int(quantity.strip())
    if not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def create_purchase_request(
    buyer_id: int,
    product_id: int,
    quantity,
    shipping_address: str | None = None,
    notes: str | None = None,
) -> PurchaseRequest:
    """
    Create a pending request priced at the listing's current selling price.

    Stock is only checked here, not reserved; approval re-validates it.
    """
    quantity = _parse_quantity(quantity)
    get_user(buyer_id)

    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound(product_id)
    if product.seller_id == buyer_id:
        raise ValidationError("Sellers cannot purchase their own listings")
    if quantity > product.available_quantity:
        raise InsufficientStock(product.id, quantity, product.available_quantity)

    purchase_request = PurchaseRequest(
        buyer_id=buyer_id,
        product_id=product.id,
        quantity=quantity,
        total_price=round_money(product.selling_price * quantity),
        status="pending",
        shipping_address=shipping_address,
        notes=notes,
        requested_at=utcnow(),
    )
    db.session.add(purchase_request)
    db.session.flush()

    audit_service.append_event(
        event_type="purchase_request.created",
        entity_type="purchase_request",
        entity_id=purchase_request.id,
        actor_user_id=buyer_id,
    )
    db.session.commit()
    return purchase_request


def cancel_purchase_request(purchase_request_id: int, buyer_id: int) -> PurchaseRequest:
    """Buyer withdraws a request that has not been reviewed yet."""
    def _op() -> PurchaseRequest:
        begin_immediate()
        purchase_request = lock_for_update(
            db.session.query(PurchaseRequest).filter_by(id=purchase_request_id)
        ).first()
        if not purchase_request:
            raise PurchaseRequestNotFound(purchase_request_id)
        if purchase_request.buyer_id != buyer_id:
            raise Forbidden("Only the buyer can cancel this purchase request")
        if purchase_request.status != "pending":
            raise PurchaseRequestAlreadyReviewed(purchase_request.id, purchase_request.status)

        purchase_request.status = "cancelled"
        purchase_request.cancelled_at = utcnow()
        audit_service.append_event(
            event_type="purchase_request.cancelled",
            entity_type="purchase_request",
            entity_id=purchase_request.id,
            actor_user_id=buyer_id,
        )
        db.session.commit()
        return purchase_request

    return run_with_retry(_op)


def list_purchase_requests(
    status: str | None = None,
    buyer_id: int | None = None,
    seller_id: int | None = None,
) -> list[PurchaseRequest]:
    if status and status not in PURCHASE_REQUEST_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PURCHASE_REQUEST_STATUSES)}")
    q = db.session.query(PurchaseRequest)
    if status:
        q = q.filter(PurchaseRequest.status == status)
    if buyer_id:
        q = q.filter(PurchaseRequest.buyer_id == buyer_id)
    if seller_id:
        q = q.join(Product, Product.id == PurchaseRequest.product_id).filter(Product.seller_id == seller_id)
    return q.order_by(PurchaseRequest.requested_at.desc(), PurchaseRequest.id.desc()).all()


def get_purchase_request(purchase_request_id: int) -> PurchaseRequest:
    purchase_request = db.session.get(PurchaseRequest, purchase_request_id)
    if not purchase_request:
        raise PurchaseRequestNotFound(purchase_request_id)
    return purchase_request
