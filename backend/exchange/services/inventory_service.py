# Overview: Stock decrement for approved purchase requests.

"""
Inventory Mutator

decrement_stock() is the only writer of Product.quantity/status during
fulfillment. It never commits; the caller's transaction owns the change so
a failed settlement rolls the decrement back with it.

SOLD-OUT SENTINEL: storage requires quantity > 0, so a fully consumed
listing is persisted as status='sold', quantity=1. Anything not 'active'
has zero available stock regardless of the stored quantity.

CONCURRENCY: the product row is read with FOR UPDATE and written through
the version_id column, so a racing approval either waits for the lock or
fails the compare-and-swap (StaleDataError) and is retried by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Product, User
from ..errors import InsufficientStock, ProductNotFound, SellerProfileMissing, ValidationError
from .concurrency import lock_for_update


SOLD_OUT_SENTINEL_QUANTITY = 1


@dataclass(frozen=True)
class StockChange:
    product_id: int
    previous_quantity: int
    new_quantity: int
    new_status: str


def get_product_for_update(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise ProductNotFound(product_id)

    seller = db.session.get(User, product.seller_id) if product.seller_id else None
    if seller is None:
        current_app.logger.critical(
            "Product %s references missing seller %s", product.id, product.seller_id
        )
        raise SellerProfileMissing(product.id, product.seller_id)
    return product


def decrement_stock(product_id: int, requested_qty: int) -> StockChange:
    """
    Remove requested_qty units from a product.

    Raises ProductNotFound, SellerProfileMissing, or InsufficientStock (also
    when the listing is no longer active). Flushes, does not commit.
    """
    if not isinstance(requested_qty, int) or isinstance(requested_qty, bool) or requested_qty <= 0:
        raise ValidationError("quantity must be a positive integer")

    product = get_product_for_update(product_id)

    available = product.available_quantity
    if requested_qty > available:
        raise InsufficientStock(product.id, requested_qty, available)

    previous = product.quantity
    remaining = previous - requested_qty
    if remaining <= 0:
        product.status = "sold"
        product.quantity = SOLD_OUT_SENTINEL_QUANTITY
    else:
        product.status = "active"
        product.quantity = remaining

    db.session.flush()

    current_app.logger.info(
        "Stock decremented for product %s: %s -> %s (%s)",
        product.id, previous, max(remaining, 0), product.status,
    )
    return StockChange(
        product_id=product.id,
        previous_quantity=previous,
        new_quantity=product.quantity,
        new_status=product.status,
    )
