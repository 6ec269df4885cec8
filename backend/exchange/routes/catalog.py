# Overview: Flask API routes for seller sales lists and the product catalog.

"""
Catalog API

Sellers submit sales lists; an admin approves a list into active products;
any authenticated user browses active products to find a product_id for a
purchase request.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ExchangeError
from ..services import catalog_service
from ..decorators import require_auth, require_admin, actor_matches


sales_lists_bp = Blueprint("sales_lists", __name__, url_prefix="/api/sales-lists")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@sales_lists_bp.post("")
@require_auth
def create_sales_list_route():
    """
    Seller submits stock for listing.

    Body: {"sellerId"?: int, "notes"?: str,
           "items": [{"product_name", "quantity", "selling_price",
                      "specification"?, "manufacturer"?, "expiry_date"?}]}
    """
    try:
        data = request.get_json(silent=True) or {}
        if not actor_matches(data.get("sellerId")):
            return jsonify({"success": False, "error": "sellerId does not match the authenticated user"}), 403
        if not data.get("items"):
            return jsonify({"success": False, "error": "items required"}), 400

        sales_list = catalog_service.create_sales_list(
            g.current_user.id,
            data.get("items"),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "sales_list": sales_list.to_dict()}), 201

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sales list")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@sales_lists_bp.get("")
@require_auth
def list_sales_lists_route():
    """Admins see every list (optionally ?seller_id=); sellers see their own."""
    try:
        user = g.current_user
        seller_id = request.args.get("seller_id", type=int) if user.is_admin else user.id
        rows = catalog_service.list_sales_lists(seller_id=seller_id, status=request.args.get("status"))
        return jsonify({"success": True, "sales_lists": [r.to_dict() for r in rows]}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_lists_bp.get("/<int:sales_list_id>")
@require_auth
def get_sales_list_route(sales_list_id: int):
    try:
        sales_list = catalog_service.get_sales_list(sales_list_id)
    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status

    user = g.current_user
    if not (user.is_admin or user.id == sales_list.seller_id):
        return jsonify({"success": False, "error": "Sales list not found"}), 404

    return jsonify({"success": True, "sales_list": sales_list.to_dict()}), 200


@sales_lists_bp.post("/<int:sales_list_id>/review")
@require_auth
@require_admin
def review_sales_list_route(sales_list_id: int):
    """
    Approve (list every item as a product) or reject a sales list.

    Body: {"status": "approved" | "rejected", "adminUserId"?: int, "adminNotes"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        decision = data.get("status")

        if not decision:
            return jsonify({"success": False, "error": "status required"}), 400
        if not actor_matches(data.get("adminUserId")):
            return jsonify({"success": False, "error": "adminUserId does not match the authenticated user"}), 403

        sales_list, products = catalog_service.review_sales_list(
            sales_list_id,
            decision,
            g.current_user.id,
            admin_notes=data.get("adminNotes"),
        )
        return jsonify({
            "success": True,
            "sales_list": sales_list.to_dict(),
            "products": [p.to_dict() for p in products],
            "insertedCount": len(products),
        }), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to review sales list %s", sales_list_id)
        return jsonify({"success": False, "error": "Internal server error"}), 500


@products_bp.get("")
@require_auth
def list_products_route():
    """Active products, newest first. Optional ?seller_id= and ?q= (name search)."""
    try:
        rows = catalog_service.list_products(
            seller_id=request.args.get("seller_id", type=int),
            search=request.args.get("q"),
        )
        return jsonify({"success": True, "products": [p.to_dict() for p in rows], "count": len(rows)}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"success": True, "product": product.to_dict()}), 200

    except ExchangeError as e:
        return jsonify(e.to_dict()), e.http_status
