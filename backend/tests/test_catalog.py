"""Seller sales lists, admin listing approval and the product catalog."""

from datetime import date
from decimal import Decimal

import pytest

from exchange.errors import Forbidden, SalesListAlreadyReviewed, SalesListNotFound, ValidationError
from exchange.models import Product, SalesList
from exchange.services import audit_service, catalog_service, fulfillment_service, purchase_request_service

from conftest import make_product


ITEMS = [
    {
        "product_name": "Amoxicillin 500mg",
        "manufacturer": "Hanmi",
        "specification": "30 caps",
        "expiry_date": "2027-03-31",
        "quantity": 12,
        "selling_price": "4500.00",
    },
    {"product_name": "Cetirizine 10mg", "quantity": "5", "selling_price": 1200},
]


@pytest.fixture
def sales_list(db_session, seller):
    return catalog_service.create_sales_list(seller.id, ITEMS, notes="Q3 surplus")


class TestCreateSalesList:

    def test_pending_with_items(self, db_session, seller, sales_list):
        assert sales_list.status == "pending"
        assert sales_list.seller_id == seller.id
        assert [i.line_no for i in sales_list.items] == [0, 1]

        first, second = sales_list.items
        assert first.expiry_date == date(2027, 3, 31)
        assert first.selling_price == Decimal("4500.00")
        assert second.quantity == 5
        assert second.selling_price == Decimal("1200.00")

        # Nothing is purchasable until an admin approves the list
        assert db_session.query(Product).count() == 0

    def test_creation_is_audited(self, db_session, seller, sales_list):
        events = audit_service.list_events("sales_list", sales_list.id)
        assert [e.event_type for e in events] == ["sales_list.created"]
        assert events[0].actor_user_id == seller.id

    @pytest.mark.parametrize("items", [None, [], "Amoxicillin", [42]])
    def test_items_must_be_non_empty_list_of_objects(self, db_session, seller, items):
        with pytest.raises(ValidationError):
            catalog_service.create_sales_list(seller.id, items)

    @pytest.mark.parametrize("override", [
        {"product_name": "  "},
        {"quantity": 0},
        {"quantity": -3},
        {"quantity": True},
        {"selling_price": 0},
        {"selling_price": "12.345"},
        {"selling_price": None},
        {"expiry_date": "31/03/2027"},
    ])
    def test_invalid_item_rejects_whole_list(self, db_session, seller, override):
        bad = dict(ITEMS[0], **override)
        with pytest.raises(ValidationError):
            catalog_service.create_sales_list(seller.id, [ITEMS[1], bad])
        assert db_session.query(SalesList).count() == 0


class TestReviewSalesList:

    def test_approve_lists_every_item(self, db_session, admin, seller, sales_list):
        reviewed, products = catalog_service.review_sales_list(sales_list.id, "approved", admin.id, admin_notes="OK")

        assert reviewed.status == "approved"
        assert reviewed.reviewed_by == admin.id
        assert reviewed.reviewed_at is not None
        assert len(products) == 2

        stored = db_session.query(Product).order_by(Product.id).all()
        assert [p.product_name for p in stored] == ["Amoxicillin 500mg", "Cetirizine 10mg"]
        assert all(p.status == "active" for p in stored)
        assert all(p.seller_id == seller.id for p in stored)
        assert all(p.sales_list_id == sales_list.id for p in stored)
        assert stored[0].quantity == 12
        assert stored[0].expiry_date == date(2027, 3, 31)

        events = audit_service.list_events("sales_list", sales_list.id)
        assert [e.event_type for e in events] == ["sales_list.created", "sales_list.approved"]

    def test_reject_lists_nothing(self, db_session, admin, sales_list):
        reviewed, products = catalog_service.review_sales_list(sales_list.id, "rejected", admin.id)
        assert reviewed.status == "rejected"
        assert products == []
        assert db_session.query(Product).count() == 0

    def test_second_review_conflicts(self, db_session, admin, sales_list):
        catalog_service.review_sales_list(sales_list.id, "approved", admin.id)
        with pytest.raises(SalesListAlreadyReviewed):
            catalog_service.review_sales_list(sales_list.id, "approved", admin.id)
        assert db_session.query(Product).count() == 2

    def test_requires_admin(self, db_session, seller, sales_list):
        with pytest.raises(Forbidden):
            catalog_service.review_sales_list(sales_list.id, "approved", seller.id)
        assert db_session.get(SalesList, sales_list.id).status == "pending"

    def test_unknown_decision(self, db_session, admin, sales_list):
        with pytest.raises(ValidationError):
            catalog_service.review_sales_list(sales_list.id, "maybe", admin.id)

    def test_missing_list(self, db_session, admin):
        with pytest.raises(SalesListNotFound):
            catalog_service.review_sales_list(99999, "approved", admin.id)


class TestProductCatalog:

    def test_only_active_products(self, db_session, seller):
        active = make_product(db_session, seller, product_name="Loratadine 10mg")
        make_product(db_session, seller, quantity=1, status="sold")
        make_product(db_session, seller, status="inactive")

        assert [p.id for p in catalog_service.list_products()] == [active.id]

    def test_search_and_seller_filter(self, db_session, seller, buyer):
        amox = make_product(db_session, seller, product_name="Amoxicillin 500mg")
        make_product(db_session, buyer, product_name="Ibuprofen 200mg")

        assert [p.id for p in catalog_service.list_products(search="amoxi")] == [amox.id]
        assert [p.id for p in catalog_service.list_products(seller_id=seller.id)] == [amox.id]

    def test_approved_listing_is_purchasable(self, db_session, admin, buyer, sales_list):
        _, products = catalog_service.review_sales_list(sales_list.id, "approved", admin.id)
        amox = products[0]

        pr = purchase_request_service.create_purchase_request(buyer.id, amox.id, 12)
        result = fulfillment_service.review_purchase_request(pr.id, "approved", admin.id)

        assert result.success
        assert result.commission == "2700.00"
        assert db_session.get(Product, amox.id).status == "sold"
        assert amox.id not in [p.id for p in catalog_service.list_products()]
