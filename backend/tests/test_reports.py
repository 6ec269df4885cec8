"""Sales approval report lifecycle and role-aware views."""

from decimal import Decimal

import pytest

from exchange.errors import Forbidden, InvalidReportTransition, ReportNotFound, ValidationError
from exchange.models import SalesApprovalReport
from exchange.services import disclosure_service, fulfillment_service, points_service, report_service

from conftest import make_purchase_request, make_user


@pytest.fixture
def report(db_session, admin, buyer, product):
    pr = make_purchase_request(db_session, buyer, product, 4)
    result = fulfillment_service.review_purchase_request(pr.id, "approved", admin.id)
    return db_session.get(SalesApprovalReport, result.report_id)


class TestLifecycle:

    def test_happy_path(self, db_session, admin, seller, report):
        assert report.status == "sent"

        confirmed = report_service.apply_action(report.id, "confirm", seller.id)
        assert confirmed.status == "confirmed"
        assert confirmed.confirmed_at is not None

        shipped = report_service.apply_action(report.id, "ship", seller.id, tracking_number=" CJ-123456 ")
        assert shipped.status == "shipped"
        assert shipped.tracking_number == "CJ-123456"
        assert shipped.shipped_at is not None

        completed = report_service.apply_action(report.id, "complete", admin.id, notes="Delivered")
        assert completed.status == "completed"
        assert completed.completed_at is not None
        assert completed.notes == "Delivered"

    def test_send_only_from_created(self, db_session, admin, report):
        with pytest.raises(InvalidReportTransition) as exc_info:
            report_service.apply_action(report.id, "send", admin.id)
        assert exc_info.value.details["status"] == "sent"

    def test_send_created_report(self, db_session, admin, report):
        report.status = "created"
        report.sent_at = None
        db_session.commit()

        sent = report_service.apply_action(report.id, "send", admin.id)
        assert sent.status == "sent"
        assert sent.sent_at is not None

    def test_no_skipping_states(self, db_session, seller, report):
        with pytest.raises(InvalidReportTransition):
            report_service.apply_action(report.id, "ship", seller.id, tracking_number="X1")
        assert db_session.get(SalesApprovalReport, report.id).status == "sent"

    def test_no_backward_transitions(self, db_session, seller, report):
        report_service.apply_action(report.id, "confirm", seller.id)
        with pytest.raises(InvalidReportTransition):
            report_service.apply_action(report.id, "confirm", seller.id)

    def test_ship_requires_tracking_number(self, db_session, seller, report):
        report_service.apply_action(report.id, "confirm", seller.id)
        with pytest.raises(ValidationError):
            report_service.apply_action(report.id, "ship", seller.id, tracking_number="   ")

    def test_unknown_action(self, db_session, seller, report):
        with pytest.raises(ValidationError):
            report_service.apply_action(report.id, "archive", seller.id)

    def test_seller_cannot_complete(self, db_session, seller, report):
        report_service.apply_action(report.id, "confirm", seller.id)
        report_service.apply_action(report.id, "ship", seller.id, tracking_number="X1")
        with pytest.raises(Forbidden):
            report_service.apply_action(report.id, "complete", seller.id)

    def test_other_user_cannot_confirm(self, db_session, buyer, report):
        with pytest.raises(Forbidden):
            report_service.apply_action(report.id, "confirm", buyer.id)
        assert db_session.get(SalesApprovalReport, report.id).status == "sent"

    def test_missing_report(self, db_session, admin):
        with pytest.raises(ReportNotFound):
            report_service.apply_action(99999, "complete", admin.id)


class TestViews:

    def test_seller_view_masks_buyer(self, db_session, seller, report):
        view = report_service.report_view(report, seller)
        assert view["buyer"] is None
        assert view["buyer_id"] is None
        assert view["shipping_address"] is None
        assert view["seller"]["company_name"] == "Seoul Central Pharmacy"
        assert view["commission"] == "20.00"
        assert view["report_number"] == report.report_number

    def test_admin_sees_buyer(self, db_session, admin, buyer, report):
        view = report_service.report_view(report, admin)
        assert view["buyer"]["company_name"] == "Busan Harbor Pharmacy"
        assert view["buyer"]["phone_number"] == "051-555-0199"
        assert view["buyer_id"] == buyer.id

    def test_seller_sees_buyer_after_reveal(self, db_session, admin, seller, report):
        points_service.charge(seller.id, 20, admin.id)
        disclosure_service.reveal_buyer_info(report.id, seller.id)

        stored = db_session.get(SalesApprovalReport, report.id)
        view = report_service.report_view(stored, seller)
        assert view["buyer"]["business_number"] == "123-45-67890"
        assert view["shipping_address"] == "12 Harbor Road, Busan"
        assert view["points_deducted"] == "20.00"

    def test_can_view(self, db_session, admin, seller, buyer, report):
        assert report_service.can_view(report, admin)
        assert report_service.can_view(report, seller)
        assert not report_service.can_view(report, buyer)


class TestListing:

    def test_filter_by_seller_and_status(self, db_session, admin, seller, buyer, report):
        other_seller = make_user(db_session, "other@pharmacy.test")

        assert [r.id for r in report_service.list_reports(seller_id=seller.id)] == [report.id]
        assert report_service.list_reports(seller_id=other_seller.id) == []
        assert [r.id for r in report_service.list_reports(status="sent")] == [report.id]
        assert report_service.list_reports(status="completed") == []

    def test_bad_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            report_service.list_reports(status="lost")

    def test_commission_on_report(self, report):
        assert report.commission == Decimal("20.00")
        assert report.seller_amount == Decimal("380.00")


class TestUnsentReports:
    """A report in 'created' stays with the admins until it is sent."""

    @pytest.fixture
    def unsent(self, db_session, report):
        report.status = "created"
        report.sent_at = None
        db_session.commit()
        return report

    def test_hidden_from_seller(self, db_session, admin, seller, unsent):
        assert not report_service.can_view(unsent, seller)
        assert report_service.can_view(unsent, admin)

    def test_seller_listing_skips_unsent(self, db_session, seller, unsent):
        assert report_service.list_reports(seller_id=seller.id, sent_only=True) == []
        assert [r.id for r in report_service.list_reports(seller_id=seller.id)] == [unsent.id]

    def test_seller_cannot_act_on_unsent(self, db_session, seller, unsent):
        with pytest.raises(ReportNotFound):
            report_service.apply_action(unsent.id, "confirm", seller.id)
        assert db_session.get(SalesApprovalReport, unsent.id).status == "created"

    def test_visible_once_sent(self, db_session, admin, seller, unsent):
        report_service.apply_action(unsent.id, "send", admin.id)
        sent = db_session.get(SalesApprovalReport, unsent.id)
        assert report_service.can_view(sent, seller)
        assert [r.id for r in report_service.list_reports(seller_id=seller.id, sent_only=True)] == [sent.id]
