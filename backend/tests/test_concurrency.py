"""
Threaded concurrency tests against a file-backed SQLite database.

Each worker runs in its own app context (and so its own session and
connection), which is how concurrent requests reach the services.
"""

import os
import tempfile
import threading
import unittest
from decimal import Decimal

from exchange import create_app
from exchange.errors import InsufficientStock
from exchange.extensions import db
from exchange.models import Product, PointsTransaction, PurchaseRequest, SalesApprovalReport, User
from exchange.services import disclosure_service, fulfillment_service, points_service
from exchange.time_utils import current_year


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "BCRYPT_ROUNDS": 4,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            admin = User(email="admin@concurrency.test", password_hash="dummy", role="admin", is_active=True)
            seller = User(email="seller@concurrency.test", password_hash="dummy", company_name="Seller", is_active=True)
            buyer = User(email="buyer@concurrency.test", password_hash="dummy", company_name="Buyer", is_active=True)
            db.session.add_all([admin, seller, buyer])
            db.session.commit()
            self.admin_id, self.seller_id, self.buyer_id = admin.id, seller.id, buyer.id

            product = Product(
                seller_id=self.seller_id,
                product_name="Concurrent Product",
                quantity=10,
                selling_price=Decimal("100.00"),
                status="active",
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _purchase_request(self, quantity):
        with self.app.app_context():
            pr = PurchaseRequest(
                buyer_id=self.buyer_id,
                product_id=self.product_id,
                quantity=quantity,
                total_price=Decimal("100.00") * quantity,
                status="pending",
            )
            db.session.add(pr)
            db.session.commit()
            return pr.id

    def _run_threads(self, target, args_list):
        threads = [threading.Thread(target=target, args=args) for args in args_list]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    def test_concurrent_approval_oversell(self):
        pr1 = self._purchase_request(6)
        pr2 = self._purchase_request(6)

        results = []
        lock = threading.Lock()

        def worker(pr_id):
            with self.app.app_context():
                try:
                    fulfillment_service.review_purchase_request(pr_id, "approved", self.admin_id)
                    outcome = "approved"
                except Exception as exc:
                    outcome = exc
                finally:
                    db.session.remove()
                with lock:
                    results.append(outcome)

        self._run_threads(worker, [(pr1,), (pr2,)])

        self.assertEqual(results.count("approved"), 1)
        failures = [r for r in results if r != "approved"]
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InsufficientStock)

        with self.app.app_context():
            product = db.session.get(Product, self.product_id)
            self.assertEqual(product.quantity, 4)
            self.assertEqual(product.status, "active")
            statuses = sorted(db.session.get(PurchaseRequest, pr).status for pr in (pr1, pr2))
            self.assertEqual(statuses, ["approved", "pending"])
            self.assertEqual(db.session.query(SalesApprovalReport).count(), 1)

    def test_report_numbers_unique_under_concurrency(self):
        pr_ids = [self._purchase_request(1) for _ in range(8)]

        numbers = []
        errors = []
        lock = threading.Lock()

        def worker(pr_id):
            with self.app.app_context():
                try:
                    result = fulfillment_service.review_purchase_request(pr_id, "approved", self.admin_id)
                    with lock:
                        numbers.append(result.report_number)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        self._run_threads(worker, [(pr_id,) for pr_id in pr_ids])

        self.assertFalse(errors)
        self.assertEqual(len(numbers), len(set(numbers)))
        year = current_year()
        self.assertEqual(sorted(numbers), [f"SAR-{year}-{n:04d}" for n in range(1, 9)])

        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).quantity, 2)

    def test_concurrent_reveal_deducts_once(self):
        pr_id = self._purchase_request(10)
        with self.app.app_context():
            result = fulfillment_service.review_purchase_request(pr_id, "approved", self.admin_id)
            report_id = result.report_id
            points_service.charge(self.seller_id, 500, self.admin_id)

        disclosures = []
        errors = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    disclosure = disclosure_service.reveal_buyer_info(report_id, self.seller_id)
                    with lock:
                        disclosures.append(disclosure)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        self._run_threads(worker, [() for _ in range(6)])

        self.assertFalse(errors)
        self.assertEqual(len(disclosures), 6)
        self.assertEqual(sum(1 for d in disclosures if not d.already_deducted), 1)
        self.assertTrue(all(d.balance_after == Decimal("450.00") for d in disclosures))

        with self.app.app_context():
            deducts = db.session.query(PointsTransaction).filter_by(transaction_type="deduct").count()
            self.assertEqual(deducts, 1)
            self.assertEqual(points_service.get_balance(self.seller_id), Decimal("450.00"))
            self.assertEqual(points_service.verify_account(self.seller_id), [])

    def test_concurrent_charges_keep_ledger_consistent(self):
        errors = []
        lock = threading.Lock()

        def worker():
            with self.app.app_context():
                try:
                    points_service.charge(self.seller_id, 10, self.admin_id)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        self._run_threads(worker, [() for _ in range(10)])

        self.assertFalse(errors)
        with self.app.app_context():
            self.assertEqual(points_service.get_balance(self.seller_id), Decimal("100.00"))
            self.assertEqual(db.session.query(PointsTransaction).count(), 10)
            self.assertEqual(points_service.verify_account(self.seller_id), [])


if __name__ == "__main__":
    unittest.main()
