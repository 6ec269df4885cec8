# Overview: Domain exception taxonomy shared by services and routes.

"""
Every service failure is an ExchangeError subclass. Routes turn them into
JSON bodies of the form {"success": false, "error": ..., ...} with the
class's http_status, so the mapping from failure kind to status code lives
in one place.

Integrity failures carry internal ids in `details` for the log line but
never expose them in the response body.
"""

from __future__ import annotations

from decimal import Decimal


class ExchangeError(Exception):
    """Base class for all domain errors."""
    http_status = 400
    code: str | None = None

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.code:
            body["code"] = self.code
        if self.details:
            body["details"] = self.details
        return body


# -- validation (400) ---------------------------------------------------------

class ValidationError(ExchangeError, ValueError):
    """Bad or missing input."""
    code = "VALIDATION_ERROR"


class InsufficientStock(ExchangeError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Requested quantity ({requested}) exceeds available stock ({available})",
            details={"product_id": product_id, "requested": requested, "available": available},
        )


class InsufficientPoints(ExchangeError):
    code = "INSUFFICIENT_POINTS"

    def __init__(self, required: Decimal, balance: Decimal):
        self.required = required
        self.balance = balance
        self.shortfall = required - balance
        super().__init__("Insufficient points")

    def to_dict(self) -> dict:
        from .money import format_amount

        return {
            "success": False,
            "error": self.message,
            "code": self.code,
            "required": format_amount(self.required),
            "balance": format_amount(self.balance),
            "shortfall": format_amount(self.shortfall),
        }


class InvalidReportTransition(ExchangeError):
    code = "INVALID_TRANSITION"


# -- authorization (403) ------------------------------------------------------

class Forbidden(ExchangeError):
    http_status = 403
    code = "FORBIDDEN"


# -- not found (404) ----------------------------------------------------------

class NotFound(ExchangeError):
    http_status = 404
    code = "NOT_FOUND"


class ProductNotFound(NotFound):
    def __init__(self, product_id: int):
        super().__init__("Product not found", details={"product_id": product_id})


class PurchaseRequestNotFound(NotFound):
    def __init__(self, purchase_request_id: int):
        super().__init__("Purchase request not found", details={"purchase_request_id": purchase_request_id})


class ReportNotFound(NotFound):
    def __init__(self, report_id: int):
        super().__init__("Sales approval report not found", details={"report_id": report_id})


class SalesListNotFound(NotFound):
    def __init__(self, sales_list_id: int):
        super().__init__("Sales list not found", details={"sales_list_id": sales_list_id})


class UserNotFound(NotFound):
    def __init__(self, user_id: int):
        super().__init__("User not found", details={"user_id": user_id})


class ChargeRequestNotFound(NotFound):
    def __init__(self, request_id: int):
        super().__init__("Point charge request not found", details={"request_id": request_id})


# -- conflicts (409) ----------------------------------------------------------

class Conflict(ExchangeError):
    http_status = 409
    code = "CONFLICT"


class PurchaseRequestAlreadyReviewed(Conflict):
    code = "ALREADY_REVIEWED"

    def __init__(self, purchase_request_id: int, status: str):
        super().__init__(
            f"Purchase request has already been processed (current status: {status})",
            details={"purchase_request_id": purchase_request_id, "status": status},
        )


class SalesListAlreadyReviewed(Conflict):
    code = "ALREADY_REVIEWED"

    def __init__(self, sales_list_id: int, status: str):
        super().__init__(
            f"Sales list has already been processed (current status: {status})",
            details={"sales_list_id": sales_list_id, "status": status},
        )


class ChargeRequestAlreadyReviewed(Conflict):
    code = "ALREADY_REVIEWED"

    def __init__(self, request_id: int, status: str):
        super().__init__(
            f"Point charge request has already been processed (current status: {status})",
            details={"request_id": request_id, "status": status},
        )


# -- integrity (500) ----------------------------------------------------------

class IntegrityFailure(ExchangeError):
    """Stored data violates an assumption; logged as critical, never retried."""
    http_status = 500
    code = "INTEGRITY_ERROR"

    def to_dict(self) -> dict:
        return {"success": False, "error": "The request could not be completed due to a data integrity problem", "code": self.code}


class SellerProfileMissing(IntegrityFailure):
    def __init__(self, product_id: int, seller_id: int | None):
        super().__init__(
            "Seller profile missing for product",
            details={"product_id": product_id, "seller_id": seller_id},
        )


class SettlementFailed(IntegrityFailure):
    pass


# -- transient (503) ----------------------------------------------------------

class TransientConflict(ExchangeError):
    """Concurrent modification persisted after retries; caller may retry."""
    http_status = 503
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, message: str = "The resource was modified concurrently, please retry"):
        super().__init__(message)
