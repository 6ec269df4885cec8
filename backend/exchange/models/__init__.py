from .users import User, SessionToken
from .catalog import SalesList, SalesListItem, Product, PurchaseRequest
from .settlement import PurchaseOrder, SalesApprovalReport, ReportSequence
from .points import PointsAccount, PointsTransaction, PointChargeRequest
from .audit import AuditEvent

__all__ = [
    'User', 'SessionToken',
    'SalesList', 'SalesListItem', 'Product', 'PurchaseRequest',
    'PurchaseOrder', 'SalesApprovalReport', 'ReportSequence',
    'PointsAccount', 'PointsTransaction', 'PointChargeRequest',
    'AuditEvent',
]
