"""ORM models.  Importing this package registers every table on Base.metadata."""

from procurement_kernel.models.approval import ApprovalModel
from procurement_kernel.models.audit import ApprovalLogModel, RequestLogModel
from procurement_kernel.models.notification import NotificationModel
from procurement_kernel.models.organization import DepartmentModel, UserModel
from procurement_kernel.models.request import PurchaseRequestModel, RequestedItemModel
from procurement_kernel.models.routing import ApprovalRouteModel

__all__ = [
    "ApprovalLogModel",
    "ApprovalModel",
    "ApprovalRouteModel",
    "DepartmentModel",
    "NotificationModel",
    "PurchaseRequestModel",
    "RequestLogModel",
    "RequestedItemModel",
    "UserModel",
]
