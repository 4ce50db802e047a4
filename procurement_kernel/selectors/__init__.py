"""Selectors for the procurement kernel (read side)."""

from procurement_kernel.selectors.approvals import (
    ApprovalProgressView,
    ApprovalSelector,
    PendingApprovalView,
)
from procurement_kernel.selectors.directory import UserDirectory, UserInfo
from procurement_kernel.selectors.routes import RouteSelector

__all__ = [
    "ApprovalProgressView",
    "ApprovalSelector",
    "PendingApprovalView",
    "RouteSelector",
    "UserDirectory",
    "UserInfo",
]
