"""Common module — shared utilities for the HRMS API."""

from hrms.common.audit import AuditMixin, AuditTrail, create_audit_entry
from hrms.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    NotificationCategory,
    NotificationType,
    UserRole,
)
from hrms.common.exceptions import (
    AppException,
    BusinessRuleException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from hrms.common.filters import apply_filters, apply_search
from hrms.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)
from hrms.common.responses import success_response

__all__ = [
    # Audit
    "AuditMixin",
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "NotificationCategory",
    "NotificationType",
    "UserRole",
    "PERMISSIONS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "BusinessRuleException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    # Pagination / envelope
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    "success_response",
]
