"""Services for the voucher kernel (write side)."""

from voucher_kernel.services.identity_service import IdentityService
from voucher_kernel.services.notification_service import (
    CLEAR_SCOPE_ORGANIZATION,
    CLEAR_SCOPE_RECIPIENT,
    NotificationService,
)
from voucher_kernel.services.organization_service import OrganizationService
from voucher_kernel.services.voucher_service import VoucherService

__all__ = [
    "CLEAR_SCOPE_ORGANIZATION",
    "CLEAR_SCOPE_RECIPIENT",
    "IdentityService",
    "NotificationService",
    "OrganizationService",
    "VoucherService",
]
