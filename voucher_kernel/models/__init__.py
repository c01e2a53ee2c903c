"""ORM models for the voucher kernel."""

from voucher_kernel.models.notification import Notification
from voucher_kernel.models.organization import Organization
from voucher_kernel.models.user import User
from voucher_kernel.models.voucher import Voucher

__all__ = [
    "Notification",
    "Organization",
    "User",
    "Voucher",
]
