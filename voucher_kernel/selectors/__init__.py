"""Selectors for the voucher kernel (read side)."""

from voucher_kernel.selectors.base import BaseSelector
from voucher_kernel.selectors.notification_selector import (
    DEFAULT_PAGE_SIZE,
    NotificationSelector,
)
from voucher_kernel.selectors.voucher_selector import VoucherSelector

__all__ = [
    "BaseSelector",
    "DEFAULT_PAGE_SIZE",
    "NotificationSelector",
    "VoucherSelector",
]
