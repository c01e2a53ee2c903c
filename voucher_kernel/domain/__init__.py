"""
Pure domain layer.

This module contains value objects and lifecycle rules with NO dependencies
on:
- ORM (SQLAlchemy)
- Database
- I/O (time is read only through an injected Clock)

All domain objects are immutable and deterministic.
"""

from voucher_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from voucher_kernel.domain.identity import (
    Identity,
    OrganizationInfo,
    Role,
    UserInfo,
    VerifiedActor,
)
from voucher_kernel.domain.notification import (
    FANOUT_RULES,
    FanoutRule,
    Notification,
    NotificationType,
)
from voucher_kernel.domain.voucher import (
    ALLOWED_NEXT_STATUSES,
    TERMINAL_VOUCHER_STATUSES,
    VOUCHER_TRANSITIONS,
    TransitionRule,
    Voucher,
    VoucherDraft,
    VoucherFilter,
    VoucherStatus,
    VoucherSummary,
    VoucherTransition,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Identity",
    "OrganizationInfo",
    "Role",
    "UserInfo",
    "VerifiedActor",
    "FANOUT_RULES",
    "FanoutRule",
    "Notification",
    "NotificationType",
    "ALLOWED_NEXT_STATUSES",
    "TERMINAL_VOUCHER_STATUSES",
    "VOUCHER_TRANSITIONS",
    "TransitionRule",
    "Voucher",
    "VoucherDraft",
    "VoucherFilter",
    "VoucherStatus",
    "VoucherSummary",
    "VoucherTransition",
]
