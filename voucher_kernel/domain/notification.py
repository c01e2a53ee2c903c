"""
Notification domain types (``voucher_kernel.domain.notification``).

Responsibility
--------------
Pure rules for notification fan-out: which users hear about each lifecycle
event and what they are told.  The service layer resolves the roles below
to concrete user ids inside the voucher's organization.

Fan-out table
-------------
=========  =========================================================
Event      Recipients
=========  =========================================================
created    every admin and accountant in the organization
approved   the owning staff user + every accountant
rejected   the owning staff user
paid       the owning staff user + every admin
=========  =========================================================

The acting user is always removed from the recipient set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from voucher_kernel.domain.identity import Role
from voucher_kernel.domain.voucher import Voucher, VoucherStatus


class NotificationType(str, Enum):
    VOUCHER_CREATED = "voucher_created"
    VOUCHER_APPROVED = "voucher_approved"
    VOUCHER_REJECTED = "voucher_rejected"
    VOUCHER_PAID = "voucher_paid"
    ANNOUNCEMENT = "announcement"


@dataclass(frozen=True)
class FanoutRule:
    """Recipients for one lifecycle event."""

    notification_type: NotificationType
    include_owner: bool
    roles: frozenset[Role]


FANOUT_RULES: dict[VoucherStatus, FanoutRule] = {
    VoucherStatus.PENDING: FanoutRule(
        NotificationType.VOUCHER_CREATED,
        include_owner=False,
        roles=frozenset({Role.ADMIN, Role.ACCOUNTANT}),
    ),
    VoucherStatus.APPROVED: FanoutRule(
        NotificationType.VOUCHER_APPROVED,
        include_owner=True,
        roles=frozenset({Role.ACCOUNTANT}),
    ),
    VoucherStatus.REJECTED: FanoutRule(
        NotificationType.VOUCHER_REJECTED,
        include_owner=True,
        roles=frozenset(),
    ),
    VoucherStatus.PAID: FanoutRule(
        NotificationType.VOUCHER_PAID,
        include_owner=True,
        roles=frozenset({Role.ADMIN}),
    ),
}


@dataclass(frozen=True)
class Notification:
    """Read-only notification record."""

    id: UUID
    message: str
    type: NotificationType
    recipient_id: UUID
    organization_id: UUID
    read: bool
    created_at: datetime


def compute_recipients(
    rule: FanoutRule,
    voucher: Voucher,
    members: list[tuple[UUID, Role]],
    actor_id: UUID,
) -> list[UUID]:
    """Resolve ``rule`` against the organization's (user_id, role) members.

    Returns each recipient once, in member order, never the actor.
    """
    wanted: list[UUID] = []
    if rule.include_owner:
        wanted.append(voucher.staff_id)
    for user_id, role in members:
        if role in rule.roles:
            wanted.append(user_id)

    seen: set[UUID] = set()
    recipients: list[UUID] = []
    for user_id in wanted:
        if user_id == actor_id or user_id in seen:
            continue
        seen.add(user_id)
        recipients.append(user_id)
    return recipients


def format_amount(voucher: Voucher) -> str:
    return f"{voucher.amount:,.2f}"


def build_message(voucher: Voucher, actor_name: str) -> str:
    """Human-readable message for the voucher's current status."""
    head = f"Voucher {voucher.id} ({voucher.purpose}, {format_amount(voucher)})"
    if voucher.status == VoucherStatus.PENDING:
        return f"{head} was submitted by {voucher.staff_name}"
    if voucher.status == VoucherStatus.APPROVED:
        return f"{head} was approved by {actor_name}"
    if voucher.status == VoucherStatus.REJECTED:
        return f"{head} was rejected by {actor_name}"
    return f"{head} was marked as paid by {actor_name}"
