"""
Voucher domain types (``voucher_kernel.domain.voucher``).

Responsibility
--------------
Pure value objects and rules for the voucher lifecycle: the status state
machine, the transition table, creation-time and list-filter validation, and
human-readable code generation.  Who may trigger a transition is decided by
the authority policy in ``voucher_services.authority``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``models/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Status moves only along the edges of ``VOUCHER_TRANSITIONS``:
  pending -> approved | rejected, approved -> paid.  Rejected and paid are
  terminal.  There is no pending -> paid shortcut.
* ``0 < amount < 10**16``, quantized to cents (fits ``Numeric(18, 2)``).
* ``needed_by`` is not earlier than the creation date.
* Text fields never exceed their column lengths.
* Validation reports every offending field at once.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from voucher_kernel.exceptions import InvalidTransitionError, ValidationError

CENTS = Decimal("0.01")
MAX_AMOUNT = Decimal("1e16")

PURPOSE_MAX_LENGTH = 255
STAFF_NAME_MAX_LENGTH = 200


# =========================================================================
# Status lifecycle
# =========================================================================


class VoucherStatus(str, Enum):
    """Voucher lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class VoucherTransition(str, Enum):
    """Named transitions out of an existing voucher state."""

    APPROVE = "approve"
    REJECT = "reject"
    PAY = "pay"


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table."""

    transition: VoucherTransition
    from_status: VoucherStatus
    to_status: VoucherStatus


VOUCHER_TRANSITIONS: dict[VoucherTransition, TransitionRule] = {
    VoucherTransition.APPROVE: TransitionRule(
        VoucherTransition.APPROVE,
        VoucherStatus.PENDING,
        VoucherStatus.APPROVED,
    ),
    VoucherTransition.REJECT: TransitionRule(
        VoucherTransition.REJECT,
        VoucherStatus.PENDING,
        VoucherStatus.REJECTED,
    ),
    VoucherTransition.PAY: TransitionRule(
        VoucherTransition.PAY,
        VoucherStatus.APPROVED,
        VoucherStatus.PAID,
    ),
}

ALLOWED_NEXT_STATUSES: dict[VoucherStatus, frozenset[VoucherStatus]] = {
    status: frozenset(
        rule.to_status
        for rule in VOUCHER_TRANSITIONS.values()
        if rule.from_status == status
    )
    for status in VoucherStatus
}

TERMINAL_VOUCHER_STATUSES: frozenset[VoucherStatus] = frozenset(
    status for status, nxt in ALLOWED_NEXT_STATUSES.items() if not nxt
)


def rule_for(transition: VoucherTransition) -> TransitionRule:
    return VOUCHER_TRANSITIONS[transition]


def check_transition(
    voucher_id: str,
    current: VoucherStatus,
    transition: VoucherTransition,
) -> TransitionRule:
    """Return the rule for ``transition`` if legal from ``current``.

    Raises:
        InvalidTransitionError: ``current`` is not the rule's from-status.
    """
    rule = VOUCHER_TRANSITIONS[transition]
    if current != rule.from_status:
        raise InvalidTransitionError(
            voucher_id, current.value, rule.to_status.value,
        )
    return rule


def is_legal_move(current: VoucherStatus, target: VoucherStatus) -> bool:
    return target in ALLOWED_NEXT_STATUSES[current]


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class Voucher:
    """Read-only voucher record."""

    id: str
    purpose: str
    amount: Decimal
    description: str
    status: VoucherStatus
    date: datetime
    needed_by: date
    staff_id: UUID
    staff_name: str
    organization_id: UUID
    updated_at: datetime
    approved_by: str | None = None
    paid_by: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_VOUCHER_STATUSES


@dataclass(frozen=True)
class VoucherDraft:
    """Validated, normalized input for voucher creation."""

    purpose: str
    amount: Decimal
    description: str
    needed_by: date
    staff_id: UUID
    staff_name: str
    organization_id: UUID


@dataclass(frozen=True)
class VoucherFilter:
    """Optional list filters, applied after authorization scoping."""

    status: VoucherStatus | None = None
    staff_id: UUID | None = None
    date_from: date | None = None
    date_to: date | None = None
    text: str | None = None


@dataclass(frozen=True)
class VoucherSummary:
    """Organization-wide counts and totals per status."""

    counts: dict[VoucherStatus, int]
    totals: dict[VoucherStatus, Decimal]

    @property
    def total_count(self) -> int:
        return sum(self.counts.values())

    @property
    def outstanding_amount(self) -> Decimal:
        """Approved but not yet paid."""
        return self.totals.get(VoucherStatus.APPROVED, Decimal("0.00"))


# =========================================================================
# Validation
# =========================================================================


def parse_amount(value: Any) -> Decimal | None:
    """Parse to a cent-quantized Decimal in ``(0, MAX_AMOUNT)``, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite() or amount <= 0 or amount >= MAX_AMOUNT:
            return None
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None
    if amount <= 0 or amount >= MAX_AMOUNT:
        return None
    return amount


def parse_needed_by(value: Any) -> date | None:
    """Parse a date, datetime or ISO-8601 string to a calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_draft(
    *,
    purpose: Any,
    amount: Any,
    description: Any,
    needed_by: Any,
    staff_id: Any,
    staff_name: Any,
    organization_id: Any,
    today: date,
) -> VoucherDraft:
    """Validate creation input, collecting every problem before raising.

    Raises:
        ValidationError: with one entry per missing or invalid field.
    """
    errors: dict[str, str] = {}

    clean_purpose = _clean_text(purpose)
    if clean_purpose is None:
        errors["purpose"] = "required"
    elif len(clean_purpose) > PURPOSE_MAX_LENGTH:
        errors["purpose"] = f"must be at most {PURPOSE_MAX_LENGTH} characters"

    clean_description = _clean_text(description)
    if clean_description is None:
        errors["description"] = "required"

    clean_staff_name = _clean_text(staff_name)
    if clean_staff_name is None:
        errors["staff_name"] = "required"
    elif len(clean_staff_name) > STAFF_NAME_MAX_LENGTH:
        errors["staff_name"] = f"must be at most {STAFF_NAME_MAX_LENGTH} characters"

    if staff_id is None:
        errors["staff_id"] = "required"
    if organization_id is None:
        errors["organization_id"] = "required"

    parsed_amount = None
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        errors["amount"] = "required"
    else:
        parsed_amount = parse_amount(amount)
        if parsed_amount is None:
            errors["amount"] = "must be a positive number below 10^16"

    parsed_needed_by = None
    if needed_by is None or (isinstance(needed_by, str) and not needed_by.strip()):
        errors["needed_by"] = "required"
    else:
        parsed_needed_by = parse_needed_by(needed_by)
        if parsed_needed_by is None:
            errors["needed_by"] = "must be a valid date"
        elif parsed_needed_by < today:
            errors["needed_by"] = "must not be in the past"

    if errors:
        raise ValidationError(errors)

    return VoucherDraft(
        purpose=clean_purpose,
        amount=parsed_amount,
        description=clean_description,
        needed_by=parsed_needed_by,
        staff_id=staff_id,
        staff_name=clean_staff_name,
        organization_id=organization_id,
    )


def _parse_day(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def validate_filter(voucher_filter: VoucherFilter) -> VoucherFilter:
    """Normalize list filters; every malformed field is reported at once.

    Raises:
        ValidationError: unknown status, malformed staff id or date, or
            ``date_from`` later than ``date_to``.
    """
    errors: dict[str, str] = {}

    status = voucher_filter.status
    if status is not None:
        try:
            status = VoucherStatus(status)
        except ValueError:
            errors["status"] = "must be one of " + ", ".join(s.value for s in VoucherStatus)

    staff_id = voucher_filter.staff_id
    if staff_id is not None and not isinstance(staff_id, UUID):
        try:
            staff_id = UUID(str(staff_id))
        except ValueError:
            errors["staff_id"] = "must be a user id"

    bounds: dict[str, date | None] = {}
    for name in ("date_from", "date_to"):
        raw = getattr(voucher_filter, name)
        bounds[name] = None if raw is None else _parse_day(raw)
        if raw is not None and bounds[name] is None:
            errors[name] = "must be a valid date"

    if bounds["date_from"] and bounds["date_to"] and bounds["date_from"] > bounds["date_to"]:
        errors["date_to"] = "must not be before date_from"

    if errors:
        raise ValidationError(errors)

    return replace(
        voucher_filter,
        status=status,
        staff_id=staff_id,
        date_from=bounds["date_from"],
        date_to=bounds["date_to"],
    )


# =========================================================================
# Codes
# =========================================================================


def generate_voucher_code(prefix: str, now: datetime) -> str:
    """Human-readable code: ``<prefix>-<YYYYMMDD>-<8 upper hex>``.

    32 random bits per day keep collisions negligible; the primary key
    constraint catches the rest.
    """
    return f"{prefix}-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"
