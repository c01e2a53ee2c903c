"""
Module: voucher_kernel.models.voucher
Responsibility: ORM persistence for vouchers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - id is the human-readable voucher code; assigned once at creation.
    - amount > 0 (ck_vouchers_positive_amount); Numeric(18, 2) holds values
      below 10**16, the bound parse_amount enforces.
    - status is one of pending/approved/rejected/paid (ck_vouchers_valid_status).
    - paid implies approved_by is set (ck_vouchers_paid_was_approved).
    - Status changes happen only through a conditional UPDATE keyed on the
      expected current status (see VoucherService.transition).

Failure modes:
    - IntegrityError on a duplicate code or a violated check constraint.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from voucher_kernel.db.base import Base, UUIDString, as_utc

if TYPE_CHECKING:
    from voucher_kernel.domain.voucher import Voucher as VoucherDTO


class Voucher(Base):
    """A staff spending request moving through the approval lifecycle."""

    __tablename__ = "vouchers"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_vouchers_positive_amount"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'paid')",
            name="ck_vouchers_valid_status",
        ),
        CheckConstraint(
            "status <> 'paid' OR approved_by IS NOT NULL",
            name="ck_vouchers_paid_was_approved",
        ),
        Index("ix_vouchers_org_date", "organization_id", "date"),
        Index("ix_vouchers_org_staff", "organization_id", "staff_id"),
        Index("ix_vouchers_org_status", "organization_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    purpose: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    needed_by: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # Not a foreign key: vouchers outlive the user that raised them and keep
    # the staff_name snapshot.
    staff_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    staff_name: Mapped[str] = mapped_column(String(200), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    approved_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<Voucher {self.id} status={self.status} amount={self.amount}>"

    def to_dto(self) -> VoucherDTO:
        from voucher_kernel.domain.voucher import CENTS, VoucherStatus
        from voucher_kernel.domain.voucher import Voucher as VoucherDTO

        return VoucherDTO(
            id=self.id,
            purpose=self.purpose,
            amount=Decimal(str(self.amount)).quantize(CENTS),
            description=self.description,
            status=VoucherStatus(self.status),
            date=as_utc(self.date),
            needed_by=self.needed_by,
            staff_id=self.staff_id,
            staff_name=self.staff_name,
            organization_id=self.organization_id,
            updated_at=as_utc(self.updated_at),
            approved_by=self.approved_by,
            paid_by=self.paid_by,
        )
