"""
Module: voucher_kernel.selectors.voucher_selector
Responsibility: Read-side access to vouchers: filtered listing, single lookup,
    and the per-status summary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Tenant scoping is applied before any caller filter: only vouchers of the
      actor's organization are ever considered, and staff actors only see
      vouchers they own.
    - Listings are ordered by ``date`` descending (newest first), ties broken
      by code descending, so the order is stable.
    - Date bounds are inclusive calendar days; filters arrive already
      normalized by ``validate_filter``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select

from voucher_kernel.domain.identity import VerifiedActor
from voucher_kernel.domain.voucher import (
    CENTS,
    Voucher,
    VoucherFilter,
    VoucherStatus,
    VoucherSummary,
)
from voucher_kernel.exceptions import VoucherNotFoundError
from voucher_kernel.models.voucher import Voucher as VoucherModel
from voucher_kernel.selectors.base import BaseSelector


def _day_start(day) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class VoucherSelector(BaseSelector):
    """Queries over the vouchers visible to an actor."""

    def list(
        self,
        actor: VerifiedActor,
        voucher_filter: VoucherFilter | None = None,
    ) -> list[Voucher]:
        voucher_filter = voucher_filter or VoucherFilter()
        query = select(VoucherModel).where(
            VoucherModel.organization_id == actor.organization_id
        )
        if actor.is_staff:
            query = query.where(VoucherModel.staff_id == actor.user_id)

        if voucher_filter.status is not None:
            query = query.where(
                VoucherModel.status == VoucherStatus(voucher_filter.status).value
            )
        if voucher_filter.staff_id is not None:
            query = query.where(VoucherModel.staff_id == voucher_filter.staff_id)
        if voucher_filter.date_from is not None:
            query = query.where(VoucherModel.date >= _day_start(voucher_filter.date_from))
        if voucher_filter.date_to is not None and voucher_filter.date_to < date.max:
            query = query.where(
                VoucherModel.date < _day_start(voucher_filter.date_to + timedelta(days=1))
            )
        text = (voucher_filter.text or "").strip().lower()
        if text:
            query = query.where(
                or_(
                    func.lower(VoucherModel.id).contains(text, autoescape=True),
                    func.lower(VoucherModel.purpose).contains(text, autoescape=True),
                    func.lower(VoucherModel.description).contains(text, autoescape=True),
                    func.lower(VoucherModel.staff_name).contains(text, autoescape=True),
                )
            )

        query = query.order_by(VoucherModel.date.desc(), VoucherModel.id.desc())
        return [m.to_dto() for m in self.session.execute(query).scalars()]

    def get(self, actor: VerifiedActor, voucher_id: str) -> Voucher:
        model = self.session.get(VoucherModel, voucher_id) if voucher_id else None
        if model is None or model.organization_id != actor.organization_id:
            raise VoucherNotFoundError(str(voucher_id))
        if actor.is_staff and model.staff_id != actor.user_id:
            raise VoucherNotFoundError(str(voucher_id))
        return model.to_dto()

    def summarize(self, actor: VerifiedActor) -> VoucherSummary:
        """Counts and totals per status across the actor's organization."""
        rows = self.session.execute(
            select(
                VoucherModel.status,
                func.count(VoucherModel.id),
                func.coalesce(func.sum(VoucherModel.amount), 0),
            )
            .where(VoucherModel.organization_id == actor.organization_id)
            .group_by(VoucherModel.status)
        ).all()

        counts = {status: 0 for status in VoucherStatus}
        totals = {status: Decimal("0.00") for status in VoucherStatus}
        for status, count, total in rows:
            key = VoucherStatus(status)
            counts[key] = int(count)
            totals[key] = Decimal(str(total)).quantize(CENTS)
        return VoucherSummary(counts=counts, totals=totals)
