"""
Module: voucher_kernel.selectors.notification_selector
Responsibility: Read-side access to an actor's notifications.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only notifications addressed to the actor are returned.
    - Newest first, capped at the page size.
"""

from __future__ import annotations

from sqlalchemy import func, select

from voucher_kernel.domain.identity import VerifiedActor
from voucher_kernel.domain.notification import Notification
from voucher_kernel.models.notification import Notification as NotificationModel
from voucher_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50


class NotificationSelector(BaseSelector):

    def list(
        self,
        actor: VerifiedActor,
        *,
        unread_only: bool = False,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[Notification]:
        query = select(NotificationModel).where(
            NotificationModel.recipient_id == actor.user_id,
            NotificationModel.organization_id == actor.organization_id,
        )
        if unread_only:
            query = query.where(NotificationModel.read.is_(False))
        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        ).limit(limit)
        return [m.to_dto() for m in self.session.execute(query).scalars()]

    def unread_count(self, actor: VerifiedActor) -> int:
        return self.session.execute(
            select(func.count(NotificationModel.id)).where(
                NotificationModel.recipient_id == actor.user_id,
                NotificationModel.read.is_(False),
            )
        ).scalar_one()
