"""
voucher_kernel.services.notification_service -- Notification fan-out and
per-recipient notification state.

Responsibility:
    Generates one notification per computed recipient after a voucher
    lifecycle event, handles explicit admin posts, and mutates notification
    state (mark read, clear).  Reads live in NotificationSelector.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Fan-out is only ever invoked for a voucher state that was committed;
      the caller (VoucherDesk) runs it after the transition commit.
    - Recipients are always members of the voucher's organization.
    - A recipient receives exactly one record per event; the actor none.
    - ``clear`` with the organization scope deletes rows where
      recipient_id == actor OR organization_id == actor's organization;
      with the recipient scope only the actor's own rows.

Failure modes:
    - NotificationNotFoundError when marking a notification the actor
      does not own.
    - UserNotFoundError when a targeted post names a user outside the
      organization.
    - ValidationError on an empty announcement message.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import delete, or_

from voucher_kernel.domain.clock import Clock
from voucher_kernel.domain.identity import Role, VerifiedActor
from voucher_kernel.domain.notification import (
    FANOUT_RULES,
    Notification,
    NotificationType,
    build_message,
    compute_recipients,
)
from voucher_kernel.domain.voucher import Voucher
from voucher_kernel.exceptions import (
    NotificationNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from voucher_kernel.logging_config import get_logger
from voucher_kernel.models.notification import Notification as NotificationModel
from voucher_kernel.models.user import User
from voucher_kernel.services.base import BaseService
from voucher_kernel.services.identity_service import IdentityService

logger = get_logger("services.notification")

CLEAR_SCOPE_ORGANIZATION = "organization"
CLEAR_SCOPE_RECIPIENT = "recipient"


class NotificationService(BaseService):
    """Creates and mutates notifications."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        clear_scope: str = CLEAR_SCOPE_ORGANIZATION,
    ):
        super().__init__(session, clock)
        self.clear_scope = clear_scope

    def fan_out(self, voucher: Voucher, actor: VerifiedActor) -> list[Notification]:
        """Notify everyone the voucher's current status concerns."""
        rule = FANOUT_RULES[voucher.status]
        members = self._members(voucher.organization_id)
        recipients = compute_recipients(rule, voucher, members, actor.user_id)
        message = build_message(voucher, actor.name)

        created = self._create_many(
            recipients,
            message=message,
            notification_type=rule.notification_type,
            organization_id=voucher.organization_id,
        )
        logger.info(
            "notifications_fanned_out",
            extra={
                "voucher_id": voucher.id,
                "notification_type": rule.notification_type.value,
                "recipient_count": len(created),
            },
        )
        return created

    def post(
        self,
        actor: VerifiedActor,
        message: str,
        recipient_id: UUID | None = None,
    ) -> list[Notification]:
        """Explicit admin post: one user, or every other organization member."""
        text = (message or "").strip()
        if not text:
            raise ValidationError({"message": "required"})

        if recipient_id is not None:
            user = self.session.get(User, recipient_id)
            if user is None or user.organization_id != actor.organization_id:
                raise UserNotFoundError(str(recipient_id))
            recipients = [recipient_id]
        else:
            recipients = [
                user_id
                for user_id, _ in self._members(actor.organization_id)
                if user_id != actor.user_id
            ]

        created = self._create_many(
            recipients,
            message=text,
            notification_type=NotificationType.ANNOUNCEMENT,
            organization_id=actor.organization_id,
        )
        logger.info(
            "notification_posted",
            extra={
                "recipient_count": len(created),
                "targeted": recipient_id is not None,
            },
        )
        return created

    def mark_read(self, actor: VerifiedActor, notification_id: UUID) -> Notification:
        model = self.session.get(NotificationModel, notification_id)
        if model is None or model.recipient_id != actor.user_id:
            raise NotificationNotFoundError(str(notification_id))
        if not model.read:
            model.read = True
            self.session.flush()
        return model.to_dto()

    def clear(self, actor: VerifiedActor) -> int:
        """Bulk delete within the configured clear scope; returns the count."""
        if self.clear_scope == CLEAR_SCOPE_RECIPIENT:
            condition = NotificationModel.recipient_id == actor.user_id
        else:
            condition = or_(
                NotificationModel.recipient_id == actor.user_id,
                NotificationModel.organization_id == actor.organization_id,
            )
        count = self.session.execute(
            delete(NotificationModel).where(condition)
        ).rowcount
        self.session.flush()
        logger.info(
            "notifications_cleared",
            extra={"count": count, "scope": self.clear_scope},
        )
        return count

    def _members(self, organization_id: UUID) -> list[tuple[UUID, Role]]:
        return IdentityService(self.session, self.clock).members(organization_id)

    def _create_many(
        self,
        recipients: list[UUID],
        *,
        message: str,
        notification_type: NotificationType,
        organization_id: UUID,
    ) -> list[Notification]:
        now = self.clock.now()
        models = [
            NotificationModel(
                id=uuid4(),
                message=message,
                type=notification_type.value,
                recipient_id=recipient,
                organization_id=organization_id,
                read=False,
                created_at=now,
            )
            for recipient in recipients
        ]
        self.session.add_all(models)
        self.session.flush()
        return [m.to_dto() for m in models]
