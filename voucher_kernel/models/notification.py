"""
Module: voucher_kernel.models.notification
Responsibility: ORM persistence for notifications.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every notification has exactly one recipient and one organization.
    - Only ``read`` changes after creation; rows are otherwise deleted in
      bulk by the recipient's clear operation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voucher_kernel.db.base import TrackedBase, UUIDString, as_utc

if TYPE_CHECKING:
    from voucher_kernel.domain.notification import Notification as NotificationDTO


class Notification(TrackedBase):
    """One message for one recipient."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_org", "organization_id"),
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    recipient_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Notification {self.id} to={self.recipient_id} type={self.type}>"

    def to_dto(self) -> NotificationDTO:
        from voucher_kernel.domain.notification import (
            Notification as NotificationDTO,
            NotificationType,
        )

        return NotificationDTO(
            id=self.id,
            message=self.message,
            type=NotificationType(self.type),
            recipient_id=self.recipient_id,
            organization_id=self.organization_id,
            read=bool(self.read),
            created_at=as_utc(self.created_at),
        )
