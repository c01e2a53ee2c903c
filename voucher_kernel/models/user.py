"""
Module: voucher_kernel.models.user
Responsibility: ORM persistence for users.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Email is globally unique (uq_users_email), stored lower-cased.
    - Role is one of staff/accountant/admin (ck_users_valid_role) and is
      never updated after creation.
    - The organization's main admin is not stored; it is derived as the
      earliest-created admin (see ix_users_org_role_created).
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from voucher_kernel.db.base import TrackedBase, UUIDString, as_utc

if TYPE_CHECKING:
    from voucher_kernel.domain.identity import UserInfo


class User(TrackedBase):
    """A member of exactly one organization with exactly one role."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        CheckConstraint(
            "role IN ('staff', 'accountant', 'admin')",
            name="ck_users_valid_role",
        ),
        Index(
            "ix_users_org_role_created",
            "organization_id", "role", "created_at",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} role={self.role}>"

    def to_dto(self) -> UserInfo:
        from voucher_kernel.domain.identity import Role, UserInfo

        return UserInfo(
            id=self.id,
            name=self.name,
            email=self.email,
            role=Role(self.role),
            organization_id=self.organization_id,
            created_at=as_utc(self.created_at),
        )
