"""
Module: voucher_kernel.models.organization
Responsibility: ORM persistence for organizations, the tenant boundary.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Organization name is unique (uq_organizations_name).
    - Every user, voucher and notification references exactly one
      organization via organization_id.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from voucher_kernel.db.base import TrackedBase, as_utc

if TYPE_CHECKING:
    from voucher_kernel.domain.identity import OrganizationInfo


class Organization(TrackedBase):
    """Tenant root.  Created once at registration."""

    __tablename__ = "organizations"

    __table_args__ = (
        UniqueConstraint("name", name="uq_organizations_name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name!r}>"

    def to_dto(self) -> OrganizationInfo:
        from voucher_kernel.domain.identity import OrganizationInfo

        return OrganizationInfo(
            id=self.id,
            name=self.name,
            created_at=as_utc(self.created_at),
        )
