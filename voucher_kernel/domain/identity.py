"""
Identity domain types (``voucher_kernel.domain.identity``).

Responsibility
--------------
Pure value objects describing who is acting: the fixed role set, the
identity handed over by the external identity provider, and the verified
actor the kernel actually trusts after re-reading the store.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Users and organizations are referenced everywhere by a bare ``UUID``.
Resolving a reference to its record is always an explicit call on
``IdentityService`` (``resolve_user`` / ``resolve_organization``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

NAME_MAX_LENGTH = 200
EMAIL_MAX_LENGTH = 320
PASSWORD_HASH_MAX_LENGTH = 255


class Role(str, Enum):
    """The three fixed user roles. Immutable after user creation."""

    STAFF = "staff"
    ACCOUNTANT = "accountant"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Authenticated identity as claimed by the identity provider.

    Treated as a hint: role and organization are re-verified against the
    store before any voucher or user operation.
    """

    user_id: UUID
    role: Role
    organization_id: UUID
    name: str

    @classmethod
    def from_claims(cls, claims: dict) -> Identity:
        """Build from a decoded credential payload (``userId``/``role``/...)."""
        return cls(
            user_id=UUID(str(claims["userId"])),
            role=Role(claims["role"]),
            organization_id=UUID(str(claims["organizationId"])),
            name=str(claims.get("name", "")),
        )


@dataclass(frozen=True)
class VerifiedActor:
    """An identity confirmed against the current user record.

    ``name`` and ``role`` are the stored values, not the claimed ones.
    Whether the actor is the main admin is looked up only by the
    operations that need it (``IdentityService.main_admin_id``).
    """

    user_id: UUID
    role: Role
    organization_id: UUID
    name: str

    @property
    def is_staff(self) -> bool:
        return self.role == Role.STAFF

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_accountant(self) -> bool:
        return self.role == Role.ACCOUNTANT


@dataclass(frozen=True)
class OrganizationInfo:
    """Read-only organization record."""

    id: UUID
    name: str
    created_at: datetime


@dataclass(frozen=True)
class UserInfo:
    """Read-only user record (never exposes the password hash)."""

    id: UUID
    name: str
    email: str
    role: Role
    organization_id: UUID
    created_at: datetime
