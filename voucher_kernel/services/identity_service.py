"""
voucher_kernel.services.identity_service -- Identity verification and
entity resolution.

Responsibility:
    Turns the identity claimed by the external identity provider into a
    ``VerifiedActor`` by re-reading the user record, and offers the explicit
    resolve operations for user and organization references.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - A claim whose user no longer exists, whose organization differs from
      the stored one, or whose role differs from the stored role is refused
      (stale credential).
    - The main admin of an organization is its earliest-created admin
      (ties broken by id); never stored, always derived.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from voucher_kernel.domain.identity import (
    Identity,
    OrganizationInfo,
    Role,
    UserInfo,
    VerifiedActor,
)
from voucher_kernel.exceptions import (
    AuthorizationError,
    OrganizationNotFoundError,
    UserNotFoundError,
)
from voucher_kernel.logging_config import get_logger
from voucher_kernel.models.organization import Organization
from voucher_kernel.models.user import User
from voucher_kernel.services.base import BaseService

logger = get_logger("services.identity")


class IdentityService(BaseService):
    """Verifies claimed identities and resolves user/organization references."""

    def verify(self, identity: Identity, *, against_store: bool = True) -> VerifiedActor:
        """Confirm ``identity`` against the current user record.

        With ``against_store=False`` the claimed role and name are trusted
        (only the main-admin flag is still derived from the store).

        Raises:
            AuthorizationError: unknown user, organization mismatch, or a
                role claim that no longer matches the stored role.
        """
        if not against_store:
            return VerifiedActor(
                user_id=identity.user_id,
                role=identity.role,
                organization_id=identity.organization_id,
                name=identity.name,
            )

        user = self.session.get(User, identity.user_id)
        if user is None or user.organization_id != identity.organization_id:
            logger.warning(
                "identity_rejected",
                extra={
                    "user_id": str(identity.user_id),
                    "reason": "unknown_user_or_organization",
                },
            )
            raise AuthorizationError("act", "unknown user or organization")

        stored_role = Role(user.role)
        if stored_role != identity.role:
            logger.warning(
                "identity_rejected",
                extra={
                    "user_id": str(identity.user_id),
                    "reason": "stale_role",
                    "claimed_role": identity.role.value,
                    "stored_role": stored_role.value,
                },
            )
            raise AuthorizationError("act", "role claim is stale")

        return VerifiedActor(
            user_id=user.id,
            role=stored_role,
            organization_id=user.organization_id,
            name=user.name,
        )

    def main_admin_id(self, organization_id: UUID) -> UUID | None:
        """Id of the organization's earliest-created admin, or None."""
        return self.session.execute(
            select(User.id)
            .where(
                User.organization_id == organization_id,
                User.role == Role.ADMIN.value,
            )
            .order_by(User.created_at, User.id)
            .limit(1)
        ).scalar_one_or_none()

    def resolve_user(self, user_id: UUID, organization_id: UUID | None = None) -> UserInfo:
        """Resolve a user reference, optionally within one organization.

        Raises:
            UserNotFoundError: no such user (or not in ``organization_id``).
        """
        user = self._load_user(user_id, organization_id)
        return user.to_dto()

    def resolve_organization(self, organization_id: UUID) -> OrganizationInfo:
        org = self.session.get(Organization, organization_id)
        if org is None:
            raise OrganizationNotFoundError(str(organization_id))
        return org.to_dto()

    def members(self, organization_id: UUID) -> list[tuple[UUID, Role]]:
        """(user_id, role) for every user in the organization, oldest first."""
        rows = self.session.execute(
            select(User.id, User.role)
            .where(User.organization_id == organization_id)
            .order_by(User.created_at, User.id)
        ).all()
        return [(row.id, Role(row.role)) for row in rows]

    def _load_user(self, user_id: UUID, organization_id: UUID | None = None) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        if organization_id is not None and user.organization_id != organization_id:
            raise UserNotFoundError(str(user_id))
        return user
