"""
voucher_kernel.services.organization_service -- Tenant and user management.

Responsibility:
    Registers organizations together with their first admin, and manages the
    organization's users (create, rename, delete, list).  Deletes an
    organization together with everything it owns.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Callers are expected to have passed the main-admin authority check
    (voucher_services.authority) before invoking the management operations;
    this service still scopes every lookup to the actor's organization.

Invariants enforced:
    - Organization names and user emails are unique.
    - Roles are fixed at creation; there is no role update path.
    - Within an organization, user ``created_at`` values strictly increase
      in creation order, so "earliest-created admin" is well defined.
    - The main admin cannot delete their own account.
    - Organization deletion cascades: notifications, vouchers and users of
      the organization are removed in the same transaction.

Failure modes:
    - ValidationError (listing every field) on missing/invalid input.
    - DuplicateOrganizationError / DuplicateEmailError on uniqueness clashes.
    - UserNotFoundError for users outside the actor's organization.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select

from voucher_kernel.db.base import as_utc
from voucher_kernel.domain.identity import (
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    PASSWORD_HASH_MAX_LENGTH,
    OrganizationInfo,
    Role,
    UserInfo,
    VerifiedActor,
)
from voucher_kernel.exceptions import (
    AuthorizationError,
    DuplicateEmailError,
    DuplicateOrganizationError,
    OrganizationNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from voucher_kernel.logging_config import get_logger
from voucher_kernel.models.notification import Notification
from voucher_kernel.models.organization import Organization
from voucher_kernel.models.user import User
from voucher_kernel.models.voucher import Voucher
from voucher_kernel.services.base import BaseService

logger = get_logger("services.organization")


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_email(value) -> str | None:
    text = _clean(value)
    return text.lower() if text else None


def _check_name(errors: dict[str, str], field: str, value: str | None) -> None:
    if value is None:
        errors[field] = "required"
    elif len(value) > NAME_MAX_LENGTH:
        errors[field] = f"must be at most {NAME_MAX_LENGTH} characters"


def _check_credentials(errors: dict[str, str], email: str | None, password_hash: str) -> None:
    if email is None:
        errors["email"] = "required"
    elif "@" not in email:
        errors["email"] = "must be an email address"
    elif len(email) > EMAIL_MAX_LENGTH:
        errors["email"] = f"must be at most {EMAIL_MAX_LENGTH} characters"
    if not password_hash:
        errors["password_hash"] = "required"
    elif len(password_hash) > PASSWORD_HASH_MAX_LENGTH:
        errors["password_hash"] = f"must be at most {PASSWORD_HASH_MAX_LENGTH} characters"


class OrganizationService(BaseService):
    """Creates tenants and manages their users."""

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_organization(
        self,
        name: str,
        admin_name: str,
        email: str,
        password_hash: str,
    ) -> tuple[OrganizationInfo, UserInfo]:
        """Create an organization and its first (main) admin."""
        errors: dict[str, str] = {}
        clean_name = _clean(name)
        clean_admin = _clean(admin_name)
        clean_email = _normalize_email(email)
        _check_name(errors, "name", clean_name)
        _check_name(errors, "admin_name", clean_admin)
        _check_credentials(errors, clean_email, password_hash)
        if errors:
            raise ValidationError(errors)

        name_taken = self._organization_name_taken(clean_name)
        email_taken = self._email_taken(clean_email)
        if name_taken and email_taken:
            raise ValidationError({
                "name": f"Organization name already taken: {clean_name}",
                "email": f"Email already registered: {clean_email}",
            })
        if name_taken:
            raise DuplicateOrganizationError(clean_name)
        if email_taken:
            raise DuplicateEmailError(clean_email)

        now = self.clock.now()
        org = Organization(id=uuid4(), name=clean_name, created_at=now)
        self.session.add(org)
        self.session.flush()

        admin = User(
            id=uuid4(),
            name=clean_admin,
            email=clean_email,
            password_hash=password_hash,
            role=Role.ADMIN.value,
            organization_id=org.id,
            created_at=now,
        )
        self.session.add(admin)
        self.session.flush()

        logger.info(
            "organization_registered",
            extra={
                "organization_id": str(org.id),
                "organization_name": clean_name,
                "admin_id": str(admin.id),
            },
        )
        return org.to_dto(), admin.to_dto()

    # ------------------------------------------------------------------
    # User management (main admin)
    # ------------------------------------------------------------------

    def create_user(
        self,
        actor: VerifiedActor,
        name: str,
        email: str,
        password_hash: str,
        role: Role | str,
    ) -> UserInfo:
        """Add a user to the actor's organization."""
        errors: dict[str, str] = {}
        clean_name = _clean(name)
        clean_email = _normalize_email(email)
        _check_name(errors, "name", clean_name)
        _check_credentials(errors, clean_email, password_hash)
        parsed_role = None
        try:
            parsed_role = Role(role)
        except ValueError:
            errors["role"] = "must be one of staff, accountant, admin"
        if errors:
            raise ValidationError(errors)

        if self._email_taken(clean_email):
            raise DuplicateEmailError(clean_email)

        user = User(
            id=uuid4(),
            name=clean_name,
            email=clean_email,
            password_hash=password_hash,
            role=parsed_role.value,
            organization_id=actor.organization_id,
            created_at=self._next_created_at(actor.organization_id),
        )
        self.session.add(user)
        self.session.flush()

        logger.info(
            "user_created",
            extra={
                "user_id": str(user.id),
                "role": parsed_role.value,
                "created_by": str(actor.user_id),
            },
        )
        return user.to_dto()

    def rename_user(self, actor: VerifiedActor, user_id: UUID, new_name: str) -> UserInfo:
        clean_name = _clean(new_name)
        errors: dict[str, str] = {}
        _check_name(errors, "name", clean_name)
        if errors:
            raise ValidationError(errors)

        user = self._load_member(actor, user_id)
        old_name = user.name
        user.name = clean_name
        self.session.flush()

        logger.info(
            "user_renamed",
            extra={
                "user_id": str(user_id),
                "old_name": old_name,
                "new_name": clean_name,
            },
        )
        return user.to_dto()

    def delete_user(self, actor: VerifiedActor, user_id: UUID) -> UserInfo:
        """Remove a user and their notifications.  Vouchers are kept."""
        if user_id == actor.user_id:
            raise AuthorizationError("delete user", "the main admin cannot delete themselves")

        user = self._load_member(actor, user_id)
        info = user.to_dto()
        self.session.execute(
            delete(Notification).where(Notification.recipient_id == user_id)
        )
        self.session.delete(user)
        self.session.flush()

        logger.info("user_deleted", extra={"user_id": str(user_id)})
        return info

    def list_users(self, actor: VerifiedActor) -> list[UserInfo]:
        users = self.session.execute(
            select(User)
            .where(User.organization_id == actor.organization_id)
            .order_by(User.created_at, User.id)
        ).scalars().all()
        return [u.to_dto() for u in users]

    # ------------------------------------------------------------------
    # Organization deletion
    # ------------------------------------------------------------------

    def delete_organization(self, actor: VerifiedActor) -> dict[str, int]:
        """Delete the actor's organization and everything it owns.

        Returns the number of rows removed per entity type.
        """
        org_id = actor.organization_id
        org = self.session.get(Organization, org_id)
        if org is None:
            raise OrganizationNotFoundError(str(org_id))

        removed = {
            "notifications": self.session.execute(
                delete(Notification).where(Notification.organization_id == org_id)
            ).rowcount,
            "vouchers": self.session.execute(
                delete(Voucher).where(Voucher.organization_id == org_id)
            ).rowcount,
            "users": self.session.execute(
                delete(User).where(User.organization_id == org_id)
            ).rowcount,
        }
        self.session.delete(org)
        self.session.flush()

        logger.warning(
            "organization_deleted",
            extra={"organization_id": str(org_id), **removed},
        )
        return removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_member(self, actor: VerifiedActor, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None or user.organization_id != actor.organization_id:
            raise UserNotFoundError(str(user_id))
        return user

    def _organization_name_taken(self, name: str) -> bool:
        return self.session.execute(
            select(Organization.id).where(
                func.lower(Organization.name) == name.lower()
            )
        ).first() is not None

    def _email_taken(self, email: str) -> bool:
        return self.session.execute(
            select(User.id).where(User.email == email)
        ).first() is not None

    def _next_created_at(self, organization_id: UUID) -> datetime:
        now = self.clock.now()
        newest = self.session.execute(
            select(func.max(User.created_at)).where(
                User.organization_id == organization_id
            )
        ).scalar_one_or_none()
        newest = as_utc(newest)
        if newest is not None and newest >= now:
            return newest + timedelta(microseconds=1)
        return now
