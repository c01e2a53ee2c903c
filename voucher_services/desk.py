"""
voucher_services.desk -- Transaction-owning facade over the voucher kernel.

Responsibility:
    The one entry point callers (a REST layer, a CLI, tests) use.  Each desk
    operation takes the identity claimed by the external identity provider,
    verifies it against the store, checks authority, runs the kernel
    service or selector, and commits.  Kernel errors come back as a typed
    ``DeskResult``; they are never raised across this boundary.

Architecture position:
    Services layer.  Owns the session and transaction boundary for every
    operation; kernel services only flush.

Invariants enforced:
    - Authority is checked before any mutation (require_authority).
    - Notification fan-out runs only after the lifecycle commit, in its own
      transaction.  A fan-out failure is logged and never undoes the
      committed voucher state.
    - A failed operation rolls back everything it wrote.

Failure modes:
    - Kernel errors -> DeskResult with the matching DeskStatus.
    - Anything else rolls back, is logged with the traceback, and re-raises.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from voucher_config.settings import VoucherSettings
from voucher_kernel.db.engine import Database
from voucher_kernel.domain.clock import Clock, SystemClock
from voucher_kernel.domain.identity import Identity, VerifiedActor
from voucher_kernel.domain.voucher import (
    Voucher,
    VoucherFilter,
    VoucherTransition,
    validate_filter,
)
from voucher_kernel.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    VoucherKernelError,
)
from voucher_kernel.logging_config import LogContext, configure_logging, get_logger
from voucher_kernel.selectors.notification_selector import NotificationSelector
from voucher_kernel.selectors.voucher_selector import VoucherSelector
from voucher_kernel.services.identity_service import IdentityService
from voucher_kernel.services.notification_service import NotificationService
from voucher_kernel.services.organization_service import OrganizationService
from voucher_kernel.services.voucher_service import VoucherService
from voucher_services.authority import (
    Action,
    check_list_filter,
    require_authority,
)

logger = get_logger("services.desk")


class DeskStatus(str, Enum):
    """Outcome of a desk operation."""

    OK = "ok"
    VALIDATION_FAILED = "validation_failed"
    NOT_AUTHORIZED = "not_authorized"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class DeskResult:
    """Result of a desk operation."""

    status: DeskStatus
    value: Any = None
    error_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == DeskStatus.OK


# Most specific first; ValidationError subclasses keep their own error_code.
_STATUS_BY_ERROR: tuple[tuple[type[VoucherKernelError], DeskStatus], ...] = (
    (ValidationError, DeskStatus.VALIDATION_FAILED),
    (AuthorizationError, DeskStatus.NOT_AUTHORIZED),
    (InvalidTransitionError, DeskStatus.INVALID_TRANSITION),
    (NotFoundError, DeskStatus.NOT_FOUND),
    (ConflictError, DeskStatus.CONFLICT),
)

_ACTION_BY_TRANSITION = {
    VoucherTransition.APPROVE: Action.APPROVE_VOUCHER,
    VoucherTransition.REJECT: Action.REJECT_VOUCHER,
    VoucherTransition.PAY: Action.PAY_VOUCHER,
}


def _error_details(exc: VoucherKernelError) -> dict[str, Any]:
    if isinstance(exc, ValidationError):
        return {"errors": dict(exc.errors)}
    if isinstance(exc, AuthorizationError):
        return {"action": exc.action, "reason": exc.reason}
    if isinstance(exc, InvalidTransitionError):
        return {
            "voucher_id": exc.voucher_id,
            "from_status": exc.from_status,
            "to_status": exc.to_status,
        }
    if isinstance(exc, NotFoundError):
        return {"entity_type": exc.entity_type, "entity_id": exc.entity_id}
    if isinstance(exc, ConflictError):
        return {
            "entity_type": exc.entity_type,
            "entity_id": exc.entity_id,
            "expected_status": exc.expected_status,
        }
    return {}


def failure_result(exc: VoucherKernelError) -> DeskResult:
    """Translate a kernel error into a failed DeskResult."""
    status = next(
        (s for error_type, s in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        None,
    )
    if status is None:
        raise exc
    return DeskResult(
        status=status,
        error_code=exc.code,
        message=str(exc),
        details=_error_details(exc),
    )


class VoucherDesk:
    """
    Operation surface of the voucher core.

    Contract:
        Every public method returns a DeskResult.  ``value`` holds the
        operation's DTO (or list, or count) on success.

    Non-goals:
        - Does NOT authenticate credentials; the identity provider has
          already produced the ``Identity`` it is given.
        - Does NOT hash passwords; ``password_hash`` is stored as given.
    """

    def __init__(
        self,
        database: Database,
        clock: Clock | None = None,
        settings: VoucherSettings | None = None,
    ):
        self.database = database
        self.clock = clock or SystemClock()
        self.settings = settings or VoucherSettings()

    @classmethod
    def from_settings(
        cls,
        settings: VoucherSettings,
        clock: Clock | None = None,
    ) -> VoucherDesk:
        """Process bootstrap: apply the configured log level and open the database."""
        configure_logging(level=settings.log_level_number)
        database = Database.from_url(
            settings.database_url,
            echo=settings.echo_sql,
            pool_size=settings.pool_size,
        )
        return cls(database, clock=clock, settings=settings)

    # ------------------------------------------------------------------
    # Tenant and users
    # ------------------------------------------------------------------

    def register_organization(
        self,
        name: str,
        admin_name: str,
        email: str,
        password_hash: str,
    ) -> DeskResult:
        """Create an organization and its main admin.  No identity needed."""

        def work(session: Session, actor: None):
            return OrganizationService(session, self.clock).register_organization(
                name, admin_name, email, password_hash,
            )

        return self._run("register_organization", None, work)

    def create_user(
        self,
        identity: Identity,
        name: str,
        email: str,
        password_hash: str,
        role: str,
    ) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            self._require_main_admin(session, actor, Action.MANAGE_USERS)
            return OrganizationService(session, self.clock).create_user(
                actor, name, email, password_hash, role,
            )

        return self._run("create_user", identity, work)

    def rename_user(self, identity: Identity, user_id: UUID, new_name: str) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            self._require_main_admin(session, actor, Action.MANAGE_USERS)
            return OrganizationService(session, self.clock).rename_user(
                actor, user_id, new_name,
            )

        return self._run("rename_user", identity, work)

    def delete_user(self, identity: Identity, user_id: UUID) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            self._require_main_admin(session, actor, Action.MANAGE_USERS)
            return OrganizationService(session, self.clock).delete_user(actor, user_id)

        return self._run("delete_user", identity, work)

    def list_users(self, identity: Identity) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.LIST_USERS)
            return OrganizationService(session, self.clock).list_users(actor)

        return self._run("list_users", identity, work)

    def resolve_user(self, identity: Identity, user_id: UUID) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            return IdentityService(session, self.clock).resolve_user(
                user_id, actor.organization_id,
            )

        return self._run("resolve_user", identity, work)

    def resolve_organization(self, identity: Identity) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            return IdentityService(session, self.clock).resolve_organization(
                actor.organization_id,
            )

        return self._run("resolve_organization", identity, work)

    def delete_organization(self, identity: Identity) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            self._require_main_admin(session, actor, Action.DELETE_ORGANIZATION)
            return OrganizationService(session, self.clock).delete_organization(actor)

        return self._run("delete_organization", identity, work)

    # ------------------------------------------------------------------
    # Voucher lifecycle
    # ------------------------------------------------------------------

    def create_voucher(
        self,
        identity: Identity,
        *,
        purpose: Any,
        amount: Any,
        description: Any,
        needed_by: Any,
        staff_name: Any = None,
    ) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.CREATE_VOUCHER)
            return self._voucher_service(session).create(
                actor,
                purpose=purpose,
                amount=amount,
                description=description,
                needed_by=needed_by,
                staff_name=staff_name,
            )

        return self._run(
            "create_voucher", identity, work, after_commit=self._fan_out,
        )

    def approve_voucher(self, identity: Identity, voucher_id: str) -> DeskResult:
        return self._transition(identity, voucher_id, VoucherTransition.APPROVE)

    def reject_voucher(self, identity: Identity, voucher_id: str) -> DeskResult:
        return self._transition(identity, voucher_id, VoucherTransition.REJECT)

    def pay_voucher(self, identity: Identity, voucher_id: str) -> DeskResult:
        return self._transition(identity, voucher_id, VoucherTransition.PAY)

    def delete_voucher(self, identity: Identity, voucher_id: str) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.DELETE_VOUCHER)
            voucher = VoucherSelector(session).get(actor, voucher_id)
            require_authority(actor, Action.DELETE_VOUCHER, voucher)
            return self._voucher_service(session).delete(actor, voucher_id)

        return self._run("delete_voucher", identity, work, voucher_id=voucher_id)

    def _transition(
        self,
        identity: Identity,
        voucher_id: str,
        transition: VoucherTransition,
    ) -> DeskResult:
        action = _ACTION_BY_TRANSITION[transition]

        def work(session: Session, actor: VerifiedActor):
            # Role first: a staff member never learns whether the id exists.
            require_authority(actor, action)
            voucher = VoucherSelector(session).get(actor, voucher_id)
            require_authority(actor, action, voucher)
            return self._voucher_service(session).transition(
                actor, voucher_id, transition,
            )

        return self._run(
            f"{transition.value}_voucher",
            identity,
            work,
            voucher_id=voucher_id,
            after_commit=self._fan_out,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_voucher(self, identity: Identity, voucher_id: str) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.VIEW_VOUCHER)
            voucher = VoucherSelector(session).get(actor, voucher_id)
            require_authority(actor, Action.VIEW_VOUCHER, voucher)
            return voucher

        return self._run("get_voucher", identity, work, voucher_id=voucher_id)

    def list_vouchers(
        self,
        identity: Identity,
        voucher_filter: VoucherFilter | None = None,
    ) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.LIST_VOUCHERS)
            normalized = validate_filter(voucher_filter or VoucherFilter())
            check_list_filter(actor, normalized)
            return VoucherSelector(session).list(actor, normalized)

        return self._run("list_vouchers", identity, work)

    def summarize_vouchers(self, identity: Identity) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.VIEW_SUMMARY)
            return VoucherSelector(session).summarize(actor)

        return self._run("summarize_vouchers", identity, work)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def list_notifications(
        self,
        identity: Identity,
        unread_only: bool = False,
    ) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            return NotificationSelector(session).list(
                actor,
                unread_only=unread_only,
                limit=self.settings.notification_page_size,
            )

        return self._run("list_notifications", identity, work)

    def unread_count(self, identity: Identity) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            return NotificationSelector(session).unread_count(actor)

        return self._run("unread_count", identity, work)

    def mark_notification_read(
        self,
        identity: Identity,
        notification_id: UUID,
    ) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            return self._notification_service(session).mark_read(actor, notification_id)

        return self._run("mark_notification_read", identity, work)

    def clear_notifications(self, identity: Identity) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            return self._notification_service(session).clear(actor)

        return self._run("clear_notifications", identity, work)

    def post_notification(
        self,
        identity: Identity,
        message: str,
        recipient_id: UUID | None = None,
    ) -> DeskResult:
        def work(session: Session, actor: VerifiedActor):
            require_authority(actor, Action.POST_NOTIFICATION)
            return self._notification_service(session).post(
                actor, message, recipient_id,
            )

        return self._run("post_notification", identity, work)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _voucher_service(self, session: Session) -> VoucherService:
        return VoucherService(
            session, self.clock, code_prefix=self.settings.voucher_code_prefix,
        )

    def _notification_service(self, session: Session) -> NotificationService:
        return NotificationService(
            session, self.clock, clear_scope=self.settings.notification_clear_scope,
        )

    def _require_main_admin(
        self,
        session: Session,
        actor: VerifiedActor,
        action: Action,
    ) -> None:
        main_admin_id = IdentityService(session, self.clock).main_admin_id(
            actor.organization_id,
        )
        require_authority(actor, action, main_admin_id=main_admin_id)

    def _run(
        self,
        operation: str,
        identity: Identity | None,
        work: Callable[[Session, VerifiedActor | None], Any],
        *,
        voucher_id: str | None = None,
        after_commit: Callable[[Any, VerifiedActor], None] | None = None,
    ) -> DeskResult:
        """Verify, run ``work`` in one transaction, commit, then ``after_commit``."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(identity.user_id) if identity else None,
            organization_id=str(identity.organization_id) if identity else None,
            voucher_id=voucher_id,
            operation=operation,
        ):
            session = self.database.session()
            try:
                actor = None
                if identity is not None:
                    actor = IdentityService(session, self.clock).verify(
                        identity,
                        against_store=self.settings.verify_identity_against_store,
                    )
                value = work(session, actor)
                session.commit()
            except VoucherKernelError as exc:
                session.rollback()
                logger.info(
                    "desk_operation_refused",
                    extra={"error_code": exc.code, "reason": str(exc)},
                )
                return failure_result(exc)
            except Exception:
                session.rollback()
                logger.exception("desk_operation_failed")
                raise
            finally:
                session.close()

            logger.debug("desk_operation_completed")
            if after_commit is not None:
                after_commit(value, actor)
            return DeskResult(status=DeskStatus.OK, value=value)

    def _fan_out(self, voucher: Voucher, actor: VerifiedActor) -> None:
        """Best-effort notification fan-out for a committed voucher state."""
        try:
            with self.database.session_scope() as session:
                self._notification_service(session).fan_out(voucher, actor)
        except Exception:
            logger.exception(
                "notification_fanout_failed",
                extra={"voucher_status": voucher.status.value},
            )
