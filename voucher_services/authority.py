"""
voucher_services.authority -- Role-to-action policy at the desk boundary.

Responsibility:
    Decide whether a verified actor may perform an action, optionally on a
    specific voucher.  Every desk operation consults this module before any
    kernel mutation runs.

Architecture position:
    Services layer.  Pure functions over kernel value objects; no session
    access.  The main-admin id is supplied by the caller (IdentityService).

Invariants:
    - Tenant isolation first: a voucher outside the actor's organization is
      denied for every action and every role.
    - Staff see and create only their own vouchers.
    - Only admins approve or reject; only accountants pay.
    - User management and organization deletion belong to the main admin.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from voucher_kernel.domain.identity import Role, VerifiedActor
from voucher_kernel.domain.voucher import Voucher, VoucherFilter
from voucher_kernel.exceptions import AuthorizationError


class Action(str, Enum):
    CREATE_VOUCHER = "create_voucher"
    VIEW_VOUCHER = "view_voucher"
    LIST_VOUCHERS = "list_vouchers"
    APPROVE_VOUCHER = "approve_voucher"
    REJECT_VOUCHER = "reject_voucher"
    PAY_VOUCHER = "pay_voucher"
    DELETE_VOUCHER = "delete_voucher"
    MANAGE_USERS = "manage_users"
    LIST_USERS = "list_users"
    POST_NOTIFICATION = "post_notification"
    DELETE_ORGANIZATION = "delete_organization"
    VIEW_SUMMARY = "view_summary"


# role -> actions the role may attempt at all
ROLE_ACTIONS: dict[Role, frozenset[Action]] = {
    Role.STAFF: frozenset({
        Action.CREATE_VOUCHER,
        Action.VIEW_VOUCHER,
        Action.LIST_VOUCHERS,
    }),
    Role.ACCOUNTANT: frozenset({
        Action.VIEW_VOUCHER,
        Action.LIST_VOUCHERS,
        Action.PAY_VOUCHER,
        Action.VIEW_SUMMARY,
    }),
    Role.ADMIN: frozenset({
        Action.VIEW_VOUCHER,
        Action.LIST_VOUCHERS,
        Action.APPROVE_VOUCHER,
        Action.REJECT_VOUCHER,
        Action.DELETE_VOUCHER,
        Action.MANAGE_USERS,
        Action.LIST_USERS,
        Action.POST_NOTIFICATION,
        Action.DELETE_ORGANIZATION,
        Action.VIEW_SUMMARY,
    }),
}

MAIN_ADMIN_ONLY: frozenset[Action] = frozenset({
    Action.MANAGE_USERS,
    Action.DELETE_ORGANIZATION,
})


def check_authority(
    actor: VerifiedActor,
    action: Action,
    voucher: Voucher | None = None,
    main_admin_id: UUID | None = None,
) -> tuple[bool, str]:
    """Check whether ``actor`` may perform ``action``.

    Args:
        actor: Identity already verified against the store.
        action: What the actor is attempting.
        voucher: Target voucher, when the action has one.
        main_admin_id: The organization's main admin; required for
            MAIN_ADMIN_ONLY actions (None denies them).

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if voucher is not None and voucher.organization_id != actor.organization_id:
        return (False, "voucher belongs to another organization")

    if action not in ROLE_ACTIONS.get(actor.role, frozenset()):
        return (False, f"role '{actor.role.value}' may not {action.value}")

    if action in MAIN_ADMIN_ONLY:
        if main_admin_id is None or main_admin_id != actor.user_id:
            return (False, "only the main admin may do this")

    if (
        voucher is not None
        and actor.role == Role.STAFF
        and voucher.staff_id != actor.user_id
    ):
        return (False, "staff may only access their own vouchers")

    return (True, "")


def require_authority(
    actor: VerifiedActor,
    action: Action,
    voucher: Voucher | None = None,
    main_admin_id: UUID | None = None,
) -> None:
    """Raise AuthorizationError unless ``check_authority`` allows."""
    allowed, reason = check_authority(actor, action, voucher, main_admin_id)
    if not allowed:
        raise AuthorizationError(action.value, reason)


def check_list_filter(actor: VerifiedActor, voucher_filter: VoucherFilter) -> None:
    """Staff asking for somebody else's vouchers get an explicit denial."""
    if (
        actor.role == Role.STAFF
        and voucher_filter.staff_id is not None
        and voucher_filter.staff_id != actor.user_id
    ):
        raise AuthorizationError(
            Action.LIST_VOUCHERS.value,
            "staff may only list their own vouchers",
        )
