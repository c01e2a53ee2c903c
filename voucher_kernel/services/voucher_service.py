"""
voucher_kernel.services.voucher_service -- Voucher lifecycle management.

Responsibility:
    Creates vouchers and drives them through the lifecycle state machine
    (approve, reject, pay).  Also carries the administrative delete override.
    Rule evaluation is delegated to the pure ``domain.voucher`` module.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Status moves only along VOUCHER_TRANSITIONS; any other request raises
      InvalidTransitionError and leaves the row untouched.
    - At most one transition wins per voucher state: the write is a single
      conditional UPDATE keyed on (id, organization_id, expected status).
      Zero affected rows means another actor got there first -> ConflictError.
    - Paying preserves ``approved_by``; only ``paid_by`` and ``updated_at``
      are written.
    - Every lookup is scoped to the actor's organization; staff actors only
      see their own vouchers.  Anything outside that scope is not found.

Failure modes:
    - ValidationError on creation input (every bad field listed).
    - VoucherNotFoundError for ids outside the actor's visible scope.
    - InvalidTransitionError when the voucher is in the wrong state.
    - ConflictError when a concurrent transition won the race.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import update

from voucher_kernel.domain.clock import Clock
from voucher_kernel.domain.identity import VerifiedActor
from voucher_kernel.domain.voucher import (
    Voucher,
    VoucherStatus,
    VoucherTransition,
    check_transition,
    generate_voucher_code,
    validate_draft,
)
from voucher_kernel.exceptions import ConflictError, VoucherNotFoundError
from voucher_kernel.logging_config import get_logger
from voucher_kernel.models.voucher import Voucher as VoucherModel
from voucher_kernel.services.base import BaseService

logger = get_logger("services.voucher")

_MAX_CODE_ATTEMPTS = 5


class VoucherService(BaseService):
    """Manages voucher creation and lifecycle transitions."""

    def __init__(self, session, clock: Clock | None = None, code_prefix: str = "VCH"):
        super().__init__(session, clock)
        self.code_prefix = code_prefix

    def create(
        self,
        actor: VerifiedActor,
        *,
        purpose: Any,
        amount: Any,
        description: Any,
        needed_by: Any,
        staff_name: Any = None,
    ) -> Voucher:
        """Create a pending voucher owned by ``actor``.

        ``staff_name`` defaults to the actor's stored name.  Organization and
        staff id always come from the actor, never from input.
        """
        now = self.clock.now()
        draft = validate_draft(
            purpose=purpose,
            amount=amount,
            description=description,
            needed_by=needed_by,
            staff_id=actor.user_id,
            staff_name=actor.name if staff_name is None else staff_name,
            organization_id=actor.organization_id,
            today=now.date(),
        )

        model = VoucherModel(
            id=self._new_code(now),
            purpose=draft.purpose,
            amount=draft.amount,
            description=draft.description,
            status=VoucherStatus.PENDING.value,
            date=now,
            needed_by=draft.needed_by,
            staff_id=draft.staff_id,
            staff_name=draft.staff_name,
            organization_id=draft.organization_id,
            updated_at=now,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "voucher_created",
            extra={
                "voucher_id": model.id,
                "amount": str(draft.amount),
                "needed_by": str(draft.needed_by),
            },
        )
        return model.to_dto()

    def approve(self, actor: VerifiedActor, voucher_id: str) -> Voucher:
        return self.transition(actor, voucher_id, VoucherTransition.APPROVE)

    def reject(self, actor: VerifiedActor, voucher_id: str) -> Voucher:
        return self.transition(actor, voucher_id, VoucherTransition.REJECT)

    def pay(self, actor: VerifiedActor, voucher_id: str) -> Voucher:
        return self.transition(actor, voucher_id, VoucherTransition.PAY)

    def transition(
        self,
        actor: VerifiedActor,
        voucher_id: str,
        transition: VoucherTransition,
    ) -> Voucher:
        """Apply ``transition`` with a guarded conditional write."""
        model = self._load_scoped(actor, voucher_id)
        rule = check_transition(model.id, VoucherStatus(model.status), transition)

        now = self.clock.now()
        values: dict[str, Any] = {
            "status": rule.to_status.value,
            "updated_at": now,
        }
        if transition == VoucherTransition.APPROVE:
            values["approved_by"] = actor.name
        elif transition == VoucherTransition.PAY:
            values["paid_by"] = actor.name

        result = self.session.execute(
            update(VoucherModel)
            .where(
                VoucherModel.id == model.id,
                VoucherModel.organization_id == actor.organization_id,
                VoucherModel.status == rule.from_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "voucher_transition_conflict",
                extra={
                    "voucher_id": model.id,
                    "transition": transition.value,
                    "expected_status": rule.from_status.value,
                },
            )
            raise ConflictError("Voucher", model.id, rule.from_status.value)

        self.session.refresh(model)
        logger.info(
            "voucher_transitioned",
            extra={
                "voucher_id": model.id,
                "transition": transition.value,
                "from_status": rule.from_status.value,
                "to_status": rule.to_status.value,
            },
        )
        return model.to_dto()

    def delete(self, actor: VerifiedActor, voucher_id: str) -> Voucher:
        """Administrative override: physically remove a voucher."""
        model = self._load_scoped(actor, voucher_id)
        dto = model.to_dto()
        self.session.delete(model)
        self.session.flush()
        logger.warning(
            "voucher_deleted",
            extra={"voucher_id": dto.id, "status": dto.status.value},
        )
        return dto

    def _load_scoped(self, actor: VerifiedActor, voucher_id: str) -> VoucherModel:
        """Load a voucher visible to ``actor`` or raise VoucherNotFoundError.

        Cross-organization ids and (for staff) other people's vouchers are
        indistinguishable from ids that do not exist.
        """
        model = self.session.get(VoucherModel, voucher_id) if voucher_id else None
        if model is None or model.organization_id != actor.organization_id:
            raise VoucherNotFoundError(str(voucher_id))
        if actor.is_staff and model.staff_id != actor.user_id:
            raise VoucherNotFoundError(str(voucher_id))
        return model

    def _new_code(self, now: datetime) -> str:
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = generate_voucher_code(self.code_prefix, now)
            if self.session.get(VoucherModel, code) is None:
                return code
        raise RuntimeError("Could not allocate a unique voucher code")
