"""
Voucher lifecycle state machine (pure domain).

pending -> approved | rejected, approved -> paid.  Everything else is an
InvalidTransitionError; approved/rejected re-entry is never silent.
"""

import pytest

from voucher_kernel.domain.voucher import (
    ALLOWED_NEXT_STATUSES,
    TERMINAL_VOUCHER_STATUSES,
    VOUCHER_TRANSITIONS,
    VoucherStatus,
    VoucherTransition,
    check_transition,
    is_legal_move,
    rule_for,
)
from voucher_kernel.exceptions import InvalidTransitionError


class TestTransitionTable:

    def test_approve_and_reject_leave_pending(self):
        for transition, target in (
            (VoucherTransition.APPROVE, VoucherStatus.APPROVED),
            (VoucherTransition.REJECT, VoucherStatus.REJECTED),
        ):
            rule = rule_for(transition)
            assert rule.from_status == VoucherStatus.PENDING
            assert rule.to_status == target

    def test_pay_leaves_approved(self):
        rule = rule_for(VoucherTransition.PAY)
        assert rule.from_status == VoucherStatus.APPROVED
        assert rule.to_status == VoucherStatus.PAID

    def test_terminal_statuses(self):
        assert TERMINAL_VOUCHER_STATUSES == {VoucherStatus.REJECTED, VoucherStatus.PAID}

    def test_allowed_next_statuses(self):
        assert ALLOWED_NEXT_STATUSES[VoucherStatus.PENDING] == {
            VoucherStatus.APPROVED, VoucherStatus.REJECTED,
        }
        assert ALLOWED_NEXT_STATUSES[VoucherStatus.APPROVED] == {VoucherStatus.PAID}

    def test_no_pending_to_paid_shortcut(self):
        assert not is_legal_move(VoucherStatus.PENDING, VoucherStatus.PAID)

    def test_every_transition_has_a_rule(self):
        assert set(VOUCHER_TRANSITIONS) == set(VoucherTransition)


class TestCheckTransition:

    @pytest.mark.parametrize("transition", list(VoucherTransition))
    def test_legal_from_the_rule_source(self, transition):
        rule = rule_for(transition)
        assert check_transition("VCH-1", rule.from_status, transition) is rule

    def test_reapprove_is_invalid(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition("VCH-1", VoucherStatus.APPROVED, VoucherTransition.APPROVE)
        assert exc_info.value.from_status == "approved"
        assert exc_info.value.to_status == "approved"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_pay_pending_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            check_transition("VCH-1", VoucherStatus.PENDING, VoucherTransition.PAY)

    @pytest.mark.parametrize("terminal", [VoucherStatus.REJECTED, VoucherStatus.PAID])
    @pytest.mark.parametrize("transition", list(VoucherTransition))
    def test_terminal_states_accept_nothing(self, terminal, transition):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition("VCH-1", terminal, transition)
        assert exc_info.value.voucher_id == "VCH-1"
