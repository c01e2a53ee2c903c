"""
Racing transitions on one voucher.

Several actors act on the same voucher at the same moment.  Exactly one
transition may win; every loser gets CONFLICT (lost the conditional write)
or INVALID_TRANSITION (saw the winner's committed status), and only the
winner's notifications are written.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import select

from voucher_kernel.domain.notification import NotificationType
from voucher_kernel.domain.voucher import VoucherStatus
from voucher_kernel.models.notification import Notification
from voucher_kernel.models.voucher import Voucher
from voucher_services.desk import DeskStatus

pytestmark = [pytest.mark.slow_locks]

LOSING_STATUSES = {DeskStatus.CONFLICT, DeskStatus.INVALID_TRANSITION}


def _race(calls):
    barrier = Barrier(len(calls))

    def run(call):
        barrier.wait()
        return call()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def _notifications_of_type(database, notification_type):
    with database.session_scope() as session:
        return session.execute(
            select(Notification).where(Notification.type == notification_type.value)
        ).scalars().all()


class TestApprovalRace:

    def test_one_winner_among_concurrent_approvals(
        self, desk, database, acme, create_pending, identity_of,
    ):
        voucher = create_pending(acme["ada"])
        admins = [acme["admin"], acme["admin2"]] * 3
        results = _race([
            (lambda a=admin: desk.approve_voucher(identity_of(a), voucher.id))
            for admin in admins
        ])

        winners = [r for r in results if r.is_success]
        losers = [r for r in results if not r.is_success]
        assert len(winners) == 1
        assert {r.status for r in losers} <= LOSING_STATUSES

        with database.session_scope() as session:
            stored = session.get(Voucher, voucher.id)
            assert stored.status == VoucherStatus.APPROVED.value
            assert stored.approved_by == winners[0].value.approved_by

        approvals = _notifications_of_type(database, NotificationType.VOUCHER_APPROVED)
        # Ada plus the two accountants, once each.
        assert len(approvals) == 3

    def test_approve_and_reject_race(self, desk, database, acme, create_pending, identity_of):
        voucher = create_pending(acme["ada"])
        results = _race([
            lambda: desk.approve_voucher(identity_of(acme["admin"]), voucher.id),
            lambda: desk.reject_voucher(identity_of(acme["admin2"]), voucher.id),
        ])
        assert sum(r.is_success for r in results) == 1
        winner = next(r for r in results if r.is_success)

        with database.session_scope() as session:
            assert session.get(Voucher, voucher.id).status == winner.value.status.value

    def test_one_winner_among_concurrent_payments(
        self, desk, database, acme, create_pending, identity_of,
    ):
        voucher = create_pending(acme["ada"])
        assert desk.approve_voucher(identity_of(acme["admin"]), voucher.id).is_success

        accountants = [acme["accountant"], acme["accountant2"]] * 2
        results = _race([
            (lambda a=accountant: desk.pay_voucher(identity_of(a), voucher.id))
            for accountant in accountants
        ])
        assert sum(r.is_success for r in results) == 1
        assert {r.status for r in results if not r.is_success} <= LOSING_STATUSES

        payments = _notifications_of_type(database, NotificationType.VOUCHER_PAID)
        # Ada plus the two admins.
        assert len(payments) == 3
