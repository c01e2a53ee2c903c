"""
voucher_services -- Operation surface over the voucher kernel.

``VoucherDesk`` owns transactions and returns ``DeskResult`` values;
``authority`` holds the role-to-action policy it enforces.
"""

from voucher_services.authority import (
    Action,
    check_authority,
    check_list_filter,
    require_authority,
)
from voucher_services.desk import DeskResult, DeskStatus, VoucherDesk, failure_result

__all__ = [
    "Action",
    "DeskResult",
    "DeskStatus",
    "VoucherDesk",
    "check_authority",
    "check_list_filter",
    "failure_result",
    "require_authority",
]
