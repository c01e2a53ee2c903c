"""
Voucher Kernel

A multi-tenant expense-voucher approval core with:
- A strict pending -> approved/rejected, approved -> paid lifecycle
- Atomic conditional status updates (one winner per race)
- Tenant isolation on every read and write
- Notification fan-out on each lifecycle event
"""

__version__ = "0.1.0"
