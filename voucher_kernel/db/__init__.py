"""Database layer - engine, base classes, and column types."""

from voucher_kernel.db.base import (
    UUID,
    Base,
    IdentifiedBase,
    TrackedBase,
    UUIDString,
    as_utc,
)
from voucher_kernel.db.engine import Database

__all__ = [
    "Database",
    "Base",
    "IdentifiedBase",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "as_utc",
]
