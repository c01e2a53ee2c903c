"""
Runtime settings schema (``voucher_config.settings``).

Every knob the voucher core reads at runtime lives on ``VoucherSettings``,
a frozen dataclass.  ``validate_settings`` is called by the loader before a
settings object is handed out; a settings instance that exists is valid.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

CLEAR_SCOPES = ("organization", "recipient")

_PREFIX_PATTERN = re.compile(r"^[A-Z][A-Z0-9]{1,9}$")


@dataclass(frozen=True)
class VoucherSettings:
    """Effective runtime configuration."""

    database_url: str = "sqlite:///vouchers.db"
    echo_sql: bool = False
    voucher_code_prefix: str = "VCH"
    notification_page_size: int = 50
    notification_clear_scope: str = "organization"
    verify_identity_against_store: bool = True
    log_level: str = "INFO"
    pool_size: int = 10

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)

    def as_dict(self) -> dict:
        return {
            "database_url": self.database_url,
            "echo_sql": self.echo_sql,
            "voucher_code_prefix": self.voucher_code_prefix,
            "notification_page_size": self.notification_page_size,
            "notification_clear_scope": self.notification_clear_scope,
            "verify_identity_against_store": self.verify_identity_against_store,
            "log_level": self.log_level,
            "pool_size": self.pool_size,
        }


def validate_settings(settings: VoucherSettings) -> list[str]:
    """Return every problem with ``settings``; empty when valid."""
    errors: list[str] = []
    if not settings.database_url:
        errors.append("database_url is required")
    if not _PREFIX_PATTERN.match(settings.voucher_code_prefix or ""):
        errors.append(
            "voucher_code_prefix must be 2-10 upper-case letters or digits, "
            f"starting with a letter (got {settings.voucher_code_prefix!r})"
        )
    if not isinstance(settings.notification_page_size, int) or not (
        1 <= settings.notification_page_size <= 500
    ):
        errors.append("notification_page_size must be an integer in 1..500")
    if settings.notification_clear_scope not in CLEAR_SCOPES:
        errors.append(
            f"notification_clear_scope must be one of {', '.join(CLEAR_SCOPES)}"
        )
    if not isinstance(logging.getLevelName(settings.log_level), int):
        errors.append(f"log_level is not a logging level: {settings.log_level!r}")
    if not isinstance(settings.pool_size, int) or settings.pool_size < 1:
        errors.append("pool_size must be a positive integer")
    return errors
