"""
voucher_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits beside ``voucher_kernel`` and below
    ``voucher_services``.  The kernel MUST NEVER import from
    ``voucher_config``; the desk passes individual values into kernel
    constructors.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``VOUCHER_CONFIG_TRACE`` log entry carrying the checksum of the
    effective values, with the database password masked.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Mapping

from voucher_config.loader import compute_checksum, load_settings
from voucher_config.settings import VoucherSettings

_logger = logging.getLogger("voucher_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"

_PASSWORD_IN_URL = re.compile(r"(://[^:/@]+:)[^@]+@")


def mask_database_url(url: str) -> str:
    return _PASSWORD_IN_URL.sub(r"\1***@", url)


def get_active_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> VoucherSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Settings file.  Defaults to the packaged ``defaults.yaml``.
        environ: Environment mapping for overrides.  Defaults to
            ``os.environ``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the settings fail validation.
    """
    source = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = load_settings(source, environ)
    checksum = compute_checksum(settings.as_dict())

    _logger.info(
        "VOUCHER_CONFIG_TRACE",
        extra={
            "trace_type": "VOUCHER_CONFIG_TRACE",
            "source": str(source),
            "checksum": checksum,
            "database_url": mask_database_url(settings.database_url),
            "voucher_code_prefix": settings.voucher_code_prefix,
            "notification_clear_scope": settings.notification_clear_scope,
            "verify_identity_against_store": settings.verify_identity_against_store,
        },
    )
    return settings


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "VoucherSettings",
    "compute_checksum",
    "get_active_settings",
    "load_settings",
    "mask_database_url",
]
