"""
Settings loader (``voucher_config.loader``).

Responsibility
--------------
Reads a YAML settings file, applies environment overrides, and builds a
validated ``VoucherSettings``.  Runtime callers go through
``voucher_config.get_active_settings()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError`` listing every problem.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from voucher_config.settings import VoucherSettings, validate_settings

# Checked in order; the first one set wins.
ENV_DATABASE_URL = ("VOUCHER_DATABASE_URL", "DATABASE_URL")
ENV_LOG_LEVEL = "VOUCHER_LOG_LEVEL"

_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _BOOL_TRUE:
        return True
    if text in _BOOL_FALSE:
        return False
    raise ValueError(f"{key} must be a boolean (got {value!r})")


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer (got {value!r})")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer (got {value!r})") from exc


_COERCE = {
    "echo_sql": _as_bool,
    "verify_identity_against_store": _as_bool,
    "notification_page_size": _as_int,
    "pool_size": _as_int,
}


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    env = os.environ if environ is None else environ
    merged = dict(data)
    for name in ENV_DATABASE_URL:
        if env.get(name):
            merged["database_url"] = env[name]
            break
    if env.get(ENV_LOG_LEVEL):
        merged["log_level"] = env[ENV_LOG_LEVEL]
    return merged


def parse_settings(data: Mapping[str, Any]) -> VoucherSettings:
    """
    Build a ``VoucherSettings`` from a flat mapping.

    Raises:
        ValueError: unknown keys, values of the wrong type, or values that
            fail ``validate_settings``.  All problems are reported together.
    """
    known = {f.name for f in fields(VoucherSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    errors: list[str] = []
    for key, raw in data.items():
        coerce = _COERCE.get(key)
        try:
            values[key] = coerce(key, raw) if coerce else raw
        except ValueError as exc:
            errors.append(str(exc))
    if "log_level" in values and isinstance(values["log_level"], str):
        values["log_level"] = values["log_level"].upper()
    if errors:
        raise ValueError(
            "Settings validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    settings = VoucherSettings(**values)
    problems = validate_settings(settings)
    if problems:
        raise ValueError(
            "Settings validation failed:\n" + "\n".join(f"  - {e}" for e in problems)
        )
    return settings


def load_settings(
    path: Path,
    environ: Mapping[str, str] | None = None,
) -> VoucherSettings:
    """Load ``path``, apply environment overrides, and validate."""
    data = load_yaml_file(Path(path))
    section = data.get("voucher", data)
    if not isinstance(section, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return parse_settings(apply_env_overrides(section, environ))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
