"""Configuration via environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from fein_fiscal.exceptions import ConfigurationError

load_dotenv()


@dataclass(frozen=True)
class ExtractionSettings:
    """Tunables for FEIN extraction and draft compaction."""

    signing_year_min: int = 2020
    signing_year_max: int = 2030
    warning_limit: int = 3
    response_soft_limit_bytes: int = 8192


def _get_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from None


def get_log_level() -> str:
    """Return LOG_LEVEL, defaulting to INFO."""
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def get_log_format() -> str:
    """Return LOG_FORMAT ("standard" or "json"), defaulting to standard."""
    fmt = os.environ.get("LOG_FORMAT", "standard").lower()
    if fmt not in ("standard", "json"):
        msg = f"LOG_FORMAT must be 'standard' or 'json', got {fmt!r}"
        raise ConfigurationError(msg)
    return fmt


def get_default_ocr_provider() -> str:
    """Return the OCR provider label stamped on drafts.

    Defaults to "mixed" when several providers contributed to the text.
    """
    return os.environ.get("FEIN_OCR_PROVIDER", "mixed")


def get_extraction_settings() -> ExtractionSettings:
    """Build ExtractionSettings from environment variables.

    Optional: FEIN_SIGNING_YEAR_MIN (default 2020), FEIN_SIGNING_YEAR_MAX
    (default 2030), FEIN_WARNING_LIMIT (default 3),
    FEIN_RESPONSE_SOFT_LIMIT_BYTES (default 8192)
    """
    defaults = ExtractionSettings()
    year_min = _get_int("FEIN_SIGNING_YEAR_MIN", defaults.signing_year_min)
    year_max = _get_int("FEIN_SIGNING_YEAR_MAX", defaults.signing_year_max)
    if year_min > year_max:
        msg = f"FEIN_SIGNING_YEAR_MIN ({year_min}) is after FEIN_SIGNING_YEAR_MAX ({year_max})"
        raise ConfigurationError(msg)

    return ExtractionSettings(
        signing_year_min=year_min,
        signing_year_max=year_max,
        warning_limit=_get_int("FEIN_WARNING_LIMIT", defaults.warning_limit),
        response_soft_limit_bytes=_get_int(
            "FEIN_RESPONSE_SOFT_LIMIT_BYTES", defaults.response_soft_limit_bytes
        ),
    )
