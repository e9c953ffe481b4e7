"""CLI entry point for fein-fiscal."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from fein_fiscal.aggregation import compact_draft
from fein_fiscal.amortization import calculate, days_in_year
from fein_fiscal.canonical import to_canonical, validate_canonical
from fein_fiscal.config import (
    ExtractionSettings,
    get_default_ocr_provider,
    get_extraction_settings,
    get_log_format,
    get_log_level,
)
from fein_fiscal.exceptions import ConfigurationError, IncompleteDraftError
from fein_fiscal.extraction import extract
from fein_fiscal.fiscal_models import AmortizationFailure, PropertyAcquisitionRecord
from fein_fiscal.log_config import setup_logging
from fein_fiscal.mapper import generate_mapping_info, to_loan_record
from fein_fiscal.models import ExtractionDraft, ExtractionResult

_TEXT_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _settings() -> ExtractionSettings:
    try:
        return get_extraction_settings()
    except ConfigurationError as exc:
        raise click.UsageError(str(exc)) from exc


def _extract_file(
    path: Path, pages: int | None = None, provider: str | None = None
) -> ExtractionResult:
    text = path.read_text(encoding="utf-8")
    total_pages = pages if pages is not None else text.count("\f") + 1
    return extract(
        text,
        path.name,
        total_pages,
        provider or get_default_ocr_provider(),
        settings=_settings(),
    )


def _require_draft(result: ExtractionResult) -> ExtractionDraft:
    if result.draft is None:
        _echo_json(result.model_dump(mode="json"))
        sys.exit(1)
    return result.draft


@click.group()
def cli() -> None:
    """FEIN loan extraction and rental property amortization."""
    try:
        setup_logging(get_log_level(), get_log_format())
    except ConfigurationError as exc:
        raise click.UsageError(str(exc)) from exc


@cli.command("extract")
@click.argument("text_file", type=_TEXT_FILE)
@click.option("--pages", type=click.IntRange(min=0), help="Page count of the source PDF.")
@click.option("--provider", help="OCR provider that produced the text.")
@click.option("--compact", is_flag=True, help="Shrink the draft for transport.")
def extract_command(
    text_file: Path, pages: int | None, provider: str | None, compact: bool
) -> None:
    """Extract a loan draft from FEIN text."""
    result = _extract_file(text_file, pages, provider)
    if compact and result.draft is not None:
        result = result.model_copy(
            update={"draft": compact_draft(result.draft, settings=_settings())}
        )
    _echo_json(result.model_dump(mode="json"))
    if not result.success:
        sys.exit(1)


@cli.command()
@click.argument("text_file", type=_TEXT_FILE)
@click.option("--account", help="Charge account id to preselect.")
def prefill(text_file: Path, account: str | None) -> None:
    """Print the loan form prefill and the review checklist."""
    result = _extract_file(text_file)
    draft = _require_draft(result)
    info = generate_mapping_info(draft)
    _echo_json(
        {
            "loan": to_loan_record(draft, account),
            "suggestions": info.suggestions,
            "warnings": info.warnings,
            "missing_fields": info.missing_fields,
        }
    )


@cli.command()
@click.argument("text_file", type=_TEXT_FILE)
def canonical(text_file: Path) -> None:
    """Print the canonical loan JSON; exit 1 when required fields are missing."""
    result = _extract_file(text_file)
    draft = _require_draft(result)
    try:
        loan = to_canonical(draft)
    except IncompleteDraftError as exc:
        _echo_json({"error": str(exc), "missing_fields": exc.missing_fields})
        sys.exit(1)

    validation = validate_canonical(loan)
    _echo_json(
        {
            "canonical": loan.model_dump(mode="json"),
            "validation": {
                "is_valid": validation.is_valid,
                "missing": validation.missing,
                "warnings": validation.warnings,
            },
        }
    )


@cli.command()
@click.argument("record_json", type=_TEXT_FILE)
@click.option("--year", type=int, required=True, help="Fiscal year.")
@click.option("--days", type=int, help="Days rented; defaults to the whole year.")
def amortize(record_json: Path, year: int, days: int | None) -> None:
    """Compute the yearly amortization of a property record."""
    try:
        record = PropertyAcquisitionRecord.model_validate_json(
            record_json.read_text(encoding="utf-8")
        )
    except ValidationError as exc:
        raise click.BadParameter(str(exc), param_hint="RECORD_JSON") from exc

    if days is None:
        days = days_in_year(year)

    result = calculate(record, year, days)
    _echo_json(result.model_dump(mode="json"))
    if isinstance(result, AmortizationFailure):
        sys.exit(1)
