"""Page-range chunk extraction and merging of chunk partials into one draft."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fein_fiscal.config import ExtractionSettings
from fein_fiscal.extraction import extract
from fein_fiscal.models import (
    DraftBonus,
    ExtractionDraft,
    ExtractionMetadata,
    LoanTerms,
    LoanType,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_THRESHOLD = 0.7
ALIAS_MAX_LENGTH = 50
MAX_BONUSES = 10
CRITERION_MAX_LENGTH = 100

_FIXED_FIELDS = frozenset({"fixed_rate"})
_VARIABLE_FIELDS = frozenset({"reference_index", "index_value", "spread", "review_months"})
_RATE_FIELDS_BY_TYPE = {
    LoanType.FIXED: _FIXED_FIELDS,
    LoanType.VARIABLE: _VARIABLE_FIELDS,
    LoanType.MIXED: _FIXED_FIELDS | _VARIABLE_FIELDS | {"fixed_tranche_years"},
}
_RATE_FIELDS = _RATE_FIELDS_BY_TYPE[LoanType.MIXED]


@dataclass
class ChunkResult:
    """What one page range of a FEIN yielded."""

    page_from: int
    page_to: int
    loan: LoanTerms = field(default_factory=LoanTerms)
    bonuses: list[DraftBonus] = field(default_factory=list)
    confidence: float = 0.0
    error: str | None = None

    @property
    def page_count(self) -> int:
        return self.page_to - self.page_from + 1


def extract_chunk(
    text: str,
    page_from: int,
    page_to: int,
    *,
    settings: ExtractionSettings | None = None,
) -> ChunkResult:
    """Run the extraction engine over the text of one page range."""
    result = extract(
        text,
        f"pages {page_from}-{page_to}",
        page_to - page_from + 1,
        settings=settings,
    )
    if not result.success or result.draft is None:
        return ChunkResult(
            page_from=page_from,
            page_to=page_to,
            error="; ".join(result.errors) or "extraction failed",
        )
    return ChunkResult(
        page_from=page_from,
        page_to=page_to,
        loan=result.draft.loan,
        bonuses=list(result.draft.bonuses),
        confidence=result.confidence,
    )


def merge_loan_terms(partials: Sequence[LoanTerms]) -> LoanTerms:
    """Merge chunk partials; a later non-None value overrides an earlier one.

    Financial conditions sit near the end of a FEIN, so later pages win.
    Rate fields that do not belong to the merged loan type are dropped.
    """
    merged: dict[str, object] = {}
    for partial in partials:
        for name, value in partial.model_dump(exclude_none=True).items():
            merged[name] = value

    loan_type = merged.get("loan_type")
    if loan_type is not None:
        kept = _RATE_FIELDS_BY_TYPE[LoanType(loan_type)]
        for name in _RATE_FIELDS - kept:
            merged.pop(name, None)
    return LoanTerms(**merged)


def merge_bonuses(bonuses: Sequence[DraftBonus]) -> list[DraftBonus]:
    """Drop repeated categories, keeping the first occurrence."""
    seen: set[str] = set()
    merged: list[DraftBonus] = []
    for bonus in bonuses:
        if bonus.category not in seen:
            seen.add(bonus.category)
            merged.append(bonus)
    return merged


def _chunk_warnings(chunks: Sequence[ChunkResult], loan: LoanTerms) -> list[str]:
    warnings: list[str] = []

    if loan.principal is None:
        warnings.append("No se pudo extraer el capital inicial del préstamo")
    if loan.loan_type is None:
        warnings.append("No se pudo determinar el tipo de interés (fijo/variable/mixto)")
    if loan.bank is None:
        warnings.append("No se pudo identificar la entidad bancaria")

    failed = sum(1 for chunk in chunks if chunk.error)
    if failed:
        warnings.append(f"{failed} bloques de páginas no se pudieron procesar completamente")

    if chunks:
        average = sum(chunk.confidence for chunk in chunks) / len(chunks)
        if average < LOW_CONFIDENCE_THRESHOLD:
            warnings.append("Confianza baja en la extracción de datos. Revisar manualmente.")

    return warnings


def aggregate_chunks(
    chunks: Sequence[ChunkResult],
    source_file_name: str,
    total_pages: int,
    ocr_provider: str = "mixed",
    *,
    settings: ExtractionSettings | None = None,
    now: datetime | None = None,
) -> ExtractionDraft:
    """Combine per-chunk results into a single extraction draft."""
    settings = settings or ExtractionSettings()

    loan = merge_loan_terms([chunk.loan for chunk in chunks])
    bonuses = merge_bonuses([bonus for chunk in chunks for bonus in chunk.bonuses])
    warnings = _chunk_warnings(chunks, loan)

    logger.info(
        "Aggregated %d chunks of %s: %d bonuses, %d warnings",
        len(chunks),
        source_file_name,
        len(bonuses),
        len(warnings),
    )

    return ExtractionDraft(
        metadata=ExtractionMetadata(
            source_file_name=source_file_name,
            pages_total=total_pages,
            pages_processed=sum(chunk.page_count for chunk in chunks),
            ocr_provider=ocr_provider,
            processed_at=now or datetime.now(UTC),
            warnings=warnings[: settings.warning_limit],
        ),
        loan=loan,
        bonuses=bonuses,
    )


def _truncate(value: str, limit: int) -> str:
    return value[:limit] + "..." if len(value) > limit else value


def compact_draft(
    draft: ExtractionDraft, *, settings: ExtractionSettings | None = None
) -> ExtractionDraft:
    """Shrink a draft for transport.

    Warnings are always capped. Long aliases, surplus bonuses and long
    criteria are only cut when the serialized draft exceeds the soft limit.
    """
    settings = settings or ExtractionSettings()

    metadata = draft.metadata.model_copy(
        update={"warnings": draft.metadata.warnings[: settings.warning_limit]}
    )
    compacted = draft.model_copy(update={"metadata": metadata})

    size = len(draft.model_dump_json().encode())
    if size <= settings.response_soft_limit_bytes:
        return compacted

    logger.debug(
        "Draft for %s is %d bytes, over the %d byte soft limit; compacting",
        draft.metadata.source_file_name,
        size,
        settings.response_soft_limit_bytes,
    )

    loan = draft.loan
    if loan.suggested_alias:
        loan = loan.model_copy(
            update={"suggested_alias": _truncate(loan.suggested_alias, ALIAS_MAX_LENGTH)}
        )

    bonuses = [
        bonus.model_copy(update={"criterion": _truncate(bonus.criterion, CRITERION_MAX_LENGTH)})
        if bonus.criterion
        else bonus
        for bonus in draft.bonuses[:MAX_BONUSES]
    ]

    return compacted.model_copy(update={"loan": loan, "bonuses": bonuses})
