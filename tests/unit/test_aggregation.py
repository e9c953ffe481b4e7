"""Tests for fein_fiscal.aggregation."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fein_fiscal.aggregation import (
    ChunkResult,
    aggregate_chunks,
    compact_draft,
    extract_chunk,
    merge_bonuses,
    merge_loan_terms,
)
from fein_fiscal.bonuses import BonusCategoryId
from fein_fiscal.canonical import estimate_monthly_payment, to_canonical
from fein_fiscal.config import ExtractionSettings
from fein_fiscal.models import DraftBonus, LoanTerms, LoanType


def _bonus(category: BonusCategoryId, points: float | None = None, **kwargs: Any) -> DraftBonus:
    return DraftBonus(category=category, label=category.value, discount_points=points, **kwargs)


class TestExtractChunk:
    """Tests for extract_chunk()."""

    def test_chunk_carries_page_range_and_fields(self) -> None:
        chunk = extract_chunk("Entidad: BBVA\nImporte: 200.000 €", 1, 2)

        assert chunk.page_from == 1
        assert chunk.page_to == 2
        assert chunk.page_count == 2
        assert chunk.loan.bank == "BBVA"
        assert chunk.loan.principal == 200_000
        assert chunk.error is None
        assert 0 < chunk.confidence < 1


class TestMerge:
    """Tests for merge_loan_terms() and merge_bonuses()."""

    def test_later_values_win(self) -> None:
        merged = merge_loan_terms(
            [
                LoanTerms(bank="BBVA", principal=100_000),
                LoanTerms(principal=150_000, term_months=240),
            ]
        )

        assert merged.bank == "BBVA"
        assert merged.principal == 150_000
        assert merged.term_months == 240

    def test_absent_values_do_not_erase(self) -> None:
        merged = merge_loan_terms([LoanTerms(spread=0.9), LoanTerms()])
        assert merged.spread == 0.9

    def test_rate_fields_follow_final_loan_type(self) -> None:
        merged = merge_loan_terms(
            [
                LoanTerms(loan_type=LoanType.FIXED, fixed_rate=3.5),
                LoanTerms(loan_type=LoanType.VARIABLE, spread=0.9, index_value=2.5),
            ]
        )

        assert merged.loan_type is LoanType.VARIABLE
        assert merged.fixed_rate is None
        assert merged.spread == 0.9
        assert merged.index_value == 2.5

    def test_mixed_keeps_both_rate_blocks(self) -> None:
        merged = merge_loan_terms(
            [
                LoanTerms(fixed_rate=2.1, fixed_tranche_years=10),
                LoanTerms(loan_type=LoanType.MIXED, spread=0.75, review_months=12),
            ]
        )

        assert merged.fixed_rate == 2.1
        assert merged.fixed_tranche_years == 10
        assert merged.spread == 0.75
        assert merged.review_months == 12

    def test_fixed_drops_variable_fields(self) -> None:
        merged = merge_loan_terms(
            [
                LoanTerms(loan_type=LoanType.VARIABLE, spread=0.9, review_months=6),
                LoanTerms(loan_type=LoanType.FIXED, fixed_rate=2.95),
            ]
        )

        assert merged.fixed_rate == 2.95
        assert merged.spread is None
        assert merged.review_months is None

    def test_bonuses_keep_first_of_each_category(self) -> None:
        merged = merge_bonuses(
            [
                _bonus(BonusCategoryId.PAYROLL, 0.25),
                _bonus(BonusCategoryId.CARD, 0.1),
                _bonus(BonusCategoryId.PAYROLL, 0.5),
            ]
        )

        assert [b.category for b in merged] == [BonusCategoryId.PAYROLL, BonusCategoryId.CARD]
        assert merged[0].discount_points == 0.25


class TestAggregateChunks:
    """Tests for aggregate_chunks()."""

    def test_chunks_from_two_page_ranges(self) -> None:
        now = datetime(2025, 2, 1, tzinfo=UTC)
        chunks = [
            extract_chunk("Entidad: BBVA\nImporte: 200.000 €", 1, 2),
            extract_chunk("Plazo: 300 meses\nTipo de interés fijo. TIN: 3,10 %", 3, 5),
        ]

        draft = aggregate_chunks(chunks, "fein.pdf", 6, "google", now=now)

        assert draft.loan.bank == "BBVA"
        assert draft.loan.principal == 200_000
        assert draft.loan.term_months == 300
        assert draft.loan.loan_type is LoanType.FIXED
        assert draft.loan.fixed_rate == 3.1
        assert draft.metadata.pages_total == 6
        assert draft.metadata.pages_processed == 5
        assert draft.metadata.ocr_provider == "google"
        assert draft.metadata.processed_at == now

    def test_fixed_then_variable_chunk_prices_at_index_plus_spread(self) -> None:
        chunks = [
            extract_chunk("Importe: 200.000 €\nPlazo: 300 meses\nTipo fijo, TIN: 3,50 %", 1, 2),
            extract_chunk(
                "Euríbor. Diferencial: 0,90 %. Valor del índice actual: 2,50 %", 3, 4
            ),
        ]

        draft = aggregate_chunks(chunks, "fein.pdf", 4)
        canonical = to_canonical(draft)

        assert draft.loan.loan_type is LoanType.VARIABLE
        assert draft.loan.fixed_rate is None
        assert canonical.loan.extras.estimated_payment == estimate_monthly_payment(
            200_000, 2.5 + 0.9, 300
        )

    def test_warnings_are_capped(self) -> None:
        chunks = [ChunkResult(page_from=1, page_to=1, error="timeout")]

        draft = aggregate_chunks(chunks, "fein.pdf", 1)

        assert draft.metadata.warnings == [
            "No se pudo extraer el capital inicial del préstamo",
            "No se pudo determinar el tipo de interés (fijo/variable/mixto)",
            "No se pudo identificar la entidad bancaria",
        ]

    def test_all_warnings_with_higher_limit(self) -> None:
        chunks = [
            ChunkResult(page_from=1, page_to=2, error="timeout"),
            ChunkResult(page_from=3, page_to=4, confidence=0.5),
        ]
        settings = ExtractionSettings(warning_limit=10)

        draft = aggregate_chunks(chunks, "fein.pdf", 4, settings=settings)

        assert draft.metadata.warnings[3:] == [
            "1 bloques de páginas no se pudieron procesar completamente",
            "Confianza baja en la extracción de datos. Revisar manualmente.",
        ]

    def test_no_low_confidence_warning_when_confident(self) -> None:
        loan = LoanTerms(bank="BBVA", principal=200_000, loan_type=LoanType.FIXED)
        chunks = [ChunkResult(page_from=1, page_to=1, loan=loan, confidence=0.9)]

        draft = aggregate_chunks(chunks, "fein.pdf", 1)

        assert draft.metadata.warnings == []


class TestCompactDraft:
    """Tests for compact_draft()."""

    def test_small_draft_only_caps_warnings(self, make_draft: Any) -> None:
        alias = "Hipoteca " + "x" * 60
        draft = make_draft(warnings=["a", "b", "c", "d", "e"], suggested_alias=alias)

        compacted = compact_draft(draft)

        assert compacted.metadata.warnings == ["a", "b", "c"]
        assert compacted.loan.suggested_alias == alias
        assert draft.metadata.warnings == ["a", "b", "c", "d", "e"]

    def test_large_draft_is_truncated(self, make_draft: Any) -> None:
        bonuses = [
            _bonus(BonusCategoryId.OTHER, 0.1, criterion="c" * 150) for _ in range(12)
        ]
        draft = make_draft(bonuses=bonuses, suggested_alias="A" * 60)
        settings = ExtractionSettings(response_soft_limit_bytes=100)

        compacted = compact_draft(draft, settings=settings)

        assert compacted.loan.suggested_alias == "A" * 50 + "..."
        assert len(compacted.bonuses) == 10
        assert compacted.bonuses[0].criterion == "c" * 100 + "..."

    def test_short_fields_survive_compaction(self, make_draft: Any) -> None:
        draft = make_draft(
            bonuses=[_bonus(BonusCategoryId.CARD, criterion="tarjeta")],
            suggested_alias="Hipoteca BBVA 200K",
        )
        settings = ExtractionSettings(response_soft_limit_bytes=10)

        compacted = compact_draft(draft, settings=settings)

        assert compacted.loan.suggested_alias == "Hipoteca BBVA 200K"
        assert compacted.bonuses[0].criterion == "tarjeta"
