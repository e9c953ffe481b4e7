"""Pattern-based extraction of loan terms from FEIN text.

Each ``extract_*`` function reads the lower-cased document and returns a
value or None; none of them depends on another's output except where the
loan type decides which rate fields apply. ``extract`` composes them and
never raises.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from fein_fiscal.bonuses import BONUS_CATEGORIES
from fein_fiscal.config import ExtractionSettings
from fein_fiscal.models import (
    DraftBonus,
    ExtractionDraft,
    ExtractionMetadata,
    ExtractionResult,
    LoanTerms,
    LoanType,
    ReferenceIndex,
)
from fein_fiscal.spanish_format import (
    first_in_range,
    parse_spanish_amount,
    parse_spanish_date,
    parse_spanish_number,
    parse_spanish_percentage,
    round_half_up,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import date

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOAN_NOUN = "Hipoteca"
INTERNAL_ERROR = "Error interno analizando el texto FEIN"
CRITERION_MAX_LENGTH = 80

_AMOUNT = r"(\d{1,3}(?:\.\d{3})*(?:,\d{2})?)"
_PCT = r"(\d{1,2},\d{1,3})"
_FLAGS = re.IGNORECASE


def _compile(*patterns: str, flags: int = _FLAGS) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


_BANKS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, _FLAGS), name)
    for pattern, name in (
        (r"banco\s+santander", "Banco Santander"),
        (r"bbva", "BBVA"),
        (r"caixabank|la\s+caixa", "CaixaBank"),
        (r"banco\s+sabadell", "Banco Sabadell"),
        (r"bankinter", "Bankinter"),
        (r"ing\s+direct", "ING"),
        (r"openbank", "Openbank"),
        (r"kutxabank", "Kutxabank"),
        (r"unicaja", "Unicaja Banco"),
        (r"cajamar", "Cajamar"),
        (r"abanca", "Abanca"),
        (r"liberbank", "Liberbank"),
        (r"ibercaja", "Ibercaja"),
        (r"evo\s+banco", "EVO Banco"),
    )
)

_FLOATING_INDEX_KEYWORDS = ("euribor", "euríbor", "irph")
_TIN_RE = re.compile(r"\btin\b", _FLAGS)

_PRINCIPAL_PATTERNS = _compile(
    rf"(?:capital|importe|principal).*?{_AMOUNT}\s*€",
    rf"{_AMOUNT}\s*€.*?(?:capital|importe|principal)",
    rf"solicitado.*?{_AMOUNT}\s*€",
)
_TERM_MONTHS_PATTERNS = _compile(r"plazo.*?(\d+)\s*meses")
_TERM_YEARS_PATTERNS = _compile(r"plazo.*?(\d+)\s*años?")
_FIXED_RATE_PATTERNS = _compile(
    rf"\btin\b.*?{_PCT}\s*%",
    rf"tipo.*?interés.*?nominal.*?{_PCT}\s*%",
    rf"resultante.*?{_PCT}\s*%",
)
_SPREAD_PATTERNS = _compile(
    rf"diferencial.*?{_PCT}\s*%",
    rf"\+\s*{_PCT}\s*%",
    rf"aplicable.*?{_PCT}\s*%",
)
_INDEX_VALUE_PATTERNS = _compile(
    rf"valor.*?índice.*?actual.*?{_PCT}\s*%",
    rf"eur[ií]bor.*?actual.*?{_PCT}\s*%",
    rf"índice.*?{_PCT}\s*%",
)
_PAYMENT_FREQUENCY_RE = re.compile(r"cuotas?\s+(mensual|trimestral|semestral|anual)", _FLAGS)
_PAYMENT_FREQUENCIES = {
    "mensual": "MONTHLY",
    "trimestral": "QUARTERLY",
    "semestral": "SEMIANNUAL",
    "anual": "ANNUAL",
}
_SEMESTRAL_RE = re.compile(r"semestral|\b6\s*meses\b", _FLAGS)
_ANNUAL_RE = re.compile(r"anual|\b12\s*meses\b", _FLAGS)
_TRANCHE_YEARS_PATTERNS = _compile(r"(?:tramo|periodo|período)\s+fijo[:\s]*(\d+)\s*años?")
_APR_PATTERNS = _compile(
    r"\btae\b[:\s]*(\d{1,2},\d{1,3})\s*%?",
    r"tasa\s+anual\s+equivalente[:\s]*(\d{1,2},\d{1,3})\s*%?",
)
_OPENING_PATTERNS = _compile(
    rf"apertura.*?{_PCT}\s*%",
    rf"comisión.*?apertura.*?{_PCT}\s*%",
)
_MAINTENANCE_PATTERNS = _compile(
    r"mantenimiento.*?(\d{1,3}(?:,\d{2})?)\s*€.*?mes",
    r"comisión.*?mantenimiento.*?(\d{1,3}(?:,\d{2})?)\s*€",
)
_EARLY_REPAYMENT_PATTERNS = _compile(
    rf"amortización.*?anticipada.*?{_PCT}\s*%",
    rf"cancelación.*?anticipada.*?{_PCT}\s*%",
)
_MASKED_IBAN_PATTERNS = _compile(
    r"es\d{2}\s*\d{4}\s*\*+\s*\*+\s*\*+\s*(\d{4})(?!\d)",
    r"\*+\s*\*+\s*\*+\s*(\d{4})(?!\d)",
)
_DATE = r"(\d{1,2}/\d{1,2}/\d{4})"
_SIGNING_DATE_PATTERNS = _compile(
    rf"fecha.*?firma.*?{_DATE}",
    rf"firma.*?{_DATE}",
    _DATE,
)


# --- Field extractors ---------------------------------------------------------


def extract_loan_type(text: str) -> LoanType | None:
    """Classify the interest scheme by keyword.

    An explicit "mixto" wins; an index plus "fijo" plus "tramo" also means
    mixed; any floating-rate wording means variable; "fijo" or TIN means
    fixed.
    """
    if "mixto" in text or "mixta" in text:
        return LoanType.MIXED

    floating = any(keyword in text for keyword in _FLOATING_INDEX_KEYWORDS)
    fixed = "fijo" in text
    if floating and fixed and "tramo" in text:
        return LoanType.MIXED
    if floating or "variable" in text or "revisión" in text:
        return LoanType.VARIABLE
    if fixed or _TIN_RE.search(text):
        return LoanType.FIXED
    return None


def extract_bank(text: str) -> str | None:
    """Return the first known bank named in the text."""
    for pattern, name in _BANKS:
        if pattern.search(text):
            return name
    return None


def extract_principal(text: str) -> int | None:
    """Loan amount in whole euros, between 10.000 and 5.000.000."""
    return first_in_range(text, _PRINCIPAL_PATTERNS, parse_spanish_amount, 10_000, 5_000_000)


def extract_term_months(text: str) -> int | None:
    """Term in months; a term stated in years is converted."""
    months = first_in_range(text, _TERM_MONTHS_PATTERNS, int, 12, 600)
    if months is not None:
        return months
    years = first_in_range(text, _TERM_YEARS_PATTERNS, int, 1, 50)
    return years * 12 if years is not None else None


def extract_payment_frequency(text: str) -> str | None:
    """Instalment frequency, e.g. "cuota mensual" -> ``"MONTHLY"``."""
    match = _PAYMENT_FREQUENCY_RE.search(text)
    return _PAYMENT_FREQUENCIES[match.group(1).lower()] if match else None


def extract_fixed_rate(text: str) -> float | None:
    return first_in_range(text, _FIXED_RATE_PATTERNS, parse_spanish_percentage, 0, 20)


def extract_reference_index(text: str) -> ReferenceIndex | None:
    if "euribor" in text or "euríbor" in text:
        return ReferenceIndex.EURIBOR
    if "irph" in text:
        return ReferenceIndex.IRPH
    return None


def extract_spread(text: str) -> float | None:
    return first_in_range(text, _SPREAD_PATTERNS, parse_spanish_percentage, 0, 10)


def extract_index_value(text: str) -> float | None:
    return first_in_range(text, _INDEX_VALUE_PATTERNS, parse_spanish_percentage, 0, 15)


def extract_review_months(text: str) -> int:
    """Rate review period; Spanish mortgages review yearly unless stated."""
    if _SEMESTRAL_RE.search(text):
        return 6
    if _ANNUAL_RE.search(text):
        return 12
    return 12


def extract_fixed_tranche_years(text: str) -> int | None:
    return first_in_range(text, _TRANCHE_YEARS_PATTERNS, int, 1, 40)


def extract_apr(text: str) -> float | None:
    return first_in_range(text, _APR_PATTERNS, parse_spanish_percentage, 0, 25)


def extract_opening_commission(text: str) -> float | None:
    found = first_in_range(text, _OPENING_PATTERNS, parse_spanish_percentage, 0, 5)
    if found is not None:
        return found
    # TODO: a bare "0,00%" anywhere also zeroes the commission; confirm with
    # real FEIN samples whether only "sin comisión" should count.
    if "sin comisión" in text or "0,00%" in text:
        return 0.0
    return None


def _parse_euros(text: str) -> float:
    return round_half_up(parse_spanish_number(text), 2)


def extract_maintenance_fee(text: str) -> float | None:
    """Monthly maintenance fee in euros."""
    found = first_in_range(text, _MAINTENANCE_PATTERNS, _parse_euros, 0, 100)
    if found is not None:
        return found
    if "0,00 €/mes" in text or "sin comisión" in text:
        return 0.0
    return None


def extract_early_repayment_commission(text: str) -> float | None:
    found = first_in_range(text, _EARLY_REPAYMENT_PATTERNS, parse_spanish_percentage, 0, 5)
    if found is not None:
        return found
    if "sin comisión por amortización" in text or "0,00%" in text:
        return 0.0
    return None


def extract_iban_last4(text: str) -> str | None:
    """Last four digits of a masked IBAN such as ``ES12 3456 **** **** 7890``.

    Only the digits shown after the mask are returned.
    """
    for pattern in _MASKED_IBAN_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_signing_date(text: str, year_min: int = 2020, year_max: int = 2030) -> date | None:
    """First plausible dd/mm/yyyy date, preferring one labelled as signing date."""
    for pattern in _SIGNING_DATE_PATTERNS:
        for match in pattern.finditer(text):
            parsed = parse_spanish_date(match.group(1), year_min, year_max)
            if parsed is not None:
                return parsed
    return None


def suggest_alias(bank: str | None, principal: int | None) -> str | None:
    """``"Hipoteca BBVA 250K"``; needs both bank and principal."""
    if not bank or principal is None:
        return None
    return f"{LOAN_NOUN} {bank} {int(round_half_up(principal / 1000))}K"


def extract_bonuses(text: str) -> list[DraftBonus]:
    """Detect rate-discount bonuses, one per category, in category order."""
    lowered = text.lower()
    bonuses: list[DraftBonus] = []
    seen: set[str] = set()

    for category in BONUS_CATEGORIES:
        for keyword in category.keywords:
            if keyword not in lowered:
                continue
            if category.id not in seen:
                seen.add(category.id)
                bonuses.append(
                    DraftBonus(
                        category=category.id,
                        label=category.label,
                        discount_points=_bonus_discount(text, keyword),
                        criterion=_bonus_criterion(text, keyword),
                    )
                )
            break

    return bonuses


def _bonus_discount(text: str, keyword: str) -> float | None:
    pattern = re.compile(
        re.escape(keyword) + r"[^0-9]*(-?\d{1,2}[.,]\d{1,2})\s*(?:puntos?|pp|%)", _FLAGS
    )
    match = pattern.search(text)
    if match is None:
        return None
    return abs(parse_spanish_percentage(match.group(1)))


def _bonus_criterion(text: str, keyword: str) -> str | None:
    match = re.search(re.escape(keyword) + r"[^.]{0,100}", text, _FLAGS)
    if match is None:
        return None
    return " ".join(match.group(0).split())[:CRITERION_MAX_LENGTH]


# --- Scoring ------------------------------------------------------------------


def score_confidence(loan: LoanTerms, bonuses: Sequence[DraftBonus]) -> float:
    """Weighted completeness of a draft, 0-1 with two decimals.

    Critical fields weigh 2, type-specific rate fields 1-2, optional fields
    and the presence of bonuses 1.
    """
    score = 0
    total = 0

    def tally(value: Any, weight: int) -> None:
        nonlocal score, total
        total += weight
        if value is not None:
            score += weight

    for critical in (loan.bank, loan.principal, loan.term_months, loan.loan_type):
        tally(critical, 2)

    if loan.loan_type is LoanType.FIXED:
        tally(loan.fixed_rate, 2)
    elif loan.loan_type in (LoanType.VARIABLE, LoanType.MIXED):
        tally(loan.reference_index, 1)
        tally(loan.spread, 1)
        tally(loan.review_months, 1)
        if loan.loan_type is LoanType.MIXED:
            tally(loan.fixed_rate, 1)

    for optional in (loan.opening_commission_pct, loan.iban_last4, loan.signing_date):
        tally(optional, 1)

    tally(True if bonuses else None, 1)

    return min(1.0, max(0.0, round_half_up(score / total, 2)))


# --- Engine -------------------------------------------------------------------


def _guarded(step: str, warnings: list[str], func: Callable[..., T], *args: Any) -> T | None:
    """Run one extractor; a crash leaves the field absent and adds a warning."""
    try:
        return func(*args)
    except Exception:
        logger.warning("FEIN extractor %r failed", step, exc_info=True)
        warnings.append(f"Fallo interno extrayendo {step}")
        return None


def extract(
    full_text: str,
    file_name: str,
    total_pages: int,
    ocr_provider: str = "mixed",
    *,
    settings: ExtractionSettings | None = None,
    now: datetime | None = None,
) -> ExtractionResult:
    """Scan FEIN text and build a confidence-scored loan draft.

    Never raises: an unexpected fault yields ``success=False`` with no draft.
    """
    settings = settings or ExtractionSettings()
    warnings: list[str] = []

    try:
        text = (full_text or "").lower()
        fields: dict[str, Any] = {}

        loan_type = _guarded("tipo de interés", warnings, extract_loan_type, text)
        fields["loan_type"] = loan_type

        bank = _guarded("entidad", warnings, extract_bank, text)
        if bank is None:
            warnings.append("No se pudo identificar la entidad bancaria")
        fields["bank"] = bank

        principal = _guarded("capital", warnings, extract_principal, text)
        if principal is None:
            warnings.append("No se pudo extraer el capital del préstamo")
        fields["principal"] = principal

        term = _guarded("plazo", warnings, extract_term_months, text)
        if term is None:
            warnings.append("No se pudo extraer el plazo del préstamo")
        fields["term_months"] = term

        fields["payment_frequency"] = _guarded(
            "periodicidad", warnings, extract_payment_frequency, text
        )

        if loan_type is LoanType.FIXED:
            fields["fixed_rate"] = _guarded("TIN", warnings, extract_fixed_rate, text)
        elif loan_type in (LoanType.VARIABLE, LoanType.MIXED):
            fields["reference_index"] = _guarded("índice", warnings, extract_reference_index, text)
            fields["spread"] = _guarded("diferencial", warnings, extract_spread, text)
            fields["review_months"] = _guarded("revisión", warnings, extract_review_months, text)
            fields["index_value"] = _guarded(
                "valor del índice", warnings, extract_index_value, text
            )
            if loan_type is LoanType.MIXED:
                fields["fixed_rate"] = _guarded(
                    "TIN tramo fijo", warnings, extract_fixed_rate, text
                )
                fields["fixed_tranche_years"] = _guarded(
                    "años tramo fijo", warnings, extract_fixed_tranche_years, text
                )

        fields["apr"] = _guarded("TAE", warnings, extract_apr, text)
        fields["opening_commission_pct"] = _guarded(
            "comisión de apertura", warnings, extract_opening_commission, text
        )
        fields["maintenance_fee_monthly"] = _guarded(
            "comisión de mantenimiento", warnings, extract_maintenance_fee, text
        )
        fields["early_repayment_commission_pct"] = _guarded(
            "comisión de amortización anticipada",
            warnings,
            extract_early_repayment_commission,
            text,
        )
        fields["iban_last4"] = _guarded("IBAN", warnings, extract_iban_last4, full_text)
        fields["signing_date"] = _guarded(
            "fecha de firma",
            warnings,
            extract_signing_date,
            full_text,
            settings.signing_year_min,
            settings.signing_year_max,
        )
        fields["suggested_alias"] = suggest_alias(bank, principal)

        bonuses = _guarded("bonificaciones", warnings, extract_bonuses, full_text) or []

        loan = LoanTerms(**fields)
        confidence = score_confidence(loan, bonuses)
        draft = ExtractionDraft(
            metadata=ExtractionMetadata(
                source_file_name=file_name,
                pages_total=total_pages,
                pages_processed=total_pages,
                ocr_provider=ocr_provider,
                processed_at=now or datetime.now(UTC),
                warnings=list(warnings),
            ),
            loan=loan,
            bonuses=bonuses,
        )
    except Exception:
        logger.exception("Error parsing FEIN text from %s", file_name)
        return ExtractionResult(
            success=False,
            draft=None,
            confidence=0.0,
            warnings=warnings,
            errors=[INTERNAL_ERROR],
        )

    logger.debug(
        "Extracted FEIN draft from %s: type=%s bank=%s confidence=%.2f",
        file_name,
        loan.loan_type,
        loan.bank,
        confidence,
    )
    return ExtractionResult(
        success=True,
        draft=draft,
        confidence=confidence,
        warnings=warnings,
    )
