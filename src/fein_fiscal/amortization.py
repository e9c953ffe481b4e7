"""Annual amortization of rented property under AEAT rules.

The general rule deducts 3 % a year of the amortizable base, which is the
larger of the construction share of the acquisition cost and the
construction cadastral value. Special cases replace the base, the
percentage or both. All arithmetic is Decimal; money is rounded to cents,
percentages are kept exact.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, TypeVar

from fein_fiscal.exceptions import (
    AmortizationError,
    InvalidCalculationInput,
    InvalidSpecialCaseParameters,
    MissingValuationData,
    UnsupportedAcquisitionType,
)
from fein_fiscal.fiscal_models import (
    AcquisitionType,
    AmortizationBreakdown,
    AmortizationFailure,
    AmortizationMethod,
    AmortizationResult,
    LastAmortizationYear,
    LifetimeUsufruct,
    NoCadastralValue,
    OwnershipChange,
    PartialRental,
    PropertyAcquisitionRecord,
    ReducedPercentage,
    SeparateValuation,
    TemporaryUsufruct,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

T = TypeVar("T")

STANDARD_PERCENTAGE = Decimal("0.03")
CENT = Decimal("0.01")
ZERO = Decimal(0)


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


# --- Rental periods -----------------------------------------------------------


@dataclass(frozen=True)
class RentalPeriod:
    """A lease, ``end`` inclusive; None means still running."""

    start: date
    end: date | None = None


def rental_days_for_year(periods: Iterable[RentalPeriod], year: int) -> int:
    """Count the days of ``year`` covered by at least one rental period.

    Overlapping leases are counted once.
    """
    year_start = date(year, 1, 1)
    year_end = date(year, 12, 31)

    spans: list[tuple[date, date]] = []
    for period in periods:
        start = max(period.start, year_start)
        end = min(period.end or year_end, year_end)
        if start <= end:
            spans.append((start, end))

    total = 0
    current_start: date | None = None
    current_end: date | None = None
    for start, end in sorted(spans):
        if current_end is not None and start <= current_end + timedelta(days=1):
            current_end = max(current_end, end)
            continue
        if current_start is not None and current_end is not None:
            total += (current_end - current_start).days + 1
        current_start, current_end = start, end
    if current_start is not None and current_end is not None:
        total += (current_end - current_start).days + 1
    return total


# --- Base computation ---------------------------------------------------------


def acquisition_cost(record: PropertyAcquisitionRecord) -> Decimal:
    """Total acquisition cost: price or declared value plus expenses and taxes.

    Mixed acquisitions add the onerous and the gratuitous portions.
    """
    kind = record.acquisition_type
    if kind is None:
        msg = "Acquisition type is not set"
        raise UnsupportedAcquisitionType(msg)

    if kind is AcquisitionType.ONEROUS:
        if record.onerous is None:
            msg = "Onerous acquisition without acquisition amount"
            raise MissingValuationData(msg)
        return record.onerous.total_cost

    if kind is AcquisitionType.GRATUITOUS:
        if record.gratuitous is None:
            msg = "Gratuitous acquisition without declared value"
            raise MissingValuationData(msg)
        return record.gratuitous.total_cost

    if record.onerous is None or record.gratuitous is None:
        msg = "Mixed acquisition needs both the onerous and the gratuitous portion"
        raise MissingValuationData(msg)
    return record.onerous.total_cost + record.gratuitous.total_cost


@dataclass(frozen=True)
class _Base:
    amount: Decimal
    breakdown: AmortizationBreakdown


def _prior_improvements(record: PropertyAcquisitionRecord, fiscal_year: int) -> Decimal:
    return sum(
        (imp.amount for imp in record.improvements if imp.year < fiscal_year), start=ZERO
    )


def _cost_base(
    record: PropertyAcquisitionRecord, fiscal_year: int, construction_pct: Decimal
) -> _Base:
    """max(cost x construction share, construction cadastral value) + prior improvements."""
    share = acquisition_cost(record) * construction_pct / 100
    cadastral = record.construction_cadastral_value or ZERO
    improvements = _prior_improvements(record, fiscal_year)
    selected = "construction-cost" if share >= cadastral else "cadastral-value"
    return _Base(
        amount=_money(max(share, cadastral) + improvements),
        breakdown=AmortizationBreakdown(
            construction_cost=_money(share),
            cadastral_construction_value=_money(cadastral),
            improvements=_money(improvements),
            selected_base=selected,
        ),
    )


def _standard_base(record: PropertyAcquisitionRecord, fiscal_year: int) -> _Base:
    construction_pct = record.construction_percentage
    if construction_pct is None:
        msg = "Cadastral and construction cadastral values are required"
        raise MissingValuationData(msg)
    return _cost_base(record, fiscal_year, construction_pct)


def _estimated_base(
    record: PropertyAcquisitionRecord, fiscal_year: int, land_pct: Decimal
) -> _Base:
    construction = acquisition_cost(record) * (1 - land_pct / 100)
    improvements = _prior_improvements(record, fiscal_year)
    return _Base(
        amount=_money(construction + improvements),
        breakdown=AmortizationBreakdown(
            construction_cost=_money(construction),
            cadastral_construction_value=ZERO,
            improvements=_money(improvements),
            selected_base="estimated-construction",
        ),
    )


def _require(value: T | None, case: str, parameter: str) -> T:
    if value is None:
        msg = f"Special case {case!r} requires {parameter}"
        raise InvalidSpecialCaseParameters(msg)
    return value


# --- Rule selection -----------------------------------------------------------


@dataclass(frozen=True)
class _Plan:
    """Rule path chosen for one record: base, yearly rate and adjustments."""

    method: AmortizationMethod
    base: _Base
    percentage: Decimal
    justification: str | None = None
    cap: Decimal | None = None
    ceiling: Decimal | None = None  # last year: never beyond what is left


def _ownership_share(case: OwnershipChange, fiscal_year: int) -> Decimal:
    """Average ownership over the year, as a fraction, weighted by days."""
    previous = _require(case.previous_percentage, case.kind, "previous_percentage")
    new = _require(case.new_percentage, case.kind, "new_percentage")
    change_date = _require(case.change_date, case.kind, "change_date")
    if change_date.year != fiscal_year:
        msg = f"Ownership change date {change_date} is outside {fiscal_year}"
        raise InvalidSpecialCaseParameters(msg)
    available = days_in_year(fiscal_year)
    before = (change_date - date(fiscal_year, 1, 1)).days
    after = available - before
    weighted = previous * before + new * after
    return weighted / available / 100


def _plan(record: PropertyAcquisitionRecord, fiscal_year: int) -> _Plan:
    case = record.special_case

    match case:
        case None:
            return _Plan(
                method=AmortizationMethod.STANDARD,
                base=_standard_base(record, fiscal_year),
                percentage=STANDARD_PERCENTAGE,
            )

        case TemporaryUsufruct():
            duration = _require(case.duration_years, case.kind, "duration_years")
            cost = acquisition_cost(record)
            improvements = _prior_improvements(record, fiscal_year)
            base = _Base(
                amount=_money(cost + improvements),
                breakdown=AmortizationBreakdown(
                    construction_cost=_money(cost),
                    cadastral_construction_value=_money(
                        record.construction_cadastral_value or ZERO
                    ),
                    improvements=_money(improvements),
                    selected_base="construction-cost",
                ),
            )
            return _Plan(
                method=AmortizationMethod.TEMPORARY_USUFRUCT,
                base=base,
                percentage=Decimal(1) / Decimal(duration),
                justification=(
                    f"Usufructo temporal de {duration} años: "
                    f"se amortiza 1/{duration} del coste cada año"
                ),
                cap=case.max_deductible_income,
            )

        case LifetimeUsufruct():
            return _Plan(
                method=AmortizationMethod.LIFETIME_USUFRUCT,
                base=_standard_base(record, fiscal_year),
                percentage=STANDARD_PERCENTAGE,
                justification="Usufructo vitalicio: se aplica el 3 % general",
                cap=case.max_deductible_income,
            )

        case SeparateValuation():
            construction = _require(case.construction_value, case.kind, "construction_value")
            land = _require(case.land_value, case.kind, "land_value")
            total = construction + land
            if total == 0:
                msg = "Separate valuation needs a non-zero construction or land value"
                raise InvalidSpecialCaseParameters(msg)
            construction_pct = construction / total * 100
            return _Plan(
                method=AmortizationMethod.SEPARATE_VALUATION,
                base=_cost_base(record, fiscal_year, construction_pct),
                percentage=STANDARD_PERCENTAGE,
                justification=(
                    "Valoración separada de suelo y construcción: "
                    f"construcción {_money(construction_pct)} % del coste"
                ),
            )

        case PartialRental():
            rented = _require(case.rented_percentage, case.kind, "rented_percentage")
            return _Plan(
                method=AmortizationMethod.PARTIAL_RENTAL,
                base=_standard_base(record, fiscal_year),
                percentage=STANDARD_PERCENTAGE * rented / 100,
                justification=(
                    f"Alquiler parcial del {rented} % del inmueble"
                ),
            )

        case OwnershipChange():
            share = _ownership_share(case, fiscal_year)
            return _Plan(
                method=AmortizationMethod.OWNERSHIP_CHANGE,
                base=_standard_base(record, fiscal_year),
                percentage=STANDARD_PERCENTAGE * share,
                justification=(
                    f"Cambio de titularidad el {case.change_date}: "
                    f"del {case.previous_percentage} % al {case.new_percentage} %"
                ),
            )

        case NoCadastralValue():
            return _Plan(
                method=AmortizationMethod.NO_CADASTRAL_VALUE,
                base=_estimated_base(record, fiscal_year, case.estimated_land_percentage),
                percentage=STANDARD_PERCENTAGE,
                justification=(
                    f"Sin valor catastral: suelo estimado en el "
                    f"{case.estimated_land_percentage} % del coste"
                ),
            )

        case LastAmortizationYear():
            remaining = _require(case.remaining_base, case.kind, "remaining_base")
            return _Plan(
                method=AmortizationMethod.LAST_YEAR,
                base=_standard_base(record, fiscal_year),
                percentage=STANDARD_PERCENTAGE,
                justification="Último año de amortización: se limita al importe pendiente",
                ceiling=remaining,
            )

        case ReducedPercentage():
            custom = _require(case.custom_percentage, case.kind, "custom_percentage")
            if not 0 < custom < 3:
                msg = f"Custom percentage must be above 0 and below 3, got {custom}"
                raise InvalidSpecialCaseParameters(msg)
            return _Plan(
                method=AmortizationMethod.REDUCED_PERCENTAGE,
                base=_standard_base(record, fiscal_year),
                percentage=custom / 100,
                justification=(
                    f"Porcentaje voluntario del {custom} % "
                    "(inferior al 3 % general)"
                ),
            )

    msg = f"Unknown special case {case!r}"
    raise InvalidSpecialCaseParameters(msg)


# --- Calculation --------------------------------------------------------------


def _improvements_amortization(
    record: PropertyAcquisitionRecord,
    fiscal_year: int,
    days_rented: int,
    percentage: Decimal,
) -> Decimal:
    """Improvements made during the fiscal year, prorated by their own days."""
    available = Decimal(days_in_year(fiscal_year))
    total = ZERO
    for improvement in record.improvements:
        if improvement.year != fiscal_year:
            continue
        days = improvement.days_in_year if improvement.days_in_year is not None else days_rented
        total += improvement.amount * percentage * min(days, days_rented) / available
    return _money(total)


def _manual_override(
    record: PropertyAcquisitionRecord,
    fiscal_year: int,
    days_rented: int,
    amount: Decimal,
    reason: AmortizationError,
) -> AmortizationResult:
    total = _money(amount)
    return AmortizationResult(
        method=AmortizationMethod.MANUAL_OVERRIDE,
        base_amount=ZERO,
        percentage_applied=ZERO,
        days_rented=days_rented,
        days_available=days_in_year(fiscal_year),
        property_amortization=total,
        improvements_amortization=ZERO,
        total_amortization=total,
        accumulated_standard=_money(record.prior_accumulated_standard + total),
        accumulated_actual=_money(record.prior_accumulated_actual + total),
        justification=f"Importe manual: {reason}",
        breakdown=AmortizationBreakdown(
            construction_cost=ZERO,
            cadastral_construction_value=ZERO,
            improvements=ZERO,
            selected_base="manual",
        ),
    )


def compute_amortization(
    record: PropertyAcquisitionRecord, fiscal_year: int, days_rented: int
) -> AmortizationResult:
    """Amortization of one property for one fiscal year.

    Raises:
        InvalidCalculationInput: if days_rented is outside 0..days in the year.
        MissingValuationData: if no construction share can be established.
        InvalidSpecialCaseParameters: if the special case lacks a parameter.
        UnsupportedAcquisitionType: if the acquisition type is unset.

    A special case carrying ``manual_amount`` turns the last three into a
    manual-override result instead.
    """
    available = days_in_year(fiscal_year)
    if not 0 <= days_rented <= available:
        msg = f"days_rented must be between 0 and {available}, got {days_rented}"
        raise InvalidCalculationInput(msg)

    try:
        plan = _plan(record, fiscal_year)
    except (
        MissingValuationData,
        InvalidSpecialCaseParameters,
        UnsupportedAcquisitionType,
    ) as exc:
        case = record.special_case
        if case is None or case.manual_amount is None:
            raise
        logger.info("Using manual amortization amount for %s: %s", case.kind, exc)
        return _manual_override(record, fiscal_year, days_rented, case.manual_amount, exc)

    day_factor = Decimal(days_rented) / Decimal(available)
    base = plan.base.amount

    property_amount = base * plan.percentage * day_factor
    if plan.cap is not None:
        property_amount = min(property_amount, plan.cap)
    if plan.ceiling is not None:
        property_amount = min(property_amount, plan.ceiling)
    property_amount = _money(property_amount)

    improvements_amount = _improvements_amortization(
        record, fiscal_year, days_rented, plan.percentage
    )
    standard_improvements = _improvements_amortization(
        record, fiscal_year, days_rented, STANDARD_PERCENTAGE
    )
    total = property_amount + improvements_amount
    standard_amount = base * STANDARD_PERCENTAGE * day_factor
    if plan.ceiling is not None:
        standard_amount = min(standard_amount, plan.ceiling)
    standard_total = _money(standard_amount) + standard_improvements

    logger.debug(
        "Amortization %s for %d: method=%s base=%s pct=%s total=%s",
        record.acquisition_type,
        fiscal_year,
        plan.method,
        base,
        plan.percentage,
        total,
    )

    return AmortizationResult(
        method=plan.method,
        base_amount=base,
        percentage_applied=plan.percentage,
        days_rented=days_rented,
        days_available=available,
        property_amortization=property_amount,
        improvements_amortization=improvements_amount,
        total_amortization=total,
        accumulated_standard=_money(record.prior_accumulated_standard + standard_total),
        accumulated_actual=_money(record.prior_accumulated_actual + total),
        justification=plan.justification,
        breakdown=plan.base.breakdown,
    )


def calculate(
    record: PropertyAcquisitionRecord, fiscal_year: int, days_rented: int
) -> AmortizationResult | AmortizationFailure:
    """Like compute_amortization, but returns a failure instead of raising."""
    try:
        return compute_amortization(record, fiscal_year, days_rented)
    except AmortizationError as exc:
        logger.warning("Amortization for %d failed: %s", fiscal_year, exc)
        return AmortizationFailure(error=type(exc).__name__, message=str(exc))


@dataclass(frozen=True)
class AmortizationRequest:
    record: PropertyAcquisitionRecord
    fiscal_year: int
    days_rented: int


def calculate_batch(
    requests: Iterable[AmortizationRequest],
) -> list[AmortizationResult | AmortizationFailure]:
    """Calculate many properties; one failing record does not stop the rest."""
    results = [calculate(r.record, r.fiscal_year, r.days_rented) for r in requests]
    failed = sum(1 for r in results if isinstance(r, AmortizationFailure))
    logger.info("Calculated %d amortizations, %d failed", len(results), failed)
    return results
