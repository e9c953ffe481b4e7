"""Strict canonical representation of a FEIN loan offer."""

from __future__ import annotations

import logging
import uuid as uuid_lib
from dataclasses import dataclass, field
from datetime import UTC, datetime

from fein_fiscal.bonuses import get_category
from fein_fiscal.exceptions import IncompleteDraftError
from fein_fiscal.extraction import LOAN_NOUN
from fein_fiscal.models import (
    CanonicalBonus,
    CanonicalLoan,
    CanonicalLoanTerms,
    ChargeAccount,
    Commissions,
    DocMeta,
    ExtractionDraft,
    FixedConditions,
    LoanExtras,
    LoanTerms,
    LoanType,
    MixedConditions,
    SubsequentVariable,
    VariableConditions,
)
from fein_fiscal.spanish_format import round_half_up

logger = logging.getLogger(__name__)

PARSER_VERSION = "1.0.0"


@dataclass
class CanonicalValidation:
    is_valid: bool
    missing: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def estimate_monthly_payment(principal: float, annual_rate_pct: float, term_months: int) -> float:
    """Constant payment of a French-system loan, rounded to cents.

    ``annual_rate_pct`` is in percentage points. Zero-rate loans split the
    principal evenly.
    """
    if term_months <= 0:
        msg = f"term_months must be positive, got {term_months}"
        raise ValueError(msg)
    monthly_rate = annual_rate_pct / 100 / 12
    if monthly_rate == 0:
        return round_half_up(principal / term_months, 2)
    factor = (1 + monthly_rate) ** term_months
    return round_half_up(principal * monthly_rate * factor / (factor - 1), 2)


def _initial_rate(loan: LoanTerms) -> float | None:
    """Rate of the first payments.

    FIXED and MIXED loans start at the fixed rate; VARIABLE loans at index
    plus spread.
    """
    if loan.loan_type is LoanType.VARIABLE:
        if loan.index_value is not None and loan.spread is not None:
            return loan.index_value + loan.spread
        return None
    return loan.fixed_rate


def to_canonical(
    draft: ExtractionDraft,
    *,
    uuid: str | None = None,
    parsed_at: datetime | None = None,
) -> CanonicalLoan:
    """Convert a draft into the canonical schema.

    Raises:
        IncompleteDraftError: if the loan type, principal or term is missing.
    """
    loan = draft.loan
    missing = [
        name
        for name, value in (
            ("loan_type", loan.loan_type),
            ("principal", loan.principal),
            ("term_months", loan.term_months),
        )
        if value is None
    ]
    if missing:
        raise IncompleteDraftError(missing)

    index = loan.reference_index.value if loan.reference_index else None
    review = loan.review_months or 12
    fixed = variable = mixed = None
    if loan.loan_type is LoanType.FIXED:
        fixed = FixedConditions(rate_pct=loan.fixed_rate)
    elif loan.loan_type is LoanType.VARIABLE:
        variable = VariableConditions(
            index=index,
            index_value_pct=loan.index_value,
            spread_pct=loan.spread,
            review_months=review,
        )
    else:
        mixed = MixedConditions(
            fixed_tranche_years=loan.fixed_tranche_years,
            fixed_tranche_rate_pct=loan.fixed_rate,
            subsequent_variable=SubsequentVariable(
                index=index, spread_pct=loan.spread, review_months=review
            ),
        )

    rate = _initial_rate(loan)
    payment = (
        estimate_monthly_payment(loan.principal, rate, loan.term_months)
        if rate is not None
        else None
    )

    canonical = CanonicalLoan(
        doc_meta=DocMeta(
            source_file=draft.metadata.source_file_name,
            uuid=uuid or str(uuid_lib.uuid4()),
            pages=draft.metadata.pages_total,
            parsed_at=parsed_at or datetime.now(UTC),
            parser_version=PARSER_VERSION,
        ),
        loan=CanonicalLoanTerms(
            alias=loan.suggested_alias or f"{LOAN_NOUN} {loan.bank or 'FEIN'}",
            loan_type=loan.loan_type,
            principal=loan.principal,
            term_months=loan.term_months,
            charge_account=ChargeAccount(bank=loan.bank, iban_last4=loan.iban_last4),
            commissions=Commissions(
                opening_pct=loan.opening_commission_pct or 0.0,
                maintenance_monthly=loan.maintenance_fee_monthly or 0.0,
                early_repayment_pct=loan.early_repayment_commission_pct or 0.0,
            ),
            fixed=fixed,
            variable=variable,
            mixed=mixed,
            bonuses=[
                CanonicalBonus(
                    type=get_category(bonus.category).record_type,
                    pp=-bonus.discount_points if bonus.discount_points else 0.0,
                )
                for bonus in draft.bonuses
            ],
            extras=LoanExtras(apr_pct=loan.apr, estimated_payment=payment),
        ),
    )
    logger.debug("Built canonical loan %s for %s", canonical.doc_meta.uuid, canonical.loan.alias)
    return canonical


def validate_canonical(loan: CanonicalLoan) -> CanonicalValidation:
    """Check a canonical loan for the fields a loan form cannot do without."""
    terms = loan.loan
    missing: list[str] = []
    warnings: list[str] = []

    if terms.principal <= 0:
        missing.append("Capital inicial")
    if terms.term_months <= 0:
        missing.append("Plazo")

    if terms.loan_type is LoanType.FIXED and not (terms.fixed and terms.fixed.rate_pct):
        missing.append("TIN fijo")
    if terms.loan_type is LoanType.VARIABLE and not (terms.variable and terms.variable.spread_pct):
        missing.append("Diferencial variable")
    if terms.loan_type is LoanType.MIXED and not (
        terms.mixed
        and terms.mixed.fixed_tranche_rate_pct
        and terms.mixed.subsequent_variable.spread_pct
    ):
        missing.append("Condiciones préstamo mixto")

    if not terms.charge_account.iban_last4:
        warnings.append("IBAN de cuenta de cargo no identificado")
    if not terms.charge_account.bank:
        warnings.append("Banco no identificado")
    if not terms.bonuses:
        warnings.append("No se detectaron bonificaciones")

    return CanonicalValidation(is_valid=not missing, missing=missing, warnings=warnings)
