"""Map an extraction draft onto the loan record used to prefill the loan form."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from fein_fiscal.bonuses import get_category
from fein_fiscal.models import (
    DraftBonus,
    ExtractionDraft,
    LoanBonus,
    LoanRecord,
    LoanType,
    RecordIndex,
    ReferenceIndex,
)

logger = logging.getLogger(__name__)

DEFAULT_REVIEW_MONTHS = 12
DEFAULT_PAYMENT_FREQUENCY = "MONTHLY"


@dataclass
class MappingInfo:
    """Checklist shown next to a prefilled loan form."""

    suggestions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    missing_fields: list[str] = field(default_factory=list)


def _record_index(index: ReferenceIndex | None) -> RecordIndex | None:
    if index is None:
        return None
    return RecordIndex.EURIBOR if index is ReferenceIndex.EURIBOR else RecordIndex.OTHER


def _map_bonus(bonus: DraftBonus, position: int) -> LoanBonus:
    category = get_category(bonus.category)
    fraction = bonus.discount_points / 100 if bonus.discount_points is not None else 0.0
    return LoanBonus(
        id=f"fein_{category.id}_{position}",
        type=category.record_type,
        name=category.label,
        condition=bonus.criterion or category.label,
        rate_discount=fraction,
        impact_points=fraction,
        verification_source=category.verification_source,
    )


def to_loan_record(
    draft: ExtractionDraft,
    default_account_ref: str | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Build a partial loan record from a draft.

    Form defaults fill what a FEIN never states. Rate fields are copied only
    into the block the loan type calls for, and keys without a value are
    left out of the result.
    """
    loan = draft.loan
    today = today or date.today()
    signing = loan.signing_date or today

    values: dict[str, Any] = {
        "signing_date": signing,
        "first_charge_date": signing,
        "alias": loan.suggested_alias or f"Préstamo {loan.bank or 'FEIN'}",
        "principal": loan.principal,
        "term": loan.term_months,
        "payment_frequency": loan.payment_frequency or DEFAULT_PAYMENT_FREQUENCY,
        "loan_type": loan.loan_type,
        "opening_commission": loan.opening_commission_pct,
        "maintenance_fee": loan.maintenance_fee_monthly,
        "early_repayment_commission": loan.early_repayment_commission_pct,
        "charge_account_id": default_account_ref,
        "bonuses": [_map_bonus(bonus, i) for i, bonus in enumerate(draft.bonuses)],
    }

    if loan.loan_type is LoanType.FIXED:
        values["fixed_rate"] = loan.fixed_rate
    elif loan.loan_type in (LoanType.VARIABLE, LoanType.MIXED):
        values["reference_index"] = _record_index(loan.reference_index)
        values["index_value"] = loan.index_value
        values["spread"] = loan.spread
        values["review_months"] = loan.review_months or DEFAULT_REVIEW_MONTHS
        if loan.loan_type is LoanType.MIXED:
            values["fixed_tranche_rate"] = loan.fixed_rate
            values["fixed_tranche_years"] = loan.fixed_tranche_years

    record = LoanRecord(**values)
    logger.debug(
        "Mapped draft %s to loan record %r", draft.metadata.source_file_name, record.alias
    )
    return record.model_dump(mode="json", exclude_none=True)


def generate_mapping_info(draft: ExtractionDraft) -> MappingInfo:
    """List what the user still has to fill in or review."""
    info = MappingInfo()
    loan = draft.loan

    if loan.principal is None:
        info.missing_fields.append("Capital inicial")
        info.warnings.append("Deberás introducir manualmente el capital del préstamo")
    if loan.term_months is None:
        info.missing_fields.append("Plazo")
        info.warnings.append("Deberás introducir manualmente el plazo del préstamo")
    if loan.loan_type is None:
        info.missing_fields.append("Tipo de interés")
        info.warnings.append("Deberás seleccionar el tipo de interés (Fijo/Variable/Mixto)")

    info.missing_fields.append("Cuenta de cargo")
    info.suggestions.append("Selecciona la cuenta de cargo desde tus cuentas guardadas")
    info.suggestions.append("Si es una hipoteca, asigna el inmueble correspondiente")

    if draft.bonuses:
        info.suggestions.append(
            f"Se detectaron {len(draft.bonuses)} bonificaciones. Revisa las condiciones."
        )

    info.warnings.extend(draft.metadata.warnings)
    return info
