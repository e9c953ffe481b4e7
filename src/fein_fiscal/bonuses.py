"""Rate-discount bonus categories.

One table drives both sides of the pipeline: the extractor reads the
keywords, the mapper reads the persisted type and the verification source.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class BonusCategoryId(StrEnum):
    """Slug of a bonus category as it appears in an extraction draft."""

    PAYROLL = "payroll"
    DIRECT_DEBITS = "direct-debits"
    CARD = "card"
    HOME_INSURANCE = "home-insurance"
    LIFE_INSURANCE = "life-insurance"
    PENSION_PLAN = "pension-plan"
    ALARM = "alarm"
    OTHER = "other"


class BonusType(StrEnum):
    """Bonus type stored on a persisted loan record."""

    PAYROLL = "PAYROLL"
    DIRECT_DEBITS = "DIRECT_DEBITS"
    CARD = "CARD"
    HOME_INSURANCE = "HOME_INSURANCE"
    LIFE_INSURANCE = "LIFE_INSURANCE"
    PENSION_PLAN = "PENSION_PLAN"
    ALARM = "ALARM"
    RECURRING_INCOME = "RECURRING_INCOME"
    OTHER = "OTHER"


class VerificationSource(StrEnum):
    """Where compliance with a bonus condition gets checked."""

    TREASURY = "TREASURY"  # treasury movement analysis
    INSURANCE = "INSURANCE"  # insurance registry
    MANUAL = "MANUAL"


@dataclass(frozen=True)
class BonusCategory:
    """Everything the pipeline knows about one bonus category."""

    id: BonusCategoryId
    label: str
    keywords: tuple[str, ...]
    record_type: BonusType
    verification_source: VerificationSource


BONUS_CATEGORIES: tuple[BonusCategory, ...] = (
    BonusCategory(
        id=BonusCategoryId.PAYROLL,
        label="Domiciliación de nómina",
        keywords=("nómina", "nomina", "domiciliación nómina"),
        record_type=BonusType.PAYROLL,
        verification_source=VerificationSource.TREASURY,
    ),
    BonusCategory(
        id=BonusCategoryId.DIRECT_DEBITS,
        label="Domiciliación de recibos",
        keywords=("recibos", "domiciliaciones", "domiciliación recibos"),
        record_type=BonusType.DIRECT_DEBITS,
        verification_source=VerificationSource.TREASURY,
    ),
    BonusCategory(
        id=BonusCategoryId.CARD,
        label="Tarjeta de crédito/débito",
        keywords=("tarjeta", "tarjeta crédito", "tarjeta débito"),
        record_type=BonusType.CARD,
        verification_source=VerificationSource.TREASURY,
    ),
    BonusCategory(
        id=BonusCategoryId.HOME_INSURANCE,
        label="Seguro de hogar",
        keywords=("seguro hogar", "seguro de hogar", "seguro vivienda", "hogar obligatorio"),
        record_type=BonusType.HOME_INSURANCE,
        verification_source=VerificationSource.INSURANCE,
    ),
    BonusCategory(
        id=BonusCategoryId.LIFE_INSURANCE,
        label="Seguro de vida",
        keywords=("seguro vida", "seguro de vida", "vida opcional"),
        record_type=BonusType.LIFE_INSURANCE,
        verification_source=VerificationSource.INSURANCE,
    ),
    BonusCategory(
        id=BonusCategoryId.PENSION_PLAN,
        label="Plan de pensiones",
        keywords=("plan pensiones", "plan de pensiones"),
        record_type=BonusType.PENSION_PLAN,
        verification_source=VerificationSource.MANUAL,
    ),
    BonusCategory(
        id=BonusCategoryId.ALARM,
        label="Sistema de alarma",
        keywords=("alarma", "sistema alarma", "seguridad"),
        record_type=BonusType.ALARM,
        verification_source=VerificationSource.MANUAL,
    ),
    BonusCategory(
        id=BonusCategoryId.OTHER,
        label="Otra bonificación",
        keywords=(),
        record_type=BonusType.OTHER,
        verification_source=VerificationSource.MANUAL,
    ),
)

_BY_ID = {category.id: category for category in BONUS_CATEGORIES}


def get_category(category_id: BonusCategoryId | str) -> BonusCategory:
    """Look up a category; unknown slugs resolve to the catch-all "other"."""
    try:
        return _BY_ID[BonusCategoryId(category_id)]
    except ValueError:
        return _BY_ID[BonusCategoryId.OTHER]
