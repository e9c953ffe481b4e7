"""Property acquisition records and AEAT amortization results."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class AcquisitionType(StrEnum):
    """How the taxpayer came to own the property."""

    ONEROUS = "onerous"  # purchase
    GRATUITOUS = "gratuitous"  # inheritance or donation
    MIXED = "mixed"


class AmortizationMethod(StrEnum):
    """Rule path taken by the calculator."""

    STANDARD = "standard"
    TEMPORARY_USUFRUCT = "temporary-usufruct"
    LIFETIME_USUFRUCT = "lifetime-usufruct"
    SEPARATE_VALUATION = "separate-valuation"
    PARTIAL_RENTAL = "partial-rental"
    OWNERSHIP_CHANGE = "ownership-change"
    NO_CADASTRAL_VALUE = "no-cadastral-value"
    LAST_YEAR = "last-year"
    REDUCED_PERCENTAGE = "reduced-percentage"
    MANUAL_OVERRIDE = "manual-override"


class OnerousAcquisition(BaseModel):
    """Purchase price plus expenses and taxes (notary, registry, ITP/VAT, AJD)."""

    acquisition_amount: Decimal = Field(ge=0)
    acquisition_expenses: Decimal = Field(default=Decimal(0), ge=0)

    @property
    def total_cost(self) -> Decimal:
        return self.acquisition_amount + self.acquisition_expenses


class GratuitousAcquisition(BaseModel):
    """Inheritance or donation: declared value, tax paid and inherent expenses."""

    declared_value: Decimal = Field(ge=0)
    transfer_tax: Decimal = Field(default=Decimal(0), ge=0)
    inherent_expenses: Decimal = Field(default=Decimal(0), ge=0)

    @property
    def total_cost(self) -> Decimal:
        return self.declared_value + self.transfer_tax + self.inherent_expenses


# --- Special cases ------------------------------------------------------------
#
# Case parameters are optional at the model level so that a record missing
# one can still be loaded; the calculator rejects it with
# InvalidSpecialCaseParameters unless a manual amount is supplied.


class _SpecialCaseBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    manual_amount: Decimal | None = Field(default=None, ge=0)


class TemporaryUsufruct(_SpecialCaseBase):
    kind: Literal["temporary-usufruct"] = "temporary-usufruct"
    duration_years: int | None = Field(default=None, gt=0)
    max_deductible_income: Decimal | None = Field(default=None, ge=0)


class LifetimeUsufruct(_SpecialCaseBase):
    kind: Literal["lifetime-usufruct"] = "lifetime-usufruct"
    max_deductible_income: Decimal | None = Field(default=None, ge=0)


class SeparateValuation(_SpecialCaseBase):
    """Land and construction valued separately, e.g. in the deed."""

    kind: Literal["separate-valuation"] = "separate-valuation"
    construction_value: Decimal | None = Field(default=None, ge=0)
    land_value: Decimal | None = Field(default=None, ge=0)


class PartialRental(_SpecialCaseBase):
    kind: Literal["partial-rental"] = "partial-rental"
    rented_percentage: Decimal | None = Field(default=None, gt=0, le=100)


class OwnershipChange(_SpecialCaseBase):
    """Ownership share changed during the fiscal year."""

    kind: Literal["ownership-change"] = "ownership-change"
    previous_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    new_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    change_date: date | None = None


class NoCadastralValue(_SpecialCaseBase):
    kind: Literal["no-cadastral-value"] = "no-cadastral-value"
    estimated_land_percentage: Decimal = Field(default=Decimal(10), ge=0, lt=100)


class LastAmortizationYear(_SpecialCaseBase):
    kind: Literal["last-year"] = "last-year"
    remaining_base: Decimal | None = Field(default=None, ge=0)


class ReducedPercentage(_SpecialCaseBase):
    """Voluntary amortization below the 3 % standard."""

    kind: Literal["reduced-percentage"] = "reduced-percentage"
    custom_percentage: Decimal | None = None


SpecialCase = Annotated[
    TemporaryUsufruct
    | LifetimeUsufruct
    | SeparateValuation
    | PartialRental
    | OwnershipChange
    | NoCadastralValue
    | LastAmortizationYear
    | ReducedPercentage,
    Field(discriminator="kind"),
]


class PropertyImprovement(BaseModel):
    """Capital improvement that raises the amortizable base."""

    year: int
    amount: Decimal = Field(ge=0)
    days_in_year: int | None = Field(default=None, ge=0, le=366)
    description: str = ""


class PropertyAcquisitionRecord(BaseModel):
    """Fiscal data of one property, already validated by storage.

    Cadastral values are proportional to the taxpayer's ownership share.
    """

    acquisition_type: AcquisitionType | None = None
    cadastral_value: Decimal | None = Field(default=None, ge=0)
    construction_cadastral_value: Decimal | None = Field(default=None, ge=0)
    onerous: OnerousAcquisition | None = None
    gratuitous: GratuitousAcquisition | None = None
    special_case: SpecialCase | None = None
    improvements: list[PropertyImprovement] = Field(default_factory=list)
    prior_accumulated_actual: Decimal = Field(default=Decimal(0), ge=0)
    prior_accumulated_standard: Decimal = Field(default=Decimal(0), ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def construction_percentage(self) -> Decimal | None:
        """Construction share of the cadastral value, 0-100."""
        total = self.cadastral_value
        construction = self.construction_cadastral_value
        if not total or not construction:
            return None
        return construction / total * 100


# --- Results ------------------------------------------------------------------


class AmortizationBreakdown(BaseModel):
    construction_cost: Decimal
    cadastral_construction_value: Decimal
    improvements: Decimal
    selected_base: Literal[
        "construction-cost", "cadastral-value", "estimated-construction", "manual"
    ]


class AmortizationResult(BaseModel):
    """Amortization of one property for one fiscal year."""

    method: AmortizationMethod
    base_amount: Decimal
    percentage_applied: Decimal  # fraction, 0.03 == 3 %
    days_rented: int
    days_available: int
    property_amortization: Decimal
    improvements_amortization: Decimal
    total_amortization: Decimal
    accumulated_standard: Decimal  # what 3 % would have accrued, for capital gains
    accumulated_actual: Decimal  # what was actually deducted
    justification: str | None = None
    breakdown: AmortizationBreakdown


class AmortizationFailure(BaseModel):
    """A calculation that could not run; batch processing continues past it."""

    error: str
    message: str
