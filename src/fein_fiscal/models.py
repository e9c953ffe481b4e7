"""Extraction draft, loan record and canonical loan models."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from fein_fiscal.bonuses import BonusCategoryId, BonusType, VerificationSource


class LoanType(StrEnum):
    """Interest scheme of a loan."""

    FIXED = "FIXED"
    VARIABLE = "VARIABLE"
    MIXED = "MIXED"


class ReferenceIndex(StrEnum):
    """Floating index named in a FEIN."""

    EURIBOR = "EURIBOR"
    IRPH = "IRPH"


class RecordIndex(StrEnum):
    """Index values accepted by the persisted loan record."""

    EURIBOR = "EURIBOR"
    OTHER = "OTHER"


ReviewMonths = Literal[6, 12]
PaymentFrequency = Literal["MONTHLY", "QUARTERLY", "SEMIANNUAL", "ANNUAL"]


# --- Extraction draft ---------------------------------------------------------


class ExtractionMetadata(BaseModel):
    """Provenance of one document scan."""

    model_config = ConfigDict(frozen=True)

    source_file_name: str
    pages_total: int = Field(ge=0)
    pages_processed: int = Field(ge=0)
    ocr_provider: str
    processed_at: datetime
    warnings: list[str] = Field(default_factory=list)


class LoanTerms(BaseModel):
    """Loan fields found in a FEIN. ``None`` means not found.

    Rates, spreads and commissions are percentage points (2.95 means 2.95 %).
    For MIXED loans ``fixed_rate`` holds the rate of the fixed tranche.
    """

    model_config = ConfigDict(frozen=True)

    loan_type: LoanType | None = None
    bank: str | None = None
    principal: int | None = Field(default=None, ge=10_000, le=5_000_000)
    term_months: int | None = Field(default=None, ge=12, le=600)
    payment_frequency: PaymentFrequency | None = None
    fixed_rate: float | None = Field(default=None, ge=0, le=20)
    reference_index: ReferenceIndex | None = None
    index_value: float | None = Field(default=None, ge=0, le=15)
    spread: float | None = Field(default=None, ge=0, le=10)
    review_months: ReviewMonths | None = None
    fixed_tranche_years: int | None = Field(default=None, ge=1, le=40)
    apr: float | None = Field(default=None, ge=0, le=25)
    opening_commission_pct: float | None = Field(default=None, ge=0, le=5)
    maintenance_fee_monthly: float | None = Field(default=None, ge=0, le=100)
    early_repayment_commission_pct: float | None = Field(default=None, ge=0, le=5)
    iban_last4: str | None = Field(default=None, pattern=r"^\d{4}$")
    signing_date: date | None = None
    suggested_alias: str | None = None


class DraftBonus(BaseModel):
    """A rate-discount bonus detected in the document."""

    model_config = ConfigDict(frozen=True)

    category: BonusCategoryId
    label: str
    discount_points: float | None = Field(default=None, ge=0)
    criterion: str | None = None


class ExtractionDraft(BaseModel):
    """Structured result of scanning one FEIN."""

    model_config = ConfigDict(frozen=True)

    metadata: ExtractionMetadata
    loan: LoanTerms = Field(default_factory=LoanTerms)
    bonuses: list[DraftBonus] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Outcome of an extraction call; ``draft`` is None only on failure."""

    success: bool
    draft: ExtractionDraft | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# --- Persisted loan record ----------------------------------------------------


class LoanBonus(BaseModel):
    """Bonus as stored on a loan record."""

    id: str
    type: BonusType
    name: str
    condition: str
    rate_discount: float  # decimal fraction, 0.0025 == 0.25 points
    impact_points: float
    applies_to: Literal["FIXED"] = "FIXED"
    evaluation_window_months: int = 6
    verification_source: VerificationSource
    initial_state: Literal["NOT_MET", "MET"] = "NOT_MET"
    selected: bool = False
    grace_months: int = 0
    active: bool = True


class LoanRecord(BaseModel):
    """Loan record shape used to prefill the loan creation form."""

    scope: Literal["PERSONAL", "PROPERTY"] = "PERSONAL"
    first_receipt_scheme: Literal["NORMAL"] = "NORMAL"
    amortization_system: Literal["FRENCH"] = "FRENCH"
    grace_period: Literal["NONE", "CAPITAL", "TOTAL"] = "NONE"
    charge_day_of_month: int = Field(default=1, ge=1, le=31)
    signing_date: date
    first_charge_date: date
    alias: str
    principal: int | None = None
    term: int | None = None
    term_unit: Literal["MONTHS"] = "MONTHS"
    payment_frequency: PaymentFrequency = "MONTHLY"
    loan_type: LoanType | None = None
    fixed_rate: float | None = None
    reference_index: RecordIndex | None = None
    index_value: float | None = None
    spread: float | None = None
    review_months: ReviewMonths | None = None
    fixed_tranche_years: int | None = None
    fixed_tranche_rate: float | None = None
    opening_commission: float | None = None
    maintenance_fee: float | None = None
    early_repayment_commission: float | None = None
    charge_account_id: str | None = None
    bonuses: list[LoanBonus] = Field(default_factory=list)


# --- Canonical FEIN loan ------------------------------------------------------


class DocMeta(BaseModel):
    """Document provenance in the canonical schema."""

    source_file: str
    uuid: str
    pages: int
    parsed_at: datetime
    parser_version: str


class ChargeAccount(BaseModel):
    bank: str | None = None
    iban_last4: str | None = None


class Commissions(BaseModel):
    opening_pct: float = 0.0
    maintenance_monthly: float = 0.0
    early_repayment_pct: float = 0.0


class FixedConditions(BaseModel):
    rate_pct: float | None = None


class VariableConditions(BaseModel):
    index: str | None = None
    index_value_pct: float | None = None
    spread_pct: float | None = None
    review_months: ReviewMonths = 12


class SubsequentVariable(BaseModel):
    index: str | None = None
    spread_pct: float | None = None
    review_months: ReviewMonths = 12


class MixedConditions(BaseModel):
    fixed_tranche_years: int | None = None
    fixed_tranche_rate_pct: float | None = None
    subsequent_variable: SubsequentVariable = Field(default_factory=SubsequentVariable)


class CanonicalBonus(BaseModel):
    type: BonusType
    pp: float  # negative when the bonus lowers the rate
    state: Literal["PENDING", "MET", "NOT_MET"] = "PENDING"


class LoanExtras(BaseModel):
    apr_pct: float | None = None
    estimated_payment: float | None = None


class CanonicalLoanTerms(BaseModel):
    """Loan block of the canonical schema; exactly one rate block is set."""

    alias: str
    loan_type: LoanType
    principal: int
    term_months: int
    charge_account: ChargeAccount = Field(default_factory=ChargeAccount)
    amortization_system: Literal["FRENCH"] = "FRENCH"
    grace_period: Literal["NONE", "CAPITAL", "TOTAL"] = "NONE"
    commissions: Commissions = Field(default_factory=Commissions)
    fixed: FixedConditions | None = None
    variable: VariableConditions | None = None
    mixed: MixedConditions | None = None
    bonuses: list[CanonicalBonus] = Field(default_factory=list)
    extras: LoanExtras = Field(default_factory=LoanExtras)


class CanonicalLoan(BaseModel):
    """Strict canonical representation of a FEIN loan offer."""

    doc_meta: DocMeta
    loan: CanonicalLoanTerms
