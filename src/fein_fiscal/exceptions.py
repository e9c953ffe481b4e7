"""Exception hierarchy for fein-fiscal."""

from __future__ import annotations


class FeinFiscalError(Exception):
    """Base exception for all fein-fiscal errors."""


class ConfigurationError(FeinFiscalError):
    """Raised when an environment setting is invalid."""


class ExtractionError(FeinFiscalError):
    """Raised when FEIN text cannot be turned into a draft."""


class IncompleteDraftError(ExtractionError):
    """Raised when a draft lacks the fields the canonical schema requires."""

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(f"Draft is missing required fields: {', '.join(missing_fields)}")


class AmortizationError(FeinFiscalError):
    """Base class for amortization precondition failures."""


class MissingValuationData(AmortizationError):
    """Neither cadastral values nor a case supplying the construction share."""


class InvalidSpecialCaseParameters(AmortizationError):
    """A special case lacks one of its required parameters."""


class UnsupportedAcquisitionType(AmortizationError):
    """The acquisition type is unset and nothing compensates for it."""


class InvalidCalculationInput(AmortizationError):
    """Fiscal year or rented days out of range."""
