"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

from fein_fiscal.fiscal_models import (
    AcquisitionType,
    OnerousAcquisition,
    PropertyAcquisitionRecord,
)
from fein_fiscal.models import (
    DraftBonus,
    ExtractionDraft,
    ExtractionMetadata,
    LoanTerms,
)

FIXED_FEIN = """\
FICHA EUROPEA DE INFORMACIÓN NORMALIZADA (FEIN)
Entidad: Banco Santander, S.A.
Importe del préstamo: 250.000,00 €
Plazo: 360 meses
Tipo de interés fijo. TIN: 2,95 %
TAE: 3,12 %
Comisión de apertura: 0,50 %
Cuenta de cargo: ES12 3456 **** **** **** 7890
Fecha prevista de firma: 15/03/2025
Bonificaciones:
- Domiciliación de nómina: -0,25 puntos
- Seguro de hogar: -0,15 puntos
"""

VARIABLE_FEIN = """\
FEIN - BBVA
Préstamo hipotecario a tipo variable
Capital solicitado: 180.000 €
Plazo de amortización: 25 años
Índice de referencia: Euríbor a 12 meses
Valor del índice actual: 2,50 %
Diferencial: 0,99 %
Revisión semestral del tipo de interés
Comisión de mantenimiento: 0,00 €/mes
Comisión por amortización anticipada: 0,25 %
"""

MIXED_FEIN = """\
FEIN Hipoteca Mixta - CaixaBank
Importe: 300.000,00 €
Plazo: 30 años
Tramo fijo: 10 años
TIN tramo fijo: 2,10 %
Después: Euríbor + 0,75 %
Revisión anual
"""

NO_KEYWORDS_TEXT = "Lorem ipsum dolor sit amet, consectetur adipiscing elit."

PROCESSED_AT = datetime(2025, 1, 10, 9, 30, tzinfo=UTC)


@pytest.fixture
def fixed_fein_text() -> str:
    return FIXED_FEIN


@pytest.fixture
def variable_fein_text() -> str:
    return VARIABLE_FEIN


@pytest.fixture
def mixed_fein_text() -> str:
    return MIXED_FEIN


@pytest.fixture
def make_draft() -> Any:
    """Provide a factory building drafts from loan fields and bonuses."""

    def _make(
        bonuses: list[DraftBonus] | None = None,
        warnings: list[str] | None = None,
        **loan: Any,
    ) -> ExtractionDraft:
        return ExtractionDraft(
            metadata=ExtractionMetadata(
                source_file_name="fein.pdf",
                pages_total=4,
                pages_processed=4,
                ocr_provider="google",
                processed_at=PROCESSED_AT,
                warnings=warnings or [],
            ),
            loan=LoanTerms(**loan),
            bonuses=bonuses or [],
        )

    return _make


@pytest.fixture
def standard_record() -> PropertyAcquisitionRecord:
    """Purchase at 300.000 + 25.000 with an 80 % construction share."""
    return PropertyAcquisitionRecord(
        acquisition_type=AcquisitionType.ONEROUS,
        cadastral_value=Decimal(150000),
        construction_cadastral_value=Decimal(120000),
        onerous=OnerousAcquisition(
            acquisition_amount=Decimal(300000),
            acquisition_expenses=Decimal(25000),
        ),
    )
