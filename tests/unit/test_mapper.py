"""Tests for fein_fiscal.mapper."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from fein_fiscal.bonuses import BonusCategoryId
from fein_fiscal.mapper import generate_mapping_info, to_loan_record
from fein_fiscal.models import DraftBonus, LoanType, ReferenceIndex

TODAY = date(2025, 1, 10)


class TestToLoanRecord:
    """Tests for to_loan_record()."""

    def test_form_defaults(self, make_draft: Any) -> None:
        record = to_loan_record(make_draft(), today=TODAY)

        assert record["scope"] == "PERSONAL"
        assert record["first_receipt_scheme"] == "NORMAL"
        assert record["amortization_system"] == "FRENCH"
        assert record["grace_period"] == "NONE"
        assert record["charge_day_of_month"] == 1
        assert record["term_unit"] == "MONTHS"
        assert record["payment_frequency"] == "MONTHLY"
        assert record["signing_date"] == "2025-01-10"
        assert record["first_charge_date"] == "2025-01-10"
        assert record["alias"] == "Préstamo FEIN"
        assert record["bonuses"] == []

    def test_absent_values_are_left_out(self, make_draft: Any) -> None:
        record = to_loan_record(make_draft(), today=TODAY)

        assert all(value is not None for value in record.values())
        for key in ("principal", "term", "loan_type", "fixed_rate", "charge_account_id"):
            assert key not in record

    def test_payment_frequency_copied(self, make_draft: Any) -> None:
        record = to_loan_record(make_draft(payment_frequency="QUARTERLY"), today=TODAY)
        assert record["payment_frequency"] == "QUARTERLY"

    def test_fixed_loan(self, make_draft: Any) -> None:
        draft = make_draft(
            loan_type=LoanType.FIXED,
            bank="BBVA",
            principal=200_000,
            term_months=300,
            fixed_rate=2.95,
            signing_date=date(2025, 3, 15),
            suggested_alias="Hipoteca BBVA 200K",
        )

        record = to_loan_record(draft, "acc-1", today=TODAY)

        assert record["loan_type"] == "FIXED"
        assert record["principal"] == 200_000
        assert record["term"] == 300
        assert record["fixed_rate"] == 2.95
        assert record["signing_date"] == "2025-03-15"
        assert record["first_charge_date"] == "2025-03-15"
        assert record["alias"] == "Hipoteca BBVA 200K"
        assert record["charge_account_id"] == "acc-1"
        assert "fixed_tranche_rate" not in record
        assert "reference_index" not in record
        assert "review_months" not in record

    def test_variable_loan_defaults_review_months(self, make_draft: Any) -> None:
        draft = make_draft(
            loan_type=LoanType.VARIABLE,
            bank="BBVA",
            reference_index=ReferenceIndex.EURIBOR,
            spread=0.99,
            index_value=2.5,
        )

        record = to_loan_record(draft, today=TODAY)

        assert record["reference_index"] == "EURIBOR"
        assert record["spread"] == 0.99
        assert record["index_value"] == 2.5
        assert record["review_months"] == 12
        assert record["alias"] == "Préstamo BBVA"
        assert "fixed_rate" not in record

    def test_mixed_loan_uses_fixed_tranche_slot(self, make_draft: Any) -> None:
        draft = make_draft(
            loan_type=LoanType.MIXED,
            fixed_rate=2.1,
            fixed_tranche_years=10,
            reference_index=ReferenceIndex.IRPH,
            spread=0.75,
            review_months=6,
        )

        record = to_loan_record(draft, today=TODAY)

        assert record["fixed_tranche_rate"] == 2.1
        assert record["fixed_tranche_years"] == 10
        assert "fixed_rate" not in record
        assert record["reference_index"] == "OTHER"
        assert record["review_months"] == 6

    def test_fixed_rate_ignored_for_variable(self, make_draft: Any) -> None:
        draft = make_draft(loan_type=LoanType.VARIABLE, fixed_rate=3.0)

        record = to_loan_record(draft, today=TODAY)

        assert "fixed_rate" not in record
        assert "fixed_tranche_rate" not in record

    def test_zero_commissions_are_kept(self, make_draft: Any) -> None:
        draft = make_draft(
            opening_commission_pct=0.0,
            maintenance_fee_monthly=0.0,
            early_repayment_commission_pct=0.5,
        )

        record = to_loan_record(draft, today=TODAY)

        assert record["opening_commission"] == 0.0
        assert record["maintenance_fee"] == 0.0
        assert record["early_repayment_commission"] == 0.5

    def test_bonus_mapping(self, make_draft: Any) -> None:
        bonuses = [
            DraftBonus(
                category=BonusCategoryId.PAYROLL,
                label="Domiciliación de nómina",
                discount_points=0.25,
                criterion="nómina mínima 1.200 €",
            ),
            DraftBonus(category=BonusCategoryId.LIFE_INSURANCE, label="Seguro de vida"),
            DraftBonus(category=BonusCategoryId.ALARM, label="Sistema de alarma"),
        ]

        record = to_loan_record(make_draft(bonuses=bonuses), today=TODAY)

        payroll, life, alarm = record["bonuses"]
        assert payroll["id"] == "fein_payroll_0"
        assert payroll["type"] == "PAYROLL"
        assert payroll["name"] == "Domiciliación de nómina"
        assert payroll["condition"] == "nómina mínima 1.200 €"
        assert payroll["rate_discount"] == pytest.approx(0.0025)
        assert payroll["impact_points"] == pytest.approx(0.0025)
        assert payroll["verification_source"] == "TREASURY"
        assert payroll["initial_state"] == "NOT_MET"
        assert payroll["active"] is True
        assert payroll["selected"] is False

        assert life["type"] == "LIFE_INSURANCE"
        assert life["verification_source"] == "INSURANCE"
        assert life["rate_discount"] == 0.0
        assert life["condition"] == "Seguro de vida"

        assert alarm["verification_source"] == "MANUAL"


class TestGenerateMappingInfo:
    """Tests for generate_mapping_info()."""

    def test_empty_draft(self, make_draft: Any) -> None:
        info = generate_mapping_info(make_draft(warnings=["Confianza baja"]))

        assert info.missing_fields == [
            "Capital inicial",
            "Plazo",
            "Tipo de interés",
            "Cuenta de cargo",
        ]
        assert info.warnings == [
            "Deberás introducir manualmente el capital del préstamo",
            "Deberás introducir manualmente el plazo del préstamo",
            "Deberás seleccionar el tipo de interés (Fijo/Variable/Mixto)",
            "Confianza baja",
        ]
        assert info.suggestions == [
            "Selecciona la cuenta de cargo desde tus cuentas guardadas",
            "Si es una hipoteca, asigna el inmueble correspondiente",
        ]

    def test_complete_draft_with_bonuses(self, make_draft: Any) -> None:
        bonuses = [
            DraftBonus(category=BonusCategoryId.PAYROLL, label="Nómina"),
            DraftBonus(category=BonusCategoryId.CARD, label="Tarjeta"),
        ]
        draft = make_draft(
            bonuses=bonuses, loan_type=LoanType.FIXED, principal=200_000, term_months=300
        )

        info = generate_mapping_info(draft)

        assert info.missing_fields == ["Cuenta de cargo"]
        assert info.warnings == []
        assert info.suggestions[-1] == "Se detectaron 2 bonificaciones. Revisa las condiciones."
