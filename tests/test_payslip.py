"""Tests for the gross-to-net payslip calculator."""

from collections.abc import Callable
from decimal import Decimal

import pytest

from payroll.calculators.money import Money
from payroll.calculators.payslip import (
    NEGATIVE_NET_PAY_WARNING,
    calculate_payslip,
    validate_structure,
)
from payroll.calculators.rates import StatutoryRates
from payroll.exceptions import InvalidStructure, NegativeNetPay
from payroll.models import (
    ComponentBase,
    FixedComponent,
    PayrollStructure,
    PercentageComponent,
)

StructureFactory = Callable[..., PayrollStructure]


class TestRoundTrip:
    def test_reference_structure(
        self, standard_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        """Hand-verified.

        Allowances: 20% of 5000 (1000) + 500 = 1500; gross 6500.
        Retirement: 10% of 6500 = 650; taxable 5850.
        Tax: (5850 - 5100) * 20% = 150. Pension: 6500 * 5% = 325.
        Insurance: 5000 * 1% = 50. Deductions: 1175. Net: 5325.
        """
        item = calculate_payslip("emp-001", standard_structure, rates)

        assert item.total_allowances == Money.of("1500")
        assert item.gross_pay == Money.of("6500")
        assert item.other_pre_tax_deductions == Money.of("650")
        assert item.taxable_income == Money.of("5850")
        assert item.income_tax == Money.of("150")
        assert item.pension_contribution == Money.of("325")
        assert item.insurance_levy == Money.of("50")
        assert item.other_post_tax_deductions == Money.zero()
        assert item.total_deductions == Money.of("1175")
        assert item.net_pay == Money.of("5325")
        assert item.warnings == ()
        assert item.rate_schedule == "2024"

    def test_net_pay_identity(
        self, standard_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        item = calculate_payslip("emp-001", standard_structure, rates)
        statutory = item.income_tax + item.pension_contribution + item.insurance_levy
        structural = item.other_pre_tax_deductions + item.other_post_tax_deductions
        assert item.total_deductions == statutory + structural
        assert item.net_pay == item.gross_pay - item.total_deductions
        assert item.gross_pay == item.basic_salary + item.total_allowances

    def test_senior_structure(
        self, senior_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        """Hand-verified.

        Gross: 30000 + 15% (4500) = 34500, all taxable.
        Tax: 1030 + (34500 - 9200) * 37% (9361) = 10391.
        Pension capped at 1342. Insurance: 300.
        Post-tax: 150 union + 5% of 34500 (1725) loan = 1875.
        Deductions: 13908. Net: 20592.
        """
        item = calculate_payslip("emp-003", senior_structure, rates)

        assert item.gross_pay == Money.of("34500")
        assert item.taxable_income == Money.of("34500")
        assert item.income_tax == Money.of("10391")
        assert item.pension_contribution == Money.of("1342")
        assert item.pension_capped
        assert item.insurance_levy == Money.of("300")
        assert item.other_post_tax_deductions == Money.of("1875")
        assert item.total_deductions == Money.of("13908")
        assert item.net_pay == Money.of("20592")


class TestLineItemDetail:
    def test_lines_in_declared_order(
        self, make_structure: StructureFactory, rates: StatutoryRates
    ) -> None:
        structure = make_structure(
            "5000",
            deductions=(
                FixedComponent(id="post", name="Post", value=Decimal("10"), pre_tax=False),
                FixedComponent(id="pre", name="Pre", value=Decimal("20")),
            ),
        )
        item = calculate_payslip("emp-001", structure, rates)
        assert [line.id for line in item.deduction_lines] == ["post", "pre"]
        assert item.deduction_lines[0].pre_tax is False
        assert item.other_pre_tax_deductions == Money.of("20")
        assert item.other_post_tax_deductions == Money.of("10")

    def test_tax_breakdown_attached(
        self, standard_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        item = calculate_payslip("emp-001", standard_structure, rates)
        assert [line.tax for line in item.tax_breakdown] == [Money.zero(), Money.of("150")]

    def test_snapshot_is_a_copy(
        self, standard_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        item = calculate_payslip("emp-001", standard_structure, rates)
        assert item.structure_snapshot == standard_structure
        assert item.structure_snapshot is not standard_structure

    def test_deterministic(
        self, standard_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        first = calculate_payslip("emp-001", standard_structure, rates)
        second = calculate_payslip("emp-001", standard_structure, rates)
        assert first.model_dump(exclude={"created_at"}) == second.model_dump(
            exclude={"created_at"}
        )

    def test_json_amounts_are_fixed_strings(
        self, standard_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        item = calculate_payslip("emp-001", standard_structure, rates)
        assert '"net_pay":"5325.00"' in item.model_dump_json()


class TestDeductionBase:
    def test_deduction_defaults_to_gross(
        self, make_structure: StructureFactory, rates: StatutoryRates
    ) -> None:
        structure = make_structure(
            "5000",
            allowances=(FixedComponent(id="a", name="A", value=Decimal("1000")),),
            deductions=(PercentageComponent(id="d", name="D", value=Decimal("10")),),
        )
        item = calculate_payslip("emp-001", structure, rates)
        assert item.other_pre_tax_deductions == Money.of("600")

    def test_deduction_on_basic_salary(
        self, make_structure: StructureFactory, rates: StatutoryRates
    ) -> None:
        structure = make_structure(
            "5000",
            allowances=(FixedComponent(id="a", name="A", value=Decimal("1000")),),
            deductions=(
                PercentageComponent(
                    id="d", name="D", value=Decimal("10"), base=ComponentBase.BASIC_SALARY
                ),
            ),
        )
        item = calculate_payslip("emp-001", structure, rates)
        assert item.other_pre_tax_deductions == Money.of("500")

    def test_pre_tax_deduction_uses_undiminished_gross(
        self, make_structure: StructureFactory, rates: StatutoryRates
    ) -> None:
        """Two 10% pre-tax deductions each see the full 5000, not 4500."""
        structure = make_structure(
            "5000",
            deductions=(
                PercentageComponent(id="d1", name="D1", value=Decimal("10")),
                PercentageComponent(id="d2", name="D2", value=Decimal("10")),
            ),
        )
        item = calculate_payslip("emp-001", structure, rates)
        assert item.other_pre_tax_deductions == Money.of("1000")
        assert item.taxable_income == Money.of("4000")


class TestNegativeNetPay:
    @pytest.fixture
    def overdrawn(self, make_structure: StructureFactory) -> PayrollStructure:
        """Gross 5000; tax 0, pension 250, insurance 50, loan 10000 -> net -5300."""
        return make_structure(
            "5000",
            deductions=(
                FixedComponent(id="loan", name="Loan", value=Decimal("10000"), pre_tax=False),
            ),
        )

    def test_warns_by_default(self, overdrawn: PayrollStructure, rates: StatutoryRates) -> None:
        item = calculate_payslip("emp-001", overdrawn, rates)
        assert item.net_pay == Money.of("-5300")
        assert item.warnings == (NEGATIVE_NET_PAY_WARNING,)

    def test_blocks_when_asked(self, overdrawn: PayrollStructure, rates: StatutoryRates) -> None:
        with pytest.raises(NegativeNetPay) as exc_info:
            calculate_payslip("emp-001", overdrawn, rates, block_negative_net_pay=True)
        assert exc_info.value.payslip is not None
        assert exc_info.value.payslip.net_pay == Money.of("-5300")


class TestValidation:
    def test_zero_basic_salary(self, zero_salary_structure: PayrollStructure) -> None:
        with pytest.raises(InvalidStructure) as exc_info:
            validate_structure(zero_salary_structure)
        assert exc_info.value.structure_id == "broken"

    def test_negative_basic_salary(self, make_structure: StructureFactory) -> None:
        with pytest.raises(InvalidStructure):
            validate_structure(make_structure("-100"))

    def test_sub_cent_basic_salary(self, make_structure: StructureFactory) -> None:
        with pytest.raises(InvalidStructure, match="whole cents"):
            validate_structure(make_structure("5000.005"))

    def test_sub_cent_fixed_component(self, make_structure: StructureFactory) -> None:
        structure = make_structure(
            allowances=(FixedComponent(id="a", name="A", value=Decimal("10.005")),)
        )
        with pytest.raises(InvalidStructure, match="whole cents"):
            validate_structure(structure)

    def test_duplicate_component_ids(self, make_structure: StructureFactory) -> None:
        structure = make_structure(
            allowances=(FixedComponent(id="x", name="A", value=Decimal("1")),),
            deductions=(FixedComponent(id="x", name="B", value=Decimal("1")),),
        )
        with pytest.raises(InvalidStructure, match="Duplicate"):
            validate_structure(structure)

    def test_blank_component_name(self, make_structure: StructureFactory) -> None:
        structure = make_structure(
            allowances=(FixedComponent(id="a", name="  ", value=Decimal("1")),)
        )
        with pytest.raises(InvalidStructure):
            validate_structure(structure)

    def test_negative_component_value(self, make_structure: StructureFactory) -> None:
        structure = make_structure(
            deductions=(PercentageComponent(id="d", name="D", value=Decimal("-5")),)
        )
        with pytest.raises(InvalidStructure):
            validate_structure(structure)

    def test_allowance_cannot_use_gross(self, make_structure: StructureFactory) -> None:
        structure = make_structure(
            allowances=(
                PercentageComponent(
                    id="a", name="A", value=Decimal("5"), base=ComponentBase.GROSS_PAY
                ),
            )
        )
        with pytest.raises(InvalidStructure):
            validate_structure(structure)

    def test_pre_tax_cannot_use_taxable_income(self, make_structure: StructureFactory) -> None:
        structure = make_structure(
            deductions=(
                PercentageComponent(
                    id="d", name="D", value=Decimal("5"), base=ComponentBase.TAXABLE_INCOME
                ),
            )
        )
        with pytest.raises(InvalidStructure):
            validate_structure(structure)

    def test_post_tax_may_use_taxable_income(self, senior_structure: PayrollStructure) -> None:
        validate_structure(senior_structure)

    def test_pre_tax_exceeding_gross(
        self, make_structure: StructureFactory, rates: StatutoryRates
    ) -> None:
        structure = make_structure(
            "5000",
            deductions=(FixedComponent(id="d", name="D", value=Decimal("7000")),),
        )
        with pytest.raises(InvalidStructure, match="exceed gross"):
            calculate_payslip("emp-001", structure, rates)

    def test_calculate_rejects_zero_salary(
        self, zero_salary_structure: PayrollStructure, rates: StatutoryRates
    ) -> None:
        with pytest.raises(InvalidStructure):
            calculate_payslip("emp-001", zero_salary_structure, rates)
