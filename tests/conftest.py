"""Shared test fixtures."""

from collections.abc import Callable
from decimal import Decimal

import pytest

from payroll.calculators.money import Money
from payroll.calculators.rates import RATE_SCHEDULES, StatutoryRates
from payroll.models import (
    ComponentBase,
    ComponentDefinition,
    FixedComponent,
    PayrollStructure,
    PercentageComponent,
    RunSelection,
)


def _make_structure(
    basic_salary: str = "5000",
    *,
    structure_id: str = "standard",
    allowances: tuple[ComponentDefinition, ...] = (),
    deductions: tuple[ComponentDefinition, ...] = (),
) -> PayrollStructure:
    return PayrollStructure(
        id=structure_id,
        name=f"{structure_id} structure",
        basic_salary=Money.of(basic_salary),
        allowances=allowances,
        deductions=deductions,
    )


def _make_selections(
    structure: PayrollStructure, count: int, *, start: int = 1
) -> list[RunSelection]:
    return [
        RunSelection(employee_id=f"emp-{i:03d}", structure=structure)
        for i in range(start, start + count)
    ]


@pytest.fixture(scope="session")
def make_structure() -> Callable[..., PayrollStructure]:
    """Factory for structures; the model itself does not require a positive salary."""
    return _make_structure


@pytest.fixture(scope="session")
def make_selections() -> Callable[..., list[RunSelection]]:
    """Factory pairing ``emp-001``, ``emp-002``, ... with one structure."""
    return _make_selections


@pytest.fixture(scope="session")
def rates() -> StatutoryRates:
    return RATE_SCHEDULES["2024"]


@pytest.fixture
def standard_structure() -> PayrollStructure:
    """Basic 5000, 20% housing, 500 transport, 10% pre-tax retirement.

    Gross 6500; retirement 650 on gross; taxable 5850; net 5325.
    """
    return _make_structure(
        "5000",
        allowances=(
            PercentageComponent(id="housing", name="Housing", value=Decimal("20")),
            FixedComponent(id="transport", name="Transport", value=Decimal("500")),
        ),
        deductions=(
            PercentageComponent(id="retirement", name="Retirement", value=Decimal("10")),
        ),
    )


@pytest.fixture
def senior_structure() -> PayrollStructure:
    """Basic 30000 with 15% housing and two post-tax deductions (pension capped).

    Gross 34500; deductions 13908; net 20592.
    """
    return _make_structure(
        "30000",
        structure_id="senior",
        allowances=(
            PercentageComponent(id="housing", name="Housing", value=Decimal("15")),
        ),
        deductions=(
            FixedComponent(id="union", name="Union dues", value=Decimal("150"), pre_tax=False),
            PercentageComponent(
                id="loan",
                name="Staff loan",
                value=Decimal("5"),
                base=ComponentBase.TAXABLE_INCOME,
                pre_tax=False,
            ),
        ),
    )


@pytest.fixture
def zero_salary_structure() -> PayrollStructure:
    return _make_structure("0", structure_id="broken")
