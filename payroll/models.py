"""Pydantic models for payroll structures, payslip line items and runs."""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from payroll.calculators.money import Money


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PayFrequency(StrEnum):
    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"


class ComponentBase(StrEnum):
    """Value a percentage component is computed against."""

    BASIC_SALARY = "basic_salary"
    GROSS_PAY = "gross_pay"
    TAXABLE_INCOME = "taxable_income"


# --- Structure definitions ---


class _Component(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    value: Decimal
    pre_tax: bool = True  # read for deductions only


class FixedComponent(_Component):
    """A flat amount; ``value`` is the amount itself."""

    kind: Literal["fixed"] = "fixed"


class PercentageComponent(_Component):
    """A percentage of ``base``; when base is None the caller's default applies."""

    kind: Literal["percentage"] = "percentage"
    base: ComponentBase | None = None


ComponentDefinition = Annotated[
    FixedComponent | PercentageComponent, Field(discriminator="kind")
]


class PayrollStructure(BaseModel):
    """A salary structure assigned to employees (maps to payroll_structures)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"structure_{uuid4()}")
    name: str
    description: str | None = None
    frequency: PayFrequency = PayFrequency.MONTHLY
    basic_salary: Money
    allowances: tuple[ComponentDefinition, ...] = ()
    deductions: tuple[ComponentDefinition, ...] = ()


# --- Calculation results ---


class ComponentLine(BaseModel):
    """One evaluated allowance or deduction on a payslip."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: Literal["fixed", "percentage"]
    value: Decimal
    base: ComponentBase | None = None
    pre_tax: bool | None = None
    amount: Money


class TaxBandLine(BaseModel):
    """Tax owed within one band."""

    model_config = ConfigDict(frozen=True)

    floor: Money
    ceiling: Money | None
    rate: Decimal
    taxable_amount: Money
    tax: Money


class PayslipLineItem(BaseModel):
    """Gross-to-net result for one employee in one period. Immutable."""

    model_config = ConfigDict(frozen=True)

    employee_id: str
    rate_schedule: str
    structure_snapshot: PayrollStructure
    basic_salary: Money
    total_allowances: Money
    gross_pay: Money
    taxable_income: Money
    income_tax: Money
    pension_contribution: Money
    insurance_levy: Money
    other_pre_tax_deductions: Money
    other_post_tax_deductions: Money
    total_deductions: Money
    net_pay: Money
    allowance_lines: tuple[ComponentLine, ...] = ()
    deduction_lines: tuple[ComponentLine, ...] = ()
    tax_breakdown: tuple[TaxBandLine, ...] = ()
    pension_capped: bool = False
    warnings: tuple[str, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)


class ItemError(BaseModel):
    """A per-employee calculation failure recorded against a run."""

    model_config = ConfigDict(frozen=True)

    employee_id: str
    code: str
    message: str


# --- Runs ---


class RunStatus(StrEnum):
    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RunSelection(BaseModel):
    """An employee paired with a value-frozen copy of their structure."""

    model_config = ConfigDict(frozen=True)

    employee_id: str
    structure: PayrollStructure


class RunEvent(BaseModel):
    """An entry in a run's audit history."""

    model_config = ConfigDict(frozen=True)

    action: str
    description: str
    from_status: RunStatus | None = None
    to_status: RunStatus
    at: datetime = Field(default_factory=_utcnow)


class RunTotals(BaseModel):
    """Run-level sums of the payslip figures."""

    model_config = ConfigDict(frozen=True)

    gross_pay: Money = Field(default_factory=Money.zero)
    income_tax: Money = Field(default_factory=Money.zero)
    pension_contribution: Money = Field(default_factory=Money.zero)
    insurance_levy: Money = Field(default_factory=Money.zero)
    other_deductions: Money = Field(default_factory=Money.zero)
    total_deductions: Money = Field(default_factory=Money.zero)
    net_pay: Money = Field(default_factory=Money.zero)


class PayrollRun(BaseModel):
    """One batch of payslip calculations for a period (maps to payroll_history)."""

    id: str = Field(default_factory=lambda: f"payroll_{uuid4()}")
    period: str
    payment_date: date
    rate_schedule: str
    selections: list[RunSelection] = []
    status: RunStatus = RunStatus.DRAFT
    items: list[PayslipLineItem] = []
    errors: list[ItemError] = []
    total_amount: Money = Field(default_factory=Money.zero)
    employee_count: int = 0
    totals: RunTotals = Field(default_factory=RunTotals)
    notes: str | None = None
    processed_by: str | None = None
    regenerated_from: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    history: list[RunEvent] = []

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
