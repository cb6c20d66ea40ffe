"""Payslip calculator: composes structure components and statutory formulas.

One deterministic gross-to-net transform per employee:

    allowances -> gross pay -> pre-tax deductions -> taxable income
    -> income tax / pension / insurance -> post-tax deductions -> net pay

Pre-tax deductions are evaluated once against the undiminished gross pay
before taxable income is derived; this ordering is intentional and there is
no fixed-point iteration.
"""

import logging

from payroll.calculators.components import component_line, evaluate_component, resolve_base
from payroll.calculators.income_tax import calculate_income_tax
from payroll.calculators.insurance import calculate_insurance_levy
from payroll.calculators.money import Money, total
from payroll.calculators.pension import calculate_pension
from payroll.calculators.rates import StatutoryRates, get_rate_schedule
from payroll.exceptions import InvalidStructure, NegativeNetPay
from payroll.models import (
    ComponentBase,
    ComponentDefinition,
    ComponentLine,
    FixedComponent,
    PayrollStructure,
    PayslipLineItem,
    PercentageComponent,
)

logger = logging.getLogger(__name__)

NEGATIVE_NET_PAY_WARNING = "NEGATIVE_NET_PAY"

# Bases each component role may reference; later values do not exist yet
_ALLOWED_BASES: dict[str, set[ComponentBase]] = {
    "allowance": {ComponentBase.BASIC_SALARY},
    "pre-tax deduction": {ComponentBase.BASIC_SALARY, ComponentBase.GROSS_PAY},
    "post-tax deduction": set(ComponentBase),
}


def _is_whole_cents(amount: Money) -> bool:
    return amount.round() == amount


def validate_structure(structure: PayrollStructure) -> None:
    """Check a structure can be calculated at all.

    Raises:
        InvalidStructure: If basic salary is not positive or not in whole
            cents, a component is malformed or references a base that is
            not yet known at its step, or component ids are duplicated.
    """
    if structure.basic_salary <= 0:
        raise InvalidStructure(
            f"Basic salary must be greater than zero, got {structure.basic_salary}",
            structure_id=structure.id,
        )
    if not _is_whole_cents(structure.basic_salary):
        raise InvalidStructure(
            f"Basic salary must be in whole cents, got {structure.basic_salary.amount}",
            structure_id=structure.id,
        )

    roles = [("allowance", c) for c in structure.allowances] + [
        ("pre-tax deduction" if c.pre_tax else "post-tax deduction", c)
        for c in structure.deductions
    ]
    seen: set[str] = set()
    for role, component in roles:
        if component.id in seen:
            raise InvalidStructure(
                f"Duplicate component id {component.id!r}", structure_id=structure.id
            )
        seen.add(component.id)

        if not component.name.strip():
            raise InvalidStructure(
                f"Component {component.id!r} is missing a name", structure_id=structure.id
            )
        if not component.value.is_finite() or component.value < 0:
            raise InvalidStructure(
                f"Component {component.name!r} must have a finite value >= 0, "
                f"got {component.value}",
                structure_id=structure.id,
            )
        if isinstance(component, FixedComponent) and not _is_whole_cents(Money(component.value)):
            raise InvalidStructure(
                f"Fixed component {component.name!r} must be in whole cents, "
                f"got {component.value}",
                structure_id=structure.id,
            )
        if (
            isinstance(component, PercentageComponent)
            and component.base is not None
            and component.base not in _ALLOWED_BASES[role]
        ):
            raise InvalidStructure(
                f"{role.capitalize()} {component.name!r} cannot be a percentage "
                f"of {component.base.value}",
                structure_id=structure.id,
            )


def _evaluate_all(
    components: list[ComponentDefinition],
    default: ComponentBase,
    available: dict[ComponentBase, Money],
    *,
    is_deduction: bool,
) -> list[ComponentLine]:
    lines: list[ComponentLine] = []
    for component in components:
        base = resolve_base(component, default, available)
        amount = evaluate_component(component, base)
        lines.append(component_line(component, amount, is_deduction=is_deduction))
    return lines


def calculate_payslip(
    employee_id: str,
    structure: PayrollStructure,
    rates: StatutoryRates | None = None,
    *,
    block_negative_net_pay: bool = False,
) -> PayslipLineItem:
    """Calculate one employee's full gross-to-net breakdown.

    Args:
        employee_id: Employee the payslip belongs to.
        structure: Payroll structure; a frozen copy is stored on the item.
        rates: Statutory schedule; defaults to the configured one.
        block_negative_net_pay: Raise instead of warning when net pay < 0.

    Raises:
        InvalidStructure: If the structure is malformed.
        NegativeNetPay: If net pay is negative and blocking was requested.
    """
    rates = rates or get_rate_schedule()
    validate_structure(structure)
    return _calculate(employee_id, structure, rates, block_negative_net_pay)


def _calculate(
    employee_id: str,
    structure: PayrollStructure,
    rates: StatutoryRates,
    block_negative_net_pay: bool,
) -> PayslipLineItem:
    basic_salary = structure.basic_salary

    # 1-2. Allowances against basic salary -> gross pay
    available = {ComponentBase.BASIC_SALARY: basic_salary}
    allowance_lines = _evaluate_all(
        list(structure.allowances), ComponentBase.BASIC_SALARY, available, is_deduction=False
    )
    total_allowances = total([line.amount for line in allowance_lines])
    gross_pay = basic_salary + total_allowances

    # 3-4. Pre-tax deductions against the undiminished gross pay
    pre_tax = [d for d in structure.deductions if d.pre_tax]
    post_tax = [d for d in structure.deductions if not d.pre_tax]
    available[ComponentBase.GROSS_PAY] = gross_pay
    pre_tax_lines = _evaluate_all(pre_tax, ComponentBase.GROSS_PAY, available, is_deduction=True)
    other_pre_tax = total([line.amount for line in pre_tax_lines])

    # 5. Taxable income
    taxable_income = gross_pay - other_pre_tax
    if taxable_income.is_negative:
        raise InvalidStructure(
            f"Pre-tax deductions ({other_pre_tax}) exceed gross pay ({gross_pay})",
            structure_id=structure.id,
        )

    # 6. Statutory deductions
    tax = calculate_income_tax(taxable_income, rates)
    pension = calculate_pension(gross_pay, rates)
    insurance = calculate_insurance_levy(basic_salary, rates)

    # 7. Post-tax deductions
    available[ComponentBase.TAXABLE_INCOME] = taxable_income
    post_tax_lines = _evaluate_all(post_tax, ComponentBase.GROSS_PAY, available, is_deduction=True)
    other_post_tax = total([line.amount for line in post_tax_lines])

    # 8-9. Totals
    total_deductions = (
        tax.total_tax + pension.contribution + insurance + other_pre_tax + other_post_tax
    )
    net_pay = (gross_pay - total_deductions).round()

    warnings: tuple[str, ...] = ()
    if net_pay.is_negative:
        warnings = (NEGATIVE_NET_PAY_WARNING,)
        logger.warning("Negative net pay %s for employee %s", net_pay, employee_id)

    # Deduction lines keep the structure's declared order
    deduction_by_id = {line.id: line for line in (*pre_tax_lines, *post_tax_lines)}

    item = PayslipLineItem(
        employee_id=employee_id,
        rate_schedule=rates.name,
        structure_snapshot=structure.model_copy(deep=True),
        basic_salary=basic_salary.round(),
        total_allowances=total_allowances,
        gross_pay=gross_pay.round(),
        taxable_income=taxable_income.round(),
        income_tax=tax.total_tax,
        pension_contribution=pension.contribution,
        insurance_levy=insurance,
        other_pre_tax_deductions=other_pre_tax,
        other_post_tax_deductions=other_post_tax,
        total_deductions=total_deductions,
        net_pay=net_pay,
        allowance_lines=tuple(allowance_lines),
        deduction_lines=tuple(deduction_by_id[d.id] for d in structure.deductions),
        tax_breakdown=tax.breakdown,
        pension_capped=pension.capped,
        warnings=warnings,
    )

    if warnings and block_negative_net_pay:
        raise NegativeNetPay(
            f"Net pay for employee {employee_id} is negative ({net_pay})",
            payslip=item,
        )
    return item
