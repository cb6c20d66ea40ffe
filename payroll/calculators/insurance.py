"""Flat health-insurance levy calculator."""

from payroll.calculators.money import Money
from payroll.calculators.rates import StatutoryRates, get_rate_schedule
from payroll.exceptions import InvalidInput


def calculate_insurance_levy(
    basic_salary: Money,
    rates: StatutoryRates | None = None,
) -> Money:
    """Levy ``basic_salary * rate``, uncapped.

    Raises:
        InvalidInput: If basic_salary is negative.
    """
    if basic_salary.is_negative:
        raise InvalidInput(f"Basic salary must be non-negative, got {basic_salary}")

    insurance = (rates or get_rate_schedule()).insurance
    return (basic_salary * insurance.rate).round()
