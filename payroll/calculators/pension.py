"""Capped pension contribution calculator."""

from typing import NamedTuple

from payroll.calculators.money import Money
from payroll.calculators.rates import StatutoryRates, get_rate_schedule
from payroll.exceptions import InvalidInput


class PensionResult(NamedTuple):
    contribution: Money
    capped: bool


def calculate_pension(
    gross_pay: Money,
    rates: StatutoryRates | None = None,
) -> PensionResult:
    """Calculate the employee pension contribution.

    ``gross_pay * rate`` while gross pay is at or below the ceiling, the
    flat cap amount above it. The switch is a hard cliff at the ceiling.

    Raises:
        InvalidInput: If gross_pay is negative.
    """
    if gross_pay.is_negative:
        raise InvalidInput(f"Gross pay must be non-negative, got {gross_pay}")

    pension = (rates or get_rate_schedule()).pension
    if gross_pay <= pension.ceiling:
        return PensionResult(contribution=(gross_pay * pension.rate).round(), capped=False)
    return PensionResult(contribution=Money(pension.cap_amount).round(), capped=True)
