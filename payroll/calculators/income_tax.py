"""Progressive income tax: band-by-band breakdown."""

from decimal import Decimal
from typing import NamedTuple

from payroll.calculators.money import Money
from payroll.calculators.rates import StatutoryRates, get_rate_schedule
from payroll.exceptions import InvalidInput
from payroll.models import TaxBandLine


class IncomeTaxResult(NamedTuple):
    total_tax: Money
    effective_rate: Decimal  # percent, 2dp
    breakdown: tuple[TaxBandLine, ...]


def calculate_income_tax(
    taxable_income: Money,
    rates: StatutoryRates | None = None,
) -> IncomeTaxResult:
    """Calculate income tax as the cumulative sum over each band.

    For every band whose floor lies below the income, the slice
    ``min(income, ceiling) - floor`` is taxed at that band's rate. Income
    exactly at a band boundary owes only the tax of the band below.

    Args:
        taxable_income: Taxable income for the pay period (must be >= 0).
        rates: Statutory schedule; defaults to the configured one.

    Raises:
        InvalidInput: If taxable_income is negative.
    """
    if taxable_income.is_negative:
        raise InvalidInput(f"Taxable income must be non-negative, got {taxable_income}")

    rates = rates or get_rate_schedule()
    income = taxable_income.amount
    breakdown: list[TaxBandLine] = []
    total_tax = Decimal("0")

    for band in rates.bands:
        if income <= band.floor:
            break

        upper = band.ceiling if band.ceiling is not None else income
        taxable = min(income, upper) - band.floor
        tax = taxable * band.rate

        breakdown.append(TaxBandLine(
            floor=Money(band.floor),
            ceiling=Money(band.ceiling) if band.ceiling is not None else None,
            rate=band.rate,
            taxable_amount=Money(taxable).round(),
            tax=Money(tax).round(),
        ))
        total_tax += tax

    effective_rate = (total_tax / income * 100) if income > 0 else Decimal("0")

    return IncomeTaxResult(
        total_tax=Money(total_tax).round(),
        effective_rate=round(effective_rate, 2),
        breakdown=tuple(breakdown),
    )
