"""Statutory rate schedules: income tax bands, pension cap, insurance levy.

Rates live here as named constants grouped per schedule, never as literals
inside the formulas. Further schedules can be loaded from a YAML file (see
``load_rate_schedules``) so a rate change does not need a code change.
"""

import logging
from decimal import Decimal
from typing import Any, NamedTuple

from config import load_yaml_config
from config.settings import settings
from payroll.exceptions import UnknownRateSchedule

logger = logging.getLogger(__name__)


class TaxBand(NamedTuple):
    """A single progressive income tax band."""

    floor: Decimal  # exclusive: income at the floor owes nothing in this band
    ceiling: Decimal | None  # inclusive; None = no cap
    rate: Decimal


class PensionRule(NamedTuple):
    """Capped pension contribution.

    ``rate`` applies while gross pay is at or below ``ceiling``; above it the
    contribution is the flat ``cap_amount``. There is no interpolation.
    """

    rate: Decimal
    ceiling: Decimal
    cap_amount: Decimal


class InsuranceRule(NamedTuple):
    """Flat health-insurance levy on basic salary, uncapped."""

    rate: Decimal


class StatutoryRates(NamedTuple):
    """All statutory parameters for one rate schedule."""

    name: str
    bands: tuple[TaxBand, ...]
    pension: PensionRule
    insurance: InsuranceRule


# Monthly PAYE bands, pension and health insurance (reference jurisdiction)
_BANDS_2024 = (
    TaxBand(Decimal("0"), Decimal("5100"), Decimal("0")),
    TaxBand(Decimal("5100"), Decimal("7100"), Decimal("0.20")),
    TaxBand(Decimal("7100"), Decimal("9200"), Decimal("0.30")),
    TaxBand(Decimal("9200"), None, Decimal("0.37")),
)

RATE_SCHEDULES: dict[str, StatutoryRates] = {
    "2024": StatutoryRates(
        name="2024",
        bands=_BANDS_2024,
        pension=PensionRule(
            rate=Decimal("0.05"),
            ceiling=Decimal("26840"),
            cap_amount=Decimal("1342"),  # 5% of the ceiling
        ),
        insurance=InsuranceRule(rate=Decimal("0.01")),
    ),
}

DEFAULT_RATE_SCHEDULE = "2024"


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def schedule_from_mapping(name: str, data: dict[str, Any]) -> StatutoryRates:
    """Build a StatutoryRates from a plain mapping (e.g. parsed YAML).

    Expected shape::

        bands:
          - {floor: 0, ceiling: 5100, rate: 0}
          - {floor: 5100, ceiling: null, rate: 0.2}
        pension: {rate: 0.05, ceiling: 26840, cap_amount: 1342}
        insurance: {rate: 0.01}
    """
    bands = tuple(
        TaxBand(
            floor=_decimal(band["floor"]),
            ceiling=_decimal(band["ceiling"]) if band.get("ceiling") is not None else None,
            rate=_decimal(band["rate"]),
        )
        for band in data["bands"]
    )
    if not bands:
        raise ValueError(f"Rate schedule {name} defines no tax bands")
    if bands[0].floor != 0:
        raise ValueError(f"Rate schedule {name}: the first tax band must start at 0")
    if bands[-1].ceiling is not None:
        raise ValueError(f"Rate schedule {name}: the top tax band must have no ceiling")
    for lower, upper in zip(bands, bands[1:]):
        if lower.ceiling is None or lower.ceiling != upper.floor:
            raise ValueError(f"Rate schedule {name}: tax bands must be contiguous")
        if lower.ceiling <= lower.floor:
            raise ValueError(f"Rate schedule {name}: tax band ceilings must exceed their floors")

    pension_data = data["pension"]
    pension = PensionRule(
        rate=_decimal(pension_data["rate"]),
        ceiling=_decimal(pension_data["ceiling"]),
        cap_amount=_decimal(pension_data["cap_amount"]),
    )
    insurance = InsuranceRule(rate=_decimal(data["insurance"]["rate"]))

    rates = [("tax band", band.rate) for band in bands] + [
        ("pension", pension.rate),
        ("insurance", insurance.rate),
    ]
    for label, rate in rates:
        if not rate.is_finite() or not 0 <= rate <= 1:
            raise ValueError(
                f"Rate schedule {name}: {label} rate must be between 0 and 1, got {rate}"
            )
    if pension.ceiling < 0 or pension.cap_amount < 0:
        raise ValueError(f"Rate schedule {name}: pension ceiling and cap must be non-negative")

    return StatutoryRates(name=name, bands=bands, pension=pension, insurance=insurance)


def load_rate_schedules(filename: str) -> dict[str, StatutoryRates]:
    """Load extra rate schedules from a YAML file keyed by schedule name."""
    config = load_yaml_config(filename) or {}
    schedules = {
        str(name): schedule_from_mapping(str(name), data)
        for name, data in config.get("schedules", {}).items()
    }
    logger.info("Loaded %d rate schedule(s) from %s", len(schedules), filename)
    return schedules


def get_rate_schedule(name: str | None = None) -> StatutoryRates:
    """Resolve a schedule by name, falling back to the configured default."""
    name = name or settings.rate_schedule or DEFAULT_RATE_SCHEDULE
    schedules = dict(RATE_SCHEDULES)
    if settings.rate_schedule_file:
        schedules.update(load_rate_schedules(settings.rate_schedule_file))
    if name not in schedules:
        raise UnknownRateSchedule(name, list(schedules))
    return schedules[name]
