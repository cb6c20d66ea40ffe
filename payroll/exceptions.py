"""Typed exceptions for the payroll engine.

Every error carries a machine-readable ``code`` so callers (and the HTTP
layer) can branch on type instead of parsing messages.

    PayrollError
    |
    +-- CalculationError          (local to one employee's payslip)
    |   +-- InvalidAmount
    |   +-- InvalidComponent
    |   +-- InvalidStructure
    |   +-- InvalidInput
    |   +-- NegativeNetPay
    |
    +-- RunError                  (structural, surfaced to the caller)
    |   +-- IncompleteRun
    |   +-- InvalidStatusTransition
    |   +-- RunNotFound
    |
    +-- StructureError
    |   +-- ReferentialIntegrityError
    |   +-- StructureNotFound
    |
    +-- UnknownRateSchedule
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from payroll.models import PayslipLineItem


class PayrollError(Exception):
    """Base class for all payroll engine errors."""

    code: str = "PAYROLL_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# --- Per-employee calculation errors ---


class CalculationError(PayrollError):
    """An error confined to a single employee's calculation."""

    code = "CALCULATION_ERROR"


class InvalidAmount(CalculationError, ValueError):
    """A monetary amount could not be constructed.

    Also a ValueError so pydantic reports it as a validation error when
    Money is parsed from request or config data.
    """

    code = "INVALID_AMOUNT"


class InvalidComponent(CalculationError):
    """An allowance or deduction definition cannot be evaluated."""

    code = "INVALID_COMPONENT"

    def __init__(self, message: str, component_id: str | None = None) -> None:
        self.component_id = component_id
        super().__init__(message)


class InvalidStructure(CalculationError):
    """A payroll structure is malformed as a whole."""

    code = "INVALID_STRUCTURE"

    def __init__(self, message: str, structure_id: str | None = None) -> None:
        self.structure_id = structure_id
        super().__init__(message)


class InvalidInput(CalculationError):
    """A statutory formula received an input outside its domain."""

    code = "INVALID_INPUT"


class NegativeNetPay(CalculationError):
    """Deductions exceed gross pay.

    Only raised when the caller asks for negative net pay to be blocked;
    otherwise it is reported as a warning on the line item. The computed
    item is attached so the caller can still inspect it.
    """

    code = "NEGATIVE_NET_PAY"

    def __init__(self, message: str, payslip: PayslipLineItem | None = None) -> None:
        self.payslip = payslip
        super().__init__(message)


# --- Run-level errors ---


class RunError(PayrollError):
    """A run's lifecycle rules were broken."""

    code = "RUN_ERROR"


class IncompleteRun(RunError):
    """A run cannot finish because some employees have no outcome."""

    code = "INCOMPLETE_RUN"

    def __init__(self, run_id: str, missing: list[str] | None = None) -> None:
        self.run_id = run_id
        self.missing = missing or []
        if self.missing:
            message = (
                f"Run {run_id} is incomplete: no item or error for "
                f"{', '.join(self.missing)}"
            )
        else:
            message = f"Run {run_id} still has calculations in flight"
        super().__init__(message)


class InvalidStatusTransition(RunError):
    """Requested lifecycle transition is not allowed from the current status."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, run_id: str, current: str, target: str) -> None:
        self.run_id = run_id
        self.current = current
        self.target = target
        super().__init__(f"Run {run_id}: cannot transition from '{current}' to '{target}'")


class RunNotFound(RunError):
    code = "RUN_NOT_FOUND"

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


# --- Structure registry errors ---


class StructureError(PayrollError):
    code = "STRUCTURE_ERROR"


class ReferentialIntegrityError(StructureError):
    """A structure cannot be deleted while employees reference it."""

    code = "REFERENTIAL_INTEGRITY"

    def __init__(self, structure_id: str, employee_ids: list[str]) -> None:
        self.structure_id = structure_id
        self.employee_ids = employee_ids
        super().__init__(
            f"Structure {structure_id} is assigned to {len(employee_ids)} "
            f"employee(s) and cannot be deleted"
        )


class StructureNotFound(StructureError):
    code = "STRUCTURE_NOT_FOUND"

    def __init__(self, structure_id: str) -> None:
        self.structure_id = structure_id
        super().__init__(f"Payroll structure {structure_id} not found")


class UnknownRateSchedule(PayrollError):
    code = "UNKNOWN_RATE_SCHEDULE"

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(
            f"Unknown rate schedule: {name}. Available: {', '.join(sorted(available))}"
        )
