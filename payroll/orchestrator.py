"""Payroll run orchestrator: fan payslip calculations out over a run.

Lifecycle::

    draft --start()--> processing --finish()--> completed
    draft | processing --cancel()--> cancelled

``start()`` runs one task per selected employee, bounded by a semaphore,
and collects their outcomes in a single coroutine; workers never touch the
run itself. One employee's failure becomes an ItemError on the run and the
rest of the batch carries on.
"""

import asyncio
import logging
from datetime import UTC, date, datetime

from config.settings import settings
from payroll.calculators.money import Money, total
from payroll.calculators.payslip import calculate_payslip
from payroll.calculators.rates import StatutoryRates, get_rate_schedule
from payroll.exceptions import (
    CalculationError,
    IncompleteRun,
    InvalidStatusTransition,
    RunNotFound,
)
from payroll.models import (
    ItemError,
    PayrollRun,
    PayslipLineItem,
    RunEvent,
    RunSelection,
    RunStatus,
    RunTotals,
)

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[RunStatus, set[RunStatus]] = {
    RunStatus.DRAFT: {RunStatus.PROCESSING, RunStatus.CANCELLED},
    RunStatus.PROCESSING: {RunStatus.COMPLETED, RunStatus.CANCELLED},
    RunStatus.COMPLETED: set(),  # terminal
    RunStatus.CANCELLED: set(),  # terminal
}

TIMEOUT_ERROR_CODE = "CALCULATION_TIMEOUT"
UNEXPECTED_ERROR_CODE = "UNEXPECTED_ERROR"

_Outcome = tuple[PayslipLineItem | None, ItemError | None]


def _now() -> datetime:
    return datetime.now(UTC)


def summarize_items(items: list[PayslipLineItem]) -> RunTotals:
    """Sum payslip figures across a run."""
    return RunTotals(
        gross_pay=total([i.gross_pay for i in items]),
        income_tax=total([i.income_tax for i in items]),
        pension_contribution=total([i.pension_contribution for i in items]),
        insurance_levy=total([i.insurance_levy for i in items]),
        other_deductions=total(
            [i.other_pre_tax_deductions + i.other_post_tax_deductions for i in items]
        ),
        total_deductions=total([i.total_deductions for i in items]),
        net_pay=total([i.net_pay for i in items]),
    )


class PayrollOrchestrator:
    """Creates payroll runs and drives them through their lifecycle."""

    def __init__(
        self,
        rates: StatutoryRates | None = None,
        *,
        max_workers: int | None = None,
        timeout: float | None = None,
        block_negative_net_pay: bool | None = None,
    ) -> None:
        self._rates = rates or get_rate_schedule()
        self._max_workers = max(1, max_workers or settings.max_workers)
        self._timeout = settings.run_timeout if timeout is None else (timeout or None)
        self._block_negative_net_pay = (
            settings.block_negative_net_pay
            if block_negative_net_pay is None
            else block_negative_net_pay
        )
        self._runs: dict[str, PayrollRun] = {}
        self._run_rates: dict[str, StatutoryRates] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._in_flight: set[str] = set()

    @property
    def rates(self) -> StatutoryRates:
        """Schedule new runs are calculated with unless told otherwise."""
        return self._rates

    # --- Lookup ---

    def get(self, run_id: str) -> PayrollRun:
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFound(run_id) from None

    def list_runs(self, status: RunStatus | None = None) -> list[PayrollRun]:
        runs = sorted(self._runs.values(), key=lambda r: r.created_at)
        if status is None:
            return runs
        return [r for r in runs if r.status == status]

    # --- Lifecycle ---

    def create(
        self,
        period: str,
        payment_date: date,
        selections: list[RunSelection],
        *,
        notes: str | None = None,
        processed_by: str | None = None,
        rates: StatutoryRates | None = None,
    ) -> PayrollRun:
        """Create a draft run for the selected employees.

        Each selected structure is copied and the rate schedule is pinned to
        the run, so later edits to a structure or schedule do not change what
        this run (or its regeneration) computes.

        Raises:
            ValueError: If an employee is selected more than once.
        """
        seen: set[str] = set()
        for selection in selections:
            if selection.employee_id in seen:
                raise ValueError(f"Employee {selection.employee_id} selected more than once")
            seen.add(selection.employee_id)

        rates = rates or self._rates
        run = PayrollRun(
            period=period,
            payment_date=payment_date,
            rate_schedule=rates.name,
            selections=[
                RunSelection(
                    employee_id=s.employee_id,
                    structure=s.structure.model_copy(deep=True),
                )
                for s in selections
            ],
            notes=notes,
            processed_by=processed_by,
        )
        run.history.append(RunEvent(
            action="create",
            description=f"Payroll run created for {len(selections)} employee(s)",
            to_status=RunStatus.DRAFT,
        ))
        self._run_rates[run.id] = rates
        self._runs[run.id] = run
        logger.info("Created payroll run %s for %s (%d employees)", run.id, period, len(selections))
        return run

    async def start(self, run_id: str, *, timeout: float | None = None) -> PayrollRun:
        """Calculate a payslip for every selected employee.

        Args:
            run_id: A run in ``draft``.
            timeout: Seconds to wait for all calculations; employees still
                outstanding afterwards get a CALCULATION_TIMEOUT error.
                Defaults to the orchestrator's timeout.

        Returns:
            The run, now ``processing`` with one item or error per employee
            (or ``cancelled`` if cancel() was called meanwhile).
        """
        run = self.get(run_id)
        self._transition(
            run, RunStatus.PROCESSING, "process",
            f"Calculating payslips for {len(run.selections)} employee(s)",
        )
        run.processed_at = _now()

        cancelled = asyncio.Event()
        self._cancel_events[run.id] = cancelled
        self._in_flight.add(run.id)

        rates = self._run_rates[run.id]
        semaphore = asyncio.Semaphore(self._max_workers)
        tasks = [
            asyncio.create_task(self._calculate(selection, rates, semaphore, cancelled))
            for selection in run.selections
        ]
        limit = self._timeout if timeout is None else (timeout or None)

        try:
            async with asyncio.timeout(limit):
                for next_done in asyncio.as_completed(tasks):
                    outcome = await next_done
                    if cancelled.is_set():
                        break
                    if outcome is not None:
                        self._record(run, outcome)
        except TimeoutError:
            if not cancelled.is_set():
                self._record_timeouts(run, limit)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._in_flight.discard(run.id)
            self._cancel_events.pop(run.id, None)

        if run.status == RunStatus.PROCESSING:
            order = {s.employee_id: i for i, s in enumerate(run.selections)}
            run.items.sort(key=lambda item: order[item.employee_id])
            run.errors.sort(key=lambda error: order[error.employee_id])
            logger.info(
                "Run %s calculated: %d payslip(s), %d error(s)",
                run.id, len(run.items), len(run.errors),
            )
        return run

    def finish(self, run_id: str) -> PayrollRun:
        """Aggregate totals and complete a processing run.

        Raises:
            InvalidStatusTransition: If the run is not ``processing``.
            IncompleteRun: If calculations are still in flight, or some
                selected employee has neither an item nor an error.
        """
        run = self.get(run_id)
        self._check_transition(run, RunStatus.COMPLETED)
        if run.id in self._in_flight:
            raise IncompleteRun(run.id)

        accounted = {i.employee_id for i in run.items} | {e.employee_id for e in run.errors}
        missing = [s.employee_id for s in run.selections if s.employee_id not in accounted]
        if missing:
            raise IncompleteRun(run.id, missing)

        run.totals = summarize_items(run.items)
        run.total_amount = run.totals.net_pay
        run.employee_count = len(run.items)
        self._transition(
            run, RunStatus.COMPLETED, "complete",
            f"{run.employee_count} payslip(s), {len(run.errors)} error(s), "
            f"total {run.total_amount}",
        )
        run.completed_at = _now()
        if run.errors:
            logger.warning(
                "Run %s completed with %d employee error(s)", run.id, len(run.errors)
            )
        return run

    def cancel(self, run_id: str, reason: str | None = None) -> PayrollRun:
        """Cancel a draft or processing run, discarding partial results."""
        run = self.get(run_id)
        self._transition(run, RunStatus.CANCELLED, "cancel", reason or "Payroll run cancelled")

        event = self._cancel_events.get(run.id)
        if event is not None:
            event.set()

        run.items = []
        run.errors = []
        run.total_amount = Money.zero()
        run.employee_count = 0
        run.totals = RunTotals()
        run.cancelled_at = _now()
        if reason:
            note = f"Cancelled: {reason}"
            run.notes = f"{run.notes}\n{note}" if run.notes else note
        return run

    async def regenerate(self, run_id: str) -> PayrollRun:
        """Recompute a completed run from its frozen selections.

        The source run is left untouched; a new completed run referencing
        it through ``regenerated_from`` is returned. Same snapshots and
        rate schedule give identical monetary results.
        """
        source = self.get(run_id)
        if source.status != RunStatus.COMPLETED:
            raise InvalidStatusTransition(source.id, source.status.value, "regenerate")

        run = self.create(
            source.period,
            source.payment_date,
            source.selections,
            notes=f"Regenerated from {source.id}",
            processed_by=source.processed_by,
            rates=self._run_rates[source.id],
        )
        run.regenerated_from = source.id
        await self.start(run.id)
        self.finish(run.id)

        if run.total_amount != source.total_amount:
            logger.warning(
                "Regenerated run %s total %s differs from source %s total %s",
                run.id, run.total_amount, source.id, source.total_amount,
            )
        return run

    async def execute(
        self,
        period: str,
        payment_date: date,
        selections: list[RunSelection],
        *,
        notes: str | None = None,
        processed_by: str | None = None,
        rates: StatutoryRates | None = None,
        timeout: float | None = None,
    ) -> PayrollRun:
        """Create, start and finish a run in one call."""
        run = self.create(
            period, payment_date, selections,
            notes=notes, processed_by=processed_by, rates=rates,
        )
        await self.start(run.id, timeout=timeout)
        if run.status == RunStatus.CANCELLED:
            return run
        return self.finish(run.id)

    # --- Internals ---

    async def _calculate(
        self,
        selection: RunSelection,
        rates: StatutoryRates,
        semaphore: asyncio.Semaphore,
        cancelled: asyncio.Event,
    ) -> _Outcome | None:
        """Worker: compute one payslip and hand the outcome back."""
        async with semaphore:
            if cancelled.is_set():
                return None
            employee_id = selection.employee_id
            try:
                item = await asyncio.to_thread(
                    calculate_payslip,
                    employee_id,
                    selection.structure,
                    rates,
                    block_negative_net_pay=self._block_negative_net_pay,
                )
            except CalculationError as e:
                logger.warning("Payslip for employee %s failed: %s", employee_id, e.message)
                return None, ItemError(employee_id=employee_id, code=e.code, message=e.message)
            except Exception as e:
                logger.exception("Unexpected error calculating employee %s", employee_id)
                return None, ItemError(
                    employee_id=employee_id, code=UNEXPECTED_ERROR_CODE, message=str(e)
                )
            if cancelled.is_set():
                return None
            return item, None

    def _record(self, run: PayrollRun, outcome: _Outcome) -> None:
        item, error = outcome
        if item is not None:
            run.items.append(item)
        elif error is not None:
            run.errors.append(error)

    def _record_timeouts(self, run: PayrollRun, limit: float | None) -> None:
        accounted = {i.employee_id for i in run.items} | {e.employee_id for e in run.errors}
        for selection in run.selections:
            if selection.employee_id in accounted:
                continue
            logger.warning(
                "Payslip for employee %s timed out after %ss in run %s",
                selection.employee_id, limit, run.id,
            )
            run.errors.append(ItemError(
                employee_id=selection.employee_id,
                code=TIMEOUT_ERROR_CODE,
                message=f"Calculation did not finish within {limit} seconds",
            ))

    def _check_transition(self, run: PayrollRun, target: RunStatus) -> None:
        if target not in _TRANSITIONS[run.status]:
            raise InvalidStatusTransition(run.id, run.status.value, target.value)

    def _transition(
        self, run: PayrollRun, target: RunStatus, action: str, description: str
    ) -> None:
        self._check_transition(run, target)
        previous = run.status
        run.status = target
        run.history.append(RunEvent(
            action=action,
            description=description,
            from_status=previous,
            to_status=target,
        ))
        logger.info("Run %s: %s -> %s (%s)", run.id, previous.value, target.value, description)
