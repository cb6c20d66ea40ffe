"""API routes for the payroll engine."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config.settings import settings
from payroll.calculators.payslip import calculate_payslip
from payroll.calculators.rates import get_rate_schedule
from payroll.exceptions import (
    CalculationError,
    IncompleteRun,
    InvalidStatusTransition,
    PayrollError,
    ReferentialIntegrityError,
    RunNotFound,
    StructureNotFound,
    UnknownRateSchedule,
)
from payroll.models import PayrollRun, PayrollStructure, PayslipLineItem, RunSelection, RunStatus

logger = logging.getLogger(__name__)

router = APIRouter()


class CalculatePayslipRequest(BaseModel):
    """Request body for the /payslips/calculate endpoint."""

    employee_id: str
    structure: PayrollStructure
    rate_schedule: str | None = None


class CreateRunRequest(BaseModel):
    """Request body for creating a payroll run."""

    period: str
    payment_date: date
    employees: list[RunSelection]
    notes: str | None = None
    processed_by: str | None = None
    rate_schedule: str | None = None


class StartRunRequest(BaseModel):
    timeout: float | None = None


class CancelRunRequest(BaseModel):
    reason: str | None = None


class TaxBandResponse(BaseModel):
    floor: Decimal
    ceiling: Decimal | None
    rate: Decimal


class RateScheduleResponse(BaseModel):
    """Statutory parameters of one rate schedule."""

    name: str
    bands: list[TaxBandResponse]
    pension_rate: Decimal
    pension_ceiling: Decimal
    pension_cap_amount: Decimal
    insurance_rate: Decimal


# --- Error mapping ---

_NOT_FOUND = (RunNotFound, StructureNotFound, UnknownRateSchedule)
_CONFLICT = (InvalidStatusTransition, IncompleteRun, ReferentialIntegrityError)


def error_status(exc: PayrollError) -> int:
    """HTTP status code for an engine error."""
    if isinstance(exc, _NOT_FOUND):
        return 404
    if isinstance(exc, _CONFLICT):
        return 409
    if isinstance(exc, CalculationError):
        return 422
    return 400


async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
    """Render an engine error as ``{"error": code, "message": ...}``."""
    status_code = error_status(exc)
    logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.code)
    return JSONResponse({"error": exc.code, "message": exc.message}, status_code=status_code)


# --- Endpoints ---


@router.get("/health")
async def health(request: Request) -> dict:  # type: ignore[type-arg]
    """Health check endpoint with run counts."""
    orchestrator = request.app.state.orchestrator
    runs = orchestrator.list_runs()
    return {
        "status": "ok",
        "rate_schedule": orchestrator.rates.name,
        "runs": {status.value: sum(r.status == status for r in runs) for status in RunStatus},
    }


@router.get("/rates/{schedule}", response_model=RateScheduleResponse)
async def rates(schedule: str) -> RateScheduleResponse:
    """Show the bands, pension and insurance parameters of a schedule."""
    found = get_rate_schedule(schedule)
    return RateScheduleResponse(
        name=found.name,
        bands=[TaxBandResponse(floor=b.floor, ceiling=b.ceiling, rate=b.rate) for b in found.bands],
        pension_rate=found.pension.rate,
        pension_ceiling=found.pension.ceiling,
        pension_cap_amount=found.pension.cap_amount,
        insurance_rate=found.insurance.rate,
    )


@router.post("/payslips/calculate", response_model=PayslipLineItem)
async def calculate(body: CalculatePayslipRequest, request: Request) -> PayslipLineItem:
    """Preview a single payslip without creating a run."""
    orchestrator = request.app.state.orchestrator
    schedule = get_rate_schedule(body.rate_schedule) if body.rate_schedule else orchestrator.rates
    return calculate_payslip(
        body.employee_id,
        body.structure,
        schedule,
        block_negative_net_pay=settings.block_negative_net_pay,
    )


@router.post("/runs", response_model=PayrollRun, status_code=201)
async def create_run(body: CreateRunRequest, request: Request) -> PayrollRun | JSONResponse:
    """Create a draft payroll run."""
    orchestrator = request.app.state.orchestrator
    schedule = get_rate_schedule(body.rate_schedule) if body.rate_schedule else None
    try:
        return orchestrator.create(
            body.period,
            body.payment_date,
            body.employees,
            notes=body.notes,
            processed_by=body.processed_by,
            rates=schedule,
        )
    except ValueError as e:
        return JSONResponse({"error": "INVALID_SELECTION", "message": str(e)}, status_code=422)


@router.get("/runs", response_model=list[PayrollRun])
async def list_runs(request: Request, status: RunStatus | None = None) -> list[PayrollRun]:
    return request.app.state.orchestrator.list_runs(status)


@router.get("/runs/{run_id}", response_model=PayrollRun)
async def get_run(run_id: str, request: Request) -> PayrollRun:
    return request.app.state.orchestrator.get(run_id)


@router.post("/runs/{run_id}/start", response_model=PayrollRun)
async def start_run(
    run_id: str, request: Request, body: StartRunRequest | None = None
) -> PayrollRun:
    """Calculate every selected employee's payslip."""
    timeout = body.timeout if body else None
    return await request.app.state.orchestrator.start(run_id, timeout=timeout)


@router.post("/runs/{run_id}/finish", response_model=PayrollRun)
async def finish_run(run_id: str, request: Request) -> PayrollRun:
    """Aggregate totals and mark the run completed."""
    return request.app.state.orchestrator.finish(run_id)


@router.post("/runs/{run_id}/cancel", response_model=PayrollRun)
async def cancel_run(
    run_id: str, request: Request, body: CancelRunRequest | None = None
) -> PayrollRun:
    reason = body.reason if body else None
    return request.app.state.orchestrator.cancel(run_id, reason)


@router.post("/runs/{run_id}/regenerate", response_model=PayrollRun, status_code=201)
async def regenerate_run(run_id: str, request: Request) -> PayrollRun:
    """Recompute a completed run into a new run."""
    return await request.app.state.orchestrator.regenerate(run_id)
