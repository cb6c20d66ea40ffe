"""CLI script for running a payroll from a YAML file.

Usage:
    # Run the bundled sample (config/sample_payroll.yaml)
    python scripts/run_payroll.py

    # Run your own payroll file
    python scripts/run_payroll.py path/to/payroll.yaml

    # Use another rate schedule, fewer workers and a tighter timeout
    python scripts/run_payroll.py --schedule 2024 --workers 2 --timeout 5

    # Verbose logging
    python scripts/run_payroll.py -v

The file lists ``structures`` (payroll structure definitions) and
``employees`` (``id`` plus the ``structure`` id assigned to them), along
with the ``period`` and ``payment_date`` of the run.

A structure that fails validation is logged and skipped, and so are the
employees assigned to it; the rest of the payroll still runs and the exit
code is 1. An employee assigned to a structure id the file never defines
aborts the run with exit code 2.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import load_yaml_config
from config.settings import settings
from payroll.calculators.rates import get_rate_schedule
from payroll.exceptions import PayrollError
from payroll.models import PayrollRun, PayrollStructure
from payroll.orchestrator import PayrollOrchestrator
from payroll.structures import StructureRegistry

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a payroll through the calculation engine")
    parser.add_argument(
        "file",
        nargs="?",
        default="sample_payroll.yaml",
        help="Payroll YAML file (default: config/sample_payroll.yaml)",
    )
    parser.add_argument("--schedule", help="Rate schedule name (default: from settings)")
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.max_workers,
        help=f"Concurrent calculations (default: {settings.max_workers})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.run_timeout_seconds,
        help="Seconds to wait for all payslips; 0 disables (default: %(default)s)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def load_payroll(filename: str) -> dict[str, Any]:
    """Read a payroll file from a path, or by name from config/."""
    path = Path(filename)
    return load_yaml_config(str(path.resolve()) if path.exists() else filename) or {}


def build_registry(
    config: dict[str, Any],
) -> tuple[StructureRegistry, list[str], list[str]]:
    """Register structures and employee assignments from a payroll file.

    Returns:
        The registry, the employee ids to run, and the employee ids skipped
        because their structure failed validation.
    """
    registry = StructureRegistry()
    rejected: set[str] = set()
    for data in config.get("structures", []):
        try:
            registry.create(PayrollStructure.model_validate(data))
        except (PayrollError, ValueError) as e:
            structure_id = str(data.get("id", "?")) if isinstance(data, dict) else "?"
            logger.error("Skipping structure %s: %s", structure_id, e)
            rejected.add(structure_id)

    employee_ids: list[str] = []
    skipped: list[str] = []
    for employee in config.get("employees", []):
        employee_id = str(employee["id"])
        structure_id = str(employee["structure"])
        if structure_id in rejected:
            logger.warning(
                "Skipping employee %s: structure %s was rejected", employee_id, structure_id
            )
            skipped.append(employee_id)
            continue
        registry.assign(employee_id, structure_id)
        employee_ids.append(employee_id)
    return registry, employee_ids, skipped


async def run(args: argparse.Namespace) -> tuple[PayrollRun, list[str]]:
    config = load_payroll(args.file)
    registry, employee_ids, skipped = build_registry(config)
    logger.info(
        "Loaded %d structure(s) and %d employee(s) from %s",
        len(registry.list_structures()), len(employee_ids), args.file,
    )

    orchestrator = PayrollOrchestrator(
        get_rate_schedule(args.schedule),
        max_workers=args.workers,
        timeout=args.timeout,
    )
    payroll_run = await orchestrator.execute(
        str(config["period"]),
        config["payment_date"],
        registry.selections_for(employee_ids),
        notes=config.get("notes"),
        processed_by=config.get("processed_by"),
    )
    return payroll_run, skipped


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else settings.log_level
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    try:
        payroll_run, skipped = asyncio.run(run(args))
    except PayrollError as e:
        logger.error("%s: %s", e.code, e.message)
        return 2

    sys.stdout.write(payroll_run.model_dump_json(indent=2, exclude={"selections"}) + "\n")
    logger.info(
        "Done: %d payslip(s), %d error(s), total net pay %s",
        payroll_run.employee_count, len(payroll_run.errors), payroll_run.total_amount,
    )
    if skipped:
        logger.warning("%d employee(s) skipped: %s", len(skipped), ", ".join(skipped))
    return 1 if payroll_run.errors or skipped else 0


if __name__ == "__main__":
    sys.exit(main())
