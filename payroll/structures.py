"""In-memory payroll structure registry with assignment tracking."""

import logging

from payroll.calculators.payslip import validate_structure
from payroll.exceptions import ReferentialIntegrityError, StructureNotFound
from payroll.models import PayrollStructure, RunSelection

logger = logging.getLogger(__name__)


class StructureRegistry:
    """Holds structures and which employee each is assigned to.

    Employees reference structures by id; an edit replaces the stored value,
    and a structure cannot be removed while any employee references it.
    """

    def __init__(self) -> None:
        self._structures: dict[str, PayrollStructure] = {}
        self._assignments: dict[str, str] = {}  # employee_id -> structure_id

    def create(self, structure: PayrollStructure) -> PayrollStructure:
        validate_structure(structure)
        if structure.id in self._structures:
            raise ValueError(f"Structure {structure.id} already exists")
        self._structures[structure.id] = structure
        logger.info("Created payroll structure %s (%s)", structure.id, structure.name)
        return structure

    def get(self, structure_id: str) -> PayrollStructure:
        try:
            return self._structures[structure_id]
        except KeyError:
            raise StructureNotFound(structure_id) from None

    def list_structures(self) -> list[PayrollStructure]:
        return list(self._structures.values())

    def update(self, structure_id: str, **changes: object) -> PayrollStructure:
        """Replace a structure with an edited copy.

        Runs already created keep the snapshot they took; only later
        selections see the change.
        """
        current = self.get(structure_id)
        updated = PayrollStructure.model_validate(
            {**current.model_dump(), **changes, "id": structure_id}
        )
        validate_structure(updated)
        self._structures[structure_id] = updated
        logger.info("Updated payroll structure %s", structure_id)
        return updated

    def delete(self, structure_id: str) -> None:
        self.get(structure_id)
        assigned = self.employees_for(structure_id)
        if assigned:
            raise ReferentialIntegrityError(structure_id, assigned)
        del self._structures[structure_id]
        logger.info("Deleted payroll structure %s", structure_id)

    def assign(self, employee_id: str, structure_id: str) -> None:
        self.get(structure_id)
        self._assignments[employee_id] = structure_id

    def unassign(self, employee_id: str) -> None:
        self._assignments.pop(employee_id, None)

    def structure_for(self, employee_id: str) -> PayrollStructure | None:
        structure_id = self._assignments.get(employee_id)
        return self._structures[structure_id] if structure_id else None

    def employees_for(self, structure_id: str) -> list[str]:
        return sorted(e for e, s in self._assignments.items() if s == structure_id)

    def selections_for(self, employee_ids: list[str]) -> list[RunSelection]:
        """Pair employees with their current structure for a payroll run.

        Employees without an assigned structure are skipped with a warning.
        """
        selections: list[RunSelection] = []
        for employee_id in employee_ids:
            structure = self.structure_for(employee_id)
            if structure is None:
                logger.warning("Employee %s has no payroll structure assigned", employee_id)
                continue
            selections.append(RunSelection(employee_id=employee_id, structure=structure))
        return selections
