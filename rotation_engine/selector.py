"""
Round-robin unit selection.

Pure functions over a catalog (units ordered by id) and an intern's placement
history. Nothing here touches the database; the counter value is passed in and
advanced by the caller after a successful insert.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Set


class SelectionOutcome(str, Enum):
    SELECTED = "selected"
    CYCLE_COMPLETE = "cycle_complete"
    NOT_FOUND = "not_found"


@dataclass
class Selection:
    outcome: SelectionOutcome
    unit: Optional[object] = None

    @property
    def selected(self) -> bool:
        return self.outcome == SelectionOutcome.SELECTED


def is_automatic(p) -> bool:
    """Engine-generated placement; extension overrides keep their coverage."""
    return (not p.is_manual_assignment) or bool(getattr(p, "auto_generated", False))


def _ordered(catalog: Sequence) -> List:
    return sorted(catalog, key=lambda u: u.id)


def initial_unit(catalog: Sequence, counter_value: int):
    """Starting unit for an intern with no history: catalog[counter mod N]."""
    units = _ordered(catalog)
    if not units:
        return None
    return units[counter_value % len(units)]


def partition_cycles(placements: Sequence, catalog: Sequence) -> List[List]:
    """
    Split automatic placements (start-date order) into consecutive cycles.
    A cycle closes as soon as its unit ids cover the whole catalog; the last
    group is the current cycle and may be incomplete (or empty).
    """
    catalog_ids = {u.id for u in catalog}
    autos = sorted((p for p in placements if is_automatic(p)), key=lambda p: (p.start_date, p.id or 0))
    cycles: List[List] = [[]]
    covered: Set[int] = set()
    for p in autos:
        cycles[-1].append(p)
        if p.unit_id in catalog_ids:
            covered.add(p.unit_id)
        if catalog_ids and covered >= catalog_ids:
            cycles.append([])
            covered = set()
    return cycles


def current_cycle_units(placements: Sequence, catalog: Sequence) -> Set[int]:
    return {p.unit_id for p in partition_cycles(placements, catalog)[-1]}


def completed_cycles(placements: Sequence, catalog: Sequence) -> int:
    return len(partition_cycles(placements, catalog)) - 1


def covers_catalog(placements: Sequence, catalog: Sequence) -> bool:
    """Every catalog unit appears in at least one automatic placement."""
    catalog_ids = {u.id for u in catalog}
    if not catalog_ids:
        return False
    return {p.unit_id for p in placements if is_automatic(p)} >= catalog_ids


def _walk_from(units: List, last_unit_id: int) -> List:
    """Catalog order starting just after `last_unit_id`, wrapping around."""
    ids = [u.id for u in units]
    if last_unit_id in ids:
        start = ids.index(last_unit_id) + 1
    else:
        # unit left the catalog: continue at the next larger id
        start = next((i for i, uid in enumerate(ids) if uid > last_unit_id), 0)
    return units[start:] + units[:start]


def select_next_unit(
    catalog: Sequence,
    placements: Sequence,
    last_placement=None,
    counter_value: Optional[int] = None,
    start_new_cycle: bool = False,
) -> Selection:
    """
    Choose the next unit for an intern.

    Args:
        catalog: units (any order; walked by id)
        placements: the intern's full placement history
        last_placement: most recent placement by end date, any kind (None = no history)
        counter_value: round-robin counter, required when there is no history
        start_new_cycle: ignore coverage of a just-completed cycle (extension case)

    Returns:
        Selection with SELECTED + unit, CYCLE_COMPLETE, or NOT_FOUND.
    """
    units = _ordered(catalog)
    if not units:
        return Selection(SelectionOutcome.NOT_FOUND)

    if last_placement is None:
        if counter_value is None:
            raise ValueError("counter_value is required for an intern without history")
        return Selection(SelectionOutcome.SELECTED, initial_unit(units, counter_value))

    cycles = partition_cycles(placements, units)
    covered = {p.unit_id for p in cycles[-1]}
    if len(cycles) > 1 and not covered and not start_new_cycle:
        return Selection(SelectionOutcome.CYCLE_COMPLETE)

    for unit in _walk_from(units, last_placement.unit_id):
        if unit.id not in covered:
            return Selection(SelectionOutcome.SELECTED, unit)
    # not reached: an open cycle always misses at least one unit
    return Selection(SelectionOutcome.CYCLE_COMPLETE)
