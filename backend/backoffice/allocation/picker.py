"""
BatchPicker - distribute one allocation unit over its product's batches

The picker works on a private copy of the selection. Nothing reaches the
planner until save() hands the finished list back.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from backoffice.allocation.batches import AllocationEntry, BatchAvailability, total_quantity
from backoffice.allocation.errors import (
    AllocationShortfallError, SessionClosedError, UnknownBatchError
)
from backoffice.allocation.formatting import format_quantity, to_float
from backoffice.allocation.mix import QUANTITY_DECIMALS
from backoffice.allocation.units import AllocationUnit
from backoffice.core.config import settings

logger = logging.getLogger(__name__)


class BatchPicker:

    def __init__(
        self,
        unit: AllocationUnit,
        available_batches: Sequence[BatchAvailability],
        existing_allocation: Optional[Sequence[AllocationEntry]] = None,
        *,
        tolerance: Optional[float] = None,
        on_save: Optional[Callable[[AllocationUnit, List[AllocationEntry]], None]] = None,
    ):
        self.unit = unit
        self.tolerance = settings.ALLOCATION_TOLERANCE if tolerance is None else tolerance
        self._on_save = on_save
        self._batches: Dict[str, BatchAvailability] = {}
        self.update_availability(available_batches)
        self._selection: List[AllocationEntry] = [e.model_copy() for e in (existing_allocation or [])]
        self.closed = False

    # ===== State =====

    @property
    def available_batches(self) -> List[BatchAvailability]:
        return list(self._batches.values())

    @property
    def selection(self) -> List[AllocationEntry]:
        return [e.model_copy() for e in self._selection]

    @property
    def selected_total(self) -> float:
        return total_quantity(self._selection)

    @property
    def remaining(self) -> float:
        return max(0.0, self.unit.required_quantity - self.selected_total)

    @property
    def is_fully_allocated(self) -> bool:
        return self.remaining < self.tolerance

    def selected_quantity(self, batch: str) -> float:
        entry = self._find(batch)
        return entry.quantity if entry else 0.0

    def update_availability(self, batches: Sequence[BatchAvailability]) -> None:
        """Replace the availability snapshot; later clamps use these totals"""
        self._batches = {b.batch: b for b in batches}

    # ===== Editing =====

    def set_batch_quantity(self, batch: str, quantity: float) -> float:
        """
        Clamp quantity to [0, batch total] and store it

        Input that is not a number (None, NaN, text) counts as 0. Zero removes
        the batch from the selection. Returns the stored quantity, rounded to
        the 3 decimals allocation rows keep.
        """
        self._check_open()
        info = self._batches.get(batch)
        if info is None:
            raise UnknownBatchError(batch)

        clamped = round(min(max(to_float(quantity), 0.0), info.total_quantity), QUANTITY_DECIMALS)
        index = self._index(batch)

        if clamped <= 0:
            if index is not None:
                del self._selection[index]
            return 0.0

        entry = AllocationEntry(batch=batch, quantity=clamped, unit=info.unit)
        if index is None:
            self._selection.append(entry)
        else:
            self._selection[index] = entry
        return clamped

    def select_all_for_batch(self, batch: str) -> float:
        """Take as much of the remaining need as this batch can supply"""
        self._check_open()
        info = self._batches.get(batch)
        if info is None:
            raise UnknownBatchError(batch)
        wanted = self.remaining + self.selected_quantity(batch)
        return self.set_batch_quantity(batch, min(info.total_quantity, wanted))

    def clear_batch(self, batch: str) -> None:
        self._check_open()
        self._selection = [e for e in self._selection if e.batch != batch]

    # ===== Finish =====

    def save(self) -> List[AllocationEntry]:
        """
        Finish the selection

        Raises:
            AllocationShortfallError: less selected than the unit requires
        """
        self._check_open()
        required = self.unit.required_quantity
        selected = self.selected_total
        if selected + self.tolerance < required:
            raise AllocationShortfallError(
                f"Insufficient allocation. Required: {format_quantity(required, self.unit.unit)}, "
                f"selected: {format_quantity(selected, self.unit.unit)}",
                required=required,
                selected=selected,
                unit=self.unit.unit,
            )

        result = self.selection
        if self._on_save is not None:
            self._on_save(self.unit, result)
        logger.debug(f"Batches selected for {self.unit.key}: {[(e.batch, e.quantity) for e in result]}")
        self.closed = True
        return result

    def cancel(self) -> None:
        self.closed = True

    # ===== Internals =====

    def _check_open(self):
        if self.closed:
            raise SessionClosedError("Batch selection is closed")

    def _index(self, batch: str) -> Optional[int]:
        for i, entry in enumerate(self._selection):
            if entry.batch == batch:
                return i
        return None

    def _find(self, batch: str) -> Optional[AllocationEntry]:
        index = self._index(batch)
        return None if index is None else self._selection[index]
