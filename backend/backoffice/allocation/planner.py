"""
AllocationPlanner - one batch allocation session for one order

open() loads the order, the allocations saved earlier and the batch
availability for every product involved. The operator then fills units
through BatchPicker (or auto_allocate) and save() submits everything in a
single request once each unit's allocated total equals its requirement.

Load failures only produce warnings. Responses that arrive after close(),
or after the planner was reopened for another order, are dropped.
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from backoffice.allocation.batches import AllocationEntry, BatchAvailability, merge_entries, total_quantity
from backoffice.allocation.client import OrderServiceClient
from backoffice.allocation.errors import (
    AllocationError, AllocationMismatchError, ServiceError, SessionClosedError, UnknownUnitError
)
from backoffice.allocation.formatting import (
    format_currency, format_number, format_quantity, quantities_match, to_float
)
from backoffice.allocation.notifications import NotificationService
from backoffice.allocation.picker import BatchPicker
from backoffice.allocation.throttle import Throttle
from backoffice.allocation.units import (
    AllocationUnit, SkippedItem, UnitGroup,
    compute_allocation_units, distinct_product_ids, group_units
)
from backoffice.core.config import settings

logger = logging.getLogger(__name__)


class AllocationPlanner:

    def __init__(
        self,
        client: OrderServiceClient,
        notifications: Optional[NotificationService] = None,
        *,
        tolerance: Optional[float] = None,
        throttle: Optional[Throttle] = None,
    ):
        self.client = client
        self.notifications = notifications or NotificationService()
        self.tolerance = settings.ALLOCATION_TOLERANCE if tolerance is None else tolerance
        self.throttle = throttle or Throttle(settings.SAVE_THROTTLE_SECONDS)

        self.order: Optional[Dict[str, Any]] = None
        self.units: List[AllocationUnit] = []
        self.groups: List[UnitGroup] = []
        self.skipped: List[SkippedItem] = []
        self.batches: Dict[int, List[BatchAvailability]] = {}
        self.warnings: List[str] = []
        self.loading = False
        self.committed = False

        self._allocations: Dict[str, List[AllocationEntry]] = {}
        self._generation = 0
        self._open = False
        self._saving = False

    # ===== Session =====

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def order_id(self) -> Any:
        return self.order.get("id") if self.order else None

    async def open(self, order: Union[Mapping[str, Any], int, str]) -> None:
        """
        Start a session for an order (a mapping with at least "id", or the id itself)

        Items are fetched when the mapping has none. Saved allocations are
        fetched at the same time; batch availability follows once the
        units are known.
        """
        self._reset()
        self._open = True
        generation = self._generation

        if isinstance(order, Mapping):
            self.order = dict(order)
        else:
            self.order = {"id": order}

        order_id = self.order.get("id")
        need_items = not self.order.get("items")

        self.loading = True
        try:
            fetches = [self._load_saved_allocations(generation, order_id)]
            if need_items and order_id is not None:
                fetches.insert(0, self._load_order(generation, order_id))
            await asyncio.gather(*fetches)
            if not self._current(generation):
                return
            self.compute_allocation_units()
            await self._load_batches(generation, distinct_product_ids(self.units))
        finally:
            if self._current(generation):
                self.loading = False

        logger.info(
            f"Allocation session opened for order {order_id}: "
            f"{len(self.units)} unit(s), {len(self.batches)} product(s), {len(self.skipped)} skipped"
        )

    def close(self) -> None:
        """End the session; in-flight responses are ignored from here on"""
        self._generation += 1
        self._open = False
        self.loading = False
        self._allocations = {}

    # ===== Units =====

    def compute_allocation_units(self) -> List[AllocationUnit]:
        items = (self.order or {}).get("items") or []
        self.units, self.skipped = compute_allocation_units(items, default_unit=settings.DEFAULT_UNIT)
        self.groups = group_units(self.units)
        for item in self.skipped:
            self._warn(
                "Item skipped for allocation",
                f"{item.product_name or item.order_item_id}: {item.reason}",
            )
        return self.units

    def unit(self, key: str) -> AllocationUnit:
        for unit in self.units:
            if unit.key == key:
                return unit
        raise UnknownUnitError(key)

    # ===== Allocations =====

    def allocation(self, key: str) -> List[AllocationEntry]:
        return [e.model_copy() for e in self._allocations.get(key, [])]

    @property
    def allocations(self) -> Dict[str, List[AllocationEntry]]:
        return {u.key: self.allocation(u.key) for u in self.units}

    def record_allocation(self, key: Union[str, AllocationUnit], entries: Sequence[AllocationEntry]) -> float:
        """Replace the unit's allocation; returns the new allocated total"""
        self._check_open()
        unit = self.unit(key.key if isinstance(key, AllocationUnit) else key)
        kept = merge_entries(e for e in entries if e.quantity > 0)
        if kept:
            self._allocations[unit.key] = kept
        else:
            self._allocations.pop(unit.key, None)
        return total_quantity(kept)

    def allocated_total(self, key: str) -> float:
        return total_quantity(self._allocations.get(key, []))

    def remaining(self, key: str) -> float:
        unit = self.unit(key)
        return max(0.0, unit.required_quantity - self.allocated_total(key))

    def is_fully_allocated(self, key: str) -> bool:
        unit = self.unit(key)
        return quantities_match(self.allocated_total(key), unit.required_quantity, self.tolerance)

    def batches_for(self, key: str) -> List[BatchAvailability]:
        return list(self.batches.get(self.unit(key).product_id, []))

    def open_picker(self, key: str) -> BatchPicker:
        """BatchPicker for one unit, seeded with its current allocation"""
        self._check_open()
        unit = self.unit(key)
        return BatchPicker(
            unit,
            self.batches.get(unit.product_id, []),
            self.allocation(unit.key),
            tolerance=self.tolerance,
            on_save=lambda u, entries: self.record_allocation(u, entries),
        )

    def auto_allocate(self, key: str) -> float:
        """
        Fill a unit from the largest batches first

        Returns the quantity still missing (0 when fully covered).
        """
        self._check_open()
        unit = self.unit(key)
        batches = sorted(self.batches.get(unit.product_id, []), key=lambda b: b.total_quantity, reverse=True)
        if not batches:
            self.notifications.error(f"No batches available for {unit.product_name}")
            return unit.required_quantity

        remaining = unit.required_quantity
        entries = []
        for batch in batches:
            if remaining <= self.tolerance:
                break
            take = min(remaining, batch.total_quantity)
            if take > self.tolerance:
                entries.append(AllocationEntry(batch=batch.batch, quantity=take, unit=unit.unit))
                remaining -= take

        self.record_allocation(unit.key, entries)
        if remaining > self.tolerance:
            self.notifications.warning(
                f"Could not fully allocate {unit.product_name}",
                f"Missing {format_quantity(remaining, unit.unit)} "
                f"({format_currency(remaining * unit.unit_price)} at {format_currency(unit.unit_price)}/{unit.unit})",
            )
            return remaining
        self.notifications.success(f"Auto-allocated {unit.product_name}")
        return 0.0

    # ===== Save =====

    def validate(self) -> None:
        """
        Raises:
            AllocationMismatchError: for the first unit whose total is off
        """
        for unit in self.units:
            required = unit.required_quantity
            allocated = self.allocated_total(unit.key)
            if not quantities_match(allocated, required, self.tolerance):
                raise AllocationMismatchError(
                    f"Allocation mismatch for {unit.product_name}. "
                    f"Required {format_number(required)} {unit.unit}, "
                    f"allocated {format_number(allocated)} {unit.unit}.",
                    unit_key=unit.key,
                    product_name=unit.product_name,
                    required=required,
                    allocated=allocated,
                )

    def allocation_records(self) -> List[Dict[str, Any]]:
        """Flatten the allocation map into the records the service stores"""
        records = []
        for unit in self.units:
            for entry in self._allocations.get(unit.key, []):
                record = {
                    "order_item_id": unit.key,
                    "product_id": unit.product_id,
                    "product_name": unit.product_name,
                    "batch": entry.batch,
                    "quantity": entry.quantity,
                    "unit": entry.unit or unit.unit,
                    "source": unit.source,
                }
                if unit.is_mix_component:
                    record["mix_component_index"] = unit.component_index
                records.append(record)
        return records

    async def save(self) -> bool:
        """
        Validate and submit every allocation in one request

        Returns True once the service has stored them, False when the call
        was absorbed by the throttle or a save is already running.

        Raises:
            AllocationMismatchError: a unit's total is not its requirement; nothing is sent
            ServiceError: the service rejected the request or could not be reached
        """
        self._check_open()
        if self._saving or not self.throttle.try_acquire():
            logger.debug("Duplicate save ignored")
            return False

        if not self.units:
            message = "No items require batch allocation"
            if self.skipped:
                message += f" ({len(self.skipped)} item(s) skipped)"
            self.notifications.error(message)
            raise AllocationError(message)

        try:
            self.validate()
        except AllocationMismatchError as e:
            self.notifications.error(str(e))
            raise

        records = self.allocation_records()
        generation = self._generation
        self._saving = True
        self.loading = True
        try:
            await self.client.save_allocations(self.order_id, records)
        except ServiceError as e:
            self.notifications.error(e.message or "Failed to save allocations")
            raise
        finally:
            self._saving = False
            if self._current(generation):
                self.loading = False

        logger.info(f"Saved {len(records)} allocation(s) for order {self.order_id}")
        self.notifications.success("Allocations saved")
        self.committed = True
        self.close()
        return True

    # ===== Loading =====

    async def _load_order(self, generation: int, order_id: Any) -> None:
        try:
            order = await self.client.fetch_order(order_id)
        except ServiceError as e:
            if self._current(generation):
                self._warn("Failed to load order details", e.message)
            return
        if self._current(generation) and order:
            self.order = dict(order)

    async def _load_saved_allocations(self, generation: int, order_id: Any) -> None:
        if order_id is None:
            return
        try:
            rows = await self.client.fetch_allocations(order_id)
        except ServiceError as e:
            if self._current(generation):
                self._warn("Failed to load saved allocations", e.message)
            return
        if not self._current(generation):
            return

        grouped: Dict[str, List[AllocationEntry]] = {}
        for row in rows or []:
            key = str(row.get("order_item_id"))
            quantity = to_float(row.get("quantity"))
            if quantity <= 0 or not row.get("batch"):
                continue
            grouped.setdefault(key, []).append(AllocationEntry(
                batch=str(row["batch"]),
                quantity=quantity,
                unit=row.get("unit") or settings.DEFAULT_UNIT,
            ))
        # saved rows replace what is in memory, they are not added on top
        self._allocations = {key: merge_entries(entries) for key, entries in grouped.items()}

    async def _load_batches(self, generation: int, product_ids: Sequence[int]) -> None:
        async def fetch(product_id: int):
            try:
                batches = await self.client.fetch_batches(product_id)
            except ServiceError as e:
                if self._current(generation):
                    self._warn(f"Failed to load batches for product {product_id}", e.message)
                batches = []
            if self._current(generation):
                self.batches[product_id] = batches

        await asyncio.gather(*(fetch(pid) for pid in product_ids))

    async def refresh_batches(self) -> None:
        """Fetch availability again for every product in the order"""
        self._check_open()
        await self._load_batches(self._generation, distinct_product_ids(self.units))

    async def reload_order(self) -> None:
        """
        Fetch the order again and re-derive units

        Batches are only fetched for products that were not loaded yet.
        """
        self._check_open()
        generation = self._generation
        await self._load_order(generation, self.order_id)
        if not self._current(generation):
            return
        self.compute_allocation_units()
        missing = [pid for pid in distinct_product_ids(self.units) if pid not in self.batches]
        await self._load_batches(generation, missing)

    # ===== Internals =====

    def _reset(self):
        self.close()
        self.order = None
        self.units = []
        self.groups = []
        self.skipped = []
        self.batches = {}
        self.warnings = []
        self.committed = False
        self._saving = False
        self.throttle.reset()

    def _current(self, generation: int) -> bool:
        return self._open and generation == self._generation

    def _check_open(self):
        if not self._open:
            raise SessionClosedError("Allocation session is closed")

    def _warn(self, title: str, message: Optional[str] = None):
        self.warnings.append(title if not message else f"{title}: {message}")
        self.notifications.warning(title, message)
