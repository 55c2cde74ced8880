"""
Allocation units

An allocation unit is the smallest thing that gets matched to inventory
batches: a regular order line, or one component of a mix line. Units are
derived from the order's items on every load; they are never stored.
"""

import logging
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from backoffice.allocation.errors import MixPayloadError
from backoffice.allocation.formatting import to_float
from backoffice.allocation.mix import parse_mix_payload, resolve_product_id

logger = logging.getLogger(__name__)

MIX_SOURCE = "mix-calculator"
KEY_SEPARATOR = "::"


def mix_unit_key(parent_item_id: Any, component_index: int) -> str:
    """Key of a mix component: '<parentItemId>::<componentIndex>'"""
    return f"{parent_item_id}{KEY_SEPARATOR}{component_index}"


def regular_unit_key(item_id: Any) -> str:
    return str(item_id)


def split_unit_key(key: str) -> Tuple[str, Optional[int]]:
    """
    '41::2' -> ('41', 2), '40' -> ('40', None)

    Raises:
        ValueError: the part after the separator is not a component index ('41::x')
    """
    parent, sep, index = str(key).partition(KEY_SEPARATOR)
    if not sep:
        return parent, None
    if not (index.isascii() and index.isdigit()):
        raise ValueError(f"Malformed allocation key {key!r}")
    return parent, int(index)


class AllocationUnit(BaseModel):
    key: str
    order_item_id: Any
    component_index: Optional[int] = None
    product_id: int
    product_name: str = ""
    required_quantity: float = 0.0
    unit: str = "kg"
    unit_price: float = 0.0
    source: Literal["regular", "mix"] = "regular"
    parent_mix_name: Optional[str] = None
    mix_number: Optional[str] = None

    @property
    def is_mix_component(self) -> bool:
        return self.source == "mix"


class SkippedItem(BaseModel):
    """An order line (or mix component) that cannot be allocated, and why"""
    order_item_id: Any
    component_index: Optional[int] = None
    product_name: str = ""
    reason: str


class UnitGroup(BaseModel):
    kind: Literal["regular", "mix"]
    title: str
    mix_item_id: Any = None
    mix_number: Optional[str] = None
    units: List[AllocationUnit] = Field(default_factory=list)


def _regular_unit(item: Mapping, default_unit: str) -> Optional[AllocationUnit]:
    product_id = resolve_product_id(item.get("product_id"))
    if product_id is None:
        return None
    return AllocationUnit(
        key=regular_unit_key(item.get("id")),
        order_item_id=item.get("id"),
        product_id=product_id,
        product_name=str(item.get("product_name") or ""),
        required_quantity=to_float(item.get("quantity")),
        unit=item.get("unit") or default_unit,
        unit_price=to_float(item.get("unit_price", item.get("price"))),
        source="regular",
    )


def _mix_units(item: Mapping, default_unit: str,
               skipped: List[SkippedItem]) -> List[AllocationUnit]:
    item_id = item.get("id")
    mix_name = str(item.get("product_name") or "")
    try:
        payload = parse_mix_payload(item.get("custom_details"), default_unit=default_unit)
    except MixPayloadError as e:
        skipped.append(SkippedItem(order_item_id=item_id, product_name=mix_name, reason=str(e)))
        return []

    mix_number = payload.mix_number or (str(item["mix_number"]) if item.get("mix_number") else None)
    if mix_number is None and item_id is not None:
        mix_number = str(item_id).replace("mix-", "")

    units = []
    for component in payload.components:
        if component.product_id is None:
            skipped.append(SkippedItem(
                order_item_id=item_id,
                component_index=component.index,
                product_name=component.name or mix_name,
                reason=f"Mix component has no product reference (in {mix_name or 'mix'})",
            ))
            continue
        units.append(AllocationUnit(
            key=mix_unit_key(item_id, component.index),
            order_item_id=item_id,
            component_index=component.index,
            product_id=component.product_id,
            product_name=component.name,
            required_quantity=component.quantity,
            unit=component.unit,
            unit_price=component.price,
            source="mix",
            parent_mix_name=mix_name,
            mix_number=mix_number,
        ))
    return units


def compute_allocation_units(
    items: Sequence[Mapping],
    default_unit: str = "kg",
) -> Tuple[List[AllocationUnit], List[SkippedItem]]:
    """
    Derive allocation units from order items

    Regular lines give one unit each, mix lines one unit per component.
    Anything without a resolvable product is returned in the skipped list
    instead of a unit.
    """
    units: List[AllocationUnit] = []
    skipped: List[SkippedItem] = []

    for item in items or []:
        if item.get("source") == MIX_SOURCE:
            units.extend(_mix_units(item, default_unit, skipped))
            continue

        unit = _regular_unit(item, default_unit)
        if unit is None:
            skipped.append(SkippedItem(
                order_item_id=item.get("id"),
                product_name=str(item.get("product_name") or ""),
                reason="Order line has no product reference",
            ))
            continue
        units.append(unit)

    if skipped:
        logger.info(f"{len(skipped)} order line(s) skipped for allocation")
    return units, skipped


def group_units(units: Sequence[AllocationUnit]) -> List[UnitGroup]:
    """Regular products first as one group, then one group per mix line, in order of appearance"""
    regular = [u for u in units if not u.is_mix_component]
    mix_groups: Dict[str, UnitGroup] = {}

    for unit in units:
        if not unit.is_mix_component:
            continue
        group_key = str(unit.order_item_id)
        if group_key not in mix_groups:
            mix_groups[group_key] = UnitGroup(
                kind="mix",
                title=f"Mix {unit.mix_number}" if unit.mix_number else (unit.parent_mix_name or "Mix"),
                mix_item_id=unit.order_item_id,
                mix_number=unit.mix_number,
            )
        mix_groups[group_key].units.append(unit)

    groups = []
    if regular:
        groups.append(UnitGroup(kind="regular", title="Regular Products", units=regular))
    groups.extend(mix_groups.values())
    return groups


def distinct_product_ids(units: Sequence[AllocationUnit]) -> List[int]:
    """Product ids in first-seen order, without repeats"""
    seen = {}
    for unit in units:
        seen.setdefault(unit.product_id, None)
    return list(seen)
