"""
Mix payload normalization

A mix order line stores its components as JSON in custom_details. Two shapes
exist in stored orders:

    {"mixItems": [...], "mixNumber": 7, "totalWeight": ..., "totalBudget": ...}
    {"mixDetails": {"items": [...], "totalBudget": ...}}

parse_mix_payload reads either one (as a mapping or a JSON string) into a
single MixPayload; nothing downstream looks at the raw shapes.
"""

import json
from typing import Any, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from backoffice.allocation.errors import MixPayloadError
from backoffice.allocation.formatting import to_float


MixShape = Literal["mix_items", "mix_details"]

# allocation rows store quantities with 3 decimals (DECIMAL(10, 3))
QUANTITY_DECIMALS = 3


class MixComponent(BaseModel):
    """One product inside a mix, with the quantity fixed at order time"""
    index: int = Field(..., ge=0, description="Position in the mix")
    product_id: Optional[int] = Field(None, description="None when the component has no product reference")
    name: str = ""
    quantity: float = 0.0
    unit: str = "kg"
    price: float = 0.0
    actual_cost: Optional[float] = None


class MixPayload(BaseModel):
    shape: MixShape
    mix_number: Optional[str] = None
    total_weight: Optional[float] = None
    total_budget: Optional[float] = None
    components: List[MixComponent] = Field(default_factory=list)

    def to_storage(self) -> dict:
        """Canonical JSON written into custom_details for new orders"""
        return {
            "mixItems": [
                {
                    "id": c.product_id,
                    "name": c.name,
                    "calculatedQuantity": c.quantity,
                    "unit": c.unit,
                    "price": c.price,
                    "actualCost": c.actual_cost if c.actual_cost is not None else c.price,
                }
                for c in self.components
            ],
            "mixNumber": self.mix_number,
            "totalWeight": self.total_weight,
            "totalBudget": self.total_budget,
            "itemCount": len(self.components),
        }


def resolve_product_id(value: Any) -> Optional[int]:
    """Positive integer product id, or None ('12' -> 12, 'mix-3' -> None, 0 -> None)"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    try:
        product_id = int(str(value).strip())
    except ValueError:
        return None
    return product_id if product_id > 0 else None


def _component(index: int, raw: Any, default_unit: str) -> MixComponent:
    if not isinstance(raw, Mapping):
        raise MixPayloadError(f"Mix component {index} is not an object")
    product_id = resolve_product_id(raw.get("id")) or resolve_product_id(raw.get("product_id"))
    quantity = raw.get("calculatedQuantity")
    if quantity in (None, ""):
        quantity = raw.get("quantity")
    actual_cost = raw.get("actualCost")
    return MixComponent(
        index=index,
        product_id=product_id,
        name=str(raw.get("name") or raw.get("product_name") or ""),
        quantity=round(to_float(quantity), QUANTITY_DECIMALS),
        unit=raw.get("unit") or default_unit,
        price=to_float(raw.get("price")),
        actual_cost=to_float(actual_cost) if actual_cost is not None else None,
    )


def _mix_number(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def parse_mix_payload(raw: Any, default_unit: str = "kg") -> MixPayload:
    """
    Normalize a mix line's custom_details

    Raises:
        MixPayloadError: not JSON, not an object, or no component list in either shape
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise MixPayloadError(f"Mix details are not valid JSON: {e}") from e

    if not isinstance(raw, Mapping):
        raise MixPayloadError("Mix details are missing")

    mix_items = raw.get("mixItems")
    mix_details = raw.get("mixDetails")

    if isinstance(mix_items, list):
        shape = "mix_items"
        items = mix_items
        mix_number = _mix_number(raw.get("mixNumber"))
        total_budget = raw.get("totalBudget")
    elif isinstance(mix_details, Mapping) and isinstance(mix_details.get("items"), list):
        shape = "mix_details"
        items = mix_details["items"]
        mix_number = _mix_number(raw.get("mixNumber") or mix_details.get("mixNumber"))
        total_budget = mix_details.get("totalBudget", raw.get("totalBudget"))
    else:
        raise MixPayloadError("Mix details contain no component list")

    components = [_component(i, item, default_unit) for i, item in enumerate(items)]
    total_weight = raw.get("totalWeight")
    if total_weight is None:
        total_weight = round(sum(c.quantity for c in components), QUANTITY_DECIMALS)

    return MixPayload(
        shape=shape,
        mix_number=mix_number,
        total_weight=to_float(total_weight),
        total_budget=to_float(total_budget) if total_budget is not None else None,
        components=components,
    )
