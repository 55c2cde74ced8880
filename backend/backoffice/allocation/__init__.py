"""Order batch allocation workflow"""

from backoffice.allocation.batches import AllocationEntry, BatchAvailability
from backoffice.allocation.client import OrderServiceClient
from backoffice.allocation.errors import (
    AllocationError, AllocationMismatchError, AllocationShortfallError,
    MixPayloadError, ServiceError, SessionClosedError, UnknownBatchError, UnknownUnitError
)
from backoffice.allocation.mix import MixComponent, MixPayload, parse_mix_payload
from backoffice.allocation.notifications import Notification, NotificationService
from backoffice.allocation.picker import BatchPicker
from backoffice.allocation.planner import AllocationPlanner
from backoffice.allocation.throttle import Throttle
from backoffice.allocation.units import (
    AllocationUnit, SkippedItem, UnitGroup, compute_allocation_units, group_units, mix_unit_key
)
from backoffice.allocation.workflow import OrderWorkflow

__all__ = [
    "AllocationEntry",
    "BatchAvailability",
    "OrderServiceClient",
    "AllocationError",
    "AllocationMismatchError",
    "AllocationShortfallError",
    "MixPayloadError",
    "ServiceError",
    "SessionClosedError",
    "UnknownBatchError",
    "UnknownUnitError",
    "MixComponent",
    "MixPayload",
    "parse_mix_payload",
    "Notification",
    "NotificationService",
    "BatchPicker",
    "AllocationPlanner",
    "Throttle",
    "AllocationUnit",
    "SkippedItem",
    "UnitGroup",
    "compute_allocation_units",
    "group_units",
    "mix_unit_key",
    "OrderWorkflow",
]
