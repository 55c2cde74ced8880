"""Exceptions raised by the allocation workflow"""

from typing import Optional


class AllocationError(Exception):
    """Base class for every allocation workflow error"""


class ServiceError(AllocationError):
    """A REST call failed, either in transport or with success=false"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MixPayloadError(AllocationError):
    """A mix line's embedded component list could not be read"""


class UnknownUnitError(AllocationError, KeyError):
    def __init__(self, key: str):
        super().__init__(f"No allocation unit with key {key!r}")
        self.key = key

    def __str__(self):
        return self.args[0]


class UnknownBatchError(AllocationError, KeyError):
    def __init__(self, batch: str):
        super().__init__(f"Batch {batch!r} is not available for this product")
        self.batch = batch

    def __str__(self):
        return self.args[0]


class AllocationShortfallError(AllocationError):
    """BatchPicker save with less selected than required"""

    def __init__(self, message: str, required: float, selected: float, unit: str):
        super().__init__(message)
        self.required = required
        self.selected = selected
        self.unit = unit


class AllocationMismatchError(AllocationError):
    """AllocationPlanner save where a unit's allocated total differs from its requirement"""

    def __init__(self, message: str, unit_key: str, product_name: str,
                 required: float, allocated: float):
        super().__init__(message)
        self.unit_key = unit_key
        self.product_name = product_name
        self.required = required
        self.allocated = allocated


class SessionClosedError(AllocationError):
    """The planner or picker was used after it was closed"""
