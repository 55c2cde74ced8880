"""
Order processing workflow (page level)

Moving an order to "processing" is two calls: save the batch allocations,
then change the status. Allocations are always saved first. If the status
change fails afterwards the order id is kept in pending_transitions and
retry_status_transition() sends the status change alone, after checking
that the allocations really are stored.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from backoffice.allocation.client import OrderServiceClient
from backoffice.allocation.errors import ServiceError
from backoffice.allocation.notifications import NotificationService
from backoffice.allocation.planner import AllocationPlanner
from backoffice.core.config import settings

logger = logging.getLogger(__name__)

PROCESSING = "processing"
DELIVERED = "delivered"


class OrderWorkflow:

    def __init__(
        self,
        client: OrderServiceClient,
        notifications: Optional[NotificationService] = None,
        changed_by: Optional[str] = None,
    ):
        self.client = client
        self.notifications = notifications or NotificationService()
        self.changed_by = changed_by or settings.DEFAULT_CHANGED_BY
        # order id -> status still to be applied
        self.pending_transitions: Dict[Any, str] = {}

    def new_planner(self, **kwargs) -> AllocationPlanner:
        return AllocationPlanner(self.client, self.notifications, **kwargs)

    async def begin_processing(
        self,
        order: Union[Mapping[str, Any], int, str],
        planner: Optional[AllocationPlanner] = None,
    ) -> AllocationPlanner:
        """Open the allocation session that gates the move to processing"""
        planner = planner or self.new_planner()
        await planner.open(order)
        return planner

    async def complete_processing(self, planner: AllocationPlanner) -> bool:
        """
        Save the planner's allocations, then move the order to processing

        Returns True when both steps succeeded. False means the save was
        throttled or the status change failed after the allocations were
        stored (the order is then listed in pending_transitions).
        Save errors propagate and leave the planner open.
        """
        order_id = planner.order_id
        saved = await planner.save()
        if not saved:
            return False

        self.pending_transitions[order_id] = PROCESSING
        return await self._transition(
            order_id, PROCESSING, notes="Processing after batch allocation"
        )

    async def retry_status_transition(self, order_id: Any) -> bool:
        """
        Send a pending status change again

        Only runs when the service still has allocations for the order.
        """
        status = self.pending_transitions.get(order_id, PROCESSING)
        try:
            saved = await self.client.fetch_allocations(order_id)
        except ServiceError as e:
            self.notifications.error("Could not verify saved allocations", e.message)
            return False
        if not saved:
            self.pending_transitions.pop(order_id, None)
            self.notifications.error(
                "No saved allocations for this order",
                "Allocate batches again before processing",
            )
            return False
        return await self._transition(order_id, status, notes="Status change retried after batch allocation")

    async def deliver(self, order_id: Any) -> bool:
        """Deduct allocated stock from inventory, then mark the order delivered"""
        try:
            await self.client.deliver_with_deduction(order_id, mark_delivered=False)
        except ServiceError as e:
            self.notifications.error(
                "Failed to deduct inventory",
                e.message or "Ensure batches are allocated",
            )
            return False
        self.pending_transitions[order_id] = DELIVERED
        return await self._transition(order_id, DELIVERED, notes="Delivered after inventory deduction")

    async def _transition(self, order_id: Any, status: str, notes: Optional[str] = None) -> bool:
        try:
            await self.client.transition_status(order_id, status, changed_by=self.changed_by, notes=notes)
        except ServiceError as e:
            logger.warning(f"Status change to {status} failed for order {order_id}: {e.message}")
            self.notifications.error(
                f"Failed to update status to {status}",
                e.message,
            )
            return False
        self.pending_transitions.pop(order_id, None)
        self.notifications.success(f"Order moved to {status.replace('_', ' ').title()}")
        return True
