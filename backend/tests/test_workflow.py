import unittest

from backoffice.allocation.batches import AllocationEntry
from backoffice.allocation.errors import AllocationMismatchError
from backoffice.allocation.notifications import NotificationService
from backoffice.allocation.throttle import Throttle
from backoffice.allocation.workflow import OrderWorkflow

from tests.fakes import ORDER_ID, FakeOrderService, sample_batches, sample_order


class OrderWorkflowTest(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.service = FakeOrderService(orders={ORDER_ID: sample_order()}, batches=sample_batches())
        self.notifications = NotificationService()
        self.workflow = OrderWorkflow(self.service, self.notifications)

    async def begin(self):
        planner = await self.workflow.begin_processing(ORDER_ID, self.workflow.new_planner(throttle=Throttle(0)))
        for key in ("40", "41::0", "41::1"):
            planner.auto_allocate(key)
        return planner

    def titles(self, level):
        return [n.title for n in self.notifications.active() if n.level == level]

    async def test_allocations_are_saved_before_the_status_change(self):
        planner = await self.begin()

        self.assertTrue(await self.workflow.complete_processing(planner))

        names = self.service.call_names()
        self.assertLess(names.index("save_allocations"), names.index("transition_status"))
        self.assertEqual(self.service.statuses, [(ORDER_ID, "processing")])
        self.assertEqual(self.workflow.pending_transitions, {})
        self.assertIn("Order moved to Processing", self.titles("success"))

    async def test_mismatch_stops_before_any_call(self):
        planner = await self.begin()
        planner.record_allocation("40", [AllocationEntry(batch="B1", quantity=3)])

        with self.assertRaises(AllocationMismatchError):
            await self.workflow.complete_processing(planner)

        self.assertEqual(self.service.count("save_allocations"), 0)
        self.assertEqual(self.service.count("transition_status"), 0)

    async def test_failed_transition_can_be_retried(self):
        planner = await self.begin()
        self.service.fail("transition_status", "Database is locked")

        self.assertFalse(await self.workflow.complete_processing(planner))
        self.assertTrue(planner.committed)
        self.assertEqual(self.workflow.pending_transitions, {ORDER_ID: "processing"})
        self.assertIn("Failed to update status to processing", self.titles("error"))

        self.service.recover("transition_status")
        self.assertTrue(await self.workflow.retry_status_transition(ORDER_ID))

        self.assertEqual(self.service.count("save_allocations"), 1)
        self.assertEqual(self.service.statuses, [(ORDER_ID, "processing")])
        self.assertEqual(self.workflow.pending_transitions, {})

    async def test_retry_without_saved_allocations(self):
        self.workflow.pending_transitions[ORDER_ID] = "processing"

        self.assertFalse(await self.workflow.retry_status_transition(ORDER_ID))

        self.assertEqual(self.service.count("transition_status"), 0)
        self.assertEqual(self.workflow.pending_transitions, {})
        self.assertIn("No saved allocations for this order", self.titles("error"))

    async def test_deliver(self):
        self.assertTrue(await self.workflow.deliver(ORDER_ID))

        names = self.service.call_names()
        self.assertEqual(names, ["deliver_with_deduction", "transition_status"])
        self.assertEqual(self.service.calls[0], ("deliver_with_deduction", ORDER_ID, False))
        self.assertEqual(self.service.statuses, [(ORDER_ID, "delivered")])

    async def test_deliver_stops_when_deduction_fails(self):
        self.service.fail("deliver_with_deduction", "No allocations found for this order", 400)

        self.assertFalse(await self.workflow.deliver(ORDER_ID))

        self.assertEqual(self.service.count("transition_status"), 0)
        self.assertIn("Failed to deduct inventory", self.titles("error"))
