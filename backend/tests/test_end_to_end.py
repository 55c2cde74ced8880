"""The allocation workflow driving the real service over HTTP"""

from backoffice.allocation.batches import AllocationEntry
from backoffice.allocation.client import OrderServiceClient
from backoffice.allocation.errors import AllocationMismatchError, ServiceError
from backoffice.allocation.notifications import NotificationService
from backoffice.allocation.throttle import Throttle
from backoffice.allocation.workflow import OrderWorkflow
from backoffice.models.inventory import InventoryEntry

from tests.base import ApiTestCase


class EndToEndTest(ApiTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.p1 = await self.factory.product("Turmeric")
        p2 = await self.factory.product("Cumin")
        p3 = await self.factory.product("Coriander")
        await self.factory.stock(self.p1["id"], "B1", 3)
        await self.factory.stock(self.p1["id"], "B2", 4)
        await self.factory.stock(p2["id"], "B3", 2)
        await self.factory.stock(p3["id"], "B4", 1)
        self.order = await self.factory.order([
            self.factory.regular_item(self.p1, 5),
            self.factory.mix_item([(p2, 2), (p3, 1)]),
        ])
        regular, mix = self.order["items"]
        self.p1_key = str(regular["id"])
        self.p2_key = f"{mix['id']}::0"
        self.p3_key = f"{mix['id']}::1"

        self.client = OrderServiceClient(client=self.http)
        self.notifications = NotificationService()
        self.workflow = OrderWorkflow(self.client, self.notifications)

    async def open_planner(self):
        return await self.workflow.begin_processing(
            self.order["id"], self.workflow.new_planner(throttle=Throttle(0)))

    def pick(self, planner, key, quantities):
        picker = planner.open_picker(key)
        for batch, quantity in quantities.items():
            picker.set_batch_quantity(batch, quantity)
        picker.save()

    async def saved_rows(self):
        return await self.client.fetch_allocations(self.order["id"])

    async def test_allocate_save_and_process(self):
        planner = await self.open_planner()
        self.assertEqual([u.key for u in planner.units], [self.p1_key, self.p2_key, self.p3_key])
        self.assertEqual([b.batch for b in planner.batches_for(self.p1_key)], ["B2", "B1"])
        self.assertEqual(planner.warnings, [])

        self.pick(planner, self.p1_key, {"B1": 3, "B2": 2})
        self.pick(planner, self.p2_key, {"B3": 2})
        self.pick(planner, self.p3_key, {"B4": 1})

        self.assertTrue(await self.workflow.complete_processing(planner))

        self.assertEqual(len(await self.saved_rows()), 4)
        order = await self.client.fetch_order(self.order["id"])
        self.assertEqual(order["status"], "processing")
        self.assertEqual(order["status_history"][0]["notes"], "Processing after batch allocation")

        reopened = await self.open_planner()
        self.assertTrue(all(reopened.is_fully_allocated(u.key) for u in reopened.units))

    async def test_shortfall_submits_nothing(self):
        planner = await self.open_planner()
        planner.record_allocation(self.p1_key, [AllocationEntry(batch="B1", quantity=3)])
        self.pick(planner, self.p2_key, {"B3": 2})
        self.pick(planner, self.p3_key, {"B4": 1})

        with self.assertRaises(AllocationMismatchError) as ctx:
            await self.workflow.complete_processing(planner)

        self.assertIn("Required 5 kg, allocated 3 kg", str(ctx.exception))
        self.assertEqual(await self.saved_rows(), [])
        order = await self.client.fetch_order(self.order["id"])
        self.assertEqual(order["status"], "pending")

    async def test_stock_taken_meanwhile_is_rejected(self):
        planner = await self.open_planner()
        self.pick(planner, self.p1_key, {"B1": 3, "B2": 2})
        self.pick(planner, self.p2_key, {"B3": 2})
        self.pick(planner, self.p3_key, {"B4": 1})

        async with self.Session() as session:
            session.add(InventoryEntry(
                product_id=self.p1["id"], product_name="Turmeric", batch="B1",
                action="deducted", quantity=2))
            await session.commit()

        with self.assertRaises(ServiceError) as ctx:
            await self.workflow.complete_processing(planner)

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("Insufficient stock in batch B1", ctx.exception.message)
        self.assertTrue(planner.is_open)
        self.assertEqual(self.workflow.pending_transitions, {})

        await planner.refresh_batches()
        self.assertEqual(
            {b.batch: b.total_quantity for b in planner.batches_for(self.p1_key)}, {"B1": 1, "B2": 4})

    async def test_deliver(self):
        planner = await self.open_planner()
        for unit in planner.units:
            planner.auto_allocate(unit.key)
        await self.workflow.complete_processing(planner)
        await self.client.transition_status(self.order["id"], "out_for_delivery")

        self.assertTrue(await self.workflow.deliver(self.order["id"]))

        order = await self.client.fetch_order(self.order["id"])
        self.assertEqual(order["status"], "delivered")
        remaining = await self.client.fetch_batches(self.p1["id"])
        self.assertEqual([(b.batch, b.total_quantity) for b in remaining], [("B1", 2)])

    async def test_split_mix_component_reopens_fully_allocated(self):
        cardamom = await self.factory.product("Cardamom", retail_price=2400)
        await self.factory.stock(cardamom["id"], "C1", 0.2)
        await self.factory.stock(cardamom["id"], "C2", 0.2)
        order = await self.factory.order([self.factory.mix_item([(cardamom, 0.3333333)], mix_number=9)])
        key = f"{order['items'][0]['id']}::0"

        planner = await self.workflow.begin_processing(
            order["id"], self.workflow.new_planner(throttle=Throttle(0)))
        self.assertEqual(planner.unit(key).required_quantity, 0.333)

        self.pick(planner, key, {"C1": 0.1666667, "C2": 0.1666666})
        with self.assertRaises(AllocationMismatchError):
            planner.validate()

        self.pick(planner, key, {"C1": 0.1666667, "C2": 0.166})
        self.assertTrue(await self.workflow.complete_processing(planner))

        reopened = await self.workflow.begin_processing(
            order["id"], self.workflow.new_planner(throttle=Throttle(0)))
        self.assertEqual([(e.batch, e.quantity) for e in reopened.allocation(key)], [("C1", 0.167), ("C2", 0.166)])
        self.assertTrue(reopened.is_fully_allocated(key))
        reopened.validate()
