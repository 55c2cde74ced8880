from tests.base import ApiTestCase


class AllocationApiTest(ApiTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.turmeric = await self.factory.product("Turmeric")
        self.cumin = await self.factory.product("Cumin")
        self.coriander = await self.factory.product("Coriander")
        await self.factory.stock(self.turmeric["id"], "B1", 3, cost_per_kg=100)
        await self.factory.stock(self.turmeric["id"], "B2", 4, cost_per_kg=120)
        await self.factory.stock(self.cumin["id"], "B3", 2, cost_per_kg=300)
        await self.factory.stock(self.coriander["id"], "B4", 1, cost_per_kg=90)

        self.order = await self.factory.order([
            self.factory.regular_item(self.turmeric, 5),
            self.factory.mix_item([(self.cumin, 2), (self.coriander, 1)]),
        ])
        self.regular_id = self.order["items"][0]["id"]
        self.mix_id = self.order["items"][1]["id"]

    def records(self):
        return [
            self.record(str(self.regular_id), self.turmeric, "B1", 3),
            self.record(str(self.regular_id), self.turmeric, "B2", 2),
            self.record(f"{self.mix_id}::0", self.cumin, "B3", 2, mix_component_index=0),
            self.record(f"{self.mix_id}::1", self.coriander, "B4", 1, mix_component_index=1),
        ]

    @staticmethod
    def record(key, product, batch, quantity, **extra):
        return {
            "order_item_id": key,
            "product_id": product["id"],
            "product_name": product["name"],
            "batch": batch,
            "quantity": quantity,
            "unit": "kg",
            **extra,
        }

    async def save(self, records):
        return await self.http.post(f"/api/orders/{self.order['id']}/allocations", json={"allocations": records})

    async def saved(self):
        response = await self.http.get(f"/api/orders/{self.order['id']}/allocations")
        return response.json()["data"]

    async def batch_balance(self, product, batch):
        response = await self.http.get(f"/api/inventory/product/{product['id']}/batches")
        return {b["batch"]: b["total_quantity"] for b in response.json()["data"]}.get(batch, 0)

    async def test_save_and_read_back(self):
        response = await self.save(self.records())
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"], {"count": 4})

        rows = await self.saved()
        self.assertEqual(
            [(r["order_item_id"], r["batch"], r["quantity"]) for r in rows],
            [(str(self.regular_id), "B1", 3), (str(self.regular_id), "B2", 2),
             (f"{self.mix_id}::0", "B3", 2), (f"{self.mix_id}::1", "B4", 1)])

    async def test_integer_key_is_accepted(self):
        record = self.record(self.regular_id, self.turmeric, "B1", 1)
        response = await self.save([record])
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual((await self.saved())[0]["order_item_id"], str(self.regular_id))

    async def test_save_replaces_previous_rows(self):
        await self.save(self.records())
        await self.save([self.record(str(self.regular_id), self.turmeric, "B2", 4)])

        rows = await self.saved()
        self.assertEqual([(r["batch"], r["quantity"]) for r in rows], [("B2", 4)])

    async def test_empty_list_is_rejected(self):
        self.assertEnvelopeError(await self.save([]), 400, "Allocations array is required")

    async def test_foreign_key_is_rejected(self):
        other = await self.factory.order([self.factory.regular_item(self.turmeric, 1)])
        record = self.record(str(other["items"][0]["id"]), self.turmeric, "B1", 1)
        self.assertEnvelopeError(await self.save([record]), 400, "does not belong to order")

    async def test_component_must_exist(self):
        record = self.record(f"{self.mix_id}::5", self.cumin, "B3", 1)
        self.assertEnvelopeError(await self.save([record]), 400, "does not match a component")

        record = self.record(f"{self.mix_id}::0", self.coriander, "B4", 1)
        self.assertEnvelopeError(await self.save([record]), 400, "does not match a component")

    async def test_mix_line_needs_component_keys(self):
        record = self.record(str(self.mix_id), self.cumin, "B3", 1)
        self.assertEnvelopeError(await self.save([record]), 400, "allocate its components")

    async def test_stock_is_checked_per_batch(self):
        records = self.records()
        records[1]["batch"] = "B1"
        response = await self.save(records)

        self.assertEnvelopeError(response, 400, "Insufficient stock in batch B1")
        self.assertEqual(await self.saved(), [])

    async def test_unknown_batch(self):
        records = [self.record(str(self.regular_id), self.turmeric, "NOPE", 1)]
        self.assertEnvelopeError(await self.save(records), 400, "Insufficient stock in batch NOPE")

    async def test_deliver_with_deduction(self):
        await self.save(self.records())
        await self.http.put(f"/api/orders/{self.order['id']}/status", json={"status": "processing"})

        response = await self.http.post(
            f"/api/orders/{self.order['id']}/deliver-with-deduction", json={"markDelivered": True})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["status"], "delivered")

        self.assertEqual(await self.batch_balance(self.turmeric, "B1"), 0)
        self.assertEqual(await self.batch_balance(self.turmeric, "B2"), 2)
        self.assertEqual(await self.batch_balance(self.cumin, "B3"), 0)

        response = await self.http.get("/api/inventory/history", params={"action": "deducted"})
        rows = response.json()["data"]["items"]
        self.assertEqual(len(rows), 4)
        self.assertTrue(all(r["reference_type"] == "transfer" for r in rows))

        again = await self.http.post(f"/api/orders/{self.order['id']}/deliver-with-deduction", json={})
        self.assertEnvelopeError(again, 400, "already deducted")

    async def test_deduction_keeps_status_unless_asked(self):
        await self.save(self.records())
        response = await self.http.post(f"/api/orders/{self.order['id']}/deliver-with-deduction", json={})
        self.assertEqual(response.json()["data"]["status"], "pending")

    async def test_deduction_requires_allocations(self):
        response = await self.http.post(f"/api/orders/{self.order['id']}/deliver-with-deduction", json={})
        self.assertEnvelopeError(response, 400, "No allocations found")

    async def test_locked_after_delivery(self):
        await self.save(self.records())
        await self.http.post(
            f"/api/orders/{self.order['id']}/deliver-with-deduction", json={"markDelivered": True})
        self.assertEnvelopeError(await self.save(self.records()), 400, "allocations are locked")

    async def test_malformed_component_key_is_rejected(self):
        record = self.record(f"{self.mix_id}::x", self.cumin, "B3", 1)
        self.assertEnvelopeError(await self.save([record]), 400, "Malformed allocation key")

        record = self.record(f"{self.regular_id}::x", self.turmeric, "B1", 1)
        self.assertEnvelopeError(await self.save([record]), 400, "Malformed allocation key")
        self.assertEqual(await self.saved(), [])
