import unittest

from backoffice.allocation.units import (
    compute_allocation_units, distinct_product_ids, group_units, split_unit_key
)

from tests.fakes import sample_order


def mix_line(item_id, components, mix_number=None):
    return {
        "id": item_id,
        "product_name": "Mix",
        "quantity": 1,
        "source": "mix-calculator",
        "mix_number": mix_number,
        "custom_details": {"mixItems": components},
    }


class ComputeAllocationUnitsTest(unittest.TestCase):

    def test_regular_and_mix_units(self):
        units, skipped = compute_allocation_units(sample_order()["items"])

        self.assertEqual(skipped, [])
        self.assertEqual([u.key for u in units], ["40", "41::0", "41::1"])
        self.assertEqual([u.product_id for u in units], [1, 2, 3])
        self.assertEqual([u.required_quantity for u in units], [5, 2, 1])
        self.assertFalse(units[0].is_mix_component)
        self.assertTrue(units[1].is_mix_component)
        self.assertEqual(units[1].parent_mix_name, "Custom Mix 3")
        self.assertEqual(units[1].mix_number, "3")

    def test_three_component_mix_gives_three_units(self):
        components = [
            {"id": 2, "name": "Cumin", "calculatedQuantity": 1},
            {"id": 3, "name": "Coriander", "calculatedQuantity": 1},
            {"id": 2, "name": "Cumin", "calculatedQuantity": 0.5},
        ]
        units, _ = compute_allocation_units([mix_line(9, components)])

        self.assertEqual(len(units), 3)
        self.assertEqual(len({u.key for u in units}), 3)
        self.assertEqual([split_unit_key(u.key) for u in units], [("9", 0), ("9", 1), ("9", 2)])

    def test_unresolvable_items_are_reported(self):
        items = [
            {"id": 1, "product_id": None, "product_name": "Loose tea", "quantity": 1, "source": "custom"},
            mix_line(2, [{"id": "x", "name": "Saffron", "calculatedQuantity": 0.01}]),
            {"id": 3, "product_name": "Broken mix", "source": "mix-calculator", "custom_details": "{"},
        ]
        units, skipped = compute_allocation_units(items)

        self.assertEqual(units, [])
        self.assertEqual([s.order_item_id for s in skipped], [1, 2, 3])
        self.assertEqual(skipped[1].component_index, 0)
        self.assertEqual(skipped[1].product_name, "Saffron")

    def test_mix_number_falls_back_to_item(self):
        units, _ = compute_allocation_units([mix_line(5, [{"id": 2, "calculatedQuantity": 1}], mix_number="12")])
        self.assertEqual(units[0].mix_number, "12")


class GroupUnitsTest(unittest.TestCase):

    def test_regular_group_first_then_one_per_mix(self):
        items = [
            mix_line(20, [{"id": 1, "name": "Turmeric", "calculatedQuantity": 1}], mix_number="1"),
            {"id": 21, "product_id": 1, "product_name": "Turmeric", "quantity": 2},
            mix_line(22, [{"id": 4, "calculatedQuantity": 1}, {"id": 5, "calculatedQuantity": 1}], mix_number="2"),
        ]
        units, _ = compute_allocation_units(items)
        groups = group_units(units)

        self.assertEqual([g.title for g in groups], ["Regular Products", "Mix 1", "Mix 2"])
        self.assertEqual([u.key for u in groups[0].units], ["21"])
        self.assertEqual(len(groups[2].units), 2)

    def test_distinct_product_ids(self):
        items = [{"id": i, "product_id": 1 + i % 2, "quantity": 1} for i in range(5)]
        units, _ = compute_allocation_units(items)
        self.assertEqual(len(units), 5)
        self.assertEqual(distinct_product_ids(units), [1, 2])


class SplitUnitKeyTest(unittest.TestCase):

    def test_split(self):
        self.assertEqual(split_unit_key("41::2"), ("41", 2))
        self.assertEqual(split_unit_key("40"), ("40", None))

    def test_malformed_component_index(self):
        for key in ("40::x", "40::", "40::-1", "40::1.5"):
            with self.subTest(key=key):
                with self.assertRaises(ValueError):
                    split_unit_key(key)
