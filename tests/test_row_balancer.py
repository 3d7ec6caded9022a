import unittest

from services import row_balancer
from services.layout_settings import DEFAULT_LAYOUT_RULES
from services.support_validator import validate_layout


def _fragment(product_id, length, quantity, floor=None, row=None, column=1):
    position = None
    if floor is not None:
        position = {"floor": floor, "row": row, "column": column}
    return {"product_id": product_id, "length": length, "quantity": quantity, "grid_position": position}


def _position_of(fragments, product_id):
    for fragment in fragments:
        if fragment["product_id"] == product_id:
            return fragment["grid_position"]
    return None


class RowBalancerTests(unittest.TestCase):
    def setUp(self):
        self.rules = dict(DEFAULT_LAYOUT_RULES)

    def test_rows_with_long_packages_move_to_the_front(self):
        fragments = [
            _fragment("SHORT-HEAVY", 3.0, 20, 1, 1),
            _fragment("LONG", 6.0, 10, 1, 2),
            _fragment("SHORT-LIGHT", 3.0, 10, 1, 3),
        ]

        mapping = row_balancer.row_mapping(fragments, self.rules)

        self.assertEqual(mapping, {1: {2: 1, 1: 2, 3: 3}})

    def test_rows_without_long_packages_are_ordered_by_total_length(self):
        fragments = [
            _fragment("LIGHT", 3.0, 5, 1, 1),
            _fragment("HEAVY", 3.0, 20, 1, 2),
        ]

        balanced = row_balancer.balance_rows(fragments, 6.0, self.rules)

        self.assertEqual(_position_of(balanced, "HEAVY")["row"], 1)
        self.assertEqual(_position_of(balanced, "LIGHT")["row"], 2)

    def test_unplaced_fragments_are_kept_at_the_end(self):
        fragments = [
            _fragment("LEFT", 3.0, 7),
            _fragment("PLACED", 3.0, 20, 1, 1),
        ]

        balanced = row_balancer.balance_rows(fragments, 6.0, self.rules)

        self.assertEqual([fragment["product_id"] for fragment in balanced], ["PLACED", "LEFT"])
        self.assertIsNone(balanced[1]["grid_position"])

    def test_stacks_move_together_when_floor_by_floor_order_breaks_support(self):
        fragments = [
            _fragment("GROUND-SHORT", 3.0, 20, 1, 1),
            _fragment("GROUND-LONG", 6.0, 10, 1, 2),
            _fragment("UPPER-SHORT", 3.0, 20, 2, 1),
        ]
        self.assertEqual(validate_layout(fragments, 6.0, self.rules), [])

        balanced = row_balancer.balance_rows(fragments, 6.0, self.rules)

        self.assertEqual(_position_of(balanced, "GROUND-LONG")["row"], 1)
        self.assertEqual(_position_of(balanced, "GROUND-SHORT")["row"], 2)
        self.assertEqual(_position_of(balanced, "UPPER-SHORT")["row"], 2)
        self.assertEqual(validate_layout(balanced, 6.0, self.rules), [])

    def test_input_fragments_are_not_mutated(self):
        fragments = [
            _fragment("SHORT", 3.0, 20, 1, 1),
            _fragment("LONG", 6.0, 10, 1, 2),
        ]

        row_balancer.balance_rows(fragments, 6.0, self.rules)

        self.assertEqual(fragments[0]["grid_position"]["row"], 1)
        self.assertEqual(fragments[1]["grid_position"]["row"], 2)


if __name__ == "__main__":
    unittest.main()
