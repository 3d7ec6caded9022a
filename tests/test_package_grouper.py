import unittest

from services import package_grouper
from services.layout_settings import DEFAULT_LAYOUT_RULES


def _entry(length, quantity):
    return {"index": 0, "item": {"product_id": f"L{length}"}, "quantity": quantity, "length": length}


class PackageGrouperTests(unittest.TestCase):
    def setUp(self):
        self.rules = dict(DEFAULT_LAYOUT_RULES)

    def test_package_size_switches_at_large_threshold(self):
        self.assertEqual(package_grouper.package_size(5.80, self.rules), 10)
        self.assertEqual(package_grouper.package_size(5.79, self.rules), 20)
        self.assertEqual(package_grouper.package_size(None, self.rules), 20)

    def test_package_count_rounds_up(self):
        self.assertEqual(package_grouper.package_count(25, 6.0, self.rules), 3)
        self.assertEqual(package_grouper.package_count(40, 3.0, self.rules), 2)
        self.assertEqual(package_grouper.package_count(41, 3.0, self.rules), 3)

    def test_build_packages_tracks_entry_and_category(self):
        packages = package_grouper.build_packages([_entry(3.0, 30), _entry(6.0, 5)], self.rules)

        self.assertEqual([package["entry"] for package in packages], [0, 0, 1])
        self.assertEqual([package["package_index"] for package in packages], [0, 1, 0])
        self.assertEqual([package["large"] for package in packages], [False, False, True])

    def test_medium_packages_first_and_near_full_packages_last(self):
        entries = [_entry(length, 1) for length in (9.0, 3.0, 1.0, 6.0, 7.6)]

        ordered = package_grouper.group_packages(entries, 10.0, self.rules)

        self.assertEqual([package["length"] for package in ordered], [6.0, 3.0, 7.6, 1.0, 9.0])

    def test_near_full_band_includes_the_row_length(self):
        ordered = package_grouper.group_packages(
            [_entry(10.0, 1), _entry(1.0, 1)], 10.0, self.rules
        )

        self.assertEqual([package["length"] for package in ordered], [1.0, 10.0])

    def test_large_package_wins_a_length_tie(self):
        entries = [_entry(5.795, 1), _entry(5.80, 1)]

        ordered = package_grouper.group_packages(entries, 10.0, self.rules)

        self.assertEqual([package["large"] for package in ordered], [True, False])

    def test_equal_packages_keep_input_order(self):
        entries = [_entry(3.0, 20), _entry(3.0, 20)]

        ordered = package_grouper.group_packages(entries, 6.0, self.rules)

        self.assertEqual([package["entry"] for package in ordered], [0, 1])


if __name__ == "__main__":
    unittest.main()
