import json
import sqlite3
import unittest
from unittest.mock import patch

from services import layout_settings


class LayoutSettingsTests(unittest.TestCase):
    def tearDown(self):
        layout_settings.invalidate_layout_rules_cache()
        layout_settings.invalidate_utilization_grade_thresholds_cache()

    def test_partial_override_keeps_remaining_defaults(self):
        rules = layout_settings.normalize_layout_rules({"large_package_size": 12, "floors": "3"})

        self.assertEqual(rules["large_package_size"], 12)
        self.assertEqual(rules["floors"], 3)
        self.assertEqual(rules["small_package_size"], 20)
        self.assertEqual(rules["large_min_length"], 5.80)

    def test_invalid_values_fall_back_to_defaults(self):
        rules = layout_settings.normalize_layout_rules(
            {"rows": 0, "near_full_ratio": 1.5, "large_min_length": "long", "max_columns": 2}
        )

        self.assertEqual(rules["rows"], 3)
        self.assertEqual(rules["near_full_ratio"], 0.85)
        self.assertEqual(rules["large_min_length"], 5.80)
        self.assertEqual(rules["max_columns"], rules["min_columns"])

    def test_near_full_ratio_never_drops_below_medium_ratio(self):
        rules = layout_settings.normalize_layout_rules({"near_full_ratio": 0.5})

        self.assertEqual(rules["near_full_ratio"], rules["medium_max_ratio"])

    @patch("services.layout_settings.db.get_planning_setting")
    def test_rules_are_read_from_planning_settings(self, mock_get_setting):
        mock_get_setting.return_value = {"value_text": json.dumps({"small_package_size": 25})}

        rules = layout_settings.get_layout_rules(force_refresh=True)

        self.assertEqual(rules["small_package_size"], 25)
        mock_get_setting.assert_called_once_with(layout_settings.LAYOUT_RULES_SETTING_KEY)

    @patch("services.layout_settings.db.get_planning_setting")
    def test_rules_are_cached_between_calls(self, mock_get_setting):
        mock_get_setting.return_value = {}

        layout_settings.get_layout_rules(force_refresh=True)
        layout_settings.get_layout_rules()

        self.assertEqual(mock_get_setting.call_count, 1)

    @patch("services.layout_settings.db.get_planning_setting", return_value={"value_text": "{not json"})
    def test_malformed_setting_uses_defaults(self, _mock_get_setting):
        with self.assertLogs("services.layout_settings", level="WARNING"):
            rules = layout_settings.get_layout_rules(force_refresh=True)

        self.assertEqual(rules, layout_settings.DEFAULT_LAYOUT_RULES)

    @patch(
        "services.layout_settings.db.get_planning_setting",
        side_effect=sqlite3.OperationalError("no such table: planning_settings"),
    )
    def test_missing_settings_table_uses_defaults(self, _mock_get_setting):
        with self.assertLogs("services.layout_settings", level="WARNING"):
            rules = layout_settings.get_layout_rules(force_refresh=True)

        self.assertEqual(rules, layout_settings.DEFAULT_LAYOUT_RULES)

    @patch("services.layout_settings.db.upsert_planning_setting")
    def test_save_normalizes_and_persists(self, mock_upsert):
        rules = layout_settings.save_layout_rules({"rows": 4, "unknown": 1})

        self.assertEqual(rules["rows"], 4)
        self.assertNotIn("unknown", rules)
        key, value_text = mock_upsert.call_args[0]
        self.assertEqual(key, layout_settings.LAYOUT_RULES_SETTING_KEY)
        self.assertEqual(json.loads(value_text)["rows"], 4)

    def test_explicit_rules_bypass_settings(self):
        with patch("services.layout_settings.db.get_planning_setting") as mock_get_setting:
            rules = layout_settings.resolve_rules({"floors": 2})

        self.assertEqual(rules["floors"], 2)
        mock_get_setting.assert_not_called()

    @patch("services.layout_settings.db.get_planning_setting")
    def test_grade_thresholds_keep_a_descending_ladder(self, mock_get_setting):
        mock_get_setting.return_value = {
            "value_text": json.dumps({"A": 80, "B": 90, "C": 50, "D": 50})
        }

        thresholds = layout_settings.get_utilization_grade_thresholds(force_refresh=True)

        self.assertEqual(thresholds, {"A": 80, "B": 79, "C": 50, "D": 49})


if __name__ == "__main__":
    unittest.main()
