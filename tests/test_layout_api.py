import io
import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

os.environ.setdefault(
    "APP_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="beam-load-planner-"), "app.db")
)

import app as app_module  # noqa: E402
from services import layout_settings  # noqa: E402
from services.remote_optimizer import RemoteLayoutOptimizer  # noqa: E402


class _FakeProvider:
    def complete_json(self, system_prompt, user_prompt):
        return {
            "placements": [{"item_index": 0, "floor": 1, "row": 1, "column": 1}],
            "reasoning": "One package per row.",
        }


@patch("services.layout_settings.db.get_planning_setting", return_value={})
class LayoutApiTests(unittest.TestCase):
    def setUp(self):
        self.client = app_module.app.test_client()

    def tearDown(self):
        layout_settings.invalidate_layout_rules_cache()
        layout_settings.invalidate_utilization_grade_thresholds_cache()

    def test_layout_returns_fragments_and_grid_map(self, _mock_get_setting):
        response = self.client.post(
            "/api/layout",
            json={
                "items": [
                    {"product_id": "A", "quantity": 10, "length": 6.0},
                    {"product_id": "B", "quantity": 10, "length": 3.0},
                ],
                "vehicle": {"type": "SINGLE", "length": 6.0},
            },
        )

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(len(payload["fragments"]), 2)
        self.assertEqual(sorted(payload["grid_map"]), ["1-1-1", "1-2-1"])
        self.assertEqual(payload["grid_map"]["1-1-1"][0]["product_id"], "A")
        self.assertEqual(payload["summary"]["placed_units"], 20)

    def test_layout_rejects_missing_vehicle_length(self, _mock_get_setting):
        response = self.client.post(
            "/api/layout",
            json={"items": [], "vehicle": {"type": "SINGLE"}},
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("length", response.get_json()["errors"])

    def test_layout_rejects_non_object_body(self, _mock_get_setting):
        response = self.client.post("/api/layout", data="[]", content_type="application/json")

        self.assertEqual(response.status_code, 400)

    def test_split_layout_returns_both_sections(self, _mock_get_setting):
        response = self.client.post(
            "/api/layout",
            json={
                "items": [
                    {"product_id": "SHORT", "quantity": 20, "length": 3.0},
                    {"product_id": "REAR", "quantity": 10, "length": 7.0},
                ],
                "vehicle": {
                    "type": "ARTICULATED",
                    "frontSectionLength": 6.0,
                    "rearSectionLength": 8.0,
                },
                "section": "split",
            },
        )

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(list(payload["front"]["grid_map"]), ["front-1-1-1"])
        self.assertEqual(list(payload["rear"]["grid_map"]), ["rear-1-1-1"])
        self.assertEqual(payload["not_placed"], [])

    def test_split_layout_requires_section_lengths(self, _mock_get_setting):
        response = self.client.post(
            "/api/layout",
            json={
                "items": [],
                "vehicle": {"type": "ARTICULATED", "front_section_length": 6.0},
                "section": "split",
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("rear_section_length", response.get_json()["errors"])

    def test_optimize_is_unavailable_without_configuration(self, _mock_get_setting):
        with patch.object(app_module, "get_remote_optimizer", return_value=MagicMock(available=False)):
            response = self.client.post(
                "/api/layout/optimize",
                json={
                    "items": [{"product_id": "A", "quantity": 10, "length": 3.0}],
                    "vehicle": {"type": "SINGLE", "length": 6.0},
                },
            )

        self.assertEqual(response.status_code, 503)

    def test_optimize_returns_remote_plan(self, _mock_get_setting):
        optimizer = RemoteLayoutOptimizer(provider=_FakeProvider())
        with patch.object(app_module, "get_remote_optimizer", return_value=optimizer):
            response = self.client.post(
                "/api/layout/optimize",
                json={
                    "items": [{"product_id": "A", "quantity": 10, "length": 3.0}],
                    "vehicle": {"type": "SINGLE", "length": 6.0},
                },
            )

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["engine"], "remote")
        self.assertEqual(list(payload["grid_map"]), ["1-1-1"])

    def test_upload_parses_items(self, _mock_get_setting):
        csv_body = "sku,qty,length\nV1,25,6\nV2,abc,3\n"

        response = self.client.post(
            "/api/items/upload",
            data={"file": (io.BytesIO(csv_body.encode("utf-8")), "items.csv")},
            content_type="multipart/form-data",
        )

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["total_rows"], 2)
        self.assertEqual([item["product_id"] for item in payload["items"]], ["V1"])
        self.assertEqual(payload["invalid_rows"][0]["row"], 3)

    def test_upload_without_required_columns_is_rejected(self, _mock_get_setting):
        response = self.client.post(
            "/api/items/upload",
            data={"file": (io.BytesIO(b"name\nbeam\n"), "items.csv")},
            content_type="multipart/form-data",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("Missing required columns", response.get_json()["error"])

    def test_layout_rules_round_trip(self, _mock_get_setting):
        response = self.client.get("/api/settings/layout-rules")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["rules"], layout_settings.DEFAULT_LAYOUT_RULES)

        with patch("services.layout_settings.db.upsert_planning_setting") as mock_upsert:
            response = self.client.post(
                "/api/settings/layout-rules",
                json={"rules": {"small_package_size": 25}},
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["rules"]["small_package_size"], 25)
        mock_upsert.assert_called_once()


if __name__ == "__main__":
    unittest.main()
