import logging
import os

from flask import Flask, jsonify, request

import db
from services import layout_settings, validation
from services.item_importer import ItemImporter
from services.layout_calculator import build_grid_map, calculate_layout
from services.remote_optimizer import get_remote_optimizer
from services.section_splitter import plan_articulated_load

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

db.init_db()


def _with_grid_map(result, prefix=""):
    result["grid_map"] = build_grid_map(result["fragments"], prefix=prefix)
    return result


@app.route("/api/layout", methods=["POST"])
def api_layout():
    payload = request.get_json(silent=True)
    errors = validation.validate_layout_request(payload, allow_split=True)
    if errors:
        return jsonify({"error": "Invalid layout request.", "errors": errors}), 400

    section = str(payload.get("section") or "full").strip().lower()
    if section == "split":
        result = plan_articulated_load(payload["items"], payload["vehicle"])
        for key in ("front", "rear", "full"):
            if key in result:
                _with_grid_map(result[key], prefix=key if key != "full" else "")
        return jsonify(result)

    result = calculate_layout(payload["items"], payload["vehicle"], section)
    return jsonify(_with_grid_map(result))


@app.route("/api/layout/optimize", methods=["POST"])
def api_layout_optimize():
    payload = request.get_json(silent=True)
    errors = validation.validate_layout_request(payload)
    if errors:
        return jsonify({"error": "Invalid layout request.", "errors": errors}), 400

    optimizer = get_remote_optimizer()
    if not optimizer.available:
        return jsonify({"error": "Remote layout optimizer is not configured."}), 503

    result = optimizer.optimize(
        payload["items"],
        payload["vehicle"],
        section=payload.get("section") or "full",
        preferences=payload.get("preferences"),
    )
    if result.get("error"):
        return jsonify(result), 502
    return jsonify(_with_grid_map(result))


@app.route("/api/items/upload", methods=["POST"])
def api_items_upload():
    file = request.files.get("file")
    if not file or not getattr(file, "filename", ""):
        return jsonify({"error": "Please choose a CSV or Excel file to upload."}), 400
    try:
        summary = ItemImporter().parse_file(file.stream, filename=file.filename)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(
        {
            "filename": file.filename,
            "total_rows": summary["total_rows"],
            "items": summary["items"],
            "invalid_rows": summary["invalid_rows"],
        }
    )


@app.route("/api/settings/layout-rules", methods=["GET", "POST"])
def api_layout_rules():
    if request.method == "GET":
        return jsonify({"rules": layout_settings.get_layout_rules(force_refresh=True)})

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object."}), 400
    rules = layout_settings.save_layout_rules(payload.get("rules", payload))
    logger.info("Layout rules updated: %s", rules)
    return jsonify({"rules": rules})


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app.run(debug=os.environ.get("FLASK_DEBUG", "").strip() == "1")
