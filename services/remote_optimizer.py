import json
import logging
import os
from time import perf_counter

from services import layout_settings
from services.input_normalizer import normalize_request
from services.layout_assembler import assemble_fragments, item_totals
from services.layout_summary import summarize_layout
from services.optimizer_providers.text_generation_provider import (
    LayoutOptimizerError,
    TextGenerationProvider,
)
from services.package_grouper import is_large, package_count, package_size

logger = logging.getLogger(__name__)

_REMOTE_OPTIMIZER = None

SYSTEM_PROMPT = (
    "You plan the placement of beam packages on a truck loading grid. "
    "Answer with a JSON object only: "
    '{"placements": [{"item_index": int, "floor": int, "row": int, "column": int, '
    '"packages": int}], "reasoning": str, "warnings": [str]}. '
    "Floor 1 is the lowest level. Every package above floor 1 needs a package below it "
    "in the same row. Short packages (under {large_min_length} m) never rest on long ones. "
    "The lengths of the packages in one floor/row must not add up to more than the row length."
)


def get_remote_optimizer():
    global _REMOTE_OPTIMIZER
    if _REMOTE_OPTIMIZER is None:
        _REMOTE_OPTIMIZER = RemoteLayoutOptimizer()
    return _REMOTE_OPTIMIZER


def _as_bool(value, default=False):
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on", "y"}:
        return True
    if text in {"0", "false", "no", "off", "n"}:
        return False
    return bool(default)


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def _env(name, default=None):
    value = os.environ.get(name)
    text = str(value).strip() if value is not None else ""
    return text or default


def _error(message):
    return {"error": message, "engine": "remote"}


class RemoteLayoutOptimizer:
    def __init__(self, provider=None):
        self.enabled = _as_bool(_env("LAYOUT_OPTIMIZER_ENABLED"), default=False)
        self.provider = provider
        if provider is not None:
            self.enabled = True
        elif self.enabled:
            api_key = _env("LAYOUT_OPTIMIZER_API_KEY") or ""
            if api_key:
                self.provider = TextGenerationProvider(
                    api_key=api_key,
                    url=_env("LAYOUT_OPTIMIZER_URL"),
                    model=_env("LAYOUT_OPTIMIZER_MODEL", "gpt-4o-mini"),
                    timeout_ms=_as_int(_env("LAYOUT_OPTIMIZER_TIMEOUT_MS"), 30000),
                    retries=1,
                )
            else:
                logger.warning("LAYOUT_OPTIMIZER_ENABLED is true but LAYOUT_OPTIMIZER_API_KEY is missing.")
        self.stats = {"requests": 0, "success": 0, "errors": 0}

    @property
    def available(self):
        return bool(self.enabled and self.provider is not None)

    def optimize(self, items, vehicle, section="full", preferences=None, rules=None):
        rules = layout_settings.resolve_rules(rules)
        request = normalize_request(items, vehicle, section, rules)
        entries = request["entries"]
        if not self.available:
            return _error("Remote layout optimizer is not configured.")
        if not entries:
            return _error("No valid items to optimize.")

        self.stats["requests"] += 1
        started_at = perf_counter()
        try:
            plan = self.provider.complete_json(
                SYSTEM_PROMPT.replace("{large_min_length}", f"{rules['large_min_length']:.2f}"),
                build_prompt(request, preferences, rules),
            )
            positions_by_entry = parse_plan(plan, request, rules)
        except LayoutOptimizerError as exc:
            self.stats["errors"] += 1
            logger.warning("Remote layout optimizer failed: %s", exc)
            return _error(str(exc))

        self.stats["success"] += 1
        duration_ms = int((perf_counter() - started_at) * 1000)
        logger.info("Remote layout optimizer success duration_ms=%s", duration_ms)

        fragments = assemble_fragments(entries, positions_by_entry, rules)
        summary, warnings = summarize_layout(
            fragments,
            request["rejected_items"],
            request["vehicle"],
            request["section"],
            request["max_row_length"],
            rules,
        )
        notes = plan.get("warnings") or []
        if not isinstance(notes, list):
            notes = [notes]
        for note in notes:
            warnings.append({"code": "OPTIMIZER_NOTE", "message": str(note), "severity": "info"})

        return {
            "engine": "remote",
            "fragments": fragments,
            "rejected_items": request["rejected_items"],
            "item_totals": item_totals(entries, positions_by_entry, rules),
            "section": request["section"],
            "vehicle_type": request["vehicle_type"],
            "max_row_length": request["max_row_length"],
            "columns": request["columns"],
            "reasoning": str(plan.get("reasoning") or ""),
            "summary": summary,
            "warnings": warnings,
        }


def build_prompt(request, preferences, rules):
    items = []
    for entry in request["entries"]:
        item = entry["item"]
        items.append(
            {
                "item_index": entry["index"],
                "name": item.get("product_name") or item.get("product_id"),
                "length_m": entry["length"],
                "weight_kg": item.get("weight"),
                "quantity": entry["quantity"],
                "package_size": package_size(entry["length"], rules),
                "packages": package_count(entry["quantity"], entry["length"], rules),
                "category": "long" if is_large(entry["length"], rules) else "short",
            }
        )
    payload = {
        "vehicle_type": request["vehicle_type"],
        "section": request["section"],
        "row_length_m": request["max_row_length"],
        "floors": rules["floors"],
        "rows": rules["rows"],
        "columns": request["columns"],
        "preferences": preferences or {"prioritize": "weight_balance"},
        "items": items,
    }
    return json.dumps(payload, sort_keys=True)


def _placement_int(placement, *keys):
    for key in keys:
        if key in placement:
            value = placement.get(key)
            if isinstance(value, bool):
                break
            try:
                parsed = float(value)
            except (TypeError, ValueError):
                break
            if parsed != int(parsed):
                break
            return int(parsed)
    raise LayoutOptimizerError(f"Placement field {keys[0]} is missing or not a whole number.")


def parse_plan(plan, request, rules):
    """Validate a remote plan and return positions keyed by entry position."""
    placements = plan.get("placements")
    if not isinstance(placements, list):
        raise LayoutOptimizerError("Optimizer response has no placements list.")

    entry_by_index = {entry["index"]: idx for idx, entry in enumerate(request["entries"])}
    positions_by_entry = {}
    packages_used = {}
    for placement in placements:
        if not isinstance(placement, dict):
            raise LayoutOptimizerError("Each placement must be an object.")
        item_index = _placement_int(placement, "item_index", "itemIndex")
        floor = _placement_int(placement, "floor")
        row = _placement_int(placement, "row")
        column = _placement_int(placement, "column", "col")
        packages = _placement_int(placement, "packages") if "packages" in placement else 1

        if item_index not in entry_by_index:
            raise LayoutOptimizerError(f"Placement references unknown item {item_index}.")
        if not 1 <= floor <= rules["floors"]:
            raise LayoutOptimizerError(f"Placement floor {floor} is outside 1..{rules['floors']}.")
        if not 1 <= row <= rules["rows"]:
            raise LayoutOptimizerError(f"Placement row {row} is outside 1..{rules['rows']}.")
        if column < 1:
            raise LayoutOptimizerError(f"Placement column {column} must be at least 1.")
        if packages < 1:
            raise LayoutOptimizerError("Placement packages must be at least 1.")

        entry_idx = entry_by_index[item_index]
        entry = request["entries"][entry_idx]
        packages_used[entry_idx] = packages_used.get(entry_idx, 0) + packages
        allowed = package_count(entry["quantity"], entry["length"], rules)
        if packages_used[entry_idx] > allowed:
            raise LayoutOptimizerError(
                f"Item {item_index} was given {packages_used[entry_idx]} packages; it has {allowed}."
            )
        positions_by_entry.setdefault(entry_idx, []).append(
            {"floor": floor, "row": row, "column": column, "packages": packages}
        )
    return positions_by_entry
