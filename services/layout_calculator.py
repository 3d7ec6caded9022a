import logging

from services import layout_settings
from services.input_normalizer import normalize_request
from services.layout_assembler import assemble_fragments, item_totals
from services.layout_summary import summarize_layout
from services.package_grouper import group_packages
from services.placement_planner import plan_packages
from services.row_balancer import balance_rows

logger = logging.getLogger(__name__)


def calculate_layout(items, vehicle, section="full", rules=None):
    """Plan one cargo section and return fragments plus planning metadata.

    Rules:
    - Items of 5.80 m or more travel in packages of 10 units, shorter ones in 20.
    - A package on floor 2+ always has something below it in the same row.
    - Short packages never rest on long ones.
    - Articulated vehicles are planned one section at a time.
    """
    rules = layout_settings.resolve_rules(rules)
    request = normalize_request(items, vehicle, section, rules)
    entries = request["entries"]
    max_row_length = request["max_row_length"]

    packages = group_packages(entries, max_row_length, rules)
    plan = plan_packages(packages, max_row_length, request["columns"], rules)
    fragments = assemble_fragments(entries, plan["positions"], rules)
    fragments = balance_rows(fragments, max_row_length, rules)

    logger.debug(
        "Layout planned section=%s packages=%s placed=%s unplaced=%s passes=%s",
        request["section"],
        len(packages),
        plan["placed_packages"],
        plan["unplaced_packages"],
        plan["pass_counts"],
    )

    summary, warnings = summarize_layout(
        fragments,
        request["rejected_items"],
        request["vehicle"],
        request["section"],
        max_row_length,
        rules,
    )
    return {
        "fragments": fragments,
        "rejected_items": request["rejected_items"],
        "item_totals": item_totals(entries, plan["positions"], rules),
        "section": request["section"],
        "vehicle_type": request["vehicle_type"],
        "max_row_length": max_row_length,
        "columns": request["columns"],
        "package_count": len(packages),
        "placed_packages": plan["placed_packages"],
        "unplaced_packages": plan["unplaced_packages"],
        "summary": summary,
        "warnings": warnings,
    }


def compute_layout(items, vehicle, section="full", rules=None):
    return calculate_layout(items, vehicle, section=section, rules=rules)["fragments"]


def calculate_columns(items, vehicle, section="full", rules=None):
    rules = layout_settings.resolve_rules(rules)
    return normalize_request(items, vehicle, section, rules)["columns"]


def build_grid_map(fragments, prefix=""):
    grid_map = {}
    for fragment in fragments:
        position = fragment.get("grid_position")
        if not position:
            continue
        key = f"{position['floor']}-{position['row']}-{position['column']}"
        if prefix:
            key = f"{prefix}-{key}"
        grid_map.setdefault(key, []).append(fragment)
    return grid_map
