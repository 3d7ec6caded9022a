from services import layout_settings, totals
from services.support_validator import build_grid, validate_layout


def _warning_payload(code, message, severity="warning", **context):
    payload = {"code": code, "message": message, "severity": severity}
    payload.update({key: value for key, value in context.items() if value is not None})
    return payload


def grade_utilization(utilization_pct):
    thresholds = layout_settings.get_utilization_grade_thresholds()
    if utilization_pct >= thresholds["A"]:
        return "A"
    if utilization_pct >= thresholds["B"]:
        return "B"
    if utilization_pct >= thresholds["C"]:
        return "C"
    if utilization_pct >= thresholds["D"]:
        return "D"
    return "F"


def section_weight_capacity(vehicle, section):
    if vehicle.get("type") == "ARTICULATED" and section in {"front", "rear"}:
        key = f"{section}_max_weight"
    else:
        key = "max_weight"
    try:
        capacity = float(vehicle.get(key) or 0.0)
    except (TypeError, ValueError):
        return None
    return capacity if capacity > 0 else None


def overweight_warning(placed_weight, capacity, section):
    if not capacity or placed_weight <= capacity + 1e-6:
        return None
    label = "Vehicle" if section == "full" else f"{section.title()} section"
    return _warning_payload(
        "SECTION_OVERWEIGHT",
        (
            f"{label} weight is {placed_weight:,.0f} kg, above its "
            f"{capacity:,.0f} kg capacity."
        ),
        section=section,
    )


def summarize_layout(fragments, rejected_items, vehicle, section, max_row_length, rules):
    fragment_totals = totals.calculate_fragment_totals(fragments)
    grid, _ = build_grid(fragments, max_row_length, rules)

    weight_per_floor = [0.0] * rules["floors"]
    for fragment in fragments:
        position = fragment.get("grid_position")
        if position and 1 <= position["floor"] <= rules["floors"]:
            weight_per_floor[position["floor"] - 1] += totals.calculate_fragment_weight(fragment)

    occupied_rows = {(floor, row) for (floor, row, _), __ in grid.occupied_cells()}
    rows_used = len(occupied_rows)
    used_length = sum(grid.row_used_length(floor, row) for floor, row in occupied_rows)
    capacity_length = rules["floors"] * rules["rows"] * max_row_length
    utilization_pct = (used_length / capacity_length) * 100 if capacity_length > 0 else 0.0

    summary = {
        "total_units": fragment_totals["total_units"],
        "placed_units": fragment_totals["placed_units"],
        "unplaced_units": fragment_totals["unplaced_units"],
        "total_weight": round(fragment_totals["total_weight"], 2),
        "placed_weight": round(fragment_totals["placed_weight"], 2),
        "weight_per_floor": [round(weight, 2) for weight in weight_per_floor],
        "rows_used": rows_used,
        "utilization_pct": round(utilization_pct, 1),
        "utilization_grade": grade_utilization(utilization_pct),
        "weight_capacity": section_weight_capacity(vehicle, section),
    }

    warnings = []
    if fragment_totals["unplaced_units"] > 0:
        names = sorted(
            {
                str(fragment.get("product_name") or fragment.get("product_id"))
                for fragment in fragments
                if not fragment.get("grid_position")
            }
        )
        warnings.append(
            _warning_payload(
                "ITEMS_DO_NOT_FIT",
                (
                    f"{fragment_totals['unplaced_units']} units do not fit: "
                    f"{', '.join(names)}."
                ),
                section=section,
            )
        )
    if rejected_items:
        warnings.append(
            _warning_payload(
                "ITEMS_REJECTED",
                f"{len(rejected_items)} items were left out of the plan.",
                section=section,
            )
        )
    overweight = overweight_warning(
        fragment_totals["placed_weight"],
        summary["weight_capacity"],
        section,
    )
    if overweight:
        warnings.append(overweight)
    for issue in validate_layout(fragments, max_row_length, rules):
        warnings.append(
            _warning_payload(
                "LAYOUT_INVARIANT",
                issue["message"],
                severity="error",
                section=section,
                issue=issue["code"],
            )
        )
    return summary, warnings
