import logging

from services import layout_settings
from services.input_normalizer import (
    canonical_vehicle,
    normalize_request,
    resolve_max_row_length,
)
from services.layout_calculator import calculate_layout
from services.layout_summary import (
    overweight_warning,
    section_weight_capacity,
    summarize_layout,
)
from services.totals import calculate_fragment_weight

logger = logging.getLogger(__name__)


def _not_placed(index, item, quantity, reason, message):
    return {
        "index": index,
        "item": item,
        "product_id": item.get("product_id"),
        "quantity": quantity,
        "reason": reason,
        "message": message,
    }


def _placed_quantity_by_index(result):
    return {
        totals["index"]: totals["placed_quantity"]
        for totals in result["item_totals"]
    }


def _keep_placed(result):
    """Drop what a section could not place; those units are planned elsewhere."""
    result["fragments"] = [
        fragment for fragment in result["fragments"] if fragment.get("grid_position")
    ]
    result["package_count"] = result["placed_packages"]
    result["unplaced_packages"] = 0
    for totals in result["item_totals"]:
        totals["quantity"] = totals["placed_quantity"]
        totals["packages"] = totals["placed_packages"]
        totals["unplaced_quantity"] = 0


def _section_weights(front, rear, vehicle):
    weights = {}
    warnings = []
    for section, result in (("front", front), ("rear", rear)):
        placed_weight = sum(
            calculate_fragment_weight(fragment)
            for fragment in result["fragments"]
            if fragment.get("grid_position")
        )
        capacity = section_weight_capacity(vehicle, section)
        weights[section] = {"placed_weight": round(placed_weight, 2), "capacity": capacity}
        warning = overweight_warning(placed_weight, capacity, section)
        if warning:
            warnings.append(warning)
    return weights, warnings


def plan_articulated_load(items, vehicle, rules=None):
    """Fill the front section first, then plan what is left in the rear.

    Units placed in the front stay there. Leftover units of an item move to the
    rear when the item fits it; anything fitting neither section is reported
    in ``not_placed`` with the reason.
    """
    rules = layout_settings.resolve_rules(rules)
    vehicle = canonical_vehicle(vehicle)
    if vehicle["type"] != "ARTICULATED":
        full = calculate_layout(items, vehicle, "full", rules=rules)
        return {"full": full, "not_placed": [], "warnings": list(full["warnings"])}

    front_length = resolve_max_row_length(vehicle, "front")
    rear_length = resolve_max_row_length(vehicle, "rear")

    # Validity filtering only; section length checks happen below.
    request = normalize_request(items, dict(vehicle, type="SINGLE"), "full", rules)
    front_items = []
    front_indexes = []
    rear_only = set()
    not_placed = []
    for entry in request["entries"]:
        length = entry["length"]
        fits_front = length <= front_length + 1e-9
        fits_rear = length <= rear_length + 1e-9
        if fits_front:
            front_items.append(entry["item"])
            front_indexes.append(entry["index"])
        elif fits_rear:
            rear_only.add(entry["index"])
        else:
            not_placed.append(
                _not_placed(
                    entry["index"],
                    entry["item"],
                    entry["quantity"],
                    "DOES_NOT_FIT_VEHICLE",
                    f"Item length {length:.2f} m exceeds both sections.",
                )
            )

    front = calculate_layout(front_items, vehicle, "front", rules=rules)
    placed_in_front = {
        front_indexes[local_index]: quantity
        for local_index, quantity in _placed_quantity_by_index(front).items()
    }
    _keep_placed(front)
    front["summary"], front["warnings"] = summarize_layout(
        front["fragments"], [], vehicle, "front", front_length, rules
    )

    rear_items = []
    rear_indexes = []
    for entry in request["entries"]:
        index = entry["index"]
        item = entry["item"]
        if index in front_indexes:
            remaining = entry["quantity"] - placed_in_front.get(index, 0)
            if remaining <= 0:
                continue
            if entry["length"] <= rear_length + 1e-9:
                rear_items.append(dict(item, quantity=remaining))
                rear_indexes.append(index)
            else:
                not_placed.append(
                    _not_placed(
                        index,
                        item,
                        remaining,
                        "DOES_NOT_FIT_REAR",
                        (
                            f"{remaining} units left after the front section; item length "
                            f"{entry['length']:.2f} m exceeds the rear section ({rear_length:.2f} m)."
                        ),
                    )
                )
        elif index in rear_only:
            rear_items.append(dict(item))
            rear_indexes.append(index)

    rear = calculate_layout(rear_items, vehicle, "rear", rules=rules)
    for totals in front["item_totals"]:
        totals["index"] = front_indexes[totals["index"]]
    for totals in rear["item_totals"]:
        totals["index"] = rear_indexes[totals["index"]]

    section_weights, weight_warnings = _section_weights(front, rear, vehicle)
    warnings = [
        warning
        for warning in front["warnings"] + rear["warnings"]
        if warning["code"] not in {"SECTION_OVERWEIGHT", "ITEMS_DO_NOT_FIT"}
    ]
    warnings.extend(weight_warnings)
    rear_unplaced = sum(
        fragment["quantity"] for fragment in rear["fragments"] if not fragment.get("grid_position")
    )
    not_placed_units = rear_unplaced + sum(entry["quantity"] for entry in not_placed)
    if not_placed_units:
        warnings.append(
            {
                "code": "ITEMS_DO_NOT_FIT",
                "message": f"{not_placed_units} units could not be placed in either section.",
                "severity": "warning",
            }
        )
    if request["rejected_items"]:
        warnings.append(
            {
                "code": "ITEMS_REJECTED",
                "message": f"{len(request['rejected_items'])} items were left out of the plan.",
                "severity": "warning",
            }
        )

    logger.debug(
        "Articulated plan front_packages=%s rear_packages=%s not_placed_units=%s",
        front["placed_packages"],
        rear["placed_packages"],
        not_placed_units,
    )
    return {
        "front": front,
        "rear": rear,
        "not_placed": not_placed,
        "rejected_items": request["rejected_items"],
        "section_weights": section_weights,
        "warnings": warnings,
    }

