import math

VEHICLE_TYPES = ("SINGLE", "ARTICULATED", "SEMI")
SECTIONS = ("full", "front", "rear")
DEFAULT_POSITION = 999

ITEM_KEY_ALIASES = {
    "productId": "product_id",
    "productName": "product_name",
    "gridPosition": "grid_position",
    "qty": "quantity",
}

VEHICLE_KEY_ALIASES = {
    "vehicle_type": "type",
    "frontSectionLength": "front_section_length",
    "rearSectionLength": "rear_section_length",
    "maxWeight": "max_weight",
    "frontMaxWeight": "front_max_weight",
    "rearMaxWeight": "rear_max_weight",
}

REASON_MESSAGES = {
    "MISSING_PRODUCT_ID": "Item has no product identifier.",
    "INVALID_QUANTITY": "Item quantity must be a positive whole number.",
    "EXCEEDS_SECTION_LENGTH": "Item is longer than the {section} section ({max_length:.2f} m).",
}


def _as_float(value, default=0.0):
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(parsed) or math.isinf(parsed):
        return default
    return parsed


def _as_quantity(value):
    if isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or parsed <= 0 or parsed != int(parsed):
        return None
    return int(parsed)


def _as_position(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return DEFAULT_POSITION


def canonical_item(raw_item):
    item = {}
    for key, value in (raw_item or {}).items():
        item[ITEM_KEY_ALIASES.get(key, key)] = value
    return item


def canonical_vehicle(raw_vehicle):
    vehicle = {}
    for key, value in (raw_vehicle or {}).items():
        vehicle[VEHICLE_KEY_ALIASES.get(key, key)] = value
    vehicle["type"] = normalize_vehicle_type(vehicle.get("type"))
    return vehicle


def normalize_vehicle_type(value, default="SINGLE"):
    text = str(value or "").strip().upper()
    return text if text in VEHICLE_TYPES else default


def normalize_section(value, default="full"):
    text = str(value or "").strip().lower()
    return text if text in SECTIONS else default


def is_sub_section(vehicle, section):
    return vehicle.get("type") == "ARTICULATED" and section != "full"


def resolve_max_row_length(vehicle, section):
    if is_sub_section(vehicle, section):
        key = "front_section_length" if section == "front" else "rear_section_length"
        return max(_as_float(vehicle.get(key)), 0.0)
    return max(_as_float(vehicle.get("length")), 0.0)


def item_length(item):
    return max(_as_float(item.get("length")), 0.0)


def compute_columns(lengths, max_row_length, rules):
    min_columns = rules["min_columns"]
    if max_row_length <= 0:
        return min_columns
    candidates = [length or max_row_length for length in lengths]
    candidates = [length for length in candidates if length > 0]
    if not candidates:
        return min_columns
    fitting = int(math.floor(max_row_length / min(candidates) + 1e-9))
    return min(max(min_columns, fitting), rules["max_columns"])


def _reject(index, item, reason, **context):
    return {
        "index": index,
        "item": item,
        "reason": reason,
        "message": REASON_MESSAGES[reason].format(**context),
    }


def normalize_request(items, vehicle, section, rules):
    """Filter and canonicalise one planning request.

    Accepted entries keep the caller's index so results can be traced back to
    the input list. Rejected items are reported, never raised.
    """
    vehicle = canonical_vehicle(vehicle)
    section = normalize_section(section)
    max_row_length = resolve_max_row_length(vehicle, section)
    filter_by_length = is_sub_section(vehicle, section)

    entries = []
    rejected_items = []
    for index, raw_item in enumerate(items or []):
        item = canonical_item(raw_item)
        if not str(item.get("product_id") or "").strip():
            rejected_items.append(_reject(index, item, "MISSING_PRODUCT_ID"))
            continue
        quantity = _as_quantity(item.get("quantity"))
        if quantity is None:
            rejected_items.append(_reject(index, item, "INVALID_QUANTITY"))
            continue
        length = item_length(item)
        if filter_by_length and length > max_row_length + 1e-9:
            rejected_items.append(
                _reject(
                    index,
                    item,
                    "EXCEEDS_SECTION_LENGTH",
                    section=section,
                    max_length=max_row_length,
                )
            )
            continue
        item["quantity"] = quantity
        if item.get("length") is not None:
            item["length"] = length
        entries.append(
            {
                "index": index,
                "item": item,
                "quantity": quantity,
                "length": length,
                "position": _as_position(item.get("position")),
            }
        )

    # Stable sort keeps input order among equal positions.
    entries.sort(key=lambda entry: entry["position"])

    return {
        "entries": entries,
        "rejected_items": rejected_items,
        "vehicle": vehicle,
        "vehicle_type": vehicle["type"],
        "section": section,
        "max_row_length": max_row_length,
        "columns": compute_columns(
            [entry["length"] for entry in entries],
            max_row_length,
            rules,
        ),
    }
