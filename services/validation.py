from services.input_normalizer import SECTIONS, VEHICLE_TYPES, canonical_vehicle


def validate_positive_float(value, field_name, errors, required=True):
    if value is None or value == "":
        if required:
            errors[field_name] = f"{field_name.replace('_', ' ').title()} is required."
        return
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        parsed = None
    if parsed is None or parsed <= 0:
        errors[field_name] = (
            f"{field_name.replace('_', ' ').title()} must be a positive number."
        )


def validate_choice(value, field_name, choices, errors):
    if value is None or value == "":
        return
    if str(value).strip().lower() not in {choice.lower() for choice in choices}:
        errors[field_name] = (
            f"{field_name.replace('_', ' ').title()} must be one of: {', '.join(choices)}."
        )


def validate_layout_request(payload, allow_split=False):
    errors = {}
    if not isinstance(payload, dict):
        return {"payload": "Request body must be a JSON object."}

    items = payload.get("items")
    if not isinstance(items, list):
        errors["items"] = "Items must be a list."
    elif any(not isinstance(item, dict) for item in items):
        errors["items"] = "Each item must be an object."

    raw_vehicle = payload.get("vehicle")
    if not isinstance(raw_vehicle, dict):
        errors["vehicle"] = "Vehicle is required."
        return errors

    validate_choice(raw_vehicle.get("type"), "vehicle_type", VEHICLE_TYPES, errors)
    vehicle = canonical_vehicle(raw_vehicle)
    sections = SECTIONS + ("split",) if allow_split else SECTIONS
    validate_choice(payload.get("section"), "section", sections, errors)
    section = str(payload.get("section") or "full").strip().lower()

    if vehicle["type"] == "ARTICULATED" and section != "full":
        validate_positive_float(vehicle.get("front_section_length"), "front_section_length", errors)
        validate_positive_float(vehicle.get("rear_section_length"), "rear_section_length", errors)
    else:
        validate_positive_float(vehicle.get("length"), "length", errors)

    for key in ("max_weight", "front_max_weight", "rear_max_weight"):
        validate_positive_float(vehicle.get(key), key, errors, required=False)
    return errors
