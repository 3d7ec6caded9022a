from services.package_grouper import is_large
from services.support_validator import validate_layout

SUPPORT_ISSUE_CODES = {"UNSUPPORTED", "INCOMPATIBLE_SUPPORT"}


def _row_profiles(placed, rules):
    profiles = {}
    for fragment in placed:
        position = fragment["grid_position"]
        key = (position["floor"], position["row"])
        profile = profiles.setdefault(
            key,
            {"floor": key[0], "row": key[1], "total_length": 0.0, "has_large": False},
        )
        length = float(fragment.get("length") or 0.0)
        profile["total_length"] += length * fragment["quantity"]
        if is_large(length, rules):
            profile["has_large"] = True
    return profiles


def _floor_order(floor_rows):
    """Rows with large packages take the lowest slots while any are pending."""
    remaining = sorted(floor_rows, key=lambda profile: -profile["total_length"])
    ordered = []
    while remaining:
        selected = 0
        for idx, candidate in enumerate(remaining):
            if candidate["has_large"]:
                selected = idx
                break
            large_pending = any(
                other["has_large"] for other_idx, other in enumerate(remaining) if other_idx != idx
            )
            if not large_pending:
                selected = idx
                break
        ordered.append(remaining.pop(selected))
    return ordered


def row_mapping(fragments, rules):
    """Return ``{floor: {old_row: new_row}}`` with new rows numbered from 1."""
    placed = [fragment for fragment in fragments if fragment.get("grid_position")]
    profiles = _row_profiles(placed, rules)
    mapping = {}
    for floor in sorted({floor for floor, _ in profiles}):
        floor_rows = [profile for (f, _), profile in sorted(profiles.items()) if f == floor]
        mapping[floor] = {
            profile["row"]: new_row
            for new_row, profile in enumerate(_floor_order(floor_rows), start=1)
        }
    return mapping


def stack_mapping(mapping):
    """Apply the ground floor's order to every floor so stacks move whole."""
    ground = dict(mapping.get(1) or {})
    return {floor: dict(ground) for floor in mapping}


def apply_row_mapping(fragments, mapping):
    remapped = []
    unplaced = []
    for fragment in fragments:
        position = fragment.get("grid_position")
        if not position:
            unplaced.append(fragment)
            continue
        new_row = (mapping.get(position["floor"]) or {}).get(position["row"], position["row"])
        if new_row != position["row"]:
            fragment = dict(fragment)
            fragment["grid_position"] = dict(position, row=new_row)
        remapped.append(fragment)
    return remapped + unplaced


def _support_issue_count(fragments, max_row_length, rules):
    return sum(
        1
        for issue in validate_layout(fragments, max_row_length, rules)
        if issue["code"] in SUPPORT_ISSUE_CODES
    )


def balance_rows(fragments, max_row_length, rules):
    mapping = row_mapping(fragments, rules)
    if not mapping:
        return list(fragments)
    balanced = apply_row_mapping(fragments, mapping)
    baseline = _support_issue_count(fragments, max_row_length, rules)
    if _support_issue_count(balanced, max_row_length, rules) <= baseline:
        return balanced
    return apply_row_mapping(fragments, stack_mapping(mapping))
