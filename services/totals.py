def calculate_fragment_weight(fragment):
    quantity = fragment.get("quantity", 0) or 0
    weight_per_unit = fragment.get("weight", 0) or 0
    try:
        return quantity * float(weight_per_unit)
    except (TypeError, ValueError):
        return 0.0


def calculate_fragment_totals(fragments):
    placed = [fragment for fragment in fragments if fragment.get("grid_position")]
    unplaced = [fragment for fragment in fragments if not fragment.get("grid_position")]
    return {
        "total_fragments": len(fragments),
        "total_units": sum(fragment.get("quantity", 0) or 0 for fragment in fragments),
        "placed_units": sum(fragment.get("quantity", 0) or 0 for fragment in placed),
        "unplaced_units": sum(fragment.get("quantity", 0) or 0 for fragment in unplaced),
        "total_weight": sum(calculate_fragment_weight(fragment) for fragment in fragments),
        "placed_weight": sum(calculate_fragment_weight(fragment) for fragment in placed),
    }
