from services.package_grouper import package_count, package_size


def _fragment(item, quantity, grid_position):
    fragment = dict(item)
    fragment["quantity"] = quantity
    fragment["grid_position"] = dict(grid_position) if grid_position else None
    return fragment


def assemble_entry_fragments(entry, positions, rules):
    """Split one item into placed fragments plus at most one leftover fragment.

    Each position holds ``packages`` packages (one unless a remote plan says
    otherwise); a fragment never carries more units than the item has left.
    """
    item = entry["item"]
    size = package_size(entry["length"], rules)
    remaining = entry["quantity"]
    fragments = []
    for position in positions or []:
        if remaining <= 0:
            break
        packages = max(int(position.get("packages") or 1), 1)
        units = min(size * packages, remaining)
        grid_position = {
            "floor": position["floor"],
            "row": position["row"],
            "column": position["column"],
        }
        fragments.append(_fragment(item, units, grid_position))
        remaining -= units

    if remaining > 0:
        fragments.append(_fragment(item, remaining, None))
    return fragments


def assemble_fragments(entries, positions_by_entry, rules):
    fragments = []
    for entry_idx, entry in enumerate(entries):
        fragments.extend(
            assemble_entry_fragments(entry, positions_by_entry.get(entry_idx), rules)
        )
    return fragments


def item_totals(entries, positions_by_entry, rules):
    totals = []
    for entry_idx, entry in enumerate(entries):
        size = package_size(entry["length"], rules)
        placed_packages = sum(
            max(int(position.get("packages") or 1), 1)
            for position in positions_by_entry.get(entry_idx) or []
        )
        placed = min(placed_packages * size, entry["quantity"])
        totals.append(
            {
                "index": entry["index"],
                "product_id": entry["item"].get("product_id"),
                "quantity": entry["quantity"],
                "package_size": size,
                "packages": package_count(entry["quantity"], entry["length"], rules),
                "placed_packages": placed_packages,
                "placed_quantity": placed,
                "unplaced_quantity": entry["quantity"] - placed,
            }
        )
    return totals
