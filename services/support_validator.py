from services.occupancy_grid import OccupancyGrid
from services.package_grouper import is_large

ROW_CAPACITY_TOLERANCE = 1e-6


def find_support(grid, floor, row, column, strict=True):
    """Return ``(floor, column, record)`` of the cell a package would rest on.

    Strict lookup prefers the same column on every lower floor before looking
    sideways. Relaxed lookup takes the nearest lower floor that has anything
    in the row, same column first.
    """
    lower_floors = range(floor - 1, 0, -1)
    if strict:
        for check_floor in lower_floors:
            record = grid.cell(check_floor, row, column)
            if record is not None:
                return check_floor, column, record
        for check_floor in lower_floors:
            for check_column in range(1, grid.columns + 1):
                record = grid.cell(check_floor, row, check_column)
                if record is not None:
                    return check_floor, check_column, record
        return None

    for check_floor in lower_floors:
        record = grid.cell(check_floor, row, column)
        if record is not None:
            return check_floor, column, record
        for check_column in range(1, grid.columns + 1):
            record = grid.cell(check_floor, row, check_column)
            if record is not None:
                return check_floor, check_column, record
    return None


def is_compatible(placing_large, support_record):
    if support_record is None:
        return False
    # Large packages may rest on anything; small ones only on small ones.
    return placing_large or not support_record["large"]


def can_place_on_top(grid, floor, row, column, placing_large, strict=True):
    if floor <= 1:
        return True
    support = find_support(grid, floor, row, column, strict=strict)
    return is_compatible(placing_large, support[2] if support else None)


def keeps_upper_support(grid, floor, row, column, placing_large):
    """Whether short packages above the cell keep a short support once it is filled.

    A long package placed under existing stacks can become the nearest
    support of short packages that were resting on short ones.
    """
    if not placing_large:
        return True
    upper_small = []
    for check_floor in range(floor + 1, grid.floors + 1):
        for check_column in range(1, grid.columns + 1):
            record = grid.cell(check_floor, row, check_column)
            if record is not None and not record["large"]:
                upper_small.append((check_floor, check_column))
    if not upper_small:
        return True

    grid.place(floor, row, column, {"length": 0.0, "large": True})
    try:
        return all(
            can_place_on_top(grid, check_floor, row, check_column, False, strict=True)
            or can_place_on_top(grid, check_floor, row, check_column, False, strict=False)
            for check_floor, check_column in upper_small
        )
    finally:
        grid.remove(floor, row, column)


def check_support(grid, floor, row, column):
    if floor <= 1:
        return True
    return find_support(grid, floor, row, column, strict=True) is not None


def _issue(code, message, floor, row, column=None):
    payload = {"code": code, "message": message, "floor": floor, "row": row}
    if column is not None:
        payload["column"] = column
    return payload


def build_grid(fragments, max_row_length, rules):
    placed = [fragment for fragment in fragments if fragment.get("grid_position")]
    columns = max(
        [rules["min_columns"]]
        + [int(fragment["grid_position"]["column"]) for fragment in placed]
    )
    grid = OccupancyGrid(rules["floors"], rules["rows"], columns, max_row_length)
    conflicts = []
    for fragment in placed:
        position = fragment["grid_position"]
        floor, row, column = position["floor"], position["row"], position["column"]
        length = max(float(fragment.get("length") or 0.0), 0.0)
        if grid.occupied(floor, row, column):
            conflicts.append(
                _issue(
                    "CELL_CONFLICT",
                    f"Cell {floor}-{row}-{column} holds more than one package.",
                    floor,
                    row,
                    column,
                )
            )
            continue
        grid.place(floor, row, column, {"length": length, "large": is_large(length, rules)})
    return grid, conflicts


def cell_issues(grid, floor, row, column, record):
    if floor <= 1:
        return []
    if not check_support(grid, floor, row, column):
        return [
            _issue(
                "UNSUPPORTED",
                f"Package at {floor}-{row}-{column} has nothing below it in row {row}.",
                floor,
                row,
                column,
            )
        ]
    if can_place_on_top(grid, floor, row, column, record["large"], strict=True):
        return []
    if can_place_on_top(grid, floor, row, column, record["large"], strict=False):
        return []
    return [
        _issue(
            "INCOMPATIBLE_SUPPORT",
            f"Short package at {floor}-{row}-{column} rests on a long package.",
            floor,
            row,
            column,
        )
    ]


def validate_layout(fragments, max_row_length, rules):
    grid, issues = build_grid(fragments, max_row_length, rules)

    for floor in range(1, grid.floors + 1):
        for row in range(1, grid.rows + 1):
            used = grid.row_used_length(floor, row)
            if used > max_row_length + ROW_CAPACITY_TOLERANCE:
                issues.append(
                    _issue(
                        "ROW_CAPACITY_EXCEEDED",
                        (
                            f"Floor {floor} row {row} uses {used:.2f} m of "
                            f"{max_row_length:.2f} m."
                        ),
                        floor,
                        row,
                    )
                )

    for (floor, row, column), record in grid.occupied_cells():
        issues.extend(cell_issues(grid, floor, row, column, record))
    return issues
