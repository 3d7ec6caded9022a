from services.occupancy_grid import OccupancyGrid
from services.support_validator import can_place_on_top, check_support, keeps_upper_support


def _record(package):
    return {
        "length": package["length"],
        "large": package["large"],
        "entry": package["entry"],
    }


def _ground_floor_pass(grid, package, rules):
    length = package["length"]
    candidates = []
    for row in range(1, grid.rows + 1):
        if not grid.row_has_room(1, row, length):
            continue
        used = grid.row_used_length(1, row)
        candidates.append((used >= rules["empty_row_epsilon"], used, row))
    # Empty rows first, then the least loaded row.
    candidates.sort()
    for _, __, row in candidates:
        column = grid.first_free_column(1, row)
        if column is None:
            continue
        if keeps_upper_support(grid, 1, row, column, package["large"]):
            return 1, row, column
    return None


def _upper_floor_pass(grid, package, rules):
    length = package["length"]
    for floor in range(2, grid.floors + 1):
        for row in range(1, grid.rows + 1):
            if not grid.row_has_room(floor, row, length):
                continue
            for column in range(1, grid.columns + 1):
                if grid.occupied(floor, row, column):
                    continue
                if not can_place_on_top(grid, floor, row, column, package["large"], strict=True):
                    continue
                if not check_support(grid, floor, row, column):
                    continue
                if keeps_upper_support(grid, floor, row, column, package["large"]):
                    return floor, row, column
    return None


def _last_resort_pass(grid, package, rules):
    length = package["length"]
    for floor in range(1, grid.floors + 1):
        for row in range(1, grid.rows + 1):
            if not grid.row_has_room(floor, row, length):
                continue
            for column in range(1, grid.columns + 1):
                if grid.occupied(floor, row, column):
                    continue
                if not can_place_on_top(grid, floor, row, column, package["large"], strict=False):
                    continue
                if keeps_upper_support(grid, floor, row, column, package["large"]):
                    return floor, row, column
    return None


PLACEMENT_PASSES = (
    ("ground_floor", _ground_floor_pass),
    ("upper_floors", _upper_floor_pass),
    ("last_resort", _last_resort_pass),
)


def plan_packages(packages, max_row_length, columns, rules):
    grid = OccupancyGrid(rules["floors"], rules["rows"], columns, max_row_length)
    positions = {}
    pass_counts = {name: 0 for name, _ in PLACEMENT_PASSES}
    unplaced_packages = 0

    for package in packages:
        cell = None
        for name, placement_pass in PLACEMENT_PASSES:
            cell = placement_pass(grid, package, rules)
            if cell is not None:
                pass_counts[name] += 1
                break
        if cell is None:
            unplaced_packages += 1
            continue
        floor, row, column = cell
        grid.place(floor, row, column, _record(package))
        positions.setdefault(package["entry"], []).append(
            {"floor": floor, "row": row, "column": column}
        )

    return {
        "grid": grid,
        "positions": positions,
        "placed_packages": len(packages) - unplaced_packages,
        "unplaced_packages": unplaced_packages,
        "pass_counts": pass_counts,
    }
