CAPACITY_TOLERANCE = 1e-9


class OccupancyGrid:
    """Cells of one planning request, addressed with 1-based floor/row/column.

    Each occupied cell holds a record with the package ``length`` and whether
    it is ``large``. Used length is tracked per (floor, row).
    """

    def __init__(self, floors, rows, columns, max_row_length):
        self.floors = floors
        self.rows = rows
        self.columns = columns
        self.max_row_length = max_row_length
        self._cells = {}
        self._row_used = {}

    def occupied(self, floor, row, column):
        return (floor, row, column) in self._cells

    def cell(self, floor, row, column):
        return self._cells.get((floor, row, column))

    def row_used_length(self, floor, row):
        return self._row_used.get((floor, row), 0.0)

    def row_has_room(self, floor, row, length):
        return self.row_used_length(floor, row) + length <= self.max_row_length + CAPACITY_TOLERANCE

    def place(self, floor, row, column, record):
        if self.occupied(floor, row, column):
            raise ValueError(f"Cell {floor}-{row}-{column} is already occupied.")
        self._cells[(floor, row, column)] = record
        self._row_used[(floor, row)] = self.row_used_length(floor, row) + record["length"]

    def remove(self, floor, row, column):
        record = self._cells.pop((floor, row, column))
        self._row_used[(floor, row)] = self.row_used_length(floor, row) - record["length"]
        return record

    def first_free_column(self, floor, row):
        for column in range(1, self.columns + 1):
            if not self.occupied(floor, row, column):
                return column
        return None

    def occupied_cells(self):
        return sorted(self._cells.items())
