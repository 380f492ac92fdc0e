# spatial_hash.py
from __future__ import annotations
import math
from typing import List, Tuple
from collections import defaultdict


class SpatialHash:
    """
    Uniform grid over the world rectangle for proximity queries.
    Rebuilt every tick; results are over-inclusive, callers filter by
    exact distance.
    """

    def __init__(self, world_width: float, world_height: float, cell_size: float = 8.0):
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        self.width = world_width
        self.height = world_height
        self.cell_size = cell_size
        self.cols = int(world_width // cell_size) + 1
        self.rows = int(world_height // cell_size) + 1
        self.grid: dict[Tuple[int, int], List] = defaultdict(list)
        self.count = 0

    def clear(self):
        """Clear all cells."""
        self.grid.clear()
        self.count = 0

    def _get_cell(self, x: float, y: float) -> Tuple[int, int]:
        """Get the cell coordinates for a position."""
        return (int(x // self.cell_size), int(y // self.cell_size))

    def insert(self, obj, x: float, y: float) -> bool:
        """Insert an object at (x, y); points outside the grid are dropped."""
        if not (math.isfinite(x) and math.isfinite(y)):
            return False
        col, row = self._get_cell(x, y)
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            return False
        self.grid[(col, row)].append(obj)
        self.count += 1
        return True

    def query_radius(self, x: float, y: float, radius: float) -> List:
        """
        Get all objects in the cells covering a radius around (x, y).
        Only checks nearby cells, not the entire world.
        """
        results = []
        if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(radius)):
            return results

        cell_radius = int(radius / self.cell_size) + 1
        cx, cy = self._get_cell(x, y)

        for dx in range(-cell_radius, cell_radius + 1):
            col = cx + dx
            if col < 0 or col >= self.cols:
                continue
            for dy in range(-cell_radius, cell_radius + 1):
                cell = (col, cy + dy)
                if cell in self.grid:
                    results.extend(self.grid[cell])

        return results

    def rebuild(self, items) -> None:
        """Replace the contents with every item that has x/y attributes."""
        self.clear()
        for item in items:
            self.insert(item, item.x, item.y)
