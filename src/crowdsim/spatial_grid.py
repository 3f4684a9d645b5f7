from __future__ import annotations

import math
from typing import Dict, Iterator, List, Tuple

from pygame.math import Vector2


class SpatialGrid:
    """Uniform bucket grid over agent slot indices."""

    def __init__(self, cell_size: float) -> None:
        if cell_size <= 0.0:
            raise ValueError(f"cell_size must be > 0, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List[int]] = {}
        self._positions: List[Vector2] = []

    def build_neighbor_cell_offsets(self, radius: float) -> List[Tuple[int, int]]:
        cell_range = int(math.ceil(radius / self._cell_size))
        return [(dx, dy) for dx in range(-cell_range, cell_range + 1) for dy in range(-cell_range, cell_range + 1)]

    def insert(self, position: Vector2) -> int:
        index = len(self._positions)
        self._positions.append(position)
        key = self._cell_key(position)
        self._cells.setdefault(key, []).append(index)
        return index

    def iter_pairs(self, radius: float) -> Iterator[Tuple[int, int, float]]:
        """Yield ``(i, j, distance)`` once for every pair with ``i < j`` closer than ``radius``."""
        cell_offsets = self.build_neighbor_cell_offsets(radius)
        radius_sq = radius * radius
        cells = self._cells
        for index, position in enumerate(self._positions):
            base_key = self._cell_key(position)
            for dx, dy in cell_offsets:
                bucket = cells.get((base_key[0] + dx, base_key[1] + dy))
                if not bucket:
                    continue
                for other_index in bucket:
                    if other_index <= index:
                        continue
                    other = self._positions[other_index]
                    offset_x = other.x - position.x
                    offset_y = other.y - position.y
                    dist_sq = offset_x * offset_x + offset_y * offset_y
                    if dist_sq < radius_sq:
                        yield index, other_index, math.sqrt(dist_sq)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(position.x // self._cell_size), int(position.y // self._cell_size))
