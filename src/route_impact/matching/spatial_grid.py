"""Fixed-size latitude/longitude bucketing for neighbor lookup."""

import math
from collections import defaultdict
from collections.abc import Hashable
from typing import Generic, TypeVar

from route_impact.matching.geometry import METERS_PER_DEGREE_LAT

T = TypeVar("T", bound=Hashable)

# Below this the cosine of the latitude is treated as this value (polar cells)
MIN_LNG_SCALE = 0.01


class SpatialGrid(Generic[T]):
    """Maps grid cells to the set of payloads whose geometry touches them.

    Usage:
        grid = SpatialGrid[str](grid_size=0.001)
        grid.insert(54.97, -1.61, "stop-1")
        grid.neighbors(54.97, -1.61, ring=1)  # {"stop-1"}
    """

    def __init__(self, grid_size: float = 0.001):
        if grid_size <= 0:
            raise ValueError("grid_size must be positive")
        self._grid_size = grid_size
        self._cells: dict[tuple[int, int], set[T]] = defaultdict(set)

    @property
    def grid_size(self) -> float:
        return self._grid_size

    def cell_key(self, lat: float, lng: float) -> tuple[int, int]:
        return (math.floor(lat / self._grid_size), math.floor(lng / self._grid_size))

    def insert(self, lat: float, lng: float, payload: T) -> None:
        self._cells[self.cell_key(lat, lng)].add(payload)

    def insert_segment(
        self,
        start_lat: float,
        start_lng: float,
        end_lat: float,
        end_lng: float,
        payload: T,
    ) -> None:
        """Insert a payload into every cell a straight segment passes through.

        The segment is sampled at half-cell spacing so long segments do not
        leave gaps between the cells of their end points.
        """
        span = max(abs(end_lat - start_lat), abs(end_lng - start_lng))
        steps = max(1, math.ceil(span / (self._grid_size / 2)))
        for i in range(steps + 1):
            t = i / steps
            self.insert(
                start_lat + t * (end_lat - start_lat),
                start_lng + t * (end_lng - start_lng),
                payload,
            )

    def neighbors(self, lat: float, lng: float, ring: int) -> set[T]:
        """Union of payloads in the (2*ring+1)^2 block centered on the point's cell."""
        row, col = self.cell_key(lat, lng)
        found: set[T] = set()
        for d_row in range(-ring, ring + 1):
            for d_col in range(-ring, ring + 1):
                cell = self._cells.get((row + d_row, col + d_col))
                if cell:
                    found |= cell
        return found

    def ring_for_radius(self, lat: float, radius_meters: float) -> int:
        """Number of rings needed so the searched block covers a metric radius.

        Uses the narrower (longitude) cell dimension at this latitude, plus one
        ring of slack for the sampling done by ``insert_segment``.
        """
        lng_scale = max(math.cos(math.radians(lat)), MIN_LNG_SCALE)
        cell_width = METERS_PER_DEGREE_LAT * lng_scale * self._grid_size
        return math.ceil(radius_meters / cell_width) + 1

    def __len__(self) -> int:
        return len(self._cells)
