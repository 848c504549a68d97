"""Utility functions shared by the reverse Minesweeper engine."""

from typing import Dict, Iterable, List, Tuple

Coord = Tuple[int, int]

# Module-level cache: (rows, columns) -> {(row, col): ((nr, nc), ...), ...}
_NEIGHBORHOODS_CACHE: Dict[
    Tuple[int, int],
    Dict[Coord, Tuple[Coord, ...]]
] = {}


def get_neighborhoods(
    rows: int, columns: int
) -> Dict[Coord, Tuple[Coord, ...]]:
    """
    Precompute and cache 8-connected neighbor coordinates for every cell in a grid.

    Args:
        rows: Number of grid rows. Must be positive.
        columns: Number of grid columns. Must be positive.

    Returns:
        Mapping from each cell (row, col) to a tuple of valid neighboring
        coordinates (nr, nc) under 8-connectivity.

    Raises:
        ValueError: If rows or columns is non-positive.
    """
    if rows <= 0 or columns <= 0:
        raise ValueError("rows and columns must be positive.")

    key = (rows, columns)
    cached = _NEIGHBORHOODS_CACHE.get(key)
    if cached is not None:
        return cached

    neighborhoods: Dict[Coord, Tuple[Coord, ...]] = {}
    for r in range(rows):
        for c in range(columns):
            nbrs: List[Coord] = []
            for dr in (-1, 0, 1):
                for dc in (-1, 0, 1):
                    if dr == 0 and dc == 0:
                        continue
                    nr, nc = r + dr, c + dc
                    if 0 <= nr < rows and 0 <= nc < columns:
                        nbrs.append((nr, nc))
            neighborhoods[(r, c)] = tuple(nbrs)

    _NEIGHBORHOODS_CACHE[key] = neighborhoods
    return neighborhoods


def chebyshev_distance(a: Coord, b: Coord) -> int:
    """King-move distance between two cells."""
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def format_coord(coord: Coord) -> str:
    """Render a coordinate 1-based, the way it is shown to the oracle."""
    return f"({coord[0] + 1},{coord[1] + 1})"


def sorted_coords(cells: Iterable[Coord]) -> List[Coord]:
    """Row-major ordering used wherever a deterministic cell order is needed."""
    return sorted(cells)
