"""
Neighbor cap and deterministic ordering applied on top of raw radius queries.
"""
from typing import Optional

import numpy as np

from ..errors import InvalidParameterError
from .neighbor_index import NeighborList


def neighbor_order(neighbors: NeighborList, distance_decimals: int = 10) -> np.ndarray:
    """
    Permutation sorting neighbors by distance, then target index, then shift
    (x, y, z). Distances are rounded first so that images that are equidistant
    up to floating-point noise tie-break by index instead of by round-off.
    """
    rounded = np.round(neighbors.distances, distance_decimals)
    # np.lexsort: last key is the primary key
    return np.lexsort((
        neighbors.shifts[:, 2], neighbors.shifts[:, 1], neighbors.shifts[:, 0],
        neighbors.indices, rounded,
    ))


def select_neighbors(neighbors: NeighborList,
                     max_neighbors: Optional[int],
                     distance_decimals: int = 10) -> NeighborList:
    """
    Keep the ``max_neighbors`` closest entries of one atom's raw neighbors.

    ``max_neighbors <= 0`` yields an empty selection; ``None`` keeps all of
    them (still sorted).
    """
    if max_neighbors is not None and max_neighbors <= 0:
        return NeighborList.empty()
    order = neighbor_order(neighbors, distance_decimals)
    if max_neighbors is not None:
        order = order[:max_neighbors]
    return neighbors.take(order)


def validate_max_neighbors(max_neighbors) -> Optional[int]:
    """Integer cap (``None`` for no cap), else ``InvalidParameterError``."""
    if max_neighbors is None:
        return None
    if isinstance(max_neighbors, (bool, np.bool_)) or not isinstance(max_neighbors, (int, np.integer)):
        raise InvalidParameterError(f"max_neighbors must be an integer, got {max_neighbors!r}")
    return int(max_neighbors)
