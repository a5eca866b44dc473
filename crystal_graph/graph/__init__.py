from .lattice import (
    minimum_image_delta,
    perpendicular_heights,
    to_cartesian,
    to_fractional,
    wrap_fractional,
)
from .neighbor_index import NeighborList, PeriodicNeighborIndex, shells_for_cutoff
from .selector import select_neighbors
from .basis import GaussianExpansion, GaussianRadialBasis
from .assembler import Graph, assemble_graph, build_graph

__all__ = [
    "to_cartesian",
    "to_fractional",
    "wrap_fractional",
    "minimum_image_delta",
    "perpendicular_heights",
    "NeighborList",
    "PeriodicNeighborIndex",
    "shells_for_cutoff",
    "select_neighbors",
    "GaussianExpansion",
    "GaussianRadialBasis",
    "Graph",
    "assemble_graph",
    "build_graph",
]
