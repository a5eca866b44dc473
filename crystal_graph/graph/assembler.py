"""
Flatten per-atom neighbor selections into a directed edge list.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import torch
from torch_geometric.data import Data

from .basis import GaussianExpansion
from .neighbor_index import (
    MAX_IMAGE_SHELLS,
    NeighborList,
    PeriodicNeighborIndex,
    shells_for_cutoff,
    validate_cutoff,
)
from .selector import select_neighbors, validate_max_neighbors


@dataclass(frozen=True, eq=False)
class Graph:
    """
    Directed neighbor graph of one structure for one (r_cutoff, max_neighbors).

    Edges are atom-major (all edges of atom 0 first), distance-ascending
    within an atom. ``shifts[e]`` is the integer cell translation of the
    target image, so
    ``displacements[e] = (frac[t] + shifts[e] - frac[s]) @ lattice``.
    """
    sources: np.ndarray        # (E,) int64
    targets: np.ndarray        # (E,) int64
    distances: np.ndarray      # (E,) float64, all <= r_cutoff
    displacements: np.ndarray  # (E, 3) float64, source -> target
    shifts: np.ndarray         # (E, 3) int64
    num_atoms: int
    r_cutoff: float
    max_neighbors: Optional[int]
    rbf: Optional[np.ndarray] = None  # (E, M)

    def __post_init__(self):
        for name in ("sources", "targets", "distances", "displacements", "shifts", "rbf"):
            arr = getattr(self, name)
            if arr is not None:
                arr.setflags(write=False)

    @property
    def num_edges(self) -> int:
        return len(self.sources)

    @property
    def edge_index(self) -> np.ndarray:
        """(2, E) array, PyG convention: row 0 sources, row 1 targets."""
        return np.stack([self.sources, self.targets], axis=0)

    def out_degree(self) -> np.ndarray:
        return np.bincount(self.sources, minlength=self.num_atoms)

    def to_data(self, structure) -> Data:
        """
        PyG ``Data`` for this graph.

        Carries ``pos``, ``z``, ``cell``, ``edge_index``, ``edge_shift``
        (Cartesian translation of the target image, so that
        ``pos[j] - pos[i] + edge_shift`` is the edge vector), ``edge_vec``,
        ``edge_dist`` and, when present, the RBF features as ``edge_attr``.
        """
        cell = torch.tensor(structure.lattice, dtype=torch.float)
        data = Data(
            edge_index=torch.tensor(self.edge_index, dtype=torch.long),
            pos=torch.tensor(structure.cart_coords, dtype=torch.float),
            z=torch.tensor(structure.atomic_numbers, dtype=torch.long),
            atom_types=torch.tensor(structure.atom_types, dtype=torch.long),
            cell=cell,
            edge_shift=torch.tensor(self.shifts @ structure.lattice, dtype=torch.float),
            edge_vec=torch.tensor(self.displacements, dtype=torch.float),
            edge_dist=torch.tensor(self.distances, dtype=torch.float),
        )
        if self.rbf is not None:
            data.edge_attr = torch.tensor(self.rbf, dtype=torch.float)
        return data


def assemble_graph(structure,
                   per_atom: Sequence[NeighborList],
                   r_cutoff: float,
                   max_neighbors: Optional[int],
                   rbf: Optional[GaussianExpansion] = None) -> Graph:
    """
    Concatenate per-atom selected neighbors into parallel edge arrays.

    Args:
        structure: Structure the neighbors were computed for.
        per_atom: One selected ``NeighborList`` per atom, in atom order.
        r_cutoff: Cutoff the neighbors satisfy.
        max_neighbors: Cap that was applied per atom.
        rbf: Optional expansion evaluated on the edge distances.
    """
    if len(per_atom) != structure.num_atoms:
        raise ValueError(f"expected {structure.num_atoms} neighbor lists, got {len(per_atom)}")

    counts = np.array([len(n) for n in per_atom], dtype=np.int64)
    sources = np.repeat(np.arange(structure.num_atoms, dtype=np.int64), counts)
    if counts.sum():
        targets = np.concatenate([n.indices for n in per_atom]).astype(np.int64)
        distances = np.concatenate([n.distances for n in per_atom]).astype(np.float64)
        displacements = np.concatenate([n.displacements for n in per_atom]).astype(np.float64)
        shifts = np.concatenate([n.shifts for n in per_atom]).astype(np.int64)
    else:
        empty = NeighborList.empty()
        targets, distances = empty.indices, empty.distances
        displacements, shifts = empty.displacements, empty.shifts

    return Graph(
        sources=sources,
        targets=targets,
        distances=distances,
        displacements=displacements,
        shifts=shifts,
        num_atoms=structure.num_atoms,
        r_cutoff=float(r_cutoff),
        max_neighbors=max_neighbors,
        rbf=rbf(distances) if rbf is not None else None,
    )


def build_graph(structure,
                r_cutoff: float,
                max_neighbors: Optional[int] = 12,
                index: Optional[PeriodicNeighborIndex] = None,
                closest_image_only: bool = False,
                distance_decimals: int = 10,
                num_rbf: int = 0,
                rbf_width: Optional[float] = None,
                workers: int = 1,
                image_shells: Optional[int] = None,
                max_image_shells: int = MAX_IMAGE_SHELLS) -> Graph:
    """
    One-shot structure -> graph.

    Without ``index``, an index with ``image_shells`` shells is built, or the
    smallest one covering ``r_cutoff`` (at most ``max_image_shells``) when
    that is None. A given or fixed-width index refuses larger cutoffs.
    """
    r_cutoff = validate_cutoff(r_cutoff)
    max_neighbors = validate_max_neighbors(max_neighbors)
    if index is None:
        if image_shells is None:
            image_shells = shells_for_cutoff(structure, r_cutoff, max_image_shells)
        index = PeriodicNeighborIndex(structure, shells=image_shells)
    raw = index.query_all(r_cutoff, closest_image_only=closest_image_only, workers=workers)
    selected = [select_neighbors(n, max_neighbors, distance_decimals) for n in raw]
    rbf = GaussianExpansion(r_cutoff, num_rbf, rbf_width) if num_rbf > 0 else None
    return assemble_graph(structure, selected, r_cutoff, max_neighbors, rbf=rbf)
