"""
Per-atom persistent-homology descriptors.

For every atom, the atom and all periodic images within ``r_cutoff`` form a
local point cloud. Its Vietoris-Rips persistence diagrams (H0, H1, H2) are
reduced to summary statistics:

    H0 deaths                              5 values
    H1 persistence, births, deaths        15 values
    H2 persistence, births, deaths        15 values

Each statistic block is (mean, std, max, min, weighted sum), where the
weighted sum divides by the number of atoms of the central atom's element.
Pairs that never die are ignored.
"""
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from ripser import ripser

from ..graph.neighbor_index import (
    MAX_IMAGE_SHELLS,
    NeighborList,
    PeriodicNeighborIndex,
    shells_for_cutoff,
    validate_cutoff,
)

logger = logging.getLogger(__name__)

BETTI_FEATURE_DIM = 35
STAT_NAMES = ("mean", "std", "max", "min", "weighted_sum")


def persistence_diagrams(points, threshold: float, max_dim: int = 2) -> list:
    """Rips persistence diagrams of a point cloud, one (K, 2) array per dimension."""
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    return ripser(points, maxdim=max_dim, thresh=threshold)["dgms"]


def diagram_statistics(diagram, values: str = "persistence", weight: float = 1.0) -> np.ndarray:
    """
    Summary statistics of the finite pairs of one diagram.

    Args:
        diagram: (K, 2) array of (birth, death) pairs.
        values: Which quantity to summarize: "birth", "death" or "persistence".
        weight: Factor applied to the sum.

    Returns:
        np.ndarray: (mean, std, max, min, weighted_sum); zeros when no pair
        is finite.
    """
    diagram = np.asarray(diagram, dtype=float).reshape(-1, 2)
    finite = diagram[np.isfinite(diagram[:, 1])]
    if values == "birth":
        v = finite[:, 0]
    elif values == "death":
        v = finite[:, 1]
    elif values == "persistence":
        v = finite[:, 1] - finite[:, 0]
    else:
        raise ValueError(f"unknown diagram values {values!r}")

    if len(v) == 0:
        return np.zeros(len(STAT_NAMES))
    return np.array([v.mean(), v.std(), v.max(), v.min(), v.sum() * weight])


def atom_betti_features(structure, atom_index: int, neighbors: NeighborList, r_cutoff: float) -> np.ndarray:
    """(35,) descriptor of one atom from its raw neighbor list."""
    center = structure.cart_coords[atom_index]
    cloud = np.vstack([center, center + neighbors.displacements])
    dgms = persistence_diagrams(cloud, r_cutoff)
    weight = 1.0 / structure.counts[structure.atom_types[atom_index]]

    blocks = [diagram_statistics(dgms[0], "death", weight)]
    for dim in (1, 2):
        for values in ("persistence", "birth", "death"):
            blocks.append(diagram_statistics(dgms[dim], values, weight))
    return np.concatenate(blocks)


def structure_betti_features(structure,
                             r_cutoff: float = 10.0,
                             index: Optional[PeriodicNeighborIndex] = None,
                             max_image_shells: int = MAX_IMAGE_SHELLS) -> np.ndarray:
    """
    (N, 35) descriptors for every atom of ``structure``. All neighbors within
    ``r_cutoff`` enter the point cloud; no neighbor cap is applied.
    """
    r_cutoff = validate_cutoff(r_cutoff)
    if index is None:
        index = PeriodicNeighborIndex(structure, shells=shells_for_cutoff(structure, r_cutoff, max_image_shells))
    per_atom = index.query_all(r_cutoff)

    features = np.zeros((structure.num_atoms, BETTI_FEATURE_DIM))
    for i, neighbors in enumerate(per_atom):
        features[i] = atom_betti_features(structure, i, neighbors, r_cutoff)
    logger.debug("Betti features for %d atoms (r_cutoff=%.2f)", structure.num_atoms, r_cutoff)
    return features


def save_betti_features(path: Union[str, Path], features: np.ndarray) -> None:
    features = np.asarray(features, dtype=np.float64)
    if features.ndim != 2 or features.shape[1] != BETTI_FEATURE_DIM:
        raise ValueError(f"expected (N, {BETTI_FEATURE_DIM}) features, got {features.shape}")
    np.save(path, features)


def load_betti_features(path: Union[str, Path]) -> np.ndarray:
    features = np.load(path)
    if features.ndim != 2 or features.shape[1] != BETTI_FEATURE_DIM:
        raise ValueError(f"{path}: expected (N, {BETTI_FEATURE_DIM}) features, got {features.shape}")
    return features
