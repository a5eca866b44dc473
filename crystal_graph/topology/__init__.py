from .betti import (
    BETTI_FEATURE_DIM,
    atom_betti_features,
    diagram_statistics,
    load_betti_features,
    persistence_diagrams,
    save_betti_features,
    structure_betti_features,
)
from .reduction import fit_betti_pca, load_pca, save_pca

__all__ = [
    "BETTI_FEATURE_DIM",
    "atom_betti_features",
    "diagram_statistics",
    "persistence_diagrams",
    "structure_betti_features",
    "save_betti_features",
    "load_betti_features",
    "fit_betti_pca",
    "save_pca",
    "load_pca",
]
