"""
Stateful load/build/accessor interface consumed by the visualization client.

A ``CrystalGraphSession`` owns at most one structure, one periodic index and
one graph. Typical use:

    session = CrystalGraphSession()
    if session.load_structure(text):
        session.build_graph(r_cutoff=5.0, max_neighbors=12)
        src, dst = session.get_edge_sources(), session.get_edge_targets()

Read accessors never raise: before a load (or build) they return empty
arrays and zero counts.
"""
import enum
import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .config import GraphConfig
from .data.poscar import parse_poscar
from .data.structure import Structure
from .errors import NotLoadedError
from .graph.assembler import Graph, build_graph
from .graph.neighbor_index import PeriodicNeighborIndex, shells_for_cutoff, validate_cutoff
from .graph.selector import validate_max_neighbors

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    GRAPH_BUILT = "graph_built"


class CrystalGraphSession:
    """
    Args:
        config: Graph options other than the per-call cutoff and cap
            (shell policy, dedup policy, RBF encoding, workers).
    """

    def __init__(self, config: Optional[GraphConfig] = None):
        self.config = config if config is not None else GraphConfig()
        self._structure: Optional[Structure] = None
        self._index: Optional[PeriodicNeighborIndex] = None
        self._graph: Optional[Graph] = None
        self.last_error: Optional[Exception] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        if self._structure is None:
            return SessionState.EMPTY
        if self._graph is None:
            return SessionState.LOADED
        return SessionState.GRAPH_BUILT

    @property
    def structure(self) -> Optional[Structure]:
        return self._structure

    @property
    def graph(self) -> Optional[Graph]:
        return self._graph

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def load_structure(self, text: str) -> bool:
        """
        Parse POSCAR text and make it the current structure.

        Returns False on parse failure, keeping the previous structure, index
        and graph untouched; the error is kept on ``last_error``.
        """
        try:
            structure = parse_poscar(text)
        except ValueError as e:
            logger.warning("Failed to load structure: %s", e)
            self.last_error = e
            return False

        self._structure = structure
        self._index = None
        self._graph = None
        self.last_error = None
        logger.info(
            "Loaded structure %r: %d atoms, species %s",
            structure.comment, structure.num_atoms, list(structure.species),
        )
        return True

    def load_structure_file(self, path: Union[str, Path]) -> bool:
        try:
            text = Path(path).read_text()
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            self.last_error = e
            return False
        return self.load_structure(text)

    def build_graph(self, r_cutoff: float, max_neighbors: Optional[int]) -> None:
        """
        Build the neighbor graph of the current structure, replacing any
        previous graph.

        Raises:
            NotLoadedError: no structure has been loaded.
            InvalidParameterError: bad ``r_cutoff``/``max_neighbors``, or a
                cutoff beyond a fixed ``config.image_shells`` limit or one
                needing more than ``config.max_image_shells`` shells. Raised
                before any index work; the previous graph is kept.
        """
        if self._structure is None:
            raise NotLoadedError("build_graph called before a structure was loaded")
        r_cutoff = validate_cutoff(r_cutoff)
        max_neighbors = validate_max_neighbors(max_neighbors)

        index = self._index_for(r_cutoff)
        index.check_cutoff(r_cutoff)

        cfg = self.config
        graph = build_graph(
            self._structure,
            r_cutoff,
            max_neighbors,
            index=index,
            closest_image_only=cfg.closest_image_only,
            distance_decimals=cfg.distance_decimals,
            num_rbf=cfg.num_rbf,
            rbf_width=cfg.rbf_width,
            workers=cfg.workers,
        )
        self._index = index
        self._graph = graph
        logger.info(
            "Built graph: %d edges (r_cutoff=%.3f, max_neighbors=%s, shells=%d)",
            graph.num_edges, r_cutoff, max_neighbors, index.shells,
        )

    def _index_for(self, r_cutoff: float) -> PeriodicNeighborIndex:
        shells = self.config.image_shells
        if shells is None:
            if self._index is not None and r_cutoff <= self._index.max_cutoff:
                return self._index
            shells = shells_for_cutoff(self._structure, r_cutoff, self.config.max_image_shells)
        elif self._index is not None and self._index.shells == shells:
            return self._index
        return PeriodicNeighborIndex(self._structure, shells=shells)

    # ------------------------------------------------------------------
    # Structure accessors
    # ------------------------------------------------------------------
    def num_atoms(self) -> int:
        return 0 if self._structure is None else self._structure.num_atoms

    def get_positions(self) -> np.ndarray:
        """Flat Cartesian positions, x, y, z interleaved per atom."""
        if self._structure is None:
            return np.zeros(0, dtype=np.float64)
        return self._structure.cart_coords.reshape(-1).copy()

    def get_atom_types(self) -> np.ndarray:
        if self._structure is None:
            return np.zeros(0, dtype=np.int64)
        return self._structure.atom_types.copy()

    def get_elements(self) -> List[str]:
        if self._structure is None:
            return []
        return list(self._structure.species)

    def get_element_counts(self) -> np.ndarray:
        if self._structure is None:
            return np.zeros(0, dtype=np.int64)
        return self._structure.counts.copy()

    def get_lattice_vectors(self) -> np.ndarray:
        """Flat 3x3 lattice, row-major (a_x, a_y, a_z, b_x, ...)."""
        if self._structure is None:
            return np.zeros(0, dtype=np.float64)
        return self._structure.lattice.reshape(-1).copy()

    # ------------------------------------------------------------------
    # Graph accessors
    # ------------------------------------------------------------------
    def num_edges(self) -> int:
        return 0 if self._graph is None else self._graph.num_edges

    def get_edge_sources(self) -> np.ndarray:
        if self._graph is None:
            return np.zeros(0, dtype=np.int64)
        return self._graph.sources.copy()

    def get_edge_targets(self) -> np.ndarray:
        if self._graph is None:
            return np.zeros(0, dtype=np.int64)
        return self._graph.targets.copy()

    def get_edge_distances(self) -> np.ndarray:
        if self._graph is None:
            return np.zeros(0, dtype=np.float64)
        return self._graph.distances.copy()

    def get_edge_displacements(self) -> np.ndarray:
        """Flat source -> target vectors, x, y, z interleaved per edge."""
        if self._graph is None:
            return np.zeros(0, dtype=np.float64)
        return self._graph.displacements.reshape(-1).copy()

    def get_edge_shifts(self) -> np.ndarray:
        """Flat integer cell shifts of each edge's target image."""
        if self._graph is None:
            return np.zeros(0, dtype=np.int64)
        return self._graph.shifts.reshape(-1).copy()

    def get_edge_features(self) -> np.ndarray:
        """(E, M) Gaussian distance features; (E, 0) when RBF is disabled."""
        if self._graph is None:
            return np.zeros((0, 0), dtype=np.float64)
        if self._graph.rbf is None:
            return np.zeros((self._graph.num_edges, 0), dtype=np.float64)
        return self._graph.rbf.copy()
