"""
Spatial index over explicitly replicated periodic images.

Every atom is copied into each cell of a (2s+1)^3 block around the home cell
(s = ``shells``; 27 images for s = 1) and the copies are loaded into a
``scipy.spatial.cKDTree``. A ball query around a home-cell atom then sees all
neighbors across cell boundaries, as long as the radius stays inside the
replicated block.
"""
import logging
import math
from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from ..errors import InvalidParameterError
from .lattice import perpendicular_heights, to_cartesian

logger = logging.getLogger(__name__)

# Slack on the tree query; exact filtering happens on recomputed distances.
_QUERY_SLACK = 1e-9

# Automatic widening stops here: 17^3 images per atom.
MAX_IMAGE_SHELLS = 8


@dataclass(frozen=True, eq=False)
class NeighborList:
    """
    Raw neighbors of one atom, as parallel arrays of length K.

    ``displacements[k]`` is the Cartesian vector from the query atom to the
    image of atom ``indices[k]`` translated by ``shifts[k]`` cells.
    """
    indices: np.ndarray        # (K,) int64
    distances: np.ndarray      # (K,) float64
    displacements: np.ndarray  # (K, 3) float64
    shifts: np.ndarray         # (K, 3) int64

    def __len__(self):
        return len(self.indices)

    def take(self, order) -> "NeighborList":
        return NeighborList(
            indices=self.indices[order],
            distances=self.distances[order],
            displacements=self.displacements[order],
            shifts=self.shifts[order],
        )

    @classmethod
    def empty(cls) -> "NeighborList":
        return cls(
            indices=np.zeros(0, dtype=np.int64),
            distances=np.zeros(0, dtype=np.float64),
            displacements=np.zeros((0, 3), dtype=np.float64),
            shifts=np.zeros((0, 3), dtype=np.int64),
        )


def validate_cutoff(r_cutoff) -> float:
    """Positive finite float, else ``InvalidParameterError``."""
    if isinstance(r_cutoff, bool):
        raise InvalidParameterError(f"r_cutoff must be a number, got {r_cutoff!r}")
    try:
        r = float(r_cutoff)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"r_cutoff must be a number, got {r_cutoff!r}") from None
    if not math.isfinite(r) or r <= 0:
        raise InvalidParameterError(f"r_cutoff must be positive and finite, got {r_cutoff!r}")
    return r


def shells_for_cutoff(structure, r_cutoff: float, max_shells: int = MAX_IMAGE_SHELLS) -> int:
    """
    Smallest number of image shells whose block covers ``r_cutoff``.

    Raises ``InvalidParameterError`` when that exceeds ``max_shells``, before
    any image is allocated.
    """
    h_min = perpendicular_heights(structure.lattice).min()
    shells = max(1, int(math.ceil(r_cutoff / h_min)))
    if shells > max_shells:
        raise InvalidParameterError(
            f"r_cutoff={r_cutoff:.4f} needs {shells} image shells "
            f"(limit {max_shells}, shortest cell height {h_min:.4f} A)"
        )
    return shells


class PeriodicNeighborIndex:
    """
    KD-tree over the periodic images of a structure.

    Args:
        structure: Structure with ``lattice`` and wrapped ``frac_coords``.
        shells: Cell replications on each side of the home cell.

    The index is built completely in ``__init__`` and never mutated
    afterwards, so it is safe to query from several threads.
    """

    def __init__(self, structure, shells: int = 1):
        if int(shells) < 1:
            raise InvalidParameterError(f"shells must be >= 1, got {shells}")
        self.shells = int(shells)
        self.lattice = np.array(structure.lattice, dtype=float)
        self.frac_coords = np.array(structure.frac_coords, dtype=float)
        self.num_atoms = len(self.frac_coords)
        self.max_cutoff = float(self.shells * perpendicular_heights(self.lattice).min())

        width = 2 * self.shells + 1
        # Lexicographic shift order; the home cell (0, 0, 0) sits in the middle.
        shifts = np.indices((width, width, width), dtype=np.int64).reshape(3, -1).T - self.shells
        n_img = len(shifts)

        # Entry e = s * num_atoms + i is atom i translated by shifts[s]
        self.entry_atoms = np.tile(np.arange(self.num_atoms, dtype=np.int64), n_img)
        self.entry_shifts = np.repeat(shifts, self.num_atoms, axis=0)
        image_frac = self.frac_coords[self.entry_atoms] + self.entry_shifts
        self.entry_positions = to_cartesian(self.lattice, image_frac)
        self.home_positions = to_cartesian(self.lattice, self.frac_coords)

        self.tree = cKDTree(self.entry_positions)
        logger.debug(
            "Built periodic index: %d atoms x %d images, max cutoff %.3f A",
            self.num_atoms, n_img, self.max_cutoff,
        )

    def __len__(self):
        return len(self.entry_atoms)

    def check_cutoff(self, r_cutoff: float) -> float:
        """Validate a cutoff radius against this index; returns it as float."""
        r = validate_cutoff(r_cutoff)
        if r > self.max_cutoff:
            raise InvalidParameterError(
                f"r_cutoff={r:.4f} exceeds the {self.shells}-shell index limit "
                f"of {self.max_cutoff:.4f} A"
            )
        return r

    def _collect(self, atom_index: int, entries, r: float, closest_image_only: bool) -> NeighborList:
        entries = np.asarray(entries, dtype=np.int64)
        targets = self.entry_atoms[entries]
        shifts = self.entry_shifts[entries]

        keep = ~((targets == atom_index) & ~shifts.any(axis=1))
        targets, shifts = targets[keep], shifts[keep]

        # Recompute from fractional coordinates so i->j and j->i agree
        frac_delta = self.frac_coords[targets] + shifts - self.frac_coords[atom_index]
        disp = to_cartesian(self.lattice, frac_delta).reshape(-1, 3)
        dist = np.linalg.norm(disp, axis=1)

        within = dist <= r
        found = NeighborList(
            indices=targets[within],
            distances=dist[within],
            displacements=disp[within],
            shifts=shifts[within],
        )
        if closest_image_only and len(found):
            found = _closest_images(found)
        return found

    def query(self, atom_index: int, r_cutoff: float, closest_image_only: bool = False) -> NeighborList:
        """
        Every image within ``r_cutoff`` of home-cell atom ``atom_index``.

        The atom itself at zero shift is excluded; its translated images are
        regular neighbors. With ``closest_image_only`` only the nearest image
        of each distinct target atom is returned.
        """
        r = self.check_cutoff(r_cutoff)
        if not 0 <= atom_index < self.num_atoms:
            raise IndexError(f"atom index {atom_index} out of range for {self.num_atoms} atoms")
        entries = self.tree.query_ball_point(self.home_positions[atom_index], r + _QUERY_SLACK)
        return self._collect(atom_index, entries, r, closest_image_only)

    def query_all(self, r_cutoff: float, closest_image_only: bool = False, workers: int = 1) -> list:
        """Batch ``query`` for every atom; ``workers`` is passed to cKDTree."""
        r = self.check_cutoff(r_cutoff)
        hits = self.tree.query_ball_point(self.home_positions, r + _QUERY_SLACK, workers=workers)
        return [self._collect(i, entries, r, closest_image_only) for i, entries in enumerate(hits)]


def _closest_images(found: NeighborList) -> NeighborList:
    # Order by (target, distance, shift) and keep the first row per target
    order = np.lexsort((
        found.shifts[:, 2], found.shifts[:, 1], found.shifts[:, 0],
        found.distances, found.indices,
    ))
    ordered = found.take(order)
    first = np.ones(len(ordered), dtype=bool)
    first[1:] = ordered.indices[1:] != ordered.indices[:-1]
    return ordered.take(np.nonzero(first)[0])
