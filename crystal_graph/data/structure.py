"""
Immutable snapshot of one periodic crystal cell.
"""
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from ase import Atoms
from ase.data import atomic_numbers as ASE_ATOMIC_NUMBERS

from ..graph.lattice import to_cartesian, to_fractional, wrap_fractional


@dataclass(frozen=True, eq=False)
class Structure:
    """
    One crystal cell.

    Attributes:
        lattice:      (3, 3) cell vectors as rows, in Å.
        frac_coords:  (N, 3) fractional coordinates, every component in [0, 1).
        atom_types:   (N,) index of each atom's species in ``species``.
        species:      Unique element symbols in first-seen order.
        counts:       (S,) number of atoms per species, aligned to ``species``.
        comment:      Free-text first line of the source file.

    Arrays are made read-only on construction; build a new Structure instead
    of mutating one.
    """
    lattice: np.ndarray
    frac_coords: np.ndarray
    atom_types: np.ndarray
    species: Tuple[str, ...]
    counts: np.ndarray
    comment: str = ""

    def __post_init__(self):
        for name, dtype in (("lattice", np.float64), ("frac_coords", np.float64),
                            ("atom_types", np.int64), ("counts", np.int64)):
            arr = np.array(getattr(self, name), dtype=dtype)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "species", tuple(self.species))

        if self.lattice.shape != (3, 3):
            raise ValueError(f"lattice must be (3, 3), got {self.lattice.shape}")
        if self.frac_coords.shape != (len(self.atom_types), 3):
            raise ValueError("frac_coords and atom_types disagree on the number of atoms")
        if len(self.counts) != len(self.species):
            raise ValueError("counts must align with species")

    @property
    def num_atoms(self) -> int:
        return len(self.atom_types)

    @property
    def cart_coords(self) -> np.ndarray:
        """(N, 3) Cartesian positions in Å."""
        return to_cartesian(self.lattice, self.frac_coords)

    @property
    def volume(self) -> float:
        return float(abs(np.linalg.det(self.lattice)))

    @property
    def symbols(self) -> list:
        """Per-atom element symbol."""
        return [self.species[t] for t in self.atom_types]

    @property
    def atomic_numbers(self) -> np.ndarray:
        """Per-atom atomic number Z. Raises ValueError for unknown symbols."""
        try:
            z_per_species = [ASE_ATOMIC_NUMBERS[s] for s in self.species]
        except KeyError as e:
            raise ValueError(f"Unknown element symbol: {e.args[0]}") from e
        return np.asarray(z_per_species, dtype=np.int64)[self.atom_types]

    def to_ase_atoms(self) -> Atoms:
        """Periodic ASE ``Atoms`` with the same cell and positions."""
        return Atoms(
            numbers=self.atomic_numbers,
            scaled_positions=self.frac_coords,
            cell=self.lattice,
            pbc=True,
        )

    @classmethod
    def from_cartesian(cls, lattice, positions, symbols, comment: str = "") -> "Structure":
        """
        Build from Cartesian positions and per-atom symbols. Species are
        grouped in first-seen order; atom order is preserved.
        """
        lattice = np.asarray(lattice, dtype=float)
        frac = wrap_fractional(to_fractional(lattice, np.asarray(positions, dtype=float)))
        species = list(dict.fromkeys(symbols))
        atom_types = np.array([species.index(s) for s in symbols], dtype=np.int64)
        counts = np.bincount(atom_types, minlength=len(species))
        return cls(lattice=lattice, frac_coords=frac, atom_types=atom_types,
                   species=tuple(species), counts=counts, comment=comment)
