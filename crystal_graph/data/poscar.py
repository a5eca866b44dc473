"""
Parser for VASP POSCAR/CONTCAR structure text.

Layout (1-based line numbers):
    1        comment
    2        scale factor (negative: target cell volume in Å^3)
    3-5      lattice vectors, one per row
    6        species symbols (absent in VASP 4 files)
    7        atom counts per species
    [8]      optional "Selective dynamics"
    8        coordinate mode: Direct (or Fractional) / Cartesian
    9...     one coordinate row per atom

Every failure raises ``StructureFormatError`` with the offending line number;
no partial structure is ever returned.
"""
import re
from pathlib import Path
from typing import List, Union

import numpy as np

from ..errors import StructureFormatError
from ..graph.lattice import is_singular, to_fractional, wrap_fractional
from .structure import Structure

_SYMBOL_RE = re.compile(r"^[A-Z][a-z]?$")
_INT_RE = re.compile(r"[+-]?\d+", re.ASCII)


def _line(lines: List[str], idx: int, what: str) -> str:
    if idx >= len(lines):
        raise StructureFormatError(f"unexpected end of input, expected {what}", idx + 1)
    return lines[idx]


def _floats(text: str, n: int, line_number: int, what: str) -> List[float]:
    fields = text.split()
    if len(fields) < n:
        raise StructureFormatError(f"expected {n} numbers for {what}, got {len(fields)}", line_number)
    try:
        values = [float(f) for f in fields[:n]]
    except ValueError:
        raise StructureFormatError(f"non-numeric {what}: {text.strip()!r}", line_number) from None
    if not all(np.isfinite(values)):
        raise StructureFormatError(f"non-finite {what}: {text.strip()!r}", line_number)
    return values


def _is_int_row(text: str) -> bool:
    fields = text.split()
    return bool(fields) and all(_INT_RE.fullmatch(f) for f in fields)


def _clean_symbol(token: str) -> str:
    # POTCAR-style labels such as "Fe_pv" or "Si/4a3b"
    return re.split(r"[_/]", token, maxsplit=1)[0]


def parse_poscar(text: str) -> Structure:
    """
    Parse POSCAR text into a ``Structure``.

    Args:
        text: Full file content.

    Returns:
        Structure with fractional coordinates wrapped into [0, 1).

    Raises:
        StructureFormatError: on any malformed or inconsistent field.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    lines = text.splitlines()
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        raise StructureFormatError("empty structure text", 1)

    comment = lines[0].strip()

    # Scale
    scale = _floats(_line(lines, 1, "scale factor"), 1, 2, "scale factor")[0]
    if scale == 0.0:
        raise StructureFormatError("scale factor must be non-zero", 2)

    # Lattice
    lattice = np.array([
        _floats(_line(lines, 2 + i, "lattice vector"), 3, 3 + i, "lattice vector")
        for i in range(3)
    ])
    if is_singular(lattice):
        raise StructureFormatError("lattice vectors are linearly dependent", 3)
    if scale > 0:
        factor = scale
    else:
        # VASP convention: |scale| is the cell volume
        factor = (-scale / abs(np.linalg.det(lattice))) ** (1.0 / 3.0)
    lattice *= factor

    # Species / counts
    idx = 5
    species_line = _line(lines, idx, "species symbols")
    if _is_int_row(species_line):
        # VASP 4: no species line, symbols come from the comment
        species_lineno = 1
        count_line, count_lineno = species_line, idx + 1
        idx += 1
    else:
        species_lineno = idx + 1
        count_line = _line(lines, idx + 1, "atom counts")
        count_lineno = idx + 2
        idx += 2

    if not _is_int_row(count_line):
        raise StructureFormatError(f"atom counts must be integers: {count_line.strip()!r}", count_lineno)
    counts = [int(c) for c in count_line.split()]
    if any(c < 0 for c in counts):
        raise StructureFormatError("atom counts must be non-negative", count_lineno)

    if species_lineno == 1:
        species = [_clean_symbol(t) for t in comment.split()[:len(counts)]]
    else:
        species = [_clean_symbol(t) for t in species_line.split()]
    if len(species) != len(counts):
        raise StructureFormatError(
            f"{len(species)} species symbols but {len(counts)} atom counts", count_lineno
        )
    for s in species:
        if not _SYMBOL_RE.match(s):
            raise StructureFormatError(f"invalid species symbol {s!r}", species_lineno)
    n_atoms = sum(counts)
    if n_atoms == 0:
        raise StructureFormatError("structure contains no atoms", count_lineno)

    # Coordinate mode, possibly preceded by "Selective dynamics"
    mode_line = _line(lines, idx, "coordinate mode").strip()
    if mode_line[:1] in ("S", "s"):
        idx += 1
        mode_line = _line(lines, idx, "coordinate mode").strip()
    mode = mode_line[:1].lower()
    if mode in ("d", "f"):
        cartesian = False
    elif mode in ("c", "k"):
        cartesian = True
    else:
        raise StructureFormatError(f"unknown coordinate mode {mode_line!r}", idx + 1)
    idx += 1

    coords = np.array([
        _floats(_line(lines, idx + k, "atom coordinates"), 3, idx + k + 1, "atom coordinates")
        for k in range(n_atoms)
    ])

    if cartesian:
        # Cartesian rows are scaled like the lattice
        coords = to_fractional(lattice, coords * factor)
    frac = wrap_fractional(coords)

    # Repeated symbols (e.g. inequivalent sites "Fe O Fe") merge into one species
    unique = list(dict.fromkeys(species))
    block_types = [unique.index(s) for s in species]
    atom_types = np.repeat(block_types, counts)
    merged_counts = [sum(c for s, c in zip(species, counts) if s == u) for u in unique]

    return Structure(
        lattice=lattice,
        frac_coords=frac,
        atom_types=atom_types,
        species=tuple(unique),
        counts=np.asarray(merged_counts),
        comment=comment,
    )


def read_poscar(path: Union[str, Path]) -> Structure:
    """Read and parse a POSCAR file from disk."""
    return parse_poscar(Path(path).read_text())
