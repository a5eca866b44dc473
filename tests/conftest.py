import numpy as np
import pytest

from crystal_graph.data.poscar import parse_poscar
from crystal_graph.session import CrystalGraphSession

SI_DIAMOND = """Si diamond (conventional cell)
1.0
5.43 0.0 0.0
0.0 5.43 0.0
0.0 0.0 5.43
Si
8
Direct
0.00 0.00 0.00
0.50 0.50 0.00
0.50 0.00 0.50
0.00 0.50 0.50
0.25 0.25 0.25
0.75 0.75 0.25
0.75 0.25 0.75
0.25 0.75 0.75
"""

SINGLE_ATOM_CUBIC = """single atom
1.0
5.0 0.0 0.0
0.0 5.0 0.0
0.0 0.0 5.0
Po
1
Direct
0.0 0.0 0.0
"""

# Rock salt, Cartesian rows scaled by the factor on line 2
NACL_CARTESIAN = """NaCl rock salt primitive
2.0
0.000 1.410 1.410
1.410 0.000 1.410
1.410 1.410 0.000
Na Cl
1 1
Cartesian
0.000 0.000 0.000
1.410 1.410 1.410
"""

MISSING_LATTICE_ROW = """broken
1.0
5.0 0.0 0.0
0.0 5.0 0.0
Po
1
Direct
0.0 0.0 0.0
"""

SI_NN_DISTANCE = 5.43 * np.sqrt(3) / 4


def make_poscar(lattice, species, counts, frac, comment="generated"):
    rows = [comment, "1.0"]
    rows += [" ".join(f"{x:.10f}" for x in vec) for vec in lattice]
    rows.append(" ".join(species))
    rows.append(" ".join(str(c) for c in counts))
    rows.append("Direct")
    rows += [" ".join(f"{x:.10f}" for x in f) for f in frac]
    return "\n".join(rows) + "\n"


@pytest.fixture
def si_text():
    return SI_DIAMOND


@pytest.fixture
def si_structure():
    return parse_poscar(SI_DIAMOND)


@pytest.fixture
def single_atom_structure():
    return parse_poscar(SINGLE_ATOM_CUBIC)


@pytest.fixture
def triclinic_text():
    """Skewed cell with a handful of randomly placed atoms of two species."""
    rng = np.random.default_rng(0)
    lattice = [[4.0, 0.0, 0.0], [1.0, 4.5, 0.0], [0.5, 0.8, 5.0]]
    frac = rng.random((5, 3))
    return make_poscar(lattice, ["Ga", "As"], [2, 3], frac, comment="triclinic GaAs")


@pytest.fixture
def triclinic_structure(triclinic_text):
    return parse_poscar(triclinic_text)


@pytest.fixture
def session():
    return CrystalGraphSession()
