import numpy as np
import pytest

from crystal_graph.data.poscar import parse_poscar, read_poscar
from crystal_graph.errors import StructureFormatError

from conftest import MISSING_LATTICE_ROW, NACL_CARTESIAN, SI_DIAMOND


def test_parse_direct(si_structure):
    s = si_structure
    assert s.num_atoms == 8
    assert s.species == ("Si",)
    assert s.counts.tolist() == [8]
    assert s.atom_types.tolist() == [0] * 8
    assert np.allclose(s.lattice, 5.43 * np.eye(3))
    assert np.allclose(s.frac_coords[4], [0.25, 0.25, 0.25])
    assert s.comment == "Si diamond (conventional cell)"


def test_parse_cartesian_applies_scale():
    s = parse_poscar(NACL_CARTESIAN)
    assert s.species == ("Na", "Cl")
    assert s.counts.tolist() == [1, 1]
    assert s.atom_types.tolist() == [0, 1]
    assert np.allclose(s.lattice[0], [0.0, 2.82, 2.82])
    # (1.41, 1.41, 1.41) * 2 is the body centre of the primitive cell
    assert np.allclose(s.frac_coords[1], [0.5, 0.5, 0.5])
    assert np.allclose(s.cart_coords[1], [2.82, 2.82, 2.82])


def test_negative_scale_is_volume():
    text = SI_DIAMOND.replace("1.0\n5.43 0.0 0.0\n0.0 5.43 0.0\n0.0 0.0 5.43",
                              "-125.0\n1.0 0.0 0.0\n0.0 1.0 0.0\n0.0 0.0 1.0")
    s = parse_poscar(text)
    assert np.allclose(s.lattice, 5.0 * np.eye(3))
    assert s.volume == pytest.approx(125.0)


def test_coordinates_are_wrapped():
    text = """wrap
1.0
3 0 0
0 3 0
0 0 3
H
3
Direct
1.25 -0.25 1.0
-1e-17 2.0 0.5
0.999 0.0 -3.75
"""
    s = parse_poscar(text)
    assert np.allclose(s.frac_coords, [[0.25, 0.75, 0.0], [0.0, 0.0, 0.5], [0.999, 0.0, 0.25]])
    assert (s.frac_coords >= 0.0).all() and (s.frac_coords < 1.0).all()


def test_selective_dynamics_and_labels_ignored():
    text = """sd
1.0
4 0 0
0 4 0
0 0 4
Fe_pv O
1 1
Selective dynamics
Direct
0.0 0.0 0.0 T T F Fe
0.5 0.5 0.5 F F F O
"""
    s = parse_poscar(text)
    assert s.species == ("Fe", "O")
    assert np.allclose(s.frac_coords[1], [0.5, 0.5, 0.5])


def test_vasp4_species_from_comment():
    text = """Fe O
1.0
4 0 0
0 4 0
0 0 4
1 1
Direct
0.0 0.0 0.0
0.5 0.5 0.5
"""
    s = parse_poscar(text)
    assert s.species == ("Fe", "O")
    assert s.counts.tolist() == [1, 1]


def test_multispecies_order_is_first_seen():
    text = """mixed
1.0
6 0 0
0 6 0
0 0 6
Sr Ti O
1 1 3
Direct
0.0 0.0 0.0
0.5 0.5 0.5
0.5 0.5 0.0
0.5 0.0 0.5
0.0 0.5 0.5
"""
    s = parse_poscar(text)
    assert s.species == ("Sr", "Ti", "O")
    assert s.counts.tolist() == [1, 1, 3]
    assert s.atom_types.tolist() == [0, 1, 2, 2, 2]
    assert s.symbols == ["Sr", "Ti", "O", "O", "O"]
    assert s.atomic_numbers.tolist() == [38, 22, 8, 8, 8]


def test_repeated_species_are_merged():
    # inequivalent magnetic sites listed as separate blocks of the same element
    text = """FeO afm
1.0
4 0 0
0 4 0
0 0 8
Fe O Fe
1 1 1
Direct
0.0 0.0 0.0
0.5 0.5 0.25
0.0 0.0 0.5
"""
    s = parse_poscar(text)
    assert s.species == ("Fe", "O")
    assert s.counts.tolist() == [2, 1]
    assert s.atom_types.tolist() == [0, 1, 0]
    assert s.symbols == ["Fe", "O", "Fe"]
    assert np.allclose(s.frac_coords[2], [0.0, 0.0, 0.5])


def test_idempotent_parse():
    a, b = parse_poscar(SI_DIAMOND), parse_poscar(SI_DIAMOND)
    assert np.array_equal(a.lattice, b.lattice)
    assert np.array_equal(a.frac_coords, b.frac_coords)
    assert a.species == b.species


def test_structure_is_read_only(si_structure):
    with pytest.raises(ValueError):
        si_structure.frac_coords[0, 0] = 0.3


def test_read_poscar(tmp_path):
    path = tmp_path / "POSCAR"
    path.write_text(SI_DIAMOND)
    assert read_poscar(path).num_atoms == 8


@pytest.mark.parametrize(
    "text, line_number",
    [
        ("", 1),
        (MISSING_LATTICE_ROW, 5),
        (SI_DIAMOND.replace("1.0\n5.43", "abc\n5.43", 1), 2),
        (SI_DIAMOND.replace("1.0\n5.43", "0.0\n5.43", 1), 2),
        (SI_DIAMOND.replace("0.0 5.43 0.0", "0.0 x 0.0"), 4),
        (SI_DIAMOND.replace("0.0 5.43 0.0", "10.86 0.0 0.0"), 3),  # singular
        (SI_DIAMOND.replace("Si\n8", "Si Ge\n8"), 7),  # arity
        (SI_DIAMOND.replace("Si\n8", "Si\n8.5"), 7),
        (SI_DIAMOND.replace("Si\n8", "Si\n-8"), 7),
        (SI_DIAMOND.replace("Si\n8", "Si\n0"), 7),
        (SI_DIAMOND.replace("Si\n8", "Si\n--8"), 7),
        (SI_DIAMOND.replace("Si\n8", "Si\n+-8"), 7),
        (SI_DIAMOND.replace("Si\n8", "Si\n8²"), 7),
        (SI_DIAMOND.replace("Si\n8", "Si\n9"), 17),  # one coordinate row short
        (SI_DIAMOND.replace("Direct", "Bogus"), 8),
        (SI_DIAMOND.replace("0.75 0.25 0.75", "0.75 0.25"), 15),
        (SI_DIAMOND.replace("0.75 0.25 0.75", "0.75 0.25 abc"), 15),
        (SI_DIAMOND.replace("Si\n8", "3x\n8"), 6),
    ],
)
def test_malformed_input_reports_line(text, line_number):
    with pytest.raises(StructureFormatError) as info:
        parse_poscar(text)
    assert info.value.line_number == line_number, str(info.value)
    assert f"line {line_number}" in str(info.value)
