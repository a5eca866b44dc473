from pathlib import Path

import joblib
import numpy as np
import pytest

from crystal_graph.data import CrystalGraphDataset, structure_to_data
from crystal_graph.errors import InvalidParameterError
from crystal_graph.topology import (
    BETTI_FEATURE_DIM,
    diagram_statistics,
    fit_betti_pca,
    load_betti_features,
    load_pca,
    persistence_diagrams,
    save_betti_features,
    save_pca,
    structure_betti_features,
)
from crystal_graph.topology import preprocess as betti_cli

from conftest import MISSING_LATTICE_ROW, SI_DIAMOND, SI_NN_DISTANCE, SINGLE_ATOM_CUBIC

REPO_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "config.yaml"


def test_diagram_statistics():
    dgm = np.array([[0.0, 1.0], [0.5, 2.0], [1.0, np.inf]])
    assert np.allclose(diagram_statistics(dgm, "persistence", weight=0.5), [1.25, 0.25, 1.5, 1.0, 1.25])
    assert np.allclose(diagram_statistics(dgm, "birth"), [0.25, 0.25, 0.5, 0.0, 0.5])
    assert np.allclose(diagram_statistics(dgm, "death"), [1.5, 0.5, 2.0, 1.0, 3.0])
    # only the infinite pair: nothing to summarize
    assert np.array_equal(diagram_statistics(dgm[2:], "death"), np.zeros(5))
    assert np.array_equal(diagram_statistics(np.empty((0, 2))), np.zeros(5))
    with pytest.raises(ValueError):
        diagram_statistics(dgm, "lifetime")


def test_square_has_one_loop():
    square = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=float)
    dgms = persistence_diagrams(square, threshold=2.0)
    assert len(dgms) == 3
    assert np.allclose(np.sort(dgms[0][np.isfinite(dgms[0][:, 1]), 1]), [1.0, 1.0, 1.0])
    assert dgms[1].shape == (1, 2)
    assert np.allclose(dgms[1][0], [1.0, np.sqrt(2.0)])
    assert len(dgms[2]) == 0


def test_single_atom_features(single_atom_structure):
    # octahedron of images at 5.0; the images are 7.07 apart, beyond the radius
    features = structure_betti_features(single_atom_structure, 5.5)
    assert features.shape == (1, BETTI_FEATURE_DIM)
    assert np.allclose(features[0, :5], [5.0, 0.0, 5.0, 5.0, 30.0])
    assert np.allclose(features[0, 5:], 0.0)


def test_diamond_features(si_structure):
    features = structure_betti_features(si_structure, 2.5)
    assert features.shape == (8, BETTI_FEATURE_DIM)
    # every atom sees the same tetrahedron; the sum is weighted by 1/8 Si atoms
    assert np.allclose(features, features[0])
    assert features[0, 0] == pytest.approx(SI_NN_DISTANCE)
    assert features[0, 4] == pytest.approx(4 * SI_NN_DISTANCE / 8)

    wide = structure_betti_features(si_structure, 5.5)
    assert np.isfinite(wide).all()
    assert np.allclose(wide, wide[0])


def test_features_refuse_huge_cutoff(si_structure):
    with pytest.raises(InvalidParameterError):
        structure_betti_features(si_structure, 3000.0)
    with pytest.raises(InvalidParameterError):
        structure_betti_features(si_structure, -1.0)


def test_save_and_load_features(tmp_path, single_atom_structure):
    features = structure_betti_features(single_atom_structure, 5.5)
    path = tmp_path / "2_0.npy"
    save_betti_features(path, features)
    assert np.array_equal(load_betti_features(path), features)

    with pytest.raises(ValueError):
        save_betti_features(tmp_path / "bad.npy", np.zeros((2, 3)))
    np.save(tmp_path / "bad.npy", np.zeros((2, 3)))
    with pytest.raises(ValueError):
        load_betti_features(tmp_path / "bad.npy")


def test_pca_fit_save_load(tmp_path):
    rng = np.random.default_rng(0)
    features = rng.normal(size=(20, BETTI_FEATURE_DIM))
    pca = fit_betti_pca(features, n_components=3)
    assert pca.n_components_ == 3

    path = tmp_path / "pca_model.joblib"
    save_pca(pca, path)
    restored = load_pca(path)
    assert np.allclose(restored.transform(features), pca.transform(features))

    joblib.dump({"not": "a pca"}, tmp_path / "other.joblib")
    with pytest.raises(ValueError):
        load_pca(tmp_path / "other.joblib")
    with pytest.raises(ValueError):
        fit_betti_pca(features[:, :10])
    with pytest.raises(ValueError):
        fit_betti_pca(features, n_components=0)


def test_betti_cli(tmp_path, capsys):
    raw = tmp_path / "structures"
    raw.mkdir()
    (raw / "1_0.vasp").write_text(SI_DIAMOND)
    (raw / "2_0.vasp").write_text(SINGLE_ATOM_CUBIC)
    (raw / "3_0.vasp").write_text(MISSING_LATTICE_ROW)
    out = tmp_path / "betti_out"

    code = betti_cli.main([str(raw), str(out), "--config", str(REPO_CONFIG), "--rmax", "5.5", "--components", "2"])
    assert code == 0
    assert load_betti_features(out / "betti" / "1_0.npy").shape == (8, BETTI_FEATURE_DIM)
    assert load_betti_features(out / "betti" / "2_0.npy").shape == (1, BETTI_FEATURE_DIM)
    assert not (out / "betti" / "3_0.npy").exists()
    assert load_pca(out / "pca_model.joblib").n_components_ == 2

    printed = capsys.readouterr().out
    assert "Explained variance ratio" in printed
    assert "Skipped 1 files: 3_0.vasp" in printed


def test_betti_cli_without_structures(tmp_path):
    raw = tmp_path / "empty"
    raw.mkdir()
    assert betti_cli.main([str(raw), str(tmp_path / "out"), "--config", str(REPO_CONFIG)]) == 1


def test_dataset_attaches_betti(tmp_path, si_structure):
    raw = tmp_path / "structures"
    raw.mkdir()
    (raw / "1_0.vasp").write_text(SI_DIAMOND)
    (raw / "2_0.vasp").write_text(SINGLE_ATOM_CUBIC)
    root = str(tmp_path / "root")

    dataset = CrystalGraphDataset(root=root, raw_structures_dir=str(raw), r_max=5.5, betti_cutoff=5.5)
    si, po = dataset[0], dataset[1]
    assert si.betti.shape == (8, BETTI_FEATURE_DIM)
    assert po.betti.shape == (1, BETTI_FEATURE_DIM)
    assert po.betti[0, 0].item() == pytest.approx(5.0)

    pca = fit_betti_pca(np.vstack([si.betti.numpy(), po.betti.numpy()]), n_components=2)
    pca_path = tmp_path / "pca_model.joblib"
    save_pca(pca, pca_path)
    reduced = CrystalGraphDataset(root=root, raw_structures_dir=str(raw), r_max=5.5, betti_cutoff=5.5,
                                  betti_pca_path=str(pca_path))
    assert reduced.processed_paths[0] != dataset.processed_paths[0]
    assert reduced[0].betti.shape == (8, 2)

    data = structure_to_data(si_structure, r_max=2.5)
    assert "betti" not in data
