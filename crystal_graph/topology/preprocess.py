"""
Script to compute per-atom Betti descriptors for a directory of POSCAR files
and fit the PCA that compresses them.

Usage:
    crystal-graph-betti data/raw/structures data/betti --rmax 10.0 [options] [key=value overrides]

Writes ``betti/<stem>.npy`` for every readable structure and
``pca_model.joblib`` fitted on all of them stacked together.
"""
import argparse
import os
from pathlib import Path

import numpy as np
from tqdm import tqdm

from crystal_graph.config import DEFAULT_CONFIG_PATH, configure_logging, load_config
from crystal_graph.data.poscar import read_poscar
from crystal_graph.data.utils import parse_structure_id
from crystal_graph.errors import CrystalGraphError
from crystal_graph.topology import fit_betti_pca, save_betti_features, save_pca, structure_betti_features

DEFAULT_BETTI_CUTOFF = 10.0


def _sort_key(path):
    try:
        return (0, parse_structure_id(path.stem), path.name)
    except ValueError:
        return (1, (0, 0), path.name)


def main(argv=None):
    # 1. Setup Parser
    parser = argparse.ArgumentParser(description="Compute Betti descriptors and fit their PCA.")
    parser.add_argument("raw_dir", type=str, nargs="?", default=None, help="Directory of structure files (defaults to config value)")
    parser.add_argument("out_dir", type=str, nargs="?", default="data/betti", help="Output directory")
    parser.add_argument("--config", type=str, default=DEFAULT_CONFIG_PATH, help="Path to project config file")
    parser.add_argument("--rmax", type=float, default=None, help="Point-cloud radius (Å)")
    parser.add_argument("--components", type=int, default=None, help="PCA components")
    parser.add_argument("overrides", nargs="*", default=[], help="Config overrides, e.g. topology.n_components=4")

    args = parser.parse_intermixed_args(argv)

    # 2. Load Config for defaults
    if not os.path.exists(args.config):
        print(f"Warning: Config file {args.config} not found. using library defaults.")
    cfg = load_config(args.config if os.path.exists(args.config) else None, args.overrides)
    configure_logging(cfg.logging)

    raw_dir = Path(args.raw_dir if args.raw_dir else cfg.data.raw_dir)
    out_dir = Path(args.out_dir)
    r_cutoff = args.rmax or cfg.topology.r_cutoff or DEFAULT_BETTI_CUTOFF
    n_components = args.components if args.components is not None else cfg.topology.n_components

    print(f"--- Betti Descriptors ---")
    print(f"Raw Dir:       {raw_dir}")
    print(f"Output Dir:    {out_dir}")
    print(f"R Cutoff:      {r_cutoff}")
    print(f"Components:    {n_components}")
    print("-" * 30)

    files = sorted((p for p in raw_dir.glob(cfg.data.pattern) if p.is_file()), key=_sort_key)
    (out_dir / "betti").mkdir(parents=True, exist_ok=True)

    # 3. Per-structure descriptors
    all_features, skipped = [], []
    for path in tqdm(files, desc="Betti features"):
        try:
            structure = read_poscar(path)
            features = structure_betti_features(structure, r_cutoff,
                                                max_image_shells=cfg.graph.max_image_shells)
        except CrystalGraphError as e:
            print(f"Skipping {path.name}: {e}")
            skipped.append(path.name)
            continue
        save_betti_features(out_dir / "betti" / f"{path.stem}.npy", features)
        all_features.append(features)

    if not all_features:
        print(f"Error: no valid structures found in {raw_dir}")
        return 1

    # 4. PCA over every atom of every structure
    stacked = np.vstack(all_features)
    try:
        pca = fit_betti_pca(stacked, n_components)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    pca_path = out_dir / "pca_model.joblib"
    save_pca(pca, pca_path)

    ratios = ", ".join(f"{r:.4f}" for r in pca.explained_variance_ratio_)
    print(f"\nDescriptors for {len(all_features)} structures ({stacked.shape[0]} atoms).")
    if skipped:
        print(f"Skipped {len(skipped)} files: {', '.join(skipped)}")
    print(f"Explained variance ratio: [{ratios}] (total {pca.explained_variance_ratio_.sum():.4f})")
    print(f"Saved PCA to: {pca_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
