"""
Script to manually trigger dataset preprocessing.

Usage:
    crystal-graph-preprocess data/raw/structures --rmax 6.0 [options] [key=value overrides]
"""
import argparse
import os

from crystal_graph.config import DEFAULT_CONFIG_PATH, configure_logging, load_config
from crystal_graph.data.dataset import CrystalGraphDataset


def main(argv=None):
    # 1. Setup Parser
    parser = argparse.ArgumentParser(description="Preprocess a directory of POSCAR files into PyG graphs.")
    parser.add_argument("raw_dir", type=str, nargs="?", default=None, help="Directory of structure files (defaults to config value)")
    parser.add_argument("--root", type=str, default=None, help="Root directory for processed files (defaults to config value)")
    parser.add_argument("--config", type=str, default=DEFAULT_CONFIG_PATH, help="Path to project config file")
    parser.add_argument("--rmax", type=float, default=None, help="Cutoff radius (Å)")
    parser.add_argument("--max-neighbors", type=int, default=None, help="Per-atom neighbor cap")
    parser.add_argument("--embeddings", type=str, default=None, help="JSON of per-element node features")
    parser.add_argument("--targets", type=str, default=None, help="Defect CSV with formation energies")
    parser.add_argument("--preprocess", action=argparse.BooleanOptionalAction, default=False,
                        help="Force reprocessing even if a cached file exists.")
    parser.add_argument("overrides", nargs="*", default=[], help="Config overrides, e.g. graph.num_rbf=32")

    # overrides may follow the options
    args = parser.parse_intermixed_args(argv)

    # 2. Load Config for defaults
    if not os.path.exists(args.config):
        print(f"Warning: Config file {args.config} not found. using library defaults.")
    cfg = load_config(args.config if os.path.exists(args.config) else None, args.overrides)
    configure_logging(cfg.logging)

    # 3. Resolve Paths and Params
    raw_dir = os.path.abspath(args.raw_dir if args.raw_dir else cfg.data.raw_dir)
    root_path = os.path.abspath(args.root if args.root else cfg.data.root)
    r_max = args.rmax if args.rmax else cfg.graph.r_cutoff
    max_neighbors = args.max_neighbors if args.max_neighbors is not None else cfg.graph.max_neighbors
    embeddings = args.embeddings or cfg.data.embeddings_path
    targets = args.targets or cfg.data.targets_path

    print(f"--- Preprocessing Dataset ---")
    print(f"Raw Dir:       {raw_dir}")
    print(f"Root Path:     {root_path}")
    print(f"R Max:         {r_max}")
    print(f"Max Neighbors: {max_neighbors}")
    print(f"RBF Centers:   {cfg.graph.num_rbf}")
    print(f"Betti Cutoff:  {cfg.topology.r_cutoff}")
    print("-" * 30)

    # 4. Trigger Dataset Creation
    dataset = CrystalGraphDataset(
        root=root_path,
        raw_structures_dir=raw_dir,
        r_max=r_max,
        max_neighbors=max_neighbors,
        num_rbf=cfg.graph.num_rbf,
        pattern=cfg.data.pattern,
        embeddings_path=embeddings,
        targets_path=targets,
        graph_config=cfg.graph,
        betti_cutoff=cfg.topology.r_cutoff,
        betti_pca_path=cfg.topology.pca_path,
        preprocess=args.preprocess,
    )

    print(f"\nSuccessfully processed {len(dataset)} graphs.")
    if dataset.skipped:
        print(f"Skipped {len(dataset.skipped)} files: {', '.join(dataset.skipped)}")
    print(f"Saved to: {dataset.processed_paths[0]}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
