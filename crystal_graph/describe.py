"""
Summarize the neighbor graph of a single structure file.

Usage:
    crystal-graph-describe --structure POSCAR --rmax 6.0 --plot edges.png
"""
import argparse
import os

import numpy as np

from crystal_graph.config import DEFAULT_CONFIG_PATH, configure_logging, load_config
from crystal_graph.session import CrystalGraphSession


def summarize(session):
    """Per-structure and per-graph statistics as a plain dict."""
    distances = session.get_edge_distances()
    degree = np.bincount(session.get_edge_sources(), minlength=session.num_atoms())
    return {
        'num_atoms': session.num_atoms(),
        'elements': dict(zip(session.get_elements(), session.get_element_counts().tolist())),
        'num_edges': session.num_edges(),
        'min_distance': float(distances.min()) if len(distances) else None,
        'max_distance': float(distances.max()) if len(distances) else None,
        'mean_degree': float(degree.mean()) if len(degree) else 0.0,
        'isolated_atoms': int((degree == 0).sum()),
    }


def plot_distances(session, output):
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    plt.figure(figsize=(8, 5))
    plt.hist(session.get_edge_distances(), bins=50, color='navy', alpha=0.8)
    plt.xlabel("Edge length (Å)")
    plt.ylabel("Count")
    plt.title(f"Edge lengths: {session.structure.comment or 'structure'}")
    plt.grid(alpha=0.3)
    plt.savefig(output)
    plt.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Build and summarize the neighbor graph of a structure.")
    parser.add_argument("--structure", type=str, required=True, help="Path to POSCAR file")
    parser.add_argument("--config", type=str, default=DEFAULT_CONFIG_PATH, help="Path to configuration file")
    parser.add_argument("--rmax", type=float, default=None, help="Cutoff radius (Å)")
    parser.add_argument("--max-neighbors", type=int, default=None, help="Per-atom neighbor cap")
    parser.add_argument("--plot", type=str, default=None, help="Save an edge-length histogram here")
    args = parser.parse_args(argv)

    cfg = load_config(args.config if os.path.exists(args.config) else None)
    configure_logging(cfg.logging)
    r_max = args.rmax if args.rmax else cfg.graph.r_cutoff
    max_neighbors = args.max_neighbors if args.max_neighbors is not None else cfg.graph.max_neighbors

    # 1. Load
    print(f"Reading structure from {args.structure}...")
    session = CrystalGraphSession(cfg.graph)
    if not session.load_structure_file(args.structure):
        print(f"Error: {session.last_error}")
        return 1

    # 2. Build
    try:
        session.build_graph(r_max, max_neighbors)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    # 3. Report
    for key, value in summarize(session).items():
        print(f"{key:>15}: {value}")

    if args.plot:
        plot_distances(session, args.plot)
        print(f"Histogram saved to {args.plot}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
