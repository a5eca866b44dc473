"""
Dataset of periodic neighbor graphs built from a directory of POSCAR files.

Each ``*.vasp`` file becomes one PyG ``Data`` object. Files named ``X_Y``
are ordered as (structure X, defect Y); when a defect table is given, the
row with ``pris_idx == X`` and ``vac_idx == Y`` supplies the target ``y``.
"""
import hashlib
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

import numpy as np
import torch
from torch_geometric.data import InMemoryDataset
from tqdm import tqdm

from ..config import GraphConfig
from ..errors import CrystalGraphError
from ..graph.assembler import build_graph
from ..topology import load_pca, structure_betti_features
from .poscar import read_poscar
from .utils import load_atom_embeddings, parse_structure_id, read_defect_table

logger = logging.getLogger(__name__)

# GraphConfig fields set through explicit dataset arguments
_EXPLICIT_GRAPH_FIELDS = ("r_cutoff", "max_neighbors", "num_rbf")


def graph_options(graph_config: GraphConfig | None) -> dict:
    """Keyword arguments for ``build_graph`` carried by a GraphConfig (defaults when None)."""
    options = asdict(graph_config if graph_config is not None else GraphConfig())
    for key in _EXPLICIT_GRAPH_FIELDS:
        options.pop(key)
    return options


def _abspath(path):
    return os.path.abspath(path) if path else None


class CrystalGraphDataset(InMemoryDataset):
    """
    In-memory dataset of crystal neighbor graphs.

    Each ``Data`` object carries:
        * ``z``           (N,) atomic numbers
        * ``atom_types``  (N,) species index within its own file
        * ``pos``         (N, 3) Cartesian positions (wrapped into the cell)
        * ``cell``        (3, 3) lattice matrix (row-vector convention)
        * ``edge_index``  (2, E) directed edges, atom-major, distance-ascending
        * ``edge_shift``  (E, 3) Cartesian PBC shift of each edge's target image
        * ``edge_vec``    (E, 3) source -> target displacement
        * ``edge_dist``   (E,) edge length
        * ``edge_attr``   (E, M) Gaussian distance features, if ``num_rbf > 0``
        * ``x``           (N, D) element embeddings, if ``embeddings_path`` is set
        * ``betti``       (N, 35) or (N, n_components) topology descriptors,
                          if ``betti_cutoff`` is set
        * ``y``           (1,) formation energy, if ``targets_path`` is set
        * ``name``        file stem

    The cache file name encodes every input that shapes the graphs, so
    changing any of them builds a fresh file next to the old one.
    """

    def __init__(
        self,
        root: str,
        raw_structures_dir: str | None = None,
        r_max: float = 5.0,
        max_neighbors: int | None = 12,
        num_rbf: int = 0,
        pattern: str = "*.vasp",
        embeddings_path: str | None = None,
        targets_path: str | None = None,
        graph_config: GraphConfig | None = None,
        betti_cutoff: float | None = None,
        betti_pca_path: str | None = None,
        preprocess: bool = False,
        transform=None,
        pre_transform=None,
    ):
        """
        Args:
            root: Root directory where processed PyG files are cached.
            raw_structures_dir: Directory holding the POSCAR files.
            r_max: Cutoff radius (Å) for graph connectivity.
            max_neighbors: Per-atom cap on outgoing edges (None for no cap).
            num_rbf: Number of Gaussian distance features (0 disables them).
            pattern: Glob selecting structure files inside the directory.
            embeddings_path: Optional JSON of per-element node features.
            targets_path: Optional defect CSV supplying graph targets.
            graph_config: Remaining graph options (image shells, tie rounding,
                RBF width, workers). Its cutoff, cap and RBF count are
                overridden by the arguments above.
            betti_cutoff: Radius of the per-atom point clouds for Betti
                descriptors; None skips them.
            betti_pca_path: Optional fitted PCA compressing the descriptors.
            preprocess: If True, forces reprocessing even if processed files exist.
        """
        self.raw_structures_dir = raw_structures_dir
        self.r_max = r_max
        self.max_neighbors = max_neighbors
        self.num_rbf = num_rbf
        self.pattern = pattern
        self.embeddings_path = embeddings_path
        self.targets_path = targets_path
        self.graph_config = graph_config
        self.betti_cutoff = betti_cutoff
        self.betti_pca_path = betti_pca_path
        self.skipped = []

        processed_file = self.processed_file_names[0]
        full_cache_path = os.path.join(root, "processed", processed_file)
        if preprocess and os.path.exists(full_cache_path):
            logger.info("Preprocess=True: deleting cache to force rebuild: %s", processed_file)
            os.remove(full_cache_path)

        # Triggers process() when the processed file is missing
        super().__init__(root, transform, pre_transform)

        if os.path.exists(self.processed_paths[0]):
            self.load(self.processed_paths[0])

    def cache_key(self) -> str:
        """Short digest of the inputs not spelled out in the file name."""
        settings = {
            "raw_dir": _abspath(self.raw_structures_dir),
            "pattern": self.pattern,
            "embeddings": _abspath(self.embeddings_path),
            "targets": _abspath(self.targets_path),
            "graph": graph_options(self.graph_config),
            "betti_cutoff": self.betti_cutoff,
            "betti_pca": _abspath(self.betti_pca_path),
        }
        blob = json.dumps(settings, sort_keys=True).encode()
        return hashlib.sha1(blob).hexdigest()[:10]

    @property
    def processed_file_names(self):
        return [f"graphs_rmax{self.r_max}_k{self.max_neighbors}_rbf{self.num_rbf}_{self.cache_key()}.pt"]

    def structure_files(self) -> list[Path]:
        files = [p for p in Path(self.raw_structures_dir).glob(self.pattern) if p.is_file()]

        def sort_key(p):
            try:
                return (0, parse_structure_id(p.stem), p.name)
            except ValueError:
                return (1, (0, 0), p.name)

        return sorted(files, key=sort_key)

    def process(self):
        if self.raw_structures_dir is None:
            return

        embeddings = load_atom_embeddings(self.embeddings_path) if self.embeddings_path else None
        targets = None
        if self.targets_path:
            targets = {(e.pris_idx, e.vac_idx): e.formation_energy
                       for e in read_defect_table(self.targets_path)}
        betti_pca = load_pca(self.betti_pca_path) if self.betti_pca_path else None

        data_list = []
        files = self.structure_files()
        for path in tqdm(files, desc="Processing structures"):
            try:
                structure = read_poscar(path)
                data = structure_to_data(
                    structure,
                    r_max=self.r_max,
                    max_neighbors=self.max_neighbors,
                    num_rbf=self.num_rbf,
                    embeddings=embeddings,
                    graph_config=self.graph_config,
                    betti_cutoff=self.betti_cutoff,
                    betti_pca=betti_pca,
                )
            except (CrystalGraphError, ValueError) as e:
                logger.warning("Skipping %s: %s", path.name, e)
                self.skipped.append(path.name)
                continue

            data.name = path.stem
            if targets is not None:
                try:
                    key = parse_structure_id(path.stem)
                except ValueError:
                    key = None
                if key not in targets:
                    logger.warning("Skipping %s: no target row", path.name)
                    self.skipped.append(path.name)
                    continue
                data.y = torch.tensor([targets[key]], dtype=torch.float)

            if self.pre_transform is not None:
                data = self.pre_transform(data)
            data_list.append(data)

        if not data_list:
            raise ValueError(f"No valid structures found in {self.raw_structures_dir}")

        logger.info("Processed %d graphs from %s (%d skipped)",
                    len(data_list), self.raw_structures_dir, len(self.skipped))
        self.save(data_list, self.processed_paths[0])


def structure_to_data(structure, r_max=5.0, max_neighbors=12, num_rbf=0, embeddings=None,
                      graph_config=None, betti_cutoff=None, betti_pca=None):
    """
    Converts a Structure into a PyG Data object.

    Args:
        structure (Structure): Parsed crystal cell.
        r_max (float): Neighbor cutoff radius.
        max_neighbors (int | None): Per-atom edge cap.
        num_rbf (int): Gaussian distance features per edge (0 for none).
        embeddings (dict[int, np.ndarray] | None): Per-element node features.
        graph_config (GraphConfig | None): Image shells, tie rounding, RBF
            width and workers for ``build_graph``.
        betti_cutoff (float | None): Attach per-atom Betti descriptors
            computed within this radius.
        betti_pca (PCA | None): Fitted PCA applied to those descriptors.

    Returns:
        torch_geometric.data.Data: Prepared graph.
    """
    options = graph_options(graph_config)
    graph = build_graph(structure, r_max, max_neighbors, num_rbf=num_rbf, **options)
    data = graph.to_data(structure)

    if embeddings is not None:
        z = structure.atomic_numbers
        missing = sorted({int(zi) for zi in z if int(zi) not in embeddings})
        if missing:
            raise ValueError(f"No embedding for atomic numbers {missing}")
        data.x = torch.tensor(np.stack([embeddings[int(zi)] for zi in z]), dtype=torch.float)

    if betti_cutoff is not None:
        betti = structure_betti_features(structure, betti_cutoff, max_image_shells=options["max_image_shells"])
        if betti_pca is not None:
            betti = betti_pca.transform(betti)
        data.betti = torch.tensor(betti, dtype=torch.float)

    return data
