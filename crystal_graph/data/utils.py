import json
from dataclasses import dataclass
from pathlib import Path

import numpy as np


@dataclass
class DefectEntry:
    pris_idx: int
    vac_idx: int
    energy: float
    vac_type: str
    formation_energy: float


def load_atom_embeddings(path: Path | str) -> dict[int, np.ndarray]:
    """
    Per-element feature vectors from a JSON object keyed by atomic number,
    e.g. the 92-dim CGCNN embedding file ``{"1": [...], "6": [...]}``.
    """
    with open(path, 'r') as f:
        raw = json.load(f)

    embeddings = {int(z): np.asarray(vec, dtype=float) for z, vec in raw.items()}
    dims = {v.shape for v in embeddings.values()}
    if len(dims) > 1:
        raise ValueError(f"Inconsistent embedding shapes in {path}: {sorted(dims)}")
    return embeddings


def read_defect_table(csv_path: Path | str) -> list[DefectEntry]:
    # Columns by position: pris_idx, vac_idx, energy, vac_type, formation_energy
    table = np.genfromtxt(
        csv_path,
        delimiter=',',
        skip_header=1,
        dtype=None,
        encoding='utf-8',
        names=['pris_idx', 'vac_idx', 'energy', 'vac_type', 'formation_energy'],
    )
    table = np.atleast_1d(table)

    return [
        DefectEntry(
            pris_idx=int(row['pris_idx']),
            vac_idx=int(row['vac_idx']),
            energy=float(row['energy']),
            vac_type=str(row['vac_type']).strip(),
            formation_energy=float(row['formation_energy']),
        )
        for row in table
    ]


def parse_structure_id(stem: str) -> tuple[int, int]:
    """'12_3' -> (12, 3); a bare '12' is the pristine structure (12, 0)."""
    base, _, defect = stem.partition('_')
    return int(base), int(defect) if defect else 0
