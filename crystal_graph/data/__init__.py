from .structure import Structure
from .poscar import parse_poscar, read_poscar
from .dataset import CrystalGraphDataset, structure_to_data
from .transforms import PeriodicRadiusGraph

__all__ = ["Structure", "parse_poscar", "read_poscar", "CrystalGraphDataset",
           "structure_to_data", "PeriodicRadiusGraph"]
