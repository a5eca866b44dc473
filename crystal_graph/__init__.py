from .errors import CrystalGraphError, InvalidParameterError, NotLoadedError, StructureFormatError
from .data import Structure, parse_poscar, read_poscar, CrystalGraphDataset, PeriodicRadiusGraph
from .graph import Graph, GaussianExpansion, GaussianRadialBasis, PeriodicNeighborIndex, build_graph
from .session import CrystalGraphSession, SessionState

__all__ = [
    'CrystalGraphError',
    'InvalidParameterError',
    'NotLoadedError',
    'StructureFormatError',
    'Structure',
    'parse_poscar',
    'read_poscar',
    'CrystalGraphDataset',
    'PeriodicRadiusGraph',
    'Graph',
    'GaussianExpansion',
    'GaussianRadialBasis',
    'PeriodicNeighborIndex',
    'build_graph',
    'CrystalGraphSession',
    'SessionState',
]
