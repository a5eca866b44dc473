"""
Configuration dataclasses for graph construction and dataset preprocessing.

Defaults live here; ``configs/config.yaml`` and command-line dotlist
overrides are merged on top through OmegaConf.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from omegaconf import OmegaConf

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "configs/config.yaml"


@dataclass
class GraphConfig:
    """Neighbor-graph construction parameters."""
    r_cutoff: float = 5.0
    max_neighbors: Optional[int] = 12
    image_shells: Optional[int] = None  # widen to fit r_cutoff if None
    max_image_shells: int = 8  # upper bound when widening
    closest_image_only: bool = False
    distance_decimals: int = 10
    num_rbf: int = 0  # 0 disables the Gaussian expansion
    rbf_width: Optional[float] = None
    workers: int = 1


@dataclass
class DataConfig:
    """Locations and options for batch preprocessing."""
    raw_dir: str = "data/raw/structures"
    root: str = "data/processed"
    pattern: str = "*.vasp"
    embeddings_path: Optional[str] = None
    targets_path: Optional[str] = None


@dataclass
class TopologyConfig:
    """Per-atom Betti descriptors; disabled when ``r_cutoff`` is None."""
    r_cutoff: Optional[float] = None
    n_components: int = 6
    pca_path: Optional[str] = None


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Config:
    graph: GraphConfig = field(default_factory=GraphConfig)
    data: DataConfig = field(default_factory=DataConfig)
    topology: TopologyConfig = field(default_factory=TopologyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Optional[str] = None, overrides: Optional[List[str]] = None) -> Config:
    """
    Build a typed ``Config`` from defaults, an optional YAML file and dotlist
    overrides such as ``["graph.r_cutoff=6.0"]``.

    Missing files fall back to the library defaults with a warning.
    """
    cfg = OmegaConf.structured(Config)
    if path is not None:
        if os.path.exists(path):
            cfg = OmegaConf.merge(cfg, OmegaConf.load(path))
        else:
            logger.warning("Config file %s not found, using library defaults.", path)
    if overrides:
        cfg = OmegaConf.merge(cfg, OmegaConf.from_dotlist(list(overrides)))
    return OmegaConf.to_object(cfg)


def configure_logging(cfg: LoggingConfig) -> None:
    logging.basicConfig(level=getattr(logging, cfg.level.upper(), logging.INFO), format=cfg.format)
