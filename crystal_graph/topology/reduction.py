"""
PCA compression of Betti descriptors pooled over a dataset.
"""
from pathlib import Path
from typing import Union

import joblib
import numpy as np
from sklearn.decomposition import PCA

from .betti import BETTI_FEATURE_DIM


def fit_betti_pca(features: np.ndarray, n_components: int = 6) -> PCA:
    """
    Fit a PCA on stacked per-atom descriptors of shape (N_total, 35).
    """
    features = np.asarray(features, dtype=np.float64)
    if features.ndim != 2 or features.shape[1] != BETTI_FEATURE_DIM:
        raise ValueError(f"expected (N, {BETTI_FEATURE_DIM}) features, got {features.shape}")
    if not 1 <= n_components <= min(features.shape):
        raise ValueError(f"n_components={n_components} out of range for {features.shape} features")
    return PCA(n_components=n_components).fit(features)


def save_pca(pca: PCA, path: Union[str, Path]) -> None:
    joblib.dump(pca, path)


def load_pca(path: Union[str, Path]) -> PCA:
    pca = joblib.load(path)
    if not isinstance(pca, PCA):
        raise ValueError(f"{path} does not hold a fitted PCA")
    return pca
