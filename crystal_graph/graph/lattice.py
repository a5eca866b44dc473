"""
Fractional/Cartesian conversions under periodic boundary conditions.

Lattice matrices use the row-vector convention: ``lattice[i]`` is the i-th
cell vector, so ``cart = frac @ lattice``.
"""
import numpy as np


def to_cartesian(lattice: np.ndarray, frac: np.ndarray) -> np.ndarray:
    """Fractional (3,) or (N, 3) coordinates -> Cartesian."""
    return np.asarray(frac, dtype=float) @ np.asarray(lattice, dtype=float)


def to_fractional(lattice: np.ndarray, cart: np.ndarray) -> np.ndarray:
    """Cartesian (3,) or (N, 3) coordinates -> fractional."""
    return np.asarray(cart, dtype=float) @ np.linalg.inv(np.asarray(lattice, dtype=float))


def wrap_fractional(frac: np.ndarray) -> np.ndarray:
    """Wrap fractional coordinates into [0, 1) on every axis."""
    wrapped = np.mod(np.asarray(frac, dtype=float), 1.0)
    # np.mod(-1e-17, 1.0) rounds up to exactly 1.0
    wrapped[wrapped >= 1.0] = 0.0
    return wrapped


def minimum_image_delta(lattice: np.ndarray, frac_a: np.ndarray, frac_b: np.ndarray) -> np.ndarray:
    """
    Cartesian displacement a -> b under the minimum-image convention.

    Each fractional component of ``frac_b - frac_a`` is shifted by the image
    in {-1, 0, +1} that minimizes its magnitude before conversion. Exact only
    while the distance of interest is below half the shortest cell height.
    """
    delta = np.asarray(frac_b, dtype=float) - np.asarray(frac_a, dtype=float)
    delta = delta - np.round(delta)
    return to_cartesian(lattice, delta)


def perpendicular_heights(lattice: np.ndarray) -> np.ndarray:
    """
    Interplanar spacings of the cell: the distance between opposite faces
    along each reciprocal direction. Shape (3,).
    """
    lattice = np.asarray(lattice, dtype=float)
    volume = abs(np.linalg.det(lattice))
    crosses = np.array([
        np.cross(lattice[1], lattice[2]),
        np.cross(lattice[2], lattice[0]),
        np.cross(lattice[0], lattice[1]),
    ])
    return volume / np.linalg.norm(crosses, axis=1)


def is_singular(lattice: np.ndarray, tol: float = 1e-10) -> bool:
    """True when the cell volume vanishes relative to its edge lengths."""
    lattice = np.asarray(lattice, dtype=float)
    scale = np.prod(np.linalg.norm(lattice, axis=1))
    if scale == 0.0 or not np.isfinite(scale):
        return True
    return abs(np.linalg.det(lattice)) <= tol * scale
