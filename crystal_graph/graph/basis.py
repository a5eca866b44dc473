import numpy as np
import torch
import torch.nn as nn

from ..errors import InvalidParameterError


def _centers_and_width(r_cutoff, num_centers, width):
    if num_centers < 1:
        raise InvalidParameterError(f"num_centers must be >= 1, got {num_centers}")
    if r_cutoff <= 0:
        raise InvalidParameterError(f"r_cutoff must be positive, got {r_cutoff}")
    centers = np.linspace(0.0, r_cutoff, num_centers)
    if width is None:
        # Center spacing; a single center spans the whole cutoff
        width = r_cutoff / (num_centers - 1) if num_centers > 1 else r_cutoff
    if width <= 0:
        raise InvalidParameterError(f"width must be positive, got {width}")
    return centers, float(width)


class GaussianExpansion:
    """
    Gaussian radial-basis expansion of edge distances.

    M evenly spaced centers mu_0..mu_{M-1} over [0, r_cutoff] and one shared
    width sigma. A distance d maps to the M-vector
    ``exp(-(d - mu_k)^2 / (2 sigma^2))``.

    Args:
        r_cutoff (float): Upper end of the center grid.
        num_centers (int): Number of centers M.
        width (float, optional): sigma. Defaults to the center spacing.
    """
    def __init__(self, r_cutoff, num_centers=50, width=None):
        self.r_cutoff = float(r_cutoff)
        self.centers, self.width = _centers_and_width(self.r_cutoff, int(num_centers), width)

    @property
    def num_centers(self):
        return len(self.centers)

    def __call__(self, distances):
        """
        Args:
            distances (np.ndarray): Shape [E].

        Returns:
            np.ndarray: Shape [E, M].
        """
        diff = np.asarray(distances, dtype=float)[:, None] - self.centers[None, :]
        return np.exp(-(diff**2) / (2 * self.width**2))

    def __repr__(self):
        return (f"{self.__class__.__name__}(r_cutoff={self.r_cutoff}, "
                f"num_centers={self.num_centers}, width={self.width:.4f})")


class GaussianRadialBasis(nn.Module):
    """
    Torch version of ``GaussianExpansion`` for edge distances stored on PyG
    ``Data`` objects. Centers and width are buffers, not parameters, so the
    expansion is fixed and moves with ``.to(device)``.
    """
    def __init__(self, r_cutoff=5.0, num_centers=50, width=None):
        super().__init__()
        centers, width = _centers_and_width(float(r_cutoff), int(num_centers), width)
        self.r_cutoff = float(r_cutoff)
        self.register_buffer('centers', torch.tensor(centers, dtype=torch.float))
        self.register_buffer('width', torch.tensor(width, dtype=torch.float))

    def forward(self, distances):
        """
        Args:
            distances (torch.Tensor): Shape [E].

        Returns:
            torch.Tensor: Shape [E, M].
        """
        # [E, 1] - [1, M] -> [E, M]
        diff = distances.unsqueeze(1) - self.centers.unsqueeze(0)
        return torch.exp(-(diff**2) / (2 * self.width**2))
