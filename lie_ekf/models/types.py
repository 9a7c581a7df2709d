"""
State and measurement containers for manifold-valued estimation.

The state of a Lie-group system is represented by its coordinates in a flat
chart together with a velocity expressed in the tangent space at that point:

    state = (x, v),   x ∈ R^n_x (chart coordinates),  v ∈ R^n_v (tangent velocity)

Measurements are plain 1D numpy arrays of fixed length n_m.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from lie_ekf.errors import DimensionMismatchError


@dataclass
class LieState:
    """
    Manifold state: chart coordinates plus tangent velocity.

    Both vectors are copied on construction, so a state never aliases the
    arrays it was built from.

    Attributes:
        x: Manifold chart coordinates, shape (n_x,).
        v: Tangent-space velocity, shape (n_v,). Carried along with the
            state but not read by measurement functions.

    Example:
        >>> s = LieState(x=np.array([1.0, 2.0, 3.0]), v=np.zeros(3))
        >>> s.to_vector()
        array([1., 2., 3., 0., 0., 0.])
    """
    x: np.ndarray
    v: np.ndarray

    def __post_init__(self) -> None:
        self.x = np.array(self.x, dtype=float).reshape(-1)
        self.v = np.array(self.v, dtype=float).reshape(-1)

    @property
    def n_x(self) -> int:
        """Dimension of the chart coordinates."""
        return self.x.shape[0]

    @property
    def n_v(self) -> int:
        """Dimension of the tangent velocity."""
        return self.v.shape[0]

    @classmethod
    def zeros(cls, n_x: int, n_v: Optional[int] = None) -> "LieState":
        """Create a state at the chart origin with zero velocity."""
        return cls(x=np.zeros(n_x), v=np.zeros(n_x if n_v is None else n_v))

    def to_vector(self) -> np.ndarray:
        """Stack the state as [x, v]."""
        return np.concatenate([self.x, self.v])

    @classmethod
    def from_vector(cls, vec: np.ndarray, n_x: int) -> "LieState":
        """
        Split a stacked [x, v] vector back into a state.

        Args:
            vec: Stacked state vector, shape (n_x + n_v,).
            n_x: Number of leading entries that hold the chart coordinates.

        Returns:
            New LieState.

        Raises:
            DimensionMismatchError: If vec is not 1D or shorter than n_x.
        """
        vec = np.asarray(vec, dtype=float)
        if vec.ndim != 1 or vec.shape[0] < n_x:
            raise DimensionMismatchError(
                f"Cannot split vector of shape {vec.shape} into {n_x} coordinates"
            )
        return cls(x=vec[:n_x], v=vec[n_x:])

    def copy(self) -> "LieState":
        return LieState(x=self.x, v=self.v)


def as_measurement(z: np.ndarray, n_m: int, name: str = "measurement") -> np.ndarray:
    """
    Convert z to a float measurement vector of length n_m.

    Args:
        z: Measurement-like value (array, list, or scalar for n_m == 1).
        n_m: Expected measurement dimension.
        name: Label used in error messages.

    Returns:
        1D float array of shape (n_m,).

    Raises:
        DimensionMismatchError: If z is not 1D or does not have n_m entries.
    """
    z = np.asarray(z, dtype=float)
    if z.ndim == 0 and n_m == 1:
        z = z.reshape(1)
    if z.ndim != 1:
        raise DimensionMismatchError(f"{name} must be 1D, got shape {z.shape}")
    if z.shape[0] != n_m:
        raise DimensionMismatchError(
            f"{name} dimension must be {n_m}, got {z.shape[0]}"
        )
    return z
