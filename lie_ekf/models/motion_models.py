"""
System (process) models for manifold states.

Provides a constant-velocity model on the chart coordinates, linearized with
the same finite-difference engine as the measurement models, and the
matching white-acceleration process noise.
"""

from typing import Optional

import numpy as np

from lie_ekf.differentiation.numerical_diff import NumericalDiffConfig, numerical_jacobian
from lie_ekf.errors import DimensionMismatchError
from lie_ekf.models.types import LieState


class ConstantVelocityLieModel:
    """
    Constant tangent-velocity motion on the chart.

    State: (x, v) with n_v == n_x, stacked as [x, v] for covariance purposes.
    Dynamics:
        x_{k+1} = x_k + v_k * dt
        v_{k+1} = v_k

    Example:
        >>> model = ConstantVelocityLieModel(n_x=3)
        >>> s = model.f(LieState(x=np.zeros(3), v=np.array([1.0, 0.0, 2.0])), dt=0.5)
        >>> s.x
        array([0.5, 0. , 1. ])
    """

    def __init__(self, n_x: int, diff_config: Optional[NumericalDiffConfig] = None):
        if n_x <= 0:
            raise DimensionMismatchError(f"n_x must be positive, got {n_x}")
        self.n_x = n_x
        self.diff_config = diff_config

    def _check_state(self, state: LieState) -> None:
        if state.n_x != self.n_x or state.n_v != self.n_x:
            raise DimensionMismatchError(
                f"Constant velocity model needs n_x == n_v == {self.n_x}, "
                f"got n_x={state.n_x}, n_v={state.n_v}"
            )

    def f(self, state: LieState, dt: float = 1.0) -> LieState:
        """Propagate the state by dt seconds."""
        self._check_state(state)
        return LieState(x=state.x + state.v * dt, v=state.v)

    def linearize(self, state: LieState, dt: float = 1.0) -> np.ndarray:
        """
        Jacobian of f with respect to the stacked state [x, v].

        Args:
            state: State at which to linearize (pre-prediction estimate).
            dt: Time step in seconds.

        Returns:
            State transition matrix F, shape (2 n_x, 2 n_x).
        """
        self._check_state(state)
        n = 2 * self.n_x

        def stacked(vec: np.ndarray) -> np.ndarray:
            return self.f(LieState.from_vector(vec, self.n_x), dt).to_vector()

        return numerical_jacobian(stacked, state.to_vector(), n, n, self.diff_config)

    def Q(self, dt: float, q: float = 1.0) -> np.ndarray:
        """
        Process noise covariance (continuous white noise acceleration).

        Args:
            dt: Time step in seconds
            q: Process noise intensity (acceleration variance)

        Returns:
            (2 n_x, 2 n_x) covariance ordered as [x, v]
        """
        eye = np.eye(self.n_x)
        return q * np.block([
            [dt**3 / 3 * eye, dt**2 / 2 * eye],
            [dt**2 / 2 * eye, dt * eye]
        ])
