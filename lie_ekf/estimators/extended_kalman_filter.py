"""
Extended Kalman Filter over manifold states with linearized measurement models.

The filter keeps the covariance of the stacked state [x, v] and consumes
measurement models through their (h, H, V, R) interface:

    Prediction:
        x̂_k^- = f(x̂_{k-1})
        P_k^- = F_{k-1} P_{k-1} F_{k-1}^T + Q(dt),   F_{k-1} = ∂f/∂x at x̂_{k-1}

    Update:
        H_k   = ∂h/∂x at x̂_k^-   (model.linearize, zero columns for v)
        S_k   = H_k P_k^- H_k^T + V R V^T
        K_k   = P_k^- H_k^T S_k^{-1}
        x̂_k   = x̂_k^- + K_k (z_k - h(x̂_k^-))
        P_k   = (I - K_k H_k) P_k^- (I - K_k H_k)^T + K_k V R V^T K_k^T   (Joseph form)

Measurement models only differentiate with respect to the chart
coordinates; the filter embeds their H into the stacked-state columns.
"""

from typing import Callable, NamedTuple, Optional, Tuple, Type

import numpy as np

from lie_ekf.estimators.base import StateEstimator
from lie_ekf.errors import DimensionMismatchError
from lie_ekf.estimators.covariance import CovarianceRepresentation, StandardCovariance
from lie_ekf.models.types import LieState, as_measurement
from lie_ekf.utils.jacobian_checks import check_jacobian_health


class UpdateResult(NamedTuple):
    """Diagnostics of one measurement update.

    Attributes:
        innovation: Measurement residual z - h(x̂_k^-), shape (m,).
        innovation_covariance: S_k, shape (m, m).
        kalman_gain: K_k, shape (n, m).
        nis: Normalized innovation squared νᵀ S⁻¹ ν.
        jacobian_healthy: False if H had non-finite or very large entries.
    """

    innovation: np.ndarray
    innovation_covariance: np.ndarray
    kalman_gain: np.ndarray
    nis: float
    jacobian_healthy: bool


class ExtendedKalmanFilter(StateEstimator):
    """
    Extended Kalman Filter for Lie-group states.

    Attributes:
        system_model: Object with f(state, dt) -> state and
            linearize(state, dt) -> F. Required for predict().
        process_noise: Function Q(dt) -> (n×n) process noise covariance.
        state: Current state estimate.
        covariance: Covariance representation of the stacked state.
    """

    def __init__(
        self,
        x0: LieState,
        P0: np.ndarray,
        system_model=None,
        process_noise: Optional[Callable[[float], np.ndarray]] = None,
        covariance_cls: Type[CovarianceRepresentation] = StandardCovariance,
        innovation_func: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = None,
        check_jacobians: bool = True,
    ):
        """
        Initialize Extended Kalman Filter.

        Args:
            x0: Initial state estimate.
            P0: Initial covariance of [x, v], shape (n, n) with n = n_x + n_v.
            system_model: Process model (see class attributes). Optional for
                update-only use.
            process_noise: Q(dt). Defaults to zeros.
            covariance_cls: Covariance representation, chosen once here.
            innovation_func: Optional ν = f(z, z_pred), e.g. for angle wrapping.
                Default is simple subtraction (z - z_pred).
            check_jacobians: If True, warn when H is non-finite or very large.

        Raises:
            DimensionMismatchError: If P0 does not match the state dimension.
        """
        x0 = x0.copy()
        super().__init__(x0.n_x + x0.n_v)

        self.system_model = system_model
        self.process_noise = process_noise
        self.innovation_func = innovation_func
        self.check_jacobians = check_jacobians

        self.state = x0
        self.covariance = covariance_cls(P0)
        if self.covariance.dimension != self.state_dim:
            raise DimensionMismatchError(
                f"P0 dimension {self.covariance.dimension} inconsistent with "
                f"state_dim {self.state_dim}"
            )

    def predict(self, dt: float = 1.0) -> None:
        """
        Propagate state and covariance by dt.

        The system Jacobian is evaluated at the pre-prediction state.

        Raises:
            RuntimeError: If no system model was given.
        """
        if self.system_model is None:
            raise RuntimeError("predict() needs a system model")

        x_pre = self.state.copy()
        F = self.system_model.linearize(x_pre, dt)
        self.state = self.system_model.f(x_pre, dt)

        if self.process_noise is not None:
            Q = self.process_noise(dt)
        else:
            Q = np.zeros((self.state_dim, self.state_dim))

        P = self.covariance.covariance()
        P = F @ P @ F.T + Q
        self.covariance.set_covariance(0.5 * (P + P.T))

    def _linearized_terms(self, model, z: np.ndarray):
        """Linearize the model at the current state and form ν, H, S, V R Vᵀ."""
        z = as_measurement(z, model.n_m, "z")

        # Refresh H before anything reads it
        H_x = model.linearize(self.state)
        z_pred = model.h(self.state)

        healthy = True
        if self.check_jacobians:
            healthy, _ = check_jacobian_health(H_x)

        H = np.zeros((model.n_m, self.state_dim))
        H[:, :self.state.n_x] = H_x

        V = model.noise_jacobian()
        R = V @ model.covariance() @ V.T

        if self.innovation_func is not None:
            innovation = self.innovation_func(z, z_pred)
        else:
            innovation = z - z_pred

        P = self.covariance.covariance()
        S = H @ P @ H.T + R
        return innovation, H, S, R, healthy

    def update(self, model, z: np.ndarray) -> UpdateResult:
        """
        Correct the state with measurement z.

        Args:
            model: LinearizedMeasurementModel whose n_x matches the state.
            z: Measurement vector, shape (model.n_m,).

        Returns:
            UpdateResult with innovation diagnostics.

        Raises:
            DimensionMismatchError: If z or the state does not match the model.
        """
        innovation, H, S, R, healthy = self._linearized_terms(model, z)
        P = self.covariance.covariance()

        # K = P Hᵀ S⁻¹, solved as Kᵀ = S⁻¹ H P (P symmetric)
        K = np.linalg.solve(S, H @ P).T

        x_upd = self.state.to_vector() + K @ innovation
        self.state = LieState.from_vector(x_upd, self.state.n_x)

        I_KH = np.eye(self.state_dim) - K @ H
        P = I_KH @ P @ I_KH.T + K @ R @ K.T
        self.covariance.set_covariance(0.5 * (P + P.T))

        nis = float(innovation @ np.linalg.solve(S, innovation))
        return UpdateResult(innovation, S, K, nis, healthy)

    def get_innovation(self, model, z: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute innovation and its covariance without updating the state.

        Note that this still refreshes the model's H.

        Returns:
            Tuple of (innovation, innovation_covariance).
        """
        innovation, _, S, _, _ = self._linearized_terms(model, z)
        return innovation, S
