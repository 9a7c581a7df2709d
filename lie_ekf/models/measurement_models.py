"""
Linearized measurement models for manifold-state filters.

A linearized measurement model binds a measurement function h to the
finite-difference engine and exposes the triple an Extended Kalman Filter
needs for its correction step:
    - predicted measurement  z_pred = h(state)
    - Jacobian               H = ∂h/∂x at the state's chart coordinates (n_m × n_x)
    - noise Jacobian         V = I (n_m × n_m), additive measurement noise

Provided models:
    - FunctionMeasurementModel: wraps any callable h(x) -> z
    - LiePositionMeasurementModel: two-landmark position offsets read
      directly from the chart coordinates
    - LandmarkRangeMeasurementModel: distances from the position block of
      the coordinates to known landmarks

Typical filter tick:
    >>> model.linearize(state)          # refresh H, once per update
    >>> z_pred = model.h(state)
    >>> H, V, R = model.jacobian(), model.noise_jacobian(), model.covariance()
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

import numpy as np

from lie_ekf.differentiation.numerical_diff import NumericalDiffConfig, NumericalDiffFunctor
from lie_ekf.errors import DimensionMismatchError
from lie_ekf.estimators.covariance import CovarianceRepresentation, StandardCovariance
from lie_ekf.models.types import LieState


class LinearizedMeasurementModel(ABC):
    """
    Measurement model linearized by numerical differentiation.

    Subclasses implement measure(state). The base class validates sizes,
    owns H and V, and drives the differentiation engine through a functor
    that holds only a weak reference back to this model.

    Attributes:
        n_x: Declared chart-coordinate dimension (functor input size, H columns).
        n_m: Declared measurement dimension (functor output size, H rows).
        n_v: Tangent-velocity dimension of states built during differentiation.
        H: Measurement Jacobian, shape (n_m, n_x). Overwritten by linearize().
        jacobian_observer: Optional callback receiving a copy of H after each
            linearize() call. None by default.
    """

    def __init__(
        self,
        n_x: int,
        n_m: int,
        n_v: Optional[int] = None,
        covariance: Optional[CovarianceRepresentation] = None,
        diff_config: Optional[NumericalDiffConfig] = None,
        jacobian_observer: Optional[Callable[[np.ndarray], None]] = None,
        validate: bool = True,
    ):
        """
        Initialize the model.

        Args:
            n_x: Chart-coordinate dimension.
            n_m: Measurement dimension.
            n_v: Tangent-velocity dimension (default: n_x).
            covariance: Measurement noise covariance R as a covariance
                representation. Default: StandardCovariance of the identity.
            diff_config: Finite-difference parameters. Default: forward
                differences with sqrt(machine eps) steps.
            jacobian_observer: Optional hook called with H after linearize().
            validate: If True, evaluate h once at the zero state so that a
                wrong output dimension fails here instead of mid-filter.

        Raises:
            DimensionMismatchError: If a dimension is not positive, the
                covariance is not (n_m, n_m), or the probe evaluation returns
                the wrong number of entries.
        """
        if n_x <= 0 or n_m <= 0:
            raise DimensionMismatchError(
                f"Model dimensions must be positive, got n_x={n_x}, n_m={n_m}"
            )
        self.n_x = n_x
        self.n_m = n_m
        self.n_v = n_x if n_v is None else n_v

        self.H = np.zeros((n_m, n_x))

        # Additive noise: V is constant, set once. A view of a read-only
        # base cannot be made writeable again
        base = np.eye(n_m)
        base.flags.writeable = False
        self._V = base.view()

        if covariance is None:
            covariance = StandardCovariance.identity(n_m)
        if covariance.dimension != n_m:
            raise DimensionMismatchError(
                f"Measurement covariance must be ({n_m}, {n_m}), "
                f"got dimension {covariance.dimension}"
            )
        self._covariance = covariance

        self.jacobian_observer = jacobian_observer
        self._functor = NumericalDiffFunctor(self, n_x, n_m, diff_config)

        if validate:
            self.h(LieState.zeros(n_x, self.n_v))

    @abstractmethod
    def measure(self, state: LieState) -> np.ndarray:
        """Raw measurement function, shape (n_m,). Must not have side effects."""
        pass

    def h(self, state: LieState) -> np.ndarray:
        """
        Predicted measurement for a state.

        Args:
            state: State with chart coordinates of shape (n_x,).

        Returns:
            Predicted measurement, shape (n_m,). A new array on every call.

        Raises:
            DimensionMismatchError: If the state or the returned measurement
                does not match the declared dimensions.
        """
        name = type(self).__name__
        validate_measurement_inputs(state.x, expected_x_dim=self.n_x, model_name=name)

        z = np.array(self.measure(state), dtype=float)
        if z.ndim == 0 and self.n_m == 1:
            z = z.reshape(1)
        validate_measurement_inputs(
            state.x, z, expected_x_dim=self.n_x, expected_z_dim=self.n_m, model_name=name
        )
        return z

    def evaluate_coordinates(self, x: np.ndarray) -> np.ndarray:
        """h at chart coordinates x with zero tangent velocity."""
        return self.h(LieState(x=x, v=np.zeros(self.n_v)))

    def linearize(self, state: LieState) -> np.ndarray:
        """
        Recompute H = ∂h/∂x at the state's chart coordinates.

        Call exactly once per filter update, immediately before the
        correction step; H is otherwise left from the previous tick.

        Args:
            state: Current state estimate.

        Returns:
            The model's H array (updated in place), shape (n_m, n_x).

        Raises:
            DimensionMismatchError: If len(state.x) != n_x or h returns the
                wrong dimension. H is left unchanged in that case.
        """
        validate_measurement_inputs(
            state.x, expected_x_dim=self.n_x, model_name=type(self).__name__
        )
        J = self._functor.df(state.x)
        self.H[...] = J

        if self.jacobian_observer is not None:
            self.jacobian_observer(self.H.copy())

        return self.H

    def jacobian(self) -> np.ndarray:
        """Current H, as left by the last linearize() call."""
        return self.H

    def noise_jacobian(self) -> np.ndarray:
        """Constant noise Jacobian V (read-only identity), shape (n_m, n_m)."""
        return self._V

    def covariance(self) -> np.ndarray:
        """Measurement noise covariance R, shape (n_m, n_m)."""
        return self._covariance.covariance()

    def covariance_square_root(self) -> np.ndarray:
        """Lower-triangular square root of R."""
        return self._covariance.square_root()

    def set_covariance(self, R: np.ndarray) -> None:
        self._covariance.set_covariance(R)


class FunctionMeasurementModel(LinearizedMeasurementModel):
    """
    Measurement model around an injected function of the chart coordinates.

    Example:
        >>> model = FunctionMeasurementModel(lambda x: np.array([x @ x]), n_x=3, n_m=1)
        >>> H = model.linearize(LieState(x=np.array([1.0, 2.0, 3.0]), v=np.zeros(3)))
        >>> np.allclose(H, [[2.0, 4.0, 6.0]], atol=1e-5)
        True
    """

    def __init__(self, func: Callable[[np.ndarray], np.ndarray], n_x: int, n_m: int, **kwargs):
        """
        Args:
            func: Measurement function h(x) -> z on the chart coordinates.
            n_x: Input dimension of func.
            n_m: Output dimension of func.
            **kwargs: Forwarded to LinearizedMeasurementModel.
        """
        self.func = func
        super().__init__(n_x, n_m, **kwargs)

    def measure(self, state: LieState) -> np.ndarray:
        return self.func(state.x.copy())


class LiePositionMeasurementModel(LinearizedMeasurementModel):
    """
    Position measurement from two beacon landmarks.

    The robot observes its offset to each of n_landmarks known landmarks;
    in chart coordinates these offsets are the first n_m = n_landmarks *
    landmark_dim entries of x, so

        h(state) = x[:n_m]

    Used by examples/example_lie_position_ekf.py.

    Example:
        >>> model = LiePositionMeasurementModel()
        >>> state = LieState(x=np.array([1, 2, 3, 4, 5, 6.0]), v=np.zeros(6))
        >>> model.h(state)
        array([1., 2., 3., 4., 5., 6.])
    """

    def __init__(
        self,
        n_landmarks: int = 2,
        landmark_dim: int = 3,
        n_x: Optional[int] = None,
        **kwargs,
    ):
        """
        Args:
            n_landmarks: Number of landmarks observed (default: 2).
            landmark_dim: Dimension of each offset (default: 3).
            n_x: Chart-coordinate dimension (default: n_landmarks * landmark_dim).
            **kwargs: Forwarded to LinearizedMeasurementModel.

        Raises:
            DimensionMismatchError: If n_x is smaller than the measurement.
        """
        n_m = n_landmarks * landmark_dim
        n_x = n_m if n_x is None else n_x
        if n_x < n_m:
            raise DimensionMismatchError(
                f"State has {n_x} coordinates, cannot read {n_m} landmark offsets"
            )
        self.n_landmarks = n_landmarks
        self.landmark_dim = landmark_dim
        super().__init__(n_x, n_m, **kwargs)

    def measure(self, state: LieState) -> np.ndarray:
        return state.x[:self.n_m]


class LandmarkRangeMeasurementModel(LinearizedMeasurementModel):
    """
    Range measurements to known landmarks.

    Measurement: z_i = ||p - landmark_i||, with p = x[position_indices].

    Example:
        >>> landmarks = np.array([[0, 0, 0], [10, 0, 0], [0, 10, 0]])
        >>> model = LandmarkRangeMeasurementModel(landmarks, n_x=6)
        >>> model.h(LieState(x=np.array([3, 4, 0, 0, 0, 0.0]), v=np.zeros(6)))[0]
        5.0
    """

    def __init__(
        self,
        landmarks: np.ndarray,
        n_x: int,
        position_indices: Optional[Sequence[int]] = None,
        **kwargs,
    ):
        """
        Args:
            landmarks: Landmark positions, shape (N, d).
            n_x: Chart-coordinate dimension.
            position_indices: Indices of the position block in x
                (default: the first d coordinates).
            **kwargs: Forwarded to LinearizedMeasurementModel.

        Raises:
            ValueError: If landmarks is not a 2D array.
            DimensionMismatchError: If position_indices does not have d
                entries within range.
        """
        self.landmarks = np.asarray(landmarks, dtype=float)
        if self.landmarks.ndim != 2:
            raise ValueError(f"Landmarks must be (N, d) array, got shape {self.landmarks.shape}")

        dim = self.landmarks.shape[1]
        if position_indices is None:
            position_indices = tuple(range(dim))
        self.pos_idx = list(position_indices)
        in_range = all(0 <= i < n_x for i in self.pos_idx)
        if dim == 0 or len(self.pos_idx) != dim or not in_range:
            raise DimensionMismatchError(
                f"Position indices {self.pos_idx} do not select a {dim}D block of {n_x} coordinates"
            )
        super().__init__(n_x, len(self.landmarks), **kwargs)

    def measure(self, state: LieState) -> np.ndarray:
        position = state.x[self.pos_idx]
        return np.linalg.norm(self.landmarks - position, axis=1)


def validate_measurement_inputs(
    x: np.ndarray,
    z: Optional[np.ndarray] = None,
    expected_x_dim: Optional[int] = None,
    expected_z_dim: Optional[int] = None,
    model_name: str = "measurement model"
) -> None:
    """
    Validate inputs to measurement models.

    Args:
        x: Chart coordinates
        z: Measurement vector (optional)
        expected_x_dim: Expected coordinate dimension (if known)
        expected_z_dim: Expected measurement dimension (if known)
        model_name: Name of model for error messages

    Raises:
        DimensionMismatchError: If a vector is not 1D or has the wrong length
        TypeError: If wrong types provided
    """
    if not isinstance(x, np.ndarray):
        raise TypeError(f"{model_name}: state must be numpy array, got {type(x)}")

    if x.ndim != 1:
        raise DimensionMismatchError(f"{model_name}: state must be 1D, got shape {x.shape}")

    if expected_x_dim is not None and x.shape[0] != expected_x_dim:
        raise DimensionMismatchError(
            f"{model_name}: state dimension must be {expected_x_dim}, got {x.shape[0]}"
        )

    if z is not None:
        if not isinstance(z, np.ndarray):
            raise TypeError(f"{model_name}: measurement must be numpy array, got {type(z)}")

        if z.ndim != 1:
            raise DimensionMismatchError(
                f"{model_name}: measurement must be 1D, got shape {z.shape}"
            )

        if expected_z_dim is not None and z.shape[0] != expected_z_dim:
            raise DimensionMismatchError(
                f"{model_name}: measurement dimension must be {expected_z_dim}, got {z.shape[0]}"
            )
