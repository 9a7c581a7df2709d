"""
State estimation for manifold states.

Available components:
    - Covariance representations (standard matrix, lower-triangular square root)
    - Extended Kalman Filter consuming linearized measurement models
"""

from lie_ekf.estimators.covariance import (
    CovarianceRepresentation,
    StandardCovariance,
    SquareRootCovariance,
)
from lie_ekf.estimators.base import StateEstimator
from lie_ekf.estimators.extended_kalman_filter import ExtendedKalmanFilter, UpdateResult

__all__ = [
    # Covariance representations
    "CovarianceRepresentation",
    "StandardCovariance",
    "SquareRootCovariance",
    # Filters
    "StateEstimator",
    "ExtendedKalmanFilter",
    "UpdateResult",
]
