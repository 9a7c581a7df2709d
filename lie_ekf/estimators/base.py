"""
Base classes for state estimators.

This module defines the abstract interface shared by filters over manifold
states.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from lie_ekf.estimators.covariance import CovarianceRepresentation
from lie_ekf.models.types import LieState


class StateEstimator(ABC):
    """Abstract base class for state estimators."""

    def __init__(self, state_dim: int):
        """
        Initialize state estimator.

        Args:
            state_dim: Dimension of the stacked state vector [x, v].
        """
        self.state_dim = state_dim
        self.state: Optional[LieState] = None
        self.covariance: Optional[CovarianceRepresentation] = None

    @abstractmethod
    def predict(self, dt: float = 1.0) -> None:
        """
        Perform prediction step (time update).

        Args:
            dt: Time step in seconds.
        """
        pass

    @abstractmethod
    def update(self, model, z: np.ndarray):
        """
        Perform measurement update (correction step).

        Args:
            model: Linearized measurement model for this measurement.
            z: Measurement vector.
        """
        pass

    def get_state(self) -> Tuple[LieState, np.ndarray]:
        """
        Get current state estimate and covariance.

        Returns:
            Tuple of (state, covariance_matrix), both copies.
        """
        if self.state is None or self.covariance is None:
            raise RuntimeError("Estimator not initialized.")
        return self.state.copy(), self.covariance.covariance()
