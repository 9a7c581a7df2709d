"""
Covariance representations for filters and noise models.

A filter or measurement model picks one representation at construction and
keeps it for its lifetime:
    - StandardCovariance: stores the full covariance matrix P
    - SquareRootCovariance: stores the lower-triangular factor S with P = S Sᵀ

Both expose the same interface, so code that only needs P or its square root
does not care which one it holds.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from scipy import linalg

from lie_ekf.errors import DimensionMismatchError


def _validate_covariance(P: np.ndarray, dimension: Optional[int] = None) -> np.ndarray:
    P = np.array(P, dtype=float)
    if P.ndim != 2 or P.shape[0] != P.shape[1]:
        raise DimensionMismatchError(f"Covariance must be a square matrix, got shape {P.shape}")
    if dimension is not None and P.shape[0] != dimension:
        raise DimensionMismatchError(
            f"Covariance must be ({dimension}, {dimension}), got {P.shape}"
        )
    if not np.allclose(P, P.T):
        raise ValueError("Covariance matrix must be symmetric")
    return P


class CovarianceRepresentation(ABC):
    """Abstract holder of a symmetric positive semi-definite matrix."""

    def __init__(self, P: np.ndarray):
        self.dimension = _validate_covariance(P).shape[0]
        self.set_covariance(P)

    @abstractmethod
    def covariance(self) -> np.ndarray:
        """Return P, shape (n, n)."""
        pass

    @abstractmethod
    def square_root(self) -> np.ndarray:
        """Return lower-triangular S with S Sᵀ = P, shape (n, n)."""
        pass

    @abstractmethod
    def set_covariance(self, P: np.ndarray) -> None:
        """Replace the stored matrix (dimension must not change)."""
        pass

    @classmethod
    def identity(cls, dimension: int) -> "CovarianceRepresentation":
        return cls(np.eye(dimension))


class StandardCovariance(CovarianceRepresentation):
    """
    Covariance stored as the full matrix.

    The square root is computed on demand with a Cholesky factorization.

    Example:
        >>> cov = StandardCovariance(np.diag([4.0, 9.0]))
        >>> np.diag(cov.square_root())
        array([2., 3.])
    """

    def covariance(self) -> np.ndarray:
        return self._P.copy()

    def square_root(self) -> np.ndarray:
        return linalg.cholesky(self._P, lower=True)

    def set_covariance(self, P: np.ndarray) -> None:
        self._P = _validate_covariance(P, self.dimension)


class SquareRootCovariance(CovarianceRepresentation):
    """
    Covariance stored as its lower-triangular Cholesky factor S.

    P is reconstructed as S Sᵀ when requested. The input to set_covariance
    must be positive definite.

    Raises:
        ValueError: If P is not positive definite.
    """

    def covariance(self) -> np.ndarray:
        return self._S @ self._S.T

    def square_root(self) -> np.ndarray:
        return self._S.copy()

    def set_covariance(self, P: np.ndarray) -> None:
        P = _validate_covariance(P, self.dimension)
        try:
            self._S = linalg.cholesky(P, lower=True)
        except linalg.LinAlgError as exc:
            raise ValueError(f"Covariance must be positive definite: {exc}") from exc

    def set_square_root(self, S: np.ndarray) -> None:
        """
        Replace the stored factor directly.

        Args:
            S: Lower-triangular factor, shape (n, n).

        Raises:
            DimensionMismatchError: If S has the wrong shape.
            ValueError: If S is not lower triangular.
        """
        S = np.array(S, dtype=float)
        if S.shape != (self.dimension, self.dimension):
            raise DimensionMismatchError(
                f"Square root must be ({self.dimension}, {self.dimension}), got {S.shape}"
            )
        if not np.allclose(S, np.tril(S)):
            raise ValueError("Square root factor must be lower triangular")
        self._S = S
