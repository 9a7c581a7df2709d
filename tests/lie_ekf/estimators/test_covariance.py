"""
Unit tests for covariance representations.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from lie_ekf.errors import DimensionMismatchError
from lie_ekf.estimators import SquareRootCovariance, StandardCovariance


P_SPD = np.array([
    [4.0, 1.0, 0.5],
    [1.0, 3.0, 0.2],
    [0.5, 0.2, 2.0],
])


@pytest.mark.parametrize("cls", [StandardCovariance, SquareRootCovariance])
class TestSharedInterface:

    def test_round_trip(self, cls):
        cov = cls(P_SPD)
        assert cov.dimension == 3
        assert_allclose(cov.covariance(), P_SPD, atol=1e-12)

    def test_square_root_is_lower_factor(self, cls):
        S = cls(P_SPD).square_root()
        assert_allclose(S, np.tril(S))
        assert_allclose(S @ S.T, P_SPD, atol=1e-12)

    def test_identity(self, cls):
        cov = cls.identity(4)
        assert_allclose(cov.covariance(), np.eye(4))

    def test_set_covariance(self, cls):
        cov = cls(np.eye(3))
        cov.set_covariance(P_SPD)
        assert_allclose(cov.covariance(), P_SPD, atol=1e-12)

    def test_dimension_fixed(self, cls):
        cov = cls(np.eye(3))
        with pytest.raises(DimensionMismatchError):
            cov.set_covariance(np.eye(4))

    def test_not_square(self, cls):
        with pytest.raises(DimensionMismatchError):
            cls(np.zeros((2, 3)))

    def test_not_symmetric(self, cls):
        with pytest.raises(ValueError, match="symmetric"):
            cls(np.array([[1.0, 0.5], [0.0, 1.0]]))

    def test_returned_matrix_is_a_copy(self, cls):
        cov = cls(P_SPD)
        P = cov.covariance()
        P[0, 0] = -1.0
        assert cov.covariance()[0, 0] == pytest.approx(4.0)


class TestStandardCovariance:

    def test_accepts_semidefinite(self):
        cov = StandardCovariance(np.diag([1.0, 0.0]))
        assert_allclose(cov.covariance(), np.diag([1.0, 0.0]))


class TestSquareRootCovariance:

    def test_rejects_indefinite(self):
        with pytest.raises(ValueError, match="positive definite"):
            SquareRootCovariance(np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_set_square_root(self):
        cov = SquareRootCovariance(np.eye(2))
        S = np.array([[2.0, 0.0], [1.0, 3.0]])
        cov.set_square_root(S)
        assert_allclose(cov.covariance(), S @ S.T)

    def test_set_square_root_checks(self):
        cov = SquareRootCovariance(np.eye(2))
        with pytest.raises(ValueError, match="lower triangular"):
            cov.set_square_root(np.array([[1.0, 1.0], [0.0, 1.0]]))
        with pytest.raises(DimensionMismatchError):
            cov.set_square_root(np.eye(3))
