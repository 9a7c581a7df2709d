"""
Unit tests for linearized measurement models.

Tests cover:
    - Two-landmark position model: h and H = I
    - Injected measurement functions and construction-time dimension checks
    - Range model Jacobian against the analytic expression
    - Noise Jacobian immutability and the Jacobian observer hook
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from lie_ekf.differentiation import NumericalDiffConfig
from lie_ekf.errors import DimensionMismatchError
from lie_ekf.estimators import SquareRootCovariance, StandardCovariance
from lie_ekf.models import (
    FunctionMeasurementModel,
    LandmarkRangeMeasurementModel,
    LiePositionMeasurementModel,
    LieState,
    validate_measurement_inputs,
)


class TestLiePositionMeasurementModel(unittest.TestCase):

    def setUp(self):
        self.model = LiePositionMeasurementModel()
        self.state = LieState(x=np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]), v=np.zeros(6))

    def test_dimensions(self):
        self.assertEqual(self.model.n_x, 6)
        self.assertEqual(self.model.n_m, 6)
        self.assertEqual(self.model.H.shape, (6, 6))

    def test_h_returns_coordinates(self):
        z = self.model.h(self.state)
        assert_allclose(z, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0], rtol=0, atol=0)

    def test_h_returns_fresh_array(self):
        z = self.model.h(self.state)
        z[0] = 100.0
        self.assertEqual(self.state.x[0], 1.0)
        self.assertEqual(self.model.h(self.state)[0], 1.0)

    def test_h_ignores_velocity(self):
        moving = LieState(x=self.state.x, v=np.full(6, 3.0))
        assert_allclose(self.model.h(moving), self.model.h(self.state))

    def test_linearize_gives_identity(self):
        H = self.model.linearize(self.state)
        assert_allclose(H, np.eye(6), atol=1e-12)
        self.assertIs(H, self.model.H)

    def test_linearize_central_gives_identity(self):
        model = LiePositionMeasurementModel(diff_config=NumericalDiffConfig(mode="central"))
        assert_allclose(model.linearize(self.state), np.eye(6), atol=1e-12)

    def test_linearize_overwrites_in_place(self):
        H_before = self.model.H
        self.model.linearize(self.state)
        self.assertIs(self.model.H, H_before)
        self.assertIs(self.model.jacobian(), H_before)

    def test_larger_state(self):
        """Offsets read from the leading block of a longer coordinate vector."""
        model = LiePositionMeasurementModel(n_x=9)
        state = LieState(x=np.arange(9.0), v=np.zeros(9))
        assert_allclose(model.h(state), np.arange(6.0))
        expected = np.hstack([np.eye(6), np.zeros((6, 3))])
        assert_allclose(model.linearize(state), expected, atol=1e-12)

    def test_state_smaller_than_measurement(self):
        with self.assertRaises(DimensionMismatchError):
            LiePositionMeasurementModel(n_x=4)

    def test_mismatched_state_fails_and_keeps_H(self):
        self.model.linearize(self.state)
        H_before = self.model.H.copy()

        bad_state = LieState(x=np.arange(5.0), v=np.zeros(5))
        with self.assertRaises(DimensionMismatchError):
            self.model.linearize(bad_state)
        assert_allclose(self.model.H, H_before, rtol=0, atol=0)

        with self.assertRaises(DimensionMismatchError):
            self.model.h(bad_state)


class TestNoiseJacobian(unittest.TestCase):

    def test_identity_and_constant(self):
        model = LiePositionMeasurementModel()
        V1 = model.noise_jacobian().copy()
        assert_allclose(V1, np.eye(6))

        for x in [np.arange(6.0), -np.ones(6), np.zeros(6)]:
            model.linearize(LieState(x=x, v=np.zeros(6)))
            assert_allclose(model.noise_jacobian(), V1, rtol=0, atol=0)

    def test_read_only(self):
        model = LiePositionMeasurementModel()
        V = model.noise_jacobian()
        with self.assertRaises(ValueError):
            V[0, 0] = 5.0
        assert_allclose(model.noise_jacobian(), np.eye(6))

    def test_write_flag_cannot_be_restored(self):
        model = LiePositionMeasurementModel()
        V = model.noise_jacobian()
        with self.assertRaises(ValueError):
            V.flags.writeable = True
        assert_allclose(model.noise_jacobian(), np.eye(6), rtol=0, atol=0)


class TestJacobianObserver(unittest.TestCase):

    def test_observer_off_by_default(self):
        model = LiePositionMeasurementModel()
        self.assertIsNone(model.jacobian_observer)

    def test_observer_receives_copy(self):
        seen = []
        model = LiePositionMeasurementModel(jacobian_observer=seen.append)
        model.linearize(LieState(x=np.arange(6.0), v=np.zeros(6)))

        self.assertEqual(len(seen), 1)
        assert_allclose(seen[0], np.eye(6), atol=1e-12)
        self.assertIsNot(seen[0], model.H)

    def test_observer_not_called_on_failure(self):
        seen = []
        model = LiePositionMeasurementModel(jacobian_observer=seen.append)
        with self.assertRaises(DimensionMismatchError):
            model.linearize(LieState(x=np.zeros(3), v=np.zeros(3)))
        self.assertEqual(seen, [])


class TestFunctionMeasurementModel(unittest.TestCase):

    def test_nonlinear_function(self):
        def h(x):
            return np.array([x[0] * x[1], np.sin(x[2])])

        model = FunctionMeasurementModel(h, n_x=3, n_m=2,
                                         diff_config=NumericalDiffConfig(mode="central"))
        x = np.array([2.0, -1.0, 0.5])
        H = model.linearize(LieState(x=x, v=np.zeros(3)))

        expected = np.array([
            [-1.0, 2.0, 0.0],
            [0.0, 0.0, np.cos(0.5)],
        ])
        assert_allclose(H, expected, atol=1e-7)

    def test_wrong_output_rejected_at_construction(self):
        with self.assertRaises(DimensionMismatchError):
            FunctionMeasurementModel(lambda x: x[:2], n_x=3, n_m=3)

    def test_wrong_output_rejected_at_runtime(self):
        model = FunctionMeasurementModel(lambda x: x[:2], n_x=3, n_m=3, validate=False)
        state = LieState(x=np.ones(3), v=np.zeros(3))
        with self.assertRaises(DimensionMismatchError):
            model.h(state)
        with self.assertRaises(DimensionMismatchError):
            model.linearize(state)
        assert_allclose(model.H, np.zeros((3, 3)))

    def test_non_positive_dimensions(self):
        with self.assertRaises(DimensionMismatchError):
            FunctionMeasurementModel(lambda x: x, n_x=0, n_m=0)

    def test_function_cannot_modify_state(self):
        def h(x):
            x[0] += 1.0
            return x[:1]

        model = FunctionMeasurementModel(h, n_x=2, n_m=1)
        state = LieState(x=np.array([1.0, 2.0]), v=np.zeros(2))
        assert_allclose(model.h(state), [2.0])
        model.linearize(state)
        assert_allclose(state.x, [1.0, 2.0], rtol=0, atol=0)

    def test_scalar_output_for_single_measurement(self):
        model = FunctionMeasurementModel(lambda x: x[0] * x[1], n_x=2, n_m=1)
        z = model.h(LieState(x=np.array([2.0, 3.0]), v=np.zeros(2)))
        self.assertEqual(z.shape, (1,))
        assert_allclose(z, [6.0])

    def test_custom_velocity_dimension(self):
        seen_v = []

        def h(x):
            return x[:1]

        class Recording(FunctionMeasurementModel):
            def measure(self, state):
                seen_v.append(state.n_v)
                return super().measure(state)

        model = Recording(h, n_x=2, n_m=1, n_v=4)
        model.linearize(LieState(x=np.ones(2), v=np.ones(4)))
        self.assertTrue(all(n == 4 for n in seen_v))


class TestLandmarkRangeMeasurementModel(unittest.TestCase):

    def setUp(self):
        self.landmarks = np.array([
            [0.0, 0.0, 0.0],
            [10.0, 0.0, 0.0],
            [0.0, 10.0, 2.0],
        ])

    def test_ranges(self):
        model = LandmarkRangeMeasurementModel(self.landmarks, n_x=6)
        z = model.h(LieState(x=np.array([3.0, 4.0, 0.0, 9.0, 9.0, 9.0]), v=np.zeros(6)))
        assert_allclose(z[0], 5.0)
        assert_allclose(z[1], np.sqrt(49.0 + 16.0))

    def test_jacobian_matches_analytic(self):
        model = LandmarkRangeMeasurementModel(
            self.landmarks, n_x=6, position_indices=(3, 4, 5),
            diff_config=NumericalDiffConfig(mode="central"),
        )
        x = np.array([0.0, 0.0, 0.0, 3.0, 4.0, 1.0])
        H = model.linearize(LieState(x=x, v=np.zeros(6)))

        diff = x[3:] - self.landmarks
        expected = np.zeros((3, 6))
        expected[:, 3:] = diff / np.linalg.norm(diff, axis=1, keepdims=True)
        assert_allclose(H, expected, rtol=1e-6, atol=1e-7)

    def test_bad_landmarks(self):
        with self.assertRaises(ValueError):
            LandmarkRangeMeasurementModel(np.zeros(3), n_x=3)

    def test_bad_position_indices(self):
        with self.assertRaises(DimensionMismatchError):
            LandmarkRangeMeasurementModel(self.landmarks, n_x=6, position_indices=(0, 1))
        with self.assertRaises(DimensionMismatchError):
            LandmarkRangeMeasurementModel(self.landmarks, n_x=4, position_indices=(2, 3, 4))
        with self.assertRaises(DimensionMismatchError):
            LandmarkRangeMeasurementModel(np.array([[0.0, 0.0]]), n_x=3, position_indices=[0, -1])
        with self.assertRaises(DimensionMismatchError):
            LandmarkRangeMeasurementModel(np.zeros((2, 0)), n_x=3)


class TestMeasurementCovariance(unittest.TestCase):

    def test_default_identity(self):
        model = LiePositionMeasurementModel()
        assert_allclose(model.covariance(), np.eye(6))

    def test_set_covariance(self):
        model = LiePositionMeasurementModel()
        R = np.diag([0.1, 0.1, 0.2, 0.2, 0.3, 0.3])
        model.set_covariance(R)
        assert_allclose(model.covariance(), R)

    def test_square_root_representation(self):
        R = np.diag([4.0, 1.0, 1.0, 9.0, 1.0, 1.0])
        model = LiePositionMeasurementModel(covariance=SquareRootCovariance(R))
        S = model.covariance_square_root()
        assert_allclose(S, np.tril(S))
        assert_allclose(S @ S.T, R)
        assert_allclose(model.covariance(), R)

    def test_wrong_covariance_size(self):
        with self.assertRaises(DimensionMismatchError):
            LiePositionMeasurementModel(covariance=StandardCovariance(np.eye(3)))


class TestValidateMeasurementInputs(unittest.TestCase):

    def test_valid(self):
        validate_measurement_inputs(np.zeros(3), np.zeros(2), expected_x_dim=3, expected_z_dim=2)

    def test_type_errors(self):
        with self.assertRaises(TypeError):
            validate_measurement_inputs([0.0, 1.0])
        with self.assertRaises(TypeError):
            validate_measurement_inputs(np.zeros(2), z=[1.0])

    def test_dimension_errors(self):
        with self.assertRaises(DimensionMismatchError):
            validate_measurement_inputs(np.zeros((2, 2)))
        with self.assertRaises(DimensionMismatchError):
            validate_measurement_inputs(np.zeros(3), expected_x_dim=4)
        with self.assertRaises(DimensionMismatchError):
            validate_measurement_inputs(np.zeros(3), np.zeros(2), expected_z_dim=3)


if __name__ == "__main__":
    unittest.main()
