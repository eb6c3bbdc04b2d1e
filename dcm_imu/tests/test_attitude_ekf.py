"""Tests for AttitudeEKF."""

import logging
import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal, assert_allclose

from dcm_imu.core.config import FilterConfig
from dcm_imu.core.exceptions import NumericalDegeneracyError, DcmImuError
from dcm_imu.fusion.attitude_ekf import AttitudeEKF

DT = 0.01
G = 9.8


class TestAttitudeEKFBasic:
    """Basic functionality tests."""

    def test_initialization(self):
        """Default state is level with zero bias."""
        ekf = AttitudeEKF()

        assert_array_almost_equal(ekf.get_dcm_row(), [0.0, 0.0, 1.0])
        assert_array_almost_equal(ekf.get_bias(), np.zeros(3))
        assert ekf.H.shape == (3, 6)
        assert_array_almost_equal(ekf.H[:, 0:3], G * np.eye(3))

    def test_initialization_normalizes_dcm_row(self):
        """Non-unit initial DCM row is normalized."""
        ekf = AttitudeEKF(FilterConfig(state=[0.0, 0.0, 2.0, 0.01, 0.0, 0.0]))

        assert_array_almost_equal(ekf.get_dcm_row(), [0.0, 0.0, 1.0])
        assert_array_almost_equal(ekf.get_bias(), [0.01, 0.0, 0.0])

    def test_covariance_derived_from_variances(self):
        """Initial covariance is diagonal from the configured variances."""
        ekf = AttitudeEKF(FilterConfig(initial_dcm_variance=2.0, initial_bias_variance=0.5))
        assert_array_almost_equal(np.diag(ekf.get_covariance()), [2.0] * 3 + [0.5] * 3)
        assert_allclose(ekf.get_bias_uncertainty(), np.sqrt([0.5] * 3))

    def test_explicit_covariance(self):
        """Explicit covariance overrides the derived one."""
        P0 = np.diag([0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
        ekf = AttitudeEKF(FilterConfig(covariance=P0.tolist()))
        assert_array_almost_equal(ekf.get_covariance(), P0)


class TestPredictionStep:
    """Tests for EKF prediction step."""

    def test_prediction_rotates_dcm_row(self):
        """Roll rate tilts the bottom row towards +Y."""
        ekf = AttitudeEKF()
        ekf.predict(np.array([0.1, 0.0, 0.0]), DT)

        # C3 x u = [0, 0, 1] x [0.1, 0, 0] = [0, 0.1, 0]
        assert_allclose(ekf._x_predict[0:3], [0.0, 0.1 * DT, 1.0])
        # State itself is only replaced by the correction
        assert_array_almost_equal(ekf.get_dcm_row(), [0.0, 0.0, 1.0])

    def test_prediction_subtracts_bias(self):
        """Gyro reading equal to the bias does not rotate."""
        ekf = AttitudeEKF(FilterConfig(state=[0.0, 0.0, 1.0, 0.02, -0.01, 0.0]))
        ekf.predict(np.array([0.02, -0.01, 0.0]), DT)
        assert_allclose(ekf._x_predict[0:3], [0.0, 0.0, 1.0])

    def test_prediction_adds_process_noise(self):
        """Prediction grows the covariance by dt^2 * Q at rest."""
        ekf = AttitudeEKF(FilterConfig(covariance=np.zeros((6, 6)).tolist()))
        ekf.predict(np.zeros(3), DT)
        assert_allclose(np.diag(ekf._P_predict), DT ** 2 * np.diag(ekf.Q))


class TestMeasurementUpdate:
    """Tests for the correction and renormalization."""

    def test_requires_predict(self):
        """Correction without prediction is a usage error."""
        ekf = AttitudeEKF()
        with pytest.raises(RuntimeError):
            ekf.correct_and_normalize(np.array([0.0, 0.0, G]), np.eye(3))

    def test_unit_norm_after_update(self):
        """DCM row has unit length after a tilted measurement."""
        ekf = AttitudeEKF()
        ekf.predict(np.zeros(3), DT)
        z = G * np.array([0.3, -0.2, 0.9])
        ekf.correct_and_normalize(z, ekf.adaptive_measurement_noise(ekf.gravity_residual(z)))

        assert abs(np.linalg.norm(ekf.get_dcm_row()) - 1.0) < 1e-9

    def test_covariance_symmetric_psd(self):
        """P stays symmetric with non-negative eigenvalues over many updates."""
        rng = np.random.default_rng(1)
        ekf = AttitudeEKF()

        for _ in range(300):
            u = rng.normal(0, 0.3, 3)
            z = G * np.array([0.0, 0.0, 1.0]) + rng.normal(0, 0.5, 3)
            ekf.predict(u, DT)
            ekf.correct_and_normalize(z, ekf.adaptive_measurement_noise(ekf.gravity_residual(z)))

            P = ekf.get_covariance()
            assert_allclose(P, P.T, atol=1e-15)
            assert np.min(np.linalg.eigvalsh(P)) >= -1e-12
            assert abs(np.linalg.norm(ekf.get_dcm_row()) - 1.0) < 1e-9

    def test_diagnostics_returned(self):
        """Update returns gain, innovation and covariances."""
        ekf = AttitudeEKF()
        ekf.predict(np.zeros(3), DT)
        R = np.eye(3) * 0.25
        result = ekf.correct_and_normalize(np.array([0.0, 0.0, G]), R)

        assert result.K.shape == (6, 3)
        assert result.S.shape == (3, 3)
        assert_array_almost_equal(result.innovation, np.zeros(3))
        assert ekf.last_update is result

    def test_degenerate_row_raises(self, caplog):
        """Collapsed DCM row raises and leaves the state unchanged."""
        # Huge DCM variance makes the update follow z / g almost exactly
        ekf = AttitudeEKF(FilterConfig(initial_dcm_variance=1e12))
        before = ekf.x.copy()
        ekf.predict(np.zeros(3), DT)

        with caplog.at_level(logging.ERROR, logger="dcm_imu.fusion.attitude_ekf"):
            with pytest.raises(NumericalDegeneracyError) as excinfo:
                ekf.correct_and_normalize(np.zeros(3), np.eye(3) * 0.25)

        assert isinstance(excinfo.value, ArithmeticError)
        assert isinstance(excinfo.value, DcmImuError)
        assert "DCM row" in str(excinfo.value)
        assert "degenerated" in caplog.text
        assert_array_almost_equal(ekf.x, before)

        # Prediction of the failed cycle is not reused
        with pytest.raises(RuntimeError):
            ekf.correct_and_normalize(np.array([0.0, 0.0, G]), np.eye(3) * 0.25)


class TestAdaptiveNoise:
    """Tests for the acceleration-scaled measurement covariance."""

    def test_static_noise(self):
        """Zero acceleration gives the base variance."""
        ekf = AttitudeEKF(FilterConfig(measurement_variance=0.25))
        assert_allclose(ekf.adaptive_measurement_noise(np.zeros(3)), 0.25 * np.eye(3))

    def test_noise_scales_with_acceleration(self):
        """Variance grows linearly with the acceleration magnitude."""
        ekf = AttitudeEKF(FilterConfig(measurement_variance=0.25, measurement_variance_variable_gain=100.0))
        R = ekf.adaptive_measurement_noise(np.array([3.0, 4.0, 0.0]))
        assert_allclose(R, (5.0 * 100.0 + 0.25) * np.eye(3))

    def test_sharp_acceleration_reduces_gain(self):
        """Larger R from a sharp acceleration gives a smaller DCM gain."""
        z_quiet = np.array([0.0, 0.0, G])
        z_sharp = np.array([5.0, 0.0, G])

        gains = []
        for z in (z_quiet, z_sharp):
            ekf = AttitudeEKF()
            ekf.predict(np.zeros(3), DT)
            R = ekf.adaptive_measurement_noise(ekf.gravity_residual(z))
            gains.append((R[0, 0], np.linalg.norm(ekf.correct_and_normalize(z, R).K[0:3, :])))

        (r_quiet, k_quiet), (r_sharp, k_sharp) = gains
        assert r_sharp > r_quiet
        assert k_sharp < k_quiet


class TestBiasObservability:
    """Tests for gyro bias estimation."""

    def test_bias_converges_roll_axis(self):
        """Constant roll-rate offset at rest is learned as bias."""
        ekf = AttitudeEKF()
        true_bias = np.array([0.01, 0.0, 0.0])
        z = np.array([0.0, 0.0, G])

        for _ in range(3000):
            ekf.predict(true_bias, DT)
            ekf.correct_and_normalize(z, ekf.adaptive_measurement_noise(ekf.gravity_residual(z)))

        assert abs(ekf.get_bias()[0] - 0.01) < 1e-3
        assert_allclose(ekf.get_dcm_row(), [0.0, 0.0, 1.0], atol=1e-3)
