"""Tests for robust polynomial fitting."""

import numpy as np
import pytest
from numpy.polynomial import Polynomial

from robustfit.estimators import RobustEstimatorMethod
from robustfit.exceptions import ConfigurationError, LockedError, NotReadyError
from robustfit.models import PolynomialRobustEstimator, fit_exact_polynomial, refine_polynomial

# y = 1 - 2x + 0.5x^2
TRUE_COEFFICIENTS = np.array([1.0, -2.0, 0.5])


def make_quadratic_data(num_samples=60, outlier_ratio=0.2, noise=0.0, seed=3):
    rng = np.random.default_rng(seed)
    x = np.linspace(-5, 5, num_samples)
    y = Polynomial(TRUE_COEFFICIENTS)(x) + rng.normal(0, noise, num_samples)
    num_outliers = int(num_samples * outlier_ratio)
    outliers = rng.choice(num_samples, num_outliers, replace=False)
    y[outliers] += rng.uniform(10, 30, num_outliers)
    is_outlier = np.zeros(num_samples, dtype=bool)
    is_outlier[outliers] = True
    return x, y, is_outlier


class EventRecorder:
    def __init__(self):
        self.events = []

    def on_estimate_start(self, estimator):
        self.events.append(('start', estimator))

    def on_estimate_end(self, estimator):
        self.events.append(('end', estimator))

    def on_estimate_next_iteration(self, estimator, iteration):
        self.events.append(('iteration', iteration))

    def on_estimate_progress_change(self, estimator, progress):
        self.events.append(('progress', progress))


class TestExactFit:
    """Test minimal polynomial fits."""

    def test_fit_through_points(self):
        """Test the polynomial interpolates degree + 1 points."""
        x = np.array([0.0, 1.0, 2.0])
        y = Polynomial(TRUE_COEFFICIENTS)(x)
        polynomial = fit_exact_polynomial(x, y, 2)
        assert np.allclose(polynomial.coef, TRUE_COEFFICIENTS)

    def test_degenerate_points(self):
        """Test repeated abscissae yield no candidate."""
        polynomial = fit_exact_polynomial(np.array([1.0, 1.0]), np.array([0.0, 2.0]), 1)
        assert polynomial is None

    def test_refine(self):
        """Test least squares refinement on noisy evaluations."""
        rng = np.random.default_rng(0)
        x = np.linspace(-5, 5, 40)
        y = Polynomial(TRUE_COEFFICIENTS)(x) + rng.normal(0, 0.01, 40)
        refined = refine_polynomial(Polynomial([0.8, -1.9, 0.45]), x, y)
        assert np.allclose(refined.coef, TRUE_COEFFICIENTS, atol=0.02)


class TestPolynomialRobustEstimator:
    """Test polynomial estimation with every method."""

    def test_defaults(self):
        """Test default configuration."""
        estimator = PolynomialRobustEstimator()
        assert estimator.method is RobustEstimatorMethod.PROMEDS
        assert estimator.degree == 1
        assert estimator.min_number_of_evaluations == 2
        assert estimator.threshold == 1e-6
        assert estimator.stop_threshold == 1e-6
        assert not estimator.refine_result
        assert not estimator.is_ready()

    def test_create(self):
        """Test factory selects the method."""
        estimator = PolynomialRobustEstimator.create(RobustEstimatorMethod.MSAC, degree=2)
        assert estimator.method is RobustEstimatorMethod.MSAC
        assert estimator.degree == 2

    def test_invalid_configuration(self):
        """Test validation of degree, evaluations and thresholds."""
        estimator = PolynomialRobustEstimator()
        with pytest.raises(ConfigurationError):
            estimator.degree = 0
        with pytest.raises(ConfigurationError):
            estimator.set_evaluations([1.0, 2.0], [1.0])
        with pytest.raises(ConfigurationError):
            estimator.threshold = -1.0
        with pytest.raises(ConfigurationError):
            estimator.confidence = 1.5
        assert estimator.confidence == 0.99

    def test_quality_scores_required(self):
        """Test progressive methods need one quality score per evaluation."""
        x, y, _ = make_quadratic_data()
        estimator = PolynomialRobustEstimator(2, x, y, method=RobustEstimatorMethod.PROSAC)
        assert not estimator.is_ready()
        with pytest.raises(NotReadyError):
            estimator.estimate()
        estimator.quality_scores = np.ones(len(x))
        assert estimator.is_ready()

    @pytest.mark.parametrize("method", list(RobustEstimatorMethod))
    def test_estimate(self, method):
        """Test exact quadratic with outliers is recovered by every method."""
        x, y, is_outlier = make_quadratic_data()
        quality_scores = np.where(is_outlier, 0.1, 1.0)
        estimator = PolynomialRobustEstimator.create(method, degree=2, x=x, y=y,
                                                     quality_scores=quality_scores)
        estimator.confidence = 0.999

        polynomial = estimator.estimate()

        assert isinstance(polynomial, Polynomial)
        assert np.allclose(polynomial.coef, TRUE_COEFFICIENTS, atol=1e-6)
        assert estimator.iterations >= 1
        assert 'estimate' in estimator.metrics.get_summary()

    def test_refine_result(self):
        """Test refinement on the inliers of noisy data."""
        x, y, is_outlier = make_quadratic_data(noise=0.01)
        estimator = PolynomialRobustEstimator(2, x, y, method=RobustEstimatorMethod.RANSAC)
        estimator.threshold = 0.05
        estimator.confidence = 0.999
        estimator.refine_result = True

        polynomial = estimator.estimate()

        inliers = estimator.inliers_data.inliers
        assert not np.any(inliers & is_outlier)
        assert np.allclose(polynomial.coef, TRUE_COEFFICIENTS, atol=0.05)

    def test_listener_receives_outer_estimator(self):
        """Test callbacks are forwarded with the polynomial estimator."""
        x, y, _ = make_quadratic_data()
        recorder = EventRecorder()
        estimator = PolynomialRobustEstimator(2, x, y, listener=recorder,
                                              method=RobustEstimatorMethod.LMEDS)
        estimator.estimate()

        assert recorder.events[0] == ('start', estimator)
        assert recorder.events[-1] == ('end', estimator)
        assert any(event == 'iteration' for event, _ in recorder.events)

    def test_locked_while_running(self):
        """Test configuration changes are rejected during estimation."""
        x, y, _ = make_quadratic_data()
        errors = []

        class Mutating(EventRecorder):
            def on_estimate_start(self, estimator):
                try:
                    estimator.degree = 3
                except LockedError as e:
                    errors.append(e)

        estimator = PolynomialRobustEstimator(2, x, y, listener=Mutating(),
                                              method=RobustEstimatorMethod.MSAC)
        estimator.estimate()
        assert len(errors) == 1
        assert estimator.degree == 2
        assert not estimator.is_locked

    def test_every_setter_locked_while_running(self):
        """Test each configuration entry point is rejected during estimation."""
        x, y, _ = make_quadratic_data()
        attempts = {
            'threshold': lambda e: setattr(e, 'threshold', 1.0),
            'stop_threshold': lambda e: setattr(e, 'stop_threshold', 1.0),
            'confidence': lambda e: setattr(e, 'confidence', 0.5),
            'max_iterations': lambda e: setattr(e, 'max_iterations', 10),
            'progress_delta': lambda e: setattr(e, 'progress_delta', 0.5),
            'refine_result': lambda e: setattr(e, 'refine_result', True),
            'quality_scores': lambda e: setattr(e, 'quality_scores', None),
            'listener': lambda e: setattr(e, 'listener', None),
            'evaluations': lambda e: e.set_evaluations([0.0, 1.0], [0.0, 1.0]),
        }
        rejected = []

        class Mutating(EventRecorder):
            def on_estimate_start(self, estimator):
                for name, attempt in attempts.items():
                    try:
                        attempt(estimator)
                    except LockedError:
                        rejected.append(name)

        estimator = PolynomialRobustEstimator(2, x, y, listener=Mutating(),
                                              method=RobustEstimatorMethod.RANSAC)
        estimator.threshold = 1e-6
        estimator.estimate()

        assert rejected == list(attempts)
        assert estimator.threshold == 1e-6
        assert estimator.max_iterations == 5000
        assert not estimator.refine_result
        assert len(estimator.x) == len(x)
        assert estimator.listener is not None
