"""
Robust polynomial fitting.

Fits y = p(x) to direct evaluations (x_i, y_i) with any robust estimation
method. Each hypothesis is the exact polynomial through ``degree + 1``
evaluations; samples are scored with the algebraic distance |p(x_i) - y_i|.
"""

import logging
from typing import Any, List, Optional, Sequence

import numpy as np
from numpy.polynomial import Polynomial
from numpy.polynomial import polynomial as P
from scipy.optimize import least_squares

from robustfit import estimators
from robustfit.estimators import RobustEstimatorMethod
from robustfit.estimators.base import (
    DEFAULT_CONFIDENCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_PROGRESS_DELTA,
    MAX_CONFIDENCE,
    MAX_PROGRESS_DELTA,
    MIN_CONFIDENCE,
    MIN_ITERATIONS,
    MIN_PROGRESS_DELTA,
)
from robustfit.exceptions import ConfigurationError, LockedError, NotReadyError
from robustfit.utils.metrics import PerformanceMetrics

logger = logging.getLogger(__name__)

DEFAULT_ROBUST_METHOD = RobustEstimatorMethod.PROMEDS
DEFAULT_THRESHOLD = 1e-6
DEFAULT_STOP_THRESHOLD = 1e-6
MIN_DEGREE = 1

_QUALITY_METHODS = (RobustEstimatorMethod.PROSAC, RobustEstimatorMethod.PROMEDS)


class _PolynomialListener:
    """Adapts polynomial evaluations to the robust estimator listener contract."""

    def __init__(self, owner: 'PolynomialRobustEstimator'):
        self.owner = owner
        self._cached_candidate = None
        self._cached_residuals = None

    def is_ready(self) -> bool:
        return self.owner.is_ready()

    def total_samples(self) -> int:
        return len(self.owner.x)

    def subset_size(self) -> int:
        return self.owner.min_number_of_evaluations

    def threshold(self) -> float:
        if self.owner.method in (RobustEstimatorMethod.LMEDS, RobustEstimatorMethod.PROMEDS):
            return self.owner.stop_threshold
        return self.owner.threshold

    def quality_scores(self) -> Sequence[float]:
        return self.owner.quality_scores

    def estimate_candidates(self, subset_indices: np.ndarray, candidates: List[Polynomial]):
        polynomial = fit_exact_polynomial(self.owner.x[subset_indices],
                                          self.owner.y[subset_indices], self.owner.degree)
        if polynomial is not None:
            candidates.append(polynomial)

    def residual(self, candidate: Polynomial, index: int) -> float:
        # all residuals of a candidate are requested in a row
        if candidate is not self._cached_candidate:
            self._cached_candidate = candidate
            self._cached_residuals = np.abs(candidate(self.owner.x) - self.owner.y)
        return float(self._cached_residuals[index])

    def on_estimate_start(self, estimator: Any):
        if self.owner.listener is not None:
            self.owner.listener.on_estimate_start(self.owner)

    def on_estimate_end(self, estimator: Any):
        if self.owner.listener is not None:
            self.owner.listener.on_estimate_end(self.owner)

    def on_estimate_next_iteration(self, estimator: Any, iteration: int):
        if self.owner.listener is not None:
            self.owner.listener.on_estimate_next_iteration(self.owner, iteration)

    def on_estimate_progress_change(self, estimator: Any, progress: float):
        if self.owner.listener is not None:
            self.owner.listener.on_estimate_progress_change(self.owner, progress)


def fit_exact_polynomial(x: np.ndarray, y: np.ndarray, degree: int) -> Optional[Polynomial]:
    """Polynomial through ``degree + 1`` points, or None if they are degenerate."""
    try:
        coefficients, (_, rank, _, _) = P.polyfit(x, y, degree, full=True)
    except np.linalg.LinAlgError:
        return None
    if rank < degree + 1 or not np.all(np.isfinite(coefficients)):
        return None
    return Polynomial(coefficients)


def refine_polynomial(polynomial: Polynomial, x: np.ndarray, y: np.ndarray,
                      max_iters: int = 100) -> Polynomial:
    """Least squares refinement of ``polynomial`` on the given evaluations."""
    def residuals(coefficients):
        return P.polyval(x, coefficients) - y

    result = least_squares(residuals, polynomial.coef, method='lm', max_nfev=max_iters)
    return Polynomial(result.x)


class PolynomialRobustEstimator:
    """
    Robustly estimate a polynomial from (x, y) evaluations.

    Configuration mirrors the generic estimators; ``threshold`` is used by
    RANSAC, MSAC and PROSAC, ``stop_threshold`` by LMedS and PROMedS.
    PROSAC and PROMedS also need one quality score per evaluation.
    """

    def __init__(self, degree: int = MIN_DEGREE, x: Optional[Sequence[float]] = None,
                 y: Optional[Sequence[float]] = None, listener: Any = None,
                 quality_scores: Optional[Sequence[float]] = None,
                 method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD):
        self._locked = False
        self.method = RobustEstimatorMethod(method)
        self.degree = degree
        self._x = None
        self._y = None
        if x is not None or y is not None:
            self.set_evaluations(x, y)
        self._listener = listener
        self._quality_scores = quality_scores
        self._progress_delta = DEFAULT_PROGRESS_DELTA
        self._confidence = DEFAULT_CONFIDENCE
        self._max_iterations = DEFAULT_MAX_ITERATIONS
        self._threshold = DEFAULT_THRESHOLD
        self._stop_threshold = DEFAULT_STOP_THRESHOLD
        self._refine_result = False
        self.metrics = PerformanceMetrics()
        self._inner: Optional[estimators.RobustEstimator] = None

    @classmethod
    def create(cls, method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD,
               **kwargs) -> 'PolynomialRobustEstimator':
        """Create a polynomial estimator using ``method``."""
        return cls(method=method, **kwargs)

    def _check_unlocked(self):
        if self._locked:
            raise LockedError()

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def degree(self) -> int:
        return self._degree

    @degree.setter
    def degree(self, value: int):
        self._check_unlocked()
        if value < MIN_DEGREE:
            raise ConfigurationError(f"degree must be >= {MIN_DEGREE}, got {value}")
        self._degree = int(value)

    @property
    def min_number_of_evaluations(self) -> int:
        return self._degree + 1

    @property
    def x(self) -> Optional[np.ndarray]:
        return self._x

    @property
    def y(self) -> Optional[np.ndarray]:
        return self._y

    def set_evaluations(self, x: Sequence[float], y: Sequence[float]):
        self._check_unlocked()
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.ndim != 1 or x.shape != y.shape:
            raise ConfigurationError(f"x and y must be 1D with the same shape, got {x.shape} vs {y.shape}")
        self._x = x
        self._y = y

    @property
    def listener(self) -> Any:
        return self._listener

    @listener.setter
    def listener(self, listener: Any):
        self._check_unlocked()
        self._listener = listener

    @property
    def quality_scores(self) -> Optional[Sequence[float]]:
        return self._quality_scores

    @quality_scores.setter
    def quality_scores(self, quality_scores: Optional[Sequence[float]]):
        self._check_unlocked()
        self._quality_scores = quality_scores

    @property
    def refine_result(self) -> bool:
        """Whether the result is refined by least squares on its inliers."""
        return self._refine_result

    @refine_result.setter
    def refine_result(self, value: bool):
        self._check_unlocked()
        self._refine_result = bool(value)

    @property
    def progress_delta(self) -> float:
        return self._progress_delta

    @progress_delta.setter
    def progress_delta(self, value: float):
        self._check_unlocked()
        if not MIN_PROGRESS_DELTA <= value <= MAX_PROGRESS_DELTA:
            raise ConfigurationError(f"progress_delta must be in [0, 1], got {value}")
        self._progress_delta = float(value)

    @property
    def confidence(self) -> float:
        return self._confidence

    @confidence.setter
    def confidence(self, value: float):
        self._check_unlocked()
        if not MIN_CONFIDENCE <= value <= MAX_CONFIDENCE:
            raise ConfigurationError(f"confidence must be in [0, 1], got {value}")
        self._confidence = float(value)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int):
        self._check_unlocked()
        if value < MIN_ITERATIONS:
            raise ConfigurationError(f"max_iterations must be >= {MIN_ITERATIONS}, got {value}")
        self._max_iterations = int(value)

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float):
        self._check_unlocked()
        if not value >= 0.0:
            raise ConfigurationError(f"threshold must be >= 0, got {value}")
        self._threshold = float(value)

    @property
    def stop_threshold(self) -> float:
        return self._stop_threshold

    @stop_threshold.setter
    def stop_threshold(self, value: float):
        self._check_unlocked()
        if not value >= 0.0:
            raise ConfigurationError(f"stop_threshold must be >= 0, got {value}")
        self._stop_threshold = float(value)

    def is_ready(self) -> bool:
        if self.x is None or len(self.x) < self.min_number_of_evaluations:
            return False
        if self.method in _QUALITY_METHODS:
            return self.quality_scores is not None and len(self.quality_scores) == len(self.x)
        return True

    @property
    def inliers_data(self):
        """Inliers snapshot of the last estimation."""
        return self._inner.inliers_data if self._inner is not None else None

    @property
    def iterations(self) -> int:
        return self._inner.iterations if self._inner is not None else 0

    def estimate(self) -> Polynomial:
        """
        Estimate the polynomial.

        Returns:
            numpy Polynomial with coefficients in increasing degree order
        """
        self._check_unlocked()
        if not self.is_ready():
            raise NotReadyError("not enough evaluations or quality scores")

        inner = estimators.create(_PolynomialListener(self), self.method)
        inner.confidence = self._confidence
        inner.max_iterations = self._max_iterations
        inner.progress_delta = self._progress_delta
        if self.method is RobustEstimatorMethod.LMEDS:
            inner.stop_threshold = self._stop_threshold
        if self.refine_result and self.method in (RobustEstimatorMethod.RANSAC,
                                                  RobustEstimatorMethod.PROSAC):
            inner.compute_and_keep_inliers = True
        self._inner = inner

        self._locked = True
        try:
            self.metrics.start_timer('estimate')
            polynomial = inner.estimate()
            elapsed = self.metrics.stop_timer('estimate')
            logger.debug("%s polynomial of degree %d estimated in %.2f ms (%d iterations)",
                         self.method.name, self._degree, elapsed, inner.iterations)
        finally:
            self._locked = False

        if self.refine_result:
            polynomial = self._refine(polynomial)
        return polynomial

    def _refine(self, polynomial: Polynomial) -> Polynomial:
        # the inliers of the returned polynomial, not the MSAC count tracker
        inliers_data = self._inner.best_inliers_data
        if inliers_data is None or inliers_data.inliers is None:
            return polynomial
        inliers = inliers_data.inliers
        if np.count_nonzero(inliers) < self.min_number_of_evaluations:
            logger.debug("Skipping refinement: not enough inliers")
            return polynomial
        return refine_polynomial(polynomial, self.x[inliers], self.y[inliers])
