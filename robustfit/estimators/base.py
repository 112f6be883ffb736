"""
Base robust estimator.

Shared machinery for every robust estimation method:
- configuration common to all methods (confidence, iteration cap, progress granularity)
- the advisory lock that rejects re-entrant runs and changes while running
- the estimate() lifecycle wrapping every failure into RobustEstimatorError
- the adaptive iteration count formula

An estimator instance owns its subset selector and scratch buffers and is
meant to be used by one caller at a time.
"""

import logging
import math
import sys
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

import numpy as np

from robustfit.estimators.inliers import InliersData
from robustfit.estimators.listeners import SampleListener, has_capabilities
from robustfit.exceptions import (
    ConfigurationError,
    LockedError,
    NotReadyError,
    RobustEstimatorError,
)
from robustfit.sampling.subset_selector import SubsetSelector

logger = logging.getLogger(__name__)

M = TypeVar("M")

UNBOUNDED_ITERATIONS = sys.maxsize

DEFAULT_PROGRESS_DELTA = 0.05
MIN_PROGRESS_DELTA = 0.0
MAX_PROGRESS_DELTA = 1.0

DEFAULT_CONFIDENCE = 0.99
MIN_CONFIDENCE = 0.0
MAX_CONFIDENCE = 1.0

DEFAULT_MAX_ITERATIONS = 5000
MIN_ITERATIONS = 1


class RobustEstimatorMethod(Enum):
    """Robust estimation methods."""

    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"


def compute_iterations(prob_inlier: float, subset_size: int, confidence: float) -> int:
    """
    Number of iterations needed to draw an all-inlier subset with ``confidence``.

        k = ceil(|log(1 - confidence) / log(1 - prob_inlier^subset_size)|)

    Saturates to UNBOUNDED_ITERATIONS when ``prob_inlier^subset_size`` or its
    log term is zero or NaN. A finite result is never below 1.
    """
    prob_subset_all_inliers = prob_inlier ** subset_size
    if prob_subset_all_inliers == 0.0 or math.isnan(prob_subset_all_inliers):
        return UNBOUNDED_ITERATIONS

    with np.errstate(divide='ignore', invalid='ignore'):
        log_prob_some_outliers = float(np.log(1.0 - prob_subset_all_inliers))
        if log_prob_some_outliers == 0.0 or math.isnan(log_prob_some_outliers):
            return UNBOUNDED_ITERATIONS
        iterations = abs(float(np.log(1.0 - confidence)) / log_prob_some_outliers)

    if not math.isfinite(iterations):
        return UNBOUNDED_ITERATIONS
    return min(UNBOUNDED_ITERATIONS, max(1, int(math.ceil(iterations))))


class RobustEstimator(Generic[M]):
    """Common state and lifecycle of robust estimators."""

    method: RobustEstimatorMethod = None

    # capability protocols the listener must implement
    required_capabilities = (SampleListener,)

    def __init__(self, listener: Optional[Any] = None):
        self._listener = listener
        self._locked = False
        self._cancel_requested = False
        self._progress_delta = DEFAULT_PROGRESS_DELTA
        self._previous_progress = 0.0
        self._confidence = DEFAULT_CONFIDENCE
        self._max_iterations = DEFAULT_MAX_ITERATIONS
        self._subset_selector: Optional[SubsetSelector] = None
        self._n_iters = self._max_iterations
        self._iterations = 0
        self._best_result: Optional[M] = None
        self._best_inliers_data: Optional[InliersData] = None

    def _check_unlocked(self):
        if self._locked:
            raise LockedError()

    @property
    def listener(self) -> Optional[Any]:
        return self._listener

    @listener.setter
    def listener(self, listener: Optional[Any]):
        self._check_unlocked()
        self._listener = listener

    @property
    def is_listener_available(self) -> bool:
        return self._listener is not None

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def progress_delta(self) -> float:
        """Minimum progress change between two progress notifications."""
        return self._progress_delta

    @progress_delta.setter
    def progress_delta(self, value: float):
        self._check_unlocked()
        if not MIN_PROGRESS_DELTA <= value <= MAX_PROGRESS_DELTA:
            raise ConfigurationError(
                f"progress_delta must be in [{MIN_PROGRESS_DELTA}, {MAX_PROGRESS_DELTA}], got {value}")
        self._progress_delta = float(value)

    @property
    def confidence(self) -> float:
        """Probability of drawing at least one all-inlier subset."""
        return self._confidence

    @confidence.setter
    def confidence(self, value: float):
        self._check_unlocked()
        if not MIN_CONFIDENCE <= value <= MAX_CONFIDENCE:
            raise ConfigurationError(
                f"confidence must be in [{MIN_CONFIDENCE}, {MAX_CONFIDENCE}], got {value}")
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
    def subset_selector(self) -> Optional[SubsetSelector]:
        return self._subset_selector

    @subset_selector.setter
    def subset_selector(self, selector: Optional[SubsetSelector]):
        self._check_unlocked()
        self._subset_selector = selector

    @property
    def n_iters(self) -> int:
        """Iteration budget estimated during the last run."""
        return self._n_iters

    @property
    def iterations(self) -> int:
        """Number of iterations performed by the last run."""
        return self._iterations

    @property
    def best_result(self) -> Optional[M]:
        return self._best_result

    @property
    def best_inliers_data(self) -> Optional[InliersData]:
        return self._best_inliers_data

    @property
    def inliers_data(self) -> Optional[InliersData]:
        """Inliers snapshot describing the returned result."""
        return self._best_inliers_data

    def is_ready(self) -> bool:
        """True when the listener has every required capability and reports ready."""
        if not has_capabilities(self._listener, *self.required_capabilities):
            return False
        return bool(self._listener.is_ready())

    def cancel(self):
        """Stop the current run at the next iteration boundary."""
        self._cancel_requested = True

    def estimate(self) -> M:
        """
        Run the robust estimation.

        Returns:
            Best candidate model found

        Raises:
            LockedError: If the estimator is already running
            NotReadyError: If no usable listener is attached
            RobustEstimatorError: If no candidate could be found or the run failed
        """
        if self._locked:
            raise LockedError()
        if not self.is_ready():
            raise NotReadyError()

        listener = self._listener
        self._locked = True
        self._cancel_requested = False
        self._previous_progress = 0.0
        try:
            listener.on_estimate_start(self)
            result = self._estimate(listener)
            listener.on_estimate_end(self)
            return result
        except RobustEstimatorError:
            logger.warning("%s estimation failed after %d iterations",
                           self.method.name, self._iterations)
            raise
        except Exception as e:
            logger.warning("%s estimation aborted: %s", self.method.name, e)
            raise RobustEstimatorError(f"{self.method.name} estimation failed: {e}") from e
        finally:
            self._locked = False

    def _estimate(self, listener: Any) -> M:
        raise NotImplementedError

    def _prepare_subset_selector(self, total_samples: int) -> SubsetSelector:
        if self._subset_selector is None:
            self._subset_selector = SubsetSelector.create(total_samples)
        else:
            self._subset_selector.num_samples = total_samples
        return self._subset_selector

    def _notify_progress(self, listener: Any, current_iter: int, total_iters: int):
        """Notify progress when it moved by more than ``progress_delta``."""
        if total_iters > 0:
            progress = min(current_iter / total_iters, 1.0)
        else:
            progress = 1.0
        if progress - self._previous_progress > self._progress_delta:
            self._previous_progress = progress
            listener.on_estimate_progress_change(self, progress)

    def _check_cancelled(self) -> bool:
        if self._cancel_requested:
            logger.warning("%s estimation cancelled after %d iterations",
                           self.method.name, self._iterations)
            return True
        return False

    @staticmethod
    def _compute_residuals(listener: Any, candidate: M, out: np.ndarray) -> np.ndarray:
        """Fill ``out`` with the absolute residual of every sample."""
        out[:] = np.fromiter(
            (abs(listener.residual(candidate, i)) for i in range(len(out))),
            dtype=np.float64, count=len(out))
        return out

    def _finish(self, total_samples: int) -> M:
        if self._best_result is None:
            raise RobustEstimatorError(
                f"{self.method.name} found no solution after {self._iterations} iterations")
        logger.debug("%s finished: %d iterations, budget %d, %d samples",
                     self.method.name, self._iterations, self._n_iters, total_samples)
        return self._best_result
