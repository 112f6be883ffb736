"""LMedS: keep the candidate with the least median residual."""

import logging
import math
from typing import Any

import numpy as np

from robustfit.estimators.base import (
    M,
    UNBOUNDED_ITERATIONS,
    RobustEstimator,
    RobustEstimatorMethod,
    compute_iterations,
)
from robustfit.estimators.inliers import LMedSInliersData
from robustfit.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# robust standard deviation from the median absolute deviation
STD_CONSTANT = 1.4826

DEFAULT_STOP_THRESHOLD = 0.0
MIN_STOP_THRESHOLD = 0.0
DEFAULT_INLIER_FACTOR = 1.0
MIN_INLIER_FACTOR = 0.0


def robust_standard_deviation(median_residual: float, total_samples: int,
                              subset_size: int) -> float:
    """MAD based scale estimate of the residuals."""
    if total_samples <= subset_size:
        return math.inf
    return STD_CONSTANT * (1.0 + 5.0 / (total_samples - subset_size)) * math.sqrt(median_residual)


class LMedSRobustEstimator(RobustEstimator[M]):
    """
    Least median of squares.

    No threshold is required: the inlier threshold is derived from the best
    median residual found so far (``inlier_factor * median``). The run may stop
    early once that threshold drops to ``stop_threshold`` or below.
    """

    method = RobustEstimatorMethod.LMEDS

    def __init__(self, listener: Any = None):
        super().__init__(listener)
        self._stop_threshold = DEFAULT_STOP_THRESHOLD
        self._inlier_factor = DEFAULT_INLIER_FACTOR

    @property
    def stop_threshold(self) -> float:
        """Derived threshold below which the run stops early."""
        return self._stop_threshold

    @stop_threshold.setter
    def stop_threshold(self, value: float):
        self._check_unlocked()
        if not value >= MIN_STOP_THRESHOLD:
            raise ConfigurationError(f"stop_threshold must be >= {MIN_STOP_THRESHOLD}, got {value}")
        self._stop_threshold = float(value)

    @property
    def inlier_factor(self) -> float:
        """Factor applied to the median residual to obtain the inlier threshold."""
        return self._inlier_factor

    @inlier_factor.setter
    def inlier_factor(self, value: float):
        self._check_unlocked()
        if not value > MIN_INLIER_FACTOR:
            raise ConfigurationError(f"inlier_factor must be > {MIN_INLIER_FACTOR}, got {value}")
        self._inlier_factor = float(value)

    def _estimate(self, listener: Any) -> M:
        total_samples = listener.total_samples()
        subset_size = listener.subset_size()

        logger.debug("LMedS start: %d samples, subset size %d", total_samples, subset_size)

        threshold = np.finfo(np.float64).max
        self._n_iters = UNBOUNDED_ITERATIONS
        self._iterations = 0
        self._best_result = None
        self._best_inliers_data = None

        selector = self._prepare_subset_selector(total_samples)
        subset_indices = np.empty(subset_size, dtype=np.int64)
        residuals_temp = np.empty(total_samples, dtype=np.float64)
        candidates = []
        inliers_data = LMedSInliersData(total_samples)
        current_iter = 0
        continue_iteration = True

        while continue_iteration:
            if self._check_cancelled():
                break

            selector.compute_random_subsets(subset_size, subset_indices)
            candidates.clear()
            listener.estimate_candidates(subset_indices, candidates)

            improved = False
            for candidate in candidates:
                self._compute_inliers(listener, candidate, subset_size, residuals_temp,
                                      inliers_data)
                if not inliers_data.median_residual_improved:
                    continue

                improved = True
                self._best_result = candidate
                self._best_inliers_data = inliers_data

                new_iters = compute_iterations(
                    inliers_data.num_inliers / total_samples, subset_size, self._confidence)
                if new_iters < self._n_iters:
                    self._n_iters = new_iters
                threshold = inliers_data.estimated_threshold
                logger.debug("LMedS iteration %d: median %g, threshold %g, %d inliers, budget %d",
                             current_iter, inliers_data.best_median_residual, threshold,
                             inliers_data.num_inliers, self._n_iters)

                # the retained snapshot is left untouched from now on
                best_median_residual = inliers_data.best_median_residual
                inliers_data = LMedSInliersData(total_samples)
                inliers_data.best_median_residual = best_median_residual

            self._notify_progress(listener, current_iter, self._n_iters)
            current_iter += 1
            self._iterations = current_iter

            continue_iteration = (current_iter < self._max_iterations
                                  and threshold > self._stop_threshold)
            if not improved:
                continue_iteration = continue_iteration and current_iter < self._n_iters
            listener.on_estimate_next_iteration(self, current_iter)

        return self._finish(total_samples)

    def _compute_inliers(self, listener: Any, candidate: M, subset_size: int,
                         residuals_temp: np.ndarray, inliers_data: LMedSInliersData):
        """Score ``candidate`` into ``inliers_data`` if its median residual improves."""
        residuals = self._compute_residuals(listener, candidate, inliers_data.residuals)
        total_samples = len(residuals)

        # median is computed in place, so work on a copy
        np.copyto(residuals_temp, residuals)
        median_residual = float(np.median(residuals_temp, overwrite_input=True))
        if not median_residual < inliers_data.best_median_residual:
            return

        standard_deviation = robust_standard_deviation(median_residual, total_samples, subset_size)
        estimated_threshold = self._inlier_factor * median_residual
        inliers = inliers_data.inliers
        np.less_equal(residuals, estimated_threshold, out=inliers)
        num_inliers = int(np.count_nonzero(inliers))

        inliers_data.update(median_residual, standard_deviation, inliers, residuals,
                            num_inliers, estimated_threshold, True)
