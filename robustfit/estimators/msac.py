"""MSAC: least median of residuals capped at a fixed threshold."""

import logging
from typing import Any, Optional

import numpy as np

from robustfit.estimators.base import (
    M,
    UNBOUNDED_ITERATIONS,
    RobustEstimator,
    RobustEstimatorMethod,
    compute_iterations,
)
from robustfit.estimators.inliers import MSACInliersData
from robustfit.estimators.listeners import SampleListener, ThresholdListener
from robustfit.exceptions import RobustEstimatorError

logger = logging.getLogger(__name__)


class MSACRobustEstimator(RobustEstimator[M]):
    """
    M-estimator sample consensus.

    Residuals above the threshold are clamped to it, and the candidate with
    the least median of clamped residuals is returned. Independently, the
    candidate with the most inliers (residual below threshold) drives the
    iteration budget. The two trackers may refer to different candidates.
    """

    method = RobustEstimatorMethod.MSAC
    required_capabilities = (SampleListener, ThresholdListener)

    MIN_THRESHOLD = 0.0

    def __init__(self, listener: Any = None):
        super().__init__(listener)
        self._best_number_inliers_data: Optional[MSACInliersData] = None

    @property
    def best_result_inliers_data(self) -> Optional[MSACInliersData]:
        """Snapshot of the candidate with the least median residual."""
        return self._best_inliers_data

    @property
    def best_number_inliers_data(self) -> Optional[MSACInliersData]:
        """Snapshot of the candidate with the largest number of inliers."""
        return self._best_number_inliers_data

    @property
    def inliers_data(self) -> Optional[MSACInliersData]:
        return self._best_number_inliers_data

    def _estimate(self, listener: Any) -> M:
        total_samples = listener.total_samples()
        subset_size = listener.subset_size()
        threshold = listener.threshold()
        if threshold < self.MIN_THRESHOLD:
            raise RobustEstimatorError(f"Threshold must be non-negative, got {threshold}")

        logger.debug("MSAC start: %d samples, subset size %d, threshold %g",
                     total_samples, subset_size, threshold)

        self._n_iters = UNBOUNDED_ITERATIONS
        self._iterations = 0
        self._best_result = None
        self._best_inliers_data = None
        self._best_number_inliers_data = None

        selector = self._prepare_subset_selector(total_samples)
        subset_indices = np.empty(subset_size, dtype=np.int64)
        residuals_temp = np.empty(total_samples, dtype=np.float64)
        candidates = []
        inliers_data = MSACInliersData(total_samples)
        best_num_inliers = 0
        best_median_residual = inliers_data.best_median_residual
        current_iter = 0

        while self._n_iters > current_iter and current_iter < self._max_iterations:
            if self._check_cancelled():
                break

            selector.compute_random_subsets(subset_size, subset_indices)
            candidates.clear()
            listener.estimate_candidates(subset_indices, candidates)

            for candidate in candidates:
                self._compute_inliers(listener, candidate, threshold, residuals_temp, inliers_data)

                median_improved = inliers_data.median_residual_improved
                if median_improved:
                    self._best_result = candidate
                    self._best_inliers_data = inliers_data
                    best_median_residual = inliers_data.best_median_residual

                count_improved = inliers_data.num_inliers > best_num_inliers
                if count_improved:
                    best_num_inliers = inliers_data.num_inliers
                    self._best_number_inliers_data = inliers_data
                    new_iters = compute_iterations(
                        best_num_inliers / total_samples, subset_size, self._confidence)
                    if new_iters < self._n_iters:
                        self._n_iters = new_iters

                if median_improved or count_improved:
                    logger.debug("MSAC iteration %d: median %g, %d/%d inliers, budget %d",
                                 current_iter, best_median_residual, best_num_inliers,
                                 total_samples, self._n_iters)
                    # both trackers keep their snapshot, scoring continues on a new one
                    inliers_data = MSACInliersData(total_samples)
                    inliers_data.best_median_residual = best_median_residual

            self._notify_progress(listener, current_iter, self._n_iters)
            current_iter += 1
            self._iterations = current_iter
            listener.on_estimate_next_iteration(self, current_iter)

        return self._finish(total_samples)

    def _compute_inliers(self, listener: Any, candidate: M, threshold: float,
                         residuals_temp: np.ndarray, inliers_data: MSACInliersData):
        """Score ``candidate`` into ``inliers_data`` with residuals capped at ``threshold``."""
        residuals = self._compute_residuals(listener, candidate, inliers_data.residuals)
        inliers = inliers_data.inliers
        np.less(residuals, threshold, out=inliers)
        np.minimum(residuals, threshold, out=residuals)
        num_inliers = int(np.count_nonzero(inliers))

        np.copyto(residuals_temp, residuals)
        median_residual = float(np.median(residuals_temp, overwrite_input=True))
        improved = median_residual < inliers_data.best_median_residual
        best_median_residual = median_residual if improved else inliers_data.best_median_residual

        inliers_data.update(best_median_residual, inliers, residuals, num_inliers, improved)
