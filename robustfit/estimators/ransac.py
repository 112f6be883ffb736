"""RANSAC: keep the candidate with the largest consensus set under a fixed threshold."""

import logging
from typing import Any

import numpy as np

from robustfit.estimators.base import (
    M,
    UNBOUNDED_ITERATIONS,
    RobustEstimator,
    RobustEstimatorMethod,
    compute_iterations,
)
from robustfit.estimators.inliers import RANSACInliersData
from robustfit.estimators.listeners import SampleListener, ThresholdListener
from robustfit.exceptions import RobustEstimatorError

logger = logging.getLogger(__name__)


class RANSACRobustEstimator(RobustEstimator[M]):
    """
    Random sample consensus.

    A sample is an inlier when its residual is at most the listener threshold.
    Each time a candidate gathers more inliers than the best so far, the
    number of required iterations is recomputed from the new inlier ratio.
    """

    method = RobustEstimatorMethod.RANSAC
    required_capabilities = (SampleListener, ThresholdListener)

    MIN_THRESHOLD = 0.0
    DEFAULT_COMPUTE_AND_KEEP_INLIERS = False
    DEFAULT_COMPUTE_AND_KEEP_RESIDUALS = False

    def __init__(self, listener: Any = None):
        super().__init__(listener)
        self._compute_and_keep_inliers = self.DEFAULT_COMPUTE_AND_KEEP_INLIERS
        self._compute_and_keep_residuals = self.DEFAULT_COMPUTE_AND_KEEP_RESIDUALS

    @property
    def compute_and_keep_inliers(self) -> bool:
        """Whether the inlier mask of the best candidate is retained."""
        return self._compute_and_keep_inliers

    @compute_and_keep_inliers.setter
    def compute_and_keep_inliers(self, value: bool):
        self._check_unlocked()
        self._compute_and_keep_inliers = bool(value)

    @property
    def compute_and_keep_residuals(self) -> bool:
        """Whether the residuals of the best candidate are retained."""
        return self._compute_and_keep_residuals

    @compute_and_keep_residuals.setter
    def compute_and_keep_residuals(self, value: bool):
        self._check_unlocked()
        self._compute_and_keep_residuals = bool(value)

    def _estimate(self, listener: Any) -> M:
        total_samples = listener.total_samples()
        subset_size = listener.subset_size()
        threshold = listener.threshold()
        if threshold < self.MIN_THRESHOLD:
            raise RobustEstimatorError(f"Threshold must be non-negative, got {threshold}")

        logger.debug("RANSAC start: %d samples, subset size %d, threshold %g",
                     total_samples, subset_size, threshold)

        self._n_iters = UNBOUNDED_ITERATIONS
        self._iterations = 0
        self._best_result = None
        self._best_inliers_data = None
        if self._compute_and_keep_inliers or self._compute_and_keep_residuals:
            self._best_inliers_data = RANSACInliersData(
                total_samples, self._compute_and_keep_inliers, self._compute_and_keep_residuals)

        selector = self._prepare_subset_selector(total_samples)
        subset_indices = np.empty(subset_size, dtype=np.int64)
        residuals = np.empty(total_samples, dtype=np.float64)
        candidates = []
        best_num_inliers = 0
        current_iter = 0

        while self._n_iters > current_iter and current_iter < self._max_iterations:
            if self._check_cancelled():
                break

            selector.compute_random_subsets(subset_size, subset_indices)
            candidates.clear()
            listener.estimate_candidates(subset_indices, candidates)

            for candidate in candidates:
                self._compute_residuals(listener, candidate, residuals)
                inliers = residuals <= threshold
                num_inliers = int(np.count_nonzero(inliers))
                if num_inliers <= best_num_inliers:
                    continue

                best_num_inliers = num_inliers
                self._best_result = candidate
                if self._best_inliers_data is not None:
                    self._best_inliers_data.update(inliers, residuals, best_num_inliers)

                new_iters = compute_iterations(
                    best_num_inliers / total_samples, subset_size, self._confidence)
                if new_iters < self._n_iters:
                    self._n_iters = new_iters
                logger.debug("RANSAC iteration %d: %d/%d inliers, budget %d",
                             current_iter, best_num_inliers, total_samples, self._n_iters)

            self._notify_progress(listener, current_iter, self._n_iters)
            current_iter += 1
            self._iterations = current_iter
            listener.on_estimate_next_iteration(self, current_iter)

        return self._finish(total_samples)
