"""PROSAC: progressive sample consensus guided by sample quality."""

import logging
from typing import Any

import numpy as np

from robustfit.estimators.base import M, RobustEstimatorMethod
from robustfit.estimators.inliers import PROSACInliersData
from robustfit.estimators.listeners import (
    QualityScoresListener,
    SampleListener,
    ThresholdListener,
)
from robustfit.estimators.progressive import (
    ProgressiveRobustEstimator,
    ProgressiveSampler,
    termination_length,
)
from robustfit.exceptions import RobustEstimatorError

logger = logging.getLogger(__name__)


class PROSACRobustEstimator(ProgressiveRobustEstimator[M]):
    """
    Progressive sample consensus.

    Behaves like RANSAC with a fixed threshold (inliers have residual strictly
    below it) but draws hypotheses from the best ranked samples first and
    stops once the non-randomness and maximality criteria hold.
    """

    method = RobustEstimatorMethod.PROSAC
    required_capabilities = (SampleListener, ThresholdListener, QualityScoresListener)

    MIN_THRESHOLD = 0.0
    DEFAULT_COMPUTE_AND_KEEP_INLIERS = False
    DEFAULT_COMPUTE_AND_KEEP_RESIDUALS = False

    def __init__(self, listener: Any = None):
        super().__init__(listener)
        self._compute_and_keep_inliers = self.DEFAULT_COMPUTE_AND_KEEP_INLIERS
        self._compute_and_keep_residuals = self.DEFAULT_COMPUTE_AND_KEEP_RESIDUALS

    @property
    def compute_and_keep_inliers(self) -> bool:
        return self._compute_and_keep_inliers

    @compute_and_keep_inliers.setter
    def compute_and_keep_inliers(self, value: bool):
        self._check_unlocked()
        self._compute_and_keep_inliers = bool(value)

    @property
    def compute_and_keep_residuals(self) -> bool:
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
        sorted_indices = self._ranked_samples(listener, total_samples)

        self._iterations = 0
        self._best_result = None
        self._best_inliers_data = None
        if self._compute_and_keep_inliers or self._compute_and_keep_residuals:
            self._best_inliers_data = PROSACInliersData(
                total_samples, self._compute_and_keep_inliers, self._compute_and_keep_residuals)

        # T_N
        self._n_iters = self._global_iterations(subset_size)
        logger.debug("PROSAC start: %d samples, subset size %d, threshold %g, T_N %d",
                     total_samples, subset_size, threshold, self._n_iters)

        sample_size_star = total_samples
        inliers_n_star = 0
        inliers_best = 0
        inliers_min = self._min_inliers(total_samples)
        k_n_star = self._n_iters

        selector = self._prepare_subset_selector(total_samples)
        sampler = ProgressiveSampler(total_samples, subset_size, self._n_iters)
        subset_indices = np.empty(subset_size, dtype=np.int64)
        residuals = np.empty(total_samples, dtype=np.float64)
        inliers = np.zeros(total_samples, dtype=bool)
        candidates = []
        current_iter = 0

        while ((inliers_best < inliers_min or current_iter < k_n_star)
               and self._n_iters > current_iter and current_iter < self._max_iterations):
            if self._check_cancelled():
                break

            self._notify_progress(listener, current_iter, k_n_star)
            current_iter += 1
            self._iterations = current_iter

            sampler.draw(current_iter, sample_size_star, selector, subset_indices)
            candidates.clear()
            listener.estimate_candidates(sorted_indices[subset_indices], candidates)

            for candidate in candidates:
                self._compute_residuals(listener, candidate, residuals)
                np.less(residuals, threshold, out=inliers)
                inliers_current = int(np.count_nonzero(inliers))
                if inliers_current <= inliers_best:
                    continue

                inliers_best = inliers_current
                self._best_result = candidate
                if self._best_inliers_data is not None:
                    self._best_inliers_data.update(inliers, residuals, inliers_best)

                sample_size_best, inliers_sample_size_best = termination_length(
                    inliers, sorted_indices, inliers_current, subset_size, self._beta)
                if inliers_sample_size_best * sample_size_star > inliers_n_star * sample_size_best:
                    sample_size_star = sample_size_best
                    inliers_n_star = inliers_sample_size_best
                    k_n_star = self._maximality_iterations(inliers_n_star, sample_size_star,
                                                           subset_size)
                logger.debug("PROSAC iteration %d: %d/%d inliers, n* %d, k(n*) %d",
                             current_iter, inliers_best, total_samples, sample_size_star, k_n_star)

            listener.on_estimate_next_iteration(self, current_iter)

        return self._finish(total_samples)
