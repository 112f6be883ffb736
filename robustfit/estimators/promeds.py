"""PROMedS: progressive sampling with least median of residuals."""

import logging
from typing import Any

import numpy as np

from robustfit.estimators.base import M, RobustEstimatorMethod
from robustfit.estimators.inliers import PROMedSInliersData
from robustfit.estimators.listeners import (
    QualityScoresListener,
    SampleListener,
    ThresholdListener,
)
from robustfit.estimators.lmeds import (
    DEFAULT_INLIER_FACTOR,
    MIN_INLIER_FACTOR,
    robust_standard_deviation,
)
from robustfit.estimators.progressive import (
    ProgressiveRobustEstimator,
    ProgressiveSampler,
    termination_length,
)
from robustfit.exceptions import ConfigurationError, RobustEstimatorError

logger = logging.getLogger(__name__)

DEFAULT_STOP_THRESHOLD_ENABLED = True
DEFAULT_USE_INLIER_THRESHOLDS = True


class PROMedSRobustEstimator(ProgressiveRobustEstimator[M]):
    """
    Progressive least median of squares.

    Draws hypotheses like PROSAC and keeps the candidate with the least median
    residual like LMedS. When ``use_inlier_thresholds`` is set, samples are
    also classified with the listener threshold and the stricter of the two
    classifications is kept. The run then stops early once the median derived
    threshold drops to the listener threshold, unless ``stop_threshold_enabled``
    is turned off.
    """

    method = RobustEstimatorMethod.PROMEDS

    MIN_THRESHOLD = 0.0

    def __init__(self, listener: Any = None):
        super().__init__(listener)
        self._stop_threshold_enabled = DEFAULT_STOP_THRESHOLD_ENABLED
        self._inlier_factor = DEFAULT_INLIER_FACTOR
        self._use_inlier_thresholds = DEFAULT_USE_INLIER_THRESHOLDS

    @property
    def required_capabilities(self) -> tuple:
        if self._use_inlier_thresholds:
            return SampleListener, ThresholdListener, QualityScoresListener
        return SampleListener, QualityScoresListener

    @property
    def stop_threshold_enabled(self) -> bool:
        """Stop once the median threshold reaches the listener threshold."""
        return self._stop_threshold_enabled

    @stop_threshold_enabled.setter
    def stop_threshold_enabled(self, value: bool):
        self._check_unlocked()
        self._stop_threshold_enabled = bool(value)

    @property
    def inlier_factor(self) -> float:
        return self._inlier_factor

    @inlier_factor.setter
    def inlier_factor(self, value: float):
        self._check_unlocked()
        if not value > MIN_INLIER_FACTOR:
            raise ConfigurationError(f"inlier_factor must be > {MIN_INLIER_FACTOR}, got {value}")
        self._inlier_factor = float(value)

    @property
    def use_inlier_thresholds(self) -> bool:
        """Whether the listener threshold is used alongside the median threshold."""
        return self._use_inlier_thresholds

    @use_inlier_thresholds.setter
    def use_inlier_thresholds(self, value: bool):
        self._check_unlocked()
        self._use_inlier_thresholds = bool(value)

    def _estimate(self, listener: Any) -> M:
        total_samples = listener.total_samples()
        subset_size = listener.subset_size()
        sorted_indices = self._ranked_samples(listener, total_samples)

        inlier_threshold = 0.0
        if self._use_inlier_thresholds:
            inlier_threshold = listener.threshold()
            if inlier_threshold < self.MIN_THRESHOLD:
                raise RobustEstimatorError(
                    f"Threshold must be non-negative, got {inlier_threshold}")

        self._iterations = 0
        self._best_result = None
        self._best_inliers_data = None

        # T_N
        self._n_iters = self._global_iterations(subset_size)
        logger.debug("PROMedS start: %d samples, subset size %d, T_N %d",
                     total_samples, subset_size, self._n_iters)

        sample_size_star = total_samples
        inliers_n_star = 0
        inliers_best = -1
        threshold = np.finfo(np.float64).max
        inliers_min = self._min_inliers(total_samples)
        k_n_star = self._n_iters

        selector = self._prepare_subset_selector(total_samples)
        sampler = ProgressiveSampler(total_samples, subset_size, self._n_iters)
        subset_indices = np.empty(subset_size, dtype=np.int64)
        residuals_temp = np.empty(total_samples, dtype=np.float64)
        inliers_data = PROMedSInliersData(total_samples)
        candidates = []
        current_iter = 0
        continue_iteration = True

        while continue_iteration:
            if self._check_cancelled():
                break

            self._notify_progress(listener, current_iter, k_n_star)
            current_iter += 1
            self._iterations = current_iter

            sampler.draw(current_iter, sample_size_star, selector, subset_indices)
            candidates.clear()
            listener.estimate_candidates(sorted_indices[subset_indices], candidates)

            improved = False
            for candidate in candidates:
                self._compute_inliers(listener, candidate, subset_size, inlier_threshold,
                                      residuals_temp, inliers_data)
                if not inliers_data.median_residual_improved:
                    continue

                improved = True
                self._best_result = candidate
                threshold = inliers_data.estimated_threshold
                # scoring keeps mutating inliers_data, the best one must not follow
                self._best_inliers_data = inliers_data.copy()

                inliers_current = inliers_data.num_inliers
                if inliers_current <= inliers_best:
                    continue
                inliers_best = inliers_current

                sample_size_best, inliers_sample_size_best = termination_length(
                    inliers_data.inliers, sorted_indices, inliers_current, subset_size, self._beta)
                if inliers_sample_size_best * sample_size_star > inliers_n_star * sample_size_best:
                    sample_size_star = sample_size_best
                    inliers_n_star = inliers_sample_size_best
                    k_n_star = self._maximality_iterations(inliers_n_star, sample_size_star,
                                                           subset_size)
                logger.debug("PROMedS iteration %d: median %g, threshold %g, %d inliers, "
                             "n* %d, k(n*) %d", current_iter, inliers_data.best_median_residual,
                             threshold, inliers_best, sample_size_star, k_n_star)

            continue_iteration = current_iter < self._max_iterations
            if self._use_inlier_thresholds and self._stop_threshold_enabled:
                continue_iteration = continue_iteration and threshold > inlier_threshold
            if not improved:
                continue_iteration = (continue_iteration
                                      and (inliers_best < inliers_min or current_iter < k_n_star)
                                      and current_iter < self._n_iters)
            listener.on_estimate_next_iteration(self, current_iter)

        return self._finish(total_samples)

    def _compute_inliers(self, listener: Any, candidate: M, subset_size: int,
                         inlier_threshold: float, residuals_temp: np.ndarray,
                         inliers_data: PROMedSInliersData):
        """Score ``candidate``; statistics are stored only when the median improves."""
        residuals = self._compute_residuals(listener, candidate, inliers_data.residuals)
        total_samples = len(residuals)

        np.copyto(residuals_temp, residuals)
        median_residual = float(np.median(residuals_temp, overwrite_input=True))
        estimated_threshold = self._inlier_factor * median_residual

        lmeds_inliers = inliers_data.inliers_lmeds
        np.less_equal(residuals, estimated_threshold, out=lmeds_inliers)
        num_inliers_lmeds = int(np.count_nonzero(lmeds_inliers))

        lmeds_inlier_model_enabled = True
        num_inliers = num_inliers_lmeds
        if self._use_inlier_thresholds:
            msac_inliers = inliers_data.inliers_msac
            np.less_equal(residuals, inlier_threshold, out=msac_inliers)
            num_inliers_msac = int(np.count_nonzero(msac_inliers))
            # keep the more restrictive classification
            lmeds_inlier_model_enabled = num_inliers_lmeds < num_inliers_msac
            num_inliers = num_inliers_lmeds if lmeds_inlier_model_enabled else num_inliers_msac

        if median_residual < inliers_data.best_median_residual:
            standard_deviation = robust_standard_deviation(median_residual, total_samples,
                                                           subset_size)
            inliers_data.update(median_residual, standard_deviation, lmeds_inlier_model_enabled,
                                residuals, num_inliers, median_residual, estimated_threshold, True)
        else:
            inliers_data.median_residual_improved = False
