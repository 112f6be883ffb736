"""
Progressive sampling shared by PROSAC and PROMedS.

Samples are ranked once by descending quality. Hypotheses are first drawn
from the top ``n`` ranked samples, always including the ``n``-th one, and
``n`` grows following the expected number of samples ``T_n`` drawn from the
top ``n``. Past the last crossover point sampling is uniform over all samples.

Termination combines:
- non-randomness: the inliers among the top ``n*`` samples are unlikely to
  come from a wrong model, checked with a normal approximation of the
  binomial distribution of spurious inliers (probability ``beta``)
- maximality: enough hypotheses were drawn from the top ``n*`` samples so
  that missing a better one has probability below ``eta0``
"""

import math
from typing import Any, Sequence, Tuple

import numpy as np

from robustfit.estimators.base import M, RobustEstimator, compute_iterations
from robustfit.estimators.listeners import QualityScoresListener, SampleListener
from robustfit.exceptions import ConfigurationError, RobustEstimatorError
from robustfit.sampling.subset_selector import SubsetSelector

# chi-squared quantile for P = 0.10 with one degree of freedom
CHI_SQUARED = 2.706

DEFAULT_MAX_OUTLIERS_PROPORTION = 0.8
MIN_MAX_OUTLIERS_PROPORTION = 0.0
MAX_MAX_OUTLIERS_PROPORTION = 1.0

DEFAULT_ETA0 = 0.05
MIN_ETA0 = 0.0
MAX_ETA0 = 1.0

DEFAULT_BETA = 0.01
MIN_BETA = 0.0
MAX_BETA = 1.0


def sorted_quality_indices(quality_scores: Sequence[float]) -> np.ndarray:
    """Sample indices ordered by descending quality score."""
    return np.argsort(np.asarray(quality_scores, dtype=np.float64), kind='stable')[::-1].copy()


def imin(subset_size: int, sample_size: int, beta: float) -> int:
    """Minimum number of inliers among ``sample_size`` samples to reject randomness."""
    mu = sample_size * beta
    sigma = math.sqrt(sample_size * beta * (1.0 - beta))
    return int(math.ceil(subset_size + mu + sigma * math.sqrt(CHI_SQUARED)))


def termination_length(inliers: np.ndarray, sorted_indices: np.ndarray, inliers_current: int,
                       subset_size: int, beta: float) -> Tuple[int, int]:
    """
    Find the prefix length ``n*`` of ranked samples with the best inlier ratio.

    Scans prefix lengths from N down to ``subset_size + 1``. A shorter prefix
    replaces the best one only when its inlier count is significantly above
    the count expected with the current best ratio, and the scan stops at the
    first such prefix failing the non-randomness bound.

    Args:
        inliers: Inlier mask indexed by sample
        sorted_indices: Sample indices in descending quality order
        inliers_current: Total number of inliers in ``inliers``
        subset_size: Samples per hypothesis
        beta: Probability that a wrong model marks a sample as inlier

    Returns:
        Tuple of (prefix length, number of inliers within that prefix)
    """
    total_samples = len(sorted_indices)
    # inliers within the first n ranked samples, for n = 1..N
    ranked_counts = np.cumsum(inliers[sorted_indices])

    sample_size_best = total_samples
    inliers_sample_size_best = inliers_current
    epsilon_best = inliers_sample_size_best / sample_size_best

    for sample_size_test in range(total_samples, subset_size, -1):
        inliers_test = int(ranked_counts[sample_size_test - 1])
        # cheap ratio test first, then the normal approximation to the binomial
        if (inliers_test * sample_size_best > inliers_sample_size_best * sample_size_test
                and inliers_test > epsilon_best * sample_size_test + math.sqrt(
                    sample_size_test * epsilon_best * (1.0 - epsilon_best) * CHI_SQUARED)):
            if inliers_test < imin(subset_size, sample_size_test, beta):
                break
            sample_size_best = sample_size_test
            inliers_sample_size_best = inliers_test
            epsilon_best = inliers_sample_size_best / sample_size_best

    return sample_size_best, inliers_sample_size_best


class ProgressiveSampler:
    """
    Growth function of progressive sampling.

    Tracks the current sampling window ``sample_size`` (n), the expected
    number of samples ``tn`` drawn only from the top n, and its integer
    counterpart ``tn_prime`` used as crossover point.
    """

    def __init__(self, total_samples: int, subset_size: int, n_iters: int):
        self.total_samples = total_samples
        self.subset_size = subset_size
        self.sample_size = subset_size
        self.tn_prime = 1
        tn = float(n_iters)
        for i in range(subset_size):
            tn *= (self.sample_size - i) / (total_samples - i)
        self.tn = tn

    def draw(self, current_iter: int, sample_size_star: int, selector: SubsetSelector,
             subset_indices: np.ndarray) -> np.ndarray:
        """Draw ranked positions for iteration ``current_iter`` (1-based)."""
        if current_iter > self.tn_prime and self.sample_size < sample_size_star:
            tn_plus_1 = (self.tn * (self.sample_size + 1)) / (self.sample_size + 1 - self.subset_size)
            self.sample_size += 1
            self.tn_prime += int(math.ceil(tn_plus_1 - self.tn))
            self.tn = tn_plus_1

        if current_iter > self.tn_prime:
            # finishing stage: standard uniform sample
            return selector.compute_random_subsets(self.subset_size, subset_indices)
        return selector.compute_random_subsets_in_range(
            0, self.sample_size, self.subset_size, True, subset_indices)


class ProgressiveRobustEstimator(RobustEstimator[M]):
    """Configuration and helpers common to quality guided estimators."""

    required_capabilities = (SampleListener, QualityScoresListener)

    def __init__(self, listener: Any = None):
        super().__init__(listener)
        self._max_outliers_proportion = DEFAULT_MAX_OUTLIERS_PROPORTION
        self._eta0 = DEFAULT_ETA0
        self._beta = DEFAULT_BETA

    @property
    def max_outliers_proportion(self) -> float:
        """Worst case proportion of outliers, bounding the global iteration budget."""
        return self._max_outliers_proportion

    @max_outliers_proportion.setter
    def max_outliers_proportion(self, value: float):
        self._check_unlocked()
        if not MIN_MAX_OUTLIERS_PROPORTION <= value <= MAX_MAX_OUTLIERS_PROPORTION:
            raise ConfigurationError(
                f"max_outliers_proportion must be in [{MIN_MAX_OUTLIERS_PROPORTION}, "
                f"{MAX_MAX_OUTLIERS_PROPORTION}], got {value}")
        self._max_outliers_proportion = float(value)

    @property
    def eta0(self) -> float:
        """Probability of missing a better solution, used by the maximality test."""
        return self._eta0

    @eta0.setter
    def eta0(self, value: float):
        self._check_unlocked()
        if not MIN_ETA0 <= value <= MAX_ETA0:
            raise ConfigurationError(f"eta0 must be in [{MIN_ETA0}, {MAX_ETA0}], got {value}")
        self._eta0 = float(value)

    @property
    def beta(self) -> float:
        """Probability that a wrong model marks a sample as inlier."""
        return self._beta

    @beta.setter
    def beta(self, value: float):
        self._check_unlocked()
        if not MIN_BETA <= value <= MAX_BETA:
            raise ConfigurationError(f"beta must be in [{MIN_BETA}, {MAX_BETA}], got {value}")
        self._beta = float(value)

    def _ranked_samples(self, listener: Any, total_samples: int) -> np.ndarray:
        quality_scores = listener.quality_scores()
        if len(quality_scores) != total_samples:
            raise RobustEstimatorError(
                f"Expected {total_samples} quality scores, got {len(quality_scores)}")
        return sorted_quality_indices(quality_scores)

    def _global_iterations(self, subset_size: int) -> int:
        """Iterations needed under the worst case outlier proportion (T_N)."""
        return min(compute_iterations(1.0 - self._max_outliers_proportion, subset_size,
                                      self._confidence),
                   self._max_iterations)

    def _min_inliers(self, total_samples: int) -> int:
        return int((1.0 - self._max_outliers_proportion) * total_samples)

    def _maximality_iterations(self, inliers_n_star: int, sample_size_star: int,
                               subset_size: int) -> int:
        return compute_iterations(inliers_n_star / sample_size_star, subset_size,
                                  1.0 - self._eta0)
