"""Basic usage example for robustfit: a line fitted with every robust method."""

import logging

import numpy as np

from robustfit import RobustEstimatorMethod, create
from robustfit.config import configure_estimator, load_config
from robustfit.estimators import SampleListener, ThresholdListener, QualityScoresListener
from robustfit.utils import ResidualMetrics, setup_logger


class LineListener(SampleListener, ThresholdListener, QualityScoresListener):
    """Fits y = a*x + b from two points."""

    def __init__(self, x, y, threshold, quality_scores):
        self.x = x
        self.y = y
        self._threshold = threshold
        self._quality_scores = quality_scores

    def is_ready(self):
        return len(self.x) >= 2

    def total_samples(self):
        return len(self.x)

    def subset_size(self):
        return 2

    def threshold(self):
        return self._threshold

    def quality_scores(self):
        return self._quality_scores

    def estimate_candidates(self, subset_indices, candidates):
        i, j = subset_indices
        if self.x[i] != self.x[j]:
            slope = (self.y[j] - self.y[i]) / (self.x[j] - self.x[i])
            candidates.append((slope, self.y[i] - slope * self.x[i]))

    def residual(self, candidate, index):
        slope, intercept = candidate
        return abs(slope * self.x[index] + intercept - self.y[index])


def main():
    """Fit a noisy line with 30% gross outliers."""
    setup_logger(log_level=logging.INFO)

    rng = np.random.default_rng(0)
    x = np.linspace(0, 10, 200)
    y = 3 * x - 2 + rng.normal(0, 0.1, 200)
    outliers = rng.choice(200, 60, replace=False)
    y[outliers] = rng.uniform(-30, 30, 60)
    quality = np.ones(200)
    quality[outliers] = 0.5

    listener = LineListener(x, y, threshold=0.3, quality_scores=quality)
    config = load_config()

    for method in RobustEstimatorMethod:
        estimator = configure_estimator(create(listener, method), config)
        slope, intercept = estimator.estimate()
        residuals = np.array([listener.residual((slope, intercept), i) for i in range(len(x))])
        summary = ResidualMetrics.summarize(residuals, residuals <= 0.3)
        print(f"{method.name:8s} y = {slope:.3f}x + {intercept:.3f} "
              f"({estimator.iterations} iterations, {summary['count']} inliers, "
              f"rms {summary['rms_error']:.3f})")


if __name__ == "__main__":
    main()
