"""Shared fixtures: a 2D line fitting listener over noisy data with outliers."""

import numpy as np
import pytest

from robustfit.sampling import FastRandomSubsetSelector

TRUE_SLOPE = 2.0
TRUE_INTERCEPT = 1.0


def make_line_data(num_samples=100, outlier_ratio=0.2, noise=0.05, seed=42):
    """Points on y = 2x + 1 with gaussian noise and gross outliers."""
    rng = np.random.default_rng(seed)
    x = np.linspace(0, 10, num_samples)
    y = TRUE_SLOPE * x + TRUE_INTERCEPT + rng.normal(0, noise, num_samples)

    num_outliers = int(num_samples * outlier_ratio)
    outliers = rng.choice(num_samples, num_outliers, replace=False)
    y[outliers] += rng.uniform(20, 50, num_outliers) * rng.choice([-1, 1], num_outliers)

    is_outlier = np.zeros(num_samples, dtype=bool)
    is_outlier[outliers] = True
    return x, y, is_outlier


class LineListener:
    """Fits y = a*x + b from two samples; candidates are (a, b) tuples."""

    def __init__(self, x, y, threshold=0.5, quality_scores=None):
        self.x = np.asarray(x, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.float64)
        self._threshold = threshold
        self._quality_scores = quality_scores
        self.started = 0
        self.ended = 0
        self.iterations = []
        self.progress = []

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
        i, j = subset_indices[0], subset_indices[1]
        dx = self.x[j] - self.x[i]
        if dx == 0:
            return
        slope = (self.y[j] - self.y[i]) / dx
        candidates.append((slope, self.y[i] - slope * self.x[i]))

    def residual(self, candidate, index):
        slope, intercept = candidate
        return abs(slope * self.x[index] + intercept - self.y[index])

    def on_estimate_start(self, estimator):
        self.started += 1

    def on_estimate_end(self, estimator):
        self.ended += 1

    def on_estimate_next_iteration(self, estimator, iteration):
        self.iterations.append(iteration)

    def on_estimate_progress_change(self, estimator, progress):
        self.progress.append(progress)


class NoCandidatesListener(LineListener):
    """Never produces a candidate."""

    def estimate_candidates(self, subset_indices, candidates):
        pass


class SampleOnlyListener:
    """Implements the sample capability but no threshold or quality scores."""

    def is_ready(self):
        return True

    def total_samples(self):
        return 10

    def subset_size(self):
        return 2

    def estimate_candidates(self, subset_indices, candidates):
        candidates.append((0.0, 0.0))

    def residual(self, candidate, index):
        return 0.0

    def on_estimate_start(self, estimator):
        pass

    def on_estimate_end(self, estimator):
        pass

    def on_estimate_next_iteration(self, estimator, iteration):
        pass

    def on_estimate_progress_change(self, estimator, progress):
        pass


def inlier_quality_scores(is_outlier, seed=0):
    """Quality scores ranking inliers above outliers, with some jitter."""
    rng = np.random.default_rng(seed)
    return np.where(is_outlier, 0.0, 1.0) + rng.uniform(0, 0.5, len(is_outlier))


@pytest.fixture
def line_data():
    return make_line_data()


@pytest.fixture
def line_listener(line_data):
    x, y, is_outlier = line_data
    return LineListener(x, y, threshold=0.5, quality_scores=inlier_quality_scores(is_outlier))


@pytest.fixture
def exact_line_listener():
    x = np.linspace(0, 10, 50)
    return LineListener(x, TRUE_SLOPE * x + TRUE_INTERCEPT, threshold=1e-9,
                        quality_scores=np.linspace(1, 0, 50))


@pytest.fixture
def seeded_selector(line_data):
    return FastRandomSubsetSelector(len(line_data[0]), seed=1)


def assert_close_to_true_line(candidate, tolerance=0.2):
    slope, intercept = candidate
    assert abs(slope - TRUE_SLOPE) < tolerance
    assert abs(intercept - TRUE_INTERCEPT) < 5 * tolerance
