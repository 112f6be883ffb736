"""
Listener contracts implemented by callers of the robust estimators.

A listener is split into capabilities so that each estimator only demands
what it actually uses:

- ``RobustEstimatorListener``: readiness and lifecycle callbacks
- ``SampleListener``: sample counts, candidate generation and residuals
- ``ThresholdListener``: fixed inlier threshold
- ``QualityScoresListener``: per-sample quality used to rank sampling

Listeners may subclass these protocols to inherit no-op callbacks.
"""

from typing import Any, List, Protocol, Sequence, TypeVar, runtime_checkable

import numpy as np

M = TypeVar("M")


@runtime_checkable
class RobustEstimatorListener(Protocol):
    """Readiness and lifecycle notifications."""

    def is_ready(self) -> bool:
        """Return True when enough data is available to estimate."""
        ...

    def on_estimate_start(self, estimator: Any) -> None:
        pass

    def on_estimate_end(self, estimator: Any) -> None:
        pass

    def on_estimate_next_iteration(self, estimator: Any, iteration: int) -> None:
        pass

    def on_estimate_progress_change(self, estimator: Any, progress: float) -> None:
        pass


@runtime_checkable
class SampleListener(RobustEstimatorListener, Protocol[M]):
    """Source of samples, candidate models and residuals."""

    def total_samples(self) -> int:
        """Number of samples N."""
        ...

    def subset_size(self) -> int:
        """Number of samples needed to fit one candidate."""
        ...

    def estimate_candidates(self, subset_indices: np.ndarray, candidates: List[M]) -> None:
        """
        Fit candidate models from the samples at ``subset_indices``.

        Args:
            subset_indices: Indices of the samples picked in this iteration
            candidates: Empty list to append zero or more candidates to
        """
        ...

    def residual(self, candidate: M, index: int) -> float:
        """Non-negative fit error of sample ``index`` against ``candidate``."""
        ...


@runtime_checkable
class ThresholdListener(Protocol):
    """Provides the fixed inlier threshold."""

    def threshold(self) -> float:
        ...


@runtime_checkable
class QualityScoresListener(Protocol):
    """Provides one quality score per sample (higher is better)."""

    def quality_scores(self) -> Sequence[float]:
        ...


def has_capabilities(listener: Any, *capabilities: type) -> bool:
    """Check that ``listener`` implements every capability protocol."""
    return listener is not None and all(isinstance(listener, cap) for cap in capabilities)
