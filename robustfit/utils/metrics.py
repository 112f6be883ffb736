"""Residual statistics and run timing."""

from time import time
from typing import Dict, Optional

import numpy as np


class PerformanceMetrics:
    """Track durations of named operations."""

    def __init__(self):
        self.start_times = {}
        self.durations = {}

    def start_timer(self, name: str):
        """Start timing an operation."""
        self.start_times[name] = time()

    def stop_timer(self, name: str) -> float:
        """Stop timing and return duration in milliseconds."""
        if name not in self.start_times:
            return 0.0
        duration = (time() - self.start_times.pop(name)) * 1000
        self.durations[name] = duration
        return duration

    def get_summary(self) -> Dict[str, float]:
        """Get summary of all timings."""
        return self.durations.copy()


class ResidualMetrics:
    """Summaries of the residuals of a fitted model."""

    @staticmethod
    def summarize(residuals: np.ndarray, inliers: Optional[np.ndarray] = None) -> Dict[str, float]:
        """
        Compute residual statistics, restricted to ``inliers`` when given.

        Args:
            residuals: Residual of every sample
            inliers: Optional boolean mask selecting the samples to summarize

        Returns:
            Dictionary with count, mean, median, max, std and rms of the residuals
        """
        values = np.asarray(residuals, dtype=np.float64)
        if inliers is not None:
            values = values[np.asarray(inliers, dtype=bool)]
        if values.size == 0:
            return {
                'count': 0,
                'mean_error': float('nan'),
                'median_error': float('nan'),
                'max_error': float('nan'),
                'std_error': float('nan'),
                'rms_error': float('nan'),
            }
        return {
            'count': int(values.size),
            'mean_error': float(np.mean(values)),
            'median_error': float(np.median(values)),
            'max_error': float(np.max(values)),
            'std_error': float(np.std(values)),
            'rms_error': float(np.sqrt(np.mean(values * values))),
        }
