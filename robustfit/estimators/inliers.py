"""
Inlier snapshots kept by the robust estimators.

A snapshot describes a single candidate: its residuals, its inlier mask and
inlier count, plus the statistics specific to each estimation method. Masks
are boolean numpy arrays of length N; residuals are float64 arrays.

Snapshots are replaced rather than copied when a better candidate is found.
Only ``PROMedSInliersData`` offers a deep ``copy()``.
"""

from typing import Optional

import numpy as np

_MAX_VALUE = np.finfo(np.float64).max


class InliersData:
    """Base snapshot: residuals and number of inliers."""

    def __init__(self):
        self.residuals: Optional[np.ndarray] = None
        self.num_inliers = 0

    @property
    def inliers(self) -> Optional[np.ndarray]:
        raise NotImplementedError


class RANSACInliersData(InliersData):
    """Snapshot of the best consensus set, optionally keeping mask and residuals."""

    def __init__(self, total_samples: int, keep_inliers: bool, keep_residuals: bool):
        super().__init__()
        self._inliers = np.zeros(total_samples, dtype=bool) if keep_inliers else None
        if keep_residuals:
            self.residuals = np.zeros(total_samples, dtype=np.float64)

    @property
    def inliers(self) -> Optional[np.ndarray]:
        return self._inliers

    def update(self, inliers: Optional[np.ndarray], residuals: Optional[np.ndarray],
               num_inliers: int):
        """Copy the provided mask and residuals into the retained buffers."""
        if self._inliers is not None and inliers is not None:
            np.copyto(self._inliers, inliers)
        if self.residuals is not None and residuals is not None:
            np.copyto(self.residuals, residuals)
        self.num_inliers = num_inliers


class PROSACInliersData(RANSACInliersData):
    """Snapshot of the best PROSAC consensus set."""


class LMedSInliersData(InliersData):
    """Snapshot for least median of squares: median, scale and derived threshold."""

    def __init__(self, total_samples: int):
        super().__init__()
        self.best_median_residual = _MAX_VALUE
        self.standard_deviation = _MAX_VALUE
        self.estimated_threshold = _MAX_VALUE
        self._inliers = np.zeros(total_samples, dtype=bool)
        self.residuals = np.zeros(total_samples, dtype=np.float64)
        self.median_residual_improved = False

    @property
    def inliers(self) -> np.ndarray:
        return self._inliers

    def update(self, best_median_residual: float, standard_deviation: float,
               inliers: np.ndarray, residuals: np.ndarray, num_inliers: int,
               estimated_threshold: float, median_residual_improved: bool):
        self.best_median_residual = best_median_residual
        self.standard_deviation = standard_deviation
        self._inliers = inliers
        self.residuals = residuals
        self.num_inliers = num_inliers
        self.estimated_threshold = estimated_threshold
        self.median_residual_improved = median_residual_improved


class MSACInliersData(InliersData):
    """Snapshot for MSAC: capped residuals, median and inliers below threshold."""

    def __init__(self, total_samples: int):
        super().__init__()
        self.best_median_residual = _MAX_VALUE
        self._inliers = np.zeros(total_samples, dtype=bool)
        self.residuals = np.zeros(total_samples, dtype=np.float64)
        self.median_residual_improved = False

    @property
    def inliers(self) -> np.ndarray:
        return self._inliers

    def update(self, best_median_residual: float, inliers: np.ndarray,
               residuals: np.ndarray, num_inliers: int, median_residual_improved: bool):
        self.best_median_residual = best_median_residual
        self._inliers = inliers
        self.residuals = residuals
        self.num_inliers = num_inliers
        self.median_residual_improved = median_residual_improved


class PROMedSInliersData(InliersData):
    """
    Snapshot for PROMedS.

    Holds two inlier classifications of the same residuals: one under the
    median-derived threshold (LMedS) and one under the fixed threshold
    (MSAC). ``inliers`` returns whichever one was adopted.
    """

    def __init__(self, total_samples: int):
        super().__init__()
        self.best_median_residual = _MAX_VALUE
        self.standard_deviation = _MAX_VALUE
        self.median_residual = _MAX_VALUE
        self.estimated_threshold = _MAX_VALUE
        self.inliers_lmeds = np.zeros(total_samples, dtype=bool)
        self.inliers_msac = np.zeros(total_samples, dtype=bool)
        self.lmeds_inlier_model_enabled = True
        self.residuals = np.zeros(total_samples, dtype=np.float64)
        self.median_residual_improved = False

    @property
    def inliers(self) -> np.ndarray:
        return self.inliers_lmeds if self.lmeds_inlier_model_enabled else self.inliers_msac

    def copy(self) -> 'PROMedSInliersData':
        """Deep copy, independent of later changes to this snapshot."""
        result = PROMedSInliersData(len(self.residuals))
        result.best_median_residual = self.best_median_residual
        result.standard_deviation = self.standard_deviation
        result.median_residual = self.median_residual
        result.estimated_threshold = self.estimated_threshold
        result.inliers_lmeds = self.inliers_lmeds.copy()
        result.inliers_msac = self.inliers_msac.copy()
        result.lmeds_inlier_model_enabled = self.lmeds_inlier_model_enabled
        result.residuals = self.residuals.copy()
        result.num_inliers = self.num_inliers
        result.median_residual_improved = self.median_residual_improved
        return result

    def update(self, best_median_residual: float, standard_deviation: float,
               lmeds_inlier_model_enabled: bool, residuals: np.ndarray, num_inliers: int,
               median_residual: float, estimated_threshold: float,
               median_residual_improved: bool):
        self.best_median_residual = best_median_residual
        self.standard_deviation = standard_deviation
        self.lmeds_inlier_model_enabled = lmeds_inlier_model_enabled
        self.residuals = residuals
        self.num_inliers = num_inliers
        self.median_residual = median_residual
        self.estimated_threshold = estimated_threshold
        self.median_residual_improved = median_residual_improved
