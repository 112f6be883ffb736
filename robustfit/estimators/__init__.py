"""
Robust estimators.

Provides:
- RANSAC, LMedS, MSAC, PROSAC and PROMedS estimators
- Listener capability protocols
- Inlier snapshots returned along with the estimated model
- A factory building an estimator from a RobustEstimatorMethod
"""

from typing import Any

from .base import (
    RobustEstimator, RobustEstimatorMethod, UNBOUNDED_ITERATIONS, compute_iterations,
)
from .inliers import (
    InliersData, RANSACInliersData, LMedSInliersData, MSACInliersData,
    PROSACInliersData, PROMedSInliersData,
)
from .listeners import (
    RobustEstimatorListener, SampleListener, ThresholdListener, QualityScoresListener,
    has_capabilities,
)
from .ransac import RANSACRobustEstimator
from .lmeds import LMedSRobustEstimator
from .msac import MSACRobustEstimator
from .prosac import PROSACRobustEstimator
from .promeds import PROMedSRobustEstimator

DEFAULT_ROBUST_METHOD = RobustEstimatorMethod.PROMEDS

_ESTIMATORS = {
    RobustEstimatorMethod.RANSAC: RANSACRobustEstimator,
    RobustEstimatorMethod.LMEDS: LMedSRobustEstimator,
    RobustEstimatorMethod.MSAC: MSACRobustEstimator,
    RobustEstimatorMethod.PROSAC: PROSACRobustEstimator,
    RobustEstimatorMethod.PROMEDS: PROMedSRobustEstimator,
}


def create(listener: Any = None,
           method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD) -> RobustEstimator:
    """Create a robust estimator for ``method``."""
    return _ESTIMATORS[RobustEstimatorMethod(method)](listener)


__all__ = [
    "RobustEstimator", "RobustEstimatorMethod", "UNBOUNDED_ITERATIONS", "compute_iterations",
    "InliersData", "RANSACInliersData", "LMedSInliersData", "MSACInliersData",
    "PROSACInliersData", "PROMedSInliersData",
    "RobustEstimatorListener", "SampleListener", "ThresholdListener", "QualityScoresListener",
    "has_capabilities",
    "RANSACRobustEstimator", "LMedSRobustEstimator", "MSACRobustEstimator",
    "PROSACRobustEstimator", "PROMedSRobustEstimator",
    "DEFAULT_ROBUST_METHOD", "create",
]
