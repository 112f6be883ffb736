"""
robustfit - Robust model fitting

Generic RANSAC, LMedS, MSAC, PROSAC and PROMedS estimators driven by a
caller supplied listener.
"""

from .estimators import (
    RobustEstimator,
    RobustEstimatorMethod,
    RANSACRobustEstimator,
    LMedSRobustEstimator,
    MSACRobustEstimator,
    PROSACRobustEstimator,
    PROMedSRobustEstimator,
    create,
)
from .exceptions import (
    RobustFitError,
    ConfigurationError,
    LockedError,
    NotReadyError,
    RobustEstimatorError,
)

__all__ = [
    'RobustEstimator', 'RobustEstimatorMethod',
    'RANSACRobustEstimator', 'LMedSRobustEstimator', 'MSACRobustEstimator',
    'PROSACRobustEstimator', 'PROMedSRobustEstimator', 'create',
    'RobustFitError', 'ConfigurationError', 'LockedError', 'NotReadyError',
    'RobustEstimatorError',
]
__version__ = '1.0.0'
