"""Model fitting clients built on the robust estimators."""

from .polynomial import PolynomialRobustEstimator, fit_exact_polynomial, refine_polynomial

__all__ = ['PolynomialRobustEstimator', 'fit_exact_polynomial', 'refine_polynomial']
