"""
Configuration management for robustfit.

Defaults for every estimator option, optional YAML overrides, and a helper
that applies a configuration through the estimators' validating setters.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from robustfit.exceptions import ConfigurationError

DEFAULT_CONFIG = {
    "estimator": {
        "confidence": 0.99,
        "max_iterations": 5000,
        "progress_delta": 0.05,
    },
    "ransac": {
        "compute_and_keep_inliers": False,
        "compute_and_keep_residuals": False,
    },
    "lmeds": {
        "stop_threshold": 0.0,
        "inlier_factor": 1.0,
    },
    "msac": {},
    "prosac": {
        "max_outliers_proportion": 0.8,
        "eta0": 0.05,
        "beta": 0.01,
        "compute_and_keep_inliers": False,
        "compute_and_keep_residuals": False,
    },
    "promeds": {
        "max_outliers_proportion": 0.8,
        "eta0": 0.05,
        "beta": 0.01,
        "inlier_factor": 1.0,
        "stop_threshold_enabled": True,
        "use_inlier_thresholds": True,
    },
    "polynomial": {
        "degree": 1,
        "threshold": 1e-6,
        "stop_threshold": 1e-6,
        "refine_result": False,
    },
}


def _merge(base: Dict[str, Any], overrides: Dict[str, Any], path: str = "") -> Dict[str, Any]:
    for key, value in overrides.items():
        if key not in base:
            raise ConfigurationError(f"Unknown configuration key: {path}{key}")
        if isinstance(base[key], dict):
            if not isinstance(value, dict):
                raise ConfigurationError(f"Configuration section {path}{key} must be a mapping")
            _merge(base[key], value, f"{path}{key}.")
        else:
            base[key] = value
    return base


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration, merging a YAML file over DEFAULT_CONFIG.

    Args:
        path: YAML file path (optional)

    Returns:
        Complete configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is None:
        return config

    with open(path, 'r') as f:
        overrides = yaml.safe_load(f) or {}
    if not isinstance(overrides, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return _merge(config, overrides)


def configure_estimator(estimator: Any, config: Optional[Dict[str, Any]] = None,
                        section: Optional[str] = None) -> Any:
    """
    Apply the shared section and the section of ``estimator.method``.

    ``section`` overrides the method section name, e.g. ``"polynomial"`` for
    model estimators. Values go through the estimator property setters, so
    invalid values raise ConfigurationError and a running estimator raises
    LockedError.
    """
    config = config if config is not None else DEFAULT_CONFIG
    section = section if section is not None else estimator.method.value
    for name in ("estimator", section):
        for key, value in config.get(name, {}).items():
            if not hasattr(estimator, key):
                raise ConfigurationError(
                    f"{type(estimator).__name__} has no option named {key!r}")
            setattr(estimator, key, value)
    return estimator
