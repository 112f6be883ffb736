"""Logging, metrics and weight selection helpers."""

from .logger import create_session_log_file, setup_logger
from .metrics import PerformanceMetrics, ResidualMetrics
from .weights import WeightSelection, select_weights

__all__ = [
    'create_session_log_file', 'setup_logger',
    'PerformanceMetrics', 'ResidualMetrics',
    'WeightSelection', 'select_weights',
]
