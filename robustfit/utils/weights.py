"""Selection of the samples with the largest weights."""

from dataclasses import dataclass

import numpy as np


@dataclass
class WeightSelection:
    selected: np.ndarray    # boolean mask of selected samples
    num_selected: int


def select_weights(weights, sort_weights: bool, max_points: int) -> WeightSelection:
    """
    Select up to ``max_points`` samples.

    With ``sort_weights`` the samples with the largest weights are selected,
    otherwise the first ``max_points`` samples are.
    """
    weights = np.asarray(weights, dtype=np.float64)
    length = len(weights)
    selected = np.zeros(length, dtype=bool)

    if sort_weights:
        order = np.argsort(weights, kind='stable')[::-1][:max(max_points, 0)]
        selected[order] = True
        num_selected = len(order)
    else:
        num_selected = min(length, max(max_points, 0))
        selected[:num_selected] = True

    return WeightSelection(selected=selected, num_selected=num_selected)
