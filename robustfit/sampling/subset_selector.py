"""Random subset selection of sample indices."""

from enum import Enum
from typing import Optional, Set

import numpy as np

from robustfit.exceptions import (
    InvalidSubsetRangeError,
    InvalidSubsetSizeError,
    NotEnoughSamplesError,
)


class SubsetSelectorType(Enum):
    """Available subset selector implementations."""

    FAST_RANDOM_SUBSET_SELECTOR = "fast_random"


class SubsetSelector:
    """Base class for selectors drawing distinct sample indices."""

    MIN_NUM_SAMPLES = 1
    DEFAULT_SUBSET_SELECTOR_TYPE = SubsetSelectorType.FAST_RANDOM_SUBSET_SELECTOR

    selector_type: SubsetSelectorType = None

    def __init__(self, num_samples: int):
        self.num_samples = num_samples

    @property
    def num_samples(self) -> int:
        return self._num_samples

    @num_samples.setter
    def num_samples(self, value: int):
        if value < self.MIN_NUM_SAMPLES:
            raise ValueError(f"num_samples must be >= {self.MIN_NUM_SAMPLES}, got {value}")
        self._num_samples = int(value)

    def compute_random_subsets(self, subset_size: int,
                               result: Optional[np.ndarray] = None) -> np.ndarray:
        """Draw ``subset_size`` distinct indices from ``[0, num_samples)``."""
        raise NotImplementedError

    def compute_random_subsets_in_range(self, min_pos: int, max_pos: int, subset_size: int,
                                        pick_last: bool,
                                        result: Optional[np.ndarray] = None) -> np.ndarray:
        """Draw ``subset_size`` distinct indices from ``[min_pos, max_pos)``."""
        raise NotImplementedError

    @staticmethod
    def create(num_samples: int, selector_type: SubsetSelectorType = None,
               seed: Optional[int] = None) -> 'SubsetSelector':
        """Create a selector of the requested type."""
        if selector_type is None:
            selector_type = SubsetSelector.DEFAULT_SUBSET_SELECTOR_TYPE
        if selector_type is SubsetSelectorType.FAST_RANDOM_SUBSET_SELECTOR:
            return FastRandomSubsetSelector(num_samples, seed=seed)
        raise ValueError(f"Unknown subset selector type: {selector_type}")


class FastRandomSubsetSelector(SubsetSelector):
    """
    Rejection-sampling subset selector.

    Indices are drawn uniformly and rejected when already picked during the
    current call. The working set is owned by the instance and reused between
    calls, so one instance must not be shared by concurrent estimations.
    """

    selector_type = SubsetSelectorType.FAST_RANDOM_SUBSET_SELECTOR

    def __init__(self, num_samples: int, seed: Optional[int] = None):
        super().__init__(num_samples)
        self.rng = np.random.default_rng(seed)
        self._selected_indices: Set[int] = set()

    def compute_random_subsets(self, subset_size: int,
                               result: Optional[np.ndarray] = None) -> np.ndarray:
        if result is None:
            result = np.empty(max(subset_size, 0), dtype=np.int64)
        if subset_size <= 0 or len(result) < subset_size:
            raise InvalidSubsetSizeError(
                f"Invalid subset size {subset_size} for buffer of length {len(result)}")
        if self._num_samples < subset_size:
            raise NotEnoughSamplesError(
                f"Cannot pick {subset_size} indices out of {self._num_samples} samples")

        self._selected_indices.clear()
        self._fill(0, self._num_samples, 0, subset_size, result)
        self._selected_indices.clear()
        return result

    def compute_random_subsets_in_range(self, min_pos: int, max_pos: int, subset_size: int,
                                        pick_last: bool,
                                        result: Optional[np.ndarray] = None) -> np.ndarray:
        if result is None:
            result = np.empty(max(subset_size, 0), dtype=np.int64)
        if subset_size <= 0 or len(result) < subset_size:
            raise InvalidSubsetSizeError(
                f"Invalid subset size {subset_size} for buffer of length {len(result)}")
        if min_pos >= max_pos or max_pos < 0 or min_pos < 0:
            raise InvalidSubsetRangeError(f"Invalid range [{min_pos}, {max_pos})")
        if max_pos - min_pos < subset_size:
            raise InvalidSubsetSizeError(
                f"Range [{min_pos}, {max_pos}) is smaller than subset size {subset_size}")
        if self._num_samples < subset_size or max_pos > self._num_samples:
            raise NotEnoughSamplesError(
                f"Range [{min_pos}, {max_pos}) exceeds {self._num_samples} samples")

        self._selected_indices.clear()
        counter = 0
        if pick_last:
            # the most recently admitted sample is always part of the subset
            last = max_pos - 1
            self._selected_indices.add(last)
            result[counter] = last
            counter += 1
        self._fill(min_pos, max_pos, counter, subset_size, result)
        self._selected_indices.clear()
        return result

    def _fill(self, low: int, high: int, counter: int, subset_size: int, result: np.ndarray):
        """Complete ``result`` up to ``subset_size`` with unseen indices in ``[low, high)``."""
        while counter < subset_size:
            index = int(self.rng.integers(low, high))
            if index in self._selected_indices:
                continue
            self._selected_indices.add(index)
            result[counter] = index
            counter += 1
