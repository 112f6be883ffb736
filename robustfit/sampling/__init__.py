"""Subset selection strategies."""

from .subset_selector import FastRandomSubsetSelector, SubsetSelector, SubsetSelectorType

__all__ = ['FastRandomSubsetSelector', 'SubsetSelector', 'SubsetSelectorType']
