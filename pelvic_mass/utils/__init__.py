"""
Utilities module for the pelvic mass analysis.

This module provides statistical tests, resample summaries and plotting
utilities shared by the analysis and modelling steps.
"""

from .statistics import StatisticalAnalyzer
from .visualization import BiomarkerVisualizer

__all__ = ['StatisticalAnalyzer', 'BiomarkerVisualizer']
