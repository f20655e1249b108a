"""
Data module for the pelvic mass analysis.

This module provides spreadsheet loading and cleaning, the BiomarkerDataset
container, stratified train/test splitting and bootstrap resampling.
"""

from .loader import PelvicMassDataLoader, BiomarkerDataset, normalize_column_name
from .resampling import (
    StratificationError, BootstrapReplicate, StratifiedBootstrap, stratified_split
)

__all__ = [
    'PelvicMassDataLoader', 'BiomarkerDataset', 'normalize_column_name',
    'StratificationError', 'BootstrapReplicate', 'StratifiedBootstrap',
    'stratified_split',
]
