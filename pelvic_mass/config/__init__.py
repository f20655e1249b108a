"""
Configuration module for the pelvic mass analysis project.
"""

from .settings import (
    PROJECT_ROOT, DATA_DIR, OUTPUT_DIR, FIGURES_DIR, RESULTS_DIR, DATA_FILE,
    COLUMN_MAPPING, AnalysisConfig, PipelineConfig, ensure_output_dirs
)

__all__ = [
    'PROJECT_ROOT', 'DATA_DIR', 'OUTPUT_DIR', 'FIGURES_DIR', 'RESULTS_DIR',
    'DATA_FILE', 'COLUMN_MAPPING', 'AnalysisConfig', 'PipelineConfig',
    'ensure_output_dirs',
]
