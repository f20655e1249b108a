"""
Configuration settings for the pelvic mass analysis project.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Any, List, Optional

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"
FIGURES_DIR = OUTPUT_DIR / "figures"
RESULTS_DIR = OUTPUT_DIR / "results"

# Data file paths
DATA_FILE = DATA_DIR / "pelvic_mass_biomarkers.xlsx"


def ensure_output_dirs(output_dir: Optional[Path] = None) -> Dict[str, Path]:
    """
    Create output directories if they don't exist.

    Args:
        output_dir: Root output directory. If None, uses OUTPUT_DIR.

    Returns:
        Dictionary with the output, figures and results directories
    """
    root = Path(output_dir) if output_dir is not None else OUTPUT_DIR
    dirs = {
        'output': root,
        'figures': root / "figures",
        'results': root / "results",
    }
    for path in dirs.values():
        path.mkdir(parents=True, exist_ok=True)
    return dirs


# Analysis parameters
class AnalysisConfig:
    """Configuration parameters for analysis."""

    # Spreadsheet layout
    SHEET_NAME = "Data"
    HEADER_OFFSET = 2  # rows above the header line
    NA_TOKEN = "."

    # Outcome coding
    LABEL_COLUMN = "diagnosis"
    NEGATIVE_CLASS = "Benign"
    POSITIVE_CLASS = "Cancer"

    # Significance threshold on BH-adjusted p-values (volcano plot)
    SIGNIFICANCE_THRESHOLD = 0.01

    # Partitioning and resampling
    TEST_SIZE = 0.25
    N_BOOTSTRAPS = 25

    # Normal quantile for 95% confidence intervals
    CI_Z = 1.96

    # Classification threshold for class predictions
    PROBABILITY_THRESHOLD = 0.5

    # Random seed for reproducibility
    RANDOM_SEED = 42


# Raw spreadsheet headers to analysis names. Headers not listed here are
# snake_cased by the loader.
COLUMN_MAPPING = {
    'Patient ID': 'patient_id',
    'Study ID': 'patient_id',
    'Diagnosis': 'diagnosis',
    'Pathology': 'diagnosis',
    'Age': 'age',
    'Menopausal Status': 'menopausal_status',
    'CA-125': 'ca125',
    'CA 125': 'ca125',
    'CA125': 'ca125',
    'HE4': 'he4',
    'CEA': 'cea',
    'CA 19-9': 'ca19_9',
    'CA19-9': 'ca19_9',
    'CA 15-3': 'ca15_3',
    'AFP': 'afp',
    'Prealbumin': 'prealbumin',
    'Transferrin': 'transferrin',
    'ApoA1': 'apoa1',
    'Beta-2 Microglobulin': 'b2m',
    'B2M': 'b2m',
    'FSH': 'fsh',
    'LDH': 'ldh',
    'Hemoglobin': 'hemoglobin',
    'Platelets': 'platelets',
}

# Columns that identify subjects and are never predictors
IDENTIFIER_COLUMNS = ['patient_id', 'sample_id', 'record_id']


@dataclass
class PipelineConfig:
    """
    Explicit configuration passed into every pipeline component.

    Replaces ambient state (global random seed, working directory) so that
    each step can be rerun with the same seed for paired comparisons.
    """
    data_file: Path = DATA_FILE
    sheet_name: str = AnalysisConfig.SHEET_NAME
    header_offset: int = AnalysisConfig.HEADER_OFFSET
    na_token: str = AnalysisConfig.NA_TOKEN
    label_column: str = AnalysisConfig.LABEL_COLUMN
    random_seed: int = AnalysisConfig.RANDOM_SEED
    test_size: float = AnalysisConfig.TEST_SIZE
    n_bootstraps: int = AnalysisConfig.N_BOOTSTRAPS
    significance_threshold: float = AnalysisConfig.SIGNIFICANCE_THRESHOLD
    families: List[str] = field(default_factory=lambda: [
        'random_forest', 'xgboost', 'elastic_net', 'decision_tree', 'mars',
        'naive_bayes', 'neural_net', 'svm', 'rule_based'
    ])
    bayes_families: List[str] = field(default_factory=lambda: ['xgboost', 'neural_net', 'svm'])
    bayes_iterations: int = 20
    n_workers: Optional[int] = None
    output_dir: Path = OUTPUT_DIR
    verbose: bool = True

    # Offsets keep every step on its own, reproducible random stream
    SEED_OFFSETS = {
        'split': 0,
        'bootstrap': 1,
        'ablation': 2,
        'tuning': 3,
        'stacking': 4,
        'importance': 5,
    }

    def seed_for(self, step: str) -> int:
        """Return the seed reserved for a pipeline step."""
        if step not in self.SEED_OFFSETS:
            raise ValueError(f"Unknown pipeline step: {step}")
        return self.random_seed + self.SEED_OFFSETS[step]

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the configuration."""
        config = asdict(self)
        config['data_file'] = str(self.data_file)
        config['output_dir'] = str(self.output_dir)
        return config
