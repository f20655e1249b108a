"""
Data loading and cleaning module for the pelvic mass biomarker analysis.
"""

import re
import pandas as pd
import numpy as np
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

from ..config.settings import (
    DATA_FILE, COLUMN_MAPPING, IDENTIFIER_COLUMNS, AnalysisConfig
)


@dataclass
class BiomarkerDataset:
    """
    Cleaned biomarker data: numeric predictors and a binary label.

    Label coding is 0 = Benign, 1 = Cancer. Predictor order is preserved
    from the source spreadsheet and used to break ranking ties.
    """
    X: pd.DataFrame
    y: pd.Series
    label_names: Dict[int, str] = field(default_factory=lambda: {
        0: AnalysisConfig.NEGATIVE_CLASS, 1: AnalysisConfig.POSITIVE_CLASS
    })

    def __post_init__(self):
        if len(self.X) != len(self.y):
            raise ValueError(
                f"Predictor rows ({len(self.X)}) and labels ({len(self.y)}) differ in length"
            )
        if self.y.isna().any():
            raise ValueError("Label contains missing values")
        unexpected = set(pd.unique(self.y)) - {0, 1}
        if unexpected:
            raise ValueError(f"Label must be binary 0/1, found: {sorted(unexpected)}")

    @property
    def predictors(self) -> List[str]:
        return list(self.X.columns)

    @property
    def n_samples(self) -> int:
        return len(self.y)

    def class_counts(self) -> Dict[str, int]:
        """Number of observations per class name."""
        counts = self.y.value_counts()
        return {name: int(counts.get(code, 0)) for code, name in self.label_names.items()}

    def subset(self, index: Union[np.ndarray, List[int]]) -> 'BiomarkerDataset':
        """Return the observations at the given positional indices."""
        return BiomarkerDataset(
            X=self.X.iloc[index],
            y=self.y.iloc[index],
            label_names=dict(self.label_names)
        )

    def select(self, predictors: List[str]) -> 'BiomarkerDataset':
        """Return a dataset restricted to the named predictors."""
        missing = [p for p in predictors if p not in self.X.columns]
        if missing:
            raise ValueError(f"Unknown predictors: {missing}")
        return BiomarkerDataset(X=self.X[predictors], y=self.y, label_names=dict(self.label_names))

    def to_frame(self, label_column: str = 'label') -> pd.DataFrame:
        """Predictors and label in one frame, label as class names."""
        frame = self.X.copy()
        frame[label_column] = self.y.map(self.label_names)
        return frame


def normalize_column_name(name: Any) -> str:
    """Map a raw spreadsheet header to a snake_case analysis name."""
    raw = str(name).strip()
    if raw in COLUMN_MAPPING:
        return COLUMN_MAPPING[raw]
    snake = re.sub(r'[^0-9a-zA-Z]+', '_', raw).strip('_').lower()
    return snake or raw


class PelvicMassDataLoader:
    """
    Data loader and cleaner for the pelvic mass biomarker spreadsheet.

    This class handles loading the Excel data, normalizing missing-value
    tokens, casting predictors to numeric and recoding the diagnosis to a
    binary label for the downstream analysis modules.
    """

    def __init__(self, data_file: Optional[Path] = None,
                 sheet_name: str = AnalysisConfig.SHEET_NAME,
                 header_offset: int = AnalysisConfig.HEADER_OFFSET,
                 na_token: str = AnalysisConfig.NA_TOKEN,
                 label_column: str = AnalysisConfig.LABEL_COLUMN,
                 verbose: bool = True):
        """
        Initialize the data loader.

        Args:
            data_file: Path to the data file. If None, uses default from config.
            sheet_name: Worksheet holding the measurements
            header_offset: Number of rows above the header line
            na_token: Non-numeric marker used for missing measurements
            label_column: Name of the diagnosis column (after renaming)
            verbose: Whether to print progress information
        """
        self.data_file = Path(data_file) if data_file is not None else DATA_FILE
        self.sheet_name = sheet_name
        self.header_offset = header_offset
        self.na_token = na_token
        self.label_column = label_column
        self.verbose = verbose
        self.raw_data = None
        self.processed_data = None
        self.dropped_columns: List[str] = []

    def load_data(self) -> pd.DataFrame:
        """
        Load raw data from the Excel (or CSV) file.

        Returns:
            DataFrame with raw data
        """
        if not self.data_file.exists():
            raise FileNotFoundError(f"Data file not found: {self.data_file}")

        if self.data_file.suffix.lower() == '.csv':
            self.raw_data = pd.read_csv(
                self.data_file, skiprows=self.header_offset,
                na_values=[self.na_token], keep_default_na=True
            )
        else:
            self.raw_data = pd.read_excel(
                self.data_file, sheet_name=self.sheet_name,
                skiprows=self.header_offset, na_values=[self.na_token]
            )

        if self.verbose:
            print(f"📂 Loaded data with shape: {self.raw_data.shape}")
        return self.raw_data

    def preprocess_data(self, frame: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Clean and reshape the raw data.

        Args:
            frame: Raw frame to clean. If None, the configured file is loaded.

        Returns:
            DataFrame with a binary `label` column and numeric predictors
        """
        if frame is not None:
            self.raw_data = frame
        if self.raw_data is None:
            self.load_data()

        df = self.raw_data.copy()

        # Rename columns to analysis names
        df.columns = [normalize_column_name(c) for c in df.columns]
        df = df.loc[:, ~df.columns.duplicated()]

        df = self._normalize_missing_tokens(df)
        df = self._recode_label(df)

        id_cols = [c for c in IDENTIFIER_COLUMNS if c in df.columns]
        if id_cols:
            df = df.drop(columns=id_cols)

        df = self._convert_data_types(df)
        df = self._drop_empty_predictors(df)

        self.processed_data = df
        if self.verbose:
            print(f"✅ Processed data shape: {df.shape}")
            counts = df['label'].value_counts().to_dict()
            print(f"   ⚖️ Class distribution: "
                  f"{AnalysisConfig.NEGATIVE_CLASS}={counts.get(0, 0)}, "
                  f"{AnalysisConfig.POSITIVE_CLASS}={counts.get(1, 0)}")

        return df

    def _normalize_missing_tokens(self, df: pd.DataFrame) -> pd.DataFrame:
        """Convert the missing-value token and blank strings to NaN."""
        object_cols = df.select_dtypes(include=['object', 'string']).columns
        for col in object_cols:
            stripped = df[col].apply(lambda v: v.strip() if isinstance(v, str) else v)
            df[col] = stripped.replace({self.na_token: np.nan, '': np.nan})
        return df

    def _recode_label(self, df: pd.DataFrame) -> pd.DataFrame:
        """Recode the diagnosis column to 0 (Benign) / 1 (Cancer)."""
        if self.label_column not in df.columns:
            raise ValueError(
                f"Label column '{self.label_column}' not found. "
                f"Available columns: {list(df.columns)}"
            )

        labels = df[self.label_column]
        if labels.isna().any():
            missing_rows = labels[labels.isna()].index.tolist()
            raise ValueError(f"Label column has missing values at rows: {missing_rows[:10]}")

        coding = {
            AnalysisConfig.NEGATIVE_CLASS.lower(): 0,
            AnalysisConfig.POSITIVE_CLASS.lower(): 1,
            '0': 0,
            '1': 1,
        }
        # Numeric labels must be exactly 0 or 1; 0.5 stays '0.5' and is rejected
        as_text = labels.apply(
            lambda v: str(int(v)) if isinstance(v, (int, float, np.number)) and float(v).is_integer()
            else str(v)
        )
        keys = as_text.str.strip().str.lower()
        invalid = sorted(set(labels[~keys.isin(coding.keys())].astype(str)))
        if invalid:
            raise ValueError(
                f"Label column '{self.label_column}' has values outside "
                f"{{{AnalysisConfig.NEGATIVE_CLASS}, {AnalysisConfig.POSITIVE_CLASS}}}: {invalid}"
            )

        df = df.drop(columns=[self.label_column])
        df['label'] = keys.map(coding).astype(int)
        return df

    def _convert_data_types(self, df: pd.DataFrame) -> pd.DataFrame:
        """Cast every predictor column to numeric; unparseable values become NaN."""
        for col in df.columns:
            if col == 'label':
                continue
            if not pd.api.types.is_numeric_dtype(df[col]):
                # Categorical yes/no style columns are coded 0/1
                values = set(df[col].dropna().astype(str).str.lower())
                if values and values <= {'yes', 'no', 'y', 'n', 'pre', 'post'}:
                    df[col] = df[col].astype(str).str.lower().map(
                        {'yes': 1, 'y': 1, 'post': 1, 'no': 0, 'n': 0, 'pre': 0}
                    )
                    continue
            df[col] = pd.to_numeric(df[col], errors='coerce').astype(float)
        return df

    def _drop_empty_predictors(self, df: pd.DataFrame) -> pd.DataFrame:
        """Remove predictors without a single observed value."""
        predictors = [c for c in df.columns if c != 'label']
        empty = [c for c in predictors if df[c].notna().sum() == 0]
        self.dropped_columns = empty
        if empty:
            df = df.drop(columns=empty)
            if self.verbose:
                print(f"   🗑️ Dropped empty predictors: {empty}")

        missing_stats = df[[c for c in df.columns if c != 'label']].isnull().sum()
        if self.verbose and missing_stats.sum() > 0:
            print("   Missing values summary:")
            print(missing_stats[missing_stats > 0].to_string())
        return df

    def to_dataset(self) -> BiomarkerDataset:
        """
        Build the BiomarkerDataset from the processed data.

        Returns:
            BiomarkerDataset with predictors in spreadsheet order
        """
        if self.processed_data is None:
            self.preprocess_data()

        df = self.processed_data.reset_index(drop=True)
        return BiomarkerDataset(X=df.drop(columns=['label']), y=df['label'].astype(int))

    def get_summary_statistics(self) -> Dict[str, Any]:
        """
        Get summary statistics of the processed data.

        Returns:
            Dictionary with summary statistics
        """
        if self.processed_data is None:
            self.preprocess_data()

        df = self.processed_data
        predictors = [c for c in df.columns if c != 'label']
        counts = df['label'].value_counts()

        return {
            'total_samples': len(df),
            'n_predictors': len(predictors),
            'class_distribution': {
                AnalysisConfig.NEGATIVE_CLASS: int(counts.get(0, 0)),
                AnalysisConfig.POSITIVE_CLASS: int(counts.get(1, 0)),
            },
            'missing_fraction': df[predictors].isnull().mean().round(4).to_dict(),
            'dropped_columns': list(self.dropped_columns),
        }
