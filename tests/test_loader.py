"""Tests for data loading and cleaning."""

import numpy as np
import pandas as pd
import pytest

from pelvic_mass.data import BiomarkerDataset, PelvicMassDataLoader, normalize_column_name


class TestColumnNames:
    """Tests for header normalization."""

    def test_mapped_headers(self):
        """Known spreadsheet headers map to analysis names."""
        assert normalize_column_name("CA-125") == "ca125"
        assert normalize_column_name(" Diagnosis ") == "diagnosis"

    def test_unmapped_headers_are_snake_cased(self):
        """Unknown headers become snake_case."""
        assert normalize_column_name("Serum Albumin (g/dL)") == "serum_albumin_g_dl"


class TestPreprocessing:
    """Tests for PelvicMassDataLoader.preprocess_data."""

    def test_cleaned_frame(self, raw_frame):
        """Tokens become NaN, labels are recoded and ids dropped."""
        loader = PelvicMassDataLoader(verbose=False)
        df = loader.preprocess_data(raw_frame)

        assert "patient_id" not in df.columns
        assert "diagnosis" not in df.columns
        assert df["label"].tolist() == [0, 1, 0, 1, 0, 1]
        assert np.isnan(df.loc[2, "ca125"])
        assert df.loc[1, "ca125"] == pytest.approx(350.0)
        assert df["menopausal_status"].tolist() == [0, 1, 0, 1, 0, 1]

    def test_empty_predictors_dropped(self, raw_frame):
        """A column holding only missing tokens is removed."""
        loader = PelvicMassDataLoader(verbose=False)
        df = loader.preprocess_data(raw_frame)
        assert "unused_marker" not in df.columns
        assert loader.dropped_columns == ["unused_marker"]

    def test_predictors_are_numeric(self, raw_frame):
        """Every predictor is cast to a numeric dtype."""
        df = PelvicMassDataLoader(verbose=False).preprocess_data(raw_frame)
        for col in df.columns:
            assert pd.api.types.is_numeric_dtype(df[col])

    def test_missing_label_column(self, raw_frame):
        """A frame without the diagnosis column is rejected."""
        with pytest.raises(ValueError, match="Label column"):
            PelvicMassDataLoader(verbose=False).preprocess_data(raw_frame.drop(columns=["Diagnosis"]))

    def test_missing_label_value(self, raw_frame):
        """A missing diagnosis is rejected."""
        raw_frame.loc[3, "Diagnosis"] = "."
        with pytest.raises(ValueError, match="missing values"):
            PelvicMassDataLoader(verbose=False).preprocess_data(raw_frame)

    def test_label_outside_domain(self, raw_frame):
        """A diagnosis other than Benign/Cancer is rejected."""
        raw_frame.loc[0, "Diagnosis"] = "Borderline"
        with pytest.raises(ValueError, match="Borderline"):
            PelvicMassDataLoader(verbose=False).preprocess_data(raw_frame)

    def test_fractional_numeric_labels_rejected(self, raw_frame):
        """Numeric labels must be exactly 0 or 1, not values that round to them."""
        raw_frame["Diagnosis"] = [0, 1, 0.5, 1.7, 0, 1]
        with pytest.raises(ValueError, match="0.5"):
            PelvicMassDataLoader(verbose=False).preprocess_data(raw_frame)

    def test_numeric_labels_accepted(self, raw_frame):
        """Float-coded 0/1 labels are recoded like Benign/Cancer."""
        raw_frame["Diagnosis"] = [0.0, 1.0, 0.0, 1.0, 0.0, 1.0]
        df = PelvicMassDataLoader(verbose=False).preprocess_data(raw_frame)
        assert df["label"].tolist() == [0, 1, 0, 1, 0, 1]

    def test_to_dataset(self, raw_frame):
        """The dataset keeps predictors in spreadsheet order."""
        loader = PelvicMassDataLoader(verbose=False)
        loader.preprocess_data(raw_frame)
        dataset = loader.to_dataset()

        assert dataset.predictors == ["ca125", "he4", "menopausal_status"]
        assert dataset.class_counts() == {"Benign": 3, "Cancer": 3}

    def test_summary_statistics(self, raw_frame):
        """Summary reports class counts and missingness."""
        loader = PelvicMassDataLoader(verbose=False)
        loader.preprocess_data(raw_frame)
        summary = loader.get_summary_statistics()

        assert summary["total_samples"] == 6
        assert summary["n_predictors"] == 3
        assert summary["missing_fraction"]["he4"] == pytest.approx(1 / 6, abs=1e-4)


class TestLoadData:
    """Tests for reading files."""

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        loader = PelvicMassDataLoader(data_file=tmp_path / "absent.xlsx", verbose=False)
        with pytest.raises(FileNotFoundError):
            loader.load_data()

    def test_csv_with_header_offset(self, tmp_path, raw_frame):
        """CSV input skips the rows above the header line."""
        path = tmp_path / "biomarkers.csv"
        with open(path, "w") as f:
            f.write("Pelvic mass study\n")
            f.write("exported data\n")
            raw_frame.to_csv(f, index=False)

        loader = PelvicMassDataLoader(data_file=path, header_offset=2, verbose=False)
        df = loader.preprocess_data()
        assert len(df) == 6
        assert np.isnan(df.loc[2, "ca125"])


class TestBiomarkerDataset:
    """Tests for the dataset container."""

    def test_rejects_non_binary_label(self):
        """Labels must be 0/1."""
        with pytest.raises(ValueError, match="binary"):
            BiomarkerDataset(X=pd.DataFrame({"a": [1.0, 2.0]}), y=pd.Series([0, 2]))

    def test_rejects_length_mismatch(self):
        """Predictors and labels must have the same length."""
        with pytest.raises(ValueError, match="differ in length"):
            BiomarkerDataset(X=pd.DataFrame({"a": [1.0, 2.0]}), y=pd.Series([0]))

    def test_select_unknown_predictor(self, separable_dataset):
        """Selecting an unknown predictor fails."""
        with pytest.raises(ValueError, match="Unknown predictors"):
            separable_dataset.select(["ca125", "ldh"])

    def test_subset_is_positional(self, separable_dataset):
        """subset takes positions and keeps labels aligned."""
        sub = separable_dataset.subset([0, 59])
        assert sub.y.tolist() == [0, 1]
        assert sub.X["ca125"].tolist() == [1.0, 119.0]
