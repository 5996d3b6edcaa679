"""
Unit tests for custom exception classes and validation helpers.
"""

import pandas as pd
import pytest

from promoter_tfbs.core.exceptions import (
    PromoterTFBSError,
    FileFormatError,
    PeakFileFormatError,
    AnnotationTableError,
    MotifFileError,
    ValidationError,
    MissingColumnError,
    EmptyDataError,
    InvalidParameterError,
    AnalysisError,
    PeakLocalizationError,
    MotifAnalysisError,
    GenomeBoundsError,
    PipelineError,
    ArtifactError,
    TaskError,
    validate_dataframe,
    validate_numeric_param,
)


# ============================================================================
# Exception hierarchy
# ============================================================================


class TestExceptionHierarchy:
    """Verify the exception inheritance chain."""

    def test_base_exception(self):
        with pytest.raises(PromoterTFBSError):
            raise PromoterTFBSError("base error")

    def test_file_format_is_base(self):
        with pytest.raises(PromoterTFBSError):
            raise FileFormatError("bad file")

    def test_peak_file_is_file_format(self):
        with pytest.raises(FileFormatError):
            raise PeakFileFormatError("bad peak file")

    def test_annotation_is_file_format(self):
        with pytest.raises(FileFormatError):
            raise AnnotationTableError("bad annotation")

    def test_motif_file_is_file_format(self):
        with pytest.raises(FileFormatError):
            raise MotifFileError("bad matrix")

    def test_validation_is_base(self):
        with pytest.raises(PromoterTFBSError):
            raise ValidationError("invalid")

    def test_localization_is_analysis(self):
        with pytest.raises(AnalysisError):
            raise PeakLocalizationError("failed")

    def test_motif_is_analysis(self):
        with pytest.raises(AnalysisError):
            raise MotifAnalysisError("failed")

    def test_artifact_is_pipeline(self):
        with pytest.raises(PipelineError):
            raise ArtifactError("missing")

    def test_task_is_pipeline(self):
        with pytest.raises(PipelineError):
            raise TaskError("unknown job type")


class TestMissingColumnError:
    """Tests for MissingColumnError with custom attributes."""

    def test_message_includes_column(self):
        err = MissingColumnError("TIEScore", "annotation")
        assert "TIEScore" in str(err)
        assert "annotation" in str(err)

    def test_available_columns_shown(self):
        err = MissingColumnError("signal", available=["chr", "start", "end"])
        assert "chr" in str(err)
        assert err.column == "signal"
        assert err.available == ["chr", "start", "end"]

    def test_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise MissingColumnError("score")


class TestEmptyDataError:
    """Tests for EmptyDataError."""

    def test_message(self):
        err = EmptyDataError("peak sample list")
        assert "peak sample list" in str(err)
        assert err.data_name == "peak sample list"


class TestInvalidParameterError:
    """Tests for InvalidParameterError attributes."""

    def test_with_range(self):
        err = InvalidParameterError("cumulative_fraction", 1.5, "<= 1.0")
        assert "cumulative_fraction" in str(err)
        assert "1.5" in str(err)
        assert "<= 1.0" in str(err)
        assert err.param == "cumulative_fraction"
        assert err.value == 1.5

    def test_without_range(self):
        err = InvalidParameterError("motif_format", "BAD")
        assert "BAD" in str(err)


class TestGenomeBoundsError:
    """Tests for GenomeBoundsError attributes."""

    def test_message(self):
        err = GenomeBoundsError("chr1", 4990, 5010, size=5000)
        assert "chr1:4990-5010" in str(err)
        assert "5000" in str(err)
        assert err.chrom == "chr1"
        assert err.size == 5000

    def test_without_size(self):
        err = GenomeBoundsError("chrUn", 1, 10)
        assert "length" not in str(err)


# ============================================================================
# Validation helpers
# ============================================================================


class TestValidateDataframe:
    """Tests for validate_dataframe helper."""

    def test_none_raises(self):
        with pytest.raises(EmptyDataError):
            validate_dataframe(None, "test_df")

    def test_non_dataframe_raises(self):
        with pytest.raises(ValidationError, match="Expected DataFrame"):
            validate_dataframe([1, 2, 3], "test_list")

    def test_empty_with_min_rows(self):
        df = pd.DataFrame(columns=["a", "b"])
        with pytest.raises(EmptyDataError):
            validate_dataframe(df, "empty_df", min_rows=1)

    def test_too_few_rows(self):
        df = pd.DataFrame({"a": [1], "b": [2]})
        with pytest.raises(ValidationError, match="at least 5"):
            validate_dataframe(df, "small_df", min_rows=5)

    def test_missing_column(self):
        df = pd.DataFrame({"chr": ["chr1"], "start": [100]})
        with pytest.raises(MissingColumnError):
            validate_dataframe(df, "peaks", required_columns=["chr", "start", "end"])

    def test_valid_passes(self):
        df = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [200]})
        validate_dataframe(df, "peaks", required_columns=["chr", "start", "end"], min_rows=1)


class TestValidateNumericParam:
    """Tests for validate_numeric_param helper."""

    def test_below_min(self):
        with pytest.raises(InvalidParameterError):
            validate_numeric_param(-1, "flank", min_val=0)

    def test_above_max(self):
        with pytest.raises(InvalidParameterError):
            validate_numeric_param(2.0, "min_relative_score", max_val=1.0)

    def test_boundary_values(self):
        # Exact boundary should be valid
        validate_numeric_param(0, "flank", min_val=0)
        validate_numeric_param(1.0, "min_relative_score", max_val=1.0)
