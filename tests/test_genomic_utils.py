"""
Unit tests for genomic_utils shared module.

Tests cover:
- Interval overlap detection (NCLS)
- Peak file parsing and column standardization
- Chromosome utilities and bounds checks
- Identifier collapse
"""

import io

import numpy as np
import pandas as pd
import pytest

from promoter_tfbs.core.exceptions import PeakFileFormatError, PromoterTFBSError
from promoter_tfbs.core.genomic_utils import (
    find_overlaps,
    count_overlaps,
    detect_column,
    standardize_peak_columns,
    load_peak_file,
    load_chrom_sizes,
    chrom_sizes_from_fasta,
    sort_chromosomes,
    filter_standard_chroms,
    within_chromosome_bounds,
    collapse_duplicates,
    CHROM_COLS,
)

from conftest import FakeGenome


# ============================================================================
# Core overlap detection
# ============================================================================


class TestFindOverlaps:
    """Tests for the main find_overlaps function."""

    def test_basic_overlap(self):
        """Two intervals on the same chromosome that overlap."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [300]})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [200], "end": [400]})
        result = find_overlaps(query, subject)
        assert len(result) == 1
        assert result.iloc[0]["overlap_bp"] == 100  # min(300,400) - max(100,200)

    def test_half_open_touching(self):
        """Half-open intervals sharing only an endpoint do not overlap."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [200]})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [200], "end": [300]})
        assert len(find_overlaps(query, subject)) == 0

    def test_different_chromosomes(self):
        """Intervals on different chromosomes never overlap."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [300]})
        subject = pd.DataFrame({"chr": ["chr2"], "start": [100], "end": [300]})
        assert len(find_overlaps(query, subject)) == 0

    def test_returns_index_labels(self):
        """query_idx/subject_idx are the input frames' index labels."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [300]}, index=[7])
        subject = pd.DataFrame(
            {"chr": ["chr1", "chr1"], "start": [0, 250], "end": [50, 260]}, index=[10, 20]
        )
        result = find_overlaps(query, subject)
        assert result["query_idx"].tolist() == [7]
        assert result["subject_idx"].tolist() == [20]

    def test_min_overlap_bp_filter(self):
        """Filter by minimum overlap base pairs."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [300]})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [290], "end": [400]})
        assert len(find_overlaps(query, subject, min_overlap_bp=1)) == 1
        assert len(find_overlaps(query, subject, min_overlap_bp=50)) == 0

    def test_report_count(self):
        """Count mode reports every query, including those without hits."""
        query = pd.DataFrame({"chr": ["chr1", "chr1", "chr2"], "start": [100, 500, 100], "end": [300, 700, 200]})
        subject = pd.DataFrame({"chr": ["chr1", "chr1"], "start": [150, 250], "end": [200, 600]})
        result = find_overlaps(query, subject, report="count")
        assert result["count"].tolist() == [2, 1, 0]

    def test_report_first(self):
        """First mode keeps the left-most subject per query."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [1000]})
        subject = pd.DataFrame({"chr": ["chr1", "chr1", "chr1"], "start": [800, 150, 400], "end": [900, 200, 500]})
        result = find_overlaps(query, subject, report="first")
        assert len(result) == 1
        assert result.iloc[0]["subject_idx"] == 1

    def test_empty_query(self):
        query = pd.DataFrame({"chr": [], "start": [], "end": []})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [200]})
        result = find_overlaps(query, subject)
        assert len(result) == 0
        assert list(result.columns) == ["query_idx", "subject_idx", "overlap_bp"]

    def test_empty_subject_count(self):
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [200]})
        subject = pd.DataFrame({"chr": [], "start": [], "end": []})
        result = find_overlaps(query, subject, report="count")
        assert result["count"].tolist() == [0]

    def test_unknown_report_mode(self):
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [200]})
        with pytest.raises(ValueError):
            find_overlaps(query, query, report="nearest")


class TestCountOverlaps:
    """Tests for count_overlaps."""

    def test_known_counts(self):
        query = pd.DataFrame({"chr": ["chr1", "chr1"], "start": [0, 1000], "end": [500, 1500]})
        subject = pd.DataFrame({"chr": ["chr1"] * 3, "start": [10, 100, 1200], "end": [20, 200, 1300]})
        counts = count_overlaps(query, subject)
        assert isinstance(counts, np.ndarray)
        assert counts.tolist() == [2, 1]


# ============================================================================
# Peak file parsing
# ============================================================================


class TestDetectColumn:
    """Tests for detect_column."""

    def test_finds_standard_name(self):
        df = pd.DataFrame({"chr": [], "start": []})
        assert detect_column(df, CHROM_COLS) == "chr"

    def test_case_insensitive(self):
        df = pd.DataFrame({"Chrom": []})
        assert detect_column(df, CHROM_COLS) == "Chrom"

    def test_returns_none_when_missing(self):
        df = pd.DataFrame({"x": []})
        assert detect_column(df, CHROM_COLS) is None

    def test_required_raises(self):
        df = pd.DataFrame({"x": []})
        with pytest.raises(ValueError):
            detect_column(df, CHROM_COLS, required=True)


class TestStandardizePeakColumns:
    """Tests for standardize_peak_columns."""

    def test_renames_variants(self):
        df = pd.DataFrame({"chrom": [], "chromStart": [], "chromEnd": [], "signalValue": [], "summit": []})
        result = standardize_peak_columns(df)
        assert list(result.columns) == ["chr", "start", "end", "signal", "peak"]

    def test_keeps_existing_standard_name(self):
        df = pd.DataFrame({"chr": [], "start": [], "end": [], "signal": [], "score": []})
        result = standardize_peak_columns(df)
        assert "score" in result.columns
        assert "signal" in result.columns


class TestLoadPeakFile:
    """Tests for load_peak_file."""

    def test_load_narrowpeak(self, sample_narrowpeak_file):
        df = load_peak_file(sample_narrowpeak_file)
        assert len(df) == 3
        assert {"chr", "start", "end", "signal", "peak"} <= set(df.columns)
        # coordinates are returned as stored
        assert df["start"].iloc[0] == 1000
        assert df["signal"].iloc[1] == pytest.approx(8.1)

    def test_load_bed3(self):
        df = load_peak_file(io.StringIO("chr1\t10\t20\nchr2\t30\t40\n"))
        assert list(df.columns) == ["chr", "start", "end"]

    def test_load_with_header(self):
        buf = io.StringIO("chrom\tstart\tend\tsignalValue\nchr1\t10\t20\t3.5\n")
        df = load_peak_file(buf)
        assert df["signal"].tolist() == [3.5]

    def test_empty_file(self, empty_bed_file):
        with pytest.raises(PeakFileFormatError):
            load_peak_file(empty_bed_file)

    def test_malformed_file(self, malformed_bed_file):
        with pytest.raises(PromoterTFBSError):
            load_peak_file(malformed_bed_file)

    def test_non_integer_coordinates(self):
        buf = io.StringIO("chr\tstart\tend\nchr1\t1.5\t20\n")
        with pytest.raises(PeakFileFormatError, match="non-integer"):
            load_peak_file(buf)

    def test_too_few_columns(self):
        with pytest.raises(PeakFileFormatError):
            load_peak_file(io.StringIO("chr1\t10\n"))


# ============================================================================
# Chromosome utilities
# ============================================================================


class TestChromosomes:
    """Tests for chromosome helpers."""

    def test_sort_chromosomes(self):
        assert sort_chromosomes(["chrX", "chr10", "chr2", "chrM", "chr1"]) == [
            "chr1", "chr2", "chr10", "chrX", "chrM",
        ]

    def test_filter_standard_chroms(self):
        df = pd.DataFrame({"chr": ["chr1", "chrY", "chrM", "chr1_gl000191_random", "chrUn_gl000220"]})
        assert filter_standard_chroms(df)["chr"].tolist() == ["chr1", "chrY"]

    def test_load_chrom_sizes(self, temp_dir):
        path = temp_dir / "hg19.chrom.sizes"
        path.write_text("chr1\t249250621\nchr2\t243199373\n")
        assert load_chrom_sizes(path) == {"chr1": 249250621, "chr2": 243199373}

    def test_chrom_sizes_from_fasta(self):
        genome = FakeGenome({"chr1": "A" * 10, "chr2": "C" * 4})
        assert chrom_sizes_from_fasta(genome) == {"chr1": 10, "chr2": 4}


class TestWithinChromosomeBounds:
    """Tests for within_chromosome_bounds (1-based closed)."""

    def test_bounds(self):
        df = pd.DataFrame({
            "chr": ["chr1", "chr1", "chr1", "chr1", "chrZ"],
            "start": [1, 0, 50, 91, 1],
            "end": [10, 10, 100, 101, 10],
        })
        mask = within_chromosome_bounds(df, {"chr1": 100})
        assert mask.tolist() == [True, False, True, False, False]


# ============================================================================
# Identifier utilities
# ============================================================================


class TestCollapseDuplicates:
    """Tests for collapse_duplicates."""

    def test_joins_unique_values(self):
        df = pd.DataFrame({
            "gene_id": ["G1", "G1", "G2", "G1"],
            "symbol": ["A", "B", "C", "A"],
            "chr": ["chr1", "chr9", "chr2", "chr1"],
        })
        result = collapse_duplicates(df, key="gene_id", cols=["symbol"])
        assert result["gene_id"].tolist() == ["G1", "G2"]
        assert result["symbol"].tolist() == ["A;B", "C"]
        assert result["chr"].tolist() == ["chr1", "chr2"]

    def test_all_null_stays_null(self):
        df = pd.DataFrame({"gene_id": ["G1", "G1"], "symbol": [None, None]})
        result = collapse_duplicates(df, key="gene_id", cols=["symbol"])
        assert result["symbol"].isna().all()

    def test_no_duplicates_unchanged(self):
        df = pd.DataFrame({"gene_id": ["G1", "G2"], "symbol": ["A", "B"]})
        pd.testing.assert_frame_equal(collapse_duplicates(df, "gene_id", ["symbol"]), df)
