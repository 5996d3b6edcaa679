"""
Shared genomic utilities for promoter_tfbs.

Provides NCLS (Nested Containment List) interval overlap detection between
promoter windows and peak calls, plus the shared helpers for peak file
parsing, column name detection, chromosome handling and identifier collapse.

Intervals passed to ``find_overlaps`` are half-open ``[start, end)``; callers
holding 1-based closed coordinates convert before querying.
"""

import io
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from ncls import NCLS

from .exceptions import PeakFileFormatError, validate_dataframe

logger = logging.getLogger(__name__)


# ============================================================================
# Core overlap functions
# ============================================================================


def _build_ncls_index(starts: np.ndarray, ends: np.ndarray) -> NCLS:
    """Build an NCLS index from start/end arrays."""
    ids = np.arange(len(starts), dtype=np.int64)
    return NCLS(starts.astype(np.int64), ends.astype(np.int64), ids)


def find_overlaps(
    query_df: pd.DataFrame,
    subject_df: pd.DataFrame,
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
    min_overlap_bp: int = 1,
    report: str = "all",
) -> pd.DataFrame:
    """Find overlapping intervals between two DataFrames.

    Parameters
    ----------
    query_df : pd.DataFrame
        Query intervals (the "left" set), e.g. promoter windows.
    subject_df : pd.DataFrame
        Subject intervals (the "right" set to search against), e.g. peaks.
    chrom_col : str
        Column name for chromosome in both DataFrames.
    start_col, end_col : str
        Column names for half-open interval boundaries.
    min_overlap_bp : int
        Minimum overlap in base pairs (default 1).
    report : str
        "all" – return all overlapping pairs.
        "first" – return only the left-most subject hit per query.
        "count" – return a count of overlaps per query.

    Returns
    -------
    pd.DataFrame
        If report="all" or "first": columns [query_idx, subject_idx, overlap_bp],
        where the indices are index labels of the input frames.
        If report="count": columns [query_idx, count] for every query row.
    """
    if report not in ("all", "first", "count"):
        raise ValueError(f"Unknown report mode: {report}")

    empty = pd.DataFrame({
        "query_idx": pd.Series(dtype=query_df.index.dtype),
        "subject_idx": pd.Series(dtype=subject_df.index.dtype),
        "overlap_bp": pd.Series(dtype=np.int64),
    })

    if query_df.empty or subject_df.empty:
        if report == "count":
            return pd.DataFrame({"query_idx": query_df.index, "count": 0})
        return empty

    frames: List[pd.DataFrame] = []
    subject_groups = {name: grp for name, grp in subject_df.groupby(chrom_col, sort=False)}

    for chrom, q_grp in query_df.groupby(chrom_col, sort=False):
        s_grp = subject_groups.get(chrom)
        if s_grp is None:
            continue

        q_starts = q_grp[start_col].to_numpy(dtype=np.int64)
        q_ends = q_grp[end_col].to_numpy(dtype=np.int64)
        s_starts = s_grp[start_col].to_numpy(dtype=np.int64)
        s_ends = s_grp[end_col].to_numpy(dtype=np.int64)

        index = _build_ncls_index(s_starts, s_ends)
        q_local, s_local = index.all_overlaps_both(
            q_starts, q_ends, np.arange(len(q_starts), dtype=np.int64)
        )
        if len(q_local) == 0:
            continue

        overlap = (
            np.minimum(q_ends[q_local], s_ends[s_local])
            - np.maximum(q_starts[q_local], s_starts[s_local])
        )
        hits = pd.DataFrame({
            "query_idx": q_grp.index.to_numpy()[q_local],
            "subject_idx": s_grp.index.to_numpy()[s_local],
            "overlap_bp": overlap.astype(np.int64),
            "_s_start": s_starts[s_local],
        })
        frames.append(hits[hits["overlap_bp"] >= min_overlap_bp])

    results = pd.concat(frames, ignore_index=True) if frames else empty.assign(_s_start=0)

    if report == "count":
        counts = results.groupby("query_idx").size()
        return pd.DataFrame({
            "query_idx": query_df.index,
            "count": counts.reindex(query_df.index, fill_value=0).to_numpy(dtype=int),
        })

    if report == "first" and not results.empty:
        results = (
            results.sort_values(["query_idx", "_s_start"], kind="stable")
            .drop_duplicates("query_idx", keep="first")
        )

    return results.drop(columns="_s_start").reset_index(drop=True)


def count_overlaps(
    query_df: pd.DataFrame,
    subject_df: pd.DataFrame,
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
) -> np.ndarray:
    """Count overlaps per query interval.

    Returns
    -------
    np.ndarray
        Array of length len(query_df) with overlap counts.
    """
    counts_df = find_overlaps(
        query_df, subject_df,
        chrom_col=chrom_col, start_col=start_col, end_col=end_col,
        report="count",
    )
    return counts_df["count"].to_numpy()


# ============================================================================
# Peak file parsing utilities
# ============================================================================

# Standard column name mappings
CHROM_COLS = ["chr", "chrom", "chromosome", "seqnames", "#chr"]
START_COLS = ["start", "chromStart", "peak_start"]
END_COLS = ["end", "chromEnd", "peak_end"]
SIGNAL_COLS = ["signal", "signalValue", "score", "fold_enrichment", "enrichment"]
SUMMIT_COLS = ["peak", "summit", "summit_offset"]

NARROWPEAK_COLS = [
    "chr", "start", "end", "name", "score", "strand",
    "signalValue", "pValue", "qValue", "peak",
]


def detect_column(df: pd.DataFrame, candidates: List[str], required: bool = False) -> Optional[str]:
    """Find the first matching column name from a list of candidates.

    Parameters
    ----------
    df : pd.DataFrame
    candidates : list of str
        Column names to search for (case-insensitive).
    required : bool
        If True, raise ValueError when not found.

    Returns
    -------
    str or None
    """
    cols_lower = {c.lower(): c for c in df.columns}
    for cand in candidates:
        if cand.lower() in cols_lower:
            return cols_lower[cand.lower()]
    if required:
        raise ValueError(
            f"Could not find any of {candidates} in columns: {list(df.columns)}"
        )
    return None


def standardize_peak_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename common peak column variants to standardized names.

    Produces columns: chr, start, end (and optionally signal, peak).
    """
    mapping = {}
    for std_name, candidates in [
        ("chr", CHROM_COLS),
        ("start", START_COLS),
        ("end", END_COLS),
        ("signal", SIGNAL_COLS),
        ("peak", SUMMIT_COLS),
    ]:
        col = detect_column(df, candidates)
        if col and col != std_name and std_name not in df.columns:
            mapping[col] = std_name
    return df.rename(columns=mapping)


def load_peak_file(filepath_or_buffer, sep: str = "\t") -> pd.DataFrame:
    """Load a BED/narrowPeak/CSV file into a standardized DataFrame.

    Handles:
    - BED / narrowPeak (ENCODE / Roadmap format, no header)
    - CSV/TSV with headers

    Coordinates are returned exactly as stored in the file (0-based BED).

    Raises
    ------
    PeakFileFormatError
        If the file has fewer than three columns or non-integer coordinates.
    """
    if hasattr(filepath_or_buffer, "read"):
        content = filepath_or_buffer.read()
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        buf = io.StringIO(content)
    else:
        buf = str(filepath_or_buffer)

    try:
        peek = pd.read_csv(buf, sep=sep, nrows=2, header=None, comment="#")
    except pd.errors.EmptyDataError:
        raise PeakFileFormatError(f"Peak file is empty: {filepath_or_buffer}")
    if hasattr(buf, "seek"):
        buf.seek(0)

    first_val = str(peek.iloc[0, 1]) if peek.shape[1] > 1 else ""
    has_header = not first_val.replace(".", "").replace("-", "").isdigit()

    df = pd.read_csv(buf, sep=sep, header=0 if has_header else None, comment="#")

    if not has_header:
        if df.shape[1] < 3:
            raise PeakFileFormatError(
                f"Expected at least 3 columns in {filepath_or_buffer}, got {df.shape[1]}"
            )
        df.columns = (NARROWPEAK_COLS + [f"extra_{i}" for i in range(df.shape[1])])[: df.shape[1]]

    df = standardize_peak_columns(df)
    validate_dataframe(df, name="peak file", required_columns=["chr", "start", "end"])

    for col in ("start", "end"):
        if not pd.api.types.is_integer_dtype(df[col]):
            raise PeakFileFormatError(
                f"Column '{col}' of {filepath_or_buffer} holds non-integer coordinates"
            )
    return df


# ============================================================================
# Chromosome utilities
# ============================================================================

_CHROM_ORDER = {f"chr{i}": i for i in range(1, 23)}
_CHROM_ORDER.update({"chrX": 23, "chrY": 24, "chrM": 25, "chrMT": 25})

STANDARD_CHROMS = {f"chr{i}" for i in range(1, 23)} | {"chrX", "chrY"}


def sort_chromosomes(chroms: List[str]) -> List[str]:
    """Sort chromosome names in natural order (1,2,...,22,X,Y,M)."""
    def _sort_key(c: str) -> Tuple[int, str]:
        c_stripped = c.replace("chr", "") if c.startswith("chr") else c
        if c in _CHROM_ORDER:
            return (_CHROM_ORDER[c], c)
        try:
            return (int(c_stripped), c)
        except ValueError:
            return (100, c)
    return sorted(chroms, key=_sort_key)


def filter_standard_chroms(df: pd.DataFrame, chrom_col: str = "chr") -> pd.DataFrame:
    """Filter to canonical chromosomes (chr1-22, chrX, chrY), removing random/Un/hap/M."""
    return df[df[chrom_col].isin(STANDARD_CHROMS)].copy()


def load_chrom_sizes(path) -> Dict[str, int]:
    """Read a UCSC-style ``chrom.sizes`` file into a dict."""
    sizes = pd.read_csv(path, sep="\t", header=None, usecols=[0, 1], names=["chr", "size"])
    return dict(zip(sizes["chr"].astype(str), sizes["size"].astype(int)))


def chrom_sizes_from_fasta(fasta) -> Dict[str, int]:
    """Chromosome lengths from an open ``pysam.FastaFile``."""
    return dict(zip(fasta.references, (int(n) for n in fasta.lengths)))


def within_chromosome_bounds(
    df: pd.DataFrame,
    chrom_sizes: Dict[str, int],
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
) -> pd.Series:
    """Boolean mask of 1-based closed intervals lying fully on their chromosome.

    Intervals on chromosomes absent from ``chrom_sizes`` are out of bounds.
    """
    sizes = df[chrom_col].map(chrom_sizes)
    return (df[start_col] >= 1) & sizes.notna() & (df[end_col] <= sizes.fillna(-1))


# ============================================================================
# Identifier utilities
# ============================================================================


def collapse_duplicates(
    df: pd.DataFrame,
    key: str,
    cols: Sequence[str],
    sep: str = ";",
) -> pd.DataFrame:
    """Collapse rows sharing ``key`` into one row.

    Each column in ``cols`` becomes the ``sep``-joined unique non-null values
    in first-seen order; the first row's value is kept for other columns.
    """
    if df.empty or not df[key].duplicated().any():
        return df.reset_index(drop=True)

    def _join(values: pd.Series) -> Optional[str]:
        unique = pd.unique(values.dropna().astype(str))
        return sep.join(unique) if len(unique) else None

    agg = {c: ("first" if c not in cols else _join) for c in df.columns if c != key}
    return df.groupby(key, sort=False, as_index=False).agg(agg)[list(df.columns)]
