"""
Promoter windows around a per-gene anchor coordinate.

Windows are 1-based closed intervals ``[anchor - upstream, anchor + downstream]``
and are rebuilt whenever the anchor moves (TSS first, then the representative
DNase peak). Genes whose window leaves its chromosome are excluded, and the
exclusion is carried into every later table with ``drop_genes``.
"""

import logging
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

from .exceptions import validate_dataframe, validate_numeric_param
from .genomic_utils import find_overlaps, within_chromosome_bounds

logger = logging.getLogger(__name__)

WINDOW_COLUMNS = ["gene_id", "chr", "start", "end", "strand", "anchor"]


def make_windows(
    table: pd.DataFrame,
    anchor_col: str = "tss",
    upstream: int = 1000,
    downstream: int = 1000,
) -> pd.DataFrame:
    """Build a promoter window per gene around ``anchor_col``.

    Upstream and downstream are genomic (not strand-oriented) margins.
    """
    validate_dataframe(table, name="gene table", required_columns=["gene_id", "chr", "strand", anchor_col])
    validate_numeric_param(upstream, "upstream", min_val=0)
    validate_numeric_param(downstream, "downstream", min_val=0)

    anchor = table[anchor_col].astype(np.int64)
    return pd.DataFrame({
        "gene_id": table["gene_id"].to_numpy(),
        "chr": table["chr"].to_numpy(),
        "start": (anchor - upstream).to_numpy(),
        "end": (anchor + downstream).to_numpy(),
        "strand": table["strand"].to_numpy(),
        "anchor": anchor.to_numpy(),
    })


def filter_windows_in_bounds(
    windows: pd.DataFrame,
    chrom_sizes: Dict[str, int],
) -> Tuple[pd.DataFrame, list]:
    """Split windows into those on the reference and the excluded gene ids."""
    inside = within_chromosome_bounds(windows, chrom_sizes)
    excluded = windows.loc[~inside, "gene_id"].tolist()
    if excluded:
        logger.warning(f"Excluding {len(excluded)} genes whose window extends past a chromosome end")
    return windows[inside].reset_index(drop=True), excluded


def drop_genes(table: pd.DataFrame, gene_ids: Iterable[str]) -> pd.DataFrame:
    """Remove rows of excluded genes from a gene-keyed table (column or index)."""
    gene_ids = set(gene_ids)
    if not gene_ids:
        return table
    if "gene_id" in table.columns:
        return table[~table["gene_id"].isin(gene_ids)].reset_index(drop=True)
    return table[~table.index.isin(gene_ids)]


def overlap_peaks(windows: pd.DataFrame, peaks: pd.DataFrame) -> pd.DataFrame:
    """Pair every window with every peak it overlaps.

    Returns:
        Long table with ``gene_id`` plus the overlapping peak's columns
    """
    validate_dataframe(peaks, name="peaks", required_columns=["chr", "start", "end"])
    windows = windows.reset_index(drop=True)
    peaks = peaks.reset_index(drop=True)

    # closed [start, end] -> half-open [start, end + 1)
    query = windows[["chr", "start", "end"]].assign(end=windows["end"] + 1)
    subject = peaks[["chr", "start", "end"]].assign(end=peaks["end"] + 1)

    hits = find_overlaps(query, subject)
    pairs = peaks.loc[hits["subject_idx"].to_numpy()].reset_index(drop=True)
    pairs.insert(0, "gene_id", windows.loc[hits["query_idx"].to_numpy(), "gene_id"].to_numpy())

    logger.info(
        f"{pairs['gene_id'].nunique()}/{len(windows)} promoter windows overlap "
        f"{len(pairs)} peak observations"
    )
    return pairs
