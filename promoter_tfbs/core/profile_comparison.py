"""
Gene-set profile comparison.

Compares the mean motif profile of a gene-of-interest (GOI) set against a
bootstrap background: each iteration draws as many genes as the GOI set,
without replacement, from all other profiled genes and averages their
profiles; the per-offset percentiles across iterations form the envelope.
"""

import logging
from typing import Iterable, Optional, Sequence, Set, Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import EmptyDataError, ValidationError, validate_numeric_param

logger = logging.getLogger(__name__)

ENVELOPE_COLUMNS = ["goi_mean", "bg_mean", "bg_low", "bg_high"]


def load_gene_set(path) -> Set[str]:
    """Read display names, one per line (blank lines and ``#`` comments skipped)."""
    with open(path) as f:
        return {
            line.strip() for line in f
            if line.strip() and not line.lstrip().startswith("#")
        }


def resolve_gene_ids(
    gene_names: pd.Series,
    names: Iterable[str],
    sep: str = ";",
) -> list:
    """Gene ids whose display name matches any of ``names``.

    Args:
        gene_names: Display names indexed by gene_id; collapsed names
            (``"A;B"``) match if any part matches
        names: Gene-of-interest display names

    Returns:
        Matching gene ids in ``gene_names`` order
    """
    wanted = set(names)
    parts = gene_names.fillna("").astype(str).str.split(sep)
    hit = parts.map(lambda p: not wanted.isdisjoint(p))
    return list(gene_names.index[hit.to_numpy(dtype=bool)])


def bootstrap_envelope(
    profiles: pd.DataFrame,
    goi_ids: Sequence[str],
    n_resamples: int = 1000,
    percentiles: Tuple[float, float] = (5.0, 95.0),
    seed: Optional[Union[int, np.random.Generator]] = None,
) -> pd.DataFrame:
    """Mean GOI profile and bootstrap percentile envelope of the background.

    Args:
        profiles: Gene-by-offset profile table indexed by gene_id
        goi_ids: Gene ids of interest (ids absent from ``profiles`` are ignored)
        n_resamples: Bootstrap iterations
        percentiles: Lower and upper envelope percentiles
        seed: Seed or Generator for reproducible resampling

    Returns:
        DataFrame indexed by offset with goi_mean, bg_mean, bg_low, bg_high
    """
    validate_numeric_param(n_resamples, "n_resamples", min_val=1)
    lo_pct, hi_pct = percentiles
    if not 0 <= lo_pct <= hi_pct <= 100:
        raise ValidationError(f"Invalid percentiles: {percentiles}")

    in_goi = profiles.index.isin(list(goi_ids))
    goi = profiles.to_numpy(dtype=np.float64)[in_goi]
    background = profiles.to_numpy(dtype=np.float64)[~in_goi]

    if len(goi) == 0:
        raise EmptyDataError("gene-of-interest profile set")
    if len(background) < len(goi):
        raise EmptyDataError(
            f"background ({len(background)} genes for a {len(goi)}-gene resample)"
        )

    rng = np.random.default_rng(seed)
    boot = np.empty((n_resamples, profiles.shape[1]), dtype=np.float64)
    for i in range(n_resamples):
        pick = rng.choice(len(background), size=len(goi), replace=False)
        boot[i] = background[pick].mean(axis=0)

    low, high = np.percentile(boot, [lo_pct, hi_pct], axis=0)
    logger.info(
        f"Bootstrap envelope: {len(goi)} GOI genes vs {len(background)} background genes, "
        f"{n_resamples} resamples"
    )
    return pd.DataFrame(
        {
            "goi_mean": goi.mean(axis=0),
            "bg_mean": boot.mean(axis=0),
            "bg_low": low,
            "bg_high": high,
        },
        index=pd.Index(profiles.columns, name="offset"),
    )


def window_scores(profiles: pd.DataFrame, start: int, end: int) -> pd.Series:
    """Per-gene summed profile over offsets ``start..end`` (inclusive)."""
    cols = [c for c in profiles.columns if start <= c <= end]
    return profiles[cols].sum(axis=1).rename("window_score")
