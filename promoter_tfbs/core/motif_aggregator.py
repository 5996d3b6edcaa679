"""
Motif Aggregation Module

Turns motif matches in a fixed window around each gene's anchor into a
positional score profile: every offset in ``[-flank, +flank]`` holds the sum
of the relative scores of all matches covering it. Overlapping matches add
up; a gene without matches has an all-zero profile.

One call handles one motif and touches no shared state, so motifs can be
computed as independent, restartable tasks.
"""

import logging
from typing import Dict, Mapping

import numpy as np
import pandas as pd

from .exceptions import MotifAnalysisError, validate_dataframe, validate_numeric_param
from .motifs import safe_motif_key, scan_sequence

logger = logging.getLogger(__name__)


def profile_offsets(flank: int) -> np.ndarray:
    """Integer offsets ``-flank..+flank`` of a profile."""
    return np.arange(-flank, flank + 1, dtype=np.int64)


def matches_to_offsets(matches: pd.DataFrame, flank: int) -> pd.DataFrame:
    """Shift sequence-index match intervals to offsets from the anchor."""
    return matches.assign(start=matches["start"] - flank, end=matches["end"] - flank)


def aggregate_profile(matches: pd.DataFrame, flank: int) -> np.ndarray:
    """Sum relative match scores over every offset each match covers.

    Args:
        matches: Half-open offset intervals ``start``/``end`` with ``rel_score``
        flank: Window half-width; the profile has ``2 * flank + 1`` positions

    Returns:
        float64 array indexed by ``offset + flank``
    """
    validate_numeric_param(flank, "flank", min_val=0)
    profile = np.zeros(2 * flank + 1, dtype=np.float64)
    if matches is None or len(matches) == 0:
        return profile

    validate_dataframe(matches, name="matches", required_columns=["start", "end", "rel_score"])
    lo = np.clip(matches["start"].to_numpy() + flank, 0, len(profile))
    hi = np.clip(matches["end"].to_numpy() + flank, 0, len(profile))
    for a, b, score in zip(lo, hi, matches["rel_score"].to_numpy(dtype=np.float64)):
        profile[a:b] += score
    return profile


def motif_profile_table(
    pssm,
    sequences: Mapping[str, str],
    flank: int = 500,
    min_relative_score: float = 0.8,
) -> pd.DataFrame:
    """Gene-by-offset profile table for one motif.

    Args:
        pssm: Position-specific scoring matrix of the motif
        sequences: ``{gene_id: window sequence}``, each ``2 * flank + 1`` bases
            in transcription orientation
        flank: Window half-width
        min_relative_score: Match cutoff

    Returns:
        DataFrame indexed by gene_id with integer offset columns
    """
    width = 2 * flank + 1
    rows: Dict[str, np.ndarray] = {}
    n_matches = 0
    for gene_id, seq in sequences.items():
        if len(seq) != width:
            raise MotifAnalysisError(
                f"Window sequence for {gene_id} has {len(seq)} bases, expected {width}"
            )
        matches = matches_to_offsets(scan_sequence(pssm, seq, min_relative_score), flank)
        n_matches += len(matches)
        rows[gene_id] = aggregate_profile(matches, flank)

    table = pd.DataFrame.from_dict(rows, orient="index", columns=profile_offsets(flank))
    if not rows:
        table = pd.DataFrame(columns=profile_offsets(flank), dtype=np.float64)
    table.index.name = "gene_id"
    logger.debug(f"{n_matches} matches across {len(table)} windows")
    return table


def profile_artifact_key(motif_id: str) -> str:
    """Artifact key of one motif's profile table."""
    return f"profiles/{safe_motif_key(motif_id)}"
