"""
Transcription factor motif models and sequence scanning.

Motifs are read with Biopython (JASPAR, MEME, TRANSFAC, ...) and converted
to log-odds position weight matrices with a background-weighted pseudocount.
Matches are reported on both strands with a relative score

    rel_score = (score - min_score) / (max_score - min_score)

so every reported match lies in [0, 1], and only matches at or above
``min_relative_score`` are kept.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from Bio import motifs as bio_motifs
from Bio.Seq import Seq

from .exceptions import MotifAnalysisError, MotifFileError, validate_numeric_param

logger = logging.getLogger(__name__)

MATCH_COLUMNS = ["start", "end", "strand", "score", "rel_score"]

BACKGROUND = {"A": 0.25, "C": 0.25, "G": 0.25, "T": 0.25}


def motif_id_of(motif) -> str:
    """Identifier of a parsed motif (matrix id, falling back to its name)."""
    return getattr(motif, "matrix_id", None) or motif.name


def safe_motif_key(motif_id: str) -> str:
    """Motif id made safe for use as a file name.

    Ids that need cleaning get a short hash of the raw id appended, so two
    ids that clean to the same string still map to different keys.
    """
    key = re.sub(r"[^A-Za-z0-9._-]", "_", motif_id)
    if key != motif_id:
        key = f"{key}_{hashlib.sha1(motif_id.encode()).hexdigest()[:8]}"
    return key


def motif_pssm(motif, pseudocount: float = 0.8):
    """Log2-odds PSSM against a uniform background.

    The pseudocount is spread over the bases in proportion to the background.
    """
    pseudocounts = {base: pseudocount * p for base, p in BACKGROUND.items()}
    return motif.counts.normalize(pseudocounts=pseudocounts).log_odds(BACKGROUND)


class MotifDatabase:
    """
    Collection of TF motifs keyed by motif id.

    Loads every motif of a matrix file; duplicate ids keep the first entry.
    """

    def __init__(self, motifs_file: Optional[Union[str, Path]] = None, fmt: str = "jaspar"):
        self.motifs: Dict[str, object] = {}
        if motifs_file:
            self.load_motifs_file(motifs_file, fmt=fmt)

    def load_motifs_file(self, filepath: Union[str, Path], fmt: str = "jaspar"):
        """Load motifs from a matrix file in any Biopython-supported format."""
        try:
            with open(filepath) as handle:
                parsed = list(bio_motifs.parse(handle, fmt))
        except (OSError, ValueError, KeyError) as e:
            raise MotifFileError(f"Cannot parse motif file {filepath} as {fmt}: {e}") from e

        if not parsed:
            raise MotifFileError(f"No motifs found in {filepath}")

        for motif in parsed:
            motif_id = motif_id_of(motif)
            if motif_id in self.motifs:
                logger.warning(f"Duplicate motif id {motif_id} in {filepath}; keeping the first")
                continue
            self.motifs[motif_id] = motif

        logger.info(f"Loaded {len(parsed)} motifs from {filepath}")

    def get_motif(self, motif_id: str):
        """Get a specific motif by ID."""
        return self.motifs.get(motif_id)

    def search_by_name(self, name: str) -> List[object]:
        """Search motifs by TF name (case-insensitive)."""
        name_lower = name.lower()
        return [m for m in self.motifs.values() if name_lower in (m.name or "").lower()]

    def list_motifs(self) -> List[Tuple[str, str]]:
        """List all available motifs as (id, name)."""
        return [(motif_id, m.name) for motif_id, m in self.motifs.items()]

    def __len__(self) -> int:
        return len(self.motifs)


def load_motifs(path: Union[str, Path], fmt: str = "jaspar") -> Dict[str, object]:
    """Read all motifs in ``path`` as ``{motif_id: motif}``."""
    return MotifDatabase(path, fmt=fmt).motifs


def scan_sequence(
    pssm,
    sequence: str,
    min_relative_score: float = 0.8,
) -> pd.DataFrame:
    """Find motif matches on both strands of a sequence.

    Args:
        pssm: Biopython position-specific scoring matrix
        sequence: DNA sequence (case-insensitive; windows with N never match)
        min_relative_score: Relative score cutoff in [0, 1]

    Returns:
        DataFrame with 0-based half-open ``start``/``end`` in sequence
        coordinates, ``strand``, raw ``score`` and ``rel_score``
    """
    validate_numeric_param(min_relative_score, "min_relative_score", min_val=0.0, max_val=1.0)

    max_score, min_score = float(pssm.max), float(pssm.min)
    if not np.isfinite(max_score) or not np.isfinite(min_score):
        raise MotifAnalysisError("PSSM has infinite scores; use a positive pseudocount")

    span = max_score - min_score
    length = pssm.length
    n = len(sequence)
    if n < length:
        return pd.DataFrame(columns=MATCH_COLUMNS).astype(
            {"start": np.int64, "end": np.int64, "score": float, "rel_score": float}
        )

    threshold = min_score + min_relative_score * span
    rows = []
    for position, score in pssm.search(Seq(sequence.upper()), threshold=threshold, both=True):
        if not np.isfinite(score):
            continue
        strand = "+" if position >= 0 else "-"
        start = int(position) if position >= 0 else int(position) + n
        rel = (score - min_score) / span if span > 0 else 1.0
        rows.append((start, start + length, strand, float(score), float(min(max(rel, 0.0), 1.0))))

    matches = pd.DataFrame(rows, columns=MATCH_COLUMNS).astype(
        {"start": np.int64, "end": np.int64, "score": float, "rel_score": float}
    )
    return matches.sort_values(["start", "strand"], kind="stable").reset_index(drop=True)
