"""
Reference sequence lookup for promoter windows.

Wraps an indexed FASTA (``pysam.FastaFile``). Windows are 1-based closed;
sequences are returned in transcription orientation, so index 0 is always
the most upstream base of the window relative to the gene's strand.
"""

import logging
from pathlib import Path
from typing import Dict, Union

import pandas as pd
import pysam

from .exceptions import GenomeBoundsError, validate_dataframe

logger = logging.getLogger(__name__)

_COMPLEMENT = str.maketrans("ACGTNacgtn", "TGCANtgcan")


def reverse_complement(seq: str) -> str:
    """Reverse complement of a DNA sequence."""
    return seq.translate(_COMPLEMENT)[::-1]


def open_genome(path: Union[str, Path]) -> pysam.FastaFile:
    """Open an indexed reference FASTA (builds the .fai if missing)."""
    logger.info(f"Opening reference genome {path}")
    return pysam.FastaFile(str(path))


def fetch_window_sequences(windows: pd.DataFrame, genome) -> Dict[str, str]:
    """Sequences of promoter windows keyed by gene_id.

    Args:
        windows: gene_id, chr, start, end, strand (1-based closed)
        genome: Object with ``fetch(chrom, start, end)`` in 0-based half-open
            coordinates, e.g. ``pysam.FastaFile``

    Raises:
        GenomeBoundsError: If the reference returns fewer bases than requested
    """
    validate_dataframe(windows, name="windows", required_columns=["gene_id", "chr", "start", "end", "strand"])

    sequences = {}
    for row in windows.itertuples(index=False):
        seq = genome.fetch(row.chr, int(row.start) - 1, int(row.end)).upper()
        if len(seq) != row.end - row.start + 1:
            raise GenomeBoundsError(row.chr, row.start, row.end)
        sequences[row.gene_id] = reverse_complement(seq) if row.strand == "-" else seq

    logger.info(f"Fetched {len(sequences)} window sequences")
    return sequences


def sequences_to_table(sequences: Dict[str, str]) -> pd.DataFrame:
    """Sequences as a two-column table (gene_id, sequence) for persistence."""
    return pd.DataFrame({
        "gene_id": list(sequences.keys()),
        "sequence": list(sequences.values()),
    })


def table_to_sequences(table: pd.DataFrame) -> Dict[str, str]:
    """Inverse of ``sequences_to_table``."""
    validate_dataframe(table, name="window sequences", required_columns=["gene_id", "sequence"])
    return dict(zip(table["gene_id"], table["sequence"]))
