"""
Core analysis modules for the promoter TFBS pipeline.

Includes:
- TSS selection from transcript annotation tables
- DNase peak loading and representative peak localization
- Motif scanning and positional profile aggregation
- Bootstrap comparison of gene-set profiles
"""

# TSS selection
from .tss_selection import attach_gene_names, load_transcript_table, select_tss

# DNase peaks
from .dnase_peaks import load_peak_samples, normalize_scores, point_sources

# Promoter windows and peak localization
from .promoter_windows import drop_genes, filter_windows_in_bounds, make_windows, overlap_peaks
from .peak_localizer import build_anchor_table, localize_gene_peaks, localize_peak

# Motifs
from .motifs import MotifDatabase, load_motifs, motif_pssm, scan_sequence
from .sequences import fetch_window_sequences, open_genome, reverse_complement
from .motif_aggregator import aggregate_profile, motif_profile_table, profile_artifact_key

# Comparison
from .profile_comparison import bootstrap_envelope, load_gene_set, resolve_gene_ids, window_scores

# Persistence
from .artifacts import ArtifactStore, run_stage

# Shared genomic utilities (interval-tree overlap, peak parsing, etc.)
from .genomic_utils import (
    find_overlaps,
    count_overlaps,
    load_peak_file,
    standardize_peak_columns,
    detect_column,
    sort_chromosomes,
    filter_standard_chroms,
    load_chrom_sizes,
    within_chromosome_bounds,
)

__all__ = [
    # TSS selection
    "select_tss",
    "load_transcript_table",
    "attach_gene_names",

    # DNase peaks
    "load_peak_samples",
    "normalize_scores",
    "point_sources",

    # Windows and localization
    "make_windows",
    "filter_windows_in_bounds",
    "drop_genes",
    "overlap_peaks",
    "localize_peak",
    "localize_gene_peaks",
    "build_anchor_table",

    # Motifs
    "MotifDatabase",
    "load_motifs",
    "motif_pssm",
    "scan_sequence",
    "open_genome",
    "fetch_window_sequences",
    "reverse_complement",
    "aggregate_profile",
    "motif_profile_table",
    "profile_artifact_key",

    # Comparison
    "bootstrap_envelope",
    "load_gene_set",
    "resolve_gene_ids",
    "window_scores",

    # Persistence
    "ArtifactStore",
    "run_stage",

    # Genomic utilities
    "find_overlaps",
    "count_overlaps",
    "load_peak_file",
    "standardize_peak_columns",
    "detect_column",
    "sort_chromosomes",
    "filter_standard_chroms",
    "load_chrom_sizes",
    "within_chromosome_bounds",
]
