"""
Command line entry point.

Each subcommand runs one pipeline stage against a results directory:

    promoter-tfbs select-tss --annotation FANTOM_CAT.tsv
    promoter-tfbs localize-peaks --peaks E*.narrowPeak --chrom-sizes hg19.chrom.sizes
    promoter-tfbs extract-sequences --genome hg19.fa
    promoter-tfbs scan-motifs --motifs JASPAR2018.jaspar --task-index 3 --n-tasks 20
    promoter-tfbs compare --motif MA0139.1 --genes goi.txt --output ctcf.html

Defaults come from ``promoter_tfbs.config.settings``.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .config import settings
from .core.artifacts import ArtifactStore
from .core.exceptions import ArtifactError, PipelineConfigError, PromoterTFBSError
from .core.genomic_utils import chrom_sizes_from_fasta, load_chrom_sizes
from .core.motifs import load_motifs
from .core.profile_comparison import load_gene_set
from .core.sequences import open_genome
from .pipeline import (
    ANCHORS_KEY,
    GENES_KEY,
    run_comparison,
    run_motif_stage,
    run_peak_stage,
    run_sequence_stage,
    run_tss_stage,
)
from .plots import create_profile_envelope_plot
from .workers.batch_processor import JobStatus
from .workers.tasks import SEQUENCES_KEY, split_tasks

logger = logging.getLogger(__name__)


def _chrom_sizes(args) -> Dict[str, int]:
    if args.chrom_sizes:
        return load_chrom_sizes(args.chrom_sizes)
    if args.genome:
        return chrom_sizes_from_fasta(open_genome(args.genome))
    raise PipelineConfigError("Chromosome sizes need --chrom-sizes or --genome")


def _require(store: ArtifactStore, key: str, command: str) -> pd.DataFrame:
    if not store.exists(key):
        raise ArtifactError(f"Artifact {key} not found in {store.root}; run '{command}' first")
    return store.load_table(key)


def cmd_select_tss(args) -> int:
    store = ArtifactStore(args.results_dir)
    name_mapping = pd.read_csv(args.name_map, sep="\t") if args.name_map else None
    genes = run_tss_stage(
        store,
        args.annotation,
        score_col=settings.score_col,
        gene_class_col=settings.gene_class_col,
        coding_classes=settings.coding_classes,
        min_rows_per_gene=args.min_rows,
        name_mapping=name_mapping,
        force=args.force,
    )
    logger.info(f"{len(genes)} genes in {GENES_KEY}")
    return 0


def cmd_localize_peaks(args) -> int:
    store = ArtifactStore(args.results_dir)
    anchors = run_peak_stage(
        store,
        _require(store, GENES_KEY, "select-tss"),
        args.peaks,
        _chrom_sizes(args),
        upstream=settings.promoter_upstream,
        downstream=settings.promoter_downstream,
        cumulative_fraction=args.cumulative_fraction,
        smoothing_window=args.smoothing_window,
        fallback_to_tss=args.fallback_to_tss,
        force=args.force,
    )
    n_dnase = int((anchors["anchor_source"] == "dnase").sum())
    logger.info(f"{n_dnase}/{len(anchors)} anchors placed on DNase peaks")
    return 0


def cmd_extract_sequences(args) -> int:
    store = ArtifactStore(args.results_dir)
    genome = open_genome(args.genome)
    sizes = load_chrom_sizes(args.chrom_sizes) if args.chrom_sizes else chrom_sizes_from_fasta(genome)
    run_sequence_stage(
        store,
        _require(store, ANCHORS_KEY, "localize-peaks"),
        genome,
        sizes,
        flank=args.flank,
        force=args.force,
    )
    return 0


def cmd_scan_motifs(args) -> int:
    store = ArtifactStore(args.results_dir)
    if not store.exists(SEQUENCES_KEY):
        raise ArtifactError(f"Artifact {SEQUENCES_KEY} not found; run 'extract-sequences' first")

    motif_ids: Optional[List[str]] = args.motif_ids
    if motif_ids is None:
        motif_ids = list(load_motifs(args.motifs, fmt=args.format))
    if args.n_tasks > 1:
        motif_ids = split_tasks(motif_ids, args.n_tasks, args.task_index)
        logger.info(f"Task {args.task_index}/{args.n_tasks}: {len(motif_ids)} motifs")

    jobs = run_motif_stage(
        args.results_dir,
        args.motifs,
        motif_ids=motif_ids,
        flank=args.flank,
        min_relative_score=args.min_score,
        pseudocount=settings.motif_pseudocount,
        motif_format=args.format,
        max_workers=args.workers,
        jobs_dir=args.jobs_dir,
        force=args.force,
    )
    failed = [job.name for job in jobs if job.status == JobStatus.FAILED]
    if failed:
        logger.error(f"Motifs failed: {', '.join(failed)}")
        return 1
    return 0


def cmd_compare(args) -> int:
    store = ArtifactStore(args.results_dir)
    envelope = run_comparison(
        store,
        args.motif,
        load_gene_set(args.genes),
        n_resamples=args.n_bootstrap,
        percentiles=settings.envelope_percentiles,
        seed=args.seed,
    )

    if args.csv:
        envelope.to_csv(args.csv, sep="\t")
        logger.info(f"Envelope written to {args.csv}")
    if args.output:
        fig = create_profile_envelope_plot(
            envelope,
            title=args.title or args.motif,
            goi_label=Path(args.genes).stem,
        )
        fig.write_html(str(args.output))
        logger.info(f"Plot written to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promoter-tfbs",
        description="Positional TF binding site profiles around promoter DNase peaks.",
    )
    parser.add_argument("--results-dir", type=Path, default=settings.results_dir,
                        help="Directory holding stage artifacts")
    parser.add_argument("--force", action="store_true",
                        help="Recompute artifacts that already exist")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("select-tss", help="One TSS per coding gene")
    p.add_argument("--annotation", required=True, help="Transcript annotation table (TSV/CSV)")
    p.add_argument("--name-map", default=None,
                   help="TSV with gene_id and gene_name columns for display names")
    p.add_argument("--min-rows", type=int, default=settings.min_rows_per_gene,
                   help="Minimum annotation rows per gene")
    p.set_defaults(func=cmd_select_tss)

    p = sub.add_parser("localize-peaks", help="Representative DNase coordinate per gene")
    p.add_argument("--peaks", nargs="+", required=True, help="narrowPeak files, one per sample")
    p.add_argument("--chrom-sizes", default=settings.chrom_sizes, help="chrom.sizes file")
    p.add_argument("--genome", default=settings.genome_fasta,
                   help="Indexed FASTA (used for sizes when --chrom-sizes is absent)")
    p.add_argument("--cumulative-fraction", type=float, default=settings.cumulative_fraction)
    p.add_argument("--smoothing-window", type=int, default=settings.smoothing_window)
    p.add_argument("--fallback-to-tss", action="store_true", default=settings.fallback_to_tss,
                   help="Anchor genes without an overlapping peak on their TSS instead of dropping them")
    p.set_defaults(func=cmd_localize_peaks)

    p = sub.add_parser("extract-sequences", help="Window sequences around each anchor")
    p.add_argument("--genome", default=settings.genome_fasta,
                   required=settings.genome_fasta is None, help="Indexed reference FASTA")
    p.add_argument("--chrom-sizes", default=settings.chrom_sizes, help="chrom.sizes file")
    p.add_argument("--flank", type=int, default=settings.profile_flank)
    p.set_defaults(func=cmd_extract_sequences)

    p = sub.add_parser("scan-motifs", help="Per-motif profile tables")
    p.add_argument("--motifs", required=True, help="Motif matrix file")
    p.add_argument("--format", default=settings.motif_format, help="Biopython motif format")
    p.add_argument("--motif-ids", nargs="+", default=None, help="Subset of motif ids")
    p.add_argument("--flank", type=int, default=settings.profile_flank)
    p.add_argument("--min-score", type=float, default=settings.min_relative_score,
                   help="Minimum relative match score")
    p.add_argument("--task-index", type=int, default=1, help="1-based array task index")
    p.add_argument("--n-tasks", type=int, default=settings.n_tasks, help="Array size")
    p.add_argument("--workers", type=int, default=settings.max_workers)
    p.add_argument("--jobs-dir", default=None, help="Job state directory (default: RESULTS_DIR/jobs)")
    p.set_defaults(func=cmd_scan_motifs)

    p = sub.add_parser("compare", help="GOI profile against a bootstrap background")
    p.add_argument("--motif", required=True, help="Motif id")
    p.add_argument("--genes", required=True, help="Gene-of-interest names, one per line")
    p.add_argument("--n-bootstrap", type=int, default=settings.n_bootstrap)
    p.add_argument("--seed", type=int, default=settings.random_seed)
    p.add_argument("--csv", default=None, help="Write the envelope table here")
    p.add_argument("-o", "--output", default=None, help="Write an HTML plot here")
    p.add_argument("--title", default=None)
    p.set_defaults(func=cmd_compare)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        return args.func(args)
    except PromoterTFBSError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
