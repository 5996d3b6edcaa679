"""
Pipeline stages.

Each stage is a function of its declared inputs that persists one output
artifact through ``run_stage``:

    genes            TSS per gene                      (run_tss_stage)
    anchors          representative DNase coordinate   (run_peak_stage)
    window_sequences +/- flank sequences per gene      (run_sequence_stage)
    profiles/<id>    gene-by-offset table per motif    (run_motif_stage)

Genes whose windows leave the reference are listed in ``excluded_genes``
and left out of every later artifact.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .core.artifacts import ArtifactStore, run_stage
from .core.dnase_peaks import load_peak_samples, normalize_scores, summarize_samples
from .core.exceptions import TaskError
from .core.motif_aggregator import profile_artifact_key
from .core.motifs import load_motifs, safe_motif_key
from .core.peak_localizer import build_anchor_table, localize_gene_peaks
from .core.profile_comparison import bootstrap_envelope, resolve_gene_ids
from .core.promoter_windows import drop_genes, filter_windows_in_bounds, make_windows
from .core.sequences import fetch_window_sequences, sequences_to_table
from .core.tss_selection import attach_gene_names, load_transcript_table, select_tss
from .workers.batch_processor import BatchProcessor, Job
from .workers.tasks import SEQUENCES_KEY, motif_scan_params

logger = logging.getLogger(__name__)

GENES_KEY = "genes"
ANCHORS_KEY = "anchors"
EXCLUDED_KEY = "excluded_genes"


def record_exclusions(store: ArtifactStore, gene_ids: Iterable[str], reason: str) -> pd.DataFrame:
    """Add excluded genes to the ``excluded_genes`` artifact."""
    new = pd.DataFrame({"gene_id": list(gene_ids), "reason": reason})
    if store.exists(EXCLUDED_KEY):
        old = store.load_table(EXCLUDED_KEY)
        new = pd.concat([old[old["reason"] != reason], new], ignore_index=True)
    excluded = new.drop_duplicates("gene_id", keep="first").reset_index(drop=True)
    store.save_table(EXCLUDED_KEY, excluded)
    return excluded


def excluded_gene_ids(store: ArtifactStore) -> List[str]:
    """Genes excluded by any earlier stage."""
    if not store.exists(EXCLUDED_KEY):
        return []
    return store.load_table(EXCLUDED_KEY)["gene_id"].tolist()


def run_tss_stage(
    store: ArtifactStore,
    annotation_path: Union[str, Path],
    score_col: str = "TIEScore",
    gene_class_col: str = "geneClass",
    coding_classes: Sequence[str] = ("coding_mRNA",),
    min_rows_per_gene: int = 3,
    name_mapping: Optional[pd.DataFrame] = None,
    force: bool = False,
) -> pd.DataFrame:
    """Stage 1: one TSS per coding gene."""

    def compute():
        table = load_transcript_table(annotation_path)
        genes = select_tss(
            table,
            score_col=score_col,
            gene_class_col=gene_class_col,
            coding_classes=coding_classes,
            min_rows_per_gene=min_rows_per_gene,
        )
        if name_mapping is not None:
            genes = attach_gene_names(genes, name_mapping)
        return genes

    return run_stage(store, GENES_KEY, compute, force=force)


def run_peak_stage(
    store: ArtifactStore,
    genes: pd.DataFrame,
    peak_files: Union[Mapping[str, Union[str, Path]], Iterable[Union[str, Path]]],
    chrom_sizes: Dict[str, int],
    upstream: int = 1000,
    downstream: int = 1000,
    cumulative_fraction: float = 0.75,
    smoothing_window: int = 50,
    fallback_to_tss: bool = False,
    force: bool = False,
) -> pd.DataFrame:
    """Stage 2: representative DNase coordinate per gene."""

    def compute():
        windows = make_windows(genes, anchor_col="tss", upstream=upstream, downstream=downstream)
        windows, excluded = filter_windows_in_bounds(windows, chrom_sizes)
        record_exclusions(store, excluded, reason="promoter_window")

        peaks = normalize_scores(load_peak_samples(peak_files))
        logger.info(f"Peak observations per sample: {summarize_samples(peaks)}")

        coords = localize_gene_peaks(
            windows,
            peaks,
            cumulative_fraction=cumulative_fraction,
            smoothing_window=smoothing_window,
        )
        return build_anchor_table(drop_genes(genes, excluded), coords, fallback_to_tss=fallback_to_tss)

    return run_stage(store, ANCHORS_KEY, compute, force=force)


def run_sequence_stage(
    store: ArtifactStore,
    anchors: pd.DataFrame,
    genome,
    chrom_sizes: Dict[str, int],
    flank: int = 500,
    force: bool = False,
) -> pd.DataFrame:
    """Fixed +/- flank windows around each anchor and their sequences."""

    def compute():
        windows = make_windows(
            drop_genes(anchors, excluded_gene_ids(store)),
            anchor_col="anchor",
            upstream=flank,
            downstream=flank,
        )
        windows, excluded = filter_windows_in_bounds(windows, chrom_sizes)
        record_exclusions(store, excluded, reason="motif_window")
        return sequences_to_table(fetch_window_sequences(windows, genome))

    return run_stage(store, SEQUENCES_KEY, compute, force=force)


def run_motif_stage(
    results_dir: Union[str, Path],
    motif_file: Union[str, Path],
    motif_ids: Optional[Sequence[str]] = None,
    flank: int = 500,
    min_relative_score: float = 0.8,
    pseudocount: float = 0.8,
    motif_format: str = "jaspar",
    max_workers: int = 4,
    jobs_dir: Optional[Union[str, Path]] = None,
    force: bool = False,
) -> List[Job]:
    """Stage 3: one independent ``motif_scan`` job per motif.

    Requires the ``window_sequences`` artifact in ``results_dir``.
    """
    if motif_ids is None:
        motif_ids = list(load_motifs(motif_file, fmt=motif_format))

    job_ids = [f"motif_{safe_motif_key(motif_id)}" for motif_id in motif_ids]
    duplicates = sorted({j for j in job_ids if job_ids.count(j) > 1})
    if duplicates:
        raise TaskError(f"Motif ids map to duplicate jobs: {', '.join(duplicates)}")

    processor = BatchProcessor(
        max_workers=max_workers,
        jobs_dir=str(jobs_dir or Path(results_dir) / "jobs"),
    )
    jobs = processor.submit_batch(
        [
            {
                "id": job_id,
                "name": motif_id,
                "job_type": "motif_scan",
                "params": motif_scan_params(
                    motif_id,
                    motif_file,
                    results_dir,
                    flank=flank,
                    min_relative_score=min_relative_score,
                    pseudocount=pseudocount,
                    motif_format=motif_format,
                    force=force,
                ),
            }
            for job_id, motif_id in zip(job_ids, motif_ids)
        ],
        batch_name="motif_scan",
    )
    return processor.run([job.id for job in jobs])


def run_comparison(
    store: ArtifactStore,
    motif_id: str,
    goi_names: Iterable[str],
    n_resamples: int = 1000,
    percentiles: Tuple[float, float] = (5.0, 95.0),
    seed: Optional[int] = 0,
) -> pd.DataFrame:
    """Stage 4 statistics: GOI mean profile vs bootstrap background envelope."""
    profiles = store.load_table(profile_artifact_key(motif_id))
    names = store.load_table(ANCHORS_KEY).set_index("gene_id")["gene_name"]

    goi_ids = resolve_gene_ids(names.reindex(profiles.index), goi_names)
    logger.info(f"{len(goi_ids)} genes of interest have a {motif_id} profile")

    return bootstrap_envelope(
        profiles,
        goi_ids,
        n_resamples=n_resamples,
        percentiles=percentiles,
        seed=seed,
    )
