"""
Task handlers for the batch processor.

Each ``motif_scan`` task computes one motif's profile table from the shared
window sequences and writes only its own artifact, so tasks can run on any
worker in any order and be retried one by one.
"""

import logging
from typing import Any, Callable, Dict, List, Sequence

import numpy as np

from ..core.artifacts import ArtifactStore, run_stage
from ..core.exceptions import InvalidParameterError, MotifAnalysisError
from ..core.motif_aggregator import motif_profile_table, profile_artifact_key
from ..core.motifs import load_motifs, motif_pssm
from ..core.sequences import table_to_sequences

logger = logging.getLogger(__name__)

SEQUENCES_KEY = "window_sequences"


def split_tasks(items: Sequence[Any], n_tasks: int, task_index: int) -> List[Any]:
    """Contiguous chunk ``task_index`` (1-based) of ``items`` split into ``n_tasks``.

    Mirrors array-job task ids: every item lands in exactly one chunk.
    """
    if n_tasks < 1:
        raise InvalidParameterError("n_tasks", n_tasks, ">= 1")
    if not 1 <= task_index <= n_tasks:
        raise InvalidParameterError("task_index", task_index, f"1..{n_tasks}")
    bounds = np.linspace(0, len(items), n_tasks + 1).round().astype(int)
    return list(items[bounds[task_index - 1]:bounds[task_index]])


def motif_scan_params(
    motif_id: str,
    motif_file: str,
    results_dir: str,
    flank: int = 500,
    min_relative_score: float = 0.8,
    pseudocount: float = 0.8,
    motif_format: str = "jaspar",
    force: bool = False,
) -> Dict[str, Any]:
    """JSON-serializable parameters of one ``motif_scan`` job."""
    return {
        "motif_id": motif_id,
        "motif_file": str(motif_file),
        "motif_format": motif_format,
        "results_dir": str(results_dir),
        "sequences_key": SEQUENCES_KEY,
        "flank": flank,
        "min_relative_score": min_relative_score,
        "pseudocount": pseudocount,
        "force": force,
    }


def handle_motif_scan(params: Dict, progress_cb: Callable) -> Dict:
    """Compute and persist the profile table of one motif."""
    store = ArtifactStore(params["results_dir"])
    motif_id = params["motif_id"]
    key = profile_artifact_key(motif_id)
    force = params.get("force", False)
    reused = store.exists(key) and not force

    def compute():
        progress_cb(10, "Loading motif...")
        motifs = load_motifs(params["motif_file"], fmt=params.get("motif_format", "jaspar"))
        if motif_id not in motifs:
            raise MotifAnalysisError(f"Motif {motif_id} not found in {params['motif_file']}")
        pssm = motif_pssm(motifs[motif_id], pseudocount=params.get("pseudocount", 0.8))

        progress_cb(30, "Loading window sequences...")
        sequences = table_to_sequences(store.load_table(params.get("sequences_key", SEQUENCES_KEY)))

        progress_cb(50, f"Scanning {len(sequences)} windows...")
        return motif_profile_table(
            pssm,
            sequences,
            flank=params.get("flank", 500),
            min_relative_score=params.get("min_relative_score", 0.8),
        )

    profiles = run_stage(store, key, compute, force=force)
    progress_cb(100, "Profile already computed" if reused else "Complete")
    logger.info(f"Motif {motif_id}: profiles for {len(profiles)} genes")

    result = {
        "motif_id": motif_id,
        "artifact": key,
        "genes": len(profiles),
        "genes_with_matches": int((profiles.to_numpy().sum(axis=1) > 0).sum()),
    }
    if reused:
        result["skipped"] = True
    return result
