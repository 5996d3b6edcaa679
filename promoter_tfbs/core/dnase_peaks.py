"""
DNase Peak Observations

Loads per-sample narrowPeak calls (e.g. Roadmap reference epigenomes),
tags each row with its source sample and min-max scales the raw signal
within each sample batch.

Peak starts are converted from 0-based BED to 1-based closed coordinates,
so ``start + peak`` is the 1-based point-source base.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Union

import numpy as np
import pandas as pd

from .exceptions import EmptyDataError, MissingColumnError, validate_dataframe
from .genomic_utils import load_peak_file

logger = logging.getLogger(__name__)

PEAK_COLUMNS = ["chr", "start", "end", "signal", "peak", "sample"]


def _sample_name(path: Path) -> str:
    name = path.name
    for suffix in (".gz", ".narrowPeak", ".bed", ".tsv", ".csv"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return name


def load_peak_samples(
    sources: Union[Mapping[str, Union[str, Path]], Iterable[Union[str, Path]]],
) -> pd.DataFrame:
    """Load peak calls from several samples into one table.

    Args:
        sources: ``{sample: path}`` or an iterable of paths (sample name taken
            from the file name)

    Returns:
        DataFrame with columns chr, start (1-based), end, signal, peak, sample
    """
    if not isinstance(sources, Mapping):
        sources = {_sample_name(Path(p)): p for p in sources}
    if not sources:
        raise EmptyDataError("peak sample list")

    frames = []
    for sample, path in sources.items():
        df = load_peak_file(path)
        for col in ("signal", "peak"):
            if col not in df.columns:
                raise MissingColumnError(col, f"peak file {path}", available=list(df.columns))

        df = df[["chr", "start", "end", "signal", "peak"]].copy()
        df["start"] = df["start"] + 1

        # narrowPeak uses -1 when no point source was called
        no_summit = df["peak"] < 0
        df.loc[no_summit, "peak"] = (df.loc[no_summit, "end"] - df.loc[no_summit, "start"]) // 2
        df["sample"] = sample
        frames.append(df)
        logger.info(f"Loaded {len(df)} peaks from sample {sample} ({no_summit.sum()} without summit)")

    peaks = pd.concat(frames, ignore_index=True)
    peaks["peak"] = peaks["peak"].astype(np.int64)
    return peaks


def normalize_scores(
    peaks: pd.DataFrame,
    score_col: str = "signal",
    by: str = "sample",
    out_col: str = "norm_score",
) -> pd.DataFrame:
    """Min-max scale ``score_col`` into [0, 1] within each ``by`` batch.

    A batch whose values are all equal scales to 1.0.
    """
    validate_dataframe(peaks, name="peaks", required_columns=[score_col, by])

    grouped = peaks.groupby(by, sort=False)[score_col]
    lo = grouped.transform("min")
    span = grouped.transform("max") - lo

    scaled = (peaks[score_col] - lo) / span.where(span > 0)
    out = peaks.copy()
    out[out_col] = scaled.where(span > 0, 1.0).astype(float)
    return out


def point_sources(peaks: pd.DataFrame) -> pd.Series:
    """Single-base point-source coordinate for each peak (``start + peak``)."""
    return (peaks["start"] + peaks["peak"]).astype(np.int64)


def summarize_samples(peaks: pd.DataFrame) -> Dict[str, int]:
    """Peak counts per sample."""
    return peaks.groupby("sample", sort=False).size().to_dict()
