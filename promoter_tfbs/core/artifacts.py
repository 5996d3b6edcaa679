"""
Persisted stage artifacts.

Every stage writes its output table under a declared key (``genes``,
``anchors``, ``profiles/<motif>``...). Tables are stored as Feather files
and written to a temporary file first, then renamed, so an interrupted
task never leaves a partial artifact under its final name.

``run_stage`` is the memoization policy: it decides whether to reuse an
existing artifact or recompute it. Stage functions themselves never look
at the filesystem.
"""

import json
import logging
from pathlib import Path
from typing import Callable, List, Union

import numpy as np
import pandas as pd
import pyarrow as pa
from pyarrow import feather

from .exceptions import ArtifactError

logger = logging.getLogger(__name__)

SUFFIX = ".feather"
_META_KEY = b"promoter_tfbs"


class ArtifactStore:
    """Directory of gene-keyed tables addressed by artifact key."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """File path of an artifact key."""
        if not key or key.startswith("/") or ".." in Path(key).parts:
            raise ArtifactError(f"Invalid artifact key: {key!r}")
        return self.root / f"{key}{SUFFIX}"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def keys(self, prefix: str = "") -> List[str]:
        """Sorted keys of stored artifacts under ``prefix``."""
        base = self.root / prefix if prefix else self.root
        if not base.exists():
            return []
        return sorted(
            str(p.relative_to(self.root))[: -len(SUFFIX)]
            for p in base.rglob(f"*{SUFFIX}")
        )

    def save_table(self, key: str, df: pd.DataFrame) -> Path:
        """Write ``df`` under ``key``, replacing any previous version.

        The index (when not a default RangeIndex) and integer column labels
        are restored exactly by ``load_table``.
        """
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        frame = df
        index_columns, index_names = [], []
        if not isinstance(df.index, pd.RangeIndex):
            index_names = list(df.index.names)
            frame = df.reset_index()
            index_columns = [str(c) for c in frame.columns[: len(index_names)]]

        int_columns = [
            str(c) for c in frame.columns
            if isinstance(c, (int, np.integer)) and not isinstance(c, bool)
        ]
        frame = frame.set_axis([str(c) for c in frame.columns], axis=1)

        table = pa.Table.from_pandas(frame, preserve_index=False)
        meta = {
            "index_columns": index_columns,
            "index_names": index_names,
            "int_columns": int_columns,
        }
        table = table.replace_schema_metadata({
            **(table.schema.metadata or {}),
            _META_KEY: json.dumps(meta).encode(),
        })

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            feather.write_feather(table, tmp_path)
            tmp_path.replace(path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise ArtifactError(f"Failed to write artifact {key}: {e}") from e

        logger.info(f"Saved {key} ({len(df)} rows) to {path}")
        return path

    def load_table(self, key: str) -> pd.DataFrame:
        """Read the table stored under ``key``."""
        path = self.path_for(key)
        if not path.exists():
            raise ArtifactError(f"Artifact {key} not found at {path}")

        try:
            table = feather.read_table(path)
        except (OSError, pa.ArrowInvalid) as e:
            raise ArtifactError(f"Failed to read artifact {key}: {e}") from e

        meta = json.loads((table.schema.metadata or {}).get(_META_KEY, b"{}"))
        df = table.to_pandas()

        int_columns = set(meta.get("int_columns", []))
        if int_columns:
            df.columns = [int(c) if c in int_columns else c for c in df.columns]
        if meta.get("index_columns"):
            df = df.set_index(meta["index_columns"])
            df.index.names = meta["index_names"]
        if int_columns and len(df.columns) == len(int_columns):
            df.columns = pd.Index(df.columns, dtype=np.int64)
        return df

    def remove(self, key: str) -> bool:
        """Delete an artifact; returns False if it did not exist."""
        path = self.path_for(key)
        if path.exists():
            path.unlink()
            return True
        return False


def run_stage(
    store: ArtifactStore,
    key: str,
    compute: Callable[[], pd.DataFrame],
    force: bool = False,
) -> pd.DataFrame:
    """Reuse the artifact under ``key`` or compute and persist it.

    Args:
        store: Artifact store
        key: Output artifact key declared by the stage
        compute: Zero-argument callable producing the stage output
        force: Recompute even if the artifact exists

    Returns:
        The stage output table
    """
    if store.exists(key) and not force:
        logger.info(f"Artifact {key} exists; skipping recomputation")
        return store.load_table(key)

    df = compute()
    store.save_table(key, df)
    return df
