"""
TSS Selection Module

Picks one transcription start site per gene from a FANTOM CAT style
transcript annotation table:
- genes with fewer than ``min_rows_per_gene`` annotation rows are dropped
- the highest-scoring row wins (stable descending sort, first row on ties)
- only coding genes on canonical chromosomes are kept
- the row's interval collapses to a single base on the strand-appropriate end

Filtering is policy, not failure: excluded genes are logged and dropped.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from .exceptions import AnnotationTableError, validate_dataframe
from .genomic_utils import (
    CHROM_COLS,
    END_COLS,
    START_COLS,
    collapse_duplicates,
    detect_column,
    filter_standard_chroms,
)

logger = logging.getLogger(__name__)

GENE_ID_COLS = ["gene_id", "geneID", "geneId"]
GENE_NAME_COLS = ["gene_name", "geneName", "gene_symbol", "symbol"]
TYPE_COLS = ["type", "feature"]

GENE_COLUMNS = ["gene_id", "gene_name", "chr", "tss", "strand", "score"]


def standardize_annotation_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename annotation column variants to gene_id, gene_name, type, chr, start, end."""
    mapping = {}
    for std_name, candidates in [
        ("gene_id", GENE_ID_COLS),
        ("gene_name", GENE_NAME_COLS),
        ("type", TYPE_COLS),
        ("chr", CHROM_COLS),
        ("start", START_COLS),
        ("end", END_COLS),
    ]:
        col = detect_column(df, candidates)
        if col and col != std_name and std_name not in df.columns:
            mapping[col] = std_name
    return df.rename(columns=mapping)


def load_transcript_table(path: Union[str, Path], sep: Optional[str] = None) -> pd.DataFrame:
    """Load a tabular transcript annotation (TSV or CSV with a header row).

    Raises
    ------
    AnnotationTableError
        If the file cannot be read or lacks the coordinate columns.
    """
    path = Path(path)
    if sep is None:
        sep = "," if path.suffix.lower() == ".csv" else "\t"

    try:
        df = pd.read_csv(path, sep=sep, comment="#", low_memory=False)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise AnnotationTableError(f"Cannot read annotation table {path}: {e}") from e

    df = standardize_annotation_columns(df)
    missing = [c for c in ("gene_id", "type", "chr", "start", "end", "strand") if c not in df.columns]
    if missing:
        raise AnnotationTableError(
            f"Annotation table {path} is missing columns {missing}; found {list(df.columns)}"
        )

    logger.info(f"Loaded {len(df)} annotation rows for {df['gene_id'].nunique()} genes from {path}")
    return df


def select_tss(
    table: pd.DataFrame,
    score_col: str = "TIEScore",
    gene_class_col: str = "geneClass",
    coding_classes: Iterable[str] = ("coding_mRNA",),
    min_rows_per_gene: int = 3,
    standard_chroms_only: bool = True,
) -> pd.DataFrame:
    """Select one TSS per gene.

    Args:
        table: Annotation rows (gene, transcript and exon entries)
        score_col: Transcription-initiation confidence column
        gene_class_col: Column holding the gene class
        coding_classes: Gene classes counted as protein coding
        min_rows_per_gene: Genes with fewer annotation rows are dropped
        standard_chroms_only: Keep chr1-22, chrX, chrY only

    Returns:
        DataFrame with columns gene_id, gene_name, chr, tss, strand, score;
        one row per gene, in order of the gene's first appearance in ``table``
    """
    validate_dataframe(
        table,
        name="transcript annotation",
        required_columns=["gene_id", "chr", "start", "end", "strand", score_col, gene_class_col],
    )

    n_genes = table["gene_id"].nunique()
    rows_per_gene = table.groupby("gene_id")["gene_id"].transform("size")
    kept = table[rows_per_gene >= min_rows_per_gene]
    logger.info(
        f"{kept['gene_id'].nunique()}/{n_genes} genes have at least {min_rows_per_gene} annotation rows"
    )

    first_seen = kept.drop_duplicates("gene_id")["gene_id"]
    order = pd.Series(np.arange(len(first_seen)), index=first_seen.to_numpy())

    best = (
        kept.sort_values(score_col, ascending=False, kind="stable", na_position="last")
        .drop_duplicates("gene_id", keep="first")
    )

    best = best[best[gene_class_col].isin(list(coding_classes))]
    if standard_chroms_only:
        best = filter_standard_chroms(best, chrom_col="chr")
    best = best[best["strand"].isin(["+", "-"])]

    genes = pd.DataFrame({
        "gene_id": best["gene_id"].to_numpy(),
        "gene_name": (best["gene_name"] if "gene_name" in best.columns else best["gene_id"]).to_numpy(),
        "chr": best["chr"].to_numpy(),
        "tss": np.where(best["strand"] == "-", best["end"], best["start"]).astype(np.int64),
        "strand": best["strand"].to_numpy(),
        "score": best[score_col].to_numpy(dtype=float),
    })
    genes = (
        genes.assign(_order=genes["gene_id"].map(order))
        .sort_values("_order", kind="stable")
        .drop(columns="_order")
        .reset_index(drop=True)
    )

    logger.info(f"Selected TSS for {len(genes)} coding genes on canonical chromosomes")
    return genes


def attach_gene_names(
    genes: pd.DataFrame,
    mapping: pd.DataFrame,
    id_col: str = "gene_id",
    name_col: str = "gene_name",
) -> pd.DataFrame:
    """Replace display names with names from an external id-to-symbol table.

    Ids mapping to several symbols get the ``;``-joined unique symbols; ids
    absent from ``mapping`` keep their existing name.
    """
    validate_dataframe(mapping, name="gene name mapping", required_columns=[id_col, name_col])

    lookup = (
        mapping[[id_col, name_col]]
        .rename(columns={id_col: "gene_id", name_col: "_mapped_name"})
        .dropna(subset=["_mapped_name"])
    )
    merged = genes.merge(lookup, on="gene_id", how="left")
    merged = collapse_duplicates(merged, key="gene_id", cols=["_mapped_name"])

    n_mapped = merged["_mapped_name"].notna().sum()
    n_multi = merged["_mapped_name"].fillna("").str.contains(";").sum()
    logger.info(f"Mapped display names for {n_mapped}/{len(merged)} genes ({n_multi} ambiguous)")

    merged["gene_name"] = merged["_mapped_name"].fillna(merged["gene_name"])
    return merged.drop(columns="_mapped_name")[list(genes.columns)]
