"""
Shared test fixtures for the promoter_tfbs test suite.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# ============================================================================
# Reference genome stand-in
# ============================================================================


class FakeGenome:
    """In-memory reference with the ``pysam.FastaFile`` fetch interface."""

    def __init__(self, sequences):
        self.sequences = sequences

    @property
    def references(self):
        return list(self.sequences)

    @property
    def lengths(self):
        return [len(s) for s in self.sequences.values()]

    def fetch(self, reference, start, end):
        return self.sequences[reference][start:end]


GATA_JASPAR = """>MA9999.1 GATA_TEST
A  [  0 10  0 10 ]
C  [  0  0  0  0 ]
G  [ 10  0  0  0 ]
T  [  0  0 10  0 ]
"""

TWO_MOTIF_JASPAR = GATA_JASPAR + """>MA9998.1 CCAAT_TEST
A  [  0  0 10 10  0 ]
C  [ 10 10  0  0  0 ]
G  [  0  0  0  0  0 ]
T  [  0  0  0  0 10 ]
"""


# ============================================================================
# Temporary files
# ============================================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_narrowpeak_file(temp_dir):
    """Create a temporary narrowPeak file for testing."""
    np_path = temp_dir / "E001-DNase.narrowPeak"
    np_content = """chr1\t1000\t2000\tpeak_0\t100\t.\t5.5\t3.2\t2.1\t500
chr1\t5000\t6000\tpeak_1\t200\t.\t8.1\t5.4\t4.3\t400
chr2\t2000\t3000\tpeak_2\t150\t.\t6.2\t4.1\t3.0\t-1"""
    np_path.write_text(np_content)
    return np_path


@pytest.fixture
def empty_bed_file(temp_dir):
    """Create an empty BED file."""
    bed_path = temp_dir / "empty.bed"
    bed_path.write_text("")
    return bed_path


@pytest.fixture
def malformed_bed_file(temp_dir):
    """Create a BED file with invalid data."""
    bed_path = temp_dir / "malformed.bed"
    bed_content = """chr1\tnot_a_number\t2000
chr2\t3000\talso_bad"""
    bed_path.write_text(bed_content)
    return bed_path


@pytest.fixture
def jaspar_file(temp_dir):
    """A JASPAR matrix file holding a single GATA motif."""
    path = temp_dir / "motifs.jaspar"
    path.write_text(GATA_JASPAR)
    return path


@pytest.fixture
def two_motif_file(temp_dir):
    """A JASPAR matrix file holding two motifs."""
    path = temp_dir / "two_motifs.jaspar"
    path.write_text(TWO_MOTIF_JASPAR)
    return path


# ============================================================================
# Annotation tables
# ============================================================================


@pytest.fixture
def transcript_table():
    """FANTOM CAT style rows: gene, transcript and exon entries per gene."""
    rows = [
        # gene_id, gene_name, type, chr, start, end, strand, TIEScore, geneClass
        ("G1", "GENE1", "gene", "chr1", 2000, 2600, "+", np.nan, "coding_mRNA"),
        ("G1", "GENE1", "transcript", "chr1", 2000, 2500, "+", 0.90, "coding_mRNA"),
        ("G1", "GENE1", "transcript", "chr1", 2100, 2600, "+", 0.95, "coding_mRNA"),
        ("G2", "GENE2", "gene", "chr1", 3000, 3400, "-", np.nan, "coding_mRNA"),
        ("G2", "GENE2", "transcript", "chr1", 3000, 3400, "-", 0.80, "coding_mRNA"),
        ("G2", "GENE2", "exon", "chr1", 3300, 3400, "-", np.nan, "coding_mRNA"),
        ("G3", "GENE3", "gene", "chr1", 4000, 4200, "+", np.nan, "coding_mRNA"),
        ("G3", "GENE3", "transcript", "chr1", 4000, 4200, "+", 0.99, "coding_mRNA"),
        ("G4", "LNC4", "gene", "chr1", 1500, 1700, "+", np.nan, "lncRNA_intergenic"),
        ("G4", "LNC4", "transcript", "chr1", 1500, 1700, "+", 0.70, "lncRNA_intergenic"),
        ("G4", "LNC4", "exon", "chr1", 1500, 1600, "+", np.nan, "lncRNA_intergenic"),
        ("G5", "GENE5", "gene", "chr1", 300, 900, "+", np.nan, "coding_mRNA"),
        ("G5", "GENE5", "transcript", "chr1", 300, 900, "+", 0.60, "coding_mRNA"),
        ("G5", "GENE5", "exon", "chr1", 300, 400, "+", np.nan, "coding_mRNA"),
    ]
    return pd.DataFrame(
        rows,
        columns=["gene_id", "gene_name", "type", "chr", "start", "end", "strand", "TIEScore", "geneClass"],
    )


@pytest.fixture
def transcript_table_file(temp_dir, transcript_table):
    """The transcript table written as TSV."""
    path = temp_dir / "annotation.tsv"
    transcript_table.to_csv(path, sep="\t", index=False)
    return path


# ============================================================================
# Small end-to-end data set
# ============================================================================


@pytest.fixture
def pipeline_inputs(temp_dir, transcript_table_file):
    """Annotation, two DNase samples, a 5 kb genome with one GATA site and a motif file.

    G1 (+, TSS 2100) has one peak per sample with point source 2151, where
    the GATA site starts. G2 (-, TSS 3400) has no peaks. G5 sits too close
    to the chromosome start for its promoter window.
    """
    peak_a = temp_dir / "E001.narrowPeak"
    peak_a.write_text("chr1\t2140\t2200\t.\t0\t.\t10.0\t1\t1\t10\n")
    peak_b = temp_dir / "E002.narrowPeak"
    peak_b.write_text("chr1\t2145\t2205\t.\t0\t.\t5.0\t1\t1\t5\n")

    sequence = ["C"] * 5000
    sequence[2150:2154] = list("GATA")
    genome = FakeGenome({"chr1": "".join(sequence)})

    motif_path = temp_dir / "motifs.jaspar"
    motif_path.write_text(GATA_JASPAR)

    return {
        "annotation": transcript_table_file,
        "peaks": [peak_a, peak_b],
        "genome": genome,
        "chrom_sizes": {"chr1": 5000},
        "motifs": motif_path,
        "results_dir": temp_dir / "results",
    }
