"""
Configuration settings for the promoter TFBS pipeline.

Values load from environment variables prefixed ``PROMOTER_TFBS_`` or from
a ``.env`` file. Stage functions never read these settings directly; the
pipeline and CLI pass them in as explicit parameters.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROMOTER_TFBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    results_dir: Path = Field(default_factory=lambda: Path.cwd() / "results")
    genome_fasta: Optional[Path] = None
    chrom_sizes: Optional[Path] = None

    # TSS selection (FANTOM CAT)
    min_rows_per_gene: int = 3
    score_col: str = "TIEScore"
    gene_class_col: str = "geneClass"
    coding_classes: List[str] = ["coding_mRNA"]

    # Peak localization (Roadmap DNase narrowPeak)
    promoter_upstream: int = 1000
    promoter_downstream: int = 1000
    cumulative_fraction: float = 0.75
    smoothing_window: int = 50
    fallback_to_tss: bool = False

    # Motif profiles
    profile_flank: int = 500
    min_relative_score: float = 0.8
    motif_pseudocount: float = 0.8
    motif_format: str = "jaspar"

    # Bootstrap comparison
    n_bootstrap: int = 1000
    envelope_percentiles: Tuple[float, float] = (5.0, 95.0)
    random_seed: int = 0

    # Task runner
    max_workers: int = 4
    n_tasks: int = 1

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        for dir_path in [self.results_dir, self.profile_dir(), self.jobs_dir()]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def profile_dir(self) -> Path:
        """Directory holding per-motif profile artifacts."""
        return self.results_dir / "profiles"

    def jobs_dir(self) -> Path:
        """Directory holding batch job state."""
        return self.results_dir / "jobs"

    @property
    def profile_width(self) -> int:
        """Number of offset columns in a motif profile."""
        return 2 * self.profile_flank + 1


# Global settings instance
settings = Settings()
