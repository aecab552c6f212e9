"""
SCF wealth study settings.
"""

from pathlib import Path
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCFWEALTH_",
        extra="ignore",
    )

    # Directories
    project_root: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent,
        description="Project root directory",
    )
    data_dir: Path = Field(default=Path("data"), description="Data directory")
    output_dir: Path = Field(default=Path("output/tables"), description="Table output directory")

    # Input files (SCF 2019)
    summary_file: str = Field(
        default="rscfp2019.dta", description="Summary extract public data"
    )
    weights_file: str = Field(
        default="p19_rw1.dta", description="Replicate weights file"
    )
    public_file: str = Field(
        default="p19i6.dta", description="Full public data set"
    )
    replicate_weights: list[str] = Field(
        default_factory=list,
        description="Replicate weight columns (wt1b*) carried into the merged table",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Sample construction
    winsor_lower: float = Field(default=0.05, description="Lower winsorization quantile")
    winsor_upper: float = Field(default=0.95, description="Upper winsorization quantile")
    rescale_divisor: float = Field(default=100000.0, description="Dollar rescaling divisor")
    analysis_implicate: int = Field(
        default=1, description="Implicate kept for the main regressions"
    )

    # Estimation
    quantile: float = Field(default=0.5, description="Regression quantile")
    max_iter: int = Field(default=5000, description="QuantReg IRLS iteration limit")
    p_tol: float = Field(default=1e-6, description="QuantReg convergence tolerance")

    # Reporting
    digits: int = Field(default=3, description="Decimal places in exported tables")

    @property
    def summary_path(self) -> Path:
        return self.data_dir / self.summary_file

    @property
    def weights_path(self) -> Path:
        return self.data_dir / self.weights_file

    @property
    def public_path(self) -> Path:
        return self.data_dir / self.public_file

    @property
    def processed_data_dir(self) -> Path:
        return self.data_dir / "processed"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
