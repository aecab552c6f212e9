"""
Data pipeline orchestration.

Coordinates loading, sample construction and saving of the analysis sample.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import pandas as pd

from config.settings import get_settings
from scfwealth.data.scf_loader import SCFLoader, ImplicateCheck
from scfwealth.model.variables import AnalysisSampleBuilder, SampleSummary

logger = logging.getLogger(__name__)


@dataclass
class DataQualityReport:
    """Report on data quality issues."""

    source: str
    total_rows: int
    missing_values: dict[str, int]
    implicates: ImplicateCheck | None
    warnings: list[str]
    timestamp: datetime


class DataPipeline:
    """Orchestrates SCF loading and analysis sample construction."""

    def __init__(
        self,
        loader: SCFLoader | None = None,
        builder: AnalysisSampleBuilder | None = None,
    ):
        self.settings = get_settings()
        self.loader = loader or SCFLoader()
        self.builder = builder or AnalysisSampleBuilder()
        self._quality_reports: list[DataQualityReport] = []

    @property
    def sample_summary(self) -> SampleSummary:
        return self.builder.summary

    def load_merged(self) -> pd.DataFrame:
        """Load and merge the raw SCF files."""
        logger.info("Loading SCF 2019 inputs...")
        merged = self.loader.load()
        self._generate_quality_report(merged, "merged", check_implicates=True)
        return merged

    def build_sample(self) -> pd.DataFrame:
        """
        Build the analysis sample.

        Returns:
            One row per household from the analysis implicate
        """
        merged = self.load_merged()
        sample = self.builder.build(merged)
        self._generate_quality_report(sample, "analysis_sample")
        return sample

    def save_sample(
        self,
        sample: pd.DataFrame | None = None,
        filename: str = "analysis_sample.parquet",
    ) -> Path:
        """Save the analysis sample."""
        if sample is None:
            sample = self.build_sample()

        output_dir = self.settings.processed_data_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        filepath = output_dir / filename
        sample.to_parquet(filepath, index=False)

        logger.info(f"Saved analysis sample to {filepath}")
        return filepath

    def _generate_quality_report(
        self, df: pd.DataFrame, source: str, check_implicates: bool = False
    ) -> DataQualityReport:
        """Generate data quality report for a DataFrame."""
        warnings = []

        missing = df.isnull().sum().to_dict()
        missing = {k: int(v) for k, v in missing.items() if v > 0}

        implicates = None
        if check_implicates and "implicate" in df.columns:
            implicates = self.loader.check_implicates(df)
            if not implicates.all_complete:
                warnings.append(
                    f"Households with incomplete implicates "
                    f"(min {implicates.min_implicates}, max {implicates.max_implicates})"
                )

        if missing:
            warnings.append(f"Missing values in columns: {list(missing.keys())}")

        if "yy1" in df.columns and "implicate" in df.columns and source == "analysis_sample":
            if df["yy1"].duplicated().any():
                warnings.append("Analysis sample has more than one row per household")

        report = DataQualityReport(
            source=source,
            total_rows=len(df),
            missing_values=missing,
            implicates=implicates,
            warnings=warnings,
            timestamp=datetime.now(),
        )

        self._quality_reports.append(report)
        return report

    def get_quality_reports(self) -> list[DataQualityReport]:
        """Get all data quality reports."""
        return self._quality_reports

    def print_quality_summary(self) -> None:
        """Print summary of data quality reports."""
        if not self._quality_reports:
            print("No quality reports generated yet.")
            return

        for report in self._quality_reports:
            print(f"\n{'='*60}")
            print(f"Data Quality Report: {report.source}")
            print(f"{'='*60}")
            print(f"Total rows: {report.total_rows:,}")
            print(f"Timestamp: {report.timestamp}")

            if report.implicates is not None:
                print(
                    f"Households: {report.implicates.n_households:,} "
                    f"({report.implicates.min_implicates}-{report.implicates.max_implicates} "
                    "implicates each)"
                )

            if report.missing_values:
                print("\nMissing values:")
                for col, count in report.missing_values.items():
                    pct = count / report.total_rows * 100
                    print(f"  - {col}: {count:,} ({pct:.1f}%)")

            if report.warnings:
                print("\nWarnings:")
                for warning in report.warnings:
                    print(f"  ⚠ {warning}")
