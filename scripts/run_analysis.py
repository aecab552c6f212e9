#!/usr/bin/env python3
"""
Main analysis script for the SCF 2019 financial literacy and wealth study.

This script runs the complete analysis pipeline:
1. Load and merge the SCF files
2. Build the analysis sample (winsorize, recode, rescale, keep implicate 1)
3. Estimate the weighted median regressions
4. Export Table 3
"""

import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Setup logging
console = Console()
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=console)],
)
logger = logging.getLogger(__name__)


def run_data_pipeline(save: bool = True):
    """Load inputs and build the analysis sample."""
    from scfwealth.data.data_pipeline import DataPipeline

    console.print("[bold blue]Step 1: Analysis Sample[/bold blue]")

    pipeline = DataPipeline()
    sample = pipeline.build_sample()
    if save:
        pipeline.save_sample(sample)

    console.print(f"Sample shape: {sample.shape}")
    pipeline.print_quality_summary()

    return sample


def run_estimation(sample):
    """Estimate the eight median regressions."""
    from scfwealth.model.median_regression import estimate_median_regressions

    console.print("\n[bold blue]Step 2: Median Regressions[/bold blue]")

    model = estimate_median_regressions(sample)
    console.print(model.summary())

    return model


def export_tables(model, output_dir: Path | None = None):
    """Write Table 3 panels and summary."""
    from config.settings import get_settings
    from scfwealth.output.tables import write_tables

    console.print("\n[bold blue]Step 3: Tables[/bold blue]")

    settings = get_settings()
    output_dir = output_dir or settings.output_dir
    paths = write_tables(model, output_dir, digits=settings.digits)
    for path in paths:
        console.print(f"  {path}")

    return paths


def main():
    parser = argparse.ArgumentParser(description="Run SCF 2019 financial literacy analysis")
    parser.add_argument("--skip-data", action="store_true", help="Reuse the saved analysis sample")
    parser.add_argument("--output-dir", type=Path, default=None, help="Table output directory")
    args = parser.parse_args()

    console.print("[bold green]Financial Literacy and Wealth Accumulation[/bold green]")
    console.print("=" * 50)

    # Step 1: Data
    if not args.skip_data:
        sample = run_data_pipeline()
    else:
        import pandas as pd
        from config.settings import get_settings
        settings = get_settings()
        sample_path = settings.processed_data_dir / "analysis_sample.parquet"
        if sample_path.exists():
            sample = pd.read_parquet(sample_path)
        else:
            console.print("[red]No analysis sample found. Run without --skip-data first.[/red]")
            return

    # Step 2: Estimation
    model = run_estimation(sample)

    # Step 3: Tables
    export_tables(model, args.output_dir)

    console.print("\n[bold green]Analysis complete![/bold green]")


if __name__ == "__main__":
    main()
