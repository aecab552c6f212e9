"""
CLI for the SCF 2019 financial literacy and wealth study.

Usage:
    scfwealth run
    scfwealth build-sample
    scfwealth estimate
    scfwealth quality-report
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

app = typer.Typer(
    name="scfwealth",
    help="Financial Literacy and Wealth: SCF 2019 median regressions",
)
console = Console()


def setup_logging(level: str | None = None) -> None:
    """Configure logging with rich output."""
    from config.settings import get_settings

    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _pipeline(data_dir: Optional[Path], implicate: Optional[int]):
    from config.settings import get_settings
    from scfwealth.data.data_pipeline import DataPipeline
    from scfwealth.data.scf_loader import SCFLoader
    from scfwealth.model.variables import AnalysisSampleBuilder

    settings = get_settings()
    data_dir = data_dir or settings.data_dir
    loader = SCFLoader(
        summary_path=data_dir / settings.summary_file,
        weights_path=data_dir / settings.weights_file,
        public_path=data_dir / settings.public_file,
    )
    builder = AnalysisSampleBuilder(analysis_implicate=implicate)
    return DataPipeline(loader=loader, builder=builder)


def _build_sample(data_dir: Optional[Path], implicate: Optional[int]):
    from scfwealth.data.scf_loader import SCFDataError

    pipeline = _pipeline(data_dir, implicate)
    try:
        sample = pipeline.build_sample()
    except (SCFDataError, ValueError) as e:
        console.print(str(e), style="red", markup=False)
        raise typer.Exit(1)
    return pipeline, sample


def _estimate_and_write(sample, output_dir: Optional[Path]) -> int:
    from config.settings import get_settings
    from scfwealth.model.median_regression import estimate_median_regressions
    from scfwealth.output.tables import write_tables

    settings = get_settings()
    output_dir = output_dir or settings.output_dir

    console.print("[bold]Estimating median regressions...[/bold]")
    model = estimate_median_regressions(sample)
    console.print(model.summary())

    paths = write_tables(model, output_dir, digits=settings.digits)
    console.print(f"\nWrote {len(paths)} files to {output_dir}")

    if model.failures:
        console.print(
            f"[yellow]{len(model.failures)} of {len(model.failures) + len(model.results)} "
            "regressions failed[/yellow]"
        )
        for failure in model.failures.values():
            console.print(f"  {failure.outcome} / {failure.literacy}: {failure.message}")
    return len(model.failures)


@app.command()
def run(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the SCF files"),
    output_dir: Optional[Path] = typer.Option(None, help="Table output directory"),
    implicate: Optional[int] = typer.Option(None, help="Implicate used for estimation"),
):
    """Run the full pipeline: load, transform, estimate, export tables."""
    setup_logging()

    pipeline, sample = _build_sample(data_dir, implicate)
    console.print(f"Analysis sample: {len(sample):,} households")

    n_failed = _estimate_and_write(sample, output_dir)

    console.print("\n[bold green]ANALYSIS COMPLETE[/bold green]")
    if n_failed:
        raise typer.Exit(1)


@app.command()
def build_sample(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the SCF files"),
    implicate: Optional[int] = typer.Option(None, help="Implicate kept in the sample"),
    output: Optional[Path] = typer.Option(None, help="Output path"),
):
    """Build the analysis sample and save it as parquet."""
    setup_logging()

    pipeline, sample = _build_sample(data_dir, implicate)

    if output:
        sample.to_parquet(output, index=False)
        console.print(f"Saved analysis sample to {output}")
    else:
        path = pipeline.save_sample(sample)
        console.print(f"Saved analysis sample to {path}")

    console.print(f"Sample shape: {sample.shape}")
    pipeline.print_quality_summary()


@app.command()
def estimate(
    sample_path: Optional[Path] = typer.Option(None, help="Path to analysis sample"),
    output_dir: Optional[Path] = typer.Option(None, help="Table output directory"),
):
    """Estimate the median regressions from a saved analysis sample."""
    setup_logging()

    import pandas as pd

    if sample_path is None:
        from config.settings import get_settings
        settings = get_settings()
        sample_path = settings.processed_data_dir / "analysis_sample.parquet"
    if not sample_path.exists():
        console.print("[red]Analysis sample not found. Run 'build-sample' first.[/red]")
        raise typer.Exit(1)

    sample = pd.read_parquet(sample_path)
    n_failed = _estimate_and_write(sample, output_dir)
    if n_failed:
        raise typer.Exit(1)


@app.command()
def quality_report(
    data_dir: Optional[Path] = typer.Option(None, help="Directory holding the SCF files"),
):
    """Generate data quality report for the merged inputs and analysis sample."""
    setup_logging()

    pipeline, sample = _build_sample(data_dir, None)

    console.print("[bold]Data Quality Report[/bold]")
    pipeline.print_quality_summary()

    summary = pipeline.sample_summary
    console.print(f"\nMerged rows: {summary.n_merged:,}")
    console.print(f"Households: {summary.n_households:,}")
    console.print(f"Analysis rows (implicate {summary.analysis_implicate}): {summary.n_analysis:,}")
    for note in summary.notes:
        console.print(f"  {note}")


if __name__ == "__main__":
    app()
