"""
Survey of Consumer Finances 2019 loader.

Reads the three public SCF files, normalizes column names, keeps the
documented columns and merges them into one household-implicate table:

- rscfp2019: summary extract (demographics, wealth, financial literacy)
- p19_rw1:   replicate weights, one row per household
- p19i6:     full public data set (marital status, survey weight)
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from pandas.errors import MergeError

from config.settings import get_settings

logger = logging.getLogger(__name__)

HOUSEHOLD_ID = "yy1"
PERSON_ID = "y1"
WEIGHT = "x42001"
MARITAL = "x8023"

SUMMARY_COLUMNS = [
    HOUSEHOLD_ID,
    PERSON_ID,
    "age",
    "hhsex",
    "edcl",
    "racecl4",
    "occat1",
    "kids",
    "finlit",
    "income",
    "networth",
    "asset",
    "fin",
    "nfin",
]

PUBLIC_COLUMNS = [PERSON_ID, MARITAL, WEIGHT]

# Replicate weights (wt1b*) are only carried when asked for
WEIGHTS_COLUMNS = [HOUSEHOLD_ID]

N_IMPLICATES = 5


class SCFDataError(Exception):
    """Fatal problem with an SCF input file."""


@dataclass
class ImplicateCheck:
    """Implicate structure of a merged SCF table."""

    n_households: int
    min_implicates: int
    max_implicates: int
    all_complete: bool


class SCFLoader:
    """Loads and merges the SCF 2019 input files."""

    def __init__(
        self,
        summary_path: Path | None = None,
        weights_path: Path | None = None,
        public_path: Path | None = None,
        replicate_weights: list[str] | None = None,
    ):
        settings = get_settings()
        self.summary_path = Path(summary_path or settings.summary_path)
        self.weights_path = Path(weights_path or settings.weights_path)
        self.public_path = Path(public_path or settings.public_path)
        if replicate_weights is None:
            replicate_weights = settings.replicate_weights
        self.replicate_weights = [c.lower() for c in replicate_weights]

    def read(self, path: Path) -> pd.DataFrame:
        """
        Read one input file and lower-case its column names.

        Stata is the native format; CSV and parquet are accepted for
        extracts and test fixtures.
        """
        path = Path(path)
        if not path.exists():
            raise SCFDataError(f"Input file not found: {path}")

        suffix = path.suffix.lower()
        try:
            if suffix == ".dta":
                df = pd.read_stata(path, convert_categoricals=False)
            elif suffix == ".csv":
                df = pd.read_csv(path)
            elif suffix == ".parquet":
                df = pd.read_parquet(path)
            else:
                raise SCFDataError(f"Unsupported file type '{suffix}' for {path}")
        except SCFDataError:
            raise
        except Exception as e:
            raise SCFDataError(f"Failed to read {path}: {e}") from e

        df.columns = [str(c).lower() for c in df.columns]
        logger.info(f"Read {path.name}: {len(df):,} rows, {len(df.columns)} columns")
        return df

    def select(self, df: pd.DataFrame, columns: list[str], source: str) -> pd.DataFrame:
        """Keep the documented columns, failing if any is absent."""
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise SCFDataError(
                f"{source} is missing expected columns {missing}. "
                f"Available columns: {sorted(df.columns)[:20]}"
            )
        return df[columns].copy()

    def merge(
        self,
        summary: pd.DataFrame,
        weights: pd.DataFrame,
        public: pd.DataFrame,
    ) -> pd.DataFrame:
        """
        Merge the three tables into one household-implicate table.

        Weights attach by household (many-to-one), public fields by
        household-implicate id (one-to-one).
        """
        self._require_key(summary, HOUSEHOLD_ID, self.summary_path)
        self._require_key(summary, PERSON_ID, self.summary_path)
        self._require_key(weights, HOUSEHOLD_ID, self.weights_path)
        self._require_key(public, PERSON_ID, self.public_path)

        # Keep only weight columns the summary table does not already carry
        weight_cols = [HOUSEHOLD_ID] + [c for c in weights.columns if c not in summary.columns]

        try:
            merged = summary.merge(
                weights[weight_cols],
                on=HOUSEHOLD_ID,
                how="left",
                validate="many_to_one",
            )
        except MergeError as e:
            raise SCFDataError(
                f"Weights join on '{HOUSEHOLD_ID}' failed ({self.weights_path}): {e}"
            ) from e

        try:
            merged = merged.merge(
                public,
                on=PERSON_ID,
                how="left",
                validate="one_to_one",
            )
        except MergeError as e:
            raise SCFDataError(
                f"Public data join on '{PERSON_ID}' failed ({self.public_path}): {e}"
            ) from e

        n_unmatched = merged[WEIGHT].isna().sum()
        if n_unmatched:
            logger.warning(f"{n_unmatched:,} rows have no survey weight after merge")

        return merged

    def add_implicate(self, df: pd.DataFrame) -> pd.DataFrame:
        """Derive the implicate number: y1 = 10 * yy1 + implicate."""
        df = df.copy()
        df["implicate"] = (df[PERSON_ID] - 10 * df[HOUSEHOLD_ID]).astype(int)
        return df

    def check_implicates(self, df: pd.DataFrame) -> ImplicateCheck:
        """Check that every household carries all five implicates."""
        counts = df.groupby(HOUSEHOLD_ID)["implicate"].nunique()
        check = ImplicateCheck(
            n_households=int(len(counts)),
            min_implicates=int(counts.min()) if len(counts) else 0,
            max_implicates=int(counts.max()) if len(counts) else 0,
            all_complete=bool((counts == N_IMPLICATES).all()),
        )
        if not check.all_complete:
            logger.warning(
                f"Implicate structure incomplete: {check.min_implicates}-"
                f"{check.max_implicates} implicates per household "
                f"(expected {N_IMPLICATES})"
            )
        return check

    def load(self) -> pd.DataFrame:
        """
        Load, select and merge all SCF inputs.

        Returns:
            Merged DataFrame with one row per household-implicate and a
            derived `implicate` column

        Raises:
            SCFDataError: if a file is missing or unreadable, a column or
                join key is absent, or a join is not of the expected shape
        """
        summary = self.select(self.read(self.summary_path), SUMMARY_COLUMNS, str(self.summary_path))
        weights = self.select(
            self.read(self.weights_path),
            WEIGHTS_COLUMNS + self.replicate_weights,
            str(self.weights_path),
        )
        public = self.select(self.read(self.public_path), PUBLIC_COLUMNS, str(self.public_path))

        merged = self.merge(summary, weights, public)
        merged = self.add_implicate(merged)

        logger.info(
            f"Merged SCF table: {len(merged):,} rows, "
            f"{merged[HOUSEHOLD_ID].nunique():,} households"
        )
        return merged

    def _require_key(self, df: pd.DataFrame, key: str, path: Path) -> None:
        if key not in df.columns:
            raise SCFDataError(f"Join key '{key}' not found in {path}")
