"""
Analysis sample construction for the financial literacy and wealth study.

Order of operations matters:
1. Winsorize wealth and income within each implicate
2. Build the wealth-to-income ratio from the winsorized values
3. Recode demographics into dummies (one omitted reference per group)
4. Rescale dollar amounts to $100k units
5. Winsorize the ratio within each implicate
6. Keep a single implicate for the main regressions

Step 6 keeps implicate 1 only instead of pooling the five implicates.
This reproduces the published Table 3 and is intentional.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from config.settings import get_settings

logger = logging.getLogger(__name__)

WEALTH_COLUMNS = ["networth", "asset", "fin", "nfin", "income"]
RESCALE_COLUMNS = ["networth", "fin", "nfin", "income"]
RATIO_COLUMN = "rwlth_incm"


@dataclass
class DummySpec:
    """Dummy variable defined by membership of a source code set."""

    name: str
    source: str
    codes: tuple[int, ...]


# Each group omits one reference category
DUMMY_GROUPS: dict[str, list[DummySpec]] = {
    # ref: male
    "sex": [DummySpec("female", "hhsex", (2,))],
    # ref: white non-Hispanic
    "race": [
        DummySpec("black", "racecl4", (2,)),
        DummySpec("hispanic", "racecl4", (3,)),
        DummySpec("raceoth", "racecl4", (4,)),
    ],
    # ref: college degree
    "education": [
        DummySpec("ed_lshs", "edcl", (1,)),
        DummySpec("ed_hs", "edcl", (2,)),
        DummySpec("ed_sc", "edcl", (3,)),
    ],
    # ref: separated or divorced
    "marital": [
        DummySpec("married", "x8023", (1, 2)),
        DummySpec("widowed", "x8023", (5,)),
        DummySpec("ntmarried", "x8023", (6,)),
    ],
    # ref: works for someone else
    "employment": [
        DummySpec("slfemply", "occat1", (2,)),
        DummySpec("rtrddsbl", "occat1", (3,)),
        DummySpec("ntworkng", "occat1", (4,)),
    ],
    "finlit": [DummySpec("finlit_3c", "finlit", (3,))],
}


def winsorization_bounds(
    df: pd.DataFrame,
    columns: list[str],
    group: str = "implicate",
    limits: tuple[float, float] = (0.05, 0.95),
) -> pd.DataFrame:
    """
    Compute winsorization thresholds within each group.

    Percentiles use linear interpolation and ignore missing values.

    Returns:
        DataFrame with columns group, column, lower, upper
    """
    lower_q, upper_q = limits
    rows = []
    for group_value, sub in df.groupby(group, sort=True):
        for col in columns:
            values = sub[col].dropna()
            if values.empty:
                continue
            rows.append({
                group: group_value,
                "column": col,
                "lower": values.quantile(lower_q),
                "upper": values.quantile(upper_q),
            })
    return pd.DataFrame(rows, columns=[group, "column", "lower", "upper"])


def winsorize_by_group(
    df: pd.DataFrame,
    columns: list[str],
    group: str = "implicate",
    limits: tuple[float, float] = (0.05, 0.95),
) -> pd.DataFrame:
    """
    Winsorize columns separately within each group.

    Thresholds for a group are computed from that group's rows only.

    Args:
        df: Input table (not modified)
        columns: Columns to clip
        group: Grouping column
        limits: Lower and upper quantiles

    Returns:
        Copy of df with the columns clipped
    """
    missing = [c for c in columns + [group] if c not in df.columns]
    if missing:
        raise KeyError(f"Cannot winsorize, columns not found: {missing}")

    df = df.copy()
    bounds = winsorization_bounds(df, columns, group=group, limits=limits)

    for col in columns:
        df[col] = df[col].astype(float)
        col_bounds = bounds[bounds["column"] == col].set_index(group)
        for group_value in df[group].dropna().unique():
            if group_value not in col_bounds.index:
                logger.warning(
                    f"No non-missing {col} values in {group} {group_value}; left unclipped"
                )
                continue
            mask = df[group] == group_value
            lower = col_bounds.at[group_value, "lower"]
            upper = col_bounds.at[group_value, "upper"]
            df.loc[mask, col] = df.loc[mask, col].clip(lower=lower, upper=upper)
            logger.debug(f"{col} {group}={group_value}: clipped to [{lower:,.2f}, {upper:,.2f}]")

    return df


def wealth_income_ratio(networth: pd.Series, income: pd.Series) -> pd.Series:
    """Net worth over income; missing where income is zero or missing."""
    income = income.where(income != 0)
    ratio = networth / income
    return ratio.replace([np.inf, -np.inf], np.nan)


def add_dummies(df: pd.DataFrame) -> pd.DataFrame:
    """Add the demographic and literacy dummies (0/1 floats)."""
    df = df.copy()
    for specs in DUMMY_GROUPS.values():
        for spec in specs:
            # Missing codes compare False and become 0
            df[spec.name] = df[spec.source].isin(spec.codes).astype(float)
    return df


def rescale(df: pd.DataFrame, columns: list[str], divisor: float = 100000.0) -> pd.DataFrame:
    """Add `<col>100k` columns holding col / divisor."""
    df = df.copy()
    for col in columns:
        df[f"{col}100k"] = df[col] / divisor
    return df


@dataclass
class SampleSummary:
    """Row counts through sample construction."""

    n_merged: int = 0
    n_households: int = 0
    n_analysis: int = 0
    n_ratio_missing: int = 0
    analysis_implicate: int = 1
    notes: list[str] = field(default_factory=list)


class AnalysisSampleBuilder:
    """Builds the regression sample from the merged SCF table."""

    def __init__(
        self,
        limits: tuple[float, float] | None = None,
        divisor: float | None = None,
        analysis_implicate: int | None = None,
    ):
        settings = get_settings()
        self.limits = limits or (settings.winsor_lower, settings.winsor_upper)
        self.divisor = divisor or settings.rescale_divisor
        self.analysis_implicate = (
            analysis_implicate if analysis_implicate is not None else settings.analysis_implicate
        )
        self.summary = SampleSummary(analysis_implicate=self.analysis_implicate)

    def build_all_implicates(self, merged: pd.DataFrame) -> pd.DataFrame:
        """Apply every transformation, keeping all implicates."""
        self.summary = SampleSummary(
            n_merged=len(merged), analysis_implicate=self.analysis_implicate
        )

        df = winsorize_by_group(merged, WEALTH_COLUMNS, limits=self.limits)
        df[RATIO_COLUMN] = wealth_income_ratio(df["networth"], df["income"])
        df = add_dummies(df)
        df = rescale(df, RESCALE_COLUMNS, divisor=self.divisor)
        df = winsorize_by_group(df, [RATIO_COLUMN], limits=self.limits)

        n_missing = int(df[RATIO_COLUMN].isna().sum())
        self.summary.n_ratio_missing = n_missing
        if n_missing:
            self.summary.notes.append(
                f"{n_missing} rows with zero or missing income have no wealth/income ratio"
            )
            logger.info(f"{n_missing:,} rows have an undefined wealth/income ratio")

        return df

    def build(self, merged: pd.DataFrame) -> pd.DataFrame:
        """
        Build the analysis sample.

        Args:
            merged: Output of SCFLoader.load()

        Returns:
            Transformed table restricted to the analysis implicate
        """
        df = self.build_all_implicates(merged)

        sample = df[df["implicate"] == self.analysis_implicate].reset_index(drop=True)
        if sample.empty:
            raise ValueError(f"No rows for implicate {self.analysis_implicate}")

        self.summary.n_households = int(merged["yy1"].nunique())
        self.summary.n_analysis = len(sample)
        logger.info(
            f"Analysis sample: implicate {self.analysis_implicate}, "
            f"{len(sample):,} households"
        )
        return sample
