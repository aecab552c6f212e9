"""
Weighted median regressions of wealth on financial literacy (Table 3).

For each outcome and each literacy measure:

    Q_0.5(y | x) = a + b * literacy + controls' g

Observations are weighted by the SCF survey weight (x42001). A weighted
check-loss problem sum_i w_i * rho(y_i - x_i'b) is equivalent to the
unweighted problem on (w_i * y_i, w_i * x_i), which is what QuantReg solves
here. Standard errors are QuantReg's robust kernel sandwich. The reported
pseudo R² is the weighted Koenker-Machado statistic on the original scale.

Panel A: continuous FinLit score (0-3)
Panel B: all Big Three questions answered correctly (finlit_3c)
"""

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.regression.quantile_regression import QuantReg
from statsmodels.tools.sm_exceptions import IterationLimitWarning

from config.settings import get_settings

logger = logging.getLogger(__name__)

CONTROLS = [
    "age",
    "female",
    "black",
    "hispanic",
    "raceoth",
    "ed_lshs",
    "ed_hs",
    "ed_sc",
    "married",
    "widowed",
    "ntmarried",
    "kids",
    "slfemply",
    "rtrddsbl",
    "ntworkng",
    "income100k",
]

OUTCOMES = ["networth100k", "fin100k", "nfin100k", "rwlth_incm"]

OUTCOME_LABELS = {
    "networth100k": "Net Worth",
    "fin100k": "Fin Assets",
    "nfin100k": "Non-Fin Assets",
    "rwlth_incm": "Wealth/Income",
}

# literacy regressor -> panel
LITERACY_MEASURES = {
    "finlit": "A",
    "finlit_3c": "B",
}

LITERACY_LABELS = {
    "finlit": "FinLit Score",
    "finlit_3c": "All Big Three Correct",
}

WEIGHT = "x42001"


@dataclass
class MedianRegressionSpec:
    """Specification for one weighted quantile regression."""

    name: str
    outcome: str
    literacy: str
    controls: list[str] = field(default_factory=lambda: list(CONTROLS))
    weight: str | None = WEIGHT
    quantile: float = 0.5
    max_iter: int = 5000
    p_tol: float = 1e-6

    @property
    def regressors(self) -> list[str]:
        return [self.literacy] + self.controls

    @property
    def formula(self) -> str:
        return f"{self.outcome} ~ {' + '.join(self.regressors)}"


def build_specs(
    outcomes: list[str] | None = None,
    literacy_measures: list[str] | None = None,
    controls: list[str] | None = None,
) -> list[MedianRegressionSpec]:
    """
    Build the outcome x literacy grid of specifications.

    The control vector is shared by every specification.
    """
    settings = get_settings()
    outcomes = outcomes or OUTCOMES
    literacy_measures = literacy_measures or list(LITERACY_MEASURES)
    controls = list(controls or CONTROLS)

    specs = []
    for literacy in literacy_measures:
        for outcome in outcomes:
            specs.append(
                MedianRegressionSpec(
                    name=f"{outcome}__{literacy}",
                    outcome=outcome,
                    literacy=literacy,
                    controls=controls,
                    quantile=settings.quantile,
                    max_iter=settings.max_iter,
                    p_tol=settings.p_tol,
                )
            )
    return specs


def check_loss(residuals: np.ndarray, quantile: float) -> np.ndarray:
    """Koenker-Bassett check function rho_tau(u) = u * (tau - 1{u < 0})."""
    residuals = np.asarray(residuals, dtype=float)
    return residuals * (quantile - (residuals < 0))


def weighted_quantile(values: np.ndarray, weights: np.ndarray, quantile: float) -> float:
    """
    Weighted tau-quantile: the smallest value whose cumulative weight share
    reaches tau. It minimises sum_i w_i * rho_tau(y_i - c) over c.
    """
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    order = np.argsort(values, kind="mergesort")
    cum_share = np.cumsum(weights[order]) / weights.sum()
    idx = int(np.searchsorted(cum_share, quantile, side="left"))
    return float(values[order][min(idx, len(values) - 1)])


def weighted_pseudo_r2(
    y: np.ndarray,
    fitted: np.ndarray,
    weights: np.ndarray,
    quantile: float,
) -> float:
    """
    Koenker-Machado pseudo R² for a weighted quantile regression.

    1 - sum w * rho(y - X b) / sum w * rho(y - q_w), where q_w is the
    weighted tau-quantile of y (the intercept-only fit).
    """
    y = np.asarray(y, dtype=float)
    weights = np.asarray(weights, dtype=float)
    q_null = weighted_quantile(y, weights, quantile)
    fit_loss = np.sum(weights * check_loss(y - np.asarray(fitted, dtype=float), quantile))
    null_loss = np.sum(weights * check_loss(y - q_null, quantile))
    if null_loss == 0:
        return float("nan")
    return float(1 - fit_loss / null_loss)


@dataclass
class QuantRegResult:
    """Results from a weighted quantile regression."""

    spec_name: str
    outcome: str
    literacy: str
    quantile: float
    params: pd.Series
    std_errors: pd.Series
    pvalues: pd.Series
    conf_int: pd.DataFrame
    nobs: int
    pseudo_r2: float
    converged: bool
    formula: str
    statsmodels_result: object | None = None


@dataclass
class EstimationFailure:
    """An outcome/literacy pair that could not be estimated."""

    spec_name: str
    outcome: str
    literacy: str
    message: str


class MedianRegressionModel:
    """Weighted median regression model for the analysis sample."""

    def __init__(self, data: pd.DataFrame):
        """
        Initialize with the analysis sample.

        Args:
            data: One row per household (single implicate)
        """
        self.data = data.copy()
        self.results: dict[str, QuantRegResult] = {}
        self.failures: dict[str, EstimationFailure] = {}

    def _prepare(
        self, spec: MedianRegressionSpec
    ) -> tuple[pd.Series, pd.DataFrame, pd.Series]:
        """Outcome, design matrix (with constant) and mean-one weights."""
        required = [spec.outcome] + spec.regressors
        if spec.weight:
            required.append(spec.weight)

        missing = [c for c in required if c not in self.data.columns]
        if missing:
            raise KeyError(f"Columns not in analysis sample: {missing}")

        data = self.data[required].dropna()
        if spec.weight:
            data = data[data[spec.weight] > 0]

        if len(data) <= len(spec.regressors) + 1:
            raise ValueError(
                f"Too few observations for {spec.name}: {len(data)} "
                f"for {len(spec.regressors) + 1} parameters"
            )

        y = data[spec.outcome].astype(float)
        X = sm.add_constant(data[spec.regressors].astype(float), has_constant="add")

        if spec.weight:
            # Normalising to mean one leaves the minimiser unchanged
            w = data[spec.weight].astype(float)
            w = w / w.mean()
        else:
            w = pd.Series(1.0, index=data.index)

        return y, X, w

    def fit(self, spec: MedianRegressionSpec) -> QuantRegResult:
        """
        Fit one weighted quantile regression.

        Args:
            spec: Regression specification

        Returns:
            QuantRegResult with estimates and robust inference
        """
        y, X, w = self._prepare(spec)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", IterationLimitWarning)
            result = QuantReg(y * w, X.mul(w, axis=0)).fit(
                q=spec.quantile,
                vcov="robust",
                max_iter=spec.max_iter,
                p_tol=spec.p_tol,
            )

        converged = not any(issubclass(c.category, IterationLimitWarning) for c in caught)
        if not converged:
            logger.warning(
                f"{spec.name}: iteration limit ({spec.max_iter}) reached, "
                "estimates may not have converged"
            )

        reg_result = QuantRegResult(
            spec_name=spec.name,
            outcome=spec.outcome,
            literacy=spec.literacy,
            quantile=spec.quantile,
            params=result.params,
            std_errors=result.bse,
            pvalues=result.pvalues,
            conf_int=result.conf_int(),
            nobs=int(result.nobs),
            pseudo_r2=weighted_pseudo_r2(
                y.values, X.values @ result.params.values, w.values, spec.quantile
            ),
            converged=converged,
            formula=spec.formula,
            statsmodels_result=result,
        )

        self.results[spec.name] = reg_result
        return reg_result

    def fit_all(
        self, specs: list[MedianRegressionSpec] | None = None
    ) -> dict[str, QuantRegResult]:
        """
        Fit every specification.

        A failing pair is logged and recorded in `failures`; the remaining
        pairs are still estimated.
        """
        if specs is None:
            specs = build_specs()

        for spec in specs:
            logger.info(f"Fitting {spec.outcome} on {spec.literacy} (tau={spec.quantile})")
            try:
                self.fit(spec)
            except Exception as e:
                logger.error(f"Estimation failed for {spec.outcome} / {spec.literacy}: {e}")
                self.failures[spec.name] = EstimationFailure(
                    spec_name=spec.name,
                    outcome=spec.outcome,
                    literacy=spec.literacy,
                    message=str(e),
                )

        return self.results

    def panel(self, literacy: str) -> list[QuantRegResult]:
        """Results for one literacy measure, in outcome order."""
        return [r for r in self.results.values() if r.literacy == literacy]

    def summary(self, spec_name: str | None = None) -> str:
        """Print summary of results."""
        if spec_name:
            results = {spec_name: self.results[spec_name]}
        else:
            results = self.results

        lines = []
        for name, res in results.items():
            lines.append(f"\n{'='*70}")
            lines.append(f"Specification: {name}")
            lines.append(f"{'='*70}")
            lines.append(f"Formula: {res.formula}")
            lines.append(f"Quantile: {res.quantile}")
            lines.append(f"N obs: {res.nobs:,}")
            lines.append(f"Pseudo R²: {res.pseudo_r2:.4f}")
            if not res.converged:
                lines.append("WARNING: iteration limit reached")
            lines.append(f"\n{'Coefficient':<30} {'Estimate':>12} {'Std.Err':>12} {'p-value':>12}")
            lines.append("-" * 70)

            for var in res.params.index:
                coef = res.params[var]
                se = res.std_errors[var]
                pval = res.pvalues[var]
                stars = ""
                if pval < 0.01:
                    stars = "***"
                elif pval < 0.05:
                    stars = "**"
                elif pval < 0.1:
                    stars = "*"
                lines.append(f"{var:<30} {coef:>12.4f} {se:>12.4f} {pval:>10.4f}{stars}")

        for failure in self.failures.values():
            lines.append(f"\nFAILED {failure.spec_name}: {failure.message}")

        return "\n".join(lines)

    def coefficient_table(self) -> pd.DataFrame:
        """Tidy table of every coefficient across fitted specifications."""
        rows = []
        for res in self.results.values():
            for var in res.params.index:
                rows.append({
                    "outcome": res.outcome,
                    "literacy": res.literacy,
                    "term": var,
                    "estimate": res.params[var],
                    "std_error": res.std_errors[var],
                    "pvalue": res.pvalues[var],
                    "nobs": res.nobs,
                    "converged": res.converged,
                })
        return pd.DataFrame(rows)


def estimate_median_regressions(
    sample: pd.DataFrame,
    specs: list[MedianRegressionSpec] | None = None,
) -> MedianRegressionModel:
    """
    Convenience function to fit all Table 3 regressions.

    Args:
        sample: Analysis sample
        specs: Specifications (default: 4 outcomes x 2 literacy measures)

    Returns:
        Fitted model holding results and failures
    """
    model = MedianRegressionModel(sample)
    model.fit_all(specs)
    return model
