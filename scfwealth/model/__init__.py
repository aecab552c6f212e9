"""
Variable construction and estimation modules.
"""

from scfwealth.model.variables import (
    AnalysisSampleBuilder,
    winsorize_by_group,
    winsorization_bounds,
    wealth_income_ratio,
)
from scfwealth.model.median_regression import (
    MedianRegressionModel,
    MedianRegressionSpec,
    build_specs,
    estimate_median_regressions,
)

__all__ = [
    "AnalysisSampleBuilder",
    "winsorize_by_group",
    "winsorization_bounds",
    "wealth_income_ratio",
    "MedianRegressionModel",
    "MedianRegressionSpec",
    "build_specs",
    "estimate_median_regressions",
]
