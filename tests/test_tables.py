"""
Tests for regression table export.
"""

import pandas as pd
import pytest

from scfwealth.model.median_regression import (
    EstimationFailure,
    MedianRegressionModel,
    QuantRegResult,
    OUTCOMES,
)
from scfwealth.output.tables import (
    RegressionTable,
    TableColumn,
    panel_table,
    significance_stars,
    summary_table,
    write_tables,
)


def make_result(outcome: str, literacy: str, coef: float, se: float, pvalue: float) -> QuantRegResult:
    terms = ["const", literacy, "female", "income100k"]
    return QuantRegResult(
        spec_name=f"{outcome}__{literacy}",
        outcome=outcome,
        literacy=literacy,
        quantile=0.5,
        params=pd.Series([1.0, coef, -0.25, 0.5], index=terms),
        std_errors=pd.Series([0.1, se, 0.1, 0.05], index=terms),
        pvalues=pd.Series([0.5, pvalue, 0.012, 0.0001], index=terms),
        conf_int=pd.DataFrame({0: [0.0] * 4, 1: [1.0] * 4}, index=terms),
        nobs=5777,
        pseudo_r2=0.21,
        converged=True,
        formula=f"{outcome} ~ {literacy} + female + income100k",
    )


@pytest.fixture
def model():
    """Model holding synthetic results for all eight fits."""
    model = MedianRegressionModel(pd.DataFrame())
    for literacy in ["finlit", "finlit_3c"]:
        for i, outcome in enumerate(OUTCOMES):
            result = make_result(outcome, literacy, 0.4123 + i, 0.0512, 0.003)
            model.results[result.spec_name] = result
    return model


class TestSignificanceStars:
    """Test star thresholds."""

    @pytest.mark.parametrize(
        "pvalue, stars",
        [
            (0.0001, "***"),
            (0.0099, "***"),
            (0.01, "**"),
            (0.049, "**"),
            (0.05, "*"),
            (0.099, "*"),
            (0.10, ""),
            (0.5, ""),
            (float("nan"), ""),
        ],
    )
    def test_thresholds(self, pvalue, stars):
        assert significance_stars(pvalue) == stars


class TestRegressionTable:
    """Test table rendering."""

    def test_panel_a_text(self, model):
        text = panel_table(model, "finlit").to_text()

        assert text.startswith("Panel A: FinLit Index (0-3)")
        assert "FinLit Score" in text
        assert "0.412***" in text
        assert "(0.051)" in text
        assert "Net Worth" in text
        assert "Wealth/Income" in text
        assert "Observations" in text
        assert "5,777" in text
        assert "*p<0.1; **p<0.05; ***p<0.01" in text

    def test_panel_keeps_only_literacy(self, model):
        text = panel_table(model, "finlit_3c").to_text()

        assert "All Big Three Correct" in text
        assert "Female" not in text
        assert "Income ($100k)" not in text

    def test_digits(self, model):
        text = panel_table(model, "finlit", digits=2).to_text()
        assert "0.41***" in text
        assert "0.412" not in text

    def test_summary_table_columns(self, model):
        table = summary_table(model)
        text = table.to_text()

        assert len(table.columns) == 8
        assert "Net Worth (A)" in text
        assert "Net Worth (B)" in text
        assert "FinLit Score" in text
        assert "All Big Three Correct" in text
        assert "Female" in text
        assert "-0.250**" in text
        assert "Income ($100k)" in text

    def test_failed_column_reported(self, model):
        del model.results["fin100k__finlit"]
        model.failures["fin100k__finlit"] = EstimationFailure(
            spec_name="fin100k__finlit",
            outcome="fin100k",
            literacy="finlit",
            message="Too few observations",
        )
        text = panel_table(model, "finlit").to_text()

        assert "(2) not estimated: Too few observations" in text
        assert "Fin Assets" in text

    def test_non_converged_flagged(self, model):
        model.results["rwlth_incm__finlit"].converged = False
        text = panel_table(model, "finlit").to_text()
        assert "(4) iteration limit reached" in text

    def test_latex(self, model):
        tex = panel_table(model, "finlit").to_latex()

        assert "\\begin{tabular}" in tex
        assert "\\end{table}" in tex
        assert "$0.412^{***}$" in tex
        assert "(0.051)" in tex
        assert "5,777" in tex
        assert "Wealth/Income" in tex

    def test_latex_cells_in_math_mode(self, model):
        model.results["fin100k__finlit"] = make_result("fin100k", "finlit", -0.4, 0.3, 0.5)
        tex = panel_table(model, "finlit").to_latex()

        assert "$-0.400$" in tex
        assert "$(0.300)$" in tex
        assert "$(0.051)$" in tex
        assert " -0.400 " not in tex

    def test_latex_escapes_labels(self):
        table = RegressionTable(
            title="Income & wealth_ratio",
            columns=[TableColumn(label="A")],
            keep=[],
        )
        tex = table.to_latex()
        assert "Income \\& wealth\\_ratio" in tex


class TestWriteTables:
    """Test file output."""

    def test_writes_three_tables(self, model, tmp_path):
        paths = write_tables(model, tmp_path / "tables")

        names = sorted(p.name for p in paths)
        assert names == [
            "table3_summary.tex",
            "table3_summary.txt",
            "table3a.tex",
            "table3a.txt",
            "table3b.tex",
            "table3b.txt",
        ]
        assert all(p.exists() for p in paths)
        assert "Panel B: All Big Three Correct" in (tmp_path / "tables" / "table3b.txt").read_text()
