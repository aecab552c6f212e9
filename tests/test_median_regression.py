"""
Tests for weighted median regressions.
"""

import numpy as np
import pandas as pd
import pytest

from scfwealth.model.median_regression import (
    CONTROLS,
    OUTCOMES,
    MedianRegressionModel,
    MedianRegressionSpec,
    build_specs,
    check_loss,
    estimate_median_regressions,
    weighted_quantile,
)
from scfwealth.model.variables import AnalysisSampleBuilder
from tests.fixtures.synthetic_scf import make_merged_table


@pytest.fixture(scope="module")
def sample():
    """Analysis sample with networth = 100k + 60k * finlit + noise."""
    merged = make_merged_table(n_households=400, beta_finlit=60000.0)
    return AnalysisSampleBuilder(analysis_implicate=1).build(merged)


class TestSpecs:
    """Test the specification grid."""

    def test_eight_specs(self):
        specs = build_specs()
        assert len(specs) == 8
        assert {s.outcome for s in specs} == set(OUTCOMES)
        assert {s.literacy for s in specs} == {"finlit", "finlit_3c"}

    def test_controls_shared(self):
        specs = build_specs()
        for spec in specs:
            assert spec.controls == CONTROLS
            assert spec.regressors == [spec.literacy] + CONTROLS

    def test_median_and_weight(self):
        for spec in build_specs():
            assert spec.quantile == 0.5
            assert spec.weight == "x42001"

    def test_formula(self):
        spec = MedianRegressionSpec(name="t", outcome="fin100k", literacy="finlit", controls=["age"])
        assert spec.formula == "fin100k ~ finlit + age"


class TestMedianRegressionModel:
    """Test model fitting."""

    def test_recovers_finlit_effect(self, sample):
        model = MedianRegressionModel(sample)
        spec = MedianRegressionSpec(name="nw", outcome="networth100k", literacy="finlit")
        result = model.fit(spec)

        # True effect is 0.6 ($60k per correct answer), attenuated by winsorizing
        assert result.params["finlit"] > 0
        assert 0.3 < result.params["finlit"] < 0.9
        assert result.pvalues["finlit"] < 0.01
        assert result.converged

    def test_result_contents(self, sample):
        model = MedianRegressionModel(sample)
        spec = MedianRegressionSpec(name="nw", outcome="networth100k", literacy="finlit")
        result = model.fit(spec)

        assert list(result.params.index) == ["const", "finlit"] + CONTROLS
        assert (result.std_errors > 0).all()
        assert result.nobs == len(sample)
        assert "nw" in model.results
        assert result.conf_int.shape == (len(CONTROLS) + 2, 2)

    def test_weights_matter(self, sample):
        spec = MedianRegressionSpec(name="w", outcome="networth100k", literacy="finlit")
        unweighted = MedianRegressionSpec(
            name="u", outcome="networth100k", literacy="finlit", weight=None
        )
        model = MedianRegressionModel(sample)
        weighted_params = model.fit(spec).params
        unweighted_params = model.fit(unweighted).params

        assert not np.allclose(weighted_params.values, unweighted_params.values)

    def test_weight_scale_invariant(self, sample):
        spec = MedianRegressionSpec(name="nw", outcome="networth100k", literacy="finlit")
        scaled = sample.copy()
        scaled["x42001"] = scaled["x42001"] * 1000

        a = MedianRegressionModel(sample).fit(spec).params
        b = MedianRegressionModel(scaled).fit(spec).params

        np.testing.assert_allclose(a.values, b.values, rtol=1e-6, atol=1e-8)

    def test_missing_outcome_rows_dropped(self, sample):
        data = sample.copy()
        data.loc[data.index[:25], "rwlth_incm"] = np.nan
        model = MedianRegressionModel(data)
        spec = MedianRegressionSpec(name="r", outcome="rwlth_incm", literacy="finlit")

        assert model.fit(spec).nobs == len(data) - 25

    def test_iteration_limit_flagged(self, sample):
        model = MedianRegressionModel(sample)
        spec = MedianRegressionSpec(
            name="short", outcome="networth100k", literacy="finlit", max_iter=1
        )
        result = model.fit(spec)

        assert not result.converged
        assert "iteration limit" in model.summary("short")


class TestPseudoR2:
    """Test the weighted Koenker-Machado pseudo R²."""

    def test_weighted_quantile(self):
        values = np.array([1.0, 2.0, 3.0, 4.0])

        assert weighted_quantile(values, np.ones(4), 0.5) == 2.0
        # heavy weight on the largest value moves the median to it
        assert weighted_quantile(values, np.array([1.0, 1.0, 1.0, 5.0]), 0.5) == 4.0

    def test_weighted_quantile_minimises_check_loss(self):
        rng = np.random.default_rng(3)
        values = rng.normal(size=51)
        weights = rng.uniform(0.1, 3.0, size=51)

        q = weighted_quantile(values, weights, 0.5)
        losses = [np.sum(weights * check_loss(values - c, 0.5)) for c in values]
        assert np.sum(weights * check_loss(values - q, 0.5)) == pytest.approx(min(losses))

    def test_matches_hand_computation(self, sample):
        spec = MedianRegressionSpec(name="nw", outcome="networth100k", literacy="finlit")
        result = MedianRegressionModel(sample).fit(spec)

        data = sample[[spec.outcome] + spec.regressors + ["x42001"]].dropna()
        y = data[spec.outcome].values
        X = np.column_stack([np.ones(len(data)), data[spec.regressors].values])
        w = data["x42001"].values / data["x42001"].values.mean()

        def rho(u):
            return u * (0.5 - (u < 0))

        fit_loss = np.sum(w * rho(y - X @ result.params.values))
        null_loss = min(np.sum(w * rho(y - c)) for c in y)

        assert result.pseudo_r2 == pytest.approx(1 - fit_loss / null_loss, rel=1e-9)
        assert 0 < result.pseudo_r2 < 1

    def test_unweighted_matches_statsmodels(self, sample):
        spec = MedianRegressionSpec(
            name="u", outcome="networth100k", literacy="finlit", weight=None
        )
        result = MedianRegressionModel(sample).fit(spec)

        assert result.pseudo_r2 == pytest.approx(result.statsmodels_result.prsquared, abs=1e-8)


class TestFitAll:
    """Test running the full grid."""

    def test_all_eight_fit(self, sample):
        model = estimate_median_regressions(sample)

        assert len(model.results) == 8
        assert not model.failures
        assert len(model.panel("finlit")) == 4
        assert len(model.panel("finlit_3c")) == 4

    def test_failure_isolated(self, sample):
        data = sample.copy()
        data["fin100k"] = np.nan
        model = MedianRegressionModel(data)
        model.fit_all(build_specs())

        assert set(model.failures) == {"fin100k__finlit", "fin100k__finlit_3c"}
        assert len(model.results) == 6
        failure = model.failures["fin100k__finlit"]
        assert failure.outcome == "fin100k"
        assert failure.literacy == "finlit"
        assert "Too few observations" in failure.message

    def test_missing_regressor_isolated(self, sample):
        data = sample.drop(columns=["finlit_3c"])
        model = MedianRegressionModel(data)
        model.fit_all(build_specs())

        assert len(model.failures) == 4
        assert all(f.literacy == "finlit_3c" for f in model.failures.values())
        assert len(model.results) == 4

    def test_coefficient_table(self, sample):
        model = estimate_median_regressions(sample)
        table = model.coefficient_table()

        assert isinstance(table, pd.DataFrame)
        assert len(table) == 8 * (len(CONTROLS) + 2)
        finlit = table[(table["term"] == "finlit") & (table["outcome"] == "networth100k")]
        assert len(finlit) == 1
        assert finlit["estimate"].iloc[0] > 0

    def test_summary_lists_failures(self, sample):
        data = sample.copy()
        data["nfin100k"] = np.nan
        model = estimate_median_regressions(data)

        text = model.summary()
        assert "FAILED nfin100k__finlit" in text
        assert "Specification: networth100k__finlit" in text
