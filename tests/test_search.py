import time
import types

import numpy as np
import pytest

from diagnostics.residual_diagnostics import DiagnosticSuite, DiagnosticVerdict
from luxury_forecaster_src.errors import DimensionMismatch, EstimationFailure
from luxury_forecaster_src.estimation_utils import ArimaxEstimator, ModelOrder
from luxury_forecaster_src.regressor_utils import RegressorSet
from luxury_forecaster_src.search_utils import (
    RANKED_TABLE_COLUMNS, CandidateEvaluation, CandidateFailure, ModelSearch, SearchResult, best_across
)

PASS = DiagnosticVerdict(0.5, 0.5, 0.5)
FAIL = DiagnosticVerdict(0.01, 0.5, 0.5)


def _candidate(index, aic, bic, verdict=PASS, order=(1, 1, 1)):
    model = types.SimpleNamespace(aic=aic, bic=bic)
    return CandidateEvaluation(index=index, order=ModelOrder.coerce(order), model=model, verdict=verdict)


class FailingOnAr2(ArimaxEstimator):
    """Estimator that fails every candidate with p == 2."""

    def fit(self, series, order, regressors):
        order = ModelOrder.coerce(order)
        if order.p == 2:
            raise EstimationFailure("forced failure", order=order)
        return super().fit(series, order, regressors)


class DiagnosticsRaisingOnAr2(DiagnosticSuite):
    """Diagnostics that blow up for every candidate with p == 2."""

    def evaluate(self, model):
        if model.order.p == 2:
            raise RuntimeError("diagnostics blew up")
        return super().evaluate(model)


def test_end_to_end_two_orders(series, macro_set):
    result = ModelSearch().search(series, macro_set, [(1, 1, 1), (2, 1, 1)])

    assert result.regressor_set == "macro"
    assert result.n_candidates == 2
    assert len(result.successes) >= 1
    assert all(np.isfinite(c.aic) for c in result.successes)

    ranked_all = result.ranked(valid_only=False)
    assert [c.aic for c in ranked_all] == sorted(c.aic for c in ranked_all)
    if result.has_valid:
        assert result.best().aic == min(c.aic for c in result.valid)
        assert result.best().valid


def test_partition_covers_grid(series, macro_set):
    grid = [(1, 1, 1), (2, 1, 1), (1, 1, 0), (2, 1, 0)]
    result = ModelSearch(estimator=FailingOnAr2(), max_workers=2).search(series, macro_set, grid)

    assert len(result.successes) + len(result.failures) == len(grid)
    assert [f.order.p for f in result.failures] == [2, 2]
    assert all(f.reason == "forced failure" for f in result.failures)
    assert [c.index for c in result.successes] == [0, 2]


def test_failure_frame_lists_reasons(series, macro_set):
    result = ModelSearch(estimator=FailingOnAr2()).search(series, macro_set, [(2, 1, 1)])
    frame = result.failure_frame()
    assert frame.to_dict("records") == [{"order": "(2,1,1)", "reason": "forced failure"}]
    assert not result.has_valid
    assert result.best() is None
    assert result.to_frame().empty


def test_misaligned_regressors_raise_before_search(series, luxury_frame):
    shifted = RegressorSet.from_frame("macro", luxury_frame.loc[2005:], ["GDP"])
    with pytest.raises(DimensionMismatch):
        ModelSearch().search(series, shifted, [(1, 1, 1)])


def test_ranking_by_aic_then_bic_then_grid_position():
    candidates = (
        _candidate(0, aic=10.0, bic=12.0),
        _candidate(1, aic=9.0, bic=15.0),
        _candidate(2, aic=9.0, bic=11.0),
        _candidate(3, aic=9.0, bic=11.0),
        _candidate(4, aic=1.0, bic=1.0, verdict=FAIL),
    )
    result = SearchResult("macro", successes=candidates, failures=())

    assert [c.index for c in result.ranked()] == [2, 3, 1, 0]
    assert [c.index for c in result.ranked(valid_only=False)] == [4, 2, 3, 1, 0]
    ranked = result.ranked()
    for a, b in zip(ranked, ranked[1:]):
        assert a.aic <= b.aic


def test_ranked_table_columns():
    result = SearchResult("macro", successes=(_candidate(0, 3.0, 4.0), _candidate(1, 1.0, 2.0, FAIL)), failures=())
    table = result.to_frame(valid_only=False)
    assert list(table.columns) == RANKED_TABLE_COLUMNS
    assert table["valid"].tolist() == [False, True]
    assert len(result.to_frame()) == 1


def test_no_valid_candidate_is_a_normal_result():
    result = SearchResult("macro", successes=(_candidate(0, 5.0, 6.0, FAIL),), failures=())
    assert not result.has_valid
    assert result.ranked() == []
    assert best_across({"macro": result}) is None
    assert best_across({"macro": result}, allow_invalid=True).index == 0


def test_best_across_prefers_lowest_aic_valid():
    macro = SearchResult("macro", successes=(_candidate(0, 8.0, 9.0), _candidate(1, 2.0, 3.0, FAIL)), failures=())
    wealth = SearchResult("wealth", successes=(_candidate(0, 6.0, 7.0),), failures=())
    best = best_across({"macro": macro, "wealth": wealth})
    assert best.aic == 6.0

    # A valid candidate is preferred over a lower-AIC invalid one even with the fallback enabled
    assert best_across({"macro": macro, "wealth": wealth}, allow_invalid=True).aic == 6.0


def test_timeout_records_unfinished_candidates(series, macro_set):
    cached = ArimaxEstimator().fit(series, (1, 1, 1), macro_set)

    class SlowOnAr3(ArimaxEstimator):
        def fit(self, series, order, regressors):
            order = ModelOrder.coerce(order)
            if order.p == 3:
                time.sleep(3.0)
            return cached

    search = ModelSearch(estimator=SlowOnAr3(), max_workers=3, timeout=1.0)
    result = search.search(series, macro_set, [(1, 1, 1), (3, 1, 1), (1, 1, 0)])

    assert result.n_candidates == 3
    assert [f.order for f in result.failures] == [ModelOrder(3, 1, 1)]
    assert "timed out" in result.failures[0].reason
    assert len(result.successes) == 2


def test_search_all_keys_by_set_name(series, macro_set, wealth_set):
    results = ModelSearch().search_all(series, [macro_set, wealth_set], [(1, 1, 0)])
    assert list(results) == ["macro", "wealth"]
    assert all(r.n_candidates == 1 for r in results.values())


def test_evaluate_candidate_returns_failure_instead_of_raising(series, macro_set):
    outcome = ModelSearch(estimator=FailingOnAr2()).evaluate_candidate(0, series, macro_set, ModelOrder(2, 1, 1))
    assert isinstance(outcome, CandidateFailure)
    assert outcome.order == ModelOrder(2, 1, 1)
    assert outcome.reason == "forced failure"


def test_unexpected_diagnostics_error_is_recorded_per_candidate(series, macro_set):
    grid = [(1, 1, 1), (2, 1, 1), (1, 1, 0)]
    result = ModelSearch(diagnostics=DiagnosticsRaisingOnAr2(), max_workers=2).search(series, macro_set, grid)

    assert result.n_candidates == len(grid)
    assert [c.index for c in result.successes] == [0, 2]
    assert [f.order for f in result.failures] == [ModelOrder(2, 1, 1)]
    assert "RuntimeError" in result.failures[0].reason


def test_flat_covariate_reaches_breusch_pagan(series, luxury_frame):
    years = list(luxury_frame.index)
    flat_set = RegressorSet.build("flat", {"GDP": luxury_frame["GDP"], "Flat": [1.0] * len(years)}, years)
    result = ModelSearch().search(series, flat_set, [(1, 1, 1)])

    assert len(result.successes) == 1
    assert not result.failures
    verdict = result.successes[0].verdict
    assert np.isnan(verdict.breusch_pagan_p)
    assert "zero-variance" in verdict.notes["breusch_pagan"]
    assert not verdict.valid
    assert best_across({"flat": result}, allow_invalid=True) is result.successes[0]
