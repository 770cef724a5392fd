# luxury_forecaster_src/search_utils.py

import pandas as pd
from concurrent.futures import ThreadPoolExecutor, as_completed, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
from tqdm.auto import tqdm
import logging

from diagnostics.residual_diagnostics import DiagnosticSuite, DiagnosticVerdict

from .errors import EstimationFailure
from .estimation_utils import ArimaxEstimator, FittedModel, ModelOrder
from .regressor_utils import RegressorSet
from .series_utils import SeriesStore

logger = logging.getLogger(__name__)

RANKED_TABLE_COLUMNS = [
    "order", "AIC", "BIC", "ljung_box_p", "shapiro_wilk_p", "breusch_pagan_p", "valid",
]


@dataclass(frozen=True)
class CandidateEvaluation:
    """A candidate that estimated successfully, with its diagnostic verdict."""

    index: int
    order: ModelOrder
    model: FittedModel = field(repr=False)
    verdict: DiagnosticVerdict

    @property
    def aic(self) -> float:
        return self.model.aic

    @property
    def bic(self) -> float:
        return self.model.bic

    @property
    def valid(self) -> bool:
        return self.verdict.valid

    def rank_key(self) -> Tuple[float, float, int]:
        """AIC, then BIC, then position in the grid."""
        return (self.model.aic, self.model.bic, self.index)

    def table_row(self) -> Dict[str, object]:
        return {
            "order": str(self.order),
            "AIC": self.model.aic,
            "BIC": self.model.bic,
            "ljung_box_p": self.verdict.ljung_box_p,
            "shapiro_wilk_p": self.verdict.shapiro_wilk_p,
            "breusch_pagan_p": self.verdict.breusch_pagan_p,
            "valid": self.verdict.valid,
        }


@dataclass(frozen=True)
class CandidateFailure:
    """A candidate whose estimation failed, with the reason."""

    index: int
    order: ModelOrder
    reason: str


CandidateOutcome = Union[CandidateEvaluation, CandidateFailure]


@dataclass(frozen=True)
class SearchResult:
    """
    Outcome of a grid search over one regressor set.

    ``successes`` and ``failures`` are both ordered by grid position and
    together cover the whole grid. Ranking is computed on demand.
    """

    regressor_set: str
    successes: Tuple[CandidateEvaluation, ...]
    failures: Tuple[CandidateFailure, ...]
    elapsed_seconds: float = 0.0

    @property
    def n_candidates(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def valid(self) -> Tuple[CandidateEvaluation, ...]:
        return tuple(c for c in self.successes if c.valid)

    @property
    def has_valid(self) -> bool:
        """False when no candidate passed diagnostics; not an error."""
        return any(c.valid for c in self.successes)

    def ranked(self, valid_only: bool = True) -> List[CandidateEvaluation]:
        """
        Candidates ordered ascending by AIC, ties broken by BIC then grid order.

        With ``valid_only=False`` every successfully fitted candidate is ranked,
        including those that failed diagnostics.
        """
        pool = self.valid if valid_only else self.successes
        return sorted(pool, key=CandidateEvaluation.rank_key)

    def best(self, valid_only: bool = True) -> Optional[CandidateEvaluation]:
        ranked = self.ranked(valid_only)
        return ranked[0] if ranked else None

    def to_frame(self, valid_only: bool = True) -> pd.DataFrame:
        """Ranked model table: order, AIC, BIC, three p-values and the valid flag."""
        rows = [c.table_row() for c in self.ranked(valid_only)]
        return pd.DataFrame(rows, columns=RANKED_TABLE_COLUMNS)

    def failure_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"order": str(f.order), "reason": f.reason} for f in self.failures],
            columns=["order", "reason"],
        )


class ModelSearch:
    """
    Evaluate a grid of ARIMAX orders against one regressor set.

    Each candidate is fit and diagnosed independently in a thread pool; a
    failing candidate is recorded and never stops the others. Results are
    merged in grid order so the ranking is reproducible.

    Parameters
    ----------
    estimator : ArimaxEstimator, optional
    diagnostics : DiagnosticSuite, optional
    max_workers : int, optional
        Thread pool size (``None`` lets ``concurrent.futures`` decide).
    timeout : float, optional
        Seconds to wait for the whole grid. Candidates still running are
        abandoned and recorded as failures; finished ones are kept.
    show_progress : bool, default=False
        Display a tqdm progress bar.
    """

    def __init__(self,
                 estimator: Optional[ArimaxEstimator] = None,
                 diagnostics: Optional[DiagnosticSuite] = None,
                 max_workers: Optional[int] = None,
                 timeout: Optional[float] = None,
                 show_progress: bool = False):
        self.estimator = estimator or ArimaxEstimator()
        self.diagnostics = diagnostics or DiagnosticSuite()
        self.max_workers = max_workers
        self.timeout = timeout
        self.show_progress = show_progress

    def evaluate_candidate(self,
                           index: int,
                           series: SeriesStore,
                           regressors: RegressorSet,
                           order: ModelOrder) -> CandidateOutcome:
        """
        Fit and diagnose one candidate, returning a tagged outcome.

        Any error raised while fitting or diagnosing is recorded as a
        CandidateFailure so the rest of the grid still completes.
        """
        try:
            model = self.estimator.fit(series, order, regressors)
        except EstimationFailure as e:
            logger.debug("ARIMAX%s on '%s' failed: %s", order, regressors.name, e)
            return CandidateFailure(index=index, order=order, reason=str(e))
        except Exception as e:
            logger.warning("ARIMAX%s on '%s' raised during estimation: %s: %s",
                           order, regressors.name, type(e).__name__, e)
            return CandidateFailure(index=index, order=order,
                                    reason=f"estimation error: {type(e).__name__}: {e}")
        try:
            verdict = self.diagnostics.evaluate(model)
        except Exception as e:
            logger.warning("Diagnostics for ARIMAX%s on '%s' raised: %s: %s",
                           order, regressors.name, type(e).__name__, e)
            return CandidateFailure(index=index, order=order,
                                    reason=f"diagnostics error: {type(e).__name__}: {e}")
        return CandidateEvaluation(index=index, order=order, model=model, verdict=verdict)

    def search(self,
               series: SeriesStore,
               regressors: RegressorSet,
               order_grid: Iterable) -> SearchResult:
        """
        Grid-search ARIMAX orders and collect successes and failures.

        Parameters
        ----------
        series : SeriesStore
            Level series.
        regressors : RegressorSet
            Covariates aligned by year to ``series``.
        order_grid : Iterable
            Finite collection of ModelOrder or (p, d, q) triples.

        Returns
        -------
        SearchResult

        Raises
        ------
        DimensionMismatch
            If the regressor years do not match the series years.
        """
        orders = [ModelOrder.coerce(o) for o in order_grid]
        self.estimator.check_alignment(series, regressors)

        start_time = datetime.now()
        logger.info("Grid search over %d ARIMAX orders with regressor set '%s' %s",
                    len(orders), regressors.name, regressors.columns)

        outcomes: Dict[int, CandidateOutcome] = {}
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        futures = {
            executor.submit(self.evaluate_candidate, i, series, regressors, order): i
            for i, order in enumerate(orders)
        }
        try:
            progress = tqdm(
                as_completed(futures, timeout=self.timeout),
                total=len(futures),
                desc=f"Grid search ARIMAX [{regressors.name}]",
                disable=not self.show_progress,
            )
            for future in progress:
                outcomes[futures[future]] = future.result()
        except FuturesTimeoutError:
            logger.warning("Grid search for '%s' timed out after %.1fs; %d of %d candidates finished",
                           regressors.name, self.timeout, len(outcomes), len(orders))
        finally:
            executor.shutdown(wait=len(outcomes) == len(orders), cancel_futures=True)

        for i, order in enumerate(orders):
            if i not in outcomes:
                outcomes[i] = CandidateFailure(
                    index=i, order=order, reason="search timed out before candidate completed"
                )

        merged = [outcomes[i] for i in range(len(orders))]
        result = SearchResult(
            regressor_set=regressors.name,
            successes=tuple(o for o in merged if isinstance(o, CandidateEvaluation)),
            failures=tuple(o for o in merged if isinstance(o, CandidateFailure)),
            elapsed_seconds=(datetime.now() - start_time).total_seconds(),
        )

        logger.info("Grid search for '%s' completed: %d fitted, %d failed, %d valid",
                    regressors.name, len(result.successes), len(result.failures), len(result.valid))
        if not result.has_valid:
            logger.warning("No candidate for '%s' passed residual diagnostics", regressors.name)
        return result

    def search_all(self,
                   series: SeriesStore,
                   regressor_sets: Iterable[RegressorSet],
                   order_grid: Iterable) -> Dict[str, SearchResult]:
        """Run ``search`` for each regressor set, keyed by set name."""
        orders = [ModelOrder.coerce(o) for o in order_grid]
        return {rs.name: self.search(series, rs, orders) for rs in regressor_sets}


def best_across(results: Mapping[str, SearchResult],
                allow_invalid: bool = False) -> Optional[CandidateEvaluation]:
    """
    Best candidate over several regressor sets.

    Valid candidates are compared by AIC then BIC. When none is valid and
    ``allow_invalid`` is set, the unfiltered ranking is used instead.
    """
    def _pick(valid_only: bool) -> Optional[CandidateEvaluation]:
        pool = []
        for set_order, (name, result) in enumerate(results.items()):
            best = result.best(valid_only)
            if best is not None:
                pool.append((best.aic, best.bic, set_order, best))
        if not pool:
            return None
        return min(pool, key=lambda item: item[:3])[3]

    choice = _pick(valid_only=True)
    if choice is None and allow_invalid:
        logger.warning("No valid candidate in any regressor set; falling back to unfiltered AIC ranking")
        choice = _pick(valid_only=False)
    return choice
