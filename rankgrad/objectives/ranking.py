"""Ranking objectives: query dispatcher over the LambdaRank and XE_NDCG engines."""

import numpy as np
from sklearn.base import BaseEstimator

from rankgrad.core.dcg import DCGCalculator
from rankgrad.core.parallel import get_num_threads, run_guided
from rankgrad.core.position_bias import PositionBiasModel
from rankgrad.objectives.lambdarank import LambdarankNDCG
from rankgrad.objectives.xendcg import RankXENDCG
from rankgrad.utils import (
    check_labels, check_query_boundaries, check_scores, check_weights,
    group_to_boundaries,
)

OBJECTIVE_ALIASES = {
    "lambdarank": "lambdarank",
    "lambdarank_ndcg": "lambdarank",
    "rank_xendcg": "rank_xendcg",
    "xendcg": "rank_xendcg",
    "xe_ndcg": "rank_xendcg",
    "xe_ndcg_mart": "rank_xendcg",
}


def resolve_objective_name(name):
    """Map an objective name or alias to its canonical tag."""
    try:
        return OBJECTIVE_ALIASES[name]
    except KeyError:
        raise ValueError(
            f"Unknown ranking objective '{name}', "
            f"expected one of {sorted(OBJECTIVE_ALIASES)}") from None


class RankingObjective(BaseEstimator):
    """Learning-to-rank objective producing per-document lambdas and hessians.

    The documents are split into query groups by boundary offsets; the
    selected per-query engine runs over all groups on a pool of worker
    threads, then per-document weights (if any) scale the results. With
    ``objective="lambdarank"`` and ``unbiased=True`` the position-bias model
    is re-estimated once after every pass.

    Parameters
    ----------
    objective : str
        'lambdarank' (pairwise) or 'rank_xendcg' (listwise).
    sigmoid : float
        LambdaRank sigmoid slope (> 0).
    norm : bool
        LambdaRank per-query lambda normalization.
    truncation_level : int
        LambdaRank pair / ideal-DCG truncation depth.
    unbiased : bool
        LambdaRank position-bias debiasing.
    eta : float
        Damping exponent of the position-bias update.
    label_gain : sequence of float or None
        Gain per integer label (default 2^label - 1).
    seed : int
        Base seed of the XE_NDCG per-query random streams.
    n_threads : int or None
        Worker count; None follows ``get_num_threads()``.
    verbose : int
        Verbosity level.
    """

    def __init__(self, objective="lambdarank", sigmoid=1.0, norm=True,
                 truncation_level=30, unbiased=False, eta=0.5,
                 label_gain=None, seed=5, n_threads=None, verbose=0):
        self.objective = objective
        self.sigmoid = sigmoid
        self.norm = norm
        self.truncation_level = truncation_level
        self.unbiased = unbiased
        self.eta = eta
        self.label_gain = label_gain
        self.seed = seed
        self.n_threads = n_threads
        self.verbose = verbose
        self.groups_ = None

    @property
    def name(self):
        return resolve_objective_name(self.objective)

    def __str__(self):
        return self.name

    def set_group(self, group):
        """Set query group sizes.

        Parameters
        ----------
        group : array-like
            Number of samples in each group/query, e.g. [5, 3, 7].
        """
        self.groups_ = np.array(group, dtype=int)

    def _n_workers(self):
        n = self.n_threads if self.n_threads is not None else get_num_threads()
        return max(1, min(int(n), max(self.num_queries_, 1)))

    def _build_engine(self, n_workers):
        tag = self.name
        if tag == "lambdarank":
            if int(self.truncation_level) < 1:
                raise ValueError(
                    f"truncation_level must be >= 1, got {self.truncation_level}")
            self.position_bias_ = PositionBiasModel(
                int(self.truncation_level), eta=self.eta, n_workers=n_workers)
            return LambdarankNDCG(
                sigmoid=self.sigmoid, norm=self.norm,
                truncation_level=int(self.truncation_level),
                unbiased=self.unbiased, label_gain=self.label_gain,
                position_bias=self.position_bias_)
        self.position_bias_ = None
        return RankXENDCG(seed=self.seed)

    def init(self, labels, query_boundaries=None, weights=None, group=None):
        """Bind labels, query grouping and optional weights.

        Either ``query_boundaries`` (length num_queries + 1) or group sizes
        (``group`` here, or an earlier ``set_group``) must be provided.
        """
        labels = check_labels(labels)
        n_data = len(labels)
        if group is not None:
            self.set_group(group)
        if query_boundaries is None and self.groups_ is not None:
            query_boundaries = group_to_boundaries(self.groups_)
        self.query_boundaries_ = check_query_boundaries(query_boundaries, n_data)

        self.label_ = labels
        self.weights_ = check_weights(weights, n_data)
        self.num_data_ = n_data
        self.num_queries_ = len(self.query_boundaries_) - 1
        self.dcg_ = DCGCalculator(self.label_gain)
        self._cached_hessians = None

        n_workers = self._n_workers()
        self.engine_ = self._build_engine(n_workers)
        self.engine_.init(self.label_, self.query_boundaries_)

        if self.verbose >= 1:
            print(f"[{self.name}] {self.num_queries_} queries, "
                  f"{self.num_data_} documents, {n_workers} workers")
        return self

    def get_gradients(self, scores, out=None):
        """Compute lambdas and hessians for the current scores.

        Parameters
        ----------
        scores : array-like of shape (num_data,)
        out : tuple (lambdas, hessians) of float64 arrays or None
            Arrays overwritten in place instead of allocating new ones.

        Returns
        -------
        lambdas, hessians : np.ndarray of shape (num_data,)
        """
        if not hasattr(self, "engine_"):
            raise RuntimeError("Call init() before get_gradients().")
        scores = check_scores(scores, self.num_data_)
        if out is None:
            lambdas = np.zeros(self.num_data_, dtype=np.float64)
            hessians = np.zeros(self.num_data_, dtype=np.float64)
        else:
            lambdas, hessians = out
            for arr in (lambdas, hessians):
                if (not isinstance(arr, np.ndarray) or arr.shape != (self.num_data_,)
                        or arr.dtype != np.float64):
                    raise ValueError(
                        f"out arrays must be float64 of shape ({self.num_data_},)")

        n_workers = self._n_workers()
        if self.position_bias_ is not None:
            self.position_bias_.resize_workers(n_workers)

        bounds = self.query_boundaries_
        engine = self.engine_
        label = self.label_
        weights = self.weights_

        def _one_query(i, slot):
            start, end = bounds[i], bounds[i + 1]
            engine.compute_query(i, label[start:end], scores[start:end],
                                 lambdas[start:end], hessians[start:end], slot)
            if weights is not None:
                lambdas[start:end] *= weights[start:end]
                hessians[start:end] *= weights[start:end]

        run_guided(_one_query, self.num_queries_, n_workers)

        # 全クエリ完了後にシングルスレッドで位置バイアスを更新
        if self.position_bias_ is not None and self.unbiased:
            self.position_bias_.update(verbose=self.verbose)

        return lambdas, hessians

    # ── ブースティングエンジン用インターフェース ────────────────────────────────

    def _ensure_init(self, y, weight=None, group=None):
        # 同じデータなら状態（乱数列・位置バイアス）を引き継ぐ
        y = check_labels(y)
        if group is not None and (self.groups_ is None
                                  or not np.array_equal(self.groups_, group)):
            self.set_group(group)
            self.init(y, weights=weight)
        elif (not hasattr(self, "engine_") or self.num_data_ != len(y)
              or not np.array_equal(self.label_, y)):
            self.init(y, weights=weight)

    def init_score(self, y):
        return 0.0

    def gradient(self, y, pred):
        """Compute LambdaRank / XE_NDCG gradients (hessians are cached)."""
        self._ensure_init(y)
        gradients, hessians = self.get_gradients(pred)
        self._cached_hessians = hessians
        return gradients

    def hessian(self, y, pred):
        self._ensure_init(y)
        if self._cached_hessians is not None:
            return self._cached_hessians
        return self.get_gradients(pred)[1]

    def loss(self, y, pred):
        """Negative mean NDCG across queries."""
        self._ensure_init(y)
        pred = check_scores(pred, self.num_data_)
        bounds = self.query_boundaries_
        ndcgs = [self.dcg_.ndcg(self.label_[bounds[i]:bounds[i + 1]],
                                pred[bounds[i]:bounds[i + 1]])
                 for i in range(self.num_queries_)]
        if not ndcgs:
            return 0.0
        return -float(np.mean(ndcgs))

    def transform(self, pred):
        return pred

    def __call__(self, y_true, y_pred, weight=None, group=None):
        """Custom-objective callable: returns (grad, hess)."""
        y_true = check_labels(y_true)
        self._ensure_init(y_true, weight=weight, group=group)
        return self.get_gradients(y_pred)


class LambdaRankObjective(RankingObjective):
    """LambdaRank objective for learning to rank.

    Optimizes NDCG by computing pairwise lambda gradients, optionally
    corrected for position bias (unbiased LambdaMART).
    """

    def __init__(self, sigmoid=1.0, norm=True, truncation_level=30,
                 unbiased=False, eta=0.5, label_gain=None,
                 n_threads=None, verbose=0):
        super().__init__(
            objective="lambdarank", sigmoid=sigmoid, norm=norm,
            truncation_level=truncation_level, unbiased=unbiased, eta=eta,
            label_gain=label_gain, n_threads=n_threads, verbose=verbose)


class XENDCGObjective(RankingObjective):
    """XE_NDCG listwise objective for learning to rank."""

    def __init__(self, seed=5, n_threads=None, verbose=0):
        super().__init__(objective="rank_xendcg", seed=seed,
                         n_threads=n_threads, verbose=verbose)
