"""Pairwise ranking engine: LambdaRank (NDCG optimization), optionally unbiased."""

import numpy as np

from rankgrad.core.dcg import DCGCalculator
from rankgrad.core.position_bias import PositionBiasModel
from rankgrad.core.sigmoid import SigmoidTable

# 除外ドキュメント（パディング等）を示すスコア
K_MIN_SCORE = -np.inf


class LambdarankNDCG:
    """Per-query LambdaRank gradients weighted by pairwise delta NDCG.

    For every pair (high, low) with label[high] > label[low] and at least one
    of the two inside the top ``truncation_level`` positions of the current
    ranking:

        delta_ndcg = (gain_high - gain_low) * |disc_high - disc_low| / maxDCG
        p          = 1 / (1 + exp(sigmoid * (s_high - s_low)))
        lambda     = -sigmoid * p * delta_ndcg / (b_up[high] * b_low[low])
        hessian    = sigmoid^2 * p * (1 - p) * delta_ndcg / (b_up[high] * b_low[low])

    ``lambda`` is added to the high document and subtracted from the low
    document; the hessian is added to both. The bias factors ``b_up`` and
    ``b_low`` come from a ``PositionBiasModel`` and are identically 1 unless
    ``unbiased`` is set.

    Parameters
    ----------
    sigmoid : float
        Slope of the pairwise logistic, must be > 0.
    norm : bool
        Normalize lambdas per query by log2(1 + S) / S, and damp delta NDCG
        by the score distance of the pair.
    truncation_level : int
        Rank depth of the "high candidate" loop and of the ideal DCG.
    unbiased : bool
        Accumulate position-bias statistics and debias every pair.
    label_gain : sequence of float or None
        Gain table; None uses 2^label - 1.
    position_bias : PositionBiasModel or None
        Bias state owned by the caller and updated by it between passes.
        None creates a private model whose factors stay at 1.
    """

    name = "lambdarank"

    def __init__(self, sigmoid=1.0, norm=True, truncation_level=30,
                 unbiased=False, label_gain=None, position_bias=None):
        if sigmoid <= 0.0:
            raise ValueError(f"Sigmoid param {sigmoid} should be greater than zero")
        self.sigmoid = sigmoid
        self.norm = norm
        self.truncation_level = truncation_level
        self.unbiased = unbiased
        self.dcg_ = DCGCalculator(label_gain)
        self.position_bias = position_bias

    def init(self, label, query_boundaries):
        """Cache 1 / maxDCG@truncation per query and build the sigmoid table."""
        self.dcg_.check_label(label)
        n_queries = len(query_boundaries) - 1
        if n_queries > 0:
            # ワーカーが割引テーブルを伸ばさずに済むよう最大クエリ長まで確保
            self.dcg_.discounts(int(np.max(np.diff(query_boundaries))))
        self.inverse_max_dcgs_ = np.zeros(n_queries, dtype=np.float64)
        for i in range(n_queries):
            start, end = query_boundaries[i], query_boundaries[i + 1]
            max_dcg = self.dcg_.max_dcg_at_k(self.truncation_level, label[start:end])
            if max_dcg > 0.0:
                self.inverse_max_dcgs_[i] = 1.0 / max_dcg
        self.sigmoid_table_ = SigmoidTable(self.sigmoid)
        if self.position_bias is None:
            self.position_bias = PositionBiasModel(self.truncation_level)
        return self

    def compute_query(self, query_id, label, score, lambdas, hessians, slot=0):
        """Write lambdas / hessians of one query into the given views."""
        cnt = len(score)
        lambdas[:] = 0.0
        hessians[:] = 0.0
        if cnt <= 1:
            return

        inverse_max_dcg = self.inverse_max_dcgs_[query_id]
        bias = self.position_bias

        # スコア降順の安定ソート（同点は元の順序を保持）
        sorted_idx = np.argsort(-score, kind="stable")
        s = score[sorted_idx]
        lab = label[sorted_idx]

        best_score = s[0]
        worst_idx = cnt - 1
        if worst_idx > 0 and s[worst_idx] == K_MIN_SCORE:
            worst_idx -= 1
        worst_score = s[worst_idx]
        damp = (self.norm or self.unbiased) and best_score != worst_score

        gains = self.dcg_.gain(lab)
        discounts = self.dcg_.discounts(cnt)
        sorted_lambdas = np.zeros(cnt, dtype=np.float64)
        sorted_hessians = np.zeros(cnt, dtype=np.float64)
        sum_lambdas = 0.0

        for i in range(min(cnt - 1, self.truncation_level)):
            if s[i] == K_MIN_SCORE:
                continue
            others = np.arange(i + 1, cnt)
            others = others[(s[others] != K_MIN_SCORE) & (lab[others] != lab[i])]
            if len(others) == 0:
                continue

            i_is_high = lab[i] > lab[others]
            high_rank = np.where(i_is_high, i, others)
            low_rank = np.where(i_is_high, others, i)

            delta_score = s[high_rank] - s[low_rank]
            dcg_gap = gains[high_rank] - gains[low_rank]
            paired_discount = np.abs(discounts[high_rank] - discounts[low_rank])
            delta_ndcg = dcg_gap * paired_discount * inverse_max_dcg
            if damp:
                delta_ndcg = delta_ndcg / (0.01 + np.abs(delta_score))

            p_lambda = self.sigmoid_table_(delta_score)
            p_hessian = p_lambda * (1.0 - p_lambda)

            if self.unbiased:
                p_cost = np.log(1.0 / (1.0 - p_lambda)) * delta_ndcg
                bias.accumulate(slot, high_rank, low_rank, p_cost)

            pair_bias = bias.upper_bias(high_rank) * bias.lower_bias(low_rank)
            p_lambda = p_lambda * -self.sigmoid * delta_ndcg / pair_bias
            p_hessian = p_hessian * self.sigmoid * self.sigmoid * delta_ndcg / pair_bias

            sorted_lambdas += (np.bincount(high_rank, p_lambda, minlength=cnt)
                               - np.bincount(low_rank, p_lambda, minlength=cnt))
            sorted_hessians += (np.bincount(high_rank, p_hessian, minlength=cnt)
                                + np.bincount(low_rank, p_hessian, minlength=cnt))
            # lambda は負なので減算で累積
            sum_lambdas -= 2.0 * float(np.sum(p_lambda))

        if self.norm and sum_lambdas > 0:
            norm_factor = np.log2(1.0 + sum_lambdas) / sum_lambdas
            sorted_lambdas *= norm_factor
            sorted_hessians *= norm_factor

        lambdas[sorted_idx] = sorted_lambdas
        hessians[sorted_idx] = sorted_hessians
