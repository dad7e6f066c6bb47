"""Listwise ranking engine: XE_NDCG (cross-entropy NDCG surrogate).

Reference: Bruch, "An Alternative Cross Entropy Loss for Learning-to-Rank",
arXiv:1911.09798.
"""

import numpy as np

K_EPSILON = 1e-15


def _softmax(score):
    """Numerically stable softmax over one query."""
    exp_score = np.exp(score - np.max(score))
    return exp_score / exp_score.sum()


class RankXENDCG:
    """Per-query XE_NDCG gradients with an approximate diagonal hessian.

    The target distribution is built from labels with per-document noise
        phi(l, g) = 2^l - g,   g ~ U[0, 1)
    and the gradient of the cross entropy against rho = softmax(scores) is
    approximated by its first three order terms. The hessian is
    rho * (1 - rho), a bounded heuristic rather than an exact derivative.

    Parameters
    ----------
    seed : int
        Base seed; query i draws from its own RandomState(seed + i).
    """

    name = "rank_xendcg"

    def __init__(self, seed=5):
        self.seed = seed

    def init(self, label, query_boundaries):
        n_queries = len(query_boundaries) - 1
        # クエリごとに独立した乱数列（スレッド順序に依存しない再現性）
        self.rands_ = [np.random.RandomState((self.seed + i) % (2 ** 32))
                       for i in range(n_queries)]
        return self

    @staticmethod
    def phi(label, g):
        return 2.0 ** np.asarray(label).astype(np.int64) - g

    def compute_query(self, query_id, label, score, lambdas, hessians, slot=0):
        """Write lambdas / hessians of one query into the given views."""
        cnt = len(score)
        if cnt <= 1:
            lambdas[:] = 0.0
            hessians[:] = 0.0
            return

        rho = _softmax(score)
        one_minus_rho = np.maximum(1.0 - rho, K_EPSILON)

        params = self.phi(label, self.rands_[query_id].random_sample(cnt))
        inv_denominator = 1.0 / max(K_EPSILON, float(params.sum()))

        # 1 次項
        term = -params * inv_denominator + rho
        lambdas[:] = term
        params = term / one_minus_rho
        sum_l1 = params.sum()

        # 2 次項
        term = rho * (sum_l1 - params)
        lambdas += term
        params = term / one_minus_rho
        sum_l2 = params.sum()

        # 3 次項
        lambdas += rho * (sum_l2 - params)
        hessians[:] = rho * (1.0 - rho)
