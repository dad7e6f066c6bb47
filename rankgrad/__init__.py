"""rankgrad - gradient and hessian signals for learning-to-rank boosting.

Computes per-document lambdas / hessians for a gradient-boosting tree
learner from query-grouped relevance labels and current model scores.

Objectives:
- LambdaRank / NDCG (pairwise), with optional unbiased position-bias correction
- XE_NDCG (listwise cross-entropy NDCG surrogate)
"""

from rankgrad.objectives import (
    RankingObjective,
    LambdaRankObjective,
    XENDCGObjective,
    OBJECTIVE_REGISTRY,
    make_objective,
    K_MIN_SCORE,
)
from rankgrad.core.dcg import DCGCalculator
from rankgrad.core.sigmoid import SigmoidTable
from rankgrad.core.position_bias import PositionBiasModel
from rankgrad.core.parallel import set_num_threads, get_num_threads

__version__ = "0.1.0"
__all__ = [
    # 目的関数
    "RankingObjective",
    "LambdaRankObjective",
    "XENDCGObjective",
    "OBJECTIVE_REGISTRY",
    "make_objective",
    "K_MIN_SCORE",
    # 構成要素
    "DCGCalculator",
    "SigmoidTable",
    "PositionBiasModel",
    # スレッド制御
    "set_num_threads",
    "get_num_threads",
]
