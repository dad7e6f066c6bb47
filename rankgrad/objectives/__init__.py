from rankgrad.objectives.ranking import (
    RankingObjective, LambdaRankObjective, XENDCGObjective, resolve_objective_name,
)
from rankgrad.objectives.lambdarank import LambdarankNDCG, K_MIN_SCORE
from rankgrad.objectives.xendcg import RankXENDCG

OBJECTIVE_REGISTRY = {
    "lambdarank": LambdaRankObjective,
    "rank_xendcg": XENDCGObjective,
}


def make_objective(name, **params):
    """Build a ranking objective by name or alias, e.g. 'xe_ndcg'."""
    return OBJECTIVE_REGISTRY[resolve_objective_name(name)](**params)
