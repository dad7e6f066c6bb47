"""Position bias model for unbiased LambdaRank.

Estimates how strongly each rank position distorts the observed pairwise
cost relative to the top position, and exposes the resulting multiplicative
factors to the pairwise gradient pass of the next boosting iteration.

Two roles are tracked:
- upper: the more relevant document of a pair (the "clicked" side)
- lower: the less relevant document of a pair (the "unclicked" side)

Update rule (once per iteration, after all queries are processed):
    bias[k] = (cost[k] / cost[0]) ** eta
so position 0 always has bias 1.
"""

import numpy as np


class PositionBiasModel:
    """Per-rank multiplicative bias factors with per-worker cost staging.

    Parameters
    ----------
    truncation_level : int
        Number of rank positions tracked.
    eta : float
        Damping exponent applied to the cost ratios.
    n_workers : int
        Number of staging slots; each worker writes only its own row.
    """

    def __init__(self, truncation_level, eta=0.5, n_workers=1):
        if truncation_level < 1:
            raise ValueError(
                f"truncation_level must be >= 1, got {truncation_level}")
        self.truncation_level = int(truncation_level)
        self.eta = eta

        self.upper_bias_ = np.ones(self.truncation_level, dtype=np.float64)
        self.lower_bias_ = np.ones(self.truncation_level, dtype=np.float64)
        self.upper_cost_ = np.zeros(self.truncation_level, dtype=np.float64)
        self.lower_cost_ = np.zeros(self.truncation_level, dtype=np.float64)
        self.n_updates_ = 0
        self.resize_workers(n_workers)

    def resize_workers(self, n_workers):
        """Reallocate staging buffers for ``n_workers`` slots.

        Only valid between gradient passes; pending staged costs are kept
        by folding them into the merged cost sequences first.
        """
        n_workers = max(1, int(n_workers))
        if hasattr(self, "upper_cost_buffer_"):
            if self.upper_cost_buffer_.shape[0] == n_workers:
                return
            self._merge_buffers()
        self.upper_cost_buffer_ = np.zeros((n_workers, self.truncation_level))
        self.lower_cost_buffer_ = np.zeros((n_workers, self.truncation_level))

    @property
    def n_workers(self):
        return self.upper_cost_buffer_.shape[0]

    def _clamp(self, ranks):
        return np.minimum(np.asarray(ranks, dtype=np.int64), self.truncation_level - 1)

    def upper_bias(self, ranks):
        """Upper-role factors; ranks past the tracked range use the last one."""
        return self.upper_bias_[self._clamp(ranks)]

    def lower_bias(self, ranks):
        """Lower-role factors; ranks past the tracked range use the last one."""
        return self.lower_bias_[self._clamp(ranks)]

    def accumulate(self, slot, high_ranks, low_ranks, costs):
        """Stage pairwise costs into worker ``slot``.

        Cost of pair (high, low) goes to the upper role at ``high_rank``
        divided by the lower-role bias at ``low_rank``, and to the lower role
        at ``low_rank`` divided by the upper-role bias at ``high_rank``.
        Ranks outside the tracked range contribute no statistics.
        """
        high_ranks = np.asarray(high_ranks, dtype=np.int64)
        low_ranks = np.asarray(low_ranks, dtype=np.int64)
        costs = np.asarray(costs, dtype=np.float64)

        upper_cost = costs / self.lower_bias(low_ranks)
        lower_cost = costs / self.upper_bias(high_ranks)

        in_range = high_ranks < self.truncation_level
        np.add.at(self.upper_cost_buffer_[slot],
                  high_ranks[in_range], upper_cost[in_range])
        in_range = low_ranks < self.truncation_level
        np.add.at(self.lower_cost_buffer_[slot],
                  low_ranks[in_range], lower_cost[in_range])

    def _merge_buffers(self):
        self.upper_cost_ += self.upper_cost_buffer_.sum(axis=0)
        self.lower_cost_ += self.lower_cost_buffer_.sum(axis=0)
        self.upper_cost_buffer_[:] = 0.0
        self.lower_cost_buffer_[:] = 0.0

    @staticmethod
    def _reestimate(bias, cost, eta):
        # cost[0] が 0 の場合は統計なし: 前回の値を維持
        if cost[0] > 0:
            has_cost = cost > 0
            ratio = np.where(has_cost, cost / cost[0], 1.0)
            bias = np.where(has_cost, ratio ** eta, bias)
        bias = bias.copy()
        bias[0] = 1.0
        return bias

    def update(self, verbose=0):
        """Merge staged costs, re-estimate the biases and clear the costs.

        Must run single-threaded after every worker of the pass has finished.
        """
        self._merge_buffers()
        if verbose >= 2:
            print(self.format_table())

        self.upper_bias_ = self._reestimate(self.upper_bias_, self.upper_cost_, self.eta)
        self.lower_bias_ = self._reestimate(self.lower_bias_, self.lower_cost_, self.eta)

        self.upper_cost_[:] = 0.0
        self.lower_cost_[:] = 0.0
        self.n_updates_ += 1

    def reset(self):
        """Restore all factors to 1 and drop every accumulated cost."""
        self.upper_bias_[:] = 1.0
        self.lower_bias_[:] = 1.0
        self.upper_cost_[:] = 0.0
        self.lower_cost_[:] = 0.0
        self.upper_cost_buffer_[:] = 0.0
        self.lower_cost_buffer_[:] = 0.0
        self.n_updates_ = 0

    def format_table(self):
        """Text table of the current biases and merged costs."""
        lines = [f"{'position':>10}{'bias_upper':>15}{'bias_lower':>15}"
                 f"{'cost_upper':>15}{'cost_lower':>15}"]
        for k in range(self.truncation_level):
            lines.append(
                f"{k:>10}{self.upper_bias_[k]:>15.6g}{self.lower_bias_[k]:>15.6g}"
                f"{self.upper_cost_[k]:>15.6g}{self.lower_cost_[k]:>15.6g}")
        return "\n".join(lines)
