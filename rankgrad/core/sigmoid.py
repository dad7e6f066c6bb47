"""Precomputed sigmoid lookup table for pairwise ranking gradients."""

import numpy as np


class SigmoidTable:
    """Quantized approximation of sigma(x) = 1 / (1 + exp(slope * x)).

    The table covers [-50 / (2 * slope), 50 / (2 * slope)] with ``n_bins``
    equally spaced bins. Lookups clamp to the first/last bin outside that
    range and otherwise take the nearest lower bin, so the absolute error is
    bounded by ``slope / 4`` times the bin width.

    Parameters
    ----------
    slope : float
        Sigmoid slope, must be > 0.
    n_bins : int
        Number of table entries (default 1024 * 1024).
    half_range : float
        Input half-range before division by ``2 * slope`` (default 50).
    """

    def __init__(self, slope=1.0, n_bins=1024 * 1024, half_range=50.0):
        if slope <= 0.0:
            raise ValueError(f"Sigmoid param {slope} should be greater than zero")
        self.slope = slope
        self.n_bins = n_bins
        self.min_input = -half_range / slope / 2.0
        self.max_input = -self.min_input
        self.idx_factor = n_bins / (self.max_input - self.min_input)

        inputs = np.arange(n_bins, dtype=np.float64) * self.bin_width + self.min_input
        self.table_ = 1.0 / (1.0 + np.exp(inputs * slope))
        self.table_.flags.writeable = False

    @property
    def bin_width(self):
        return 1.0 / self.idx_factor

    def __call__(self, x):
        """Look up sigma(x) for a scalar or an array."""
        x = np.asarray(x, dtype=np.float64)
        idx = np.floor((x - self.min_input) * self.idx_factor)
        # 範囲外は端のビンにクランプ
        idx = np.clip(np.nan_to_num(idx, nan=0.0), 0, self.n_bins - 1).astype(np.int64)
        idx = np.where(x <= self.min_input, 0, idx)
        idx = np.where(x >= self.max_input, self.n_bins - 1, idx)
        out = self.table_[idx]
        if out.ndim == 0:
            return float(out)
        return out
