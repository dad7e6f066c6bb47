"""DCG / ゲイン計算: label gains, position discounts and ideal DCG."""

import numpy as np


class DCGCalculator:
    """Label-gain and discount tables used by the NDCG-based objectives.

    DCG@k = sum_{r < k} gain(label_r) * discount(r)
        gain(l)     = label_gain[l]        (default 2^l - 1)
        discount(r) = 1 / log2(2 + r)      (r is the 0-based rank)

    Parameters
    ----------
    label_gain : sequence of float or None
        Gain for each integer label. None uses ``default_label_gain()``.
    max_position : int
        Number of discounts precomputed up front. The table grows on demand.
    """

    def __init__(self, label_gain=None, max_position=10000):
        if label_gain is None:
            label_gain = self.default_label_gain()
        self.label_gain = np.asarray(label_gain, dtype=np.float64)
        self._discounts = self._build_discounts(max_position)

    @staticmethod
    def default_label_gain(n=31):
        """Default gains 2^i - 1 for labels 0..n-1."""
        return (2.0 ** np.arange(n)) - 1.0

    @staticmethod
    def _build_discounts(n):
        return 1.0 / np.log2(2.0 + np.arange(n, dtype=np.float64))

    def _ensure_discounts(self, n):
        # 他スレッドが同時に差し替えても、返すのは長さ n 以上のテーブル
        table = self._discounts
        if n > len(table):
            table = self._build_discounts(max(n, 2 * len(table)))
            if len(table) > len(self._discounts):
                self._discounts = table
        return table

    def discount(self, rank):
        """Discount of a single 0-based rank."""
        return self._ensure_discounts(rank + 1)[rank]

    def discounts(self, n):
        """Discounts for ranks 0..n-1."""
        return self._ensure_discounts(n)[:n]

    def gain(self, labels):
        """Gain of one label or of an array of labels."""
        return self.label_gain[np.asarray(labels, dtype=np.int64)]

    def max_dcg_at_k(self, k, labels):
        """Ideal DCG of ``labels`` truncated at depth ``k``."""
        labels = np.asarray(labels)
        k = min(k, len(labels))
        if k <= 0:
            return 0.0
        top = np.sort(labels.astype(np.int64))[::-1][:k]
        return float(np.sum(self.gain(top) * self.discounts(k)))

    def ndcg(self, labels, scores, k=None):
        """NDCG@k of the ranking induced by ``scores`` (1.0 if no relevant doc)."""
        labels = np.asarray(labels)
        k = len(labels) if k is None else min(k, len(labels))
        ideal = self.max_dcg_at_k(k, labels)
        if ideal == 0.0:
            return 1.0
        order = np.argsort(-np.asarray(scores, dtype=np.float64), kind="stable")[:k]
        actual = float(np.sum(self.gain(labels[order]) * self.discounts(k)))
        return actual / ideal

    def check_label(self, labels):
        """Labels must be non-negative integers with a gain entry."""
        labels = np.asarray(labels, dtype=np.float64)
        if len(labels) == 0:
            return
        bad = labels != np.floor(labels)
        if np.any(bad) or not np.all(np.isfinite(labels)):
            met = labels[bad | ~np.isfinite(labels)][0]
            raise ValueError(
                f"label should be int type (met {met}) for ranking task, "
                "for the gain of label, please set the label_gain parameter")
        if labels.min() < 0:
            raise ValueError(
                f"label should be non-negative (met {labels.min()}) for ranking task")
        if labels.max() >= len(self.label_gain):
            raise ValueError(
                f"Label {int(labels.max())} is not less than the number of "
                f"label mappings ({len(self.label_gain)}); extend label_gain")
