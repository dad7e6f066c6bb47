"""Utility functions for rankgrad: input validation for ranking data."""

import numpy as np


def check_scores(scores, n_data=None):
    """Validate and convert a score vector."""
    scores = np.asarray(scores, dtype=np.float64).ravel()
    if n_data is not None and len(scores) != n_data:
        raise ValueError(
            f"scores has {len(scores)} entries, expected {n_data}")
    return scores


def check_labels(y):
    """Validate relevance labels (1-D float array)."""
    y = np.asarray(y, dtype=np.float64).ravel()
    return y


def check_weights(weights, n_data):
    """Validate optional per-document weights.

    Returns None when no weights are given.
    """
    if weights is None:
        return None
    weights = np.asarray(weights, dtype=np.float64).ravel()
    if len(weights) != n_data:
        raise ValueError(
            f"weights has {len(weights)} entries, expected {n_data}")
    if np.any(weights < 0):
        raise ValueError("weights must be non-negative")
    return weights


def group_to_boundaries(group):
    """Convert group sizes, e.g. [5, 3, 7], into boundaries [0, 5, 8, 15]."""
    group = np.asarray(group, dtype=np.int64).ravel()
    if np.any(group < 0):
        raise ValueError("group sizes must be non-negative")
    boundaries = np.zeros(len(group) + 1, dtype=np.int64)
    np.cumsum(group, out=boundaries[1:])
    return boundaries


def check_query_boundaries(boundaries, n_data):
    """Validate a query boundary sequence of length num_queries + 1.

    Parameters
    ----------
    boundaries : array-like of int
        boundaries[i] and boundaries[i + 1] delimit query i.
    n_data : int
        Total number of documents.

    Returns
    -------
    np.ndarray of int64
    """
    if boundaries is None:
        raise ValueError("Ranking tasks require query information")
    boundaries = np.asarray(boundaries, dtype=np.int64)
    if boundaries.ndim != 1 or len(boundaries) < 1:
        raise ValueError("query boundaries must be a non-empty 1-D sequence")
    if boundaries[0] != 0:
        raise ValueError(f"query boundaries must start at 0, got {boundaries[0]}")
    if np.any(np.diff(boundaries) < 0):
        raise ValueError("query boundaries must be non-decreasing")
    if boundaries[-1] != n_data:
        raise ValueError(
            f"last query boundary ({boundaries[-1]}) does not match "
            f"the number of documents ({n_data})")
    return boundaries
