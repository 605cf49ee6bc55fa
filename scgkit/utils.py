"""This module contains auxiliary functions for inspecting partitions.

They work on plain label vectors, independently of the DP tables, so they
can be used to check a partition against its objective.
"""
from typing import List, Optional, Tuple

import numpy as np


def group_boundaries(sorted_labels: np.ndarray) -> List[Tuple[int, int]]:
    """Inclusive (start, stop) ranges of equal labels along sorted positions."""
    sorted_labels = np.asarray(sorted_labels)
    if sorted_labels.size == 0:
        return []
    cuts = np.flatnonzero(np.diff(sorted_labels) != 0) + 1
    starts = np.concatenate(([0], cuts))
    stops = np.concatenate((cuts - 1, [sorted_labels.size - 1]))
    return [(int(a), int(b)) for a, b in zip(starts, stops)]


def group_means(values, labels, weights=None) -> Tuple[np.ndarray, np.ndarray]:
    """
    (Weighted) mean of each group.

    Returns
    -------
    groups : ndarray
        Unique labels, ascending.
    means : ndarray
        Mean of the values carrying each label.
    """
    values = np.asarray(values, dtype=np.float64)
    labels = np.asarray(labels)
    w = np.ones_like(values) if weights is None else np.asarray(weights, dtype=np.float64)
    groups, inv = np.unique(labels, return_inverse=True)
    wsum = np.bincount(inv, weights=w)
    wvsum = np.bincount(inv, weights=w * values)
    # a lone zero-weight element has no mean: NaN, quietly
    with np.errstate(invalid="ignore", divide="ignore"):
        means = wvsum / wsum
    return groups, means


def group_sum_of_squares(values, labels, weights=None) -> float:
    """Sum over groups of w * (v - group_mean)**2."""
    values = np.asarray(values, dtype=np.float64)
    labels = np.asarray(labels)
    w = np.ones_like(values) if weights is None else np.asarray(weights, dtype=np.float64)
    groups, means = group_means(values, labels, w)
    m = means[np.searchsorted(groups, labels)]
    d = values - m
    return float(np.sum(w * d * d))


def is_contiguous(values, labels) -> bool:
    """True if every group occupies an unbroken range of sorted values."""
    values = np.asarray(values)
    labels = np.asarray(labels)
    # ties are ordered by label so equal values never fake a break
    idx = np.lexsort((labels, values))
    runs = group_boundaries(labels[idx])
    return len(runs) == np.unique(labels).size


def coerce_vector(x, name: str, n: Optional[int] = None) -> np.ndarray:
    """Contiguous float64 1D copy of x, optionally checked against length n."""
    arr = np.array(x, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"`{name}` must be a 1D array, got shape {arr.shape}.")
    if n is not None and arr.shape[0] != n:
        raise ValueError(f"`{name}` must have length {n}, got {arr.shape[0]}.")
    return arr
