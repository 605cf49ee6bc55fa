# BSD 3-Clause License

# Copyright (c) 2025, Miguel Dovale

# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:

# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.

# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.

# 3. Neither the name of the copyright holder nor the names of its
#    contributors may be used to endorse or promote products derived from
#    this software without specific prior written permission.

# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

# This software may be subject to U.S. export control laws. By accepting this
# software, the user agrees to comply with all applicable U.S. export laws and
# regulations. User has the responsibility to obtain export licenses, or other
# export authority as may be required before exporting such information to
# foreign countries or providing access to foreign persons.
#
"""
core.py: optimal scalar partition kernels (Numba) with NumPy references
-----------------------------------------------------------------------------
Design notes
- Values are partitioned in sorted order, so every group is a contiguous
  range [i..j] of sorted positions.
- Cv[i, j] (i <= j) is the within-group cost of merging positions i..j:
    symmetric/laplacian: sum v^2 - (sum v)^2 / (j - i + 1)
    stochastic:          sum p (v - m)^2,  m = sum p v / sum p
  Only the upper triangle is written; the diagonal is zero.
- Cost kernels never difference raw sums of v^2: symmetric prefix sums are
  taken about the midpoint of the range, stochastic rows use running means.
- Choice table Q uses a tagged encoding:
    NO_SPLIT (-1)  first group, nothing before it
    s >= 0         the last group of the (k, j) optimum starts at position s
- Kernels are compiled without fastmath so that float results (and therefore
  tie-breaks in the DP) do not depend on instruction reordering.
-----------------------------------------------------------------------------
"""
__all__ = [
    "NO_SPLIT",
    "DPTables",
    # helpers
    "_sort_indexed",
    "_count_non_ties",
    # jitted kernels
    "_cost_matrix_sym",
    "_cost_matrix_stoch",
    "_fill_tables",
    "_backtrack",
    # numpy references
    "_count_non_ties_np",
    "_cost_matrix_sym_np",
    "_cost_matrix_stoch_np",
    "_fill_tables_np",
    "_backtrack_np",
]

from typing import NamedTuple, Tuple
import numpy as np
from numba import njit as _njit

NO_SPLIT = -1


class DPTables(NamedTuple):
    """
    Filled dynamic-programming tables.

    F : (nt, n) ndarray of float64
        F[k, j] is the minimal cost of splitting sorted positions 0..j into
        k+1 groups; +inf where j < k.
    Q : (nt, n) ndarray of int64
        Start position of the last group of the (k, j) optimum, or NO_SPLIT.
    """
    F: np.ndarray
    Q: np.ndarray


# Sorting ----------------------------------------------------------------------

def _sort_indexed(v: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Ascending stable sort of v.

    Returns
    -------
    vs : (n,) ndarray
        Sorted values.
    order : (n,) ndarray of int64
        Original indices, vs[k] == v[order[k]].
    """
    order = np.argsort(v, kind="mergesort").astype(np.int64)
    return np.ascontiguousarray(v[order], dtype=np.float64), order


@_njit(cache=True)
def _count_non_ties(vs: np.ndarray) -> int:
    """
    Number of distinct values in a sorted array (exact equality).
    """
    n = vs.shape[0]
    if n == 0:
        return 0
    count = 1
    for i in range(1, n):
        if vs[i] != vs[i - 1]:
            count += 1
    return count


# JIT kernels ------------------------------------------------------------------

@_njit(cache=True)
def _cost_matrix_sym(vs: np.ndarray) -> np.ndarray:
    """
    Cost matrix for the symmetric and laplacian projectors.

    Parameters
    ----------
    vs : (n,) ndarray
        Sorted values.

    Returns
    -------
    Cv : (n, n) ndarray
        Upper-triangular matrix of sums of squared deviations from the mean
        of each contiguous block.
    """
    n = vs.shape[0]
    Cv = np.zeros((n, n), np.float64)
    if n == 0:
        return Cv
    # the cost is translation invariant; centred prefix sums stay small
    shift = 0.5 * (vs[0] + vs[n - 1])
    w = np.zeros(n + 1, np.float64)
    w2 = np.zeros(n + 1, np.float64)
    for i in range(n):
        x = vs[i] - shift
        w[i + 1] = w[i] + x
        w2[i + 1] = w2[i] + x * x

    for i in range(n):
        for j in range(i + 1, n):
            s = w[j + 1] - w[i]
            Cv[i, j] = (w2[j + 1] - w2[i]) - s * s / (j - i + 1)
    return Cv


@_njit(cache=True)
def _cost_matrix_stoch(vs: np.ndarray, ps: np.ndarray) -> np.ndarray:
    """
    Cost matrix for the stochastic projector (weighted variance form).

    Each row i grows the block [i..j] one element at a time with a running
    weighted mean and sum of squared deviations (West's update), so the
    whole matrix is O(n^2) and free of sum p v^2 - (sum p v)^2 / sum p
    cancellation.

    ps must be aligned with vs (weights permuted into sorted order).
    """
    n = vs.shape[0]
    Cv = np.zeros((n, n), np.float64)
    for i in range(n):
        wsum = ps[i]
        mean = vs[i]
        m2 = 0.0
        for j in range(i + 1, n):
            w = ps[j]
            wnew = wsum + w
            if wnew > 0.0:
                delta = vs[j] - mean
                r = delta * w / wnew
                mean += r
                m2 += wsum * delta * r
            wsum = wnew
            Cv[i, j] = m2
    return Cv


@_njit(cache=True)
def _fill_tables(Cv: np.ndarray, nt: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fill the DP cost table F and choice table Q.

    Recurrence, k = 1..nt-1, j = k+1..n-1:
        F[k, j] = min_{q in [k-1, j-1]} F[k-1, q] + Cv[q+1, j]
        Q[k, j] = q* + 1   (first minimizer wins)
    """
    n = Cv.shape[0]
    F = np.empty((nt, n), np.float64)
    F[:, :] = np.inf
    Q = np.empty((nt, n), np.int64)
    Q[:, :] = NO_SPLIT

    for j in range(n):
        F[0, j] = Cv[0, j]

    for k in range(1, nt):
        # seed: k+1 singletons
        F[k, k] = 0.0
        Q[k, k] = k
        for j in range(k + 1, n):
            best = F[k - 1, k - 1] + Cv[k, j]
            start = k
            for q in range(k, j):
                temp = F[k - 1, q] + Cv[q + 1, j]
                if temp < best:
                    best = temp
                    start = q + 1
            F[k, j] = best
            Q[k, j] = start
    return F, Q


@_njit(cache=True)
def _backtrack(Q: np.ndarray, order: np.ndarray, first_label: int) -> np.ndarray:
    """
    Walk Q from the last group backwards and label every original index.
    """
    nt = Q.shape[0]
    n = Q.shape[1]
    labels = np.empty(n, np.int64)
    k = nt - 1
    col = n - 1
    while k >= 0:
        s = Q[k, col]
        if s == NO_SPLIT:
            for i in range(col + 1):
                labels[order[i]] = first_label
            break
        for i in range(s, col + 1):
            labels[order[i]] = first_label + k
        if s == k and k >= 2:
            # everything before position k is a run of singletons
            for i in range(k):
                labels[order[i]] = first_label + i
            break
        col = s - 1
        k -= 1
    return labels


# Pure-NumPy references (readable, no Numba dependency) ------------------------

def _count_non_ties_np(vs: np.ndarray) -> int:
    """
    NumPy reference: distinct values in a sorted array.
    """
    if vs.shape[0] == 0:
        return 0
    return 1 + int(np.count_nonzero(vs[1:] != vs[:-1]))


def _cost_matrix_sym_np(vs: np.ndarray) -> np.ndarray:
    """
    NumPy reference: symmetric/laplacian cost matrix (matches JIT behavior).
    """
    n = vs.shape[0]
    Cv = np.zeros((n, n), dtype=np.float64)
    if n == 0:
        return Cv
    x = vs - 0.5 * (vs[0] + vs[-1])
    w = np.concatenate(([0.0], np.cumsum(x)))
    w2 = np.concatenate(([0.0], np.cumsum(x * x)))
    i, j = np.triu_indices(n, k=1)
    s = w[j + 1] - w[i]
    Cv[i, j] = (w2[j + 1] - w2[i]) - s * s / (j - i + 1)
    return Cv


def _cost_matrix_stoch_np(vs: np.ndarray, ps: np.ndarray) -> np.ndarray:
    """
    NumPy reference: stochastic cost matrix, direct O(n^3) form.

    Computes the weighted mean of each block explicitly, then the weighted
    squared deviations from it.
    """
    n = vs.shape[0]
    Cv = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            p = ps[i:j + 1]
            x = vs[i:j + 1]
            m = float(np.dot(p, x) / np.sum(p))
            d = x - m
            Cv[i, j] = float(np.dot(p, d * d))
    return Cv


def _fill_tables_np(Cv: np.ndarray, nt: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    NumPy reference: DP fill with a vectorized inner minimization.
    """
    n = Cv.shape[0]
    F = np.full((nt, n), np.inf, dtype=np.float64)
    Q = np.full((nt, n), NO_SPLIT, dtype=np.int64)
    F[0, :] = Cv[0, :]

    for k in range(1, nt):
        F[k, k] = 0.0
        Q[k, k] = k
        for j in range(k + 1, n):
            # candidate t <-> split after q = k-1+t, last group starts at k+t
            cand = F[k - 1, k - 1:j] + Cv[k:j + 1, j]
            t = int(np.argmin(cand))
            F[k, j] = cand[t]
            Q[k, j] = k + t
    return F, Q


def _backtrack_np(Q: np.ndarray, order: np.ndarray, first_label: int) -> np.ndarray:
    """
    NumPy reference: backtracking with slice assignment.
    """
    nt, n = Q.shape
    labels = np.empty(n, dtype=np.int64)
    k = nt - 1
    col = n - 1
    while k >= 0:
        s = int(Q[k, col])
        if s == NO_SPLIT:
            labels[order[:col + 1]] = first_label
            break
        labels[order[s:col + 1]] = first_label + k
        if s == k and k >= 2:
            labels[order[:k]] = first_label + np.arange(k, dtype=np.int64)
            break
        col = s - 1
        k -= 1
    return labels
