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
Semi-projectors for a partition.

A labelling of n entries into nt groups defines two (nt, n) matrices L and R
such that P = R.T @ L is a projector replacing every entry of a vector by
its group mean:

- symmetric:  L = R, L[a, i] = 1 / sqrt(|a|)
- laplacian:  L[a, i] = 1 / |a|,          R[a, i] = 1
- stochastic: L[a, i] = p_i / sum_a(p),   R[a, i] = 1

The optimal partition minimizes ||v - P v||^2 (p-weighted for stochastic).
"""
from typing import Optional, Tuple

import numpy as np
from scipy.sparse import csr_matrix

from .exceptions import DegenerateWeightsError

MATRIX_KINDS = {"symmetric": 1, "laplacian": 2, "stochastic": 3}


def resolve_matrix_kind(matrix) -> str:
    """Map a matrix kind name or its integer code (1, 2, 3) to its name."""
    if isinstance(matrix, str):
        name = matrix.lower()
        if name not in MATRIX_KINDS:
            raise ValueError(
                f"Matrix kind '{matrix}' not recognized. "
                f"Available: {list(MATRIX_KINDS.keys())}"
            )
        return name
    if isinstance(matrix, (int, np.integer)) and not isinstance(matrix, bool):
        for name, code in MATRIX_KINDS.items():
            if code == int(matrix):
                return name
        raise ValueError(f"Matrix code must be one of 1, 2, 3, got {matrix!r}.")
    raise TypeError("`matrix` must be a string name or an integer code.")


def _group_index(labels: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    groups, inv = np.unique(np.asarray(labels), return_inverse=True)
    return groups, inv.astype(np.int64)


def semi_projectors(
    labels,
    matrix="symmetric",
    weights: Optional[np.ndarray] = None,
) -> Tuple[csr_matrix, csr_matrix]:
    """
    Build the semi-projectors (L, R) of a partition.

    Parameters
    ----------
    labels : (n,) array-like of int
        Group label of every entry. Labels need not start at zero; rows are
        ordered by ascending label.
    matrix : str or int, optional
        'symmetric' (1), 'laplacian' (2) or 'stochastic' (3).
    weights : (n,) array-like, optional
        Probability vector, required for 'stochastic'.

    Returns
    -------
    L, R : csr_matrix
        Sparse (nt, n) matrices with P = R.T @ L.
    """
    kind = resolve_matrix_kind(matrix)
    groups, inv = _group_index(labels)
    nt, n = groups.size, inv.size
    cols = np.arange(n)
    sizes = np.bincount(inv, minlength=nt).astype(np.float64)
    ones = np.ones(n, dtype=np.float64)

    if kind == "symmetric":
        vals = 1.0 / np.sqrt(sizes[inv])
        L = csr_matrix((vals, (inv, cols)), shape=(nt, n))
        return L, L.copy()

    R = csr_matrix((ones, (inv, cols)), shape=(nt, n))
    if kind == "laplacian":
        vals = 1.0 / sizes[inv]
    else:
        if weights is None:
            raise ValueError("Stochastic semi-projectors require `weights`.")
        p = np.asarray(weights, dtype=np.float64)
        if p.shape != (n,):
            raise ValueError(f"`weights` must have shape ({n},), got {p.shape}.")
        psum = np.bincount(inv, weights=p, minlength=nt)
        if np.any(psum <= 0):
            raise DegenerateWeightsError("Every group needs a positive weight sum.")
        vals = p / psum[inv]
    L = csr_matrix((vals, (inv, cols)), shape=(nt, n))
    return L, R


def projector(labels, matrix="symmetric", weights: Optional[np.ndarray] = None) -> csr_matrix:
    """Sparse (n, n) projector P = R.T @ L of a partition."""
    L, R = semi_projectors(labels, matrix, weights)
    return (R.T @ L).tocsr()
