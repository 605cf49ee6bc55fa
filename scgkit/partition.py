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
import time
import logging
from typing import List, Dict, Any, Optional, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.axes import Axes

from ._config import BACKENDS, default_backend, default_first_label
from .core import (
    DPTables,
    _sort_indexed,
    _count_non_ties,
    _count_non_ties_np,
    _cost_matrix_sym,
    _cost_matrix_stoch,
    _fill_tables,
    _backtrack,
    _cost_matrix_sym_np,
    _cost_matrix_stoch_np,
    _fill_tables_np,
    _backtrack_np,
)
from .exceptions import InvalidGroupCountError, DegenerateWeightsError
from .projectors import resolve_matrix_kind, projector as _projector
from .utils import coerce_vector, group_boundaries, group_means

logger = logging.getLogger(__name__)


def _resolve_backend(backend: Optional[str]) -> str:
    if backend is None:
        return default_backend()
    name = str(backend).lower()
    if name not in BACKENDS:
        raise ValueError(f"Backend '{backend}' not recognized. Available: {list(BACKENDS)}")
    return name


def _check_sorted_weights(ps: np.ndarray) -> None:
    """
    Every range [i..j], i < j, of sorted positions needs a positive weight sum.

    With non-negative weights that holds unless two neighbouring weights are
    both zero.
    """
    if not np.all(np.isfinite(ps)):
        raise DegenerateWeightsError("`weights` must be finite.")
    if np.any(ps < 0):
        raise DegenerateWeightsError("`weights` must be non-negative.")
    zero = ps == 0.0
    if ps.shape[0] > 1 and np.any(zero[1:] & zero[:-1]):
        raise DegenerateWeightsError(
            "`weights` has a zero sum over a range of sorted values "
            "(two neighbouring zero weights); group means would be undefined."
        )


# Components -------------------------------------------------------------------

def sort_values(v, backend: Optional[str] = None) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Sort v ascending while tracking original indices.

    Parameters
    ----------
    v : (n,) array-like
        Values to partition.
    backend : {'numba', 'numpy'}, optional
        Kernel set used to count distinct values. Defaults to SCGKIT_BACKEND.

    Returns
    -------
    sorted_values : (n,) ndarray
    order : (n,) ndarray of int64
        sorted_values[k] == v[order[k]].
    non_ties : int
        Number of distinct values (exact equality).
    """
    x = coerce_vector(v, "v")
    vs, order = _sort_indexed(x)
    if _resolve_backend(backend) == "numba":
        non_ties = int(_count_non_ties(vs))
    else:
        non_ties = _count_non_ties_np(vs)
    return vs, order, non_ties


def build_cost_matrix(
    sorted_values,
    matrix: Union[str, int] = "symmetric",
    weights=None,
    backend: Optional[str] = None,
) -> np.ndarray:
    """
    Cost of merging every contiguous range of sorted positions into one group.

    Parameters
    ----------
    sorted_values : (n,) array-like
        Values in ascending order.
    matrix : str or int, optional
        'symmetric' (1), 'laplacian' (2) or 'stochastic' (3).
    weights : (n,) array-like, optional
        Stochastic only: probability weights aligned with `sorted_values`.
    backend : {'numba', 'numpy'}, optional
        Compiled kernels or NumPy references. Defaults to SCGKIT_BACKEND.

    Returns
    -------
    Cv : (n, n) ndarray
        Cv[i, j] for i <= j is the (weighted) sum of squared deviations of
        positions i..j from their (weighted) mean. The strict lower triangle
        is zero.
    """
    kind = resolve_matrix_kind(matrix)
    use_numba = _resolve_backend(backend) == "numba"
    vs = coerce_vector(sorted_values, "sorted_values")

    if kind in ("symmetric", "laplacian"):
        return _cost_matrix_sym(vs) if use_numba else _cost_matrix_sym_np(vs)

    if weights is None:
        raise ValueError("The stochastic cost matrix requires `weights`.")
    ps = coerce_vector(weights, "weights", n=vs.shape[0])
    _check_sorted_weights(ps)
    return _cost_matrix_stoch(vs, ps) if use_numba else _cost_matrix_stoch_np(vs, ps)


def fill_tables(Cv: np.ndarray, nt: int, backend: Optional[str] = None) -> DPTables:
    """
    Fill the DP cost table F and choice table Q for nt groups.

    Ties between split points are resolved in favour of the earliest split.
    """
    Cv = np.ascontiguousarray(Cv, dtype=np.float64)
    if Cv.ndim != 2 or Cv.shape[0] != Cv.shape[1]:
        raise ValueError(f"`Cv` must be a square matrix, got shape {Cv.shape}.")
    nt = int(nt)
    if not 1 <= nt <= Cv.shape[0]:
        raise ValueError(f"`nt` must be in [1, {Cv.shape[0]}], got {nt}.")
    if _resolve_backend(backend) == "numba":
        F, Q = _fill_tables(Cv, nt)
    else:
        F, Q = _fill_tables_np(Cv, nt)
    return DPTables(F, Q)


def backtrack(
    Q: np.ndarray,
    order: np.ndarray,
    first_label: Optional[int] = None,
    backend: Optional[str] = None,
) -> np.ndarray:
    """
    Recover group labels from the choice table.

    Parameters
    ----------
    Q : (nt, n) ndarray of int64
        Choice table from `fill_tables`.
    order : (n,) ndarray of int64
        Original index of every sorted position.
    first_label : int, optional
        Label of the lowest group. Defaults to SCGKIT_FIRST_LABEL (0).

    Returns
    -------
    labels : (n,) ndarray of int64
        Label of every original index, in [first_label, first_label + nt - 1].
    """
    Q = np.ascontiguousarray(Q, dtype=np.int64)
    order = np.ascontiguousarray(order, dtype=np.int64)
    if Q.ndim != 2 or Q.shape[1] != order.shape[0]:
        raise ValueError(
            f"`Q` must have shape (nt, {order.shape[0]}), got {Q.shape}."
        )
    first = default_first_label() if first_label is None else int(first_label)
    if _resolve_backend(backend) == "numba":
        return _backtrack(Q, order, first)
    return _backtrack_np(Q, order, first)


# Driver -----------------------------------------------------------------------

class OptimalPartitioner:
    """
    Configures and executes an optimal scalar partition.

    The vector `v` is split into `nt` groups that are contiguous in sorted
    order, minimizing ||v - P v||^2 where P averages each group (weighted by
    `weights` for the stochastic projector). The work is deferred until
    `.compute()` is called.
    """

    def __init__(
        self,
        v,
        nt: int,
        matrix: Union[str, int] = "symmetric",
        weights=None,
        *,
        first_label: Optional[int] = None,
        backend: Optional[str] = None,
        verbose: bool = False,
    ):
        """
        Initializes the partitioner.

        Parameters
        ----------
        v : array-like
            1D vector of finite values to partition.
        nt : int
            Number of groups; must be at least 1 and strictly smaller than
            the number of distinct values in `v`.
        matrix : str or int, optional
            Projector kind: 'symmetric' (1), 'laplacian' (2) or
            'stochastic' (3). Defaults to 'symmetric'.
        weights : array-like, optional
            Probability vector of the same length as `v`. Required for the
            stochastic projector and ignored otherwise.
        first_label : int, optional
            Label given to the lowest group. Defaults to SCGKIT_FIRST_LABEL (0).
        backend : {'numba', 'numpy'}, optional
            Compiled kernels or NumPy references. Defaults to SCGKIT_BACKEND.
        verbose : bool, optional
            If True, logs sizes and timings. Defaults to False.
        """
        # ---- Basic validation -------------------------------------------------
        if isinstance(nt, bool) or not isinstance(nt, (int, np.integer)):
            raise TypeError(f"`nt` must be an integer, got {nt!r}.")
        if nt < 1:
            raise ValueError(f"`nt` must be at least 1, got {nt!r}.")

        self.v = coerce_vector(v, "v")
        if self.v.shape[0] == 0:
            raise ValueError("`v` must contain at least one value.")
        if not np.all(np.isfinite(self.v)):
            raise ValueError("`v` contains NaN/Inf; values cannot be ordered.")

        kind = resolve_matrix_kind(matrix)
        n = self.v.shape[0]
        if kind == "stochastic":
            if weights is None:
                raise ValueError("The stochastic projector requires `weights`.")
            self.weights = coerce_vector(weights, "weights", n=n)
        else:
            if weights is not None:
                logger.warning(f"`weights` is ignored for the {kind} projector.")
            self.weights = None

        self.verbose = bool(verbose)
        self.config: Dict[str, Any] = {
            "nt": int(nt),
            "matrix": kind,
            "first_label": default_first_label() if first_label is None else int(first_label),
            "backend": _resolve_backend(backend),
            "n": n,
        }

        # Cache for the sorted view
        self._sort_cache: Optional[Tuple[np.ndarray, np.ndarray, int]] = None

        if self.verbose:
            logger.info(
                f"OptimalPartitioner: n={n} | nt={self.config['nt']} | "
                f"matrix={kind} | backend={self.config['backend']}"
            )

    def sort(self) -> Tuple[np.ndarray, np.ndarray, int]:
        """
        Sorted values, original indices and number of distinct values.

        Raises
        ------
        InvalidGroupCountError
            If `nt` is not strictly smaller than the number of distinct values.
        """
        if self._sort_cache is None:
            vs, order, non_ties = sort_values(self.v, backend=self.config["backend"])
            if self.config["nt"] >= non_ties:
                raise InvalidGroupCountError(self.config["nt"], non_ties)
            self._sort_cache = (vs, order, non_ties)
            if self.verbose:
                logger.info(f"[sort] {non_ties} distinct values out of {self.config['n']}")
        return self._sort_cache

    def _sorted_weights(self, order: np.ndarray) -> Optional[np.ndarray]:
        if self.weights is None:
            return None
        return self.weights[order]

    def cost_matrix(self) -> np.ndarray:
        """Cost matrix Cv over sorted positions."""
        vs, order, _ = self.sort()
        return build_cost_matrix(
            vs,
            self.config["matrix"],
            self._sorted_weights(order),
            backend=self.config["backend"],
        )

    def compute(self) -> "PartitionResult":
        """
        Executes the partition and returns a PartitionResult object.

        Returns
        -------
        PartitionResult
            Labels, objective value and the DP tables.
        """
        vs, order, non_ties = self.sort()
        nt = self.config["nt"]
        backend = self.config["backend"]

        t0 = time.perf_counter()
        Cv = self.cost_matrix()
        t1 = time.perf_counter()
        t_cost = t1 - t0

        tables = fill_tables(Cv, nt, backend=backend)
        # Cv is O(n^2); drop it before backtracking
        del Cv
        t_dp = time.perf_counter() - t1

        labels = backtrack(tables.Q, order, self.config["first_label"], backend=backend)
        t_total = time.perf_counter() - t0

        if self.verbose:
            logger.info(
                f"[compute] cost matrix {t_cost:.3f} s | DP {t_dp:.3f} s | "
                f"total {t_total:.3f} s"
            )

        results = {
            "v": self.v,
            "weights": self.weights,
            "labels": labels,
            "objective": float(tables.F[nt - 1, -1]),
            "order": order,
            "sorted_values": vs,
            "sorted_weights": self._sorted_weights(order),
            "non_ties": int(non_ties),
            "F": tables.F,
            "Q": tables.Q,
            "compute_t": float(t_total),
        }
        return PartitionResult(results, dict(self.config))


class PartitionResult:
    """
    An immutable container for the result of an optimal partition.

    Attributes
    ----------
    labels : np.ndarray
        Group label of every original index.
    objective : float
        Minimized (weighted) sum of squared deviations from group means.
    order : np.ndarray
        Original index of every sorted position.
    sorted_labels : np.ndarray
        Labels along sorted positions (non-decreasing).
    boundaries : list of (int, int)
        Inclusive ranges of sorted positions forming each group.
    group_sizes, group_means, group_costs : np.ndarray
        Per-group statistics, ordered by label.
    cost_table, choice_table : np.ndarray
        DP tables F and Q.
    """

    def __init__(self, results_dict: Dict[str, Any], config_dict: Dict[str, Any]):
        """Initializes the result object."""
        self._data = results_dict
        self._config = config_dict
        self._cache: Dict[str, Any] = {}

    def __getattr__(self, name: str) -> Any:
        """Lazy computation and caching of derived quantities."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._cache:
            return self._cache[name]
        if name in self._data:
            return self._data[name]

        nt = self._config["nt"]
        first = self._config["first_label"]
        val: Any = None
        if name in ("nt", "n_groups"):
            val = nt
        elif name in ("matrix", "first_label", "backend"):
            val = self._config[name]
        elif name == "cost_table":
            val = self._data["F"]
        elif name == "choice_table":
            val = self._data["Q"]
        elif name == "groups":
            val = np.arange(first, first + nt, dtype=np.int64)
        elif name == "sorted_labels":
            val = self._data["labels"][self._data["order"]]
        elif name == "boundaries":
            val = group_boundaries(self.sorted_labels)
        elif name == "group_sizes":
            val = np.bincount(self._data["labels"] - first, minlength=nt)
        elif name == "group_means":
            _, val = group_means(self._data["v"], self._data["labels"], self._weights_or_none())
        elif name == "group_costs":
            val = self._group_costs()
        else:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            )

        self._cache[name] = val
        return val

    def __dir__(self) -> List[str]:
        derived = [
            "nt", "n_groups", "matrix", "first_label", "backend",
            "cost_table", "choice_table", "groups", "sorted_labels",
            "boundaries", "group_sizes", "group_means", "group_costs",
        ]
        return sorted(set(list(super().__dir__()) + list(self._data.keys()) + derived))

    def __repr__(self) -> str:
        return (
            f"PartitionResult(n={self._config['n']}, nt={self._config['nt']}, "
            f"matrix='{self._config['matrix']}', objective={self._data['objective']:.6g})"
        )

    def _weights_or_none(self) -> Optional[np.ndarray]:
        return self._data["weights"] if self._config["matrix"] == "stochastic" else None

    def _group_costs(self) -> np.ndarray:
        v = self._data["v"]
        labels = self._data["labels"] - self._config["first_label"]
        w = self._weights_or_none()
        w = np.ones_like(v) if w is None else w
        d = v - self.group_means[labels]
        return np.bincount(labels, weights=w * d * d, minlength=self._config["nt"])

    def projector(self):
        """
        Sparse (n, n) projector P of this partition.

        For the symmetric and laplacian kinds ||v - P v||^2 equals the
        objective; for the stochastic kind the p-weighted norm does.
        """
        return _projector(self._data["labels"], self._config["matrix"], self._weights_or_none())

    def residual(self) -> np.ndarray:
        """v - P v, the deviation of every entry from its group mean."""
        return self._data["v"] - self.projector() @ self._data["v"]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Exports the partition to a pandas DataFrame indexed by original index.

        Columns are the value, its label, its rank in sorted order, its group
        mean and (stochastic only) its weight.
        """
        n = self._config["n"]
        rank = np.empty(n, dtype=np.int64)
        rank[self._data["order"]] = np.arange(n)
        labels = self._data["labels"]
        df_dict = {
            "value": self._data["v"],
            "label": labels,
            "rank": rank,
            "group_mean": self.group_means[labels - self._config["first_label"]],
        }
        if self._config["matrix"] == "stochastic":
            df_dict["weight"] = self._data["weights"]
        df = pd.DataFrame(df_dict)
        df.index.name = "i"
        return df

    def plot(
        self,
        *,
        ax: Optional[Axes] = None,
        means: bool = True,
        **kwargs,
    ) -> Tuple[Figure, Axes]:
        """
        Plot the sorted values coloured by group.

        Parameters
        ----------
        ax : matplotlib.axes.Axes, optional
            An existing Axes object to plot on. If None, a new Figure and Axes
            are created. Defaults to None.
        means : bool, optional
            If True, draw each group's mean as a horizontal segment.
            Defaults to True.
        **kwargs
            Additional keyword arguments passed to `Axes.plot`.

        Returns
        -------
        tuple
            The matplotlib Figure and Axes.
        """
        fig, ax1 = (ax.get_figure(), ax) if ax is not None else plt.subplots()
        vs = self._data["sorted_values"]
        kwargs.setdefault("marker", "o")
        kwargs.setdefault("linestyle", "none")
        for (start, stop), label, mean in zip(self.boundaries, self.groups, self.group_means):
            pos = np.arange(start, stop + 1)
            lines = ax1.plot(pos, vs[start:stop + 1], label=f"group {label}", **kwargs)
            if means:
                ax1.hlines(mean, start - 0.4, stop + 0.4, colors=lines[0].get_color(), alpha=0.6)
        ax1.set_xlabel("Sorted position")
        ax1.set_ylabel("Value")
        ax1.set_title(f"{self._config['matrix']} partition, objective={self._data['objective']:.4g}")
        ax1.legend()
        fig.tight_layout()
        return fig, ax1


def optimal_partition(
    v, nt: int, matrix: Union[str, int] = "symmetric", weights=None, **kwargs
) -> PartitionResult:
    """
    Computes the optimal partition of `v` into `nt` sorted groups in one call.

    This is the primary high-level function. It serves as a convenient
    wrapper around the `OptimalPartitioner` and `PartitionResult` classes.

    Parameters
    ----------
    v : array-like
        1D vector of finite values.
    nt : int
        Number of groups (1 <= nt < number of distinct values).
    matrix : str or int, optional
        'symmetric' (1), 'laplacian' (2) or 'stochastic' (3).
    weights : array-like, optional
        Probability vector, required for 'stochastic'.
    **kwargs :
        `first_label`, `backend` and `verbose`, passed to `OptimalPartitioner`.

    Returns
    -------
    PartitionResult
        Labels, objective value and helper methods.
    """
    partitioner = OptimalPartitioner(v, nt, matrix, weights, **kwargs)
    return partitioner.compute()
