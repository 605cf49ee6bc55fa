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
import pytest
import numpy as np
from scgkit.core import (
    NO_SPLIT,
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


def _direct_costs(vs, ps=None):
    """Cv computed cell by cell from the definition."""
    n = vs.shape[0]
    ps = np.ones(n) if ps is None else ps
    Cv = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1, n):
            x, p = vs[i:j + 1], ps[i:j + 1]
            m = np.sum(p * x) / np.sum(p)
            Cv[i, j] = np.sum(p * (x - m) ** 2)
    return Cv


def _offset_choice_table(Q):
    """Re-encode Q with 1-based starts, 1 for the first row and 2 as sentinel."""
    nt, n = Q.shape
    Qo = np.zeros((nt, n), dtype=np.int64)
    Qo[0, :] = 1
    for k in range(1, nt):
        for j in range(k, n):
            s = Q[k, j]
            Qo[k, j] = 2 if (s == k and j > k) else s + 1
    return Qo


def _offset_backtrack(Qo, order):
    """Backtracking over the offset encoding, sentinel 2 meaning singleton seeds."""
    nt, n = Qo.shape
    gr = np.full(n, -1, dtype=np.int64)
    part_ind = nt
    col = n - 1
    for j in range(nt - 1, -1, -1):
        for i in range(Qo[j, col] - 1, col + 1):
            gr[order[i]] = part_ind - 1
        if Qo[j, col] != 2:
            col = Qo[j, col] - 2
            part_ind -= 1
        elif j > 1:
            for l in range(j):
                gr[order[l]] = l
            break
        else:
            col = Qo[j, col] - 2
            part_ind -= 1
    return gr


# --- Sorting ---


def test_sort_indexed_tracks_original_indices():
    v = np.array([0.3, -1.0, 2.5, 0.3, 7.0])
    vs, order = _sort_indexed(v)
    np.testing.assert_array_equal(vs, np.sort(v))
    np.testing.assert_array_equal(v[order], vs)
    assert order.dtype == np.int64
    # stable: the two 0.3 keep their relative order
    assert list(order[1:3]) == [0, 3]


@pytest.mark.parametrize(
    "values, expected",
    [([1.0], 1), ([1.0, 1.0, 1.0], 1), ([1.0, 1.0, 1.0, 2.0, 2.0], 2), ([0.0, 1e-300, 1.0], 3)],
)
def test_count_non_ties(values, expected):
    vs = np.sort(np.asarray(values, dtype=np.float64))
    assert _count_non_ties(vs) == expected
    assert _count_non_ties_np(vs) == expected


# --- Cost matrices ---


@pytest.mark.parametrize("kernel", [_cost_matrix_sym, _cost_matrix_sym_np], ids=["numba", "numpy"])
def test_cost_matrix_sym_matches_definition(kernel, random_values):
    vs = np.sort(random_values)
    Cv = kernel(vs)
    np.testing.assert_allclose(Cv, _direct_costs(vs), rtol=1e-9, atol=1e-10)
    assert np.all(np.diag(Cv) == 0.0)
    assert np.all(np.tril(Cv, k=-1) == 0.0)


@pytest.mark.parametrize("kernel", [_cost_matrix_stoch, _cost_matrix_stoch_np], ids=["numba", "numpy"])
def test_cost_matrix_stoch_matches_definition(kernel, random_values, random_weights):
    vs, order = _sort_indexed(random_values)
    ps = random_weights[order]
    Cv = kernel(vs, ps)
    np.testing.assert_allclose(Cv, _direct_costs(vs, ps), rtol=1e-8, atol=1e-10)
    assert np.all(np.diag(Cv) == 0.0)
    assert np.all(np.tril(Cv, k=-1) == 0.0)


def test_cost_matrix_stoch_with_unit_weights_is_symmetric_cost(random_values):
    vs = np.sort(random_values)
    ps = np.ones_like(vs)
    np.testing.assert_allclose(_cost_matrix_stoch(vs, ps), _cost_matrix_sym(vs), rtol=1e-9, atol=1e-10)


@pytest.mark.parametrize("sym, stoch", [
    (_cost_matrix_sym, _cost_matrix_stoch),
    (_cost_matrix_sym_np, _cost_matrix_stoch_np),
], ids=["numba", "numpy"])
def test_cost_matrix_survives_large_offset(sym, stoch):
    rng = np.random.default_rng(7)
    vs, order = _sort_indexed(1e7 + rng.normal(size=25))
    ps = rng.uniform(0.05, 1.0, size=25)[order]
    np.testing.assert_allclose(sym(vs), _direct_costs(vs), rtol=1e-6, atol=1e-8)
    np.testing.assert_allclose(stoch(vs, ps), _direct_costs(vs, ps), rtol=1e-6, atol=1e-8)
    assert np.all(sym(vs) >= 0.0)
    assert np.all(stoch(vs, ps) >= 0.0)


def test_cost_matrix_stoch_zero_weight_start():
    vs = np.array([0.0, 1.0, 2.0, 4.0])
    ps = np.array([0.0, 1.0, 0.0, 1.0])
    np.testing.assert_allclose(_cost_matrix_stoch(vs, ps), _direct_costs(vs, ps), atol=1e-12)


def test_cost_matrix_known_values():
    vs = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    Cv = _cost_matrix_sym(vs)
    assert Cv[0, 1] == pytest.approx(0.5)
    assert Cv[2, 4] == pytest.approx(2.0)
    assert Cv[0, 4] == pytest.approx(10.0)


# --- DP tables ---


@pytest.mark.parametrize("filler", [_fill_tables, _fill_tables_np], ids=["numba", "numpy"])
def test_fill_tables_base_cases(filler, random_values):
    vs = np.sort(random_values[:12])
    Cv = _cost_matrix_sym(vs)
    nt = 4
    F, Q = filler(Cv, nt)
    assert F.shape == (nt, 12) and Q.shape == (nt, 12)
    assert Q.dtype == np.int64
    np.testing.assert_array_equal(F[0], Cv[0])
    assert np.all(Q[0] == NO_SPLIT)
    for k in range(1, nt):
        assert F[k, k] == 0.0
        assert Q[k, k] == k
        assert np.all(np.isinf(F[k, :k]))
        assert np.all(Q[k, :k] == NO_SPLIT)
        # the last group never starts before position k
        assert np.all(Q[k, k:] >= k)


@pytest.mark.parametrize("nt", [1, 2, 3, 5, 8])
def test_fill_tables_numba_matches_numpy(nt, random_values):
    vs = np.sort(random_values)
    Cv = _cost_matrix_sym(vs)
    F_nb, Q_nb = _fill_tables(Cv, nt)
    F_np, Q_np = _fill_tables_np(Cv, nt)
    np.testing.assert_allclose(F_nb, F_np, rtol=1e-12)
    np.testing.assert_array_equal(Q_nb, Q_np)


@pytest.mark.parametrize("filler", [_fill_tables, _fill_tables_np], ids=["numba", "numpy"])
def test_fill_tables_tie_prefers_earliest_split(filler):
    # {1,2}|{3,4,5} and {1,2,3}|{4,5} both cost 2.5
    Cv = _cost_matrix_sym(np.array([1.0, 2.0, 3.0, 4.0, 5.0]))
    F, Q = filler(Cv, 2)
    assert F[1, 4] == 2.5
    assert Q[1, 4] == 2


def test_fill_tables_rows_grow_with_j(random_values):
    vs = np.sort(random_values)
    F, _ = _fill_tables(_cost_matrix_sym(vs), 4)
    for k in range(4):
        assert np.all(np.diff(F[k, k:]) >= -1e-10)


# --- Backtracking ---


@pytest.mark.parametrize("tracker", [_backtrack, _backtrack_np], ids=["numba", "numpy"])
def test_backtrack_seed_groups(tracker):
    # the two smallest values end up as singletons
    vs = np.array([0.0, 10.0, 20.0, 21.0, 22.0])
    order = np.arange(5, dtype=np.int64)
    F, Q = _fill_tables(_cost_matrix_sym(vs), 3)
    assert Q[2, 4] == 2
    assert F[2, 4] == pytest.approx(2.0)
    labels = tracker(Q, order, 0)
    np.testing.assert_array_equal(labels, [0, 1, 2, 2, 2])


@pytest.mark.parametrize("tracker", [_backtrack, _backtrack_np], ids=["numba", "numpy"])
def test_backtrack_single_group(tracker):
    Q = np.full((1, 4), NO_SPLIT, dtype=np.int64)
    order = np.array([3, 1, 0, 2], dtype=np.int64)
    np.testing.assert_array_equal(tracker(Q, order, 7), [7, 7, 7, 7])


@pytest.mark.parametrize("nt", [2, 3, 4, 6])
@pytest.mark.parametrize("first_label", [0, 1, 5])
def test_backtrack_numba_matches_numpy(nt, first_label, random_values):
    vs, order = _sort_indexed(random_values)
    _, Q = _fill_tables(_cost_matrix_sym(vs), nt)
    nb = _backtrack(Q, order, first_label)
    ref = _backtrack_np(Q, order, first_label)
    np.testing.assert_array_equal(nb, ref)
    assert set(nb.tolist()) == set(range(first_label, first_label + nt))


@pytest.mark.parametrize("nt", [2, 3, 4, 6])
@pytest.mark.parametrize(
    "values",
    [
        np.array([0.0, 10.0, 20.0, 21.0, 22.0, 23.0]),
        np.array([0.0, 100.0, 200.0, 300.0, 301.0, 302.0, 303.0]),
        np.random.default_rng(7).normal(size=25),
    ],
    ids=["seed2", "seed3", "random"],
)
def test_backtrack_matches_offset_encoding(nt, values):
    vs, order = _sort_indexed(values)
    _, Q = _fill_tables(_cost_matrix_sym(vs), nt)
    expected = _offset_backtrack(_offset_choice_table(Q), order)
    np.testing.assert_array_equal(_backtrack(Q, order, 0), expected)
