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
import itertools

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest


@pytest.fixture(autouse=True)
def _clean_scgkit_env(monkeypatch):
    """Keep SCGKIT_* variables from the calling shell out of the tests."""
    monkeypatch.delenv("SCGKIT_BACKEND", raising=False)
    monkeypatch.delenv("SCGKIT_FIRST_LABEL", raising=False)


@pytest.fixture
def shuffled_ramp():
    """The integers 1..5 in shuffled order."""
    return np.array([5.0, 1.0, 3.0, 2.0, 4.0])


@pytest.fixture
def random_values():
    rng = np.random.default_rng(1234)
    return rng.normal(size=40)


@pytest.fixture
def random_weights():
    rng = np.random.default_rng(4321)
    p = rng.uniform(0.1, 1.0, size=40)
    return p / p.sum()


def brute_force_objective(sorted_values, sorted_weights, nt):
    """Minimum (weighted) within-group sum of squares over all contiguous splits."""
    vs = np.asarray(sorted_values, dtype=np.float64)
    ps = np.ones_like(vs) if sorted_weights is None else np.asarray(sorted_weights)
    n = vs.shape[0]
    best = np.inf
    for cuts in itertools.combinations(range(1, n), nt - 1):
        edges = (0,) + cuts + (n,)
        total = 0.0
        for a, b in zip(edges[:-1], edges[1:]):
            x = vs[a:b]
            p = ps[a:b]
            m = np.dot(p, x) / np.sum(p)
            total += float(np.dot(p, (x - m) ** 2))
        best = min(best, total)
    return best


@pytest.fixture
def brute_force():
    return brute_force_objective
