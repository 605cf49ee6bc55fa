import os

# Kernels are sequential; keep BLAS pools from oversubscribing cores
os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")
os.environ.setdefault("OPENBLAS_NUM_THREADS", "1")

BACKENDS = ("numba", "numpy")


def default_backend() -> str:
    """Backend named by SCGKIT_BACKEND, falling back to 'numba'."""
    backend = os.environ.get("SCGKIT_BACKEND", "numba").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(
            f"SCGKIT_BACKEND must be one of {BACKENDS}, got {backend!r}."
        )
    return backend


def default_first_label() -> int:
    """First group label named by SCGKIT_FIRST_LABEL, falling back to 0."""
    raw = os.environ.get("SCGKIT_FIRST_LABEL", "0")
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(
            f"SCGKIT_FIRST_LABEL must be an integer, got {raw!r}."
        ) from exc
