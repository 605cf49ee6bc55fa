from ._config import BACKENDS

from .core import NO_SPLIT, DPTables
from .exceptions import (
    PartitionError,
    InvalidGroupCountError,
    DegenerateWeightsError,
)
from .partition import (
    optimal_partition,
    sort_values,
    build_cost_matrix,
    fill_tables,
    backtrack,
    OptimalPartitioner,
    PartitionResult
)
from .projectors import semi_projectors, projector
