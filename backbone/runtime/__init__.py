"""
Runtime: the computation graph and the engine that executes it.
"""

from .engine import CompanyResult, ComputeResult, Engine, Globals, compute, compute_company
from .graph import (
    GRAPH,
    CycleError,
    GraphError,
    MissingNodeError,
    UnknownDependencyError,
    depends_on,
    get_dependencies,
    get_execution_order,
    topo_sort,
    validate_graph,
)

__all__ = [
    "GRAPH",
    "CompanyResult",
    "ComputeResult",
    "CycleError",
    "Engine",
    "Globals",
    "GraphError",
    "MissingNodeError",
    "UnknownDependencyError",
    "compute",
    "compute_company",
    "depends_on",
    "get_dependencies",
    "get_execution_order",
    "topo_sort",
    "validate_graph",
]
