"""
Explicit computation graph.

Execution order comes from the declared dependencies, never from
convention. The graph must stay acyclic; every dependency must name a
node of the same graph.

    runway, trajectory → goal_trajectory → health → issues → preissues →
    ripple → intro_opportunity → action_candidates → action_impact →
    action_ranker → priority
"""

from collections.abc import Mapping

# Each node lists the nodes whose outputs it reads
GRAPH: dict[str, tuple[str, ...]] = {
    # Base derivations
    "runway": (),
    "trajectory": (),
    "goal_trajectory": ("trajectory",),
    "health": ("runway",),
    # Current and forecast gaps
    "issues": ("runway", "trajectory", "goal_trajectory"),
    "preissues": ("runway", "goal_trajectory", "trajectory"),
    "ripple": ("issues",),
    # Network actions for blocked goals
    "intro_opportunity": ("goal_trajectory", "issues"),
    # Actions
    "action_candidates": ("issues", "preissues", "goal_trajectory", "intro_opportunity"),
    "action_impact": ("action_candidates", "ripple", "goal_trajectory"),
    "action_ranker": ("action_impact",),
    # Compatibility view over ranked actions
    "priority": ("action_ranker",),
}


class GraphError(Exception):
    """Structural problem with a computation graph."""


class CycleError(GraphError):
    def __init__(self, node: str):
        self.node = node
        super().__init__(f"DAG cycle detected: {node} is part of a circular dependency")


class UnknownDependencyError(GraphError):
    def __init__(self, node: str, dependency: str):
        self.node = node
        self.dependency = dependency
        super().__init__(f"Unknown dependency '{dependency}' in node '{node}'")


class MissingNodeError(GraphError):
    """A graph node has no compute function registered."""

    def __init__(self, node: str):
        self.node = node
        super().__init__(f"No compute function for node: {node}")


def topo_sort(graph: Mapping[str, tuple[str, ...] | list[str]]) -> list[str]:
    """
    Depth-first topological sort.

    Roots are visited in lexical order and dependencies in declared order,
    so the same graph always yields the same order.

    Raises:
        CycleError: a dependency chain returns to a node still being visited
        UnknownDependencyError: a node depends on a name outside the graph
    """
    visited: set[str] = set()
    visiting: set[str] = set()
    order: list[str] = []

    def visit(node: str) -> None:
        if node in visited:
            return
        if node in visiting:
            raise CycleError(node)
        visiting.add(node)
        for dependency in graph.get(node, ()):
            if dependency not in graph:
                raise UnknownDependencyError(node, dependency)
            visit(dependency)
        visiting.discard(node)
        visited.add(node)
        order.append(node)

    for node in sorted(graph):
        visit(node)
    return order


def validate_graph(graph: Mapping[str, tuple[str, ...] | list[str]]) -> list[str]:
    """Every structural error in a graph; empty list means valid."""
    errors = []
    for node, dependencies in graph.items():
        for dependency in dependencies:
            if dependency not in graph:
                errors.append(f"Node '{node}' depends on unknown node '{dependency}'")
    if errors:
        return errors
    try:
        topo_sort(graph)
    except GraphError as e:
        errors.append(str(e))
    return errors


def get_execution_order() -> list[str]:
    return topo_sort(GRAPH)


def get_dependencies(node: str, graph: Mapping | None = None) -> tuple[str, ...]:
    graph = GRAPH if graph is None else graph
    return tuple(graph.get(node, ()))


def depends_on(node: str, other: str, graph: Mapping | None = None) -> bool:
    """True when node reads other directly or transitively."""
    graph = GRAPH if graph is None else graph
    seen: set[str] = set()
    stack = list(graph.get(node, ()))
    while stack:
        current = stack.pop()
        if current == other:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(graph.get(current, ()))
    return False
