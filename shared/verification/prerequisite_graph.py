"""
Formal Verification: Prerequisite Graph Invariant

Critical Invariant:
"The directed graph formed by all prerequisite edges (course -> prerequisite)
is acyclic at all times."

Every candidate edge is checked by building the graph of existing edges plus
the candidate and running a three-color depth-first search. Only the
existence of a cycle matters, so the iteration order of start nodes is free.
"""

from collections.abc import Iterable
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class NodeColor(Enum):
    """DFS node state."""
    WHITE = "white"  # not visited
    GRAY = "gray"  # on the current path
    BLACK = "black"  # fully processed


class PrerequisiteGraph:
    """
    Adjacency map from course id to the ids of its prerequisites.

    Instances are treated as immutable; ``with_edge`` returns a new graph.
    """

    def __init__(self, adjacency: dict[int, list[int]] | None = None):
        self._adjacency: dict[int, list[int]] = {
            node: list(targets) for node, targets in (adjacency or {}).items()
        }

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[int, int]]) -> "PrerequisiteGraph":
        """
        Build a graph from (course_id, prereq_id) pairs.

        Args:
            edges: Directed edges

        Returns:
            PrerequisiteGraph
        """
        adjacency: dict[int, list[int]] = {}
        for course_id, prereq_id in edges:
            adjacency.setdefault(course_id, []).append(prereq_id)
        return cls(adjacency)

    def with_edge(self, course_id: int, prereq_id: int) -> "PrerequisiteGraph":
        """Return a copy of this graph with one more edge."""
        graph = PrerequisiteGraph(self._adjacency)
        graph._adjacency.setdefault(course_id, []).append(prereq_id)
        return graph

    def prerequisites_of(self, course_id: int) -> list[int]:
        return list(self._adjacency.get(course_id, []))

    @property
    def nodes(self) -> set[int]:
        nodes = set(self._adjacency)
        for targets in self._adjacency.values():
            nodes.update(targets)
        return nodes

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self._adjacency.values())

    def has_cycle(self) -> bool:
        """
        Detect whether any cycle exists.

        Iterative three-color DFS: a node is GRAY while it sits on the current
        path and BLACK once all its descendants are done. Reaching a GRAY
        node again closes a cycle. Self-loops are cycles too.

        Returns:
            True if the graph contains a cycle, False otherwise
        """
        color: dict[int, NodeColor] = {}

        for start in self._adjacency:
            if color.get(start, NodeColor.WHITE) is not NodeColor.WHITE:
                continue

            color[start] = NodeColor.GRAY
            stack = [(start, iter(self._adjacency.get(start, [])))]

            while stack:
                node, neighbors = stack[-1]
                advanced = False

                for neighbor in neighbors:
                    state = color.get(neighbor, NodeColor.WHITE)
                    if state is NodeColor.GRAY:
                        logger.debug("Prerequisite cycle detected", node=node, back_edge_to=neighbor)
                        return True
                    if state is NodeColor.WHITE:
                        color[neighbor] = NodeColor.GRAY
                        stack.append((neighbor, iter(self._adjacency.get(neighbor, []))))
                        advanced = True
                        break

                if not advanced:
                    color[node] = NodeColor.BLACK
                    stack.pop()

        return False


def assert_acyclic(edges: Iterable[tuple[int, int]]) -> bool:
    """
    Assert that a set of prerequisite edges forms an acyclic graph.

    Args:
        edges: (course_id, prereq_id) pairs

    Returns:
        True if acyclic

    Raises:
        AssertionError: If a cycle exists
    """
    graph = PrerequisiteGraph.from_edges(edges)
    if graph.has_cycle():
        raise AssertionError(
            f"Prerequisite invariant violated: cycle among {graph.edge_count} edges"
        )
    return True
