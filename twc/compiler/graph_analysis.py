"""
Graph analysis utilities shared by the validator and the code generator.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional, Set

from twc.ir.graph_schema import NodeType, WorkflowGraph, WorkflowNode


class GraphAnalyzer:
    def adjacency(self, graph: WorkflowGraph) -> Dict[str, List[str]]:
        """Successors per node, in edge declaration order, restricted to known nodes."""

        known = set(graph.node_ids())
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in graph.node_ids()}
        for edge in graph.edges:
            if edge.source in known and edge.target in known:
                adjacency[edge.source].append(edge.target)
        return adjacency

    def connected_node_ids(self, graph: WorkflowGraph) -> Set[str]:
        connected: Set[str] = set()
        for edge in graph.edges:
            connected.add(edge.source)
            connected.add(edge.target)
        return connected

    def reachable_from(self, graph: WorkflowGraph, start: str) -> Set[str]:
        adjacency = self.adjacency(graph)
        if start not in adjacency:
            return set()
        visited: Set[str] = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for nxt in adjacency[current]:
                if nxt not in visited:
                    visited.add(nxt)
                    queue.append(nxt)
        return visited

    def unreachable_from(self, graph: WorkflowGraph, start: str) -> List[str]:
        reached = self.reachable_from(graph, start)
        seen: Set[str] = set()
        unreachable: List[str] = []
        for node_id in graph.node_ids():
            if node_id not in reached and node_id not in seen:
                seen.add(node_id)
                unreachable.append(node_id)
        return unreachable

    def find_cycle(self, graph: WorkflowGraph) -> Optional[List[str]]:
        """
        Return the first cycle found by depth-first search, or None.

        Roots are visited in declaration order and successors in edge order.
        The cycle is the DFS path suffix starting at the back-edge target.
        """

        adjacency = self.adjacency(graph)
        visited: Set[str] = set()
        for root in adjacency:
            if root in visited:
                continue
            path: List[str] = [root]
            on_stack: Set[str] = {root}
            visited.add(root)
            cursors: List[int] = [0]
            while path:
                current = path[-1]
                successors = adjacency[current]
                if cursors[-1] >= len(successors):
                    on_stack.discard(path.pop())
                    cursors.pop()
                    continue
                nxt = successors[cursors[-1]]
                cursors[-1] += 1
                if nxt in on_stack:
                    return path[path.index(nxt):]
                if nxt not in visited:
                    visited.add(nxt)
                    on_stack.add(nxt)
                    path.append(nxt)
                    cursors.append(0)
        return None

    def dead_ends(self, graph: WorkflowGraph) -> List[str]:
        sources = {edge.source for edge in graph.edges}
        return [
            node.id
            for node in graph.nodes
            if node.type != NodeType.END and node.id not in sources
        ]

    def emission_order(self, graph: WorkflowGraph) -> List[WorkflowNode]:
        """Trigger first, End nodes last, everything else in declaration order."""

        trigger = graph.find_trigger()
        ordered: List[WorkflowNode] = [trigger] if trigger is not None else []
        ordered.extend(
            node
            for node in graph.nodes
            if node.type not in (NodeType.TRIGGER, NodeType.END)
        )
        ordered.extend(graph.end_nodes())
        return ordered
