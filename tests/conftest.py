"""Pytest configuration and fixtures."""

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from twc.compiler.temporal_codegen import CodegenOptions, TemporalCodeGenerator
from twc.ir.graph_schema import WorkflowGraph

FIXED_TIMESTAMP = "2024-01-01T00:00:00+00:00"

GraphFactory = Callable[..., WorkflowGraph]


def _node(node_id: str, node_type: str, **data: Any) -> Dict[str, Any]:
    return {
        "id": node_id,
        "type": node_type,
        "data": {"label": node_id, **data},
        "position": {"x": 0, "y": 0},
    }


def _edges(pairs: List[Tuple[str, str]]) -> List[Dict[str, Any]]:
    return [
        {"id": f"e-{source}-{target}", "source": source, "target": target}
        for source, target in pairs
    ]


@pytest.fixture
def node() -> Callable[..., Dict[str, Any]]:
    """Build a wire-format node dict."""
    return _node


@pytest.fixture
def graph_factory() -> GraphFactory:
    """Build a WorkflowGraph from wire-format nodes and (source, target) pairs."""

    def build(
        nodes: List[Dict[str, Any]],
        edges: Optional[List[Tuple[str, str]]] = None,
        variables: Optional[List[Dict[str, Any]]] = None,
        settings: Optional[Dict[str, Any]] = None,
        name: str = "Test Workflow",
    ) -> WorkflowGraph:
        payload: Dict[str, Any] = {
            "id": "wf-test",
            "name": name,
            "nodes": nodes,
            "edges": _edges(edges or []),
            "variables": variables or [],
        }
        if settings is not None:
            payload["settings"] = settings
        return WorkflowGraph.from_dict(payload)

    return build


@pytest.fixture
def simple_graph(graph_factory: GraphFactory) -> WorkflowGraph:
    """Trigger -> Activity(doSomething) -> End."""
    return graph_factory(
        [
            _node("t", "trigger"),
            _node("a", "activity", activityName="doSomething"),
            _node("e", "end"),
        ],
        [("t", "a"), ("a", "e")],
    )


@pytest.fixture
def fixed_options() -> CodegenOptions:
    return CodegenOptions(generated_at=FIXED_TIMESTAMP)


@pytest.fixture
def generator() -> TemporalCodeGenerator:
    return TemporalCodeGenerator()
