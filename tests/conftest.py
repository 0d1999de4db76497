"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# The modules live flat at the project root.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from planforge_controller import CanvasController  # noqa: E402
from planforge_model import (  # noqa: E402
    Anchor, Edge, Node, NodeKind, PhaseData, Position, TechniqueData, TextData,
)
from planforge_store import PlanGraph  # noqa: E402


@pytest.fixture
def phase_node() -> Node:
    """A Reconnaissance phase node."""
    return Node(
        id="P1",
        kind=NodeKind.PHASE,
        position=Position(0, 0),
        payload=PhaseData(phase_id="reconnaissance", name="Reconnaissance", icon_name="search", order_index=1),
    )


@pytest.fixture
def technique_node() -> Node:
    """An Active Scanning technique node below the phase."""
    return Node(
        id="T1",
        kind=NodeKind.TECHNIQUE,
        position=Position(0, 200),
        payload=TechniqueData(
            technique_id="t1595",
            mitre_id="T1595",
            title="Active Scanning",
            description="Probe victim infrastructure.",
            phase="Reconnaissance",
            category="Network",
            tags=("scanning", "nmap"),
            tools=("nmap",),
            commands=("nmap -sV 10.0.0.0/24",),
        ),
    )


@pytest.fixture
def text_node() -> Node:
    """A committed Text node."""
    return Node(
        id="X1",
        kind=NodeKind.TEXT,
        position=Position(400, 0),
        payload=TextData(content="hello world"),
    )


@pytest.fixture
def phase_edge() -> Edge:
    return Edge(id="E1", source="P1", target="T1", source_anchor=Anchor.BOTTOM, target_anchor=Anchor.TOP)


@pytest.fixture
def graph(phase_node, technique_node, phase_edge) -> PlanGraph:
    """P1 -> T1."""
    return PlanGraph([phase_node, technique_node], [phase_edge], title="Red Team Plan")


@pytest.fixture
def controller(graph) -> CanvasController:
    """A controller following `graph`."""
    return CanvasController.from_graph(graph)
