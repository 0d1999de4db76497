"""
Typed records for the attack-plan graph.

Nodes and edges live in flat lists addressed by id. Every mutation is a change
descriptor, and `apply_node_changes` / `apply_edge_changes` are the only
functions that turn a batch of descriptors into a new collection. Records are
frozen; an update produces a new record via `dataclasses.replace`, so a node's
`kind` can never change after creation.

Selection, hover and context-menu state are deliberately absent here; they live
in the controller.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import planforge_config as config

logger = logging.getLogger(__name__)


class PlanForgeError(Exception):
    """Base class for errors raised by PlanForge."""


class NodeKind(str, Enum):
    PHASE = "phase"
    TECHNIQUE = "technique"
    TEXT = "text"


class Anchor(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


FONT_SIZES = ("sm", "base", "lg", "xl")
FONT_WEIGHTS = ("normal", "medium", "semibold", "bold")


def _text(value, default=""):
    if value is None:
        return default
    return str(value)


def _int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _text_list(value) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(_text(item) for item in value)


def _command_text(value) -> str:
    if isinstance(value, dict):
        return _text(value.get("command") or value.get("text"))
    return _text(value)


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class Size:
    width: float
    height: float


def clamp_text_size(width: float, height: float) -> Size:
    """Floors a Text node size at the configured minimum."""
    return Size(max(float(width), config.TEXT_NODE_MIN_WIDTH),
                max(float(height), config.TEXT_NODE_MIN_HEIGHT))


# --- Payload variants ---

@dataclass(frozen=True)
class PhaseData:
    phase_id: str
    name: str
    label: Optional[str] = None
    icon_name: str = ""
    order_index: int = 0

    @property
    def display_label(self) -> str:
        return self.label or self.name

    @classmethod
    def from_descriptor(cls, data) -> Optional["PhaseData"]:
        """Builds a PhaseData from a palette/snapshot mapping, or None if unusable."""
        if not isinstance(data, dict):
            return None
        return cls(
            phase_id=_text(data.get("phase_id", data.get("id"))),
            name=_text(data.get("name")),
            label=data.get("label") or None,
            icon_name=_text(data.get("icon_name", data.get("icon"))),
            order_index=_int(data.get("order_index")),
        )

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "id": self.phase_id,
            "name": self.name,
            "label": self.label,
            "icon": self.icon_name,
            "order_index": self.order_index,
        }


@dataclass(frozen=True)
class TechniqueData:
    technique_id: str
    mitre_id: str
    title: str
    description: str = ""
    phase: str = ""
    category: str = ""
    tags: Tuple[str, ...] = ()
    how_to_use: Tuple[str, ...] = ()
    when_to_use: Tuple[str, ...] = ()
    tools: Tuple[str, ...] = ()
    commands: Tuple[str, ...] = ()

    @classmethod
    def from_descriptor(cls, data) -> Optional["TechniqueData"]:
        if not isinstance(data, dict):
            return None
        commands = data.get("commands")
        if not isinstance(commands, (list, tuple)):
            commands = ()
        return cls(
            technique_id=_text(data.get("technique_id", data.get("id"))),
            mitre_id=_text(data.get("mitre_id")),
            title=_text(data.get("title", data.get("name"))),
            description=_text(data.get("description")),
            phase=_text(data.get("phase")),
            category=_text(data.get("category")),
            tags=_text_list(data.get("tags")),
            how_to_use=_text_list(data.get("how_to_use")),
            when_to_use=_text_list(data.get("when_to_use")),
            tools=_text_list(data.get("tools")),
            commands=tuple(_command_text(command) for command in commands),
        )

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "id": self.technique_id,
            "mitre_id": self.mitre_id,
            "title": self.title,
            "description": self.description,
            "phase": self.phase,
            "category": self.category,
            "tags": list(self.tags),
            "how_to_use": list(self.how_to_use),
            "when_to_use": list(self.when_to_use),
            "tools": list(self.tools),
            "commands": list(self.commands),
        }


@dataclass(frozen=True)
class TextData:
    content: str = config.DEFAULT_TEXT_CONTENT
    font_size: str = config.DEFAULT_FONT_SIZE
    font_weight: str = config.DEFAULT_FONT_WEIGHT
    editing: bool = False

    def __post_init__(self):
        # Unknown style values fall back to the defaults instead of failing.
        if self.font_size not in FONT_SIZES:
            object.__setattr__(self, "font_size", config.DEFAULT_FONT_SIZE)
        if self.font_weight not in FONT_WEIGHTS:
            object.__setattr__(self, "font_weight", config.DEFAULT_FONT_WEIGHT)

    @classmethod
    def from_descriptor(cls, data) -> Optional["TextData"]:
        if not isinstance(data, dict):
            return None
        return cls(
            content=_text(data.get("content"), config.DEFAULT_TEXT_CONTENT),
            font_size=_text(data.get("font_size", data.get("fontSize")), config.DEFAULT_FONT_SIZE),
            font_weight=_text(data.get("font_weight", data.get("fontWeight")), config.DEFAULT_FONT_WEIGHT),
            editing=bool(data.get("editing", data.get("isEditing", False))),
        )

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "fontSize": self.font_size,
            "fontWeight": self.font_weight,
            "isEditing": self.editing,
        }


Payload = Union[PhaseData, TechniqueData, TextData]

PAYLOAD_TYPES = {
    NodeKind.PHASE: PhaseData,
    NodeKind.TECHNIQUE: TechniqueData,
    NodeKind.TEXT: TextData,
}


def payload_from_descriptor(kind, data) -> Optional[Payload]:
    payload_type = PAYLOAD_TYPES.get(kind)
    if payload_type is None:
        return None
    return payload_type.from_descriptor(data)


# --- Graph elements ---

@dataclass(frozen=True)
class Node:
    """
    A positioned element on the canvas.

    `kind` is normally a NodeKind; a snapshot carrying an unrecognised kind keeps
    the raw string so the canvas can still show a fallback for it.
    """
    id: str
    kind: Union[NodeKind, str]
    position: Position = field(default_factory=Position)
    payload: Optional[Payload] = None
    size: Optional[Size] = None

    def __post_init__(self):
        if not isinstance(self.kind, NodeKind):
            try:
                object.__setattr__(self, "kind", NodeKind(self.kind))
            except ValueError:
                logger.debug("Node %s has unrecognised kind %r", self.id, self.kind)
        if self.kind == NodeKind.TEXT:
            size = self.size or Size(config.TEXT_NODE_DEFAULT_WIDTH, config.TEXT_NODE_DEFAULT_HEIGHT)
            object.__setattr__(self, "size", clamp_text_size(size.width, size.height))

    @property
    def kind_name(self) -> str:
        return self.kind.value if isinstance(self.kind, NodeKind) else str(self.kind)


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    source_anchor: Anchor = Anchor.BOTTOM
    target_anchor: Anchor = Anchor.TOP

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id


@dataclass(frozen=True)
class Connection:
    """A connect gesture: source anchor dragged onto a target anchor."""
    source: str
    source_anchor: Anchor
    target: str
    target_anchor: Anchor


def is_phase_node(node: Node) -> bool:
    return node.kind == NodeKind.PHASE


def is_technique_node(node: Node) -> bool:
    return node.kind == NodeKind.TECHNIQUE


def is_text_node(node: Node) -> bool:
    return node.kind == NodeKind.TEXT


def new_node_id(kind) -> str:
    prefix = kind.value if isinstance(kind, NodeKind) else str(kind)
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def new_edge_id() -> str:
    return f"edge-{uuid.uuid4().hex[:12]}"


def edge_from_connection(connection: Connection) -> Edge:
    return Edge(
        id=new_edge_id(),
        source=connection.source,
        target=connection.target,
        source_anchor=Anchor(connection.source_anchor),
        target_anchor=Anchor(connection.target_anchor),
    )


# --- Change descriptors ---

ADD = "add"
REMOVE = "remove"
POSITION = "position"
DIMENSIONS = "dimensions"
DATA = "data"


@dataclass(frozen=True)
class NodeChange:
    type: str
    id: Optional[str] = None
    item: Optional[Node] = None
    position: Optional[Position] = None
    dragging: bool = False
    size: Optional[Size] = None
    payload: Optional[Payload] = None

    @classmethod
    def add(cls, node: Node) -> "NodeChange":
        return cls(ADD, id=node.id, item=node)

    @classmethod
    def remove(cls, node_id: str) -> "NodeChange":
        return cls(REMOVE, id=node_id)

    @classmethod
    def move(cls, node_id: str, position: Position, dragging: bool = False) -> "NodeChange":
        return cls(POSITION, id=node_id, position=position, dragging=dragging)

    @classmethod
    def resize(cls, node_id: str, size: Size) -> "NodeChange":
        return cls(DIMENSIONS, id=node_id, size=size)

    @classmethod
    def update_data(cls, node_id: str, payload: Payload) -> "NodeChange":
        return cls(DATA, id=node_id, payload=payload)


@dataclass(frozen=True)
class EdgeChange:
    type: str
    id: Optional[str] = None
    item: Optional[Edge] = None

    @classmethod
    def add(cls, edge: Edge) -> "EdgeChange":
        return cls(ADD, id=edge.id, item=edge)

    @classmethod
    def remove(cls, edge_id: str) -> "EdgeChange":
        return cls(REMOVE, id=edge_id)


def _apply_node_update(change: NodeChange, node: Node) -> Node:
    if change.type == POSITION and change.position is not None:
        return replace(node, position=change.position)

    if change.type == DIMENSIONS and change.size is not None:
        if not is_text_node(node):
            logger.debug("Ignoring resize of non-resizable node %s", node.id)
            return node
        return replace(node, size=clamp_text_size(change.size.width, change.size.height))

    if change.type == DATA:
        expected = PAYLOAD_TYPES.get(node.kind)
        if expected is None or not isinstance(change.payload, expected):
            logger.warning(
                "Dropping data change for %s: payload %s does not match kind %s",
                node.id, type(change.payload).__name__, node.kind_name,
            )
            return node
        return replace(node, payload=change.payload)

    logger.warning("Unsupported node change %r for %s", change.type, node.id)
    return node


def apply_node_changes(changes: Iterable[NodeChange], nodes: List[Node]) -> List[Node]:
    """
    Applies a batch of node changes and returns the new node list.

    Removals win over updates in the same batch; adds are appended in batch
    order and an add reusing an existing id is ignored.
    """
    changes = list(changes)
    removed = {change.id for change in changes if change.type == REMOVE}
    updates: Dict[str, List[NodeChange]] = {}
    for change in changes:
        if change.type not in (ADD, REMOVE):
            updates.setdefault(change.id, []).append(change)

    result = []
    for node in nodes:
        if node.id in removed:
            continue
        for change in updates.pop(node.id, ()):
            node = _apply_node_update(change, node)
        result.append(node)

    for node_id in updates:
        logger.debug("Node change targets unknown id %s", node_id)

    known = {node.id for node in result}
    for change in changes:
        if change.type != ADD or change.item is None:
            continue
        if change.item.id in known:
            logger.warning("Node %s already exists; add ignored", change.item.id)
            continue
        result.append(change.item)
        known.add(change.item.id)
    return result


def apply_edge_changes(changes: Iterable[EdgeChange], edges: List[Edge]) -> List[Edge]:
    """Applies a batch of edge changes and returns the new edge list."""
    changes = list(changes)
    removed = {change.id for change in changes if change.type == REMOVE}
    result = [edge for edge in edges if edge.id not in removed]

    known = {edge.id for edge in result}
    for change in changes:
        if change.type == ADD and change.item is not None and change.item.id not in known:
            result.append(change.item)
            known.add(change.item.id)
    return result


def incident_edge_ids(edges: Iterable[Edge], node_ids: Iterable[str]) -> Set[str]:
    node_ids = set(node_ids)
    return {edge.id for edge in edges if edge.source in node_ids or edge.target in node_ids}


# --- Snapshots ---
# Plain-data shapes for handing the graph to an external caller.

def node_to_dict(node: Node) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if isinstance(node.payload, PhaseData):
        data = {"label": node.payload.display_label, "phase": node.payload.to_descriptor()}
    elif isinstance(node.payload, TechniqueData):
        data = {"label": node.payload.title, "technique": node.payload.to_descriptor()}
    elif isinstance(node.payload, TextData):
        data = node.payload.to_descriptor()

    result = {
        "id": node.id,
        "type": node.kind_name,
        "position": {"x": node.position.x, "y": node.position.y},
        "data": data,
    }
    if node.size is not None:
        result["width"] = node.size.width
        result["height"] = node.size.height
    return result


def node_from_dict(data: Dict[str, Any]) -> Node:
    kind = data.get("type", "")
    position = data.get("position") or {}
    body = data.get("data") or {}

    if kind == NodeKind.PHASE.value:
        payload = PhaseData.from_descriptor(body.get("phase"))
    elif kind == NodeKind.TECHNIQUE.value:
        payload = TechniqueData.from_descriptor(body.get("technique"))
    elif kind == NodeKind.TEXT.value:
        payload = TextData.from_descriptor(body)
    else:
        payload = None

    size = None
    if "width" in data and "height" in data:
        size = Size(float(data["width"]), float(data["height"]))

    return Node(
        id=str(data["id"]),
        kind=kind,
        position=Position(float(position.get("x", 0)), float(position.get("y", 0))),
        payload=payload,
        size=size,
    )


def edge_to_dict(edge: Edge) -> Dict[str, Any]:
    return {
        "id": edge.id,
        "source": edge.source,
        "sourceHandle": edge.source_anchor.value,
        "target": edge.target,
        "targetHandle": edge.target_anchor.value,
    }


def edge_from_dict(data: Dict[str, Any]) -> Edge:
    return Edge(
        id=str(data["id"]),
        source=str(data["source"]),
        target=str(data["target"]),
        source_anchor=Anchor(data.get("sourceHandle") or Anchor.BOTTOM.value),
        target_anchor=Anchor(data.get("targetHandle") or Anchor.TOP.value),
    )
