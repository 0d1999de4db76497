"""
Canvas controller: the interaction loop between the plan graph and its views.

The controller never owns the node and edge collections. It is handed the
current collections, renders them through the node-type registry, and turns
user input (clicks, drags, drops, keys, the context menu) into change batches
passed to `on_nodes_change` / `on_edges_change`. The caller applies those
batches and hands the new collections back through `set_graph`.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import planforge_config as config
from planforge_context_menu import ContextMenu
from planforge_model import (
    Anchor, Connection, Edge, EdgeChange, Node, NodeChange, NodeKind, PhaseData,
    Position, TechniqueData, TextData, incident_edge_ids, is_text_node, new_node_id,
)
from planforge_renderers import (
    NodeTypeRegistry, NodeView, RenderContext, default_node_types, minimap_color,
)
from planforge_text_editor import TextNodeEditor

logger = logging.getLogger(__name__)

DELETE_KEYS = ("Delete", "Backspace")


class InteractionState(str, Enum):
    IDLE = "idle"
    CONTEXT_MENU_OPEN = "context_menu_open"
    DRAGGING = "dragging"


# --- Input events ---

@dataclass
class KeyEvent:
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    in_text_input: bool = False


@dataclass
class PointerEvent:
    screen_position: Tuple[float, float]
    additive: bool = False


@dataclass
class DropEvent:
    """A native drop carrying the palette's drag payload (JSON text or a mapping)."""
    screen_position: Tuple[float, float]
    data: object = None
    default_prevented: bool = False
    drop_effect: str = "none"

    def prevent_default(self):
        self.default_prevented = True


@dataclass
class ContextMenuEvent:
    screen_position: Tuple[float, float]
    default_prevented: bool = False

    def prevent_default(self):
        self.default_prevented = True


# --- Viewport ---

@dataclass
class Viewport:
    """Pan/zoom transform: screen = canvas * zoom + (x, y)."""
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0

    def screen_to_canvas(self, screen_position) -> Position:
        sx, sy = screen_position
        return Position((sx - self.x) / self.zoom, (sy - self.y) / self.zoom)

    def canvas_to_screen(self, position: Position) -> Tuple[float, float]:
        return (position.x * self.zoom + self.x, position.y * self.zoom + self.y)

    def pan(self, dx: float, dy: float):
        self.x += dx
        self.y += dy

    def set_zoom(self, zoom: float, anchor: Optional[Tuple[float, float]] = None):
        """Sets the zoom level, keeping the canvas point under `anchor` fixed on screen."""
        zoom = max(config.MIN_ZOOM, min(float(zoom), config.MAX_ZOOM))
        if anchor is None:
            self.zoom = zoom
            return
        fixed = self.screen_to_canvas(anchor)
        self.zoom = zoom
        self.x = anchor[0] - fixed.x * zoom
        self.y = anchor[1] - fixed.y * zoom

    def zoom_in(self, anchor=None):
        self.set_zoom(self.zoom * config.ZOOM_STEP, anchor)

    def zoom_out(self, anchor=None):
        self.set_zoom(self.zoom / config.ZOOM_STEP, anchor)

    def fit(self, bounds: Tuple[float, float, float, float], viewport_size: Tuple[float, float],
            padding: float = 0.1):
        """
        Zooms and pans so the canvas rectangle `bounds` fills the viewport.

        Args:
            bounds (tuple): (left, top, right, bottom) in canvas units.
            viewport_size (tuple): (width, height) of the visible area in pixels.
            padding (float): Fraction of the viewport kept free around the bounds.
        """
        left, top, right, bottom = bounds
        width = max(right - left, 1.0)
        height = max(bottom - top, 1.0)
        view_w, view_h = viewport_size
        usable = max(1.0 - 2 * padding, 0.1)
        zoom = min(view_w * usable / width, view_h * usable / height)
        self.zoom = max(config.MIN_ZOOM, min(zoom, config.MAX_ZOOM))
        self.x = view_w / 2 - (left + width / 2) * self.zoom
        self.y = view_h / 2 - (top + height / 2) * self.zoom


# --- Frame descriptors ---

@dataclass
class EdgeView:
    edge_id: str
    source: str
    target: str
    source_anchor: Anchor
    target_anchor: Anchor
    selected: bool = False


@dataclass
class GridSpec:
    gap: int
    color: str


@dataclass
class ControlsSpec:
    zoom: float
    can_zoom_in: bool
    can_zoom_out: bool


@dataclass
class MinimapEntry:
    node_id: str
    x: float
    y: float
    width: float
    height: float
    color: str


@dataclass
class CanvasFrame:
    """Everything needed to paint one frame of the canvas."""
    nodes: List[NodeView]
    edges: List[EdgeView]
    grid: GridSpec
    controls: ControlsSpec
    minimap: List[MinimapEntry]
    viewport: Viewport
    state: InteractionState
    context_menu: ContextMenu = None
    selected_nodes: Set[str] = field(default_factory=set)

    def node(self, node_id: str) -> Optional[NodeView]:
        for view in self.nodes:
            if view.node_id == node_id:
                return view
        return None


# --- Descriptor parsing ---

def parse_drop_payload(data) -> Optional[dict]:
    """Decodes a drag payload into a mapping, or None if it is not one."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            return None
    return data if isinstance(data, dict) else None


def node_from_descriptor(descriptor, position: Position) -> Optional[Node]:
    """
    Builds a Phase or Technique node from a palette descriptor.

    A descriptor is `{"type": "phase", "phase": {...}}` or
    `{"type": "technique", "technique": {...}}`; a bare technique mapping
    (no "type") is accepted too. Returns None for anything else.
    """
    if not isinstance(descriptor, dict):
        return None
    kind = descriptor.get("type")
    if kind is None and "title" in descriptor:
        kind, descriptor = NodeKind.TECHNIQUE.value, {"technique": descriptor}

    if kind == NodeKind.PHASE.value:
        payload = PhaseData.from_descriptor(descriptor.get("phase"))
    elif kind == NodeKind.TECHNIQUE.value:
        payload = TechniqueData.from_descriptor(descriptor.get("technique"))
    else:
        return None
    if payload is None:
        return None
    return Node(id=new_node_id(kind), kind=kind, position=position, payload=payload)


class CanvasController:
    """
    Mediates between the graph collections and the canvas.

    Args:
        nodes (list): Initial node collection.
        edges (list): Initial edge collection.
        on_nodes_change (callable): Receives each node change batch.
        on_edges_change (callable): Receives each edge change batch.
        on_connect (callable): Receives a Connection for every connect gesture.
        on_node_click (callable, optional): Receives the clicked Node.
        on_init (callable, optional): Called once with the controller.
        on_drop (callable, optional): Replaces the built-in drop handling;
            receives the DropEvent and its canvas Position.
        on_add_text_box (callable, optional): Replaces the built-in text box
            creation; receives the canvas Position.
        node_types (NodeTypeRegistry, optional): Renderer per node kind.
    """

    def __init__(self, nodes: Iterable[Node], edges: Iterable[Edge],
                 on_nodes_change: Callable[[List[NodeChange]], None],
                 on_edges_change: Callable[[List[EdgeChange]], None],
                 on_connect: Callable[[Connection], object],
                 on_node_click: Optional[Callable[[Node], None]] = None,
                 on_init: Optional[Callable[["CanvasController"], None]] = None,
                 on_drop: Optional[Callable[[DropEvent, Position], None]] = None,
                 on_add_text_box: Optional[Callable[[Position], None]] = None,
                 node_types: Optional[NodeTypeRegistry] = None):
        self.nodes: List[Node] = list(nodes)
        self.edges: List[Edge] = list(edges)
        self._on_nodes_change = on_nodes_change
        self._on_edges_change = on_edges_change
        self._on_connect = on_connect
        self._on_node_click = on_node_click
        self._on_drop = on_drop
        self._on_add_text_box = on_add_text_box
        self.node_types = node_types or default_node_types()

        self.viewport = Viewport()
        self.state = InteractionState.IDLE
        self.selected_nodes: Set[str] = set()
        self.selected_edges: Set[str] = set()
        self.hovered_node: Optional[str] = None
        self.context_menu = ContextMenu(self._add_text_box_from_menu, self._menu_closed)

        self._editors: Dict[str, TextNodeEditor] = {}
        self._focused_editor: Optional[str] = None
        self._drag_origin: Optional[Tuple[float, float]] = None
        self._drag_start: Dict[str, Position] = {}
        self._drag_moved = False
        self._quick_add_count = 0
        self._listeners: List[Callable[["CanvasController"], None]] = []

        self._sync_editors()
        if on_init:
            on_init(self)

    @classmethod
    def from_graph(cls, graph, **kwargs) -> "CanvasController":
        """Wires a controller to a PlanGraph store and keeps it following the store."""
        controller = cls(graph.nodes, graph.edges, graph.on_nodes_change, graph.on_edges_change,
                         graph.on_connect, **kwargs)
        graph.subscribe(controller.set_graph)
        return controller

    # --- Listeners ---

    def add_listener(self, listener: Callable[["CanvasController"], None]):
        """Registers a callback run whenever the rendered frame may have changed."""
        self._listeners.append(listener)

    def _changed(self):
        for listener in list(self._listeners):
            listener(self)

    # --- Graph input ---

    def set_graph(self, nodes: Iterable[Node], edges: Iterable[Edge]):
        """Takes the caller's updated collections after a batch was applied."""
        self.nodes = list(nodes)
        self.edges = list(edges)
        node_ids = {node.id for node in self.nodes}
        edge_ids = {edge.id for edge in self.edges}
        self.selected_nodes &= node_ids
        self.selected_edges &= edge_ids
        if self.hovered_node not in node_ids:
            self.hovered_node = None
        self._drag_start = {key: value for key, value in self._drag_start.items() if key in node_ids}
        self._sync_editors()
        self._changed()

    def node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def editor(self, node_id: str) -> Optional[TextNodeEditor]:
        return self._editors.get(node_id)

    def _sync_editors(self):
        text_nodes = {node.id: node for node in self.nodes if is_text_node(node)}
        for node_id in list(self._editors):
            if node_id not in text_nodes:
                del self._editors[node_id]
                if self._focused_editor == node_id:
                    self._focused_editor = None
        for node_id, node in text_nodes.items():
            editor = self._editors.get(node_id)
            if editor is None:
                self._editors[node_id] = TextNodeEditor(
                    node_id, node.payload,
                    on_change=self.apply_node_changes,
                    on_delete=self.remove_node,
                    on_focus_change=self.set_editor_focus,
                    size=node.size,
                )
            else:
                editor.sync_from_payload(node.payload, node.size)

    # --- Choke point ---

    def apply_node_changes(self, changes: List[NodeChange]):
        changes = list(changes)
        if changes:
            self._on_nodes_change(changes)

    def apply_edge_changes(self, changes: List[EdgeChange]):
        changes = list(changes)
        if changes:
            self._on_edges_change(changes)

    # --- Rendering ---

    def render(self) -> CanvasFrame:
        views = []
        for node in self.nodes:
            context = RenderContext(
                selected=node.id in self.selected_nodes,
                hovered=node.id == self.hovered_node,
                editor=self._editors.get(node.id),
            )
            views.append(self.node_types.render(node, context))

        node_ids = {node.id for node in self.nodes}
        edge_views = [
            EdgeView(edge.id, edge.source, edge.target, edge.source_anchor, edge.target_anchor,
                     selected=edge.id in self.selected_edges)
            for edge in self.edges
            if edge.source in node_ids and edge.target in node_ids
        ]

        minimap = [
            MinimapEntry(node.id, node.position.x, node.position.y, view.size[0], view.size[1],
                         minimap_color(node))
            for node, view in zip(self.nodes, views)
        ]

        palette = config.get_current_palette()
        return CanvasFrame(
            nodes=views,
            edges=edge_views,
            grid=GridSpec(gap=config.GRID_GAP, color=palette.GRID),
            controls=ControlsSpec(
                zoom=self.viewport.zoom,
                can_zoom_in=self.viewport.zoom < config.MAX_ZOOM,
                can_zoom_out=self.viewport.zoom > config.MIN_ZOOM,
            ),
            minimap=minimap,
            viewport=replace(self.viewport),
            state=self.state,
            context_menu=self.context_menu,
            selected_nodes=set(self.selected_nodes),
        )

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Bounding box of every node in canvas units, or None for an empty canvas."""
        frame_nodes = self.render().nodes
        if not frame_nodes:
            return None
        left = min(view.position[0] for view in frame_nodes)
        top = min(view.position[1] for view in frame_nodes)
        right = max(view.position[0] + view.size[0] for view in frame_nodes)
        bottom = max(view.position[1] + view.size[1] for view in frame_nodes)
        return left, top, right, bottom

    def fit_view(self, viewport_size: Tuple[float, float]):
        bounds = self.bounds()
        if bounds is None:
            self.viewport = Viewport()
        else:
            self.viewport.fit(bounds, viewport_size)
        self._changed()

    # --- Connections ---

    def connect(self, source: str, source_anchor, target: str, target_anchor):
        """Creates an edge between two existing nodes. Self-loops and parallel edges are allowed."""
        if self.node(source) is None or self.node(target) is None:
            logger.warning("Ignoring connection %s -> %s: endpoint missing", source, target)
            return None
        connection = Connection(source, Anchor(source_anchor), target, Anchor(target_anchor))
        logger.debug("Connecting %s:%s -> %s:%s", source, connection.source_anchor.value,
                     target, connection.target_anchor.value)
        return self._on_connect(connection)

    # --- Node creation ---

    def add_node(self, node: Node) -> Node:
        self.apply_node_changes([NodeChange.add(node)])
        logger.info("Added %s node %s at (%.0f, %.0f)", node.kind_name, node.id,
                    node.position.x, node.position.y)
        return node

    def add_text_box(self, position: Position) -> Node:
        payload = TextData(
            content=config.DEFAULT_TEXT_CONTENT,
            font_size=config.DEFAULT_FONT_SIZE,
            font_weight=config.DEFAULT_FONT_WEIGHT,
            editing=True,
        )
        node = Node(id=new_node_id(NodeKind.TEXT), kind=NodeKind.TEXT, position=position, payload=payload)
        return self.add_node(node)

    def _add_text_box_from_menu(self, canvas_position):
        position = Position(*canvas_position)
        if self._on_add_text_box:
            self._on_add_text_box(position)
        else:
            self.add_text_box(position)

    def add_palette_item(self, descriptor, viewport_size: Tuple[float, float]) -> Optional[Node]:
        """
        Quick-adds a palette entry at the centre of the visible area.

        Each addition is shifted by a cycling offset so repeated additions
        do not land exactly on top of each other.
        """
        center = self.viewport.screen_to_canvas((viewport_size[0] / 2, viewport_size[1] / 2))
        offset = (self._quick_add_count % config.QUICK_ADD_CYCLE) * config.QUICK_ADD_OFFSET
        node = node_from_descriptor(descriptor, center.offset(offset, offset))
        if node is None:
            logger.warning("Ignoring palette item that is neither a phase nor a technique")
            return None
        self._quick_add_count += 1
        return self.add_node(node)

    # --- Drag and drop ---

    def on_drag_over(self, event: DropEvent):
        event.prevent_default()
        event.drop_effect = "move"

    def on_drop(self, event: DropEvent) -> Optional[Node]:
        event.prevent_default()
        position = self.viewport.screen_to_canvas(event.screen_position)
        if self._on_drop:
            self._on_drop(event, position)
            return None

        node = node_from_descriptor(parse_drop_payload(event.data), position)
        if node is None:
            logger.warning("Ignoring drop with an unrecognised payload")
            return None
        return self.add_node(node)

    # --- Context menu ---

    def on_context_menu(self, event: ContextMenuEvent):
        event.prevent_default()
        canvas = self.viewport.screen_to_canvas(event.screen_position)
        self.context_menu.open(event.screen_position, (canvas.x, canvas.y))
        self.state = InteractionState.CONTEXT_MENU_OPEN
        self._changed()

    def _menu_closed(self):
        if self.state == InteractionState.CONTEXT_MENU_OPEN:
            self.state = InteractionState.IDLE
        self._changed()

    # --- Selection ---

    def on_node_click(self, node_id: str, additive: bool = False):
        node = self.node(node_id)
        if node is None:
            return
        if additive:
            self.selected_nodes ^= {node_id}
        else:
            self.selected_nodes = {node_id}
            self.selected_edges = set()
        if self._on_node_click:
            self._on_node_click(node)
        self._changed()

    def on_edge_click(self, edge_id: str, additive: bool = False):
        if not any(edge.id == edge_id for edge in self.edges):
            return
        if additive:
            self.selected_edges ^= {edge_id}
        else:
            self.selected_edges = {edge_id}
            self.selected_nodes = set()
        self._changed()

    def on_pane_click(self):
        self.context_menu.close()
        self.clear_selection()

    def select_nodes(self, node_ids: Iterable[str], additive: bool = False):
        """Rubber-band selection."""
        known = {node.id for node in self.nodes}
        chosen = set(node_ids) & known
        if additive:
            self.selected_nodes |= chosen
        else:
            self.selected_nodes = chosen
            self.selected_edges = set()
        self._changed()

    def select_all(self):
        self.selected_nodes = {node.id for node in self.nodes}
        self.selected_edges = {edge.id for edge in self.edges}
        self._changed()

    def clear_selection(self):
        if not self.selected_nodes and not self.selected_edges:
            return
        self.selected_nodes = set()
        self.selected_edges = set()
        self._changed()

    def set_hovered(self, node_id: Optional[str]):
        if node_id == self.hovered_node:
            return
        self.hovered_node = node_id
        self._changed()

    # --- Dragging ---

    def on_node_pointer_down(self, node_id: str, event: PointerEvent):
        if self.node(node_id) is None:
            return
        if node_id not in self.selected_nodes:
            if event.additive:
                self.selected_nodes.add(node_id)
            else:
                self.selected_nodes = {node_id}
                self.selected_edges = set()
        self._drag_origin = event.screen_position
        self._drag_start = {node.id: node.position for node in self.nodes if node.id in self.selected_nodes}
        self._drag_moved = False
        self.state = InteractionState.DRAGGING
        self._changed()

    def _drag_changes(self, screen_position, dragging: bool) -> List[NodeChange]:
        dx = (screen_position[0] - self._drag_origin[0]) / self.viewport.zoom
        dy = (screen_position[1] - self._drag_origin[1]) / self.viewport.zoom
        return [NodeChange.move(node_id, start.offset(dx, dy), dragging=dragging)
                for node_id, start in self._drag_start.items()]

    def on_pointer_move(self, event: PointerEvent):
        if self.state != InteractionState.DRAGGING or self._drag_origin is None:
            return
        self._drag_moved = True
        self.apply_node_changes(self._drag_changes(event.screen_position, dragging=True))

    def on_pointer_up(self, event: PointerEvent):
        if self.state != InteractionState.DRAGGING:
            return
        if self._drag_moved and self._drag_origin is not None:
            self.apply_node_changes(self._drag_changes(event.screen_position, dragging=False))
        self._drag_origin = None
        self._drag_start = {}
        self._drag_moved = False
        self.state = InteractionState.IDLE
        self._changed()

    # --- Text editors ---

    def set_editor_focus(self, node_id: str, focused: bool):
        """Tracks which Text node's raw-text input has keyboard focus."""
        if focused:
            self._focused_editor = node_id
        elif self._focused_editor == node_id:
            self._focused_editor = None

    @property
    def text_input_focused(self) -> bool:
        return self._focused_editor is not None

    # --- Keyboard ---

    def on_key_down(self, event: KeyEvent) -> bool:
        """Returns True when the key was handled by the canvas."""
        editor = self._editors.get(self._focused_editor) if self._focused_editor else None
        if editor is not None and editor.handle_key(event.key, ctrl=event.ctrl, meta=event.meta):
            self._changed()
            return True

        typing = event.in_text_input or self.text_input_focused
        if event.key in DELETE_KEYS:
            if typing:
                return False
            return self.delete_selection()

        if event.key == "Escape" and self.context_menu.visible:
            self.context_menu.close()
            return True

        if event.key.lower() == "a" and (event.ctrl or event.meta) and not typing:
            self.select_all()
            return True
        return False

    # --- Deletion ---

    def _remove(self, node_ids: List[str], edge_ids: Set[str]):
        # Edges go first so no frame ever sees an edge whose endpoint is gone.
        edge_ids = set(edge_ids) | incident_edge_ids(self.edges, node_ids)
        ordered_edges = [edge.id for edge in self.edges if edge.id in edge_ids]
        if ordered_edges:
            self.apply_edge_changes([EdgeChange.remove(edge_id) for edge_id in ordered_edges])
        if node_ids:
            self.apply_node_changes([NodeChange.remove(node_id) for node_id in node_ids])
        self.selected_nodes -= set(node_ids)
        self.selected_edges -= edge_ids
        logger.info("Deleted %d node(s) and %d edge(s)", len(node_ids), len(ordered_edges))

    def delete_selection(self) -> bool:
        node_ids = [node.id for node in self.nodes if node.id in self.selected_nodes]
        edge_ids = {edge.id for edge in self.edges if edge.id in self.selected_edges}
        if not node_ids and not edge_ids:
            return False
        self._remove(node_ids, edge_ids)
        self._changed()
        return True

    def remove_node(self, node_id: str):
        """Removes one node and its incident edges, whatever the selection is."""
        if self.node(node_id) is None:
            logger.debug("remove_node: unknown id %s", node_id)
            return
        self._remove([node_id], set())
        self._changed()
