import logging

from PySide6.QtWidgets import QGraphicsScene
from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QColor, QTransform

from planforge_config import get_current_palette
from planforge_connections import EdgeItem, PendingConnection
from planforge_items import (
    FallbackNodeItem, NodeItem, PhaseNodeItem, TechniqueNodeItem, TextNodeItem
)

logger = logging.getLogger(__name__)


class PlanScene(QGraphicsScene):
    """
    Holds one graphics item per node and edge of the controller's current frame.

    The scene is rebuilt from `controller.render()` on every controller change:
    items are matched to views by id, created when new, updated in place when
    present and removed when their node or edge is gone.
    """
    scene_changed = Signal()

    ITEM_TYPES = {
        "phase": PhaseNodeItem,
        "technique": TechniqueNodeItem,
        "text": TextNodeItem,
    }

    def __init__(self, controller, window=None):
        super().__init__()
        self.window = window
        self.controller = controller
        self.frame = None
        self.node_items = {}
        self.edge_items = {}
        self._pending = None
        self.setBackgroundBrush(QColor(get_current_palette().CANVAS_BACKGROUND))
        controller.add_listener(lambda _controller: self.refresh())
        self.refresh()

    def refresh(self):
        """Re-renders the frame and syncs the scene's items with it."""
        frame = self.controller.render()
        self.frame = frame

        seen = set()
        for view in frame.nodes:
            seen.add(view.node_id)
            item_cls = self.ITEM_TYPES.get(view.kind, FallbackNodeItem)
            item = self.node_items.get(view.node_id)
            if item is not None and type(item) is not item_cls:
                self.removeItem(item)
                item = None
            if item is None:
                item = item_cls(view, self.controller)
                self.addItem(item)
                self.node_items[view.node_id] = item
                if isinstance(item, TextNodeItem):
                    item.on_added()
            else:
                item.set_view(view)

        for node_id in [node_id for node_id in self.node_items if node_id not in seen]:
            self.removeItem(self.node_items.pop(node_id))

        seen_edges = set()
        for edge_view in frame.edges:
            start = self.node_items.get(edge_view.source)
            end = self.node_items.get(edge_view.target)
            if start is None or end is None:
                continue
            seen_edges.add(edge_view.edge_id)
            item = self.edge_items.get(edge_view.edge_id)
            if item is None:
                item = EdgeItem(edge_view, start, end, self.controller)
                self.addItem(item)
                self.edge_items[edge_view.edge_id] = item
            else:
                item.set_edge(edge_view, start, end)

        for edge_id in [edge_id for edge_id in self.edge_items if edge_id not in seen_edges]:
            self.removeItem(self.edge_items.pop(edge_id))

        self.scene_changed.emit()

    def on_theme_changed(self):
        self.setBackgroundBrush(QColor(get_current_palette().CANVAS_BACKGROUND))
        self.update()

    def node_item_at(self, scene_pos):
        for item in self.items(scene_pos):
            if isinstance(item, NodeItem):
                return item
        return None

    # --- Connection gesture ---

    def begin_connection(self, source_item, side):
        self.cancel_connection()
        self._pending = PendingConnection(source_item, side)
        self.addItem(self._pending)

    def update_connection(self, scene_pos):
        if self._pending is not None:
            self._pending.set_end(scene_pos)

    def cancel_connection(self):
        if self._pending is not None:
            self.removeItem(self._pending)
            self._pending = None

    def finish_connection(self, scene_pos):
        """Connects the dragged anchor to the anchor nearest the drop point, if over a node."""
        pending = self._pending
        if pending is None:
            return None
        self.cancel_connection()

        target = self.node_item_at(scene_pos)
        if target is None:
            logger.debug("Connection from %s released over empty canvas", pending.source_item.node_id)
            return None
        local = target.mapFromScene(scene_pos)
        anchor = target.anchor_at(local) or target.nearest_anchor(local)
        if anchor is None:
            return None
        if target is pending.source_item and anchor.side == pending.side:
            return None
        return self.controller.connect(pending.source_item.node_id, pending.side,
                                       target.node_id, anchor.side)

    # --- Input ---

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self.itemAt(event.scenePos(), QTransform()) is None:
            self.controller.on_pane_click()
        super().mousePressEvent(event)
