import logging

from PySide6.QtWidgets import (
    QGraphicsView, QApplication, QLineEdit, QTextEdit, QGraphicsProxyWidget
)
from PySide6.QtCore import Qt, QPointF, QRectF
from PySide6.QtGui import QPainter, QColor, QPen, QTransform, QGuiApplication

import planforge_config as config
from planforge_controller import ContextMenuEvent, DropEvent, KeyEvent
from planforge_items import NodeItem
from planforge_minimap import MinimapWidget
from planforge_scene import PlanScene
from planforge_widgets import ContextMenuOverlay, ZoomControls

logger = logging.getLogger(__name__)

KEY_NAMES = {
    Qt.Key.Key_Delete: "Delete",
    Qt.Key.Key_Backspace: "Backspace",
    Qt.Key.Key_Escape: "Escape",
    Qt.Key.Key_Return: "Enter",
    Qt.Key.Key_Enter: "Enter",
}


class PlanView(QGraphicsView):
    """
    The canvas widget: pan, zoom, rubber-band selection, drops from the
    palette, the right-click menu and the background grid.

    The controller's Viewport is kept in step with the view transform so
    screen positions handed to the controller convert to the same canvas
    positions Qt uses.
    """

    def __init__(self, controller, window=None):
        super().__init__()
        self.window = window
        self.controller = controller
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setViewportUpdateMode(QGraphicsView.ViewportUpdateMode.FullViewportUpdate)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)

        self.setScene(PlanScene(controller, window))

        self.setDragMode(QGraphicsView.DragMode.RubberBandDrag)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setMouseTracking(True)
        self.setAcceptDrops(True)

        # Set a very large scene rect to allow extensive panning.
        self.setSceneRect(-100000, -100000, 200000, 200000)

        self._panning = False
        self._last_mouse_pos = None
        self._band_rect = None

        self.rubberBandChanged.connect(self._on_rubber_band_changed)

        self.context_menu_overlay = ContextMenuOverlay(controller.context_menu, self.viewport())

        self.zoom_controls = ZoomControls(self)
        self.zoom_controls.zoomInRequested.connect(self.zoom_in)
        self.zoom_controls.zoomOutRequested.connect(self.zoom_out)
        self.zoom_controls.fitRequested.connect(self.fit_all)

        self.minimap_widget = MinimapWidget(self.scene(), self)
        self.minimap_widget.nodeSelected.connect(self._on_minimap_node_selected)
        self.scene().scene_changed.connect(self.minimap_widget.update_nodes)

        controller.add_listener(self._on_controller_changed)
        self._initial_show = True

    # --- Viewport bookkeeping ---

    def sync_viewport(self):
        """Copies the current Qt transform into the controller's Viewport."""
        origin = self.viewportTransform().map(QPointF(0, 0))
        viewport = self.controller.viewport
        viewport.x = origin.x()
        viewport.y = origin.y()
        viewport.zoom = self.transform().m11()
        self.minimap_widget.set_visible_rect(self.mapToScene(self.viewport().rect()).boundingRect())

    def apply_viewport(self):
        """Makes the Qt transform match the controller's Viewport."""
        viewport = self.controller.viewport
        self.setTransform(QTransform.fromScale(viewport.zoom, viewport.zoom))
        center = viewport.screen_to_canvas((self.viewport().width() / 2, self.viewport().height() / 2))
        self.centerOn(QPointF(center.x, center.y))
        self.sync_viewport()
        self.zoom_controls.update_controls(self.controller.render().controls)

    def zoom_in(self, anchor=None):
        self.sync_viewport()
        self.controller.viewport.zoom_in(anchor)
        self.apply_viewport()

    def zoom_out(self, anchor=None):
        self.sync_viewport()
        self.controller.viewport.zoom_out(anchor)
        self.apply_viewport()

    def reset_zoom(self):
        self.sync_viewport()
        self.controller.viewport.set_zoom(1.0)
        self.apply_viewport()

    def fit_all(self):
        """Zooms and pans the view to fit every node."""
        self.controller.fit_view((self.viewport().width(), self.viewport().height()))
        self.apply_viewport()
        logger.debug("Fitted view at zoom %.2f", self.controller.viewport.zoom)

    def viewport_size(self):
        return (self.viewport().width(), self.viewport().height())

    def _on_controller_changed(self, controller):
        self.context_menu_overlay.sync()
        frame = self.scene().frame
        if frame is not None:
            self.zoom_controls.update_controls(frame.controls)

    def _on_minimap_node_selected(self, node_id):
        frame = self.scene().frame
        view = frame.node(node_id) if frame else None
        if view is None:
            return
        self.centerOn(QPointF(view.position[0] + view.size[0] / 2, view.position[1] + view.size[1] / 2))
        self.sync_viewport()
        self.controller.on_node_click(node_id)

    def on_theme_changed(self):
        self.scene().on_theme_changed()
        self.context_menu_overlay.on_theme_changed()
        self.zoom_controls.on_theme_changed()
        self.scene().refresh()
        self.viewport().update()

    # --- Overlays ---

    def showEvent(self, event):
        super().showEvent(event)
        if self._initial_show:
            self._initial_show = False
            self.centerOn(QPointF(self.viewport().width() / 2, self.viewport().height() / 2))
            self._update_overlay_positions()
            self.sync_viewport()
            self.minimap_widget.update_nodes()

    def _update_overlay_positions(self):
        padding = 10
        width = self.viewport().width()
        height = self.viewport().height()
        self.zoom_controls.move(padding, height - self.zoom_controls.height() - padding)
        self.minimap_widget.move(width - self.minimap_widget.width() - padding,
                                 height - self.minimap_widget.height() - padding)
        self.context_menu_overlay.sync()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._update_overlay_positions()
        self.sync_viewport()

    def scrollContentsBy(self, dx, dy):
        super().scrollContentsBy(dx, dy)
        self.sync_viewport()

    # --- Mouse ---

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.MiddleButton:
            self._panning = True
            self._last_mouse_pos = event.position().toPoint()
            QApplication.setOverrideCursor(Qt.CursorShape.ClosedHandCursor)
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        # Failsafe: stop panning if the middle button was released outside the view.
        if self._panning and not (QGuiApplication.mouseButtons() & Qt.MouseButton.MiddleButton):
            self._panning = False
            self._last_mouse_pos = None
            QApplication.restoreOverrideCursor()

        if self._panning and self._last_mouse_pos is not None:
            delta = event.position().toPoint() - self._last_mouse_pos
            self.horizontalScrollBar().setValue(self.horizontalScrollBar().value() - delta.x())
            self.verticalScrollBar().setValue(self.verticalScrollBar().value() - delta.y())
            self._last_mouse_pos = event.position().toPoint()
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._panning:
            self._panning = False
            self._last_mouse_pos = None
            QApplication.restoreOverrideCursor()
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def _on_rubber_band_changed(self, rect, from_scene, to_scene):
        if not rect.isNull():
            self._band_rect = QRectF(from_scene, to_scene).normalized()
            return
        if self._band_rect is None:
            return
        band, self._band_rect = self._band_rect, None
        chosen = [item.node_id for item in self.scene().items(band, Qt.ItemSelectionMode.ContainsItemShape)
                  if isinstance(item, NodeItem)]
        additive = bool(QGuiApplication.keyboardModifiers() & Qt.KeyboardModifier.ControlModifier)
        self.controller.select_nodes(chosen, additive=additive)

    def wheelEvent(self, event):
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            anchor = (event.position().x(), event.position().y())
            if event.angleDelta().y() > 0:
                self.zoom_in(anchor)
            else:
                self.zoom_out(anchor)
            event.accept()
            return

        v_bar = self.verticalScrollBar()
        h_bar = self.horizontalScrollBar()
        if event.modifiers() & Qt.KeyboardModifier.ShiftModifier:
            delta = event.angleDelta().y() if event.angleDelta().y() != 0 else event.angleDelta().x()
            h_bar.setValue(h_bar.value() - delta)
        else:
            v_bar.setValue(v_bar.value() - event.angleDelta().y())
            h_bar.setValue(h_bar.value() - event.angleDelta().x())
        event.accept()

    def contextMenuEvent(self, event):
        """Opens the canvas menu for right-clicks on empty canvas."""
        if self.itemAt(event.pos()) is not None:
            super().contextMenuEvent(event)
            return
        self.sync_viewport()
        self.controller.on_context_menu(ContextMenuEvent((event.pos().x(), event.pos().y())))
        event.accept()

    # --- Drag and drop from the palette ---

    def _drop_event(self, event):
        point = event.position()
        return DropEvent((point.x(), point.y()), bytes(event.mimeData().data(config.DRAG_MIME_TYPE)))

    def dragEnterEvent(self, event):
        if event.mimeData().hasFormat(config.DRAG_MIME_TYPE):
            event.setDropAction(Qt.DropAction.MoveAction)
            event.accept()
        else:
            event.ignore()

    def dragMoveEvent(self, event):
        if not event.mimeData().hasFormat(config.DRAG_MIME_TYPE):
            event.ignore()
            return
        drop = DropEvent((event.position().x(), event.position().y()))
        self.controller.on_drag_over(drop)
        if drop.default_prevented:
            event.setDropAction(Qt.DropAction.MoveAction)
            event.accept()

    def dropEvent(self, event):
        if not event.mimeData().hasFormat(config.DRAG_MIME_TYPE):
            event.ignore()
            return
        self.sync_viewport()
        self.controller.on_drop(self._drop_event(event))
        event.setDropAction(Qt.DropAction.MoveAction)
        event.accept()

    # --- Keyboard ---

    def keyPressEvent(self, event):
        # Keys belong to the text box being edited, or to an embedded widget.
        focused_item = self.scene().focusItem() if self.scene() else None
        if focused_item and (
            getattr(focused_item, 'editing', False) or
            isinstance(focused_item, QGraphicsProxyWidget)
        ):
            super().keyPressEvent(event)
            return

        key = KEY_NAMES.get(event.key(), event.text())
        if event.key() == Qt.Key.Key_A:
            key = "a"
        if not key:
            super().keyPressEvent(event)
            return

        modifiers = event.modifiers()
        key_event = KeyEvent(
            key=key,
            ctrl=bool(modifiers & Qt.KeyboardModifier.ControlModifier),
            meta=bool(modifiers & Qt.KeyboardModifier.MetaModifier),
            shift=bool(modifiers & Qt.KeyboardModifier.ShiftModifier),
            in_text_input=isinstance(QApplication.focusWidget(), (QLineEdit, QTextEdit)),
        )
        if self.controller.on_key_down(key_event):
            event.accept()
            return
        super().keyPressEvent(event)

    # --- Background ---

    def drawBackground(self, painter, rect):
        """Draws the canvas colour and a dotted grid, hidden when zoomed far out."""
        palette = config.get_current_palette()
        painter.fillRect(rect, QColor(palette.CANVAS_BACKGROUND))

        frame = self.scene().frame
        gap = frame.grid.gap if frame else config.GRID_GAP
        color = QColor(frame.grid.color if frame else palette.GRID)
        color.setAlphaF(0.35)

        zoom = self.transform().m11()
        # Level of detail: dots would merge into noise below this zoom.
        if zoom < 0.4:
            return

        pen = QPen(color, 1.5 / zoom)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        painter.setPen(pen)

        left, top, right, bottom = int(rect.left()), int(rect.top()), int(rect.right()), int(rect.bottom())
        first_x = left - (left % gap)
        first_y = top - (top % gap)
        points = [QPointF(x, y) for x in range(first_x, right, gap) for y in range(first_y, bottom, gap)]
        if points:
            painter.drawPoints(points)
