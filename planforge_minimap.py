from PySide6.QtWidgets import QWidget, QLabel
from PySide6.QtCore import Qt, QRectF, QTimer, Signal
from PySide6.QtGui import QPainter, QColor, QPen, QCursor

from planforge_config import get_current_palette


class MinimapWidget(QWidget):
    """
    An overview of the whole plan in the corner of the canvas.

    Every node is drawn as a small rectangle in its minimap colour, scaled so
    all nodes fit, with the visible part of the canvas outlined. Clicking a
    rectangle emits `nodeSelected` with the node id.
    """
    nodeSelected = Signal(object)
    PADDING = 8

    def __init__(self, scene, parent=None):
        super().__init__(parent)
        self.scene = scene
        self.entries = []
        self.visible_rect = None
        self._hovered_id = None
        self._is_near_cursor = False
        self.setMouseTracking(True)
        self.setFixedSize(200, 140)

        # Tooltip with the hovered node's title, shown after a short hover.
        self._hover_timer = QTimer(self)
        self._hover_timer.setSingleShot(True)
        self._hover_timer.setInterval(500)
        self._hover_timer.timeout.connect(self._show_tooltip)

        self._tooltip_widget = QLabel(self.parent())
        self._tooltip_widget.setWindowFlags(Qt.WindowType.ToolTip | Qt.WindowType.FramelessWindowHint)
        self._tooltip_widget.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self._tooltip_widget.setStyleSheet("""
            QLabel {
                background-color: rgba(30, 30, 30, 0.9);
                color: #e0e0e0;
                border: 1px solid #555;
                border-radius: 4px;
                padding: 6px;
                font-size: 11px;
            }
        """)
        self._tooltip_widget.hide()

    def update_nodes(self):
        """Pulls the minimap entries from the scene's current frame."""
        frame = self.scene.frame
        self.entries = list(frame.minimap) if frame else []
        if self._hovered_id and not any(entry.node_id == self._hovered_id for entry in self.entries):
            self._hovered_id = None
        self.update()

    def set_visible_rect(self, rect):
        """The scene rectangle currently shown by the view."""
        self.visible_rect = rect
        self.update()

    def _world_rect(self):
        if not self.entries:
            return None
        left = min(entry.x for entry in self.entries)
        top = min(entry.y for entry in self.entries)
        right = max(entry.x + entry.width for entry in self.entries)
        bottom = max(entry.y + entry.height for entry in self.entries)
        return QRectF(left, top, max(right - left, 1.0), max(bottom - top, 1.0))

    def _transform(self):
        """Returns (scale, dx, dy) mapping canvas units into widget pixels."""
        world = self._world_rect()
        if world is None:
            return None
        usable_w = self.width() - self.PADDING * 2
        usable_h = self.height() - self.PADDING * 2
        scale = min(usable_w / world.width(), usable_h / world.height())
        dx = self.PADDING + (usable_w - world.width() * scale) / 2 - world.left() * scale
        dy = self.PADDING + (usable_h - world.height() * scale) / 2 - world.top() * scale
        return scale, dx, dy

    def _entry_rect(self, entry, transform):
        scale, dx, dy = transform
        return QRectF(entry.x * scale + dx, entry.y * scale + dy,
                      max(entry.width * scale, 2.0), max(entry.height * scale, 2.0))

    def paintEvent(self, event):
        palette = get_current_palette()
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        # Fades in when the cursor is over it.
        opacity_factor = 1.0 if self._is_near_cursor else 0.4

        background = QColor(palette.NODE_SURFACE)
        background.setAlphaF(0.85 * opacity_factor)
        painter.setPen(QPen(QColor(palette.NODE_BORDER), 1))
        painter.setBrush(background)
        painter.drawRoundedRect(QRectF(self.rect()).adjusted(0.5, 0.5, -0.5, -0.5), 6, 6)

        transform = self._transform()
        if transform is None:
            return

        painter.setPen(Qt.PenStyle.NoPen)
        for entry in self.entries:
            color = QColor("#ffffff") if entry.node_id == self._hovered_id else QColor(entry.color)
            color.setAlphaF(opacity_factor)
            painter.setBrush(color)
            painter.drawRoundedRect(self._entry_rect(entry, transform), 2, 2)

        if self.visible_rect is not None:
            scale, dx, dy = transform
            visible = QRectF(self.visible_rect.left() * scale + dx, self.visible_rect.top() * scale + dy,
                             self.visible_rect.width() * scale, self.visible_rect.height() * scale)
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.setPen(QPen(QColor(palette.SELECTION), 1))
            painter.drawRect(visible.intersected(QRectF(self.rect())))

    def _entry_at(self, pos):
        transform = self._transform()
        if transform is None:
            return None
        # Topmost first, matching paint order.
        for entry in reversed(self.entries):
            if self._entry_rect(entry, transform).contains(pos):
                return entry
        return None

    def _update_hover_state(self, local_pos):
        if not self._is_near_cursor:
            self._is_near_cursor = True
            self.update()

        entry = self._entry_at(local_pos)
        hovered_id = entry.node_id if entry else None
        if hovered_id != self._hovered_id:
            self._hovered_id = hovered_id
            self._hover_timer.stop()
            self._hide_tooltip()
            if hovered_id:
                self._hover_timer.start()
            self.update()

    def mouseMoveEvent(self, event):
        self._update_hover_state(event.position())

    def mousePressEvent(self, event):
        entry = self._entry_at(event.position())
        if entry:
            self.nodeSelected.emit(entry.node_id)

    def leaveEvent(self, event):
        self._is_near_cursor = False
        self._hovered_id = None
        self._hover_timer.stop()
        self._hide_tooltip()
        self.update()
        super().leaveEvent(event)

    def _show_tooltip(self):
        if not self._hovered_id or self.scene.frame is None:
            return
        view = self.scene.frame.node(self._hovered_id)
        if view is None:
            return
        text = view.title
        if len(text) > 50:
            text = text[:47] + "..."
        self._tooltip_widget.setText(text)
        self._tooltip_widget.adjustSize()

        tooltip_pos = QCursor.pos()
        tooltip_pos.setX(tooltip_pos.x() - self._tooltip_widget.width() - 15)
        self._tooltip_widget.move(tooltip_pos)
        self._tooltip_widget.show()

    def _hide_tooltip(self):
        self._tooltip_widget.hide()
