"""
QGraphicsItem subclasses that paint the controller's NodeViews on the canvas.

Items hold no graph state of their own. They draw the NodeView they were last
given and forward pointer input to the CanvasController, which turns it into
change batches; the scene then hands every item its refreshed view.

This includes:
- NodeItem: shared geometry, anchors and pointer forwarding.
- PhaseNodeItem, TechniqueNodeItem: read-only kill-chain and technique cards.
- TextNodeItem: the markdown text box with in-place editing, toolbar and resize grip.
- FallbackNodeItem: anything no renderer is registered for.
"""

import qtawesome as qta

from PySide6.QtWidgets import QGraphicsItem
from PySide6.QtCore import Qt, QRectF, QPointF, QTimer
from PySide6.QtGui import (
    QPainter, QColor, QBrush, QPen, QFont, QFontMetrics, QPainterPath,
    QLinearGradient, QTextDocument, QTextLayout, QTextOption, QTextCharFormat,
    QGuiApplication
)

from planforge_config import get_current_palette
from planforge_controller import PointerEvent
from planforge_model import Anchor, FONT_SIZES, FONT_WEIGHTS
from planforge_styles import PHASE_COLORS, PHASE_FALLBACK_COLOR, TEXT_NODE_ACCENT
from planforge_text_editor import (
    FONT_SIZE_LABELS, FONT_SIZE_POINTS, FONT_WEIGHT_LABELS, FONT_WEIGHT_VALUES
)

ANCHOR_RADIUS = 6
CLICK_SLOP = 3


def _additive(event):
    return bool(event.modifiers() & (Qt.KeyboardModifier.ShiftModifier | Qt.KeyboardModifier.ControlModifier))


def _screen_position(event):
    point = event.screenPos()
    return (point.x(), point.y())


def _placeholder_font(point_size):
    font = QFont("Segoe UI", point_size)
    font.setItalic(True)
    return font


class NodeItem(QGraphicsItem):
    """
    Base class for every node on the canvas.

    Args:
        node_view (NodeView): What to paint.
        controller (CanvasController): Receives clicks, drags and connect gestures.
    """
    CORNER_RADIUS = 10

    def __init__(self, node_view, controller):
        super().__init__()
        self.controller = controller
        self.node_view = node_view
        self.node_id = node_view.node_id
        self.hovered = False
        self._press_screen = None
        self._moved = False
        self._click_on_release = False
        self._connecting = False
        self.setAcceptHoverEvents(True)
        self.setZValue(1)
        self.set_view(node_view)

    @property
    def width(self):
        return self.node_view.size[0]

    @property
    def height(self):
        return self.node_view.size[1]

    def set_view(self, node_view):
        """Adopts a freshly rendered view of the same node."""
        self.prepareGeometryChange()
        self.node_view = node_view
        self.setPos(QPointF(*node_view.position))
        self.update()

    def boundingRect(self):
        r = ANCHOR_RADIUS
        return QRectF(-r, -r, self.width + 2 * r, self.height + 2 * r)

    # --- Anchors ---

    def anchor_point(self, side):
        if side == Anchor.TOP:
            return QPointF(self.width / 2, 0)
        if side == Anchor.BOTTOM:
            return QPointF(self.width / 2, self.height)
        if side == Anchor.LEFT:
            return QPointF(0, self.height / 2)
        return QPointF(self.width, self.height / 2)

    def scene_anchor_point(self, side):
        return self.mapToScene(self.anchor_point(side))

    def anchor_at(self, pos):
        """The anchor whose handle is under `pos` (item coordinates), if any."""
        for anchor in self.node_view.anchors:
            if (self.anchor_point(anchor.side) - pos).manhattanLength() <= ANCHOR_RADIUS * 2:
                return anchor
        return None

    def nearest_anchor(self, pos):
        anchors = self.node_view.anchors
        if not anchors:
            return None
        return min(anchors, key=lambda anchor: (self.anchor_point(anchor.side) - pos).manhattanLength())

    # --- Painting helpers ---

    def paint_body(self, painter, palette, border=None):
        path = QPainterPath()
        path.addRoundedRect(QRectF(0, 0, self.width, self.height), self.CORNER_RADIUS, self.CORNER_RADIUS)

        pen = QPen(QColor(border or palette.NODE_BORDER), 1)
        if self.node_view.selected:
            pen = QPen(QColor(palette.SELECTION), 2)
        elif self.hovered:
            pen = QPen(QColor("#ffffff"), 1.5)
        painter.setPen(pen)

        surface = QColor(palette.NODE_SURFACE)
        gradient = QLinearGradient(QPointF(0, 0), QPointF(0, self.height))
        gradient.setColorAt(0, surface.lighter(125))
        gradient.setColorAt(1, surface)
        painter.setBrush(QBrush(gradient))
        painter.drawPath(path)

    def paint_anchors(self, painter, palette):
        for anchor in self.node_view.anchors:
            color = QColor(palette.EDGE)
            if not (anchor.emphasized or self.hovered):
                color.setAlpha(50)
            painter.setPen(QPen(QColor(palette.NODE_SURFACE), 1.5))
            painter.setBrush(QBrush(color))
            painter.drawEllipse(self.anchor_point(anchor.side), ANCHOR_RADIUS - 2, ANCHOR_RADIUS - 2)

    def paint_title(self, painter, palette, rect, text, point_size=10, bold=True):
        font = QFont("Segoe UI", point_size)
        font.setBold(bold)
        painter.setFont(font)
        painter.setPen(QColor(palette.TEXT_PRIMARY))
        elided = QFontMetrics(font).elidedText(text, Qt.TextElideMode.ElideRight, int(rect.width()))
        painter.drawText(rect, Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, elided)

    # --- Pointer input ---

    def hoverEnterEvent(self, event):
        self.hovered = True
        self.controller.set_hovered(self.node_id)
        self.update()
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event):
        self.hovered = False
        if self.controller.hovered_node == self.node_id:
            self.controller.set_hovered(None)
        self.update()
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            event.ignore()
            return

        anchor = self.anchor_at(event.pos())
        if anchor is not None and self.scene():
            self._connecting = True
            self.scene().begin_connection(self, anchor.side)
            event.accept()
            return

        if _additive(event):
            self._press_screen = None
            self.controller.on_node_click(self.node_id, additive=True)
            event.accept()
            return

        # Pressing an unselected node selects it; pressing a selected one keeps
        # the group so it can be dragged together.
        self._click_on_release = self.node_id in self.controller.selected_nodes
        if not self._click_on_release:
            self.controller.on_node_click(self.node_id)
        self._press_screen = event.screenPos()
        self._moved = False
        self.controller.on_node_pointer_down(self.node_id, PointerEvent(_screen_position(event)))
        event.accept()

    def mouseMoveEvent(self, event):
        if self._connecting and self.scene():
            self.scene().update_connection(event.scenePos())
            return
        if self._press_screen is None:
            return
        if (event.screenPos() - self._press_screen).manhattanLength() >= CLICK_SLOP:
            self._moved = True
        if self._moved:
            self.controller.on_pointer_move(PointerEvent(_screen_position(event)))

    def mouseReleaseEvent(self, event):
        if self._connecting:
            self._connecting = False
            if self.scene():
                self.scene().finish_connection(event.scenePos())
            return
        if self._press_screen is None:
            return
        self._press_screen = None
        self.controller.on_pointer_up(PointerEvent(_screen_position(event)))
        if not self._moved:
            if self._click_on_release:
                self.controller.on_node_click(self.node_id)
            self.clicked(event.pos())

    def clicked(self, pos):
        """Called for a press/release without movement."""


class PhaseNodeItem(NodeItem):
    """A kill-chain phase marker: coloured stripe, icon and label."""

    def paint(self, painter, option, widget=None):
        palette = get_current_palette()
        view = self.node_view
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        color = QColor(PHASE_COLORS.get(view.badge, PHASE_FALLBACK_COLOR))
        self.paint_body(painter, palette, border=color.darker(130).name())

        stripe = QPainterPath()
        stripe.addRoundedRect(QRectF(0, 0, 8, self.height), 4, 4)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(color)
        painter.drawPath(stripe)

        icon_rect = QRectF(18, (self.height - 20) / 2, 20, 20)
        qta.icon(view.icon, color=color.name()).paint(painter, icon_rect.toRect())

        title_rect = QRectF(46, 0, self.width - 54, self.height)
        if view.placeholder:
            painter.setPen(QColor(palette.TEXT_MUTED))
            painter.setFont(_placeholder_font(10))
            painter.drawText(title_rect, Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, view.title)
        else:
            self.paint_title(painter, palette, title_rect, view.title, point_size=11)

        self.paint_anchors(painter, palette)


class TechniqueNodeItem(NodeItem):
    """A technique card: title, MITRE id, phase badge, description and tags."""
    PADDING = 12
    HEADER_HEIGHT = 30

    def paint(self, painter, option, widget=None):
        palette = get_current_palette()
        view = self.node_view
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.paint_body(painter, palette)

        icon_rect = QRectF(self.PADDING, 8, 16, 16)
        qta.icon(view.icon, color=palette.ACCENT).paint(painter, icon_rect.toRect())

        if view.placeholder:
            painter.setPen(QColor(palette.TEXT_MUTED))
            painter.setFont(_placeholder_font(10))
            painter.drawText(QRectF(0, 0, self.width, self.height), Qt.AlignmentFlag.AlignCenter, view.title)
            self.paint_anchors(painter, palette)
            return

        # Phase badge on the right of the header.
        badge_width = 0
        if view.badge:
            badge_font = QFont("Segoe UI", 7)
            badge_font.setBold(True)
            metrics = QFontMetrics(badge_font)
            badge_width = min(metrics.horizontalAdvance(view.badge) + 14, self.width / 2)
            badge_rect = QRectF(self.width - self.PADDING - badge_width, 8, badge_width, 16)
            badge_color = QColor(PHASE_COLORS.get(view.badge, PHASE_FALLBACK_COLOR))
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(badge_color)
            painter.drawRoundedRect(badge_rect, 8, 8)
            painter.setPen(QColor("#ffffff"))
            painter.setFont(badge_font)
            text = metrics.elidedText(view.badge, Qt.TextElideMode.ElideRight, int(badge_width - 10))
            painter.drawText(badge_rect, Qt.AlignmentFlag.AlignCenter, text)

        title_rect = QRectF(self.PADDING + 22, 4, self.width - self.PADDING * 2 - 26 - badge_width, 24)
        self.paint_title(painter, palette, title_rect, view.title)

        y = self.HEADER_HEIGHT
        if view.subtitle:
            painter.setFont(QFont("Consolas", 8))
            painter.setPen(QColor(palette.TEXT_MUTED))
            painter.drawText(QRectF(self.PADDING, y, self.width - self.PADDING * 2, 14),
                             Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignVCenter, view.subtitle)
            y += 16

        tags_height = 16 if view.tags else 0
        body_rect = QRectF(self.PADDING, y + 2, self.width - self.PADDING * 2,
                           self.height - y - self.PADDING - tags_height)
        painter.setFont(QFont("Segoe UI", 8))
        painter.setPen(QColor(palette.TEXT_PRIMARY))
        painter.drawText(body_rect, Qt.TextFlag.TextWordWrap | Qt.AlignmentFlag.AlignTop, view.body)

        if view.tags:
            painter.setPen(QColor(palette.TEXT_MUTED))
            tag_text = "  ".join(f"#{tag}" for tag in view.tags)
            tag_rect = QRectF(self.PADDING, self.height - self.PADDING - tags_height + 4,
                              self.width - self.PADDING * 2, tags_height)
            elided = QFontMetrics(painter.font()).elidedText(tag_text, Qt.TextElideMode.ElideRight, int(tag_rect.width()))
            painter.drawText(tag_rect, Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignVCenter, elided)

        self.paint_anchors(painter, palette)


class FallbackNodeItem(NodeItem):
    """Dashed placeholder for node kinds nothing knows how to draw."""

    def paint(self, painter, option, widget=None):
        palette = get_current_palette()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(QPen(QColor(palette.TEXT_MUTED), 1.5, Qt.PenStyle.DashLine))
        painter.setBrush(QColor(palette.NODE_SURFACE))
        painter.drawRoundedRect(QRectF(0, 0, self.width, self.height), self.CORNER_RADIUS, self.CORNER_RADIUS)
        qta.icon(self.node_view.icon, color=palette.TEXT_MUTED).paint(painter, QRectF(12, (self.height - 16) / 2, 16, 16).toRect())
        painter.setPen(QColor(palette.TEXT_MUTED))
        painter.setFont(_placeholder_font(9))
        painter.drawText(QRectF(36, 0, self.width - 44, self.height),
                         Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, self.node_view.title)
        self.paint_anchors(painter, palette)


class TextNodeItem(NodeItem):
    """
    A free-form markdown text box.

    Viewing mode paints the markdown through a QTextDocument. Editing mode
    paints the raw draft with a caret and selection and takes keyboard input
    directly, routing every edit into the node's TextNodeEditor. Toolbar
    buttons and the resize grip also go through the editor, so commits and
    resizes reach the graph as change batches like everything else.
    """
    HEADER_HEIGHT = 32
    PADDING = 12
    GRIP_SIZE = 14

    TOOLBAR_ICONS = {
        "bold": "fa5s.bold",
        "italic": "fa5s.italic",
        "bullet": "fa5s.list-ul",
        "save": "fa5s.check",
        "cancel": "fa5s.times",
        "edit": "fa5s.edit",
        "delete": "fa5s.trash",
    }
    TOOLBAR_TIPS = {
        "bold": "Bold (Ctrl+B)",
        "italic": "Italic (Ctrl+I)",
        "bullet": "Bullet list",
        "save": "Save (Ctrl+Enter)",
        "cancel": "Cancel (Esc)",
        "edit": "Edit",
        "delete": "Delete",
        "font_size": "Font size",
        "font_weight": "Font weight",
    }

    def __init__(self, node_view, controller):
        self.document = QTextDocument()
        self._document_key = None
        self._toolbar_rects = []
        self._hovered_action = None
        self._selecting = False
        self._resizing = False
        self._resize_origin = None
        self._resize_start = None
        self._was_editing = False
        self.cursor_visible = True
        super().__init__(node_view, controller)

        self.cursor_timer = QTimer()
        self.cursor_timer.timeout.connect(self.toggle_cursor)
        self.cursor_timer.setInterval(500)

    @property
    def editor(self):
        return self.node_view.editor

    @property
    def editing(self):
        """Read by the view's keyboard guard: True while raw text is being edited."""
        return self.editor is not None and self.editor.is_editing

    def set_view(self, node_view):
        super().set_view(node_view)
        if self.editing and not self._was_editing:
            self._enter_editing()
        elif not self.editing and self._was_editing:
            self._leave_editing()
        self._was_editing = self.editing

    def _enter_editing(self):
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIsFocusable)
        if self.scene():
            self.setFocus()
        if hasattr(self, "cursor_timer"):
            self.cursor_timer.start()

    def _leave_editing(self):
        if hasattr(self, "cursor_timer"):
            self.cursor_timer.stop()
        if self.hasFocus():
            self.clearFocus()

    def itemChange(self, change, value):
        if change == QGraphicsItem.GraphicsItemChange.ItemSceneHasChanged and value is None:
            self.cursor_timer.stop()
        return super().itemChange(change, value)

    def on_added(self):
        """Called by the scene once the item is in it, so a new text box can take focus."""
        if self.editing:
            self._enter_editing()

    def toggle_cursor(self):
        self.cursor_visible = not self.cursor_visible
        self.update()

    def _refresh(self):
        if self.scene():
            self.scene().refresh()
        else:
            self.update()

    # --- Geometry ---

    def _content_rect(self):
        return QRectF(self.PADDING, self.HEADER_HEIGHT + 6,
                      self.width - self.PADDING * 2, self.height - self.HEADER_HEIGHT - self.PADDING - 6)

    def _grip_rect(self):
        return QRectF(self.width - self.GRIP_SIZE - 2, self.height - self.GRIP_SIZE - 2, self.GRIP_SIZE, self.GRIP_SIZE)

    def _font(self):
        editor = self.editor
        size = FONT_SIZE_POINTS.get(editor.font_size if editor else "base", 10)
        font = QFont("Segoe UI", size)
        font.setWeight(QFont.Weight(FONT_WEIGHT_VALUES.get(editor.font_weight if editor else "normal", 400)))
        return font

    def _layout_toolbar(self):
        self._toolbar_rects = []
        x = self.width - 6
        font = QFont("Segoe UI", 8)
        metrics = QFontMetrics(font)
        for action in reversed(self.node_view.toolbar):
            if action == "font_size":
                width = metrics.horizontalAdvance(FONT_SIZE_LABELS["xl"]) + 14
            elif action == "font_weight":
                width = metrics.horizontalAdvance(FONT_WEIGHT_LABELS["semibold"]) + 14
            else:
                width = 24
            x -= width
            self._toolbar_rects.insert(0, (action, QRectF(x, 4, width, 24)))
            x -= 2

    def _action_at(self, pos):
        for action, rect in self._toolbar_rects:
            if rect.contains(pos):
                return action
        return None

    # --- Painting ---

    def _sync_document(self):
        palette = get_current_palette()
        editor = self.editor
        content_width = self._content_rect().width()
        key = (editor.content if editor else "", editor.font_size if editor else "",
               editor.font_weight if editor else "", content_width, palette.TEXT_PRIMARY)
        if key == self._document_key:
            return
        self._document_key = key
        font = self._font()
        self.document.setDefaultFont(font)
        self.document.setDefaultStyleSheet(f"""
            p, ul, ol, li, blockquote, h1, h2, h3 {{ color: {palette.TEXT_PRIMARY}; }}
            pre {{ background-color: #1e1e1e; padding: 8px; white-space: pre-wrap; font-family: Consolas, monospace; }}
            code {{ font-family: Consolas, monospace; }}
        """)
        self.document.setHtml(editor.preview_html() if editor else "")
        self.document.setTextWidth(content_width)

    def _text_layout(self):
        layout = QTextLayout(self.editor.draft, self._font())
        text_option = QTextOption()
        text_option.setWrapMode(QTextOption.WrapMode.WrapAtWordBoundaryOrAnywhere)
        layout.setTextOption(text_option)
        layout.beginLayout()
        y = 0.0
        width = self._content_rect().width()
        while True:
            line = layout.createLine()
            if not line.isValid():
                break
            line.setLineWidth(width)
            line.setPosition(QPointF(0, y))
            y += line.height()
        layout.endLayout()
        return layout

    def _char_index_at(self, pos):
        """Maps a point in item coordinates to an index into the draft."""
        layout = self._text_layout()
        content = self._content_rect()
        x, y = pos.x() - content.left(), pos.y() - content.top()
        if layout.lineCount() == 0:
            return 0
        for i in range(layout.lineCount()):
            line = layout.lineAt(i)
            if y < line.y() + line.height():
                return line.xToCursor(x)
        return layout.lineAt(layout.lineCount() - 1).xToCursor(x)

    def paint(self, painter, option, widget=None):
        palette = get_current_palette()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        editor = self.editor

        shadow = QPainterPath()
        shadow.addRoundedRect(3, 3, self.width, self.height, self.CORNER_RADIUS, self.CORNER_RADIUS)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(0, 0, 0, 30))
        painter.drawPath(shadow)

        self.paint_body(painter, palette, border=TEXT_NODE_ACCENT if self.editing else None)

        # Header.
        accent = QColor(TEXT_NODE_ACCENT)
        qta.icon(self.node_view.icon, color=accent.name()).paint(painter, QRectF(10, 8, 16, 16).toRect())
        self._layout_toolbar()
        if not self._toolbar_rects:
            painter.setPen(QColor(palette.TEXT_MUTED))
            painter.setFont(QFont("Segoe UI", 8))
            painter.drawText(QRectF(32, 0, self.width - 40, self.HEADER_HEIGHT),
                             Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, self.node_view.title)
        self._paint_toolbar(painter, palette)

        painter.setPen(QPen(QColor(palette.NODE_BORDER), 1))
        painter.drawLine(QPointF(1, self.HEADER_HEIGHT), QPointF(self.width - 1, self.HEADER_HEIGHT))

        content_rect = self._content_rect()
        painter.save()
        painter.setClipRect(content_rect)
        if self.editing:
            self._paint_draft(painter, palette, content_rect)
        else:
            self._sync_document()
            painter.translate(content_rect.topLeft())
            self.document.drawContents(painter, QRectF(0, 0, content_rect.width(), content_rect.height()))
        painter.restore()

        if self.node_view.resizable:
            grip = self._grip_rect()
            painter.setPen(QPen(QColor(palette.TEXT_MUTED), 1))
            for offset in (4, 8, 12):
                painter.drawLine(QPointF(grip.right() - offset, grip.bottom()),
                                 QPointF(grip.right(), grip.bottom() - offset))

        self.paint_anchors(painter, palette)

    def _paint_toolbar(self, painter, palette):
        editor = self.editor
        font = QFont("Segoe UI", 8)
        for action, rect in self._toolbar_rects:
            if action == self._hovered_action:
                painter.setPen(Qt.PenStyle.NoPen)
                painter.setBrush(QColor(255, 255, 255, 30))
                painter.drawRoundedRect(rect, 4, 4)
            if action == "font_size":
                label = FONT_SIZE_LABELS.get(editor.font_size, editor.font_size)
            elif action == "font_weight":
                label = FONT_WEIGHT_LABELS.get(editor.font_weight, editor.font_weight)
            else:
                color = "#e74c3c" if action == "delete" else palette.TEXT_PRIMARY
                icon_rect = QRectF(rect.center().x() - 7, rect.center().y() - 7, 14, 14)
                qta.icon(self.TOOLBAR_ICONS[action], color=color).paint(painter, icon_rect.toRect())
                continue
            painter.setPen(QPen(QColor(palette.NODE_BORDER), 1))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRoundedRect(rect.adjusted(1, 2, -1, -2), 4, 4)
            painter.setPen(QColor(palette.TEXT_PRIMARY))
            painter.setFont(font)
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, label)

    def _paint_draft(self, painter, palette, content_rect):
        editor = self.editor
        layout = self._text_layout()
        painter.setPen(QColor(palette.TEXT_PRIMARY))

        selections = []
        start, end = sorted((editor.selection_start, editor.selection_end))
        if start != end:
            selection = QTextLayout.FormatRange()
            selection.start = start
            selection.length = end - start
            highlight = QTextCharFormat()
            highlight.setBackground(QColor(palette.SELECTION))
            highlight.setForeground(QColor("#000000"))
            selection.format = highlight
            selections.append(selection)

        layout.draw(painter, content_rect.topLeft(), selections)
        if self.cursor_visible and self.hasFocus():
            layout.drawCursor(painter, content_rect.topLeft(), editor.caret)

    # --- Pointer input ---

    def hoverMoveEvent(self, event):
        action = self._action_at(event.pos())
        if action != self._hovered_action:
            self._hovered_action = action
            self.setToolTip(self.TOOLBAR_TIPS.get(action, ""))
            self.update()
        if self.node_view.resizable and self._grip_rect().contains(event.pos()):
            self.setCursor(Qt.CursorShape.SizeFDiagCursor)
        elif self.editing and self._content_rect().contains(event.pos()):
            self.setCursor(Qt.CursorShape.IBeamCursor)
        else:
            self.setCursor(Qt.CursorShape.ArrowCursor)
        super().hoverMoveEvent(event)

    def hoverLeaveEvent(self, event):
        self._hovered_action = None
        self.setCursor(Qt.CursorShape.ArrowCursor)
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            action = self._action_at(event.pos())
            if action is not None:
                self.run_action(action)
                event.accept()
                return

            if self.node_view.resizable and self._grip_rect().contains(event.pos()):
                self._resizing = True
                self._resize_origin = event.scenePos()
                self._resize_start = (self.width, self.height)
                event.accept()
                return

            if self.editing and self._content_rect().contains(event.pos()):
                self._selecting = True
                index = self._char_index_at(event.pos())
                self.editor.set_selection(index, index)
                self.setFocus()
                self.update()
                event.accept()
                return

        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        if self._resizing:
            delta = event.scenePos() - self._resize_origin
            self.editor.resize(self._resize_start[0] + delta.x(), self._resize_start[1] + delta.y())
            return
        if self._selecting:
            self.editor.set_selection(self.editor.selection_start, self._char_index_at(event.pos()))
            self.update()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._resizing:
            self._resizing = False
            return
        if self._selecting:
            self._selecting = False
            return
        super().mouseReleaseEvent(event)

    def clicked(self, pos):
        if self.editor is not None and not self.editing and self._content_rect().contains(pos):
            self.editor.click_content()
            self._refresh()

    def run_action(self, action):
        """Runs one toolbar action against the editor."""
        editor = self.editor
        if editor is None:
            return
        if action == "font_size":
            index = FONT_SIZES.index(editor.font_size)
            editor.set_font_size(FONT_SIZES[(index + 1) % len(FONT_SIZES)])
        elif action == "font_weight":
            index = FONT_WEIGHTS.index(editor.font_weight)
            editor.set_font_weight(FONT_WEIGHTS[(index + 1) % len(FONT_WEIGHTS)])
        elif action == "bold":
            editor.bold()
        elif action == "italic":
            editor.italic()
        elif action == "bullet":
            editor.bullet()
        elif action == "save":
            editor.commit()
        elif action == "cancel":
            editor.cancel()
        elif action == "edit":
            editor.begin_edit()
        elif action == "delete":
            # Removing the item from inside its own press handler is unsafe; defer it.
            QTimer.singleShot(0, editor.delete)
            return
        self._document_key = None
        self._refresh()

    # --- Focus and keyboard ---

    def focusInEvent(self, event):
        super().focusInEvent(event)
        if self.editing:
            self.controller.set_editor_focus(self.node_id, True)

    def focusOutEvent(self, event):
        super().focusOutEvent(event)
        self.controller.set_editor_focus(self.node_id, False)
        self.update()

    def keyPressEvent(self, event):
        """Handles all keyboard input while the raw text is being edited."""
        if not self.editing:
            return super().keyPressEvent(event)

        editor = self.editor
        key = event.key()
        ctrl = bool(event.modifiers() & Qt.KeyboardModifier.ControlModifier)
        meta = bool(event.modifiers() & Qt.KeyboardModifier.MetaModifier)
        shift = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)

        if key in (Qt.Key.Key_Return, Qt.Key.Key_Enter) and (ctrl or meta):
            editor.handle_key("Enter", ctrl=ctrl, meta=meta)
            self._refresh()
            event.accept()
            return
        if key == Qt.Key.Key_Escape:
            editor.handle_key("Escape")
            self._refresh()
            event.accept()
            return

        if ctrl or meta:
            if key == Qt.Key.Key_B:
                editor.bold()
            elif key == Qt.Key.Key_I:
                editor.italic()
            elif key == Qt.Key.Key_A:
                editor.select_all()
            elif key == Qt.Key.Key_C:
                QGuiApplication.clipboard().setText(editor.selected_text)
            elif key == Qt.Key.Key_X:
                QGuiApplication.clipboard().setText(editor.selected_text)
                editor.insert_text("")
            elif key == Qt.Key.Key_V:
                editor.insert_text(QGuiApplication.clipboard().text())
            self.update()
            event.accept()
            return

        caret = editor.caret
        length = len(editor.draft)
        has_selection = editor.selection_start != editor.selection_end

        if key == Qt.Key.Key_Backspace:
            if not has_selection and caret > 0:
                editor.set_selection(caret - 1, caret)
            editor.insert_text("")
        elif key == Qt.Key.Key_Delete:
            if not has_selection and caret < length:
                editor.set_selection(caret, caret + 1)
            editor.insert_text("")
        elif key in (Qt.Key.Key_Left, Qt.Key.Key_Right):
            step = -1 if key == Qt.Key.Key_Left else 1
            if shift:
                editor.set_selection(editor.selection_start, caret + step)
            elif has_selection:
                start, end = sorted((editor.selection_start, editor.selection_end))
                target = start if step < 0 else end
                editor.set_selection(target, target)
            else:
                editor.set_selection(caret + step, caret + step)
        elif key in (Qt.Key.Key_Home, Qt.Key.Key_End):
            target = 0 if key == Qt.Key.Key_Home else length
            anchor = editor.selection_start if shift else target
            editor.set_selection(anchor, target)
        elif key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            editor.insert_text("\n")
        elif event.text() and event.text().isprintable():
            editor.insert_text(event.text())
        else:
            return super().keyPressEvent(event)

        self.cursor_visible = True
        self.update()
        event.accept()
