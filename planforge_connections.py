from PySide6.QtWidgets import QGraphicsItem
from PySide6.QtCore import Qt, QPointF
from PySide6.QtGui import QPainter, QColor, QBrush, QPen, QPainterPath, QPainterPathStroker

from planforge_config import get_current_palette
from planforge_model import Anchor

# Direction a curve leaves each anchor in.
ANCHOR_NORMALS = {
    Anchor.TOP: (0, -1),
    Anchor.BOTTOM: (0, 1),
    Anchor.LEFT: (-1, 0),
    Anchor.RIGHT: (1, 0),
}


def bezier_path(start, start_side, end, end_side):
    """
    A cubic curve from `start` to `end` whose control points extend out of
    each anchor along its normal.

    Args:
        start (QPointF): Start point.
        start_side (Anchor): Side of the source node the curve leaves from.
        end (QPointF): End point.
        end_side (Anchor or None): Side of the target node, or None for a free end.

    Returns:
        QPainterPath: The curve.
    """
    dx = end.x() - start.x()
    dy = end.y() - start.y()
    distance = max(40.0, min((abs(dx) + abs(dy)) / 2, 200.0))

    sx, sy = ANCHOR_NORMALS[Anchor(start_side)]
    ctrl1 = QPointF(start.x() + sx * distance, start.y() + sy * distance)
    if end_side is None:
        ctrl2 = QPointF(end.x() - sx * distance, end.y() - sy * distance)
    else:
        ex, ey = ANCHOR_NORMALS[Anchor(end_side)]
        ctrl2 = QPointF(end.x() + ex * distance, end.y() + ey * distance)

    path = QPainterPath()
    path.moveTo(start)
    path.cubicTo(ctrl1, ctrl2, end)
    return path


class EdgeItem(QGraphicsItem):
    """
    Draws one edge between two node items, anchor to anchor, with an arrow
    head at the target. Clicking it selects the edge through the controller.
    """

    def __init__(self, edge_view, start_item, end_item, controller):
        super().__init__()
        self.controller = controller
        self.edge_view = edge_view
        self.edge_id = edge_view.edge_id
        self.start_item = start_item
        self.end_item = end_item
        self.setZValue(-1)
        self.setAcceptHoverEvents(True)
        self.path = QPainterPath()
        self.hover_path = None
        self.hover = False
        self.click_tolerance = 10.0
        self.arrow_size = 10
        self.update_path()

    def set_edge(self, edge_view, start_item, end_item):
        self.edge_view = edge_view
        self.start_item = start_item
        self.end_item = end_item
        self.update_path()

    def get_endpoints(self):
        if not (self.start_item and self.end_item):
            return None
        start = self.mapFromScene(self.start_item.scene_anchor_point(self.edge_view.source_anchor))
        end = self.mapFromScene(self.end_item.scene_anchor_point(self.edge_view.target_anchor))
        return start, end

    def update_path(self):
        endpoints = self.get_endpoints()
        if not endpoints:
            return
        self.prepareGeometryChange()
        start, end = endpoints
        self.path = bezier_path(start, self.edge_view.source_anchor, end, self.edge_view.target_anchor)
        self.hover_path = None
        self.update()

    def create_hover_path(self):
        stroke = QPainterPathStroker()
        stroke.setWidth(self.click_tolerance * 2)
        stroke.setCapStyle(Qt.PenCapStyle.RoundCap)
        stroke.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        return stroke.createStroke(self.path)

    def boundingRect(self):
        padding = self.click_tolerance + self.arrow_size
        return self.path.boundingRect().adjusted(-padding, -padding, padding, padding)

    def shape(self):
        if self.hover_path is None:
            self.hover_path = self.create_hover_path()
        return self.hover_path

    def paint(self, painter, option, widget=None):
        palette = get_current_palette()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        active = self.hover or self.edge_view.selected
        color = QColor(palette.SELECTION if self.edge_view.selected else palette.EDGE)
        if self.hover:
            color = color.lighter(120)
        width = 3 if active else 2
        painter.setPen(QPen(color, width, Qt.PenStyle.SolidLine, Qt.PenCapStyle.RoundCap, Qt.PenJoinStyle.RoundJoin))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawPath(self.path)
        self.drawArrow(painter, color)

    def drawArrow(self, painter, color):
        """Draws the arrow head where the path meets the target anchor."""
        point = self.path.pointAtPercent(1.0)
        angle = self.path.angleAtPercent(1.0)

        arrow = QPainterPath()
        arrow.moveTo(-self.arrow_size, -self.arrow_size / 2)
        arrow.lineTo(0, 0)
        arrow.lineTo(-self.arrow_size, self.arrow_size / 2)
        arrow.closeSubpath()

        painter.save()
        painter.translate(point)
        painter.rotate(-angle)
        painter.setBrush(QBrush(color))
        painter.setPen(QPen(color, 1))
        painter.drawPath(arrow)
        painter.restore()

    def hoverEnterEvent(self, event):
        self.hover = True
        self.update()
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event):
        self.hover = False
        self.update()
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            event.ignore()
            return
        additive = bool(event.modifiers() & (Qt.KeyboardModifier.ShiftModifier | Qt.KeyboardModifier.ControlModifier))
        self.controller.on_edge_click(self.edge_id, additive)
        event.accept()


class PendingConnection(QGraphicsItem):
    """The dashed curve that follows the cursor while a connection is dragged out of an anchor."""

    def __init__(self, source_item, side):
        super().__init__()
        self.source_item = source_item
        self.side = Anchor(side)
        self.setZValue(10)
        self.path = QPainterPath()
        self.set_end(source_item.scene_anchor_point(self.side))

    def set_end(self, scene_pos):
        self.prepareGeometryChange()
        start = self.source_item.scene_anchor_point(self.side)
        self.path = bezier_path(start, self.side, scene_pos, None)
        self.update()

    def boundingRect(self):
        return self.path.boundingRect().adjusted(-4, -4, 4, 4)

    def paint(self, painter, option, widget=None):
        palette = get_current_palette()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(QPen(QColor(palette.SELECTION), 2, Qt.PenStyle.DashLine))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawPath(self.path)
