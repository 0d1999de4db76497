"""
Overlay widgets that sit on top of the canvas view.

This includes:
- ContextMenuOverlay: draws the controller's right-click menu.
- ZoomControls: zoom in, zoom out and fit buttons.
- NotificationBanner: a sliding banner for short status messages.
- NodeDetailsPanel: a read-only markdown view of the clicked node.
"""

import markdown
import qtawesome as qta
from pygments.formatters import HtmlFormatter

from PySide6.QtWidgets import (
    QWidget, QFrame, QLabel, QPushButton, QVBoxLayout, QHBoxLayout, QTextEdit,
    QGraphicsDropShadowEffect
)
from PySide6.QtCore import Qt, QTimer, QRect, QPropertyAnimation, QEasingCurve, Signal
from PySide6.QtGui import QColor

from planforge_config import get_current_palette
from planforge_exporter import node_markdown


class ContextMenuOverlay(QWidget):
    """
    Full-viewport overlay showing a ContextMenu.

    The transparent backdrop catches the click that dismisses the menu, so
    clicking anywhere outside the panel closes it without touching the canvas.
    """

    def __init__(self, context_menu, parent=None):
        super().__init__(parent)
        self.context_menu = context_menu
        self.setAttribute(Qt.WidgetAttribute.WA_NoSystemBackground)
        self.setVisible(False)

        self.panel = QFrame(self)
        self.panel.setObjectName("contextMenuPanel")
        layout = QVBoxLayout(self.panel)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(2)

        header = QLabel("Add to canvas")
        header.setObjectName("contextMenuHeader")
        layout.addWidget(header)

        self.buttons = {}
        for item in context_menu.items:
            button = QPushButton(qta.icon(item.icon, color="#e0e0e0"), f"  {item.label}")
            button.setEnabled(item.enabled)
            button.setCursor(Qt.CursorShape.PointingHandCursor)
            if item.hint:
                button.setText(f"  {item.label}    {item.hint}")
                button.setToolTip(item.hint)
            button.clicked.connect(lambda _checked=False, action=item.action: self.context_menu.choose(action))
            layout.addWidget(button)
            self.buttons[item.action] = button

        shadow = QGraphicsDropShadowEffect(self.panel)
        shadow.setBlurRadius(20)
        shadow.setColor(QColor(0, 0, 0, 190))
        shadow.setOffset(0, 2)
        self.panel.setGraphicsEffect(shadow)
        self.on_theme_changed()

    def on_theme_changed(self):
        palette = get_current_palette()
        self.panel.setStyleSheet(f"""
            QFrame#contextMenuPanel {{
                background-color: {palette.NODE_SURFACE};
                border: 1px solid {palette.NODE_BORDER};
                border-radius: 8px;
            }}
            QLabel#contextMenuHeader {{
                color: {palette.TEXT_MUTED};
                font-size: 11px;
                padding: 4px 6px;
                background: transparent;
            }}
            QPushButton {{
                text-align: left;
                padding: 6px 10px;
                border: none;
                border-radius: 4px;
                color: {palette.TEXT_PRIMARY};
                background: transparent;
            }}
            QPushButton:hover {{
                background-color: rgba(255, 255, 255, 0.08);
            }}
            QPushButton:disabled {{
                color: {palette.TEXT_MUTED};
            }}
        """)

    def sync(self):
        """Shows, hides and positions the overlay to match the menu's state."""
        if not self.context_menu.visible:
            self.setVisible(False)
            return
        self.setGeometry(self.parent().rect())
        self.panel.adjustSize()
        x, y = self.context_menu.screen_position
        x = min(int(x), max(0, self.width() - self.panel.width()))
        y = min(int(y), max(0, self.height() - self.panel.height()))
        self.panel.move(x, y)
        self.setVisible(True)
        self.raise_()

    def mousePressEvent(self, event):
        if not self.panel.geometry().contains(event.position().toPoint()):
            self.context_menu.click_outside()
        event.accept()


class ZoomControls(QFrame):
    """Zoom in / zoom out / fit buttons in the canvas corner."""
    zoomInRequested = Signal()
    zoomOutRequested = Signal()
    fitRequested = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("zoomControls")
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(2)

        self.zoom_in_button = self._button("fa5s.plus", "Zoom in", self.zoomInRequested)
        self.zoom_out_button = self._button("fa5s.minus", "Zoom out", self.zoomOutRequested)
        self.fit_button = self._button("fa5s.expand", "Fit view", self.fitRequested)
        for button in (self.zoom_in_button, self.zoom_out_button, self.fit_button):
            layout.addWidget(button)
        self.adjustSize()
        self.on_theme_changed()

    def _button(self, icon, tip, signal):
        button = QPushButton(qta.icon(icon, color="#e0e0e0"), "")
        button.setFixedSize(28, 28)
        button.setToolTip(tip)
        button.clicked.connect(signal.emit)
        return button

    def on_theme_changed(self):
        palette = get_current_palette()
        self.setStyleSheet(f"""
            QFrame#zoomControls {{
                background-color: {palette.NODE_SURFACE};
                border: 1px solid {palette.NODE_BORDER};
                border-radius: 6px;
            }}
            QPushButton {{
                border: none;
                border-radius: 4px;
                background: transparent;
            }}
            QPushButton:hover {{ background-color: rgba(255, 255, 255, 0.08); }}
            QPushButton:disabled {{ background: transparent; }}
        """)

    def update_controls(self, controls):
        """Enables or disables the zoom buttons from a ControlsSpec."""
        self.zoom_in_button.setEnabled(controls.can_zoom_in)
        self.zoom_out_button.setEnabled(controls.can_zoom_out)
        self.setToolTip(f"{controls.zoom * 100:.0f}%")


class NotificationBanner(QWidget):
    """
    A banner that slides up from the bottom of its parent to display
    temporary messages such as export results.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("notificationBanner")
        self.setFixedHeight(40)
        self.setVisible(False)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(15, 5, 15, 5)

        self.message_label = QLabel()
        self.message_label.setObjectName("notificationLabel")
        layout.addWidget(self.message_label)
        layout.addStretch()

        self.close_button = QPushButton("✕")
        self.close_button.setObjectName("notificationCloseButton")
        self.close_button.setFixedSize(24, 24)
        self.close_button.clicked.connect(self.hide_banner)
        layout.addWidget(self.close_button)

        self.setStyleSheet("""
            QWidget#notificationBanner {
                background-color: #2ecc71;
                border-top-left-radius: 8px;
                border-top-right-radius: 8px;
            }
            QWidget#notificationBanner[error="true"] {
                background-color: #e67e22;
            }
            QLabel#notificationLabel {
                color: #ffffff;
                font-weight: bold;
                background-color: transparent;
            }
            QPushButton#notificationCloseButton {
                background-color: transparent;
                border: none;
                color: #ffffff;
                font-size: 14px;
                border-radius: 12px;
            }
            QPushButton#notificationCloseButton:hover {
                background-color: rgba(0, 0, 0, 0.2);
            }
        """)

        self.hide_timer = QTimer(self)
        self.hide_timer.setSingleShot(True)
        self.hide_timer.timeout.connect(self.hide_banner)

        self.animation = QPropertyAnimation(self, b"geometry", self)
        self.animation.finished.connect(self._on_animation_finished)
        self._hiding = False

    def show_message(self, message, duration_ms=5000, error=False):
        """
        Displays a message on the banner with a slide-in animation.

        Args:
            message (str): The message to display.
            duration_ms (int): Milliseconds before the banner hides itself. If 0, it stays visible.
            error (bool): Use the warning colour.
        """
        self.message_label.setText(message)
        self.setProperty("error", error)
        self.style().unpolish(self)
        self.style().polish(self)

        parent_width = self.parent().width()
        parent_height = self.parent().height()
        self._hiding = False
        self.setGeometry(0, parent_height, parent_width, self.height())
        self.setVisible(True)
        self.raise_()

        self.animation.stop()
        self.animation.setDuration(300)
        self.animation.setStartValue(QRect(0, parent_height, parent_width, self.height()))
        self.animation.setEndValue(QRect(0, parent_height - self.height(), parent_width, self.height()))
        self.animation.setEasingCurve(QEasingCurve.Type.OutCubic)
        self.animation.start()

        if duration_ms > 0:
            self.hide_timer.start(duration_ms)

    def hide_banner(self):
        if not self.isVisible():
            return
        self.hide_timer.stop()
        self._hiding = True
        self.animation.stop()
        self.animation.setDuration(300)
        self.animation.setStartValue(self.geometry())
        self.animation.setEndValue(QRect(0, self.parent().height(), self.parent().width(), self.height()))
        self.animation.setEasingCurve(QEasingCurve.Type.InCubic)
        self.animation.start()

    def _on_animation_finished(self):
        if self._hiding:
            self.setVisible(False)
            self._hiding = False


class NodeDetailsPanel(QFrame):
    """Side panel with the full details of the last clicked node."""
    close_requested = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("nodeDetailsPanel")
        self.setMinimumWidth(280)
        self.setVisible(False)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(10, 10, 10, 10)

        header = QHBoxLayout()
        self.title_label = QLabel("Details")
        self.title_label.setObjectName("nodeDetailsTitle")
        header.addWidget(self.title_label)
        header.addStretch()
        close_button = QPushButton(qta.icon("fa5s.times", color="#e0e0e0"), "")
        close_button.setFixedSize(24, 24)
        close_button.setToolTip("Close")
        close_button.clicked.connect(self.close_requested.emit)
        header.addWidget(close_button)
        layout.addLayout(header)

        self.viewer = QTextEdit()
        self.viewer.setReadOnly(True)
        # codehilite emits pygments classes for the command blocks; they need the style defs.
        formatter = HtmlFormatter(style="monokai", nobackground=True, cssclass="code")
        self.viewer.document().setDefaultStyleSheet(formatter.get_style_defs(".code"))
        layout.addWidget(self.viewer)
        self.close_requested.connect(lambda: self.setVisible(False))

    def show_node(self, node, title):
        """Renders a node's markdown section and shows the panel."""
        self.title_label.setText(title)
        html = markdown.markdown(
            node_markdown(node),
            extensions=['fenced_code', 'codehilite', 'tables'],
            extension_configs={'codehilite': {'css_class': 'code', 'guess_lang': False}},
        )
        self.viewer.setHtml(html)
        self.setVisible(True)
