# PlanForge.py

import json
import logging
import sys

import qtawesome as qta

from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QSplitter, QToolBar, QLineEdit,
    QToolButton, QMenu, QFileDialog, QMessageBox
)
from PySide6.QtCore import Qt
from PySide6.QtGui import QAction

import planforge_config as config
from planforge_config import apply_theme, configure_logging
from planforge_controller import CanvasController
from planforge_exporter import Exporter
from planforge_palette import TechniquePalette
from planforge_store import PlanGraph
from planforge_view import PlanView
from planforge_widgets import NodeDetailsPanel, NotificationBanner

logger = logging.getLogger(__name__)

EXPORT_FILTERS = {
    'markdown': "Markdown Files (*.md)",
    'csv': "CSV Files (*.csv)",
    'html': "HTML Files (*.html)",
}
PLAN_FILTER = "PlanForge Plans (*.json)"


class PlanForgeWindow(QMainWindow):
    """
    Main window: technique palette on the left, the canvas in the middle
    and the details panel on the right, with the plan's title, file and
    export actions in the toolbar.
    """

    def __init__(self, graph=None):
        super().__init__()
        self.setWindowTitle("PlanForge - Attack Plan Canvas")
        self.setWindowIcon(qta.icon("fa5s.project-diagram", color="#2ecc71"))
        self.resize(1400, 900)

        self.graph = graph or PlanGraph()
        self.exporter = Exporter()
        self.controller = CanvasController.from_graph(self.graph, on_node_click=self._on_node_click)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)

        self.palette = TechniquePalette()
        self.view = PlanView(self.controller, self)
        self.details_panel = NodeDetailsPanel()

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self.palette)
        splitter.addWidget(self.view)
        splitter.addWidget(self.details_panel)
        splitter.setStretchFactor(1, 1)
        splitter.setSizes([260, 900, 300])
        layout.addWidget(splitter)

        self.palette.addRequested.connect(self._on_palette_add)

        self.banner = NotificationBanner(central)
        self._create_toolbar()

    def _create_toolbar(self):
        toolbar = QToolBar("Plan")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self.title_input = QLineEdit(self.graph.title)
        self.title_input.setPlaceholderText("Plan title")
        self.title_input.setFixedWidth(240)
        self.title_input.textChanged.connect(self._on_title_changed)
        toolbar.addWidget(self.title_input)

        self.description_input = QLineEdit(self.graph.description)
        self.description_input.setPlaceholderText("Description")
        self.description_input.setFixedWidth(320)
        self.description_input.textChanged.connect(self._on_description_changed)
        toolbar.addWidget(self.description_input)
        toolbar.addSeparator()

        new_action = QAction(qta.icon('fa5s.file', color='#e0e0e0'), "New", self)
        new_action.triggered.connect(self.new_plan)
        toolbar.addAction(new_action)

        open_action = QAction(qta.icon('fa5s.folder-open', color='#e0e0e0'), "Open", self)
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self.open_plan)
        toolbar.addAction(open_action)

        save_action = QAction(qta.icon('fa5s.save', color='#e0e0e0'), "Save", self)
        save_action.setShortcut("Ctrl+S")
        save_action.triggered.connect(self.save_plan)
        toolbar.addAction(save_action)

        export_button = QToolButton()
        export_button.setIcon(qta.icon('fa5s.file-export', color='#e0e0e0'))
        export_button.setText("Export")
        export_button.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextBesideIcon)
        export_button.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        export_menu = QMenu(export_button)
        for fmt, label in (('markdown', "Markdown"), ('csv', "CSV"), ('html', "HTML")):
            action = export_menu.addAction(label)
            action.triggered.connect(lambda _checked=False, fmt=fmt: self.export_plan(fmt))
        export_button.setMenu(export_menu)
        toolbar.addWidget(export_button)
        toolbar.addSeparator()

        fit_action = QAction(qta.icon('fa5s.expand', color='#e0e0e0'), "Fit", self)
        fit_action.triggered.connect(self.view.fit_all)
        toolbar.addAction(fit_action)

        theme_action = QAction(qta.icon('fa5s.adjust', color='#e0e0e0'), "Theme", self)
        theme_action.triggered.connect(self.toggle_theme)
        toolbar.addAction(theme_action)

    # --- Plan metadata ---

    def _on_title_changed(self, text):
        self.graph.title = text

    def _on_description_changed(self, text):
        self.graph.description = text

    def _load_graph(self, graph):
        self.graph.title = graph.title
        self.graph.description = graph.description
        self.title_input.setText(graph.title)
        self.description_input.setText(graph.description)
        self.details_panel.setVisible(False)
        self.graph.replace(graph.nodes, graph.edges)

    # --- Canvas callbacks ---

    def _on_node_click(self, node):
        view = self.view.scene().frame.node(node.id) if self.view.scene().frame else None
        self.details_panel.show_node(node, view.title if view else node.kind_name)

    def _on_palette_add(self, descriptor):
        self.view.sync_viewport()
        self.controller.add_palette_item(descriptor, self.view.viewport_size())

    # --- File actions ---

    def new_plan(self):
        if self.graph.nodes:
            reply = QMessageBox.question(self, "New Plan", "Discard the current plan?")
            if reply != QMessageBox.StandardButton.Yes:
                return
        self._load_graph(PlanGraph())
        logger.info("Started a new plan")

    def save_plan(self):
        default_filename = f"{self.graph.title or 'plan'}.json"
        file_path, _ = QFileDialog.getSaveFileName(self, "Save Plan", default_filename, PLAN_FILTER)
        if not file_path:
            return
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(self.graph.to_dict(), f, indent=2)
        except OSError as e:
            logger.error("Saving plan to %s failed: %s", file_path, e)
            self.banner.show_message(f"Save failed: {e}", error=True)
            return
        logger.info("Saved plan to %s", file_path)
        self.banner.show_message(f"Plan saved to {file_path}", 4000)

    def open_plan(self):
        file_path, _ = QFileDialog.getOpenFileName(self, "Open Plan", "", PLAN_FILTER)
        if not file_path:
            return
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            graph = PlanGraph.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Opening plan %s failed: %s", file_path, e)
            QMessageBox.critical(self, "Open Failed", f"Could not open the plan:\n{e}")
            return
        self._load_graph(graph)
        self.view.fit_all()
        logger.info("Opened plan %s", file_path)

    def export_plan(self, fmt):
        default_filename = self.exporter.default_filename(self.graph, fmt)
        file_path, _ = QFileDialog.getSaveFileName(self, "Export Attack Plan", default_filename, EXPORT_FILTERS[fmt])
        if not file_path:
            return
        success, error_msg = self.exporter.export(self.graph, file_path, fmt)
        if success:
            self.banner.show_message(f"Plan exported to {file_path}", 4000)
        else:
            QMessageBox.critical(self, "Export Failed", f"An error occurred during export:\n{error_msg}")

    # --- Theme ---

    def toggle_theme(self):
        apply_theme(QApplication.instance(), 'mono' if config.CURRENT_THEME == 'dark' else 'dark')

    def on_theme_changed(self):
        self.view.on_theme_changed()


def main():
    """Initializes and runs PlanForge."""
    configure_logging()
    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(True)

    main_window = PlanForgeWindow()
    apply_theme(app, config.CURRENT_THEME)
    main_window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
