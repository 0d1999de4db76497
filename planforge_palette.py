import qtawesome as qta

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QLabel, QLineEdit, QComboBox, QListWidget, QListWidgetItem,
    QAbstractItemView
)
from PySide6.QtCore import Qt, QMimeData, Signal
from PySide6.QtGui import QDrag, QColor

import planforge_config as config
from planforge_catalog import (
    KILL_CHAIN_PHASES, SAMPLE_TECHNIQUES, encode_drag_payload, filter_techniques,
    phase_descriptor, technique_descriptor
)
from planforge_renderers import phase_icon, TECHNIQUE_ICON
from planforge_styles import PHASE_COLORS, PHASE_FALLBACK_COLOR

ALL_PHASES = "All phases"


class PaletteList(QListWidget):
    """A list whose entries drag out as JSON palette descriptors."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setDragEnabled(True)
        self.setDragDropMode(QAbstractItemView.DragDropMode.DragOnly)
        self.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)

    def mimeTypes(self):
        return [config.DRAG_MIME_TYPE]

    def mimeData(self, items):
        mime = QMimeData()
        if items:
            descriptor = items[0].data(Qt.ItemDataRole.UserRole)
            mime.setData(config.DRAG_MIME_TYPE, encode_drag_payload(descriptor))
        return mime

    def startDrag(self, supported_actions):
        # The entry stays in the palette whatever the drop target reports.
        item = self.currentItem()
        if item is None:
            return
        drag = QDrag(self)
        drag.setMimeData(self.mimeData([item]))
        drag.exec(Qt.DropAction.CopyAction | Qt.DropAction.MoveAction)


class TechniquePalette(QWidget):
    """
    Sidebar listing kill-chain phases and techniques.

    Entries can be dragged onto the canvas or double-clicked to be added at
    the centre of the visible area. The technique list is filtered by the
    search box and the phase selector.
    """
    addRequested = Signal(object)

    def __init__(self, phases=None, techniques=None, parent=None):
        super().__init__(parent)
        self.phases = list(phases if phases is not None else KILL_CHAIN_PHASES)
        self.techniques = list(techniques if techniques is not None else SAMPLE_TECHNIQUES)
        self.setMinimumWidth(240)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(6)

        layout.addWidget(QLabel("Kill Chain Phases"))
        self.phase_list = PaletteList()
        self.phase_list.setObjectName("techniquePalette")
        self.phase_list.itemDoubleClicked.connect(self._on_item_double_clicked)
        layout.addWidget(self.phase_list, 2)

        layout.addWidget(QLabel("Techniques"))
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search techniques...")
        self.search_input.textChanged.connect(self.refresh_techniques)
        layout.addWidget(self.search_input)

        self.phase_filter = QComboBox()
        self.phase_filter.addItem(ALL_PHASES)
        for phase in self.phases:
            self.phase_filter.addItem(phase["name"])
        self.phase_filter.currentTextChanged.connect(self.refresh_techniques)
        layout.addWidget(self.phase_filter)

        self.technique_list = PaletteList()
        self.technique_list.setObjectName("techniquePalette")
        self.technique_list.itemDoubleClicked.connect(self._on_item_double_clicked)
        layout.addWidget(self.technique_list, 5)

        self._populate_phases()
        self.refresh_techniques()

    def _populate_phases(self):
        self.phase_list.clear()
        for phase in sorted(self.phases, key=lambda entry: entry.get("order_index", 0)):
            color = PHASE_COLORS.get(phase["name"], PHASE_FALLBACK_COLOR)
            item = QListWidgetItem(qta.icon(phase_icon(phase.get("icon")), color=color), phase.get("label") or phase["name"])
            item.setData(Qt.ItemDataRole.UserRole, phase_descriptor(phase))
            self.phase_list.addItem(item)

    def refresh_techniques(self, *_args):
        """Rebuilds the technique list from the current search text and phase filter."""
        phase = self.phase_filter.currentText()
        matches = filter_techniques(self.techniques, self.search_input.text(),
                                    None if phase == ALL_PHASES else phase)
        self.technique_list.clear()
        for technique in matches:
            color = PHASE_COLORS.get(technique.get("phase"), PHASE_FALLBACK_COLOR)
            label = technique["title"]
            if technique.get("mitre_id"):
                label = f"{technique['mitre_id']}  {label}"
            item = QListWidgetItem(qta.icon(TECHNIQUE_ICON, color=color), label)
            item.setToolTip(technique.get("description", ""))
            item.setData(Qt.ItemDataRole.UserRole, technique_descriptor(technique))
            self.technique_list.addItem(item)
        if not matches:
            empty = QListWidgetItem("No techniques found")
            empty.setFlags(Qt.ItemFlag.NoItemFlags)
            empty.setForeground(QColor("#9ca3af"))
            self.technique_list.addItem(empty)

    def _on_item_double_clicked(self, item):
        descriptor = item.data(Qt.ItemDataRole.UserRole)
        if descriptor:
            self.addRequested.emit(descriptor)
