# This file contains visual constants and stylesheets for the PlanForge application.
# It centralizes all QSS (Qt StyleSheet) definitions, color palettes, and the
# phase color table so the canvas, minimap and exporter agree on one look.
#
# Colors are kept as hex strings; the Qt layer wraps them in QColor where it paints.


class StyleSheet:
    """A namespace class to hold large QSS string constants for different themes."""

    # Stylesheet for the default dark theme.
    DARK_THEME = """
        QMainWindow, QWidget {
            background-color: #1e1e1e;
            color: #ffffff;
        }

        QScrollBar:vertical {
            background: #252526;
            width: 10px;
            margin: 0px;
            border-radius: 5px;
        }
        QScrollBar::handle:vertical {
            background-color: #555555;
            min-height: 25px;
            border-radius: 5px;
        }
        QScrollBar::add-line:vertical, QScrollBar::sub-line:vertical {
            height: 0px;
            background: none;
        }

        QToolBar {
            background-color: #252526;
            border-bottom: 1px solid #3f3f3f;
            spacing: 8px;
            padding: 8px;
        }

        QToolBar > QPushButton {
            background-color: transparent;
            color: #ffffff;
            border: 1px solid #3f3f3f;
            padding: 6px 16px;
            border-radius: 6px;
            font-size: 12px;
            font-family: 'Segoe UI', sans-serif;
            min-height: 28px;
        }
        QToolBar > QPushButton:hover {
            background-color: rgba(255, 255, 255, 0.1);
            border-color: #2ecc71;
            color: #2ecc71;
        }

        QLineEdit {
            background-color: #2a2a2a;
            color: #d4d4d4;
            border: 1px solid #444444;
            border-radius: 4px;
            padding: 4px 8px;
        }

        QListWidget#techniquePalette {
            background-color: #252526;
            border: none;
            outline: none;
        }
        QListWidget#techniquePalette::item {
            padding: 6px 10px;
            border-radius: 4px;
        }
        QListWidget#techniquePalette::item:selected {
            background-color: #3f3f3f;
        }

        QComboBox {
            background-color: #2d2d2d;
            color: #ffffff;
            border: 1px solid #3f3f3f;
            border-radius: 4px;
            padding: 2px 6px;
        }

        QPlainTextEdit {
            background-color: transparent;
            color: #d4d4d4;
            border: none;
            selection-background-color: #4a4a4a;
        }
    """

    # Stylesheet for the monochromatic theme. Same structure, grayscale accents.
    MONOCHROMATIC_THEME = """
        QMainWindow, QWidget {
            background-color: #1a1a1a;
            color: #e0e0e0;
        }

        QToolBar {
            background-color: #222222;
            border-bottom: 1px solid #3a3a3a;
            spacing: 8px;
            padding: 8px;
        }

        QToolBar > QPushButton {
            background-color: transparent;
            color: #e0e0e0;
            border: 1px solid #3a3a3a;
            padding: 6px 16px;
            border-radius: 6px;
            font-size: 12px;
            min-height: 28px;
        }
        QToolBar > QPushButton:hover {
            background-color: rgba(255, 255, 255, 0.08);
            border-color: #ffffff;
        }

        QLineEdit {
            background-color: #262626;
            color: #e0e0e0;
            border: 1px solid #3a3a3a;
            border-radius: 4px;
            padding: 4px 8px;
        }

        QListWidget#techniquePalette {
            background-color: #222222;
            border: none;
            outline: none;
        }
        QListWidget#techniquePalette::item:selected {
            background-color: #3a3a3a;
        }

        QComboBox {
            background-color: #262626;
            color: #e0e0e0;
            border: 1px solid #3a3a3a;
            border-radius: 4px;
            padding: 2px 6px;
        }

        QPlainTextEdit {
            background-color: transparent;
            color: #e0e0e0;
            border: none;
            selection-background-color: #555555;
        }
    """


# Minimap / badge colors keyed by kill-chain phase name.
PHASE_COLORS = {
    "Reconnaissance": "#ef4444",
    "Weaponization": "#f97316",
    "Delivery": "#eab308",
    "Exploitation": "#22c55e",
    "Installation": "#06b6d4",
    "Command & Control": "#3b82f6",
    "Actions": "#8b5cf6",
}

PHASE_FALLBACK_COLOR = "#6b7280"

# Fixed accent used for Text nodes in the minimap.
TEXT_NODE_ACCENT = "#2ecc71"


class ColorPalette:
    """
    A data class to hold the hex colors for a specific theme palette.
    This provides a structured way to access theme colors throughout the
    application's drawing code.
    """
    def __init__(self, canvas_background, grid, node_surface, node_border,
                 selection, text_primary, text_muted, edge, accent):
        self.CANVAS_BACKGROUND = canvas_background
        self.GRID = grid
        self.NODE_SURFACE = node_surface
        self.NODE_BORDER = node_border
        self.SELECTION = selection
        self.TEXT_PRIMARY = text_primary
        self.TEXT_MUTED = text_muted
        self.EDGE = edge
        self.ACCENT = accent


DARK_PALETTE = ColorPalette(
    canvas_background="#252526",
    grid="#94a3b8",
    node_surface="#2d2d2d",
    node_border="#555555",
    selection="#2ecc71",
    text_primary="#e0e0e0",
    text_muted="#9ca3af",
    edge="#b1b1b7",
    accent=TEXT_NODE_ACCENT,
)

MONO_PALETTE = ColorPalette(
    canvas_background="#1f1f1f",
    grid="#666666",
    node_surface="#2a2a2a",
    node_border="#4a4a4a",
    selection="#ffffff",
    text_primary="#e0e0e0",
    text_muted="#999999",
    edge="#aaaaaa",
    accent="#dddddd",
)

# The main dictionary mapping theme names to their respective stylesheet and palette objects.
THEMES = {
    "dark": {
        "stylesheet": StyleSheet.DARK_THEME,
        "palette": DARK_PALETTE
    },
    "mono": {
        "stylesheet": StyleSheet.MONOCHROMATIC_THEME,
        "palette": MONO_PALETTE
    }
}
