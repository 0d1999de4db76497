# This file holds the global configuration for the application.
import logging
import os

from planforge_styles import THEMES

logger = logging.getLogger(__name__)

# --- LOGGING ---
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level=None):
    """
    Installs a stream handler on the root logger.

    The level comes from the argument, then PLANFORGE_LOG_LEVEL, then INFO.
    """
    level = level or os.getenv("PLANFORGE_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


# --- THEME CONFIGURATION ---
CURRENT_THEME = os.getenv("PLANFORGE_THEME", "dark")
if CURRENT_THEME not in THEMES:
    CURRENT_THEME = "dark"


def get_current_palette():
    """Returns the color palette object for the currently active theme."""
    return THEMES[CURRENT_THEME]["palette"]


def apply_theme(app, theme_name: str):
    """
    Applies a theme stylesheet to the entire application and updates the global theme state.
    Top-level windows exposing `on_theme_changed` are notified so they can repaint.

    Args:
        app (QApplication): The main application instance.
        theme_name (str): The name of the theme to apply (e.g., "dark", "mono").
    """
    global CURRENT_THEME
    if theme_name in THEMES:
        CURRENT_THEME = theme_name
    else:
        logger.warning("Theme '%s' not found. Defaulting to 'dark'.", theme_name)
        CURRENT_THEME = "dark"

    app.setStyleSheet(THEMES[CURRENT_THEME]["stylesheet"])

    for widget in app.topLevelWidgets():
        if hasattr(widget, 'on_theme_changed'):
            widget.on_theme_changed()


# --- CANVAS CONFIGURATION ---

# Background grid spacing in canvas units.
GRID_GAP = 20

# Zoom bounds shared by the controller viewport and the Qt view.
MIN_ZOOM = 0.1
MAX_ZOOM = 4.0
ZOOM_STEP = 1.1

# Text node geometry.
TEXT_NODE_DEFAULT_WIDTH = 300
TEXT_NODE_DEFAULT_HEIGHT = 200
TEXT_NODE_MIN_WIDTH = 200
TEXT_NODE_MIN_HEIGHT = 100

# Phase and technique nodes have a fixed footprint.
PHASE_NODE_SIZE = (180, 64)
TECHNIQUE_NODE_SIZE = (240, 120)

DEFAULT_TEXT_CONTENT = "Enter your text here..."
DEFAULT_FONT_SIZE = "base"
DEFAULT_FONT_WEIGHT = "normal"

# Palette quick-add places nodes around the viewport centre with a cycling offset.
QUICK_ADD_OFFSET = 50
QUICK_ADD_CYCLE = 5

# MIME type carried by palette drags.
DRAG_MIME_TYPE = "application/json"
