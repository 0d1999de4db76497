"""
Right-click menu for the canvas.

The menu is a plain state holder: it is opened at a screen position with the
matching canvas position captured at that moment, and every way out of it
(choosing an item, clicking the backdrop) ends in `close`.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ADD_TEXT_BOX = "add_text_box"
ADD_STICKY_NOTE = "add_sticky_note"


@dataclass(frozen=True)
class MenuItem:
    action: str
    label: str
    icon: str
    enabled: bool = True
    hint: str = ""


MENU_ITEMS = (
    MenuItem(ADD_TEXT_BOX, "Text Box", "fa5s.font"),
    MenuItem(ADD_STICKY_NOTE, "Sticky Note", "fa5s.sticky-note", enabled=False, hint="Coming soon..."),
)


class ContextMenu:
    """
    Args:
        on_add_text_box (callable): Receives the canvas position (x, y) the
            menu was opened at.
        on_close (callable, optional): Called every time the menu closes.
    """

    def __init__(self, on_add_text_box: Callable[[Tuple[float, float]], None],
                 on_close: Optional[Callable[[], None]] = None):
        self._on_add_text_box = on_add_text_box
        self._on_close = on_close
        self.visible = False
        self.screen_position: Tuple[float, float] = (0.0, 0.0)
        self.canvas_position: Tuple[float, float] = (0.0, 0.0)

    @property
    def items(self) -> List[MenuItem]:
        return list(MENU_ITEMS)

    def open(self, screen_position, canvas_position):
        self.screen_position = (float(screen_position[0]), float(screen_position[1]))
        self.canvas_position = (float(canvas_position[0]), float(canvas_position[1]))
        self.visible = True
        logger.debug("Context menu opened at screen %s / canvas %s", self.screen_position, self.canvas_position)

    def close(self):
        if not self.visible:
            return
        self.visible = False
        if self._on_close:
            self._on_close()

    def choose(self, action: str) -> bool:
        """Runs the item's action if it is enabled, then closes. Returns True if something ran."""
        if not self.visible:
            return False
        item = next((entry for entry in MENU_ITEMS if entry.action == action), None)
        ran = False
        if item is None:
            logger.warning("Unknown context menu action %r", action)
        elif item.enabled and item.action == ADD_TEXT_BOX:
            self._on_add_text_box(self.canvas_position)
            ran = True
        self.close()
        return ran

    def click_outside(self):
        """A click on the backdrop closes the menu and does nothing else."""
        self.close()
