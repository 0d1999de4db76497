"""
In-place editor for Text nodes.

A Text node is either VIEWING (markdown rendered read-only) or EDITING (raw
draft plus a caret/selection). The editor owns the draft and the live style
preview; the committed payload only changes when `commit` emits a `data`
change through the handler it was given. Cancel never emits anything.
"""

import html
import logging
from enum import Enum
from typing import Callable, List, Optional

import markdown

import planforge_config as config
from planforge_model import FONT_SIZES, FONT_WEIGHTS, NodeChange, Size, TextData, clamp_text_size

logger = logging.getLogger(__name__)

BOLD_MARKER = "**"
ITALIC_MARKER = "*"
BULLET_MARKER = "- "

# Point sizes and QFont-style weights used when painting each style choice.
FONT_SIZE_POINTS = {"sm": 9, "base": 10, "lg": 12, "xl": 14}
FONT_WEIGHT_VALUES = {"normal": 400, "medium": 500, "semibold": 600, "bold": 700}

FONT_SIZE_LABELS = {"sm": "Small", "base": "Normal", "lg": "Large", "xl": "X-Large"}
FONT_WEIGHT_LABELS = {"normal": "Normal", "medium": "Medium", "semibold": "Semi-bold", "bold": "Bold"}


class EditorState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"


def render_markdown(content: str) -> str:
    """Converts node content to HTML. Never raises; bad input degrades to escaped text."""
    try:
        return markdown.markdown(content or "", extensions=['fenced_code', 'tables'])
    except Exception:  # pylint: disable=broad-except
        logger.warning("Markdown rendering failed; showing raw text", exc_info=True)
        return f"<pre>{html.escape(content or '')}</pre>"


class TextNodeEditor:
    """
    Viewing/Editing state machine for one Text node.

    Args:
        node_id (str): Id of the node this editor belongs to.
        payload (TextData or None): Committed payload; None means defaults.
        on_change (callable): Receives a list of NodeChange; the controller's choke point.
        on_delete (callable): Receives the node id when the delete action fires.
        on_focus_change (callable, optional): Receives (node_id, focused) when the
            raw-text input gains or loses focus.
        size (Size, optional): Current node size.
    """

    def __init__(self, node_id: str, payload: Optional[TextData],
                 on_change: Callable[[List[NodeChange]], None],
                 on_delete: Callable[[str], None],
                 on_focus_change: Optional[Callable[[str, bool], None]] = None,
                 size: Optional[Size] = None):
        self.node_id = node_id
        self._on_change = on_change
        self._on_delete = on_delete
        self._on_focus_change = on_focus_change

        payload = payload if isinstance(payload, TextData) else TextData()
        self._committed = payload
        self.draft = payload.content
        self.font_size = payload.font_size
        self.font_weight = payload.font_weight
        self.size = size or Size(config.TEXT_NODE_DEFAULT_WIDTH, config.TEXT_NODE_DEFAULT_HEIGHT)

        self.selection_start = 0
        self.selection_end = 0
        self.state = EditorState.VIEWING

        if payload.editing:
            self.begin_edit()

    # --- State ---

    @property
    def is_editing(self) -> bool:
        return self.state == EditorState.EDITING

    @property
    def committed(self) -> TextData:
        return self._committed

    @property
    def content(self) -> str:
        """What the node currently shows: the draft while editing, else the committed text."""
        return self.draft if self.is_editing else self._committed.content

    @property
    def caret(self) -> int:
        return self.selection_end

    @property
    def selected_text(self) -> str:
        start, end = self._ordered_selection()
        return self.draft[start:end]

    def _ordered_selection(self):
        return min(self.selection_start, self.selection_end), max(self.selection_start, self.selection_end)

    def _restore_style(self):
        self.font_size = self._committed.font_size
        self.font_weight = self._committed.font_weight

    def _set_focus(self, focused: bool):
        if self._on_focus_change:
            self._on_focus_change(self.node_id, focused)

    # --- Transitions ---

    def begin_edit(self):
        """Viewing -> Editing. The draft is reloaded and fully selected."""
        if self.is_editing:
            return
        self.state = EditorState.EDITING
        self.draft = self._committed.content
        self._restore_style()
        self.select_all()
        self._set_focus(True)
        logger.debug("Text node %s entered editing", self.node_id)

    def click_content(self):
        """A click on the rendered content starts editing."""
        if not self.is_editing:
            self.begin_edit()

    def commit(self) -> bool:
        """Editing -> Viewing, writing content and style back through the change handler."""
        if not self.is_editing:
            return False
        payload = TextData(
            content=self.draft,
            font_size=self.font_size,
            font_weight=self.font_weight,
            editing=False,
        )
        self._committed = payload
        self.state = EditorState.VIEWING
        self._set_focus(False)
        self._on_change([NodeChange.update_data(self.node_id, payload)])
        logger.debug("Text node %s committed %d chars", self.node_id, len(payload.content))
        return True

    def cancel(self) -> bool:
        """Editing -> Viewing, throwing the draft away. Nothing is emitted."""
        if not self.is_editing:
            return False
        self.draft = self._committed.content
        self._restore_style()
        self.selection_start = self.selection_end = 0
        self.state = EditorState.VIEWING
        self._set_focus(False)
        return True

    def handle_key(self, key: str, ctrl: bool = False, meta: bool = False) -> bool:
        """
        Handles editor shortcuts. Returns True when the key was consumed.

        Escape discards, Ctrl/Cmd+Enter commits. Everything else belongs to the
        text input itself.
        """
        if not self.is_editing:
            return False
        if key == "Escape":
            return self.cancel()
        if key in ("Enter", "Return") and (ctrl or meta):
            return self.commit()
        return False

    # --- Draft editing ---

    def set_draft(self, text: str, caret: Optional[int] = None):
        """Replaces the draft, e.g. after the user typed into the input."""
        if not self.is_editing:
            return
        self.draft = text or ""
        caret = len(self.draft) if caret is None else caret
        self.set_selection(caret, caret)

    def set_selection(self, start: int, end: int):
        length = len(self.draft)
        self.selection_start = max(0, min(start, length))
        self.selection_end = max(0, min(end, length))

    def select_all(self):
        self.set_selection(0, len(self.draft))

    def insert_text(self, text: str):
        """Replaces the current selection with `text` and puts the caret after it."""
        if not self.is_editing:
            return
        start, end = self._ordered_selection()
        self.draft = self.draft[:start] + text + self.draft[end:]
        caret = start + len(text)
        self.set_selection(caret, caret)

    def insert_markdown(self, syntax: str, wrap: bool = False):
        """
        Inserts markdown syntax at the caret.

        With `wrap`, a non-empty selection is surrounded by the marker and stays
        selected; an empty one gets the marker pair with the caret between them.
        Without `wrap`, the marker replaces the selection and the caret follows it.
        """
        if not self.is_editing:
            return
        start, end = self._ordered_selection()
        selected = self.draft[start:end]

        if wrap:
            self.draft = self.draft[:start] + syntax + selected + syntax + self.draft[end:]
            self.set_selection(start + len(syntax), end + len(syntax))
        else:
            self.draft = self.draft[:start] + syntax + self.draft[end:]
            caret = start + len(syntax)
            self.set_selection(caret, caret)

    def bold(self):
        self.insert_markdown(BOLD_MARKER, wrap=True)

    def italic(self):
        self.insert_markdown(ITALIC_MARKER, wrap=True)

    def bullet(self):
        self.insert_markdown(BULLET_MARKER)

    # --- Style, size and removal ---

    def set_font_size(self, value: str):
        if value not in FONT_SIZES:
            logger.warning("Ignoring unknown font size %r", value)
            return
        self.font_size = value

    def set_font_weight(self, value: str):
        if value not in FONT_WEIGHTS:
            logger.warning("Ignoring unknown font weight %r", value)
            return
        self.font_weight = value

    def resize(self, width: float, height: float) -> Size:
        """Live resize, floored at the minimum Text node size."""
        self.size = clamp_text_size(width, height)
        self._on_change([NodeChange.resize(self.node_id, self.size)])
        return self.size

    def delete(self):
        """Removes exactly this node; the controller cascades its edges."""
        if self.is_editing:
            self.state = EditorState.VIEWING
            self._set_focus(False)
        self._on_delete(self.node_id)

    def sync_from_payload(self, payload: Optional[TextData], size: Optional[Size] = None):
        """
        Follows a committed payload that changed underneath the editor
        (a plan was loaded, or another handler updated the node).
        An in-progress draft is left alone.
        """
        if size is not None:
            self.size = size
        if not isinstance(payload, TextData) or payload == self._committed:
            return
        self._committed = payload
        if self.is_editing:
            return
        self.draft = payload.content
        self.font_size = payload.font_size
        self.font_weight = payload.font_weight
        if payload.editing:
            self.begin_edit()

    # --- Presentation helpers ---

    def preview_html(self) -> str:
        return render_markdown(self.content)

    def toolbar_actions(self, selected: bool) -> List[str]:
        """Toolbar entries for the current state; empty when the toolbar is hidden."""
        if self.is_editing:
            return ["bold", "italic", "bullet", "font_size", "font_weight", "save", "cancel"]
        if selected:
            return ["font_size", "font_weight", "edit", "delete"]
        return []

    def css_classes(self) -> List[str]:
        return [f"text-{self.font_size}", f"font-{self.font_weight}"]
