"""Unit tests for the Text node editor state machine."""

import pytest

from planforge_model import DATA, DIMENSIONS, Size, TextData
from planforge_text_editor import EditorState, TextNodeEditor, render_markdown


@pytest.fixture
def changes():
    return []


@pytest.fixture
def deleted():
    return []


@pytest.fixture
def editor(changes, deleted) -> TextNodeEditor:
    """An editor for a committed 'hello world' node, in Viewing."""
    return TextNodeEditor("X1", TextData(content="hello world"), changes.extend, deleted.append)


class TestTransitions:
    """Tests for Viewing/Editing transitions."""

    def test_starts_viewing(self, editor) -> None:
        assert editor.state == EditorState.VIEWING
        assert editor.content == "hello world"

    def test_new_payload_with_editing_flag_starts_editing(self, changes) -> None:
        editor = TextNodeEditor("X2", TextData(editing=True), changes.extend, lambda node_id: None)
        assert editor.is_editing
        assert editor.selected_text == editor.draft

    def test_click_content_begins_editing(self, editor) -> None:
        editor.click_content()
        assert editor.is_editing
        assert editor.draft == "hello world"
        assert (editor.selection_start, editor.selection_end) == (0, 11)

    def test_commit_emits_one_data_change(self, editor, changes) -> None:
        editor.begin_edit()
        editor.set_draft("new text")
        editor.set_font_size("lg")
        editor.set_font_weight("semibold")
        assert editor.commit()
        assert len(changes) == 1
        change = changes[0]
        assert change.type == DATA
        assert change.id == "X1"
        assert change.payload == TextData(content="new text", font_size="lg", font_weight="semibold")
        assert editor.state == EditorState.VIEWING

    def test_cancel_restores_content_and_emits_nothing(self, editor, changes) -> None:
        editor.begin_edit()
        editor.set_draft("scratch")
        editor.set_font_size("xl")
        editor.set_font_weight("bold")
        assert editor.cancel()
        assert changes == []
        assert editor.content == "hello world"
        assert editor.draft == "hello world"
        assert not editor.is_editing
        assert (editor.font_size, editor.font_weight) == ("base", "normal")

    def test_escape_cancels_and_ctrl_enter_commits(self, editor, changes) -> None:
        editor.begin_edit()
        editor.set_draft("draft")
        assert editor.handle_key("Escape")
        assert changes == []

        editor.begin_edit()
        editor.set_draft("kept")
        assert not editor.handle_key("Enter")
        assert editor.handle_key("Enter", meta=True)
        assert changes[0].payload.content == "kept"

    def test_keys_are_ignored_while_viewing(self, editor) -> None:
        assert not editor.handle_key("Escape")
        assert not editor.commit()
        assert not editor.cancel()

    def test_focus_callback(self, changes) -> None:
        focus = []
        editor = TextNodeEditor("X3", TextData(), changes.extend, lambda node_id: None,
                                on_focus_change=lambda node_id, focused: focus.append((node_id, focused)))
        editor.begin_edit()
        editor.commit()
        assert focus == [("X3", True), ("X3", False)]


class TestDraftEditing:
    """Tests for draft manipulation and markdown helpers."""

    def test_bold_wraps_selection(self, editor) -> None:
        editor.begin_edit()
        editor.set_selection(0, 5)
        editor.bold()
        assert editor.draft == "**hello** world"
        assert editor.selected_text == "hello"

    def test_bold_with_empty_selection_puts_caret_between_markers(self, editor) -> None:
        editor.begin_edit()
        editor.set_selection(11, 11)
        editor.bold()
        assert editor.draft == "hello world****"
        assert editor.caret == 13

    def test_italic_and_bullet(self, editor) -> None:
        editor.begin_edit()
        editor.set_selection(6, 11)
        editor.italic()
        assert editor.draft == "hello *world*"
        editor.set_selection(0, 0)
        editor.bullet()
        assert editor.draft == "- hello *world*"
        assert editor.caret == 2

    def test_insert_text_replaces_selection(self, editor) -> None:
        editor.begin_edit()
        editor.set_selection(6, 11)
        editor.insert_text("there")
        assert editor.draft == "hello there"
        assert editor.caret == 11

    def test_selection_is_clamped(self, editor) -> None:
        editor.begin_edit()
        editor.set_selection(-4, 99)
        assert (editor.selection_start, editor.selection_end) == (0, 11)

    def test_editing_helpers_do_nothing_while_viewing(self, editor) -> None:
        editor.bold()
        editor.insert_text("x")
        editor.set_draft("y")
        assert editor.draft == "hello world"


class TestStyleAndSize:
    """Tests for style, resize and delete."""

    def test_unknown_style_values_are_ignored(self, editor) -> None:
        editor.set_font_size("huge")
        editor.set_font_weight("black")
        assert editor.font_size == "base"
        assert editor.font_weight == "normal"
        assert editor.css_classes() == ["text-base", "font-normal"]

    def test_resize_is_floored(self, editor, changes) -> None:
        size = editor.resize(120, 40)
        assert size == Size(200, 100)
        assert changes[0].type == DIMENSIONS
        assert changes[0].size == Size(200, 100)

    def test_resize_above_minimum_is_kept(self, editor) -> None:
        assert editor.resize(420, 260) == Size(420, 260)

    def test_delete_removes_this_node(self, editor, deleted) -> None:
        editor.begin_edit()
        editor.delete()
        assert deleted == ["X1"]
        assert not editor.is_editing

    def test_toolbar_actions(self, editor) -> None:
        assert editor.toolbar_actions(selected=False) == []
        assert "delete" in editor.toolbar_actions(selected=True)
        editor.begin_edit()
        assert "save" in editor.toolbar_actions(selected=False)
        assert "cancel" in editor.toolbar_actions(selected=False)

    def test_sync_from_payload_leaves_draft_alone_while_editing(self, editor) -> None:
        editor.begin_edit()
        editor.set_draft("typing")
        editor.sync_from_payload(TextData(content="elsewhere"))
        assert editor.draft == "typing"
        editor.cancel()
        assert editor.content == "elsewhere"


class TestMarkdown:
    """Tests for markdown rendering."""

    def test_renders_bold(self) -> None:
        assert "<strong>hi</strong>" in render_markdown("**hi**")

    def test_preview_uses_draft_while_editing(self, editor) -> None:
        editor.begin_edit()
        editor.set_draft("# Title")
        assert "<h1>Title</h1>" in editor.preview_html()

    def test_none_content(self) -> None:
        assert render_markdown(None) == ""
