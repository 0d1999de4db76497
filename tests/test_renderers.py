"""Unit tests for the node renderers and the node-type registry."""

import pytest

import planforge_config as config
from planforge_model import Anchor, Node, NodeKind, Position, Size, TextData
from planforge_renderers import (
    FALLBACK_ICON, NodeTypeRegistry, RenderContext, SOURCE, TARGET, class_fragment,
    default_node_types, minimap_color, phase_class_name, phase_icon,
    technique_phase_class_name,
)
from planforge_styles import PHASE_COLORS, PHASE_FALLBACK_COLOR, TEXT_NODE_ACCENT
from planforge_text_editor import TextNodeEditor


@pytest.fixture
def registry() -> NodeTypeRegistry:
    return default_node_types()


class TestClassNames:
    """Tests for CSS-safe class name derivation."""

    @pytest.mark.parametrize("name, expected", [
        ("Reconnaissance", "reconnaissance"),
        ("Command & Control", "commandcontrol"),
        ("Actions on Objectives", "actionsonobjectives"),
        ("T1059.001", "t"),
        ("", ""),
        (None, ""),
    ])
    def test_class_fragment(self, name, expected) -> None:
        assert class_fragment(name) == expected

    def test_phase_class_names(self) -> None:
        assert phase_class_name("Command & Control") == "phase-node__indicator--commandcontrol"
        assert phase_class_name(None) == "phase-node__indicator--unknown"
        assert technique_phase_class_name("Delivery") == "technique-node__phase--delivery"

    def test_phase_icon_falls_back(self) -> None:
        assert phase_icon("Search") == "fa5s.search"
        assert phase_icon("no-such-icon") == "fa5s.layer-group"
        assert phase_icon(None) == "fa5s.layer-group"


class TestPhaseRenderer:
    """Tests for phase nodes."""

    def test_renders_label_and_indicator(self, registry, phase_node) -> None:
        view = registry.render(phase_node, RenderContext(selected=True))
        assert view.title == "Reconnaissance"
        assert view.badge_class == "phase-node__indicator--reconnaissance"
        assert view.css_class == "phase-node selected"
        assert view.size == config.PHASE_NODE_SIZE
        assert view.anchor(Anchor.TOP).role == TARGET
        assert view.anchor(Anchor.BOTTOM).role == SOURCE
        assert view.anchor(Anchor.LEFT) is None

    def test_missing_payload_renders_placeholder(self, registry) -> None:
        view = registry.render(Node(id="p", kind=NodeKind.PHASE), RenderContext())
        assert view.title == "Unknown Phase"
        assert view.placeholder


class TestTechniqueRenderer:
    """Tests for technique nodes."""

    def test_renders_details(self, registry, technique_node) -> None:
        view = registry.render(technique_node, RenderContext())
        assert view.title == "Active Scanning"
        assert view.subtitle == "T1595"
        assert view.badge == "Reconnaissance"
        assert view.badge_class == "technique-node__phase--reconnaissance"
        assert view.body == "Probe victim infrastructure."
        assert view.tags == ("scanning", "nmap")
        assert view.css_class == "technique-node"

    def test_missing_payload_renders_placeholder(self, registry) -> None:
        view = registry.render(Node(id="t", kind=NodeKind.TECHNIQUE, payload=TextData()), RenderContext())
        assert view.title == "Unknown Technique"
        assert view.placeholder


class TestTextRenderer:
    """Tests for text nodes."""

    def test_four_anchors_emphasised_on_hover(self, registry, text_node) -> None:
        editor = TextNodeEditor("X1", text_node.payload, lambda changes: None, lambda node_id: None)
        quiet = registry.render(text_node, RenderContext(editor=editor))
        hovered = registry.render(text_node, RenderContext(hovered=True, editor=editor))
        assert [anchor.side for anchor in quiet.anchors] == [Anchor.TOP, Anchor.BOTTOM, Anchor.LEFT, Anchor.RIGHT]
        assert [anchor.role for anchor in quiet.anchors] == [TARGET, SOURCE, TARGET, SOURCE]
        assert not any(anchor.emphasized for anchor in quiet.anchors)
        assert all(anchor.emphasized for anchor in hovered.anchors)

    def test_uses_editor_state(self, registry, text_node) -> None:
        editor = TextNodeEditor("X1", text_node.payload, lambda changes: None, lambda node_id: None,
                                size=Size(320, 240))
        editor.set_font_size("xl")
        view = registry.render(text_node, RenderContext(selected=True, editor=editor))
        assert view.size == (320, 240)
        assert "text-xl" in view.css_class
        assert view.body == "hello world"
        assert view.resizable
        assert view.toolbar == ["font_size", "font_weight", "edit", "delete"]

    def test_without_editor(self, registry) -> None:
        node = Node(id="x", kind=NodeKind.TEXT, position=Position(1, 2))
        view = registry.render(node, RenderContext())
        assert view.size == (config.TEXT_NODE_DEFAULT_WIDTH, config.TEXT_NODE_DEFAULT_HEIGHT)
        assert view.toolbar == []


class TestRegistry:
    """Tests for kind lookup and fallbacks."""

    def test_unknown_kind_uses_fallback(self, registry) -> None:
        view = registry.render(Node(id="s", kind="sticky"), RenderContext())
        assert view.title == "Unknown node (sticky)"
        assert view.icon == FALLBACK_ICON
        assert "sticky" not in registry

    def test_failing_renderer_falls_back(self, phase_node) -> None:
        class Broken:
            def render(self, node, context):
                raise RuntimeError("boom")

        registry = NodeTypeRegistry({NodeKind.PHASE: Broken()})
        view = registry.render(phase_node, RenderContext())
        assert view.placeholder
        assert NodeKind.PHASE in registry


class TestMinimapColor:
    """Tests for minimap colours."""

    def test_colours(self, phase_node, technique_node, text_node) -> None:
        assert minimap_color(text_node) == TEXT_NODE_ACCENT
        assert minimap_color(technique_node) == PHASE_COLORS["Reconnaissance"]
        assert minimap_color(phase_node) == PHASE_COLORS["Reconnaissance"]
        assert minimap_color(Node(id="s", kind="sticky")) == PHASE_FALLBACK_COLOR
