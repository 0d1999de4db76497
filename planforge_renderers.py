"""
Presentation strategies for the three node kinds.

A renderer turns a Node into a NodeView: everything the canvas needs to paint
the node (title, CSS-safe class, icon, body text, anchors) without touching
Qt. Renderers are defensive: a missing or malformed payload produces an
"Unknown ..." placeholder view, never an exception.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import planforge_config as config
from planforge_model import Anchor, Node, NodeKind, PhaseData, TechniqueData
from planforge_styles import PHASE_COLORS, PHASE_FALLBACK_COLOR, TEXT_NODE_ACCENT
from planforge_text_editor import TextNodeEditor

logger = logging.getLogger(__name__)

# Phase icon names (as stored with the phase) mapped to qtawesome icon ids.
PHASE_ICONS = {
    "search": "fa5s.search",
    "recon": "fa5s.search",
    "eye": "fa5s.eye",
    "target": "fa5s.bullseye",
    "crosshair": "fa5s.crosshairs",
    "hammer": "fa5s.hammer",
    "weapon": "fa5s.hammer",
    "package": "fa5s.box",
    "truck": "fa5s.truck",
    "send": "fa5s.paper-plane",
    "bug": "fa5s.bug",
    "zap": "fa5s.bolt",
    "download": "fa5s.download",
    "terminal": "fa5s.terminal",
    "radio": "fa5s.broadcast-tower",
    "server": "fa5s.server",
    "network": "fa5s.network-wired",
    "flag": "fa5s.flag",
    "skull": "fa5s.skull-crossbones",
    "shield": "fa5s.shield-alt",
    "lock": "fa5s.lock",
    "key": "fa5s.key",
    "globe": "fa5s.globe",
    "user-secret": "fa5s.user-secret",
}
DEFAULT_PHASE_ICON = "fa5s.layer-group"
TECHNIQUE_ICON = "fa5s.bolt"
TEXT_ICON = "fa5s.font"
FALLBACK_ICON = "fa5s.question-circle"

SOURCE = "source"
TARGET = "target"

_NON_LETTERS = re.compile(r"[^a-z]")


def class_fragment(text) -> str:
    """Lowercases and strips every non-letter. Total over any input."""
    if text is None:
        return ""
    return _NON_LETTERS.sub("", str(text).lower())


def phase_class_name(phase_name) -> str:
    return f"phase-node__indicator--{class_fragment(phase_name) or 'unknown'}"


def technique_phase_class_name(phase_name) -> str:
    return f"technique-node__phase--{class_fragment(phase_name) or 'unknown'}"


def phase_icon(icon_name) -> str:
    key = str(icon_name or "").strip().lower()
    return PHASE_ICONS.get(key, DEFAULT_PHASE_ICON)


def minimap_color(node: Node) -> str:
    """Text nodes use the accent; everything else is keyed by its phase name."""
    if node.kind == NodeKind.TEXT:
        return TEXT_NODE_ACCENT
    phase = None
    if isinstance(node.payload, TechniqueData):
        phase = node.payload.phase
    elif isinstance(node.payload, PhaseData):
        phase = node.payload.name
    return PHASE_COLORS.get(phase, PHASE_FALLBACK_COLOR)


@dataclass(frozen=True)
class AnchorView:
    side: Anchor
    role: str
    emphasized: bool = True


@dataclass
class RenderContext:
    selected: bool = False
    hovered: bool = False
    editor: Optional[TextNodeEditor] = None


@dataclass
class NodeView:
    node_id: str
    kind: str
    title: str
    css_class: str
    position: Tuple[float, float]
    size: Tuple[float, float]
    selected: bool = False
    icon: Optional[str] = None
    subtitle: str = ""
    badge: str = ""
    badge_class: str = ""
    body: str = ""
    tags: Tuple[str, ...] = ()
    anchors: List[AnchorView] = field(default_factory=list)
    placeholder: bool = False
    editor: Optional[TextNodeEditor] = None
    toolbar: List[str] = field(default_factory=list)
    resizable: bool = False

    def anchor(self, side: Anchor) -> Optional[AnchorView]:
        for anchor in self.anchors:
            if anchor.side == side:
                return anchor
        return None


def _vertical_anchors(emphasized=True):
    return [AnchorView(Anchor.TOP, TARGET, emphasized), AnchorView(Anchor.BOTTOM, SOURCE, emphasized)]


class PhaseRenderer:
    kind = NodeKind.PHASE

    def render(self, node: Node, context: RenderContext) -> NodeView:
        position = (node.position.x, node.position.y)
        phase = node.payload
        if not isinstance(phase, PhaseData):
            return NodeView(
                node_id=node.id, kind=node.kind_name, title="Unknown Phase",
                css_class="phase-node", position=position, size=config.PHASE_NODE_SIZE,
                selected=context.selected, icon=DEFAULT_PHASE_ICON, placeholder=True,
            )

        css_class = "phase-node selected" if context.selected else "phase-node"
        return NodeView(
            node_id=node.id,
            kind=node.kind_name,
            title=phase.display_label,
            css_class=css_class,
            position=position,
            size=config.PHASE_NODE_SIZE,
            selected=context.selected,
            icon=phase_icon(phase.icon_name),
            badge=phase.name,
            badge_class=phase_class_name(phase.name),
            anchors=_vertical_anchors(emphasized=False),
        )


class TechniqueRenderer:
    kind = NodeKind.TECHNIQUE

    def render(self, node: Node, context: RenderContext) -> NodeView:
        position = (node.position.x, node.position.y)
        technique = node.payload
        if not isinstance(technique, TechniqueData):
            return NodeView(
                node_id=node.id, kind=node.kind_name, title="Unknown Technique",
                css_class="technique-node", position=position, size=config.TECHNIQUE_NODE_SIZE,
                selected=context.selected, icon=TECHNIQUE_ICON, placeholder=True,
                anchors=_vertical_anchors(),
            )

        css_class = "technique-node selected" if context.selected else "technique-node"
        return NodeView(
            node_id=node.id,
            kind=node.kind_name,
            title=technique.title or "Untitled Technique",
            css_class=css_class,
            position=position,
            size=config.TECHNIQUE_NODE_SIZE,
            selected=context.selected,
            icon=TECHNIQUE_ICON,
            subtitle=technique.mitre_id,
            badge=technique.phase,
            badge_class=technique_phase_class_name(technique.phase),
            body=technique.description,
            tags=technique.tags,
            anchors=_vertical_anchors(),
        )


class TextRenderer:
    kind = NodeKind.TEXT

    def render(self, node: Node, context: RenderContext) -> NodeView:
        editor = context.editor
        emphasized = context.hovered or context.selected
        size = node.size
        if editor is not None:
            size = editor.size
        width, height = (size.width, size.height) if size else (
            config.TEXT_NODE_DEFAULT_WIDTH, config.TEXT_NODE_DEFAULT_HEIGHT)

        classes = ["text-node"]
        if editor is not None:
            classes.extend(editor.css_classes())
        if context.selected:
            classes.append("selected")

        return NodeView(
            node_id=node.id,
            kind=node.kind_name,
            title="Text",
            css_class=" ".join(classes),
            position=(node.position.x, node.position.y),
            size=(width, height),
            selected=context.selected,
            icon=TEXT_ICON,
            body=editor.content if editor is not None else "",
            anchors=[
                AnchorView(Anchor.TOP, TARGET, emphasized),
                AnchorView(Anchor.BOTTOM, SOURCE, emphasized),
                AnchorView(Anchor.LEFT, TARGET, emphasized),
                AnchorView(Anchor.RIGHT, SOURCE, emphasized),
            ],
            editor=editor,
            toolbar=editor.toolbar_actions(context.selected) if editor is not None else [],
            resizable=context.selected,
        )


class FallbackRenderer:
    """Used for kinds nothing is registered for."""

    def render(self, node: Node, context: RenderContext) -> NodeView:
        return NodeView(
            node_id=node.id,
            kind=node.kind_name,
            title=f"Unknown node ({node.kind_name or 'untyped'})",
            css_class="unknown-node",
            position=(node.position.x, node.position.y),
            size=config.PHASE_NODE_SIZE,
            selected=context.selected,
            icon=FALLBACK_ICON,
            placeholder=True,
            anchors=_vertical_anchors(),
        )


class NodeTypeRegistry:
    """Maps a node kind to the renderer that draws it."""

    def __init__(self, renderers: Optional[Dict[str, object]] = None):
        self._renderers: Dict[str, object] = {}
        self._fallback = FallbackRenderer()
        for kind, renderer in (renderers or {}).items():
            self.register(kind, renderer)

    @staticmethod
    def _key(kind) -> str:
        return kind.value if isinstance(kind, NodeKind) else str(kind)

    def register(self, kind, renderer):
        self._renderers[self._key(kind)] = renderer

    def renderer_for(self, kind):
        return self._renderers.get(self._key(kind), self._fallback)

    def __contains__(self, kind) -> bool:
        return self._key(kind) in self._renderers

    def render(self, node: Node, context: RenderContext) -> NodeView:
        renderer = self.renderer_for(node.kind)
        try:
            return renderer.render(node, context)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Renderer for %s failed on node %s; using fallback", node.kind_name, node.id)
            return self._fallback.render(node, context)


def default_node_types() -> NodeTypeRegistry:
    return NodeTypeRegistry({
        NodeKind.PHASE: PhaseRenderer(),
        NodeKind.TECHNIQUE: TechniqueRenderer(),
        NodeKind.TEXT: TextRenderer(),
    })
