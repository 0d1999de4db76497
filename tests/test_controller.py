"""Unit tests for the canvas controller."""

import pytest

import planforge_config as config
from planforge_catalog import (
    KILL_CHAIN_PHASES, SAMPLE_TECHNIQUES, encode_drag_payload, phase_descriptor,
    technique_descriptor,
)
from planforge_context_menu import ADD_TEXT_BOX
from planforge_controller import (
    CanvasController, ContextMenuEvent, DropEvent, InteractionState, KeyEvent,
    PointerEvent, Viewport, node_from_descriptor, parse_drop_payload,
)
from planforge_model import (
    Anchor, Edge, Node, NodeKind, Position, Size, TextData, incident_edge_ids,
)
from planforge_store import PlanGraph


@pytest.fixture
def text_graph(phase_node, text_node) -> PlanGraph:
    """P1 -> X1, with X1 a committed text node."""
    edge = Edge("E2", "P1", "X1", Anchor.BOTTOM, Anchor.LEFT)
    return PlanGraph([phase_node, text_node], [edge])


class TestViewport:
    """Tests for the pan/zoom transform."""

    def test_round_trip(self) -> None:
        viewport = Viewport(x=100, y=50, zoom=2)
        assert viewport.screen_to_canvas((300, 250)) == Position(100, 100)
        assert viewport.canvas_to_screen(Position(100, 100)) == (300, 250)

    def test_zoom_is_clamped(self) -> None:
        viewport = Viewport()
        viewport.set_zoom(100)
        assert viewport.zoom == config.MAX_ZOOM
        viewport.set_zoom(0)
        assert viewport.zoom == config.MIN_ZOOM

    def test_zoom_keeps_anchor_fixed(self) -> None:
        viewport = Viewport()
        before = viewport.screen_to_canvas((200, 100))
        viewport.set_zoom(2, anchor=(200, 100))
        assert viewport.screen_to_canvas((200, 100)) == before

    def test_fit(self, controller) -> None:
        controller.fit_view((800, 600))
        assert controller.viewport.zoom == pytest.approx(1.5)
        assert controller.viewport.x == pytest.approx(220)
        assert controller.viewport.y == pytest.approx(60)

    def test_fit_empty_canvas_resets(self) -> None:
        controller = CanvasController.from_graph(PlanGraph())
        controller.viewport = Viewport(x=5, y=5, zoom=3)
        controller.fit_view((800, 600))
        assert controller.viewport == Viewport()


class TestRender:
    """Tests for frame construction."""

    def test_frame_contents(self, controller) -> None:
        frame = controller.render()
        assert [view.node_id for view in frame.nodes] == ["P1", "T1"]
        assert [edge.edge_id for edge in frame.edges] == ["E1"]
        assert [entry.node_id for entry in frame.minimap] == ["P1", "T1"]
        assert frame.grid.gap == config.GRID_GAP
        assert frame.controls.can_zoom_in and frame.controls.can_zoom_out
        assert frame.state == InteractionState.IDLE

    def test_dangling_edges_are_not_drawn(self, phase_node) -> None:
        controller = CanvasController([phase_node], [Edge("E9", "P1", "gone")],
                                      lambda changes: None, lambda changes: None, lambda c: None)
        assert controller.render().edges == []

    def test_selected_node_view(self, controller) -> None:
        controller.on_node_click("T1")
        frame = controller.render()
        assert frame.node("T1").selected
        assert not frame.node("P1").selected
        assert frame.selected_nodes == {"T1"}

    def test_listeners_run_on_graph_change(self, controller, graph) -> None:
        seen = []
        controller.add_listener(lambda c: seen.append(len(c.nodes)))
        graph.clear()
        assert seen == [0]

    def test_on_init(self, graph) -> None:
        seen = []
        CanvasController.from_graph(graph, on_init=seen.append)
        assert len(seen) == 1


class TestSelection:
    """Tests for click, rubber band and keyboard selection."""

    def test_click_replaces_and_additive_toggles(self, controller) -> None:
        controller.on_node_click("P1")
        controller.on_node_click("T1", additive=True)
        assert controller.selected_nodes == {"P1", "T1"}
        controller.on_node_click("P1", additive=True)
        assert controller.selected_nodes == {"T1"}
        controller.on_node_click("P1")
        assert controller.selected_nodes == {"P1"}

    def test_node_click_callback(self, graph) -> None:
        clicked = []
        controller = CanvasController.from_graph(graph, on_node_click=clicked.append)
        controller.on_node_click("T1")
        controller.on_node_click("missing")
        assert [node.id for node in clicked] == ["T1"]

    def test_edge_click_clears_nodes(self, controller) -> None:
        controller.on_node_click("P1")
        controller.on_edge_click("E1")
        assert controller.selected_edges == {"E1"}
        assert controller.selected_nodes == set()

    def test_select_nodes_ignores_unknown_ids(self, controller) -> None:
        controller.select_nodes(["P1", "ghost"])
        assert controller.selected_nodes == {"P1"}
        controller.select_nodes(["T1"], additive=True)
        assert controller.selected_nodes == {"P1", "T1"}

    def test_pane_click_clears_selection_and_menu(self, controller) -> None:
        controller.on_node_click("P1")
        controller.on_context_menu(ContextMenuEvent((10, 10)))
        controller.on_pane_click()
        assert controller.selected_nodes == set()
        assert not controller.context_menu.visible
        assert controller.state == InteractionState.IDLE

    def test_ctrl_a_selects_everything(self, controller) -> None:
        assert controller.on_key_down(KeyEvent("a", ctrl=True))
        assert controller.selected_nodes == {"P1", "T1"}
        assert controller.selected_edges == {"E1"}

    def test_ctrl_a_is_left_to_text_inputs(self, controller) -> None:
        assert not controller.on_key_down(KeyEvent("a", ctrl=True, in_text_input=True))
        assert controller.selected_nodes == set()

    def test_removed_nodes_leave_the_selection(self, controller, graph) -> None:
        controller.select_all()
        graph.replace([graph.node("T1")], [])
        assert controller.selected_nodes == {"T1"}
        assert controller.selected_edges == set()

    def test_hover(self, controller) -> None:
        controller.set_hovered("P1")
        assert controller.render().node("P1").css_class == "phase-node"
        assert controller.hovered_node == "P1"
        controller.set_hovered(None)
        assert controller.hovered_node is None


class TestDeletion:
    """Tests for keyboard and editor deletion."""

    def test_delete_selected_nodes_and_their_edge(self, controller, graph) -> None:
        controller.on_node_click("P1")
        controller.on_node_click("T1", additive=True)
        assert controller.on_key_down(KeyEvent("Delete"))
        assert graph.nodes == []
        assert graph.edges == []
        assert controller.selected_nodes == set()

    def test_edges_are_removed_before_nodes(self, phase_node, technique_node, phase_edge) -> None:
        batches = []
        controller = CanvasController(
            [phase_node, technique_node], [phase_edge],
            on_nodes_change=lambda changes: batches.append(("nodes", [c.id for c in changes])),
            on_edges_change=lambda changes: batches.append(("edges", [c.id for c in changes])),
            on_connect=lambda connection: None,
        )
        controller.on_node_click("P1")
        controller.delete_selection()
        assert batches == [("edges", ["E1"]), ("nodes", ["P1"])]

    def test_backspace_deletes_a_selected_edge(self, controller, graph) -> None:
        controller.on_edge_click("E1")
        assert controller.on_key_down(KeyEvent("Backspace"))
        assert graph.edges == []
        assert len(graph.nodes) == 2

    def test_delete_in_text_input_is_ignored(self, controller, graph) -> None:
        controller.select_all()
        assert not controller.on_key_down(KeyEvent("Delete", in_text_input=True))
        assert len(graph.nodes) == 2

    def test_delete_with_focused_editor_is_ignored(self, text_graph) -> None:
        controller = CanvasController.from_graph(text_graph)
        controller.editor("X1").click_content()
        controller.on_node_click("P1")
        assert controller.text_input_focused
        assert not controller.on_key_down(KeyEvent("Delete"))
        assert len(text_graph.nodes) == 2

    def test_delete_with_nothing_selected(self, controller) -> None:
        assert not controller.on_key_down(KeyEvent("Delete"))

    @pytest.mark.parametrize(
        "selected, survivors",
        [
            ({"A"}, {"E4"}),
            ({"B"}, {"E1", "E5"}),
            ({"A", "C"}, set()),
            ({"B", "C"}, {"E1"}),
        ],
    )
    def test_loops_and_parallel_edges_never_dangle(self, selected, survivors) -> None:
        nodes = [Node(id=node_id, kind=NodeKind.TEXT, position=Position(index * 300, 0),
                      payload=TextData(content=node_id))
                 for index, node_id in enumerate("ABC")]
        edges = [
            Edge("E1", "A", "A", Anchor.RIGHT, Anchor.LEFT),
            Edge("E2", "A", "B", Anchor.RIGHT, Anchor.LEFT),
            Edge("E3", "A", "B", Anchor.BOTTOM, Anchor.TOP),
            Edge("E4", "B", "C", Anchor.RIGHT, Anchor.LEFT),
            Edge("E5", "C", "A", Anchor.BOTTOM, Anchor.TOP),
        ]
        graph = PlanGraph(nodes, edges)
        controller = CanvasController.from_graph(graph)
        controller.select_nodes(selected)

        assert controller.delete_selection()
        assert incident_edge_ids(graph.edges, selected) == set()
        assert {edge.id for edge in graph.edges} == survivors
        remaining = {node.id for node in graph.nodes}
        assert remaining == set("ABC") - selected
        assert all(edge.source in remaining and edge.target in remaining for edge in graph.edges)

    def test_editor_delete_removes_node_and_edges(self, text_graph) -> None:
        controller = CanvasController.from_graph(text_graph)
        controller.editor("X1").delete()
        assert [node.id for node in text_graph.nodes] == ["P1"]
        assert text_graph.edges == []
        assert controller.editor("X1") is None


class TestTextBoxes:
    """Tests for creating and editing text boxes through the canvas."""

    def test_context_menu_adds_text_box_at_canvas_point(self, controller, graph) -> None:
        event = ContextMenuEvent((120, 80))
        controller.on_context_menu(event)
        assert event.default_prevented
        assert controller.state == InteractionState.CONTEXT_MENU_OPEN

        assert controller.context_menu.choose(ADD_TEXT_BOX)
        assert controller.state == InteractionState.IDLE
        text_nodes = [node for node in graph.nodes if node.kind is NodeKind.TEXT]
        assert len(text_nodes) == 1
        node = text_nodes[0]
        assert node.position == Position(120, 80)
        assert node.payload.content == config.DEFAULT_TEXT_CONTENT
        assert node.payload.font_size == "base"
        assert node.size == Size(300, 200)

    def test_context_menu_uses_viewport_transform(self, controller, graph) -> None:
        controller.viewport = Viewport(x=20, y=-20, zoom=2)
        controller.on_context_menu(ContextMenuEvent((120, 80)))
        controller.context_menu.choose(ADD_TEXT_BOX)
        node = next(node for node in graph.nodes if node.kind is NodeKind.TEXT)
        assert node.position == Position(50, 50)

    def test_new_text_box_starts_editing_with_focus(self, controller) -> None:
        node = controller.add_text_box(Position(0, 0))
        editor = controller.editor(node.id)
        assert editor.is_editing
        assert controller.text_input_focused

    def test_add_text_box_override(self, graph) -> None:
        requested = []
        controller = CanvasController.from_graph(graph, on_add_text_box=requested.append)
        controller.on_context_menu(ContextMenuEvent((5, 5)))
        controller.context_menu.choose(ADD_TEXT_BOX)
        assert requested == [Position(5, 5)]
        assert len(graph.nodes) == 2

    def test_escape_closes_menu(self, controller) -> None:
        controller.on_context_menu(ContextMenuEvent((5, 5)))
        assert controller.on_key_down(KeyEvent("Escape"))
        assert not controller.context_menu.visible

    def test_bold_then_ctrl_enter_commits(self, text_graph) -> None:
        controller = CanvasController.from_graph(text_graph)
        editor = controller.editor("X1")
        editor.click_content()
        editor.set_selection(0, 5)
        editor.bold()
        assert controller.on_key_down(KeyEvent("Enter", ctrl=True))

        assert text_graph.node("X1").payload.content == "**hello** world"
        assert not editor.is_editing
        assert editor.content == "**hello** world"
        assert not controller.text_input_focused

    def test_escape_in_editor_discards_draft(self, text_graph) -> None:
        controller = CanvasController.from_graph(text_graph)
        editor = controller.editor("X1")
        editor.click_content()
        editor.set_draft("scratch")
        assert controller.on_key_down(KeyEvent("Escape"))
        assert text_graph.node("X1").payload.content == "hello world"
        assert editor.content == "hello world"

    def test_escape_discards_style_before_next_commit(self, text_graph) -> None:
        controller = CanvasController.from_graph(text_graph)
        controller.editor("X1").click_content()
        controller.editor("X1").set_font_size("xl")
        assert controller.on_key_down(KeyEvent("Escape"))

        editor = controller.editor("X1")
        editor.click_content()
        assert editor.font_size == "base"
        assert controller.on_key_down(KeyEvent("Enter", ctrl=True))
        assert text_graph.node("X1").payload.font_size == "base"
        assert text_graph.node("X1").payload.font_weight == "normal"

    def test_resize_reaches_the_store(self, text_graph) -> None:
        controller = CanvasController.from_graph(text_graph)
        controller.editor("X1").resize(150, 500)
        assert text_graph.node("X1").size == Size(200, 500)


class TestDropAndQuickAdd:
    """Tests for palette drops and quick-add."""

    def test_drag_over_allows_move(self, controller) -> None:
        event = DropEvent((0, 0))
        controller.on_drag_over(event)
        assert event.default_prevented
        assert event.drop_effect == "move"

    def test_drop_technique_at_canvas_point(self, controller, graph) -> None:
        controller.viewport = Viewport(x=100, y=50, zoom=2)
        event = DropEvent((300, 250), data=encode_drag_payload(technique_descriptor(SAMPLE_TECHNIQUES[3])))
        node = controller.on_drop(event)
        assert event.default_prevented
        assert node.kind is NodeKind.TECHNIQUE
        assert node.position == Position(100, 100)
        assert node.payload.mitre_id == "T1566.001"
        assert graph.node(node.id) is not None

    def test_drop_phase_keeps_its_name(self, controller) -> None:
        node = controller.on_drop(DropEvent((0, 0), data=phase_descriptor(KILL_CHAIN_PHASES[6])))
        assert node.payload.name == "Actions"
        assert node.payload.display_label == "Actions on Objectives"

    def test_unrecognised_drop_is_ignored(self, controller, graph) -> None:
        assert controller.on_drop(DropEvent((0, 0), data="not json")) is None
        assert controller.on_drop(DropEvent((0, 0), data='{"type": "sticky"}')) is None
        assert len(graph.nodes) == 2

    def test_drop_override(self, graph) -> None:
        received = []
        controller = CanvasController.from_graph(graph, on_drop=lambda event, pos: received.append(pos))
        controller.on_drop(DropEvent((40, 60), data="{}"))
        assert received == [Position(40, 60)]
        assert len(graph.nodes) == 2

    def test_quick_add_offsets_cycle(self, controller) -> None:
        descriptor = phase_descriptor(KILL_CHAIN_PHASES[0])
        positions = [controller.add_palette_item(descriptor, (800, 600)).position for _ in range(6)]
        assert positions[0] == Position(400, 300)
        assert positions[1] == Position(450, 350)
        assert positions[4] == Position(600, 500)
        assert positions[5] == Position(400, 300)

    def test_quick_add_rejects_unknown_descriptor(self, controller) -> None:
        assert controller.add_palette_item({"type": "sticky"}, (800, 600)) is None
        assert controller.add_palette_item(technique_descriptor(SAMPLE_TECHNIQUES[0]), (800, 600)).position \
            == Position(400, 300)

    def test_parse_drop_payload(self) -> None:
        assert parse_drop_payload(b'{"type": "phase"}') == {"type": "phase"}
        assert parse_drop_payload("[1, 2]") is None
        assert parse_drop_payload(None) is None

    def test_bare_technique_descriptor(self) -> None:
        node = node_from_descriptor(SAMPLE_TECHNIQUES[0], Position(1, 1))
        assert node.kind is NodeKind.TECHNIQUE
        assert node.payload.title == "Active Scanning"


class TestDragAndConnect:
    """Tests for moving nodes and drawing edges."""

    def test_drag_moves_selected_nodes(self, controller, graph) -> None:
        controller.on_node_pointer_down("P1", PointerEvent((0, 0)))
        assert controller.state == InteractionState.DRAGGING
        controller.on_pointer_move(PointerEvent((10, 20)))
        assert graph.node("P1").position == Position(10, 20)
        controller.on_pointer_up(PointerEvent((30, 40)))
        assert graph.node("P1").position == Position(30, 40)
        assert graph.node("T1").position == Position(0, 200)
        assert controller.state == InteractionState.IDLE

    def test_drag_moves_the_whole_selection_scaled_by_zoom(self, controller, graph) -> None:
        controller.viewport = Viewport(zoom=2)
        controller.select_all()
        controller.on_node_pointer_down("T1", PointerEvent((100, 100)))
        controller.on_pointer_move(PointerEvent((140, 120)))
        controller.on_pointer_up(PointerEvent((140, 120)))
        assert graph.node("P1").position == Position(20, 10)
        assert graph.node("T1").position == Position(20, 210)

    def test_click_without_move_emits_nothing(self, phase_node) -> None:
        batches = []
        controller = CanvasController([phase_node], [], batches.append, lambda c: None, lambda c: None)
        controller.on_node_pointer_down("P1", PointerEvent((5, 5)))
        controller.on_pointer_up(PointerEvent((5, 5)))
        assert batches == []
        assert controller.selected_nodes == {"P1"}

    def test_move_without_drag_is_ignored(self, controller, graph) -> None:
        controller.on_pointer_move(PointerEvent((50, 50)))
        assert graph.node("P1").position == Position(0, 0)

    def test_connect(self, controller, graph) -> None:
        edge = controller.connect("T1", "bottom", "P1", "top")
        assert edge.source == "T1"
        assert edge.source_anchor is Anchor.BOTTOM
        assert len(graph.edges) == 2

    def test_connect_to_missing_node(self, controller, graph) -> None:
        assert controller.connect("T1", "bottom", "ghost", "top") is None
        assert len(graph.edges) == 1
