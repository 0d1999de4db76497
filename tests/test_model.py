"""Unit tests for the graph records and change batches."""

import planforge_config as config
from planforge_model import (
    Anchor, Connection, Edge, EdgeChange, Node, NodeChange, NodeKind, PhaseData,
    Position, Size, TechniqueData, TextData, apply_edge_changes, apply_node_changes,
    clamp_text_size, edge_from_connection, edge_from_dict, edge_to_dict,
    incident_edge_ids, is_phase_node, is_technique_node, is_text_node, new_node_id,
    node_from_dict, node_to_dict, payload_from_descriptor,
)


class TestPayloads:
    """Tests for the payload variants."""

    def test_phase_display_label_prefers_label(self) -> None:
        phase = PhaseData(phase_id="actions", name="Actions", label="Actions on Objectives")
        assert phase.display_label == "Actions on Objectives"
        assert PhaseData(phase_id="delivery", name="Delivery").display_label == "Delivery"

    def test_phase_from_descriptor_accepts_short_keys(self) -> None:
        phase = PhaseData.from_descriptor({"id": "delivery", "name": "Delivery", "icon": "send", "order_index": "3"})
        assert phase.phase_id == "delivery"
        assert phase.icon_name == "send"
        assert phase.order_index == 3

    def test_phase_from_descriptor_rejects_non_mapping(self) -> None:
        assert PhaseData.from_descriptor(None) is None
        assert PhaseData.from_descriptor("Delivery") is None

    def test_technique_commands_accept_mappings(self) -> None:
        technique = TechniqueData.from_descriptor({
            "id": "t1059",
            "mitre_id": "T1059.001",
            "title": "PowerShell",
            "tags": ["windows"],
            "commands": ["whoami", {"command": "Get-Process"}, {"text": "ipconfig"}],
        })
        assert technique.commands == ("whoami", "Get-Process", "ipconfig")
        assert technique.tags == ("windows",)
        assert technique.tools == ()

    def test_technique_ignores_non_list_fields(self) -> None:
        technique = TechniqueData.from_descriptor({"title": "X", "tags": "oops", "commands": None})
        assert technique.tags == ()
        assert technique.commands == ()

    def test_text_data_normalises_unknown_styles(self) -> None:
        text = TextData(content="x", font_size="huge", font_weight="heavy")
        assert text.font_size == config.DEFAULT_FONT_SIZE
        assert text.font_weight == config.DEFAULT_FONT_WEIGHT

    def test_text_descriptor_uses_camel_case(self) -> None:
        data = TextData(content="note", font_size="lg", font_weight="bold").to_descriptor()
        assert data == {"content": "note", "fontSize": "lg", "fontWeight": "bold", "isEditing": False}
        assert TextData.from_descriptor(data) == TextData(content="note", font_size="lg", font_weight="bold")

    def test_payload_from_descriptor_unknown_kind(self) -> None:
        assert payload_from_descriptor("sticky", {"content": "x"}) is None


class TestNodes:
    """Tests for Node construction and guards."""

    def test_text_node_gets_default_size(self) -> None:
        node = Node(id="x", kind=NodeKind.TEXT, payload=TextData())
        assert node.size == Size(config.TEXT_NODE_DEFAULT_WIDTH, config.TEXT_NODE_DEFAULT_HEIGHT)

    def test_text_node_size_is_clamped(self) -> None:
        node = Node(id="x", kind="text", size=Size(10, 10))
        assert node.size == Size(config.TEXT_NODE_MIN_WIDTH, config.TEXT_NODE_MIN_HEIGHT)

    def test_kind_string_is_coerced(self) -> None:
        node = Node(id="p", kind="phase")
        assert node.kind is NodeKind.PHASE
        assert is_phase_node(node)
        assert not is_technique_node(node)
        assert not is_text_node(node)

    def test_unknown_kind_is_kept(self) -> None:
        node = Node(id="s", kind="sticky")
        assert node.kind == "sticky"
        assert node.kind_name == "sticky"

    def test_new_node_id_is_prefixed_and_unique(self) -> None:
        first, second = new_node_id(NodeKind.TEXT), new_node_id(NodeKind.TEXT)
        assert first.startswith("text-")
        assert first != second

    def test_clamp_text_size(self) -> None:
        assert clamp_text_size(150, 50) == Size(200, 100)
        assert clamp_text_size(320, 240) == Size(320, 240)


class TestApplyNodeChanges:
    """Tests for applying node change batches."""

    def test_add_and_remove(self, phase_node, technique_node) -> None:
        nodes = apply_node_changes([NodeChange.add(phase_node)], [])
        nodes = apply_node_changes([NodeChange.add(technique_node), NodeChange.remove("P1")], nodes)
        assert [node.id for node in nodes] == ["T1"]

    def test_duplicate_add_is_ignored(self, phase_node) -> None:
        nodes = apply_node_changes([NodeChange.add(phase_node), NodeChange.add(phase_node)], [])
        assert len(nodes) == 1

    def test_move(self, phase_node) -> None:
        nodes = apply_node_changes([NodeChange.move("P1", Position(30, 40))], [phase_node])
        assert nodes[0].position == Position(30, 40)

    def test_remove_wins_over_update(self, phase_node) -> None:
        nodes = apply_node_changes(
            [NodeChange.move("P1", Position(5, 5)), NodeChange.remove("P1")], [phase_node])
        assert nodes == []

    def test_resize_clamps_text_node(self, text_node) -> None:
        nodes = apply_node_changes([NodeChange.resize("X1", Size(50, 20))], [text_node])
        assert nodes[0].size == Size(200, 100)

    def test_resize_of_phase_node_is_ignored(self, phase_node) -> None:
        nodes = apply_node_changes([NodeChange.resize("P1", Size(500, 500))], [phase_node])
        assert nodes[0] == phase_node

    def test_data_change_with_wrong_kind_is_dropped(self, phase_node) -> None:
        nodes = apply_node_changes([NodeChange.update_data("P1", TextData(content="x"))], [phase_node])
        assert nodes[0].payload == phase_node.payload

    def test_data_change_replaces_payload(self, text_node) -> None:
        payload = TextData(content="changed", font_size="xl")
        nodes = apply_node_changes([NodeChange.update_data("X1", payload)], [text_node])
        assert nodes[0].payload == payload
        assert nodes[0].kind is NodeKind.TEXT

    def test_unknown_id_is_a_no_op(self, phase_node) -> None:
        nodes = apply_node_changes([NodeChange.move("nope", Position(1, 1))], [phase_node])
        assert nodes == [phase_node]


class TestEdges:
    """Tests for edges and edge batches."""

    def test_edge_from_connection(self) -> None:
        edge = edge_from_connection(Connection("A", Anchor.BOTTOM, "B", Anchor.TOP))
        assert edge.id.startswith("edge-")
        assert (edge.source, edge.target) == ("A", "B")

    def test_parallel_edges_and_self_loops_are_allowed(self) -> None:
        edges = apply_edge_changes([
            EdgeChange.add(Edge("e1", "A", "B")),
            EdgeChange.add(Edge("e2", "A", "B")),
            EdgeChange.add(Edge("e3", "A", "A", Anchor.RIGHT, Anchor.LEFT)),
        ], [])
        assert [edge.id for edge in edges] == ["e1", "e2", "e3"]

    def test_remove(self, phase_edge) -> None:
        assert apply_edge_changes([EdgeChange.remove("E1")], [phase_edge]) == []

    def test_incident_edge_ids(self) -> None:
        edges = [Edge("e1", "A", "B"), Edge("e2", "B", "C"), Edge("e3", "C", "D")]
        assert incident_edge_ids(edges, ["B"]) == {"e1", "e2"}


class TestSnapshots:
    """Tests for the plain-data snapshot shapes."""

    def test_node_round_trip(self, technique_node, text_node) -> None:
        assert node_from_dict(node_to_dict(technique_node)) == technique_node
        assert node_from_dict(node_to_dict(text_node)) == text_node

    def test_node_to_dict_shape(self, phase_node) -> None:
        data = node_to_dict(phase_node)
        assert data["type"] == "phase"
        assert data["position"] == {"x": 0, "y": 0}
        assert data["data"]["label"] == "Reconnaissance"
        assert "width" not in data

    def test_edge_dict_uses_handles(self, phase_edge) -> None:
        data = edge_to_dict(phase_edge)
        assert data["sourceHandle"] == "bottom"
        assert data["targetHandle"] == "top"
        assert edge_from_dict(data) == phase_edge

    def test_unknown_node_kind_round_trips_without_payload(self) -> None:
        node = node_from_dict({"id": "s1", "type": "sticky", "position": {"x": 1, "y": 2}})
        assert node.kind == "sticky"
        assert node.payload is None
