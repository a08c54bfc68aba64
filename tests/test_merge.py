"""Tests for color merging and hex deduplication."""

import pytest

from slotforge.analysis.dedup import ColorDeduplicator, tool_number
from slotforge.analysis.merge import MergeTransform, merge_overlapping_ranges
from slotforge.snapshot import PrintSnapshot


@pytest.fixture
def snapshot():
    return PrintSnapshot.from_dict(
        {
            "file_name": "cube.gcode",
            "total_layers": 10,
            "colors": [
                {"id": "T0", "name": "Red", "hex": "#FF0000", "first_layer": 0, "last_layer": 4},
                {
                    "id": "T1",
                    "name": "Also Red",
                    "hex": "#ff0000",
                    "first_layer": 3,
                    "last_layer": 7,
                    "partial_layers": [7],
                },
                {"id": "T2", "name": "Blue", "hex": "#0000FF", "first_layer": 5, "last_layer": 9},
            ],
            "tool_changes": [
                {"layer": 3, "from_tool": "T0", "to_tool": "T1"},
                {"layer": 5, "from_tool": "T1", "to_tool": "T2"},
            ],
            "filament_estimates": [
                {"color_id": "T0", "length": 10.0, "weight": 3.0},
                {"color_id": "T1", "length": 5.0},
                {"color_id": "T2", "length": 2.0, "weight": 1.0},
            ],
        }
    )


@pytest.fixture
def transform():
    return MergeTransform(clock=lambda: 1700000000.5)


class TestMergeOverlappingRanges:
    def test_merges_overlapping_and_adjacent(self):
        ranges = [(5, 8), (0, 3), (4, 4), (10, 12)]
        assert merge_overlapping_ranges(ranges) == [(0, 8), (10, 12)]

    def test_idempotent(self):
        once = merge_overlapping_ranges([(7, 9), (0, 2), (1, 5), (12, 15), (16, 16)])
        assert merge_overlapping_ranges(once) == once

    def test_empty_and_single(self):
        assert merge_overlapping_ranges([]) == []
        assert merge_overlapping_ranges([(3, 4)]) == [(3, 4)]


class TestMergePreview:
    def test_preview(self, snapshot, transform):
        preview = transform.preview(snapshot, "T0", ["T1"])
        assert preview.target_color.id == "T0"
        assert [c.id for c in preview.source_colors] == ["T1"]
        assert preview.affected_layers == (3, 4, 5, 6, 7)
        assert preview.affected_segments == 5
        assert preview.freed_slots == ("T1",)
        assert preview.new_color_count == 2

    @pytest.mark.parametrize(
        "target, sources",
        [("T9", ["T1"]), ("T0", ["T9"]), ("T0", []), ("T0", ["T0", "T1"])],
    )
    def test_invalid_requests(self, snapshot, transform, target, sources):
        assert transform.preview(snapshot, target, sources) is None
        assert transform.merge(snapshot, target, sources) is None
        assert transform.history == []


class TestMerge:
    def test_merged_color_is_union(self, snapshot, transform):
        result = transform.merge(snapshot, "T0", ["T1"])
        merged = result.merged_snapshot.get_color("T0")
        a, b = snapshot.get_color("T0"), snapshot.get_color("T1")

        assert merged.layers_used == a.layers_used | b.layers_used
        assert merged.partial_layers == frozenset({7})
        assert merged.first_layer == min(a.first_layer, b.first_layer)
        assert merged.last_layer == max(a.last_layer, b.last_layer)
        assert merged.name == "Red"

    def test_sources_removed_target_in_place(self, snapshot, transform):
        merged = transform.merge(snapshot, "T0", ["T1"]).merged_snapshot
        assert merged.color_ids == ["T0", "T2"]

    def test_census_and_tool_changes_rewritten(self, snapshot, transform):
        merged = transform.merge(snapshot, "T0", ["T1"]).merged_snapshot
        assert merged.layer_color_map[3] == ("T0",)
        assert merged.layer_color_map[5] == ("T0", "T2")
        assert [(tc.from_tool, tc.to_tool) for tc in merged.tool_changes] == [
            ("T0", "T0"),
            ("T0", "T2"),
        ]

    def test_usage_ranges_merged(self, snapshot, transform):
        merged = transform.merge(snapshot, "T0", ["T1"]).merged_snapshot
        assert [(r.color_id, r.start_layer, r.end_layer) for r in merged.color_usage_ranges] == [
            ("T0", 0, 7),
            ("T2", 5, 9),
        ]

    def test_filament_summed(self, snapshot, transform):
        merged = transform.merge(snapshot, "T0", ["T1"]).merged_snapshot
        usage = merged.filament_for("T0")
        assert usage.length == pytest.approx(15.0)
        assert usage.weight == pytest.approx(3.0)
        assert usage.cost is None
        assert merged.filament_for("T1") is None
        assert merged.filament_for("T2").length == pytest.approx(2.0)

    def test_input_snapshot_untouched(self, snapshot, transform):
        before = snapshot.to_dict()
        transform.merge(snapshot, "T0", ["T1"])
        assert snapshot.to_dict() == before
        assert snapshot.layer_color_map[3] == ("T0", "T1")

    def test_history_entry(self, snapshot, transform):
        result = transform.merge(snapshot, "T0", ["T1"])
        entry = result.history_entry
        assert entry.id == "merge-1700000000500-1"
        assert entry.timestamp == 1700000000500
        assert entry.target_id == "T0"
        assert entry.source_ids == ("T1",)
        assert entry.freed_slots == ("T1",)
        assert transform.history == [entry]
        assert entry.to_dict()["affected_layers"] == [3, 4, 5, 6, 7]

        transform.clear_history()
        assert transform.history == []

    def test_history_ids_unique_within_same_millisecond(self, snapshot, transform):
        first = transform.merge(snapshot, "T0", ["T1"]).history_entry
        second = transform.merge(snapshot, "T2", ["T1"]).history_entry
        assert first.timestamp == second.timestamp
        assert first.id != second.id

    def test_numeric_parser_ids(self, transform):
        snapshot = PrintSnapshot.from_dict(
            {
                "total_layers": 4,
                "colors": [
                    {"id": 0, "first_layer": 0, "last_layer": 2},
                    {"id": 1, "first_layer": 2, "last_layer": 3},
                ],
                "layer_color_map": {"0": [0], "1": [0], "2": [0, 1], "3": [1]},
                "tool_changes": [{"layer": 2, "from_tool": 0, "to_tool": 1}],
            }
        )
        result = transform.merge(snapshot, "0", ["1"])
        merged = result.merged_snapshot

        assert merged.layer_color_map[2] == ("0",)
        assert merged.layer_color_map[3] == ("0",)
        assert (merged.tool_changes[0].from_tool, merged.tool_changes[0].to_tool) == ("0", "0")
        assert result.history_entry.affected_layers == (2, 3)

    def test_merge_several_sources(self, snapshot, transform):
        merged = transform.merge(snapshot, "T2", ["T0", "T1"]).merged_snapshot
        assert merged.color_ids == ["T2"]
        assert merged.get_color("T2").layers_used == frozenset(range(10))
        assert [(r.start_layer, r.end_layer) for r in merged.color_usage_ranges] == [(0, 9)]


class TestDeduplication:
    def test_tool_number(self):
        assert tool_number("T12") == 12
        assert tool_number("12") == 12
        assert tool_number("10") == 10
        assert tool_number("Red") is None
        assert tool_number("T") is None

    def test_bare_numeric_ids_lowest_wins(self):
        snapshot = PrintSnapshot.from_dict(
            {
                "total_layers": 20,
                "colors": [
                    {"id": 12, "hex": "#00FF00", "first_layer": 0, "last_layer": 5},
                    {"id": 3, "hex": "#00FF00", "first_layer": 10, "last_layer": 19},
                ],
            }
        )
        result = ColorDeduplicator().deduplicate(snapshot)
        assert result.color_mapping == {"12": "3"}

    def test_several_groups_get_distinct_history_ids(self):
        snapshot = PrintSnapshot.from_dict(
            {
                "total_layers": 10,
                "colors": [
                    {"id": "T0", "hex": "#FF0000", "first_layer": 0, "last_layer": 4},
                    {"id": "T1", "hex": "#0000FF", "first_layer": 0, "last_layer": 4},
                    {"id": "T2", "hex": "#FF0000", "first_layer": 5, "last_layer": 9},
                    {"id": "T3", "hex": "#0000FF", "first_layer": 5, "last_layer": 9},
                ],
            }
        )
        transform = MergeTransform(clock=lambda: 1700000000.0)
        result = ColorDeduplicator(transform).deduplicate(snapshot)
        assert len(result.history) == 2
        assert len({entry.id for entry in result.history}) == 2

    def test_hex_duplicates_folded(self, snapshot):
        result = ColorDeduplicator().deduplicate(snapshot)

        assert result.changed
        assert result.snapshot.color_ids == ["T0", "T2"]
        assert result.color_mapping == {"T1": "T0"}
        assert result.freed_slots == ["T1"]
        group = result.duplicates_found[0]
        assert group.hex_code == "#FF0000"
        assert group.original_tools == ["T0", "T1"]
        assert group.assigned_to == "T0"
        assert len(result.history) == 1

    def test_lowest_tool_number_wins(self):
        snapshot = PrintSnapshot.from_dict(
            {
                "total_layers": 20,
                "colors": [
                    {"id": "T10", "hex": "#00FF00", "first_layer": 0, "last_layer": 5},
                    {"id": "T3", "hex": "#00ff00", "first_layer": 10, "last_layer": 19},
                    {"id": "T4", "first_layer": 0, "last_layer": 19},
                ],
            }
        )
        result = ColorDeduplicator().deduplicate(snapshot)
        assert result.color_mapping == {"T10": "T3"}
        assert result.snapshot.color_ids == ["T3", "T4"]
        assert result.snapshot.get_color("T3").first_layer == 0

    def test_no_duplicates(self):
        snapshot = PrintSnapshot.from_dict(
            {
                "total_layers": 5,
                "colors": [
                    {"id": "T0", "hex": "#000000", "first_layer": 0, "last_layer": 4},
                    {"id": "T1", "first_layer": 0, "last_layer": 4},
                    {"id": "T2", "first_layer": 0, "last_layer": 4},
                ],
            }
        )
        result = ColorDeduplicator().deduplicate(snapshot)
        assert not result.changed
        assert result.snapshot is snapshot
