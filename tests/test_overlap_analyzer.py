"""Tests for overlap analysis and the greedy assignment strategies."""

import pytest

from slotforge.core.overlap import OverlapAnalyzer, swap_layer
from slotforge.errors import ConfigurationError
from slotforge.materials.color import Color


def chain_colors():
    """Seven colors whose ranges overlap their neighbours."""
    ranges = [(0, 50), (10, 60), (51, 100), (61, 110), (101, 150), (111, 160), (151, 200)]
    return [
        Color.from_range(f"T{i}", first, last, total_layers=201)
        for i, (first, last) in enumerate(ranges)
    ]


def assigned_ids(result):
    return sorted(c.id for colors in result.assignments.values() for c in colors)


class TestOverlap:
    """Test range overlap checks."""

    def test_symmetric(self):
        a = Color.from_range("A", 0, 10)
        b = Color.from_range("B", 5, 20)
        c = Color.from_range("C", 11, 20)
        assert OverlapAnalyzer.has_overlap(a, b) == OverlapAnalyzer.has_overlap(b, a)
        assert OverlapAnalyzer.has_overlap(a, c) == OverlapAnalyzer.has_overlap(c, a)
        assert not OverlapAnalyzer.has_overlap(a, c)

    def test_reflexive(self):
        a = Color.from_range("A", 3, 3)
        assert OverlapAnalyzer.has_overlap(a, a)

    def test_shared_boundary_layer_overlaps(self):
        a = Color.from_range("A", 0, 10)
        b = Color.from_range("B", 10, 20)
        assert OverlapAnalyzer.has_overlap(a, b)

    def test_overlap_matrix(self):
        colors = chain_colors()
        matrix = OverlapAnalyzer.build_overlap_matrix(colors)
        assert matrix["T0"] == {"T1"}
        assert matrix["T1"] == {"T0", "T2"}
        assert matrix["T6"] == {"T5"}


class TestGroups:
    """Test non-overlapping grouping and swap counts."""

    def test_groups_are_disjoint_and_complete(self):
        colors = chain_colors()
        groups = OverlapAnalyzer.find_non_overlapping_groups(colors)

        assert [[c.id for c in g.colors] for g in groups] == [
            ["T0", "T2", "T4", "T6"],
            ["T1", "T3", "T5"],
        ]
        assert [g.required_swaps for g in groups] == [3, 2]

    def test_swaps_for_group_order_invariant(self):
        colors = chain_colors()[::2]
        forward = OverlapAnalyzer.calculate_swaps_for_group(colors)
        backward = OverlapAnalyzer.calculate_swaps_for_group(list(reversed(colors)))
        assert forward == backward == len(colors) - 1

    def test_swaps_for_trivial_groups(self):
        assert OverlapAnalyzer.calculate_swaps_for_group([]) == 0
        assert OverlapAnalyzer.calculate_swaps_for_group([Color.from_range("A", 0, 1)]) == 0


class TestSwapLayer:
    def test_gap_uses_midpoint(self):
        assert swap_layer(Color.from_range("A", 0, 10), Color.from_range("B", 20, 30)) == 15

    def test_adjacent_uses_next_start(self):
        assert swap_layer(Color.from_range("A", 0, 10), Color.from_range("B", 11, 30)) == 11


class TestStrategies:
    """Test the group and interval strategies."""

    @pytest.mark.parametrize(
        "strategy",
        [OverlapAnalyzer.optimize_slot_assignments, OverlapAnalyzer.optimize_by_intervals],
    )
    def test_no_color_lost_or_duplicated(self, strategy):
        colors = chain_colors()
        for max_slots in (1, 2, 3, 4):
            result = strategy(colors, max_slots)
            assert result.assigned_color_count == len(colors)
            assert assigned_ids(result) == sorted(c.id for c in colors)

    @pytest.mark.parametrize(
        "strategy",
        [OverlapAnalyzer.optimize_slot_assignments, OverlapAnalyzer.optimize_by_intervals],
    )
    def test_invalid_slot_count(self, strategy):
        with pytest.raises(ConfigurationError):
            strategy(chain_colors(), 0)

    def test_intervals_chain_scenario(self):
        result = OverlapAnalyzer.optimize_by_intervals(chain_colors(), 4)

        assert {n: [c.id for c in cs] for n, cs in result.assignments.items()} == {
            1: ["T0", "T2", "T4", "T6"],
            2: ["T1", "T3", "T5"],
        }
        assert result.total_swaps == 5
        assert result.metadata["forced_placements"] == 0
        assert [d.at_layer for d in result.swap_details if d.slot == 1] == [51, 101, 151]

    def test_intervals_fully_overlapping_get_own_slots(self):
        colors = [Color.from_range(f"T{i}", 0, 100) for i in range(4)]
        result = OverlapAnalyzer.optimize_by_intervals(colors, 4)
        assert all(len(cs) == 1 for cs in result.assignments.values())
        assert len(result.assignments) == 4
        assert result.total_swaps == 0

    def test_intervals_forced_placement(self):
        colors = [Color.from_range(f"T{i}", 0, 10 + i) for i in range(3)]
        result = OverlapAnalyzer.optimize_by_intervals(colors, 2)
        assert result.metadata["forced_placements"] == 1
        # T0 ends first, so slot 1 frees up earliest
        assert [c.id for c in result.assignments[1]] == ["T0", "T2"]

    def test_groups_fit_without_merging(self):
        result = OverlapAnalyzer.optimize_slot_assignments(chain_colors(), 4)
        assert len(result.assignments) == 2
        assert result.total_swaps == 5

    def test_groups_leftover_merged_into_cheapest_slot(self):
        colors = [Color.from_range(f"T{i}", 0, 100) for i in range(3)]
        result = OverlapAnalyzer.optimize_slot_assignments(colors, 2)
        assert assigned_ids(result) == ["T0", "T1", "T2"]
        # Equal increase everywhere, so the lowest slot wins
        assert [c.id for c in result.assignments[1]] == ["T0", "T2"]
        assert result.total_swaps == 1

    def test_trivial_when_colors_fit(self):
        colors = chain_colors()[:3]
        for strategy in (
            OverlapAnalyzer.optimize_slot_assignments,
            OverlapAnalyzer.optimize_by_intervals,
        ):
            result = strategy(colors, 4)
            assert result.total_swaps == 0
            assert result.swap_details == []
            assert [result.slot_of(c.id) for c in colors] == [1, 2, 3]
