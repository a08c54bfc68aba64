"""Tests for SlotConfiguration and manual swap generation."""

import random

import pytest

from slotforge.core.annealing import AnnealingConfig
from slotforge.core.configuration import SlotConfiguration
from slotforge.errors import ConfigurationError
from slotforge.materials.color import Color
from slotforge.utils.config import SystemConfig


@pytest.fixture
def chain():
    ranges = [(0, 50), (10, 60), (51, 100), (61, 110), (101, 150), (111, 160), (151, 200)]
    return [
        Color.from_range(f"T{i}", first, last, total_layers=201)
        for i, (first, last) in enumerate(ranges)
    ]


def slot_map(config):
    return {s.slot_id: s.color_ids for s in config.all_slots() if s.colors}


class TestSlotConfigurationSetup:
    """Test construction and validation."""

    def test_ams_slots(self):
        config = SlotConfiguration(printer_type="ams", unit_count=2)
        assert config.total_slots == 8
        assert [s.slot_id for s in config.all_slots()][:5] == ["1-1", "1-2", "1-3", "1-4", "2-1"]

    def test_toolhead_slots(self):
        config = SlotConfiguration(printer_type="toolhead", unit_count=3)
        assert config.total_slots == 3
        assert config.get_slot(3, 1) is not None
        assert config.get_slot(1, 2) is None

    def test_natural_slot_order(self):
        config = SlotConfiguration(printer_type="toolhead", unit_count=12)
        assert [s.unit for s in config.all_slots()] == list(range(1, 13))

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"printer_type": "mmu"},
            {"unit_count": 0},
            {"unit_count": 17},
            {"strategy": "random"},
            {"algorithm": "genetic"},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ConfigurationError):
            SlotConfiguration(**kwargs)

    def test_from_system_config(self):
        system = SystemConfig(type="toolhead", unit_count=5, strategy="groups")
        config = SlotConfiguration.from_system_config(system)
        assert config.describe() == {
            "type": "toolhead",
            "unit_count": 5,
            "slots_per_unit": 1,
            "total_slots": 5,
            "strategy": "groups",
            "algorithm": "greedy",
        }


class TestAssignColors:
    """Test color assignment across strategies."""

    def test_disjoint_colors_fit_permanently(self):
        colors = [Color.from_range(f"T{i}", i * 10, i * 10 + 5) for i in range(4)]
        config = SlotConfiguration()
        config.assign_colors(colors)

        assert config.get_manual_swaps() == []
        slots = [s for s in config.all_slots() if s.colors]
        assert len(slots) == 4
        assert all(s.is_permanent for s in slots)

    def test_fully_overlapping_colors_fit_permanently(self):
        colors = [Color.from_range(f"T{i}", 0, 100) for i in range(4)]
        config = SlotConfiguration()
        config.assign_colors(colors)
        assert slot_map(config) == {"1-1": ["T0"], "1-2": ["T1"], "1-3": ["T2"], "1-4": ["T3"]}
        assert config.get_manual_swaps() == []
        assert config.is_valid()

    def test_intervals_chain(self, chain):
        config = SlotConfiguration(strategy="intervals")
        config.assign_colors(chain)

        assert slot_map(config) == {"1-1": ["T0", "T2", "T4", "T6"], "1-2": ["T1", "T3", "T5"]}
        assert config.total_colors() == 7
        assert config.is_valid()
        assert not config.get_slot(1, 1).is_permanent

        swaps = config.get_manual_swaps()
        assert [(s.from_color, s.to_color, s.at_layer) for s in swaps] == [
            ("T0", "T2", 51),
            ("T1", "T3", 61),
            ("T2", "T4", 101),
            ("T3", "T5", 111),
            ("T4", "T6", 151),
        ]
        first = swaps[0]
        assert first.slot_id == "1-1"
        assert (first.timing.earliest, first.timing.latest, first.timing.optimal) == (40, 61, 51)
        assert (first.pause_window.start, first.pause_window.end) == (50, 51)
        assert first.confidence.timing == 85
        assert first.reason == "Swap T0 -> T2 in Unit 1 Slot 1"
        assert config.time_saved() == 5 * 120

    def test_swap_window_capped_after_long_gap(self):
        config = SlotConfiguration(printer_type="toolhead", unit_count=1)
        config.assign_colors([Color.from_range("A", 0, 10), Color.from_range("B", 100, 200)])

        (swap,) = config.get_manual_swaps()
        assert swap.at_layer == 55
        assert (swap.timing.earliest, swap.timing.latest, swap.timing.optimal) == (0, 60, 55)

    def test_swap_window_keeps_optimal_layer(self):
        config = SlotConfiguration(printer_type="toolhead", unit_count=1)
        config.assign_colors([Color.from_range("A", 0, 10), Color.from_range("B", 200, 300)])

        (swap,) = config.get_manual_swaps()
        assert swap.at_layer == 105
        assert swap.timing.latest == 105

    def test_groups_chain(self, chain):
        config = SlotConfiguration(strategy="groups")
        config.assign_colors(chain)
        assert slot_map(config) == {"1-1": ["T0", "T2", "T4", "T6"], "1-2": ["T1", "T3", "T5"]}

    def test_legacy_chain(self, chain):
        config = SlotConfiguration(strategy="legacy")
        config.assign_colors(chain)

        assert slot_map(config) == {
            "1-1": ["T0"],
            "1-2": ["T1"],
            "1-3": ["T2"],
            "1-4": ["T3", "T5", "T4", "T6"],
        }
        assert not config.is_valid()
        assert ("1-4", "T3", "T4") in config.validation_report()
        assert [s.at_layer for s in config.get_manual_swaps()] == [101, 111, 151]

    def test_annealing_algorithm(self, chain):
        config = SlotConfiguration(
            algorithm="simulated_annealing",
            annealing_config=AnnealingConfig(iterations=200),
            rng=random.Random(11),
        )
        config.assign_colors(chain)
        assert config.total_colors() == 7
        assert config.last_result is not None
        assert config.last_result.metadata["iterations_run"] == 200

    @pytest.mark.parametrize("strategy", ["legacy", "groups", "intervals"])
    def test_every_strategy_keeps_all_colors(self, chain, strategy):
        config = SlotConfiguration(printer_type="toolhead", unit_count=2, strategy=strategy)
        config.assign_colors(chain)
        placed = [cid for s in config.all_slots() for cid in s.color_ids]
        assert sorted(placed) == sorted(c.id for c in chain)

    def test_reassignment_resets_slots(self, chain):
        config = SlotConfiguration()
        config.assign_colors(chain)
        config.assign_colors(chain[:2])
        assert slot_map(config) == {"1-1": ["T0"], "1-2": ["T1"]}
        assert all(s.is_permanent for s in config.all_slots())

    def test_swaps_deduplicated_and_sorted(self):
        colors = [
            Color.from_range("A", 0, 10),
            Color.from_range("B", 0, 10),
            Color.from_range("C", 30, 40),
            Color.from_range("D", 30, 40),
            Color.from_range("E", 60, 70),
        ]
        config = SlotConfiguration(printer_type="toolhead", unit_count=2)
        config.assign_colors(colors)
        layers = [s.at_layer for s in config.get_manual_swaps()]
        assert layers == sorted(layers)
        assert len(layers) == 3
