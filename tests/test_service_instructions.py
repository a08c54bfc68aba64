"""Tests for the optimization service and instruction export."""

import csv
import json
import random

import pytest

from slotforge.core.service import OptimizationService
from slotforge.output.instructions import SwapInstructionGenerator
from slotforge.snapshot import PrintSnapshot
from slotforge.utils.config import Config, SystemConfig

CHAIN = [(0, 50), (10, 60), (51, 100), (61, 110), (101, 150), (111, 160), (151, 200)]


@pytest.fixture
def snapshot():
    return PrintSnapshot.from_dict(
        {
            "file_name": "chain.gcode",
            "total_layers": 201,
            "colors": [
                {"id": f"T{i}", "name": f"Color {i}", "first_layer": first, "last_layer": last}
                for i, (first, last) in enumerate(CHAIN)
            ],
        }
    )


@pytest.fixture
def service():
    return OptimizationService(Config(), rng=random.Random(0))


class TestOptimizationService:
    """Test result assembly."""

    def test_chain_result(self, service, snapshot):
        result = service.optimize(snapshot)

        assert result.file_name == "chain.gcode"
        assert result.total_colors == 7
        assert result.total_slots == 4
        assert result.required_slots == 2
        assert [a.slot_id for a in result.slot_assignments] == ["1-1", "1-2"]
        assert result.slot_assignments[0].colors == ["T0", "T2", "T4", "T6"]
        assert not result.slot_assignments[0].is_permanent
        assert result.swap_count == 5
        assert result.estimated_time_saved == 5 * 120
        assert result.is_valid
        assert result.configuration["strategy"] == "intervals"

    def test_color_count_preserved(self, service, snapshot):
        for strategy in ("legacy", "groups", "intervals"):
            system = SystemConfig(strategy=strategy)
            result = service.optimize(snapshot, system=system)
            assert sum(len(a.colors) for a in result.slot_assignments) == result.total_colors

    def test_can_share_slots(self, service, snapshot):
        result = service.optimize(snapshot)
        pairs = {(p.color1, p.color2) for p in result.can_share_slots}
        assert ("T0", "T2") in pairs
        assert ("T1", "T5") in pairs
        assert len(result.can_share_slots) == 6 + 3
        assert result.can_share_slots[0].reason == "Colors share Unit 1 Slot 1 with manual swaps"

    def test_fits_without_swaps(self, service, snapshot):
        system = SystemConfig(unit_count=2)
        result = service.optimize(snapshot, system=system)
        assert result.required_slots == 7
        assert result.manual_swaps == []
        assert result.can_share_slots == []
        assert all(a.is_permanent for a in result.slot_assignments)

    def test_to_dict_is_json_serializable(self, service, snapshot):
        data = json.loads(json.dumps(service.optimize(snapshot).to_dict()))
        assert data["required_slots"] == 2
        assert data["manual_swaps"][0]["pause_window"] == {"start": 50, "end": 51}

    def test_plain_color_list(self, service, snapshot):
        result = service.optimize(list(snapshot.colors))
        assert result.file_name == ""
        assert result.total_colors == 7

    def test_validate(self, service, snapshot):
        assert service.validate(snapshot).is_valid
        tight = SystemConfig(type="toolhead", unit_count=1)
        result = service.validate(snapshot, system=tight)
        assert result.has_violations


class TestSwapInstructionGenerator:
    """Test report and export formats."""

    @pytest.fixture
    def result(self, service, snapshot):
        return service.optimize(snapshot)

    def test_instructions(self, result, snapshot):
        generator = SwapInstructionGenerator(layer_height=0.2, initial_layer_height=0.2)
        instructions = generator.generate_swap_instructions(result, snapshot)

        assert len(instructions) == 5
        first = instructions[0]
        assert first.step == 1
        assert first.layer_number == 51
        assert first.height_mm == pytest.approx(10.4)
        assert first.slot_id == "1-1"
        assert first.description == "Remove Color 0 from Slot 1, insert Color 2"
        assert first.estimated_time_seconds == 120

    def test_report(self, result, snapshot):
        report = SwapInstructionGenerator().generate_report(result, snapshot)
        assert "File: chain.gcode" in report
        assert "Total Colors: 7" in report
        assert "Required Slots: 2 of 4" in report
        assert "Manual Swaps Needed: 5" in report
        assert "Time Saved: ~10 minutes" in report
        assert "Unit 1 Slot 1: Color 0, Color 2, Color 4, Color 6 (Shared)" in report
        assert "MANUAL SWAP INSTRUCTIONS:" in report
        assert "Remove Color 0 from Slot 1-1" in report
        assert "TIPS:" in report

    def test_report_without_swaps(self, service, snapshot):
        result = service.optimize(snapshot, system=SystemConfig(unit_count=2))
        report = SwapInstructionGenerator().generate_report(result)
        assert "MANUAL SWAP INSTRUCTIONS" not in report
        assert "(Permanent)" in report

    def test_exports(self, result, snapshot, tmp_path):
        generator = SwapInstructionGenerator()

        text_path = tmp_path / "report.txt"
        generator.export_report_to_text(result, text_path, snapshot)
        assert text_path.read_text().startswith("SLOT OPTIMIZATION REPORT")

        json_path = tmp_path / "result.json"
        generator.export_result_to_json(result, json_path)
        assert json.loads(json_path.read_text())["total_colors"] == 7

        csv_path = tmp_path / "swaps.csv"
        generator.export_instructions_to_csv(
            generator.generate_swap_instructions(result, snapshot), csv_path
        )
        with open(csv_path, newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0][0] == "Step"
        assert len(rows) == 6
        assert rows[1][1] == "51"
