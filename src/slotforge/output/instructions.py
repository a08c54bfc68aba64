"""Generate manual swap instructions and optimization reports."""

import csv
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.service import OptimizationResult
from ..snapshot import PrintSnapshot
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SwapInstruction:
    """Individual filament swap instruction."""

    step: int
    layer_number: int
    height_mm: float
    slot_id: str
    old_color: str
    new_color: str
    description: str
    earliest_layer: int
    latest_layer: int
    estimated_time_seconds: int = 120

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return asdict(self)


class SwapInstructionGenerator:
    """Turn an optimization result into instructions a person can follow."""

    def __init__(self, layer_height: float = 0.2, initial_layer_height: float = 0.2):
        """Initialize instruction generator.

        Args:
            layer_height: Layer height in mm
            initial_layer_height: Height of the first layer in mm
        """
        self.layer_height = layer_height
        self.initial_layer_height = initial_layer_height

    def layer_height_mm(self, layer: int) -> float:
        """Z height at the top of a 0-based layer."""
        return round(self.initial_layer_height + layer * self.layer_height, 3)

    def generate_swap_instructions(
        self, result: OptimizationResult, snapshot: Optional[PrintSnapshot] = None
    ) -> List[SwapInstruction]:
        """Build one instruction per manual swap, in print order.

        Args:
            result: Optimization result
            snapshot: Print the result was computed for, used for color names

        Returns:
            List of swap instructions
        """
        seconds_per_swap = (
            result.estimated_time_saved // len(result.manual_swaps) if result.manual_swaps else 0
        )

        instructions = []
        for step, swap in enumerate(result.manual_swaps, 1):
            old_name = self._color_name(swap.from_color, snapshot)
            new_name = self._color_name(swap.to_color, snapshot)
            instructions.append(
                SwapInstruction(
                    step=step,
                    layer_number=swap.at_layer,
                    height_mm=self.layer_height_mm(swap.at_layer),
                    slot_id=swap.slot_id,
                    old_color=swap.from_color,
                    new_color=swap.to_color,
                    description=f"Remove {old_name} from Slot {swap.slot}, insert {new_name}",
                    earliest_layer=swap.timing.earliest,
                    latest_layer=swap.timing.latest,
                    estimated_time_seconds=seconds_per_swap,
                )
            )
        return instructions

    def generate_report(
        self, result: OptimizationResult, snapshot: Optional[PrintSnapshot] = None
    ) -> str:
        """Human readable optimization report."""
        lines = [
            "SLOT OPTIMIZATION REPORT",
            "=" * 28,
            "",
            f"File: {result.file_name or (snapshot.file_name if snapshot else '') or 'unknown'}",
            f"Total Colors: {result.total_colors}",
            f"Required Slots: {result.required_slots} of {result.total_slots}",
            f"Manual Swaps Needed: {len(result.manual_swaps)}",
            f"Time Saved: ~{round(result.estimated_time_saved / 60)} minutes",
            "",
            "SLOT ASSIGNMENTS:",
        ]

        for assignment in result.slot_assignments:
            names = ", ".join(self._color_name(cid, snapshot) for cid in assignment.colors)
            status = "(Permanent)" if assignment.is_permanent else "(Shared)"
            lines.append(
                f"  Unit {assignment.unit} Slot {assignment.slot}: {names} {status}"
            )

        instructions = self.generate_swap_instructions(result, snapshot)
        if instructions:
            lines += ["", "MANUAL SWAP INSTRUCTIONS:"]
            for instruction, swap in zip(instructions, result.manual_swaps):
                lines += [
                    f"  {instruction.step}. At layer {instruction.layer_number} "
                    f"(Z={instruction.height_mm:.2f}mm):",
                    f"     Remove {self._color_name(swap.from_color, snapshot)} "
                    f"from Slot {swap.slot_id}",
                    f"     Insert {self._color_name(swap.to_color, snapshot)} "
                    f"into Slot {swap.slot_id}",
                    f"     Window: layers {instruction.earliest_layer}-{instruction.latest_layer}",
                ]

        if not result.is_valid:
            lines += [
                "",
                "WARNING: some shared slots hold colors that print on the same layers.",
                "Consider merging similar colors before printing.",
            ]

        lines += [
            "",
            "TIPS:",
            "- Pause the print at the specified layers to perform swaps",
            "- Ensure filaments are properly loaded before resuming",
            "- Consider color usage percentages when deciding permanent slots",
        ]
        return "\n".join(lines)

    def export_report_to_text(
        self,
        result: OptimizationResult,
        output_path: Union[str, Path],
        snapshot: Optional[PrintSnapshot] = None,
    ) -> None:
        """Write the text report to a file."""
        with open(output_path, "w") as f:
            f.write(self.generate_report(result, snapshot))
            f.write("\n")
        logger.debug(f"Wrote text report to {output_path}")

    def export_result_to_json(
        self, result: OptimizationResult, output_path: Union[str, Path]
    ) -> None:
        """Write the full result as JSON."""
        with open(output_path, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        logger.debug(f"Wrote JSON result to {output_path}")

    def export_instructions_to_csv(
        self,
        instructions: List[SwapInstruction],
        output_path: Union[str, Path],
    ) -> None:
        """Export instructions to CSV format.

        Args:
            instructions: Swap instructions
            output_path: Output CSV file path
        """
        with open(output_path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(
                [
                    "Step",
                    "Layer",
                    "Height_mm",
                    "Slot",
                    "Old_Color",
                    "New_Color",
                    "Earliest_Layer",
                    "Latest_Layer",
                    "Description",
                ]
            )
            for instruction in instructions:
                writer.writerow(
                    [
                        instruction.step,
                        instruction.layer_number,
                        instruction.height_mm,
                        instruction.slot_id,
                        instruction.old_color,
                        instruction.new_color,
                        instruction.earliest_layer,
                        instruction.latest_layer,
                        instruction.description,
                    ]
                )

    @staticmethod
    def _color_name(color_id: str, snapshot: Optional[PrintSnapshot]) -> str:
        if snapshot is None:
            return color_id
        color = snapshot.get_color(color_id)
        return color.name if color and color.name else color_id
