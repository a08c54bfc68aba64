"""High level optimization entry point producing a printable report."""

import random
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence, Union

from ..analysis.constraints import ConstraintAnalyzer, ConstraintValidationResult
from ..materials.color import Color
from ..snapshot import PrintSnapshot
from ..utils.config import Config, SystemConfig
from ..utils.logging import PerformanceLogger, get_logger
from .annealing import AnnealingConfig
from .configuration import ManualSwap, SlotConfiguration

logger = get_logger(__name__)


@dataclass
class SlotAssignment:
    """Colors loaded in one physical slot."""

    unit: int
    slot: int
    slot_id: str
    colors: List[str]
    is_permanent: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "slot": self.slot,
            "slot_id": self.slot_id,
            "colors": list(self.colors),
            "is_permanent": self.is_permanent,
        }


@dataclass(frozen=True)
class ColorPair:
    color1: str
    color2: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"color1": self.color1, "color2": self.color2, "reason": self.reason}


@dataclass
class OptimizationResult:
    """Outcome of an optimization run.

    Attributes:
        total_colors: Number of colors in the print
        required_slots: Slots holding at least one color
        total_slots: Slots the printer offers
        slot_assignments: Non-empty slots in (unit, slot) order
        manual_swaps: Swaps a person performs during the print
        estimated_time_saved: Seconds, at a fixed cost per swap
        can_share_slots: Color pairs that share a slot
        configuration: Slot system summary
    """

    total_colors: int
    required_slots: int
    total_slots: int
    slot_assignments: List[SlotAssignment]
    manual_swaps: List[ManualSwap]
    estimated_time_saved: int
    can_share_slots: List[ColorPair]
    configuration: Dict[str, Any]
    is_valid: bool = True
    file_name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def swap_count(self) -> int:
        return len(self.manual_swaps)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "file_name": self.file_name,
            "total_colors": self.total_colors,
            "required_slots": self.required_slots,
            "total_slots": self.total_slots,
            "slot_assignments": [a.to_dict() for a in self.slot_assignments],
            "manual_swaps": [s.to_dict() for s in self.manual_swaps],
            "estimated_time_saved": self.estimated_time_saved,
            "can_share_slots": [p.to_dict() for p in self.can_share_slots],
            "configuration": dict(self.configuration),
            "is_valid": self.is_valid,
            "metadata": dict(self.metadata),
        }


class OptimizationService:
    """Run slot assignment for a print and summarize the result."""

    def __init__(self, config: Optional[Config] = None, rng: Optional[random.Random] = None):
        """Initialize service.

        Args:
            config: Application settings; defaults are used when omitted
            rng: Random source passed to the annealing algorithm
        """
        self.config = config or Config()
        self.rng = rng
        self.perf = PerformanceLogger()

    def build_configuration(
        self,
        system: Optional[SystemConfig] = None,
        annealing: Optional[AnnealingConfig] = None,
    ) -> SlotConfiguration:
        return SlotConfiguration.from_system_config(
            system or self.config.system,
            annealing_config=annealing,
            rng=self.rng,
            seconds_per_swap=self.config.seconds_per_swap,
            timing_slack_layers=self.config.timing_slack_layers,
        )

    def optimize(
        self,
        source: Union[PrintSnapshot, Sequence[Color]],
        system: Optional[SystemConfig] = None,
        annealing: Optional[AnnealingConfig] = None,
    ) -> OptimizationResult:
        """Assign the colors of a print to slots.

        Args:
            source: Snapshot or plain list of colors
            system: Slot system; defaults to ``config.system``
            annealing: Parameters used when the algorithm is simulated annealing

        Returns:
            Optimization result
        """
        if isinstance(source, PrintSnapshot):
            colors = list(source.colors)
            file_name = source.file_name
        else:
            colors = list(source)
            file_name = ""

        configuration = self.build_configuration(system, annealing)

        self.perf.start_timer("optimize")
        configuration.assign_colors(colors)
        elapsed = self.perf.end_timer("optimize")

        slots = [s for s in configuration.all_slots() if not s.is_empty]
        assignments = [
            SlotAssignment(
                unit=s.unit,
                slot=s.index,
                slot_id=s.slot_id,
                colors=s.color_ids,
                is_permanent=s.is_permanent,
            )
            for s in slots
        ]

        shared = [
            ColorPair(
                color1=a.id,
                color2=b.id,
                reason=f"Colors share {s.display_name} with manual swaps",
            )
            for s in slots
            if s.requires_swaps
            for a, b in combinations(s.colors, 2)
        ]

        swaps = configuration.get_manual_swaps()
        metadata: Dict[str, Any] = {"elapsed_seconds": elapsed}
        if configuration.last_result is not None:
            metadata.update(configuration.last_result.metadata)

        result = OptimizationResult(
            total_colors=len(colors),
            required_slots=len(slots),
            total_slots=configuration.total_slots,
            slot_assignments=assignments,
            manual_swaps=swaps,
            estimated_time_saved=len(swaps) * configuration.seconds_per_swap,
            can_share_slots=shared,
            configuration=configuration.describe(),
            is_valid=configuration.is_valid(),
            file_name=file_name,
            metadata=metadata,
        )

        logger.info(
            f"Optimized {result.total_colors} colors into {result.required_slots}/"
            f"{result.total_slots} slots with {result.swap_count} manual swaps"
        )
        return result

    def validate(
        self, snapshot: PrintSnapshot, system: Optional[SystemConfig] = None
    ) -> ConstraintValidationResult:
        """Check whether any layer needs more colors than the system has slots."""
        system = system or self.config.system
        analyzer = ConstraintAnalyzer(
            max_rgb_distance=self.config.max_rgb_distance,
            low_usage_percentage=self.config.low_usage_percentage,
        )
        return analyzer.validate_snapshot(snapshot, system.total_slots)
