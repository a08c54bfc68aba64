"""Slot configuration: owns the slots of one optimization run."""

import random
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..materials.color import Color
from ..materials.slot import MAX_UNITS, Slot
from ..utils.logging import PerformanceLogger, ProgressLogger, get_logger
from .annealing import AnnealingConfig, AnnealingOptimizer
from .overlap import OverlapAnalyzer, SlotOptimizationResult, by_first_layer, swap_layer

logger = get_logger(__name__)

PRINTER_TYPES = {"ams": 4, "toolhead": 1}
STRATEGIES = ("legacy", "groups", "intervals")
ALGORITHMS = ("greedy", "simulated_annealing")

SECONDS_PER_SWAP = 120
TIMING_SLACK_LAYERS = 10
# Latest swap layer never trails the outgoing color by more than this
SWAP_WINDOW_CAP_LAYERS = 50


@dataclass(frozen=True)
class PauseWindow:
    start: int
    end: int


@dataclass(frozen=True)
class SwapTiming:
    earliest: int
    latest: int
    optimal: int


@dataclass(frozen=True)
class SwapConfidence:
    timing: int = 85
    necessity: int = 100
    user_control: int = 70


@dataclass(frozen=True)
class ManualSwap:
    """A pause-and-reload a person performs on a shared slot."""

    unit: int
    slot: int
    from_color: str
    to_color: str
    at_layer: int
    pause_window: PauseWindow
    timing: SwapTiming
    confidence: SwapConfidence
    reason: str

    @property
    def slot_id(self) -> str:
        return f"{self.unit}-{self.slot}"

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return asdict(self)


class SlotConfiguration:
    """Slots of a printer and the colors assigned to them.

    All slots are created up front and repopulated by every call to
    :meth:`assign_colors`.
    """

    def __init__(
        self,
        printer_type: str = "ams",
        unit_count: int = 1,
        strategy: str = "intervals",
        algorithm: str = "greedy",
        annealing_config: Optional[AnnealingConfig] = None,
        rng: Optional[random.Random] = None,
        seconds_per_swap: int = SECONDS_PER_SWAP,
        timing_slack_layers: int = TIMING_SLACK_LAYERS,
    ):
        """Initialize configuration.

        Args:
            printer_type: ``ams`` (4 slots per unit) or ``toolhead`` (1 slot per unit)
            unit_count: Number of units (1-16)
            strategy: ``legacy``, ``groups`` or ``intervals``
            algorithm: ``greedy`` or ``simulated_annealing``
            annealing_config: Parameters for the annealing algorithm
            rng: Random source for the annealing algorithm
            seconds_per_swap: Time estimate for one manual swap
            timing_slack_layers: Layers of slack around a swap boundary
        """
        if printer_type not in PRINTER_TYPES:
            raise ConfigurationError(
                f"Unknown printer type: {printer_type}. Available: {list(PRINTER_TYPES)}"
            )
        if not (1 <= unit_count <= MAX_UNITS):
            raise ConfigurationError(
                f"Unit count must be between 1 and {MAX_UNITS}, got {unit_count}"
            )
        if strategy not in STRATEGIES:
            raise ConfigurationError(f"Unknown strategy: {strategy}. Available: {list(STRATEGIES)}")
        if algorithm not in ALGORITHMS:
            raise ConfigurationError(
                f"Unknown algorithm: {algorithm}. Available: {list(ALGORITHMS)}"
            )

        self.printer_type = printer_type
        self.unit_count = unit_count
        self.slots_per_unit = PRINTER_TYPES[printer_type]
        self.total_slots = unit_count * self.slots_per_unit
        self.strategy = strategy
        self.algorithm = algorithm
        self.annealing_config = annealing_config or AnnealingConfig()
        self.rng = rng
        self.seconds_per_swap = seconds_per_swap
        self.timing_slack_layers = timing_slack_layers
        self.last_result: Optional[SlotOptimizationResult] = None

        self._slots: Dict[str, Slot] = {}
        for unit in range(1, unit_count + 1):
            for index in range(1, self.slots_per_unit + 1):
                slot = Slot(unit, index, is_permanent=True)
                self._slots[slot.slot_id] = slot

        self._progress = ProgressLogger()
        self._perf = PerformanceLogger()

    @classmethod
    def from_system_config(cls, system_config, **kwargs) -> "SlotConfiguration":
        """Build from a :class:`slotforge.utils.config.SystemConfig`."""
        return cls(
            printer_type=system_config.type,
            unit_count=system_config.unit_count,
            strategy=system_config.strategy,
            algorithm=system_config.algorithm,
            **kwargs,
        )

    def get_slot(self, unit: int, index: int) -> Optional[Slot]:
        return self._slots.get(f"{unit}-{index}")

    def get_slot_by_id(self, slot_id: str) -> Optional[Slot]:
        return self._slots.get(slot_id)

    def all_slots(self) -> List[Slot]:
        """Slots in (unit, index) order."""
        return sorted(self._slots.values(), key=lambda s: s.sort_key)

    def describe(self) -> Dict:
        """Summary of the slot system."""
        return {
            "type": self.printer_type,
            "unit_count": self.unit_count,
            "slots_per_unit": self.slots_per_unit,
            "total_slots": self.total_slots,
            "strategy": self.strategy,
            "algorithm": self.algorithm,
        }

    def assign_colors(self, colors: Sequence[Color]) -> None:
        """Assign colors to slots, replacing any previous assignment."""
        colors = list(colors)
        for slot in self._slots.values():
            slot.clear()
            slot.is_permanent = True
        self.last_result = None

        self._perf.start_timer("assign_colors")

        if len(colors) <= self.total_slots:
            for slot, color in zip(self.all_slots(), colors):
                slot.assign_color(color)
        elif self.algorithm == "simulated_annealing":
            optimizer = AnnealingOptimizer(self.total_slots, self.annealing_config, self.rng)
            self._apply_result(optimizer.optimize(colors))
        elif self.strategy == "legacy":
            self._assign_legacy(colors)
        elif self.strategy == "groups":
            self._apply_result(OverlapAnalyzer.optimize_slot_assignments(colors, self.total_slots))
        else:
            self._apply_result(OverlapAnalyzer.optimize_by_intervals(colors, self.total_slots))

        for slot in self._slots.values():
            if slot.colors:
                slot.is_permanent = len(slot.colors) == 1

        self._perf.end_timer("assign_colors")
        self._progress.log_slot_assignments(
            {s.slot_id: s.color_ids for s in self.all_slots() if s.colors}
        )
        if not self.is_valid():
            logger.warning(
                "Assignment places overlapping colors in a shared slot; "
                "manual swaps will interrupt active colors"
            )

    def _slot_for_number(self, slot_number: int) -> Slot:
        """Slot for a 1-based number counting across units."""
        unit = (slot_number - 1) // self.slots_per_unit + 1
        index = (slot_number - 1) % self.slots_per_unit + 1
        return self._slots[f"{unit}-{index}"]

    def _apply_result(self, result: SlotOptimizationResult) -> None:
        self.last_result = result
        for slot_number, slot_colors in result.assignments.items():
            slot = self._slot_for_number(slot_number)
            slot.is_permanent = len(slot_colors) == 1
            for color in slot_colors:
                slot.assign_color(color, allow_overlaps=not slot.is_permanent)

    def _assign_legacy(self, colors: List[Color]) -> None:
        """Most-used colors get permanent slots; the rest share the last slot."""
        ranked = sorted(colors, key=lambda c: c.layer_count, reverse=True)
        slots = self.all_slots()
        permanent_count = self.total_slots - 1

        for slot, color in zip(slots[:permanent_count], ranked):
            slot.assign_color(color)

        shared = slots[-1]
        shared.is_permanent = False
        remaining = ranked[permanent_count:]

        groups = self._group_non_overlapping(remaining)
        # max() keeps the first of equally large groups
        largest = max(groups, key=len) if groups else []
        for color in largest:
            shared.assign_color(color, allow_overlaps=True)

        placed = {c.id for c in largest}
        for color in remaining:
            if color.id not in placed:
                shared.assign_color(color, allow_overlaps=True)

    @staticmethod
    def _group_non_overlapping(colors: Sequence[Color]) -> List[List[Color]]:
        """First-fit grouping on actual layer usage."""
        groups: List[List[Color]] = []
        for color in colors:
            for group in groups:
                if all(not member.overlaps_with(color) for member in group):
                    group.append(color)
                    break
            else:
                groups.append([color])
        return groups

    def get_manual_swaps(self) -> List[ManualSwap]:
        """Swaps implied by the current shared slots, in print order."""
        slack = self.timing_slack_layers
        swaps: List[ManualSwap] = []

        for slot in self.all_slots():
            if not slot.requires_swaps:
                continue

            ordered = by_first_layer(slot.colors)
            for prev, nxt in zip(ordered, ordered[1:]):
                at_layer = swap_layer(prev, nxt)

                earliest = max(0, prev.first_layer, prev.last_layer - slack)
                latest = min(
                    nxt.first_layer + slack, prev.last_layer + SWAP_WINDOW_CAP_LAYERS
                )
                latest = min(latest, nxt.last_layer)
                earliest = min(earliest, at_layer)
                latest = max(latest, at_layer)

                swaps.append(
                    ManualSwap(
                        unit=slot.unit,
                        slot=slot.index,
                        from_color=prev.id,
                        to_color=nxt.id,
                        at_layer=at_layer,
                        pause_window=PauseWindow(start=max(0, at_layer - 1), end=at_layer),
                        timing=SwapTiming(earliest=earliest, latest=latest, optimal=at_layer),
                        confidence=SwapConfidence(),
                        reason=f"Swap {prev.id} -> {nxt.id} in {slot.display_name}",
                    )
                )

        swaps.sort(key=lambda s: s.at_layer)

        seen = set()
        unique: List[ManualSwap] = []
        for swap in swaps:
            key = (swap.from_color, swap.to_color, swap.at_layer)
            if key in seen:
                continue
            seen.add(key)
            unique.append(swap)

        return unique

    def time_saved(self) -> int:
        """Estimated seconds of manual work, at a fixed cost per swap."""
        return len(self.get_manual_swaps()) * self.seconds_per_swap

    def total_colors(self) -> int:
        return len({cid for slot in self._slots.values() for cid in slot.color_ids})

    def is_valid(self) -> bool:
        """True if no slot holds two colors printing on a common layer."""
        return all(not slot.overlapping_pairs() for slot in self._slots.values())

    def validation_report(self) -> List[Tuple[str, str, str]]:
        """Overlapping color pairs as ``(slot_id, color_a, color_b)``."""
        return [
            (slot.slot_id, a, b)
            for slot in self.all_slots()
            for a, b in slot.overlapping_pairs()
        ]
