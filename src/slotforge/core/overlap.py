"""Overlap analysis and greedy slot assignment strategies."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Set

from ..errors import ConfigurationError
from ..materials.color import Color
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SwapDetail:
    """A filament change in a numbered slot."""

    slot: int
    from_color: str
    to_color: str
    at_layer: int


@dataclass
class ColorGroup:
    """Colors that can share one slot without overlapping."""

    colors: List[Color]
    required_swaps: int


@dataclass
class SlotOptimizationResult:
    """Output of an assignment strategy.

    ``assignments`` maps 1-based slot numbers to the colors placed there.
    """

    assignments: Dict[int, List[Color]]
    total_swaps: int
    swap_details: List[SwapDetail]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def assigned_color_count(self) -> int:
        return sum(len(colors) for colors in self.assignments.values())

    def slot_of(self, color_id: str) -> int:
        """Slot number holding a color, or 0 if it was not assigned."""
        for slot_number, colors in self.assignments.items():
            if any(c.id == color_id for c in colors):
                return slot_number
        return 0


def by_first_layer(colors: Sequence[Color]) -> List[Color]:
    """Colors ordered by first layer; equal starts keep their input order."""
    return sorted(colors, key=lambda c: c.first_layer)


def swap_layer(previous: Color, following: Color) -> int:
    """Layer at which ``previous`` is unloaded and ``following`` loaded.

    The middle of the gap when the two are separated by at least one idle
    layer, otherwise the first layer of ``following``.
    """
    if following.first_layer - previous.last_layer > 1:
        return (previous.last_layer + following.first_layer) // 2
    return following.first_layer


def swap_details_for_slot(slot_number: int, colors: Sequence[Color]) -> List[SwapDetail]:
    """One swap per adjacent pair of a slot's colors in print order."""
    ordered = by_first_layer(colors)
    return [
        SwapDetail(
            slot=slot_number,
            from_color=prev.id,
            to_color=nxt.id,
            at_layer=swap_layer(prev, nxt),
        )
        for prev, nxt in zip(ordered, ordered[1:])
    ]


def one_color_per_slot(colors: Sequence[Color]) -> SlotOptimizationResult:
    """Trivial assignment used whenever every color fits in its own slot."""
    return SlotOptimizationResult(
        assignments={i + 1: [color] for i, color in enumerate(colors)},
        total_swaps=0,
        swap_details=[],
    )


def _check_slots(max_slots: int) -> None:
    if max_slots < 1:
        raise ConfigurationError(f"Invalid slot count: {max_slots}. Must be at least 1.")


class OverlapAnalyzer:
    """Stateless overlap tests and greedy assignment strategies.

    Ties are always broken by input order: earlier colors open groups first,
    and among equally good slots the lowest slot number wins.
    """

    @staticmethod
    def has_overlap(color1: Color, color2: Color) -> bool:
        """Check whether two colors' layer ranges intersect.

        Ranges that share a single boundary layer count as overlapping.
        """
        return not (
            color1.last_layer < color2.first_layer
            or color2.last_layer < color1.first_layer
        )

    @classmethod
    def build_overlap_matrix(cls, colors: Sequence[Color]) -> Dict[str, Set[str]]:
        """Map each color id to the ids of colors it overlaps."""
        overlaps: Dict[str, Set[str]] = {color.id: set() for color in colors}

        for i, color1 in enumerate(colors):
            for color2 in colors[i + 1 :]:
                if cls.has_overlap(color1, color2):
                    overlaps[color1.id].add(color2.id)
                    overlaps[color2.id].add(color1.id)

        return overlaps

    @classmethod
    def find_non_overlapping_groups(cls, colors: Sequence[Color]) -> List[ColorGroup]:
        """Partition colors into groups whose members are pairwise disjoint.

        Greedy: each unassigned color in input order opens a group, then every
        later unassigned color that overlaps no current member joins it.
        """
        overlaps = cls.build_overlap_matrix(colors)
        groups: List[ColorGroup] = []
        assigned: Set[str] = set()

        for color in colors:
            if color.id in assigned:
                continue

            group = [color]
            assigned.add(color.id)

            for candidate in colors:
                if candidate.id in assigned:
                    continue
                if any(candidate.id in overlaps[member.id] for member in group):
                    continue
                group.append(candidate)
                assigned.add(candidate.id)

            groups.append(
                ColorGroup(colors=group, required_swaps=cls.calculate_swaps_for_group(group))
            )

        return groups

    @staticmethod
    def calculate_swaps_for_group(colors: Sequence[Color]) -> int:
        """Swaps needed when the colors share one slot."""
        if len(colors) <= 1:
            return 0
        return len(by_first_layer(colors)) - 1

    @classmethod
    def optimize_slot_assignments(
        cls, colors: Sequence[Color], max_slots: int = 4
    ) -> SlotOptimizationResult:
        """Group-based assignment.

        Non-overlapping groups are placed largest first, one per slot. Groups
        left over once slots run out are merged into the slot whose swap
        count grows the least.
        """
        _check_slots(max_slots)
        if len(colors) <= max_slots:
            return one_color_per_slot(colors)

        groups = sorted(
            cls.find_non_overlapping_groups(colors), key=lambda g: len(g.colors), reverse=True
        )

        assignments: Dict[int, List[Color]] = {}
        swap_details: List[SwapDetail] = []
        total_swaps = 0

        placed = min(max_slots, len(groups))
        for slot_number, group in enumerate(groups[:placed], start=1):
            assignments[slot_number] = list(group.colors)
            swap_details.extend(swap_details_for_slot(slot_number, group.colors))
            total_swaps += group.required_swaps

        for group in groups[placed:]:
            best_slot = 1
            best_increase = None
            for slot_number in range(1, placed + 1):
                existing = assignments[slot_number]
                increase = cls.calculate_swaps_for_group(
                    existing + group.colors
                ) - cls.calculate_swaps_for_group(existing)
                if best_increase is None or increase < best_increase:
                    best_increase = increase
                    best_slot = slot_number

            assignments[best_slot] = assignments[best_slot] + list(group.colors)
            total_swaps += best_increase
            swap_details = [d for d in swap_details if d.slot != best_slot]
            swap_details.extend(swap_details_for_slot(best_slot, assignments[best_slot]))

        swap_details.sort(key=lambda d: (d.slot, d.at_layer))
        logger.debug(
            f"Group strategy: {len(groups)} groups over {placed} slots, {total_swaps} swaps"
        )
        return SlotOptimizationResult(
            assignments=assignments, total_swaps=total_swaps, swap_details=swap_details
        )

    @classmethod
    def optimize_by_intervals(
        cls, colors: Sequence[Color], max_slots: int = 4
    ) -> SlotOptimizationResult:
        """Interval-partitioning assignment.

        Colors are taken in order of first layer and placed in the first slot
        that is free before the color starts. When none is free the color is
        forced into the slot that frees up earliest, which may overlap.
        """
        _check_slots(max_slots)

        if len(colors) <= max_slots:
            result = one_color_per_slot(colors)
            result.metadata["forced_placements"] = 0
            return result

        slots: List[List[Color]] = [[] for _ in range(max_slots)]
        slot_end_layers = [-1] * max_slots
        forced = 0

        for color in by_first_layer(colors):
            target = next(
                (i for i, end in enumerate(slot_end_layers) if end < color.first_layer),
                None,
            )
            if target is None:
                # min() returns the lowest index among equal ends
                target = min(range(max_slots), key=lambda i: slot_end_layers[i])
                forced += 1
            slots[target].append(color)
            slot_end_layers[target] = max(slot_end_layers[target], color.last_layer)

        assignments: Dict[int, List[Color]] = {}
        swap_details: List[SwapDetail] = []
        for index, slot_colors in enumerate(slots):
            if not slot_colors:
                continue
            assignments[index + 1] = slot_colors
            swap_details.extend(swap_details_for_slot(index + 1, slot_colors))

        if forced:
            logger.debug(f"Interval strategy forced {forced} overlapping placements")

        return SlotOptimizationResult(
            assignments=assignments,
            total_swaps=len(swap_details),
            swap_details=swap_details,
            metadata={"forced_placements": forced},
        )
