"""Slot model: one physical filament loading position."""

from typing import List, Optional, Tuple

from ..errors import ConfigurationError, SlotAssignmentError
from .color import Color

MAX_UNITS = 16
MAX_SLOTS_PER_UNIT = 4


class Slot:
    """A filament slot holding one permanent color or several shared colors."""

    def __init__(self, unit: int, index: int, is_permanent: bool = True):
        """Initialize slot.

        Args:
            unit: Unit number (1-16)
            index: Slot number within the unit (1-4)
            is_permanent: Whether the slot holds a single color for the whole print
        """
        if not (1 <= unit <= MAX_UNITS):
            raise ConfigurationError(f"Unit number must be between 1 and {MAX_UNITS}, got {unit}")
        if not (1 <= index <= MAX_SLOTS_PER_UNIT):
            raise ConfigurationError(
                f"Slot number must be between 1 and {MAX_SLOTS_PER_UNIT}, got {index}"
            )

        self.unit = unit
        self.index = index
        self.is_permanent = is_permanent
        self._colors: List[Color] = []

    def __repr__(self) -> str:
        kind = "permanent" if self.is_permanent else "shared"
        return f"Slot({self.slot_id}, {kind}, colors={self.color_ids})"

    @property
    def colors(self) -> Tuple[Color, ...]:
        return tuple(self._colors)

    @property
    def color_ids(self) -> List[str]:
        return [c.id for c in self._colors]

    @property
    def is_empty(self) -> bool:
        return not self._colors

    @property
    def requires_swaps(self) -> bool:
        """Slot has more than one color and needs manual swaps."""
        return len(self._colors) > 1

    @property
    def slot_id(self) -> str:
        return f"{self.unit}-{self.index}"

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.unit, self.index)

    @property
    def display_name(self) -> str:
        return f"Unit {self.unit} Slot {self.index}"

    def assign_color(self, color: Color, allow_overlaps: bool = False) -> None:
        """Add a color to this slot.

        Args:
            color: Color to add
            allow_overlaps: Accept a color that overlaps one already in the slot

        Raises:
            SlotAssignmentError: Slot is permanent and occupied, or the color
                overlaps an existing one and overlaps are not allowed
        """
        if self.is_permanent and self._colors:
            raise SlotAssignmentError(
                f"Cannot assign {color.id} to permanent slot {self.slot_id} "
                f"already holding {self._colors[0].id}",
                slot_id=self.slot_id,
                color_id=color.id,
            )

        if not allow_overlaps:
            for existing in self._colors:
                if existing.overlaps_with(color):
                    raise SlotAssignmentError(
                        f"Color {color.id} overlaps with {existing.id} in slot {self.slot_id}",
                        slot_id=self.slot_id,
                        color_id=color.id,
                    )

        self._colors.append(color)

    def remove_color(self, color_id: str) -> None:
        self._colors = [c for c in self._colors if c.id != color_id]

    def clear(self) -> None:
        self._colors = []

    def color_at_layer(self, layer: int) -> Optional[Color]:
        """Color that should be loaded for a layer, if any."""
        for color in self._colors:
            if color.is_used_in_layer(layer):
                return color
        return None

    def swap_points(self) -> List[int]:
        """First layer of every color after the earliest one."""
        if self.is_permanent or len(self._colors) <= 1:
            return []
        ordered = sorted(self._colors, key=lambda c: c.first_layer)
        return [c.first_layer for c in ordered[1:]]

    def overlapping_pairs(self) -> List[Tuple[str, str]]:
        """Pairs of color ids in this slot that print on a common layer."""
        pairs = []
        for i, first in enumerate(self._colors):
            for second in self._colors[i + 1 :]:
                if first.overlaps_with(second):
                    pairs.append((first.id, second.id))
        return pairs
