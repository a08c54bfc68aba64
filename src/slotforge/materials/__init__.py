"""Color and slot data model."""

from .color import Color
from .slot import Slot

__all__ = [
    "Color",
    "Slot",
]
