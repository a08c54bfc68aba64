"""Fold colors that share a hex code into a single tool."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..materials.color import Color
from ..snapshot import PrintSnapshot
from ..utils.logging import get_logger
from .merge import MergeHistoryEntry, MergeTransform

logger = get_logger(__name__)

TOOL_ID_PATTERN = re.compile(r"^[Tt]?(\d+)$")


@dataclass(frozen=True)
class DuplicateGroup:
    hex_code: str
    original_tools: List[str]
    assigned_to: str
    color_name: str

    def to_dict(self) -> Dict:
        return {
            "hex_code": self.hex_code,
            "original_tools": list(self.original_tools),
            "assigned_to": self.assigned_to,
            "color_name": self.color_name,
        }


@dataclass
class DeduplicationResult:
    """Snapshot after deduplication and what was folded."""

    snapshot: PrintSnapshot
    duplicates_found: List[DuplicateGroup] = field(default_factory=list)
    color_mapping: Dict[str, str] = field(default_factory=dict)
    freed_slots: List[str] = field(default_factory=list)
    history: List[MergeHistoryEntry] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.duplicates_found)

    def to_dict(self) -> Dict:
        return {
            "duplicates_found": [d.to_dict() for d in self.duplicates_found],
            "color_mapping": dict(self.color_mapping),
            "freed_slots": list(self.freed_slots),
            "color_count": len(self.snapshot.colors),
        }


def tool_number(color_id: str) -> Optional[int]:
    """Tool number of an id such as ``T3`` or a bare ``3``, or None."""
    match = TOOL_ID_PATTERN.match(color_id)
    return int(match.group(1)) if match else None


def _tool_sort_key(color: Color):
    number = tool_number(color.id)
    return (number is None, number if number is not None else 0, color.id)


class ColorDeduplicator:
    """Merge colors with identical hex codes into the lowest numbered tool."""

    def __init__(self, transform: Optional[MergeTransform] = None):
        self.transform = transform or MergeTransform()

    def find_duplicates(self, colors: List[Color]) -> Dict[str, List[Color]]:
        """Hex code (upper case) to the colors sharing it, lowest tool first.

        Only hex codes used by more than one color are returned. Colors
        without a hex code are never considered duplicates.
        """
        by_hex: Dict[str, List[Color]] = {}
        for color in colors:
            if color.hex:
                by_hex.setdefault(color.hex.upper(), []).append(color)

        return {
            hex_code: sorted(group, key=_tool_sort_key)
            for hex_code, group in by_hex.items()
            if len(group) > 1
        }

    def deduplicate(self, snapshot: PrintSnapshot) -> DeduplicationResult:
        """Apply one merge per duplicated hex code.

        Args:
            snapshot: Print to deduplicate; it is not modified

        Returns:
            Result holding the new snapshot
        """
        result = DeduplicationResult(snapshot=snapshot)

        for hex_code, group in self.find_duplicates(list(snapshot.colors)).items():
            primary, duplicates = group[0], group[1:]
            merged = self.transform.merge(
                result.snapshot, primary.id, [c.id for c in duplicates]
            )
            if merged is None:
                continue

            result.snapshot = merged.merged_snapshot
            result.history.append(merged.history_entry)
            for duplicate in duplicates:
                result.color_mapping[duplicate.id] = primary.id
                result.freed_slots.append(duplicate.id)
            result.duplicates_found.append(
                DuplicateGroup(
                    hex_code=hex_code,
                    original_tools=[c.id for c in group],
                    assigned_to=primary.id,
                    color_name=primary.name or hex_code,
                )
            )
            logger.info(
                f"Deduplicated {hex_code}: {', '.join(c.id for c in group)} -> {primary.id}"
            )

        return result
