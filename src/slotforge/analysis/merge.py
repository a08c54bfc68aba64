"""Merge several colors of a print into one."""

import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import MergeInputError
from ..materials.color import Color, layers_of
from ..snapshot import ColorRange, FilamentUsage, PrintSnapshot, ToolChange, colors_in_order
from ..utils.logging import get_logger

logger = get_logger(__name__)

LayerRange = Tuple[int, int]


@dataclass(frozen=True)
class MergePreview:
    """What a merge would change, computed without changing anything."""

    target_color: Color
    source_colors: Tuple[Color, ...]
    affected_layers: Tuple[int, ...]
    affected_segments: int
    freed_slots: Tuple[str, ...]
    new_color_count: int

    def to_dict(self) -> Dict:
        return {
            "target_color": self.target_color.id,
            "source_colors": [c.id for c in self.source_colors],
            "affected_layers": list(self.affected_layers),
            "affected_segments": self.affected_segments,
            "freed_slots": list(self.freed_slots),
            "new_color_count": self.new_color_count,
        }


@dataclass(frozen=True)
class MergeHistoryEntry:
    id: str
    timestamp: int
    target_id: str
    source_ids: Tuple[str, ...]
    affected_layers: Tuple[int, ...]
    freed_slots: Tuple[str, ...]

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["source_ids"] = list(self.source_ids)
        data["affected_layers"] = list(self.affected_layers)
        data["freed_slots"] = list(self.freed_slots)
        return data


@dataclass(frozen=True)
class MergeResult:
    merged_snapshot: PrintSnapshot
    history_entry: MergeHistoryEntry


def merge_overlapping_ranges(ranges: Sequence[LayerRange]) -> List[LayerRange]:
    """Collapse overlapping or adjacent inclusive ranges.

    Two ranges are joined when the second starts no later than one layer
    after the first ends. Applying the function to its own output returns
    the same list.
    """
    if not ranges:
        return []

    ordered = sorted(ranges, key=lambda r: r[0])
    merged = [ordered[0]]
    for start, end in ordered[1:]:
        last_start, last_end = merged[-1]
        if start <= last_end + 1:
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


class MergeTransform:
    """Fold source colors into a target color.

    The input snapshot is never modified; :meth:`merge` builds a new one.
    Applied merges are recorded in :attr:`history`.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.history: List[MergeHistoryEntry] = []
        self._sequence = 0

    def preview(
        self, snapshot: PrintSnapshot, target_id: str, source_ids: Sequence[str]
    ) -> Optional[MergePreview]:
        """Describe a merge without applying it.

        Returns:
            Preview, or None when the ids do not describe a valid merge
        """
        try:
            target, sources = self._resolve(snapshot, target_id, source_ids)
        except MergeInputError as e:
            logger.warning(f"Invalid merge request: {e}")
            return None

        source_set = set(source_ids)
        affected_layers = []
        affected_segments = 0
        for layer, ids in sorted(snapshot.layer_color_map.items()):
            hits = sum(1 for color_id in ids if color_id in source_set)
            if hits:
                affected_layers.append(layer)
                affected_segments += hits

        return MergePreview(
            target_color=target,
            source_colors=tuple(sources),
            affected_layers=tuple(affected_layers),
            affected_segments=affected_segments,
            freed_slots=tuple(c.id for c in sources),
            new_color_count=len(snapshot.colors) - len(sources),
        )

    def merge(
        self, snapshot: PrintSnapshot, target_id: str, source_ids: Sequence[str]
    ) -> Optional[MergeResult]:
        """Merge source colors into the target.

        Args:
            snapshot: Print to transform
            target_id: Color that absorbs the sources
            source_ids: Colors to remove

        Returns:
            New snapshot and history entry, or None when the request is
            invalid. Nothing is applied in that case.
        """
        preview = self.preview(snapshot, target_id, source_ids)
        if preview is None:
            return None

        source_set = {c.id for c in preview.source_colors}
        logger.info(
            f"Merging colors: {', '.join(source_ids)} -> {target_id}, "
            f"affecting {len(preview.affected_layers)} layers"
        )

        def remap(color_id: str) -> str:
            return target_id if color_id in source_set else color_id

        merged_color = self._merged_color(
            preview.target_color, preview.source_colors, snapshot.total_layers
        )
        colors = [
            merged_color if c.id == target_id else c
            for c in snapshot.colors
            if c.id not in source_set
        ]

        tool_changes = [
            ToolChange(
                layer=tc.layer,
                from_tool=remap(tc.from_tool),
                to_tool=remap(tc.to_tool),
                line_number=tc.line_number,
                z_height=tc.z_height,
            )
            for tc in snapshot.tool_changes
        ]

        census = {
            layer: tuple(dict.fromkeys(remap(color_id) for color_id in ids))
            for layer, ids in snapshot.layer_color_map.items()
        }

        merged_snapshot = PrintSnapshot(
            total_layers=snapshot.total_layers,
            colors=tuple(colors),
            layer_color_map=census,
            tool_changes=tuple(tool_changes),
            color_usage_ranges=self._merge_usage_ranges(
                snapshot.color_usage_ranges, target_id, source_set
            ),
            filament_estimates=self._merge_filament(
                snapshot.filament_estimates, target_id, source_set
            ),
            file_name=snapshot.file_name,
        )

        timestamp = int(self.clock() * 1000)
        # Sequence keeps ids unique for merges within the same millisecond
        self._sequence += 1
        entry = MergeHistoryEntry(
            id=f"merge-{timestamp}-{self._sequence}",
            timestamp=timestamp,
            target_id=target_id,
            source_ids=tuple(source_ids),
            affected_layers=preview.affected_layers,
            freed_slots=preview.freed_slots,
        )
        self.history.append(entry)

        logger.info(
            f"Merge complete: {len(source_set)} colors merged into {target_id}, "
            f"{len(preview.freed_slots)} slots freed"
        )
        return MergeResult(merged_snapshot=merged_snapshot, history_entry=entry)

    def clear_history(self) -> None:
        self.history.clear()

    @staticmethod
    def _resolve(
        snapshot: PrintSnapshot, target_id: str, source_ids: Sequence[str]
    ) -> Tuple[Color, List[Color]]:
        if not source_ids:
            raise MergeInputError("At least one source color is required")
        if target_id in source_ids:
            raise MergeInputError(f"Target color {target_id} is also listed as a source")

        missing = [cid for cid in [target_id, *source_ids] if snapshot.get_color(cid) is None]
        if missing:
            raise MergeInputError(f"Unknown color ids: {missing}", missing_ids=missing)

        sources = colors_in_order(snapshot, list(dict.fromkeys(source_ids)))
        return snapshot.get_color(target_id), sources

    @staticmethod
    def _merged_color(target: Color, sources: Sequence[Color], total_layers: int) -> Color:
        partials = set(target.partial_layers)
        for source in sources:
            partials |= source.partial_layers

        return Color(
            id=target.id,
            name=target.name,
            hex=target.hex,
            first_layer=min([target.first_layer] + [s.first_layer for s in sources]),
            last_layer=max([target.last_layer] + [s.last_layer for s in sources]),
            layers_used=layers_of([target, *sources]),
            partial_layers=frozenset(partials),
            total_layers=total_layers,
        )

    @staticmethod
    def _merge_usage_ranges(
        ranges: Sequence[ColorRange], target_id: str, source_set: set
    ) -> Tuple[ColorRange, ...]:
        """Relabel source ranges to the target and collapse the target's ranges.

        The target's ranges take the position of the first range that
        belonged to the target or a source.
        """
        merged_target = [
            ColorRange(color_id=target_id, start_layer=start, end_layer=end, continuous=True)
            for start, end in merge_overlapping_ranges(
                [
                    (r.start_layer, r.end_layer)
                    for r in ranges
                    if r.color_id == target_id or r.color_id in source_set
                ]
            )
        ]

        result: List[ColorRange] = []
        inserted = False
        for r in ranges:
            if r.color_id == target_id or r.color_id in source_set:
                if not inserted:
                    result.extend(merged_target)
                    inserted = True
                continue
            result.append(r)
        return tuple(result)

    @staticmethod
    def _merge_filament(
        estimates: Sequence[FilamentUsage], target_id: str, source_set: set
    ) -> Tuple[FilamentUsage, ...]:
        """Sum target and source estimates into the target's entry."""
        involved = [e for e in estimates if e.color_id == target_id or e.color_id in source_set]
        if not involved:
            return tuple(estimates)

        def total(values) -> Optional[float]:
            present = [v for v in values if v is not None]
            return sum(present) if present else None

        combined = FilamentUsage(
            color_id=target_id,
            length=sum(e.length for e in involved),
            weight=total(e.weight for e in involved),
            cost=total(e.cost for e in involved),
        )

        result: List[FilamentUsage] = []
        inserted = False
        for estimate in estimates:
            if estimate.color_id == target_id or estimate.color_id in source_set:
                if not inserted:
                    result.append(combined)
                    inserted = True
                continue
            result.append(estimate)
        return tuple(result)

