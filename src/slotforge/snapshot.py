"""Print snapshot: the parsed state of a multi-color print."""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from .errors import ColorValidationError, SnapshotError
from .materials.color import Color
from .utils.logging import get_logger

logger = get_logger(__name__)

LayerCensus = Mapping[int, Tuple[str, ...]]


@dataclass(frozen=True)
class ToolChange:
    """A tool change event in the print."""

    layer: int
    from_tool: str
    to_tool: str
    line_number: Optional[int] = None
    z_height: Optional[float] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ColorRange:
    """A run of layers where a color is used."""

    color_id: str
    start_layer: int
    end_layer: int
    continuous: bool = True

    @property
    def layer_count(self) -> int:
        return self.end_layer - self.start_layer + 1

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class FilamentUsage:
    """Filament estimate for one color."""

    color_id: str
    length: float = 0.0
    weight: Optional[float] = None
    cost: Optional[float] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def freeze_census(census: Mapping[int, Iterable[str]]) -> LayerCensus:
    """Read-only copy of a layer census.

    Ids are stored as strings so parser output with numeric tool ids
    matches ``Color.id``.
    """
    return MappingProxyType(
        {int(layer): tuple(str(i) for i in ids) for layer, ids in census.items()}
    )


def census_from_colors(colors: Iterable[Color]) -> LayerCensus:
    """Layer census built from each color's used layers."""
    census: Dict[int, List[str]] = {}
    for color in colors:
        for layer in sorted(color.layers_used):
            census.setdefault(layer, []).append(color.id)
    return freeze_census(dict(sorted(census.items())))


def contiguous_runs(layers: Iterable[int]) -> List[Tuple[int, int]]:
    """Split a set of layers into inclusive ``(start, end)`` runs."""
    runs: List[Tuple[int, int]] = []
    for layer in sorted(set(layers)):
        if runs and layer == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], layer)
        else:
            runs.append((layer, layer))
    return runs


def ranges_from_colors(colors: Iterable[Color]) -> Tuple[ColorRange, ...]:
    """Usage ranges derived from each color's used layers."""
    ranges = []
    for color in colors:
        for start, end in contiguous_runs(color.layers_used):
            ranges.append(ColorRange(color_id=color.id, start_layer=start, end_layer=end))
    return tuple(ranges)


@dataclass(frozen=True)
class PrintSnapshot:
    """Immutable view of a parsed print.

    Every structure is a tuple or read-only mapping, so transforms must
    build a new snapshot rather than editing this one.
    """

    total_layers: int
    colors: Tuple[Color, ...]
    layer_color_map: LayerCensus = field(default_factory=lambda: MappingProxyType({}))
    tool_changes: Tuple[ToolChange, ...] = ()
    color_usage_ranges: Tuple[ColorRange, ...] = ()
    filament_estimates: Tuple[FilamentUsage, ...] = ()
    file_name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "colors", tuple(self.colors))
        object.__setattr__(self, "tool_changes", tuple(self.tool_changes))
        object.__setattr__(self, "color_usage_ranges", tuple(self.color_usage_ranges))
        object.__setattr__(self, "filament_estimates", tuple(self.filament_estimates))
        if not isinstance(self.layer_color_map, MappingProxyType):
            object.__setattr__(self, "layer_color_map", freeze_census(self.layer_color_map))

        ids = [c.id for c in self.colors]
        if len(set(ids)) != len(ids):
            raise ColorValidationError(f"Duplicate color ids in snapshot: {ids}")

    @property
    def color_ids(self) -> List[str]:
        return [c.id for c in self.colors]

    def get_color(self, color_id: str) -> Optional[Color]:
        for color in self.colors:
            if color.id == color_id:
                return color
        return None

    def color_layers(self, color_id: str) -> List[int]:
        """Layers where the census lists a color."""
        return sorted(layer for layer, ids in self.layer_color_map.items() if color_id in ids)

    def color_usage_stats(self) -> Dict[str, int]:
        """Number of census layers each color appears on."""
        stats: Dict[str, int] = {}
        for ids in self.layer_color_map.values():
            for color_id in ids:
                stats[color_id] = stats.get(color_id, 0) + 1
        return stats

    def ranges_for(self, color_id: str) -> List[ColorRange]:
        return [r for r in self.color_usage_ranges if r.color_id == color_id]

    def filament_for(self, color_id: str) -> Optional[FilamentUsage]:
        for usage in self.filament_estimates:
            if usage.color_id == color_id:
                return usage
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "file_name": self.file_name,
            "total_layers": self.total_layers,
            "colors": [c.to_dict() for c in self.colors],
            "layer_color_map": {
                str(layer): list(ids) for layer, ids in sorted(self.layer_color_map.items())
            },
            "tool_changes": [tc.to_dict() for tc in self.tool_changes],
            "color_usage_ranges": [r.to_dict() for r in self.color_usage_ranges],
            "filament_estimates": [f.to_dict() for f in self.filament_estimates],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrintSnapshot":
        """Build a snapshot from parser output.

        Missing census or usage ranges are derived from the colors.
        """
        try:
            total_layers = int(data.get("total_layers", 0))
            colors = [Color.from_dict(c, total_layers=total_layers) for c in data["colors"]]
        except (KeyError, TypeError) as e:
            raise SnapshotError(f"Snapshot is missing color data: {e}", cause=e) from e

        if total_layers <= 0 and colors:
            total_layers = max(c.last_layer for c in colors) + 1
            colors = [
                Color.from_dict(c, total_layers=total_layers) for c in data["colors"]
            ]

        raw_census = data.get("layer_color_map")
        if raw_census:
            census = freeze_census({int(k): v for k, v in raw_census.items()})
        else:
            census = census_from_colors(colors)

        raw_ranges = data.get("color_usage_ranges")
        if raw_ranges:
            ranges = tuple(
                ColorRange(
                    color_id=str(r["color_id"]),
                    start_layer=int(r["start_layer"]),
                    end_layer=int(r["end_layer"]),
                    continuous=bool(r.get("continuous", True)),
                )
                for r in raw_ranges
            )
        else:
            ranges = ranges_from_colors(colors)

        tool_changes = tuple(
            ToolChange(
                layer=int(tc["layer"]),
                from_tool=str(tc["from_tool"]),
                to_tool=str(tc["to_tool"]),
                line_number=tc.get("line_number"),
                z_height=tc.get("z_height"),
            )
            for tc in data.get("tool_changes", [])
        )

        estimates = tuple(
            FilamentUsage(
                color_id=str(f["color_id"]),
                length=float(f.get("length", 0.0)),
                weight=f.get("weight"),
                cost=f.get("cost"),
            )
            for f in data.get("filament_estimates", [])
        )

        return cls(
            total_layers=total_layers,
            colors=tuple(colors),
            layer_color_map=census,
            tool_changes=tool_changes,
            color_usage_ranges=ranges,
            filament_estimates=estimates,
            file_name=data.get("file_name", ""),
        )


def load_snapshot(path: Union[str, Path]) -> PrintSnapshot:
    """Load a snapshot from a JSON or YAML file."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise SnapshotError(f"Failed to read snapshot {path}: {e}", cause=e) from e

    if not isinstance(data, dict):
        raise SnapshotError(f"Snapshot {path} must contain a mapping")

    data.setdefault("file_name", path.name)
    snapshot = PrintSnapshot.from_dict(data)
    logger.debug(
        f"Loaded {path.name}: {len(snapshot.colors)} colors over {snapshot.total_layers} layers"
    )
    return snapshot


def save_snapshot(snapshot: PrintSnapshot, path: Union[str, Path]) -> None:
    """Write a snapshot as JSON or YAML, chosen by file suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            yaml.safe_dump(snapshot.to_dict(), f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(snapshot.to_dict(), f, indent=2)


def colors_in_order(snapshot: PrintSnapshot, ids: Sequence[str]) -> List[Color]:
    """Colors of a snapshot for the given ids, skipping unknown ids."""
    by_id = {c.id: c for c in snapshot.colors}
    return [by_id[i] for i in ids if i in by_id]
