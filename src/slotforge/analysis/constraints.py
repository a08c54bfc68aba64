"""Layer feasibility checks and color consolidation suggestions.

A layer is impossible when it needs more simultaneous colors than the
printer has slots; no assignment strategy can fix that, only reducing the
number of colors can. Consecutive impossible layers are reported as one
violation range, and each range carries suggestions for merging visually
similar colors or dropping rarely used ones.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..materials.color import Color
from ..snapshot import ColorRange, PrintSnapshot
from ..utils.color import ColorSimilarity, color_similarity, rgb_distance_matrix
from ..utils.logging import get_logger

logger = get_logger(__name__)

VISUAL_IMPACT_ORDER = {"minimal": 0, "low": 1, "medium": 2, "high": 3}


@dataclass(frozen=True)
class LayerViolation:
    """A single layer that needs more colors than there are slots."""

    layer: int
    required_colors: int
    available_slots: int
    colors_in_layer: Tuple[str, ...]
    violation_type: str = "impossible"
    severity: str = "critical"


@dataclass(frozen=True)
class SuggestionImpact:
    visual_impact: str
    usage_percentage: float
    layers_affected: Tuple[int, ...]


@dataclass(frozen=True)
class MergeSuggestion:
    """A way to reduce the number of colors in a violation range.

    ``kind`` is ``merge`` (fold ``secondary_color`` into ``primary_color``)
    or ``remove`` (drop ``primary_color`` from the range).
    """

    kind: str
    primary_color: str
    reason: str
    impact: SuggestionImpact
    instruction: str
    secondary_color: Optional[str] = None
    similarity: Optional[ColorSimilarity] = None

    @property
    def key(self) -> Tuple[str, FrozenSet[str]]:
        """Identity used to merge repeated suggestions across ranges."""
        ids = {self.primary_color}
        if self.secondary_color is not None:
            ids.add(self.secondary_color)
        return self.kind, frozenset(ids)


@dataclass
class ConstraintViolation:
    """Contiguous range of impossible layers."""

    start_layer: int
    end_layer: int
    max_colors_required: int
    available_slots: int
    affected_layers: List[LayerViolation] = field(default_factory=list)
    suggestions: List[MergeSuggestion] = field(default_factory=list)

    @property
    def layers(self) -> List[int]:
        return [v.layer for v in self.affected_layers]


@dataclass(frozen=True)
class ConstraintSummary:
    impossible_layer_count: int
    max_colors_required: int
    available_slots: int
    suggestions_count: int


@dataclass
class ConstraintValidationResult:
    """Outcome of a feasibility check.

    ``suggestions`` is the deduplicated list across all ranges.
    """

    is_valid: bool
    has_violations: bool
    violations: List[ConstraintViolation]
    total_impossible_layers: int
    worst_violation: Optional[ConstraintViolation]
    summary: ConstraintSummary
    suggestions: List[MergeSuggestion]


@dataclass
class _RangeUsage:
    color_id: str
    percentage: float
    layers: List[int]


class ConstraintAnalyzer:
    """Check a layer census against a slot count."""

    def __init__(self, max_rgb_distance: float = 150.0, low_usage_percentage: float = 5.0):
        """Initialize analyzer.

        Args:
            max_rgb_distance: Largest RGB distance for a merge suggestion
            low_usage_percentage: Usage share in a range below which a color
                is suggested for removal
        """
        self.max_rgb_distance = max_rgb_distance
        self.low_usage_percentage = low_usage_percentage

    def validate(
        self,
        census: Mapping[int, Sequence[str]],
        available_slots: int,
        colors: Optional[Sequence[Color]] = None,
        usage_ranges: Optional[Sequence[ColorRange]] = None,
        total_layers: Optional[int] = None,
    ) -> ConstraintValidationResult:
        """Classify layers and group impossible ones into ranges.

        Args:
            census: Layer number to the color ids active on it
            available_slots: Slots the printer offers
            colors: Color records, needed for similarity-based suggestions
            usage_ranges: Fallback source for layers absent from the census
            total_layers: Number of layers to consider with ``usage_ranges``

        Returns:
            Validation result
        """
        if available_slots < 1:
            raise ConfigurationError(
                f"Available slot count must be at least 1, got {available_slots}"
            )

        layer_colors = self._layer_colors(census, usage_ranges, total_layers)
        violations = [
            LayerViolation(
                layer=layer,
                required_colors=len(ids),
                available_slots=available_slots,
                colors_in_layer=ids,
            )
            for layer, ids in sorted(layer_colors.items())
            if len(ids) > available_slots
        ]

        color_lookup = {c.id: c for c in colors or ()}
        ranges = self._group_into_ranges(violations, available_slots)
        for violation_range in ranges:
            violation_range.suggestions = self._generate_suggestions(
                violation_range, color_lookup
            )

        suggestions = self._deduplicate(s for r in ranges for s in r.suggestions)

        worst = None
        for violation_range in ranges:
            if worst is None or violation_range.max_colors_required > worst.max_colors_required:
                worst = violation_range

        if violations:
            logger.info(
                f"{len(violations)} layers need more than {available_slots} colors "
                f"across {len(ranges)} ranges"
            )

        return ConstraintValidationResult(
            is_valid=not violations,
            has_violations=bool(violations),
            violations=ranges,
            total_impossible_layers=len(violations),
            worst_violation=worst,
            summary=ConstraintSummary(
                impossible_layer_count=len(violations),
                max_colors_required=max((v.required_colors for v in violations), default=0),
                available_slots=available_slots,
                suggestions_count=len(suggestions),
            ),
            suggestions=suggestions,
        )

    def validate_snapshot(
        self, snapshot: PrintSnapshot, available_slots: int
    ) -> ConstraintValidationResult:
        """Validate a print snapshot."""
        return self.validate(
            snapshot.layer_color_map,
            available_slots,
            colors=snapshot.colors,
            usage_ranges=snapshot.color_usage_ranges,
            total_layers=snapshot.total_layers,
        )

    @staticmethod
    def _layer_colors(
        census: Mapping[int, Sequence[str]],
        usage_ranges: Optional[Sequence[ColorRange]],
        total_layers: Optional[int],
    ) -> Dict[int, Tuple[str, ...]]:
        """Distinct active colors per layer, in first-seen order."""
        layer_colors = {
            layer: tuple(dict.fromkeys(str(i) for i in ids)) for layer, ids in census.items()
        }

        if usage_ranges and total_layers:
            for layer in range(total_layers):
                if layer in layer_colors:
                    continue
                active = [
                    r.color_id for r in usage_ranges if r.start_layer <= layer <= r.end_layer
                ]
                if active:
                    layer_colors[layer] = tuple(dict.fromkeys(active))

        return layer_colors

    @staticmethod
    def _group_into_ranges(
        violations: List[LayerViolation], available_slots: int
    ) -> List[ConstraintViolation]:
        ranges: List[ConstraintViolation] = []
        current: Optional[ConstraintViolation] = None

        for violation in violations:
            if current is None or violation.layer > current.end_layer + 1:
                current = ConstraintViolation(
                    start_layer=violation.layer,
                    end_layer=violation.layer,
                    max_colors_required=violation.required_colors,
                    available_slots=available_slots,
                    affected_layers=[violation],
                )
                ranges.append(current)
            else:
                current.end_layer = violation.layer
                current.max_colors_required = max(
                    current.max_colors_required, violation.required_colors
                )
                current.affected_layers.append(violation)

        return ranges

    def _generate_suggestions(
        self, violation_range: ConstraintViolation, color_lookup: Mapping[str, Color]
    ) -> List[MergeSuggestion]:
        usage = self._usage_in_range(violation_range)
        suggestions: List[MergeSuggestion] = []

        for entry in sorted(usage.values(), key=lambda u: u.percentage):
            if entry.percentage >= self.low_usage_percentage:
                continue
            color = color_lookup.get(entry.color_id)
            label = color.display_name if color else entry.color_id
            suggestions.append(
                MergeSuggestion(
                    kind="remove",
                    primary_color=entry.color_id,
                    reason=f"Minimal usage ({entry.percentage:.1f}%) in problematic layers",
                    impact=SuggestionImpact(
                        visual_impact="minimal" if entry.percentage < 2 else "low",
                        usage_percentage=entry.percentage,
                        layers_affected=tuple(entry.layers),
                    ),
                    instruction=(
                        f'Remove or replace "{label}" from layers '
                        f"{violation_range.start_layer}-{violation_range.end_layer} in your slicer"
                    ),
                )
            )

        range_colors = [color_lookup[cid] for cid in usage if cid in color_lookup]
        for color1, color2, similarity in self._similar_pairs(range_colors):
            usage1, usage2 = usage[color1.id], usage[color2.id]
            if usage1.percentage < usage2.percentage:
                primary, secondary = color2, color1
            else:
                primary, secondary = color1, color2

            suggestions.append(
                MergeSuggestion(
                    kind="merge",
                    primary_color=primary.id,
                    secondary_color=secondary.id,
                    reason=f"Colors are visually similar ({similarity.rgb_distance:.0f} RGB distance)",
                    impact=SuggestionImpact(
                        visual_impact="minimal" if similarity.visually_similar else "low",
                        usage_percentage=min(usage1.percentage, usage2.percentage),
                        layers_affected=tuple(violation_range.layers),
                    ),
                    instruction=(
                        f'Replace "{secondary.display_name}" with '
                        f'"{primary.display_name}" in your slicer'
                    ),
                    similarity=similarity,
                )
            )

        suggestions.sort(key=lambda s: VISUAL_IMPACT_ORDER[s.impact.visual_impact])
        return suggestions

    @staticmethod
    def _usage_in_range(violation_range: ConstraintViolation) -> Dict[str, _RangeUsage]:
        """Per-color share of the range's layers, in first-seen order."""
        layers_by_color: Dict[str, List[int]] = {}
        for violation in violation_range.affected_layers:
            for color_id in violation.colors_in_layer:
                layers_by_color.setdefault(color_id, []).append(violation.layer)

        total = violation_range.end_layer - violation_range.start_layer + 1
        return {
            color_id: _RangeUsage(
                color_id=color_id, percentage=len(layers) / total * 100, layers=layers
            )
            for color_id, layers in layers_by_color.items()
        }

    def _similar_pairs(
        self, colors: Sequence[Color]
    ) -> List[Tuple[Color, Color, ColorSimilarity]]:
        """Pairs of hex colors close enough to merge, closest first."""
        with_hex = [c for c in colors if c.hex]
        if len(with_hex) < 2:
            return []

        distances = rgb_distance_matrix([c.hex for c in with_hex])
        pairs = []
        for i, color1 in enumerate(with_hex):
            for j in range(i + 1, len(with_hex)):
                if distances[i, j] >= self.max_rgb_distance:
                    continue
                color2 = with_hex[j]
                similarity = color_similarity(color1.hex, color2.hex)
                if similarity.visually_similar:
                    pairs.append((color1, color2, similarity))

        pairs.sort(key=lambda p: p[2].rgb_distance)
        return pairs

    @staticmethod
    def _deduplicate(suggestions) -> List[MergeSuggestion]:
        """Fold repeated suggestions together, unioning their layers."""
        merged: Dict[Tuple[str, FrozenSet[str]], MergeSuggestion] = {}
        for suggestion in suggestions:
            existing = merged.get(suggestion.key)
            if existing is None:
                merged[suggestion.key] = suggestion
                continue
            layers = sorted(
                set(existing.impact.layers_affected) | set(suggestion.impact.layers_affected)
            )
            merged[suggestion.key] = replace(
                existing, impact=replace(existing.impact, layers_affected=tuple(layers))
            )
        return list(merged.values())
