"""Color model: a filament usage over a range of print layers."""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from ..errors import ColorValidationError
from ..utils.color import is_valid_hex


@dataclass(frozen=True)
class Color:
    """A filament color and the layers it prints on.

    Colors are immutable. Merging or re-parsing produces a new instance.
    """

    id: str
    first_layer: int
    last_layer: int
    name: Optional[str] = None
    hex: Optional[str] = None
    layers_used: FrozenSet[int] = field(default_factory=frozenset)
    partial_layers: FrozenSet[int] = field(default_factory=frozenset)
    total_layers: int = 0

    def __post_init__(self):
        """Normalize layer sets and validate."""
        object.__setattr__(self, "layers_used", frozenset(self.layers_used))
        object.__setattr__(self, "partial_layers", frozenset(self.partial_layers))

        if not self.id:
            raise ColorValidationError("Color ID is required")
        if self.first_layer < 0:
            raise ColorValidationError(
                f"Color {self.id}: first layer must be non-negative"
            )
        if self.last_layer < self.first_layer:
            raise ColorValidationError(
                f"Color {self.id}: last layer must be greater than or equal to first layer"
            )
        if self.hex is not None and not is_valid_hex(self.hex):
            raise ColorValidationError(
                f"Color {self.id}: invalid hex color format {self.hex!r}"
            )

    @property
    def layer_count(self) -> int:
        """Number of layers using this color."""
        return len(self.layers_used)

    @property
    def partial_layer_count(self) -> int:
        return len(self.partial_layers)

    @property
    def usage_percentage(self) -> float:
        """Share of the print's layers that use this color, in percent."""
        if self.total_layers <= 0:
            return 0.0
        return len(self.layers_used) / self.total_layers * 100

    @property
    def display_name(self) -> str:
        return self.name or self.hex or self.id

    def is_used_in_layer(self, layer: int) -> bool:
        return layer in self.layers_used

    def is_partial_in_layer(self, layer: int) -> bool:
        return layer in self.partial_layers

    def is_primary_in_layer(self, layer: int) -> bool:
        return layer in self.layers_used and layer not in self.partial_layers

    def layer_usage(self, layer: int) -> str:
        """Usage kind at a layer: ``primary``, ``partial`` or ``none``."""
        if layer not in self.layers_used:
            return "none"
        return "partial" if layer in self.partial_layers else "primary"

    def overlaps_with(self, other: "Color") -> bool:
        """True if both colors print on at least one common layer."""
        return not self.layers_used.isdisjoint(other.layers_used)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "hex": self.hex,
            "first_layer": self.first_layer,
            "last_layer": self.last_layer,
            "layer_count": self.layer_count,
            "partial_layer_count": self.partial_layer_count,
            "usage_percentage": self.usage_percentage,
            "layers_used": sorted(self.layers_used),
            "partial_layers": sorted(self.partial_layers),
            "total_layers": self.total_layers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], total_layers: Optional[int] = None) -> "Color":
        """Create Color from a parser record.

        Accepts both ``hex`` and ``hex_color`` keys. When ``layers_used`` is
        absent the full ``first_layer..last_layer`` range is assumed.
        """
        try:
            first_layer = int(data["first_layer"])
            last_layer = int(data["last_layer"])
            color_id = str(data["id"])
        except KeyError as e:
            raise ColorValidationError(f"Color record is missing field {e}") from e

        layers = data.get("layers_used")
        if layers is None:
            layers = range(first_layer, last_layer + 1)

        return cls(
            id=color_id,
            name=data.get("name"),
            hex=data.get("hex", data.get("hex_color")),
            first_layer=first_layer,
            last_layer=last_layer,
            layers_used=frozenset(int(layer) for layer in layers),
            partial_layers=frozenset(int(layer) for layer in data.get("partial_layers", ())),
            total_layers=int(
                total_layers if total_layers is not None else data.get("total_layers", 0)
            ),
        )

    @classmethod
    def from_range(
        cls,
        color_id: str,
        first_layer: int,
        last_layer: int,
        total_layers: int = 0,
        **kwargs: Any,
    ) -> "Color":
        """Create a color that prints on every layer of an inclusive range."""
        return cls(
            id=color_id,
            first_layer=first_layer,
            last_layer=last_layer,
            layers_used=frozenset(range(first_layer, last_layer + 1)),
            total_layers=total_layers,
            **kwargs,
        )


def layers_of(colors: Iterable[Color]) -> FrozenSet[int]:
    """Union of the layers used by several colors."""
    result: set = set()
    for color in colors:
        result |= color.layers_used
    return frozenset(result)
