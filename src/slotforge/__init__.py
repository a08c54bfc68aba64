"""SlotForge: filament slot planning for multi-color 3D prints."""

__version__ = "0.1.0"
__author__ = "SlotForge Team"

from .analysis.constraints import ConstraintAnalyzer
from .analysis.merge import MergeTransform
from .core.configuration import SlotConfiguration
from .core.service import OptimizationService
from .materials.color import Color
from .snapshot import PrintSnapshot, load_snapshot

__all__ = [
    "Color",
    "PrintSnapshot",
    "load_snapshot",
    "SlotConfiguration",
    "OptimizationService",
    "ConstraintAnalyzer",
    "MergeTransform",
]
