"""Slot assignment engine for SlotForge."""

from .annealing import AnnealingConfig, AnnealingOptimizer
from .configuration import ManualSwap, SlotConfiguration
from .overlap import OverlapAnalyzer, SlotOptimizationResult, SwapDetail
from .service import OptimizationResult, OptimizationService

__all__ = [
    "OverlapAnalyzer",
    "SlotOptimizationResult",
    "SwapDetail",
    "AnnealingOptimizer",
    "AnnealingConfig",
    "SlotConfiguration",
    "ManualSwap",
    "OptimizationService",
    "OptimizationResult",
]
