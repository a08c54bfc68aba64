"""Swap instructions and report export."""

from .instructions import SwapInstruction, SwapInstructionGenerator

__all__ = [
    "SwapInstructionGenerator",
    "SwapInstruction",
]
