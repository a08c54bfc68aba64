"""Simulated annealing alternative to the greedy slot assignment strategies."""

import math
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import ColorValidationError, ConfigurationError
from ..materials.color import Color
from ..utils.logging import ProgressLogger, get_logger
from .overlap import (
    OverlapAnalyzer,
    SlotOptimizationResult,
    one_color_per_slot,
    swap_details_for_slot,
)

logger = get_logger(__name__)

# color id -> 1-based slot number
Assignment = Dict[str, int]


@dataclass
class AnnealingConfig:
    """Configuration for simulated annealing."""

    initial_temperature: float = 10000.0
    cooling_rate: float = 0.995
    iterations: int = 10000
    min_temperature: float = 0.1
    move_probability: float = 0.7
    max_move_attempts: int = 10
    seed: Optional[int] = None
    deadline_seconds: Optional[float] = None
    check_interval: int = 100


class AnnealingOptimizer:
    """Search slot assignments by simulated annealing.

    The cost of an assignment is the total number of swaps, computed with
    the same per-slot rule as :class:`OverlapAnalyzer`, so results from both
    are directly comparable.
    """

    def __init__(
        self,
        max_slots: int,
        config: Optional[AnnealingConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize optimizer.

        Args:
            max_slots: Number of slots colors may be assigned to
            config: Annealing parameters
            rng: Random source; defaults to one seeded from ``config.seed``
        """
        if max_slots < 1:
            raise ConfigurationError(f"Invalid max_slots: {max_slots}. Must be at least 1.")

        self.max_slots = max_slots
        self.config = config or AnnealingConfig()
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.progress = ProgressLogger()

    def optimize(
        self,
        colors: Sequence[Color],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> SlotOptimizationResult:
        """Find a low-cost assignment of colors to slots.

        Args:
            colors: Colors to assign; ids must be unique
            should_stop: Optional cancellation hook polled every
                ``config.check_interval`` iterations

        Returns:
            Best assignment found
        """
        colors = list(colors)
        if len(colors) <= self.max_slots:
            return one_color_per_slot(colors)

        ids = [c.id for c in colors]
        if len(set(ids)) != len(ids):
            raise ColorValidationError("Color ids must be unique for annealing")

        cfg = self.config
        current = self._initial_assignment(colors)
        current_cost = self._cost(colors, current)
        best = dict(current)
        best_cost = current_cost

        temperature = cfg.initial_temperature
        started = time.monotonic()
        iterations_run = 0
        stop_reason = "completed"

        for step in range(cfg.iterations):
            if step and cfg.check_interval and step % cfg.check_interval == 0:
                if should_stop is not None and should_stop():
                    stop_reason = "cancelled"
                    break
                if (
                    cfg.deadline_seconds is not None
                    and time.monotonic() - started > cfg.deadline_seconds
                ):
                    stop_reason = "deadline"
                    break

            candidate = self._neighbor(colors, current)
            candidate_cost = self._cost(colors, candidate)

            if candidate_cost < current_cost or self.rng.random() < math.exp(
                (current_cost - candidate_cost) / temperature
            ):
                current = candidate
                current_cost = candidate_cost

            if current_cost < best_cost:
                best = dict(current)
                best_cost = current_cost

            temperature = max(temperature * cfg.cooling_rate, cfg.min_temperature)
            iterations_run = step + 1
            self.progress.log_annealing_step(
                step, cfg.iterations, current_cost, best_cost, temperature
            )

        if stop_reason != "completed":
            logger.info(f"Annealing stopped early ({stop_reason}) after {iterations_run} iterations")

        result = self._format_result(colors, best)
        result.metadata.update(
            {
                "iterations_run": iterations_run,
                "stop_reason": stop_reason,
                "final_temperature": temperature,
            }
        )
        return result

    def _initial_assignment(self, colors: Sequence[Color]) -> Assignment:
        """Round-robin assignment over slots 1..max_slots."""
        return {color.id: (index % self.max_slots) + 1 for index, color in enumerate(colors)}

    def _cost(self, colors: Sequence[Color], assignment: Assignment) -> int:
        """Total swaps across all slots."""
        return sum(
            OverlapAnalyzer.calculate_swaps_for_group(group)
            for group in self._group_by_slot(colors, assignment).values()
        )

    def _neighbor(self, colors: Sequence[Color], assignment: Assignment) -> Assignment:
        """Move one color to another slot, or exchange the slots of two colors."""
        neighbor = dict(assignment)
        if not colors:
            return neighbor

        if self.rng.random() < self.config.move_probability:
            if self.max_slots == 1:
                return neighbor
            color_id = colors[self.rng.randrange(len(colors))].id
            new_slot = self.rng.randint(1, self.max_slots)
            attempts = 0
            while new_slot == neighbor[color_id] and attempts < self.config.max_move_attempts:
                new_slot = self.rng.randint(1, self.max_slots)
                attempts += 1
            neighbor[color_id] = new_slot
        else:
            if len(colors) < 2:
                return neighbor
            first = self.rng.randrange(len(colors))
            second = self.rng.randrange(len(colors) - 1)
            if second >= first:
                second += 1
            id1, id2 = colors[first].id, colors[second].id
            neighbor[id1], neighbor[id2] = neighbor[id2], neighbor[id1]

        return neighbor

    def _group_by_slot(
        self, colors: Sequence[Color], assignment: Assignment
    ) -> Dict[int, List[Color]]:
        slots: Dict[int, List[Color]] = {n: [] for n in range(1, self.max_slots + 1)}
        for color in colors:
            slots[assignment[color.id]].append(color)
        return slots

    def _format_result(
        self, colors: Sequence[Color], assignment: Assignment
    ) -> SlotOptimizationResult:
        assignments = {
            slot: members
            for slot, members in self._group_by_slot(colors, assignment).items()
            if members
        }
        swap_details = []
        for slot_number, members in assignments.items():
            swap_details.extend(swap_details_for_slot(slot_number, members))

        return SlotOptimizationResult(
            assignments=assignments,
            total_swaps=len(swap_details),
            swap_details=swap_details,
        )
