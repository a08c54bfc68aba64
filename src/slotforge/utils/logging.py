"""Logging configuration for SlotForge."""

import logging
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

import colorlog


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    enable_colors: bool = True,
    format_string: Optional[str] = None,
) -> None:
    """Setup logging configuration for SlotForge.

    Args:
        level: Logging level
        log_file: Optional log file path
        enable_colors: Whether to use colored output
        format_string: Custom format string
    """
    # Clear any existing handlers
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    use_colors = enable_colors and sys.stderr.isatty()

    if format_string is None:
        if use_colors:
            format_string = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s: %(message)s"
        else:
            format_string = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if use_colors:
        formatter = colorlog.ColoredFormatter(
            format_string,
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    else:
        formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler.setFormatter(formatter)

    handlers: List[logging.Handler] = [console_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Always debug level for file

        file_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    logging.getLogger("slotforge").setLevel(level)


class ProgressLogger:
    """Logger for tracking optimization progress."""

    def __init__(self, name: str = "slotforge.progress"):
        """Initialize progress logger.

        Args:
            name: Logger name
        """
        self.logger = logging.getLogger(name)

    def log_annealing_step(
        self,
        step: int,
        total_steps: int,
        current_cost: float,
        best_cost: float,
        temperature: float,
        frequency: int = 1000,
    ) -> None:
        """Log an annealing iteration.

        Args:
            step: Current iteration
            total_steps: Total number of iterations
            current_cost: Cost of the accepted assignment
            best_cost: Lowest cost seen so far
            temperature: Current temperature
            frequency: Logging frequency (every N steps)
        """
        if total_steps <= 0:
            return
        if step % frequency == 0 or step == total_steps - 1:
            progress_pct = (step / total_steps) * 100
            self.logger.debug(
                f"Step {step:5d}/{total_steps} ({progress_pct:5.1f}%) - "
                f"cost: {current_cost:.0f}, best: {best_cost:.0f}, T: {temperature:.2f}"
            )

    def log_slot_assignments(self, assignments: Dict[str, List[str]]) -> None:
        """Log the colors placed in each slot.

        Args:
            assignments: Mapping of slot id to color ids
        """
        self.logger.info(f"Assigned colors to {len(assignments)} slots:")
        for slot_id, color_ids in assignments.items():
            status = "permanent" if len(color_ids) == 1 else "shared"
            self.logger.info(f"  {slot_id}: {', '.join(color_ids)} ({status})")


class PerformanceLogger:
    """Logger for tracking performance metrics."""

    def __init__(self, name: str = "slotforge.performance"):
        """Initialize performance logger."""
        self.logger = logging.getLogger(name)
        self.timers: Dict[str, float] = {}

    def start_timer(self, name: str) -> None:
        """Start a performance timer.

        Args:
            name: Timer name
        """
        self.timers[name] = time.perf_counter()

    def end_timer(self, name: str) -> float:
        """End a performance timer and log result.

        Args:
            name: Timer name

        Returns:
            Elapsed time in seconds
        """
        if name not in self.timers:
            self.logger.warning(f"Timer '{name}' was not started")
            return 0.0

        elapsed = time.perf_counter() - self.timers.pop(name)
        self.logger.debug(f"{name}: {elapsed:.3f}s")
        return elapsed


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
