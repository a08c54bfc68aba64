"""Command-line interface for SlotForge."""

import json
import logging
import sys
from pathlib import Path

import click
import rich.traceback
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .analysis.dedup import ColorDeduplicator
from .analysis.merge import MergeTransform
from .core.service import OptimizationService
from .output.instructions import SwapInstructionGenerator
from .snapshot import load_snapshot, save_snapshot
from .utils.config import ConfigManager
from .utils.logging import setup_logging

console = Console()
rich.traceback.install(console=console)

logger = logging.getLogger(__name__)


def resolve_output(manager: ConfigManager, output) -> Path:
    """Place relative output paths under the configured output directory."""
    return Path(manager.get("output.directory", ".")) / output


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress output")
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, config):
    """SlotForge: filament slot planning for multi-color prints."""
    ctx.ensure_object(dict)

    log_level = logging.INFO
    if quiet:
        log_level = logging.ERROR
    elif verbose:
        log_level = logging.DEBUG
    setup_logging(level=log_level)

    ctx.obj["config_manager"] = ConfigManager(config)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


@cli.command()
@click.argument("snapshot_file", type=click.Path(exists=True))
@click.option(
    "--strategy",
    type=click.Choice(["legacy", "groups", "intervals"]),
    help="Greedy assignment strategy",
)
@click.option(
    "--algorithm",
    type=click.Choice(["greedy", "simulated_annealing"]),
    help="Optimization algorithm",
)
@click.option("--units", type=int, help="Number of filament units (1-16)")
@click.option(
    "--type", "printer_type", type=click.Choice(["ams", "toolhead"]), help="Slot system type"
)
@click.option("--iterations", type=int, help="Annealing iterations")
@click.option("--seed", type=int, help="Random seed for annealing")
@click.option(
    "--profile",
    type=click.Choice(["fast", "balanced", "thorough"]),
    help="Apply a predefined configuration profile",
)
@click.option("--output", "-o", type=click.Path(), help="Write the result to this file")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json", "csv"]),
    help="Output format (defaults to output.format from the configuration)",
)
@click.pass_context
def optimize(
    ctx, snapshot_file, strategy, algorithm, units, printer_type, iterations, seed, profile,
    output, output_format,
):
    """Assign the colors of a print to filament slots."""
    try:
        manager: ConfigManager = ctx.obj["config_manager"]
        if profile:
            manager.apply_profile(profile)

        overrides = {
            "system.strategy": strategy,
            "system.algorithm": algorithm,
            "system.unit_count": units,
            "system.type": printer_type,
            "annealing.iterations": iterations,
            "annealing.seed": seed,
        }
        for key, value in overrides.items():
            if value is not None:
                manager.set(key, value)

        is_valid, errors = manager.validate_config()
        if not is_valid:
            raise click.UsageError("; ".join(errors))

        output_format = output_format or manager.get("output.format", "text")
        if output:
            output = resolve_output(manager, output)
            output.parent.mkdir(parents=True, exist_ok=True)

        snapshot = load_snapshot(snapshot_file)
        service = OptimizationService(manager.to_model())
        result = service.optimize(snapshot, annealing=manager.get_annealing_config())

        generator = SwapInstructionGenerator()
        if output_format == "json":
            text = json.dumps(result.to_dict(), indent=2)
        elif output_format == "csv":
            if not output:
                raise click.UsageError("--output is required for csv format")
            generator.export_instructions_to_csv(
                generator.generate_swap_instructions(result, snapshot), output
            )
            text = None
        else:
            text = generator.generate_report(result, snapshot)

        if text is not None:
            if output:
                output.write_text(text + "\n")
            else:
                click.echo(text)

        if output and not ctx.obj["quiet"]:
            console.print(
                Panel(
                    f"{result.total_colors} colors in {result.required_slots}/"
                    f"{result.total_slots} slots, {result.swap_count} manual swaps\n"
                    f"Written to {output}",
                    title="Optimization complete",
                )
            )
        logger.info(f"Optimized {snapshot_file}")

    except click.UsageError:
        raise
    except Exception as e:
        logger.error(f"Error during optimization: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("snapshot_file", type=click.Path(exists=True))
@click.option("--units", type=int, help="Number of filament units (1-16)")
@click.option(
    "--type", "printer_type", type=click.Choice(["ams", "toolhead"]), help="Slot system type"
)
@click.pass_context
def validate(ctx, snapshot_file, units, printer_type):
    """Check that no layer needs more colors than there are slots."""
    try:
        manager: ConfigManager = ctx.obj["config_manager"]
        if units is not None:
            manager.set("system.unit_count", units)
        if printer_type is not None:
            manager.set("system.type", printer_type)

        snapshot = load_snapshot(snapshot_file)
        config = manager.to_model()
        result = OptimizationService(config).validate(snapshot)

        if result.is_valid:
            click.echo(
                f"All {snapshot.total_layers} layers fit in {config.system.total_slots} slots."
            )
            return

        table = Table(title="Impossible Layer Ranges")
        table.add_column("Layers", style="cyan")
        table.add_column("Colors Needed", justify="right")
        table.add_column("Slots", justify="right")
        for violation in result.violations:
            table.add_row(
                f"{violation.start_layer}-{violation.end_layer}",
                str(violation.max_colors_required),
                str(violation.available_slots),
            )
        console.print(table)

        if result.suggestions:
            suggestions = Table(title="Suggestions")
            suggestions.add_column("Kind")
            suggestions.add_column("Instruction")
            suggestions.add_column("Impact")
            for suggestion in result.suggestions:
                suggestions.add_row(
                    suggestion.kind, suggestion.instruction, suggestion.impact.visual_impact
                )
            console.print(suggestions)

        click.echo(
            f"\n{result.total_impossible_layers} layers need more colors than available slots."
        )
        sys.exit(1)

    except Exception as e:
        logger.error(f"Error during validation: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("snapshot_file", type=click.Path(exists=True))
@click.option("--target", "-t", required=True, help="Color id that absorbs the others")
@click.option("--source", "-s", "sources", multiple=True, required=True, help="Color id to merge")
@click.option("--output", "-o", type=click.Path(), required=True, help="Output snapshot file")
@click.option("--dry-run", is_flag=True, help="Only show what would change")
@click.pass_context
def merge(ctx, snapshot_file, target, sources, output, dry_run):
    """Merge source colors into a target color."""
    try:
        output = resolve_output(ctx.obj["config_manager"], output)
        snapshot = load_snapshot(snapshot_file)
        transform = MergeTransform()

        if dry_run:
            preview = transform.preview(snapshot, target, list(sources))
            if preview is None:
                click.echo("Error: invalid merge request", err=True)
                sys.exit(1)
            click.echo(json.dumps(preview.to_dict(), indent=2))
            return

        result = transform.merge(snapshot, target, list(sources))
        if result is None:
            click.echo("Error: invalid merge request", err=True)
            sys.exit(1)

        save_snapshot(result.merged_snapshot, output)
        click.echo(
            f"Merged {', '.join(sources)} into {target}: "
            f"{len(result.merged_snapshot.colors)} colors remain. Saved to {output}"
        )

    except Exception as e:
        logger.error(f"Error during merge: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("snapshot_file", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), required=True, help="Output snapshot file")
@click.pass_context
def dedupe(ctx, snapshot_file, output):
    """Fold colors with identical hex codes into one tool."""
    try:
        output = resolve_output(ctx.obj["config_manager"], output)
        snapshot = load_snapshot(snapshot_file)
        result = ColorDeduplicator().deduplicate(snapshot)
        save_snapshot(result.snapshot, output)

        if not result.changed:
            click.echo(f"No duplicate colors found. Saved to {output}")
            return

        for group in result.duplicates_found:
            click.echo(
                f"{group.hex_code}: {', '.join(group.original_tools)} -> {group.assigned_to}"
            )
        click.echo(f"Freed {len(result.freed_slots)} slots. Saved to {output}")

    except Exception as e:
        logger.error(f"Error during deduplication: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="./slotforge_config.yaml",
    help="Output configuration file path",
)
@click.option(
    "--profile",
    type=click.Choice(["fast", "balanced", "thorough"]),
    help="Start from a predefined profile",
)
def init_config(output, profile):
    """Initialize a default configuration file."""
    try:
        manager = ConfigManager()
        if profile:
            manager.apply_profile(profile)
        manager.save_config(output)
        click.echo(f"Configuration created at: {output}")
        logger.info(f"Initialized config file at {output} (profile={profile})")

    except Exception as e:
        logger.error(f"Error initializing config: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
def version():
    """Display SlotForge version."""
    click.echo(f"SlotForge Version: {__version__}")


def main():
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
