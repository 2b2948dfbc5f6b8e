"""
Command-line interface for motionrig.
"""

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn
from rich.table import Table

from motionrig import __version__
from motionrig.config.settings import LoggingConfig, Settings
from motionrig.data.recording import NumpyEncoder, RecordingError, load_recording
from motionrig.errors import ConfigError
from motionrig.pipeline.engine import MotionRigEngine
from motionrig.rig.capability import PLAN_TIERS
from motionrig.rig.scene import build_demo_humanoid

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(config: Optional[LoggingConfig] = None):
    """Configure logging for the command-line tools."""
    config = config or LoggingConfig()
    formatter = logging.Formatter(fmt=config.format, datefmt=config.datefmt)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.set_name("motionrig-console")

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if handler.get_name() == "motionrig-console":
            root_logger.removeHandler(handler)
    root_logger.setLevel(config.level)
    root_logger.addHandler(console_handler)

    logging.getLogger("motionrig").setLevel(config.level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motionrig",
        description="Landmark-driven avatar retargeting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a landmark recording onto the demo avatar
  motionrig replay session.json --plan spartan

  # Save the published signal bundles
  motionrig replay session.json --output signals.json

  # Show plan tiers
  motionrig plans

  # Write the default configuration
  motionrig write-config motionrig.yaml
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )

    subparsers = parser.add_subparsers(dest="command")

    replay = subparsers.add_parser("replay", help="Replay a landmark recording")
    replay.add_argument("recording", type=Path, help="Landmark recording (JSON)")
    replay.add_argument("--plan", help="Subscription plan tier (default from config)")
    replay.add_argument("--config", type=Path, help="Configuration file (YAML)")
    replay.add_argument("--fps", type=float, help="Cap the tick rate below the plan frame rate")
    replay.add_argument(
        "--realtime",
        action="store_true",
        help="Gate ticks by the plan frame rate using recording timestamps",
    )
    replay.add_argument("--output", type=Path, help="Write published signal bundles to JSON")

    subparsers.add_parser("plans", help="List subscription plan tiers")

    write_config = subparsers.add_parser("write-config", help="Write the default configuration")
    write_config.add_argument("path", type=Path, help="Output YAML path")

    return parser


def show_plans():
    table = Table(title="Plan tiers")
    table.add_column("Plan", style="cyan")
    table.add_column("Name")
    table.add_column("Bones", justify="right")
    table.add_column("Morphs", justify="right")
    table.add_column("Responsiveness", justify="right")
    table.add_column("FPS", justify="right")
    table.add_column("Features")

    for tier in sorted(PLAN_TIERS.values(), key=lambda t: t.priority_level):
        budget = tier.budget
        features = [name for name, enabled in vars(budget.features).items() if enabled]
        table.add_row(
            tier.id,
            tier.display_name,
            str(budget.max_bones),
            str(budget.max_morph_targets),
            f"{budget.animation_responsiveness:.1f}",
            f"{budget.max_frame_rate:g}",
            ", ".join(features),
        )

    console.print(table)


def replay(args, settings: Settings) -> int:
    try:
        recording = load_recording(args.recording)
    except RecordingError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    engine = MotionRigEngine(settings)
    binding = engine.attach_scene(build_demo_humanoid(), asset_id="demo-avatar")
    console.print(
        f"[bold green]Replaying[/bold green] {args.recording} "
        f"({len(recording)} frames, plan '{settings.plan}')"
    )

    channels = Table(title="Bound channels")
    channels.add_column("Channel", style="cyan")
    channels.add_column("Kind")
    channels.add_column("Target")
    for name, bound in binding.bones.items():
        channels.add_row(name, "bone", bound.bone.name)
    for name, bound in binding.morphs.items():
        channels.add_row(name, "morph", f"{bound.mesh.name}[{bound.index}]")
    console.print(channels)

    bundles = []
    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Retargeting", total=len(recording))
        for frame in recording:
            engine.submit(frame)
            if args.realtime:
                ran = engine.scheduler.on_frame(frame.timestamp * 1000.0)
                bundle = engine.latest if ran else None
            else:
                bundle = engine.tick()
            if bundle is not None and (not bundles or bundles[-1] is not bundle):
                bundles.append(bundle)
            progress.advance(task)

    calibration = engine.calibration
    dominant = Counter(bundle.expression.dominant for bundle in bundles)

    table = Table(title="Replay summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Frames", str(len(recording)))
    table.add_row("Published", str(len(bundles)))
    if calibration is not None:
        table.add_row("Calibration", f"{calibration.frames_collected}/{calibration.required_frames}")
    table.add_row("Bones bound", str(len(binding.bones)))
    table.add_row("Morphs bound", str(len(binding.morphs)))
    table.add_row("Unbound channels", str(len(binding.unbound)))
    for name, count in dominant.most_common(5):
        table.add_row(f"Dominant: {name}", str(count))
    console.print(table)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w") as f:
            json.dump([bundle.to_dict() for bundle in bundles], f, indent=2, cls=NumpyEncoder)
        console.print(f"[green]✓[/green] Exported signals: {args.output}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    settings = Settings()
    if getattr(args, "config", None):
        try:
            settings = Settings.from_yaml(args.config)
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            return 1
    if getattr(args, "plan", None):
        settings.plan = args.plan
    if args.log_level:
        settings.logging.level = args.log_level
    if getattr(args, "fps", None):
        settings.scheduler.max_frame_rate = args.fps

    setup_logging(settings.logging)

    issues = settings.validate()
    if issues:
        console.print("[yellow]Configuration warnings:[/yellow]")
        for issue in issues:
            console.print(f"  - {issue}")

    if args.command == "plans":
        show_plans()
        return 0

    if args.command == "write-config":
        args.path.parent.mkdir(parents=True, exist_ok=True)
        settings.to_yaml(args.path)
        console.print(f"[green]✓[/green] Wrote configuration: {args.path}")
        return 0

    return replay(args, settings)


if __name__ == "__main__":
    sys.exit(main())
