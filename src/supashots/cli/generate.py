"""CLI commands for generating shots and browsing stored projects.

Usage:
    python -m supashots.cli generate IMAGE [OPTIONS]
    python -m supashots.cli history

Examples:
    # Generate the product catalog for an image
    python -m supashots.cli generate bottle.jpg

    # Human catalog, 9:16, written to ./shots
    python -m supashots.cli generate portrait.png --mode human --aspect-ratio 9:16 -o shots

    # Verbose logging
    python -m supashots.cli generate bottle.jpg -v
"""

import asyncio
import base64
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Optional

import structlog

from supashots.core.config import Settings, configure_logging
from supashots.core.database import create_tables, setup_db_session
from supashots.models.batch import Batch
from supashots.models.shot import AspectRatio, SubjectMode
from supashots.models.task import TaskStatus
from supashots.orchestrator.service import ShotOrchestrator
from supashots.services.exceptions import OrchestratorError
from supashots.services.image_generation.gemini_client import strip_data_url
from supashots.uow import SqlSnapshotStore, create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        prog="supashots",
        description="Generate a catalog of styled shots from one source image",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Run one full batch for an image")
    generate.add_argument("image", type=Path, help="Source image file")
    generate.add_argument(
        "--mode",
        type=SubjectMode,
        choices=list(SubjectMode),
        default=SubjectMode.PRODUCT,
        help="Shot catalog to use (default: product)",
    )
    generate.add_argument(
        "--aspect-ratio",
        type=AspectRatio,
        choices=list(AspectRatio),
        default=None,
        help="Output shape (default: DEFAULT_ASPECT_RATIO setting)",
    )
    generate.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for the generated JPEG files (default: current directory)",
    )

    subparsers.add_parser("history", help="List stored projects, newest first")

    return parser.parse_args(argv)


def write_shots(batch: Batch, output_dir: Path) -> list[Path]:
    """Write every succeeded task's image as ``<project>-<style>.jpg``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for style, task in batch.tasks.items():
        if task.status != TaskStatus.SUCCEEDED or not task.output:
            continue
        path = output_dir / f"{batch.project_id}-{style.value}.jpg"
        path.write_bytes(base64.b64decode(strip_data_url(task.output)))
        written.append(path)
    return written


def print_batch_summary(batch: Batch, written: list[Path]) -> None:
    completed, total = batch.progress()
    print("\n" + "=" * 60)
    print("Shot Generation Summary")
    print("=" * 60)
    print(f"Project: {batch.project_id}")
    print(f"Subject: {batch.subject.name} ({batch.subject_mode.value})")
    print(f"Aspect ratio: {batch.aspect_ratio.value}")
    print(f"Settled tasks: {completed}/{total}")
    print(f"Shots written: {len(written)}")

    failed = [t for t in batch.tasks.values() if t.status == TaskStatus.FAILED]
    if failed:
        print(f"\nFailed shots: {len(failed)}")
        for task in failed:
            print(f"  - {task.style.value}: {task.error}")

    print("=" * 60 + "\n")


async def run_generate(orchestrator: ShotOrchestrator, args: Namespace) -> int:
    """Run one batch for ``args.image``.

    Returns:
        Exit code: 0 (all shots succeeded), 1 (none succeeded), 2 (partial success)
    """
    image = base64.b64encode(args.image.read_bytes()).decode("ascii")

    subject, warning = await orchestrator.select_source_image(image)
    print(f"Subject: {subject.name} - {subject.description}")
    if warning:
        print(f"Warning: {warning}", file=sys.stderr)

    orchestrator.set_subject_mode(args.mode)
    if args.aspect_ratio is not None:
        orchestrator.set_aspect_ratio(args.aspect_ratio)

    batch = await orchestrator.generate_all()
    if batch is None:
        # Only another selection on this orchestrator could supersede the batch
        logger.error("cli.batch_superseded")
        return 1

    written = write_shots(batch, args.output_dir)
    print_batch_summary(batch, written)

    if len(written) == len(batch.tasks):
        logger.info("cli.success_all_generated", count=len(written))
        return 0
    elif written:
        logger.warning("cli.partial_success", written=len(written), total=len(batch.tasks))
        return 2
    else:
        logger.error("cli.failure")
        return 1


async def run_history(orchestrator: ShotOrchestrator) -> int:
    snapshots = await orchestrator.history()
    if not snapshots:
        print("No stored projects")
        return 0

    for snapshot in snapshots:
        succeeded = sum(1 for t in snapshot.tasks.values() if t.get("status") == "succeeded")
        print(
            f"{snapshot.id}  {snapshot.timestamp.isoformat()}  "
            f"{snapshot.subject.get('name', '')} ({snapshot.subject_mode}, "
            f"{snapshot.aspect_ratio})  {succeeded}/{len(snapshot.tasks)} shots"
        )
    return 0


async def async_main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 2 (partial success)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    logger.info("cli.started", command=args.command)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    engine = session_factory.kw["bind"]
    orchestrator: Optional[ShotOrchestrator] = None

    try:
        await create_tables(engine)
        store = SqlSnapshotStore(create_uow_factory(session_factory))
        orchestrator = ShotOrchestrator.from_settings(settings, store)

        if args.command == "generate":
            return await run_generate(orchestrator, args)
        return await run_history(orchestrator)

    except (OrchestratorError, OSError) as e:
        logger.error(
            "cli.command_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nGeneration interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT

    except Exception as e:
        logger.error(
            "cli.unexpected_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1

    finally:
        if orchestrator is not None:
            await orchestrator.aclose()
        await engine.dispose()


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
