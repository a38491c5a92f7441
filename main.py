#!/usr/bin/env python3
"""Entry point for shot validation and batch image generation.

Usage:
    # Validate one exercise, refining and regenerating failing shots
    python main.py validate bent-over-barbell-row

    # Validate every exercise without regenerating anything
    python main.py validate --all --skip-regen

    # Generate missing shot images before validating
    python main.py generate bent-over-barbell-row
    python main.py generate --all
"""

import argparse
import logging
import sys
from pathlib import Path

import config


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.LOG_LEVEL,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _check_environment(need_llm: bool) -> bool:
    """Report missing API keys; returns False if any is missing."""
    missing = []
    if not config.FAL_KEY:
        missing.append("FAL_KEY")
    if need_llm:
        key = "OPENAI_API_KEY" if config.LLM_PROVIDER == "openai" else "ANTHROPIC_API_KEY"
        if not getattr(config, key):
            missing.append(key)
    for name in missing:
        print(f"{name} not found in environment or .env file", file=sys.stderr)
    return not missing


def _resolve_exercises(args: argparse.Namespace, store) -> list[str] | None:
    if not store.video_scripts_dir.is_dir():
        print(f"Video scripts directory not found: {store.video_scripts_dir}", file=sys.stderr)
        return None
    if args.all:
        exercises = store.list_exercises()
        if not exercises:
            print("No exercises found in video-scripts directory", file=sys.stderr)
            return None
        print(f"Found {len(exercises)} exercises\n")
        return exercises
    return [args.exercise]


def run_validate(args: argparse.Namespace) -> int:
    """Validate shots from the CLI; returns the process exit code."""
    from shot_qa.judge import VisionJudge
    from shot_qa.orchestrator import ExerciseValidator
    from shot_qa.schemas import ShotOutcome, ShotStatus
    from shot_qa.store import ExerciseStore

    if not _check_environment(need_llm=True):
        return 1

    store = ExerciseStore(video_scripts_dir=args.scripts_dir)
    exercises = _resolve_exercises(args, store)
    if exercises is None:
        return 1

    print(f"\n{'='*60}")
    print("Shot Quality Validation")
    print(f"{'='*60}\n")
    print(f"Exercises: {', '.join(exercises)}")
    print(f"Max iterations: {args.max_iterations}")
    print(f"Confidence threshold: {args.threshold}")
    print(f"Skip regeneration: {args.skip_regen}")
    print()

    def on_shot(index: int, total: int, outcome: ShotOutcome):
        """Callback to print progress."""
        line = f"[{index + 1}/{total}] {outcome.shot_id}: {outcome.status.value}"
        if outcome.final_validation is not None:
            line += f" (confidence {outcome.final_validation.confidence:.2f}"
            line += f", iterations {outcome.iterations_used})"
        print(line)
        if outcome.status in (ShotStatus.FLAGGED, ShotStatus.ERROR):
            for issue in outcome.issues[:2]:
                print(f"    - {issue}")

    validator = ExerciseValidator(
        store=store,
        judge=VisionJudge(
            confidence_threshold=args.threshold,
            require_all_criteria=args.strict,
        ),
        max_iterations=args.max_iterations,
    )
    entries = validator.validate_all(exercises, skip_regeneration=args.skip_regen, on_shot=on_shot)

    print(f"\n{'='*60}")
    print("VALIDATION COMPLETE")
    print(f"{'='*60}")

    totals = {ShotStatus.APPROVED: 0, ShotStatus.FLAGGED: 0, ShotStatus.ERROR: 0}
    for entry in entries:
        if not entry.success:
            print(f"  {entry.exercise:<30} FAILED: {entry.error}")
            continue
        counts = entry.summary.counts
        ready = "ready" if entry.summary.ready_for_assembly else "needs review"
        print(
            f"  {entry.exercise:<30} {counts[ShotStatus.APPROVED]} ok | "
            f"{counts[ShotStatus.FLAGGED]} flag | {counts[ShotStatus.ERROR]} err | "
            f"{counts[ShotStatus.NO_IMAGE]} no image ({ready})"
        )
        for status in totals:
            totals[status] += counts[status]

    print(
        f"\nTotals: {totals[ShotStatus.APPROVED]} approved | "
        f"{totals[ShotStatus.FLAGGED]} flagged | {totals[ShotStatus.ERROR]} errors"
    )
    if totals[ShotStatus.FLAGGED] or totals[ShotStatus.ERROR]:
        print("Review flagged shots in their validation.json files, fix them, then re-run.")
    print()

    failed = any(not entry.success for entry in entries)
    return 1 if failed or totals[ShotStatus.FLAGGED] or totals[ShotStatus.ERROR] else 0


def run_generate(args: argparse.Namespace) -> int:
    """Generate missing shot images from the CLI; returns the process exit code."""
    from shot_qa.orchestrator import ExerciseValidator
    from shot_qa.store import ExerciseStore

    if not _check_environment(need_llm=False):
        return 1

    store = ExerciseStore(video_scripts_dir=args.scripts_dir)
    exercises = _resolve_exercises(args, store)
    if exercises is None:
        return 1

    validator = ExerciseValidator(store=store)
    entries = validator.generate_all(exercises)

    print(f"\n{'='*60}")
    print("BATCH IMAGE GENERATION COMPLETE")
    print(f"{'='*60}")

    errors = 0
    for entry in entries:
        if not entry.success:
            print(f"  {entry.exercise:<30} FAILED: {entry.error}")
            continue
        report = entry.generation
        errors += report.errors
        print(
            f"  {entry.exercise:<30} {report.generated} gen | "
            f"{report.skipped} skip | {report.errors} err"
        )
    print("\nNext: run `python main.py validate` on the generated shots.\n")

    return 1 if errors or any(not entry.success for entry in entries) else 0


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "exercise",
        nargs="?",
        help="Exercise folder name under the video scripts directory",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Process every exercise",
    )
    parser.add_argument(
        "--scripts-dir",
        type=Path,
        default=config.VIDEO_SCRIPTS_DIR,
        help=f"Video scripts directory (default: {config.VIDEO_SCRIPTS_DIR})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every state transition",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Shot quality validation for exercise videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Validate command
    val_parser = subparsers.add_parser("validate", help="Validate shots, regenerating failures")
    _add_target_arguments(val_parser)
    val_parser.add_argument(
        "--skip-regen",
        action="store_true",
        help="Only validate; flag failing shots without regenerating",
    )
    val_parser.add_argument(
        "--max-iterations", "-m",
        type=int,
        default=config.MAX_ITERATIONS,
        help=f"Refine/regenerate cycles per shot (default: {config.MAX_ITERATIONS})",
    )
    val_parser.add_argument(
        "--threshold", "-t",
        type=float,
        default=config.CONFIDENCE_THRESHOLD,
        help=f"Confidence needed to pass (default: {config.CONFIDENCE_THRESHOLD})",
    )
    val_parser.add_argument(
        "--strict",
        action="store_true",
        default=config.REQUIRE_ALL_CRITERIA,
        help="Also require every criterion to pass individually",
    )

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate missing shot images")
    _add_target_arguments(gen_parser)

    args = parser.parse_args(argv)

    if args.command not in ("validate", "generate"):
        parser.print_help()
        return 1
    if not args.exercise and not args.all:
        parser.error("give an exercise name or --all")

    _configure_logging(args.verbose)

    if args.command == "validate":
        return run_validate(args)
    return run_generate(args)


if __name__ == "__main__":
    sys.exit(main())
