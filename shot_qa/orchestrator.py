"""Exercise-level orchestration: run every shot, aggregate, persist."""

import logging
import time
from typing import Callable, Iterable, Optional

import config

from .errors import AnchorNotFoundError, ExerciseNotFoundError, GenerationError, ShotLoadError
from .generator import ImageGenerator
from .images import AnchorCache
from .judge import VisionJudge
from .loop import ShotQualityLoop
from .refiner import PromptRefiner
from .schemas import (
    BatchEntry,
    ExerciseReport,
    ExerciseSummary,
    GenerationReport,
    ShotOutcome,
    ShotStatus,
)
from .store import ExerciseStore, ShotFolder

logger = logging.getLogger(__name__)


class ExerciseValidator:
    """Validates (and optionally regenerates) every shot of an exercise.

    Shots are processed one at a time in shot id order. A failure in one
    shot becomes that shot's outcome and never stops its siblings.
    """

    def __init__(
        self,
        store: Optional[ExerciseStore] = None,
        judge: Optional[VisionJudge] = None,
        refiner: Optional[PromptRefiner] = None,
        generator: Optional[ImageGenerator] = None,
        max_iterations: int = config.MAX_ITERATIONS,
        rate_limit: float = config.RATE_LIMIT_SECONDS,
        generation_rate_limit: float = config.GENERATION_RATE_LIMIT_SECONDS,
    ):
        """Initialize the validator.

        Args:
            store: Shot folder access. Uses the configured directories if None.
            judge: Vision judge instance. Creates default if None.
            refiner: Prompt refiner instance. Creates default if None.
            generator: Image generator instance. Creates default if None.
            max_iterations: Refine/regenerate cycles allowed per shot.
            rate_limit: Seconds between shots (and after each regeneration).
            generation_rate_limit: Seconds between shots when generating
                missing images.
        """
        self.store = store or ExerciseStore()
        self.anchors = AnchorCache()
        self.generator = generator or ImageGenerator()
        self.loop = ShotQualityLoop(
            judge=judge,
            refiner=refiner,
            generator=self.generator,
            anchors=self.anchors,
            max_iterations=max_iterations,
            rate_limit=rate_limit,
        )
        self.rate_limit = rate_limit
        self.generation_rate_limit = generation_rate_limit

    def _shots_or_raise(self, exercise: str) -> list[ShotFolder]:
        shots = self.store.list_shots(exercise)
        if not shots:
            raise ExerciseNotFoundError(
                f"No shots found in: {self.store.exercise_dir(exercise) / 'shots'}"
            )
        return shots

    def validate_shot(
        self,
        folder: ShotFolder,
        script: Optional[dict] = None,
        skip_regeneration: bool = False,
    ) -> ShotOutcome:
        """Run the quality loop for one shot folder and persist its outcome."""
        try:
            shot = self.store.load_shot(folder, script)
        except ShotLoadError as exc:
            logger.error("[%s] %s", folder.id, exc)
            return ShotOutcome(shot_id=folder.id, status=ShotStatus.ERROR, error=str(exc))

        try:
            outcome = self.loop.run(
                shot,
                skip_regeneration=skip_regeneration,
                on_regenerated=lambda updated: self.store.save_shot(folder, updated),
            )
        except Exception as exc:
            logger.exception("[%s] validation aborted", folder.id)
            outcome = ShotOutcome(
                shot_id=folder.id,
                status=ShotStatus.ERROR,
                iterations_used=min(shot.iteration_count, self.loop.max_iterations),
                prompt_used=shot.current_prompt,
                error=f"Validation aborted: {exc}",
            )

        if outcome.status != ShotStatus.NO_IMAGE:
            try:
                self.store.write_outcome(folder, outcome)
            except OSError as exc:
                logger.error("[%s] could not write %s: %s", folder.id, folder.validation_path.name, exc)
        return outcome

    def validate_exercise(
        self,
        exercise: str,
        skip_regeneration: bool = False,
        on_shot: Optional[Callable[[int, int, ShotOutcome], None]] = None,
    ) -> ExerciseReport:
        """Validate every shot of an exercise and write its summary.

        Args:
            exercise: Exercise folder name.
            skip_regeneration: Flag failing shots instead of regenerating.
            on_shot: Optional callback ``(index, total, outcome)`` per shot.

        Returns:
            Every shot outcome plus the exercise summary.

        Raises:
            ExerciseNotFoundError: If the exercise is missing or has no shots.
        """
        shots = self._shots_or_raise(exercise)
        script = self.store.load_script(exercise)
        logger.info("Validating %s: %d shots (skip regen: %s)", exercise, len(shots), skip_regeneration)

        outcomes: list[ShotOutcome] = []
        for index, folder in enumerate(shots):
            outcome = self.validate_shot(folder, script, skip_regeneration)
            outcomes.append(outcome)
            if on_shot:
                on_shot(index, len(shots), outcome)

            if self.rate_limit and index < len(shots) - 1:
                time.sleep(self.rate_limit)

        summary = ExerciseSummary.from_outcomes(exercise, outcomes)
        self.store.write_summary(exercise, summary)
        return ExerciseReport(outcomes=outcomes, summary=summary)

    def validate_all(
        self,
        exercises: Iterable[str],
        skip_regeneration: bool = False,
        on_shot: Optional[Callable[[int, int, ShotOutcome], None]] = None,
    ) -> list[BatchEntry]:
        """Validate several exercises; one failing never stops the rest."""
        entries: list[BatchEntry] = []
        for exercise in exercises:
            try:
                report = self.validate_exercise(exercise, skip_regeneration, on_shot)
            except (ExerciseNotFoundError, OSError) as exc:
                logger.error("Failed to validate %s: %s", exercise, exc)
                entries.append(BatchEntry(exercise=exercise, success=False, error=str(exc)))
                continue
            entries.append(BatchEntry(exercise=exercise, success=True, summary=report.summary))
        return entries

    def generate_exercise_images(self, exercise: str) -> GenerationReport:
        """Generate image.png for every shot that does not have one yet.

        Raises:
            ExerciseNotFoundError: If the exercise is missing or has no shots.
        """
        shots = self._shots_or_raise(exercise)
        report = GenerationReport(exercise=exercise, total=len(shots))

        for index, folder in enumerate(shots):
            if folder.image_path.is_file():
                logger.info("[%s] image exists, skipping", folder.id)
                report.skipped += 1
                continue

            try:
                shot = self.store.load_shot(folder)
                reference = self.anchors.load(shot.reference_image_path)
                self.generator.generate_and_save(reference, shot.current_prompt, folder.image_path)
            except (ShotLoadError, AnchorNotFoundError, GenerationError, OSError) as exc:
                logger.error("[%s] generation failed: %s", folder.id, exc)
                report.errors += 1
            else:
                report.generated += 1

            if self.generation_rate_limit and index < len(shots) - 1:
                time.sleep(self.generation_rate_limit)

        return report

    def generate_all(self, exercises: Iterable[str]) -> list[BatchEntry]:
        """Generate missing images for several exercises."""
        entries: list[BatchEntry] = []
        for exercise in exercises:
            try:
                report = self.generate_exercise_images(exercise)
            except (ExerciseNotFoundError, OSError) as exc:
                logger.error("Failed to process %s: %s", exercise, exc)
                entries.append(BatchEntry(exercise=exercise, success=False, error=str(exc)))
                continue
            entries.append(BatchEntry(exercise=exercise, success=True, generation=report))
        return entries
