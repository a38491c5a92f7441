"""Validate, refine and regenerate a single shot until it passes or runs out of tries."""

import logging
import time
from enum import Enum
from typing import Callable, Optional

import config

from .errors import AnchorNotFoundError, GenerationError, JudgeError
from .generator import ImageGenerator
from .images import AnchorCache
from .judge import VisionJudge
from .refiner import PromptRefiner
from .schemas import PromptHistoryEntry, Shot, ShotOutcome, ShotStatus, ValidationResult

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """States a shot moves through during one run."""

    VALIDATING = "validating"
    REFINING = "refining"
    REGENERATING = "regenerating"
    APPROVED = "approved"
    FLAGGED = "flagged"
    ERROR = "error"


class ShotQualityLoop:
    """Runs the bounded validate -> refine -> regenerate cycle for one shot.

    The loop keeps no state between runs. A shot resumes from the
    ``iteration_count`` it is handed, and ``max_iterations`` bounds the
    refine/regenerate cycles, so the judge is called at most
    ``max_iterations + 1`` times per run. A resumed count above the bound is
    clamped to it.
    """

    def __init__(
        self,
        judge: Optional[VisionJudge] = None,
        refiner: Optional[PromptRefiner] = None,
        generator: Optional[ImageGenerator] = None,
        anchors: Optional[AnchorCache] = None,
        max_iterations: int = config.MAX_ITERATIONS,
        criterion_pass_score: float = config.CRITERION_PASS_SCORE,
        rate_limit: float = config.RATE_LIMIT_SECONDS,
    ):
        """Initialize the loop.

        Args:
            judge: Vision judge instance. Creates default if None.
            refiner: Prompt refiner instance. Creates default if None.
            generator: Image generator instance. Creates default if None.
            anchors: Anchor cache shared across shots. Creates one if None.
            max_iterations: Refine/regenerate cycles allowed per shot.
            criterion_pass_score: Bar below which a criterion is logged as failing.
            rate_limit: Seconds to pause after each regeneration.
        """
        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")
        self.judge = judge or VisionJudge()
        self.refiner = refiner or PromptRefiner()
        self.generator = generator or ImageGenerator()
        self.anchors = anchors if anchors is not None else AnchorCache()
        self.max_iterations = max_iterations
        self.criterion_pass_score = criterion_pass_score
        self.rate_limit = rate_limit

    def _outcome(
        self,
        shot: Shot,
        status: ShotStatus,
        validation: Optional[ValidationResult] = None,
        error: Optional[str] = None,
    ) -> ShotOutcome:
        if status != ShotStatus.NO_IMAGE:
            self._enter(shot, LoopState(status.value))
        return ShotOutcome(
            shot_id=shot.id,
            status=status,
            iterations_used=shot.iteration_count,
            final_validation=validation,
            prompt_used=shot.current_prompt,
            error=error,
        )

    @staticmethod
    def _enter(shot: Shot, state: LoopState) -> None:
        logger.debug("[%s] -> %s (iteration %d)", shot.id, state.value, shot.iteration_count)

    def _log_validation(self, shot: Shot, validation: ValidationResult) -> None:
        verdict = "passed" if validation.overall_pass else "failed"
        logger.info(
            "[%s] validation %s (confidence %.2f, iteration %d)",
            shot.id, verdict, validation.confidence, shot.iteration_count,
        )
        failing = validation.failing_criteria(self.criterion_pass_score)
        if failing:
            logger.info(
                "[%s] failing criteria: %s",
                shot.id,
                ", ".join(f"{name}={score:.2f}" for name, score in failing.items()),
            )
        if validation.issues:
            logger.info("[%s] issues: %s", shot.id, "; ".join(validation.issues[:2]))

    def _refine(self, shot: Shot, validation: ValidationResult) -> str:
        try:
            return self.refiner.refine(
                original_prompt=shot.current_prompt,
                issues=validation.issues,
                suggestions=validation.suggestions,
                criteria_scores=validation.criteria_scores,
            )
        except Exception as exc:
            logger.warning("[%s] refiner raised, keeping current prompt: %s", shot.id, exc)
            return shot.current_prompt

    def run(
        self,
        shot: Shot,
        skip_regeneration: bool = False,
        on_regenerated: Optional[Callable[[Shot], None]] = None,
    ) -> ShotOutcome:
        """Drive one shot to a terminal outcome.

        Args:
            shot: The shot to validate. It is not modified; the loop works
                on a copy.
            skip_regeneration: Flag the shot on its first failed validation
                instead of refining and regenerating.
            on_regenerated: Called with the updated shot after every
                successful regeneration, so callers can persist the new
                prompt, history and iteration count. If it raises, the run
                ends as an error that keeps the iteration count reached.

        Returns:
            The terminal outcome: approved, flagged, error or no_image.
        """
        shot = shot.model_copy(deep=True)

        if not shot.image_path.is_file():
            logger.info("[%s] no image at %s", shot.id, shot.image_path)
            return self._outcome(shot, ShotStatus.NO_IMAGE, error="No image found in shot folder")

        try:
            reference = self.anchors.load(shot.reference_image_path)
        except AnchorNotFoundError as exc:
            logger.error("[%s] %s", shot.id, exc)
            return self._outcome(shot, ShotStatus.ERROR, error=str(exc))

        if shot.iteration_count > self.max_iterations:
            logger.warning(
                "[%s] resumed at iteration %d, above the limit of %d; clamping",
                shot.id, shot.iteration_count, self.max_iterations,
            )
            shot.iteration_count = self.max_iterations

        self._enter(shot, LoopState.VALIDATING)
        validation: Optional[ValidationResult] = None

        while True:
            try:
                validation = self.judge.judge(
                    image=shot.image_path,
                    reference=reference,
                    prompt=shot.current_prompt,
                    tts_context=shot.tts_context,
                )
            except JudgeError as exc:
                logger.error("[%s] validation error: %s", shot.id, exc)
                return self._outcome(
                    shot, ShotStatus.ERROR, validation, error=f"Validation failed: {exc}"
                )

            self._log_validation(shot, validation)

            if validation.overall_pass:
                return self._outcome(shot, ShotStatus.APPROVED, validation)

            if skip_regeneration or shot.iteration_count >= self.max_iterations:
                logger.warning(
                    "[%s] flagged for review after %d iteration(s)",
                    shot.id, shot.iteration_count,
                )
                return self._outcome(shot, ShotStatus.FLAGGED, validation)

            self._enter(shot, LoopState.REFINING)
            refined = self._refine(shot, validation)
            shot.prompt_history.append(
                PromptHistoryEntry(
                    iteration=shot.iteration_count,
                    prompt=shot.current_prompt,
                    issues=list(validation.issues),
                )
            )
            shot.current_prompt = refined
            shot.iteration_count += 1

            self._enter(shot, LoopState.REGENERATING)
            logger.info("[%s] regenerating (iteration %d)", shot.id, shot.iteration_count)
            try:
                self.generator.generate_and_save(
                    reference=reference,
                    prompt=shot.current_prompt,
                    output_path=shot.image_path,
                )
            except GenerationError as exc:
                logger.error("[%s] regeneration failed: %s", shot.id, exc)
                return self._outcome(shot, ShotStatus.ERROR, validation, error=str(exc))

            if on_regenerated:
                try:
                    on_regenerated(shot)
                except Exception as exc:
                    logger.error("[%s] could not persist shot state: %s", shot.id, exc)
                    return self._outcome(
                        shot, ShotStatus.ERROR, validation,
                        error=f"Could not persist shot state: {exc}",
                    )

            if self.rate_limit:
                time.sleep(self.rate_limit)
            self._enter(shot, LoopState.VALIDATING)
