"""Pydantic schemas for shots, validations and their persisted outcomes."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

from pydantic import BaseModel, Field


class ShotStatus(str, Enum):
    """Terminal status of a shot after one validation run."""

    APPROVED = "approved"
    FLAGGED = "flagged"
    ERROR = "error"
    NO_IMAGE = "no_image"


class ValidationResult(BaseModel):
    """Structured judgment of a generated shot against its anchor."""

    overall_pass: bool = Field(
        ...,
        description="Whether the shot is good enough to use as-is"
    )
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Weighted average of the criteria scores"
    )
    criteria_scores: dict[str, Annotated[float, Field(ge=0.0, le=1.0)]] = Field(
        default_factory=dict,
        description="Score per named criterion, each from 0 to 1"
    )
    issues: list[str] = Field(
        default_factory=list,
        description="Specific problems found in the image"
    )
    suggestions: list[str] = Field(
        default_factory=list,
        description="Actionable improvements for the prompt"
    )

    def failing_criteria(self, pass_score: float) -> dict[str, float]:
        """Criteria scoring below ``pass_score``."""
        return {
            name: score
            for name, score in self.criteria_scores.items()
            if score < pass_score
        }


class RefinedPrompt(BaseModel):
    """Rewritten edit prompt returned by the refiner."""

    new_prompt: str = Field(
        ...,
        description="The improved prompt, ready to send to the image editor"
    )
    changes_made: list[str] = Field(
        default_factory=list,
        description="Short list of what was changed and which issue it addresses"
    )


class PromptHistoryEntry(BaseModel):
    """A prompt that was tried and abandoned."""

    iteration: int = Field(..., ge=0)
    prompt: str
    issues: list[str] = Field(default_factory=list)


class Shot(BaseModel):
    """One exercise-video frame to be generated and checked."""

    id: str = Field(
        ...,
        description="Stable shot identifier, e.g. '03-pull-start'"
    )
    reference_image_path: Path = Field(
        ...,
        description="Anchor image every (re)generation is conditioned on"
    )
    image_path: Path = Field(
        ...,
        description="Where the shot's current generated image lives"
    )
    current_prompt: str = Field(
        ...,
        description="Prompt currently used to (re)generate the image"
    )
    prompt_history: list[PromptHistoryEntry] = Field(
        default_factory=list,
        description="Every abandoned prompt and why it failed"
    )
    iteration_count: int = Field(
        default=0,
        ge=0,
        description="Refine/regenerate cycles already spent on this shot"
    )
    tts_context: str = Field(
        default="",
        description="Narration that accompanies this shot"
    )


class ShotOutcome(BaseModel):
    """Terminal record for a shot after the loop ends."""

    shot_id: str
    status: ShotStatus
    iterations_used: int = Field(default=0, ge=0)
    final_validation: Optional[ValidationResult] = None
    prompt_used: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    error: Optional[str] = None

    @property
    def issues(self) -> list[str]:
        if self.status == ShotStatus.ERROR:
            return [self.error or "Unknown error"]
        if self.final_validation is not None:
            return list(self.final_validation.issues)
        return []


class BlockingIssue(BaseModel):
    """A shot that keeps an exercise from being assembled."""

    shot: str
    issues: list[str] = Field(default_factory=list)


class ExerciseSummary(BaseModel):
    """Aggregate validation report for one exercise."""

    exercise: str
    timestamp: datetime = Field(default_factory=datetime.now)
    total_shots: int = Field(..., ge=0)
    counts: dict[ShotStatus, int] = Field(default_factory=dict)
    ready_for_assembly: bool
    blocking_issues: list[BlockingIssue] = Field(default_factory=list)
    shots: dict[ShotStatus, list[str]] = Field(default_factory=dict)

    @classmethod
    def from_outcomes(cls, exercise: str, outcomes: list[ShotOutcome]) -> "ExerciseSummary":
        """Reduce per-shot outcomes into the exercise summary."""
        shots = {status: [] for status in ShotStatus}
        blocking: list[BlockingIssue] = []

        for outcome in outcomes:
            shots[outcome.status].append(outcome.shot_id)
            if outcome.status in (ShotStatus.FLAGGED, ShotStatus.ERROR):
                blocking.append(BlockingIssue(shot=outcome.shot_id, issues=outcome.issues))

        counts = {status: len(ids) for status, ids in shots.items()}
        total = len(outcomes)
        ready = (
            counts[ShotStatus.APPROVED] == total
            and counts[ShotStatus.FLAGGED] == 0
            and counts[ShotStatus.ERROR] == 0
            and counts[ShotStatus.NO_IMAGE] == 0
        )

        return cls(
            exercise=exercise,
            total_shots=total,
            counts=counts,
            ready_for_assembly=ready,
            blocking_issues=blocking,
            shots=shots,
        )


class ExerciseReport(BaseModel):
    """Outcomes of every shot in an exercise plus their summary."""

    outcomes: list[ShotOutcome] = Field(default_factory=list)
    summary: ExerciseSummary


class GenerationReport(BaseModel):
    """Counts from generating missing shot images for one exercise."""

    exercise: str
    generated: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0


class BatchEntry(BaseModel):
    """Result of processing one exercise in a multi-exercise run."""

    exercise: str
    success: bool
    summary: Optional[ExerciseSummary] = None
    generation: Optional[GenerationReport] = None
    error: Optional[str] = None
