"""Read and write the per-exercise shot folders on disk.

Layout::

    <video_scripts_dir>/<exercise>/
        script.json
        validation-summary.json
        shots/<shot_id>/prompt.json
        shots/<shot_id>/image.png
        shots/<shot_id>/validation.json
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

import config

from .errors import ExerciseNotFoundError, ShotLoadError
from .schemas import ExerciseSummary, PromptHistoryEntry, Shot, ShotOutcome

logger = logging.getLogger(__name__)

PROMPT_FILE = "prompt.json"
IMAGE_FILE = "image.png"
VALIDATION_FILE = "validation.json"
SCRIPT_FILE = "script.json"
SUMMARY_FILE = "validation-summary.json"


@dataclass(frozen=True)
class ShotFolder:
    """A shot directory that carries a prompt record."""

    id: str
    dir: Path

    @property
    def prompt_path(self) -> Path:
        return self.dir / PROMPT_FILE

    @property
    def image_path(self) -> Path:
        return self.dir / IMAGE_FILE

    @property
    def validation_path(self) -> Path:
        return self.dir / VALIDATION_FILE


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)


def tts_context_for(shot_id: str, script: Optional[dict]) -> str:
    """Find the narration for a shot in the exercise script.

    Script shots match on ``"{shot_number, zero-padded to 2}-{type}"`` or on ``shot_id``.
    """
    if not script or not script.get("shots"):
        return "No script context available"

    for entry in script["shots"]:
        number = entry.get("shot_number")
        derived = f"{str(number).zfill(2)}-{entry.get('type')}" if number is not None else None
        if shot_id in (derived, entry.get("shot_id")):
            return entry.get("tts_text") or entry.get("description") or "No TTS context"

    return "Shot not found in script"


class ExerciseStore:
    """File-system access to exercise and shot records."""

    def __init__(
        self,
        video_scripts_dir: Path = config.VIDEO_SCRIPTS_DIR,
        project_root: Path = config.PROJECT_ROOT,
    ):
        """Initialize the store.

        Args:
            video_scripts_dir: Directory holding one folder per exercise.
            project_root: Base for relative anchor paths in prompt records.
        """
        self.video_scripts_dir = Path(video_scripts_dir)
        self.project_root = Path(project_root)

    def exercise_dir(self, exercise: str) -> Path:
        return self.video_scripts_dir / exercise

    def list_exercises(self) -> list[str]:
        """Names of all exercise folders, sorted."""
        if not self.video_scripts_dir.is_dir():
            return []
        return sorted(p.name for p in self.video_scripts_dir.iterdir() if p.is_dir())

    def list_shots(self, exercise: str) -> list[ShotFolder]:
        """Shot folders of an exercise that have a prompt record, by shot id.

        Raises:
            ExerciseNotFoundError: If the exercise folder does not exist.
        """
        exercise_dir = self.exercise_dir(exercise)
        if not exercise_dir.is_dir():
            raise ExerciseNotFoundError(f"Exercise not found: {exercise}")

        shots_dir = exercise_dir / "shots"
        if not shots_dir.is_dir():
            return []

        folders = [
            ShotFolder(id=entry.name, dir=entry)
            for entry in shots_dir.iterdir()
            if entry.is_dir() and (entry / PROMPT_FILE).is_file()
        ]
        return sorted(folders, key=lambda folder: folder.id)

    def load_script(self, exercise: str) -> Optional[dict]:
        """The exercise's script.json, or None when absent or unreadable."""
        script_path = self.exercise_dir(exercise) / SCRIPT_FILE
        try:
            with open(script_path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable script %s: %s", script_path, exc)
            return None

    def load_prompt_record(self, folder: ShotFolder) -> dict:
        """Raw prompt.json contents.

        Raises:
            ShotLoadError: If the file cannot be read or is not a JSON object.
        """
        try:
            with open(folder.prompt_path, encoding="utf-8") as f:
                record = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ShotLoadError(f"Failed to load {PROMPT_FILE}: {exc}") from exc
        if not isinstance(record, dict):
            raise ShotLoadError(f"{PROMPT_FILE} is not a JSON object")
        return record

    def resolve_anchor(self, anchor_image: str) -> Path:
        anchor = Path(anchor_image)
        if anchor.is_absolute():
            return anchor
        return self.project_root / anchor

    def load_shot(self, folder: ShotFolder, script: Optional[dict] = None) -> Shot:
        """Build a Shot from its prompt record, resuming its iteration count.

        Raises:
            ShotLoadError: If the record lacks a prompt or anchor, or is malformed.
        """
        record = self.load_prompt_record(folder)

        prompt = record.get("engineered_prompt")
        anchor = record.get("anchor_image")
        if not prompt or not anchor:
            raise ShotLoadError(f"{PROMPT_FILE} needs engineered_prompt and anchor_image")

        try:
            history = [
                PromptHistoryEntry(
                    iteration=entry.get("iteration", index),
                    prompt=entry.get("prompt", ""),
                    issues=entry.get("issues") or [],
                )
                for index, entry in enumerate(record.get("prompt_history") or [])
            ]
            return Shot(
                id=folder.id,
                reference_image_path=self.resolve_anchor(anchor),
                image_path=folder.image_path,
                current_prompt=prompt,
                prompt_history=history,
                iteration_count=record.get("validation_iteration") or 0,
                tts_context=tts_context_for(folder.id, script),
            )
        except (AttributeError, TypeError, ValidationError) as exc:
            raise ShotLoadError(f"Malformed {PROMPT_FILE}: {exc}") from exc

    def save_shot(self, folder: ShotFolder, shot: Shot) -> None:
        """Persist prompt, history and iteration count, keeping other keys."""
        record = self.load_prompt_record(folder)
        record["engineered_prompt"] = shot.current_prompt
        record["validation_iteration"] = shot.iteration_count
        record["prompt_history"] = [entry.model_dump() for entry in shot.prompt_history]
        _write_json(folder.prompt_path, record)

    def write_outcome(self, folder: ShotFolder, outcome: ShotOutcome) -> None:
        """Write the shot's terminal validation.json."""
        data: dict[str, Any] = {}
        if outcome.final_validation is not None:
            data.update(outcome.final_validation.model_dump())
        data.update(
            iteration=outcome.iterations_used,
            timestamp=outcome.timestamp.isoformat(),
            prompt_used=outcome.prompt_used,
            status=outcome.status.value,
        )
        if outcome.error:
            data["error"] = outcome.error
        _write_json(folder.validation_path, data)

    def write_summary(self, exercise: str, summary: ExerciseSummary) -> Path:
        """Write validation-summary.json for an exercise."""
        path = self.exercise_dir(exercise) / SUMMARY_FILE
        _write_json(path, summary.model_dump(mode="json"))
        return path
