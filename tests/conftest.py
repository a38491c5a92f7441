"""Test configuration and shared fakes for pytest."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from PIL import Image

import config
from shot_qa.errors import GenerationError
from shot_qa.schemas import ValidationResult
from shot_qa.store import ExerciseStore


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_ai = os.getenv("RUN_AI_TESTS") == "1"
    skip_marker = pytest.mark.skip(reason="Set RUN_AI_TESTS=1 to run AI integration tests.")

    if run_ai:
        return

    for item in items:
        if "ai" in item.keywords:
            item.add_marker(skip_marker)


def write_png(path: Path, color: tuple[int, int, int] = (230, 120, 30)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (8, 8), color).save(path, format="PNG")
    return path


def make_validation(
    passed: bool,
    confidence: float | None = None,
    issues: list[str] | None = None,
    scores: dict[str, float] | None = None,
) -> ValidationResult:
    if confidence is None:
        confidence = 0.9 if passed else 0.4
    if scores is None:
        scores = {name: confidence for name in config.VALIDATION_CRITERIA}
    return ValidationResult(
        overall_pass=passed,
        confidence=confidence,
        criteria_scores=scores,
        issues=issues if issues is not None else ([] if passed else ["pose wrong"]),
        suggestions=[] if passed else ["raise both arms"],
    )


class FakeJudge:
    """Returns (or raises) scripted results in order; repeats the last one."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[dict] = []

    def judge(self, image, reference, prompt, tts_context=""):
        self.calls.append(
            {"image": image, "reference": reference, "prompt": prompt, "tts_context": tts_context}
        )
        index = min(len(self.calls), len(self.results)) - 1
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result


class FakeRefiner:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[dict] = []

    def refine(self, original_prompt, issues, suggestions, criteria_scores):
        self.calls.append(
            {
                "original_prompt": original_prompt,
                "issues": issues,
                "suggestions": suggestions,
                "criteria_scores": criteria_scores,
            }
        )
        if self.error is not None:
            raise self.error
        return f"refined {len(self.calls)}: {original_prompt}"


class FakeGenerator:
    """Writes a fresh PNG on each call; fails on the listed call numbers."""

    def __init__(self, fail_on: tuple[int, ...] = ()):
        self.fail_on = fail_on
        self.calls: list[dict] = []

    def generate_and_save(self, reference, prompt, output_path):
        self.calls.append({"reference": reference, "prompt": prompt, "output_path": output_path})
        if len(self.calls) in self.fail_on:
            raise GenerationError("No image returned from fal-ai/nano-banana/edit")
        shade = (40 * len(self.calls)) % 255
        return write_png(Path(output_path), (shade, shade, shade))


@pytest.fixture()
def anchor_path(tmp_path: Path) -> Path:
    return write_png(tmp_path / "output" / "anchors-selected" / "bent.png")


@pytest.fixture()
def store(tmp_path: Path) -> ExerciseStore:
    return ExerciseStore(video_scripts_dir=tmp_path / "video-scripts", project_root=tmp_path)


@pytest.fixture()
def make_shot_folder(store: ExerciseStore, anchor_path: Path):
    """Create ``<exercise>/shots/<shot_id>`` with prompt.json and, optionally, image.png."""

    def _make(
        exercise: str,
        shot_id: str,
        prompt: str = "figure bent forward, arms hanging down, empty hands",
        with_image: bool = True,
        **record,
    ) -> Path:
        shot_dir = store.exercise_dir(exercise) / "shots" / shot_id
        shot_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "shot_id": shot_id,
            "engineered_prompt": prompt,
            "anchor_image": "output/anchors-selected/bent.png",
            **record,
        }
        (shot_dir / "prompt.json").write_text(json.dumps(data), encoding="utf-8")
        if with_image:
            write_png(shot_dir / "image.png")
        return shot_dir

    return _make
