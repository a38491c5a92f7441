"""Tests for the command line entry point and its exit codes."""

from __future__ import annotations

import pytest

import config
import main
from shot_qa import orchestrator
from shot_qa.orchestrator import ExerciseValidator

from conftest import FakeGenerator, FakeJudge, FakeRefiner, make_validation


@pytest.fixture()
def api_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "FAL_KEY", "fal-test")
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setattr(config, "LLM_PROVIDER", "anthropic")


def use_fake_validator(monkeypatch: pytest.MonkeyPatch, *results) -> None:
    def factory(store, judge=None, max_iterations=config.MAX_ITERATIONS, **kwargs):
        return ExerciseValidator(
            store=store,
            judge=FakeJudge(*results),
            refiner=FakeRefiner(),
            generator=FakeGenerator(),
            max_iterations=max_iterations,
            rate_limit=0,
            generation_rate_limit=0,
        )

    monkeypatch.setattr(orchestrator, "ExerciseValidator", factory)


def test_validate_all_approved_exits_zero(api_keys, monkeypatch, store, make_shot_folder, anchor_path) -> None:
    make_shot_folder("row", "01-intro", anchor_image=str(anchor_path))
    use_fake_validator(monkeypatch, make_validation(True))

    code = main.main(["validate", "row", "--scripts-dir", str(store.video_scripts_dir)])

    assert code == 0


def test_flagged_shot_exits_non_zero(api_keys, monkeypatch, store, make_shot_folder, anchor_path, capsys) -> None:
    make_shot_folder("row", "01-intro", anchor_image=str(anchor_path))
    use_fake_validator(monkeypatch, make_validation(False, issues=["holding a ball"]))

    code = main.main(
        ["validate", "--all", "--skip-regen", "--scripts-dir", str(store.video_scripts_dir)]
    )

    assert code == 1
    assert "holding a ball" in capsys.readouterr().out


def test_missing_exercise_exits_non_zero(api_keys, monkeypatch, store, make_shot_folder, anchor_path) -> None:
    make_shot_folder("row", "01-intro", anchor_image=str(anchor_path))
    use_fake_validator(monkeypatch, make_validation(True))

    code = main.main(["validate", "nope", "--scripts-dir", str(store.video_scripts_dir)])

    assert code == 1


def test_missing_api_key_exits_non_zero(monkeypatch, store, make_shot_folder, anchor_path) -> None:
    monkeypatch.setattr(config, "FAL_KEY", None)
    make_shot_folder("row", "01-intro", anchor_image=str(anchor_path))

    code = main.main(["generate", "row", "--scripts-dir", str(store.video_scripts_dir)])

    assert code == 1


def test_generate_skips_existing_images(api_keys, monkeypatch, store, make_shot_folder, anchor_path) -> None:
    make_shot_folder("row", "01-intro", anchor_image=str(anchor_path))
    use_fake_validator(monkeypatch, make_validation(True))

    code = main.main(["generate", "--all", "--scripts-dir", str(store.video_scripts_dir)])

    assert code == 0


def test_target_is_required() -> None:
    with pytest.raises(SystemExit):
        main.main(["validate"])
