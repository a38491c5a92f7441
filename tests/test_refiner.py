"""Tests for prompt refinement and its fallback."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from langchain_core.runnables import RunnableLambda

import config
from shot_qa.refiner import PromptRefiner
from shot_qa.schemas import RefinedPrompt

SCORES = {
    "character_consistency": 0.9,
    "pose_accuracy": 0.3,
    "muscle_highlighting": 0.8,
    "matches_tts_context": 0.6,
    "no_hallucinations": 0.95,
}


class RecordingModel:
    def __init__(self, result):
        self.result = result
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        return self.result


def _timeout(messages):
    raise TimeoutError("upstream timeout")


def test_returns_refined_prompt() -> None:
    refined_prompt = RefinedPrompt(
        new_prompt='"figure bent forward, empty open hands"',
        changes_made=["removed dumbbells"],
    )
    refiner = PromptRefiner(model=RunnableLambda(lambda messages: refined_prompt))

    refined = refiner.refine("figure bent forward", ["holding dumbbells"], [], SCORES)

    assert refined == "figure bent forward, empty open hands"


def test_dict_result_is_accepted() -> None:
    refiner = PromptRefiner(model=RecordingModel({"new_prompt": "dict prompt"}))

    assert refiner.refine("old prompt", [], [], SCORES) == "dict prompt"


def test_two_lowest_criteria_are_surfaced() -> None:
    model = RecordingModel(RefinedPrompt(new_prompt="new prompt"))
    refiner = PromptRefiner(model=model, constraints=["No props"])

    refiner.refine("old prompt", ["arms bent"], ["straighten arms"], SCORES)

    text = model.messages[-1].content
    lowest = text.split("Lowest scoring criteria:\n", 1)[1].split("\n\n", 1)[0]
    assert lowest.splitlines() == ["pose_accuracy: 0.30", "matches_tts_context: 0.60"]
    assert "- arms bent" in text
    assert "- straighten arms" in text
    assert "- No props" in text


def test_failure_falls_back_to_original_prompt() -> None:
    refiner = PromptRefiner(model=RunnableLambda(_timeout))

    assert refiner.refine("old prompt", ["arms bent"], [], SCORES) == "old prompt"


def test_empty_prompt_falls_back_to_original_prompt() -> None:
    refiner = PromptRefiner(model=RecordingModel(RefinedPrompt(new_prompt="   ")))

    assert refiner.refine("old prompt", [], [], SCORES) == "old prompt"


def test_missing_result_falls_back_to_original_prompt() -> None:
    refiner = PromptRefiner(model=RecordingModel(None))

    assert refiner.refine("old prompt", [], [], SCORES) == "old prompt"


def test_default_model_uses_structured_output() -> None:
    base_model = MagicMock()

    with patch("shot_qa.refiner.get_chat_model", return_value=base_model) as factory:
        model = PromptRefiner(provider="anthropic").model

    factory.assert_called_once_with(provider="anthropic", max_tokens=config.REFINER_MAX_TOKENS)
    base_model.with_structured_output.assert_called_once_with(RefinedPrompt)
    assert model is base_model.with_structured_output.return_value
