"""Prompt refinement based on validation feedback using LangChain."""

import logging
from typing import Literal, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

import config

from .errors import RefinerError
from .llm import get_chat_model
from .schemas import RefinedPrompt

logger = logging.getLogger(__name__)


class PromptRefiner:
    """Rewrites a failing edit prompt from the judge's feedback."""

    def __init__(
        self,
        provider: Literal["anthropic", "openai"] | None = None,
        model=None,
        constraints: Optional[list[str]] = None,
    ):
        """Initialize the refiner.

        Args:
            provider: LLM provider to use. Uses config default if None.
            model: Runnable that already returns a RefinedPrompt (or a dict
                of its fields); skips provider lookup when given.
            constraints: Rules every refined prompt must follow.
        """
        self.provider = provider
        self._model = model
        self.constraints = constraints if constraints is not None else config.REFINEMENT_CONSTRAINTS

    @property
    def model(self):
        """Lazy-load the model with structured output."""
        if self._model is None:
            base_model = get_chat_model(
                provider=self.provider,
                max_tokens=config.REFINER_MAX_TOKENS,
            )
            self._model = base_model.with_structured_output(RefinedPrompt)
        return self._model

    def _build_message(
        self,
        original_prompt: str,
        issues: list[str],
        suggestions: list[str],
        criteria_scores: dict[str, float],
    ) -> str:
        lowest = sorted(criteria_scores.items(), key=lambda item: item[1])[:2]

        return f"""Original prompt:
"{original_prompt}"

Validation issues found:
{chr(10).join(f"- {i}" for i in issues) or "- None identified"}

Improvement suggestions:
{chr(10).join(f"- {s}" for s in suggestions) or "- None provided"}

Lowest scoring criteria:
{chr(10).join(f"{name}: {score:.2f}" for name, score in lowest) or "None scored"}

Constraints:
{chr(10).join(f"- {c}" for c in self.constraints)}

Create an improved prompt that addresses these issues. Put the complete prompt in new_prompt and list your edits in changes_made."""

    def _request(self, message: str) -> str:
        messages = [
            SystemMessage(content=config.REFINER_SYSTEM_PROMPT),
            HumanMessage(content=message),
        ]
        try:
            result = self.model.invoke(messages)
        except Exception as exc:
            raise RefinerError(f"Refinement call failed: {exc}") from exc

        if isinstance(result, dict):
            try:
                result = RefinedPrompt.model_validate(result)
            except ValidationError as exc:
                raise RefinerError(f"Malformed refinement: {exc}") from exc
        if not isinstance(result, RefinedPrompt):
            raise RefinerError("Refinement returned no structured result")

        text = result.new_prompt.strip().strip('"').strip()
        if not text:
            raise RefinerError("Refinement returned an empty prompt")
        if result.changes_made:
            logger.debug("Refinement changes: %s", "; ".join(result.changes_made))
        return text

    def refine(
        self,
        original_prompt: str,
        issues: list[str],
        suggestions: list[str],
        criteria_scores: dict[str, float],
    ) -> str:
        """Refine a prompt from validation feedback.

        Falls back to ``original_prompt`` when refinement fails, so the
        caller can still regenerate.

        Args:
            original_prompt: The prompt that produced the failing image.
            issues: Problems reported by the judge.
            suggestions: Improvements suggested by the judge.
            criteria_scores: Score per criterion; the two lowest are
                surfaced to the model.

        Returns:
            The refined prompt, or the original one on failure.
        """
        message = self._build_message(original_prompt, issues, suggestions, criteria_scores)
        try:
            return self._request(message)
        except RefinerError as exc:
            logger.warning("Prompt refinement failed, keeping original prompt: %s", exc)
            return original_prompt
