"""Claude/GPT-4o vision judge comparing shots against their anchor, via LangChain."""

import logging
from pathlib import Path
from typing import Literal, Optional, Union

from langchain_core.exceptions import OutputParserException
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

import config

from .errors import JudgeError
from .images import EncodedImage, encode_image
from .llm import get_vision_model
from .schemas import ValidationResult

logger = logging.getLogger(__name__)

NO_TTS_CONTEXT = "No TTS context"


class VisionJudge:
    """Scores a generated shot against its anchor using a vision-capable LLM."""

    def __init__(
        self,
        provider: Literal["anthropic", "openai"] | None = None,
        model=None,
        confidence_threshold: float = config.CONFIDENCE_THRESHOLD,
        criterion_pass_score: float = config.CRITERION_PASS_SCORE,
        require_all_criteria: bool = config.REQUIRE_ALL_CRITERIA,
        criteria: Optional[dict[str, dict]] = None,
    ):
        """Initialize the judge.

        Args:
            provider: LLM provider to use. Uses config default if None.
            model: Runnable that already returns a ValidationResult (or a
                dict of its fields); skips provider lookup when given.
            confidence_threshold: Minimum confidence for a shot to pass.
            criterion_pass_score: Per-criterion bar used for diagnostics
                and for the strict policy.
            require_all_criteria: Strict policy; every criterion must also
                reach ``criterion_pass_score``.
            criteria: Criterion name -> {"weight", "description"} table.
        """
        self.provider = provider
        self._model = model
        self.confidence_threshold = confidence_threshold
        self.criterion_pass_score = criterion_pass_score
        self.require_all_criteria = require_all_criteria
        self.criteria = criteria or config.VALIDATION_CRITERIA

    @property
    def model(self):
        """Lazy-load the model with structured output."""
        if self._model is None:
            base_model = get_vision_model(
                provider=self.provider,
                max_tokens=config.JUDGE_MAX_TOKENS,
            )
            self._model = base_model.with_structured_output(ValidationResult)
        return self._model

    def _build_prompt(self, prompt: str, tts_context: str) -> str:
        criteria_desc = "\n".join(
            f"- {name} (weight: {criterion['weight']}): {criterion['description']}"
            for name, criterion in self.criteria.items()
        )

        return f"""Analyze these two images:
1. ANCHOR IMAGE (reference): This is the character reference that should be maintained
2. GENERATED IMAGE: This was generated with the following prompt:

PROMPT: "{prompt}"

TTS CONTEXT: "{tts_context}"

Evaluate the GENERATED IMAGE on these {len(self.criteria)} criteria:
{criteria_desc}

Score every criterion from 0.0 to 1.0 in criteria_scores, using exactly these keys: {", ".join(self.criteria)}.
Set confidence to the weighted average of the criteria scores, and overall_pass to true only if confidence >= {self.confidence_threshold}.
List specific problems in issues and actionable prompt changes in suggestions."""

    def _check_result(self, result) -> ValidationResult:
        """Apply the criteria check and our pass policy to the model's reply."""
        if isinstance(result, dict):
            try:
                result = ValidationResult.model_validate(result)
            except ValidationError as exc:
                raise JudgeError(f"Malformed judge response: {exc}") from exc
        if not isinstance(result, ValidationResult):
            raise JudgeError("Judge returned no structured result")

        missing = [name for name in self.criteria if name not in result.criteria_scores]
        if missing:
            raise JudgeError(f"Judge response is missing criteria: {', '.join(missing)}")

        passed = result.confidence >= self.confidence_threshold
        if self.require_all_criteria:
            passed = passed and not result.failing_criteria(self.criterion_pass_score)

        if result.overall_pass != passed:
            logger.debug(
                "Judge reported overall_pass=%s but confidence %.2f gives %s",
                result.overall_pass, result.confidence, passed,
            )

        return result.model_copy(update={"overall_pass": passed})

    def judge(
        self,
        image: Union[Path, str],
        reference: Union[EncodedImage, Path, str],
        prompt: str,
        tts_context: str = "",
    ) -> ValidationResult:
        """Judge a generated image against its anchor.

        Args:
            image: Path to the generated shot image.
            reference: The anchor, already encoded or as a path.
            prompt: The prompt used to generate the image.
            tts_context: Narration for this shot; empty means none.

        Returns:
            Validation result with every configured criterion scored.

        Raises:
            JudgeError: If the images cannot be read, the call fails or the
                structured reply is unusable.
        """
        try:
            generated = encode_image(image)
            anchor = reference if isinstance(reference, EncodedImage) else encode_image(reference)
        except (OSError, ValueError) as exc:
            raise JudgeError(f"Could not read image: {exc}") from exc

        user_content = [
            {
                "type": "image_url",
                "image_url": {"url": anchor.data_url},
            },
            {
                "type": "image_url",
                "image_url": {"url": generated.data_url},
            },
            {
                "type": "text",
                "text": self._build_prompt(prompt, tts_context.strip() or NO_TTS_CONTEXT),
            },
        ]

        messages = [
            SystemMessage(content=config.JUDGE_SYSTEM_PROMPT),
            HumanMessage(content=user_content),
        ]

        try:
            result = self.model.invoke(messages)
        except (OutputParserException, ValidationError) as exc:
            raise JudgeError(f"Malformed judge response: {exc}") from exc
        except Exception as exc:
            raise JudgeError(f"Vision model call failed: {exc}") from exc

        return self._check_result(result)
