"""Shot quality loop for exercise video imagery."""

from .schemas import (
    BatchEntry,
    ExerciseReport,
    ExerciseSummary,
    GenerationReport,
    PromptHistoryEntry,
    RefinedPrompt,
    Shot,
    ShotOutcome,
    ShotStatus,
    ValidationResult,
)
from .errors import (
    AnchorNotFoundError,
    ExerciseNotFoundError,
    GenerationError,
    JudgeError,
    RefinerError,
    ShotLoadError,
    ShotQAError,
)
from .images import AnchorCache, EncodedImage, encode_image
from .judge import VisionJudge
from .refiner import PromptRefiner
from .generator import ImageGenerator
from .loop import LoopState, ShotQualityLoop
from .store import ExerciseStore, ShotFolder
from .orchestrator import ExerciseValidator
from .llm import get_chat_model, get_vision_model

__all__ = [
    "BatchEntry",
    "ExerciseReport",
    "ExerciseSummary",
    "GenerationReport",
    "PromptHistoryEntry",
    "RefinedPrompt",
    "Shot",
    "ShotOutcome",
    "ShotStatus",
    "ValidationResult",
    "AnchorNotFoundError",
    "ExerciseNotFoundError",
    "GenerationError",
    "JudgeError",
    "RefinerError",
    "ShotLoadError",
    "ShotQAError",
    "AnchorCache",
    "EncodedImage",
    "encode_image",
    "VisionJudge",
    "PromptRefiner",
    "ImageGenerator",
    "LoopState",
    "ShotQualityLoop",
    "ExerciseStore",
    "ShotFolder",
    "ExerciseValidator",
    "get_chat_model",
    "get_vision_model",
]
