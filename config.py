"""Configuration settings for the shot validation and regeneration loop."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent
OUTPUT_DIR = PROJECT_ROOT / "output"
VIDEO_SCRIPTS_DIR = Path(os.getenv("VIDEO_SCRIPTS_DIR", OUTPUT_DIR / "video-scripts"))
ANCHORS_DIR = OUTPUT_DIR / "anchors-selected"

# API Keys (loaded from .env)
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
FAL_KEY = os.getenv("FAL_KEY")

# LLM Provider: "anthropic" or "openai"
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "anthropic")

# Model settings
ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
OPENAI_MODEL = "gpt-4o"
FAL_EDIT_MODEL = "fal-ai/nano-banana/edit"
JUDGE_MAX_TOKENS = 1024
REFINER_MAX_TOKENS = 512
DOWNLOAD_TIMEOUT = 60  # seconds

# Loop settings
MAX_ITERATIONS = int(os.getenv("MAX_ITERATIONS", "2"))  # refine/regenerate cycles per shot
CONFIDENCE_THRESHOLD = float(os.getenv("CONFIDENCE_THRESHOLD", "0.7"))
CRITERION_PASS_SCORE = float(os.getenv("CRITERION_PASS_SCORE", "0.7"))
REQUIRE_ALL_CRITERIA = os.getenv("REQUIRE_ALL_CRITERIA", "false").lower() in ("1", "true", "yes")

# Throttling between remote calls (seconds)
RATE_LIMIT_SECONDS = 0.5
GENERATION_RATE_LIMIT_SECONDS = 0.3

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Criteria the vision judge scores, with their weight in the confidence average
VALIDATION_CRITERIA = {
    "character_consistency": {
        "weight": 0.30,
        "description": (
            "The figure matches the anchor: orange anatomical mannequin with "
            "wireframe grid lines, black dot eyes, dark green shorts, grey sneakers"
        ),
    },
    "pose_accuracy": {
        "weight": 0.25,
        "description": "Body position matches the pose described in the prompt",
    },
    "muscle_highlighting": {
        "weight": 0.15,
        "description": "Muscles named in the prompt are visibly highlighted, and no others",
    },
    "matches_tts_context": {
        "weight": 0.15,
        "description": "The image illustrates what the narration says at this moment",
    },
    "no_hallucinations": {
        "weight": 0.15,
        "description": "No extra limbs, props, equipment, text or background objects",
    },
}

JUDGE_SYSTEM_PROMPT = (
    "You are a strict quality reviewer for fitness video frames. Compare each "
    "generated image against its anchor reference and score it objectively."
)

REFINER_SYSTEM_PROMPT = (
    "You are an expert prompt engineer for reference-based image editing. "
    "You rewrite edit prompts so the next generation fixes the reported "
    "problems while keeping the character identical to the reference."
)

REFINEMENT_CONSTRAINTS = [
    "Keep the character description identical to the anchor image",
    "Describe the body position explicitly, limb by limb",
    "Never introduce equipment, weights or props unless the original prompt asks for them",
    "Keep a plain neutral studio background",
    "Stay under 120 words",
]
