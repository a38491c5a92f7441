"""Exceptions raised by the shot validation pipeline."""


class ShotQAError(RuntimeError):
    """Base class for pipeline failures."""


class JudgeError(ShotQAError):
    """Raised when the vision judge call fails or its reply cannot be used."""


class RefinerError(ShotQAError):
    """Raised when prompt refinement fails. Never leaves the refiner."""


class GenerationError(ShotQAError):
    """Raised when the image edit service fails or returns no image."""


class AnchorNotFoundError(ShotQAError):
    """Raised when a shot's anchor image does not exist."""


class ShotLoadError(ShotQAError):
    """Raised when a shot's prompt record cannot be read."""


class ExerciseNotFoundError(ShotQAError):
    """Raised when an exercise folder is missing or has no shots."""
