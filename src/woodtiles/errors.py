from __future__ import annotations


class PipelineError(Exception):
    """Base class for every fatal error raised while preparing the tile datasets."""


class ConfigurationError(PipelineError, ValueError):
    """Invalid sizes, class tables, replica counts or config values."""


class ImageIOError(PipelineError, OSError):
    """A source image/label is missing or unreadable, or a tile cannot be written."""


class ConsistencyError(PipelineError):
    """Inputs disagree with each other (e.g. label and image dimensions differ)."""


def with_context(err: PipelineError, step: str, path: object) -> PipelineError:
    """Same error type, message prefixed with the step and the file being processed."""
    return type(err)(f"[{step}] {path}: {err}")
