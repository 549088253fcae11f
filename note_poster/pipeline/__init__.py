# note_poster/pipeline/__init__.py
"""
Poster pipeline orchestration.

Exports:
    - PosterPipeline: Interruptible generation orchestrator
    - run_with_retry: Retry controller with exponential backoff
    - Surfaces: Bundle of user-surface implementations
"""

from note_poster.pipeline.orchestrator import PosterPipeline
from note_poster.pipeline.retry import is_retryable, run_with_retry
from note_poster.pipeline.surfaces import (
    FixedOptionsSurface,
    OptionsResult,
    PreviewResult,
    Surfaces,
    parse_custom_cuts,
)

__all__ = [
    "PosterPipeline",
    "run_with_retry",
    "is_retryable",
    "Surfaces",
    "OptionsResult",
    "PreviewResult",
    "FixedOptionsSurface",
    "parse_custom_cuts",
]
