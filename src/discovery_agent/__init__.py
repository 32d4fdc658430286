"""
Token Discovery Agent package initializer.

This package exposes the pipeline coordinator and the factory helpers for
external usage.  Other internal modules (strategies, scoring, clients)
should be imported explicitly from their respective files.
"""

from .context import PipelineContext, build_context  # noqa: F401
from .pipeline import DetectionPipeline, create_pipeline  # noqa: F401

__all__ = ["DetectionPipeline", "PipelineContext", "build_context", "create_pipeline"]
