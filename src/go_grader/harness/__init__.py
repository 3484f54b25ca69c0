"""Harness components responsible for running a grading job end to end."""

from .pipeline import build_default_pipeline

__all__ = ["build_default_pipeline"]
