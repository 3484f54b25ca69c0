"""Execution strategies and the sandboxed test-binary executor."""

from .executor import (
    RunKind,
    SandboxedExecutor,
    build_child_environment,
    select_execution_strategy,
)
from .strategies import DirectExecution, DockerExecution, RestrictedExecution

__all__ = [
    "DirectExecution",
    "DockerExecution",
    "RestrictedExecution",
    "RunKind",
    "SandboxedExecutor",
    "build_child_environment",
    "select_execution_strategy",
]
