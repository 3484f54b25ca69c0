"""Wires the real collaborators into the grading use case."""

from functools import partial
from typing import TYPE_CHECKING, Any

from go_grader.config import Settings, settings
from go_grader.coverage import CommentCoveragePolicy
from go_grader.execution import select_execution_strategy
from go_grader.lint import GolangciLinter
from go_grader.toolchain import GoToolchain
from go_grader.use_cases.grade_submission import GradingPipeline
from go_grader.workspace import CopyOverlayMaterializer

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any


def build_default_pipeline(
    config: Settings = settings, *, logger: Logger | None = None
) -> GradingPipeline:
    return GradingPipeline(
        toolchain=GoToolchain(config=config, logger=logger),
        materializer=CopyOverlayMaterializer(logger=logger),
        linter=GolangciLinter(config=config),
        coverage_source=CommentCoveragePolicy(),
        strategy_factory=partial(select_execution_strategy, config=config),
        config=config,
        logger=logger,
    )
