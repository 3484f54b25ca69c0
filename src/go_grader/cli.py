from pathlib import Path
from typing import Annotated, Literal

import cyclopts
from cyclopts import Parameter
from loguru import logger
from rich.console import Console

from go_grader.config import settings
from go_grader.coverage import CoverageAggregator
from go_grader.errors import InfrastructureError, InputError
from go_grader.harness import build_default_pipeline
from go_grader.logging_config import get_problem_logger, setup_main_process_logging
from go_grader.models import PipelineResult, ProblemID, utc_now
from go_grader.report import print_result
from go_grader.version import harness_version

EXIT_PASSED = 0
EXIT_SUBMISSION_FAILED = 1
EXIT_INPUT_ERROR = 2
EXIT_INFRASTRUCTURE_ERROR = 3

app = cyclopts.App(
    help="go-grader: grade a Go submission against the hidden test suite.",
    version=harness_version(),
)


def _write_report(result: PipelineResult, report_file: Path | None) -> None:
    if report_file is None:
        return
    report_file.parent.mkdir(parents=True, exist_ok=True)
    report_file.write_text(result.model_dump_json(indent=2) + "\n", encoding="utf-8")
    logger.info(f"Report written to {report_file}")


@app.command(name="check-task")
def check_task(
    *,
    problem: Annotated[str, Parameter(help="Problem directory name.")],
    student_repo: Annotated[
        Path, Parameter(help="Path to the student repository root.")
    ] = Path("."),
    private_repo: Annotated[
        Path, Parameter(help="Path to the private repository root.")
    ] = Path("."),
    report_file: Annotated[
        Path | None, Parameter(help="Write the JSON result to this file.")
    ] = None,
    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None,
        Parameter(help="Console log level (defaults to GOGRADER_LOG_LEVEL)."),
    ] = None,
) -> None:
    """Grade a single problem of a student submission."""
    started_at = utc_now()
    run_id = f"{started_at.strftime('%Y%m%dT%H%M%S')}-{problem}"
    setup_main_process_logging(run_id, settings.logs_dir, level=log_level)
    problem_logger = get_problem_logger(problem)

    pipeline = build_default_pipeline(settings, logger=problem_logger)
    exit_code = EXIT_PASSED
    try:
        result = pipeline.grade(problem, student_repo, private_repo, run_id=run_id)
        if not result.passed:
            exit_code = EXIT_SUBMISSION_FAILED
    except InputError as e:
        problem_logger.error(f"❌ {e}")
        result = PipelineResult(
            run_id=run_id,
            problem_id=ProblemID(problem),
            status="error",
            detail=f"input error: {e}",
            started_at=started_at,
        )
        exit_code = EXIT_INPUT_ERROR
    except InfrastructureError as e:
        problem_logger.exception(f"❌ Grader infrastructure failure: {e}")
        result = PipelineResult(
            run_id=run_id,
            problem_id=ProblemID(problem),
            status="error",
            detail=f"infrastructure error: {e}",
            started_at=started_at,
        )
        exit_code = EXIT_INFRASTRUCTURE_ERROR

    print_result(result)
    _write_report(result, report_file)
    logger.complete()
    raise SystemExit(exit_code)


@app.command
def coverage(*profiles: Path) -> None:
    """Print the merged statement coverage of existing cover profiles."""
    summary = CoverageAggregator().merge(profiles)
    Console().print(
        f"{summary.percent:.2f}% ({summary.covered}/{summary.total} statements)"
    )


if __name__ == "__main__":
    app()
