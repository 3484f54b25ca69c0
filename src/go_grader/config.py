"""
Centralized Configuration Management for go-grader.

This module uses pydantic-settings to manage all application-wide settings.
It provides a single, typed `Settings` object that can be imported and used
throughout the application.

Configuration can be overridden via a `.env` file in the working directory or
by setting environment variables (e.g., `GOGRADER_LOG_LEVEL=DEBUG`).
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SandboxBackend = Literal["auto", "direct", "restricted", "docker"]


class Settings(BaseSettings):
    """
    Defines the application's configuration settings.
    """

    # --- General Settings ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="The console logging level for the application.",
    )
    logs_dir: Path | None = Field(
        default=None,
        description="If set, a JSON run log is written to <logs_dir>/<run_id>/run.log.",
    )

    # --- Directory and Path Settings ---
    scratch_root: Path = Field(
        default=Path("/tmp"),
        description="Directory under which per-run workspaces and caches are created.",
    )

    # --- Toolchain Settings ---
    go_executable: str = Field(default="go", description="The go command.")
    lint_executable: str = Field(
        default="golangci-lint", description="The golangci-lint command."
    )
    build_tags: list[str] = Field(
        default_factory=lambda: ["private"],
        description="Build tags used for every compile and lint of the workspace.",
    )
    solution_tag: str = Field(
        default="solution",
        description="Extra build tag selecting the reference implementation.",
    )
    build_workers: int = Field(
        default=1,
        ge=1,
        description="How many packages may be compiled concurrently.",
    )

    # --- Problem Layout ---
    test_file_suffix: str = "_test.go"
    protected_marker: str = "!change"
    testdata_dir_name: str = "testdata"
    shared_files: list[str] = Field(
        default_factory=lambda: ["go.mod", "go.sum", ".golangci.yml"],
        description="Files copied from the private root into every workspace.",
    )

    # --- Child Process Settings ---
    binaries_env: str = Field(
        default="GOGRADER_BINARIES",
        description="Environment variable carrying the binary registry.",
    )

    # --- Benchmark Settings ---
    slowdown_tolerance: float = Field(
        default=1.99,
        gt=0,
        description="A benchmark regresses when new mean > tolerance * old mean.",
    )
    benchmark_count: int = Field(
        default=1,
        ge=1,
        description="How many times each benchmark is measured (-count).",
    )

    # --- Sandbox Settings ---
    sandbox_backend: SandboxBackend = Field(
        default="auto",
        description="'auto' drops privileges only when running as root.",
    )
    sandbox_user: str = Field(
        default="nobody",
        description="Unprivileged account used to run submission binaries.",
    )
    sandbox_isolate_network: bool = Field(
        default=True,
        description="Run restricted children in a fresh network namespace.",
    )
    sandbox_image: str = Field(
        default="golang:1.22-bookworm",
        description="Image used by the docker sandbox backend.",
    )

    # --- Docker Settings ---
    docker_host: str | None = Field(
        default=None,
        description="The host for the Docker daemon socket (e.g., 'unix:///var/run/docker.sock'). "  # noqa: E501
        "If None, the library will try to auto-detect.",
    )

    # --- Pydantic-Settings Configuration ---
    model_config = SettingsConfigDict(
        env_prefix="GOGRADER_",
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
    )

    @property
    def build_tags_arg(self) -> str:
        """Comma separated build tags as accepted by `-tags`."""
        return ",".join(self.build_tags)

    @property
    def solution_tags_arg(self) -> str:
        return ",".join([*self.build_tags, self.solution_tag])


# Create a single, importable instance of the settings
settings = Settings()
