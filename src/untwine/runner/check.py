"""Functionality checks run after a successful build."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from untwine.core.errors import UntwineError
from untwine.core.result import FunctionalityCheckResult
from untwine.core.runner import Runner

PE_MAGIC = b"MZ"


class FunctionalityCheck(ABC):
    """A test of the build output that does not affect build
    success."""

    name: str

    @abstractmethod
    def run(
        self, project_root: Path, configuration: str
    ) -> FunctionalityCheckResult:
        ...


class AssemblyOutputCheck(FunctionalityCheck):
    """The expected assembly exists under bin/<configuration> and
    looks like a PE image."""

    def __init__(self, assembly: str, name: str = "assembly-output"):
        self.assembly = assembly
        self.name = name

    def run(
        self, project_root: Path, configuration: str
    ) -> FunctionalityCheckResult:
        timestamp = datetime.now()
        bin_dir = project_root / "bin" / configuration
        candidates = sorted(bin_dir.rglob(self.assembly)) if bin_dir.is_dir() else []

        if not candidates:
            return FunctionalityCheckResult(
                name=self.name,
                success=False,
                message=f"{self.assembly} not found under {bin_dir}",
                timestamp=timestamp,
            )

        path = candidates[0]
        with open(path, "rb") as f:
            header = f.read(2)
        if header != PE_MAGIC:
            return FunctionalityCheckResult(
                name=self.name,
                success=False,
                message=f"{path} is not a PE image",
                timestamp=timestamp,
            )
        return FunctionalityCheckResult(
            name=self.name,
            success=True,
            message=f"Assembly loaded from {path}",
            timestamp=timestamp,
        )


class CommandCheck(FunctionalityCheck):
    """Runs a named shell command in the project root and keeps its
    output in a timestamped log file."""

    def __init__(
        self,
        name: str,
        command: str,
        output_dir: Path,
        timeout: int = 600,
        runner: Runner | None = None,
    ):
        self.name = name
        self.command = command
        self.output_dir = output_dir
        self.timeout = timeout
        self.runner = runner or Runner()

    def run(
        self, project_root: Path, configuration: str
    ) -> FunctionalityCheckResult:
        timestamp = datetime.now()
        log_file = (
            self.output_dir / f"{self.name}-{timestamp:%Y%m%d-%H%M%S}.log"
        )
        try:
            result = self.runner.execute(
                self.command.replace("{configuration}", configuration),
                cwd=project_root,
                timeout=self.timeout,
                log_file=log_file,
                log_level="debug",
                check=False,
            )
        except UntwineError as e:
            return FunctionalityCheckResult(
                name=self.name,
                success=False,
                message=str(e),
                log_file=log_file,
                returncode=-1,
                timestamp=timestamp,
            )

        return FunctionalityCheckResult(
            name=self.name,
            success=result.ok,
            message="passed" if result.ok else f"exited with {result.exited}",
            log_file=log_file,
            returncode=result.exited,
            timestamp=timestamp,
        )


def checks_from_config(
    assembly: str | None,
    commands: dict[str, str],
    output_dir: Path,
    timeout: int,
    runner: Runner | None = None,
) -> list[FunctionalityCheck]:
    checks: list[FunctionalityCheck] = []
    if assembly:
        checks.append(AssemblyOutputCheck(assembly))
    checks.extend(
        CommandCheck(name, command, output_dir, timeout, runner)
        for name, command in commands.items()
    )
    return checks


__all__ = [
    "AssemblyOutputCheck",
    "CommandCheck",
    "FunctionalityCheck",
    "checks_from_config",
]
