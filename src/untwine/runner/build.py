"""Build validation: run the build, parse and categorize its
diagnostics, then run functionality checks."""

from __future__ import annotations

import shlex
import threading
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from untwine.core.errors import CommandCancelledError, CommandTimeoutError
from untwine.core.log import logger
from untwine.core.result import BuildValidationResult
from untwine.core.runner import Runner
from untwine.rules.categories import CATEGORIES, ConflictCategory
from untwine.runner.check import FunctionalityCheck, checks_from_config
from untwine.runner.diagnostics import analyze, categorize, parse_output

DEFAULT_COMMAND = (
    "dotnet build {solution} --configuration {configuration} "
    "--verbosity {verbosity}"
)


class BuildValidator:
    """Runs the project build and reports what broke.

    validate() never raises: launch failures, timeouts, cancellation
    and unexpected errors come back as validation_errors on a failed
    result.
    """

    def __init__(
        self,
        project_root: Path,
        command: str = DEFAULT_COMMAND,
        solution: str | None = None,
        configuration: str = "Debug",
        verbosity: str = "normal",
        timeout: int = 600,
        output_dir: Path | None = None,
        checks: Iterable[FunctionalityCheck] = (),
        categories: Iterable[ConflictCategory] = CATEGORIES,
        runner: Runner | None = None,
        log=logger,
    ):
        self.project_root = Path(project_root)
        self.command = command
        self.solution = solution
        self.configuration = configuration
        self.verbosity = verbosity
        self.timeout = timeout
        self.output_dir = output_dir or self.project_root / ".untwine" / "logs"
        self.checks = list(checks)
        self.categories = list(categories)
        self.runner = runner or Runner(log=log)
        self.log = log

    @classmethod
    def from_config(cls, config, log=logger) -> BuildValidator:
        """Build a validator from the project and build config
        sections."""
        build = config.build
        runner = Runner(log=log)
        return cls(
            project_root=config.project.root,
            command=build.command,
            solution=build.solution,
            configuration=build.configuration,
            verbosity=build.verbosity,
            timeout=build.timeout,
            output_dir=build.output_dir,
            checks=checks_from_config(
                build.assembly,
                build.checks,
                build.output_dir,
                build.timeout,
                runner,
            ),
            runner=runner,
            log=log,
        )

    def build_command(self, configuration: str) -> str:
        values = {
            "{solution}": shlex.quote(self.solution) if self.solution else "",
            "{configuration}": configuration,
            "{verbosity}": self.verbosity,
        }
        command = self.command
        for placeholder, value in values.items():
            command = command.replace(placeholder, value)
        return " ".join(command.split())

    def validate(
        self,
        configuration: str | None = None,
        cancel: threading.Event | None = None,
    ) -> BuildValidationResult:
        configuration = configuration or self.configuration
        result = BuildValidationResult(
            configuration=configuration,
            started_at=datetime.now(),
        )

        with self.log.span(
            "Validating build ({configuration})",
            configuration=configuration,
        ):
            try:
                self._run(result, cancel)
            except CommandTimeoutError as e:
                result.timed_out = True
                result.exit_code = -1
                result.output = e.output
                result.validation_errors.append(str(e))
            except CommandCancelledError as e:
                result.output = e.output
                result.validation_errors.append(str(e))
            except Exception as e:
                result.validation_errors.append(
                    f"Build validation failed with exception: {e}"
                )

            if result.validation_errors:
                result.build_successful = False
                self.log.error(
                    "Build validation failed: {errors}",
                    errors="; ".join(result.validation_errors),
                )

        result.finished_at = datetime.now()
        self.log.info(
            "Build {status}: {errors} errors, {warnings} warnings",
            status="succeeded" if result.build_successful else "failed",
            errors=result.error_count,
            warnings=result.warning_count,
        )
        return result

    def _run(
        self,
        result: BuildValidationResult,
        cancel: threading.Event | None,
    ) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        result.log_file = (
            self.output_dir
            / f"build-{result.configuration}-{result.started_at:%Y%m%d-%H%M%S}.log"
        )

        completed = self.runner.execute(
            self.build_command(result.configuration),
            cwd=self.project_root,
            timeout=self.timeout,
            log_file=result.log_file,
            log_level="spew",
            check=False,
            cancel=cancel,
        )
        result.output = completed.output
        result.exit_code = completed.exited
        result.build_successful = completed.ok

        parsed = parse_output(completed.output)
        result.errors = parsed.errors
        result.warnings = parsed.warnings
        result.error_count = parsed.error_count
        result.warning_count = parsed.warning_count

        result.conflicts_by_category = categorize(
            parsed.errors, self.categories
        )
        result.conflict_counts = {
            key: len(errors)
            for key, errors in result.conflicts_by_category.items()
        }
        result.analysis = analyze(
            parsed.errors, result.conflict_counts, self.categories
        )

        if result.build_successful:
            for check in self.checks:
                try:
                    outcome = check.run(self.project_root, result.configuration)
                except Exception as e:
                    self.log.warn(
                        "Functionality check {name} raised: {error}",
                        name=check.name, error=str(e),
                    )
                    continue
                result.functionality_checks.append(outcome)


__all__ = ["BuildValidator", "DEFAULT_COMMAND"]
