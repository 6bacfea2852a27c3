#!/usr/bin/env python3
"""untwine CLI - resolve ambiguous type references in C# projects."""

import asyncio
import sys

from pydantic import Field
from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from untwine.command.backups import BackupsCommand, CleanupCommand
from untwine.command.resolve import ResolveCommand
from untwine.command.rollback import RollbackCommand
from untwine.command.scan import ScanCommand
from untwine.command.validate import ValidateCommand
from untwine.core.config import State
from untwine.core.log import logger


class CliState(State):
    """Resolve namespace-ambiguity build errors in C# projects.

    untwine builds the project, finds type names that two imported
    frameworks both define (TaskDialog, MessageBox, WPF/WinForms
    controls, file dialogs, View), rewrites them to explicit aliases
    after backing up every file it touches, and builds again.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.build.configuration Release)
    2. untwine.yaml in the current directory, plus --include files
    3. untwine.yaml in the user config directory
    4. .env file
    5. Environment variables
       (UNTWINE_CONFIG__BUILD__CONFIGURATION=Release)
    """

    resolve: CliSubCommand[ResolveCommand]
    scan: CliSubCommand[ScanCommand]
    validate_build: CliSubCommand[ValidateCommand] = Field(alias="validate")
    rollback: CliSubCommand[RollbackCommand]
    backups: CliSubCommand[BackupsCommand]
    cleanup: CliSubCommand[CleanupCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Use logger as context manager to ensure sinks are flushed on exit
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
