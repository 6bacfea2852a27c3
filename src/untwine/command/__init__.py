"""CLI command modules for untwine."""

from untwine.command.backups import BackupsCommand, CleanupCommand
from untwine.command.resolve import ResolveCommand
from untwine.command.rollback import RollbackCommand
from untwine.command.scan import ScanCommand
from untwine.command.validate import ValidateCommand

__all__ = [
    "BackupsCommand",
    "CleanupCommand",
    "ResolveCommand",
    "RollbackCommand",
    "ScanCommand",
    "ValidateCommand",
]
