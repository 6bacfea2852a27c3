"""Workflow nodes for the resolution graph."""

from untwine.workflow.nodes.analyze import FinalAnalysis
from untwine.workflow.nodes.backup import CreateBackup
from untwine.workflow.nodes.detect import DetectConflicts
from untwine.workflow.nodes.resolve import ResolveConflicts
from untwine.workflow.nodes.validate import ValidateBuild

__all__ = [
    "DetectConflicts",
    "CreateBackup",
    "ResolveConflicts",
    "ValidateBuild",
    "FinalAnalysis",
]
