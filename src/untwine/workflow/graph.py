"""Graph workflow definition."""

from pydantic_graph import Graph

from untwine.core.log import logger
from untwine.core.result import OrchestrationResult


def create_workflow():
    """Create the resolution workflow graph.

    DetectConflicts → CreateBackup → ResolveConflicts →
        ValidateBuild → FinalAnalysis

    DetectConflicts ends the run early when the initial build cannot
    be run or has no errors.

    Returns:
        Graph workflow ending in an OrchestrationResult
    """
    logger.debug("Building workflow graph")

    # Import nodes (lazy to avoid circular imports)
    from untwine.workflow.nodes.analyze import FinalAnalysis
    from untwine.workflow.nodes.backup import CreateBackup
    from untwine.workflow.nodes.detect import DetectConflicts
    from untwine.workflow.nodes.resolve import ResolveConflicts
    from untwine.workflow.nodes.validate import ValidateBuild

    workflow = Graph(
        nodes=(
            DetectConflicts,
            CreateBackup,
            ResolveConflicts,
            ValidateBuild,
            FinalAnalysis,
        ),
        name="resolve",
        run_end_type=OrchestrationResult,
    )

    return workflow
