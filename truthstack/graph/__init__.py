"""LangGraph Orchestrator for TruthStack."""

from .orchestrator import (
    TruthStackGraph,
    create_graph,
    run_analysis,
    run_analysis_async,
)

__all__ = [
    "TruthStackGraph",
    "create_graph",
    "run_analysis",
    "run_analysis_async",
]
