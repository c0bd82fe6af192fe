"""Agents for the TruthStack pipeline."""

from .analyst import AnalystAgent
from .assembler import ResultAssembler, apply_evidence_guardrail, build_usage_record
from .debate import DebateAgent

__all__ = [
    "AnalystAgent",
    "ResultAssembler",
    "apply_evidence_guardrail",
    "build_usage_record",
    "DebateAgent",
]
