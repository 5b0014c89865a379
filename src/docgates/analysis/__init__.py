"""Pure analysis over the governed document set: parsing, graph, gates, diffs."""

from .gates import evaluate_gates, exit_code_for, summarize_documents, summarize_gate_results
from .graph import DocumentGraph, build_graph, load_graph
from .model import (
    ContextEntry,
    DocumentNode,
    ERROR_GATE_IDS,
    GATE_IDS,
    Violation,
    empty_results,
)

__all__ = [
    "ContextEntry",
    "DocumentGraph",
    "DocumentNode",
    "ERROR_GATE_IDS",
    "GATE_IDS",
    "Violation",
    "build_graph",
    "empty_results",
    "evaluate_gates",
    "exit_code_for",
    "load_graph",
    "summarize_documents",
    "summarize_gate_results",
]
