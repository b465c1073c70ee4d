"""
probdiff.graph
==============

Named weighted graph and diffusion state.

Public API:

- Graph            : immutable symmetric weighted graph (python-graphblas backed).
- initial_state    : all-zero probability state for a graph.
- validate_state   : check a ProbabilityState against a graph.
- validate_history : check a VisitationHistory against a graph.
"""

from __future__ import annotations

from .core import Graph
from .state import (
    ProbabilityState,
    VisitationHistory,
    initial_state,
    validate_history,
    validate_mass,
    validate_node,
    validate_state,
)

__all__ = [
    "Graph",
    "ProbabilityState",
    "VisitationHistory",
    "initial_state",
    "validate_history",
    "validate_mass",
    "validate_node",
    "validate_state",
]
