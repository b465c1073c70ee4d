from __future__ import annotations

"""
Validation helpers for the per-run diffusion state.

- ProbabilityState : mapping node name -> non-negative finite mass.
- VisitationHistory: ordered tuple of node names, no duplicates, first
                     element is the diffusion source.
"""

import math
from typing import Dict, Mapping, Sequence, Tuple, TypeAlias

from ..errors import InvalidStateError
from .core import Graph

ProbabilityState: TypeAlias = Mapping[str, float]
VisitationHistory: TypeAlias = Tuple[str, ...]


def initial_state(graph: Graph) -> Dict[str, float]:
    """Return an all-zero probability state for every node of ``graph``."""
    return {name: 0.0 for name in graph.names}


def validate_state(graph: Graph, state: ProbabilityState) -> None:
    """
    Ensure ``state`` holds exactly one finite, non-negative value per graph node.
    """
    missing = [name for name in graph.names if name not in state]
    if missing:
        raise InvalidStateError(f"Probability state is missing graph nodes: {missing}")

    unknown = sorted(str(name) for name in state if name not in graph)
    if unknown:
        raise InvalidStateError(f"Probability state names unknown nodes: {unknown}")

    for name in graph.names:
        try:
            value = float(state[name])
        except (TypeError, ValueError) as exc:
            raise InvalidStateError(
                f"Probability of {name!r} is not a number: {state[name]!r}"
            ) from exc
        if not math.isfinite(value) or value < 0:
            raise InvalidStateError(
                f"Probability of {name!r} must be finite and non-negative, got {value}"
            )


def validate_node(graph: Graph, name: str, *, role: str = "node") -> None:
    if name not in graph:
        raise InvalidStateError(f"{role} {name!r} is not a graph node")


def validate_history(graph: Graph, history: Sequence[str]) -> VisitationHistory:
    """
    Check a visitation history against ``graph`` and return it as a tuple.
    """
    if isinstance(history, str):
        raise InvalidStateError(
            f"Visitation history must be a sequence of names, got the string {history!r}"
        )
    visited = tuple(history)
    if not visited:
        raise InvalidStateError("Visitation history must contain at least the source node")

    seen = set()
    for name in visited:
        validate_node(graph, name, role="Visited node")
        if name in seen:
            raise InvalidStateError(f"Visitation history lists {name!r} more than once")
        seen.add(name)
    return visited


def validate_mass(mass: float) -> float:
    try:
        value = float(mass)
    except (TypeError, ValueError) as exc:
        raise InvalidStateError(f"Diffused mass is not a number: {mass!r}") from exc
    if not math.isfinite(value) or value < 0:
        raise InvalidStateError(f"Diffused mass must be finite and non-negative, got {value}")
    return value
