from __future__ import annotations

"""Node placement for diffusion frames."""

from typing import Dict, Mapping, Optional, Tuple, TypeAlias

import networkx as nx

from ..errors import InvalidStateError
from ..graph import Graph

Layout: TypeAlias = Mapping[str, Tuple[float, float]]


def compute_layout(graph: Graph, *, seed: Optional[int] = None) -> Dict[str, Tuple[float, float]]:
    """
    Force-directed (Fruchterman-Reingold) layout of ``graph``, weighted by edge
    weight. Deterministic when ``seed`` is given.
    """
    pos = nx.spring_layout(graph.to_networkx(), weight="weight", seed=seed)
    return {name: (float(pos[name][0]), float(pos[name][1])) for name in graph.names}


def check_layout(graph: Graph, layout: Layout) -> None:
    missing = [name for name in graph.names if name not in layout]
    if missing:
        raise InvalidStateError(f"Layout has no position for nodes: {missing}")
