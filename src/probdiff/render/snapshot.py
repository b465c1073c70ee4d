from __future__ import annotations

"""
Per-step diffusion snapshots.

One call renders one frame: node fill shows visited/unvisited status, labels
carry ``<name>:<probability>``, edge widths follow ``|weight|``, the current
diffusion source is outlined, and the title records the diffused mass, the
source and the recursion depth. The caller owns the frame counter; each call
returns the next value to use.
"""

import numbers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

# Use non-interactive backend for headless environments (CI/servers)
import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import networkx as nx

from ..config import RenderSettings, get_settings
from ..errors import InvalidGraphError
from ..graph import (
    Graph,
    ProbabilityState,
    validate_history,
    validate_mass,
    validate_node,
    validate_state,
)
from ..logs import getLogger
from .frames import ensure_writable_dir, frame_filename, write_figure_atomic
from .layout import Layout, check_layout, compute_layout

logger = getLogger(__name__)

LEGEND_LABELS: Tuple[str, str] = ("Visited", "Unvisited")


def format_label(name: str, probability: float) -> str:
    return f"{name}:{probability:.2f}"


def format_title(mass: float, source: str, recursion_depth: int) -> str:
    return f"Diffuse {mass:.2f} from {source} at recursion level {recursion_depth}."


@dataclass(frozen=True, slots=True)
class NodeDecision:
    """How a single node is drawn in a frame."""

    name: str
    probability: float
    visited: bool
    is_source: bool
    color: str
    label: str


@dataclass(frozen=True, slots=True)
class EdgeDecision:
    """How a single undirected edge is drawn in a frame."""

    source: str
    target: str
    weight: float
    width: float


@dataclass(frozen=True, slots=True)
class FramePlan:
    """Everything drawn in one frame, independent of node positions."""

    title: str
    source: str
    nodes: Tuple[NodeDecision, ...]
    edges: Tuple[EdgeDecision, ...]
    legend: Tuple[Tuple[str, str], ...]

    def node(self, name: str) -> NodeDecision:
        for decision in self.nodes:
            if decision.name == name:
                return decision
        raise KeyError(name)

    @property
    def visited(self) -> Tuple[str, ...]:
        return tuple(d.name for d in self.nodes if d.visited)


@dataclass(frozen=True, slots=True)
class FrameRecord:
    """Result of a rendered frame."""

    frame_number: int
    next_counter: int
    path: Path
    plan: FramePlan


class DiffusionSnapshotRenderer:
    """
    Render diffusion frames to ``<output_dir>/<prefix><counter><suffix>``.

    Single-threaded: concurrent calls against the same directory and counter
    value would write the same file. Reusing a counter overwrites that frame.
    """

    def __init__(self, settings: Optional[RenderSettings] = None) -> None:
        if settings is None:
            settings = get_settings().render
        else:
            settings.validate_render()
        self._settings = settings

    @property
    def settings(self) -> RenderSettings:
        return self._settings

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def render(
        self,
        graph: Graph,
        state: ProbabilityState,
        output_dir: str | os.PathLike[str],
        mass: float,
        source: str,
        visited: Sequence[str],
        frame_counter: int,
        recursion_depth: int,
        *,
        layout: Optional[Layout] = None,
    ) -> int:
        """
        Write one frame and return ``frame_counter + 1``.

        Raises
        ------
        InvalidGraphError
            ``graph`` is not a valid Graph.
        InvalidStateError
            ``state``, ``source`` or ``visited`` is inconsistent with ``graph``.
        FrameWriteError
            ``output_dir`` is missing or not writable, or the write failed.
        """
        record = self.render_frame(
            graph,
            state,
            output_dir,
            mass,
            source,
            visited,
            frame_counter,
            recursion_depth,
            layout=layout,
        )
        return record.next_counter

    def render_frame(
        self,
        graph: Graph,
        state: ProbabilityState,
        output_dir: str | os.PathLike[str],
        mass: float,
        source: str,
        visited: Sequence[str],
        frame_counter: int,
        recursion_depth: int,
        *,
        layout: Optional[Layout] = None,
    ) -> FrameRecord:
        """Same as :meth:`render`, but also return the per-node/per-edge decisions."""
        plan = self.plan_frame(graph, state, mass, source, visited, recursion_depth)
        counter = _check_counter(frame_counter)

        directory = ensure_writable_dir(output_dir)
        if layout is None:
            layout = compute_layout(graph, seed=self._settings.layout_seed)
        else:
            check_layout(graph, layout)

        s = self._settings
        path = directory / frame_filename(counter, s.file_prefix, s.file_suffix)
        self._draw(graph, plan, layout, path)

        logger.debug(
            "Frame %d written to %s (source=%s depth=%s visited=%d)",
            counter,
            path,
            plan.source,
            recursion_depth,
            len(plan.visited),
        )
        return FrameRecord(frame_number=counter, next_counter=counter + 1, path=path, plan=plan)

    def plan_frame(
        self,
        graph: Graph,
        state: ProbabilityState,
        mass: float,
        source: str,
        visited: Sequence[str],
        recursion_depth: int,
    ) -> FramePlan:
        """Validate the inputs and decide colours, labels and widths. Draws nothing."""
        if not isinstance(graph, Graph):
            raise InvalidGraphError(f"Expected a Graph, got {type(graph).__name__}")
        validate_state(graph, state)
        validate_node(graph, source, role="Source node")
        history = set(validate_history(graph, visited))
        mass = validate_mass(mass)
        if isinstance(recursion_depth, bool) or not isinstance(recursion_depth, numbers.Integral):
            raise TypeError(f"recursion_depth must be an int, got {recursion_depth!r}")

        s = self._settings
        nodes = []
        for name in graph.names:
            probability = float(state[name])
            is_visited = name in history
            nodes.append(
                NodeDecision(
                    name=name,
                    probability=probability,
                    visited=is_visited,
                    is_source=name == source,
                    color=s.visited_color if is_visited else s.unvisited_color,
                    label=format_label(name, probability),
                )
            )

        edges = tuple(
            EdgeDecision(source=a, target=b, weight=w, width=s.edge_width_scale * abs(w))
            for a, b, w in graph.edges()
        )

        return FramePlan(
            title=format_title(mass, source, int(recursion_depth)),
            source=source,
            nodes=tuple(nodes),
            edges=edges,
            legend=(
                (LEGEND_LABELS[0], s.visited_color),
                (LEGEND_LABELS[1], s.unvisited_color),
            ),
        )

    # ------------------------------------------------------------------ #
    # Drawing
    # ------------------------------------------------------------------ #

    def _draw(self, graph: Graph, plan: FramePlan, layout: Layout, path: Path) -> None:
        s = self._settings
        g = graph.to_networkx()
        pos = {name: layout[name] for name in graph.names}

        fig, ax = plt.subplots(figsize=(s.width_px / s.dpi, s.height_px / s.dpi), dpi=s.dpi)
        try:
            if plan.edges:
                nx.draw_networkx_edges(
                    g,
                    pos,
                    edgelist=[(e.source, e.target) for e in plan.edges],
                    width=[e.width for e in plan.edges],
                    edge_color="gray",
                    ax=ax,
                )
            nx.draw_networkx_nodes(
                g,
                pos,
                nodelist=[n.name for n in plan.nodes],
                node_color=[n.color for n in plan.nodes],
                node_size=s.node_size,
                ax=ax,
            )
            # source marker: an unfilled ring around the node
            nx.draw_networkx_nodes(
                g,
                pos,
                nodelist=[plan.source],
                node_color="none",
                edgecolors=s.source_outline_color,
                linewidths=2.5,
                node_size=s.node_size * 2.0,
                ax=ax,
            )
            label_pos = {name: (x, y + s.label_offset) for name, (x, y) in pos.items()}
            nx.draw_networkx_labels(
                g,
                label_pos,
                labels={n.name: n.label for n in plan.nodes},
                font_size=9,
                ax=ax,
            )

            ax.set_title(plan.title, fontsize=10)
            ax.legend(
                handles=[mpatches.Patch(color=color, label=label) for label, color in plan.legend],
                loc="lower right",
                fontsize=8,
            )
            ax.margins(0.2)
            ax.set_axis_off()

            write_figure_atomic(fig, path, dpi=s.dpi)
        finally:
            plt.close(fig)


def _check_counter(frame_counter: int) -> int:
    if isinstance(frame_counter, bool) or not isinstance(frame_counter, numbers.Integral):
        raise TypeError(f"frame_counter must be an int, got {frame_counter!r}")
    if frame_counter < 0:
        raise ValueError(f"frame_counter must be non-negative, got {frame_counter}")
    return int(frame_counter)
