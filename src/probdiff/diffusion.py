from __future__ import annotations

"""
Probability diffusion over a weighted graph.

Mass injected at a source node is split among the source's unvisited
neighbours in proportion to edge weight. Every neighbour whose share exceeds
the threshold passes its share on in turn, with itself appended to the
visitation history of that branch. The recursion is run as an explicit LIFO
work stack of DiffusionStep values, so depth is bounded by the heap rather
than the interpreter stack, and the state between steps is plain data.

One frame is rendered per step that moves mass; the frame counter is threaded
through every render call.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd

from .config import AppSettings, get_settings
from .errors import InvalidStateError
from .graph import (
    Graph,
    ProbabilityState,
    initial_state,
    validate_history,
    validate_mass,
    validate_node,
    validate_state,
)
from .logs import getLogger
from .render.layout import Layout, compute_layout

logger = getLogger(__name__)


class FrameRenderer(Protocol):
    """Anything that can render one diffusion frame and return the next counter."""

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
        """Write the frame named by ``frame_counter``; return ``frame_counter + 1``."""


@dataclass(frozen=True, slots=True)
class DiffusionStep:
    """A pending unit of work: diffuse ``mass`` out of ``source``."""

    mass: float
    source: str
    visited: Tuple[str, ...]
    depth: int


@dataclass(frozen=True, slots=True)
class StepRecord:
    """A completed step that moved mass."""

    index: int
    depth: int
    source: str
    mass: float
    visited: Tuple[str, ...]
    shares: Mapping[str, float]
    frame: Optional[int] = None


@dataclass(slots=True)
class DiffusionResult:
    state: Dict[str, float]
    frame_counter: int
    steps: List[StepRecord] = field(default_factory=list)

    @property
    def total_mass(self) -> float:
        return float(sum(self.state.values()))

    def to_frame(self) -> pd.DataFrame:
        """One row per step: index, depth, source, mass, visited, recipients, frame."""
        rows = [
            {
                "index": s.index,
                "depth": s.depth,
                "source": s.source,
                "mass": s.mass,
                "visited": list(s.visited),
                "recipients": list(s.shares),
                "frame": s.frame,
            }
            for s in self.steps
        ]
        if not rows:
            return pd.DataFrame(
                columns=["index", "depth", "source", "mass", "visited", "recipients", "frame"]
            )
        return pd.DataFrame(rows)


def split_mass(
    graph: Graph,
    source: str,
    mass: float,
    visited: Sequence[str],
) -> Dict[str, float]:
    """
    Split ``mass`` among the neighbours of ``source`` that are not in ``visited``,
    proportionally to ``|weight|``. Returns an empty dict when there is no such
    neighbour. Iteration order follows node order.
    """
    seen = set(visited)
    candidates = {n: abs(w) for n, w in graph.neighbors(source).items() if n not in seen}
    total = sum(candidates.values())
    if not candidates or total <= 0:
        return {}
    return {n: mass * w / total for n, w in candidates.items()}


class ProbabilityDiffuser:
    """
    Drives diffusion runs over a fixed graph and, optionally, renders one frame
    per step into ``output_dir``.
    """

    def __init__(
        self,
        graph: Graph,
        *,
        threshold: Optional[float] = None,
        renderer: Optional[FrameRenderer] = None,
        output_dir: Optional[str | os.PathLike[str]] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        """
        Parameters
        ----------
        graph:
            Graph to diffuse over; immutable for the lifetime of the diffuser.
        threshold:
            Shares at or below this value stay where they land. Defaults to
            ``settings.diffusion.threshold``.
        renderer:
            Optional frame renderer. ``output_dir`` is required when given.
        """
        if settings is None:
            settings = get_settings()
        if renderer is not None and output_dir is None:
            raise ValueError("output_dir is required when a renderer is given")

        self._graph = graph
        self._settings = settings
        self._threshold = float(settings.diffusion.threshold if threshold is None else threshold)
        if self._threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {self._threshold}")
        self._renderer = renderer
        self._output_dir = output_dir

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def threshold(self) -> float:
        return self._threshold

    def diffuse(
        self,
        mass: float,
        source: str,
        state: Optional[ProbabilityState] = None,
        visited: Optional[Sequence[str]] = None,
        *,
        frame_counter: int = 1,
        recursion_depth: int = 1,
    ) -> DiffusionResult:
        """
        Inject ``mass`` at ``source`` and diffuse it until every remaining share
        is at or below the threshold or has nowhere left to go.

        ``state`` is not mutated; the updated state is returned in the result.
        The total mass of the returned state equals the input total plus ``mass``.

        With ``recursion_depth == 1`` the run is fresh and ``visited`` must start
        with ``source``. A larger depth continues a branch of an earlier run; its
        history starts at that run's source and ends with ``source``, as the
        history of every child step does.
        """
        graph = self._graph
        validate_node(graph, source, role="Source node")
        mass = validate_mass(mass)
        if state is None:
            current = initial_state(graph)
        else:
            validate_state(graph, state)
            current = {name: float(state[name]) for name in graph.names}
        history = validate_history(graph, (source,) if visited is None else visited)
        if recursion_depth == 1 and history[0] != source:
            raise InvalidStateError(
                f"A fresh run must start its visitation history at the source {source!r}, "
                f"got {history[0]!r}"
            )
        if recursion_depth > 1 and history[-1] != source:
            raise InvalidStateError(
                f"A continued run must end its visitation history at the source {source!r}, "
                f"got {history[-1]!r}"
            )

        layout = self._run_layout()
        current[source] += mass
        result = DiffusionResult(state=current, frame_counter=frame_counter)

        logger.info(
            "Diffusing %.4f from %s (threshold=%s, depth=%d, frame=%d)",
            mass,
            source,
            self._threshold,
            recursion_depth,
            frame_counter,
        )

        stack: List[DiffusionStep] = [
            DiffusionStep(mass=mass, source=source, visited=history, depth=recursion_depth)
        ]
        while stack:
            step = stack.pop()
            children = self._apply(step, result, layout)
            # reversed so that the first neighbour is processed first
            stack.extend(reversed(children))

        logger.info(
            "Diffusion from %s finished: %d steps, next frame %d",
            source,
            len(result.steps),
            result.frame_counter,
        )
        return result

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _apply(
        self,
        step: DiffusionStep,
        result: DiffusionResult,
        layout: Optional[Layout],
    ) -> List[DiffusionStep]:
        shares = split_mass(self._graph, step.source, step.mass, step.visited)
        if not shares:
            logger.debug("No unvisited neighbours of %s; %.4f stays", step.source, step.mass)
            return []

        state = result.state
        state[step.source] = max(state[step.source] - step.mass, 0.0)
        for name, share in shares.items():
            state[name] += share

        frame = self._render(step, result, layout)
        result.steps.append(
            StepRecord(
                index=len(result.steps),
                depth=step.depth,
                source=step.source,
                mass=step.mass,
                visited=step.visited,
                shares=dict(shares),
                frame=frame,
            )
        )
        logger.debug(
            "Step %d: %.4f from %s to %s",
            len(result.steps) - 1,
            step.mass,
            step.source,
            list(shares),
        )

        return [
            DiffusionStep(
                mass=share,
                source=name,
                visited=step.visited + (name,),
                depth=step.depth + 1,
            )
            for name, share in shares.items()
            if share > self._threshold
        ]

    def _render(
        self,
        step: DiffusionStep,
        result: DiffusionResult,
        layout: Optional[Layout],
    ) -> Optional[int]:
        if self._renderer is None:
            return None

        counter = result.frame_counter
        try:
            result.frame_counter = self._renderer.render(
                self._graph,
                result.state,
                self._output_dir,
                step.mass,
                step.source,
                step.visited,
                counter,
                step.depth,
                layout=layout,
            )
        except OSError:
            if not self._settings.diffusion.skip_failed_frames:
                raise
            logger.exception("Frame %d failed; continuing without it", counter)
            return None
        return counter

    def _run_layout(self) -> Optional[Layout]:
        render = self._settings.render
        if self._renderer is None or render.layout_mode != "fixed":
            return None
        return compute_layout(self._graph, seed=render.layout_seed)
