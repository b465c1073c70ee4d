from __future__ import annotations

import pytest

from probdiff.config import AppSettings, RenderSettings
from probdiff.graph import Graph, initial_state

NAMES = ["A", "B", "C", "D", "E", "F", "G"]

# 7-node ring-like example graph: two triangles joined by the C-D bridge.
EDGES = [
    ("A", "B", 2.0),
    ("A", "C", 1.0),
    ("B", "C", 1.0),
    ("C", "D", 1.0),
    ("D", "E", 2.0),
    ("D", "F", 1.0),
    ("E", "F", 2.0),
    ("E", "G", 1.0),
    ("F", "G", 1.0),
]


@pytest.fixture
def names() -> list[str]:
    return list(NAMES)


@pytest.fixture
def edges() -> list[tuple[str, str, float]]:
    return list(EDGES)


@pytest.fixture
def graph() -> Graph:
    return Graph.from_edges(NAMES, EDGES)


@pytest.fixture
def zero_state(graph: Graph) -> dict[str, float]:
    return initial_state(graph)


@pytest.fixture
def render_settings() -> RenderSettings:
    return RenderSettings(layout_seed=42)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(render=RenderSettings(layout_seed=42))


class RecordingRenderer:
    """Frame renderer stand-in that records calls instead of drawing."""

    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.calls: list[dict] = []
        self.fail_on = fail_on or set()

    def render(
        self,
        graph,
        state,
        output_dir,
        mass,
        source,
        visited,
        frame_counter,
        recursion_depth,
        *,
        layout=None,
    ) -> int:
        if frame_counter in self.fail_on:
            self.fail_on.discard(frame_counter)
            raise OSError(f"disk full at frame {frame_counter}")
        self.calls.append(
            {
                "state": dict(state),
                "mass": mass,
                "source": source,
                "visited": tuple(visited),
                "frame": frame_counter,
                "depth": recursion_depth,
                "layout": layout,
            }
        )
        return frame_counter + 1


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()
