from __future__ import annotations

import graphblas as gb
import matplotlib.image as mpimg
import matplotlib.pyplot as plt
import pytest
from matplotlib.figure import Figure

from probdiff.config import RenderSettings
from probdiff.errors import FrameWriteError, InvalidGraphError, InvalidStateError
from probdiff.graph import Graph
from probdiff.render import DiffusionSnapshotRenderer, compute_layout, list_frames


def test_end_to_end_single_frame(graph, zero_state, render_settings, tmp_path) -> None:
    """
    First frame of a run from A with mass 1.0: one file named after counter 1,
    only A visited and outlined as the source, and the title carries 1.00, A and 1.
    """
    renderer = DiffusionSnapshotRenderer(render_settings)

    record = renderer.render_frame(
        graph, zero_state, tmp_path, 1.0, "A", ["A"], 1, 1
    )

    assert record.next_counter == 2
    assert record.frame_number == 1
    assert record.path == tmp_path / "diffusion-1.png"
    assert [p.name for p in tmp_path.iterdir()] == ["diffusion-1.png"]

    plan = record.plan
    assert plan.visited == ("A",)
    assert plan.node("A").is_source
    assert plan.node("A").color == "red"
    for name in "BCDEFG":
        decision = plan.node(name)
        assert not decision.visited
        assert not decision.is_source
        assert decision.color == "blue"
    assert "1.00" in plan.title
    assert "from A" in plan.title
    assert plan.title == "Diffuse 1.00 from A at recursion level 1."
    assert plan.legend == (("Visited", "red"), ("Unvisited", "blue"))


def test_frame_has_fixed_dimensions(graph, zero_state, render_settings, tmp_path) -> None:
    renderer = DiffusionSnapshotRenderer(render_settings)
    renderer.render(graph, zero_state, tmp_path, 1.0, "A", ["A"], 1, 1)

    image = mpimg.imread(tmp_path / "diffusion-1.png")
    assert image.shape[:2] == (500, 500)


def test_render_returns_incremented_counter(graph, zero_state, render_settings, tmp_path) -> None:
    renderer = DiffusionSnapshotRenderer(render_settings)
    assert renderer.render(graph, zero_state, tmp_path, 0.5, "C", ["A", "C"], 41, 3) == 42
    assert (tmp_path / "diffusion-41.png").is_file()


def test_sequential_frames(graph, zero_state, render_settings, tmp_path) -> None:
    """Three calls threading the counter 1 -> 2 -> 3 while the history grows by one."""
    renderer = DiffusionSnapshotRenderer(render_settings)
    layout = compute_layout(graph, seed=1)
    history = ["A"]
    counter = 1
    visited_sizes = []

    for depth, (source, nxt) in enumerate([("A", "B"), ("B", "C"), ("C", "D")], start=1):
        record = renderer.render_frame(
            graph, zero_state, tmp_path, 1.0, source, history, counter, depth, layout=layout
        )
        visited_sizes.append(len(record.plan.visited))
        counter = record.next_counter
        history = history + [nxt]

    assert counter == 4
    assert visited_sizes == [1, 2, 3]
    assert [p.name for p in list_frames(tmp_path)] == [
        "diffusion-1.png",
        "diffusion-2.png",
        "diffusion-3.png",
    ]


def test_labels_carry_probability(graph, zero_state, render_settings) -> None:
    zero_state.update({"A": 0.125, "B": 2 / 3})
    plan = DiffusionSnapshotRenderer(render_settings).plan_frame(
        graph, zero_state, 0.333, "B", ["A", "B"], 2
    )
    assert plan.node("A").label == "A:0.12"
    assert plan.node("B").label == "B:0.67"
    assert plan.node("G").label == "G:0.00"
    assert plan.title == "Diffuse 0.33 from B at recursion level 2."


def test_edge_width_monotone_in_weight(graph, zero_state, render_settings) -> None:
    """Heavier edges are never drawn thinner than lighter ones."""
    plan = DiffusionSnapshotRenderer(render_settings).plan_frame(
        graph, zero_state, 1.0, "A", ["A"], 1
    )
    assert len(plan.edges) == 9
    by_weight = sorted(plan.edges, key=lambda e: e.weight)
    widths = [e.width for e in by_weight]
    assert widths == sorted(widths)
    assert all(e.width == pytest.approx(5.0 * e.weight) for e in plan.edges)


def test_custom_colors_and_prefix(graph, zero_state, tmp_path) -> None:
    settings = RenderSettings(
        visited_color="#ff8800",
        unvisited_color="gray",
        file_prefix="step_",
        layout_seed=3,
    )
    record = DiffusionSnapshotRenderer(settings).render_frame(
        graph, zero_state, tmp_path, 1.0, "A", ["A", "B"], 7, 2
    )
    assert record.path.name == "step_7.png"
    assert record.plan.node("B").color == "#ff8800"
    assert record.plan.node("C").color == "gray"


def test_reused_counter_overwrites(graph, zero_state, render_settings, tmp_path) -> None:
    """Counters are caller-owned: rendering the same number twice replaces the frame."""
    renderer = DiffusionSnapshotRenderer(render_settings)
    renderer.render(graph, zero_state, tmp_path, 1.0, "A", ["A"], 5, 1)
    renderer.render(graph, zero_state, tmp_path, 0.5, "B", ["A", "B"], 5, 2)
    assert [p.name for p in tmp_path.iterdir()] == ["diffusion-5.png"]


def test_missing_state_entry(graph, zero_state, render_settings, tmp_path) -> None:
    del zero_state["D"]
    with pytest.raises(InvalidStateError):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, tmp_path, 1.0, "A", ["A"], 1, 1
        )
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize(
    "source, visited",
    [
        ("Z", ["A"]),
        ("A", ["A", "Q"]),
        ("A", ["A", "A"]),
    ],
)
def test_unknown_names(graph, zero_state, render_settings, tmp_path, source, visited) -> None:
    with pytest.raises(InvalidStateError):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, tmp_path, 1.0, source, visited, 1, 1
        )


def test_not_a_graph(zero_state, render_settings, tmp_path) -> None:
    with pytest.raises(InvalidGraphError):
        DiffusionSnapshotRenderer(render_settings).render(
            [[0, 1], [1, 0]], zero_state, tmp_path, 1.0, "A", ["A"], 1, 1
        )


def test_missing_output_directory(graph, zero_state, render_settings, tmp_path) -> None:
    with pytest.raises(FrameWriteError):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, tmp_path / "nope", 1.0, "A", ["A"], 1, 1
        )


def test_output_path_is_a_file(graph, zero_state, render_settings, tmp_path) -> None:
    target = tmp_path / "frames"
    target.write_text("not a directory")
    with pytest.raises(IOError):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, target, 1.0, "A", ["A"], 1, 1
        )


@pytest.mark.parametrize("counter, exc", [(-1, ValueError), (1.5, TypeError), (True, TypeError)])
def test_bad_counter(graph, zero_state, render_settings, tmp_path, counter, exc) -> None:
    with pytest.raises(exc):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, tmp_path, 1.0, "A", ["A"], counter, 1
        )
    assert list(tmp_path.iterdir()) == []


def test_incomplete_layout(graph, zero_state, render_settings, tmp_path) -> None:
    layout = compute_layout(graph, seed=0)
    del layout["G"]
    with pytest.raises(InvalidStateError, match="Layout"):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, tmp_path, 1.0, "A", ["A"], 1, 1, layout=layout
        )


def test_edgeless_graph_renders(render_settings, tmp_path) -> None:
    g = Graph.from_edges(["solo"], [])
    renderer = DiffusionSnapshotRenderer(render_settings)
    assert renderer.render(g, {"solo": 1.0}, tmp_path, 1.0, "solo", ["solo"], 0, 1) == 1
    assert (tmp_path / "diffusion-0.png").is_file()


def test_seeded_layout_is_stable(graph) -> None:
    assert compute_layout(graph, seed=11) == compute_layout(graph, seed=11)
    assert set(compute_layout(graph)) == set(graph.names)


def test_malformed_matrix_never_reaches_a_frame(render_settings, tmp_path) -> None:
    """
    A one-directional, negative, self-looped adjacency is refused when the
    Graph is built, so no renderer call can draw it.
    """
    mat = gb.Matrix.from_coo([0, 0, 2], [1, 2, 2], [1.0, -3.0, 4.0], nrows=3, ncols=3)
    with pytest.raises(InvalidGraphError):
        graph = Graph(mat, ["A", "B", "C"])
        DiffusionSnapshotRenderer(render_settings).render(
            graph, {"A": 1.0, "B": 0.0, "C": 0.0}, tmp_path, 1.0, "A", ["A"], 1, 1
        )
    assert list(tmp_path.iterdir()) == []


class FailingSave:
    """
    Stand-in for Figure.savefig that writes a partial image, then fails.
    Set on the class as a plain callable, so it is not bound to the figure.
    """

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, fh, **kwargs) -> None:
        self.calls += 1
        fh.write(b"\x89PNG partial")
        raise OSError("No space left on device")


def test_failed_write_leaves_earlier_frames_intact(
    graph, zero_state, render_settings, tmp_path, monkeypatch
) -> None:
    """
    Frame 1 is written, then saving frame 2 fails half-way: the error surfaces
    as FrameWriteError, frame 1 is byte-identical, no temporary or truncated
    file is left behind and the figure has been closed.
    """
    renderer = DiffusionSnapshotRenderer(render_settings)
    assert renderer.render(graph, zero_state, tmp_path, 1.0, "A", ["A"], 1, 1) == 2
    first = (tmp_path / "diffusion-1.png").read_bytes()

    failing = FailingSave()
    monkeypatch.setattr(Figure, "savefig", failing)

    with pytest.raises(FrameWriteError, match="diffusion-2.png"):
        renderer.render(graph, zero_state, tmp_path, 0.5, "B", ["A", "B"], 2, 2)

    assert failing.calls == 1
    assert (tmp_path / "diffusion-1.png").read_bytes() == first
    assert [p.name for p in tmp_path.iterdir()] == ["diffusion-1.png"]
    assert plt.get_fignums() == []


def test_figure_closed_when_drawing_fails(
    graph, zero_state, render_settings, tmp_path, monkeypatch
) -> None:
    """A non-I/O failure while saving still releases the figure and leaves no file."""

    def explode(fig, fh, **kwargs) -> None:
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr(Figure, "savefig", explode)
    with pytest.raises(RuntimeError, match="renderer crashed"):
        DiffusionSnapshotRenderer(render_settings).render(
            graph, zero_state, tmp_path, 1.0, "A", ["A"], 1, 1
        )
    assert list(tmp_path.iterdir()) == []
    assert plt.get_fignums() == []
