from __future__ import annotations

"""Exception types raised by probdiff."""


class DiffusionError(Exception):
    """Base exception for graph/state contract violations."""
    pass


class InvalidGraphError(DiffusionError):
    """Adjacency input is malformed (not square, asymmetric, bad weights, ...)."""
    pass


class InvalidStateError(DiffusionError):
    """Probability state or node-name references are inconsistent with the graph."""
    pass


class FrameWriteError(OSError):
    """A frame file could not be created or written."""
    pass
