from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np
import graphblas as gb
import networkx as nx
from graphblas import Matrix

from ..errors import InvalidGraphError


class Graph:
    """
    Undirected weighted graph over a fixed, ordered set of named nodes,
    backed by python-graphblas.

    Structure:
      - Nodes are 0..num_nodes-1, in the order of ``names``.
      - Adjacency: one symmetric Matrix[FP64] (num_nodes x num_nodes).
          * weight 0 / missing entry = no edge
          * zero diagonal, finite, non-negative weights
      - ``name -> index`` mapping for O(1) lookup by node name.

    Instances are immutable; every constructor validates the invariants and
    raises InvalidGraphError on violation.
    """

    __slots__ = (
        "_matrix",
        "_names",
        "_index",
    )

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    def __init__(self, matrix: Matrix, names: Sequence[str]) -> None:
        names = tuple(names)
        if matrix.nrows != matrix.ncols:
            raise InvalidGraphError(
                f"Adjacency matrix must be square, got {matrix.nrows}x{matrix.ncols}"
            )
        if matrix.nrows != len(names):
            raise InvalidGraphError(
                f"Got {len(names)} node names for a {matrix.nrows}x{matrix.ncols} matrix"
            )
        index = _build_index(names)

        rows, cols, vals = matrix.to_coo()
        arr = np.zeros((matrix.nrows, matrix.ncols), dtype=np.float64)
        arr[rows, cols] = vals
        _validate_dense(arr, names)

        self._names: Tuple[str, ...] = names
        self._index: Mapping[str, int] = MappingProxyType(index)
        self._matrix: Matrix = matrix

    @classmethod
    def from_dense(cls, adjacency: Iterable[Iterable[float]], names: Sequence[str]) -> Graph:
        """
        Build a Graph from a dense adjacency matrix (nested sequences or ndarray).

        Row/column ``i`` belongs to ``names[i]``.
        """
        try:
            arr = np.asarray(adjacency, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidGraphError(f"Adjacency matrix is not numeric: {exc}") from exc

        if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
            raise InvalidGraphError(f"Adjacency matrix must be square, got shape {arr.shape}")
        if arr.shape[0] != len(names):
            raise InvalidGraphError(
                f"Got {len(names)} node names for a {arr.shape[0]}x{arr.shape[1]} matrix"
            )

        rows, cols = np.nonzero(arr)
        mat = gb.Matrix.from_coo(
            rows.astype(np.int64),
            cols.astype(np.int64),
            arr[rows, cols],
            nrows=arr.shape[0],
            ncols=arr.shape[1],
            dtype=gb.dtypes.FP64,
        )
        return cls(mat, names)

    @classmethod
    def from_edges(
        cls,
        names: Sequence[str],
        edges: Iterable[Tuple[str, str, float]],
    ) -> Graph:
        """
        Build a Graph from undirected ``(a, b, weight)`` triples.

        Each edge is stored in both directions; listing an edge twice with
        different weights is an error.
        """
        index = _build_index(tuple(names))
        arr = np.zeros((len(index), len(index)), dtype=np.float64)
        for a, b, w in edges:
            try:
                i, j = index[a], index[b]
            except KeyError as exc:
                raise InvalidGraphError(f"Edge ({a!r}, {b!r}) names an unknown node {exc}") from exc
            w = float(w)
            if arr[i, j] not in (0.0, w):
                raise InvalidGraphError(
                    f"Conflicting weights for edge ({a!r}, {b!r}): {arr[i, j]} != {w}"
                )
            arr[i, j] = w
            arr[j, i] = w
        return cls.from_dense(arr, names)

    # ------------------------------------------------------------------ #
    # Node accessors
    # ------------------------------------------------------------------ #
    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    @property
    def num_nodes(self) -> int:
        return len(self._names)

    @property
    def matrix(self) -> Matrix:
        """The underlying adjacency Matrix. Treat as read-only."""
        return self._matrix

    def index_of(self, name: str) -> int:
        """Return the row/column index of ``name`` (KeyError if unknown)."""
        return self._index[name]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self):
        return iter(self._names)

    # ------------------------------------------------------------------ #
    # Structural accessors
    # ------------------------------------------------------------------ #
    def weight(self, a: str, b: str) -> float:
        """Edge weight between ``a`` and ``b``; 0.0 when there is no edge."""
        value = self._matrix.get(self._index[a], self._index[b])
        return 0.0 if value is None else float(value)

    def neighbors(self, name: str) -> Dict[str, float]:
        """
        Return the neighbours of ``name`` as an ordered ``name -> weight`` dict,
        following node order.
        """
        row = self._matrix[self._index[name], :].new()
        indices, values = row.to_coo()
        order = np.argsort(indices, kind="stable")
        return {
            self._names[int(indices[k])]: float(values[k])
            for k in order
            if values[k] != 0
        }

    def edges(self) -> List[Tuple[str, str, float]]:
        """Each undirected edge once, as ``(a, b, weight)`` with index(a) < index(b)."""
        rows, cols, vals = self._matrix.to_coo()
        out = [
            (int(r), int(c), float(v))
            for r, c, v in zip(rows, cols, vals)
            if r < c and v != 0
        ]
        out.sort()
        return [(self._names[r], self._names[c], v) for r, c, v in out]

    def to_dense(self) -> np.ndarray:
        """Return the adjacency as a dense float64 ndarray."""
        rows, cols, vals = self._matrix.to_coo()
        arr = np.zeros((self.num_nodes, self.num_nodes), dtype=np.float64)
        arr[rows, cols] = vals
        return arr

    def to_networkx(self) -> nx.Graph:
        """Return an undirected networkx graph with a ``weight`` edge attribute."""
        g = nx.Graph()
        g.add_nodes_from(self._names)
        g.add_weighted_edges_from(self.edges())
        return g

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    def __repr__(self) -> str:
        return f"Graph(num_nodes={self.num_nodes}, num_edges={len(self.edges())})"


def _build_index(names: Tuple[str, ...]) -> Dict[str, int]:
    if not names:
        raise InvalidGraphError("Graph must have at least one node")
    index: Dict[str, int] = {}
    for i, name in enumerate(names):
        if not isinstance(name, str) or not name:
            raise InvalidGraphError(f"Node names must be non-empty strings, got {name!r}")
        if name in index:
            raise InvalidGraphError(f"Duplicate node name {name!r}")
        index[name] = i
    return index


def _validate_dense(arr: np.ndarray, names: Sequence[str]) -> None:
    if not np.all(np.isfinite(arr)):
        raise InvalidGraphError("Adjacency matrix contains non-finite weights")
    if np.any(arr < 0):
        i, j = (int(k) for k in np.argwhere(arr < 0)[0])
        raise InvalidGraphError(
            f"Negative weight {arr[i, j]} between {names[i]!r} and {names[j]!r}"
        )
    diag = np.flatnonzero(np.diag(arr))
    if diag.size:
        name = names[int(diag[0])]
        raise InvalidGraphError(f"Self-loop on node {name!r}; the diagonal must be zero")
    asym = np.argwhere(arr != arr.T)
    if asym.size:
        i, j = (int(k) for k in asym[0])
        raise InvalidGraphError(
            f"Adjacency matrix is not symmetric: adj[{names[i]!r}][{names[j]!r}]={arr[i, j]} "
            f"!= adj[{names[j]!r}][{names[i]!r}]={arr[j, i]}"
        )
