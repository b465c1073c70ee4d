try:
    from ._version import version as __version__  # populated by setuptools-scm
except ModuleNotFoundError:
    __version__ = "0.0.0"

from .errors import DiffusionError, InvalidGraphError, InvalidStateError, FrameWriteError
from .graph import Graph
from .render import DiffusionSnapshotRenderer
from .diffusion import ProbabilityDiffuser, DiffusionResult, split_mass

__all__ = [
    "__version__",
    "DiffusionError",
    "InvalidGraphError",
    "InvalidStateError",
    "FrameWriteError",
    "Graph",
    "DiffusionSnapshotRenderer",
    "ProbabilityDiffuser",
    "DiffusionResult",
    "split_mass",
]
