from __future__ import annotations

"""
Frame file naming and writing.

Frames are named ``<prefix><counter><suffix>`` (``diffusion-7.png``). The
counter is not zero-padded, so consumers must order frames with
:func:`list_frames` rather than by plain string sort.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import List

from matplotlib.figure import Figure

from ..errors import FrameWriteError
from ..logs import getLogger

logger = getLogger(__name__)

DEFAULT_PREFIX = "diffusion-"
DEFAULT_SUFFIX = ".png"


def frame_filename(counter: int, prefix: str = DEFAULT_PREFIX, suffix: str = DEFAULT_SUFFIX) -> str:
    return f"{prefix}{int(counter)}{suffix}"


def frame_number(path: str | os.PathLike[str], prefix: str = DEFAULT_PREFIX, suffix: str = DEFAULT_SUFFIX) -> int | None:
    """Return the counter embedded in a frame file name, or None if it is not a frame."""
    match = re.fullmatch(rf"{re.escape(prefix)}(\d+){re.escape(suffix)}", Path(path).name)
    if match is None:
        return None
    return int(match.group(1))


def list_frames(
    directory: str | os.PathLike[str],
    prefix: str = DEFAULT_PREFIX,
    suffix: str = DEFAULT_SUFFIX,
) -> List[Path]:
    """
    Return the frame files in ``directory`` in ascending numeric counter order,
    the order an animation assembly step must consume them in.
    """
    frames = []
    for entry in Path(directory).iterdir():
        number = frame_number(entry, prefix, suffix)
        if number is not None and entry.is_file():
            frames.append((number, entry))
    frames.sort()
    return [path for _, path in frames]


def ensure_writable_dir(directory: str | os.PathLike[str]) -> Path:
    """Raise FrameWriteError unless ``directory`` is an existing writable directory."""
    path = Path(directory)
    if not path.exists():
        raise FrameWriteError(f"Output directory {str(path)!r} does not exist")
    if not path.is_dir():
        raise FrameWriteError(f"Output path {str(path)!r} is not a directory")
    if not os.access(path, os.W_OK | os.X_OK):
        raise FrameWriteError(f"Output directory {str(path)!r} is not writable")
    return path


def write_figure_atomic(fig: Figure, path: Path, *, dpi: int) -> None:
    """
    Save ``fig`` to ``path`` via a temporary file in the same directory and an
    atomic rename, so a failed write never leaves a truncated frame behind and
    never touches a previously written one.
    """
    fmt = path.suffix.lstrip(".") or None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=path.suffix, dir=path.parent)
    except OSError as exc:
        raise FrameWriteError(f"Could not create a frame file in {str(path.parent)!r}: {exc}") from exc
    try:
        with os.fdopen(fd, "wb") as fh:
            fig.savefig(fh, format=fmt, dpi=dpi)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except OSError as exc:
        _discard(tmp_name)
        raise FrameWriteError(f"Could not write frame {str(path)!r}: {exc}") from exc
    except BaseException:
        _discard(tmp_name)
        raise
    logger.debug("Wrote frame %s", path)


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
