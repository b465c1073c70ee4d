"""
probdiff.render
===============

Frame rendering for diffusion runs.

Public API:

- DiffusionSnapshotRenderer : renders one frame per diffusion step.
- FramePlan / NodeDecision / EdgeDecision / FrameRecord : structured render decisions.
- compute_layout            : force-directed node placement.
- frame_filename / list_frames : frame naming and numeric ordering.
"""

from __future__ import annotations

from .frames import frame_filename, frame_number, list_frames
from .layout import Layout, compute_layout
from .snapshot import (
    DiffusionSnapshotRenderer,
    EdgeDecision,
    FramePlan,
    FrameRecord,
    NodeDecision,
    format_label,
    format_title,
)

__all__ = [
    "DiffusionSnapshotRenderer",
    "EdgeDecision",
    "FramePlan",
    "FrameRecord",
    "NodeDecision",
    "Layout",
    "compute_layout",
    "format_label",
    "format_title",
    "frame_filename",
    "frame_number",
    "list_frames",
]
