"""Blend-shape delta extraction against the deduplicated vertex buffer."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from itpmesh.elements import sample_per_control_point
from itpmesh.models import BlendShapeChannel, SourceMesh, TargetShape, VectorElement
from itpmesh.vertex import DedupResult, VertexFormat
from itpmesh.warning_policy import WarningPolicy, emit_warning


@dataclass
class BlendShape:
    """Per-vertex deltas for one (channel, target) pair.

    Each delta array is (N, 3) float32 over the base vertex buffer. Normal and
    tangent deltas stay zero unless the format flags say otherwise.
    """

    name: str
    format: VertexFormat
    position_deltas: np.ndarray
    normal_deltas: np.ndarray
    tangent_deltas: np.ndarray


def target_name(channel: BlendShapeChannel, ordinal: int) -> str:
    """Output name of a target: the channel name, suffixed when it has several targets."""
    if len(channel.targets) == 1:
        return channel.name
    return f"{channel.name}_target{ordinal}"


def _usable_element(
    element: VectorElement | None,
    base_has_channel: bool,
    label: str,
    shape_name: str,
    warning_policy: WarningPolicy | None,
) -> VectorElement | None:
    """Return the target element if its deltas can be computed per control point."""
    if not base_has_channel or element is None:
        return None
    if element.mapping != "by_control_point":
        emit_warning(
            "W04",
            f"Blend shape {shape_name!r}: {label} element is mapped {element.mapping!r}, "
            f"not by control point; {label} deltas omitted",
            policy=warning_policy,
        )
        return None
    return element


def extract_target(
    name: str,
    target: TargetShape,
    dedup: DedupResult,
    *,
    warning_policy: WarningPolicy | None = None,
) -> BlendShape:
    """Compute the deltas of one target whose control-point count matches the base.

    Every vertex receives the delta of its control point, measured against the
    first vertex created from that control point. Vertices split from the same
    control point therefore share one delta even when their own normals or
    tangents differ from the representative's.
    """
    normal_element = _usable_element(
        target.normals, dedup.format.has_normal, "normal", name, warning_policy
    )
    tangent_element = _usable_element(
        target.tangents, dedup.format.has_tangent, "tangent", name, warning_policy
    )
    fmt = VertexFormat(
        has_normal=normal_element is not None,
        has_tangent=tangent_element is not None,
    )

    count = len(target.control_points)
    owners = dedup.vertex_control_points
    reps = dedup.representative_indices()
    base = dedup.vertices[reps]

    positions = np.asarray(target.control_points, dtype=np.float32).reshape(-1, 3)
    position_deltas = positions[owners] - base["position"]

    normal_deltas = np.zeros_like(position_deltas)
    if normal_element is not None:
        normals = sample_per_control_point(normal_element, count).astype(np.float32)
        normal_deltas = normals[owners] - base["normal"]

    tangent_deltas = np.zeros_like(position_deltas)
    if tangent_element is not None:
        tangents = sample_per_control_point(tangent_element, count).astype(np.float32)
        tangent_deltas = tangents[owners] - base["tangent"]

    return BlendShape(
        name=name,
        format=fmt,
        position_deltas=position_deltas,
        normal_deltas=normal_deltas,
        tangent_deltas=tangent_deltas,
    )


def extract_blend_shapes(
    mesh: SourceMesh,
    dedup: DedupResult,
    *,
    warning_policy: WarningPolicy | None = None,
) -> list[BlendShape]:
    """Extract one BlendShape per (channel, target) pair of every deformer.

    Targets whose control-point count differs from the base mesh are skipped
    with a W01 diagnostic; the remaining targets are still processed.
    """
    base_count = len(mesh.control_points)
    shapes: list[BlendShape] = []
    if base_count == 0:
        return shapes

    for deformer in mesh.blend_shapes:
        for channel in deformer.channels:
            for ordinal, target in enumerate(channel.targets):
                if len(target.control_points) != base_count:
                    emit_warning(
                        "W01",
                        f"Blend target control point count ({len(target.control_points)}) "
                        f"!= base control point count ({base_count}) for channel "
                        f"{channel.name!r} target {ordinal}; skipping target",
                        policy=warning_policy,
                    )
                    continue
                name = target_name(channel, ordinal)
                shapes.append(
                    extract_target(name, target, dedup, warning_policy=warning_policy)
                )
    return shapes
