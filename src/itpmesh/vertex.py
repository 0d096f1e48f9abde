"""Exact-match vertex deduplication over triangle corners."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from itpmesh.elements import CornerSamples
from itpmesh.errors import ConversionError
from itpmesh.skinning import PackedInfluences

# Field order is the serialization order of present channels, except uv which
# is written last; see VertexFormat.attributes().
VERTEX_DTYPE = np.dtype(
    [
        ("position", "<f4", (3,)),
        ("normal", "<f4", (3,)),
        ("tangent", "<f4", (3,)),
        ("bones", "u1", (4,)),
        ("weights", "u1", (4,)),
        ("uv", "<f4", (2,)),
    ]
)


@dataclass(frozen=True)
class VertexFormat:
    """Which optional channels a mesh (or blend shape) carries."""

    has_normal: bool = False
    has_tangent: bool = False
    has_skin: bool = False
    has_uv: bool = False

    def attributes(self) -> list[tuple[str, str, int]]:
        """Return (name, component type, component count) in output order."""
        attrs = [("position", "float", 3)]
        if self.has_normal:
            attrs.append(("normal", "float", 3))
        if self.has_tangent:
            attrs.append(("tangent", "float", 3))
        if self.has_skin:
            attrs.append(("bones", "byte", 4))
            attrs.append(("weights", "byte", 4))
        if self.has_uv:
            attrs.append(("texcoord", "float", 2))
        return attrs


@dataclass
class DedupResult:
    """Output of the corner pass."""

    vertices: np.ndarray  # (N,) VERTEX_DTYPE
    triangles: np.ndarray  # (T, 3) uint32, winding reversed
    control_point_map: dict[int, list[int]]
    vertex_control_points: np.ndarray  # (N,) control point that created each vertex
    format: VertexFormat = field(default_factory=VertexFormat)

    def representative_indices(self) -> np.ndarray:
        """For each vertex, the first vertex created from the same control point."""
        reps = np.arange(len(self.vertices), dtype=np.int64)
        for indices in self.control_point_map.values():
            reps[indices] = indices[0]
        return reps


def build_corner_records(
    samples: CornerSamples, packed: PackedInfluences | None = None
) -> np.ndarray:
    """Assemble one VERTEX_DTYPE record per corner.

    Channels missing at mesh level stay zero so they still take part in the key.
    """
    records = np.zeros(len(samples), dtype=VERTEX_DTYPE)
    records["position"] = samples.positions
    if samples.normals is not None:
        records["normal"] = samples.normals
    if samples.tangents is not None:
        records["tangent"] = samples.tangents
    if samples.uvs is not None:
        records["uv"] = samples.uvs
    if packed is not None and len(samples):
        records["bones"] = packed.bones[samples.control_points]
        records["weights"] = packed.weights[samples.control_points]
    return records


def deduplicate_corners(
    samples: CornerSamples, packed: PackedInfluences | None = None
) -> DedupResult:
    """Collapse bitwise-identical corners into a unique vertex buffer.

    Corners are consumed three per triangle. The first occurrence of a vertex
    fixes its buffer index; corner ``v`` of a triangle is written to slot
    ``2 - v`` so the output winding is reversed.

    Raises:
        ConversionError: If the corner count is not a multiple of three.
    """
    corner_count = len(samples)
    if corner_count % 3 != 0:
        raise ConversionError(
            f"Corner stream has {corner_count} corners; expected whole triangles"
        )

    records = build_corner_records(samples, packed)
    raw = records.tobytes()
    stride = VERTEX_DTYPE.itemsize

    index_of: dict[bytes, int] = {}
    first_corner: list[int] = []
    owners: list[int] = []
    control_point_map: dict[int, list[int]] = {}
    triangles = np.zeros((corner_count // 3, 3), dtype=np.uint32)

    for corner in range(corner_count):
        key = raw[corner * stride : (corner + 1) * stride]
        index = index_of.get(key)
        if index is None:
            index = len(first_corner)
            index_of[key] = index
            first_corner.append(corner)
            cp = int(samples.control_points[corner])
            owners.append(cp)
            control_point_map.setdefault(cp, []).append(index)
        triangles[corner // 3, 2 - corner % 3] = index

    fmt = VertexFormat(
        has_normal=samples.normals is not None,
        has_tangent=samples.tangents is not None,
        has_skin=packed is not None,
        has_uv=samples.uvs is not None,
    )
    return DedupResult(
        vertices=records[np.asarray(first_corner, dtype=np.int64)],
        triangles=triangles,
        control_point_map=control_point_map,
        vertex_control_points=np.asarray(owners, dtype=np.int64),
        format=fmt,
    )
