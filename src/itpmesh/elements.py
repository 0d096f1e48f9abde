"""Per-corner attribute sampling from geometry layer elements."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from itpmesh.models import SourceMesh, UvElement, VectorElement


@dataclass
class CornerSamples:
    """Attribute samples for every triangle corner of a mesh, in visiting order.

    A channel is ``None`` when the mesh has no element of that kind. Corners
    left unmapped by an existing element carry zeros.
    """

    control_points: np.ndarray  # (C,) int64
    positions: np.ndarray  # (C, 3) float64
    normals: np.ndarray | None  # (C, 3) float64
    tangents: np.ndarray | None  # (C, 3) float64
    uvs: np.ndarray | None  # (C, 2) float64, V flipped

    def __len__(self) -> int:
        return len(self.control_points)


def triangulate(polygons: list[list[int]]) -> np.ndarray:
    """Fan-triangulate polygons.

    Returns:
        (T, 3) int64 array of polygon-vertex indices, i.e. offsets into the
        flattened polygon corner list.
    """
    triangles: list[tuple[int, int, int]] = []
    offset = 0
    for poly in polygons:
        for i in range(1, len(poly) - 1):
            triangles.append((offset, offset + i, offset + i + 1))
        offset += len(poly)
    if not triangles:
        return np.zeros((0, 3), dtype=np.int64)
    return np.array(triangles, dtype=np.int64)


def resolve_element_indices(
    element: VectorElement | UvElement,
    control_points: np.ndarray,
    polygon_vertices: np.ndarray,
) -> np.ndarray:
    """Map each corner to an index into ``element.values``.

    The mapping/reference combination is dispatched once for the whole
    element. Returns -1 for corners the element leaves unmapped.
    """
    if element.mapping == "by_control_point":
        lookup = control_points
    else:
        lookup = polygon_vertices

    if element.reference == "direct":
        return np.asarray(lookup, dtype=np.int64)

    index_array = np.asarray(element.indices, dtype=np.int64)
    return index_array[lookup]


def sample_element(
    element: VectorElement | UvElement,
    control_points: np.ndarray,
    polygon_vertices: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Gather element values for each corner.

    Returns:
        (values, present): values is (C, K) float64 with zero rows where the
        corner is unmapped; present is a (C,) bool mask.
    """
    width = 2 if isinstance(element, UvElement) else 3
    direct = np.asarray(element.values, dtype=np.float64).reshape(-1, width)
    idx = resolve_element_indices(element, control_points, polygon_vertices)

    present = idx >= 0
    values = np.zeros((len(idx), width), dtype=np.float64)
    values[present] = direct[idx[present]]
    return values, present


def sample_per_control_point(element: VectorElement, count: int) -> np.ndarray:
    """Values of a by-control-point element for control points 0..count-1."""
    control_points = np.arange(count, dtype=np.int64)
    values, _present = sample_element(element, control_points, control_points)
    return values


def sample_corners(mesh: SourceMesh) -> CornerSamples:
    """Sample position, normal, tangent and UV for every triangle corner.

    Corners are visited triangle by triangle after fan triangulation. UVs are
    V-flipped (``v' = 1 - v``) where present.
    """
    polygon_vertex_cps = np.fromiter(
        (cp for poly in mesh.polygons for cp in poly), dtype=np.int64
    )
    polygon_vertices = triangulate(mesh.polygons).reshape(-1)
    control_points = polygon_vertex_cps[polygon_vertices]

    positions = np.asarray(mesh.control_points, dtype=np.float64).reshape(-1, 3)[control_points]

    normals = None
    if mesh.normals is not None:
        normals, _ = sample_element(mesh.normals, control_points, polygon_vertices)

    tangents = None
    if mesh.tangents is not None:
        tangents, _ = sample_element(mesh.tangents, control_points, polygon_vertices)

    uvs = None
    if mesh.uvs is not None:
        uvs, present = sample_element(mesh.uvs, control_points, polygon_vertices)
        uvs[present, 1] = 1.0 - uvs[present, 1]

    return CornerSamples(
        control_points=control_points,
        positions=positions,
        normals=normals,
        tangents=tangents,
        uvs=uvs,
    )
