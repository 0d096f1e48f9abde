"""Semantic validation for parsed source scenes."""

from __future__ import annotations

import math

import numpy as np

from itpmesh.errors import ValidationError
from itpmesh.models import SourceMesh, SourceScene, UvElement, VectorElement


def validate(scene: SourceScene) -> None:
    """Run all semantic validation checks on a parsed scene.

    Raises:
        ValidationError: On any semantic rule violation.
    """
    _check_unique_node_names(scene)
    _check_unique_mesh_ids(scene)
    _check_node_refs(scene)
    _check_node_hierarchy_acyclic(scene)
    node_names = {node.name for node in scene.nodes}
    for mesh in scene.meshes:
        _check_no_nan_infinity(mesh)
        _check_polygon_refs(mesh)
        _check_mesh_elements(mesh)
        _check_clusters(mesh, node_names)
        _check_blend_targets(mesh)


def _check_unique_node_names(scene: SourceScene) -> None:
    seen: set[str] = set()
    for node in scene.nodes:
        if node.name in seen:
            raise ValidationError(f"Duplicate node name: {node.name!r}")
        seen.add(node.name)


def _check_unique_mesh_ids(scene: SourceScene) -> None:
    seen: set[str] = set()
    for mesh in scene.meshes:
        if mesh.id in seen:
            raise ValidationError(f"Duplicate mesh id: {mesh.id!r}")
        seen.add(mesh.id)


def _check_node_refs(scene: SourceScene) -> None:
    node_names = {node.name for node in scene.nodes}
    mesh_ids = {mesh.id for mesh in scene.meshes}
    for node in scene.nodes:
        if node.parent is not None and node.parent not in node_names:
            raise ValidationError(
                f"Node {node.name!r} references unknown parent: {node.parent!r}"
            )
        if node.mesh is not None and node.mesh not in mesh_ids:
            raise ValidationError(f"Node {node.name!r} references unknown mesh: {node.mesh!r}")


def _check_node_hierarchy_acyclic(scene: SourceScene) -> None:
    parent_map = {node.name: node.parent for node in scene.nodes}
    for name in parent_map:
        visited: set[str] = set()
        current: str | None = name
        while current is not None:
            if current in visited:
                raise ValidationError(f"Cycle detected in node hierarchy at node {current!r}")
            visited.add(current)
            current = parent_map.get(current)


def _check_no_nan_infinity(mesh: SourceMesh) -> None:
    def _finite(values, what: str) -> None:
        for i, row in enumerate(values):
            if not all(math.isfinite(v) for v in row):
                raise ValidationError(f"Mesh {mesh.id!r}: non-finite value in {what} [{i}]")

    _finite(mesh.control_points, "control_points")
    elements = (("normals", mesh.normals), ("tangents", mesh.tangents), ("uvs", mesh.uvs))
    for label, element in elements:
        if element is not None:
            _finite(element.values, label)
    for c, cluster in enumerate(mesh.clusters):
        _finite([cluster.weights], f"cluster {c} weights")
        _finite(cluster.link_bind_matrix, f"cluster {c} link_bind_matrix")
        _finite(cluster.mesh_bind_matrix, f"cluster {c} mesh_bind_matrix")
    for deformer in mesh.blend_shapes:
        for channel in deformer.channels:
            for t, target in enumerate(channel.targets):
                _finite(target.control_points, f"channel {channel.name!r} target {t}")


def _check_polygon_refs(mesh: SourceMesh) -> None:
    count = len(mesh.control_points)
    for p, poly in enumerate(mesh.polygons):
        for cp in poly:
            if cp < 0 or cp >= count:
                raise ValidationError(
                    f"Mesh {mesh.id!r}: polygon {p} references control point {cp} "
                    f"(control point count: {count})"
                )


def _check_element(
    owner: str,
    label: str,
    element: VectorElement | UvElement,
    control_point_count: int,
    polygon_vertex_count: int,
) -> None:
    """Check an element's lookup size and index ranges against its mapping mode."""
    if element.mapping == "by_control_point":
        expected = control_point_count
    else:
        expected = polygon_vertex_count
    value_count = len(element.values)

    if element.reference == "direct":
        if value_count < expected:
            raise ValidationError(
                f"{owner}: {label} element mapped {element.mapping!r} needs {expected} "
                f"values, got {value_count}"
            )
        return

    indices = element.indices or []
    if len(indices) < expected:
        raise ValidationError(
            f"{owner}: {label} element mapped {element.mapping!r} needs {expected} "
            f"indices, got {len(indices)}"
        )
    for idx in indices:
        if idx < -1 or idx >= value_count:
            raise ValidationError(
                f"{owner}: {label} index {idx} out of range (value count: {value_count})"
            )


def _check_mesh_elements(mesh: SourceMesh) -> None:
    owner = f"Mesh {mesh.id!r}"
    cp_count = len(mesh.control_points)
    pv_count = sum(len(poly) for poly in mesh.polygons)
    elements = (("normal", mesh.normals), ("tangent", mesh.tangents), ("uv", mesh.uvs))
    for label, element in elements:
        if element is not None:
            _check_element(owner, label, element, cp_count, pv_count)


def _check_clusters(mesh: SourceMesh, node_names: set[str]) -> None:
    count = len(mesh.control_points)
    for c, cluster in enumerate(mesh.clusters):
        if cluster.link is not None and cluster.link not in node_names:
            raise ValidationError(
                f"Mesh {mesh.id!r}: cluster {c} links unknown node {cluster.link!r}"
            )
        for cp in cluster.indices:
            if cp < 0 or cp >= count:
                raise ValidationError(
                    f"Mesh {mesh.id!r}: cluster {c} references control point {cp} "
                    f"(control point count: {count})"
                )
        for label in ("link_bind_matrix", "mesh_bind_matrix"):
            matrix = np.asarray(getattr(cluster, label), dtype=np.float64)
            if np.linalg.det(matrix) == 0.0:
                raise ValidationError(
                    f"Mesh {mesh.id!r}: cluster {c} {label} is not invertible"
                )


def _check_blend_targets(mesh: SourceMesh) -> None:
    """Check target elements; count mismatches are left to the extractor."""
    for deformer in mesh.blend_shapes:
        for channel in deformer.channels:
            for t, target in enumerate(channel.targets):
                owner = f"Mesh {mesh.id!r} channel {channel.name!r} target {t}"
                cp_count = len(target.control_points)
                for label, element in (("normal", target.normals), ("tangent", target.tangents)):
                    if element is not None and element.mapping == "by_control_point":
                        _check_element(owner, label, element, cp_count, 0)
