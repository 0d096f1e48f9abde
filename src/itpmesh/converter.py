"""Mesh conversion pipeline: skin scan -> corner dedup -> blend shapes."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from itpmesh.blendshapes import BlendShape, extract_blend_shapes
from itpmesh.elements import sample_corners
from itpmesh.models import ConvertOptions, SourceMesh, SourceScene
from itpmesh.skeleton import Bone, build_skeleton
from itpmesh.skinning import scan_clusters
from itpmesh.vertex import VertexFormat, deduplicate_corners
from itpmesh.warning_policy import WarningPolicy


@dataclass
class ConvertedMesh:
    """All artifacts of one converted mesh, ready for a serializer."""

    name: str
    format: VertexFormat
    vertices: np.ndarray
    triangles: np.ndarray
    control_point_map: dict[int, list[int]]
    bones: list[Bone] = field(default_factory=list)
    blend_shapes: list[BlendShape] = field(default_factory=list)

    @property
    def is_skinned(self) -> bool:
        return self.format.has_skin


def node_parent_map(scene: SourceScene) -> dict[str, str | None]:
    """Scene node name -> parent node name."""
    return {node.name: node.parent for node in scene.nodes}


def convert_mesh(
    mesh: SourceMesh,
    *,
    name: str | None = None,
    node_parents: dict[str, str | None] | None = None,
    options: ConvertOptions | None = None,
    warning_policy: WarningPolicy | None = None,
) -> ConvertedMesh:
    """Convert one source mesh.

    Pipeline: scan skin clusters (bones + packed influences) -> sample and
    deduplicate corners -> extract blend-shape deltas.
    """
    options = options or ConvertOptions()
    node_parents = node_parents or {}

    packed = None
    bones: list[Bone] = []
    if options.compute_skinning and mesh.clusters:
        scan = scan_clusters(
            mesh.clusters,
            len(mesh.control_points),
            max_bones=options.max_bones,
            warning_policy=warning_policy,
        )
        if len(scan.registry):
            packed = scan.packed()
            bones = build_skeleton(scan.registry, node_parents)

    samples = sample_corners(mesh)
    dedup = deduplicate_corners(samples, packed)

    blend_shapes: list[BlendShape] = []
    if options.compute_blend_shapes:
        blend_shapes = extract_blend_shapes(mesh, dedup, warning_policy=warning_policy)

    return ConvertedMesh(
        name=name or mesh.id,
        format=dedup.format,
        vertices=dedup.vertices,
        triangles=dedup.triangles,
        control_point_map=dedup.control_point_map,
        bones=bones,
        blend_shapes=blend_shapes,
    )


def mesh_visit_order(scene: SourceScene) -> list[tuple[str, SourceMesh]]:
    """Return (output name, mesh) pairs in conversion order.

    Nodes are walked depth first from the roots in declaration order; a node
    carrying a mesh contributes it under the node's name. Meshes no node
    refers to follow, named ``mesh_<index>`` by their position in the output.
    """
    meshes = {mesh.id: mesh for mesh in scene.meshes}
    children: dict[str | None, list[str]] = {}
    for node in scene.nodes:
        children.setdefault(node.parent, []).append(node.name)
    node_mesh = {node.name: node.mesh for node in scene.nodes}

    order: list[tuple[str, SourceMesh]] = []
    used: set[str] = set()
    stack = list(reversed(children.get(None, [])))
    while stack:
        node_name = stack.pop()
        mesh_id = node_mesh[node_name]
        if mesh_id is not None:
            order.append((node_name, meshes[mesh_id]))
            used.add(mesh_id)
        stack.extend(reversed(children.get(node_name, [])))

    for mesh in scene.meshes:
        if mesh.id not in used:
            order.append((f"mesh_{len(order)}", mesh))
    return order


def convert_scene(
    scene: SourceScene,
    *,
    options: ConvertOptions | None = None,
    warning_policy: WarningPolicy | None = None,
) -> list[ConvertedMesh]:
    """Convert every mesh of a validated scene, one at a time."""
    parents = node_parent_map(scene)
    return [
        convert_mesh(
            mesh,
            name=name,
            node_parents=parents,
            options=options,
            warning_policy=warning_policy,
        )
        for name, mesh in mesh_visit_order(scene)
    ]
