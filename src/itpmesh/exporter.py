"""glTF/GLB assembly of converted meshes via pygltflib."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pygltflib

from itpmesh.converter import ConvertedMesh
from itpmesh.errors import ExportError
from itpmesh.skeleton import Bone


def export_glb(meshes: list[ConvertedMesh], output_path: Path) -> None:
    """Export converted meshes to a single GLB file.

    Each mesh becomes a node with its own skin (when skinned) and one morph
    target per blend shape.

    Raises:
        ExportError: When no mesh has any vertices, or on write failure.
    """
    if not any(len(mesh.vertices) for mesh in meshes):
        raise ExportError("No mesh with vertices to export; a GLB needs a non-empty buffer")
    try:
        gltf = build_gltf(meshes)
        output_path.write_bytes(b"".join(gltf.save_to_bytes()))
    except Exception as e:
        if isinstance(e, ExportError):
            raise
        raise ExportError(f"Failed to export glTF: {e}") from e


def build_gltf(meshes: list[ConvertedMesh]) -> pygltflib.GLTF2:
    """Build the glTF2 structure and binary blob for converted meshes."""
    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[])],
        nodes=[],
        meshes=[],
        accessors=[],
        bufferViews=[],
        buffers=[],
        skins=[],
    )
    blob = bytearray()

    for mesh in meshes:
        if len(mesh.vertices) == 0:
            continue
        _add_mesh(gltf, blob, mesh)

    if blob:
        gltf.buffers = [pygltflib.Buffer(byteLength=len(blob))]
        gltf.set_binary_blob(bytes(blob))
    return gltf


def _add_accessor(
    gltf: pygltflib.GLTF2,
    blob: bytearray,
    data: np.ndarray,
    component_type: int,
    accessor_type: str,
    *,
    target: int | None = pygltflib.ARRAY_BUFFER,
    normalized: bool = False,
    bounds: bool = False,
) -> int:
    """Append ``data`` to the blob behind a new buffer view and accessor."""
    while len(blob) % 4:
        blob.append(0)
    offset = len(blob)
    raw = np.ascontiguousarray(data).tobytes()
    blob.extend(raw)

    bv_idx = len(gltf.bufferViews)
    gltf.bufferViews.append(
        pygltflib.BufferView(buffer=0, byteOffset=offset, byteLength=len(raw), target=target)
    )

    acc = pygltflib.Accessor(
        bufferView=bv_idx,
        byteOffset=0,
        componentType=component_type,
        count=len(data),
        type=accessor_type,
        normalized=normalized,
    )
    if bounds:
        acc.min = data.min(axis=0).tolist()
        acc.max = data.max(axis=0).tolist()
    gltf.accessors.append(acc)
    return len(gltf.accessors) - 1


def _add_mesh(gltf: pygltflib.GLTF2, blob: bytearray, mesh: ConvertedMesh) -> None:
    fmt = mesh.format
    verts = mesh.vertices

    attributes = pygltflib.Attributes(
        POSITION=_add_accessor(
            gltf, blob, verts["position"], pygltflib.FLOAT, pygltflib.VEC3, bounds=True
        )
    )
    if fmt.has_normal:
        attributes.NORMAL = _add_accessor(
            gltf, blob, verts["normal"], pygltflib.FLOAT, pygltflib.VEC3
        )
    if fmt.has_tangent:
        tangents = np.ones((len(verts), 4), dtype=np.float32)
        tangents[:, :3] = verts["tangent"]
        attributes.TANGENT = _add_accessor(gltf, blob, tangents, pygltflib.FLOAT, pygltflib.VEC4)
    if fmt.has_uv:
        attributes.TEXCOORD_0 = _add_accessor(
            gltf, blob, verts["uv"], pygltflib.FLOAT, pygltflib.VEC2
        )
    if fmt.has_skin:
        attributes.JOINTS_0 = _add_accessor(
            gltf, blob, verts["bones"], pygltflib.UNSIGNED_BYTE, pygltflib.VEC4
        )
        attributes.WEIGHTS_0 = _add_accessor(
            gltf,
            blob,
            verts["weights"],
            pygltflib.UNSIGNED_BYTE,
            pygltflib.VEC4,
            normalized=True,
        )

    indices_acc = _add_accessor(
        gltf,
        blob,
        mesh.triangles.reshape(-1).astype(np.uint32),
        pygltflib.UNSIGNED_INT,
        pygltflib.SCALAR,
        target=pygltflib.ELEMENT_ARRAY_BUFFER,
    )

    targets: list[pygltflib.Attributes] = []
    for shape in mesh.blend_shapes:
        target = pygltflib.Attributes(
            POSITION=_add_accessor(
                gltf,
                blob,
                shape.position_deltas,
                pygltflib.FLOAT,
                pygltflib.VEC3,
                bounds=True,
            )
        )
        if shape.format.has_normal:
            target.NORMAL = _add_accessor(
                gltf, blob, shape.normal_deltas, pygltflib.FLOAT, pygltflib.VEC3
            )
        if shape.format.has_tangent:
            target.TANGENT = _add_accessor(
                gltf, blob, shape.tangent_deltas, pygltflib.FLOAT, pygltflib.VEC3
            )
        targets.append(target)

    primitive = pygltflib.Primitive(attributes=attributes, indices=indices_acc)
    gltf_mesh = pygltflib.Mesh(name=mesh.name, primitives=[primitive])
    if targets:
        primitive.targets = targets
        gltf_mesh.weights = [0.0] * len(targets)
        gltf_mesh.extras = {"targetNames": [shape.name for shape in mesh.blend_shapes]}

    mesh_idx = len(gltf.meshes)
    gltf.meshes.append(gltf_mesh)

    mesh_node_idx = len(gltf.nodes)
    gltf.nodes.append(pygltflib.Node(name=mesh.name, mesh=mesh_idx))
    gltf.scenes[0].nodes.append(mesh_node_idx)

    if fmt.has_skin and mesh.bones:
        gltf.nodes[mesh_node_idx].skin = _add_skin(gltf, blob, mesh)


def _add_skin(gltf: pygltflib.GLTF2, blob: bytearray, mesh: ConvertedMesh) -> int:
    """Create joint nodes from the bone list and a skin binding them."""
    first_joint = len(gltf.nodes)
    for bone in mesh.bones:
        gltf.nodes.append(
            pygltflib.Node(
                name=bone.name,
                translation=[float(v) for v in bone.translation],
                rotation=[float(v) for v in bone.rotation],
            )
        )

    roots: list[int] = []
    for i, bone in enumerate(mesh.bones):
        if bone.parent_index < 0:
            roots.append(first_joint + i)
            continue
        parent_node = gltf.nodes[first_joint + bone.parent_index]
        if parent_node.children is None:
            parent_node.children = []
        parent_node.children.append(first_joint + i)
    gltf.scenes[0].nodes.extend(roots)

    # glTF matrices are column-major; numpy is row-major.
    ibms = np.linalg.inv(joint_world_matrices(mesh.bones)).astype(np.float32)
    ibm_acc = _add_accessor(
        gltf,
        blob,
        np.ascontiguousarray(ibms.transpose(0, 2, 1)),
        pygltflib.FLOAT,
        pygltflib.MAT4,
        target=None,
    )

    gltf.skins.append(
        pygltflib.Skin(
            name=f"{mesh.name}_skin",
            joints=list(range(first_joint, first_joint + len(mesh.bones))),
            skeleton=roots[0] if roots else None,
            inverseBindMatrices=ibm_acc,
        )
    )
    return len(gltf.skins) - 1


def quaternion_matrix(q: np.ndarray) -> np.ndarray:
    """3x3 rotation matrix of a unit quaternion (x, y, z, w)."""
    x, y, z, w = (float(c) for c in q)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def joint_world_matrices(bones: list[Bone]) -> np.ndarray:
    """World rest transform of every joint, composed from the local bind poses."""
    local = np.zeros((len(bones), 4, 4), dtype=np.float64)
    for i, bone in enumerate(bones):
        local[i] = np.eye(4)
        local[i, :3, :3] = quaternion_matrix(bone.rotation)
        local[i, :3, 3] = bone.translation

    world: dict[int, np.ndarray] = {}

    def _world(i: int) -> np.ndarray:
        if i not in world:
            parent = bones[i].parent_index
            world[i] = local[i] if parent < 0 else _world(parent) @ local[i]
        return world[i]

    return np.array([_world(i) for i in range(len(bones))]).reshape(len(bones), 4, 4)
