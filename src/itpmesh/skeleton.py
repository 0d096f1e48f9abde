"""Bone hierarchy reconstruction and parent-relative bind poses.

Matrices are 4x4 numpy arrays in column-vector convention: the translation
lives in the last column and ``A @ B`` applies ``B`` first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from itpmesh.skinning import BoneRegistry


@dataclass
class Bone:
    """A skeleton bone with its parent-relative bind pose."""

    name: str
    parent_index: int = -1
    # x, y, z, w
    rotation: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))


def mesh_space_bind(link_bind: np.ndarray, mesh_bind: np.ndarray) -> np.ndarray:
    """Bind transform of a bone expressed in mesh space."""
    return link_bind @ np.linalg.inv(mesh_bind)


def merge_bind_matrix(existing: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    """Pick the bind matrix to keep when a bone shows up in another cluster.

    The first value wins unless its translation is exactly zero, in which case
    the later cluster's value replaces it. This treats an all-zero translation
    as a sample that failed to populate. It is a heuristic: a bone genuinely
    bound at the origin gets whichever later cluster comes along.
    """
    if np.all(existing[:3, 3] == 0.0):
        return candidate
    return existing


def extract_euler_degrees(matrix: np.ndarray) -> tuple[float, float, float]:
    """Decompose the rotation of a transform into XYZ Euler angles in degrees.

    The rotation is taken as ``Rz @ Ry @ Rx`` (X applied first) after
    dividing out per-axis scale.
    """
    rot = np.array(matrix[:3, :3], dtype=np.float64)
    scale = np.linalg.norm(rot, axis=0)
    scale[scale == 0.0] = 1.0
    rot = rot / scale

    sy = -rot[2, 0]
    sy = max(-1.0, min(1.0, sy))
    y = math.asin(sy)
    if abs(sy) < 1.0 - 1e-9:
        x = math.atan2(rot[2, 1], rot[2, 2])
        z = math.atan2(rot[1, 0], rot[0, 0])
    else:
        # Gimbal lock: fold Z into X.
        x = math.atan2(-rot[1, 2], rot[1, 1])
        z = 0.0
    return math.degrees(x), math.degrees(y), math.degrees(z)


def euler_to_quaternion(pitch: float, yaw: float, roll: float) -> np.ndarray:
    """Compose a quaternion (x, y, z, w) from Euler angles in radians.

    ``pitch``, ``yaw`` and ``roll`` are the X, Y and Z angles of
    ``extract_euler_degrees``. The half-angle product below matches the
    runtime's Euler constructor term for term.
    """
    cy, sy = math.cos(yaw * 0.5), math.sin(yaw * 0.5)
    cp, sp = math.cos(pitch * 0.5), math.sin(pitch * 0.5)
    cr, sr = math.cos(roll * 0.5), math.sin(roll * 0.5)
    return np.array(
        [
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
            cr * cp * cy + sr * sp * sy,
        ],
        dtype=np.float64,
    )


def bind_pose_from_matrix(local: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Return (rotation quaternion, translation) of a local bind transform."""
    x_deg, y_deg, z_deg = extract_euler_degrees(local)
    rotation = euler_to_quaternion(math.radians(x_deg), math.radians(y_deg), math.radians(z_deg))
    translation = np.array(local[:3, 3], dtype=np.float64)
    return rotation, translation


def resolve_parent(
    link: str | None,
    node_parents: dict[str, str | None],
    bone_index: dict[str, int],
) -> int:
    """Walk up the node tree from ``link`` to the nearest ancestor that is a bone."""
    if link is None:
        return -1
    current = node_parents.get(link)
    while current is not None:
        if current in bone_index:
            return bone_index[current]
        current = node_parents.get(current)
    return -1


def build_skeleton(registry: BoneRegistry, node_parents: dict[str, str | None]) -> list[Bone]:
    """Build the bone list with parent indices and parent-relative bind poses.

    Args:
        registry: Bones in cluster-scan order with their mesh-space binds.
        node_parents: Scene node name -> parent node name (None for roots).
    """
    bone_index = {
        name: i
        for i, (name, link) in enumerate(zip(registry.names, registry.link_nodes))
        if link is not None
    }

    bones: list[Bone] = []
    for i, name in enumerate(registry.names):
        link = registry.link_nodes[i]
        if link is None:
            bones.append(Bone(name=name))
            continue

        parent = resolve_parent(link, node_parents, bone_index)
        bind = registry.bind_matrices[i]
        if parent >= 0:
            local = np.linalg.inv(registry.bind_matrices[parent]) @ bind
        else:
            local = bind

        rotation, translation = bind_pose_from_matrix(local)
        bones.append(
            Bone(name=name, parent_index=parent, rotation=rotation, translation=translation)
        )
    return bones


def bone_depths(bones: list[Bone]) -> list[int]:
    """Number of parent hops from each bone to its root."""
    depths: list[int] = []
    for bone in bones:
        depth = 0
        parent = bone.parent_index
        while parent >= 0:
            depth += 1
            if depth > len(bones):
                raise ValueError(f"Cycle in bone hierarchy at {bone.name!r}")
            parent = bones[parent].parent_index
        depths.append(depth)
    return depths
