"""Skin cluster scanning and 4-slot quantized influence packing."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from itpmesh.models import SkinCluster
from itpmesh.skeleton import merge_bind_matrix, mesh_space_bind
from itpmesh.warning_policy import WarningPolicy, emit_warning

MAX_INFLUENCES = 4
WEIGHT_SCALE = 255
MAX_BONES = 256


@dataclass
class PackedInfluences:
    """Packed skin bytes, one row per control point."""

    bones: np.ndarray  # (P, 4) uint8
    weights: np.ndarray  # (P, 4) uint8, each row sums to 255 or is all zero


class BoneRegistry:
    """Bone table built in cluster-scan order.

    A bone's index is fixed the first time its name is seen. Each entry keeps
    the link node name (None for the fallback bones) and the mesh-space bind
    matrix used by the hierarchy builder.
    """

    def __init__(self, max_bones: int = MAX_BONES, reserved_names: Iterable[str] = ()) -> None:
        self.max_bones = max_bones
        self.names: list[str] = []
        self.link_nodes: list[str | None] = []
        self.bind_matrices: list[np.ndarray] = []
        self.rejected: list[str] = []
        self._index: dict[str, int] = {}
        # Link node names a synthesized fallback name must not shadow.
        self._reserved = set(reserved_names)
        self._unlinked_rejected = 0

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def index_of(self, name: str) -> int | None:
        return self._index.get(name)

    def _fallback_name(self, number: int) -> str:
        """``bone_<number>``, suffixed while a link node or bone already uses it."""
        base = f"bone_{number}"
        taken = self._reserved.union(self.names, self.rejected)
        name = base
        suffix = 1
        while name in taken:
            name = f"{base}_{suffix}"
            suffix += 1
        return name

    def register(
        self,
        link: str | None,
        bind_matrix: np.ndarray,
        *,
        warning_policy: WarningPolicy | None = None,
    ) -> int | None:
        """Return the bone index for a cluster link, registering it if new.

        A cluster without a link always gets a bone of its own; fallback names
        are never looked up by later clusters. Returns None when the bone
        table is full and the bone is new; its influences must then be dropped.
        """
        if link is not None and link in self._index:
            index = self._index[link]
            self.bind_matrices[index] = merge_bind_matrix(self.bind_matrices[index], bind_matrix)
            return index

        if link is None:
            name = self._fallback_name(len(self.names) + self._unlinked_rejected)
        else:
            name = link
        if len(self.names) >= self.max_bones:
            if link is None:
                self._unlinked_rejected += 1
            if name not in self.rejected:
                self.rejected.append(name)
                emit_warning(
                    "W02",
                    f"Bone {name!r} exceeds the {self.max_bones}-bone limit; "
                    f"its influences are dropped",
                    policy=warning_policy,
                )
            return None

        index = len(self.names)
        if link is None:
            emit_warning(
                "W03",
                f"Skin cluster has no link node; registered as {name!r} with identity bind pose",
                policy=warning_policy,
            )
            bind_matrix = np.eye(4, dtype=np.float64)
        else:
            self._index[name] = index
        self.names.append(name)
        self.link_nodes.append(link)
        self.bind_matrices.append(bind_matrix)
        return index


@dataclass
class SkinScan:
    """Everything gathered in one pass over a mesh's skin clusters."""

    registry: BoneRegistry
    influences: list[list[tuple[int, float]]]  # per control point, cluster order

    def packed(self) -> PackedInfluences:
        return pack_all(self.influences)


def scan_clusters(
    clusters: list[SkinCluster],
    control_point_count: int,
    *,
    max_bones: int = MAX_BONES,
    warning_policy: WarningPolicy | None = None,
) -> SkinScan:
    """Register bones and collect raw influences from every cluster.

    Non-positive weights are ignored. Influences of bones rejected by the
    bone limit are dropped, not redistributed.
    """
    links = [cluster.link for cluster in clusters if cluster.link is not None]
    registry = BoneRegistry(max_bones, reserved_names=links)
    influences: list[list[tuple[int, float]]] = [[] for _ in range(control_point_count)]

    for cluster in clusters:
        bind = mesh_space_bind(
            np.asarray(cluster.link_bind_matrix, dtype=np.float64),
            np.asarray(cluster.mesh_bind_matrix, dtype=np.float64),
        )
        bone_index = registry.register(cluster.link, bind, warning_policy=warning_policy)
        if bone_index is None:
            continue
        for cp, weight in zip(cluster.indices, cluster.weights):
            if weight > 0.0:
                influences[cp].append((bone_index, weight))

    return SkinScan(registry=registry, influences=influences)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def pack_influences(
    influences: list[tuple[int, float]],
) -> tuple[tuple[int, int, int, int], tuple[int, int, int, int]]:
    """Quantize one control point's influences into 4 (bone, weight) byte slots.

    The heaviest influences win (stable on ties). All but the last kept
    weight are rounded; the last absorbs the remainder so the weight bytes
    sum to exactly 255. No influences, or a non-positive total, gives all
    zeros.
    """
    bones = [0, 0, 0, 0]
    weights = [0, 0, 0, 0]

    taken = sorted(influences, key=lambda bw: -bw[1])[:MAX_INFLUENCES]
    total = sum(w for _, w in taken)
    if not taken or total <= 0.0:
        return tuple(bones), tuple(weights)

    acc = 0
    for slot, (bone, w) in enumerate(taken[:-1]):
        byte = _round_half_up(w / total * WEIGHT_SCALE)
        bones[slot] = bone
        weights[slot] = byte
        acc += byte

    last = len(taken) - 1
    bones[last] = taken[last][0]
    weights[last] = max(0, WEIGHT_SCALE - acc)

    # Rounding the leading weights up can overshoot when the last weight is
    # tiny; take the excess back from the lowest-ranked leading slots.
    excess = sum(weights) - WEIGHT_SCALE
    slot = last - 1
    while excess > 0 and slot >= 0:
        give = min(excess, weights[slot])
        weights[slot] -= give
        excess -= give
        slot -= 1

    return tuple(bones), tuple(weights)


def pack_all(influences: list[list[tuple[int, float]]]) -> PackedInfluences:
    """Pack every control point's influence list."""
    count = len(influences)
    bones = np.zeros((count, MAX_INFLUENCES), dtype=np.uint8)
    weights = np.zeros((count, MAX_INFLUENCES), dtype=np.uint8)
    for cp, bws in enumerate(influences):
        if not bws:
            continue
        bones[cp], weights[cp] = pack_influences(bws)
    return PackedInfluences(bones=bones, weights=weights)
