"""Pydantic v2 schema models for itpmesh source scenes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

Vec2 = tuple[float, float]
Vec3 = tuple[float, float, float]
Matrix4 = tuple[
    tuple[float, float, float, float],
    tuple[float, float, float, float],
    tuple[float, float, float, float],
    tuple[float, float, float, float],
]

IDENTITY_MATRIX: Matrix4 = (
    (1.0, 0.0, 0.0, 0.0),
    (0.0, 1.0, 0.0, 0.0),
    (0.0, 0.0, 1.0, 0.0),
    (0.0, 0.0, 0.0, 1.0),
)

MappingMode = Literal["by_control_point", "by_polygon_vertex"]
ReferenceMode = Literal["direct", "index_to_direct"]


class _Element(BaseModel):
    """A geometry layer element: values plus how corners map onto them."""

    model_config = ConfigDict(extra="forbid")

    mapping: MappingMode
    reference: ReferenceMode = "direct"
    indices: list[int] | None = None

    @model_validator(mode="after")
    def _check_reference_indices(self) -> _Element:
        if self.reference == "index_to_direct" and self.indices is None:
            raise ValueError("'index_to_direct' elements require 'indices'")
        if self.reference == "direct" and self.indices is not None:
            raise ValueError("'direct' elements must not have 'indices'")
        return self


class VectorElement(_Element):
    values: list[Vec3]


class UvElement(_Element):
    values: list[Vec2]


class Node(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    parent: str | None = None
    mesh: str | None = None


class SkinCluster(BaseModel):
    model_config = ConfigDict(extra="forbid")

    link: str | None = None
    indices: list[int] = []
    weights: list[float] = []
    # Column-vector convention: rows of the matrix, translation in the last column.
    link_bind_matrix: Matrix4 = IDENTITY_MATRIX
    mesh_bind_matrix: Matrix4 = IDENTITY_MATRIX

    @model_validator(mode="after")
    def _check_lengths(self) -> SkinCluster:
        if len(self.indices) != len(self.weights):
            raise ValueError(
                f"cluster has {len(self.indices)} indices but {len(self.weights)} weights"
            )
        return self


class TargetShape(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    control_points: list[Vec3]
    normals: VectorElement | None = None
    tangents: VectorElement | None = None


class BlendShapeChannel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    targets: list[TargetShape] = []


class BlendShapeDeformer(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    channels: list[BlendShapeChannel] = []


class SourceMesh(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    control_points: list[Vec3]
    polygons: list[list[int]]
    normals: VectorElement | None = None
    tangents: VectorElement | None = None
    uvs: UvElement | None = None
    clusters: list[SkinCluster] = []
    blend_shapes: list[BlendShapeDeformer] = []

    @field_validator("polygons")
    @classmethod
    def polygons_have_three_corners(cls, v: list[list[int]]) -> list[list[int]]:
        for i, poly in enumerate(v):
            if len(poly) < 3:
                raise ValueError(f"Polygon {i} has {len(poly)} corners; at least 3 required")
        return v


class SourceScene(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: str
    nodes: list[Node] = []
    meshes: list[SourceMesh] = []


@dataclass(frozen=True)
class ConvertOptions:
    """Switches for the optional pipeline passes."""

    compute_skinning: bool = True
    compute_blend_shapes: bool = True
    max_bones: int = 256

    def __post_init__(self) -> None:
        if not 1 <= self.max_bones <= 256:
            raise ValueError(f"max_bones must be in [1, 256], got {self.max_bones}")
