"""ITP JSON documents: .itpmesh3 meshes, .itpblend shapes, .itpskel skeletons."""

from __future__ import annotations

import json
import re
from pathlib import Path

import numpy as np

from itpmesh.blendshapes import BlendShape
from itpmesh.converter import ConvertedMesh
from itpmesh.errors import ExportError
from itpmesh.vertex import VertexFormat

MESH_VERSION = 3
BLEND_VERSION = 1
SKELETON_VERSION = 1

_DECIMALS = 6

# A JSON array holding only numbers, as emitted by json.dumps with indentation.
_NUMBER_ROW = re.compile(r"\[\s*(-?[\d.eE+-]+(?:,\s*-?[\d.eE+-]+)*)\s*\]")


def _num(value: float) -> float:
    return round(float(value), _DECIMALS)


def _vec(values: np.ndarray) -> list[float]:
    return [_num(v) for v in values]


def vertex_format_document(fmt: VertexFormat) -> list[dict]:
    return [{"name": name, "type": kind, "count": count} for name, kind, count in fmt.attributes()]


def vertex_row(vertex: np.void, fmt: VertexFormat) -> list[float | int]:
    """Flatten one vertex record into its present channels, in format order."""
    row: list[float | int] = _vec(vertex["position"])
    if fmt.has_normal:
        row += _vec(vertex["normal"])
    if fmt.has_tangent:
        row += _vec(vertex["tangent"])
    if fmt.has_skin:
        row += [int(b) for b in vertex["bones"]]
        row += [int(w) for w in vertex["weights"]]
    if fmt.has_uv:
        row += _vec(vertex["uv"])
    return row


def mesh_document(mesh: ConvertedMesh) -> dict:
    return {
        "metadata": {"type": "itpmesh", "version": MESH_VERSION},
        "material": f"Assets/Materials/{mesh.name}.itpmat",
        "vertexformat": vertex_format_document(mesh.format),
        "vertices": [vertex_row(v, mesh.format) for v in mesh.vertices],
        "indices": [[int(i) for i in tri] for tri in mesh.triangles],
    }


def blend_document(shape: BlendShape) -> dict:
    deltas = []
    for i in range(len(shape.position_deltas)):
        row = _vec(shape.position_deltas[i])
        if shape.format.has_normal:
            row += _vec(shape.normal_deltas[i])
        if shape.format.has_tangent:
            row += _vec(shape.tangent_deltas[i])
        deltas.append(row)
    return {
        "metadata": {"type": "itpblend", "version": BLEND_VERSION},
        "name": shape.name,
        "vertexformat": vertex_format_document(shape.format),
        "deltas": deltas,
    }


def skeleton_document(mesh: ConvertedMesh) -> dict:
    return {
        "metadata": {"type": "itpskel", "version": SKELETON_VERSION},
        "bonecount": len(mesh.bones),
        "bones": [
            {
                "name": bone.name,
                "parentIndex": bone.parent_index,
                "bindPose": {"rot": _vec(bone.rotation), "trans": _vec(bone.translation)},
            }
            for bone in mesh.bones
        ],
    }


def dumps(document: dict) -> str:
    """Serialize with tab indentation, keeping numeric rows on a single line."""
    text = json.dumps(document, indent="\t")

    def _collapse(m: re.Match) -> str:
        values = re.split(r",\s*", m.group(1).strip())
        return "[ " + ", ".join(values) + " ]"

    return _NUMBER_ROW.sub(_collapse, text) + "\n"


def _write(path: Path, document: dict) -> Path:
    try:
        path.write_text(dumps(document), encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Cannot write {path}: {e}") from e
    return path


def _claim(
    output_dir: Path, stem: str, suffix: str, taken: set[Path], prefix: str | None = None
) -> Path:
    """Pick an unused output path, prefixing then numbering on collision."""
    path = output_dir / f"{stem}{suffix}"
    if path in taken and prefix is not None:
        path = output_dir / f"{prefix}_{stem}{suffix}"
    base = path.stem
    n = 1
    while path in taken:
        path = output_dir / f"{base}_{n}{suffix}"
        n += 1
    taken.add(path)
    return path


def write_itp(
    mesh: ConvertedMesh, output_dir: Path, taken: set[Path] | None = None
) -> list[Path]:
    """Write a converted mesh and its blend shapes/skeleton into ``output_dir``.

    ``taken`` collects the paths already written in this run and is updated
    in place. A blend shape whose file name is taken is prefixed with the
    mesh name (``<mesh>_<shape>.itpblend``); any remaining clash gets a
    numeric suffix.

    Returns:
        The written paths: the .itpmesh3 file, then one .itpblend per blend
        shape, then the .itpskel file when the mesh is skinned.
    """
    taken = set() if taken is None else taken
    output_dir.mkdir(parents=True, exist_ok=True)
    mesh_path = _claim(output_dir, mesh.name, ".itpmesh3", taken)
    written = [_write(mesh_path, mesh_document(mesh))]
    for shape in mesh.blend_shapes:
        blend_path = _claim(output_dir, shape.name, ".itpblend", taken, prefix=mesh.name)
        written.append(_write(blend_path, blend_document(shape)))
    if mesh.is_skinned:
        skel_path = _claim(output_dir, mesh.name, ".itpskel", taken)
        written.append(_write(skel_path, skeleton_document(mesh)))
    return written
