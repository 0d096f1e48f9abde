"""Inspection diagnostics for source scenes."""

from __future__ import annotations

import numpy as np

from itpmesh.converter import ConvertedMesh, convert_mesh, mesh_visit_order, node_parent_map
from itpmesh.elements import triangulate
from itpmesh.models import ConvertOptions, SourceMesh, SourceScene
from itpmesh.skeleton import bone_depths
from itpmesh.warning_policy import WarningPolicy


def inspect_scene(
    scene: SourceScene,
    *,
    options: ConvertOptions | None = None,
    warning_policy: WarningPolicy | None = None,
) -> dict[str, object]:
    """Convert a validated scene in memory and summarize every mesh."""
    parents = node_parent_map(scene)
    meshes: list[dict[str, object]] = []
    for name, source in mesh_visit_order(scene):
        converted = convert_mesh(
            source,
            name=name,
            node_parents=parents,
            options=options,
            warning_policy=warning_policy,
        )
        meshes.append(_mesh_payload(source, converted))

    return {
        "inspect_schema_version": 1,
        "summary": {
            "scene_version": scene.version,
            "node_count": len(scene.nodes),
            "mesh_count": len(meshes),
            "vertex_count": sum(m["vertex_count"] for m in meshes),
            "triangle_count": sum(m["triangle_count"] for m in meshes),
        },
        "meshes": meshes,
    }


def _bounds(vertices: np.ndarray) -> dict[str, list[float]]:
    if len(vertices) == 0:
        zeros = [0.0, 0.0, 0.0]
        return {"min": zeros, "max": zeros}
    positions = vertices["position"].astype(np.float64)
    return {
        "min": _to_list(positions.min(axis=0)),
        "max": _to_list(positions.max(axis=0)),
    }


def _mesh_payload(source: SourceMesh, converted: ConvertedMesh) -> dict[str, object]:
    depths = bone_depths(converted.bones)
    return {
        "name": converted.name,
        "source_id": source.id,
        "control_point_count": len(source.control_points),
        "polygon_count": len(source.polygons),
        "corner_count": int(triangulate(source.polygons).size),
        "vertex_count": len(converted.vertices),
        "triangle_count": len(converted.triangles),
        "vertex_format": [name for name, _kind, _count in converted.format.attributes()],
        "bounds": _bounds(converted.vertices),
        "bones": [
            {"name": bone.name, "parent_index": bone.parent_index, "depth": depth}
            for bone, depth in zip(converted.bones, depths)
        ],
        "max_bone_depth": max(depths, default=0),
        "blend_shapes": [shape.name for shape in converted.blend_shapes],
    }


def render_text(payload: dict[str, object]) -> str:
    """Render human-readable text output for inspect diagnostics."""
    lines: list[str] = []

    isv = payload.get("inspect_schema_version")
    if isv is not None:
        lines.append(f"inspect_schema_version: {isv}")

    summary = payload["summary"]
    lines.append("summary:")
    lines.append(f"  scene_version: {summary['scene_version']}")
    lines.append(f"  node_count: {summary['node_count']}")
    lines.append(f"  mesh_count: {summary['mesh_count']}")
    lines.append(f"  vertex_count: {summary['vertex_count']}")
    lines.append(f"  triangle_count: {summary['triangle_count']}")

    lines.append("meshes:")
    meshes = payload.get("meshes", [])
    if isinstance(meshes, list) and meshes:
        for mesh in meshes:
            lines.append(f"  - name: {mesh['name']}")
            lines.append(f"    source_id: {mesh['source_id']}")
            lines.append(f"    control_points: {mesh['control_point_count']}")
            lines.append(f"    corners: {mesh['corner_count']}")
            lines.append(f"    vertices: {mesh['vertex_count']}")
            lines.append(f"    triangles: {mesh['triangle_count']}")
            lines.append(f"    vertex_format: {', '.join(mesh['vertex_format'])}")
            lines.append(f"    bounds.min: {_fmt_vec(mesh['bounds']['min'])}")
            lines.append(f"    bounds.max: {_fmt_vec(mesh['bounds']['max'])}")
            bones = mesh["bones"]
            if bones:
                lines.append(f"    bones: {len(bones)} (max depth {mesh['max_bone_depth']})")
                for bone in bones:
                    lines.append(f"      - {bone['name']} parent={bone['parent_index']}")
            else:
                lines.append("    bones: []")
            shapes = mesh["blend_shapes"]
            if shapes:
                lines.append(f"    blend_shapes: {', '.join(shapes)}")
            else:
                lines.append("    blend_shapes: []")
    else:
        lines.append("  []")

    return "\n".join(lines) + "\n"


def _to_list(vec: np.ndarray) -> list[float]:
    return [float(v) for v in vec.tolist()]


def _fmt_vec(vec: object) -> str:
    if not isinstance(vec, list):
        return str(vec)
    return "[" + ", ".join(f"{float(v):.6g}" for v in vec) + "]"
