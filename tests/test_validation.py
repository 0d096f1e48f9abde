"""Tests for semantic validation."""

import pytest
import yaml

from itpmesh.errors import ValidationError
from itpmesh.models import SourceScene
from itpmesh.validation import validate

_BASE_MESH = """\
  - id: m
    control_points: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
    polygons: [[0, 1, 2]]
"""


def _scene(body):
    return SourceScene(**yaml.safe_load('version: "1.0"\n' + body))


def _mesh_scene(extra):
    return _scene("meshes:\n" + _BASE_MESH + extra)


class TestValidScenes:
    def test_fixtures_pass(self, triangle_yaml, folded_quads_yaml, skinned_quad_yaml):
        for text in (triangle_yaml, folded_quads_yaml, skinned_quad_yaml):
            validate(SourceScene(**yaml.safe_load(text)))

    def test_empty_scene(self):
        validate(_scene("nodes: []\n"))

    def test_blend_count_mismatch_is_not_an_error(self, folded_quads_yaml):
        # The 'broken' channel is reported during conversion instead.
        validate(SourceScene(**yaml.safe_load(folded_quads_yaml)))


class TestNodeChecks:
    def test_duplicate_node_name(self):
        with pytest.raises(ValidationError, match="Duplicate node name"):
            validate(_scene("nodes:\n  - name: a\n  - name: a\n"))

    def test_duplicate_mesh_id(self):
        with pytest.raises(ValidationError, match="Duplicate mesh id"):
            validate(_scene("meshes:\n" + _BASE_MESH + _BASE_MESH))

    def test_unknown_parent(self):
        with pytest.raises(ValidationError, match="unknown parent"):
            validate(_scene("nodes:\n  - name: a\n    parent: ghost\n"))

    def test_unknown_mesh(self):
        with pytest.raises(ValidationError, match="unknown mesh"):
            validate(_scene("nodes:\n  - name: a\n    mesh: ghost\n"))

    def test_cycle(self):
        body = "nodes:\n  - name: a\n    parent: b\n  - name: b\n    parent: a\n"
        with pytest.raises(ValidationError, match="Cycle"):
            validate(_scene(body))


class TestMeshChecks:
    def test_polygon_out_of_range(self):
        body = (
            "meshes:\n  - id: m\n    control_points: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]\n"
            "    polygons: [[0, 1, 3]]\n"
        )
        with pytest.raises(ValidationError, match="references control point 3"):
            validate(_scene(body))

    def test_non_finite_position(self):
        body = (
            "meshes:\n  - id: m\n    control_points: [[0, 0, .nan], [1, 0, 0], [0, 1, 0]]\n"
            "    polygons: [[0, 1, 2]]\n"
        )
        with pytest.raises(ValidationError, match="non-finite"):
            validate(_scene(body))

    def test_direct_element_too_few_values(self):
        extra = "    normals:\n      mapping: by_polygon_vertex\n      values: [[0, 0, 1]]\n"
        with pytest.raises(ValidationError, match="needs 3 values, got 1"):
            validate(_mesh_scene(extra))

    def test_index_array_too_short(self):
        extra = (
            "    uvs:\n      mapping: by_control_point\n      reference: index_to_direct\n"
            "      values: [[0, 0]]\n      indices: [0, 0]\n"
        )
        with pytest.raises(ValidationError, match="needs 3 indices, got 2"):
            validate(_mesh_scene(extra))

    def test_index_past_values(self):
        extra = (
            "    tangents:\n      mapping: by_polygon_vertex\n      reference: index_to_direct\n"
            "      values: [[1, 0, 0]]\n      indices: [0, 1, 0]\n"
        )
        with pytest.raises(ValidationError, match="index 1 out of range"):
            validate(_mesh_scene(extra))

    def test_unmapped_index_allowed(self):
        extra = (
            "    normals:\n      mapping: by_polygon_vertex\n      reference: index_to_direct\n"
            "      values: [[0, 0, 1]]\n      indices: [0, -1, 0]\n"
        )
        validate(_mesh_scene(extra))

    def test_index_below_minus_one(self):
        extra = (
            "    normals:\n      mapping: by_polygon_vertex\n      reference: index_to_direct\n"
            "      values: [[0, 0, 1]]\n      indices: [0, -2, 0]\n"
        )
        with pytest.raises(ValidationError, match="out of range"):
            validate(_mesh_scene(extra))


class TestClusterChecks:
    def test_unknown_link(self):
        extra = "    clusters:\n      - link: ghost\n        indices: [0]\n        weights: [1]\n"
        with pytest.raises(ValidationError, match="links unknown node 'ghost'"):
            validate(_mesh_scene(extra))

    def test_missing_link_allowed(self):
        extra = "    clusters:\n      - indices: [0]\n        weights: [1]\n"
        validate(_mesh_scene(extra))

    def test_control_point_out_of_range(self):
        body = (
            "nodes:\n  - name: hip\n"
            "meshes:\n" + _BASE_MESH + "    clusters:\n      - link: hip\n"
            "        indices: [7]\n        weights: [1]\n"
        )
        with pytest.raises(ValidationError, match="cluster 0 references control point 7"):
            validate(_scene(body))

    def test_non_finite_weight(self):
        body = (
            "nodes:\n  - name: hip\n"
            "meshes:\n" + _BASE_MESH + "    clusters:\n      - link: hip\n"
            "        indices: [0]\n        weights: [.inf]\n"
        )
        with pytest.raises(ValidationError, match="non-finite"):
            validate(_scene(body))

    def test_singular_mesh_bind_matrix(self):
        body = (
            "nodes:\n  - name: hip\n"
            "meshes:\n" + _BASE_MESH + "    clusters:\n      - link: hip\n"
            "        indices: [0]\n        weights: [1]\n"
            "        mesh_bind_matrix: [[0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 1]]\n"
        )
        with pytest.raises(ValidationError, match="cluster 0 mesh_bind_matrix is not invertible"):
            validate(_scene(body))

    def test_singular_link_bind_matrix(self):
        extra = (
            "    clusters:\n      - indices: [0]\n        weights: [1]\n"
            "        link_bind_matrix: [[1, 0, 0, 0], [1, 0, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]]\n"
        )
        with pytest.raises(ValidationError, match="link_bind_matrix is not invertible"):
            validate(_mesh_scene(extra))


class TestBlendTargetChecks:
    def test_target_element_too_short(self):
        extra = (
            "    blend_shapes:\n      - channels:\n          - name: c\n            targets:\n"
            "              - control_points: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]\n"
            "                normals:\n                  mapping: by_control_point\n"
            "                  values: [[0, 0, 1]]\n"
        )
        with pytest.raises(ValidationError, match="channel 'c' target 0"):
            validate(_mesh_scene(extra))

    def test_target_non_finite(self):
        extra = (
            "    blend_shapes:\n      - channels:\n          - name: c\n            targets:\n"
            "              - control_points: [[0, 0, 0], [1, .nan, 0], [0, 1, 0]]\n"
        )
        with pytest.raises(ValidationError, match="non-finite"):
            validate(_mesh_scene(extra))
