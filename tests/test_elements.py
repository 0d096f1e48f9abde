"""Tests for corner sampling and fan triangulation."""

import numpy as np
import yaml

from itpmesh.elements import (
    resolve_element_indices,
    sample_corners,
    sample_element,
    sample_per_control_point,
    triangulate,
)
from itpmesh.models import SourceScene, UvElement, VectorElement


class TestTriangulate:
    def test_triangle(self):
        np.testing.assert_array_equal(triangulate([[4, 5, 6]]), [[0, 1, 2]])

    def test_quad_fans_from_first_corner(self):
        np.testing.assert_array_equal(triangulate([[0, 1, 2, 3]]), [[0, 1, 2], [0, 2, 3]])

    def test_offsets_continue_across_polygons(self):
        tris = triangulate([[0, 1, 2], [2, 1, 3, 4, 5]])
        assert tris.shape == (4, 3)
        np.testing.assert_array_equal(tris[1:], [[3, 4, 5], [3, 5, 6], [3, 6, 7]])

    def test_empty(self):
        assert triangulate([]).shape == (0, 3)


class TestResolveElementIndices:
    control_points = np.array([2, 0, 1])
    polygon_vertices = np.array([0, 1, 2])

    def test_by_control_point_direct(self):
        element = VectorElement(mapping="by_control_point", values=[(0, 0, 1)] * 3)
        idx = resolve_element_indices(element, self.control_points, self.polygon_vertices)
        np.testing.assert_array_equal(idx, [2, 0, 1])

    def test_by_polygon_vertex_direct(self):
        element = VectorElement(mapping="by_polygon_vertex", values=[(0, 0, 1)] * 3)
        idx = resolve_element_indices(element, self.control_points, self.polygon_vertices)
        np.testing.assert_array_equal(idx, [0, 1, 2])

    def test_by_control_point_indexed(self):
        element = VectorElement(
            mapping="by_control_point",
            reference="index_to_direct",
            values=[(0, 0, 1), (1, 0, 0)],
            indices=[1, 1, 0],
        )
        idx = resolve_element_indices(element, self.control_points, self.polygon_vertices)
        np.testing.assert_array_equal(idx, [0, 1, 1])

    def test_by_polygon_vertex_indexed(self):
        element = UvElement(
            mapping="by_polygon_vertex",
            reference="index_to_direct",
            values=[(0, 0), (1, 1)],
            indices=[1, 0, 1],
        )
        idx = resolve_element_indices(element, self.control_points, self.polygon_vertices)
        np.testing.assert_array_equal(idx, [1, 0, 1])


class TestSampleElement:
    def test_unmapped_corner_is_zero_and_absent(self):
        element = VectorElement(
            mapping="by_polygon_vertex",
            reference="index_to_direct",
            values=[(0, 0, 1)],
            indices=[0, -1, 0],
        )
        values, present = sample_element(element, np.array([0, 1, 2]), np.array([0, 1, 2]))
        np.testing.assert_array_equal(present, [True, False, True])
        np.testing.assert_allclose(values, [[0, 0, 1], [0, 0, 0], [0, 0, 1]])

    def test_per_control_point(self):
        element = VectorElement(
            mapping="by_control_point",
            reference="index_to_direct",
            values=[(1, 0, 0), (0, 1, 0)],
            indices=[1, 0],
        )
        np.testing.assert_allclose(
            sample_per_control_point(element, 2), [[0, 1, 0], [1, 0, 0]]
        )


class TestSampleCorners:
    def test_triangle_channels(self, triangle_yaml):
        mesh = SourceScene(**yaml.safe_load(triangle_yaml)).meshes[0]
        samples = sample_corners(mesh)
        assert len(samples) == 3
        np.testing.assert_array_equal(samples.control_points, [0, 1, 2])
        np.testing.assert_allclose(samples.positions, [[0, 0, 0], [1, 0, 0], [0, 1, 0]])
        np.testing.assert_allclose(samples.normals[1], [0, 0.6, 0.8])
        assert samples.tangents is None

    def test_uv_v_is_flipped(self, triangle_yaml):
        mesh = SourceScene(**yaml.safe_load(triangle_yaml)).meshes[0]
        samples = sample_corners(mesh)
        np.testing.assert_allclose(samples.uvs, [[0, 1], [1, 1], [0, 0.75]])

    def test_unmapped_uv_stays_zero(self):
        mesh = SourceScene(
            **yaml.safe_load(
                """\
version: "1.0"
meshes:
  - id: m
    control_points: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
    polygons: [[0, 1, 2]]
    uvs:
      mapping: by_polygon_vertex
      reference: index_to_direct
      values: [[0.5, 0.5]]
      indices: [0, -1, 0]
"""
            )
        ).meshes[0]
        samples = sample_corners(mesh)
        np.testing.assert_allclose(samples.uvs, [[0.5, 0.5], [0, 0], [0.5, 0.5]])

    def test_quad_produces_six_corners(self, folded_quads_yaml):
        mesh = SourceScene(**yaml.safe_load(folded_quads_yaml)).meshes[0]
        samples = sample_corners(mesh)
        assert len(samples) == 12
        np.testing.assert_array_equal(samples.control_points[:6], [0, 1, 2, 0, 2, 3])
        np.testing.assert_array_equal(samples.control_points[6:], [1, 4, 5, 1, 5, 2])
