"""Shared scene fixtures for itpmesh tests."""

import pytest

TRIANGLE_YAML = """\
version: "1.0"
nodes:
  - name: tri
    mesh: tri_mesh
meshes:
  - id: tri_mesh
    control_points: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
    polygons: [[0, 1, 2]]
    normals:
      mapping: by_polygon_vertex
      values: [[0, 0, 1], [0, 0.6, 0.8], [0, 0.8, 0.6]]
    uvs:
      mapping: by_control_point
      values: [[0, 0], [1, 0], [0, 0.25]]
"""

# Two quads folded along the shared edge cp1-cp2; every corner of quad A
# carries normal +Z and every corner of quad B carries +X.
FOLDED_QUADS_YAML = """\
version: "1.0"
nodes:
  - name: fold
    mesh: fold_mesh
meshes:
  - id: fold_mesh
    control_points:
      - [0, 0, 0]
      - [1, 0, 0]
      - [1, 1, 0]
      - [0, 1, 0]
      - [1, 0, -1]
      - [1, 1, -1]
    polygons: [[0, 1, 2, 3], [1, 4, 5, 2]]
    normals:
      mapping: by_polygon_vertex
      reference: index_to_direct
      values: [[0, 0, 1], [1, 0, 0]]
      indices: [0, 0, 0, 0, 1, 1, 1, 1]
    blend_shapes:
      - name: faces
        channels:
          - name: lift
            targets:
              - control_points:
                  - [0, 0, 0]
                  - [1, 0, 0.5]
                  - [1, 1, 0]
                  - [0, 1, 0]
                  - [1, 0, -1]
                  - [1, 1, -1]
                normals:
                  mapping: by_control_point
                  values:
                    - [0, 0, 1]
                    - [0, 0, 1]
                    - [0, 0, 1]
                    - [0, 0, 1]
                    - [0, 0, 1]
                    - [0, 0, 1]
          - name: smile
            targets:
              - control_points:
                  - [0, 0, 0]
                  - [1, 0, 0]
                  - [1, 1, 0]
                  - [0, 1, 0.25]
                  - [1, 0, -1]
                  - [1, 1, -1]
              - control_points:
                  - [0, 0, 0]
                  - [1, 0, 0]
                  - [1, 1, 0]
                  - [0, 1, 1]
                  - [1, 0, -1]
                  - [1, 1, -1]
          - name: broken
            targets:
              - control_points: [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0], [1, 0, -1]]
"""

# A quad skinned to two bones below a non-bone root node. hip is bound one
# unit up the Y axis, spine two units up.
SKINNED_QUAD_YAML = """\
version: "1.0"
nodes:
  - name: Armature
  - name: hip
    parent: Armature
  - name: spine
    parent: hip
  - name: body
    parent: Armature
    mesh: body_mesh
meshes:
  - id: body_mesh
    control_points: [[0, 0, 0], [1, 0, 0], [1, 2, 0], [0, 2, 0]]
    polygons: [[0, 1, 2, 3]]
    clusters:
      - link: hip
        indices: [0, 1, 2, 3]
        weights: [1.0, 1.0, 0.5, 0.25]
        link_bind_matrix:
          - [1, 0, 0, 0]
          - [0, 1, 0, 1]
          - [0, 0, 1, 0]
          - [0, 0, 0, 1]
      - link: spine
        indices: [2, 3]
        weights: [0.5, 0.75]
        link_bind_matrix:
          - [1, 0, 0, 0]
          - [0, 1, 0, 2]
          - [0, 0, 1, 0]
          - [0, 0, 0, 1]
"""


@pytest.fixture
def triangle_yaml():
    return TRIANGLE_YAML


@pytest.fixture
def folded_quads_yaml():
    return FOLDED_QUADS_YAML


@pytest.fixture
def skinned_quad_yaml():
    return SKINNED_QUAD_YAML
