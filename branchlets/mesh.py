"""Append-only buffers holding everything needed to construct a mesh."""

import numpy as np


class MeshBuffers:
    """
    Vertex, face and UV buffers for one mesh.

    A buffer set may hold a single branchlet or many of them, as every
    append only ever adds to the end of each buffer. The buffers are laid out
    the way polygon mesh constructors expect them:

    - vertices: [x,y,z] positions in creation order
    - face_vertex_counts: number of corners of each face
    - face_vertex_indices: vertex index of every face corner, flattened
    - us, vs: texture coordinates, one entry per UV
    - uv_indices: UV index of every face corner, flattened
    """

    def __init__(self):
        self.vertices = []
        self.face_vertex_counts = []
        self.face_vertex_indices = []
        self.us = []
        self.vs = []
        self.uv_indices = []

    @property
    def vertex_count(self):
        return len(self.vertices)

    @property
    def uv_count(self):
        return len(self.us)

    @property
    def face_count(self):
        return len(self.face_vertex_counts)

    @property
    def is_empty(self):
        return not self.vertices

    @property
    def uv_coords(self):
        """(N, 2) array of (u, v) pairs"""
        if not self.us:
            return np.zeros((0, 2), dtype=np.float32)
        return np.column_stack((self.us, self.vs)).astype(np.float32)

    def add_vertices(self, points):
        """Append [x,y,z] points to the vertex buffer"""
        self.vertices.extend(np.array(p, dtype=np.float64) for p in points)

    def vertex_array(self):
        """(N, 3) float32 array of vertex positions"""
        if not self.vertices:
            return np.zeros((0, 3), dtype=np.float32)
        return np.array(self.vertices, dtype=np.float32)

    def as_arrays(self):
        """
        Hand the buffers off as numpy arrays.

        Returns:
            tuple: (vertex count, face counts, face vertex indices, us, vs, uv indices)
        """
        return (
            self.vertex_count,
            np.array(self.face_vertex_counts, dtype=np.int32),
            np.array(self.face_vertex_indices, dtype=np.int32),
            np.array(self.us, dtype=np.float32),
            np.array(self.vs, dtype=np.float32),
            np.array(self.uv_indices, dtype=np.int32),
        )

    def __repr__(self):
        return f"MeshBuffers(vertices={self.vertex_count}, faces={self.face_count}, uvs={self.uv_count})"
