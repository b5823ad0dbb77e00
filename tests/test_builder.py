"""
Branchlet buffer tests

Tests for vertex, face and UV buffers of tubes and strips, batching several
branchlets into one buffer set, and the create() entry points.
"""

import logging
import math

import numpy as np
import pytest

from branchlets import (Branchlets, EmptySkeleton, InvalidSidesCount, MeshBuffers, Segment,
                        StripLayout, TubeLayout, create, create_default, get_v_scaler,
                        make_vertex_coords)
from branchlets.geometry import find_ellipse_vectors, make_vertex_ring


def bent_skeleton(segment_count):
    """A tapering skeleton that bends a little at every joint"""
    segments = []
    for i in range(segment_count):
        angle = 0.4 * i
        direction = [0.3 * math.cos(angle), 1.0, 0.3 * math.sin(angle)]
        segments.append(Segment(direction, 0.3 - 0.05 * i))
    return segments


class TestTubeCounts:
    """Test buffer sizes of n-sided tubes."""

    @pytest.mark.parametrize("segment_count", [1, 2, 5])
    @pytest.mark.parametrize("sides", [3, 4, 7])
    def test_vertex_and_face_counts(self, segment_count, sides):
        buffers = Branchlets(sides).add_one([0, 0, 0], bent_skeleton(segment_count)).buffers

        assert buffers.vertex_count == (segment_count + 1) * sides + 1
        assert buffers.face_count == segment_count * sides + sides
        assert sum(buffers.face_vertex_counts) == 4 * segment_count * sides + 3 * sides
        assert len(buffers.face_vertex_indices) == sum(buffers.face_vertex_counts)
        assert len(buffers.uv_indices) == sum(buffers.face_vertex_counts)
        assert buffers.uv_count == (segment_count + 1) * (sides + 1) + sides
        assert len(buffers.us) == len(buffers.vs)

    def test_indices_are_in_range(self):
        buffers = Branchlets(5).add_one([0, 0, 0], bent_skeleton(3)).buffers

        assert max(buffers.face_vertex_indices) == buffers.vertex_count - 1
        assert min(buffers.face_vertex_indices) == 0
        assert max(buffers.uv_indices) == buffers.uv_count - 1
        assert min(buffers.uv_indices) == 0


class TestStripCounts:
    """Test buffer sizes of 2-sided strips."""

    @pytest.mark.parametrize("segment_count", [1, 2, 6])
    def test_vertex_and_face_counts(self, segment_count):
        buffers = Branchlets(2).add_one([0, 0, 0], bent_skeleton(segment_count)).buffers

        assert buffers.vertex_count == 2 * (segment_count + 1) + 1
        assert buffers.face_count == segment_count + 1
        assert buffers.face_vertex_counts[-1] == 3
        assert all(count == 4 for count in buffers.face_vertex_counts[:-1])
        assert buffers.uv_count == buffers.vertex_count


class TestStraightTube:
    """Test a straight, untapered tube of 2 segments and 4 sides."""

    @pytest.fixture
    def buffers(self):
        segments = [Segment([0, 1, 0], 1.0), Segment([0, 1, 0], 1.0)]
        return create([0, 0, 0], 4, segments).buffers

    def test_counts(self, buffers):
        assert buffers.vertex_count == 13
        assert buffers.face_count == 12

    def test_rings_are_identical_circles(self, buffers):
        vertices = np.array(buffers.vertices)

        for ring in range(3):
            ring_vertices = vertices[ring * 4:(ring + 1) * 4]
            offsets = ring_vertices - [0.0, float(ring), 0.0]
            np.testing.assert_allclose(np.linalg.norm(offsets, axis=1), 1.0)
            np.testing.assert_allclose(ring_vertices[:, 1], float(ring), atol=1e-12)

        np.testing.assert_allclose(vertices[4:8] - vertices[0:4], [[0.0, 1.0, 0.0]] * 4, atol=1e-12)

    def test_first_ring(self, buffers):
        expected = [
            [1, 0, 0],
            [0, 0, -1],
            [-1, 0, 0],
            [0, 0, 1],
        ]
        np.testing.assert_allclose(buffers.vertices[:4], expected, atol=1e-12)

    def test_cap_vertex(self, buffers):
        np.testing.assert_allclose(buffers.vertices[-1], [0.0, 3.0, 0.0], atol=1e-12)

    def test_vs(self, buffers):
        v_scaler = 0.25 / math.sqrt(2.0)

        np.testing.assert_allclose(buffers.vs[0:5], 0.0)
        np.testing.assert_allclose(buffers.vs[5:10], v_scaler)
        np.testing.assert_allclose(buffers.vs[10:15], 2.0 * v_scaler)
        np.testing.assert_allclose(buffers.vs[15:], 2.0 * v_scaler + 0.25)

    def test_interior_ring_uses_merged_segment(self, buffers):
        major, minor = find_ellipse_vectors(Segment([0, 2, 0], 1.0))
        expected = make_vertex_ring(major, minor, [0, 1, 0], 4)

        np.testing.assert_allclose(buffers.vertices[4:8], expected)


class TestTubeConnectivity:
    """Test face and UV indices of a single-segment triangular tube."""

    @pytest.fixture
    def buffers(self):
        return Branchlets(3).add_one([0, 0, 0], [Segment([0, 1, 0], 0.5)]).buffers

    def test_face_counts(self, buffers):
        assert buffers.face_vertex_counts == [4, 4, 4, 3, 3, 3]

    def test_face_connects(self, buffers):
        assert buffers.face_vertex_indices == [
            0, 1, 4, 3,
            1, 2, 5, 4,
            2, 0, 3, 5,
            3, 4, 6,
            4, 5, 6,
            5, 3, 6,
        ]

    def test_uv_connects(self, buffers):
        assert buffers.uv_indices == [
            0, 1, 5, 4,
            1, 2, 6, 5,
            2, 3, 7, 6,
            4, 5, 8,
            5, 6, 9,
            6, 7, 10,
        ]

    def test_cap_us(self, buffers):
        np.testing.assert_allclose(buffers.us[8:], [1 / 6, 3 / 6, 5 / 6])


class TestStripConnectivity:
    """Test face and UV indices of strips."""

    def test_single_segment(self):
        buffers = Branchlets(2).add_one([0, 0, 0], [Segment([0, 1, 0], 0.5)]).buffers

        assert buffers.face_vertex_counts == [4, 3]
        assert buffers.face_vertex_indices == [0, 1, 3, 2, 2, 3, 4]
        assert buffers.uv_indices == [0, 1, 3, 2, 2, 3, 4]

    def test_strip_is_not_closed(self):
        buffers = Branchlets(2).add_one([0, 0, 0], bent_skeleton(3)).buffers

        assert buffers.face_vertex_indices == [
            0, 1, 3, 2,
            2, 3, 5, 4,
            4, 5, 7, 6,
            6, 7, 8,
        ]

    def test_uvs(self):
        buffers = Branchlets(2).add_one([0, 0, 0], [Segment([0, 1, 0], 0.5)], v_offset=1.0).buffers

        assert buffers.us == [0.0, 1.0, 0.0, 1.0, 0.5]
        # Face width is the 1.0 diameter, so v tracks world distance
        np.testing.assert_allclose(buffers.vs, [1.0, 1.0, 2.0, 2.0, 2.0 + 0.5 * math.sqrt(2.0)])


class TestUVs:
    """Test u and v placement for tubes."""

    def test_seam_closes_every_ring(self):
        sides = 6
        buffers = Branchlets(sides, u_width_multiplier=2.0).add_one([0, 0, 0], bent_skeleton(4)).buffers
        u_face_width = 2.0 / sides

        for ring in range(5):
            first = ring * (sides + 1)
            last = first + sides
            assert buffers.us[last] - buffers.us[first] == pytest.approx(sides * u_face_width)
            assert buffers.vs[last] == buffers.vs[first]

    def test_v_offset_sets_first_ring(self):
        buffers = Branchlets(5).add_one([0, 0, 0], bent_skeleton(2), v_offset=3.5).buffers

        assert buffers.vs[:6] == [3.5] * 6
        assert min(buffers.vs) == 3.5

    def test_vs_increase_up_the_tube(self):
        sides = 5
        buffers = Branchlets(sides).add_one([0, 0, 0], bent_skeleton(4)).buffers
        vs = np.array(buffers.vs[:5 * (sides + 1)]).reshape(5, sides + 1)

        assert np.all(np.diff(vs, axis=0) > 0)
        assert min(buffers.vs[5 * (sides + 1):]) > vs[-1].min()

    def test_texture_ratio_scales_vs(self):
        skeleton = bent_skeleton(3)
        square = Branchlets(4).add_one([0, 0, 0], skeleton).buffers
        wide = Branchlets(4, texture_w_to_h_ratio=2.0).add_one([0, 0, 0], skeleton).buffers

        np.testing.assert_allclose(wide.vs, np.array(square.vs) * 2.0)
        assert wide.us == square.us


class TestGetVScaler:
    """Test the world to texture scale factor."""

    def test_square_ring(self):
        assert get_v_scaler(1.0, 0.25, 4) == pytest.approx(0.25 / math.sqrt(2.0))

    def test_hexagon_face_width_equals_radius(self):
        assert get_v_scaler(2.0, 1 / 6, 6) == pytest.approx((1 / 6) / 2.0)

    def test_strip_face_width_is_diameter(self):
        assert get_v_scaler(0.5, 1.0, 2, texture_w_to_h_ratio=3.0) == pytest.approx(3.0)


class TestBatching:
    """Test appending several branchlets to one buffer set."""

    @pytest.mark.parametrize("sides", [2, 3, 6])
    def test_second_branchlet_is_offset(self, sides):
        first = bent_skeleton(2)
        second = bent_skeleton(3)

        alone = Branchlets(sides).add_one([5, 0, 1], second, v_offset=2.0).buffers
        batched = Branchlets(sides).add_one([0, 0, 0], first).add_one([5, 0, 1], second, v_offset=2.0).buffers

        vertex_offset = batched.vertex_count - alone.vertex_count
        uv_offset = batched.uv_count - alone.uv_count
        face_offset = batched.face_count - alone.face_count
        corner_offset = len(batched.face_vertex_indices) - len(alone.face_vertex_indices)

        np.testing.assert_allclose(batched.vertices[vertex_offset:], alone.vertices)
        assert batched.face_vertex_counts[face_offset:] == alone.face_vertex_counts
        assert batched.face_vertex_indices[corner_offset:] == [i + vertex_offset for i in alone.face_vertex_indices]
        assert batched.uv_indices[corner_offset:] == [i + uv_offset for i in alone.uv_indices]
        assert batched.us[uv_offset:] == alone.us
        np.testing.assert_allclose(batched.vs[uv_offset:], alone.vs)

    def test_shared_buffers(self):
        buffers = MeshBuffers()
        Branchlets(4, buffers=buffers).add_one([0, 0, 0], bent_skeleton(1))
        Branchlets(4, buffers=buffers).add_one([1, 0, 0], bent_skeleton(1))

        assert buffers.vertex_count == 2 * (2 * 4 + 1)


class TestMakeVertexCoords:
    """Test placing rings along the skeleton."""

    def test_ring_centers_follow_segments(self):
        segments = [Segment([0, 1, 0], 0.1), Segment([1, 1, 0], 0.1), Segment([0, 0, 2], 0.1)]
        buffers = MeshBuffers()

        make_vertex_coords(buffers, [1, 2, 3], segments, 8)
        vertices = np.array(buffers.vertices)

        centers = [vertices[ring * 8:(ring + 1) * 8].mean(axis=0) for ring in range(4)]
        np.testing.assert_allclose(centers[0], [1, 2, 3], atol=1e-12)
        np.testing.assert_allclose(centers[1], [1, 3, 3], atol=1e-12)
        np.testing.assert_allclose(centers[2], [2, 4, 3], atol=1e-12)
        np.testing.assert_allclose(centers[3], [2, 4, 5], atol=1e-12)
        np.testing.assert_allclose(vertices[-1], [2, 4, 5.1], atol=1e-12)


class TestLayouts:
    """Test layout selection."""

    def test_tube_for_more_than_two_sides(self):
        branchlets = Branchlets(5)

        assert isinstance(branchlets.layout, TubeLayout)
        assert branchlets.mode == "tube"
        assert branchlets.sides == 5

    def test_strip_for_two_sides(self):
        branchlets = Branchlets(2)

        assert isinstance(branchlets.layout, StripLayout)
        assert branchlets.mode == "strip"
        assert branchlets.sides == 2

    @pytest.mark.parametrize("sides", [1, 0, -3])
    def test_invalid_sides_raise(self, sides):
        with pytest.raises(InvalidSidesCount):
            Branchlets(sides)


class TestCreate:
    """Test the create() and create_default() entry points."""

    def test_create(self):
        result = create([0, 0, 0], 6, bent_skeleton(2))

        assert result.ok
        assert result.error is None
        assert result.raise_for_error() is result.branchlets
        assert result.buffers.vertex_count == 3 * 6 + 1

    def test_create_accepts_pairs(self):
        result = create([0, 0, 0], 3, [([0, 1, 0], 0.2), ([0.2, 1, 0], 0.1)])

        assert result.buffers.vertex_count == 3 * 3 + 1

    def test_create_default_is_empty(self):
        result = create_default(2)

        assert result.ok
        assert result.branchlets.mode == "strip"
        assert result.buffers.is_empty

    @pytest.mark.parametrize("factory", [
        lambda: create([0, 0, 0], 1, bent_skeleton(2)),
        lambda: create_default(1),
    ])
    def test_invalid_sides_are_reported(self, factory, caplog):
        with caplog.at_level(logging.WARNING, logger="branchlets"):
            result = factory()

        assert not result.ok
        assert result.branchlets is None
        assert isinstance(result.error, InvalidSidesCount)
        assert result.error.sides == 1
        assert result.buffers.is_empty
        assert result.buffers.face_count == 0
        assert "less than 2 sides" in caplog.text

        with pytest.raises(InvalidSidesCount):
            result.raise_for_error()

    def test_empty_skeleton_fails_fast(self):
        branchlets = Branchlets(4)

        with pytest.raises(EmptySkeleton):
            branchlets.add_one([0, 0, 0], [])
        assert branchlets.buffers.is_empty

    def test_create_with_empty_skeleton_raises(self):
        with pytest.raises(EmptySkeleton):
            create([0, 0, 0], 4, [])


class TestMeshBuffers:
    """Test the buffer hand-off."""

    def test_as_arrays(self):
        buffers = Branchlets(4).add_one([0, 0, 0], bent_skeleton(2)).buffers

        vertex_count, counts, indices, us, vs, uv_indices = buffers.as_arrays()

        assert vertex_count == 13
        assert counts.shape == (12,)
        assert indices.shape == (44,)
        assert us.dtype == np.float32
        assert vs.shape == us.shape == (19,)
        assert uv_indices.shape == indices.shape
        assert buffers.uv_coords.shape == (19, 2)
        assert buffers.vertex_array().shape == (13, 3)

    def test_empty(self):
        buffers = MeshBuffers()

        assert buffers.is_empty
        assert buffers.vertex_array().shape == (0, 3)
        assert buffers.uv_coords.shape == (0, 2)
