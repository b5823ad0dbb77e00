"""
Build vertex, face and UV buffers for tapered tubes along a segment skeleton.

A skeleton is an ordered list of Segments starting at a point. Each joint
between segments gets a ring of vertices, the tip gets a single cap vertex,
and the rings are stitched into quads (or a flat ribbon when only 2 sides are
requested). Any number of skeletons can be appended to the same buffers.
"""

import logging
import math
from collections import namedtuple

import numpy as np

from .errors import EmptySkeleton, InvalidSidesCount
from .geometry import (Segment, find_ellipse_vectors, find_joint_ellipse_vectors,
                       make_vertex_ring, normalize)
from .mesh import MeshBuffers

logger = logging.getLogger(__name__)


def make_vertex_coords(buffers, start_point, segments, sides):
    """
    Append every vertex of one branchlet to the buffers.

    Parameters:
        buffers: MeshBuffers to append to
        start_point: [x,y,z] position of the base of the first segment
        segments: non-empty list of Segments from base to tip
        sides: number of vertices per ring
    """
    ring_center = np.array(start_point, dtype=np.float64).reshape(3)

    # First ring
    major, minor = find_ellipse_vectors(segments[0])
    buffers.add_vertices(make_vertex_ring(major, minor, ring_center, sides))
    ring_center = ring_center + segments[0].direction

    # Rings between the base and the tip
    for bottom, top in zip(segments, segments[1:]):
        major, minor = find_joint_ellipse_vectors(ring_center, bottom, top)
        buffers.add_vertices(make_vertex_ring(major, minor, ring_center, sides))
        ring_center = ring_center + top.direction

    # Last ring
    last = segments[-1]
    major, minor = find_ellipse_vectors(last)
    buffers.add_vertices(make_vertex_ring(major, minor, ring_center, sides))

    # Cap vertex
    buffers.add_vertices([ring_center + normalize(last.direction) * last.radius])


def get_v_scaler(ring_radius, u_face_width, sides, texture_w_to_h_ratio=1.0):
    """
    Find the factor turning world distances into v distances.

    The width of one face in world space comes from the law of cosines on the
    ring's wedge; scaling v by u_face_width over that width keeps faces
    roughly square in texture space.
    """
    wedge_angle = (2.0 * math.pi) / sides
    radius_squared = ring_radius * ring_radius
    face_width = math.sqrt((radius_squared + radius_squared) - (2.0 * radius_squared * math.cos(wedge_angle)))
    return (u_face_width / face_width) * texture_w_to_h_ratio


class TubeLayout:
    """
    Connectivity and UVs for a closed tube with 'sides' faces around.

    Every ring of vertices wraps around, but the UVs get an extra seam column
    per ring since a cylinder cannot be unwrapped without a cut.
    """
    mode = "tube"

    def __init__(self, sides, u_width_multiplier=1.0, texture_w_to_h_ratio=1.0):
        self.sides = sides
        self.u_width_multiplier = u_width_multiplier
        self.texture_w_to_h_ratio = texture_w_to_h_ratio

    def make_face_counts(self, buffers, segment_count):
        buffers.face_vertex_counts.extend([4] * (segment_count * self.sides))
        buffers.face_vertex_counts.extend([3] * self.sides)

    def make_face_connects(self, buffers, segment_count, initial_vertex_count):
        """Quads start on the lower left corner and go counter-clockwise"""
        sides = self.sides
        connects = buffers.face_vertex_indices

        for i in range(segment_count):
            first_corner = (i * sides) + initial_vertex_count
            for j in range(sides):
                corner = first_corner + j
                # The last face of every ring wraps back to its first vertex
                next_corner = first_corner + (j + 1) % sides
                connects.extend([corner, next_corner, next_corner + sides, corner + sides])

        # Triangles joining the last ring to the cap vertex
        first_corner = (segment_count * sides) + initial_vertex_count
        cap_index = first_corner + sides
        for j in range(sides):
            connects.extend([first_corner + j, first_corner + (j + 1) % sides, cap_index])

    def make_uvs(self, buffers, segments, initial_vertex_count, v_offset):
        """
        Append the UVs of one tube.

        All u's fit in 0 to u_width_multiplier. The v's follow the world
        distance between rings scaled to match, so a long tube runs well past
        1 in v. v_offset is the v of the first ring.
        """
        sides = self.sides
        segment_count = len(segments)
        vertices = buffers.vertices
        us, vs = buffers.us, buffers.vs

        u_face_width = (1.0 / sides) * self.u_width_multiplier
        v_scaler = get_v_scaler(segments[0].radius, u_face_width, sides, self.texture_w_to_h_ratio)

        for ring in range(segment_count + 1):
            for side in range(sides):
                us.append(side * u_face_width)

                if ring > 0:
                    # Adjacent rings are 'sides' apart in the vertex buffer but 'sides + 1' apart in the UVs
                    vertex_index = initial_vertex_count + ring * sides + side
                    dist_to_vertex_below = np.linalg.norm(vertices[vertex_index] - vertices[vertex_index - sides])
                    vs.append(vs[-(sides + 1)] + dist_to_vertex_below * v_scaler)
                else:
                    vs.append(v_offset)

            # Seam UV, with the same v as the first UV of the ring
            us.append(sides * u_face_width)
            vs.append(vs[-sides])

            # Rings shrink going up, so rescale v per ring to keep the texture
            # from looking squashed. The texture still shrinks along the tube,
            # but uniformly.
            if ring + 1 < segment_count:
                v_scaler = get_v_scaler(segments[ring + 1].radius, u_face_width, sides, self.texture_w_to_h_ratio)

        # The cap vertex sits one radius past the last ring, so in world space it
        # is radius * sqrt(2) from the ring. Only exact for infinitely many sides.
        v_length_to_cap = v_scaler * segments[-1].radius * math.sqrt(2.0)

        ring_start = len(vs) - (sides + 1)
        for i in range(sides):
            us.append((i * u_face_width) + (u_face_width * 0.5))
            # Average the two v's below to account for skew
            v_between_lower_uvs = (vs[ring_start + i] + vs[ring_start + i + 1]) / 2.0
            vs.append(v_between_lower_uvs + v_length_to_cap)

    def make_uv_connects(self, buffers, segment_count, initial_uv_count):
        # Like the face connects, but the seam column means nothing wraps
        sides = self.sides
        uv_sides = sides + 1
        uv_indices = buffers.uv_indices
        lower_left = initial_uv_count

        for i in range(segment_count):
            for j in range(sides):
                uv_indices.extend([lower_left, lower_left + 1, lower_left + 1 + uv_sides, lower_left + uv_sides])
                lower_left += 1
            lower_left += 1

        for i in range(sides):
            uv_indices.extend([lower_left, lower_left + 1, lower_left + uv_sides])
            lower_left += 1


class StripLayout:
    """
    Connectivity and UVs for a flat 2-sided ribbon.

    Each ring is a pair of vertices, consecutive pairs form quads and a
    single triangle closes the tip. Nothing wraps around.
    """
    mode = "strip"
    sides = 2

    def __init__(self, u_width_multiplier=1.0, texture_w_to_h_ratio=1.0):
        self.u_width_multiplier = u_width_multiplier
        self.texture_w_to_h_ratio = texture_w_to_h_ratio

    def make_face_counts(self, buffers, segment_count):
        buffers.face_vertex_counts.extend([4] * segment_count)
        buffers.face_vertex_counts.append(3)

    def make_face_connects(self, buffers, segment_count, initial_vertex_count):
        connects = buffers.face_vertex_indices

        for i in range(segment_count):
            corner = (i * 2) + initial_vertex_count
            connects.extend([corner, corner + 1, corner + 3, corner + 2])

        corner = (segment_count * 2) + initial_vertex_count
        connects.extend([corner, corner + 1, corner + 2])

    def make_uvs(self, buffers, segments, initial_vertex_count, v_offset):
        segment_count = len(segments)
        vertices = buffers.vertices
        us, vs = buffers.us, buffers.vs

        u_face_width = self.u_width_multiplier
        v_scaler = get_v_scaler(segments[0].radius, u_face_width, 2, self.texture_w_to_h_ratio)

        us.extend([0.0, u_face_width])
        vs.extend([v_offset, v_offset])

        for segment_index in range(1, segment_count + 1):
            # Even u's are always 0, odd ones u_face_width
            us.extend([0.0, u_face_width])

            radius = segments[min(segment_index, segment_count - 1)].radius
            v_scaler = get_v_scaler(radius, u_face_width, 2, self.texture_w_to_h_ratio)

            vertex_index = initial_vertex_count + segment_index * 2
            for corner in (vertex_index, vertex_index + 1):
                dist_to_vertex_below = np.linalg.norm(vertices[corner] - vertices[corner - 2])
                vs.append(vs[-2] + dist_to_vertex_below * v_scaler)

        v_length_to_cap = v_scaler * segments[-1].radius * math.sqrt(2.0)

        us.append(u_face_width * 0.5)
        vs.append((vs[-2] + vs[-1]) / 2.0 + v_length_to_cap)

    def make_uv_connects(self, buffers, segment_count, initial_uv_count):
        uv_indices = buffers.uv_indices
        lower_left = initial_uv_count

        for i in range(segment_count):
            uv_indices.extend([lower_left, lower_left + 1, lower_left + 3, lower_left + 2])
            lower_left += 2

        uv_indices.extend([lower_left, lower_left + 1, lower_left + 2])


def layout_for_sides(sides, u_width_multiplier=1.0, texture_w_to_h_ratio=1.0):
    """Pick the tube layout for more than 2 sides, the strip layout for exactly 2"""
    if sides > 2:
        return TubeLayout(sides, u_width_multiplier, texture_w_to_h_ratio)
    if sides == 2:
        return StripLayout(u_width_multiplier, texture_w_to_h_ratio)
    raise InvalidSidesCount(sides)


def _as_segments(segments):
    return [s if isinstance(s, Segment) else Segment(*s) for s in segments]


class Branchlets:
    """
    Accumulates one or more branchlets into a single set of mesh buffers.

    Parameters:
        sides: number of faces around each tube; 2 builds flat strips
        u_width_multiplier: total u width of one tube (default: 1.0)
        texture_w_to_h_ratio: width to height ratio of the texture the UVs are meant for (default: 1.0)
        buffers: optional MeshBuffers to append to. A new empty set is used if None

    Raises:
        InvalidSidesCount: if sides is less than 2

    Example:
        branchlets = Branchlets(6)
        branchlets.add_one([0,0,0], [Segment([0,1,0], 0.2), Segment([0.3,1,0], 0.1)])
        branchlets.add_one([2,0,0], [Segment([0,2,0], 0.2)], v_offset=4.0)
    """

    def __init__(self, sides, u_width_multiplier=1.0, texture_w_to_h_ratio=1.0, buffers=None):
        self.layout = layout_for_sides(sides, u_width_multiplier, texture_w_to_h_ratio)
        self.buffers = buffers if buffers is not None else MeshBuffers()

    @property
    def sides(self):
        return self.layout.sides

    @property
    def mode(self):
        return self.layout.mode

    def add_one(self, start_point, segments, v_offset=0.0):
        """
        Append the geometry of one more branchlet to the buffers.

        Parameters:
            start_point: [x,y,z] position of the base of the branchlet
            segments: list of Segments (or (direction, radius) pairs) from base to tip
            v_offset: v coordinate of the first ring, so several branchlets can
                be stacked in texture space without overlapping (default: 0.0)

        Returns:
            Branchlets: self, for chaining

        Raises:
            EmptySkeleton: if segments is empty
        """
        segments = _as_segments(segments)
        if not segments:
            raise EmptySkeleton()

        buffers = self.buffers
        segment_count = len(segments)
        initial_vertex_count = buffers.vertex_count
        initial_uv_count = buffers.uv_count
        initial_face_count = buffers.face_count

        make_vertex_coords(buffers, start_point, segments, self.layout.sides)
        self.layout.make_face_connects(buffers, segment_count, initial_vertex_count)
        self.layout.make_face_counts(buffers, segment_count)
        self.layout.make_uvs(buffers, segments, initial_vertex_count, v_offset)
        self.layout.make_uv_connects(buffers, segment_count, initial_uv_count)

        logger.debug(
            "Added %s of %d segments: %d vertices, %d faces",
            self.layout.mode,
            segment_count,
            buffers.vertex_count - initial_vertex_count,
            buffers.face_count - initial_face_count,
        )
        return self


class BuildResult(namedtuple("BuildResult", ["branchlets", "error"])):
    """Outcome of create() and create_default(): either branchlets or an error"""
    __slots__ = ()

    @property
    def ok(self):
        return self.error is None

    @property
    def buffers(self):
        """The built buffers, or an empty set if nothing could be built"""
        if self.branchlets is None:
            return MeshBuffers()
        return self.branchlets.buffers

    def raise_for_error(self):
        if self.error is not None:
            raise self.error
        return self.branchlets


def create_default(sides, **options):
    """
    Create empty Branchlets (or strips when sides is 2) to add branchlets to later.

    Invalid side counts are logged and reported through the result instead of raised.
    """
    try:
        return BuildResult(Branchlets(sides, **options), None)
    except InvalidSidesCount as error:
        logger.warning("%s", error)
        return BuildResult(None, error)


def create(start_point, sides, segments, v_offset=0.0, **options):
    """
    Create Branchlets holding a single branchlet.

    Parameters:
        start_point: [x,y,z] position of the base of the branchlet
        sides: number of faces around the tube; 2 builds a flat strip
        segments: list of Segments from base to tip
        v_offset: v coordinate of the first ring (default: 0.0)
        **options: u_width_multiplier and texture_w_to_h_ratio, passed to Branchlets

    Returns:
        BuildResult: the branchlets, or None with an InvalidSidesCount error if
            sides is less than 2. In that case result.buffers is empty.

    Example:
        result = create([0,0,0], 8, [Segment([0,1,0], 0.3), Segment([0,1,0.2], 0.2)])
        if result.ok:
            exporter.add_branchlets(result.buffers)
    """
    result = create_default(sides, **options)
    if result.ok:
        result.branchlets.add_one(start_point, segments, v_offset)
    return result
