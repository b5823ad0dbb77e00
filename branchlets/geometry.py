"""Ellipse fitting and vertex ring sampling for branchlet cross-sections."""

import logging
import math
from collections import namedtuple

import numpy as np

logger = logging.getLogger(__name__)

# A cross product shorter than this means the segment lies on the reference axis
PARALLEL_TOLERANCE = 0.001

# How far (in bottom radii) the top segment must reach sideways before a joint ellipse is fitted
JOINT_CLEARANCE = 1.1

_REFERENCE_AXIS = np.array([-1.0, 0.0, 0.0])
_FALLBACK_AXIS = np.array([0.0, 1.0, 0.0])


class Segment(namedtuple("Segment", ["direction", "radius"])):
    """
    One piece of a branchlet skeleton.

    Parameters:
        direction: [x,y,z] vector giving the direction and length of the segment
        radius: radius of the cross-section at the top of the segment

    Example:
        Segment([0, 1, 0], 0.25)  # One unit long, pointing up the Y axis
    """
    __slots__ = ()

    def __new__(cls, direction, radius):
        direction = np.array(direction, dtype=np.float64).reshape(3)
        direction.flags.writeable = False
        return super().__new__(cls, direction, float(radius))

    @property
    def length(self):
        return float(np.linalg.norm(self.direction))


def normalize(v):
    """Return v scaled to unit length"""
    return v / np.linalg.norm(v)


def angle_between(a, b):
    """Angle in radians (0 to pi) between two vectors sharing a start point"""
    cos_angle = np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b))
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def rotation_matrix(axis, angle):
    """Right-handed rotation matrix around an arbitrary axis"""
    axis = normalize(axis)
    c = np.cos(angle)
    s = np.sin(angle)
    t = 1 - c

    return np.array([
        [t*axis[0]**2 + c, t*axis[0]*axis[1] - s*axis[2], t*axis[0]*axis[2] + s*axis[1]],
        [t*axis[0]*axis[1] + s*axis[2], t*axis[1]**2 + c, t*axis[1]*axis[2] - s*axis[0]],
        [t*axis[0]*axis[2] - s*axis[1], t*axis[1]*axis[2] + s*axis[0], t*axis[2]**2 + c]
    ])


def find_vector_polar(x, z):
    """
    Find the polar angle of a vector projected onto the world X-Z plane.

    Parameters:
        x: x component of the vector
        z: z component of the vector

    Returns:
        float: angle in [0, 2*pi), measured from +X towards +Z. (0, 0) gives 0.
    """
    if x == 0.0 and z == 0.0:
        return 0.0

    polar = math.atan2(z, x)
    if polar < 0.0:
        polar += 2.0 * math.pi

    # Tiny negative angles round up to a full turn
    if polar >= 2.0 * math.pi:
        polar = 0.0
    return polar


def find_ellipse_vectors(segment):
    """
    Find the axes of the circle lying on the plane whose normal is the segment.

    The two returned vectors point from the circle's center to two points
    90 degrees apart along its perimeter, each with length equal to the
    segment's radius.

    Parameters:
        segment: Segment whose direction is the plane normal

    Returns:
        tuple: (major, minor) axis vectors
    """
    cp = np.cross(segment.direction, _REFERENCE_AXIS)
    if np.linalg.norm(cp) < PARALLEL_TOLERANCE:
        # The segment lies on the x-axis
        cp = np.cross(segment.direction, _FALLBACK_AXIS)

    minor = normalize(cp) * segment.radius

    rotation = rotation_matrix(minor, -(math.pi / 2.0))
    major = rotation @ (normalize(segment.direction) * segment.radius)
    return major, minor


def find_joint_ellipse_vectors(center, bottom, top):
    """
    Find the axes of the ellipse where two segments meet.

    The ellipse lies on the plane that bisects the joint. Its minor axis is
    perpendicular to both segments and its major axis points at the point of
    maximum curvature. When the top segment is too short, or the bend too
    shallow, for the two tubes to intersect cleanly, the joint is treated as a
    single segment running along both.

    Parameters:
        center: [x,y,z] position of the joint
        bottom: Segment ending at the joint
        top: Segment starting at the joint

    Returns:
        tuple: (major, minor) axis vectors
    """
    center = np.asarray(center, dtype=np.float64)

    # Measured as if both segments face out from the same start point
    B = angle_between(bottom.direction, top.direction)

    d = math.cos((math.pi / 2.0) - B) * top.length

    if d < bottom.radius * JOINT_CLEARANCE:
        logger.debug("Joint at %s too shallow to fit, merging segments", center.tolist())
        return find_ellipse_vectors(Segment(bottom.direction + top.direction, top.radius))

    minor = normalize(np.cross(top.direction, bottom.direction)) * top.radius

    # p lies on the bottom segment's ring, q on the top segment's ring, both on
    # the plane perpendicular to minor. Together with the joint they form an
    # oblique triangle we can solve for the major axis.
    rotation = rotation_matrix(minor, -(math.pi / 2.0))
    bottom_unit = normalize(bottom.direction)
    p = (center - bottom.direction) + rotation @ (bottom_unit * bottom.radius)
    q = center + rotation @ (normalize(top.direction) * top.radius)

    p_to_q = q - p
    A = math.pi - (angle_between(bottom.direction, p_to_q) + B)

    # Law of sines gives the distance from p, along the bottom segment, to the point of maximum curvature
    a = np.linalg.norm(p_to_q) * (math.sin(A) / math.sin(B))

    r = p + bottom_unit * a
    major = r - center
    return major, minor


def make_vertex_ring(major, minor, center, sides):
    """
    Sample 'sides' points along the perimeter of an ellipse in 3D space.

    Uses the parametric equation p(t) = c + cos(t)*major + sin(t)*minor. Since
    the axes' polar angles change from one ring to the next, the starting
    angle is offset by the polar angle of the major axis so that consecutive
    rings stay lined up. Points are generated clockwise.

    Parameters:
        major: vector from the center to the point of maximum curvature
        minor: vector from the center to the point of minimum curvature
        center: [x,y,z] center of the ellipse
        sides: number of points to generate

    Returns:
        array: (sides, 3) array of vertex positions
    """
    major = np.asarray(major, dtype=np.float64)
    minor = np.asarray(minor, dtype=np.float64)
    center = np.asarray(center, dtype=np.float64)

    start_angle = 0.0 - find_vector_polar(major[0], major[2])
    angle_increment = -(2.0 * math.pi) / sides

    angles = start_angle + angle_increment * np.arange(sides)
    return center + np.outer(np.cos(angles), major) + np.outer(np.sin(angles), minor)
