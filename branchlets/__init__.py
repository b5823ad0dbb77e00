"""A module for building tapered tube meshes (branches, vines, twigs) from segment skeletons."""

__version__ = "0.1.0"

import logging

from .builder import (Branchlets, BuildResult, StripLayout, TubeLayout, create, create_default,
                      get_v_scaler, layout_for_sides, make_vertex_coords)
from .errors import BranchletError, EmptySkeleton, InvalidSidesCount
from .export import MeshExporter, render_uv_layout
from .geometry import (Segment, find_ellipse_vectors, find_joint_ellipse_vectors, find_vector_polar,
                       make_vertex_ring)
from .mesh import MeshBuffers

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Branchlets",
    "BranchletError",
    "BuildResult",
    "EmptySkeleton",
    "InvalidSidesCount",
    "MeshBuffers",
    "MeshExporter",
    "Segment",
    "StripLayout",
    "TubeLayout",
    "create",
    "create_default",
    "find_ellipse_vectors",
    "find_joint_ellipse_vectors",
    "find_vector_polar",
    "get_v_scaler",
    "layout_for_sides",
    "make_vertex_coords",
    "make_vertex_ring",
    "render_uv_layout",
]
