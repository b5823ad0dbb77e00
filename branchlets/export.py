"""Turn branchlet mesh buffers into glTF files and UV layout previews."""

import base64
import colorsys
import logging

import numpy as np
import PIL.Image
import PIL.ImageDraw
from pygltflib import (GLTF2, Accessor, Attributes, Buffer, BufferView, Material, Mesh, Node,
                       PbrMetallicRoughness, Primitive, Scene, ARRAY_BUFFER,
                       ELEMENT_ARRAY_BUFFER, FLOAT, TRIANGLES, UNSIGNED_INT)

logger = logging.getLogger(__name__)


def unweld(buffers):
    """
    Give every distinct (vertex, uv) corner pair its own vertex.

    glTF uses one index per face corner for all attributes, while the buffers
    index vertices and UVs separately, so vertices along the seam and under
    the cap get duplicated.

    Returns:
        tuple: (positions array, uvs array, per-corner index array)
    """
    corners = np.column_stack((buffers.face_vertex_indices, buffers.uv_indices))
    unique_corners, corner_indices = np.unique(corners, axis=0, return_inverse=True)

    positions = buffers.vertex_array()[unique_corners[:, 0]]
    uvs = buffers.uv_coords[unique_corners[:, 1]]
    return positions, uvs, corner_indices.reshape(-1)


def triangulate(face_vertex_counts, corner_indices):
    """Fan triangulate faces given as per-face corner counts and flattened corner indices"""
    triangles = []
    start = 0
    for count in face_vertex_counts:
        face = corner_indices[start:start + count]
        for k in range(1, count - 1):
            triangles.append([face[0], face[k], face[k + 1]])
        start += count
    return np.array(triangles, dtype=np.uint32).reshape(-1, 3)


class MeshExporter:
    """
    Collects branchlet meshes into a single glTF document.

    Each added buffer set becomes one triangle primitive with positions and
    texture coordinates and a plain colored material.
    """

    def __init__(self):
        self.gltf = GLTF2()
        self.gltf.scenes = [Scene(nodes=[0])]
        self.gltf.nodes = [Node(mesh=0)]
        self.gltf.meshes = [Mesh(primitives=[])]
        self.gltf.materials = []
        self.gltf.buffers = []
        self.gltf.bufferViews = []
        self.gltf.accessors = []

        self.color_index = 0
        self.all_data = bytearray()

    def _get_unique_color(self):
        """Generate a unique color using HSV color space"""
        hue = (self.color_index * 0.618033988749895) % 1.0  # golden ratio conjugate
        self.color_index += 1
        return colorsys.hsv_to_rgb(hue, 0.6, 0.7)

    def _add_to_buffer(self, data):
        """Add data to the buffer and return offset"""
        offset = len(self.all_data)
        self.all_data.extend(data.tobytes())
        return offset

    def _create_buffer_view(self, data, target):
        offset = self._add_to_buffer(data)
        buffer_view = BufferView(
            buffer=0,
            byteOffset=offset,
            byteLength=data.nbytes,
            target=target
        )
        self.gltf.bufferViews.append(buffer_view)
        return len(self.gltf.bufferViews) - 1

    def _create_accessor(self, buffer_view_index, component_type, count, accessor_type, min_vals=None, max_vals=None):
        accessor = Accessor(
            bufferView=buffer_view_index,
            componentType=component_type,
            count=count,
            type=accessor_type,
            min=min_vals,
            max=max_vals
        )
        self.gltf.accessors.append(accessor)
        return len(self.gltf.accessors) - 1

    def _create_material(self, color=None):
        if color is None:
            color = self._get_unique_color()

        material = Material(
            pbrMetallicRoughness=PbrMetallicRoughness(
                baseColorFactor=[*color, 1.0],
                metallicFactor=0.0,
                roughnessFactor=0.8
            ),
            alphaMode="OPAQUE",
            doubleSided=True
        )
        self.gltf.materials.append(material)
        return len(self.gltf.materials) - 1

    def add_branchlets(self, buffers, name="branchlets", color=None):
        """
        Add the mesh held by a set of buffers.

        Parameters:
            buffers: MeshBuffers filled by Branchlets.add_one()
            name: name used when reporting a skipped mesh
            color: optional (r,g,b) color tuple. If None, a unique color will be generated

        Returns:
            tuple: (vertices array, indices array) of the added geometry, or None
                if the buffers hold too few vertices to form a mesh

        Example:
            result = create([0,0,0], 6, segments)
            exporter.add_branchlets(result.buffers, name="twig")
        """
        if buffers.vertex_count <= 2:
            logger.info("No mesh created for %s because it has %d vertices", name, buffers.vertex_count)
            return None

        positions, uvs, corner_indices = unweld(buffers)
        indices = triangulate(buffers.face_vertex_counts, corner_indices).flatten()

        # glTF puts the texture origin at the top left
        uvs = uvs.copy()
        uvs[:, 1] = 1.0 - uvs[:, 1]

        vertex_view_idx = self._create_buffer_view(positions, ARRAY_BUFFER)
        uv_view_idx = self._create_buffer_view(uvs, ARRAY_BUFFER)
        index_view_idx = self._create_buffer_view(indices, ELEMENT_ARRAY_BUFFER)

        vertex_accessor_idx = self._create_accessor(
            vertex_view_idx,
            FLOAT,
            len(positions),
            "VEC3",
            positions.min(axis=0).tolist(),
            positions.max(axis=0).tolist()
        )

        uv_accessor_idx = self._create_accessor(
            uv_view_idx,
            FLOAT,
            len(uvs),
            "VEC2",
            uvs.min(axis=0).tolist(),
            uvs.max(axis=0).tolist()
        )

        index_accessor_idx = self._create_accessor(
            index_view_idx,
            UNSIGNED_INT,
            len(indices),
            "SCALAR"
        )

        material_idx = self._create_material(color)

        primitive = Primitive(
            attributes=Attributes(
                POSITION=vertex_accessor_idx,
                TEXCOORD_0=uv_accessor_idx
            ),
            indices=index_accessor_idx,
            material=material_idx,
            mode=TRIANGLES
        )

        self.gltf.meshes[0].primitives.append(primitive)
        return positions, indices

    def save(self, filename):
        """
        Save the glTF file to disk.

        Parameters:
            filename: output filename (should end in .gltf)
        """
        self.gltf.buffers = [Buffer(
            byteLength=len(self.all_data),
            uri=f"data:application/octet-stream;base64,{base64.b64encode(self.all_data).decode('ascii')}"
        )]

        self.gltf.save(filename)


def render_uv_layout(buffers, size=512, padding=8, line_color=(255, 255, 255), background=(0, 0, 0, 0)):
    """
    Draw the outline of every UV face into an image.

    The UV bounding box is scaled uniformly to fit the image, with v pointing up.

    Parameters:
        buffers: MeshBuffers filled by Branchlets.add_one()
        size: length of the longest side of the image in pixels
        padding: empty border in pixels
        line_color: (r,g,b) outline color
        background: (r,g,b,a) fill color

    Returns:
        PIL.Image.Image: RGBA image of the layout
    """
    if buffers.uv_count == 0:
        return PIL.Image.new('RGBA', (size, size), background)

    uvs = buffers.uv_coords.astype(np.float64)
    low = uvs.min(axis=0)
    extent = np.maximum(uvs.max(axis=0) - low, 1e-9)

    scale = (size - 2 * padding) / max(extent)
    width = max(int(round(extent[0] * scale)) + 2 * padding, 1)
    height = max(int(round(extent[1] * scale)) + 2 * padding, 1)

    pixels = (uvs - low) * scale + padding
    pixels[:, 1] = height - pixels[:, 1]

    image = PIL.Image.new('RGBA', (width, height), background)
    draw = PIL.ImageDraw.Draw(image)

    start = 0
    for count in buffers.face_vertex_counts:
        face = buffers.uv_indices[start:start + count]
        draw.polygon([tuple(pixels[i]) for i in face], outline=(*line_color, 255))
        start += count

    return image
