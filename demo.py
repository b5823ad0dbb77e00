import numpy as np
from branchlets import Branchlets, MeshExporter, Segment, create, render_uv_layout

class BranchletDemo:
    def __init__(self):
        self.exporter = MeshExporter()
        self.layouts = {}

    def demo_straight(self):
        """A straight, untapered tube"""
        result = create([0, 0, 0], 8, [Segment([0, 1, 0], 0.2), Segment([0, 1, 0], 0.2)])
        self.exporter.add_branchlets(result.buffers, name="straight", color=(0.5, 0.35, 0.2))
        self.layouts["straight"] = result.buffers

    def demo_bent(self):
        """A tapering branch bending sideways at every joint"""
        segments = [
            Segment([0, 1.0, 0], 0.25),
            Segment([0.4, 1.0, 0], 0.2),
            Segment([0.8, 0.7, 0.2], 0.15),
            Segment([0.9, 0.2, 0.3], 0.1),
        ]
        result = create([2, 0, 0], 10, segments)
        self.exporter.add_branchlets(result.buffers, name="bent", color=(0.45, 0.3, 0.15))
        self.layouts["bent"] = result.buffers

    def demo_vine(self):
        """A helix of short segments, like a vine"""
        t = np.linspace(0, 4*np.pi, 40)
        points = np.column_stack([
            0.5*np.cos(t),
            0.15*t,
            0.5*np.sin(t)
        ])
        directions = np.diff(points, axis=0)
        radii = np.linspace(0.08, 0.02, len(directions))
        segments = [Segment(d, r) for d, r in zip(directions, radii)]

        result = create([-2 + points[0][0], 0, points[0][2]], 6, segments)
        self.exporter.add_branchlets(result.buffers, name="vine", color=(0.2, 0.6, 0.2))
        self.layouts["vine"] = result.buffers

    def demo_strips(self):
        """Several flat ribbons batched into a single mesh"""
        strips = Branchlets(2)
        v_offset = 0.0
        for i in range(4):
            segments = [Segment([0, 0.6, 0.1 * i], 0.15), Segment([0.1, 0.6, 0.1 * i], 0.1)]
            strips.add_one([4 + 0.5 * i, 0, 0], segments, v_offset=v_offset)
            v_offset = max(strips.buffers.vs) + 0.1

        self.exporter.add_branchlets(strips.buffers, name="strips", color=(0.3, 0.7, 0.3))
        self.layouts["strips"] = strips.buffers

    def run(self, features=None):
        """
        Run the demo with specified features.

        Parameters:
        features : list of str or None
            List of features to demo. Available features:
            - 'straight': Straight tube
            - 'bent': Tapering, bending branch
            - 'vine': Helical vine
            - 'strips': Batched flat strips
            If None, all features will be demonstrated.
        """
        all_features = ['straight', 'bent', 'vine', 'strips']

        features = features or all_features

        invalid_features = set(features) - set(all_features)
        if invalid_features:
            raise ValueError(f"Invalid features: {invalid_features}. "
                             f"Available features are: {all_features}")

        demo_map = {
            'straight': self.demo_straight,
            'bent': self.demo_bent,
            'vine': self.demo_vine,
            'strips': self.demo_strips
        }

        for feature in features:
            demo_map[feature]()

        self.exporter.save("demo_branchlets.gltf")
        for name, buffers in self.layouts.items():
            render_uv_layout(buffers).save(f"demo_uvs_{name}.png")
        print(f"Demo scene saved as 'demo_branchlets.gltf' with features: {features}")

if __name__ == "__main__":
    import sys

    features = sys.argv[1:] if len(sys.argv) > 1 else None

    demo = BranchletDemo()
    demo.run(features)
