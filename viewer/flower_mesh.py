"""OpenGL renderer for the animated flower scene graph."""

import numpy as np

from sunflower.scene import Flower

# Lazy import: OpenGL is absent in headless test environments
_gl = None


def _import_gl():
    global _gl
    if _gl is None:
        import OpenGL.GL as GL
        _gl = GL
    return _gl


DEFAULT_COLOR = (0.8, 0.8, 0.8)


def vertex_colors(mesh, material: dict) -> np.ndarray:
    """Per-vertex colours: the mesh's own, else the material colour."""
    if mesh.colors is not None:
        return mesh.colors
    color = material.get("color") or DEFAULT_COLOR
    return np.tile(np.asarray(color, dtype=np.float32), (mesh.vertex_count, 1))


class FlowerRenderer:
    """Draws each mesh node of a Flower at its current world transform.

    Geometry is compiled into one display list per mesh at init; only the
    transforms change per frame.
    """

    def __init__(self, flower: Flower):
        self.flower = flower
        self._display_lists: dict[str, int] = {}

    def init_gl(self):
        """Initialize OpenGL state for rendering (call after context creation)."""
        GL = _import_gl()

        GL.glEnable(GL.GL_DEPTH_TEST)
        GL.glEnable(GL.GL_LIGHTING)
        GL.glEnable(GL.GL_LIGHT0)
        GL.glEnable(GL.GL_COLOR_MATERIAL)
        GL.glEnable(GL.GL_NORMALIZE)
        # Petals and leaves are seen from both sides
        GL.glLightModeli(GL.GL_LIGHT_MODEL_TWO_SIDE, GL.GL_TRUE)

        # Warm directional light from upper-right
        GL.glLightfv(GL.GL_LIGHT0, GL.GL_POSITION, [0.5, 0.8, 0.3, 0.0])  # w=0 -> directional
        GL.glLightfv(GL.GL_LIGHT0, GL.GL_DIFFUSE, [0.9, 0.85, 0.75, 1.0])
        GL.glLightfv(GL.GL_LIGHT0, GL.GL_SPECULAR, [0.2, 0.2, 0.2, 1.0])
        GL.glLightfv(GL.GL_LIGHT0, GL.GL_AMBIENT, [0.3, 0.3, 0.3, 1.0])

        GL.glColorMaterial(GL.GL_FRONT_AND_BACK, GL.GL_AMBIENT_AND_DIFFUSE)
        GL.glClearColor(0.55, 0.7, 0.85, 1.0)

        for node, _ in self.flower.walk():
            if node.mesh is not None:
                self._display_lists[node.name] = self._compile(node.mesh, node.material)

    def _compile(self, mesh, material: dict) -> int:
        """Pre-compile one mesh into an OpenGL display list."""
        GL = _import_gl()
        colors = vertex_colors(mesh, material)

        display_list = GL.glGenLists(1)
        GL.glNewList(display_list, GL.GL_COMPILE)
        GL.glBegin(GL.GL_TRIANGLES)
        for face in mesh.indices:
            for idx in face:
                GL.glNormal3fv(mesh.normals[idx].tolist())
                GL.glColor3fv(colors[idx].tolist())
                GL.glVertex3fv(mesh.positions[idx].tolist())
        GL.glEnd()
        GL.glEndList()
        return display_list

    def render(self):
        """Draw every mesh node with its world matrix."""
        GL = _import_gl()
        for node, world in self.flower.walk():
            display_list = self._display_lists.get(node.name)
            if display_list is None:
                continue
            GL.glPushMatrix()
            GL.glMultMatrixf(world.T.astype(np.float32).flatten())
            GL.glCallList(display_list)
            GL.glPopMatrix()

    def cleanup(self):
        """Free OpenGL resources."""
        GL = _import_gl()
        for display_list in self._display_lists.values():
            GL.glDeleteLists(display_list, 1)
        self._display_lists.clear()
