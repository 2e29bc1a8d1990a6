import math

import numpy as np
import torch

from src.IrradianceSH.core.image import ImagePlane
from src.IrradianceSH.core.vector3 import Vector3
from src.IrradianceSH.datatypes import Address, Face
from src.IrradianceSH.utils.transforms import (
    FACE_MATRICES,
    FACE_ST_AXES,
    cartesian_to_face,
    face_to_cartesian,
    generate_face_coordinates_map,
)


class Cubemap:
    """
    Six square image planes, one per face, sharing one dimension.

    The cubemap never owns face pixels: set_face keeps a borrowed view, so the memory behind
    the planes (usually a decoded texture) must outlive the cubemap.
    """

    def __init__(self, dimension: int):
        self._faces = [ImagePlane() for _ in Face]
        self.resize(dimension)

    def resize(self, dimension: int) -> None:
        """Set a new dimension. All faces are cleared and must be set again."""
        self._dimension = dimension
        self._scale = 2.0 / dimension
        self._upper_bound = math.nextafter(dimension, 0)
        for face in self._faces:
            face.reset()

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def upper_bound(self) -> float:
        """Largest float below dimension, used to clamp s * dimension."""
        return self._upper_bound

    def set_face(self, face: Face, image: ImagePlane) -> None:
        self._faces[face].set(image)

    def face(self, face: Face) -> ImagePlane:
        return self._faces[face]

    def is_complete(self) -> bool:
        return all(
            plane.is_valid and plane.width == self._dimension and plane.height == self._dimension
            for plane in self._faces
        )

    # -----------------------------
    # Face <-> Direction
    # -----------------------------
    def direction_for(self, face: Face, x: int, y: int) -> Vector3:
        """Unit direction through the center of texel (x, y)."""
        return self.direction_at(face, x + 0.5, y + 0.5)

    def direction_at(self, face: Face, x: float, y: float) -> Vector3:
        """Unit direction through the exact face coordinate (x, y) in [0, dimension]."""
        # map [0, dim] to [-1, 1] with (-1, -1) at the bottom left
        cx = (x * self._scale) - 1.0
        cy = 1.0 - (y * self._scale)
        inv_length = 1.0 / math.sqrt(cx * cx + cy * cy + 1.0)

        local = (cx, cy, 1.0)
        rows = FACE_MATRICES[face]
        return Vector3(*(sum(m * c for m, c in zip(row, local)) * inv_length for row in rows))

    @staticmethod
    def address_for(direction: Vector3) -> Address:
        """
        Face and (s, t) hit by direction.
        The face is chosen by the largest magnitude component, ties go to x, then y, then z.
        """
        rx, ry, rz = abs(direction.x), abs(direction.y), abs(direction.z)
        if rx >= ry and rx >= rz:
            face = Face.PX if direction.x >= 0 else Face.NX
            major = rx
        elif ry >= rx and ry >= rz:
            face = Face.PY if direction.y >= 0 else Face.NY
            major = ry
        else:
            face = Face.PZ if direction.z >= 0 else Face.NZ
            major = rz

        components = (direction.x, direction.y, direction.z)
        (s_axis, s_sign), (t_axis, t_sign) = FACE_ST_AXES[face]
        # major bounds both numerators so s and t land in [0, 1]
        s = (s_sign * components[s_axis] / major + 1.0) * 0.5
        t = (t_sign * components[t_axis] / major + 1.0) * 0.5
        return Address(face, s, t)

    def sample_at(self, direction: Vector3) -> Vector3:
        """Nearest texel hit by direction."""
        address = self.address_for(direction)
        x = min(int(address.s * self._dimension), self._dimension - 1)
        y = min(int(address.t * self._dimension), self._dimension - 1)
        return self._faces[address.face].read_texel(x, y)

    # -----------------------------
    # Vectorized access
    # -----------------------------
    def face_directions(self, face: Face, device: torch.device = None) -> torch.Tensor:
        """
        :return cartesian_coordinates: (dim, dim, 3) unit directions through texel centers, indexed [y, x]
        """
        face_coordinates = generate_face_coordinates_map(self._dimension, device)
        return face_to_cartesian(face, face_coordinates)

    def read_face(self, face: Face, device: torch.device = None) -> torch.Tensor:
        """
        :return texels: (dim, dim, 3) float64 copy of the face pixels
        """
        texels = self._faces[face].texels().astype(np.float64)
        return torch.as_tensor(texels, device=device)

    def write_face(self, face: Face, values: torch.Tensor) -> None:
        """
        Overwrite the face pixels in place (in the memory the face plane points at).

        :param values: (dim, dim, 3)
        """
        self._faces[face].texels()[...] = values.detach().cpu().numpy().astype(np.float32)

    def sample_directions(self, directions: torch.Tensor) -> torch.Tensor:
        """
        Nearest texel lookup for many directions at once.

        :param directions: (..., 3)
        :return texels: (..., 3) float64
        """
        faces, st = cartesian_to_face(directions)
        texel_coordinates = torch.clamp(st * self._dimension, max=self._upper_bound).floor().long()
        x, y = texel_coordinates[..., 0], texel_coordinates[..., 1]

        cube = torch.stack([self.read_face(face, directions.device) for face in Face], dim=0)  # (6, dim, dim, 3)
        return cube[faces, y, x]
