"""
Common data types for cubemap irradiance analysis.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, List, Sequence, Tuple

import torch

from src.IrradianceSH.core.vector3 import Vector3

SH_BANDS = 3                      # l = 0, 1, 2
N_TERMS = SH_BANDS * SH_BANDS     # 9 coefficients


class Face(IntEnum):
    """
    Cube faces, in the order they are stored in cubemap textures.

                +----+
                | PY |
           +----+----+----+----+
           | NX | PZ | PX | NZ |
           +----+----+----+----+
                | NY |
                +----+
    """
    PX = 0  # right
    NX = 1  # left
    PY = 2  # top
    NY = 3  # bottom
    PZ = 4  # front
    NZ = 5  # back


@dataclass(frozen=True)
class Address:
    """A location on the cube: the face and normalized (s, t) in [0, 1] on that face."""
    face: Face
    s: float = 0.0
    t: float = 0.0


@dataclass(frozen=True)
class SHCoefficients:
    """
    Irradiance spherical harmonic coefficients for bands 0..2, one rgb vector per basis function.

    Basis order: 1, y, z, x, y*x, y*z, 3z^2-1, z*x, x^2-y^2
    """
    coefficients: Tuple[Vector3, ...]

    def __post_init__(self):
        if len(self.coefficients) != N_TERMS:
            raise ValueError(f'Expected {N_TERMS} coefficients but got {len(self.coefficients)}')

    def __len__(self) -> int:
        return len(self.coefficients)

    def __getitem__(self, index: int) -> Vector3:
        return self.coefficients[index]

    def __iter__(self) -> Iterator[Vector3]:
        return iter(self.coefficients)

    @classmethod
    def from_tensor(cls, sph_coeffs: torch.Tensor) -> "SHCoefficients":
        """
        :param sph_coeffs: (n_terms, 3)
        """
        assert sph_coeffs.shape == (N_TERMS, 3), f'sph_coeffs must be ({N_TERMS}, 3) but got {tuple(sph_coeffs.shape)}'
        return cls(tuple(Vector3.from_iterable(row) for row in sph_coeffs.tolist()))

    @classmethod
    def from_list(cls, values: Sequence[Sequence[float]]) -> "SHCoefficients":
        vectors = []
        for i, value in enumerate(values):
            if not isinstance(value, (list, tuple)) or len(value) != 3:
                raise ValueError(f'Coefficient {i} must be an [x, y, z] triple, got {value!r}')
            if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
                raise ValueError(f'Coefficient {i} must hold numbers, got {value!r}')
            vectors.append(Vector3.from_iterable(value))
        return cls(tuple(vectors))

    def to_tensor(self, dtype: torch.dtype = torch.float64) -> torch.Tensor:
        """
        :return sph_coeffs: (n_terms, 3)
        """
        return torch.tensor(self.to_list(), dtype=dtype)

    def to_list(self) -> List[List[float]]:
        """Convert to nested lists for JSON serialization."""
        return [c.to_list() for c in self.coefficients]
