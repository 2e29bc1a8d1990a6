import logging
import math
import time
from functools import partial

import torch
from einops import einsum

from src.IrradianceSH.core.cubemap import Cubemap
from src.IrradianceSH.core.vector3 import Vector3
from src.IrradianceSH.datatypes import N_TERMS, Face, SHCoefficients
from src.IrradianceSH.utils.parallel import run_per_face
from src.IrradianceSH.utils.transforms import texel_solid_angles

logger = logging.getLogger(__name__)

# Squared normalization of each real SH basis polynomial, in basis order.
#   1, y, z, x, y*x, y*z, 3z^2-1, z*x, x^2-y^2
SH_BASIS_NORMALIZATION = (
    1.0 / (4.0 * math.pi),
    3.0 / (4.0 * math.pi),
    3.0 / (4.0 * math.pi),
    3.0 / (4.0 * math.pi),
    15.0 / (4.0 * math.pi),
    15.0 / (4.0 * math.pi),
    5.0 / (16.0 * math.pi),
    15.0 / (4.0 * math.pi),
    15.0 / (16.0 * math.pi),
)


# -----------------------------
# Spherical Harmonic Indexing
# -----------------------------
def sph_indices_total(l_max: int) -> int:  # (l_max + 1)^2
    return (l_max + 1) * (l_max + 1)

def sph_index_from_lm(l: int, m: int) -> int:  # noqa: E741
    # band l occupies indices [l*l, (l+1)^2 - 1], with m mapped as (l + m)
    return l * l + l + m

def lm_from_index(idx: int) -> tuple[int, int]:
    l = math.isqrt(idx)  # noqa: E741
    m = idx - (l * l + l)
    return l, m


# -----------------------------
# Truncated Cosine Convolution
# -----------------------------
def factorial_ratio(n: int, d: int = 1) -> float:
    """
    n! / d! without forming either factorial.
    Arguments below 1 are treated as 1.
    """
    n = max(1, n)
    d = max(1, d)
    r = 1.0
    if n > d:
        for k in range(d + 1, n + 1):
            r *= k
    elif d > n:
        for k in range(n + 1, d + 1):
            r *= k
        r = 1.0 / r
    return r


def truncated_cos_sh(l: int) -> float:  # noqa: E741
    """
    Zonal SH coefficient of the clamped cosine max(cos(theta), 0), scaled by sqrt(4pi / (2l + 1)).

    l = 0: pi, l = 1: 2pi/3, odd l > 1: 0, even l:
        2pi * (-1)^(l/2 + 1) / ((l + 2)(l - 1)) * l! / ((l/2)! (l/2)! 2^l)
    """
    if l == 0:
        return math.pi
    elif l == 1:
        return 2.0 * math.pi / 3.0
    elif l & 1:
        return 0.0

    l_2 = l // 2
    a0 = (1.0 if l_2 & 1 else -1.0) / ((l + 2) * (l - 1))
    a1 = factorial_ratio(l, l_2) / (factorial_ratio(l_2) * (1 << l))
    return 2.0 * math.pi * a0 * a1


def irradiance_normalization_constants() -> tuple[float, ...]:
    """
    Per-coefficient constants A[i] folding the basis normalization and the cosine lobe.
    Coefficients projected with them reconstruct irradiance / pi.

    :returns A: (n_terms)
    """
    return tuple(
        SH_BASIS_NORMALIZATION[i] * truncated_cos_sh(lm_from_index(i)[0]) / math.pi
        for i in range(N_TERMS)
    )


# -----------------------------
# Solid Angle
# -----------------------------
def sphere_quadrant_area(x: float, y: float) -> float:
    return math.atan2(x * y, math.sqrt(x * x + y * y + 1.0))


def solid_angle(dim: int, u: int, v: int) -> float:
    """
    Solid angle subtended by texel (u, v) of a face of dimension dim.
    See texel_solid_angles for the vectorized version.
    """
    inv_dim = 1.0 / dim
    s = ((u + 0.5) * 2.0 * inv_dim) - 1.0
    t = ((v + 0.5) * 2.0 * inv_dim) - 1.0
    x0 = s - inv_dim
    y0 = t - inv_dim
    x1 = s + inv_dim
    y1 = t + inv_dim
    return (sphere_quadrant_area(x0, y0)
            - sphere_quadrant_area(x0, y1)
            - sphere_quadrant_area(x1, y0)
            + sphere_quadrant_area(x1, y1))


# -----------------------------
# Irradiance Basis
# -----------------------------
def irradiance_basis(direction: Vector3) -> tuple[float, ...]:
    """
    The 9 basis polynomials (without normalization) at one unit direction.
    """
    x, y, z = direction.x, direction.y, direction.z
    return (1.0, y, z, x, y * x, y * z, 3.0 * z * z - 1.0, z * x, x * x - y * y)


def cartesian_to_irradiance_basis(cartesian_coordinates: torch.Tensor) -> torch.Tensor:
    """
    Vectorized irradiance_basis.

    :params cartesian_coordinates (..., 3): unit directions
    :returns basis (..., n_terms)
    """
    x, y, z = cartesian_coordinates[..., 0], cartesian_coordinates[..., 1], cartesian_coordinates[..., 2]

    radial_length = torch.sqrt(x * x + y * y + z * z)
    assert torch.allclose(radial_length, torch.ones_like(radial_length)), f'{radial_length.max().item():.6f} is not close to 1.0'

    return torch.stack([
        torch.ones_like(x),
        y,
        z,
        x,
        y * x,
        y * z,
        3.0 * z * z - 1.0,
        z * x,
        x * x - y * y,
    ], dim=-1)


def evaluate_coefficients(coefficients: SHCoefficients, direction: Vector3) -> Vector3:
    """
    Irradiance (divided by pi) arriving at a surface with normal direction.
    """
    color = Vector3()
    for coefficient, basis in zip(coefficients, irradiance_basis(direction)):
        color = color + coefficient * basis
    return color


# -----------------------------
# Project Cubemap to Coefficients
# -----------------------------
def project_face_to_coefficients(cubemap: Cubemap, face: Face, normalization: torch.Tensor, solid_angles: torch.Tensor) -> torch.Tensor:
    """
    Partial projection integral of one face.

    The texel sum is a single einsum contraction, so its summation order is whatever the
    backend picks. It agrees with a row-major texel loop to ~1e-9 relative, not bit for bit.

    :params normalization: (n_terms) the A constants
    :params solid_angles: (dim, dim) texel solid angles
    :returns sph_coeffs: (n_terms, 3) this face's contribution
    """
    directions = cubemap.face_directions(face)                              # (dim, dim, 3)
    texels = cubemap.read_face(face)                                        # (dim, dim, 3)
    basis = cartesian_to_irradiance_basis(directions) * normalization       # (dim, dim, n_terms)

    weighted_texels = texels * solid_angles[..., None]                      # (dim, dim, 3)
    return einsum(basis, weighted_texels, "h w n_terms, h w c -> n_terms c")


def project_cubemap_to_coefficients(cubemap: Cubemap) -> SHCoefficients:
    """
    Project the cubemap radiance onto the 9 irradiance coefficients.
    Faces are integrated in parallel, then summed.

    :params cubemap: fully populated cubemap
    :returns coefficients: SHCoefficients in basis order 1, y, z, x, yx, yz, 3z^2-1, zx, x^2-y^2
    """
    start_time = time.time()

    normalization = torch.tensor(irradiance_normalization_constants(), dtype=torch.float64)
    solid_angles = texel_solid_angles(cubemap.dimension)

    partial_coeffs = run_per_face(partial(project_face_to_coefficients, cubemap,
                                          normalization=normalization,
                                          solid_angles=solid_angles))

    sph_coeffs = torch.zeros((N_TERMS, 3), dtype=torch.float64)
    for face_coeffs in partial_coeffs:
        sph_coeffs += face_coeffs

    logger.debug(f"Projected {cubemap.dimension}x{cubemap.dimension} cubemap in {time.time() - start_time:.3f}s")
    return SHCoefficients.from_tensor(sph_coeffs)


# -----------------------------
# Reconstruct Coefficients to Cubemap
# -----------------------------
def reconstruct_face_from_coefficients(cubemap: Cubemap, face: Face, sph_coeffs: torch.Tensor) -> None:
    """
    :params sph_coeffs: (n_terms, 3)
    """
    directions = cubemap.face_directions(face)
    basis = cartesian_to_irradiance_basis(directions)                       # (dim, dim, n_terms)
    irradiance = einsum(basis, sph_coeffs, "h w n_terms, n_terms c -> h w c")
    cubemap.write_face(face, irradiance)


def reconstruct_coefficients_to_cubemap(cubemap: Cubemap, coefficients: SHCoefficients) -> None:
    """
    Overwrite every texel with the irradiance evaluated from the coefficients
    (the pre-scaled diffuse convolution of the cubemap radiance).
    Dimension and face assignment are left unchanged.
    """
    start_time = time.time()

    sph_coeffs = coefficients.to_tensor(torch.float64)
    run_per_face(partial(reconstruct_face_from_coefficients, cubemap, sph_coeffs=sph_coeffs))

    logger.debug(f"Reconstructed {cubemap.dimension}x{cubemap.dimension} cubemap in {time.time() - start_time:.3f}s")
