"""
Numerical tests for the irradiance spherical harmonic projection and reconstruction.
"""

import math

import numpy as np
import pytest
import torch

from src.IrradianceSH.core.sph import (
    evaluate_coefficients,
    factorial_ratio,
    irradiance_basis,
    irradiance_normalization_constants,
    lm_from_index,
    project_cubemap_to_coefficients,
    reconstruct_coefficients_to_cubemap,
    solid_angle,
    sph_index_from_lm,
    sph_indices_total,
    truncated_cos_sh,
)
from src.IrradianceSH.core.vector3 import Vector3
from src.IrradianceSH.datatypes import N_TERMS, Face


def test_index_helpers():
    assert sph_indices_total(2) == N_TERMS
    for i in range(N_TERMS):
        l, m = lm_from_index(i)  # noqa: E741
        assert sph_index_from_lm(l, m) == i
    assert [lm_from_index(i) for i in (0, 3, 6, 8)] == [(0, 0), (1, 1), (2, 0), (2, 2)]


def test_factorial_ratio():
    assert factorial_ratio(5, 2) == pytest.approx(60.0)
    assert factorial_ratio(2, 5) == pytest.approx(1.0 / 60.0)
    assert factorial_ratio(3) == pytest.approx(6.0)
    assert factorial_ratio(0, 0) == 1.0
    assert factorial_ratio(4, 4) == 1.0


def test_truncated_cos_sh():
    assert truncated_cos_sh(0) == pytest.approx(math.pi)
    assert truncated_cos_sh(1) == pytest.approx(2.0 * math.pi / 3.0)
    assert truncated_cos_sh(2) == pytest.approx(math.pi / 4.0)
    assert truncated_cos_sh(3) == 0.0
    assert truncated_cos_sh(4) == pytest.approx(-math.pi / 24.0)
    assert truncated_cos_sh(5) == 0.0


def test_normalization_constants():
    A = irradiance_normalization_constants()
    inv_pi = 1.0 / math.pi
    expected = [
        inv_pi * inv_pi / 4.0 * math.pi,
        inv_pi * inv_pi / 4.0 * 3.0 * (2.0 * math.pi / 3.0),
        inv_pi * inv_pi / 4.0 * 3.0 * (2.0 * math.pi / 3.0),
        inv_pi * inv_pi / 4.0 * 3.0 * (2.0 * math.pi / 3.0),
        inv_pi * inv_pi / 4.0 * 15.0 * (math.pi / 4.0),
        inv_pi * inv_pi / 4.0 * 15.0 * (math.pi / 4.0),
        inv_pi * inv_pi / 16.0 * 5.0 * (math.pi / 4.0),
        inv_pi * inv_pi / 4.0 * 15.0 * (math.pi / 4.0),
        inv_pi * inv_pi / 16.0 * 15.0 * (math.pi / 4.0),
    ]
    assert len(A) == N_TERMS
    assert list(A) == pytest.approx(expected, rel=1e-12)


def test_constant_cubemap_projects_to_dc_term(cubemap_factory, constant_factory):
    _, cubemap = cubemap_factory(4, constant_factory((1.0, 1.0, 1.0)))
    coefficients = project_cubemap_to_coefficients(cubemap)

    assert len(coefficients) == N_TERMS
    assert coefficients[0].isclose(Vector3(1.0, 1.0, 1.0), abs_tol=1e-6)
    for coefficient in coefficients.coefficients[1:]:
        assert coefficient.isclose(Vector3(), abs_tol=1e-3)


def test_constant_color_is_preserved(cubemap_factory, constant_factory):
    color = (0.25, 2.0, 8.0)
    _, cubemap = cubemap_factory(6, constant_factory(color))
    coefficients = project_cubemap_to_coefficients(cubemap)
    assert coefficients[0].isclose(Vector3(*color), abs_tol=1e-5)
    for coefficient in coefficients.coefficients[1:]:
        assert coefficient.isclose(Vector3(), abs_tol=1e-6)


def reference_projection(cubemap):
    """Texel by texel, row-major projection written with the scalar helpers."""
    A = irradiance_normalization_constants()
    dim = cubemap.dimension
    sh = [Vector3() for _ in range(N_TERMS)]
    for face in Face:
        for y in range(dim):
            for x in range(dim):
                s = cubemap.direction_for(face, x, y)
                color = cubemap.face(face).read_texel(x, y) * solid_angle(dim, x, y)
                for i, basis in enumerate(irradiance_basis(s)):
                    sh[i] = sh[i] + color * (A[i] * basis)
    return sh


def test_projection_matches_scalar_reference(cubemap_factory):
    image, cubemap = cubemap_factory(3)
    generator = torch.Generator().manual_seed(0)
    image.pixels[...] = (4.0 * torch.rand(image.pixels.shape, generator=generator)).numpy()

    coefficients = project_cubemap_to_coefficients(cubemap)
    expected = reference_projection(cubemap)
    for got, want in zip(coefficients, expected):
        assert got.isclose(want, rel_tol=1e-9, abs_tol=1e-12)


def test_projection_of_directional_gradient(cubemap_factory):
    # L(d) = d.y projects onto the y term only, with A[1] * 4pi/3 = 2/3
    _, cubemap = cubemap_factory(32, lambda d: torch.stack([d[..., 1]] * 3, dim=-1))
    coefficients = project_cubemap_to_coefficients(cubemap)
    assert coefficients[1].isclose(Vector3(2.0 / 3.0, 2.0 / 3.0, 2.0 / 3.0), abs_tol=1e-3)
    for i in (0, 2, 3, 4, 5, 6, 7, 8):
        assert coefficients[i].isclose(Vector3(), abs_tol=1e-3), i


def band_limited_radiance(d: torch.Tensor) -> torch.Tensor:
    x, y, z = d[..., 0], d[..., 1], d[..., 2]
    r = 1.0 + 0.5 * y + 0.4 * (x * x - y * y)
    g = 2.0 - 0.3 * x + 0.2 * (3.0 * z * z - 1.0)
    b = 0.5 + 0.25 * z + 0.6 * z * x - 0.1 * y * x
    return torch.stack([r, g, b], dim=-1)


def band_limited_irradiance(d: torch.Tensor) -> torch.Tensor:
    # band 1 is scaled by 2/3 and band 2 by 1/4 by the clamped cosine convolution
    x, y, z = d[..., 0], d[..., 1], d[..., 2]
    r = 1.0 + (2.0 / 3.0) * 0.5 * y + 0.25 * 0.4 * (x * x - y * y)
    g = 2.0 - (2.0 / 3.0) * 0.3 * x + 0.25 * 0.2 * (3.0 * z * z - 1.0)
    b = 0.5 + (2.0 / 3.0) * 0.25 * z + 0.25 * (0.6 * z * x - 0.1 * y * x)
    return torch.stack([r, g, b], dim=-1)


def test_reconstruction_of_band_limited_signal(cubemap_factory):
    dim = 64
    _, cubemap = cubemap_factory(dim, band_limited_radiance)

    coefficients = project_cubemap_to_coefficients(cubemap)
    reconstruct_coefficients_to_cubemap(cubemap, coefficients)

    assert cubemap.dimension == dim
    assert cubemap.is_complete()
    for face in Face:
        expected = band_limited_irradiance(cubemap.face_directions(face))
        assert torch.allclose(cubemap.read_face(face), expected, atol=5e-3), face


def test_constant_round_trip_is_identity(cubemap_factory, constant_factory):
    color = (0.3, 0.6, 0.9)
    image, cubemap = cubemap_factory(8, constant_factory(color))
    before = image.pixels.copy()

    reconstruct_coefficients_to_cubemap(cubemap, project_cubemap_to_coefficients(cubemap))
    assert np.allclose(image.pixels, before, atol=1e-5)


def test_reconstruction_writes_into_source_pixels(cubemap_factory, constant_factory):
    image, cubemap = cubemap_factory(4)
    coefficients = project_cubemap_to_coefficients(cubemap)
    assert all(c.isclose(Vector3()) for c in coefficients)

    _, lit = cubemap_factory(4, constant_factory((2.0, 2.0, 2.0)))
    reconstruct_coefficients_to_cubemap(cubemap, project_cubemap_to_coefficients(lit))
    assert np.allclose(image.pixels, 2.0, atol=1e-5)


def test_evaluate_coefficients_matches_reconstruction(cubemap_factory):
    _, cubemap = cubemap_factory(8, band_limited_radiance)
    coefficients = project_cubemap_to_coefficients(cubemap)
    reconstruct_coefficients_to_cubemap(cubemap, coefficients)

    for face, x, y in [(Face.PX, 0, 0), (Face.NY, 3, 5), (Face.NZ, 7, 7)]:
        direction = cubemap.direction_for(face, x, y)
        expected = cubemap.face(face).read_texel(x, y)
        assert evaluate_coefficients(coefficients, direction).isclose(expected, rel_tol=1e-5, abs_tol=1e-5)
