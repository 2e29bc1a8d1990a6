import dataclasses
import math

import pytest

from src.IrradianceSH.core.vector3 import Vector3


def test_aliases():
    v = Vector3(1.0, 2.0, 3.0)
    assert (v.r, v.g, v.b) == (1.0, 2.0, 3.0)
    assert (v.s, v.t, v.p) == (1.0, 2.0, 3.0)
    assert Vector3.from_rgb(1, 2, 3) == v
    assert Vector3.from_iterable([1, 2, 3]) == v


def test_arithmetic():
    a = Vector3(1.0, 2.0, 3.0)
    b = Vector3(0.5, -1.0, 2.0)

    assert a + b == Vector3(1.5, 1.0, 5.0)
    assert a - b == Vector3(0.5, 3.0, 1.0)
    assert -a == Vector3(-1.0, -2.0, -3.0)
    assert a * 2.0 == Vector3(2.0, 4.0, 6.0)
    assert 2.0 * a == Vector3(2.0, 4.0, 6.0)
    assert a * b == Vector3(0.5, -2.0, 6.0)
    assert a.dot(b) == pytest.approx(0.5 - 2.0 + 6.0)
    assert a.sum() == 6.0
    assert a.to_list() == [1.0, 2.0, 3.0]


def test_length_and_normalize():
    v = Vector3(3.0, 0.0, 4.0)
    assert v.length() == pytest.approx(5.0)
    assert v.normalized().isclose(Vector3(0.6, 0.0, 0.8))
    assert math.isclose(v.normalized().length(), 1.0)


def test_isclose_tolerance():
    a = Vector3(1.0, 1.0, 1.0)
    assert a.isclose(Vector3(1.0 + 1e-9, 1.0, 1.0 - 1e-9))
    assert not a.isclose(Vector3(1.01, 1.0, 1.0))
    assert a.isclose(Vector3(1.01, 1.0, 1.0), abs_tol=0.1)


def test_immutable():
    v = Vector3(1.0, 2.0, 3.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        v.x = 5.0
