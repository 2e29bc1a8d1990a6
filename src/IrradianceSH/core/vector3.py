import math
from dataclasses import dataclass
from typing import Iterable, Union


@dataclass(frozen=True)
class Vector3:
    """
    A plain 3 component value used for directions (x, y, z), colors (r, g, b)
    and spherical harmonic coefficients.

    Instances are immutable. Equality through == is exact, use isclose for a tolerance.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    # -----------------------------
    # Aliases
    # -----------------------------
    @property
    def r(self) -> float:
        return self.x

    @property
    def g(self) -> float:
        return self.y

    @property
    def b(self) -> float:
        return self.z

    @property
    def s(self) -> float:
        return self.x

    @property
    def t(self) -> float:
        return self.y

    @property
    def p(self) -> float:
        return self.z

    @classmethod
    def from_rgb(cls, r: float, g: float, b: float) -> "Vector3":
        return cls(float(r), float(g), float(b))

    @classmethod
    def from_iterable(cls, values: Iterable[float]) -> "Vector3":
        x, y, z = values
        return cls(float(x), float(y), float(z))

    # -----------------------------
    # Arithmetic
    # -----------------------------
    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> "Vector3":
        return Vector3(-self.x, -self.y, -self.z)

    def __mul__(self, other: Union[float, "Vector3"]) -> "Vector3":
        if isinstance(other, Vector3):
            return Vector3(self.x * other.x, self.y * other.y, self.z * other.z)
        return Vector3(self.x * other, self.y * other, self.z * other)

    __rmul__ = __mul__

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def dot(self, other: "Vector3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def normalized(self) -> "Vector3":
        return self * (1.0 / self.length())

    def sum(self) -> float:
        return self.x + self.y + self.z

    def to_list(self) -> list[float]:
        return [self.x, self.y, self.z]

    def isclose(self, other: "Vector3", rel_tol: float = 1e-9, abs_tol: float = 1e-6) -> bool:
        return all(math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol) for a, b in zip(self, other))
