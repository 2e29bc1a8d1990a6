import torch
from einops import repeat

from src.IrradianceSH.datatypes import Face

# Raw (un-normalized) direction of a face point is FACE_MATRICES[face] @ (cx, cy, 1),
# where (cx, cy) in [-1, 1]^2 has (-1, -1) at the bottom left of the face.
#   PX: ( 1, cy, -cx)    NX: (-1, cy,  cx)
#   PY: (cx,  1, -cy)    NY: (cx, -1,  cy)
#   PZ: (cx, cy,   1)    NZ: (-cx, cy, -1)
FACE_MATRICES = (
    ((0, 0, 1), (0, 1, 0), (-1, 0, 0)),    # PX
    ((0, 0, -1), (0, 1, 0), (1, 0, 0)),    # NX
    ((1, 0, 0), (0, 0, 1), (0, -1, 0)),    # PY
    ((1, 0, 0), (0, 0, -1), (0, 1, 0)),    # NY
    ((1, 0, 0), (0, 1, 0), (0, 0, 1)),     # PZ
    ((-1, 0, 0), (0, 1, 0), (0, 0, -1)),   # NZ
)

# Inverse mapping: for each face, (axis, sign) of the s and t numerators.
# s = (sign_s * d[axis_s] / major + 1) / 2, t likewise.
FACE_ST_AXES = (
    ((2, -1.0), (1, -1.0)),   # PX: s = -z, t = -y
    ((2, 1.0), (1, -1.0)),    # NX: s =  z, t = -y
    ((0, 1.0), (2, 1.0)),     # PY: s =  x, t =  z
    ((0, 1.0), (2, -1.0)),    # NY: s =  x, t = -z
    ((0, 1.0), (1, -1.0)),    # PZ: s =  x, t = -y
    ((0, -1.0), (1, -1.0)),   # NZ: s = -x, t = -y
)


def luminance(batch_rgb: torch.Tensor) -> torch.Tensor:
    """
    Compute the luminance of an rgb image.

    :param rgb: (..., 3)
    :return: (...)
    """
    # ITU-R BT.709 luminance
    return 0.2126 * batch_rgb[...,0] + 0.7152 * batch_rgb[...,1] + 0.0722 * batch_rgb[...,2]


def generate_face_coordinates_map(dim: int, device: torch.device = None) -> torch.Tensor:
    """
    Create map of size (dim, dim, 2), where at each texel center we know (cx, cy) on the face.

                Face (cx, cy):
                                (-1,+1)     (+1,+1)
                                    +-------+
                                    |       |
                                    +-------+
                                (-1,-1)     (+1,-1)

                Numpy/OpenCV (x, y):
                                (0,0)       (dim,0)
                                    +-------+
                                    |       |
                                    +-------+
                                (0,dim)     (dim,dim)

    :params dim: face dimension
    :return face_coordinates: (dim, dim, 2) indexed [y, x]
    """
    scale = 2.0 / dim
    centers = torch.arange(dim, device=device, dtype=torch.float64) + 0.5

    cx = centers * scale - 1.0         # (dim)
    cy = 1.0 - centers * scale         # (dim)

    cx_map = repeat(cx, "w -> h w", h=dim)
    cy_map = repeat(cy, "h -> h w", w=dim)

    return torch.stack([cx_map, cy_map], dim=-1)


def face_to_cartesian(face: Face, face_coordinates: torch.Tensor) -> torch.Tensor:
    """
    Convert face coordinates to unit directions.

    :params face: cube face
    :params face_coordinates (..., 2): (cx, cy) on the face
    :returns cartesian_coordinates (..., 3)
    """
    cx, cy = face_coordinates[..., 0], face_coordinates[..., 1]
    local = torch.stack([cx, cy, torch.ones_like(cx)], dim=-1)  # (..., 3)

    matrix = torch.tensor(FACE_MATRICES[int(face)], device=face_coordinates.device, dtype=face_coordinates.dtype)
    raw = local @ matrix.T

    length = torch.sqrt(cx * cx + cy * cy + 1.0)
    return raw / length[..., None]


def cartesian_to_face(cartesian_coordinates: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
    """
    Select the face by dominant axis and compute (s, t) on it.
    Ties are broken in axis order x, then y, then z.

    :params cartesian_coordinates (..., 3)
    :returns faces (...) int64 face index
    :returns st (..., 2) in [0, 1]
    """
    x, y, z = cartesian_coordinates[..., 0], cartesian_coordinates[..., 1], cartesian_coordinates[..., 2]
    ax, ay, az = torch.abs(x), torch.abs(y), torch.abs(z)
    device = cartesian_coordinates.device

    def pick(positive: Face, negative: Face, component: torch.Tensor) -> torch.Tensor:
        return torch.where(component >= 0,
                           torch.tensor(int(positive), device=device),
                           torch.tensor(int(negative), device=device))

    is_x = (ax >= ay) & (ax >= az)
    is_y = ~is_x & (ay >= ax) & (ay >= az)

    faces = torch.where(is_x, pick(Face.PX, Face.NX, x),
                        torch.where(is_y, pick(Face.PY, Face.NY, y), pick(Face.PZ, Face.NZ, z)))
    major = torch.where(is_x, ax, torch.where(is_y, ay, az))

    # Candidate numerators for every face, then keep the one of the selected face
    sc_all = torch.stack([sign * cartesian_coordinates[..., axis] for (axis, sign), _ in FACE_ST_AXES], dim=-1)
    tc_all = torch.stack([sign * cartesian_coordinates[..., axis] for _, (axis, sign) in FACE_ST_AXES], dim=-1)
    sc = torch.gather(sc_all, -1, faces.unsqueeze(-1)).squeeze(-1)
    tc = torch.gather(tc_all, -1, faces.unsqueeze(-1)).squeeze(-1)

    st = (torch.stack([sc, tc], dim=-1) / major[..., None] + 1.0) * 0.5
    return faces, st


def texel_solid_angles(dim: int, device: torch.device = None) -> torch.Tensor:
    """
    Exact solid angle subtended by every texel of a cube face.

    The area of the spherical projection of the rectangle from (0, 0) to (x, y) on the
    plane z = 1 is atan2(x*y, sqrt(x^2 + y^2 + 1)); the texel area follows from the four
    corners by inclusion-exclusion.

    :param dim: face dimension
    :return solid_angles: (dim, dim) indexed [y, x], sums to 4pi/6
    """
    inv_dim = 1.0 / dim
    centers = (torch.arange(dim, device=device, dtype=torch.float64) + 0.5) * 2.0 * inv_dim - 1.0
    u0 = repeat(centers - inv_dim, "w -> h w", h=dim)
    u1 = repeat(centers + inv_dim, "w -> h w", h=dim)
    v0 = repeat(centers - inv_dim, "h -> h w", w=dim)
    v1 = repeat(centers + inv_dim, "h -> h w", w=dim)

    def quadrant_area(x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        return torch.atan2(x * y, torch.sqrt(x * x + y * y + 1.0))

    return quadrant_area(u0, v0) - quadrant_area(u0, v1) - quadrant_area(u1, v0) + quadrant_area(u1, v1)
