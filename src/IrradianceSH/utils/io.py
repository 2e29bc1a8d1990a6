import os

os.environ['OPENCV_IO_ENABLE_OPENEXR'] = '1'

import json
import math
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from src.IrradianceSH.core.cubemap import Cubemap
from src.IrradianceSH.core.image import ImagePlane
from src.IrradianceSH.datatypes import Face, SHCoefficients
from src.IrradianceSH.utils.fsutil import FileSystem, LocalFileSystem, PathLike

HORIZONTAL_STRIP = "horizontal_strip"
VERTICAL_STRIP = "vertical_strip"


class CubemapFormatError(ValueError):
    """The image is not a 3 channel float cubemap in a supported layout."""


@dataclass
class CubemapImage:
    """
    A decoded cubemap texture: the six faces side by side in Face order (PX, NX, PY, NY, PZ, NZ).

        horizontal strip (6d x d):  | PX | NX | PY | NY | PZ | NZ |
        vertical strip (d x 6d):    the same faces stacked top to bottom

    The image owns the pixel memory; cubemaps built by to_cubemap alias it.
    """
    pixels: np.ndarray  # (H, W, 3) float32 rgb, C-contiguous
    layout: str

    @property
    def dimension(self) -> int:
        H, W, _ = self.pixels.shape
        return H if self.layout == HORIZONTAL_STRIP else W

    def face_origin(self, face: Face) -> tuple[int, int]:
        if self.layout == HORIZONTAL_STRIP:
            return int(face) * self.dimension, 0
        return 0, int(face) * self.dimension

    def to_cubemap(self) -> Cubemap:
        """Build a cubemap whose faces are views into self.pixels (no pixel copy)."""
        H, W, _ = self.pixels.shape
        dim = self.dimension
        strip = ImagePlane().wrap(self.pixels, W, H)

        cubemap = Cubemap(dim)
        for face in Face:
            x, y = self.face_origin(face)
            cubemap.set_face(face, ImagePlane().subset(strip, x, y, dim, dim))
        return cubemap


def cubemap_image_from_pixels(pixels: np.ndarray) -> CubemapImage:
    """
    Validate an rgb float32 image and detect its strip layout.

    :param pixels: (H, W, 3)
    """
    if pixels.ndim != 3 or pixels.shape[-1] != 3:
        raise CubemapFormatError(f'Cubemap must have 3 channels, got shape {pixels.shape}')
    if pixels.dtype != np.float32:
        raise CubemapFormatError(f'Cubemap texels must be 32-bit float, got {pixels.dtype}')

    H, W, _ = pixels.shape
    if H > 0 and W == 6 * H:
        layout = HORIZONTAL_STRIP
    elif W > 0 and H == 6 * W:
        layout = VERTICAL_STRIP
    else:
        raise CubemapFormatError(f'Unrecognized cubemap layout {W}x{H}, expected a 6:1 or 1:6 strip of faces')

    return CubemapImage(np.ascontiguousarray(pixels), layout)


def decode_cubemap(data: bytes) -> CubemapImage:
    """
    Decode an EXR/HDR byte stream into a cubemap image.
    """
    try:
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_ANYCOLOR | cv2.IMREAD_ANYDEPTH)
    except cv2.error as e:
        raise CubemapFormatError(f"Could not decode cubemap image: {e}") from e
    if image is None:
        raise CubemapFormatError("Could not decode cubemap image")
    if image.ndim != 3 or image.shape[-1] != 3:
        raise CubemapFormatError(f'Cubemap must have 3 channels, got shape {image.shape}')

    image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return cubemap_image_from_pixels(image_rgb)


def encode_cubemap(image: CubemapImage, extension: str = ".exr") -> bytes:
    """
    Encode the cubemap image (same layout it was decoded with).
    """
    try:
        ok, encoded = cv2.imencode(extension, cv2.cvtColor(image.pixels, cv2.COLOR_RGB2BGR))
    except cv2.error as e:
        raise CubemapFormatError(f"Could not encode cubemap as {extension}: {e}") from e
    if not ok:
        raise CubemapFormatError(f"Could not encode cubemap as {extension}")
    return encoded.tobytes()


def read_cubemap(path: PathLike, fs: Optional[FileSystem] = None) -> CubemapImage:
    fs = fs or LocalFileSystem()
    return decode_cubemap(fs.read_bytes(path))


def write_cubemap(image: CubemapImage, path: PathLike, fs: Optional[FileSystem] = None) -> None:
    fs = fs or LocalFileSystem()
    extension = os.path.splitext(str(path))[1] or ".exr"
    fs.write_bytes(path, encode_cubemap(image, extension))


# -----------------------------
# Coefficient Files
# -----------------------------
def coefficients_to_json(coefficients: SHCoefficients) -> str:
    """
    A bare JSON array of 9 [x, y, z] arrays.
    Non-finite components (from inf or nan texels) are written as null.
    """
    values = [[v if math.isfinite(v) else None for v in triple] for triple in coefficients.to_list()]
    return json.dumps(values, allow_nan=False)


def coefficients_from_json(text: str) -> SHCoefficients:
    values = json.loads(text)
    if not isinstance(values, list):
        raise ValueError("Coefficient file must contain a JSON array")
    return SHCoefficients.from_list(values)


def write_coefficients(coefficients: SHCoefficients, path: PathLike, fs: Optional[FileSystem] = None) -> None:
    fs = fs or LocalFileSystem()
    fs.write_bytes(path, coefficients_to_json(coefficients).encode("utf-8"))


def read_coefficients(path: PathLike, fs: Optional[FileSystem] = None) -> SHCoefficients:
    fs = fs or LocalFileSystem()
    return coefficients_from_json(fs.read_bytes(path).decode("utf-8"))
