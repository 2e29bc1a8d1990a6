"""
Image plane: a strided view over one face's rgb float32 pixels.

A plane either owns its storage (OwnedBuffer, allocated by the plane) or borrows a window
of memory owned by someone else (BorrowedBuffer, e.g. the decoded cubemap texture or a
parent plane). Dropping a plane never releases borrowed memory.

    (0,0)                                  bytes_per_row
      +----------------------------------------------+
      |  texel texel texel ... (width * 12 bytes)    | padding |
      |  ...                                         |         |
      +----------------------------------------------+
                                                    (height rows)
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from src.IrradianceSH.core.vector3 import Vector3

TEXEL_CHANNELS = 3
TEXEL_SIZE = TEXEL_CHANNELS * np.dtype(np.float32).itemsize  # 12 bytes


@dataclass(frozen=True, eq=False)
class OwnedBuffer:
    """Storage allocated by the plane, released with it."""
    storage: bytearray
    offset: int = 0

    @property
    def memory(self) -> memoryview:
        return memoryview(self.storage)


@dataclass(frozen=True, eq=False)
class BorrowedBuffer:
    """A window onto memory owned elsewhere. The plane must not outlive the owner."""
    memory: memoryview
    offset: int = 0


PlaneBuffer = Union[OwnedBuffer, BorrowedBuffer]


class ImagePlane:
    def __init__(self, width: int = 0, height: int = 0, stride: int = 0):
        self.reset()
        if width > 0 and height > 0:
            self.allocate(width, height, stride)

    # -----------------------------
    # Assignment
    # -----------------------------
    def reset(self) -> None:
        self._buffer: Optional[PlaneBuffer] = None
        self._width = 0
        self._height = 0
        self._bytes_per_row = 0

    def _assign(self, buffer: PlaneBuffer, width: int, height: int, bytes_per_row: int) -> "ImagePlane":
        # Any previously owned storage is released by dropping the reference
        self._buffer = buffer
        self._width = width
        self._height = height
        self._bytes_per_row = bytes_per_row
        return self

    def allocate(self, width: int, height: int, stride: int = 0) -> "ImagePlane":
        """
        Allocate owned storage of height rows, each (stride or width) texels wide.
        The storage is zero filled.
        """
        bytes_per_row = (stride if stride > 0 else width) * TEXEL_SIZE
        return self._assign(OwnedBuffer(bytearray(bytes_per_row * height)), width, height, bytes_per_row)

    def wrap(self, data, width: int, height: int, bytes_per_row: Optional[int] = None) -> "ImagePlane":
        """
        Alias caller memory without copying.

        :param data: any C-contiguous buffer (bytearray, bytes, numpy array, memoryview)
        :param bytes_per_row: row pitch, width * 12 when not given
        """
        memory = memoryview(data).cast("B")
        if bytes_per_row is None:
            bytes_per_row = width * TEXEL_SIZE
        return self._assign(BorrowedBuffer(memory), width, height, bytes_per_row)

    def set(self, image: "ImagePlane") -> "ImagePlane":
        """Copy the descriptor of image. Pixels are shared, ownership is never taken."""
        if image._buffer is None:
            self.reset()
            return self
        return self._assign(BorrowedBuffer(image._buffer.memory, image._buffer.offset),
                            image.width, image.height, image.bytes_per_row)

    def subset(self, image: "ImagePlane", x: int, y: int, width: int, height: int) -> "ImagePlane":
        """
        Borrow the (x, y, width, height) window of image.
        The row pitch of image is kept so rows of the window are addressed correctly.
        """
        buffer = BorrowedBuffer(image._buffer.memory, image.pixel_ref(x, y))
        return self._assign(buffer, width, height, image.bytes_per_row)

    # -----------------------------
    # Accessors
    # -----------------------------
    @property
    def is_valid(self) -> bool:
        return self._buffer is not None

    @property
    def owns_data(self) -> bool:
        return isinstance(self._buffer, OwnedBuffer)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def bytes_per_row(self) -> int:
        return self._bytes_per_row

    @property
    def bytes_per_pixel(self) -> int:
        return TEXEL_SIZE

    @property
    def buffer(self) -> Optional[PlaneBuffer]:
        return self._buffer

    def pixel_ref(self, x: int, y: int) -> int:
        """Byte offset of texel (x, y) in the underlying memory. Not bounds checked."""
        return self._buffer.offset + y * self._bytes_per_row + x * TEXEL_SIZE

    # -----------------------------
    # Pixel access
    # -----------------------------
    def texels(self) -> np.ndarray:
        """
        :return texels: (height, width, 3) float32 view sharing memory with the plane.
            Writable unless the underlying memory is read only.
        """
        assert self._buffer is not None, 'Image plane has no pixel data'
        return np.ndarray(shape=(self._height, self._width, TEXEL_CHANNELS),
                          dtype=np.float32,
                          buffer=self._buffer.memory,
                          offset=self._buffer.offset,
                          strides=(self._bytes_per_row, TEXEL_SIZE, np.dtype(np.float32).itemsize))

    def read_texel(self, x: int, y: int) -> Vector3:
        texel = np.frombuffer(self._buffer.memory, dtype=np.float32, count=TEXEL_CHANNELS, offset=self.pixel_ref(x, y))
        return Vector3.from_iterable(texel.tolist())

    def write_texel(self, x: int, y: int, value: Vector3) -> None:
        texel = np.frombuffer(self._buffer.memory, dtype=np.float32, count=TEXEL_CHANNELS, offset=self.pixel_ref(x, y))
        texel[:] = (value.x, value.y, value.z)
