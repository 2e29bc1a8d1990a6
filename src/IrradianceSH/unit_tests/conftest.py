import fnmatch
from pathlib import Path

import numpy as np
import pytest
import torch

from src.IrradianceSH.datatypes import Face
from src.IrradianceSH.utils.fsutil import FileSystem, split_with_wildcard
from src.IrradianceSH.utils.io import cubemap_image_from_pixels


class MemoryFileSystem(FileSystem):
    """Files kept in a dict, keyed by posix path."""

    def __init__(self, files=None):
        self.files = {Path(k).as_posix(): v for k, v in (files or {}).items()}

    def read_bytes(self, path):
        key = Path(path).as_posix()
        if key not in self.files:
            raise FileNotFoundError(key)
        return self.files[key]

    def write_bytes(self, path, data):
        self.files[Path(path).as_posix()] = bytes(data)

    def is_dir(self, path):
        prefix = Path(path).as_posix().rstrip("/") + "/"
        return any(key.startswith(prefix) for key in self.files)

    def find_files(self, pattern):
        root, file_pattern = split_with_wildcard(pattern)
        prefix = "" if root == Path(".") else root.as_posix().rstrip("/") + "/"
        return sorted(Path(key) for key in self.files
                      if key.startswith(prefix) and fnmatch.fnmatchcase(key[len(prefix):], file_pattern))


def make_cubemap_image(dim: int, radiance=None):
    """
    Horizontal strip cubemap image of the given face dimension.

    :param radiance: optional callable mapping directions (..., 3) to rgb (..., 3)
    :return image, cubemap: the cubemap aliases image.pixels
    """
    image = cubemap_image_from_pixels(np.zeros((dim, 6 * dim, 3), dtype=np.float32))
    cubemap = image.to_cubemap()
    if radiance is not None:
        for face in Face:
            cubemap.write_face(face, radiance(cubemap.face_directions(face)))
    return image, cubemap


def constant_radiance(color):
    color = torch.tensor(color, dtype=torch.float64)
    return lambda directions: color.expand(*directions.shape[:-1], 3)


@pytest.fixture
def cubemap_factory():
    return make_cubemap_image


@pytest.fixture
def constant_factory():
    return constant_radiance


@pytest.fixture
def memory_fs():
    return MemoryFileSystem()
