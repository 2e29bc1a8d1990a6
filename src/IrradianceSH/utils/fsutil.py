"""
File access used by the driver. The spherical harmonic core never touches the file system.
"""

import fnmatch
from pathlib import Path
from typing import List, Union

PathLike = Union[str, Path]


def split_with_wildcard(pattern: PathLike) -> tuple[Path, str]:
    """
    Split pattern into the directory to walk and the part to match below it.
    The split happens at the last separator before the first '*'.

    "hdri/*.exr"         -> ("hdri", "*.exr")
    "hdri/*/night/*.exr" -> ("hdri", "*/night/*.exr")
    """
    text = str(pattern).replace("\\", "/")
    wildcard = text.find("*")
    head = text if wildcard < 0 else text[:wildcard]
    separator = head.rfind("/")
    if separator < 0:
        return Path("."), text
    return Path(text[:separator] or "/"), text[separator + 1:]


class FileSystem:
    """Byte level file access."""

    def read_bytes(self, path: PathLike) -> bytes:
        raise NotImplementedError

    def write_bytes(self, path: PathLike, data: bytes) -> None:
        raise NotImplementedError

    def find_files(self, pattern: PathLike) -> List[Path]:
        raise NotImplementedError

    def is_dir(self, path: PathLike) -> bool:
        raise NotImplementedError


class LocalFileSystem(FileSystem):

    def read_bytes(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: PathLike, data: bytes) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def is_dir(self, path: PathLike) -> bool:
        return Path(path).is_dir()

    def find_files(self, pattern: PathLike) -> List[Path]:
        """
        Recursively list files matching pattern ('*' wildcards). Hidden entries are skipped.

        :return paths: sorted matching file paths
        """
        root, file_pattern = split_with_wildcard(pattern)
        matches = []
        for path in root.rglob("*"):
            relative = path.relative_to(root)
            if any(part.startswith(".") for part in relative.parts) or not path.is_file():
                continue
            if file_pattern == "*" or fnmatch.fnmatchcase(relative.as_posix(), file_pattern):
                matches.append(path)
        return sorted(matches)
