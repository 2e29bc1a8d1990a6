import argparse
import logging
import math
import sys
import time
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from src.IrradianceSH.core.sph import lm_from_index, project_cubemap_to_coefficients, reconstruct_coefficients_to_cubemap
from src.IrradianceSH.datatypes import SHCoefficients
from src.IrradianceSH.utils.fsutil import FileSystem, LocalFileSystem, split_with_wildcard
from src.IrradianceSH.utils.io import read_cubemap, write_coefficients, write_cubemap
from src.IrradianceSH.utils.transforms import luminance

VERSION = "1.0.0"
DEFAULT_OUTPUT = "diffuse.json"
DEFAULT_DIFFUSE = "diffuse.exr"
CUBEMAP_EXTENSIONS = (".exr", ".hdr")

# Usage examples:
#
# Single cubemap (6:1 or 1:6 strip of faces, PX NX PY NY PZ NZ):
# python -m src.IrradianceSH.find_irradiance_sh --input "studio_cube.exr" --output "studio.json"
#
# Also render the irradiance back onto the cubemap (and log at DEBUG level):
# python -m src.IrradianceSH.find_irradiance_sh -i "studio_cube.exr" -o "studio.json" -d "studio_diffuse.exr" -v
#
# Every cubemap below a folder, or matching a pattern (outputs are prefixed with the input path below the folder, e.g. "night_sky_diffuse.json"):
# python -m src.IrradianceSH.find_irradiance_sh -i "cubemaps/*.exr" -o "out/diffuse.json"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="irradiance-sh",
        description="Compute the 9 irradiance spherical harmonic coefficients of a cubemap.",
    )
    parser.add_argument("--input", "-i", type=str, required=True, help="Cubemap file, folder or wildcard pattern")
    parser.add_argument("--output", "-o", type=str, default=DEFAULT_OUTPUT, help=f"Coefficient JSON file (default: {DEFAULT_OUTPUT})")
    parser.add_argument("--diffuse", "-d", type=str, default=DEFAULT_DIFFUSE, help=f"Reconstructed cubemap written with --verbose (default: {DEFAULT_DIFFUSE})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Render the irradiance back onto the cubemap and enable DEBUG logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def resolve_sources(source: str, fs: FileSystem) -> List[Path]:
    """
    A plain path is returned as is; a folder or '*' pattern is expanded to the cubemap files it matches.
    """
    if "*" in source:
        candidates = fs.find_files(source)
    elif fs.is_dir(source):
        candidates = fs.find_files(Path(source) / "*")
    else:
        return [Path(source)]
    return [path for path in candidates if path.suffix.lower() in CUBEMAP_EXTENSIONS]


def search_root(source: str) -> Path:
    """Folder that a folder or '*' pattern input is searched from."""
    if "*" in source:
        return split_with_wildcard(source)[0]
    return Path(source)


def output_prefix(source: Path, root: Path) -> str:
    """
    Prefix for the outputs of one batch input: its path below root, without extension,
    with folders joined by '_' ("cubes/night/sky.hdr" below "cubes" -> "night_sky").
    """
    try:
        relative = source.relative_to(root)
    except ValueError:
        relative = Path(source.name)
    return "_".join(relative.with_suffix("").parts)


def prefixed_path(path: Path, stem: str) -> Path:
    return path.parent / f"{stem}_{path.name}"


def process_cubemap(source: Path, output_path: Path, diffuse_path: Path, verbose: bool, fs: FileSystem) -> SHCoefficients:
    """
    Load one cubemap, write its coefficients and, when verbose, the reconstructed irradiance cubemap.
    """
    start_time = time.time()
    image = read_cubemap(source, fs)
    cubemap = image.to_cubemap()
    logger.info(f"Loaded {source.name} ({image.layout}, {cubemap.dimension}x{cubemap.dimension} per face) in {time.time() - start_time:.2f} seconds.")

    start_time = time.time()
    coefficients = project_cubemap_to_coefficients(cubemap)
    logger.info(f"Spherical harmonics projection complete in {time.time() - start_time:.2f} seconds.")

    for i, coefficient in enumerate(coefficients):
        l, m = lm_from_index(i)  # noqa: E741
        logger.debug(f"  L{l}{m:+d}: [{coefficient.x:.6f}, {coefficient.y:.6f}, {coefficient.z:.6f}]")
    logger.info(f"  Ambient luminance: {luminance(coefficients.to_tensor()[0]).item():.6f}")
    if not all(math.isfinite(v) for coefficient in coefficients for v in coefficient):
        logger.warning(f"{source.name} contains inf or nan texels, non-finite coefficients are written as null")

    write_coefficients(coefficients, output_path, fs)
    logger.info(f"Wrote coefficients to {output_path}")

    if verbose:
        start_time = time.time()
        reconstruct_coefficients_to_cubemap(cubemap, coefficients)
        logger.info(f"Reconstruction complete in {time.time() - start_time:.2f} seconds.")

        write_cubemap(image, diffuse_path, fs)
        logger.info(f"Wrote reconstructed cubemap to {diffuse_path}")

    return coefficients


def main(argv: Optional[List[str]] = None, fs: Optional[FileSystem] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Output to console
        ]
    )

    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)
    for argument in unknown:
        logger.warning(f"Ignoring unknown argument: {argument}")

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    fs = fs or LocalFileSystem()
    sources = resolve_sources(args.input, fs)
    if not sources:
        logger.error(f"No cubemap found for {args.input}")
        return 1

    output_path = Path(args.output)
    diffuse_path = Path(args.diffuse)

    if len(sources) == 1:
        try:
            process_cubemap(sources[0], output_path, diffuse_path, args.verbose, fs)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to process {sources[0]}: {e}")
            return 1
        return 0

    logger.info(f"Processing {len(sources)} cubemaps")
    root = search_root(args.input)
    prefixes = {}
    failures = 0
    for source in tqdm(sources, total=len(sources), desc="Projecting cubemaps"):
        prefix = output_prefix(source, root)
        if prefix in prefixes:
            logger.warning(f"Skipping {source}: its outputs would overwrite those of {prefixes[prefix]}")
            failures += 1
            continue
        prefixes[prefix] = source

        try:
            process_cubemap(source,
                            prefixed_path(output_path, prefix),
                            prefixed_path(diffuse_path, prefix),
                            args.verbose, fs)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping {source.name}: {e}")
            failures += 1

    logger.info(f"Processing complete: {len(sources) - failures}/{len(sources)} cubemaps processed successfully")
    return 0 if failures < len(sources) else 1


if __name__ == "__main__":
    sys.exit(main())
