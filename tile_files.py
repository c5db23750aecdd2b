"""
Naming scheme for rendered tiles and region composites

    <output_root>/<save>/<region>/chunk<x>.<z>.<last_update>.png
    <output_root>/<save>/<region>/<region>.png

Every place that builds or reads a tile path goes through these helpers.
"""
import os
import re
import threading
from pathlib import Path

OUTPUT_ROOT = "saves"
TILE_SIZE = 256
REGION_PIXELS = 32 * TILE_SIZE  # 8192

_TILE_NAME = re.compile(r"^chunk(-?\d+)\.(-?\d+)\.(-?\d+)\.png$")


def region_base_name(region_file_name):
    """r.0.-1.mca -> r.0.-1"""
    return Path(region_file_name).stem


def tile_directory(save_name, region_file_name, output_root=OUTPUT_ROOT):
    return Path(output_root) / save_name / region_base_name(region_file_name)


def tile_file_name(chunk_x, chunk_z, last_update):
    return f"chunk{chunk_x}.{chunk_z}.{last_update}.png"


def parse_tile_file_name(name):
    """
    Parse a tile file name

    Returns: (chunk_x, chunk_z, last_update), or None if the name is not a tile
    """
    match = _TILE_NAME.match(Path(name).name)
    if match is None:
        return None
    return tuple(int(group) for group in match.groups())


def composite_path(region_tile_dir):
    region_tile_dir = Path(region_tile_dir)
    return region_tile_dir / f"{region_tile_dir.name}.png"


def save_png_atomically(image, path):
    """
    Write a PNG under a temporary name in the same directory, then move it
    into place

    Readers never see a partial file under the final name.
    """
    path = Path(path)
    temp_path = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    try:
        image.save(temp_path, format="PNG")
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    return path
