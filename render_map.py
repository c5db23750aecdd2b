#!/usr/bin/env python3
"""
Stitches a region's rendered chunk tiles into a single map image
"""
import logging
import sys

from PIL import Image

from region_io import REGION_CHUNKS
from tile_cache import rendered_tiles
from tile_files import REGION_PIXELS, TILE_SIZE, composite_path, save_png_atomically

logger = logging.getLogger(__name__)

CHECKER_CELL = 16
CHECKER_LIGHT = (204, 204, 204, 255)
CHECKER_DARK = (153, 153, 153, 255)


def checkerboard_tile():
    """256x256 placeholder for chunks that have no tile"""
    tile = Image.new("RGBA", (TILE_SIZE, TILE_SIZE))
    pixels = tile.load()
    for pz in range(TILE_SIZE):
        for px in range(TILE_SIZE):
            dark = (px // CHECKER_CELL + pz // CHECKER_CELL) % 2
            pixels[px, pz] = CHECKER_DARK if dark else CHECKER_LIGHT
    return tile


def stitch_region(region_tile_dir):
    """
    Combine the tiles of one region into an 8192x8192 image

    Args:
        region_tile_dir: directory holding the region's chunk tiles

    Returns:
        path of the composite, written next to the tiles as <region>.png
    """
    logger.info("Stitching %s", region_tile_dir)
    composite = Image.new("RGBA", (REGION_PIXELS, REGION_PIXELS))
    placeholder = checkerboard_tile()

    tiles = rendered_tiles(region_tile_dir)
    found = 0
    for chunk_x in range(REGION_CHUNKS):
        for chunk_z in range(REGION_CHUNKS):
            offset = (chunk_x * TILE_SIZE, chunk_z * TILE_SIZE)
            rendered = tiles.get((chunk_x, chunk_z))
            if rendered is None:
                composite.paste(placeholder, offset)
                continue
            with Image.open(rendered[0]) as tile:
                composite.paste(tile.convert("RGBA"), offset)
            found += 1

    output_path = composite_path(region_tile_dir)
    save_png_atomically(composite, output_path)
    logger.info("Saved %s (%d of %d chunks rendered)", output_path, found, REGION_CHUNKS * REGION_CHUNKS)
    return str(output_path.resolve())


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python render_map.py <region_tile_dir> [<region_tile_dir> ...]")
        print()
        print("Example: python render_map.py saves/world/r.0.0")
        print("  Writes saves/world/r.0.0/r.0.0.png from the chunk tiles in that directory")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO)
    for directory in sys.argv[1:]:
        print(f"Saved to {stitch_region(directory)}")
