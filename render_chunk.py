#!/usr/bin/env python3
"""
Chunk renderer - generates a top-down textured tile of a single chunk
"""
import logging
import sys
from pathlib import Path

from PIL import Image

from biome_tint import tint
from block_textures import ASSET_DIR, TEXTURE_SIZE, TextureCache, resolve_texture
from region_io import CHUNK_WIDTH, NON_SOLID, open_region
from tile_files import OUTPUT_ROOT, TILE_SIZE, save_png_atomically, tile_directory, tile_file_name

logger = logging.getLogger(__name__)


def block_texture(block, biome_id, region_file_name, region_path, cache, asset_dir):
    """Resolve and biome-tint the texture of one block"""
    texture = resolve_texture(block, cache, region_file_name, region_path, asset_dir)
    return tint(block.id, biome_id, texture)


def find_background(chunk, x, y, z):
    """
    Walk down from below y until a solid block (or the bottom of the world)

    Returns: BlockRef of the first solid block under the column's top block
    """
    y -= 1
    below = chunk.block(x, y, z)
    while below.id in NON_SOLID and y > chunk.min_y:
        y -= 1
        below = chunk.block(x, y, z)
    return below


def render_column(chunk, x, z, surface, ocean_floor, region_file_name, region_path, cache, asset_dir):
    """
    Render the 16x16 pixel block of one column

    The top block is drawn over the first solid block beneath it so water,
    grass and other see-through blocks show what they stand on.
    """
    index = CHUNK_WIDTH * z + x
    y = surface[index]
    block = chunk.block(x, y, z)
    if block.id == "cave_air":
        logger.debug("Cave air at (%d, %d) could be: %s",
                     x, z, chunk.block(x, ocean_floor[index], z).id)

    biome_id = chunk.biome(index)
    foreground = block_texture(block, biome_id, region_file_name, region_path, cache, asset_dir)

    below = find_background(chunk, x, y, z)
    background = block_texture(below, biome_id, region_file_name, region_path, cache, asset_dir)
    if background.size != foreground.size:
        background = background.resize(foreground.size)

    background.alpha_composite(foreground)
    return background


def render_chunk(chunk, region_file_name, region_path, save_name, cache,
                 output_root=OUTPUT_ROOT, asset_dir=ASSET_DIR):
    """
    Render a chunk to a 256x256 PNG tile

    Args:
        chunk: decoded chunk (see region_io.AnvilChunk)
        region_file_name: name of the region file, e.g. r.0.-1.mca
        region_path: path of the region file
        save_name: name of the world save, used as output sub directory
        cache: TextureCache shared by the current render batch
        output_root: directory all saves are rendered into
        asset_dir: block texture directory

    Returns:
        absolute path of the written tile
    """
    logger.info("Rendering chunk (%d, %d) of %s", chunk.x, chunk.z, region_file_name)
    surface = chunk.heightmap(False)
    ocean_floor = chunk.heightmap(True)

    chunk_image = Image.new("RGBA", (TILE_SIZE, TILE_SIZE))
    for x in range(CHUNK_WIDTH):
        for z in range(CHUNK_WIDTH):
            column = render_column(chunk, x, z, surface, ocean_floor,
                                   region_file_name, region_path, cache, asset_dir)
            chunk_image.alpha_composite(column, (x * TEXTURE_SIZE, z * TEXTURE_SIZE))

    directory = tile_directory(save_name, region_file_name, output_root)
    directory.mkdir(parents=True, exist_ok=True)
    output_path = directory / tile_file_name(chunk.x, chunk.z, chunk.last_update())
    save_png_atomically(chunk_image, output_path)
    logger.debug("Saved to %s", output_path)
    return str(output_path.resolve())


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print("Usage: python render_chunk.py <region_file> <chunk_x> <chunk_z> [save_name]")
        print()
        print("Example: python render_chunk.py world/region/r.0.0.mca 3 7")
        print("  Renders region-local chunk (3, 7) to saves/world/r.0.0/")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO)
    region_path = Path(sys.argv[1])
    chunk_x = int(sys.argv[2])
    chunk_z = int(sys.argv[3])
    save_name = sys.argv[4] if len(sys.argv) > 4 else region_path.parent.parent.name

    region = open_region(region_path)
    chunk = region.get_chunk(chunk_x, chunk_z)
    if chunk is None:
        print(f"Chunk ({chunk_x}, {chunk_z}) not present")
        sys.exit(1)

    print(f"Saved to {render_chunk(chunk, region.filename, region_path, save_name, TextureCache())}")
