"""
Reuse of previously rendered chunk tiles

A tile is fresh when the timestamp in its file name is at least the chunk's
last update. Stale tiles are left on disk.
"""
import logging
from pathlib import Path

from block_textures import ASSET_DIR
from region_io import REGION_CHUNKS, MissingRegionError, open_region, region_file_name
from render_chunk import render_chunk
from tile_files import OUTPUT_ROOT, parse_tile_file_name, tile_directory

logger = logging.getLogger(__name__)


def rendered_tiles(tile_dir):
    """
    Index the tiles of a region directory, keeping the newest per chunk

    Returns: {(chunk_x, chunk_z): (path, last_update)}
    """
    tile_dir = Path(tile_dir)
    tiles = {}
    if not tile_dir.is_dir():
        return tiles

    for path in tile_dir.iterdir():
        parsed = parse_tile_file_name(path.name)
        if parsed is None:
            continue
        chunk_x, chunk_z, last_update = parsed
        current = tiles.get((chunk_x, chunk_z))
        if current is None or last_update > current[1]:
            tiles[(chunk_x, chunk_z)] = (path, last_update)
    return tiles


def find_rendered_tile(tile_dir, local_x, local_z):
    """
    Find the newest tile rendered for a chunk

    Returns: (path, last_update) or None
    """
    return rendered_tiles(tile_dir).get((local_x, local_z))


def fresh_tile(tile_dir, chunk):
    """Path of an up-to-date tile for the chunk, or None if it needs rendering"""
    found = find_rendered_tile(tile_dir, chunk.x, chunk.z)
    if found is None:
        return None
    path, last_update = found
    if last_update >= chunk.last_update():
        return str(path.resolve())
    logger.debug("Tile %s is stale (chunk updated at %d)", path.name, chunk.last_update())
    return None


def render_if_stale(chunk, region, save_name, cache, output_root=OUTPUT_ROOT, asset_dir=ASSET_DIR):
    """
    Render a chunk unless an up-to-date tile already exists

    Returns: tile path, or None for chunks that are not fully generated
    """
    if chunk.status() != "full":
        return None
    tile_dir = tile_directory(save_name, region.filename, output_root)
    existing = fresh_tile(tile_dir, chunk)
    if existing is not None:
        return existing
    return render_chunk(chunk, region.filename, region.path, save_name, cache, output_root, asset_dir)


def render_chunk_at(save_path, chunk_x, chunk_z, cache, output_root=OUTPUT_ROOT, asset_dir=ASSET_DIR):
    """
    Render one chunk of a save by absolute chunk coordinates

    Args:
        save_path: world save directory (the one holding region/)
        chunk_x: absolute chunk x
        chunk_z: absolute chunk z
        cache: TextureCache of the current render batch

    Returns:
        tile path, or None if the region or chunk does not exist or the chunk
        is not fully generated
    """
    save_path = Path(save_path)
    region_x, region_z = chunk_x // REGION_CHUNKS, chunk_z // REGION_CHUNKS
    try:
        region = open_region(save_path / "region" / region_file_name(region_x, region_z))
    except MissingRegionError:
        return None

    chunk = region.get_chunk(chunk_x % REGION_CHUNKS, chunk_z % REGION_CHUNKS)
    if chunk is None:
        return None
    return render_if_stale(chunk, region, save_path.name, cache, output_root, asset_dir)
