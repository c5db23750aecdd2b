"""
Fence textures built from the wood's plank texture and the four neighbours
of the fence block
"""
import logging
from pathlib import Path

from PIL import Image

import block_textures
import region_io
from region_io import NON_SOLID, REGION_BLOCKS, open_region, parse_region_file_name

logger = logging.getLogger(__name__)

# (dx, dz, plank pixel box to copy as (left, upper, right, lower))
RAILS = [
    (-1, 0, (0, 7, 7, 9)),
    (1, 0, (9, 7, 16, 9)),
    (0, -1, (7, 0, 9, 7)),
    (0, 1, (7, 9, 9, 16)),
]
POST = (6, 6, 10, 10)


def load_planks(wood_type, asset_dir):
    path = Path(asset_dir) / f"{wood_type}_planks.png"
    logger.debug("Loading fence base texture %s", path)
    if not path.is_file():
        raise block_textures.MissingAssetError(f"Plank texture not found: {path}")
    return block_textures.load_image(path)


def neighbour_block(x, y, z, region_file_name, region_path):
    """
    Look up a block by region-local coordinates that may fall just outside the
    current region, in which case the adjacent region file is opened

    Raises:
        MissingRegionError: if the region holding the neighbour is not on disk
    """
    region_dir = Path(region_path).parent
    region_x, region_z = parse_region_file_name(region_file_name)

    if x < 0:
        region_x, x = region_x - 1, x + REGION_BLOCKS
    elif x >= REGION_BLOCKS:
        region_x, x = region_x + 1, x - REGION_BLOCKS
    elif z < 0:
        region_z, z = region_z - 1, z + REGION_BLOCKS
    elif z >= REGION_BLOCKS:
        region_z, z = region_z + 1, z - REGION_BLOCKS

    region = open_region(region_dir / region_io.region_file_name(region_x, region_z))
    return region.get_block(x, y, z)


def synthesize_fence(block, region_file_name, region_path, asset_dir=None):
    """
    Draw a top-down fence texture: the 4x4 post plus one rail towards every
    solid neighbour

    Args:
        block: fence BlockRef, with region-local coords
        region_file_name: name of the region file the fence is in
        region_path: path of that region file
        asset_dir: block texture directory

    Returns:
        16x16 RGBA image
    """
    if asset_dir is None:
        asset_dir = block_textures.ASSET_DIR
    wood_type = block.id.split("_fence")[0]
    planks = load_planks(wood_type, asset_dir)

    fence = Image.new("RGBA", (16, 16), (0, 0, 0, 0))
    fence.paste(planks.crop(POST), POST[:2])

    x, y, z = block.coords
    for dx, dz, box in RAILS:
        adjacent = neighbour_block(x + dx, y, z + dz, region_file_name, region_path)
        # Missing chunks count as open space
        if adjacent is not None and adjacent.id not in NON_SOLID:
            fence.paste(planks.crop(box), box[:2])

    return fence
