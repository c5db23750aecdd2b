"""
Block texture lookup

Textures are found by trying a list of file naming conventions in order,
decoded once per render batch and shared between worker threads through a
TextureCache.
"""
import logging
import re
import threading
from pathlib import Path

from PIL import Image

import fence_texture
from region_io import BlockRef

logger = logging.getLogger(__name__)

ASSET_DIR = "assets/minecraft/textures/block"
TEXTURE_SIZE = 16
PLACEHOLDER_COLOR = (0, 0, 0, 1)


class MissingAssetError(FileNotFoundError):
    """A texture file (or the texture directory) required for rendering is missing"""


class TextureCache:
    """
    Block id -> decoded texture, shared by every task of one render batch

    get_or_create runs the factory at most once per key, even when several
    threads ask for the same missing key at the same time. Different keys
    load in parallel. `key in cache` and `len(cache)` report what has been
    decoded so far.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._key_locks = {}
        self._images = {}

    def __contains__(self, key):
        with self._lock:
            return key in self._images

    def __len__(self):
        with self._lock:
            return len(self._images)

    def get_or_create(self, key, factory):
        with self._lock:
            if key in self._images:
                return self._images[key]
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            # Another thread may have finished the load while we waited
            with self._lock:
                if key in self._images:
                    return self._images[key]
            image = factory()
            with self._lock:
                self._images[key] = image
        return image


def load_image(path):
    """Decode a texture file as RGBA"""
    with Image.open(path) as img:
        return img.convert("RGBA")


def crop_texture(texture):
    """Keep only the top-left 16x16 of oversized (animated) textures"""
    if texture.width > TEXTURE_SIZE or texture.height > TEXTURE_SIZE:
        return texture.crop((0, 0, TEXTURE_SIZE, TEXTURE_SIZE))
    return texture


def placeholder_texture():
    return Image.new("RGBA", (TEXTURE_SIZE, TEXTURE_SIZE), PLACEHOLDER_COLOR)


def _existing(path):
    return path if path.is_file() else None


def exact_file(block_id, asset_dir):
    return _existing(asset_dir / f"{block_id}.png")


def top_file(block_id, asset_dir):
    return _existing(asset_dir / f"{block_id}_top.png")


def still_file(block_id, asset_dir):
    # flowing fluids
    return _existing(asset_dir / f"{block_id}_still.png")


def base_name_file(block_id, asset_dir):
    # stateful variants sharing one texture, e.g. stripped/directional blocks
    return _existing(asset_dir / f"{block_id.split('_')[0]}.png")


def down_tip_file(block_id, asset_dir):
    return _existing(asset_dir / f"{block_id}_down_tip.png")


_VARIANT_SUFFIX = re.compile(r"^_?(\d)\.png$")


def variant_file(block_id, asset_dir):
    """
    Pick the highest numbered variant texture, e.g. frosted_ice_3.png for
    frosted_ice or grass9.png for grass
    """
    variants = []
    for path in asset_dir.iterdir():
        if not path.name.startswith(block_id):
            continue
        match = _VARIANT_SUFFIX.match(path.name[len(block_id):])
        if match is not None:
            variants.append((int(match.group(1)), path.name, path))

    if not variants:
        return None
    logger.debug("Found variant block %s: %s", block_id, [name for _, name, _ in sorted(variants)])
    return max(variants)[2]


# Tried in order, first hit wins
FILE_STRATEGIES = [
    exact_file,
    top_file,
    still_file,
    base_name_file,
    down_tip_file,
    variant_file,
]


def find_texture_file(block_id, asset_dir=ASSET_DIR):
    """
    Find the texture file for a block id

    Returns: Path of the first matching file, or None
    """
    asset_dir = Path(asset_dir)
    for strategy in FILE_STRATEGIES:
        path = strategy(block_id, asset_dir)
        if path is not None:
            return path
    return None


def resolve_texture(block, cache, region_file_name=None, region_path=None, asset_dir=ASSET_DIR):
    """
    Get the texture of a block

    Args:
        block: BlockRef to texture
        cache: TextureCache of the current render batch
        region_file_name: region the block lives in (needed for fences)
        region_path: path of that region file (needed for fences)
        asset_dir: directory holding the block textures

    Returns:
        a private RGBA copy, at most 16x16, that callers may modify

    Raises:
        MissingAssetError: if the texture directory does not exist
    """
    if block.id == "bubble_column":
        block = BlockRef("water", block.coords)
    asset_dir = Path(asset_dir)

    def load():
        if not asset_dir.is_dir():
            raise MissingAssetError(f"Texture directory not found: {asset_dir}")

        path = find_texture_file(block.id, asset_dir)
        if path is not None:
            return load_image(path)

        if "fence" in block.id:
            # Cached under the plain id: every fence of this type reuses the
            # first synthesized connection pattern in this batch
            return fence_texture.synthesize_fence(block, region_file_name, region_path, asset_dir)

        logger.debug("No texture found for block %s", block.id)
        return placeholder_texture()

    texture = cache.get_or_create(block.id, load)
    return crop_texture(texture.copy())
