"""
Thin adapter over anvil-parser2 exposing the chunk/region contract used by the
renderer: surface heightmaps, block lookup, per-column biomes, status and
last-update timestamp.
"""
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import anvil
from anvil.errors import OutOfBoundsCoordinates

logger = logging.getLogger(__name__)

REGION_CHUNKS = 32
CHUNK_WIDTH = 16
REGION_BLOCKS = REGION_CHUNKS * CHUNK_WIDTH  # 512
HEIGHTMAP_BITS = 9
NAMESPACE = "minecraft:"
DEFAULT_BIOME = "minecraft:plains"

# Blocks treated as see-through by the background walk and fence rails
NON_SOLID = frozenset([
    "grass",
    "tall_grass",
    "fern",
    "large_fern",
    "potted_fern",
    "sugar_cane",
    "water",
    "air",
    "pointed_dripstone",
    "bubble_column",
    "cave_air",
])


class MissingRegionError(FileNotFoundError):
    """A region file needed for rendering does not exist on disk"""


class UnsupportedChunkError(ValueError):
    """Chunk data predates the 1.18 layout (no root-level sections)"""


@dataclass(frozen=True)
class BlockRef:
    id: str
    coords: Optional[Tuple[int, int, int]] = None


def region_file_name(region_x, region_z):
    return f"r.{region_x}.{region_z}.mca"


def parse_region_file_name(name):
    """
    Parse region coordinates from a file or directory name

    Accepts both "r.1.-2.mca" and the extension-less "r.1.-2".
    Returns: (region_x, region_z)
    """
    parts = Path(name).name.split(".")
    return int(parts[1]), int(parts[2])


def unpack_longs(longs, bits, count):
    """
    Unpack `count` fixed-width values from a packed long array

    Entries never straddle two longs (1.16+ layout), so each long holds
    64 // bits values and the high bits are padding.
    """
    per_long = 64 // bits
    mask = (1 << bits) - 1
    values = []
    for i in range(count):
        word = longs[i // per_long] & 0xFFFFFFFFFFFFFFFF  # NBT longs are signed
        shift = (i % per_long) * bits
        values.append((word >> shift) & mask)
    return values


class AnvilChunk:
    """
    A single generated chunk, addressed by its region-local coordinates
    """

    def __init__(self, chunk):
        self._chunk = chunk
        self.data = chunk.data
        self.x = chunk.x % REGION_CHUNKS
        self.z = chunk.z % REGION_CHUNKS
        if "sections" not in self.data:
            raise UnsupportedChunkError(
                f"Chunk ({chunk.x}, {chunk.z}) uses the pre-1.18 layout, upgrade the world first"
            )
        if "yPos" in self.data:
            self.min_y = self.data["yPos"].value * CHUNK_WIDTH
        else:
            self.min_y = 0
        self._heightmaps = {}

    def heightmap(self, ocean_floor=False):
        """
        Get the 256 surface heights of this chunk (index = 16 * z + x)

        Stored values are one above the topmost block and relative to the
        bottom of the world; they are returned as absolute block y.
        """
        key = "OCEAN_FLOOR" if ocean_floor else "WORLD_SURFACE"
        if key not in self._heightmaps:
            packed = self.data["Heightmaps"][key].value
            raw = unpack_longs(packed, HEIGHTMAP_BITS, CHUNK_WIDTH * CHUNK_WIDTH)
            self._heightmaps[key] = [h - 1 + self.min_y for h in raw]
        return self._heightmaps[key]

    def block(self, x, y, z):
        """Get the block at chunk-local x/z and absolute y"""
        coords = (self.x * CHUNK_WIDTH + x, y, self.z * CHUNK_WIDTH + z)
        try:
            block = self._chunk.get_block(x, y, z)
        except OutOfBoundsCoordinates:
            return BlockRef("air", coords)
        if block is None:
            return BlockRef("air", coords)
        return BlockRef(block.id, coords)

    def _section(self, section_y):
        for section in self.data["sections"]:
            if section["Y"].value == section_y:
                return section
        return None

    def biome(self, layout_index):
        """
        Get the biome of a column at its surface height

        Args:
            layout_index: 16 * z + x, the same layout as the heightmap

        Returns:
            namespaced biome id, e.g. "minecraft:plains"
        """
        x = layout_index % CHUNK_WIDTH
        z = layout_index // CHUNK_WIDTH
        y = self.heightmap(False)[layout_index]
        section = self._section(y // CHUNK_WIDTH)
        if section is None or "biomes" not in section:
            return DEFAULT_BIOME

        biomes = section["biomes"]
        palette = [entry.value for entry in biomes["palette"]]
        if len(palette) == 1 or "data" not in biomes:
            return palette[0]

        # 4x4x4 cells, index = cell_y * 16 + cell_z * 4 + cell_x
        bits = max(1, math.ceil(math.log2(len(palette))))
        cells = unpack_longs(biomes["data"].value, bits, 64)
        cell = ((y % CHUNK_WIDTH) // 4) * 16 + (z // 4) * 4 + (x // 4)
        index = cells[cell]
        if index >= len(palette):
            return DEFAULT_BIOME
        return palette[index]

    def status(self):
        status = self.data["Status"].value
        if status.startswith(NAMESPACE):
            status = status[len(NAMESPACE):]
        return status

    def last_update(self):
        return self.data["LastUpdate"].value


class AnvilRegion:
    """
    One region file. get_chunk decodes lazily and keeps the chunk for the
    lifetime of the object; read_chunk decodes a fresh copy every call.
    """

    def __init__(self, region, path):
        self._region = region
        self.path = Path(path)
        self.filename = self.path.name
        self.x, self.z = parse_region_file_name(self.filename)
        self._chunks = {}

    def has_chunk(self, local_x, local_z):
        """True if the header lists the chunk, without decoding it"""
        return self._region.chunk_location(local_x, local_z) != (0, 0)

    def read_chunk(self, local_x, local_z):
        """Decode a chunk without keeping it, None if never generated"""
        nbt_data = self._region.chunk_data(local_x, local_z)
        if nbt_data is None:
            return None
        return AnvilChunk(anvil.Chunk(nbt_data))

    def get_chunk(self, local_x, local_z):
        """Get a chunk by region-local coordinates, None if never generated"""
        key = (local_x, local_z)
        if key not in self._chunks:
            self._chunks[key] = self.read_chunk(local_x, local_z)
        return self._chunks[key]

    def get_block(self, x, y, z):
        """Get a block by region-local voxel coordinates (x, z in 0..512)"""
        chunk = self.get_chunk(x // CHUNK_WIDTH, z // CHUNK_WIDTH)
        if chunk is None:
            return None
        return chunk.block(x % CHUNK_WIDTH, y, z % CHUNK_WIDTH)


def open_region(path):
    """
    Load a region file

    Raises:
        MissingRegionError: if the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise MissingRegionError(f"Region file not found: {path}")
    logger.debug("Loading region %s", path)
    return AnvilRegion(anvil.Region.from_file(str(path)), path)
