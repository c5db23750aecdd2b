import pytest
from anvil.errors import OutOfBoundsCoordinates

from region_io import (
    AnvilChunk,
    AnvilRegion,
    MissingRegionError,
    UnsupportedChunkError,
    open_region,
    parse_region_file_name,
    region_file_name,
    unpack_longs,
)


class Tag:
    def __init__(self, value):
        self.value = value


class FakeBlock:
    def __init__(self, block_id):
        self.id = block_id


def pack_longs(values, bits):
    """Pack values the way 1.16+ chunks do: no entry spans two longs"""
    per_long = 64 // bits
    longs = []
    for start in range(0, len(values), per_long):
        word = 0
        for i, value in enumerate(values[start:start + per_long]):
            word |= value << (i * bits)
        # NBT stores signed longs
        if word >= 1 << 63:
            word -= 1 << 64
        longs.append(word)
    return longs


class FakeAnvilChunk:
    def __init__(self, x, z, data, blocks=None):
        self.x = x
        self.z = z
        self.data = data
        self.blocks = blocks or {}

    def get_block(self, x, y, z):
        if y < -64 or y >= 320:
            raise OutOfBoundsCoordinates(f"y={y}")
        return FakeBlock(self.blocks.get((x, y, z), "air"))


def make_chunk(x=0, z=0, surface=None, biomes=None, status="minecraft:full", blocks=None):
    surface = surface or [64 + 64 + 1] * 256  # stored relative to y=-64, one above the top block
    sections = [{"Y": Tag(4), "biomes": biomes or {"palette": [Tag("minecraft:plains")]}}]
    data = {
        "yPos": Tag(-4),
        "Status": Tag(status),
        "LastUpdate": Tag(4242),
        "Heightmaps": {
            "WORLD_SURFACE": Tag(pack_longs(surface, 9)),
            "OCEAN_FLOOR": Tag(pack_longs([60 + 64 + 1] * 256, 9)),
        },
        "sections": sections,
    }
    return AnvilChunk(FakeAnvilChunk(x, z, data, blocks))


def test_unpack_longs_handles_signed_words():
    values = [511, 0, 1, 256, 300, 7, 511] * 3

    assert unpack_longs(pack_longs(values, 9), 9, len(values)) == values


def test_heightmap_is_absolute_top_block():
    surface = [64 + 64 + 1] * 256
    surface[16 * 2 + 5] = 0 + 64 + 1

    chunk = make_chunk(surface=surface)

    assert chunk.min_y == -64
    assert chunk.heightmap(False)[0] == 64
    assert chunk.heightmap(False)[16 * 2 + 5] == 0
    assert chunk.heightmap(True)[0] == 60


def test_chunk_coordinates_are_region_local():
    chunk = make_chunk(x=-1, z=33, blocks={(3, 64, 4): "stone"})

    assert (chunk.x, chunk.z) == (31, 1)
    block = chunk.block(3, 64, 4)
    assert block.id == "stone"
    assert block.coords == (31 * 16 + 3, 64, 16 + 4)


def test_out_of_world_block_is_air():
    assert make_chunk().block(0, -100, 0).id == "air"


def test_status_and_last_update():
    chunk = make_chunk(status="minecraft:full")

    assert chunk.status() == "full"
    assert make_chunk(status="features").status() == "features"
    assert chunk.last_update() == 4242


def test_single_entry_biome_palette():
    assert make_chunk().biome(0) == "minecraft:plains"


def test_packed_biome_palette():
    palette = [Tag("minecraft:plains"), Tag("minecraft:swamp")]
    cells = [0] * 64
    # cell_y 0 (y 64..67), cell_z 1, cell_x 2 -> columns x 8..11, z 4..7
    cells[0 * 16 + 1 * 4 + 2] = 1
    biomes = {"palette": palette, "data": Tag(pack_longs(cells, 1))}

    chunk = make_chunk(biomes=biomes)

    assert chunk.biome(16 * 5 + 9) == "minecraft:swamp"
    assert chunk.biome(16 * 5 + 1) == "minecraft:plains"


def test_column_without_section_uses_default_biome():
    surface = [200 + 64 + 1] * 256

    assert make_chunk(surface=surface).biome(0) == "minecraft:plains"


def test_region_file_names():
    assert region_file_name(-1, 2) == "r.-1.2.mca"
    assert parse_region_file_name("r.-1.2.mca") == (-1, 2)
    assert parse_region_file_name("saves/world/r.3.-4") == (3, -4)


def test_open_missing_region(tmp_path):
    with pytest.raises(MissingRegionError):
        open_region(tmp_path / "r.0.0.mca")


def test_region_block_lookup(tmp_path):
    class FakeRawRegion:
        def chunk_data(self, x, z):
            return None

    region = AnvilRegion(FakeRawRegion(), tmp_path / "r.2.-3.mca")

    assert (region.x, region.z) == (2, -3)
    assert region.filename == "r.2.-3.mca"
    assert region.get_chunk(0, 0) is None
    assert region.get_block(100, 64, 100) is None


def test_region_header_scan(tmp_path):
    class FakeRawRegion:
        def chunk_location(self, x, z):
            return (2, 1) if (x, z) == (3, 4) else (0, 0)

        def chunk_data(self, x, z):
            return None

    region = AnvilRegion(FakeRawRegion(), tmp_path / "r.0.0.mca")

    assert region.has_chunk(3, 4)
    assert not region.has_chunk(4, 3)
    assert region.read_chunk(4, 3) is None


def test_pre_1_18_chunk_layout_is_rejected():
    data = {"Level": {"Sections": []}, "Status": Tag("full")}

    with pytest.raises(UnsupportedChunkError, match="pre-1.18"):
        AnvilChunk(FakeAnvilChunk(1, 2, data))
