"""
Biome colouring of grass, foliage and water textures

The base textures are greyscale; their red channel is used as a luminance
mask and multiplied by the biome's colour.
"""
import logging

logger = logging.getLogger(__name__)

# len("minecraft:")
BIOME_PREFIX_LENGTH = 10


def _table(groups):
    table = {}
    for biomes, color in groups:
        for biome in biomes:
            table[biome] = color
    return table


GRASS_BLOCKS = frozenset([
    "grass_block", "grass", "tall_grass", "fern", "large_fern", "potted_fern", "sugar_cane",
])
LEAF_BLOCKS = frozenset([
    "oak_leaves", "jungle_leaves", "acacia_leaves", "dark_oak_leaves", "vines",
])
WATER_BLOCKS = frozenset(["water"])

GRASS_TINTS = _table([
    (("badlands", "wooded_badlands", "eroded_badlands"), (144, 129, 77)),
    (("desert", "savanna", "savanna_plateau", "windswept_savanna", "nether_wastes",
      "soul_sand_valley", "crimson_forest", "warped_forest", "basalt_deltas"), (191, 183, 85)),
    (("stony_peaks",), (154, 190, 75)),
    (("jungle", "bamboo_jungle"), (89, 201, 60)),
    (("sparse_jungle",), (100, 199, 63)),
    (("mushroom_fields",), (85, 201, 63)),
    (("swamp",), (106, 112, 57)),
    (("plains", "sunflower_plains", "beach", "dripstone_caves"), (145, 189, 89)),
    (("forest", "flower_forest"), (121, 192, 90)),
    (("dark_forest",), (80, 122, 50)),
    (("birch_forest", "old_growth_birch_forest"), (136, 187, 103)),
    (("ocean", "deep_ocean", "warm_ocean", "lukewarm_ocean", "deep_lukewarm_ocean",
      "cold_ocean", "deep_cold_ocean", "deep_frozen_ocean", "river", "lush_caves",
      "the_end", "small_end_islands", "end_barrens", "end_midlands", "end_highlands",
      "the_void"), (142, 185, 113)),
    (("meadow",), (131, 187, 109)),
    (("old_growth_pine_taiga",), (134, 184, 127)),
    (("taiga", "old_growth_spruce_taiga"), (134, 183, 131)),
    (("windswept_hills", "windswept_gravelly_hills", "windswept_forest", "stony_shore"),
     (138, 182, 137)),
    (("snowy_beach",), (131, 181, 147)),
    (("snowy__plains", "ice_spikes", "snowy_taiga", "frozen_ocean", "frozen_river",
      "grove", "snowy_slopes", "frozen_peaks", "jagged_peaks"), (128, 180, 151)),
])

LEAF_TINTS = _table([
    (("badlands", "wooded_badlands", "eroded_badlands"), (252, 186, 3)),
])

WATER_TINTS = _table([
    (("badlands", "bamboo_jungle", "basalt_deltas", "beach", "birch_forest",
      "crimson_forest", "dark_forest", "deep_dark", "deep_ocean", "desert",
      "dripstone_caves", "end_barrens", "end_midlands", "eroded_badlands",
      "flower_forest", "forest", "frozen_peaks", "grove", "ice_spikes",
      "jagged_peaks", "jungle", "lush_caves", "mushroom_fields", "nether_wastes",
      "ocean", "old_growth_birch_forest", "old_growth_pine_taiga",
      "old_growth_spruce_taiga", "plains", "river", "savanna_plateau", "savanna",
      "small_end_islands", "snowy_plains", "snowy Slopes", "soul_sand_valley",
      "sparse_jungle", "stony_peaks", "stony Shore", "sunflower_plains", "taiga",
      "the_end", "the_void", "warped_forest", "windswept_forest",
      "windswept_gravelly_hills", "windswept_hills", "windswept_savanna",
      "wooded_badlands"), (63, 118, 228)),
    (("cold_ocean", "deep_cold_ocean", "snowy_taiga", "snowy_beach"), (61, 87, 214)),
    (("frozen_ocean", "deep_frozen_ocean", "frozen_river"), (57, 56, 201)),
    (("lukewarm_ocean", "deep_lukewarm_ocean"), (69, 173, 242)),
    (("swamp",), (97, 123, 100)),
    (("warm_ocean",), (67, 213, 238)),
    (("meadow",), (14, 78, 207)),
])

TINT_TABLES = [
    (GRASS_BLOCKS, GRASS_TINTS),
    (LEAF_BLOCKS, LEAF_TINTS),
    (WATER_BLOCKS, WATER_TINTS),
]


def biome_name(biome_id):
    """minecraft:plains -> plains"""
    return biome_id[BIOME_PREFIX_LENGTH:]


def tint_color(block_id, biome_id):
    """
    Get the tint for a block in a biome

    Returns: (r, g, b) or None if the block is not tinted there
    """
    for blocks, table in TINT_TABLES:
        if block_id not in blocks:
            continue
        color = table.get(biome_name(biome_id))
        if color is None:
            logger.debug("No tint for %s in biome %s", block_id, biome_id)
        return color
    return None


def tint(block_id, biome_id, image):
    """
    Recolour a texture in place for its biome

    Args:
        block_id: id of the block the texture belongs to
        biome_id: namespaced biome of the column
        image: RGBA texture, modified in place

    Returns:
        the same image
    """
    color = tint_color(block_id, biome_id)
    if color is None:
        return image

    pixels = image.load()
    for py in range(image.height):
        for px in range(image.width):
            r, g, b, a = pixels[px, py]
            luminance = r / 255
            pixels[px, py] = (
                int(color[0] * luminance),
                int(color[1] * luminance),
                int(color[2] * luminance),
                a,
            )
    return image
