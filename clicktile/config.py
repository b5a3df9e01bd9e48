"""
Format constants and tunables for Clickteam TileMap files.

Everything that a caller might reasonably want to inspect or tweak lives
here as a plain module constant. There are no config files and no
environment variables: the codec is a library, and per-call options are
passed as keyword arguments (see TileMap.write / TileMap.save).
"""

# =============================================================================
# FILE HEADER
# =============================================================================

# Every file starts with this 8-byte tag
MAGIC = b"ACHTUNG!"

# Every file ever written has bit 8 of the version word set.
# On disk: actual_version | VERSION_FLAG
VERSION_FLAG = 0x100

MAX_VERSION = 5      # Newest version we understand
WRITE_VERSION = 5    # Version we always write

# =============================================================================
# BLOCK AND SECTION TAGS
# =============================================================================

BLOCK_PROPERTIES = b"MAP "
BLOCK_TILESETS = b"TILE"
BLOCK_LAYERS = b"LAYR"

SECTION_MAIN = b"MAIN"   # Tile grid of a layer
SECTION_DATA = b"DATA"   # One sublayer

# =============================================================================
# COUNT CAPS (WRITE SIDE)
# =============================================================================
# Anything beyond these is dropped on write, with a logged warning.

MAX_PROPERTIES = 0xFFFF
MAX_TILESETS = 0xFF
MAX_LAYERS = 0xFFFF
# The data-section count is a u8 that also counts the MAIN section
MAX_SUBLAYERS = 0xFF - 1

# =============================================================================
# CELL LAYOUT
# =============================================================================

MAX_CELL_SIZE = 4
TILE_SIZE = 2
DEFAULT_TILE = b"\xff\xff"
DEFAULT_TILE_DIMENSIONS = (16, 16)
UNLINKED = 0xFF

# =============================================================================
# ALLOCATION GUARDS
# =============================================================================
# Length fields come from untrusted input. Refuse anything past these
# before allocating.

MAX_COMPRESSED_SIZE = 256 * 1024 * 1024
MAX_INFLATED_SIZE = 256 * 1024 * 1024
MAX_SHORT_STRING = 256
MAX_LONG_STRING = 0xFFFFFFFF

# zlib level used when none is given to write()
COMPRESSION_LEVEL = 6
