"""
In-memory model of a Clickteam TileMap file.

=============================================================================
OWNERSHIP
=============================================================================

    TileMap
    ├── layers: [Layer]          (up to 65535 are saved)
    │   └── sublayers: [SubLayer]  (up to 254 are saved)
    ├── tilesets: [TileSet]      (up to 255 are saved)
    └── properties: {str: Property}  (up to 65535 are saved)

Everything is created empty or filled in wholesale by the decoder.
Grids only change size through Layer.resize / SubLayer.resize and
SubLayer.set_default, which always leave

    len(layer.data)    == width * height
    len(sublayer.data) == width * height * cell_size

=============================================================================
TILES
=============================================================================

A tile is two bytes with two readings of the same bits:

    position : (x, y)  -> the two bytes as they are on disk
    id       : u16     -> the same two bytes read big-endian (x << 8 | y)

Tile(id=0x1234).position == (0x12, 0x34). Building a tile from a
little-endian id swaps X and Y; that is how the format works, not a bug.
Equality and the default value (0xFFFF) are defined on the raw bytes.

=============================================================================
"""

import enum
import struct
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from . import config, grid

# Union of the two tile readings: both fields start at offset 0
TILE_DTYPE = np.dtype({
    'names': ['id', 'position'],
    'formats': ['>u2', ('u1', (2,))],
    'offsets': [0, 0],
    'itemsize': config.TILE_SIZE,
})


def _as_f32(value: float) -> float:
    """Round to the nearest float32. Values outside its range are kept as is and rejected on write."""
    try:
        return struct.unpack('<f', struct.pack('<f', value))[0]
    except OverflowError:
        return value


# =============================================================================
# TILE
# =============================================================================

class Tile:
    """A single tile: two raw bytes readable as an id or an (x, y) position."""

    __slots__ = ('_raw',)

    def __init__(self, id: Optional[int] = None, position: Optional[Tuple[int, int]] = None):
        if id is not None and position is not None:
            raise TypeError("a tile is either an id or a position, not both")
        if position is not None:
            self._raw = bytes(position)
        elif id is not None:
            self._raw = int(id).to_bytes(2, 'big')
        else:
            self._raw = config.DEFAULT_TILE
        if len(self._raw) != config.TILE_SIZE:
            raise ValueError("a tile position has exactly two components")

    @classmethod
    def from_bytes(cls, raw: bytes) -> 'Tile':
        tile = cls()
        tile._raw = bytes(raw)
        if len(tile._raw) != config.TILE_SIZE:
            raise ValueError(f"a tile is {config.TILE_SIZE} bytes, got {len(tile._raw)}")
        return tile

    @classmethod
    def from_id(cls, value: int, byteorder: str = 'big') -> 'Tile':
        """
        Build a tile from an id stored in the given byte order.

        Only 'big' keeps position == (high byte, low byte). 'little' swaps
        X and Y when the tile is read back as a position.
        """
        return cls.from_bytes(int(value).to_bytes(2, byteorder))

    def to_bytes(self) -> bytes:
        return self._raw

    @property
    def id(self) -> int:
        return int.from_bytes(self._raw, 'big')

    @id.setter
    def id(self, value: int):
        self._raw = int(value).to_bytes(2, 'big')

    @property
    def position(self) -> Tuple[int, int]:
        return self._raw[0], self._raw[1]

    @position.setter
    def position(self, value: Tuple[int, int]):
        raw = bytes(value)
        if len(raw) != config.TILE_SIZE:
            raise ValueError("a tile position has exactly two components")
        self._raw = raw

    def __eq__(self, other):
        if not isinstance(other, Tile):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self):
        return hash(self._raw)

    def __repr__(self):
        return f"Tile(id=0x{self.id:04X})"


# =============================================================================
# SUBLAYER
# =============================================================================

class SubLayer:
    """
    Per-cell auxiliary data attached to a layer.

    Each cell is ``cell_size`` bytes (0-4). New cells are filled with the
    first ``cell_size`` bytes of ``default_value``. Width and height follow
    the owning layer; use Layer.add_sublayer rather than building these
    by hand.
    """

    def __init__(self, default_value: bytes = b""):
        self.data = grid.empty_buffer()
        self._default_value = bytes(config.MAX_CELL_SIZE)
        self._cell_size = 0
        self._width = 0
        self._height = 0
        self.set_default(default_value)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def cell_size(self) -> int:
        return self._cell_size

    @property
    def default_value(self) -> bytes:
        """The stored 4-byte default; only the first cell_size bytes are used."""
        return self._default_value

    @property
    def default(self) -> bytes:
        return self._default_value[:self._cell_size]

    def resize(self, width: int, height: int):
        """Resize the sublayer, filling new cells with the default value."""
        buffer = grid.resize(self.data, (self._width, self._height), (width, height), self.default)
        if buffer is None:
            return
        if grid.is_empty(width, height):
            width = height = 0
        self.data = buffer
        self._width, self._height = width, height

    def set_default(self, value: bytes):
        """
        Set the default value, changing the cell size to its length.

        The value is truncated to 4 bytes. Existing cells are zero-padded on
        the right when the cell size grows and cut on the right when it
        shrinks. Growing from a cell size of 0 fills the grid with zeros.
        """
        value = bytes(value)
        old_size = self._cell_size
        new_size = min(len(value), config.MAX_CELL_SIZE)
        self._default_value = value[:config.MAX_CELL_SIZE].ljust(config.MAX_CELL_SIZE, b"\0")
        self._cell_size = new_size
        if grid.is_empty(self._width, self._height):
            return
        buffer = grid.migrate_cells(self.data, self._width * self._height, old_size, new_size)
        if buffer is not None:
            self.data = buffer

    def _offset(self, x: int, y: int) -> Optional[int]:
        if 0 <= x < self._width and 0 <= y < self._height:
            return (y * self._width + x) * self._cell_size
        return None

    def get(self, x: int, y: int) -> Optional[bytes]:
        """Cell bytes at (x, y), or None when out of bounds."""
        start = self._offset(x, y)
        if start is None:
            return None
        return self.data[start:start + self._cell_size].tobytes()

    def __getitem__(self, position: Tuple[int, int]) -> bytes:
        cell = self.get(*position)
        if cell is None:
            raise IndexError(f"cell {position} is outside a {self._width}x{self._height} sublayer")
        return cell

    def __setitem__(self, position: Tuple[int, int], value: bytes):
        start = self._offset(*position)
        if start is None:
            raise IndexError(f"cell {position} is outside a {self._width}x{self._height} sublayer")
        value = bytes(value)
        if len(value) != self._cell_size:
            raise ValueError(f"cell value must be {self._cell_size} bytes, got {len(value)}")
        self.data[start:start + self._cell_size] = np.frombuffer(value, dtype=np.uint8)

    def __eq__(self, other):
        if not isinstance(other, SubLayer):
            return NotImplemented
        return (self._width == other._width and self._height == other._height
                and self._cell_size == other._cell_size
                and self._default_value == other._default_value
                and self.data.tobytes() == other.data.tobytes())

    def __repr__(self):
        return (f"SubLayer(width={self._width}, height={self._height}, "
                f"cell_size={self._cell_size}, default_value={self._default_value!r})")


# =============================================================================
# LAYER
# =============================================================================

@dataclass
class SubLayerLink:
    """Which sublayer feeds a layer's tileset / animation / frame (0xFF = none)."""
    tileset: int = config.UNLINKED
    animation: int = config.UNLINKED
    animation_frame: int = config.UNLINKED


@dataclass(eq=False)
class Layer:
    """
    A grid of tiles plus its display settings.

    ==========================================================================
    GRID
    ==========================================================================

    ``data`` is a flat NumPy array of TILE_DTYPE in row-major order
    (index = y * width + x). Use ``as_array()`` for a (height, width) view:

        ids = layer.as_array()['id']          # big-endian u16 per tile
        xs = layer.as_array()['position'][..., 0]

    Width and height are read-only; change them with resize(). A layer
    whose width or height is 0 is empty and has no cells at all.

    Scroll and opacity are rounded to float32 whenever they are set.

    ==========================================================================
    """
    tileset: int = 0                                 # Tileset index
    collision: int = 0                               # Collision index
    offset: Tuple[int, int] = (0, 0)                 # XY offset (i32)
    scroll: Tuple[float, float] = (0.0, 0.0)         # XY scroll (f32)
    wrap: Tuple[bool, bool] = (False, False)         # Wraps on X / Y
    visible: bool = True
    opacity: float = 1.0
    tile_dimensions: Tuple[int, int] = config.DEFAULT_TILE_DIMENSIONS
    sublayer_link: SubLayerLink = field(default_factory=SubLayerLink)
    sublayers: List[SubLayer] = field(default_factory=list)
    data: np.ndarray = field(default_factory=lambda: grid.empty_buffer().view(TILE_DTYPE),
                             init=False, repr=False)
    _width: int = field(default=0, init=False, repr=False)
    _height: int = field(default=0, init=False, repr=False)

    def __setattr__(self, name, value):
        # Scroll and opacity are f32 on disk
        if name == 'opacity':
            value = _as_f32(float(value))
        elif name == 'scroll':
            value = tuple(_as_f32(float(v)) for v in value)
        super().__setattr__(name, value)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def resize(self, width: int, height: int):
        """
        Resize the layer, filling new tiles with 0xFFFF.

        Every sublayer is resized to match, after the layer's own grid.
        """
        buffer = grid.resize(self.data.view(np.uint8), (self._width, self._height),
                             (width, height), config.DEFAULT_TILE)
        if buffer is None:
            return
        if grid.is_empty(width, height):
            width = height = 0
        self.data = buffer.view(TILE_DTYPE)
        self._width, self._height = width, height
        for sublayer in self.sublayers:
            sublayer.resize(width, height)

    def add_sublayer(self, default_value: bytes) -> SubLayer:
        """Append a sublayer sized to this layer and return it."""
        sublayer = SubLayer(default_value)
        sublayer.resize(self._width, self._height)
        self.sublayers.append(sublayer)
        return sublayer

    def as_array(self) -> np.ndarray:
        """The tile grid as a (height, width) view sharing memory with ``data``."""
        return self.data.reshape(self._height, self._width)

    def tiles(self) -> Iterator[Tile]:
        raw = self.data.tobytes()
        for start in range(0, len(raw), config.TILE_SIZE):
            yield Tile.from_bytes(raw[start:start + config.TILE_SIZE])

    def _index(self, x: int, y: int) -> Optional[int]:
        if 0 <= x < self._width and 0 <= y < self._height:
            return y * self._width + x
        return None

    def get(self, x: int, y: int) -> Optional[Tile]:
        """Tile at (x, y), or None when out of bounds."""
        index = self._index(x, y)
        if index is None:
            return None
        return Tile.from_bytes(self.data[index:index + 1].tobytes())

    def __getitem__(self, position: Tuple[int, int]) -> Tile:
        tile = self.get(*position)
        if tile is None:
            raise IndexError(f"tile {position} is outside a {self._width}x{self._height} layer")
        return tile

    def __setitem__(self, position: Tuple[int, int], tile: Tile):
        index = self._index(*position)
        if index is None:
            raise IndexError(f"tile {position} is outside a {self._width}x{self._height} layer")
        start = index * config.TILE_SIZE
        self.data.view(np.uint8)[start:start + config.TILE_SIZE] = np.frombuffer(tile.to_bytes(), dtype=np.uint8)

    def __eq__(self, other):
        if not isinstance(other, Layer):
            return NotImplemented
        return (self._width == other._width and self._height == other._height
                and self.tileset == other.tileset
                and self.collision == other.collision
                and tuple(self.offset) == tuple(other.offset)
                and tuple(self.scroll) == tuple(other.scroll)
                and tuple(self.wrap) == tuple(other.wrap)
                and self.visible == other.visible
                and self.opacity == other.opacity
                and tuple(self.tile_dimensions) == tuple(other.tile_dimensions)
                and self.sublayer_link == other.sublayer_link
                and self.sublayers == other.sublayers
                and self.data.tobytes() == other.data.tobytes())


# =============================================================================
# TILESET
# =============================================================================

@dataclass
class TileSet:
    """Tileset image path and the RGB color drawn as transparent."""
    path: str = ""
    transparent_color: Tuple[int, int, int] = (0, 0, 0)


# =============================================================================
# PROPERTY
# =============================================================================

class PropertyType(enum.IntEnum):
    """Type byte of a property on disk."""
    INTEGER = 0
    FLOAT = 1
    STRING = 2


@dataclass
class Property:
    """
    Typed map-level property value.

    INTEGER holds an i32, FLOAT an f32 (rounded on construction so that a
    written value reads back equal), STRING arbitrary bytes. A STRING must
    not be empty when the map is written.
    """
    type: PropertyType
    value: Union[int, float, bytes]

    def __post_init__(self):
        self.type = PropertyType(self.type)
        if self.type == PropertyType.INTEGER:
            self.value = int(self.value)
        elif self.type == PropertyType.FLOAT:
            self.value = _as_f32(float(self.value))
        elif isinstance(self.value, str):
            self.value = self.value.encode('utf-8')
        else:
            self.value = bytes(self.value)

    @classmethod
    def from_value(cls, value: Union[int, float, str, bytes]) -> 'Property':
        """Pick the property type from a plain Python value."""
        if isinstance(value, bool):
            raise TypeError("bool has no property type")
        if isinstance(value, int):
            return cls(PropertyType.INTEGER, value)
        if isinstance(value, float):
            return cls(PropertyType.FLOAT, value)
        if isinstance(value, (str, bytes, bytearray)):
            return cls(PropertyType.STRING, value)
        raise TypeError(f"{type(value).__name__} has no property type")


# =============================================================================
# TILEMAP
# =============================================================================

@dataclass
class TileMap:
    """
    Root of a tilemap file.

    Loading:
        tilemap = TileMap.load("level.map")

    Editing:
        layer = tilemap.layers[0]
        layer.resize(32, 24)
        layer[0, 0] = Tile(id=0x0102)
        layer.add_sublayer(b"\\x00\\x00")[5, 5] = b"\\x01\\x02"

    Saving:
        tilemap.save("level.map")
    """
    layers: List[Layer] = field(default_factory=list)
    tilesets: List[TileSet] = field(default_factory=list)
    properties: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def read(cls, stream: BinaryIO) -> 'TileMap':
        """Decode a tilemap from a readable binary stream (raises ReadError)."""
        from .codec import decode
        return decode(stream)

    def write(self, stream: BinaryIO, compression_level: int = config.COMPRESSION_LEVEL):
        """Encode this tilemap (always version 5) to a writable binary stream."""
        from .codec import encode
        encode(self, stream, compression_level=compression_level)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'TileMap':
        with open(filepath, 'rb') as f:
            return cls.read(f)

    def save(self, filepath: Union[str, Path], compression_level: int = config.COMPRESSION_LEVEL):
        """
        Save the tilemap to a file.

        The whole file is encoded in memory first, so a failed write
        (e.g. an empty property key) leaves an existing file untouched.
        """
        buffer = BytesIO()
        self.write(buffer, compression_level=compression_level)
        Path(filepath).write_bytes(buffer.getvalue())
