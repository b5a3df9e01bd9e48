"""
Binary reader and writer for Clickteam TileMap files.

=============================================================================
FILE LAYOUT (little-endian)
=============================================================================

    "ACHTUNG!"                     magic
    u16 version | 0x100            bit 8 is always set on disk
    blocks until end of file:
        char[4] tag, u32 length, payload

    "MAP "  v>=3: u16 count, {short key, u8 type, i32 | f32 | long string}
            v<3:  u16, u16 tile dimensions for layers without their own
    "TILE"  u8 count, {pad, B, G, R, short path}
    "LAYR"  count (u8 in v0, else u16), per layer:
              u32 width, u32 height
              u16, u16 tile dimensions                  (v>=2)
              u8 tileset, u8 collision, i32 x2 offset, f32 x2 scroll,
              u8 x2 wrap, u8 visible, f32 opacity
              u8 link.tileset, u8 link.animation        (v>=4)
              u8 link.animation_frame                   (v==5)
              u8 section count, sections:
                "MAIN" compressed tiles (2 bytes each)
                "DATA" u8 cell_size, 4-byte default, compressed cells

The declared block length is never used to skip or bound anything: the
structure of each block says how much to read.

=============================================================================
VERSIONS
=============================================================================

Reading accepts versions 0-5. Writing always produces version 5.

=============================================================================
"""

import logging
import struct
from io import BytesIO
from typing import BinaryIO, List, Sequence

import numpy as np

from . import config
from . import streams as s
from .errors import (
    InvalidHeaderError, InvalidLayerLengthError, InvalidMagicError, InvalidTypeError, ReadIOError,
    UnsupportedVersionError, WriteError,
)
from .tilemap import TILE_DTYPE, Layer, Property, PropertyType, SubLayer, TileMap, TileSet

logger = logging.getLogger(__name__)

# tileset, collision, offset x/y, scroll x/y, wrap x/y, visible, opacity
LAYER_SETTINGS = struct.Struct('<2B2i2f3Bf')


def _tag_text(tag: bytes) -> str:
    return tag.decode('utf-8', errors='replace')


def _check_grid_size(width: int, height: int, cell_size: int):
    # Grids are allocated before their payload is read
    if width * height * cell_size > config.MAX_INFLATED_SIZE:
        raise ReadIOError(message=f"{width}x{height} grid of {cell_size}-byte cells exceeds the "
                                  f"{config.MAX_INFLATED_SIZE} byte limit")


# =============================================================================
# READING
# =============================================================================

class _Decoder:
    """
    State of a single decode call.

    ``global_dimensions`` comes from a pre-v3 "MAP " block and is used by
    pre-v2 layers, which don't store their own tile dimensions.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.version = 0
        self.global_dimensions = config.DEFAULT_TILE_DIMENSIONS
        self.tilemap = TileMap()

    def run(self) -> TileMap:
        if s.read_exact(self.stream, len(config.MAGIC)) != config.MAGIC:
            raise InvalidMagicError()

        self.version = s.read_u16(self.stream) ^ config.VERSION_FLAG
        if self.version > config.MAX_VERSION:
            raise UnsupportedVersionError(self.version)
        logger.debug("reading tilemap version %d", self.version)

        handlers = {
            config.BLOCK_PROPERTIES: self.read_properties,
            config.BLOCK_TILESETS: self.read_tilesets,
            config.BLOCK_LAYERS: self.read_layers,
        }
        while True:
            tag = s.read_tag(self.stream)
            if tag is None:
                break
            declared = s.read_u32(self.stream)
            logger.debug("block %r, declared length %d", tag, declared)
            handler = handlers.get(tag)
            if handler is None:
                raise InvalidHeaderError(_tag_text(tag))
            handler()
        return self.tilemap

    def read_properties(self):
        stream = self.stream
        if self.version < 3:
            # Only old files have these
            self.global_dimensions = (s.read_u16(stream), s.read_u16(stream))
            return

        for _ in range(s.read_u16(stream)):
            name = s.read_short_string(stream).decode('utf-8', errors='replace')
            type_id = s.read_u8(stream)
            if type_id == PropertyType.INTEGER:
                prop = Property(PropertyType.INTEGER, s.read_i32(stream))
            elif type_id == PropertyType.FLOAT:
                prop = Property(PropertyType.FLOAT, s.read_f32(stream))
            elif type_id == PropertyType.STRING:
                prop = Property(PropertyType.STRING, s.read_long_string(stream))
            else:
                raise InvalidTypeError(type_id)
            self.tilemap.properties[name] = prop

    def read_tilesets(self):
        for _ in range(s.read_u8(self.stream)):
            # Color is stored as xBGR
            _, blue, green, red = s.read_exact(self.stream, 4)
            path = s.read_short_string(self.stream).decode('utf-8', errors='replace')
            self.tilemap.tilesets.append(TileSet(path=path, transparent_color=(red, green, blue)))

    def read_layers(self):
        stream = self.stream
        count = s.read_u8(stream) if self.version == 0 else s.read_u16(stream)
        for _ in range(count):
            self.tilemap.layers.append(self.read_layer())

    def read_layer(self) -> Layer:
        stream = self.stream
        width = s.read_u32(stream)
        height = s.read_u32(stream)
        if self.version >= 2:
            tile_dimensions = (s.read_u16(stream), s.read_u16(stream))
        else:
            tile_dimensions = self.global_dimensions

        (tileset, collision, offset_x, offset_y, scroll_x, scroll_y,
         wrap_x, wrap_y, visible, opacity) = LAYER_SETTINGS.unpack(
            s.read_exact(stream, LAYER_SETTINGS.size))
        layer = Layer(
            tileset=tileset,
            collision=collision,
            offset=(offset_x, offset_y),
            scroll=(scroll_x, scroll_y),
            wrap=(wrap_x > 0, wrap_y > 0),
            visible=visible > 0,
            opacity=opacity,
            tile_dimensions=tile_dimensions,
        )
        if self.version >= 4:
            layer.sublayer_link.tileset = s.read_u8(stream)
            layer.sublayer_link.animation = s.read_u8(stream)
            if self.version == 5:
                layer.sublayer_link.animation_frame = s.read_u8(stream)

        _check_grid_size(width, height, config.TILE_SIZE)
        layer.resize(width, height)
        sections = s.read_u8(stream)
        logger.debug("layer %dx%d with %d data sections", width, height, sections)
        for _ in range(sections):
            tag = s.read_exact(stream, 4)
            if tag == config.SECTION_MAIN:
                self.read_main(layer)
            elif tag == config.SECTION_DATA:
                self.read_data(layer)
            else:
                raise InvalidHeaderError(_tag_text(tag))
        return layer

    def read_main(self, layer: Layer):
        raw = s.read_compressed(self.stream)
        if len(raw) % config.TILE_SIZE or len(raw) != layer.width * layer.height * config.TILE_SIZE:
            raise InvalidLayerLengthError()
        layer.data = np.frombuffer(raw, dtype=TILE_DTYPE).copy()

    def read_data(self, layer: Layer):
        stream = self.stream
        cell_size = min(s.read_u8(stream), config.MAX_CELL_SIZE)
        default_value = s.read_exact(stream, config.MAX_CELL_SIZE)
        _check_grid_size(layer.width, layer.height, cell_size)
        sublayer = layer.add_sublayer(default_value[:cell_size])
        raw = s.read_compressed(stream)
        if len(raw) != sublayer.width * sublayer.height * sublayer.cell_size:
            raise InvalidLayerLengthError()
        sublayer.data = np.frombuffer(raw, dtype=np.uint8).copy()


def decode(stream: BinaryIO) -> TileMap:
    """
    Read a tilemap from a binary stream.

    Raises:
    -------
    ReadError : one of its subclasses; no partial tilemap is returned
    """
    return _Decoder(stream).run()


def decode_bytes(data: bytes) -> TileMap:
    return decode(BytesIO(data))


# =============================================================================
# WRITING
# =============================================================================

def _capped(section: str, items: Sequence, limit: int) -> List:
    """First ``limit`` items; the rest are dropped with a warning."""
    if len(items) > limit:
        logger.warning("%s: only the first %d of %d entries are saved, %d dropped",
                       section, limit, len(items), len(items) - limit)
    return list(items[:limit])


def _write_block(out: BinaryIO, tag: bytes, payload: bytes):
    out.write(tag)
    s.write_u32(out, len(payload))
    out.write(payload)


def _encode_properties(properties) -> bytes:
    kept = _capped("properties", list(properties.items()), config.MAX_PROPERTIES)
    buf = BytesIO()
    s.write_u16(buf, len(kept))
    for key, prop in kept:
        s.write_short_string(buf, key)
        s.write_u8(buf, prop.type)
        try:
            if prop.type == PropertyType.INTEGER:
                s.write_i32(buf, prop.value)
            elif prop.type == PropertyType.FLOAT:
                s.write_f32(buf, prop.value)
            else:
                s.write_long_string(buf, prop.value)
        except (struct.error, OverflowError) as err:
            raise WriteError(f"property {key!r}: {err}") from err
    return buf.getvalue()


def _encode_tilesets(tilesets: Sequence[TileSet]) -> bytes:
    kept = _capped("tilesets", tilesets, config.MAX_TILESETS)
    buf = BytesIO()
    s.write_u8(buf, len(kept))
    for tileset in kept:
        red, green, blue = tileset.transparent_color
        buf.write(bytes((0, blue, green, red)))
        s.write_short_string(buf, tileset.path)
    return buf.getvalue()


def _encode_layer(buf: BinaryIO, layer: Layer, level: int):
    s.write_u32(buf, layer.width)
    s.write_u32(buf, layer.height)
    s.write_u16(buf, layer.tile_dimensions[0])
    s.write_u16(buf, layer.tile_dimensions[1])
    buf.write(LAYER_SETTINGS.pack(
        layer.tileset, layer.collision,
        layer.offset[0], layer.offset[1],
        layer.scroll[0], layer.scroll[1],
        int(bool(layer.wrap[0])), int(bool(layer.wrap[1])),
        int(bool(layer.visible)),
        layer.opacity,
    ))
    link = layer.sublayer_link
    buf.write(bytes((link.tileset, link.animation, link.animation_frame)))

    if layer.width == 0 or layer.height == 0:
        s.write_u8(buf, 0)
        return

    sublayers: List[SubLayer] = _capped("sublayers", layer.sublayers, config.MAX_SUBLAYERS)
    # One extra for MAIN
    s.write_u8(buf, len(sublayers) + 1)
    buf.write(config.SECTION_MAIN)
    s.write_compressed(buf, layer.data.tobytes(), level)
    for sublayer in sublayers:
        buf.write(config.SECTION_DATA)
        s.write_u8(buf, sublayer.cell_size)
        buf.write(sublayer.default_value)
        s.write_compressed(buf, sublayer.data.tobytes(), level)


def _encode_layers(layers: Sequence[Layer], level: int) -> bytes:
    kept = _capped("layers", layers, config.MAX_LAYERS)
    buf = BytesIO()
    s.write_u16(buf, len(kept))
    for index, layer in enumerate(kept):
        try:
            _encode_layer(buf, layer, level)
        except (struct.error, OverflowError) as err:
            raise WriteError(f"layer {index}: {err}") from err
    return buf.getvalue()


def encode(tilemap: TileMap, stream: BinaryIO, compression_level: int = config.COMPRESSION_LEVEL):
    """
    Write a tilemap as a version 5 file.

    The whole file is built in memory and handed to ``stream`` in a single
    write, so a WriteError (empty key, empty string value) leaves the
    stream untouched. Entries past the count caps are dropped, not errors.
    """
    out = BytesIO()
    out.write(config.MAGIC)
    s.write_u16(out, config.WRITE_VERSION | config.VERSION_FLAG)
    if tilemap.properties:
        _write_block(out, config.BLOCK_PROPERTIES, _encode_properties(tilemap.properties))
    if tilemap.tilesets:
        _write_block(out, config.BLOCK_TILESETS, _encode_tilesets(tilemap.tilesets))
    if tilemap.layers:
        _write_block(out, config.BLOCK_LAYERS, _encode_layers(tilemap.layers, compression_level))
    stream.write(out.getvalue())


def encode_bytes(tilemap: TileMap, compression_level: int = config.COMPRESSION_LEVEL) -> bytes:
    buf = BytesIO()
    encode(tilemap, buf, compression_level=compression_level)
    return buf.getvalue()
