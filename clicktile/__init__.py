"""
clicktile - read, edit and write Clickteam TileMap (.map) files

Quick start:

    from clicktile import TileMap, Tile

    tilemap = TileMap.load("level.map")
    for layer in tilemap.layers:
        layer.resize(8, 8)
        layer[0, 0] = Tile(id=0x1234)
        layer.add_sublayer(b"YES")[3, 3] = b"NO!"
    tilemap.save("level.map")
"""

from .codec import decode, decode_bytes, encode, encode_bytes
from .errors import (
    InvalidHeaderError, InvalidLayerLengthError, InvalidMagicError, InvalidTypeError,
    ReadError, ReadIOError, TileMapError, UnsupportedVersionError, WriteError,
)
from .tilemap import (
    TILE_DTYPE, Layer, Property, PropertyType, SubLayer, SubLayerLink, Tile, TileMap, TileSet,
)

__version__ = "1.0.0"
__all__ = [
    "TileMap",
    "Layer",
    "SubLayer",
    "SubLayerLink",
    "Tile",
    "TileSet",
    "Property",
    "PropertyType",
    "TILE_DTYPE",
    "decode",
    "decode_bytes",
    "encode",
    "encode_bytes",
    "TileMapError",
    "ReadError",
    "ReadIOError",
    "InvalidMagicError",
    "UnsupportedVersionError",
    "InvalidTypeError",
    "InvalidLayerLengthError",
    "InvalidHeaderError",
    "WriteError",
]
