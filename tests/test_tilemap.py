"""Tests for the in-memory model: tiles, layers, sublayers and properties."""

import struct

import numpy as np
import pytest

from clicktile import Layer, Property, PropertyType, SubLayer, SubLayerLink, Tile, TileMap, TileSet


def f32(value):
    return struct.unpack('<f', struct.pack('<f', value))[0]


def numbered_layer(width, height):
    """A layer whose tile at (x, y) has id y * width + x."""
    layer = Layer()
    layer.resize(width, height)
    for y in range(height):
        for x in range(width):
            layer[x, y] = Tile(id=y * width + x)
    return layer


class TestTile:
    def test_default(self):
        assert Tile().id == 0xFFFF
        assert Tile().to_bytes() == b"\xff\xff"

    def test_id_is_big_endian_position(self):
        tile = Tile(id=0x1234)
        assert tile.position == (0x12, 0x34)
        assert tile.to_bytes() == b"\x12\x34"

    def test_position_reads_as_id(self):
        assert Tile(position=(5, 3)).id == 0x0503

    def test_little_endian_id_swaps_axes(self):
        assert Tile.from_id(0x1234, 'little').position == (0x34, 0x12)
        assert Tile.from_id(0x1234).position == (0x12, 0x34)

    def test_setters_share_storage(self):
        tile = Tile(id=0x4321)
        tile.position = (0xAB, 0xCD)
        assert tile.id == 0xABCD
        tile.id = 0x0102
        assert tile.position == (1, 2)

    def test_equality_on_raw_bits(self):
        assert Tile(id=0x0503) == Tile(position=(5, 3))
        assert Tile(id=1) != Tile(id=256)
        assert len({Tile(id=7), Tile(position=(0, 7))}) == 1

    def test_invalid(self):
        with pytest.raises(TypeError):
            Tile(id=1, position=(0, 1))
        with pytest.raises(ValueError):
            Tile.from_bytes(b"\x00")
        with pytest.raises(ValueError):
            Tile(position=(1, 2, 3))


class TestLayer:
    def test_defaults(self):
        layer = Layer()
        assert (layer.width, layer.height) == (0, 0)
        assert layer.visible is True
        assert layer.opacity == 1.0
        assert layer.tile_dimensions == (16, 16)
        assert layer.sublayer_link == SubLayerLink(0xFF, 0xFF, 0xFF)
        assert len(layer.data) == 0

    def test_resize_fills_with_default_tile(self):
        layer = Layer()
        layer.resize(3, 2)
        assert len(layer.data) == 6
        assert all(tile == Tile() for tile in layer.tiles())

    def test_resize_keeps_cells_in_place(self):
        layer = numbered_layer(3, 3)
        layer.resize(4, 2)
        assert layer[2, 1].id == 5
        assert layer[3, 0] == Tile()
        assert layer.get(0, 2) is None

    def test_resize_to_same_size_keeps_buffer(self):
        layer = numbered_layer(3, 3)
        before = layer.data
        layer.resize(3, 3)
        assert layer.data is before

    def test_zero_dimension_empties_layer(self):
        layer = numbered_layer(3, 3)
        layer.resize(5, 0)
        assert (layer.width, layer.height) == (0, 0)
        assert len(layer.data) == 0

    def test_shrink_then_grow_does_not_restore(self):
        layer = numbered_layer(3, 3)
        layer.resize(2, 2)
        layer.resize(3, 3)
        assert [t.id for t in layer.tiles()] == [0, 1, 0xFFFF, 3, 4, 0xFFFF, 0xFFFF, 0xFFFF, 0xFFFF]

    def test_resize_sequence_with_sublayer(self):
        layer = numbered_layer(5, 5)
        sublayer = layer.add_sublayer(b"YES")
        for size in [(0, 0), (8, 8), (8, 8), (8, 7), (7, 8), (7, 7), (7, 8), (8, 7), (8, 8)]:
            layer.resize(*size)
            assert len(layer.data) == layer.width * layer.height
            assert (sublayer.width, sublayer.height) == (layer.width, layer.height)
            assert len(sublayer.data) == sublayer.width * sublayer.height * 3
        assert (layer.width, layer.height) == (8, 8)
        assert sublayer[7, 7] == b"YES"

    def test_indexing(self):
        layer = Layer()
        layer.resize(8, 8)
        layer[0, 0] = Tile(id=0x1234)
        layer[0, 1] = Tile(position=(5, 3))
        assert layer[0, 0].id == 0x1234
        assert layer.get(0, 1).position == (5, 3)
        assert layer.get(2, 2) == layer[2, 2]
        assert layer.get(9, 9) is None
        assert layer.get(8, 0) is None
        with pytest.raises(IndexError):
            layer[8, 0]
        with pytest.raises(IndexError):
            layer[0, -1] = Tile()

    def test_numpy_union_view(self):
        layer = Layer()
        layer.resize(2, 2)
        layer[1, 0] = Tile(id=0x0A0B)
        grid = layer.as_array()
        assert grid.shape == (2, 2)
        assert grid['id'][0, 1] == 0x0A0B
        assert grid['position'][0, 1].tolist() == [0x0A, 0x0B]
        grid['id'][1, 1] = 0x0102
        assert layer[1, 1].position == (1, 2)

    def test_add_sublayer_matches_layer(self):
        layer = Layer()
        layer.resize(4, 3)
        sublayer = layer.add_sublayer(b"\x07\x08")
        assert (sublayer.width, sublayer.height, sublayer.cell_size) == (4, 3, 2)
        assert sublayer.data.tobytes() == b"\x07\x08" * 12
        assert layer.sublayers == [sublayer]

    def test_equality(self):
        assert numbered_layer(3, 2) == numbered_layer(3, 2)
        other = numbered_layer(3, 2)
        other[0, 0] = Tile(id=99)
        assert numbered_layer(3, 2) != other
        other = numbered_layer(3, 2)
        other.opacity = 0.5
        assert numbered_layer(3, 2) != other

    def test_floats_rounded_to_f32(self):
        layer = Layer(opacity=0.9, scroll=(0.1, 2.2))
        assert layer.opacity == f32(0.9)
        assert layer.scroll == (f32(0.1), f32(2.2))
        layer.opacity = 0.3
        layer.scroll = [1.1, 0]
        assert layer.opacity == f32(0.3)
        assert layer.scroll == (f32(1.1), 0.0)

    def test_repr_hides_private_size(self):
        layer = Layer()
        layer.resize(2, 2)
        assert "_width" not in repr(layer)
        assert "_height" not in repr(layer)


class TestSubLayer:
    def make(self, default=b"\x01", size=(3, 2)):
        layer = Layer()
        layer.resize(*size)
        return layer.add_sublayer(default)

    def test_default_value_is_padded(self):
        sublayer = SubLayer(b"YES")
        assert sublayer.cell_size == 3
        assert sublayer.default_value == b"YES\x00"
        assert sublayer.default == b"YES"

    def test_set_default_truncates_to_four(self):
        sublayer = SubLayer(b"YES!!!!")
        assert sublayer.cell_size == 4
        assert sublayer.default_value == b"YES!"

    def test_set_default_migration_sequence(self):
        sublayer = self.make(b"YES", (8, 8))
        sublayer.set_default(b"YES!")   # grow
        assert sublayer[0, 0] == b"YES\x00"
        sublayer.set_default(b"Y")      # shrink
        assert sublayer[0, 0] == b"Y"
        sublayer.set_default(b"")       # to nothing
        assert sublayer.cell_size == 0
        assert len(sublayer.data) == 0
        sublayer.set_default(b"YES!!!!")  # from nothing: zero filled
        assert sublayer.cell_size == 4
        assert len(sublayer.data) == 8 * 8 * 4
        sublayer[3, 3] = b"NO! "
        assert sublayer[3, 3] == b"NO! "
        assert sublayer[3, 4] == bytes(4)

    def test_set_default_same_size_keeps_cells(self):
        sublayer = self.make(b"\x01")
        sublayer[1, 1] = b"\x09"
        before = sublayer.data
        sublayer.set_default(b"\x02")
        assert sublayer.data is before
        assert sublayer[1, 1] == b"\x09"
        assert sublayer.default == b"\x02"

    def test_set_default_preserves_prefix(self):
        sublayer = self.make(b"\x01\x02\x03")
        sublayer[2, 1] = b"abc"
        sublayer.set_default(b"\x00\x00")
        assert sublayer[2, 1] == b"ab"
        sublayer.set_default(b"\x00\x00\x00\x00")
        assert sublayer[2, 1] == b"ab\x00\x00"

    def test_set_default_on_empty_grid(self):
        sublayer = SubLayer(b"\x01")
        sublayer.set_default(b"\x01\x02")
        assert sublayer.cell_size == 2
        assert len(sublayer.data) == 0

    def test_resize_uses_current_default(self):
        sublayer = self.make(b"\x01", (2, 2))
        sublayer.set_default(b"\x05")
        sublayer.resize(3, 2)
        assert sublayer[2, 0] == b"\x05"
        assert sublayer[0, 0] == b"\x01"

    def test_indexing(self):
        sublayer = self.make(b"\x00\x00")
        sublayer[2, 1] = b"\x0a\x0b"
        assert sublayer.get(2, 1) == b"\x0a\x0b"
        assert sublayer.get(3, 0) is None
        with pytest.raises(IndexError):
            sublayer[0, 2]
        with pytest.raises(ValueError):
            sublayer[0, 0] = b"\x01"

    def test_equality(self):
        assert self.make(b"\x01") == self.make(b"\x01")
        assert self.make(b"\x01") != self.make(b"\x02")


class TestProperty:
    def test_from_value(self):
        assert Property.from_value(1) == Property(PropertyType.INTEGER, 1)
        assert Property.from_value(2.5) == Property(PropertyType.FLOAT, 2.5)
        assert Property.from_value(b"Yo!") == Property(PropertyType.STRING, b"Yo!")
        assert Property.from_value("Hi!") == Property(PropertyType.STRING, b"Hi!")

    def test_float_is_single_precision(self):
        assert Property.from_value(2.2).value == f32(2.2)

    def test_unsupported(self):
        with pytest.raises(TypeError):
            Property.from_value(True)
        with pytest.raises(TypeError):
            Property.from_value([1, 2])


class TestTileMap:
    def test_empty(self):
        tilemap = TileMap()
        assert tilemap.layers == [] and tilemap.tilesets == [] and tilemap.properties == {}
        assert TileMap() == tilemap

    def test_tileset_defaults(self):
        assert TileSet() == TileSet(path="", transparent_color=(0, 0, 0))
