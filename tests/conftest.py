"""Shared fixtures for clicktile tests."""

import io

import pytest

from clicktile import TileMap

from filebuilder import sample_file


@pytest.fixture
def sample_bytes():
    return sample_file()


@pytest.fixture
def sample_map(sample_bytes):
    return TileMap.read(io.BytesIO(sample_bytes))
