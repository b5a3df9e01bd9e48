"""
Grid resize and cell-width migration on flat byte buffers.

Layers and sublayers both keep their cells in a flat, row-major NumPy
``uint8`` buffer of ``width * height * cell_size`` bytes. The functions
here are shared by both: a layer is simply a grid whose cells are 2 bytes
wide and default to 0xFFFF.

=============================================================================
RESIZE CASES (in order)
=============================================================================

1. Same size, or empty before and after      -> nothing happens
2. New width or height is 0                   -> cleared, size (0, 0)
3. Old grid empty                             -> new grid of default cells
4. Otherwise, two phases on the old buffer:
     a. height: drop trailing rows, or append default rows
        (row stride is still the OLD width)
     b. width:  per row, keep the first new_width cells, or append
        (new_width - old_width) default cells

Cells that fall outside the new bounds are gone. Growing back later fills
with defaults, it does not bring them back.

=============================================================================
"""

from typing import Optional, Tuple

import numpy as np

Size = Tuple[int, int]


def is_empty(width: int, height: int) -> bool:
    return width == 0 or height == 0


def empty_buffer() -> np.ndarray:
    return np.zeros(0, dtype=np.uint8)


def filled_buffer(cell: bytes, count: int) -> np.ndarray:
    """A buffer of ``count`` cells, each a copy of ``cell``."""
    return np.tile(np.frombuffer(cell, dtype=np.uint8), count)


def resize(data: np.ndarray, size: Size, new_size: Size, default: bytes) -> Optional[np.ndarray]:
    """
    Resize a row-major grid buffer.

    Parameters:
    -----------
    data : np.ndarray
        Flat uint8 buffer of ``width * height * len(default)`` bytes
    size : (int, int)
        Current (width, height)
    new_size : (int, int)
        Requested (width, height)
    default : bytes
        Fill value for new cells; its length is the cell size

    Returns:
    --------
    np.ndarray or None : the new buffer, or None if nothing changes.
    An empty result means the grid is now (0, 0).
    """
    width, height = size
    new_width, new_height = new_size
    if size == new_size or (is_empty(width, height) and is_empty(new_width, new_height)):
        return None
    if is_empty(new_width, new_height):
        return empty_buffer()
    if is_empty(width, height):
        return filled_buffer(default, new_width * new_height)

    cell_size = len(default)
    fill = np.frombuffer(default, dtype=np.uint8)
    rows = data.reshape(height, width * cell_size)

    # Height first, keeping the old stride
    if new_height < height:
        rows = rows[:new_height]
    elif new_height > height:
        extra = np.tile(fill, (new_height - height, width))
        rows = np.concatenate([rows, extra])

    # Then re-chunk each row to the new width
    if new_width < width:
        rows = rows[:, :new_width * cell_size]
    elif new_width > width:
        extra = np.tile(fill, (new_height, new_width - width))
        rows = np.concatenate([rows, extra], axis=1)

    return np.ascontiguousarray(rows).reshape(-1).copy()


def migrate_cells(data: np.ndarray, count: int, old_size: int, new_size: int) -> Optional[np.ndarray]:
    """
    Change the width of every cell in a buffer of ``count`` cells.

    Growing pads each cell with zeros on the right, shrinking cuts bytes off
    the right. Growing from a cell size of 0 gives an all-zero buffer (not
    the default value). Returns None when nothing changes.
    """
    if new_size == old_size or count == 0:
        return None
    if new_size == 0:
        return empty_buffer()
    if old_size == 0:
        return np.zeros(count * new_size, dtype=np.uint8)
    cells = data.reshape(count, old_size)
    if new_size > old_size:
        padding = np.zeros((count, new_size - old_size), dtype=np.uint8)
        cells = np.concatenate([cells, padding], axis=1)
    else:
        cells = cells[:, :new_size]
    return np.ascontiguousarray(cells).reshape(-1).copy()
