"""
Primitive codec: little-endian scalars, length-prefixed strings and
zlib-compressed payloads.

=============================================================================
STRINGS
=============================================================================

Both string kinds store (length - 1) in their length field, so an empty
string cannot be represented at all:

    short string:  u8  (len - 1)  + raw bytes     1..256 bytes
    long string:   u32 (len - 1)  + raw bytes     1..2^32 bytes

Short strings longer than 256 bytes are truncated on write. Empty strings
are a WriteError, raised before a single byte of the string is emitted.

=============================================================================
COMPRESSED PAYLOADS
=============================================================================

    u32 compressed_length + zlib stream (RFC 1950, header 0x78 ...)

The whole payload is materialized in memory in both directions.

=============================================================================
"""

import struct
import zlib
from typing import BinaryIO, Optional, Union

from . import config
from .errors import ReadIOError, WriteError

U8 = struct.Struct('<B')
U16 = struct.Struct('<H')
U32 = struct.Struct('<I')
I32 = struct.Struct('<i')
F32 = struct.Struct('<f')

# Largest single read() issued against the caller's stream
READ_CHUNK = 64 * 1024


# =============================================================================
# READING
# =============================================================================

def read_exact(stream: BinaryIO, size: int) -> bytes:
    """
    Read exactly ``size`` bytes or raise ReadIOError.

    Reads in bounded chunks so a bogus length field can't make us
    allocate gigabytes before noticing the stream is shorter.
    """
    parts = []
    remaining = size
    while remaining > 0:
        try:
            chunk = stream.read(min(remaining, READ_CHUNK))
        except OSError as err:
            raise ReadIOError(err) from err
        if not chunk:
            err = EOFError(f"unexpected end of stream ({size - remaining} of {size} bytes read)")
            raise ReadIOError(err) from err
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


def read_tag(stream: BinaryIO) -> Optional[bytes]:
    """
    Read a 4-byte top-level block tag.

    Returns None on a clean end of stream (no bytes at all). A partially
    present tag is a truncated file and raises ReadIOError.
    """
    try:
        first = stream.read(4)
    except OSError as err:
        raise ReadIOError(err) from err
    if not first:
        return None
    if len(first) < 4:
        return first + read_exact(stream, 4 - len(first))
    return first


def _unpack(stream: BinaryIO, fmt: struct.Struct):
    return fmt.unpack(read_exact(stream, fmt.size))[0]


def read_u8(stream: BinaryIO) -> int:
    return _unpack(stream, U8)


def read_u16(stream: BinaryIO) -> int:
    return _unpack(stream, U16)


def read_u32(stream: BinaryIO) -> int:
    return _unpack(stream, U32)


def read_i32(stream: BinaryIO) -> int:
    return _unpack(stream, I32)


def read_f32(stream: BinaryIO) -> float:
    return _unpack(stream, F32)


def read_short_string(stream: BinaryIO) -> bytes:
    length = read_u8(stream) + 1
    return read_exact(stream, length)


def read_long_string(stream: BinaryIO) -> bytes:
    length = read_u32(stream) + 1
    return read_exact(stream, length)


def read_compressed(stream: BinaryIO) -> bytes:
    """Read a u32 length, that many bytes of zlib data, and inflate it."""
    length = read_u32(stream)
    if length > config.MAX_COMPRESSED_SIZE:
        raise ReadIOError(message=f"compressed block of {length} bytes exceeds the "
                                  f"{config.MAX_COMPRESSED_SIZE} byte limit")
    return inflate(read_exact(stream, length))


def inflate(raw: bytes) -> bytes:
    inflater = zlib.decompressobj()
    try:
        data = inflater.decompress(raw, config.MAX_INFLATED_SIZE)
    except zlib.error as err:
        raise ReadIOError(err) from err
    if not inflater.eof:
        if len(data) >= config.MAX_INFLATED_SIZE:
            raise ReadIOError(message=f"decompressed data exceeds the "
                                      f"{config.MAX_INFLATED_SIZE} byte limit")
        raise ReadIOError(message="compressed data ended before the end of the zlib stream")
    return data


# =============================================================================
# WRITING
# =============================================================================
# The encoder writes into in-memory buffers; errors from the final stream
# are the caller's and propagate unchanged.

def write_u8(stream: BinaryIO, value: int):
    stream.write(U8.pack(value))


def write_u16(stream: BinaryIO, value: int):
    stream.write(U16.pack(value))


def write_u32(stream: BinaryIO, value: int):
    stream.write(U32.pack(value))


def write_i32(stream: BinaryIO, value: int):
    stream.write(I32.pack(value))


def write_f32(stream: BinaryIO, value: float):
    stream.write(F32.pack(value))


def write_short_string(stream: BinaryIO, value: Union[str, bytes]):
    """Write a short string, truncating anything past 256 bytes."""
    raw = value.encode('utf-8') if isinstance(value, str) else bytes(value)
    if not raw:
        raise WriteError("cannot write an empty string")
    raw = raw[:config.MAX_SHORT_STRING]
    write_u8(stream, len(raw) - 1)
    stream.write(raw)


def write_long_string(stream: BinaryIO, value: bytes):
    raw = bytes(value)
    if len(raw) > config.MAX_LONG_STRING:
        raise WriteError("string size was too large to fit in the file")
    if not raw:
        raise WriteError("cannot write an empty string")
    write_u32(stream, len(raw) - 1)
    stream.write(raw)


def write_compressed(stream: BinaryIO, data: bytes, level: int = config.COMPRESSION_LEVEL):
    packed = zlib.compress(bytes(data), level)
    write_u32(stream, len(packed))
    stream.write(packed)
