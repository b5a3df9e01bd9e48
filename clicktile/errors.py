"""Exceptions raised while reading or writing tilemap files."""

from typing import Optional


class TileMapError(Exception):
    """Base class for every error raised by clicktile."""


# =============================================================================
# READ ERRORS
# =============================================================================

class ReadError(TileMapError):
    """A tilemap could not be decoded. Nothing partial is returned."""


class ReadIOError(ReadError):
    """
    The underlying stream failed, ended early, or held corrupt zlib data.

    The original exception is kept on ``error`` (and as ``__cause__``).
    """

    def __init__(self, error: Optional[BaseException] = None, message: Optional[str] = None):
        self.error = error
        super().__init__(message or str(error))


class InvalidMagicError(ReadError):
    def __init__(self):
        super().__init__("found invalid magic string for tilemap")


class UnsupportedVersionError(ReadError):
    def __init__(self, version: int):
        self.version = version
        super().__init__(f"version {version} of tilemap files is not supported")


class InvalidTypeError(ReadError):
    def __init__(self, type_id: int):
        self.type_id = type_id
        super().__init__(f"found invalid type 0x{type_id:02X} in property mapping")


class InvalidLayerLengthError(ReadError):
    def __init__(self):
        super().__init__("layer byte length did not match its size")


class InvalidHeaderError(ReadError):
    def __init__(self, header: str):
        self.header = header
        super().__init__(f'found invalid header "{header}"')


# =============================================================================
# WRITE ERRORS
# =============================================================================

class WriteError(TileMapError, OSError):
    """A value cannot be represented in the file format (e.g. an empty string)."""
