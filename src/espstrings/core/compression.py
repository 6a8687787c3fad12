"""zlib compression/decompression for TES4 compressed records."""

from __future__ import annotations

import zlib

from espstrings.core.binary import pack_u32, unpack_u32
from espstrings.core.errors import TruncatedData, UnsupportedCompression


def decompress_record_data(raw: bytes | bytearray | memoryview) -> tuple[bytes, int]:
    """Decompress a compressed record's data payload.

    Args:
        raw: The full data payload (starts with 4-byte decompressed size,
             followed by zlib-compressed data).

    Returns:
        Tuple of (decompressed_bytes, original_decompressed_size).
    """
    if len(raw) < 4:
        raise TruncatedData("Compressed data too short: missing decompressed size field")
    decompressed_size = unpack_u32(raw)
    try:
        decompressed = zlib.decompress(bytes(raw[4:]))
    except zlib.error as e:
        raise UnsupportedCompression(f"zlib stream could not be decompressed: {e}") from e
    if len(decompressed) != decompressed_size:
        raise UnsupportedCompression(
            f"Decompressed size mismatch: expected {decompressed_size}, got {len(decompressed)}"
        )
    return decompressed, decompressed_size


def compress_record_data(data: bytes) -> bytes:
    """Compress data for a compressed record.

    Returns:
        4-byte decompressed size (little-endian) + zlib compressed data.
    """
    try:
        compressed = zlib.compress(data)
    except zlib.error as e:
        raise UnsupportedCompression(f"zlib compression failed: {e}") from e
    return pack_u32(len(data)) + compressed
