"""Little-endian byte cursor and text decoding helpers."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from espstrings.core.constants import TEXT_ENCODINGS
from espstrings.core.errors import TruncatedData

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")


class ByteReader:
    """Read-only cursor over a bytes-like buffer.

    The buffer is wrapped in a memoryview and never written to, so the same
    source can be shared by several readers (e.g. one per top-level group).
    """

    __slots__ = ("_buf", "_pos", "_end")

    def __init__(self, data: bytes | bytearray | memoryview, start: int = 0, end: int | None = None) -> None:
        self._buf = memoryview(data)
        self._pos = start
        self._end = len(self._buf) if end is None else end

    def tell(self) -> int:
        return self._pos

    def seek(self, pos: int) -> None:
        self._pos = pos

    @property
    def end(self) -> int:
        return self._end

    def remaining(self) -> int:
        return self._end - self._pos

    def at_end(self) -> bool:
        return self._pos >= self._end

    def _require(self, n: int, what: str) -> None:
        if self._pos + n > self._end:
            raise TruncatedData(
                f"Unexpected end of data reading {what}: need {n} bytes at offset "
                f"0x{self._pos:X}, {max(self.remaining(), 0)} left"
            )

    def read_bytes(self, n: int, what: str = "bytes") -> bytes:
        self._require(n, what)
        chunk = bytes(self._buf[self._pos : self._pos + n])
        self._pos += n
        return chunk

    def read_view(self, n: int, what: str = "bytes") -> memoryview:
        """Like read_bytes but without copying."""
        self._require(n, what)
        view = self._buf[self._pos : self._pos + n]
        self._pos += n
        return view

    def sub_reader(self, n: int, what: str = "block") -> ByteReader:
        """Return a reader bounded to the next n bytes and advance past them."""
        self._require(n, what)
        child = ByteReader(self._buf, self._pos, self._pos + n)
        self._pos += n
        return child

    def peek(self, n: int) -> bytes:
        """Return up to n bytes without advancing (short at end of data)."""
        return bytes(self._buf[self._pos : min(self._pos + n, self._end)])

    def skip(self, n: int, what: str = "bytes") -> None:
        self._require(n, what)
        self._pos += n

    def read_tag(self, what: str = "type tag") -> bytes:
        return self.read_bytes(4, what)

    def read_u8(self, what: str = "u8") -> int:
        self._require(1, what)
        value = self._buf[self._pos]
        self._pos += 1
        return value

    def read_u16(self, what: str = "u16") -> int:
        self._require(2, what)
        value = _U16.unpack_from(self._buf, self._pos)[0]
        self._pos += 2
        return value

    def read_u32(self, what: str = "u32") -> int:
        self._require(4, what)
        value = _U32.unpack_from(self._buf, self._pos)[0]
        self._pos += 4
        return value


def pack_u16(value: int) -> bytes:
    return _U16.pack(value)


def pack_u32(value: int) -> bytes:
    return _U32.pack(value)


def unpack_u32(data: bytes | bytearray | memoryview, offset: int = 0) -> int:
    if len(data) < offset + 4:
        raise TruncatedData(f"Need 4 bytes at offset {offset}, have {len(data) - offset}")
    return _U32.unpack_from(data, offset)[0]


@dataclass(frozen=True)
class RawText:
    """Decoded text plus the encoding that produced it."""

    content: str
    encoding: str


def decode_text(raw: bytes | bytearray | memoryview) -> RawText:
    """Decode bytes trying UTF-8 first, then the legacy Windows code pages.

    cp1252 leaves five byte values undefined, so it can reject input that
    cp1250/cp1251 accept. If every candidate fails the bytes are decoded as
    UTF-8 with replacement characters; this never raises.
    """
    raw = bytes(raw)
    for encoding in TEXT_ENCODINGS:
        try:
            return RawText(raw.decode(encoding), encoding)
        except UnicodeDecodeError:
            continue
    return RawText(raw.decode("utf-8", errors="replace"), "utf-8")


def decode_zstring(raw: bytes | bytearray | memoryview) -> RawText:
    """Decode a null-terminated string; everything after the first NUL is ignored."""
    raw = bytes(raw)
    nul = raw.find(b"\x00")
    if nul != -1:
        raw = raw[:nul]
    return decode_text(raw)


def decode_bstring(reader: ByteReader) -> RawText:
    """Read a u32 length-prefixed string (NUL terminator optional) from the cursor."""
    length = reader.read_u32("string length")
    return decode_zstring(reader.read_bytes(length, "string content"))


def encode_text(text: str, encoding: str | None = None) -> tuple[bytes, str]:
    """Encode text with the preferred encoding if it reads back unchanged, else UTF-8.

    "Reads back" means through decode_text, which tries UTF-8 first: legacy
    bytes that happen to form valid UTF-8 would come back as different text.

    Returns (encoded_bytes, encoding_used). No terminator is added.
    """
    if encoding and encoding.lower().replace("_", "-") not in ("utf-8", "utf8"):
        try:
            encoded = text.encode(encoding)
        except (UnicodeEncodeError, LookupError):
            pass
        else:
            if decode_text(encoded).content == text:
                return encoded, encoding
    return text.encode("utf-8"), "utf-8"
