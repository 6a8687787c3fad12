"""Exception taxonomy for plugin and string table processing.

Every error derives from ``EspError``, itself a ``ValueError``: malformed input
is a bad value, and callers that only care about "could not parse" can keep
catching ``ValueError``.
"""

from __future__ import annotations


class EspError(ValueError):
    """Base class. Carries optional record context for diagnostics."""

    def __init__(
        self,
        message: str,
        *,
        record_type: bytes | None = None,
        form_id: int | None = None,
    ) -> None:
        self.message = message
        self.record_type = record_type
        self.form_id = form_id
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.record_type is not None:
            parts.append(f"record {self.record_type.decode('ascii', 'replace')}")
        if self.form_id is not None:
            parts.append(f"FormID 0x{self.form_id:08X}")
        return " | ".join(parts)

    def with_context(self, record_type: bytes, form_id: int | None = None) -> EspError:
        """Attach the innermost record context, keeping any already set."""
        if self.record_type is None:
            self.record_type = record_type
            self.form_id = form_id
        return self


class MalformedHeader(EspError):
    """Wrong or missing root tag, or a header with an impossible size."""


class TruncatedData(EspError):
    """The buffer ended in the middle of a structure."""


class UnsupportedCompression(EspError):
    """zlib could not decompress (or recompress) a record body."""


class UnknownSubrecordFraming(EspError):
    """A 0xFFFF subrecord size without a preceding XXXX marker, or a bad marker."""


class StringTableMissing(EspError):
    """A localized load was requested without any string tables."""


class CapacityExceeded(EspError):
    """Too many owned records to fit the light master FormID space."""
