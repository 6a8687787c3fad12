"""Constants for the TES4 plugin container (Skyrim / Fallout 4 era) and its string tables."""

from enum import Enum, IntEnum, IntFlag

# Magic type tags
GRUP_TYPE = b"GRUP"
TES4_TYPE = b"TES4"
XXXX_TYPE = b"XXXX"
EDID_TYPE = b"EDID"
MAST_TYPE = b"MAST"

# Type(4) + DataSize(4) + Flags(4) + FormID(4) + Stamp(2) + VCS(2) + Version(2) + Unknown(2)
RECORD_HEADER_SIZE = 24

# "GRUP"(4) + GroupSize(4) + Label(4) + GroupType(4) + Stamp(2) + VCS(2) + Unknown(4)
GRUP_HEADER_SIZE = 24

# Subrecord header: Type(4) + Size(2)
SUBRECORD_HEADER_SIZE = 6

# Largest payload that fits a plain subrecord header. 0xFFFF is reserved:
# it only appears after an XXXX marker.
MAX_SUBRECORD_SIZE = 0xFFFE
OVERSIZE_SENTINEL = 0xFFFF

# Size field written on the real subrecord that follows an XXXX marker
XXXX_FOLLOWER_SIZE = 0

# Light master (ESL) address space
LIGHT_MASTER_SENTINEL = 0xFE
LIGHT_MASTER_CAPACITY = 2048

# String table header: Count(4) + DataSize(4); directory entry: ID(4) + Offset(4)
STRING_TABLE_HEADER_SIZE = 8
STRING_TABLE_DIR_ENTRY_SIZE = 8

# Fallback chain for legacy single-byte text after UTF-8 fails
TEXT_ENCODINGS = ("utf-8", "cp1252", "cp1250", "cp1251")

DEFAULT_LANGUAGE = "english"


class RecordFlag(IntFlag):
    """Record header flags used by this package."""
    MASTER = 0x00000001
    DELETED = 0x00000020
    LOCALIZED = 0x00000080
    LIGHT_MASTER = 0x00000200
    COMPRESSED = 0x00040000


class GroupType(IntEnum):
    """Known GRUP kinds. Labels of the FormID-labelled kinds hold a parent FormID."""
    TOP = 0
    WORLD_CHILDREN = 1
    INTERIOR_CELL_BLOCK = 2
    INTERIOR_CELL_SUBBLOCK = 3
    EXTERIOR_CELL_BLOCK = 4
    EXTERIOR_CELL_SUBBLOCK = 5
    CELL_CHILDREN = 6
    TOPIC_CHILDREN = 7
    CELL_PERSISTENT_CHILDREN = 8
    CELL_TEMPORARY_CHILDREN = 9


FORMID_LABEL_GROUPS = frozenset({
    GroupType.WORLD_CHILDREN,
    GroupType.CELL_CHILDREN,
    GroupType.TOPIC_CHILDREN,
    GroupType.CELL_PERSISTENT_CHILDREN,
    GroupType.CELL_TEMPORARY_CHILDREN,
})


class StringTableKind(Enum):
    """The three string table file types."""
    STRINGS = "STRINGS"
    DLSTRINGS = "DLSTRINGS"
    ILSTRINGS = "ILSTRINGS"

    @property
    def has_length_prefix(self) -> bool:
        return self is not StringTableKind.STRINGS

    @classmethod
    def from_extension(cls, ext: str) -> "StringTableKind":
        """Map a file extension (``.dlstrings``, ``ILSTRINGS`` ...) to a kind."""
        return cls(ext.lstrip(".").upper())
