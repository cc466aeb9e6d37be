"""Data structures for the PennFAT on-disk format."""

import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from constants import (
    BASE_BLOCK_SIZE, DIR_NAME_SIZE, FAT_ENTRY_WIDTH,
    FAT_FREE, MAX_DATA_BLOCKS, MAX_TIMESTAMP, NAME_DELETED,
    NAME_DELETED_IN_USE, PERM_NAMES, ROOT_DATA_BLOCK, TYPE_NAMES,
    end_of_chain
)


@dataclass(frozen=True)
class DecodeAnomaly:
    """A field whose value is outside what the format allows."""
    field: str
    value: int
    reason: str

    def __str__(self):
        return f"{self.field}={self.value}: {self.reason}"


class Metadata:
    """The metadata word stored in FAT entry 0."""

    def __init__(self, block_size_config: int = 0, fat_blocks: int = 1,
                 fat_width: int = FAT_ENTRY_WIDTH):
        self.block_size_config = block_size_config
        self.fat_blocks = fat_blocks
        self.fat_width = fat_width

    def pack(self) -> bytes:
        """Pack the metadata word into bytes."""
        return struct.pack('<BB', self.block_size_config, self.fat_blocks)

    @staticmethod
    def unpack(data: bytes, fat_width: int = FAT_ENTRY_WIDTH) -> 'Metadata':
        """Unpack the metadata word, without validating it."""
        config, fat_blocks = struct.unpack('<BB', data[:2])
        return Metadata(config, fat_blocks, fat_width)

    @property
    def block_size(self) -> int:
        return BASE_BLOCK_SIZE << self.block_size_config

    @property
    def fat_size(self) -> int:
        """Size of the FAT region in bytes."""
        return self.block_size * self.fat_blocks

    @property
    def fat_entries(self) -> int:
        return self.fat_size // self.fat_width

    @property
    def data_block_count(self) -> int:
        return min(self.fat_entries - 1, MAX_DATA_BLOCKS)

    @property
    def block_count(self) -> int:
        """Total blocks in the image, FAT included."""
        return self.fat_blocks + self.data_block_count

    @property
    def image_size(self) -> int:
        return self.block_count * self.block_size

    @property
    def data_size(self) -> int:
        return self.data_block_count * self.block_size

    @property
    def end_of_chain(self) -> int:
        return end_of_chain(self.fat_width)

    @property
    def root_index(self) -> int:
        return self.block_index(ROOT_DATA_BLOCK)

    def block_index(self, data_block: int) -> int:
        """Physical block index of a 1-based data block number."""
        return self.fat_blocks + data_block - 1

    def data_block(self, index: int) -> Optional[int]:
        """Data block number of a physical index, or None inside the FAT."""
        if index < self.fat_blocks:
            return None
        return index - self.fat_blocks + 1

    def __eq__(self, other):
        if not isinstance(other, Metadata):
            return NotImplemented
        return (self.block_size_config, self.fat_blocks, self.fat_width) == \
            (other.block_size_config, other.fat_blocks, other.fat_width)

    def __repr__(self):
        return (f"Metadata(block_size={self.block_size}, fat_blocks={self.fat_blocks}, "
                f"fat_width={self.fat_width})")


class FatRegion:
    """All FAT entries of an image, indexed by data block number."""

    FREE = 'free'
    END = 'end'
    NEXT = 'next'
    RESERVED = 'reserved'
    ANOMALY = 'anomaly'

    def __init__(self, metadata: Metadata, entries: List[int]):
        self.metadata = metadata
        self.entries = entries
        self.anomalies: Dict[int, DecodeAnomaly] = {}
        for i in range(1, min(len(entries), metadata.data_block_count + 1)):
            if self.kind(i) == self.ANOMALY:
                self.anomalies[i] = DecodeAnomaly(
                    f"fat[{i}]", entries[i],
                    f"points outside data blocks 1..{metadata.data_block_count}")

    def __len__(self):
        return len(self.entries)

    def kind(self, i: int) -> str:
        """Classify entry i."""
        if i == 0 or i > self.metadata.data_block_count:
            return self.RESERVED
        value = self.entries[i]
        if value == FAT_FREE:
            return self.FREE
        if value == self.metadata.end_of_chain:
            return self.END
        if 1 <= value <= self.metadata.data_block_count:
            return self.NEXT
        return self.ANOMALY

    def occupied(self) -> List[Tuple[int, int]]:
        """(data block, entry value) for every non-free entry."""
        return [(i, self.entries[i])
                for i in range(1, min(len(self.entries), self.metadata.data_block_count + 1))
                if self.entries[i] != FAT_FREE]

    def next_block(self, data_block: int) -> Optional[int]:
        """Next data block in the chain, or None at the end or on bad links."""
        if data_block < 1 or data_block >= len(self.entries):
            return None
        if self.kind(data_block) != self.NEXT:
            return None
        return self.entries[data_block]

    def chain(self, first: int) -> List[int]:
        """Walk a file's chain, stopping at end, bad links or a revisit."""
        blocks = []
        seen = set()
        current: Optional[int] = first
        while current is not None and current not in seen:
            if current < 1 or current > self.metadata.data_block_count:
                break
            if self.kind(current) == self.FREE:
                break
            blocks.append(current)
            seen.add(current)
            current = self.next_block(current)
        return blocks


class DirEntry:
    """One 64-byte directory entry."""

    def __init__(self, name: bytes = b'', size: int = 0, first_block: int = 0,
                 entry_type: int = 0, perm: int = 0, mtime: int = 0):
        self.raw_name = name
        self.size = size
        self.first_block = first_block
        self.entry_type = entry_type
        self.perm = perm
        self.mtime = mtime
        self.anomalies: List[DecodeAnomaly] = []

    def pack(self) -> bytes:
        """Pack directory entry."""
        name = self.raw_name[:DIR_NAME_SIZE].ljust(DIR_NAME_SIZE, b'\x00')
        return name + struct.pack('<IHBBQ', self.size, self.first_block,
                                  self.entry_type, self.perm, self.mtime) + b'\x00' * 16

    @staticmethod
    def unpack(data: bytes) -> 'DirEntry':
        """Unpack directory entry."""
        size, first_block, entry_type, perm, mtime = struct.unpack_from('<IHBBQ', data, DIR_NAME_SIZE)
        return DirEntry(bytes(data[:DIR_NAME_SIZE]), size, first_block, entry_type, perm, mtime)

    @property
    def deleted(self) -> bool:
        return bool(self.raw_name) and self.raw_name[0] in (NAME_DELETED, NAME_DELETED_IN_USE)

    @property
    def name_bytes(self) -> bytes:
        """Name up to the terminator, without the deleted marker."""
        raw = self.raw_name[1:] if self.deleted else self.raw_name
        return raw.split(b'\x00', 1)[0]

    @property
    def name(self) -> str:
        return self.name_bytes.decode('ascii', errors='replace')

    @property
    def type_name(self) -> str:
        return TYPE_NAMES.get(self.entry_type, f"?{self.entry_type}")

    @property
    def perm_name(self) -> str:
        return PERM_NAMES.get(self.perm, f"?{self.perm}")

    @property
    def mtime_valid(self) -> bool:
        return self.mtime <= MAX_TIMESTAMP

    def __eq__(self, other):
        if not isinstance(other, DirEntry):
            return NotImplemented
        return (self.raw_name, self.size, self.first_block, self.entry_type,
                self.perm, self.mtime, self.anomalies) == \
            (other.raw_name, other.size, other.first_block, other.entry_type,
             other.perm, other.mtime, other.anomalies)

    def __repr__(self):
        return (f"DirEntry(name={self.name!r}, size={self.size}, "
                f"first_block={self.first_block}, type={self.type_name})")

    def format_mtime(self) -> str:
        if not self.mtime_valid:
            return "invalid"
        return datetime.fromtimestamp(self.mtime, tz=timezone.utc).strftime('%Y-%m-%d %H:%M:%S')


@dataclass(frozen=True)
class MetadataBlock:
    index: int
    data: bytes
    metadata: Metadata


@dataclass(frozen=True)
class FatTableBlock:
    """A FAT block; first_entry is the FAT index of its first entry."""
    index: int
    data: bytes
    first_entry: int
    entries: Tuple[int, ...]


@dataclass(frozen=True)
class DirectoryBlock:
    index: int
    data: bytes
    entries: Tuple[DirEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RawBlock:
    index: int
    data: bytes
