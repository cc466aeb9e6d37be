"""Decoding raw PennFAT bytes into typed blocks.

Everything here is pure: bytes and an already-decoded Metadata go in, records
come out. Block 0 holds the metadata word, the following FAT blocks hold the
allocation table, and everything after is a data block that is either a
directory or plain file content. Data blocks carry no type tag, so directories
are recognised with the heuristic in looks_like_directory().
"""

import struct
from typing import AbstractSet, List, Union

from constants import (
    DIR_ENTRY_SIZE, DIR_MIN_LIVE_ENTRIES, DIR_MIN_VALID_FIRST_BLOCK_RATIO,
    DIR_VALID_TYPES, FAT_ENTRY_FORMATS, FAT_ENTRY_WIDTH, MAX_BLOCK_SIZE_CONFIG,
    MAX_FAT_BLOCKS, METADATA_SIZE, MIN_FAT_BLOCKS, NAME_END_OF_DIR, PERM_NAMES,
    TYPE_NAMES
)
from errors import MalformedMetadata
from structures import (
    DecodeAnomaly, DirectoryBlock, DirEntry, FatRegion, FatTableBlock,
    Metadata, MetadataBlock, RawBlock
)

Block = Union[MetadataBlock, FatTableBlock, DirectoryBlock, RawBlock]


def decode_metadata(data: bytes, fat_width: int = FAT_ENTRY_WIDTH) -> Metadata:
    """Parse and validate the metadata word at the start of block 0."""
    if len(data) < METADATA_SIZE:
        raise MalformedMetadata(f"image too small for metadata ({len(data)} bytes)")
    if fat_width not in FAT_ENTRY_FORMATS:
        raise MalformedMetadata(f"unsupported FAT entry width {fat_width}")

    metadata = Metadata.unpack(data, fat_width)
    if metadata.block_size_config > MAX_BLOCK_SIZE_CONFIG:
        raise MalformedMetadata(
            f"block size config {metadata.block_size_config} is not in 0..{MAX_BLOCK_SIZE_CONFIG}")
    if not MIN_FAT_BLOCKS <= metadata.fat_blocks <= MAX_FAT_BLOCKS:
        raise MalformedMetadata(
            f"FAT block count {metadata.fat_blocks} is not in {MIN_FAT_BLOCKS}..{MAX_FAT_BLOCKS}")
    return metadata


def validate_image_size(metadata: Metadata, size: int):
    """Reject images shorter than their FAT configuration describes."""
    if size < metadata.image_size:
        raise MalformedMetadata(
            f"file size {size} does not match FAT configuration "
            f"({metadata.block_count} blocks of {metadata.block_size} = {metadata.image_size} bytes)")


def _unpack_entries(data: bytes, width: int) -> List[int]:
    usable = len(data) - len(data) % width
    return [v for (v,) in struct.iter_unpack(FAT_ENTRY_FORMATS[width], data[:usable])]


def decode_fat_region(data: bytes, metadata: Metadata) -> FatRegion:
    """Decode the whole FAT region (blocks 0..fat_blocks-1)."""
    return FatRegion(metadata, _unpack_entries(data[:metadata.fat_size], metadata.fat_width))


def _entry_anomalies(entry: DirEntry, metadata: Metadata) -> List[DecodeAnomaly]:
    found = []
    if entry.first_block > metadata.data_block_count:
        found.append(DecodeAnomaly('first_block', entry.first_block,
                                   f"outside data blocks 1..{metadata.data_block_count}"))
    if entry.size > metadata.data_size:
        found.append(DecodeAnomaly('size', entry.size, "larger than the data region"))
    if entry.entry_type not in TYPE_NAMES:
        found.append(DecodeAnomaly('type', entry.entry_type, "unknown entry type"))
    if entry.perm not in PERM_NAMES:
        found.append(DecodeAnomaly('perm', entry.perm, "unknown permission bits"))
    if not entry.mtime_valid:
        found.append(DecodeAnomaly('mtime', entry.mtime, "not a valid timestamp"))
    return found


def decode_directory(data: bytes, metadata: Metadata) -> List[DirEntry]:
    """Parse directory entries up to the first end-of-directory slot."""
    entries = []
    for offset in range(0, len(data) - DIR_ENTRY_SIZE + 1, DIR_ENTRY_SIZE):
        if data[offset] == NAME_END_OF_DIR:
            break
        entry = DirEntry.unpack(data[offset:offset + DIR_ENTRY_SIZE])
        if not entry.deleted:
            entry.anomalies = _entry_anomalies(entry, metadata)
        entries.append(entry)
    return entries


def _printable_name(name: bytes) -> bool:
    return bool(name) and all(0x20 <= b < 0x7F for b in name)


def looks_like_directory(entries: List[DirEntry], metadata: Metadata) -> bool:
    """Decide whether parsed entries plausibly came from a directory block.

    Every live entry must be structurally sound, and at least
    DIR_MIN_VALID_FIRST_BLOCK_RATIO of them must point at a real data block
    or the empty-file sentinel.
    """
    live = [e for e in entries if not e.deleted]
    if len(live) < DIR_MIN_LIVE_ENTRIES:
        return False

    for entry in live:
        if not _printable_name(entry.name_bytes):
            return False
        if entry.entry_type not in DIR_VALID_TYPES or entry.perm not in PERM_NAMES:
            return False
        if entry.size > metadata.data_size:
            return False
        if entry.size > 0 and entry.first_block == 0:
            return False

    linked = sum(1 for e in live if e.first_block <= metadata.data_block_count)
    return linked >= DIR_MIN_VALID_FIRST_BLOCK_RATIO * len(live)


def decode_block(index: int, data: bytes, metadata: Metadata,
                 directories: AbstractSet[int] = frozenset()) -> Block:
    """Classify and decode one block.

    directories holds indices already known to be directories (the root
    chain); they skip the heuristic. Never raises: anything that does not
    decode cleanly comes back as a RawBlock.
    """
    data = bytes(data)
    if len(data) != metadata.block_size or index < 0:
        return RawBlock(index, data)
    if index == 0:
        return MetadataBlock(index, data, metadata)
    if index < metadata.fat_blocks:
        per_block = metadata.block_size // metadata.fat_width
        return FatTableBlock(index, data, index * per_block,
                             tuple(_unpack_entries(data, metadata.fat_width)))

    entries = decode_directory(data, metadata)
    if index == metadata.root_index or index in directories or \
            looks_like_directory(entries, metadata):
        return DirectoryBlock(index, data, tuple(entries))
    return RawBlock(index, data)
