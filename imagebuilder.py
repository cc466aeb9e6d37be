"""Build small PennFAT images for the test suite."""

import os
import struct
import time
from typing import Dict, Iterable, Optional

from constants import TYPE_FILE
from structures import DirEntry, Metadata


def make_entry(name, size: int = 0, first_block: int = 0, entry_type: int = TYPE_FILE,
               perm: int = 6, mtime: Optional[int] = None) -> DirEntry:
    """A directory entry; name may be str or raw bytes (for deleted markers)."""
    raw = name.encode('ascii') if isinstance(name, str) else name
    if mtime is None:
        mtime = 1700000000
    return DirEntry(raw, size, first_block, entry_type, perm, mtime)


def dir_block(entries: Iterable[DirEntry], block_size: int) -> bytes:
    data = b''.join(e.pack() for e in entries)
    assert len(data) <= block_size
    return data.ljust(block_size, b'\x00')


def build_image(path: str, block_size_config: int = 0, fat_blocks: int = 1,
                fat: Optional[Dict[int, int]] = None,
                blocks: Optional[Dict[int, bytes]] = None,
                truncate_to: Optional[int] = None) -> Metadata:
    """Write an image; fat maps data block -> entry, blocks maps physical index -> bytes."""
    metadata = Metadata(block_size_config, fat_blocks)
    image = bytearray(metadata.image_size)
    image[0:2] = metadata.pack()
    for data_block, value in (fat or {}).items():
        struct.pack_into('<H', image, data_block * 2, value)
    for index, data in (blocks or {}).items():
        offset = index * metadata.block_size
        image[offset:offset + len(data)] = data
    if truncate_to is not None:
        del image[truncate_to:]
    with open(path, 'wb') as f:
        f.write(image)
    return metadata


def patch(path: str, offset: int, data: bytes):
    """Overwrite bytes in place and push the mtime forward."""
    with open(path, 'r+b') as f:
        f.seek(offset)
        f.write(data)
    bump_mtime(path)


def bump_mtime(path: str):
    """Move mtime clearly forward so coarse timestamps still register a change."""
    st = os.stat(path)
    later = max(st.st_mtime_ns, time.time_ns()) + 2_000_000_000
    os.utime(path, ns=(st.st_atime_ns, later))


def sample_image(path: str) -> Metadata:
    """256-byte blocks, one FAT block: root with a file and a deleted slot."""
    metadata = Metadata(0, 1)
    root = dir_block([
        make_entry('hello.txt', size=300, first_block=2),
        make_entry(b'\x01old.txt', size=5, first_block=4),
        make_entry('sub', size=0, first_block=5, entry_type=2, perm=7),
    ], metadata.block_size)
    return build_image(path, fat={1: 0xFFFF, 2: 3, 3: 0xFFFF, 5: 0xFFFF}, blocks={
        metadata.block_index(1): root,
        metadata.block_index(2): b'A' * 256,
        metadata.block_index(3): b'B' * 44,
        metadata.block_index(5): dir_block([], metadata.block_size),
    })
