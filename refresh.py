"""Polling refresh engine that keeps a consistent snapshot of a live image.

Another process may rewrite the image at any time. Each tick probes the file
once; when it changed (or the previous cycle failed, or the display needs a
block that is not decoded yet) the engine reads the metadata word, the FAT
region and the visible blocks, checks the file did not move underneath the
reads, decodes, and swaps in a new Snapshot. A failed cycle never replaces
the published snapshot.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Set

from constants import METADATA_SIZE, ROOT_DATA_BLOCK
from decoder import (
    Block, decode_block, decode_fat_region, decode_metadata, validate_image_size
)
from errors import ImageIOError, MalformedMetadata, PfViewError, ShortRead, TornRead
from image_reader import ImageReader
from navigation import NavigationState
from structures import FatRegion, Metadata

IDLE = 'idle'
PROBING = 'probing'
READING = 'reading'
DECODING = 'decoding'
PUBLISHED = 'published'


@dataclass(frozen=True)
class Snapshot:
    """A fully decoded view of the image at one point in time."""
    sequence: int
    metadata: Metadata
    fat: FatRegion
    blocks: Mapping[int, Block] = field(default_factory=lambda: MappingProxyType({}))
    file_size: int = 0
    modified: float = 0.0

    @property
    def block_count(self) -> int:
        return self.metadata.block_count


class RefreshEngine:
    """Drives the Idle/Probing/Reading/Decoding/Published cycle."""

    def __init__(self, reader: ImageReader, navigation: NavigationState):
        self.reader = reader
        self.navigation = navigation
        self.state = IDLE
        self.transient_errors = 0
        self.last_error: Optional[PfViewError] = None
        self.fatal_error: Optional[MalformedMetadata] = None
        self._snapshot: Optional[Snapshot] = None
        self._retry = False
        self._malformed = False

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    def load(self) -> Snapshot:
        """Run the first cycle; errors here are fatal to the caller."""
        self.reader.probe_changed()
        snapshot = self._cycle(full=True, startup=True)
        self._publish(snapshot)
        return snapshot

    def tick(self) -> bool:
        """Do one bounded step of work. Returns True if a snapshot was published."""
        if self.fatal_error is not None:
            return False

        self.state = PROBING
        try:
            changed = self.reader.probe_changed()
        except ImageIOError as e:
            self._fail(e)
            return False

        missing = self._missing_blocks()
        if not (changed or self._retry or missing or self._snapshot is None):
            # unchanged: Probing -> Idle
            self.state = IDLE
            return False

        try:
            snapshot = self._cycle(full=changed or self._retry or self._snapshot is None)
        except MalformedMetadata as e:
            # a writer midway through block 0 gets one tick of grace; bad
            # metadata on a file that has since stayed put is permanent
            if self._snapshot is None or (self._malformed and not changed):
                self.fatal_error = e
                self.last_error = e
                self.state = IDLE
                return False
            self._fail(e)
            self._malformed = True
            return False
        except ImageIOError as e:
            self._fail(e)
            return False

        self._publish(snapshot)
        return True

    def _missing_blocks(self) -> Set[int]:
        if self._snapshot is None:
            return set()
        wanted = self.navigation.visible_blocks()
        return {i for i in wanted
                if i < self._snapshot.block_count and i not in self._snapshot.blocks}

    def _fail(self, error: PfViewError):
        self._malformed = False
        self.transient_errors += 1
        self.last_error = error
        self._retry = True
        self.state = IDLE

    def _cycle(self, full: bool, startup: bool = False) -> Snapshot:
        reader = self.reader
        baseline = reader.signature
        previous = self._snapshot

        self.state = READING
        if full or previous is None:
            metadata = decode_metadata(reader.read_range(0, METADATA_SIZE))
            if reader.size < metadata.image_size:
                if startup:
                    validate_image_size(metadata, reader.size)
                raise ShortRead(0, metadata.image_size, reader.size)
            reader.block_size = metadata.block_size
            fat_bytes = b''.join(reader.read_block(i) for i in range(metadata.fat_blocks))
            carried: Dict[int, Block] = {}
        else:
            metadata = previous.metadata
            fat_bytes = None
            carried = dict(previous.blocks)

        wanted = sorted(i for i in self.navigation.visible_blocks()
                        if i < metadata.block_count and i not in carried)
        raw = {i: reader.read_block(i) for i in wanted}

        # every byte above must come from one state of the file
        if not reader.unchanged_since(baseline):
            raise TornRead(f"{reader.path} changed during refresh")

        self.state = DECODING
        fat = decode_fat_region(fat_bytes, metadata) if fat_bytes is not None else previous.fat
        directories = {metadata.block_index(b) for b in fat.chain(ROOT_DATA_BLOCK)}
        blocks = carried
        for i, data in raw.items():
            blocks[i] = decode_block(i, data, metadata, directories)

        sequence = previous.sequence + 1 if previous is not None else 1
        return Snapshot(sequence, metadata, fat, MappingProxyType(blocks),
                        reader.size, reader.modified)

    def _publish(self, snapshot: Snapshot):
        self._snapshot = snapshot
        self._retry = False
        self._malformed = False
        self.last_error = None
        self.navigation.update_bounds(snapshot.block_count)
        self.state = PUBLISHED
