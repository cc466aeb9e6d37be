"""Read-only block access to a PennFAT image that may change underneath us."""

import os
import zlib
from typing import Optional, Tuple

from constants import BASE_BLOCK_SIZE, METADATA_SIZE
from errors import (
    EmptyImage, ImageIOError, ImageNotFound, ImagePermissionDenied,
    OutOfRange, ShortRead
)

# (size, mtime_ns, inode, crc32 of the metadata word)
Signature = Tuple[int, int, int, int]


class ImageReader:
    """Divides an image file into fixed-size blocks for reading.

    The file is opened unbuffered: another process writes it, so every read
    and every digest must come from the file and not from a cached window.
    """

    def __init__(self, path: str, block_size: int = BASE_BLOCK_SIZE):
        self.path = path
        self.block_size = block_size
        self.size = 0
        self.modified = 0.0
        self.reads = 0
        self.fd = None
        self._ino = None
        self._baseline: Optional[Signature] = None

    def open(self):
        """Open the image and record the first baseline."""
        try:
            self.fd = open(self.path, 'rb', buffering=0)
        except FileNotFoundError:
            raise ImageNotFound(f"{self.path}: no such file")
        except IsADirectoryError:
            raise ImageIOError(f"{self.path}: is a directory")
        except PermissionError:
            raise ImagePermissionDenied(f"{self.path}: permission denied")
        except OSError as e:
            raise ImageIOError(f"{self.path}: {e.strerror or e}")

        st = os.fstat(self.fd.fileno())
        if st.st_size == 0:
            self.close()
            raise EmptyImage(f"{self.path}: image is empty")
        self._ino = st.st_ino
        self._baseline = self._observe()
        return self

    def close(self):
        """Close the image."""
        if self.fd:
            self.fd.close()
            self.fd = None

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc):
        self.close()

    @property
    def block_count(self) -> int:
        return self.size // self.block_size

    @property
    def signature(self) -> Optional[Signature]:
        """The last observed baseline."""
        return self._baseline

    def read_range(self, offset: int, length: int) -> bytes:
        """Read exactly length bytes starting at offset."""
        if self.fd is None:
            raise ImageIOError(f"{self.path}: image is not open")
        try:
            self.fd.seek(offset)
            data = b''
            while len(data) < length:
                chunk = self.fd.read(length - len(data))
                if not chunk:
                    break
                data += chunk
        except OSError as e:
            raise ImageIOError(f"Error reading {self.path} at {offset}: {e}")
        self.reads += 1
        if len(data) < length:
            raise ShortRead(offset, length, len(data))
        return data

    def read_block(self, index: int) -> bytes:
        """Read a block from the image."""
        if index < 0 or index >= self.block_count:
            raise OutOfRange(index, self.block_count)
        return self.read_range(index * self.block_size, self.block_size)

    def probe_changed(self) -> bool:
        """Check whether the file changed since the last probe.

        This is the only place the baseline moves, so one mutation is
        reported exactly once.
        """
        current = self._observe()
        changed = current != self._baseline
        self._baseline = current
        return changed

    def unchanged_since(self, signature: Optional[Signature]) -> bool:
        """Re-observe the file without moving the baseline."""
        return self._observe() == signature

    def _observe(self) -> Signature:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            raise ImageNotFound(f"{self.path}: no such file")
        except OSError as e:
            raise ImageIOError(f"Error checking {self.path}: {e}")

        # the path was replaced (e.g. written via rename), follow it
        if st.st_ino != self._ino:
            self.close()
            try:
                self.fd = open(self.path, 'rb', buffering=0)
            except OSError as e:
                raise ImageIOError(f"Error reopening {self.path}: {e}")
            self._ino = st.st_ino

        self.size = st.st_size
        self.modified = st.st_mtime
        try:
            self.fd.seek(0)
            head = self.fd.read(METADATA_SIZE)
        except OSError as e:
            raise ImageIOError(f"Error reading {self.path}: {e}")
        return (st.st_size, st.st_mtime_ns, st.st_ino, zlib.crc32(head) & 0xFFFFFFFF)
