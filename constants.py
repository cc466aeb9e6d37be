"""Global constants for the PennFAT viewer."""

# Metadata word (FAT entry 0)
METADATA_SIZE = 2
BASE_BLOCK_SIZE = 256
MAX_BLOCK_SIZE_CONFIG = 4  # 256 << 4 = 4096
BLOCK_SIZES = tuple(BASE_BLOCK_SIZE << c for c in range(MAX_BLOCK_SIZE_CONFIG + 1))
MIN_FAT_BLOCKS = 1
MAX_FAT_BLOCKS = 32

# FAT entries
FAT_ENTRY_WIDTH = 2
FAT_ENTRY_FORMATS = {2: '<H', 4: '<I'}
FAT_FREE = 0
MAX_DATA_BLOCKS = 0xFFFE
ROOT_DATA_BLOCK = 1

# Directory entries
DIR_ENTRY_SIZE = 64
DIR_NAME_SIZE = 32
NAME_END_OF_DIR = 0
NAME_DELETED = 1
NAME_DELETED_IN_USE = 2

TYPE_UNKNOWN = 0
TYPE_FILE = 1
TYPE_DIR = 2
TYPE_SYMLINK = 4
TYPE_NAMES = {
    TYPE_UNKNOWN: 'unknown',
    TYPE_FILE: 'file',
    TYPE_DIR: 'dir',
    TYPE_SYMLINK: 'symlink',
}

PERM_NAMES = {
    0: '---',
    2: '-w-',
    4: 'r--',
    5: 'r-x',
    6: 'rw-',
    7: 'rwx',
}

MAX_TIMESTAMP = 253402300799  # 9999-12-31 23:59:59 UTC

# Directory classification heuristic
DIR_MIN_LIVE_ENTRIES = 1
DIR_MIN_VALID_FIRST_BLOCK_RATIO = 0.5
DIR_VALID_TYPES = (TYPE_FILE, TYPE_DIR, TYPE_SYMLINK)

# Viewer
TICK_INTERVAL_MS = 700
HISTORY_LIMIT = 128
HEX_BYTES_PER_ROW = 16


def end_of_chain(width: int) -> int:
    """End-of-chain sentinel for a FAT entry of the given byte width."""
    return (1 << (8 * width)) - 1
