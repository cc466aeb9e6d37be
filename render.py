"""Turn snapshots into display rows for the viewer."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple, TYPE_CHECKING

from constants import HEX_BYTES_PER_ROW
from structures import (
    DirectoryBlock, FatRegion, FatTableBlock, MetadataBlock, RawBlock
)

if TYPE_CHECKING:
    from navigation import NavigationState
    from refresh import RefreshEngine, Snapshot

# Row styles
HEADER = 'header'
NORMAL = 'normal'
DIM = 'dim'
ANOMALY = 'anomaly'

ANOMALY_MARK = '!'

INSTRUCTIONS = [
    ('q', 'quit'),
    ('r', 'view in raw mode'),
    ('d', 'view in directory mode'),
    ('t', 'toggle (raw/dir)'),
    ('j/↓', 'move down a block'),
    ('k/↑', 'move up a block'),
    ('l/→', 'move to next block in file'),
    ('h/←', 'back'),
    ('g', 'jump to block'),
    ('Home', 'root directory'),
]


@dataclass(frozen=True)
class Row:
    cells: Tuple[str, ...]
    style: str = NORMAL


def _format_time(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime('%Y-%m-%d %H:%M:%S')


def hex_rows(data: bytes, base: int = 0) -> List[Row]:
    """Hex-plus-ASCII dump, HEX_BYTES_PER_ROW bytes per row."""
    rows = []
    for i in range(0, len(data), HEX_BYTES_PER_ROW):
        chunk = data[i:i + HEX_BYTES_PER_ROW]
        hex_bytes = ' '.join(f'{b:02x}' for b in chunk)
        ascii_bytes = ''.join(chr(b) if 32 <= b < 127 else '.' for b in chunk)
        rows.append(Row((f'{base + i:08x}', hex_bytes.ljust(HEX_BYTES_PER_ROW * 3 - 1),
                         f'|{ascii_bytes}|')))
    return rows


def directory_rows(block: DirectoryBlock) -> List[Row]:
    rows = [Row(('name', 'type', 'size', 'first block', 'perm', 'modified'), HEADER)]
    for entry in block.entries:
        name = entry.name
        if entry.deleted:
            style = DIM
            name = f'{name} (deleted)'
        elif entry.anomalies:
            style = ANOMALY
            name = f'{ANOMALY_MARK} {name}'
        else:
            style = NORMAL
        rows.append(Row((name, entry.type_name, str(entry.size), str(entry.first_block),
                         entry.perm_name, entry.format_mtime()), style))
    if not block.entries:
        rows.append(Row(('(empty directory)',), DIM))
    return rows


def fat_entry_cell(fat: FatRegion, i: int) -> Tuple[str, str]:
    """Display text and style for FAT entry i."""
    kind = fat.kind(i)
    if kind == FatRegion.FREE:
        return 'free', DIM
    if kind == FatRegion.END:
        return 'end', NORMAL
    if kind == FatRegion.NEXT:
        return f'{fat.entries[i]:04x}', NORMAL
    if kind == FatRegion.RESERVED:
        return f'reserved ({fat.entries[i]:04x})', DIM
    return f'{ANOMALY_MARK} {fat.entries[i]:04x} out of range', ANOMALY


def _entry_rows(first_entry: int, values, fat: FatRegion) -> List[Row]:
    rows = [Row(('entry', 'next'), HEADER)]
    for offset, value in enumerate(values):
        i = first_entry + offset
        if i < len(fat):
            text, style = fat_entry_cell(fat, i)
        else:
            text, style = f'{value:04x}', NORMAL
        rows.append(Row((f'{i:04x}', text), style))
    return rows


def fat_table_rows(block: FatTableBlock, fat: FatRegion) -> List[Row]:
    return _entry_rows(block.first_entry, block.entries, fat)


def metadata_rows(block: MetadataBlock, fat: Optional[FatRegion] = None) -> List[Row]:
    """Summary of the metadata word, the FAT entries block 0 holds, then a hex dump."""
    md = block.metadata
    rows = [
        Row(('field', 'value'), HEADER),
        Row(('block size', f'{md.block_size} (config {md.block_size_config})')),
        Row(('FAT blocks', str(md.fat_blocks))),
        Row(('FAT entry width', f'{md.fat_width} bytes')),
        Row(('FAT entries', str(md.fat_entries))),
        Row(('data blocks', str(md.data_block_count))),
        Row(('total blocks', str(md.block_count))),
        Row(('root directory', f'block {md.root_index}')),
        Row(('',)),
    ]
    if fat is not None:
        per_block = md.block_size // md.fat_width
        rows += _entry_rows(0, fat.entries[:per_block], fat)
        rows.append(Row(('',)))
    return rows + hex_rows(block.data, block.index * md.block_size)


def render_block(snapshot: Optional['Snapshot'], navigation: 'NavigationState') -> List[Row]:
    """Rows for the currently selected block."""
    if snapshot is None:
        return [Row(('no snapshot loaded',), DIM)]

    index = navigation.selected
    if index >= snapshot.block_count:
        return [Row((f'block {index} is past the end of the image '
                     f'({snapshot.block_count} blocks)',), ANOMALY)]
    block = snapshot.blocks.get(index)
    if block is None:
        return [Row((f'loading block {index}...',), DIM)]

    base = index * snapshot.metadata.block_size
    if navigation.is_raw(index) or isinstance(block, RawBlock):
        return hex_rows(block.data, base)
    if isinstance(block, MetadataBlock):
        return metadata_rows(block, snapshot.fat)
    if isinstance(block, FatTableBlock):
        return fat_table_rows(block, snapshot.fat)
    return directory_rows(block)


def render_fatal(error) -> List[Row]:
    """Error screen shown once the image can no longer be read as PennFAT."""
    return [
        Row((f'{ANOMALY_MARK} image is no longer readable as PennFAT',), ANOMALY),
        Row((str(error),), ANOMALY),
        Row(('press q to quit',), DIM),
    ]


def block_title(snapshot: Optional['Snapshot'], navigation: 'NavigationState') -> str:
    index = navigation.selected
    if snapshot is None:
        return f'block {index}'
    block = snapshot.blocks.get(index)
    kind = {
        MetadataBlock: 'metadata',
        FatTableBlock: 'FAT',
        DirectoryBlock: 'directory',
        RawBlock: 'raw',
    }.get(type(block), '?')
    data_block = snapshot.metadata.data_block(index)
    where = f'data block {data_block}' if data_block is not None else 'FAT region'
    mode = ' [forced raw]' if navigation.is_raw(index) else ''
    return f'block {index} ({where}, {kind}){mode}'


def render_overview(snapshot: Optional['Snapshot']) -> str:
    if snapshot is None:
        return 'no image loaded'
    md = snapshot.metadata
    return (f'fat size = {md.fat_size} ({md.fat_entries} entries max), '
            f'block size: {md.block_size}, # data blocks = {md.data_block_count}, '
            f'last updated: {_format_time(snapshot.modified)}')


def render_fat_list(snapshot: Optional['Snapshot']) -> List[Row]:
    """Occupied FAT entries as 'kkkk -> nnnn'."""
    if snapshot is None:
        return []
    rows = []
    for block_num, value in snapshot.fat.occupied():
        style = ANOMALY if block_num in snapshot.fat.anomalies else NORMAL
        rows.append(Row((f'{block_num:04x}', '->', f'{value:04x}'), style))
    return rows


def render_status(engine: 'RefreshEngine') -> str:
    snapshot = engine.snapshot
    parts = [f'snapshot #{snapshot.sequence}' if snapshot else 'no snapshot',
             f'state: {engine.state}',
             f'transient errors: {engine.transient_errors}']
    if engine.fatal_error is not None:
        parts.append(f'FATAL: {engine.fatal_error}')
    elif engine.last_error is not None:
        parts.append(f'last error: {engine.last_error}')
    return ' | '.join(parts)


def render_instructions() -> str:
    return ' | '.join(f'{key}: {desc}' for key, desc in INSTRUCTIONS)


def format_rows(rows: List[Row]) -> List[Tuple[str, str]]:
    """Pad cells into aligned columns; returns (text, style) per row."""
    widths: List[int] = []
    for row in rows:
        if len(row.cells) < 2:
            continue
        for col, cell in enumerate(row.cells):
            if col == len(widths):
                widths.append(0)
            widths[col] = max(widths[col], len(cell))

    lines = []
    for row in rows:
        if len(row.cells) < 2:
            lines.append((''.join(row.cells), row.style))
            continue
        text = '  '.join(cell.ljust(widths[col]) for col, cell in enumerate(row.cells))
        lines.append((text.rstrip(), row.style))
    return lines
