"""Selection, view mode and back-history for the block viewer."""

from collections import deque
from typing import Optional, Set, TYPE_CHECKING

from constants import HISTORY_LIMIT

if TYPE_CHECKING:
    from refresh import Snapshot

# Input events understood by handle()
MOVE_UP = 'move_up'
MOVE_DOWN = 'move_down'
FOLLOW_CHAIN = 'follow_chain'
BACK = 'back'
JUMP = 'jump'
JUMP_ROOT = 'jump_root'
TOGGLE_RAW = 'toggle_raw'
FORCE_RAW = 'force_raw'
FORCE_AUTO = 'force_auto'
QUIT = 'quit'

EVENTS = (MOVE_UP, MOVE_DOWN, FOLLOW_CHAIN, BACK, JUMP, JUMP_ROOT,
          TOGGLE_RAW, FORCE_RAW, FORCE_AUTO, QUIT)


class NavigationState:
    """Which block is selected and how it should be shown."""

    def __init__(self, block_count: int = 0, history_limit: int = HISTORY_LIMIT):
        self.block_count = block_count
        self.selected = 0
        self.history = deque(maxlen=history_limit)
        self.raw_blocks: Set[int] = set()
        self.version = 0

    def update_bounds(self, block_count: int):
        """Adopt the block count of a newly published snapshot."""
        self.block_count = block_count

    def select(self, index: int) -> bool:
        """Select a block. Out-of-range indices are ignored."""
        if index < 0 or index >= self.block_count or index == self.selected:
            return False
        self.history.append(self.selected)
        self.selected = index
        self.version += 1
        return True

    def move(self, delta: int) -> bool:
        return self.select(self.selected + delta)

    def back(self) -> bool:
        """Return to the previously selected block."""
        if not self.history:
            return False
        self.selected = self.history.pop()
        self.version += 1
        return True

    def toggle_raw(self):
        """Flip the forced hex view for the current block only."""
        if self.selected in self.raw_blocks:
            self.raw_blocks.discard(self.selected)
        else:
            self.raw_blocks.add(self.selected)
        self.version += 1

    def set_raw(self, raw: bool):
        if raw:
            self.raw_blocks.add(self.selected)
        else:
            self.raw_blocks.discard(self.selected)
        self.version += 1

    def is_raw(self, index: Optional[int] = None) -> bool:
        return (self.selected if index is None else index) in self.raw_blocks

    def follow_chain(self, snapshot: 'Snapshot') -> bool:
        """Select the next block of the file the current block belongs to."""
        metadata = snapshot.metadata
        data_block = metadata.data_block(self.selected)
        if data_block is None:
            return False
        nxt = snapshot.fat.next_block(data_block)
        if nxt is None:
            return False
        return self.select(metadata.block_index(nxt))

    def visible_blocks(self) -> Set[int]:
        """Blocks the display currently needs decoded."""
        return {self.selected}

    def handle(self, event: str, snapshot: Optional['Snapshot'] = None,
               index: Optional[int] = None) -> bool:
        """Apply one input event. Returns False when the viewer should quit."""
        if event == QUIT:
            return False
        if event == MOVE_UP:
            self.move(-1)
        elif event == MOVE_DOWN:
            self.move(1)
        elif event == BACK:
            self.back()
        elif event == TOGGLE_RAW:
            self.toggle_raw()
        elif event == FORCE_RAW:
            self.set_raw(True)
        elif event == FORCE_AUTO:
            self.set_raw(False)
        elif event == JUMP and index is not None:
            self.select(index)
        elif event == JUMP_ROOT and snapshot is not None:
            self.select(snapshot.metadata.root_index)
        elif event == FOLLOW_CHAIN and snapshot is not None:
            self.follow_chain(snapshot)
        return True
