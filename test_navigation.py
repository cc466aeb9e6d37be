"""
Navigation state tests
======================
"""

import os
import tempfile
import unittest

import navigation as nav
from image_reader import ImageReader
from imagebuilder import sample_image
from navigation import NavigationState
from refresh import RefreshEngine


class TestSelect(unittest.TestCase):

    def test_clamps_out_of_range(self):
        state = NavigationState(64)
        state.select(10)
        self.assertFalse(state.select(64))
        self.assertFalse(state.select(-1))
        self.assertEqual(state.selected, 10)
        self.assertEqual(list(state.history), [0])

    def test_history_and_back(self):
        state = NavigationState(64)
        state.select(5)
        state.select(9)
        self.assertTrue(state.back())
        self.assertEqual(state.selected, 5)
        self.assertTrue(state.back())
        self.assertEqual(state.selected, 0)
        self.assertFalse(state.back())
        self.assertEqual(state.selected, 0)

    def test_reselect_is_noop(self):
        state = NavigationState(64)
        state.select(3)
        self.assertFalse(state.select(3))
        self.assertEqual(len(state.history), 1)

    def test_history_is_bounded(self):
        state = NavigationState(1000, history_limit=8)
        for i in range(1, 100):
            state.select(i)
        self.assertEqual(len(state.history), 8)
        self.assertEqual(state.history[-1], 98)

    def test_move(self):
        state = NavigationState(3)
        state.move(1)
        state.move(1)
        self.assertFalse(state.move(1))
        self.assertEqual(state.selected, 2)
        state.move(-1)
        self.assertEqual(state.selected, 1)

    def test_bounds_follow_snapshot(self):
        state = NavigationState()
        self.assertFalse(state.select(1))
        state.update_bounds(10)
        self.assertTrue(state.select(1))


class TestRawToggle(unittest.TestCase):

    def test_toggle_is_per_block(self):
        state = NavigationState(64)
        state.select(4)
        state.toggle_raw()
        self.assertTrue(state.is_raw())
        state.select(5)
        self.assertFalse(state.is_raw())
        self.assertTrue(state.is_raw(4))
        state.back()
        state.toggle_raw()
        self.assertFalse(state.is_raw())

    def test_set_raw(self):
        state = NavigationState(64)
        state.set_raw(True)
        state.set_raw(True)
        self.assertTrue(state.is_raw())
        state.set_raw(False)
        self.assertFalse(state.is_raw())

    def test_visible_blocks(self):
        state = NavigationState(64)
        state.select(7)
        self.assertEqual(state.visible_blocks(), {7})
        state.toggle_raw()
        self.assertEqual(state.visible_blocks(), {7})


class TestEvents(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmp.name, 'fs.img')
        self.metadata = sample_image(path)
        self.reader = ImageReader(path).open()
        self.state = NavigationState()
        self.engine = RefreshEngine(self.reader, self.state)
        self.snapshot = self.engine.load()

    def tearDown(self):
        self.reader.close()
        self.tmp.cleanup()

    def test_follow_chain(self):
        self.state.select(self.metadata.block_index(2))
        self.assertTrue(self.state.follow_chain(self.snapshot))
        self.assertEqual(self.state.selected, self.metadata.block_index(3))
        # block 3 ends the chain
        self.assertFalse(self.state.follow_chain(self.snapshot))

    def test_follow_chain_in_fat_region(self):
        self.assertEqual(self.state.selected, 0)
        self.assertFalse(self.state.follow_chain(self.snapshot))

    def test_handle(self):
        s = self.snapshot
        self.assertTrue(self.state.handle(nav.MOVE_DOWN, s))
        self.assertEqual(self.state.selected, 1)
        self.state.handle(nav.JUMP, s, 2)
        self.state.handle(nav.FOLLOW_CHAIN, s)
        self.assertEqual(self.state.selected, 3)
        self.state.handle(nav.BACK, s)
        self.assertEqual(self.state.selected, 2)
        self.state.handle(nav.JUMP_ROOT, s)
        self.assertEqual(self.state.selected, self.metadata.root_index)
        self.state.handle(nav.FORCE_RAW, s)
        self.assertTrue(self.state.is_raw())
        self.state.handle(nav.TOGGLE_RAW, s)
        self.assertFalse(self.state.is_raw())
        self.state.handle(nav.MOVE_UP, s)
        self.assertEqual(self.state.selected, 0)
        self.assertFalse(self.state.handle(nav.QUIT, s))

    def test_jump_out_of_range(self):
        self.state.handle(nav.JUMP, self.snapshot, self.metadata.block_count)
        self.assertEqual(self.state.selected, 0)


if __name__ == '__main__':
    unittest.main()
