"""
Render adapter tests
====================
Includes the end-to-end scenario: a root directory with one file, the file's
data block shown raw, and a truncated image that keeps the last good view.
"""

import os
import tempfile
import unittest

import render
from image_reader import ImageReader
from imagebuilder import build_image, dir_block, make_entry, sample_image
from navigation import NavigationState
from refresh import RefreshEngine
from render import Row
from structures import Metadata


class ViewTestCase(unittest.TestCase):

    def open(self, path):
        self.reader = ImageReader(path).open()
        self.nav = NavigationState()
        self.engine = RefreshEngine(self.reader, self.nav)
        self.engine.load()

    def show(self, index):
        self.nav.select(index)
        self.engine.tick()
        return render.render_block(self.engine.snapshot, self.nav)

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'fs.img')

    def tearDown(self):
        self.reader.close()
        self.tmp.cleanup()


class TestScenario(ViewTestCase):
    """1 KiB blocks, 16-bit FAT of 3 blocks, root at block 3, one file a.txt."""

    def setUp(self):
        super().setUp()
        md = Metadata(2, 3)
        self.metadata = build_image(
            self.path, block_size_config=2, fat_blocks=3,
            fat={1: 0xFFFF, 9: 0xFFFF},
            blocks={
                md.root_index: dir_block([make_entry('a.txt', 10, 9, mtime=0)], 1024),
                md.block_index(9): b'helloworld',
            })
        self.open(self.path)

    def test_root_directory_table(self):
        self.assertEqual(self.metadata.root_index, 3)
        rows = self.show(3)
        self.assertEqual(rows[0].style, render.HEADER)
        self.assertEqual(rows[1:], [
            Row(('a.txt', 'file', '10', '9', 'rw-', '1970-01-01 00:00:00')),
        ])

    def test_file_data_is_raw(self):
        index = self.metadata.block_index(9)
        rows = self.show(index)
        self.assertEqual(len(rows), 1024 // 16)
        self.assertEqual(rows[0].cells[0], f'{index * 1024:08x}')
        self.assertTrue(rows[0].cells[1].startswith('68 65 6c 6c 6f'))
        self.assertEqual(rows[0].cells[2], '|helloworld......|')

        # forcing raw on a block that is already raw changes nothing
        self.nav.toggle_raw()
        self.assertEqual(render.render_block(self.engine.snapshot, self.nav), rows)

    def test_forced_raw_directory(self):
        self.show(3)
        self.nav.toggle_raw()
        rows = render.render_block(self.engine.snapshot, self.nav)
        self.assertEqual(rows[0].cells[2][:6], '|a.txt')
        self.assertIn('forced raw', render.block_title(self.engine.snapshot, self.nav))

    def test_truncation_keeps_display(self):
        before = self.show(3)
        os.truncate(self.path, 0)
        self.engine.tick()
        self.assertEqual(render.render_block(self.engine.snapshot, self.nav), before)
        self.assertIn('transient errors: 1', render.render_status(self.engine))
        self.assertIn('Short read', render.render_status(self.engine))


class TestBlockViews(ViewTestCase):

    def setUp(self):
        super().setUp()
        self.metadata = sample_image(self.path)
        self.open(self.path)

    def test_deleted_entry_dimmed(self):
        rows = self.show(1)
        names = [(r.cells[0], r.style) for r in rows[1:]]
        self.assertEqual(names, [
            ('hello.txt', render.NORMAL),
            ('old.txt (deleted)', render.DIM),
            ('sub', render.NORMAL),
        ])
        self.assertEqual(rows[3].cells[1], 'dir')
        self.assertEqual(rows[3].cells[4], 'rwx')

    def test_metadata_view(self):
        rows = self.show(0)
        fields = dict(r.cells for r in rows if len(r.cells) == 2)
        self.assertEqual(fields['block size'], '256 (config 0)')
        self.assertEqual(fields['root directory'], 'block 1')
        self.assertEqual(fields['data blocks'], '127')
        # hex dump follows the summary
        self.assertEqual(rows[-1].cells[0], f'{256 - 16:08x}')

    def test_metadata_view_lists_first_fat_entries(self):
        rows = self.show(0)
        self.assertIn(Row(('entry', 'next'), render.HEADER), rows)
        by_entry = {r.cells[0]: r.cells[1] for r in rows
                    if len(r.cells) == 2 and len(r.cells[0]) == 4 and r.style != render.HEADER}
        self.assertEqual(len(by_entry), 128)
        # entry 0 is the metadata word itself
        self.assertEqual(by_entry['0000'], 'reserved (0100)')
        self.assertEqual(by_entry['0001'], 'end')
        self.assertEqual(by_entry['0002'], '0003')
        self.assertEqual(by_entry['0004'], 'free')

    def test_fatal_screen(self):
        rows = render.render_fatal(ValueError('bad block size config 9'))
        self.assertEqual(rows[0].style, render.ANOMALY)
        self.assertEqual(rows[1].cells, ('bad block size config 9',))

    def test_fat_list(self):
        rows = render.render_fat_list(self.engine.snapshot)
        self.assertEqual([r.cells for r in rows], [
            ('0001', '->', 'ffff'),
            ('0002', '->', '0003'),
            ('0003', '->', 'ffff'),
            ('0005', '->', 'ffff'),
        ])

    def test_overview(self):
        text = render.render_overview(self.engine.snapshot)
        self.assertIn('fat size = 256 (128 entries max)', text)
        self.assertIn('block size: 256', text)
        self.assertIn('# data blocks = 127', text)

    def test_loading_and_past_end(self):
        snap = self.engine.snapshot
        self.nav.select(9)
        rows = render.render_block(snap, self.nav)
        self.assertEqual(rows, [Row(('loading block 9...',), render.DIM)])
        past = NavigationState(500)
        past.select(300)
        self.assertEqual(render.render_block(snap, past)[0].style, render.ANOMALY)
        self.assertEqual(render.render_block(None, past)[0].cells, ('no snapshot loaded',))


class TestFatAndAnomalies(ViewTestCase):

    def setUp(self):
        super().setUp()
        md = Metadata(0, 2)
        self.metadata = build_image(
            self.path, fat_blocks=2, fat={1: 0xFFFF, 130: 131, 131: 0xFFFF, 132: 999},
            blocks={md.root_index: dir_block([
                make_entry('ok', 1, 130),
                make_entry('bad', 1, 131, mtime=2 ** 60),
            ], 256)})
        self.open(self.path)

    def test_fat_table_block(self):
        rows = self.show(1)
        self.assertEqual(rows[0].cells, ('entry', 'next'))
        by_entry = {r.cells[0]: r for r in rows[1:]}
        self.assertEqual(len(by_entry), 128)
        self.assertEqual(by_entry['0082'].cells[1], '0083')
        self.assertEqual(by_entry['0083'].cells[1], 'end')
        self.assertEqual(by_entry['0084'].style, render.ANOMALY)
        self.assertTrue(by_entry['0084'].cells[1].startswith(render.ANOMALY_MARK))
        self.assertEqual(by_entry['0085'].cells[1], 'free')

    def test_anomalous_entry_marked(self):
        rows = self.show(self.metadata.root_index)
        self.assertEqual(rows[1].style, render.NORMAL)
        self.assertEqual(rows[2].style, render.ANOMALY)
        self.assertEqual(rows[2].cells[0], '! bad')
        self.assertEqual(rows[2].cells[5], 'invalid')

    def test_fat_list_marks_anomaly(self):
        rows = render.render_fat_list(self.engine.snapshot)
        self.assertEqual(rows[-1].cells, ('0084', '->', '03e7'))
        self.assertEqual(rows[-1].style, render.ANOMALY)


class TestFormatRows(unittest.TestCase):

    def test_columns_aligned(self):
        lines = render.format_rows([
            Row(('name', 'size'), render.HEADER),
            Row(('a-much-longer-name', '1')),
            Row(('note',), render.DIM),
        ])
        self.assertEqual(lines[0], ('name                size', render.HEADER))
        self.assertEqual(lines[1], ('a-much-longer-name  1', render.NORMAL))
        self.assertEqual(lines[2], ('note', render.DIM))

    def test_instructions(self):
        text = render.render_instructions()
        self.assertTrue(text.startswith('q: quit'))
        self.assertIn('t: toggle (raw/dir)', text)


if __name__ == '__main__':
    unittest.main()
