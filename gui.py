"""Tkinter window showing a live view of a PennFAT image."""

from typing import TYPE_CHECKING

try:
    import tkinter as tk
    from tkinter import TclError, simpledialog
    TKINTER_AVAILABLE = True
except ImportError:
    TKINTER_AVAILABLE = False

import navigation as nav
import render
from constants import TICK_INTERVAL_MS

if TYPE_CHECKING:
    from navigation import NavigationState
    from refresh import RefreshEngine


KEY_BINDINGS = {
    'q': nav.QUIT,
    'j': nav.MOVE_DOWN,
    'Down': nav.MOVE_DOWN,
    'k': nav.MOVE_UP,
    'Up': nav.MOVE_UP,
    'l': nav.FOLLOW_CHAIN,
    'Right': nav.FOLLOW_CHAIN,
    'h': nav.BACK,
    'Left': nav.BACK,
    'BackSpace': nav.BACK,
    't': nav.TOGGLE_RAW,
    'r': nav.FORCE_RAW,
    'd': nav.FORCE_AUTO,
    'g': nav.JUMP,
    'Home': nav.JUMP_ROOT,
}


class PennFatViewer:
    """Live block viewer. Polls the refresh engine on a fixed tick."""

    def __init__(self, engine: 'RefreshEngine', navigation: 'NavigationState',
                 tick_ms: int = TICK_INTERVAL_MS):
        self.engine = engine
        self.navigation = navigation
        self.tick_ms = tick_ms
        self._drawn = None

        self.root = tk.Tk()
        self.root.title(f"pfview - {engine.reader.path}")
        self.root.geometry("1100x750")
        self.root.configure(bg='#2c3e50')

        self.colors = {
            'bg': '#2c3e50',
            'card_bg': '#34495e',
            'text': '#ecf0f1',
            'dim': '#7f8c8d',
            'anomaly': '#e74c3c',
            'select': '#f1c40f',
        }

        self.create_widgets()
        self.root.bind('<Key>', self.on_key)
        self.update_loop()

    def create_widgets(self):
        """Create all widgets."""
        self.overview = tk.Label(
            self.root,
            text="",
            font=('Helvetica', 11),
            bg=self.colors['card_bg'],
            fg='#7fdbff',
            pady=8
        )
        self.overview.pack(fill='x')

        body = tk.Frame(self.root, bg=self.colors['bg'])
        body.pack(fill='both', expand=True, padx=8, pady=8)

        # FAT pane
        fat_frame = tk.LabelFrame(body, text="Fat Table", bg=self.colors['bg'],
                                  fg=self.colors['text'])
        fat_frame.pack(side='left', fill='y')
        self.fat_list = tk.Listbox(
            fat_frame,
            width=16,
            font=('Courier', 10),
            bg=self.colors['card_bg'],
            fg=self.colors['text'],
            selectbackground=self.colors['select'],
            selectforeground='black',
            activestyle='none',
            takefocus=0
        )
        fat_scroll = tk.Scrollbar(fat_frame, orient='vertical', command=self.fat_list.yview)
        self.fat_list.configure(yscrollcommand=fat_scroll.set)
        self.fat_list.pack(side='left', fill='y')
        fat_scroll.pack(side='right', fill='y')
        self.fat_list.bind('<<ListboxSelect>>', self.on_fat_select)

        # Block pane
        self.block_frame = tk.LabelFrame(body, text="block", bg=self.colors['bg'],
                                         fg=self.colors['text'])
        self.block_frame.pack(side='left', fill='both', expand=True, padx=(8, 0))
        self.block_text = tk.Text(
            self.block_frame,
            font=('Courier', 10),
            bg=self.colors['card_bg'],
            fg=self.colors['text'],
            wrap='none',
            takefocus=0
        )
        block_scroll = tk.Scrollbar(self.block_frame, orient='vertical',
                                    command=self.block_text.yview)
        self.block_text.configure(yscrollcommand=block_scroll.set)
        self.block_text.pack(side='left', fill='both', expand=True)
        block_scroll.pack(side='right', fill='y')

        self.block_text.tag_configure(render.HEADER, font=('Courier', 10, 'bold'))
        self.block_text.tag_configure(render.DIM, foreground=self.colors['dim'])
        self.block_text.tag_configure(render.ANOMALY, foreground=self.colors['anomaly'])

        help_label = tk.Label(
            self.root,
            text=render.render_instructions(),
            font=('Helvetica', 10),
            bg=self.colors['card_bg'],
            fg=self.colors['text'],
            wraplength=1050,
            justify='left',
            pady=6
        )
        help_label.pack(fill='x')

        self.status = tk.Label(
            self.root,
            text="",
            font=('Helvetica', 9, 'italic'),
            bg=self.colors['bg'],
            fg='#95a5a6',
            anchor='w',
            padx=8
        )
        self.status.pack(fill='x')

    def on_key(self, event):
        """Translate a key press into a navigation event."""
        action = KEY_BINDINGS.get(event.keysym)
        if action is None:
            return
        snapshot = self.engine.snapshot
        index = None
        if action == nav.JUMP:
            index = simpledialog.askinteger(
                "Jump", "Block index:", parent=self.root, minvalue=0,
                maxvalue=max(self.navigation.block_count - 1, 0))
            if index is None:
                return
        if not self.navigation.handle(action, snapshot, index):
            self.root.destroy()
            return
        # decode the newly selected block now rather than on the next tick
        self.engine.tick()
        self.redraw()

    def on_fat_select(self, event):
        """Jump to the data block picked in the FAT pane."""
        snapshot = self.engine.snapshot
        picked = self.fat_list.curselection()
        if snapshot is None or not picked:
            return
        data_block = snapshot.fat.occupied()[picked[0]][0]
        self.navigation.select(snapshot.metadata.block_index(data_block))
        self.engine.tick()
        self.redraw()

    def redraw(self):
        """Redraw if the snapshot or navigation changed since the last draw."""
        snapshot = self.engine.snapshot
        fatal = self.engine.fatal_error
        key = (snapshot.sequence if snapshot else None, self.navigation.version,
               self.navigation.selected, fatal is not None)
        self.status.config(text=render.render_status(self.engine))
        if key == self._drawn:
            return
        fat_changed = self._drawn is None or key[0] != self._drawn[0]
        self._drawn = key

        self.overview.config(text=render.render_overview(snapshot))
        self.block_frame.config(text=render.block_title(snapshot, self.navigation))

        if fat_changed:
            self.fat_list.delete(0, 'end')
            for text, style in render.format_rows(render.render_fat_list(snapshot)):
                self.fat_list.insert('end', text)
                if style == render.ANOMALY:
                    self.fat_list.itemconfig('end', fg=self.colors['anomaly'])

        self.block_text.configure(state='normal')
        self.block_text.delete('1.0', 'end')
        if fatal is not None:
            rows = render.render_fatal(fatal)
        else:
            rows = render.render_block(snapshot, self.navigation)
        for text, style in render.format_rows(rows):
            self.block_text.insert('end', text + '\n', style)
        self.block_text.configure(state='disabled')

    def update_loop(self):
        """One probe, at most one refresh cycle, then yield back to Tk."""
        self.engine.tick()
        self.redraw()
        self.root.after(self.tick_ms, self.update_loop)

    def run(self):
        """Start the GUI main loop."""
        self.root.focus_set()
        self.root.mainloop()
