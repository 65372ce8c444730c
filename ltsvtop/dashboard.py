"""
Live two-pane dashboard for tail mode.

Keys:
  Tab        switch between the table (top) and the record inspector (bottom)
  Up / k     scroll the active pane up
  Down / j   scroll the active pane down
  q / Esc    quit

Top pane: running stats per (uri, method), one row per key in the current
pagination window. Bottom pane: the raw fields of recently accepted lines,
one ``name : value`` per row. The divider between them is split in two; the
highlighted half shows which pane the scroll keys move.
"""

import logging
import os
import threading
from enum import Enum

import urwid

from .errors import RenderError
from .history import RawRecordHistory
from .report import columns
from .stats import AggregationTable, SortSpec
from .terminal import CellGrid

logger = logging.getLogger(__name__)

PALETTE = [
    ('body',        'light gray',       'default'),
    ('title',       'white,bold',       'default'),
    ('dim',         'dark gray',        'default'),
    ('live',        'light green,bold', 'default'),
    ('col_header',  'black,bold',       'dark cyan'),
    ('divider',     'light gray',       'default'),
    ('divider_on',  'light green,bold', 'default'),
    ('seq',         'white',            'default'),
    ('seq_sel',     'yellow,bold',      'default'),
    ('field',       'light gray',       'default'),
]

HEADER_Y = 3    # rows 0-1 counters, row 2 key hints, row 3 column header
COL_GAP  = 2


class Pane(Enum):
    TOP    = 'top'
    BOTTOM = 'bottom'


class DashboardState:
    """View state; only the UI thread touches it.

    ``bottom_record`` is an ordinal in the history stream (see
    RawRecordHistory), so the selection survives older entries being evicted.
    """

    def __init__(self, width: int = 80, height: int = 24):
        self.active_pane   = Pane.TOP
        self.width         = width
        self.height        = height
        self.bottom_record = 0
        self.bottom_field  = 0

    # Layout

    @property
    def split(self) -> int:
        return self.height // 2

    @property
    def top_visible_rows(self) -> int:
        # one spacer row is left between the last table row and the divider
        return max(1, self.split - HEADER_Y - 2)

    @property
    def bottom_rows(self) -> int:
        return max(0, self.height - self.split - 1)

    def resize(self, width: int, height: int) -> bool:
        if (width, height) == (self.width, self.height):
            return False
        self.width, self.height = width, height
        logger.debug('resized to %dx%d', width, height)
        return True

    def toggle_pane(self) -> Pane:
        self.active_pane = Pane.BOTTOM if self.active_pane is Pane.TOP else Pane.TOP
        return self.active_pane

    # Scrolling

    def clamp(self, history: RawRecordHistory | None) -> None:
        if not history:
            self.bottom_record, self.bottom_field = 0, 0
            return
        if self.bottom_record < history.first_ordinal:
            self.bottom_record, self.bottom_field = history.first_ordinal, 0
        elif self.bottom_record > history.last_ordinal:
            self.bottom_record, self.bottom_field = history.last_ordinal, 0
        last_field = len(history.by_ordinal(self.bottom_record)) - 1
        self.bottom_field = max(0, min(self.bottom_field, last_field))

    def scroll_up(self, table: AggregationTable,
                  history: RawRecordHistory | None) -> bool:
        if self.active_pane is Pane.TOP:
            table.set_visible_rows(self.top_visible_rows)
            return table.scroll_up()
        if not history:
            return False
        self.clamp(history)
        if self.bottom_field > 0:
            self.bottom_field -= 1
        elif self.bottom_record > history.first_ordinal:
            self.bottom_record -= 1
        else:
            return False
        return True

    def scroll_down(self, table: AggregationTable,
                    history: RawRecordHistory | None) -> bool:
        if self.active_pane is Pane.TOP:
            table.set_visible_rows(self.top_visible_rows)
            return table.scroll_down()
        if not history:
            return False
        self.clamp(history)
        entry = history.by_ordinal(self.bottom_record)
        if self.bottom_field < len(entry) - 1:
            self.bottom_field += 1
        elif self.bottom_record < history.last_ordinal:
            self.bottom_record += 1
            self.bottom_field = 0
        else:
            return False
        return True


# Painting

def column_positions(table: AggregationTable, cols: list) -> list:
    # x of each column; every column but the last is as wide as its widest
    # value across all keys, header included
    xs, x = [], 0
    for c in cols:
        xs.append(x)
        width = max([len(c.header)] +
                    [len(c.cell(k, table[k])) for k in table.keys])
        x += width + COL_GAP
    return xs


class Painter:
    def __init__(self, expand: bool = False, sort: SortSpec | None = None,
                 live: bool = True):
        self.columns = columns(expand)
        self.sort    = sort or SortSpec()
        self.live    = live

    def paint(self, grid: CellGrid, state: DashboardState,
              table: AggregationTable, history: RawRecordHistory | None,
              read: int = 0, ignored: int = 0) -> None:
        self.paint_top(grid, state, table, read, ignored)
        self.paint_divider(grid, state)
        self.paint_bottom(grid, state, history)

    def paint_top(self, grid, state, table, read, ignored) -> None:
        split = state.split

        def _put(x, y, text, attr=None):
            if y < split:
                grid.put_text(x, y, text, attr)

        total = f'Total URI: {len(table.uris)}'
        _put(0, 0, total, 'title')
        if self.live:
            _put(len(total) + 3, 0, '● LIVE', 'live')
        counts = f'Read lines: {read}, Ignore lines: {ignored}'
        _put(0, 1, counts, 'title')
        _put(len(counts) + 3, 1, f'sort: {self.sort}', 'dim')
        _put(0, 2, 'tab:pane  ↑↓/jk:scroll  q:quit', 'dim')

        table.set_visible_rows(state.top_visible_rows)
        xs = column_positions(table, self.columns)
        if HEADER_Y < split:
            for x in range(grid.width):
                grid.set_cell(x, HEADER_Y, ' ', 'col_header')
        for c, x in zip(self.columns, xs):
            _put(x, HEADER_Y, c.header, 'col_header')

        metric, desc = self.sort
        for i, key in enumerate(table.sorted_keys(metric, desc)):
            y = HEADER_Y + 1 + i
            if y >= split:
                break
            stats = table[key]
            for c, x in zip(self.columns, xs):
                _put(x, y, c.cell(key, stats), 'body')

    def paint_divider(self, grid, state) -> None:
        half = state.width // 2
        top  = state.active_pane is Pane.TOP
        for x in range(state.width):
            on = (x < half) == top
            grid.set_cell(x, state.split, '-', 'divider_on' if on else 'divider')

    def paint_bottom(self, grid, state, history) -> None:
        first_y = state.split + 1
        if not history:
            grid.put_text(1, first_y, 'waiting for records…', 'dim')
            return
        state.clamp(history)
        digits  = len(str(max(e.seq for e in history)))
        ordinal = state.bottom_record
        idx     = state.bottom_field
        for y in range(first_y, state.height):
            if ordinal > history.last_ordinal:
                break
            entry = history.by_ordinal(ordinal)
            label = f' {entry.seq:0{digits}d} '
            grid.put_text(0, y, label,
                          'seq_sel' if ordinal == state.bottom_record else 'seq')
            name, value = entry.field(idx)
            grid.put_text(len(label) + 1, y, f'{name} : {value}', 'field')
            idx += 1
            if idx >= len(entry):
                ordinal, idx = ordinal + 1, 0


# urwid

class DashboardWidget(urwid.Widget):
    _sizing     = frozenset([urwid.BOX])
    _selectable = True

    def __init__(self, table: AggregationTable,
                 history: RawRecordHistory | None,
                 lock=None, counters=None,
                 painter: Painter | None = None,
                 state: DashboardState | None = None):
        super().__init__()
        self.table    = table
        self.history  = history
        self.lock     = lock or threading.RLock()
        self.counters = counters or (lambda: (0, 0))
        self.painter  = painter or Painter()
        self.state    = state or DashboardState()

    def render(self, size, focus=False):
        maxcol, maxrow = size
        self.state.resize(maxcol, maxrow)
        grid          = CellGrid(maxcol, maxrow)
        read, ignored = self.counters()
        with self.lock:
            self.painter.paint(grid, self.state, self.table, self.history,
                               read, ignored)
        return grid.to_canvas(focus)

    def keypress(self, size, key):
        if key == 'tab':
            self.state.toggle_pane()
        elif key in ('up', 'k'):
            with self.lock:
                self.state.scroll_up(self.table, self.history)
        elif key in ('down', 'j'):
            with self.lock:
                self.state.scroll_down(self.table, self.history)
        else:
            return key
        self._invalidate()
        return None


class Dashboard:
    """Runs the urwid main loop on top of a pipeline.

    The main loop is the input listener and the only thread that touches the
    terminal. The pipeline's renderer thread reaches it through a watch_pipe:
    each frame request writes one byte and then waits until that frame has
    been drawn, so at most one frame is ever outstanding.
    """

    def __init__(self, pipeline, expand: bool = False,
                 sort: SortSpec | None = None):
        self.pipeline = pipeline
        self.widget   = DashboardWidget(
            pipeline.table, pipeline.history,
            lock     = pipeline.lock,
            counters = pipeline.counters,
            painter  = Painter(expand, sort),
        )
        self._loop     = None
        self._write_fd = None
        self._drawn    = threading.Event()

    # Pipe callbacks, main-loop thread

    def _on_pipe(self, _data: bytes) -> None:
        if self.pipeline.cancel.is_set():
            raise urwid.ExitMainLoop()
        self._loop.draw_screen()
        self._drawn.set()

    def _handle_input(self, key) -> None:
        if key in ('q', 'Q', 'esc', 'ctrl c'):
            self.pipeline.stop()
            raise urwid.ExitMainLoop()

    # Pipeline side

    def request_frame(self) -> None:
        self._drawn.clear()
        fd = self._write_fd
        if fd is None:
            return
        try:
            os.write(fd, b'r')
        except OSError:
            return
        while not self._drawn.wait(0.1):
            if self.pipeline.cancel.is_set():
                return

    def _wake_for_exit(self) -> None:
        fd = self._write_fd
        if fd is None:
            return
        try:
            os.write(fd, b'x')
        except OSError:
            pass

    def _close_pipe(self) -> None:
        # urwid closes only the read end; the write end is ours
        fd, self._write_fd = self._write_fd, None
        if fd is None:
            return
        self._loop.remove_watch_pipe(fd)
        os.close(fd)

    def run(self) -> None:
        self._loop = urwid.MainLoop(
            self.widget,
            palette         = PALETTE,
            unhandled_input = self._handle_input,
            handle_mouse    = False,
        )
        self._write_fd = self._loop.watch_pipe(self._on_pipe)
        self.pipeline.on_frame = self.request_frame
        self.pipeline.add_cancel_callback(self._wake_for_exit)
        self.pipeline.start()
        try:
            self._loop.run()
        except KeyboardInterrupt:
            pass
        except OSError as exc:
            self.pipeline.fail(RenderError(f'terminal error: {exc}'))
        finally:
            self.pipeline.close()
            self._close_pipe()
        if self.pipeline.error is not None:
            raise self.pipeline.error
