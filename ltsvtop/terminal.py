"""
Minimal terminal-grid capability the dashboard paints into.

The dashboard never talks to urwid while painting: it fills a CellGrid
(``size``, ``set_cell``, ``put_text``) and the urwid widget flushes the grid as
one clipped Text row per screen line.
"""

import urwid

BLANK = ' '


class CellGrid:
    def __init__(self, width: int, height: int, attr: str = 'body'):
        self.width  = max(0, width)
        self.height = max(0, height)
        self.attr   = attr
        self._cells = [[(BLANK, attr)] * self.width for _ in range(self.height)]

    def size(self) -> tuple:
        return self.width, self.height

    def set_cell(self, x: int, y: int, glyph: str, attr: str | None = None) -> None:
        # Writes outside the grid are dropped.
        if 0 <= x < self.width and 0 <= y < self.height:
            self._cells[y][x] = (glyph or BLANK, attr or self.attr)

    def put_text(self, x: int, y: int, text: str, attr: str | None = None) -> None:
        for i, ch in enumerate(text):
            self.set_cell(x + i, y, ch, attr)

    def clear_row(self, y: int) -> None:
        if 0 <= y < self.height:
            self._cells[y] = [(BLANK, self.attr)] * self.width

    # Reading back

    def row_text(self, y: int) -> str:
        return ''.join(ch for ch, _ in self._cells[y])

    def row_attrs(self, y: int) -> list:
        return [a for _, a in self._cells[y]]

    def row_markup(self, y: int) -> list:
        # [(attr, text), ...] with runs of equal attr merged
        out: list = []
        for ch, attr in self._cells[y]:
            if out and out[-1][0] == attr:
                out[-1] = (attr, out[-1][1] + ch)
            else:
                out.append((attr, ch))
        return out or ''

    def to_canvas(self, focus: bool = False):
        rows = [urwid.Text(self.row_markup(y), wrap='clip') for y in range(self.height)]
        return urwid.Pile(rows).render((self.width,), focus)
