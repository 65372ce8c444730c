"""
Column model shared by the batch table and the dashboard's top pane, and the
batch-mode table writer.
"""

import sys

from .stats import AggregateStats, AggregationTable, SortSpec


def fmt_time(v: float) -> str:
    return f'{v:.3f}'


def fmt_body(v: float) -> str:
    return f'{v:.2f}'


class Column:
    def __init__(self, header: str, getter, numeric: bool = True):
        self.header  = header
        self.getter  = getter
        self.numeric = numeric

    def cell(self, key: tuple, stats: AggregateStats) -> str:
        return self.getter(key, stats)


def _time_col(header: str, attr: str) -> Column:
    return Column(header, lambda _k, s: fmt_time(getattr(s, attr)))


def _body_col(header: str, attr: str) -> Column:
    return Column(header, lambda _k, s: fmt_body(getattr(s, attr)))


def columns(expand: bool = False) -> list:
    # COUNT MIN MAX AVG STDEV [P10 P50 P90 P95 P99] BODYMIN BODYMAX BODYAVG METHOD URI
    cols = [
        Column('COUNT', lambda _k, s: str(s.count)),
        _time_col('MIN',   'min_time'),
        _time_col('MAX',   'max_time'),
        _time_col('AVG',   'mean_time'),
        _time_col('STDEV', 'stdev_time'),
    ]
    if expand:
        cols += [_time_col(f'P{p}', f'p{p}') for p in (10, 50, 90, 95, 99)]
    cols += [
        _body_col('BODYMIN', 'min_body'),
        _body_col('BODYMAX', 'max_body'),
        _body_col('BODYAVG', 'mean_body'),
        Column('METHOD', lambda k, _s: k[1], numeric=False),
        Column('URI',    lambda k, _s: k[0], numeric=False),
    ]
    return cols


class BatchReporter:
    """One-shot boxed table of every key, in sort order.

    +-------+-------+-----+
    | COUNT |  MIN  | ... |
    +-------+-------+-----+
    |     3 | 0.100 | ... |
    +-------+-------+-----+
    """

    def __init__(self, expand: bool = False, sort: SortSpec | None = None):
        self.columns = columns(expand)
        self.sort    = sort or SortSpec()

    def rows(self, table: AggregationTable) -> list:
        metric, desc = self.sort
        return [[c.cell(key, table[key]) for c in self.columns]
                for key in table.ordered_keys(metric, desc)]

    def render(self, table: AggregationTable) -> str:
        rows   = self.rows(table)
        widths = [len(c.header) for c in self.columns]
        for row in rows:
            widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

        rule = '+' + '+'.join('-' * (w + 2) for w in widths) + '+'

        def _line(cells):
            return '|' + '|'.join(f' {cell} ' for cell in cells) + '|'

        out = [rule,
               _line(c.header.center(w) for c, w in zip(self.columns, widths)),
               rule]
        for row in rows:
            out.append(_line(
                cell.rjust(w) if c.numeric else cell.ljust(w)
                for c, w, cell in zip(self.columns, widths, row)))
        if rows:
            out.append(rule)
        return '\n'.join(out)

    def write(self, table: AggregationTable, out=None) -> None:
        out = out or sys.stdout
        out.write(self.render(table) + '\n')
