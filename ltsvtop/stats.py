"""
Per-endpoint running statistics.

One AggregateStats per (uri, method). Percentiles are nearest rank over every
response time ever seen for the key, so each key keeps its full sorted sample
list for the life of the run.
"""

import bisect
import math
from enum import Enum

from .record import Record

PERCENTILES = (10, 50, 90, 95, 99)


def percentile_index(count: int, pct: int) -> int:
    # nearest rank: floor(n * p / 100) - 1, never below the first sample
    return max(0, count * pct // 100 - 1)


class Metric(Enum):
    COUNT    = 'count'
    MIN      = 'min'
    MAX      = 'max'
    AVG      = 'avg'
    STDEV    = 'stdev'
    P10      = 'p10'
    P50      = 'p50'
    P90      = 'p90'
    P95      = 'p95'
    P99      = 'p99'
    BODY_MIN = 'bodymin'
    BODY_MAX = 'bodymax'
    BODY_AVG = 'bodyavg'

    @classmethod
    def parse(cls, name: str) -> 'Metric':
        # Unknown names sort by count.
        try:
            return cls(name.strip().lower())
        except ValueError:
            return cls.COUNT


_METRIC_ATTR = {
    Metric.COUNT:    'count',
    Metric.MIN:      'min_time',
    Metric.MAX:      'max_time',
    Metric.AVG:      'mean_time',
    Metric.STDEV:    'stdev_time',
    Metric.P10:      'p10',
    Metric.P50:      'p50',
    Metric.P90:      'p90',
    Metric.P95:      'p95',
    Metric.P99:      'p99',
    Metric.BODY_MIN: 'min_body',
    Metric.BODY_MAX: 'max_body',
    Metric.BODY_AVG: 'mean_body',
}


class SortSpec:
    """``metric[,direction]`` as given on the command line.

    Direction ``desc`` sorts descending; anything else (or nothing) ascending.
    """

    def __init__(self, metric: Metric = Metric.COUNT, descending: bool = False):
        self.metric     = metric
        self.descending = descending

    @classmethod
    def parse(cls, text: str | None) -> 'SortSpec':
        name, _, direction = (text or '').partition(',')
        return cls(Metric.parse(name), direction.strip().lower() == 'desc')

    def __iter__(self):
        return iter((self.metric, self.descending))

    def __str__(self) -> str:
        return f'{self.metric.value},{"desc" if self.descending else "asc"}'


class AggregateStats:
    def __init__(self, record: Record):
        t = record.response_time
        b = record.body_size
        self.count          = 1
        self.min_time       = t
        self.max_time       = t
        self.mean_time      = t
        self.stdev_time     = 0.0
        self.p10 = self.p50 = self.p90 = self.p95 = self.p99 = t
        self.min_body       = b
        self.max_body       = b
        self.mean_body      = b
        self.retained_times = [t]
        self.code_2xx = self.code_3xx = self.code_4xx = self.code_5xx = 0
        self._count_status(record)

    def add(self, record: Record) -> None:
        t = record.response_time
        b = record.body_size
        self.count += 1
        n = self.count

        bisect.insort(self.retained_times, t)
        for pct in PERCENTILES:
            setattr(self, f'p{pct}', self.retained_times[percentile_index(n, pct)])

        if self.max_time < t:
            self.max_time = t
        # a zero minimum is treated as unset and taken over by the next sample
        if self.min_time > t or self.min_time == 0:
            self.min_time = t
        self.mean_time = (self.mean_time * (n - 1) + t) / n

        # sample stdev over the whole history, against the updated mean
        sq = sum((x - self.mean_time) ** 2 for x in self.retained_times)
        self.stdev_time = math.sqrt(sq / (n - 1))

        if self.max_body < b:
            self.max_body = b
        if self.min_body > b or self.min_body == 0:
            self.min_body = b
        self.mean_body = (self.mean_body * (n - 1) + b) / n

        self._count_status(record)

    def _count_status(self, record: Record) -> None:
        attr = {'2': 'code_2xx', '3': 'code_3xx',
                '4': 'code_4xx', '5': 'code_5xx'}.get(record.status_class)
        if attr:
            setattr(self, attr, getattr(self, attr) + 1)

    def metric(self, metric: Metric) -> float:
        return getattr(self, _METRIC_ATTR[metric])


def compare_stats(a: AggregateStats, b: AggregateStats,
                  metric: Metric, descending: bool = False) -> int:
    # -1 / 0 / 1 ordering of two rows under one metric and direction
    va, vb = a.metric(metric), b.metric(metric)
    order  = (va > vb) - (va < vb)
    return -order if descending else order


class AggregationTable:
    """Stats per (uri, method) plus the pagination window the top pane shows.

    Keys are only ever added. ``start``/``visible_rows`` select which slice of
    the sorted keys ``sorted_keys`` hands back.
    """

    def __init__(self, visible_rows: int = 2):
        self.keys: list        = []
        self._stats: dict      = {}
        self.uris: set         = set()
        self.start             = 0
        self.visible_rows      = visible_rows

    def __len__(self) -> int:
        return len(self.keys)

    def __contains__(self, key) -> bool:
        return key in self._stats

    def get(self, key) -> AggregateStats | None:
        return self._stats.get(key)

    def __getitem__(self, key) -> AggregateStats:
        return self._stats[key]

    @property
    def total_count(self) -> int:
        return sum(s.count for s in self._stats.values())

    # Mutation

    def upsert(self, key, record: Record) -> AggregateStats:
        stats = self._stats.get(key)
        if stats is None:
            stats = AggregateStats(record)
            self._stats[key] = stats
            self.keys.append(key)
            self.uris.add(key[0])
        else:
            stats.add(record)
        return stats

    # Ordering

    def ordered_keys(self, metric: Metric | SortSpec | str = Metric.COUNT,
                     descending: bool = False) -> list:
        # "metric,desc" text or a SortSpec carries its own direction
        if isinstance(metric, str):
            metric = SortSpec.parse(metric)
        if isinstance(metric, SortSpec):
            metric, descending = metric.metric, metric.descending or descending
        return sorted(self.keys,
                      key=lambda k: self._stats[k].metric(metric),
                      reverse=descending)

    def sorted_keys(self, metric: Metric | SortSpec | str = Metric.COUNT,
                    descending: bool = False) -> list:
        ordered = self.ordered_keys(metric, descending)
        return ordered[self.start:self.start + self.visible_rows]

    # Pagination

    def _max_start(self) -> int:
        return max(0, len(self.keys) - self.visible_rows)

    def set_visible_rows(self, rows: int) -> None:
        self.visible_rows = max(0, rows)
        if len(self.keys) <= self.visible_rows:
            self.start = 0
        else:
            self.start = min(self.start, self._max_start())

    def scroll_up(self) -> bool:
        if self.start > 0:
            self.start -= 1
            return True
        return False

    def scroll_down(self) -> bool:
        if self.start < self._max_start():
            self.start += 1
            return True
        return False
