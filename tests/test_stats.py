import math

import pytest

from ltsvtop.record import Record
from ltsvtop.stats import (AggregateStats, AggregationTable, Metric, SortSpec,
                           compare_stats, percentile_index)


def rec(t, uri='/', method='GET', status='200', body=100.0):
    return Record(uri, method, status, float(t), float(body))


def build(times, **kw):
    stats = AggregateStats(rec(times[0], **kw))
    for t in times[1:]:
        stats.add(rec(t, **kw))
    return stats


def test_first_observation_seeds_everything():
    s = build([0.5], body=42)
    assert s.count == 1
    assert s.min_time == s.max_time == s.mean_time == 0.5
    assert s.p10 == s.p50 == s.p99 == 0.5
    assert s.stdev_time == 0.0
    assert s.min_body == s.max_body == s.mean_body == 42


def test_retained_times_sorted_and_counted():
    s = build([5, 3, 9, 1, 7])
    assert s.retained_times == [1, 3, 5, 7, 9]
    assert len(s.retained_times) == s.count
    assert s.min_time <= s.p10 <= s.p50 <= s.p90 <= s.p99 <= s.max_time


def test_percentile_index():
    assert percentile_index(1, 10) == 0
    assert percentile_index(10, 50) == 4
    assert percentile_index(10, 99) == 8
    assert percentile_index(100, 99) == 98


def test_percentiles_one_to_ten():
    s = build(list(range(1, 11)))
    assert s.p10 == 1
    assert s.p50 == 5
    assert s.p90 == 9
    assert s.p99 == 9
    assert s.mean_time == pytest.approx(5.5)


def test_mean_and_sample_stdev():
    s = build([2, 4, 6])
    assert s.mean_time == pytest.approx(4.0)
    assert s.stdev_time == pytest.approx(2.0)


def test_body_stats():
    s = build([1, 1, 1])
    s.add(rec(1, body=400))
    assert s.max_body == 400
    assert s.min_body == 100
    assert s.mean_body == pytest.approx(175.0)


def test_zero_minimum_is_replaced_by_next_sample():
    s = build([0.0, 0.3])
    assert s.min_time == 0.3
    s = build([0.3, 0.0])
    assert s.min_time == 0.0


def test_status_counters():
    s = AggregateStats(rec(1, status='200'))
    for status in ('204', '301', '404', '503', '', 'xyz'):
        s.add(rec(1, status=status))
    assert (s.code_2xx, s.code_3xx, s.code_4xx, s.code_5xx) == (2, 1, 1, 1)
    assert s.count == 7


def test_metric_parse():
    assert Metric.parse('p99') is Metric.P99
    assert Metric.parse(' BodyAvg ') is Metric.BODY_AVG
    assert Metric.parse('bogus') is Metric.COUNT


def test_sort_spec_parse():
    spec = SortSpec.parse('max,desc')
    assert (spec.metric, spec.descending) == (Metric.MAX, True)
    assert not SortSpec.parse('max,up').descending
    assert SortSpec.parse(None).metric is Metric.COUNT
    assert str(SortSpec.parse('avg')) == 'avg,asc'


def test_compare_stats():
    a, b = build([1]), build([2, 2])
    assert compare_stats(a, b, Metric.COUNT) == -1
    assert compare_stats(a, b, Metric.COUNT, descending=True) == 1
    assert compare_stats(a, a, Metric.MAX) == 0


@pytest.fixture
def table():
    t = AggregationTable()
    for i, uri in enumerate(['/a', '/b', '/c', '/d']):
        for _ in range(i + 1):
            t.upsert((uri, 'GET'), rec(0.1 * (4 - i), uri=uri))
    return t


def test_upsert_tracks_keys_and_uris(table):
    table.upsert(('/a', 'POST'), rec(1, uri='/a', method='POST'))
    assert len(table) == 5
    assert table.uris == {'/a', '/b', '/c', '/d'}
    assert table.total_count == 1 + 2 + 3 + 4 + 1
    assert table[('/a', 'GET')].count == 1
    assert table.get(('/zz', 'GET')) is None


def test_ordered_keys(table):
    by_count = [k[0] for k in table.ordered_keys(Metric.COUNT)]
    assert by_count == ['/a', '/b', '/c', '/d']
    by_min_desc = [table[k].min_time for k in table.ordered_keys(Metric.MIN, True)]
    assert by_min_desc == sorted(by_min_desc, reverse=True)


def test_unknown_metric_sorts_like_count(table):
    assert table.ordered_keys('bogus') == table.ordered_keys(Metric.COUNT)


def test_sorted_keys_window(table):
    table.set_visible_rows(2)
    assert [k[0] for k in table.sorted_keys()] == ['/a', '/b']
    assert table.scroll_down()
    assert [k[0] for k in table.sorted_keys()] == ['/b', '/c']


def test_pagination_bounds(table):
    table.set_visible_rows(2)
    assert not table.scroll_up()
    assert table.scroll_down()
    assert table.scroll_down()
    assert not table.scroll_down()
    assert table.start == 2
    assert len(table.sorted_keys()) == 2


def test_everything_fits_resets_start(table):
    table.set_visible_rows(2)
    table.scroll_down()
    table.set_visible_rows(10)
    assert table.start == 0
    assert not table.scroll_down()
    assert len(table.sorted_keys()) == 4


def test_shrinking_window_clamps_start(table):
    table.set_visible_rows(1)
    for _ in range(3):
        table.scroll_down()
    table.set_visible_rows(3)
    assert table.start == 1


def test_stats_are_finite():
    s = build([0.1, 0.2, 0.3, 0.4])
    assert math.isfinite(s.stdev_time)


def test_sort_text_carries_direction():
    t = AggregationTable()
    t.upsert(('/a', 'GET'), rec(0.1, uri='/a'))
    for _ in range(3):
        t.upsert(('/b', 'GET'), rec(0.9, uri='/b'))
    mins = [t[k].min_time for k in t.sorted_keys('min,desc')]
    assert mins == [0.9, 0.1]
    assert t.ordered_keys('min') == [('/a', 'GET'), ('/b', 'GET')]
    assert t.ordered_keys(SortSpec.parse('count,desc')) == [('/b', 'GET'), ('/a', 'GET')]
