import pytest

from ltsvtop.history import HistoryEntry, RawRecordHistory


def test_entry_fields_sorted():
    e = HistoryEntry(3, {'uri': '/', 'apptime': '0.1', 'method': 'GET'})
    assert e.field_names == ['apptime', 'method', 'uri']
    assert e.field(0) == ('apptime', '0.1')
    assert len(e) == 3


def test_fifo_capacity():
    h = RawRecordHistory(3)
    for seq in range(1, 6):
        h.append(seq, {'n': str(seq)})
    assert len(h) == 3
    assert [e.seq for e in h] == [3, 4, 5]
    assert h.evicted == 2


def test_ordinals_follow_evictions():
    h = RawRecordHistory(2)
    assert h.last_ordinal == -1
    h.append(10, {'a': '1'})
    h.append(11, {'a': '2'})
    assert (h.first_ordinal, h.last_ordinal) == (0, 1)
    h.append(12, {'a': '3'})
    assert (h.first_ordinal, h.last_ordinal) == (1, 2)
    assert h.by_ordinal(2).seq == 12


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        RawRecordHistory(0)
