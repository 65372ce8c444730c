from collections import deque


class HistoryEntry:
    __slots__ = ('seq', 'field_names', 'fields')

    def __init__(self, seq: int, fields: dict):
        self.seq         = seq
        self.fields      = dict(fields)
        self.field_names = sorted(self.fields)

    def __len__(self) -> int:
        return len(self.field_names)

    def field(self, idx: int) -> tuple:
        name = self.field_names[idx]
        return name, self.fields[name]


class RawRecordHistory:
    """Most recent raw label maps, oldest first, for the inspector pane.

    Once ``capacity`` entries are held, each append drops the oldest one.
    ``evicted`` counts the drops so a viewer can address entries by their
    ordinal in the whole stream (``evicted + index``) and stay on the same
    record while older ones fall off the front.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f'history capacity must be >= 1, got {capacity}')
        self.capacity = capacity
        self.evicted  = 0
        self._entries: deque = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, idx: int) -> HistoryEntry:
        return self._entries[idx]

    def __iter__(self):
        return iter(self._entries)

    def append(self, seq: int, fields: dict) -> HistoryEntry:
        if len(self._entries) == self.capacity:
            self.evicted += 1
        entry = HistoryEntry(seq, fields)
        self._entries.append(entry)
        return entry

    # Ordinal addressing

    @property
    def first_ordinal(self) -> int:
        return self.evicted

    @property
    def last_ordinal(self) -> int:
        # -1 while empty
        return self.evicted + len(self._entries) - 1

    def by_ordinal(self, ordinal: int) -> HistoryEntry:
        return self._entries[ordinal - self.evicted]
