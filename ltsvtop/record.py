"""
RecordParser: label map -> Record | Skip, or MissingFieldError.

A missing label is fatal for the whole run (the label document is wrong for
this log, or the line is not LTSV at all), a present value that will not
parse only drops that one line.
"""

from dataclasses import dataclass
from urllib.parse import urlsplit

from .config import FieldLabels
from .errors import MissingFieldError


@dataclass(frozen=True)
class Record:
    uri:           str
    method:        str
    status:        str
    response_time: float
    body_size:     float

    @property
    def key(self) -> tuple:
        return (self.uri, self.method)

    @property
    def status_class(self) -> str:
        # '2'..'5' for well formed codes; anything else is left uncounted
        return self.status[:1]


@dataclass(frozen=True)
class Skip:
    reason: str


def _to_float(raw: str) -> float | None:
    try:
        return float(raw)
    except ValueError:
        return None


class RecordParser:
    def __init__(self, labels: FieldLabels | None = None):
        self.labels = labels or FieldLabels()

    def parse(self, fields: dict) -> Record | Skip:
        lb = self.labels
        # Presence first: a missing label beats a bad value on the same line.
        for label in (lb.uri, lb.status):
            if label not in fields:
                raise MissingFieldError(label)
        if lb.apptime not in fields and lb.reqtime not in fields:
            raise MissingFieldError(f'{lb.apptime}/{lb.reqtime}')
        for label in (lb.size, lb.method):
            if label not in fields:
                raise MissingFieldError(label)

        try:
            uri = urlsplit(fields[lb.uri]).path
        except ValueError:
            return Skip(f'unparsable uri {fields[lb.uri]!r}')

        res_time = None
        if lb.apptime in fields:
            res_time = _to_float(fields[lb.apptime])
        if res_time is None and lb.reqtime in fields:
            res_time = _to_float(fields[lb.reqtime])
        if res_time is None:
            return Skip('non-numeric response time')

        body = _to_float(fields[lb.size])
        if body is None:
            return Skip(f'non-numeric {lb.size} {fields[lb.size]!r}')

        return Record(
            uri           = uri,
            method        = fields[lb.method],
            status        = fields[lb.status],
            response_time = res_time,
            body_size     = body,
        )
