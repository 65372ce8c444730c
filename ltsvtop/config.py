"""
Field-name mapping and run options.

The label document maps the logical fields onto whatever labels a given
access log uses, e.g. (YAML)::

    apptime_label: upstream_time
    reqtime_label: reqtime
    uri_label:     path

JSON documents (``*.json``) are read with the json module, anything else as
YAML. Keys left out fall back to the defaults below.
"""

import json
import os
import sys
from dataclasses import dataclass, field

import yaml

from .errors import ConfigError

DEFAULT_LABELS = {
    'apptime_label': 'apptime',
    'reqtime_label': 'request_time',
    'status_label':  'status',
    'size_label':    'size',
    'method_label':  'method',
    'uri_label':     'uri',
    'time_label':    'time',
}

DEFAULT_MAX_RECORDS = 1000


def _warn(msg: str) -> None:
    print(f'[ltsvtop warn] {msg}', file=sys.stderr)


class FieldLabels:
    # Resolved label names for one run. Empty or missing entries use defaults.
    def __init__(self, d: dict | None = None):
        d = d or {}
        for key, default in DEFAULT_LABELS.items():
            val = d.get(key)
            if val is not None and not isinstance(val, str):
                raise ConfigError(
                    f'{key} must be a string, got {type(val).__name__}')
            setattr(self, key[:-len('_label')], val or default)

    def as_dict(self) -> dict:
        return {key: getattr(self, key[:-len('_label')]) for key in DEFAULT_LABELS}

    def __eq__(self, other):
        if not isinstance(other, FieldLabels):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        inner = ', '.join(f'{k}={v!r}' for k, v in self.as_dict().items())
        return f'FieldLabels({inner})'


def load_labels(path: str) -> FieldLabels:
    try:
        with open(path, encoding='utf-8') as fh:
            if os.path.splitext(path)[1].lower() == '.json':
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigError(f'cannot read label document {path}: {exc}') from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f'cannot parse label document {path}: {exc}') from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f'label document {path} must be a mapping, got {type(data).__name__}')
    for key in sorted(set(data) - set(DEFAULT_LABELS)):
        _warn(f'{os.path.basename(path)}: unknown key {key!r} ignored')
    return FieldLabels(data)


@dataclass
class Options:
    path:        str
    tail:        bool = False
    expand:      bool = False
    sort:        str  = 'count'
    labels:      FieldLabels = field(default_factory=FieldLabels)
    max_records: int  = DEFAULT_MAX_RECORDS
    workers:     int  = field(default_factory=lambda: os.cpu_count() or 1)
    ordered:     bool = True
    trace:       bool = False
    log_file:    str | None = None

    def validate(self) -> 'Options':
        if self.max_records < 1:
            raise ConfigError(f'--max-records must be at least 1, got {self.max_records}')
        if self.workers < 1:
            raise ConfigError(f'--workers must be at least 1, got {self.workers}')
        return self
