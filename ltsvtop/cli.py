"""
ltsvtop: access log profiler for LTSV logs

Usage:    ltsvtop -f access.log                    one-shot table
          ltsvtop -f access.log --tail             live dashboard
          ltsvtop -f access.log --sort-by p99,desc --expand

Sort metrics: count min max avg stdev p10 p50 p90 p95 p99
              bodymin bodymax bodyavg   (append ,desc for descending)

Dashboard keys:
  Tab       switch between stats table and record inspector
  Up/k      scroll up
  Down/j    scroll down
  q / Esc   quit
"""

import argparse
import logging
import os
import sys
import traceback

from . import __version__
from .config import DEFAULT_MAX_RECORDS, FieldLabels, Options, load_labels
from .errors import LtsvTopError
from .history import RawRecordHistory
from .pipeline import IngestionPipeline, aggregate_file
from .record import RecordParser
from .report import BatchReporter
from .stats import SortSpec

logger = logging.getLogger('ltsvtop')
logger.addHandler(logging.NullHandler())


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog='ltsvtop',
        description='ltsvtop: access log profiler for LTSV logs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__)
    ap.add_argument('-f', '--file', metavar='PATH', required=True,
                    help='LTSV access log to profile')
    ap.add_argument('-t', '--tail', action='store_true',
                    help='follow the file and show the live dashboard')
    ap.add_argument('-e', '--expand', action='store_true',
                    help='add P10/P50/P90/P95/P99 columns')
    ap.add_argument('--sort-by', metavar='METRIC[,desc]', default='count',
                    help='sort rows by metric (default: count)')
    ap.add_argument('--label-as', metavar='PATH',
                    help='JSON or YAML document renaming the expected labels')
    ap.add_argument('--max-records', metavar='N', type=int,
                    default=DEFAULT_MAX_RECORDS,
                    help=f'raw records kept for the inspector (default: {DEFAULT_MAX_RECORDS})')
    ap.add_argument('--workers', metavar='N', type=int,
                    default=os.cpu_count() or 1,
                    help='parser threads in tail mode (default: CPU count)')
    ap.add_argument('--unordered', action='store_true',
                    help='apply records in the order parsers finish instead of file order')
    ap.add_argument('--log-file', metavar='PATH',
                    help='write debug logging to PATH')
    ap.add_argument('--trace', action='store_true',
                    help='print the full traceback on errors')
    ap.add_argument('-v', '--version', action='version',
                    version=f'%(prog)s {__version__}')
    return ap


def options_from_args(args: argparse.Namespace) -> Options:
    labels = load_labels(args.label_as) if args.label_as else FieldLabels()
    return Options(
        path        = args.file,
        tail        = args.tail,
        expand      = args.expand,
        sort        = args.sort_by,
        labels      = labels,
        max_records = args.max_records,
        workers     = args.workers,
        ordered     = not args.unordered,
        trace       = args.trace,
        log_file    = args.log_file,
    ).validate()


def _setup_logging(path: str | None) -> None:
    if not path:
        return
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)-7s %(threadName)s %(name)s: %(message)s'))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def run_batch(opts: Options, out=None) -> None:
    result = aggregate_file(opts.path, RecordParser(opts.labels))
    logger.info('batch: %d line(s) read, %d ignored, %d key(s)',
                result.lines_read, result.lines_ignored, len(result.table))
    BatchReporter(opts.expand, SortSpec.parse(opts.sort)).write(result.table, out)


def run_tail(opts: Options) -> None:
    # imported here so batch mode never needs a terminal
    from .dashboard import Dashboard

    pipeline = IngestionPipeline(
        opts.path,
        parser  = RecordParser(opts.labels),
        history = RawRecordHistory(opts.max_records),
        workers = opts.workers,
        follow  = True,
        ordered = opts.ordered,
    )
    Dashboard(pipeline, opts.expand, SortSpec.parse(opts.sort)).run()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        opts = options_from_args(args)
        _setup_logging(opts.log_file)
        if opts.tail:
            run_tail(opts)
        else:
            run_batch(opts)
    except LtsvTopError as exc:
        logger.error('%s', exc)
        if args.trace:
            print('Error:', file=sys.stderr)
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(f'Error:\n  {exc}', file=sys.stderr)
        return exc.exit_code
    return 0
