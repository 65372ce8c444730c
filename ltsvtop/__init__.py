"""Per-endpoint latency and body-size profiler for LTSV access logs."""

__version__ = '0.1.0'
