"""
Error taxonomy. Every fatal condition is an LtsvTopError carrying the
sysexits-style code the CLI exits with; recoverable value failures are not
exceptions at all (see record.Skip).
"""

EX_DATAERR  = 65
EX_SOFTWARE = 70
EX_IOERR    = 74
EX_CONFIG   = 78


class LtsvTopError(Exception):
    exit_code = EX_SOFTWARE


class ConfigError(LtsvTopError):
    # Bad label document or option value; raised before any processing.
    exit_code = EX_CONFIG


class InputIOError(LtsvTopError):
    exit_code = EX_IOERR


class MissingFieldError(LtsvTopError):
    """A required label is absent from a log line.

    ``lineno`` is filled in by whoever knows where the line came from; the
    parser itself only sees the label map.
    """
    exit_code = EX_DATAERR

    def __init__(self, label: str, lineno: int | None = None):
        self.label  = label
        self.lineno = lineno
        super().__init__(label, lineno)

    def at_line(self, lineno: int) -> 'MissingFieldError':
        self.lineno = lineno
        return self

    def __str__(self) -> str:
        msg = f'could not find {self.label!r} label'
        if self.lineno is not None:
            msg += f' at line: {self.lineno}'
        return msg


class RenderError(LtsvTopError):
    exit_code = EX_SOFTWARE
