"""
Line source for both modes.

Without ``follow`` the file is read once to EOF. With ``follow`` the reader
keeps polling for appended data and reopens the path from the top when the
file is rotated (the path now names a different inode, or is gone for a
while) or truncated below the current read offset.
"""

import logging
import os
import threading

from .errors import InputIOError

logger = logging.getLogger(__name__)

CHUNK = 64 * 1024


def _sig(st: os.stat_result) -> tuple:
    return (st.st_dev, st.st_ino)


class LogFollower:
    def __init__(self, path: str, follow: bool = False,
                 poll_interval: float = 0.1,
                 cancel: threading.Event | None = None):
        self.path          = path
        self.follow        = follow
        self.poll_interval = poll_interval
        self.cancel        = cancel or threading.Event()
        self.reopened      = 0

    def _open(self):
        try:
            return open(self.path, 'rb')
        except OSError as exc:
            raise InputIOError(f'cannot open {self.path}: {exc.strerror or exc}') from exc

    def check(self) -> None:
        # Fail early, before any thread or terminal is started.
        self._open().close()

    def _rotated(self, fh) -> bool:
        try:
            on_disk = os.stat(self.path)
        except OSError:
            return True
        return _sig(on_disk) != _sig(os.fstat(fh.fileno()))

    def _truncated(self, fh) -> bool:
        return os.fstat(fh.fileno()).st_size < fh.tell()

    def _reopen(self):
        # Wait for the path to come back after a rotation.
        while not self.cancel.is_set():
            try:
                fh = open(self.path, 'rb')
            except OSError:
                self.cancel.wait(self.poll_interval)
                continue
            self.reopened += 1
            logger.info('reopened %s after rotation', self.path)
            return fh
        return None

    def __iter__(self):
        return self.lines()

    def lines(self):
        """Yield ``(lineno, text)`` in file order, line numbers from 1."""
        fh     = self._open()
        lineno = 0
        buf    = b''
        try:
            while not self.cancel.is_set():
                chunk = fh.read(CHUNK)
                if chunk:
                    buf += chunk
                    *complete, buf = buf.split(b'\n')
                    for raw in complete:
                        lineno += 1
                        yield lineno, raw.decode('utf-8', errors='replace').rstrip('\r')
                    continue

                # At EOF
                if not self.follow:
                    if buf:
                        lineno += 1
                        yield lineno, buf.decode('utf-8', errors='replace').rstrip('\r')
                    return
                if self._truncated(fh):
                    logger.info('%s truncated, reading from the top', self.path)
                    fh.seek(0)
                    buf = b''
                    continue
                if self._rotated(fh):
                    fh.close()
                    fh  = self._reopen()
                    buf = b''
                    if fh is None:
                        return
                    continue
                self.cancel.wait(self.poll_interval)
        finally:
            if fh is not None:
                fh.close()
