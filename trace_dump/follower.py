"""DumpFileFollower: watchdog event handler tailing a dump redirected to a file."""

import asyncio
import logging
import os
from typing import Callable

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class DumpFileFollower(FileSystemEventHandler):
    """Reads lines appended to a single file and hands them to the event loop.

    watchdog calls back on its observer thread; every complete line is
    scheduled onto `loop` with call_soon_threadsafe so on_line always runs on
    the loop thread, in file order.
    """

    def __init__(
        self,
        path: str,
        on_line: Callable[[str], None],
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        super().__init__()
        self._path = os.path.abspath(path)
        self._on_line = on_line
        self._loop = loop
        self._fh = None
        self._inode: int | None = None
        self._partial = ""

    @property
    def path(self) -> str:
        return self._path

    @property
    def watched_dir(self) -> str:
        return os.path.dirname(self._path)

    def _open_file(self, from_start: bool = False):
        """Open the file, seeking to the end unless from_start is set."""
        if self._fh is not None:
            self._fh.close()
            self._fh = None
        try:
            stat = os.stat(self._path)
        except FileNotFoundError:
            logger.debug("File not found: %s", self._path)
            return
        fh = open(self._path, "r", encoding="utf-8", errors="replace", newline="")
        if not from_start:
            fh.seek(0, os.SEEK_END)
        self._fh = fh
        self._inode = stat.st_ino
        self._partial = ""
        logger.debug("Opened %s at offset %d", self._path, fh.tell())

    def _check_rotation(self):
        """Reopen from the start when the file was replaced or truncated."""
        try:
            stat = os.stat(self._path)
        except FileNotFoundError:
            return
        if self._inode is not None and stat.st_ino != self._inode:
            logger.info("File rotated (inode changed): %s", self._path)
            self._open_file(from_start=True)
        elif self._fh is not None and stat.st_size < self._fh.tell():
            logger.info("File truncated: %s", self._path)
            self._open_file(from_start=True)

    def read_new_lines(self):
        """Read from the current position to EOF and deliver complete lines."""
        if self._fh is None:
            self._open_file(from_start=True)
        else:
            self._check_rotation()
        if self._fh is None:
            return

        data = self._fh.read()
        if not data:
            return
        data = self._partial + data
        lines = data.split("\n")
        # Last element is a partial line unless data ended with a newline
        self._partial = lines.pop()

        for line in lines:
            line = line.rstrip("\r")
            if line:
                self._loop.call_soon_threadsafe(self._on_line, line)

    def startup_read(self, from_start: bool = True):
        """Deliver existing content (or skip it) before the observer starts."""
        if os.path.exists(self._path):
            logger.info("Startup read: %s", self._path)
            self._open_file(from_start=from_start)
            self.read_new_lines()

    def on_modified(self, event):
        if event.is_directory:
            return
        if os.path.abspath(event.src_path) == self._path:
            self.read_new_lines()

    def on_created(self, event):
        if event.is_directory:
            return
        if os.path.abspath(event.src_path) == self._path:
            logger.info("Watched file created: %s", self._path)
            self._open_file(from_start=True)
            self.read_new_lines()

    def close(self):
        if self._fh is not None:
            self._fh.close()
            self._fh = None


def start_observer(follower: DumpFileFollower) -> Observer:
    """Schedule the follower on a new watchdog Observer and start it."""
    os.makedirs(follower.watched_dir, exist_ok=True)
    observer = Observer()
    observer.schedule(follower, follower.watched_dir, recursive=False)
    observer.start()
    logger.info("Watching directory: %s", follower.watched_dir)
    return observer
