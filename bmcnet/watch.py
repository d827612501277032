"""Watch a file for completed writes and call back when it changes."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from bmcnet.system import InternalFailure

__all__ = ["Watch"]

log = logging.getLogger(__name__)


class _Handler(FileSystemEventHandler):
    def __init__(self, watch: "Watch") -> None:
        super().__init__()
        self._watch = watch

    def on_closed(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._watch._dispatch(os.fsdecode(event.src_path))


class Watch:
    """Calls back with the file's path whenever a writer closes it.

    The parent directory is watched and events are matched by name, so
    the file may be replaced by the writer.
    """

    def __init__(
        self, path: str | os.PathLike, callback: Callable[[str], None] | None
    ) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            log.error("Watch file doesn't exist: FILE=%s", self.path)
            raise InternalFailure(f"Watch file doesn't exist: {self.path}")
        self._callback = callback
        self._observer = None

    def _dispatch(self, event_path: str) -> None:
        if self.path.name not in os.path.basename(event_path):
            return
        if self._callback is not None:
            self._callback(str(self.path))

    def start(self) -> None:
        """Begin watching; does nothing if already started."""
        if self._observer is not None:
            return
        observer = Observer()
        try:
            observer.schedule(_Handler(self), str(self.path.parent), recursive=False)
            observer.start()
        except OSError as exc:
            log.error("Error adding the watch: %s", exc)
            raise InternalFailure(f"Unable to watch {self.path}") from exc
        self._observer = observer

    def stop(self) -> None:
        """Stop watching and wait for the watcher thread to end."""
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join()

    def __enter__(self) -> "Watch":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()