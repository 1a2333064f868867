"""Filesystem watcher that re-ingests edited knowledge-base documents."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Sequence

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from campus_chat.core.logging import get_logger

logger = get_logger(__name__)

ChangeCallback = Callable[[Sequence[Path]], object]
DEFAULT_PATTERNS = ("*.md", "*.markdown", "*.txt", "*.text")


class ContentEventHandler(PatternMatchingEventHandler):
    """Forward created, modified and moved text files to the ingest callback."""

    def __init__(self, callback: ChangeCallback, patterns: Sequence[str] = DEFAULT_PATTERNS) -> None:
        super().__init__(
            patterns=list(patterns),
            ignore_patterns=["*~", ".*"],
            ignore_directories=True,
            case_sensitive=False,
        )
        self.callback = callback

    def _dispatch_path(self, path: str) -> None:
        try:
            self.callback([Path(path)])
        except Exception:  # watchdog thread must survive a failed ingest
            logger.exception("Re-ingest of %s failed", path)

    def on_created(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self._dispatch_path(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self._dispatch_path(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        self._dispatch_path(event.dest_path)


class Watcher:
    """High-level wrapper around a watchdog observer for one content directory."""

    def __init__(self, directory: Path, callback: ChangeCallback, recursive: bool = True) -> None:
        self.directory = directory.expanduser().resolve()
        self.handler = ContentEventHandler(callback)
        self.recursive = recursive
        self._observer: BaseObserver | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            observer = Observer()
            observer.schedule(self.handler, str(self.directory), recursive=self.recursive)
            observer.start()
            self._observer = observer
            logger.info("Watching %s for content changes", self.directory)

    def stop(self) -> None:
        with self._lock:
            if self._observer is None:
                return
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None


__all__ = ["Watcher", "ContentEventHandler", "ChangeCallback"]
