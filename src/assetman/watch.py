"""Filesystem watch driven incremental reindexing."""

from __future__ import annotations

import asyncio
import queue
import stat
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetman.index import build_asset_record

if TYPE_CHECKING:
    from assetman.manager import AssetManager

_IGNORED_EVENT_TYPES = frozenset({"opened", "closed", "closed_no_write"})


class WatchReindexer:
    """Keeps a manager's asset map in step with changes below its asset directory.

    One recursive watchdog observer covers the whole tree, so newly created
    directories are watched without rescheduling. Manager state is never
    touched from the observer thread: with a ``loop`` changes are handed to it
    with ``call_soon_threadsafe``, without one they are queued until the
    owning thread calls ``drain``.
    """

    def __init__(
        self,
        manager: AssetManager,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._manager = manager
        self._loop = loop
        self._root = manager.config.asset_dir
        self._observer: Observer | None = None
        self._queue: queue.SimpleQueue[str] = queue.SimpleQueue()

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(AssetEventHandler(self), str(self._root), recursive=True)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join()

    def notify(self, absolute_path: str) -> None:
        """Entry point for observer callbacks; may run on the observer thread."""
        relative = self.relative_name(absolute_path)
        if relative is None:
            return
        if self._loop is None:
            self._queue.put(relative)
            return
        self._loop.call_soon_threadsafe(self.handle_change, relative)

    def drain(self) -> int:
        """Apply queued changes on the calling thread; returns how many were applied."""
        applied = 0
        while True:
            try:
                relative = self._queue.get_nowait()
            except queue.Empty:
                return applied
            if self.handle_change(relative):
                applied += 1

    def relative_name(self, absolute_path: str) -> str | None:
        path = Path(absolute_path)
        if not path.is_relative_to(self._root):
            return None
        relative = path.relative_to(self._root).as_posix()
        if relative in ("", "."):
            return None
        return relative

    def handle_change(self, relative: str) -> bool:
        """Apply one change notification; returns False when the path is ignored."""
        manager = self._manager
        if manager.is_compiled_asset(relative) or manager.is_internal_path(relative):
            return False

        full_path = self._root / relative
        try:
            mode = full_path.stat().st_mode
        except OSError:
            manager.forget_asset(relative)
        else:
            if stat.S_ISDIR(mode):
                manager.reindex()
            else:
                self._refresh_file(relative)
        manager.write_manifest()
        manager.publish_change(relative)
        return True

    def _refresh_file(self, relative: str) -> None:
        manager = self._manager
        try:
            record = build_asset_record(
                self._root, relative, manager.config.naming.hash_algorithm
            )
        except OSError:
            manager.forget_asset(relative)
            return
        manager.store_asset(record)


class AssetEventHandler(FileSystemEventHandler):
    """Forwards created, modified, deleted and moved paths to a reindexer."""

    def __init__(self, reindexer: WatchReindexer) -> None:
        super().__init__()
        self._reindexer = reindexer

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        # a child changed; the child event carries the path
        if event.is_directory and event.event_type == "modified":
            return
        self._reindexer.notify(_as_text(event.src_path))
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            self._reindexer.notify(_as_text(dest_path))


def _as_text(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path
