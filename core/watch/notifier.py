# ==============================
# Change Notifier
# ==============================
"""
Watches one source file and fires a reload once its writes have settled.

Responsibilities:
- Observe the file's directory with watchdog
- Collapse bursts of events into one call after `stability_window` seconds
  of quiet (Debouncer)
- Log reload/watcher failures; never raise into the watchdog thread

The notifier knows nothing about snapshots: it calls `on_settled()` and the
dataset facade does the rest.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger("csv2api.watch")

TimerFactory = Callable[[float, Callable[[], None]], Any]


# ==============================
# Debounce
# ==============================
class Debouncer:
    """
    Run `action` once, `window` seconds after the most recent trigger().

    Every trigger() inside the window restarts the countdown.
    """

    def __init__(
        self,
        window: float,
        action: Callable[[], None],
        *,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.window = max(0.0, float(window))
        self.action = action
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._generation = 0

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.window, lambda: self._fire(generation))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _fire(self, generation: int) -> None:
        with self._lock:
            # a timer that fired after being superseded or cancelled is stale
            if generation != self._generation:
                return
            self._timer = None
        try:
            self.action()
        except Exception:
            logger.exception("debounced action failed")


# ==============================
# Watchdog Handler
# ==============================
class _SourceFileHandler(FileSystemEventHandler):
    """Forwards create/modify/move-onto events for one path to a debouncer."""

    def __init__(self, target: Path, debouncer: Debouncer) -> None:
        super().__init__()
        self._target = target
        self._debouncer = debouncer

    def _matches(self, raw_path: Union[str, bytes, None]) -> bool:
        if not raw_path:
            return False
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode(errors="replace")
        try:
            return Path(raw_path).resolve() == self._target
        except OSError:
            return False

    def _handle(self, event: FileSystemEvent, raw_path: Union[str, bytes, None]) -> None:
        if event.is_directory or not self._matches(raw_path):
            return
        logger.debug("file event %s on %s", event.event_type, raw_path)
        self._debouncer.trigger()

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # editors often save by writing a temp file and renaming it over the target
        self._handle(event, getattr(event, "dest_path", None))


# ==============================
# Notifier
# ==============================
class FileChangeNotifier:
    def __init__(
        self,
        path: Union[str, Path],
        on_settled: Callable[[], Any],
        *,
        stability_window: float = 1.0,
        observer_factory: Callable[[], Any] = Observer,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.path = Path(path).expanduser().resolve()
        self.on_settled = on_settled
        self.stability_window = stability_window
        self._observer_factory = observer_factory
        self._observer: Optional[Any] = None
        self._debouncer = Debouncer(stability_window, self._reload, timer_factory=timer_factory)
        self._handler = _SourceFileHandler(self.path, self._debouncer)

    @property
    def handler(self) -> FileSystemEventHandler:
        return self._handler

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> bool:
        if self._observer is not None:
            return True
        try:
            observer = self._observer_factory()
            observer.schedule(self._handler, str(self.path.parent), recursive=False)
            observer.start()
        except Exception as exc:
            logger.error("failed to start file watcher for %s: %s", self.path, exc)
            return False
        self._observer = observer
        logger.info(
            "watching %s",
            self.path,
            extra={"path": str(self.path), "stability_window": self.stability_window},
        )
        return True

    def stop(self) -> None:
        self._debouncer.cancel()
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout=2.0)
        except Exception as exc:
            logger.warning("error stopping file watcher for %s: %s", self.path, exc)
        else:
            logger.info("stopped watching %s", self.path)

    def _reload(self) -> None:
        logger.info("source file changed: %s", self.path, extra={"path": str(self.path)})
        try:
            self.on_settled()
        except Exception as exc:
            logger.warning("reload after file change failed: %s", exc, extra={"path": str(self.path)})
