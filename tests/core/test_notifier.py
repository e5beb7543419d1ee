# ==============================
# Change Notifier Tests
# ==============================
from __future__ import annotations

import time
from typing import Callable, List

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent
from watchdog.observers.polling import PollingObserver

from core.dataset.facade import Dataset
from core.watch.notifier import Debouncer, FileChangeNotifier


class _FakeTimer:
    """Stands in for threading.Timer; fires only when told to."""

    created: List["_FakeTimer"] = []

    def __init__(self, interval: float, fn: Callable[[], None]) -> None:
        self.interval = interval
        self.fn = fn
        self.started = False
        self.cancelled = False
        _FakeTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.fn()


class _FakeObserver:
    def __init__(self) -> None:
        self.scheduled = []
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout=None) -> None:
        return None


@pytest.fixture(autouse=True)
def _reset_timers():
    _FakeTimer.created = []
    yield
    _FakeTimer.created = []


# ==============================
# Debouncer
# ==============================


def test_burst_of_triggers_runs_action_once() -> None:
    calls = []
    debouncer = Debouncer(0.5, lambda: calls.append(1), timer_factory=_FakeTimer)

    debouncer.trigger()
    debouncer.trigger()
    debouncer.trigger()

    first, second, last = _FakeTimer.created
    assert first.cancelled and second.cancelled
    assert last.started and not last.cancelled
    assert last.interval == 0.5
    assert debouncer.pending is True

    last.fire()
    assert calls == [1]
    assert debouncer.pending is False


def test_cancel_drops_pending_action() -> None:
    debouncer = Debouncer(1.0, lambda: None, timer_factory=_FakeTimer)
    debouncer.trigger()
    debouncer.cancel()
    assert _FakeTimer.created[0].cancelled is True
    assert debouncer.pending is False


def test_failing_action_is_contained() -> None:
    def _boom() -> None:
        raise RuntimeError("reload exploded")

    debouncer = Debouncer(0.0, _boom, timer_factory=_FakeTimer)
    debouncer.trigger()
    _FakeTimer.created[0].fire()
    assert debouncer.pending is False


# ==============================
# Handler / Notifier
# ==============================


def test_handler_reacts_only_to_the_watched_file(tmp_path) -> None:
    target = tmp_path / "data.csv"
    target.write_text("a\n1\n", encoding="utf-8")
    calls = []
    notifier = FileChangeNotifier(target, lambda: calls.append(1), timer_factory=_FakeTimer)
    handler = notifier.handler

    handler.on_modified(FileModifiedEvent(str(tmp_path / "other.csv")))
    handler.on_modified(DirModifiedEvent(str(tmp_path)))
    assert _FakeTimer.created == []

    handler.on_modified(FileModifiedEvent(str(target)))
    handler.on_created(FileCreatedEvent(str(target)))
    handler.on_moved(FileMovedEvent(str(tmp_path / ".data.csv.swp"), str(target)))
    assert len(_FakeTimer.created) == 3

    _FakeTimer.created[-1].fire()
    assert calls == [1]


def test_start_schedules_parent_directory(tmp_path) -> None:
    target = tmp_path / "data.csv"
    target.write_text("a\n", encoding="utf-8")
    observer = _FakeObserver()
    notifier = FileChangeNotifier(target, lambda: None, observer_factory=lambda: observer)

    assert notifier.start() is True
    assert notifier.start() is True
    assert notifier.is_running is True
    assert observer.scheduled == [(notifier.handler, str(tmp_path.resolve()), False)]

    notifier.stop()
    assert observer.stopped is True
    assert notifier.is_running is False


def test_start_failure_returns_false(tmp_path) -> None:
    def _broken():
        raise OSError("inotify limit reached")

    notifier = FileChangeNotifier(tmp_path / "data.csv", lambda: None, observer_factory=_broken)
    assert notifier.start() is False
    assert notifier.is_running is False


def test_reload_failure_is_logged_not_raised(tmp_path) -> None:
    def _fail() -> None:
        raise ValueError("bad file")

    notifier = FileChangeNotifier(tmp_path / "data.csv", _fail, timer_factory=_FakeTimer)
    notifier.handler.on_modified(FileModifiedEvent(str(tmp_path / "data.csv")))
    _FakeTimer.created[0].fire()


@pytest.mark.integration
def test_dataset_reloads_after_file_is_rewritten(people_csv) -> None:
    dataset = Dataset(people_csv)
    dataset.load()
    seen = []
    dataset.subscribe(seen.append)
    started = dataset.watch(
        stability_window=0.2,
        observer_factory=lambda: PollingObserver(timeout=0.1),
    )
    assert started is True
    try:
        time.sleep(0.3)
        people_csv.write_text("id,city\n1,Oslo\n", encoding="utf-8")
        deadline = time.monotonic() + 10
        while not seen and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        dataset.stop_watching()

    assert seen, "no reload observed"
    assert dataset.columns() == ["id", "city"]


def test_stale_timer_does_not_orphan_the_current_one() -> None:
    calls = []
    debouncer = Debouncer(0.5, lambda: calls.append(1), timer_factory=_FakeTimer)

    debouncer.trigger()
    debouncer.trigger()
    first, second = _FakeTimer.created

    # first timer was already running when the second trigger replaced it
    first.fire()
    assert calls == []
    assert debouncer.pending is True

    debouncer.cancel()
    assert second.cancelled is True
    second.fire()
    assert calls == []
