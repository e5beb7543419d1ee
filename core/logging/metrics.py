# ==============================
# Metrics (In-Memory)
# ==============================
"""
Thread-safe in-memory counters and timers.

Used for reload outcomes and request latency; the snapshot is served on
/health. Timers keep running aggregates (count/total/max), not samples.
No exporters.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator


@dataclass
class Timer:
    name: str
    started: float


@dataclass
class TimerStat:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, value_ms: float) -> None:
        self.count += 1
        self.total_ms += value_ms
        self.max_ms = max(self.max_ms, value_ms)


class Metrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._timers_ms: Dict[str, TimerStat] = {}

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def count(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def start_timer(self, name: str) -> Timer:
        return Timer(name=name, started=time.perf_counter())

    def stop_timer(self, timer: Timer) -> float:
        elapsed_ms = (time.perf_counter() - timer.started) * 1000
        self.observe_ms(timer.name, elapsed_ms)
        return elapsed_ms

    @contextmanager
    def timed(self, name: str) -> Iterator[Timer]:
        timer = self.start_timer(name)
        try:
            yield timer
        finally:
            self.stop_timer(timer)

    def observe_ms(self, name: str, value_ms: float) -> None:
        with self._lock:
            self._timers_ms.setdefault(name, TimerStat()).add(value_ms)

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            timers = {
                name: {
                    "count": stat.count,
                    "avg_ms": round(stat.total_ms / stat.count, 3),
                    "max_ms": round(stat.max_ms, 3),
                }
                for name, stat in self._timers_ms.items()
                if stat.count
            }
            return {"counters": dict(self._counters), "timers_ms": timers}
