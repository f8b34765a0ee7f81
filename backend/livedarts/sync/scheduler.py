from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol

Task = Callable[[], None]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """
    Background execution for persistence. Tasks must never block the caller.
    """

    def submit(self, task: Task) -> None: ...

    def call_later(self, delay_sec: float, task: Task) -> Cancellable: ...

    def every(self, interval_sec: float, task: Task) -> Cancellable: ...

    def shutdown(self) -> None: ...


class _Repeating:
    def __init__(self, interval_sec: float, fire: Callable[[Task], None], task: Task) -> None:
        self._interval = interval_sec
        self._fire = fire
        self._task = task
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name="livedarts-periodic", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            self._fire(self._task)

    def cancel(self) -> None:
        self._stopped.set()


class ThreadScheduler:
    """
    Runs every task on one worker thread, in submission order.

    Timers only hand their task to the worker when they fire, so a delayed
    push still queues behind anything submitted before it fired.
    """

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="livedarts-sync")
        self._lock = threading.Lock()
        self._handles: set[Cancellable] = set()
        self._closed = False

    def submit(self, task: Task) -> None:
        with self._lock:
            if self._closed:
                return
            self._executor.submit(task)

    def call_later(self, delay_sec: float, task: Task) -> Cancellable:
        timer = threading.Timer(delay_sec, self.submit, args=(task,))
        timer.daemon = True
        self._track(timer)
        timer.start()
        return timer

    def every(self, interval_sec: float, task: Task) -> Cancellable:
        handle = _Repeating(interval_sec, self.submit, task)
        self._track(handle)
        return handle

    def _track(self, handle: Cancellable) -> None:
        with self._lock:
            self._handles = {h for h in self._handles if not _finished(h)}
            self._handles.add(handle)

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            handles = list(self._handles)
            self._handles.clear()
        for handle in handles:
            handle.cancel()
        self._executor.shutdown(wait=False)


def _finished(handle: Cancellable) -> bool:
    if isinstance(handle, threading.Timer):
        return handle.finished.is_set()
    if isinstance(handle, _Repeating):
        return handle._stopped.is_set()
    return False
