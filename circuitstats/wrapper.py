"""Run functions in a worker thread so callers can stop waiting early.

Exceptions raised by a run function are errors and are re-raised to the
caller. A BaseException that is not an Exception is treated as a panic:
unless panic catching is off, it is also carried back and re-raised.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable, Optional


class ContextCancelled(Exception):
    """A context ended, by cancellation or by its deadline."""

    def __init__(self, deadline: bool = False) -> None:
        self.deadline = deadline
        super().__init__("context deadline exceeded" if deadline else "context canceled")


class Context:
    """A cancellation signal, optionally ending itself after a timeout."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._err: Optional[ContextCancelled] = None
        self._callbacks: list[Callable[[], None]] = []
        self._timer: Optional[threading.Timer] = None

    @property
    def err(self) -> Optional[ContextCancelled]:
        """Why the context ended, or None while it is still live."""
        with self._lock:
            return self._err

    def _finish(self, err: ContextCancelled) -> None:
        with self._lock:
            if self._err is not None:
                return
            self._err = err
            callbacks, self._callbacks = self._callbacks, []
            timer, self._timer = self._timer, None
        self._event.set()
        if timer is not None:
            timer.cancel()
        for callback in callbacks:
            callback()

    def cancel(self) -> None:
        """End the context now."""
        self._finish(ContextCancelled())

    def done(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[int] = None) -> bool:
        """Block until the context ends or timeout nanoseconds pass."""
        seconds = None if timeout is None else timeout / 1_000_000_000
        return self._event.wait(seconds)

    @classmethod
    def with_timeout(cls, timeout: int) -> Context:
        """A context that ends by itself after timeout nanoseconds."""
        ctx = cls()
        timer = threading.Timer(
            timeout / 1_000_000_000, ctx._finish, args=(ContextCancelled(deadline=True),)
        )
        timer.daemon = True
        ctx._timer = timer
        timer.start()
        return ctx

    def _add_done_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._err is None:
                self._callbacks.append(callback)
                return
        callback()

    def _remove_done_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


LostErrors = Callable[[Optional[BaseException], Optional[BaseException]], None]


class TaskWrapper:
    """Wraps run and fallback functions to run in a separate thread.

    If the context ends first, the caller gets the context's error and the
    eventual result of the abandoned call goes to ``lost_errors``.
    """

    def __init__(
        self, lost_errors: Optional[LostErrors] = None, skip_catch_panics: bool = False
    ) -> None:
        self.lost_errors = lost_errors
        self.skip_catch_panics = skip_catch_panics

    def run(
        self, run_func: Optional[Callable[[Context], Any]]
    ) -> Optional[Callable[[Context], Any]]:
        if run_func is None:
            return None

        def wrapped(ctx: Context) -> Any:
            panic_results: Optional[queue.Queue] = (
                None if self.skip_catch_panics else queue.Queue(maxsize=1)
            )
            run_results: queue.Queue = queue.Queue(maxsize=1)
            wake = threading.Event()
            returned: list[Any] = []

            def worker() -> None:
                try:
                    returned.append(run_func(ctx))
                    run_results.put(None)
                except Exception as exc:
                    run_results.put(exc)
                except BaseException as panic:
                    if panic_results is None:
                        raise
                    panic_results.put(panic)
                finally:
                    wake.set()

            threading.Thread(target=worker, daemon=True).start()
            ctx._add_done_callback(wake.set)
            try:
                while True:
                    try:
                        err = run_results.get_nowait()
                    except queue.Empty:
                        pass
                    else:
                        if err is not None:
                            raise err
                        return returned[0]
                    if panic_results is not None:
                        try:
                            panic = panic_results.get_nowait()
                        except queue.Empty:
                            pass
                        else:
                            raise panic
                    if ctx.done():
                        if self.lost_errors is not None:
                            threading.Thread(
                                target=self.wait_for_errors,
                                args=(run_results, panic_results),
                                daemon=True,
                            ).start()
                        raise ctx.err  # type: ignore[misc]
                    wake.wait()
                    wake.clear()
            finally:
                ctx._remove_done_callback(wake.set)

        return wrapped

    def fallback(
        self, fallback_func: Optional[Callable[[Context, BaseException], Any]]
    ) -> Optional[Callable[[Context, BaseException], Any]]:
        if fallback_func is None:
            return None

        def wrapped(ctx: Context, err: BaseException) -> Any:
            runner = self.run(lambda run_ctx: fallback_func(run_ctx, err))
            assert runner is not None
            return runner(ctx)

        return wrapped

    def wait_for_errors(
        self, run_results: queue.Queue, panic_results: Optional[queue.Queue]
    ) -> None:
        """Wait for an abandoned call to finish and report its outcome."""
        assert self.lost_errors is not None
        if panic_results is None:
            self.lost_errors(run_results.get(), None)
            return
        while True:
            try:
                err = run_results.get(timeout=0.01)
            except queue.Empty:
                pass
            else:
                self.lost_errors(err, None)
                return
            try:
                panic = panic_results.get_nowait()
            except queue.Empty:
                continue
            self.lost_errors(None, panic)
            return