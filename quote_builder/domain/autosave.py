from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from quote_builder.core.exceptions import PersistenceError
from quote_builder.models.quote import SaveResult

logger = logging.getLogger(__name__)

SaveFn = Callable[[], Awaitable[SaveResult]]


class AutosaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    IN_FLIGHT = "in_flight"


class AutosaveScheduler:
    """
    Debounces edit notifications into saves.

    - ``notify()`` (re)arms the debounce timer.
    - When the timer fires and ``should_save()`` holds, one save is dispatched.
    - Edits that arrive while a save is in flight set a single follow-up flag;
      when the save settles and the draft changed since dispatch, the timer is
      armed once more.
    - ``dirty`` stays set until a save covering the latest edit succeeds; a
      failed save leaves its edits pending for the next save.
    - ``flush()`` cancels the timer, waits out any in-flight save and saves now.
    - ``close()`` cancels the timer; an in-flight save finishes but its result
      is no longer delivered to ``on_result``.
    """

    def __init__(
        self,
        save: SaveFn,
        *,
        delay: float = 2.0,
        should_save: Optional[Callable[[], bool]] = None,
        on_result: Optional[Callable[[SaveResult], None]] = None,
        enabled: bool = True,
    ) -> None:
        self._save = save
        self._delay = max(0.0, float(delay))
        self._should_save = should_save or (lambda: True)
        self._on_result = on_result
        self._enabled = enabled

        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._follow_up = False
        self._closed = False

        self._revision = 0
        self._dispatched_revision = 0
        self._saved_revision = 0
        self.dispatch_count = 0

    @property
    def state(self) -> AutosaveState:
        if self._in_flight is not None:
            return AutosaveState.IN_FLIGHT
        if self._timer is not None:
            return AutosaveState.PENDING
        return AutosaveState.IDLE

    @property
    def dirty(self) -> bool:
        return self._revision != self._saved_revision

    @property
    def follow_up_queued(self) -> bool:
        return self._follow_up

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self) -> None:
        if self._closed:
            return
        self._revision += 1
        if not self._enabled:
            return
        if self._in_flight is not None:
            self._follow_up = True
            return
        self._arm()

    def _arm(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # edits made outside an event loop wait for the next flush()
            logger.debug("no running loop; autosave deferred")
            return
        self._timer = loop.call_later(self._delay, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self._in_flight is not None:
            self._follow_up = True
            return
        if not self.dirty:
            return
        if not self._should_save():
            logger.debug("autosave skipped: draft has no identifying field yet")
            return
        self._dispatch()

    def _dispatch(self) -> asyncio.Task:
        self._dispatched_revision = self._revision
        self._follow_up = False
        self.dispatch_count += 1
        task = asyncio.get_running_loop().create_task(self._run(self._revision))
        self._in_flight = task
        return task

    async def _run(self, revision: int) -> SaveResult:
        try:
            result = await self._save()
        except Exception as e:
            logger.exception("autosave failed unexpectedly")
            result = SaveResult(ok=False, error=PersistenceError(f"Failed to save quote: {e}"))
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None
        if result.ok:
            self._saved_revision = max(self._saved_revision, revision)
        self._settled(result)
        return result

    def _settled(self, result: SaveResult) -> None:
        if self._closed:
            return
        if self._on_result is not None:
            try:
                self._on_result(result)
            except Exception:
                logger.exception("autosave result listener failed")
        if self._follow_up or self._revision != self._dispatched_revision:
            self._follow_up = False
            if self._enabled:
                self._arm()

    async def settle(self) -> None:
        """Cancel any pending timer and wait for the in-flight save, if any."""
        self._cancel_timer()
        while self._in_flight is not None:
            await asyncio.shield(self._in_flight)
        self._cancel_timer()

    async def flush(self) -> SaveResult:
        """Forced save: bypasses the debounce window."""
        await self.settle()
        task = self._dispatch()
        return await asyncio.shield(task)

    def close(self) -> None:
        self._closed = True
        self._cancel_timer()
        self._follow_up = False

    async def drain(self) -> None:
        while self._in_flight is not None:
            await asyncio.shield(self._in_flight)
