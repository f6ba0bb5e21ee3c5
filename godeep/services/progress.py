"""Per-run research progress channels keyed by chat id."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

from loguru import logger

from godeep.config import settings
from godeep.models.events import ProgressEvent, ProgressStatus


Listener = Callable[[ProgressEvent], None]

_S = ProgressStatus
ALLOWED_TRANSITIONS: dict[ProgressStatus | None, frozenset[ProgressStatus]] = {
    None: frozenset({_S.STARTING, _S.ERROR}),
    _S.STARTING: frozenset({_S.GENERATING_QUERIES, _S.ERROR}),
    _S.GENERATING_QUERIES: frozenset({_S.PROCESSING_QUERY, _S.FINALIZING, _S.ERROR}),
    _S.PROCESSING_QUERY: frozenset({_S.PROCESSING_QUERY, _S.FINALIZING, _S.ERROR}),
    _S.FINALIZING: frozenset({_S.COMPLETE, _S.ERROR}),
    _S.COMPLETE: frozenset(),
    _S.ERROR: frozenset(),
}


class ProgressStateError(RuntimeError):
    """Raised for a status transition the run lifecycle does not allow."""


class ProgressChannel:
    """Progress handle for one research run.

    Events go synchronously to the listeners attached at emit time, in
    registration order. Nothing is buffered, so a late listener only sees
    later events. Once a terminal status is emitted, listeners are detached
    after ``grace_seconds``.
    """

    def __init__(
        self,
        chat_id: str,
        grace_seconds: float | None = None,
        on_close: Callable[["ProgressChannel"], None] | None = None,
    ):
        self.chat_id = chat_id
        self.grace_seconds = settings.progress_grace_seconds if grace_seconds is None else grace_seconds
        self._listeners: list[Listener] = []
        self._status: ProgressStatus | None = None
        self._last_step = 0
        self._on_close = on_close
        self._closed = False
        self._claimed = False

    @property
    def status(self) -> ProgressStatus | None:
        return self._status

    @property
    def started(self) -> bool:
        return self._status is not None

    @property
    def finished(self) -> bool:
        return self._status is not None and self._status.is_terminal

    @property
    def claimed(self) -> bool:
        """True once a run has been assigned to this channel."""
        return self._claimed

    def claim(self) -> None:
        if self._claimed or self.started:
            raise ProgressStateError(f"Research already in progress for chat {self.chat_id}")
        self._claimed = True

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Attach a listener; returns a callable that detaches it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return
        if not self.started and not self._claimed and not self._listeners:
            self._close()

    def emit(
        self,
        status: ProgressStatus | str,
        current_step: int,
        total_steps: int,
        message: str,
    ) -> ProgressEvent | None:
        """Publish one event. Returns it, or None when dropped after a terminal status."""
        status = ProgressStatus(status)
        if self.finished:
            logger.warning(
                f"Dropping progress '{status.value}' for chat {self.chat_id}: run already {self._status.value}"
            )
            return None
        if status not in ALLOWED_TRANSITIONS[self._status]:
            previous = self._status.value if self._status else "<none>"
            raise ProgressStateError(f"Illegal progress transition {previous} -> {status.value}")

        step = max(int(current_step), self._last_step)
        self._last_step = step
        self._status = status
        event = ProgressEvent(
            chat_id=self.chat_id,
            current_step=step,
            total_steps=max(int(total_steps), step),
            status=status,
            message=message,
        )

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Progress listener failed for chat {self.chat_id}: {e}")

        if status.is_terminal:
            self._schedule_detach()
        return event

    def _schedule_detach(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._detach_all()
            return
        loop.call_later(self.grace_seconds, self._detach_all)

    def _detach_all(self) -> None:
        self._listeners.clear()
        self._close()

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close(self)

    def stream(self) -> "ProgressStream":
        """Async iterator over events from now until (and including) the terminal one.

        The listener is attached immediately, not on first iteration.
        """
        return ProgressStream(self)


class ProgressStream:
    """Queue-backed listener exposed as an async iterator."""

    def __init__(self, channel: ProgressChannel):
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        self._done = channel.finished
        self._unsubscribe: Callable[[], None] | None = None
        if not self._done:
            self._unsubscribe = channel.subscribe(self._queue.put_nowait)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._done:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event.status.is_terminal:
            self._finish()
        return event

    def _finish(self) -> None:
        self._done = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def aclose(self) -> None:
        self._finish()


class ProgressRegistry:
    """Hands out progress channels by chat id."""

    def __init__(self, grace_seconds: float | None = None):
        self.grace_seconds = grace_seconds
        self._channels: dict[str, ProgressChannel] = {}

    def _new_channel(self, chat_id: str) -> ProgressChannel:
        channel = ProgressChannel(chat_id, grace_seconds=self.grace_seconds, on_close=self._discard)
        self._channels[chat_id] = channel
        return channel

    def _discard(self, channel: ProgressChannel) -> None:
        if self._channels.get(channel.chat_id) is channel:
            del self._channels[channel.chat_id]

    def get(self, chat_id: str) -> ProgressChannel | None:
        return self._channels.get(chat_id)

    def open(self, chat_id: str) -> ProgressChannel:
        """Claim a channel for a new run.

        Listeners already waiting on ``chat_id`` receive its events. Raises
        ``ProgressStateError`` while another run holds the chat id, even one
        that has not emitted yet.
        """
        channel = self._channels.get(chat_id)
        if channel is None or channel.finished:
            channel = self._new_channel(chat_id)
        channel.claim()
        return channel

    def subscribe(self, chat_id: str) -> ProgressChannel:
        """Channel a progress listener should attach to: the live run, or the next one."""
        channel = self._channels.get(chat_id)
        if channel is None or channel.finished:
            channel = self._new_channel(chat_id)
        return channel


_registry: ProgressRegistry | None = None


def get_progress_registry() -> ProgressRegistry:
    """Get the process-wide registry."""
    global _registry
    if _registry is None:
        _registry = ProgressRegistry()
    return _registry
