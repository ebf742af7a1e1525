"""
FILE DESCRIPTION: Bounded producer -> consumer channel with in-flight diagnostics.
KEY FUNCTIONS/CLASSES: ChannelStats, ChannelSender, InstrumentedChannel

The stats only exist so the buffer capacity can be tuned after watching real
traffic; they never influence delivery.
"""

import threading
import time
from queue import Queue, Empty, Full

from linkcrawler.core import POLL_INTERVAL
from linkcrawler.models import ChannelClosed


class ChannelStats:
    """
    In-flight counter plus its high-water mark, shared by every sender of a channel.
    Only the two counters are guarded; the blocking put happens outside the lock.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    def enter(self) -> int:
        with self._lock:
            self._in_flight += 1
            if self._in_flight > self._peak:
                self._peak = self._in_flight
            return self._in_flight

    def leave(self) -> int:
        with self._lock:
            self._in_flight -= 1
            return self._in_flight

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        with self._lock:
            return self._peak

    def snapshot(self):
        with self._lock:
            return {"in_flight": self._in_flight, "peak": self._peak}


class ChannelSender:
    """Sending handle minted by InstrumentedChannel.sender(). Close it when done producing."""

    def __init__(self, channel, stats: ChannelStats):
        self._channel = channel
        self._stats = stats
        self._closed = False

    def send(self, message, poll_interval=None):
        """
        Deliver a message, blocking only while the buffer is full.
        Raises ChannelClosed if the consumer has gone away.
        """
        if self._closed:
            raise ChannelClosed("send on a closed sender")
        poll = POLL_INTERVAL if poll_interval is None else poll_interval

        self._stats.enter()
        try:
            while True:
                if self._channel.receiver_closed:
                    raise ChannelClosed("receiver has been closed")
                try:
                    self._channel._queue.put(message, timeout=poll)
                    return
                except Full:
                    continue
        finally:
            self._stats.leave()

    def close(self):
        if not self._closed:
            self._closed = True
            self._channel._release_sender()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class InstrumentedChannel:
    """
    FLOW: Senders push messages into a bounded FIFO -> the single owner drains it with recv() ->
    recv() reports closure (None) once every sender is closed and the buffer is empty.
    """
    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"channel capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.stats = ChannelStats()
        self._queue = Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self._open_senders = 0
        self._receiver_closed = threading.Event()

    def sender(self) -> ChannelSender:
        with self._lock:
            self._open_senders += 1
        return ChannelSender(self, self.stats)

    def _release_sender(self):
        with self._lock:
            self._open_senders -= 1

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed.is_set()

    @property
    def open_senders(self) -> int:
        with self._lock:
            return self._open_senders

    def recv(self, timeout=None, poll_interval=None):
        """
        Next message in send order, or None when the channel is closed and drained.
        With a timeout, raises queue.Empty if nothing arrived in time.
        """
        poll = POLL_INTERVAL if poll_interval is None else poll_interval
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            # Read the sender count before the buffer: a sender closes only after its last put
            no_senders = self.open_senders == 0
            try:
                return self._queue.get_nowait()
            except Empty:
                if no_senders:
                    return None

            wait = poll
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise Empty
                wait = min(poll, remaining)
            try:
                return self._queue.get(timeout=wait)
            except Empty:
                continue

    def close(self):
        """Drop the receiving side; pending and future sends fail with ChannelClosed."""
        self._receiver_closed.set()

    def peak(self) -> int:
        return self.stats.peak

    def in_flight(self) -> int:
        return self.stats.in_flight
