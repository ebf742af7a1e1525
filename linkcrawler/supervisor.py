"""
FILE DESCRIPTION: Consumer side of a crawl run: starts the crawler thread, drains the channel, honours interrupts.
KEY FUNCTIONS/CLASSES: Supervisor, interrupt_handler

Cancellation is best-effort: the supervisor stops waiting at once, but an
in-flight fetch on the crawler thread is not interrupted. That thread is a
daemon and is abandoned; once the channel is closed its sends fail and are
only logged.
"""

import signal
import threading
from contextlib import contextmanager
from queue import Empty

from linkcrawler.channel import InstrumentedChannel
from linkcrawler.core import CHANNEL_CAPACITY, POLL_INTERVAL, logger
from linkcrawler.engine import CrawlerThread
from linkcrawler.models import FailureRecord, Found, DONE, SupervisorOutcome

# Upper bound on waiting for a crawler thread that already sent DONE or closed its sender
THREAD_JOIN_TIMEOUT = 5.0


class Supervisor:
    """
    FLOW: Mint a sender -> start the engine on a CrawlerThread -> loop on (next message | cancel event) ->
    collect Found urls -> stop on DONE, channel closure or cancellation -> close the channel.
    """
    def __init__(self, channel=None, cancel_event=None, poll_interval=POLL_INTERVAL):
        self.channel = channel or InstrumentedChannel(CHANNEL_CAPACITY)
        self.cancel_event = cancel_event or threading.Event()
        self.poll_interval = poll_interval
        self.results = []
        self.outcome = None
        self.thread = None
        self.crawl_error = None
        self.crawl_snapshot = None

    def log(self, level, msg):
        getattr(logger, level)(msg, extra={'context': 'supervisor'})

    def start(self, engine) -> CrawlerThread:
        self.thread = CrawlerThread(engine, self.channel.sender())
        self.thread.start()
        return self.thread

    def supervise(self):
        """Drain the channel until the run is over; returns the collected FailureRecords."""
        while True:
            if self.cancel_event.is_set():
                self.log("info", "Received interrupt, shutting down...")
                self.outcome = SupervisorOutcome.CANCELLED
                break
            self.log("debug", "Waiting for messages or completion signal...")
            try:
                message = self.channel.recv(timeout=self.poll_interval, poll_interval=self.poll_interval)
            except Empty:
                continue

            if isinstance(message, Found):
                self.results.append(FailureRecord(url=message.url))
            elif message is DONE:
                self.log("info", "Crawl complete, ending loop.")
                self.outcome = SupervisorOutcome.COMPLETED
                break
            elif message is None:
                self.log("info", "Channel closed, ending loop.")
                self.outcome = SupervisorOutcome.CLOSED
                break
            else:
                self.log("warning", f"Ignoring unexpected channel message: {message!r}")

        return list(self.results)

    def run(self, engine):
        """Start the crawl, supervise it, and release the channel; returns the FailureRecords."""
        self.start(engine)
        try:
            return self.supervise()
        finally:
            self.channel.close()
            self._collect_thread_state()
            self.log("debug", f"channel buffer got to max size of {self.channel.peak()}")

    def _collect_thread_state(self):
        """
        Read the crawler's error and counters once. After DONE or closure the thread is
        only finishing up, so wait for it; after cancellation it is abandoned and
        whatever it has published so far is used.
        """
        if self.thread is None:
            return
        if self.outcome is not SupervisorOutcome.CANCELLED:
            self.thread.join(timeout=THREAD_JOIN_TIMEOUT)
        self.crawl_error = self.thread.error
        self.crawl_snapshot = self.thread.snapshot


@contextmanager
def interrupt_handler(cancel_event):
    """Route SIGINT to cancel_event for the duration of the block, then restore the old handler."""
    if threading.current_thread() is not threading.main_thread():
        # signal handlers can only be installed from the main thread
        yield cancel_event
        return

    def _handle(signum, frame):
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _handle)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)
