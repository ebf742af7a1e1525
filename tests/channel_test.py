"""
Delivery and diagnostics of the instrumented crawler -> supervisor channel.
"""

import threading
import time
import unittest
from queue import Empty

from linkcrawler.channel import InstrumentedChannel, ChannelStats
from linkcrawler.models import ChannelClosed, Found, DONE


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


class TestChannelDelivery(unittest.TestCase):
    def test_rejects_zero_capacity(self):
        with self.assertRaises(ValueError):
            InstrumentedChannel(0)

    def test_messages_arrive_in_send_order(self):
        channel = InstrumentedChannel(10)
        tx = channel.sender()
        for i in range(5):
            tx.send(Found(f"https://ex.com/{i}"))
        tx.send(DONE)

        received = [channel.recv(timeout=1) for _ in range(6)]
        self.assertEqual([m.url for m in received[:5]], [f"https://ex.com/{i}" for i in range(5)])
        self.assertIs(received[-1], DONE)

    def test_closed_only_after_buffer_is_drained(self):
        """Scenario: sender closes with messages still buffered."""
        channel = InstrumentedChannel(5)
        with channel.sender() as tx:
            tx.send(Found("https://ex.com/a"))
            tx.send(Found("https://ex.com/b"))

        self.assertEqual(channel.recv(timeout=1), Found("https://ex.com/a"))
        self.assertEqual(channel.recv(timeout=1), Found("https://ex.com/b"))
        self.assertIsNone(channel.recv(timeout=1))

    def test_open_sender_keeps_channel_open(self):
        channel = InstrumentedChannel(1)
        channel.sender()
        with self.assertRaises(Empty):
            channel.recv(timeout=0.05, poll_interval=0.01)

    def test_closed_when_one_of_many_senders_remains_open_is_not_reported(self):
        channel = InstrumentedChannel(2)
        first, second = channel.sender(), channel.sender()
        first.close()
        with self.assertRaises(Empty):
            channel.recv(timeout=0.05, poll_interval=0.01)
        second.close()
        self.assertIsNone(channel.recv(timeout=1))

    def test_send_after_receiver_close_fails(self):
        channel = InstrumentedChannel(1)
        tx = channel.sender()
        channel.close()
        with self.assertRaises(ChannelClosed):
            tx.send(Found("https://ex.com/a"))
        self.assertEqual(channel.in_flight(), 0)

    def test_send_on_closed_sender_fails(self):
        channel = InstrumentedChannel(1)
        tx = channel.sender()
        tx.close()
        with self.assertRaises(ChannelClosed):
            tx.send(DONE)

    def test_blocked_send_fails_when_receiver_closes(self):
        """Scenario: buffer full, consumer exits while the producer waits."""
        channel = InstrumentedChannel(1)
        tx = channel.sender()
        tx.send(Found("https://ex.com/a"))
        errors = []

        def produce():
            try:
                tx.send(Found("https://ex.com/b"), poll_interval=0.01)
            except ChannelClosed as e:
                errors.append(e)

        producer = threading.Thread(target=produce)
        producer.start()
        self.assertTrue(wait_until(lambda: channel.in_flight() == 1))
        channel.close()
        producer.join(timeout=2)

        self.assertFalse(producer.is_alive())
        self.assertEqual(len(errors), 1)
        self.assertEqual(channel.in_flight(), 0)


class TestChannelStats(unittest.TestCase):
    def test_fresh_stats_are_zero(self):
        stats = ChannelStats()
        self.assertEqual(stats.snapshot(), {"in_flight": 0, "peak": 0})

    def test_peak_tracks_high_water_mark(self):
        stats = ChannelStats()
        stats.enter()
        stats.enter()
        stats.leave()
        stats.enter()
        stats.enter()
        stats.leave()
        stats.leave()
        stats.leave()
        self.assertEqual(stats.in_flight, 0)
        self.assertEqual(stats.peak, 3)

    def test_peak_counts_blocked_senders(self):
        """Scenario: two senders blocked on a full buffer of size one."""
        channel = InstrumentedChannel(1)
        tx = channel.sender()
        tx.send(Found("https://ex.com/0"))
        self.assertEqual(channel.peak(), 1)
        self.assertEqual(channel.in_flight(), 0)

        producers = [
            threading.Thread(target=tx.send, args=(Found(f"https://ex.com/{i}"),), kwargs={"poll_interval": 0.01})
            for i in (1, 2)
        ]
        for p in producers:
            p.start()
        self.assertTrue(wait_until(lambda: channel.in_flight() == 2))
        self.assertEqual(channel.peak(), 2)

        received = [channel.recv(timeout=1) for _ in range(3)]
        for p in producers:
            p.join(timeout=2)

        self.assertEqual(len(received), 3)
        self.assertEqual(channel.in_flight(), 0)
        self.assertEqual(channel.peak(), 2)

    def test_concurrent_senders_keep_invariants(self):
        channel = InstrumentedChannel(2)
        senders = [channel.sender() for _ in range(4)]
        observed = []
        stop = threading.Event()

        def observe():
            while not stop.is_set():
                observed.append(channel.stats.snapshot())
                time.sleep(0.001)

        def produce(tx, n):
            with tx:
                for i in range(25):
                    tx.send(Found(f"https://ex.com/{n}/{i}"), poll_interval=0.01)

        watcher = threading.Thread(target=observe)
        watcher.start()
        producers = [threading.Thread(target=produce, args=(tx, n)) for n, tx in enumerate(senders)]
        for p in producers:
            p.start()

        received = []
        while True:
            message = channel.recv(timeout=5)
            if message is None:
                break
            received.append(message)
        for p in producers:
            p.join(timeout=2)
        stop.set()
        watcher.join(timeout=2)

        self.assertEqual(len(received), 100)
        self.assertEqual(channel.in_flight(), 0)
        self.assertLessEqual(channel.peak(), 4)
        last_peak = 0
        for snap in observed:
            self.assertGreaterEqual(snap["peak"], snap["in_flight"])
            self.assertGreaterEqual(snap["peak"], last_peak)
            last_peak = snap["peak"]


if __name__ == "__main__":
    unittest.main()
