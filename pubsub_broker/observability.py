"""Counters accumulated in memory and sent to StatsD periodically."""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from collections import defaultdict

_log = logging.getLogger(__name__)

_MAX_DATAGRAM = 512


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


class Metrics:
    """Accumulates counts and ships them to a StatsD server as one pipeline per flush."""

    METRIC_HTTP_PUB_MESSAGE_COUNT = "http.request.pub.message.count"
    METRIC_HTTP_PUB_MAPPING_COUNT = "http.request.pub.mapping.count"
    METRIC_HTTP_PUB_PING_COUNT = "http.request.pub.ping.count"

    METRIC_HTTP_SUB_MESSAGE_COUNT = "http.request.sub.message.count"
    METRIC_HTTP_SUB_CONSUME_COUNT = "http.request.sub.consume.count"
    METRIC_HTTP_SUB_NODES_COUNT = "http.request.sub.nodes.count"
    METRIC_HTTP_SUB_TOPICS_COUNT = "http.request.sub.topics.count"
    METRIC_HTTP_SUB_ACK_COUNT = "http.request.sub.ack.count"
    METRIC_HTTP_SUB_NACK_COUNT = "http.request.sub.nack.count"
    METRIC_HTTP_SUB_PING_COUNT = "http.request.sub.ping.count"

    METRIC_HTTP_ADMIN_COUNT = "http.request.admin.count"

    def __init__(self, host: str = "127.0.0.1", port: int = 8125, prefix: str = "pulsar") -> None:
        self._address = (host, port)
        self._prefix = prefix
        self._lock = threading.Lock()
        self._counts: defaultdict[str, float] = defaultdict(float)
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    @property
    def counts(self) -> dict[str, float]:
        """A snapshot of the counts not yet sent."""
        with self._lock:
            return dict(self._counts)

    def incr(self, metric: str) -> None:
        """Add one to a counter."""
        self.count(metric, 1.0)

    def decr(self, metric: str) -> None:
        """Subtract one from a counter."""
        self.count(metric, -1.0)

    def count(self, metric: str, count: float) -> None:
        """Add an amount to a counter."""
        with self._lock:
            self._counts[metric] += count

    def flush(self) -> list[str]:
        """Send all accumulated counts and reset them; return the lines sent."""
        with self._lock:
            counts = dict(self._counts)
            self._counts.clear()
        prefix = f"{self._prefix}." if self._prefix else ""
        lines = [f"{prefix}{metric}:{_format_value(value)}|c" for metric, value in counts.items()]
        for datagram in self._datagrams(lines):
            try:
                self._socket.sendto(datagram, self._address)
            except OSError as err:
                _log.warning("Failed to send metrics to %s:%s: %s", *self._address, err)
        return lines

    async def run(self, stop_event: threading.Event, interval: float = 1.0) -> None:
        """Flush every interval seconds until stop_event is set."""
        while not stop_event.is_set():
            await asyncio.sleep(interval)
            self.flush()

    def close(self) -> None:
        """Release the UDP socket."""
        self._socket.close()

    def __enter__(self) -> Metrics:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _datagrams(lines: list[str]):
        batch: list[bytes] = []
        size = 0
        for line in lines:
            encoded = line.encode()
            added = len(encoded) + (1 if batch else 0)
            if batch and size + added > _MAX_DATAGRAM:
                yield b"\n".join(batch)
                batch, size = [], 0
                added = len(encoded)
            batch.append(encoded)
            size += added
        if batch:
            yield b"\n".join(batch)