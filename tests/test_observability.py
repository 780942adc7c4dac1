import asyncio
import socket
import threading

import pytest

from pubsub_broker.observability import Metrics


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


@pytest.fixture
def metrics(receiver):
    port = receiver.getsockname()[1]
    with Metrics("127.0.0.1", port, "pulsar") as m:
        yield m


def _received_lines(receiver, expected):
    lines = []
    while len(lines) < expected:
        data, _ = receiver.recvfrom(65536)
        lines.extend(data.decode().split("\n"))
    return lines


def test_counts_accumulate(metrics):
    metrics.incr("a")
    metrics.incr("a")
    metrics.count("b", 2.5)
    metrics.decr("c")
    assert metrics.counts == {"a": 2.0, "b": 2.5, "c": -1.0}


def test_flush_sends_statsd_counter_lines(metrics, receiver):
    metrics.incr(Metrics.METRIC_HTTP_ADMIN_COUNT)
    sent = metrics.flush()
    assert sent == ["pulsar.http.request.admin.count:1|c"]
    assert _received_lines(receiver, 1) == sent


def test_flush_clears_counts(metrics, receiver):
    metrics.count("x", 3)
    metrics.flush()
    assert metrics.counts == {}
    assert metrics.flush() == []


def test_many_metrics_all_arrive(metrics, receiver):
    names = [f"metric.{n}" for n in range(60)]
    for name in names:
        metrics.incr(name)
    sent = metrics.flush()
    assert len(sent) == len(names)
    assert sorted(_received_lines(receiver, len(sent))) == sorted(sent)


@pytest.mark.asyncio
async def test_run_flushes_until_stopped(metrics, receiver):
    stop = threading.Event()
    metrics.incr("ticks")
    task = asyncio.create_task(metrics.run(stop, 0.01))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(task, timeout=2.0)
    assert task.done()
    assert _received_lines(receiver, 1) == ["pulsar.ticks:1|c"]
    assert metrics.counts == {}