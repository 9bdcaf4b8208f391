"""Tests for the ingest worker loop and shutdown drain."""

import time

from hdv_tracker.pipeline.breaker import CircuitBreaker
from hdv_tracker.pipeline.consumer import ConsumerConfig, IngestConsumer
from hdv_tracker.pipeline.ingest_queue import IngestQueue, RawFrame
from hdv_tracker.pipeline.worker import IngestWorker


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _consumer(sink, **kwargs):
    queue = IngestQueue(capacity=100)
    config = ConsumerConfig(batch_size=5, poll_timeout=0.05)
    return IngestConsumer(queue, sink, config=config, **kwargs)


def test_worker_consumes_in_background(sink, make_listing):
    consumer = _consumer(sink)
    worker = IngestWorker(consumer, monitor_interval=60.0)
    worker.start()
    try:
        for i in range(7):
            consumer.queue.enqueue(RawFrame(make_listing([(i, 15, [10, 0, 0])])))
        assert _wait_for(lambda: len(sink.observations) == 7)
    finally:
        worker.stop()
    assert not worker.running


def test_single_mode_step(sink, make_listing):
    consumer = _consumer(sink)
    worker = IngestWorker(consumer, batch_mode=False)
    consumer.queue.enqueue(RawFrame(make_listing([(1, 15, [10, 0, 0])])))
    assert worker.step() == 1
    assert sink.calls[0][0] == "persist"
    assert worker.step() == 0


def test_stop_drains_queue(sink, make_listing):
    consumer = _consumer(sink)
    worker = IngestWorker(consumer)
    for i in range(12):
        consumer.queue.enqueue(RawFrame(make_listing([(i, 15, [10, 0, 0])])))
    consumer.queue.close()
    # stop before start: run() exits immediately and drains
    worker._stop.set()
    worker.run()
    assert consumer.queue.is_empty()
    assert len(sink.observations) == 12


def test_step_backs_off_when_open(failing_sink, clock, make_listing):
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60.0, clock=clock)
    consumer = _consumer(failing_sink, breaker=breaker)
    worker = IngestWorker(consumer)
    consumer.queue.enqueue(RawFrame(make_listing([(1, 15, [10, 0, 0])])))
    consumer.queue.enqueue(RawFrame(make_listing([(2, 15, [10, 0, 0])])))
    worker.step()  # first batch fails and opens the circuit

    consumer.queue.enqueue(RawFrame(make_listing([(3, 15, [10, 0, 0])])))
    worker._stop.set()  # backoff wait returns immediately
    assert worker.step() == 0
    assert consumer.metrics.circuit_rejections == 1
    assert consumer.queue.size() == 1


def test_drain_with_open_circuit_logs_remaining(failing_sink, clock, make_listing, caplog):
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60.0, clock=clock)
    consumer = _consumer(failing_sink, breaker=breaker)
    consumer.config.batch_size = 1
    worker = IngestWorker(consumer)
    for i in range(3):
        consumer.queue.enqueue(RawFrame(make_listing([(i, 15, [10, 0, 0])])))

    worker._stop.set()
    worker.run()
    assert consumer.queue.size() == 2
    assert "2 frame(s) left unprocessed" in caplog.text
