"""Tests for the ingest consumer."""

import pytest

from hdv_tracker.errors import CircuitOpen
from hdv_tracker.pipeline.breaker import CircuitBreaker, CircuitState
from hdv_tracker.pipeline.consumer import ConsumerConfig, IngestConsumer
from hdv_tracker.pipeline.ingest_queue import IngestQueue, RawFrame
from hdv_tracker.protocol.framing import encode_frame


def _consumer(sink, clock, batch_size=10, threshold=5, capacity=100):
    queue = IngestQueue(capacity=capacity)
    config = ConsumerConfig(batch_size=batch_size, poll_timeout=0.05, failure_threshold=threshold)
    breaker = CircuitBreaker(failure_threshold=threshold, reset_timeout=60.0, clock=clock)
    return IngestConsumer(queue, sink, config=config, breaker=breaker, clock=clock)


def _push(consumer, *payloads):
    for p in payloads:
        assert consumer.queue.enqueue(RawFrame(p))


class TestSingle:
    def test_listing_reaches_sink(self, sink, clock, make_listing):
        consumer = _consumer(sink, clock)
        _push(consumer, make_listing([(289, 15, [15000, 0, 0])]))

        assert consumer.consume_one()
        assert len(sink.calls) == 1
        kind, observations = sink.calls[0]
        assert kind == "persist"
        assert [(o.item_gid, o.quantity, o.price) for o in observations] == [(289, 1, 15000)]
        assert observations[0].observed_at == clock.now
        assert consumer.metrics.frames_processed == 1
        assert consumer.metrics.observations_emitted == 1

    def test_empty_queue(self, sink, clock):
        consumer = _consumer(sink, clock)
        assert not consumer.consume_one()
        assert sink.calls == []

    def test_frame_without_prices_skips_sink(self, sink, clock, make_category):
        consumer = _consumer(sink, clock)
        _push(consumer, make_category(15))
        assert consumer.consume_one()
        assert sink.calls == []
        assert consumer.metrics.frames_processed == 1

    def test_decode_error_counted_not_raised(self, sink, clock, make_listing):
        consumer = _consumer(sink, clock)
        _push(consumer, b"\x5c\x41\x10\x00", make_listing([(289, 15, [1, 0, 0])]))

        assert consumer.consume_one()
        assert consumer.metrics.total_decode_errors == 1
        assert consumer.metrics.decode_errors["header_length_mismatch"] == 1
        assert consumer.consume_one()
        assert len(sink.observations) == 1

    def test_unknown_message_counted(self, sink, clock):
        consumer = _consumer(sink, clock)
        _push(consumer, encode_frame(110, b"\x01"))
        consumer.consume_one()
        assert consumer.metrics.unknown_messages == 1
        assert consumer.metrics.total_decode_errors == 0

    def test_coalesced_frames_in_one_payload(self, sink, clock, make_listing):
        consumer = _consumer(sink, clock)
        _push(consumer, make_listing([(1, 15, [5, 0, 0])]) + make_listing([(2, 15, [6, 0, 0])]))
        consumer.consume_one()
        assert [o.item_gid for o in sink.observations] == [1, 2]

    def test_observation_callback(self, sink, clock, make_listing):
        consumer = _consumer(sink, clock)
        seen = []
        consumer.on_observations(seen.append)
        _push(consumer, make_listing([(1, 15, [5, 50, 0])]))
        consumer.consume_one()
        assert len(seen) == 1
        assert len(seen[0]) == 2


class TestBreakerIntegration:
    def test_sink_failures_open_circuit(self, failing_sink, clock, make_listing):
        consumer = _consumer(failing_sink, clock, threshold=3)
        _push(consumer, *[make_listing([(i, 15, [10, 0, 0])]) for i in range(5)])

        for _ in range(3):
            assert not consumer.consume_one()
        assert consumer.circuit_state is CircuitState.OPEN
        assert consumer.metrics.sink_failures == 3
        assert consumer.metrics.frames_failed == 3

        queued = consumer.queue.size()
        attempts = failing_sink.attempts
        with pytest.raises(CircuitOpen):
            consumer.consume_one()
        assert consumer.queue.size() == queued
        assert failing_sink.attempts == attempts
        assert consumer.metrics.circuit_rejections == 1

    def test_recovery_after_timeout(self, failing_sink, clock, make_listing):
        consumer = _consumer(failing_sink, clock, threshold=3)
        _push(consumer, *[make_listing([(i, 15, [10, 0, 0])]) for i in range(4)])
        for _ in range(3):
            consumer.consume_one()

        clock.advance(60.0)
        failing_sink.healthy = True
        assert consumer.consume_one()
        assert consumer.circuit_state is CircuitState.CLOSED
        assert [o.item_gid for o in failing_sink.observations] == [3]

    def test_batch_rejected_while_open(self, failing_sink, clock, make_listing):
        consumer = _consumer(failing_sink, clock, threshold=1)
        _push(consumer, make_listing([(1, 15, [10, 0, 0])]), make_listing([(2, 15, [10, 0, 0])]))
        consumer.consume_one()
        with pytest.raises(CircuitOpen):
            consumer.consume_batch()
        assert consumer.queue.size() == 1


class TestBatch:
    def test_one_sink_call_per_batch(self, sink, clock, make_listing):
        consumer = _consumer(sink, clock, batch_size=3)
        _push(consumer, *[make_listing([(i, 15, [10, 0, 0])]) for i in range(5)])

        assert consumer.consume_batch() == 3
        assert len(sink.calls) == 1
        assert sink.calls[0][0] == "persist_batch"
        assert [o.item_gid for o in sink.calls[0][1]] == [0, 1, 2]
        assert consumer.queue.size() == 2

    def test_batch_failure_charged_to_all_frames(self, failing_sink, clock, make_listing):
        consumer = _consumer(failing_sink, clock, batch_size=4)
        _push(consumer, *[make_listing([(i, 15, [10, 0, 0])]) for i in range(4)])

        assert consumer.consume_batch() == 4
        assert consumer.metrics.frames_failed == 4
        assert consumer.metrics.frames_processed == 0
        assert consumer.breaker.consecutive_failures == 1

    def test_partial_batch_on_timeout(self, sink, clock, make_listing):
        consumer = _consumer(sink, clock, batch_size=10)
        _push(consumer, make_listing([(1, 15, [10, 0, 0])]))
        assert consumer.consume_batch() == 1
        assert consumer.metrics.batches == 1

    def test_empty_batch(self, sink, clock):
        consumer = _consumer(sink, clock)
        assert consumer.consume_batch() == 0
        assert consumer.metrics.batches == 0


def test_drain_all(sink, clock, make_listing):
    consumer = _consumer(sink, clock, batch_size=4)
    _push(consumer, *[make_listing([(i, 15, [10, 0, 0])]) for i in range(10)])

    assert consumer.drain_all() == 10
    assert consumer.queue.is_empty()
    assert len(sink.calls) == 3
    assert len(sink.observations) == 10


def test_statistics_and_reset(failing_sink, clock, make_listing):
    consumer = _consumer(failing_sink, clock, threshold=1)
    _push(consumer, make_listing([(1, 15, [10, 0, 0])]))
    consumer.consume_one()
    assert "circuit=OPEN" in consumer.statistics()

    consumer.reset()
    assert consumer.circuit_state is CircuitState.CLOSED
    assert consumer.metrics.sink_failures == 0
