"""Tests for the message stream reassembler."""

from hdv_tracker.protocol.framing import encode_frame
from hdv_tracker.sniffer.stream import MessageStreamReassembler


def _collect(reassembler: MessageStreamReassembler) -> list[tuple[str, bytes]]:
    results: list[tuple[str, bytes]] = []
    reassembler.on_message(lambda d, data: results.append((d, data)))
    return results


def test_single_frame_in_one_segment():
    reassembler = MessageStreamReassembler()
    results = _collect(reassembler)
    frame = encode_frame(5904, b"\x00")
    reassembler.feed("S2C", frame)
    assert results == [("S2C", frame)]


def test_fragmented_frame():
    reassembler = MessageStreamReassembler()
    results = _collect(reassembler)
    frame = encode_frame(5904, b"\xaa" * 300)  # 2-byte length field

    reassembler.feed("S2C", frame[:3])  # header + half the length field
    assert results == []
    reassembler.feed("S2C", frame[3:100])
    assert results == []
    reassembler.feed("S2C", frame[100:])
    assert results == [("S2C", frame)]


def test_multiple_frames_in_one_segment():
    reassembler = MessageStreamReassembler()
    results = _collect(reassembler)
    frames = [encode_frame(5905, b"\x0f"), encode_frame(1165), encode_frame(5904, b"\x00")]
    reassembler.feed("S2C", b"".join(frames))
    assert [data for _, data in results] == frames


def test_split_and_coalesced():
    reassembler = MessageStreamReassembler()
    results = _collect(reassembler)
    a = encode_frame(10, b"abc")
    b = encode_frame(11, b"defgh")
    stream = a + b
    reassembler.feed("S2C", stream[:4])
    reassembler.feed("S2C", stream[4:7])
    reassembler.feed("S2C", stream[7:])
    assert [data for _, data in results] == [a, b]
    assert reassembler.stats()["S2C"]["buffered"] == 0


def test_directions_are_independent():
    reassembler = MessageStreamReassembler()
    results = _collect(reassembler)
    c2s = encode_frame(20, b"xy")
    s2c = encode_frame(21, b"z")
    reassembler.feed("C2S", c2s[:2])
    reassembler.feed("S2C", s2c)
    reassembler.feed("C2S", c2s[2:])
    assert results == [("S2C", s2c), ("C2S", c2s)]


def test_oversized_frame_resyncs():
    reassembler = MessageStreamReassembler(max_frame_size=64)
    results = _collect(reassembler)
    # type 1, 3-byte length field declaring 16 MiB
    garbage = ((1 << 2) | 3).to_bytes(2, "big") + b"\xff\xff\xff"
    reassembler.feed("S2C", garbage)
    assert results == []
    assert reassembler.stats()["S2C"]["resyncs"] == 1

    reassembler.reset("S2C")
    good = encode_frame(5904, b"\x00")
    reassembler.feed("S2C", good)
    assert results == [("S2C", good)]


def test_reset_drops_partial_data():
    reassembler = MessageStreamReassembler()
    results = _collect(reassembler)
    frame = encode_frame(5904, b"\x00\x01\x02")
    reassembler.feed("S2C", frame[:3])
    reassembler.reset("S2C")
    reassembler.feed("S2C", frame)
    assert results == [("S2C", frame)]


def test_stats():
    reassembler = MessageStreamReassembler()
    reassembler.feed("S2C", encode_frame(1) + encode_frame(2))
    stats = reassembler.stats()
    assert stats["S2C"]["tcp_segments"] == 1
    assert stats["S2C"]["frames"] == 2
    assert stats["C2S"]["frames"] == 0
