"""Tests for the packet capture module (no live sniffing)."""

from scapy.all import IP, TCP, Raw

from hdv_tracker.protocol.framing import encode_frame
from hdv_tracker.sniffer.capture import HDVPacket, HDVSniffer


def _make_pkt(direction: str, payload: bytes, ts: float = 1000.0) -> HDVPacket:
    return HDVPacket(
        timestamp=ts,
        direction=direction,
        src_ip="192.168.1.100" if direction == "C2S" else "172.65.1.10",
        dst_ip="172.65.1.10" if direction == "C2S" else "192.168.1.100",
        src_port=54321 if direction == "C2S" else 5555,
        dst_port=5555 if direction == "C2S" else 54321,
        payload=payload,
    )


def test_packet_size(sample_s2c_packet):
    assert sample_s2c_packet.size == 7


def test_packet_pretty_hex(sample_s2c_packet):
    pretty = sample_s2c_packet.pretty_hex
    assert "0000" in pretty
    assert "Hello" in pretty


def test_packet_dict_round_trip(sample_s2c_packet):
    d = sample_s2c_packet.to_dict()
    assert d["src"] == "172.65.1.10:5555"
    assert d["payload_hex"] == "123448656c6c6f"
    assert HDVPacket.from_dict(d) == sample_s2c_packet


def test_packet_repr(sample_s2c_packet):
    r = repr(sample_s2c_packet)
    assert "S2C" in r
    assert "7 bytes" in r


def test_bpf_filter():
    assert HDVSniffer().bpf_filter == "tcp port 5555"
    sniffer = HDVSniffer(port=443, server_ips=["10.0.0.1", "10.0.0.2"])
    assert sniffer.bpf_filter == "tcp port 443 and (host 10.0.0.1 or host 10.0.0.2)"


def test_direction_by_port():
    sniffer = HDVSniffer()
    assert sniffer.direction_of(5555, 54321) == "S2C"
    assert sniffer.direction_of(54321, 5555) == "C2S"
    assert sniffer.direction_of(80, 8080) is None


def test_frames_only_for_selected_direction():
    sniffer = HDVSniffer()
    frames = []
    sniffer.on_frame(lambda payload, ts: frames.append((payload, ts)))

    listing = encode_frame(5904, b"\x00")
    sniffer.handle(_make_pkt("C2S", encode_frame(5906, b"\x01")))
    sniffer.handle(_make_pkt("S2C", listing[:2], ts=1000.0))
    sniffer.handle(_make_pkt("S2C", listing[2:], ts=1001.0))

    assert frames == [(listing, 1001.0)]
    assert sniffer.packets_seen == 3


def test_packet_callback_errors_are_contained():
    sniffer = HDVSniffer()
    seen = []

    def _boom(pkt):
        raise RuntimeError("boom")

    sniffer.on_packet(_boom)
    sniffer.on_packet(seen.append)
    sniffer.handle(_make_pkt("S2C", encode_frame(1)))
    assert len(seen) == 1


def test_process_scapy_packet():
    sniffer = HDVSniffer()
    packets = []
    frames = []
    sniffer.on_packet(packets.append)
    sniffer.on_frame(lambda payload, ts: frames.append(payload))

    listing = encode_frame(5904, b"\x00")
    raw = IP(src="172.65.1.10", dst="192.168.1.100") / TCP(sport=5555, dport=54321, flags="PA") / Raw(load=listing)
    sniffer._process_packet(raw)

    assert len(packets) == 1
    assert packets[0].direction == "S2C"
    assert packets[0].payload == listing
    assert frames == [listing]


def test_process_ignores_empty_and_foreign():
    sniffer = HDVSniffer()
    packets = []
    sniffer.on_packet(packets.append)
    sniffer._process_packet(IP() / TCP(sport=5555, dport=54321))
    sniffer._process_packet(IP() / TCP(sport=80, dport=8080) / Raw(load=b"x"))
    assert packets == []
