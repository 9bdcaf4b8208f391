"""
HDV_Tracker — Packet Sniffer for Dofus Retro

Captures TCP traffic to/from the game server using scapy and turns the
server → client byte stream into complete protocol frames.
Requires libpcap (Npcap on Windows) + capture privileges.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from scapy.all import IP, TCP, AsyncSniffer, sniff

from .stream import MessageStreamReassembler

log = logging.getLogger(__name__)

DEFAULT_PORT = 5555

FrameCallback = Callable[[bytes, float], None]


@dataclass
class HDVPacket:
    """A captured game TCP segment with metadata."""
    timestamp: float
    direction: str          # "C2S" (client→server) or "S2C" (server→client)
    src_ip: str
    dst_ip: str
    src_port: int
    dst_port: int
    payload: bytes
    seq: int = 0
    ack: int = 0
    flags: str = ""

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def hex_dump(self) -> str:
        return self.payload.hex()

    @property
    def pretty_hex(self) -> str:
        """16-byte wide hex dump with ASCII."""
        lines = []
        data = self.payload
        for i in range(0, len(data), 16):
            chunk = data[i:i+16]
            hex_part = " ".join(f"{b:02x}" for b in chunk)
            ascii_part = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
            lines.append(f"  {i:04x}  {hex_part:<48s}  {ascii_part}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "direction": self.direction,
            "src": f"{self.src_ip}:{self.src_port}",
            "dst": f"{self.dst_ip}:{self.dst_port}",
            "size": self.size,
            "seq": self.seq,
            "ack": self.ack,
            "flags": self.flags,
            "payload_hex": self.hex_dump,
        }

    @classmethod
    def from_dict(cls, d: dict) -> HDVPacket:
        src_ip, src_port = d["src"].rsplit(":", 1)
        dst_ip, dst_port = d["dst"].rsplit(":", 1)
        return cls(
            timestamp=d["timestamp"],
            direction=d["direction"],
            src_ip=src_ip,
            dst_ip=dst_ip,
            src_port=int(src_port),
            dst_port=int(dst_port),
            payload=bytes.fromhex(d["payload_hex"]) if d.get("payload_hex") else b"",
            seq=d.get("seq", 0),
            ack=d.get("ack", 0),
            flags=d.get("flags", ""),
        )

    def __repr__(self) -> str:
        arrow = "→" if self.direction == "C2S" else "←"
        return (
            f"[{self.direction}] {self.src_ip}:{self.src_port} "
            f"{arrow} {self.dst_ip}:{self.dst_port} "
            f"({self.size} bytes)"
        )


class HDVSniffer:
    """Capture game traffic and emit reassembled frames.

    Two subscription levels:
    - on_packet: raw TCP segments (HDVPacket), used for recording
    - on_frame: complete frames of the selected directions, as
      (payload, captured_at). This is the capture-source contract the
      ingest queue is wired to.
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        iface: str | None = None,
        server_ips: list[str] | None = None,
        directions: tuple[str, ...] = ("S2C",),
    ):
        self.port = port
        self.iface = iface
        self.server_ips = server_ips or []
        self.directions = directions
        self.reassembler = MessageStreamReassembler()
        self.reassembler.on_message(self._on_message)
        self.callbacks: list[Callable[[HDVPacket], None]] = []
        self.frame_callbacks: list[FrameCallback] = []
        self.packets_seen = 0
        self._last_capture = 0.0
        self._async: AsyncSniffer | None = None
        self._running = False

    @property
    def running(self) -> bool:
        if self._async is not None:
            return bool(self._async.running)
        return self._running

    @property
    def bpf_filter(self) -> str:
        """Build BPF filter string for game traffic."""
        if not self.server_ips:
            return f"tcp port {self.port}"
        ip_filters = " or ".join(f"host {ip}" for ip in self.server_ips)
        return f"tcp port {self.port} and ({ip_filters})"

    def on_packet(self, callback: Callable[[HDVPacket], None]) -> None:
        """Register a callback for each captured TCP segment."""
        self.callbacks.append(callback)

    def on_frame(self, callback: FrameCallback) -> None:
        """Register a callback for each complete frame. Args: (payload, captured_at)."""
        self.frame_callbacks.append(callback)

    def direction_of(self, src_port: int, dst_port: int) -> str | None:
        if src_port == self.port:
            return "S2C"
        if dst_port == self.port:
            return "C2S"
        return None

    def _process_packet(self, raw_pkt) -> None:
        """Convert scapy packet to HDVPacket and dispatch."""
        if not raw_pkt.haslayer(TCP) or not raw_pkt.haslayer(IP):
            return

        ip_layer = raw_pkt[IP]
        tcp_layer = raw_pkt[TCP]

        payload = bytes(tcp_layer.payload)
        if not payload:
            return

        direction = self.direction_of(tcp_layer.sport, tcp_layer.dport)
        if direction is None:
            return

        self.handle(HDVPacket(
            timestamp=time.time(),
            direction=direction,
            src_ip=ip_layer.src,
            dst_ip=ip_layer.dst,
            src_port=tcp_layer.sport,
            dst_port=tcp_layer.dport,
            payload=payload,
            seq=tcp_layer.seq,
            ack=tcp_layer.ack,
            flags=str(tcp_layer.flags),
        ))

    def handle(self, pkt: HDVPacket) -> None:
        """Dispatch one segment to packet callbacks and the reassembler."""
        self.packets_seen += 1
        for cb in self.callbacks:
            try:
                cb(pkt)
            except Exception:
                log.exception("Packet callback failed")
        self._last_capture = pkt.timestamp
        self.reassembler.feed(pkt.direction, pkt.payload)

    def _on_message(self, direction: str, data: bytes) -> None:
        if direction not in self.directions:
            return
        for cb in self.frame_callbacks:
            try:
                cb(data, self._last_capture)
            except Exception:
                log.exception("Frame callback failed")

    def start(self, count: int = 0, timeout: int | None = None) -> None:
        """Start capturing. count=0 means infinite. Blocks until done."""
        log.info("HDV sniffer starting (filter=%r, iface=%s)", self.bpf_filter, self.iface or "auto")
        self._running = True
        try:
            sniff(
                filter=self.bpf_filter,
                prn=self._process_packet,
                iface=self.iface,
                count=count,
                timeout=timeout,
                store=False,
            )
        except KeyboardInterrupt:
            log.info("Capture stopped by user")
        finally:
            self._running = False

    def start_background(self) -> None:
        """Capture on scapy's own thread until stop()."""
        if self._async is not None:
            return
        log.info("HDV sniffer starting in background (filter=%r)", self.bpf_filter)
        self._async = AsyncSniffer(
            filter=self.bpf_filter,
            prn=self._process_packet,
            iface=self.iface,
            store=False,
        )
        self._async.start()
        self._running = True

    def stop(self) -> None:
        if self._async is not None:
            try:
                self._async.stop()
            except Exception:
                log.exception("Error while stopping capture")
            self._async = None
        self._running = False
        log.info("HDV sniffer stopped after %d segment(s)", self.packets_seen)


def log_packet(pkt: HDVPacket) -> None:
    """Debug callback: segment summary + hex (truncated for large segments)."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    lines = pkt.pretty_hex.split("\n")
    if len(lines) > 8:
        lines = lines[:4] + [f"  ... ({pkt.size} bytes total) ..."] + lines[-4:]
    log.debug("%r\n%s", pkt, "\n".join(lines))
