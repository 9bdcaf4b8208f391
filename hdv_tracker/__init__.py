"""
HDV_Tracker — Dofus Retro marketplace price capture

Packages:
    protocol/  — byte reader, framing, message codec
    pipeline/  — ingest queue, consumer, circuit breaker, health
    sniffer/   — scapy capture, stream reassembly, recorded sessions
    data/      — item / category names
    dashboard/ — textual TUI
"""

__version__ = "0.3.0"
