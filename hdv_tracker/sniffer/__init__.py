"""Scapy capture, TCP stream reassembly and recorded sessions."""
