"""
HDV_Tracker — Error Taxonomy

Decode errors are local to one frame: the codec catches them and hands
them back inside a DecodeResult. Pipeline errors come from the sink side
and feed the circuit breaker.
"""

from __future__ import annotations


# ---- Decode layer ----

class DecodeError(Exception):
    """Base class for anything that makes a single frame undecodable."""

    kind = "decode_error"


class TruncatedInput(DecodeError):
    """Buffer is shorter than a read requires."""

    kind = "truncated_input"

    def __init__(self, position: int, wanted: int, available: int):
        self.position = position
        self.wanted = wanted
        self.available = available
        super().__init__(
            f"need {wanted} byte(s) at offset {position}, only {available} left"
        )


class HeaderLengthMismatch(DecodeError):
    """Declared payload length does not match the bytes available or consumed."""

    kind = "header_length_mismatch"


class MalformedVarInt(DecodeError):
    """Variable-length integer is too long or too large for its width."""

    kind = "malformed_varint"


class MalformedString(DecodeError):
    """Length-prefixed string is not valid UTF-8."""

    kind = "malformed_string"


class DecompressionFailed(DecodeError):
    """Compressed container could not be inflated."""

    kind = "decompression_failed"


# ---- Pipeline layer ----

class PipelineError(Exception):
    """Base class for consumer-side failures."""


class SinkUnavailable(PipelineError):
    """The price sink raised while persisting observations."""

    def __init__(self, message: str, observations: int = 0):
        self.observations = observations
        super().__init__(message)


class CircuitOpen(PipelineError):
    """Fast-fail while the circuit breaker is open."""

    def __init__(self, retry_in: float):
        self.retry_in = retry_in
        super().__init__(f"circuit open, retry in {retry_in:.1f}s")
