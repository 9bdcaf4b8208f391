from .prices import PriceObservation, extract_prices, validate
from .ingest_queue import IngestQueue, RawFrame, QueueMonitor, QueuePressure
from .breaker import CircuitBreaker, CircuitState
from .consumer import IngestConsumer, ConsumerConfig, PriceSink
from .health import HealthSnapshot, HealthStatus, health_snapshot
from .sinks import JsonlPriceSink, LoggingPriceSink
from .worker import IngestWorker

__all__ = [
    "PriceObservation", "extract_prices", "validate",
    "IngestQueue", "RawFrame", "QueueMonitor", "QueuePressure",
    "CircuitBreaker", "CircuitState",
    "IngestConsumer", "ConsumerConfig", "PriceSink",
    "HealthSnapshot", "HealthStatus", "health_snapshot",
    "JsonlPriceSink", "LoggingPriceSink",
    "IngestWorker",
]
