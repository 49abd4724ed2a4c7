"""Telemetry events emitted by the sign-in flow."""

import logging
from collections import Counter
from typing import Protocol

logger = logging.getLogger(__name__)

AUTH_START = "auth.start"
AUTH_SUCCESS = "auth.success"
AUTH_FAIL = "auth.fail"
AUTH_CANCEL = "auth.cancel"


class Telemetry(Protocol):
    """Fire-and-forget event sink."""

    def on(self, event_name: str) -> None: ...


class LoggingTelemetry:
    """Telemetry sink that logs events and keeps per-event counts."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()

    def on(self, event_name: str) -> None:
        self.counts[event_name] += 1
        logger.info(f"telemetry: {event_name}")
