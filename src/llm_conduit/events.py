"""
Telemetry events and the observer list that delivers them.

Events are inert records. Nothing is emitted anywhere unless a caller
subscribes an observer to a `Telemetry` instance and hands it to the
component doing the work.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

__all__ = [
    "TelemetryEvent",
    "ProviderRequestStarted",
    "ProviderRequestCompleted",
    "HttpRequestStarted",
    "HttpRequestCompleted",
    "ToolCallStarted",
    "Observer",
    "Telemetry",
]


@dataclass(frozen=True, kw_only=True)
class TelemetryEvent:
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, kw_only=True)
class ProviderRequestStarted(TelemetryEvent):
    provider: str = ""


@dataclass(frozen=True, kw_only=True)
class ProviderRequestCompleted(TelemetryEvent):
    provider: str = ""
    exception: Optional[BaseException] = None
    duration: Optional[float] = None


@dataclass(frozen=True, kw_only=True)
class HttpRequestStarted(TelemetryEvent):
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class HttpRequestCompleted(TelemetryEvent):
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    duration: Optional[float] = None


@dataclass(frozen=True, kw_only=True)
class ToolCallStarted(TelemetryEvent):
    tool_name: str


Observer = Callable[[TelemetryEvent], Any]


class Telemetry:
    """Ordered list of observers that receive every emitted event."""

    def __init__(self, observers: Optional[list[Observer]] = None) -> None:
        self._observers: list[Observer] = list(observers or [])

    @property
    def observers(self) -> tuple[Observer, ...]:
        return tuple(self._observers)

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, event: TelemetryEvent) -> None:
        for observer in self._observers:
            observer(event)

    @contextmanager
    def span(
        self,
        provider: str,
        attributes: Optional[dict[str, Any]] = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Bracket a provider request with started/completed events.

        Yields a dict the caller may fill with attributes for the completed
        event (typically ``{"response": ...}``). Exceptions are recorded on
        the completed event and re-raised.
        """
        self.emit(ProviderRequestStarted(provider=provider, attributes=dict(attributes or {})))
        started = time.perf_counter()
        completed: dict[str, Any] = {}
        try:
            yield completed
        except GeneratorExit:
            # consumer stopped pulling a stream; not a failure
            self.emit(
                ProviderRequestCompleted(
                    provider=provider,
                    attributes=completed,
                    duration=time.perf_counter() - started,
                )
            )
            raise
        except BaseException as exc:
            self.emit(
                ProviderRequestCompleted(
                    provider=provider,
                    exception=exc,
                    duration=time.perf_counter() - started,
                )
            )
            raise
        self.emit(
            ProviderRequestCompleted(
                provider=provider,
                attributes=completed,
                duration=time.perf_counter() - started,
            )
        )
