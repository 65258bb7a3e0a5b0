"""
Telemetry sources.

- source: stream/source contracts and the error taxonomy
- events: typed event records
- replay_source: scripted in-memory source
- demo_source: demoparser2-backed source for .dem recordings
"""

from roundsight.telemetry.source import (
    SourceUnavailableError,
    TelemetryDecodeError,
    TelemetryError,
    TelemetryFrame,
    TelemetrySource,
    TelemetryStream,
)

__all__ = [
    "SourceUnavailableError",
    "TelemetryDecodeError",
    "TelemetryError",
    "TelemetryFrame",
    "TelemetrySource",
    "TelemetryStream",
]
