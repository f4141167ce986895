"""
Notification channels for local runs and tests.

Both wrap payloads in the monitoring server envelope
``{type, sessionId, timestamp, version, priority, data}``.
"""

import uuid
from collections import deque
from datetime import UTC, datetime
from typing import Any

import structlog
from rich.console import Console
from rich.table import Table

from vitals.config import ChannelConfig

logger = structlog.get_logger(__name__)


def build_envelope(
    message_type: str,
    payload: dict[str, Any],
    session_id: str,
    version: str = "1.0",
    priority: str = "normal",
) -> dict[str, Any]:
    return {
        "type": message_type,
        "sessionId": session_id,
        "timestamp": datetime.now(UTC).isoformat(),
        "version": version,
        "priority": priority,
        "data": payload,
    }


class RecordingChannel:
    """
    Test-mode channel: keeps envelopes in a bounded queue instead of sending.

    Can be switched unavailable to exercise the undelivered path.
    """

    def __init__(self, config: ChannelConfig | None = None) -> None:
        self.config = config or ChannelConfig()
        self.session_id = f"client_{uuid.uuid4().hex[:12]}"
        self.sent: deque[dict[str, Any]] = deque(maxlen=self.config.max_queue)
        self.available = True
        self.logger = logger.bind(component="recording_channel", url=self.config.url)

    def send(self, message_type: str, payload: dict[str, Any]) -> bool:
        if not self.available:
            self.logger.warning("channel_unavailable", message_type=message_type)
            return False
        if len(self.sent) == self.sent.maxlen:
            self.logger.warning("channel_queue_full_dropping_oldest", message_type=self.sent[0]["type"])
        self.sent.append(
            build_envelope(message_type, payload, self.session_id, self.config.message_version)
        )
        return True

    def messages(self, message_type: str | None = None) -> list[dict[str, Any]]:
        return [m for m in self.sent if message_type is None or m["type"] == message_type]


class ConsoleChannel:
    """Development channel that renders threshold messages to the terminal."""

    def __init__(self, console: Console | None = None, min_width: int = 60) -> None:
        self.console = console or Console()
        self.min_width = min_width
        self.session_id = f"client_{uuid.uuid4().hex[:12]}"

    def send(self, message_type: str, payload: dict[str, Any]) -> bool:
        envelope = build_envelope(message_type, payload, self.session_id)
        table = Table(
            title=f"📡 {message_type} · patient {payload.get('patientId')}",
            min_width=self.min_width,
        )
        table.add_column("Parameter")
        table.add_column("Min", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Unit")
        for name, bounds in payload.get("thresholds", {}).items():
            table.add_row(name, str(bounds["min"]), str(bounds["max"]), bounds["unit"])

        self.console.print(table)
        self.console.print(
            f"change: [bold]{payload.get('changeType')}[/bold]  "
            f"source: {payload.get('dataSource')}  "
            f"organs: {payload.get('riskLevels')}  "
            f"at {envelope['timestamp']}"
        )
        return True
