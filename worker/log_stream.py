# ============================================================================
# WORKER LOG STREAM
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Worker - Captures service container output
# PURPOSE: Parse, tag and collect the log lines a service writes to stdout
# CREATED: 16 OCT 2026
# ============================================================================
"""
Worker Log Stream

Sink handed to the container exec. Each line is kept (for upload to the
work item's logs.json) and re-logged at DEBUG with worker=True.

A line that parses as a JSON object becomes a StructuredLogEntry; its
``timestamp`` and ``level`` fields are renamed to ``workerTimestamp`` and
``workerLevel`` so they do not clash with our own record fields. Any other
line is a TextLogEntry.
"""

import json
from typing import Any, Dict, List

from core.logging import ComponentType, get_logger
from worker.contracts import LogEntry, StructuredLogEntry, TextLogEntry

_RESERVED_FIELDS = ("timestamp", "level")


def _worker_field_name(name: str) -> str:
    return f"worker{name[0].upper()}{name[1:]}"


class LogStream:
    """Collects worker output as LogEntry values."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger(__name__, ComponentType.WORKER)
        self.entries: List[LogEntry] = []

    def write(self, chunk: str) -> None:
        """Handle a chunk of output; one entry per non-empty line."""
        for line in chunk.splitlines():
            if line.strip():
                self.write_line(line)

    def write_line(self, line: str) -> None:
        entry = self.parse_line(line)
        self.entries.append(entry)

        if isinstance(entry, StructuredLogEntry):
            fields = dict(entry.fields)
            message = str(fields.pop("message", ""))
            self.logger.debug(message, extra={**fields, "worker": True})
        else:
            self.logger.debug(entry.text, extra={"worker": True})

    @staticmethod
    def parse_line(line: str) -> LogEntry:
        try:
            parsed = json.loads(line)
        except ValueError:
            return TextLogEntry(line)

        if not isinstance(parsed, dict):
            return TextLogEntry(line)

        fields: Dict[str, Any] = dict(parsed)
        for name in _RESERVED_FIELDS:
            if name in fields:
                fields[_worker_field_name(name)] = fields.pop(name)
        return StructuredLogEntry(fields)

    def to_json_values(self) -> List[Any]:
        """Entries as they are persisted (strings and objects)."""
        return [entry.to_json_value() for entry in self.entries]


__all__ = ["LogStream"]
