"""Structured event logging for gate and review operations.

Every submission and decision emits one JSON line carrying a trace id, so the
path of a single edit/delete (submitted -> decided -> applied) can be followed
across the store and the record backend.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Span:
    name: str
    trace_id: str
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    start_ns: int = field(default_factory=time.time_ns)
    end_ns: int | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def annotate(self, **attributes: Any) -> "Span":
        self.attributes.update(attributes)
        return self

    def end(self) -> None:
        if self.end_ns is None:
            self.end_ns = time.time_ns()

    @property
    def duration_ms(self) -> float | None:
        if self.end_ns is None:
            return None
        return (self.end_ns - self.start_ns) / 1_000_000.0


def new_trace_id() -> str:
    return uuid.uuid4().hex


def log_event(
    event: str,
    *,
    trace_id: str,
    span: Span | None = None,
    level: str = "info",
    **fields: Any,
) -> None:
    payload: dict[str, Any] = {
        'ts': datetime.now(timezone.utc).isoformat(),
        'level': level,
        'event': event,
        'trace_id': trace_id,
        **fields,
    }
    if span is not None:
        payload['span'] = {
            'name': span.name,
            'span_id': span.span_id,
            'duration_ms': span.duration_ms,
            'attributes': span.attributes,
        }
    # Snapshots are opaque blobs; anything not JSON-native is logged as text.
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)
