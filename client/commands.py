"""
Outbound command builders for the dataset server protocol. No state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from matching.models import SET_LABELS

GET_EVENTS = "getEvents"
GET_DATA = "getData"
CONFIRM = "confirm"

REQ_ID_KEY = "_reqId"


@dataclass(frozen=True)
class Command:
    """Immutable outbound message. Stamped with a request id only at send time."""
    cmd: str
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_payload(self, req_id: str) -> dict:
        payload = {"cmd": self.cmd}
        payload.update(self.fields)
        payload[REQ_ID_KEY] = req_id
        return payload

    def encode(self, req_id: str) -> str:
        """Serialize to compact JSON text with the request id appended."""
        return json.dumps(self.to_payload(req_id), separators=(",", ":"))


def get_events() -> Command:
    return Command(GET_EVENTS)


def get_data(event_id: str) -> Command:
    if not event_id:
        raise ValueError("event_id must be non-empty")
    return Command(GET_DATA, MappingProxyType({"eventId": event_id}))


def confirm(event_id: str, set_label: str, n: int, div: float) -> Command:
    """
    Report that index n of set_label produced div inside the bounds.

    set_label is "set1" or "set2"; n is zero-based.
    """
    if set_label not in SET_LABELS:
        raise ValueError(f"unknown set label {set_label!r}")
    return Command(CONFIRM, MappingProxyType({
        "eventId": event_id,
        "set": set_label,
        "n": n,
        "div": div,
    }))
