"""
Request correlation. Maps the request id of every outbound getData to the
event it was sent for, so the asynchronous data response can be routed back.

The table is cleared on every events update. Data responses still in flight
from the previous cycle then resolve to None and are dropped by the caller.
"""

from __future__ import annotations

import uuid
from typing import Callable


def new_request_id() -> str:
    return str(uuid.uuid4())


class RequestCorrelator:
    def __init__(self, id_factory: Callable[[], str] = new_request_id) -> None:
        self._id_factory = id_factory
        self._pending: dict[str, str] = {}

    def next_id(self) -> str:
        return self._id_factory()

    def track(self, req_id: str, event_id: str) -> None:
        self._pending[req_id] = event_id

    def resolve(self, req_id: str) -> str | None:
        """Event id for req_id, or None if unknown or cleared by reset()."""
        return self._pending.get(req_id)

    def reset(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, req_id: object) -> bool:
        return req_id in self._pending
