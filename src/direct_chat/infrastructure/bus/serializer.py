from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


@dataclass(frozen=True, slots=True)
class FanoutEnvelope:
    event_type: str
    chat_id: UUID
    data: dict[str, Any]
    exclude: str | None = None


def serialize_event(envelope: FanoutEnvelope) -> str:
    raw = {
        "event": envelope.event_type,
        "chat_id": envelope.chat_id,
        "exclude": envelope.exclude,
        "data": envelope.data,
    }
    return json.dumps(raw, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> FanoutEnvelope:
    data = json.loads(raw)
    return FanoutEnvelope(
        event_type=data["event"],
        chat_id=UUID(data["chat_id"]),
        data=data["data"],
        exclude=data.get("exclude"),
    )
