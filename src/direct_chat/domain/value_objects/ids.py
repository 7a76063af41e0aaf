from __future__ import annotations

from typing import NewType

ParticipantId = NewType("ParticipantId", str)
ConnectionId = NewType("ConnectionId", str)
