from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


def canonical_pair(participant_a: str, participant_b: str) -> tuple[str, str]:
    """Order-independent representation of a participant pair."""
    first, second = sorted((participant_a, participant_b))
    return first, second


@dataclass(frozen=True, slots=True)
class Chat:
    id: UUID
    participant_a: str
    participant_b: str
    last_message_id: UUID | None
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def participants(self) -> tuple[str, str]:
        return self.participant_a, self.participant_b

    def has_participant(self, participant_id: str) -> bool:
        return participant_id in self.participants

    def other_participant(self, participant_id: str) -> str:
        if participant_id == self.participant_a:
            return self.participant_b
        return self.participant_a
