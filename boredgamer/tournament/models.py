"""Data models for the tournament blueprint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, TypedDict

from boredgamer.core.types import FirestoreDocument
from boredgamer.errors import ValidationError


class Match(TypedDict, total=False):
    """A single match embedded in a tournament's bracket list."""

    id: str
    round: int
    player1: Optional[str]
    player2: Optional[str]
    status: str
    winner: Optional[str]
    score: Any
    createdAt: str
    completedAt: str


class Participant(TypedDict, total=False):
    """A registered player embedded in a tournament document."""

    playerId: str
    registeredAt: str


class Tournament(FirestoreDocument, total=False):
    """A tournament document in Firestore."""

    name: str
    studioId: str
    description: str
    game: str
    status: str
    maxParticipants: int
    currentParticipants: int
    participants: list[Participant]
    brackets: list[Match]
    revision: int


@dataclass
class ResultSubmission:
    """Dataclass for a reported match result."""

    match_id: str
    winner_id: str
    score: Any = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ResultSubmission:
        """Build a submission from a JSON request body."""
        return cls(
            match_id=payload.get("matchId") or "",
            winner_id=payload.get("winnerId") or "",
            score=payload.get("score"),
        )

    def validate(self) -> None:
        """Validate the submission before touching the store."""
        if not isinstance(self.match_id, str) or not self.match_id.strip():
            raise ValidationError("matchId is required.")
        if not isinstance(self.winner_id, str) or not self.winner_id.strip():
            raise ValidationError("winnerId is required.")
