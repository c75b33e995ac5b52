"""Utility functions for bracket progression."""

from __future__ import annotations

import datetime
import logging
import random
from typing import TYPE_CHECKING, Any, Optional

from boredgamer.core.constants import (
    MATCH_ID_TEMPLATE,
    MIN_ROUND_SIZE_FOR_PROGRESSION,
)
from boredgamer.errors import NotFoundError

if TYPE_CHECKING:
    from .models import Match, ResultSubmission

MATCH_PENDING = "pending"
MATCH_COMPLETED = "completed"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def find_match(brackets: list[Match], match_id: str) -> Match:
    """Return the match with the given id or raise NotFoundError."""
    for match in brackets:
        if match.get("id") == match_id:
            return match
    raise NotFoundError("Match not found.")


def round_matches(brackets: list[Match], round_number: int) -> list[Match]:
    """Return all matches of a round, in bracket order."""
    return [m for m in brackets if m.get("round") == round_number]


def round_winners(matches: list[Match]) -> list[str]:
    """Collect winners of completed matches, preserving list order."""
    return [
        m["winner"]
        for m in matches
        if m.get("status") == MATCH_COMPLETED and m.get("winner") is not None
    ]


def build_match(
    round_number: int,
    index: int,
    player1: Optional[str],
    player2: Optional[str],
    created_at: str,
) -> Match:
    """Build a pending match document."""
    return {
        "id": MATCH_ID_TEMPLATE.format(round=round_number, index=index),
        "round": round_number,
        "player1": player1,
        "player2": player2,
        "status": MATCH_PENDING,
        "winner": None,
        "createdAt": created_at,
    }


def generate_next_round(
    winners: list[str], round_number: int, created_at: str
) -> list[Match]:
    """Pair consecutive winners into the matches of the next round.

    A trailing unpaired winner gets no match.
    """
    matches = []
    for i in range(0, len(winners) - 1, 2):
        matches.append(
            build_match(round_number, i // 2 + 1, winners[i], winners[i + 1], created_at)
        )

    if len(winners) % 2:
        logging.warning(
            f"Odd winner count in round {round_number - 1}; "
            f"{winners[-1]} was not paired for round {round_number}."
        )
    return matches


def generate_first_round(
    participant_ids: list[str],
    rng: Optional[random.Random] = None,
    created_at: Optional[str] = None,
) -> list[Match]:
    """Shuffle participants into round one, giving the odd one out a bye."""
    rng = rng or random.Random()  # nosec B311
    created_at = created_at or utc_now_iso()
    shuffled = list(participant_ids)
    rng.shuffle(shuffled)

    matches = []
    for i in range(0, len(shuffled), 2):
        index = i // 2 + 1
        if i + 1 < len(shuffled):
            matches.append(build_match(1, index, shuffled[i], shuffled[i + 1], created_at))
        else:
            bye = build_match(1, index, shuffled[i], None, created_at)
            bye["status"] = MATCH_COMPLETED
            bye["winner"] = shuffled[i]
            bye["completedAt"] = created_at
            matches.append(bye)
    return matches


def apply_result(
    brackets: list[Match],
    submission: ResultSubmission,
    now: Optional[str] = None,
) -> tuple[list[Match], list[Match]]:
    """Record a match result and generate the next round when one finishes.

    Returns the updated bracket list and the matches appended to it. The
    input list and its matches are left untouched.
    """
    now = now or utc_now_iso()
    target = find_match(brackets, submission.match_id)
    current_round = target.get("round")

    updated: list[Match] = []
    for match in brackets:
        if match.get("id") == submission.match_id:
            completed: dict[str, Any] = {
                **match,
                "status": MATCH_COMPLETED,
                "winner": submission.winner_id,
                "score": submission.score,
                "completedAt": now,
            }
            updated.append(completed)  # type: ignore[arg-type]
        else:
            updated.append(match)

    current = round_matches(updated, current_round)
    finished = [m for m in current if m.get("status") == MATCH_COMPLETED]

    new_matches: list[Match] = []
    round_done = (
        len(finished) == len(current)
        and len(current) >= MIN_ROUND_SIZE_FOR_PROGRESSION
    )
    # A corrected result for an already-advanced round must not re-seed it.
    if round_done and not round_matches(updated, current_round + 1):
        new_matches = generate_next_round(round_winners(finished), current_round + 1, now)
        updated.extend(new_matches)

    return updated, new_matches
