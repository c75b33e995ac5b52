"""Service layer for tournament business logic."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from boredgamer.core.constants import (
    MIN_PARTICIPANTS_TO_SEED,
    STATUS_ACTIVE,
    STATUS_DRAFT,
    STATUS_REGISTRATION,
    TOURNAMENT_STATUSES,
    TOURNAMENTS_COLLECTION,
)
from boredgamer.errors import ConflictError, NotFoundError, ValidationError
from boredgamer.extensions import translate_store_errors

from .utils import apply_result, generate_first_round, utc_now_iso

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from .models import Match, ResultSubmission, Tournament

PROTECTED_FIELDS = frozenset({"id", "brackets", "revision"})


def _read_tournament(
    ref: DocumentReference, transaction: Optional[Transaction] = None
) -> dict[str, Any]:
    """Read a tournament snapshot or raise NotFoundError."""
    if transaction is not None:
        snapshot = cast("DocumentSnapshot", ref.get(transaction=transaction))
    else:
        snapshot = cast("DocumentSnapshot", ref.get())
    if not snapshot.exists:
        raise NotFoundError("Tournament not found.")
    return snapshot.to_dict() or {}


def _check_max_participants(data: dict[str, Any]) -> None:
    """Reject a ``maxParticipants`` value that is not a positive integer."""
    if data.get("maxParticipants") is None:
        return
    value = data["maxParticipants"]
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("maxParticipants must be a positive integer.")


class TournamentService:
    """Handles business logic and data access for tournaments."""

    @staticmethod
    @translate_store_errors
    def get_brackets(db: Client, tournament_id: str) -> list[Match]:
        """Fetch the bracket list of a tournament."""
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        data = _read_tournament(ref)
        return cast("list[Match]", data.get("brackets") or [])

    @staticmethod
    @translate_store_errors
    def record_result(
        db: Client,
        tournament_id: str,
        submission: ResultSubmission,
        expected_revision: Optional[int] = None,
    ) -> list[Match]:
        """Record a match result and advance the bracket.

        The read-modify-write runs in a Firestore transaction and bumps the
        tournament's ``revision``, so concurrent reports against the same
        tournament are retried instead of overwriting each other. Returns the
        matches generated for the next round, if any.
        """
        submission.validate()
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)

        @firestore.transactional
        def update_in_transaction(
            transaction: Transaction, tournament_ref: DocumentReference
        ) -> list[Match]:
            data = _read_tournament(tournament_ref, transaction)
            revision = int(data.get("revision") or 0)
            if expected_revision is not None and expected_revision != revision:
                logging.warning(
                    f"Stale result for tournament {tournament_id}: "
                    f"expected revision {expected_revision}, found {revision}."
                )
                raise ConflictError("Tournament brackets changed; reload and retry.")

            now = utc_now_iso()
            brackets, new_matches = apply_result(
                data.get("brackets") or [], submission, now
            )
            transaction.update(
                tournament_ref,
                {"brackets": brackets, "revision": revision + 1, "updatedAt": now},
            )
            return new_matches

        new_matches = update_in_transaction(db.transaction(), ref)
        if new_matches:
            logging.info(
                f"Tournament {tournament_id}: generated {len(new_matches)} "
                f"match(es) for round {new_matches[0]['round']}."
            )
        return new_matches

    @staticmethod
    @translate_store_errors
    def create_tournament(db: Client, data: dict[str, Any]) -> Tournament:
        """Create a draft tournament and return it with its ID."""
        if not data.get("name"):
            raise ValidationError("Tournament name is required.")
        if not data.get("studioId"):
            raise ValidationError("Studio ID is required.")
        _check_max_participants(data)

        now = utc_now_iso()
        payload = {
            key: value for key, value in data.items() if key not in PROTECTED_FIELDS
        }
        payload.update(
            {
                "createdAt": now,
                "updatedAt": now,
                "participants": [],
                "brackets": [],
                "currentParticipants": 0,
                "revision": 0,
                "status": STATUS_DRAFT,
            }
        )
        _, ref = db.collection(TOURNAMENTS_COLLECTION).add(payload)
        return cast("Tournament", {"id": ref.id, **payload})

    @staticmethod
    @translate_store_errors
    def list_tournaments(
        db: Client,
        studio_id: str,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Tournament]:
        """Fetch a studio's tournaments, newest first."""
        if not studio_id:
            raise ValidationError("Studio ID is required.")

        query = db.collection(TOURNAMENTS_COLLECTION).where(
            filter=firestore.FieldFilter("studioId", "==", studio_id)
        )
        if status:
            query = query.where(filter=firestore.FieldFilter("status", "==", status))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)

        tournaments = []
        for doc in query.stream():
            data = doc.to_dict()
            if data:
                tournaments.append(cast("Tournament", {"id": doc.id, **data}))
        return tournaments

    @staticmethod
    @translate_store_errors
    def get_tournament(db: Client, tournament_id: str) -> Tournament:
        """Fetch a single tournament."""
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        data = _read_tournament(ref)
        return cast("Tournament", {"id": tournament_id, **data})

    @staticmethod
    @translate_store_errors
    def update_tournament(
        db: Client, tournament_id: str, updates: dict[str, Any]
    ) -> None:
        """Merge plain field updates into a tournament."""
        blocked = PROTECTED_FIELDS.intersection(updates)
        if blocked:
            raise ValidationError(
                f"Fields cannot be updated directly: {', '.join(sorted(blocked))}."
            )
        _check_max_participants(updates)
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        _read_tournament(ref)
        ref.update({**updates, "updatedAt": utc_now_iso()})

    @staticmethod
    @translate_store_errors
    def delete_tournament(db: Client, tournament_id: str) -> None:
        """Delete a tournament document."""
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        _read_tournament(ref)
        ref.delete()

    @staticmethod
    @translate_store_errors
    def register_player(
        db: Client,
        tournament_id: str,
        player_id: str,
        player_data: Optional[dict[str, Any]] = None,
    ) -> None:
        """Add a player to a tournament that is open for registration."""
        if not player_id:
            raise ValidationError("Tournament ID and Player ID required.")
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)

        @firestore.transactional
        def register_in_transaction(
            transaction: Transaction, tournament_ref: DocumentReference
        ) -> None:
            data = _read_tournament(tournament_ref, transaction)
            if data.get("status") != STATUS_REGISTRATION:
                raise ValidationError("Tournament not accepting registrations.")

            participants = list(data.get("participants") or [])
            max_participants = data.get("maxParticipants")
            if max_participants is not None and len(participants) >= max_participants:
                raise ValidationError("Tournament is full.")
            if any(p.get("playerId") == player_id for p in participants):
                raise ValidationError("Player already registered.")

            now = utc_now_iso()
            participants.append(
                {**(player_data or {}), "playerId": player_id, "registeredAt": now}
            )
            transaction.update(
                tournament_ref,
                {
                    "participants": participants,
                    "currentParticipants": len(participants),
                    "updatedAt": now,
                },
            )

        register_in_transaction(db.transaction(), ref)

    @staticmethod
    @translate_store_errors
    def update_status(
        db: Client,
        tournament_id: str,
        status: str,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Change a tournament's status, seeding round one on activation."""
        if status not in TOURNAMENT_STATUSES:
            raise ValidationError(f"Invalid tournament status: {status}.")
        ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)

        @firestore.transactional
        def status_in_transaction(
            transaction: Transaction, tournament_ref: DocumentReference
        ) -> None:
            data = _read_tournament(tournament_ref, transaction)
            now = utc_now_iso()
            updates: dict[str, Any] = {"status": status, "updatedAt": now}

            player_ids = [
                p["playerId"]
                for p in data.get("participants") or []
                if p and p.get("playerId")
            ]
            if (
                status == STATUS_ACTIVE
                and len(player_ids) >= MIN_PARTICIPANTS_TO_SEED
                and not data.get("brackets")
            ):
                updates["brackets"] = generate_first_round(player_ids, rng, now)
                updates["revision"] = int(data.get("revision") or 0) + 1
                logging.info(
                    f"Tournament {tournament_id}: seeded {len(updates['brackets'])} "
                    f"first-round match(es) for {len(player_ids)} players."
                )
            transaction.update(tournament_ref, updates)

        status_in_transaction(db.transaction(), ref)
