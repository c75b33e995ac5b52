"""Routes for the tournament blueprint."""

from __future__ import annotations

from typing import Any, Optional

from flask import current_app, jsonify, request

from boredgamer.errors import ValidationError
from boredgamer.extensions import get_db

from . import bp
from .models import ResultSubmission
from .services import TournamentService


def _json_body() -> dict[str, Any]:
    """Return the request's JSON object or raise ValidationError."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("limit must be a positive integer.") from None
    if limit < 1:
        raise ValidationError("limit must be a positive integer.")
    return limit


@bp.route("", methods=["GET"])
def list_tournaments() -> Any:
    """List a studio's tournaments."""
    tournaments = TournamentService.list_tournaments(
        get_db(),
        request.args.get("studioId", ""),
        status=request.args.get("status") or None,
        limit=_parse_limit(request.args.get("limit")),
    )
    return jsonify({"tournaments": tournaments})


@bp.route("", methods=["POST"])
def tournament_action() -> Any:
    """Create a tournament, register a player, or change a tournament's status."""
    body = _json_body()
    action = body.get("action")
    tournament_id = body.get("tournamentId")
    db = get_db()

    if action == "create":
        data = {
            k: v
            for k, v in body.items()
            if k not in ("action", "tournamentId", "playerId", "playerData")
        }
        tournament = TournamentService.create_tournament(db, data)
        current_app.logger.info(f"Created tournament {tournament['id']}")
        return jsonify(tournament)

    if action == "register":
        player_id = body.get("playerId")
        if not tournament_id or not player_id:
            raise ValidationError("Tournament ID and Player ID required.")
        player_data = body.get("playerData") or {}
        if not isinstance(player_data, dict):
            raise ValidationError("playerData must be an object.")
        TournamentService.register_player(db, tournament_id, player_id, player_data)
        return jsonify({"message": "Successfully registered for tournament"})

    if action == "updateStatus":
        if not tournament_id:
            raise ValidationError("Tournament ID required.")
        TournamentService.update_status(db, tournament_id, body.get("status", ""))
        return jsonify({"message": "Tournament status updated"})

    raise ValidationError("Invalid action.")


@bp.route("/<string:tournament_id>", methods=["GET"])
def get_tournament(tournament_id: str) -> Any:
    """Fetch a single tournament."""
    return jsonify(TournamentService.get_tournament(get_db(), tournament_id))


@bp.route("/<string:tournament_id>", methods=["PUT"])
def update_tournament(tournament_id: str) -> Any:
    """Update tournament fields."""
    TournamentService.update_tournament(get_db(), tournament_id, _json_body())
    return jsonify({"message": "Tournament updated successfully"})


@bp.route("/<string:tournament_id>", methods=["DELETE"])
def delete_tournament(tournament_id: str) -> Any:
    """Delete a tournament."""
    TournamentService.delete_tournament(get_db(), tournament_id)
    current_app.logger.info(f"Deleted tournament {tournament_id}")
    return jsonify({"message": "Tournament deleted successfully"})


@bp.route("/<string:tournament_id>/brackets", methods=["GET"])
def get_brackets(tournament_id: str) -> Any:
    """Return the bracket list of a tournament."""
    brackets = TournamentService.get_brackets(get_db(), tournament_id)
    return jsonify({"brackets": brackets})


@bp.route("/<string:tournament_id>/brackets", methods=["POST"])
def record_result(tournament_id: str) -> Any:
    """Record a match result and advance the bracket."""
    body = _json_body()
    submission = ResultSubmission.from_payload(body)
    submission.validate()

    expected_revision = body.get("expectedRevision")
    if expected_revision is not None and (
        isinstance(expected_revision, bool) or not isinstance(expected_revision, int)
    ):
        raise ValidationError("expectedRevision must be an integer.")

    new_matches = TournamentService.record_result(
        get_db(), tournament_id, submission, expected_revision=expected_revision
    )
    return jsonify(
        {"message": "Match result updated successfully", "newMatches": new_matches}
    )
