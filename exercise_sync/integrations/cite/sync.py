"""Create and remove an exercise's CITE resources."""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from exercise_sync.db.models import Msel, MselRole, UserMselRole
from exercise_sync.integrations.cite.client import CiteClient

DEFAULT_SITUATION = "Preparing for the start of the exercise."


def create_evaluation(session: Session, msel: Msel, client: CiteClient) -> None:
    """Create the CITE evaluation, seeded with move 0's situation when present.

    CITE creates a default move 0 with every evaluation; it is deleted so
    the exercise's own moves can be pushed without colliding.
    """
    if msel.cite_evaluation_id is not None:
        logger.debug(f"[CITE] Evaluation already exists for msel_id={msel.id}, skipping")
        return

    move0 = next((m for m in msel.moves if m.move_number == 0), None)
    evaluation = {
        "description": msel.name,
        "status": "Pending",
        "currentMoveNumber": 0,
        "scoringModelId": msel.cite_scoring_model_id,
        "galleryExhibitId": msel.gallery_exhibit_id,
        "situationDescription": DEFAULT_SITUATION,
    }
    if move0 is not None:
        evaluation["situationDescription"] = move0.situation_description
        if move0.situation_time is not None:
            evaluation["situationTime"] = move0.situation_time.isoformat()

    new_evaluation = client.create_evaluation(evaluation)
    msel.cite_evaluation_id = new_evaluation["id"]
    session.commit()
    logger.info(f"[CITE] Created evaluation {msel.cite_evaluation_id} for msel_id={msel.id}")

    for default_move in new_evaluation.get("moves") or []:
        client.delete_move(default_move["id"])


def create_moves(session: Session, msel: Msel, client: CiteClient) -> None:
    for move in msel.moves:
        client.create_move(
            {
                "evaluationId": msel.cite_evaluation_id,
                "description": move.description,
                "moveNumber": move.move_number,
                "situationTime": move.situation_time.isoformat() if move.situation_time else None,
                "situationDescription": move.situation_description,
            }
        )


def _is_cite_observer(session: Session, user_id: str, msel_id: str) -> bool:
    row = session.execute(
        select(UserMselRole.id).where(
            UserMselRole.user_id == user_id,
            UserMselRole.msel_id == msel_id,
            UserMselRole.role == MselRole.CITE_OBSERVER,
        )
    ).first()
    return row is not None


def create_teams(session: Session, msel: Msel, client: CiteClient) -> None:
    """Create CITE teams for every exercise team that has a CITE team type."""
    cite_user_ids = {user["id"] for user in client.get_users()}

    for team in msel.teams:
        if team.cite_team_type_id is None or team.cite_team_id is not None:
            continue

        cite_team = client.create_team(
            {
                "name": team.name,
                "shortName": team.short_name,
                "evaluationId": msel.cite_evaluation_id,
                "teamTypeId": team.cite_team_type_id,
            }
        )
        team.cite_team_id = cite_team["id"]

        for team_user in team.team_users:
            user = team_user.user
            if user.id not in cite_user_ids:
                client.create_user({"id": user.id, "name": user.name})
                cite_user_ids.add(user.id)
            client.create_team_user(
                {
                    "teamId": team.cite_team_id,
                    "userId": user.id,
                    "isObserver": _is_cite_observer(session, user.id, msel.id),
                }
            )

        session.commit()


def create_roles(session: Session, msel: Msel, client: CiteClient) -> None:
    for role in msel.cite_roles:
        if role.team.cite_team_id is None:
            continue
        client.create_role(
            {
                "evaluationId": msel.cite_evaluation_id,
                "name": role.name,
                "teamId": role.team.cite_team_id,
            }
        )


def create_actions(session: Session, msel: Msel, client: CiteClient) -> None:
    for action in msel.cite_actions:
        if action.team.cite_team_id is None:
            continue
        client.create_action(
            {
                "evaluationId": msel.cite_evaluation_id,
                "teamId": action.team.cite_team_id,
                "moveNumber": action.move_number,
                "injectNumber": action.inject_number,
                "description": action.description,
            }
        )


def advance_evaluation(session: Session, msel: Msel, client: CiteClient) -> None:
    client.advance_evaluation(msel.cite_evaluation_id)
    logger.info(f"[CITE] Advanced evaluation {msel.cite_evaluation_id} for msel_id={msel.id}")


def pull_evaluation(msel: Msel, client: CiteClient) -> None:
    client.delete_evaluation(msel.cite_evaluation_id)
    logger.info(f"[CITE] Deleted evaluation {msel.cite_evaluation_id} for msel_id={msel.id}")
