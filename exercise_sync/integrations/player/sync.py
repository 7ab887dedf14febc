"""Create and remove an exercise's Player resources.

Each function mutates the local records as soon as the upstream resource
exists and commits, so a record with a Player id always has a Player
counterpart even if a later call fails.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from loguru import logger
from sqlalchemy.orm import Session

from exercise_sync.db.models import Msel
from exercise_sync.integrations.player.client import PlayerClient

URL_PLACEHOLDERS = {
    "{playerViewId}": "player_view_id",
    "{galleryExhibitId}": "gallery_exhibit_id",
    "{citeEvaluationId}": "cite_evaluation_id",
}


def create_view(session: Session, msel: Msel, requested_view_id: str | None, client: PlayerClient) -> None:
    """Create the Player view for this exercise unless it already has one."""
    if msel.player_view_id is not None:
        logger.debug(f"[PLAYER] View already exists for msel_id={msel.id}, skipping")
        return

    view: dict[str, Any] = {
        "name": msel.name,
        "description": msel.description,
        "status": "Active",
        "createAdminTeam": True,
    }
    if requested_view_id is not None:
        view["id"] = requested_view_id

    new_view = client.create_view(view)
    msel.player_view_id = new_view["id"]
    session.commit()
    logger.info(f"[PLAYER] Created view {msel.player_view_id} for msel_id={msel.id}")


def create_teams(session: Session, msel: Msel, client: PlayerClient) -> None:
    """Create one Player team per exercise team and add its members.

    Users unknown to Player are created first.
    """
    player_user_ids = {user["id"] for user in client.get_users()}

    for team in msel.teams:
        if team.player_team_id is not None:
            continue

        player_team = client.create_team(msel.player_view_id, {"name": team.name})
        team.player_team_id = player_team["id"]

        for team_user in team.team_users:
            user = team_user.user
            if user.id not in player_user_ids:
                client.create_user({"id": user.id, "name": user.name})
                player_user_ids.add(user.id)
            client.add_user_to_team(team.player_team_id, user.id)

        session.commit()
        logger.debug(f"[PLAYER] Created team {team.name} ({team.player_team_id}) for msel_id={msel.id}")


def resolve_application_url(template: str | None, msel: Msel) -> str | None:
    """Fill the exercise placeholders in an application URL.

    Returns None unless the result is an absolute http(s) URL.
    """
    if not template:
        return None

    url = template
    for placeholder, attribute in URL_PLACEHOLDERS.items():
        value = getattr(msel, attribute)
        url = url.replace(placeholder, "" if value is None else str(value))

    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return url


def create_applications(session: Session, msel: Msel, client: PlayerClient) -> None:
    """Create the exercise's applications in its view and attach them to teams."""
    for application in msel.player_applications:
        player_application = client.create_application(
            msel.player_view_id,
            {
                "name": application.name,
                "embeddable": application.embeddable,
                "viewId": msel.player_view_id,
                "url": resolve_application_url(application.url, msel),
                "icon": application.icon,
                "loadInBackground": application.load_in_background,
            },
        )

        for application_team in application.application_teams:
            player_team_id = application_team.team.player_team_id
            if player_team_id is None:
                logger.warning(
                    f"[PLAYER] Team {application_team.team.name} has no Player team, "
                    f"skipping application {application.name}"
                )
                continue
            client.create_application_instance(
                player_team_id,
                {
                    "teamId": player_team_id,
                    "applicationId": player_application["id"],
                    "displayOrder": application_team.display_order,
                },
            )


def pull_view(msel: Msel, client: PlayerClient) -> None:
    client.delete_view(msel.player_view_id)
    logger.info(f"[PLAYER] Deleted view {msel.player_view_id} for msel_id={msel.id}")


def add_user_to_team(user_id: str, player_team_id: str, client: PlayerClient) -> None:
    client.add_user_to_team(player_team_id, user_id)


def add_application(application: dict[str, Any], player_team_id: str, display_order: int, client: PlayerClient) -> None:
    """Create a single application in a view and give it to one team."""
    player_application = client.create_application(application["viewId"], application)
    client.create_application_instance(
        player_team_id,
        {
            "teamId": player_team_id,
            "applicationId": player_application["id"],
            "displayOrder": display_order,
        },
    )
