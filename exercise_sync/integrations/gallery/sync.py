"""Create and remove an exercise's Gallery resources.

Articles are built from scenario events whose DeliveryMethod data value
mentions Gallery. The article attributes come from the data fields tagged
with a gallery_article_parameter.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from enum import StrEnum
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from exercise_sync.db.models import DataField, DataValue, Msel, ScenarioEvent, TeamRole, UserTeamRole
from exercise_sync.integrations.gallery.client import GalleryClient


class GalleryArticleParameter(StrEnum):
    NAME = "Name"
    SUMMARY = "Summary"
    DESCRIPTION = "Description"
    STATUS = "Status"
    SOURCE_TYPE = "SourceType"
    SOURCE_NAME = "SourceName"
    URL = "Url"
    DATE_POSTED = "DatePosted"
    OPEN_IN_NEW_TAB = "OpenInNewTab"
    CARD_ID = "CardId"
    DELIVERY_METHOD = "DeliveryMethod"
    TO_ORG = "ToOrg"


ARTICLE_STATUSES = ("Unused", "Open", "Closed", "Critical", "Affected")
SOURCE_TYPES = ("News", "Social", "Phone", "Email", "Intel", "Reporting", "Orders")
ALL_TEAMS = "ALL"


def create_collection(session: Session, msel: Msel, client: GalleryClient) -> None:
    if msel.gallery_collection_id is not None:
        logger.debug(f"[GALLERY] Collection already exists for msel_id={msel.id}, skipping")
        return

    collection = client.create_collection({"name": msel.name, "description": msel.description})
    msel.gallery_collection_id = collection["id"]
    session.commit()
    logger.info(f"[GALLERY] Created collection {msel.gallery_collection_id} for msel_id={msel.id}")


def create_exhibit(session: Session, msel: Msel, client: GalleryClient) -> None:
    if msel.gallery_exhibit_id is not None:
        logger.debug(f"[GALLERY] Exhibit already exists for msel_id={msel.id}, skipping")
        return

    exhibit = client.create_exhibit(
        {
            "collectionId": msel.gallery_collection_id,
            "currentMove": 0,
            "currentInject": 0,
        }
    )
    msel.gallery_exhibit_id = exhibit["id"]
    session.commit()
    logger.info(f"[GALLERY] Created exhibit {msel.gallery_exhibit_id} for msel_id={msel.id}")


def _is_team_observer(session: Session, user_id: str, team_id: str) -> bool:
    row = session.execute(
        select(UserTeamRole.id).where(
            UserTeamRole.user_id == user_id,
            UserTeamRole.team_id == team_id,
            UserTeamRole.role == TeamRole.OBSERVER,
        )
    ).first()
    return row is not None


def create_teams(session: Session, msel: Msel, client: GalleryClient) -> None:
    """Create Gallery teams in the exhibit and add their members."""
    gallery_user_ids = {user["id"] for user in client.get_users()}

    for team in msel.teams:
        if team.gallery_team_id is not None:
            continue

        gallery_team = client.create_team(
            {
                "name": team.name,
                "shortName": team.short_name,
                "exhibitId": msel.gallery_exhibit_id,
                "email": team.email,
            }
        )
        team.gallery_team_id = gallery_team["id"]

        for team_user in team.team_users:
            user = team_user.user
            if user.id not in gallery_user_ids:
                client.create_user({"id": user.id, "name": user.name})
                gallery_user_ids.add(user.id)
            client.create_team_user(
                {
                    "teamId": team.gallery_team_id,
                    "userId": user.id,
                    "isObserver": _is_team_observer(session, user.id, team.id),
                }
            )

        session.commit()


def create_cards(session: Session, msel: Msel, client: GalleryClient) -> None:
    for card in msel.cards:
        if card.gallery_id is not None:
            continue

        gallery_card = client.create_card(
            {
                "collectionId": msel.gallery_collection_id,
                "name": card.name,
                "description": card.description,
                "move": card.move,
                "inject": card.inject,
            }
        )
        card.gallery_id = gallery_card["id"]
        session.commit()

        for card_team in card.card_teams:
            if card_team.team.gallery_team_id is None:
                logger.warning(f"[GALLERY] Team {card_team.team.name} has no Gallery team, skipping card {card.name}")
                continue
            client.create_team_card(
                {
                    "teamId": card_team.team.gallery_team_id,
                    "cardId": card.gallery_id,
                    "isShownOnWall": card_team.is_shown_on_wall,
                    "canPostArticles": card_team.can_post_articles,
                }
            )


def get_article_value(
    parameter: GalleryArticleParameter,
    data_values: list[DataValue],
    data_fields: list[DataField],
) -> str:
    """Value of the data field tagged with this article parameter, or ""."""
    data_field = next((df for df in data_fields if df.gallery_article_parameter == parameter), None)
    if data_field is None:
        return ""
    data_value = next((dv for dv in data_values if dv.data_field_id == data_field.id), None)
    if data_value is None or data_value.value is None:
        return ""
    return data_value.value


def get_moves_and_injects(scenario_events: list[ScenarioEvent]) -> dict[str, tuple[int, int]]:
    """Map each scenario event id to its (move, inject) numbers.

    Injects are numbered from 1 within each move, in row order.
    """
    by_move: dict[int, list[ScenarioEvent]] = defaultdict(list)
    for event in sorted(scenario_events, key=lambda e: (e.move_number, e.row_index)):
        by_move[event.move_number].append(event)

    result: dict[str, tuple[int, int]] = {}
    for move_number, events in by_move.items():
        for inject_number, event in enumerate(events, start=1):
            result[event.id] = (move_number, inject_number)
    return result


def _match_choice(value: str, choices: tuple[str, ...], default: str) -> str:
    lowered = value.strip().lower()
    return next((choice for choice in choices if choice.lower() == lowered), default)


def _parse_date(value: str) -> str | None:
    try:
        return datetime.fromisoformat(value.strip()).isoformat()
    except ValueError:
        return None


def build_article(msel: Msel, event: ScenarioEvent, move: int, inject: int) -> dict[str, Any]:
    def value(parameter: GalleryArticleParameter) -> str:
        return get_article_value(parameter, event.data_values, msel.data_fields)

    gallery_card_id = None
    card_id = value(GalleryArticleParameter.CARD_ID)
    if card_id:
        card = next((c for c in msel.cards if c.id == card_id), None)
        gallery_card_id = card.gallery_id if card is not None else None

    return {
        "collectionId": msel.gallery_collection_id,
        "cardId": gallery_card_id,
        "name": value(GalleryArticleParameter.NAME),
        "summary": value(GalleryArticleParameter.SUMMARY),
        "description": value(GalleryArticleParameter.DESCRIPTION),
        "move": move,
        "inject": inject,
        "status": _match_choice(value(GalleryArticleParameter.STATUS), ARTICLE_STATUSES, "Unused"),
        "sourceType": _match_choice(value(GalleryArticleParameter.SOURCE_TYPE), SOURCE_TYPES, "News"),
        "sourceName": value(GalleryArticleParameter.SOURCE_NAME),
        "url": value(GalleryArticleParameter.URL),
        "datePosted": _parse_date(value(GalleryArticleParameter.DATE_POSTED)),
        "openInNewTab": value(GalleryArticleParameter.OPEN_IN_NEW_TAB).strip().lower() == "true",
    }


def create_articles(session: Session, msel: Msel, client: GalleryClient) -> None:
    """Create an article per Gallery-delivered scenario event and share it with its teams."""
    moves_and_injects = get_moves_and_injects(msel.scenario_events)

    for event in msel.scenario_events:
        delivery_method = get_article_value(GalleryArticleParameter.DELIVERY_METHOD, event.data_values, msel.data_fields)
        if "Gallery" not in delivery_method:
            continue

        move, inject = moves_and_injects[event.id]
        article = client.create_article(build_article(msel, event, move, inject))

        to_orgs = {
            org.strip()
            for org in get_article_value(GalleryArticleParameter.TO_ORG, event.data_values, msel.data_fields).split(",")
        }
        for team in msel.teams:
            if ALL_TEAMS not in to_orgs and team.short_name not in to_orgs:
                continue
            client.create_team_article(
                {
                    "exhibitId": msel.gallery_exhibit_id,
                    "teamId": team.gallery_team_id,
                    "articleId": article["id"],
                }
            )


def pull_collection(msel: Msel, client: GalleryClient) -> None:
    client.delete_collection(msel.gallery_collection_id)
    logger.info(f"[GALLERY] Deleted collection {msel.gallery_collection_id} for msel_id={msel.id}")
