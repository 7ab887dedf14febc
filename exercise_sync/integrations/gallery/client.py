from __future__ import annotations

from typing import Any

from exercise_sync.integrations.http import ApiClient


class GalleryClient(ApiClient):
    """Thin Gallery API client (collections, exhibits, teams, cards, articles)."""

    system = "gallery"

    def create_collection(self, collection: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/collections", collection)

    def delete_collection(self, collection_id: str) -> None:
        self._delete(f"api/collections/{collection_id}")

    def create_exhibit(self, exhibit: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/exhibits", exhibit)

    def get_users(self) -> list[dict[str, Any]]:
        return self._get("api/users") or []

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/users", user)

    def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/teams", team)

    def create_team_user(self, team_user: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/teamusers", team_user)

    def create_card(self, card: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/cards", card)

    def create_team_card(self, team_card: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/teamcards", team_card)

    def create_article(self, article: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/articles", article)

    def create_team_article(self, team_article: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/teamarticles", team_article)
