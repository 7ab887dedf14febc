from __future__ import annotations

from typing import Any

from exercise_sync.integrations.http import ApiClient


class PlayerClient(ApiClient):
    """Thin Player API client (views, teams, users, applications)."""

    system = "player"

    def create_view(self, view: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/views", view)

    def delete_view(self, view_id: str) -> None:
        self._delete(f"api/views/{view_id}")

    def get_users(self) -> list[dict[str, Any]]:
        return self._get("api/users") or []

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/users", user)

    def create_team(self, view_id: str, team: dict[str, Any]) -> dict[str, Any]:
        return self._post(f"api/views/{view_id}/teams", team)

    def add_user_to_team(self, team_id: str, user_id: str) -> None:
        self._post(f"api/teams/{team_id}/users/{user_id}")

    def create_application(self, view_id: str, application: dict[str, Any]) -> dict[str, Any]:
        return self._post(f"api/views/{view_id}/applications", application)

    def create_application_instance(self, team_id: str, instance: dict[str, Any]) -> dict[str, Any]:
        return self._post(f"api/teams/{team_id}/application-instances", instance)
