from __future__ import annotations

from typing import Any

from exercise_sync.integrations.http import ApiClient


class CiteClient(ApiClient):
    """Thin CITE API client (evaluations, moves, teams, roles, actions)."""

    system = "cite"

    def create_evaluation(self, evaluation: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/evaluations", evaluation)

    def delete_evaluation(self, evaluation_id: str) -> None:
        self._delete(f"api/evaluations/{evaluation_id}")

    def advance_evaluation(self, evaluation_id: str) -> dict[str, Any]:
        """Move the evaluation to its next move so team submissions get generated."""
        return self._put(f"api/evaluations/{evaluation_id}/increment")

    def create_move(self, move: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/moves", move)

    def delete_move(self, move_id: str) -> None:
        self._delete(f"api/moves/{move_id}")

    def get_users(self) -> list[dict[str, Any]]:
        return self._get("api/users") or []

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/users", user)

    def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/teams", team)

    def create_team_user(self, team_user: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/teamusers", team_user)

    def create_role(self, role: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/roles", role)

    def create_action(self, action: dict[str, Any]) -> dict[str, Any]:
        return self._post("api/actions", action)
