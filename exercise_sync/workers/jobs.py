"""Job descriptions handed to the background workers.

Jobs live only in memory: consumed once, never persisted, lost on crash.
"""

from dataclasses import dataclass, field
from typing import Any

from exercise_sync.db.models import ItemStatus


@dataclass(frozen=True)
class IntegrationJob:
    """Push or pull an exercise.

    Attributes:
        msel_id: Exercise to integrate
        player_view_id: View id to request from Player on push (optional)
        final_status: Status the exercise gets once a pull completes
        resume: Re-run a failed push, skipping its completed steps
    """

    msel_id: str
    player_view_id: str | None = None
    final_status: ItemStatus = ItemStatus.PENDING
    resume: bool = False


@dataclass(frozen=True)
class JoinJob:
    """Add a user to a team of an already pushed exercise."""

    user_id: str
    player_view_id: str
    player_team_id: str


@dataclass(frozen=True)
class LaunchJob:
    """Push an exercise into an existing (or requested) Player view."""

    msel_id: str
    player_view_id: str


@dataclass(frozen=True)
class AddApplicationJob:
    """Create one application in a view and give it to one team.

    Attributes:
        application: Player application payload; must carry "viewId"
        player_team_id: Player team receiving the application instance
        display_order: Position of the application in the team's list
    """

    application: dict[str, Any] = field(hash=False)
    player_team_id: str = ""
    display_order: int = 0
