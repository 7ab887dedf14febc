from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""


class ItemStatus(StrEnum):
    """Exercise lifecycle status.

    Only DEPLOYED is set by the push workflow. The pull workflow sets
    whatever final status the caller supplied with the job.
    """

    PENDING = "pending"
    ENTERED = "entered"
    APPROVED = "approved"
    COMPLETE = "complete"
    DEPLOYED = "deployed"
    ARCHIVED = "archived"


class IntegrationStep(StrEnum):
    """Push steps, in execution order.

    Msel.integration_started_step / integration_step record the last step
    begun and the last step completed, so a failed push can be resumed.
    """

    PLAYER_VIEW = "player_view"
    PLAYER_TEAMS = "player_teams"
    GALLERY_COLLECTION = "gallery_collection"
    GALLERY_EXHIBIT = "gallery_exhibit"
    GALLERY_TEAMS = "gallery_teams"
    GALLERY_CARDS = "gallery_cards"
    GALLERY_ARTICLES = "gallery_articles"
    CITE_EVALUATION = "cite_evaluation"
    CITE_MOVES = "cite_moves"
    CITE_TEAMS = "cite_teams"
    CITE_ROLES = "cite_roles"
    CITE_ACTIONS = "cite_actions"
    CITE_ADVANCE = "cite_advance"
    PLAYER_APPLICATIONS = "player_applications"

    @property
    def order(self) -> int:
        return list(IntegrationStep).index(self)

    @property
    def repeatable(self) -> bool:
        """True if a partial run can be re-run without creating anything twice.

        These steps skip every record that already carries its external id.
        The others (moves, roles, actions, articles, advance, applications)
        keep no per-record id.
        """
        return self in _REPEATABLE_STEPS


_REPEATABLE_STEPS = frozenset(
    {
        IntegrationStep.PLAYER_VIEW,
        IntegrationStep.PLAYER_TEAMS,
        IntegrationStep.GALLERY_COLLECTION,
        IntegrationStep.GALLERY_EXHIBIT,
        IntegrationStep.GALLERY_TEAMS,
        IntegrationStep.GALLERY_CARDS,
        IntegrationStep.CITE_EVALUATION,
        IntegrationStep.CITE_TEAMS,
    }
)


class TeamRole(StrEnum):
    MEMBER = "member"
    OBSERVER = "observer"


class MselRole(StrEnum):
    OWNER = "owner"
    EDITOR = "editor"
    APPROVER = "approver"
    CITE_OBSERVER = "cite_observer"


class Msel(Base):
    """An exercise (Master Scenario Events List).

    External references:
    - player_view_id: Player view (session) created for the exercise
    - gallery_collection_id / gallery_exhibit_id: Gallery resources
    - cite_evaluation_id: CITE evaluation

    The exercise counts as pushed as soon as any reference is set.
    """

    __tablename__ = "msels"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=ItemStatus.PENDING)

    use_gallery: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    use_cite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cite_scoring_model_id: Mapped[str | None] = mapped_column(String, nullable=True)

    player_view_id: Mapped[str | None] = mapped_column(String, nullable=True)
    gallery_collection_id: Mapped[str | None] = mapped_column(String, nullable=True)
    gallery_exhibit_id: Mapped[str | None] = mapped_column(String, nullable=True)
    cite_evaluation_id: Mapped[str | None] = mapped_column(String, nullable=True)

    integration_started_step: Mapped[str | None] = mapped_column(String, nullable=True)
    integration_step: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    teams: Mapped[list[Team]] = relationship(back_populates="msel", cascade="all, delete-orphan")
    moves: Mapped[list[Move]] = relationship(back_populates="msel", cascade="all, delete-orphan", order_by="Move.move_number")
    cards: Mapped[list[Card]] = relationship(back_populates="msel", cascade="all, delete-orphan")
    data_fields: Mapped[list[DataField]] = relationship(back_populates="msel", cascade="all, delete-orphan")
    scenario_events: Mapped[list[ScenarioEvent]] = relationship(
        back_populates="msel", cascade="all, delete-orphan", order_by="ScenarioEvent.row_index"
    )
    cite_roles: Mapped[list[CiteRole]] = relationship(back_populates="msel", cascade="all, delete-orphan")
    cite_actions: Mapped[list[CiteAction]] = relationship(back_populates="msel", cascade="all, delete-orphan")
    player_applications: Mapped[list[PlayerApplication]] = relationship(
        back_populates="msel", cascade="all, delete-orphan", order_by="PlayerApplication.display_order"
    )
    user_msel_roles: Mapped[list[UserMselRole]] = relationship(back_populates="msel", cascade="all, delete-orphan")

    @property
    def is_pushed(self) -> bool:
        return any(
            ref is not None
            for ref in (
                self.player_view_id,
                self.gallery_collection_id,
                self.gallery_exhibit_id,
                self.cite_evaluation_id,
            )
        )


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)


class Team(Base):
    """Exercise team.

    player_team_id / gallery_team_id / cite_team_id are set once the team
    exists upstream. cite_team_type_id opts the team into CITE.
    """

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    short_name: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    cite_team_type_id: Mapped[str | None] = mapped_column(String, nullable=True)

    player_team_id: Mapped[str | None] = mapped_column(String, nullable=True)
    gallery_team_id: Mapped[str | None] = mapped_column(String, nullable=True)
    cite_team_id: Mapped[str | None] = mapped_column(String, nullable=True)

    msel: Mapped[Msel] = relationship(back_populates="teams")
    team_users: Mapped[list[TeamUser]] = relationship(back_populates="team", cascade="all, delete-orphan")


class TeamUser(Base):
    __tablename__ = "team_users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    team: Mapped[Team] = relationship(back_populates="team_users")
    user: Mapped[User] = relationship()

    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_user"),)


class UserTeamRole(Base):
    __tablename__ = "user_team_roles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (Index("idx_user_team_roles_user_team", "user_id", "team_id"),)


class UserMselRole(Base):
    __tablename__ = "user_msel_roles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)

    msel: Mapped[Msel] = relationship(back_populates="user_msel_roles")


class Move(Base):
    __tablename__ = "moves"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    move_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    situation_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    situation_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    msel: Mapped[Msel] = relationship(back_populates="moves")


class CiteRole(Base):
    __tablename__ = "cite_roles"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)

    msel: Mapped[Msel] = relationship(back_populates="cite_roles")
    team: Mapped[Team] = relationship()


class CiteAction(Base):
    __tablename__ = "cite_actions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    move_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inject_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    msel: Mapped[Msel] = relationship(back_populates="cite_actions")
    team: Mapped[Team] = relationship()


class Card(Base):
    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    move: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inject: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gallery_id: Mapped[str | None] = mapped_column(String, nullable=True)

    msel: Mapped[Msel] = relationship(back_populates="cards")
    card_teams: Mapped[list[CardTeam]] = relationship(back_populates="card", cascade="all, delete-orphan")


class CardTeam(Base):
    __tablename__ = "card_teams"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    card_id: Mapped[str] = mapped_column(ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    is_shown_on_wall: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_post_articles: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    card: Mapped[Card] = relationship(back_populates="card_teams")
    team: Mapped[Team] = relationship()


class DataField(Base):
    """Spreadsheet column definition.

    gallery_article_parameter names the Gallery article attribute the
    column feeds (Name, Summary, DeliveryMethod, ToOrg, ...), if any.
    """

    __tablename__ = "data_fields"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    gallery_article_parameter: Mapped[str | None] = mapped_column(String, nullable=True)

    msel: Mapped[Msel] = relationship(back_populates="data_fields")


class ScenarioEvent(Base):
    __tablename__ = "scenario_events"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    move_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    msel: Mapped[Msel] = relationship(back_populates="scenario_events")
    data_values: Mapped[list[DataValue]] = relationship(back_populates="scenario_event", cascade="all, delete-orphan")


class DataValue(Base):
    __tablename__ = "data_values"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    scenario_event_id: Mapped[str] = mapped_column(
        ForeignKey("scenario_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    data_field_id: Mapped[str] = mapped_column(ForeignKey("data_fields.id", ondelete="CASCADE"), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    scenario_event: Mapped[ScenarioEvent] = relationship(back_populates="data_values")

    __table_args__ = (UniqueConstraint("scenario_event_id", "data_field_id", name="uq_data_value_event_field"),)


class PlayerApplication(Base):
    """Application template pushed into the exercise's Player view.

    url may contain the placeholders {playerViewId}, {galleryExhibitId}
    and {citeEvaluationId}.
    """

    __tablename__ = "player_applications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    msel_id: Mapped[str] = mapped_column(ForeignKey("msels.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str | None] = mapped_column(String, nullable=True)
    icon: Mapped[str | None] = mapped_column(String, nullable=True)
    embeddable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    load_in_background: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    msel: Mapped[Msel] = relationship(back_populates="player_applications")
    application_teams: Mapped[list[PlayerApplicationTeam]] = relationship(
        back_populates="player_application", cascade="all, delete-orphan"
    )


class PlayerApplicationTeam(Base):
    __tablename__ = "player_application_teams"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    player_application_id: Mapped[str] = mapped_column(
        ForeignKey("player_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_id: Mapped[str] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    player_application: Mapped[PlayerApplication] = relationship(back_populates="application_teams")
    team: Mapped[Team] = relationship()
