"""Root conftest for all tests.

Shared fixtures: a file-backed SQLite database per test (workers use their
own threads and sessions), mocked Player/Gallery/CITE clients and a status
channel that records every message.
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from exercise_sync.db.models import (
    Base,
    Card,
    CardTeam,
    CiteAction,
    CiteRole,
    DataField,
    DataValue,
    Move,
    Msel,
    MselRole,
    PlayerApplication,
    PlayerApplicationTeam,
    ScenarioEvent,
    Team,
    TeamRole,
    TeamUser,
    User,
    UserMselRole,
    UserTeamRole,
)
from exercise_sync.integrations.factory import IntegrationClients
from exercise_sync.integrations.identity import TokenResponse
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.progress import StatusPublisher


class RecordingChannel:
    """Status channel keeping (topic, message) pairs in publish order."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def send(self, topic: str, message: str) -> None:
        self.messages.append((topic, message))

    def for_topic(self, topic: str) -> list[str]:
        return [message for t, message in self.messages if t == topic]


def _context_manager_mock() -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    return client


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'exercise_sync_test.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def status_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def publisher(status_channel) -> StatusPublisher:
    return StatusPublisher([status_channel])


@pytest.fixture
def player_client():
    client = _context_manager_mock()
    client.create_view.return_value = {"id": "view-1"}
    client.get_users.return_value = []
    client.create_team.side_effect = lambda view_id, team: {"id": f"player-{team['name']}"}
    client.create_application.side_effect = lambda view_id, app: {"id": f"app-{app['name']}"}
    return client


@pytest.fixture
def gallery_client():
    client = _context_manager_mock()
    client.create_collection.return_value = {"id": "collection-1"}
    client.create_exhibit.return_value = {"id": "exhibit-1"}
    client.get_users.return_value = []
    client.create_team.side_effect = lambda team: {"id": f"gallery-{team['name']}"}
    client.create_card.side_effect = lambda card: {"id": f"gallery-{card['name']}"}
    client.create_article.return_value = {"id": "article-1"}
    return client


@pytest.fixture
def cite_client():
    client = _context_manager_mock()
    client.create_evaluation.return_value = {"id": "evaluation-1", "moves": [{"id": "default-move-0"}]}
    client.get_users.return_value = []
    client.create_team.side_effect = lambda team: {"id": f"cite-{team['name']}"}
    return client


@pytest.fixture
def clients(player_client, gallery_client, cite_client):
    clients = MagicMock(spec=IntegrationClients)
    clients.get_token.return_value = TokenResponse(access_token="worker-token")
    clients.player.return_value = player_client
    clients.gallery.return_value = gallery_client
    clients.cite.return_value = cite_client
    return clients


@pytest.fixture
def worker_context(session_factory, clients, publisher) -> WorkerContext:
    return WorkerContext(session_factory=session_factory, clients=clients, publisher=publisher)


@pytest.fixture
def make_msel(db_session):
    """Factory creating a fully populated exercise.

    Two teams (Blue opts into CITE, Red does not), one user per team, move 0
    and move 1, one card shared with Blue, one Gallery-delivered scenario
    event addressed to ALL teams, a CITE role and action for Blue and one
    Player application given to both teams.
    """

    def _make(*, use_gallery: bool = True, use_cite: bool = True, **overrides) -> Msel:
        msel = Msel(name="Exercise Alpha", description="Tabletop", use_gallery=use_gallery, use_cite=use_cite, **overrides)
        db_session.add(msel)
        db_session.flush()

        alice = User(name="Alice")
        bob = User(name="Bob")
        db_session.add_all([alice, bob])
        db_session.flush()

        blue = Team(msel_id=msel.id, name="Blue", short_name="BLU", cite_team_type_id="type-1")
        red = Team(msel_id=msel.id, name="Red", short_name="RED")
        db_session.add_all([blue, red])
        db_session.flush()

        db_session.add_all(
            [
                TeamUser(team_id=blue.id, user_id=alice.id),
                TeamUser(team_id=red.id, user_id=bob.id),
                UserTeamRole(user_id=bob.id, team_id=red.id, role=TeamRole.OBSERVER),
                UserMselRole(user_id=alice.id, msel_id=msel.id, role=MselRole.CITE_OBSERVER),
                Move(
                    msel_id=msel.id,
                    move_number=0,
                    description="Setup",
                    situation_time=datetime(2026, 1, 5, 9, 0),
                    situation_description="Quiet before the storm",
                ),
                Move(msel_id=msel.id, move_number=1, description="Escalation"),
                CiteRole(msel_id=msel.id, team_id=blue.id, name="Lead"),
                CiteAction(msel_id=msel.id, team_id=blue.id, move_number=1, inject_number=1, description="Call it in"),
            ]
        )

        card = Card(msel_id=msel.id, name="Situation", move=0, inject=1)
        db_session.add(card)
        db_session.flush()
        db_session.add(CardTeam(card_id=card.id, team_id=blue.id, is_shown_on_wall=True, can_post_articles=True))

        name_field = DataField(msel_id=msel.id, name="Title", gallery_article_parameter="Name")
        delivery_field = DataField(msel_id=msel.id, name="Delivery", gallery_article_parameter="DeliveryMethod")
        to_org_field = DataField(msel_id=msel.id, name="To", gallery_article_parameter="ToOrg")
        db_session.add_all([name_field, delivery_field, to_org_field])
        db_session.flush()

        event = ScenarioEvent(msel_id=msel.id, move_number=1, row_index=1)
        db_session.add(event)
        db_session.flush()
        db_session.add_all(
            [
                DataValue(scenario_event_id=event.id, data_field_id=name_field.id, value="Breaking news"),
                DataValue(scenario_event_id=event.id, data_field_id=delivery_field.id, value="Gallery"),
                DataValue(scenario_event_id=event.id, data_field_id=to_org_field.id, value="ALL"),
            ]
        )

        application = PlayerApplication(
            msel_id=msel.id,
            name="Gallery",
            url="https://gallery.example/exhibit/{galleryExhibitId}",
            embeddable=True,
            load_in_background=False,
        )
        db_session.add(application)
        db_session.flush()
        db_session.add_all(
            [
                PlayerApplicationTeam(player_application_id=application.id, team_id=blue.id, display_order=0),
                PlayerApplicationTeam(player_application_id=application.id, team_id=red.id, display_order=1),
            ]
        )

        db_session.commit()
        return msel

    return _make
