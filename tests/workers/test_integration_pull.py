from sqlalchemy import delete, select

from exercise_sync.db.models import Card, ItemStatus, Msel, Team
from exercise_sync.workers.integration import IntegrationWorkflow
from exercise_sync.workers.jobs import IntegrationJob


def _pushed_msel(make_msel, db_session):
    msel = make_msel(
        player_view_id="view-1",
        gallery_collection_id="collection-1",
        gallery_exhibit_id="exhibit-1",
        cite_evaluation_id="evaluation-1",
        integration_step="player_applications",
        status=ItemStatus.DEPLOYED,
    )
    for team in msel.teams:
        team.player_team_id = f"player-{team.name}"
        team.gallery_team_id = f"gallery-{team.name}"
    for card in msel.cards:
        card.gallery_id = "gallery-card"
    db_session.commit()
    return msel


def test_pull_deletes_everything_and_resets_msel(
    worker_context, session_factory, make_msel, db_session, status_channel, player_client, gallery_client, cite_client
):
    msel = _pushed_msel(make_msel, db_session)

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id, final_status=ItemStatus.ARCHIVED))

    cite_client.delete_evaluation.assert_called_once_with("evaluation-1")
    gallery_client.delete_collection.assert_called_once_with("collection-1")
    player_client.delete_view.assert_called_once_with("view-1")
    assert status_channel.for_topic(msel.id) == [f"{msel.id},Pulling Integrations", msel.id]

    with session_factory() as session:
        pulled = session.get(Msel, msel.id)
        assert pulled.status == ItemStatus.ARCHIVED
        assert not pulled.is_pushed
        assert pulled.integration_step is None
        for team in session.scalars(select(Team).where(Team.msel_id == msel.id)):
            assert team.player_team_id is None
            assert team.gallery_team_id is None
        for card in session.scalars(select(Card).where(Card.msel_id == msel.id)):
            assert card.gallery_id is None


def test_pull_continues_when_evaluation_delete_fails(
    worker_context, session_factory, make_msel, db_session, player_client, gallery_client, cite_client
):
    msel = _pushed_msel(make_msel, db_session)
    cite_client.delete_evaluation.side_effect = RuntimeError("cite down")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    gallery_client.delete_collection.assert_called_once()
    player_client.delete_view.assert_called_once()
    with session_factory() as session:
        pulled = session.get(Msel, msel.id)
        assert pulled.cite_evaluation_id is None
        assert pulled.status == ItemStatus.PENDING


def test_push_of_session_only_msel_pulls_the_view(
    worker_context, make_msel, player_client, gallery_client, cite_client
):
    msel = make_msel(player_view_id="view-9")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    player_client.delete_view.assert_called_once_with("view-9")
    player_client.create_view.assert_not_called()
    gallery_client.delete_collection.assert_not_called()
    cite_client.delete_evaluation.assert_not_called()


def test_pull_without_token_still_resets_msel(
    worker_context, session_factory, make_msel, db_session, clients, player_client, status_channel
):
    msel = _pushed_msel(make_msel, db_session)
    clients.get_token.side_effect = RuntimeError("identity down")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    player_client.delete_view.assert_not_called()
    assert status_channel.for_topic(msel.id)[-1] == msel.id
    with session_factory() as session:
        assert not session.get(Msel, msel.id).is_pushed


def test_pull_of_deleted_msel_still_completes(
    worker_context, session_factory, make_msel, player_client, status_channel
):
    msel = make_msel(player_view_id="view-9")

    def delete_msel(view_id):
        with session_factory() as other:
            other.execute(delete(Msel).where(Msel.id == msel.id))
            other.commit()

    player_client.delete_view.side_effect = delete_msel

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    assert status_channel.for_topic(msel.id) == [f"{msel.id},Pulling Integrations", msel.id]
    assert msel.id not in worker_context.in_flight
