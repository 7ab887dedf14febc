from sqlalchemy import select

from exercise_sync.db.models import Card, IntegrationStep, ItemStatus, Msel, Team
from exercise_sync.workers.integration import IntegrationWorkflow
from exercise_sync.workers.jobs import IntegrationJob


def _reload(session_factory, msel_id):
    with session_factory() as session:
        msel = session.get(Msel, msel_id)
        teams = {team.name: team for team in session.scalars(select(Team).where(Team.msel_id == msel_id))}
        cards = list(session.scalars(select(Card).where(Card.msel_id == msel_id)))
        return msel, teams, cards


def test_push_publishes_every_step_in_order(worker_context, make_msel, status_channel):
    msel = make_msel()

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    expected = [
        "Pushing Integrations",
        "Pushing View to Player",
        "Pushing Teams to Player",
        "Pushing Collection to Gallery",
        "Pushing Exhibit to Gallery",
        "Pushing Teams to Gallery",
        "Pushing Cards to Gallery",
        "Pushing Articles to Gallery",
        "Pushing Evaluation to CITE",
        "Pushing Moves to CITE",
        "Pushing Teams to CITE",
        "Pushing Roles to CITE",
        "Pushing Actions to CITE",
        "Advancing Evaluation in CITE",
        "Pushing Applications to Player",
    ]
    assert status_channel.for_topic(msel.id) == [f"{msel.id},{step}" for step in expected] + [msel.id]


def test_push_sets_references_and_deploys(worker_context, session_factory, make_msel):
    msel = make_msel()

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    pushed, teams, cards = _reload(session_factory, msel.id)
    assert pushed.status == ItemStatus.DEPLOYED
    assert pushed.player_view_id == "view-1"
    assert pushed.gallery_collection_id == "collection-1"
    assert pushed.gallery_exhibit_id == "exhibit-1"
    assert pushed.cite_evaluation_id == "evaluation-1"
    assert pushed.integration_step == IntegrationStep.PLAYER_APPLICATIONS
    assert teams["Blue"].player_team_id == "player-Blue"
    assert teams["Blue"].gallery_team_id == "gallery-Blue"
    assert teams["Blue"].cite_team_id == "cite-Blue"
    assert teams["Red"].cite_team_id is None
    assert cards[0].gallery_id == "gallery-Situation"
    assert msel.id not in worker_context.in_flight


def test_push_without_gallery_or_cite_only_touches_player(
    worker_context, make_msel, status_channel, gallery_client, cite_client, player_client
):
    msel = make_msel(use_gallery=False, use_cite=False)

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    assert status_channel.for_topic(msel.id) == [
        f"{msel.id},Pushing Integrations",
        f"{msel.id},Pushing View to Player",
        f"{msel.id},Pushing Teams to Player",
        f"{msel.id},Pushing Applications to Player",
        msel.id,
    ]
    gallery_client.create_collection.assert_not_called()
    cite_client.create_evaluation.assert_not_called()
    player_client.create_application.assert_called_once()


def test_push_requests_the_job_view_id(worker_context, make_msel, player_client):
    msel = make_msel(use_gallery=False, use_cite=False)

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id, player_view_id="view-requested"))

    view = player_client.create_view.call_args.args[0]
    assert view["id"] == "view-requested"
    assert view["name"] == "Exercise Alpha"
    assert view["createAdminTeam"] is True


def test_player_team_failure_aborts_before_deploying(
    worker_context, session_factory, make_msel, status_channel, player_client, gallery_client
):
    msel = make_msel()
    player_client.create_team.side_effect = RuntimeError("player down")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    pushed, _, _ = _reload(session_factory, msel.id)
    assert pushed.status == ItemStatus.PENDING
    assert pushed.player_view_id == "view-1"
    assert pushed.integration_step == IntegrationStep.PLAYER_VIEW
    gallery_client.create_collection.assert_not_called()
    assert msel.id not in status_channel.for_topic(msel.id)
    assert msel.id not in worker_context.in_flight


def test_gallery_failure_keeps_partial_state(
    worker_context, session_factory, make_msel, status_channel, gallery_client, cite_client, player_client
):
    msel = make_msel()
    gallery_client.create_card.side_effect = RuntimeError("gallery down")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    pushed, teams, cards = _reload(session_factory, msel.id)
    assert pushed.status == ItemStatus.DEPLOYED
    assert pushed.gallery_collection_id == "collection-1"
    assert pushed.gallery_exhibit_id == "exhibit-1"
    assert pushed.integration_step == IntegrationStep.GALLERY_TEAMS
    assert teams["Blue"].gallery_team_id == "gallery-Blue"
    assert cards[0].gallery_id is None
    cite_client.create_evaluation.assert_not_called()
    player_client.create_application.assert_not_called()
    assert status_channel.for_topic(msel.id)[-1] == f"{msel.id},Pushing Cards to Gallery"


def test_resume_continues_after_last_completed_step(
    worker_context, session_factory, make_msel, status_channel, gallery_client, player_client
):
    msel = make_msel()
    gallery_client.create_card.side_effect = RuntimeError("gallery down")
    workflow = IntegrationWorkflow(worker_context)
    workflow.run(IntegrationJob(msel_id=msel.id))

    gallery_client.create_card.side_effect = lambda card: {"id": f"gallery-{card['name']}"}
    status_channel.messages.clear()
    workflow.run(IntegrationJob(msel_id=msel.id, resume=True))

    gallery_client.create_collection.assert_called_once()
    gallery_client.create_exhibit.assert_called_once()
    player_client.create_view.assert_called_once()
    messages = status_channel.for_topic(msel.id)
    assert messages[0] == f"{msel.id},Pushing Integrations"
    assert messages[1] == f"{msel.id},Pushing Cards to Gallery"
    assert messages[-1] == msel.id

    pushed, _, cards = _reload(session_factory, msel.id)
    assert cards[0].gallery_id == "gallery-Situation"
    assert pushed.integration_step == IntegrationStep.PLAYER_APPLICATIONS


def test_token_failure_aborts_push(worker_context, session_factory, make_msel, clients, player_client):
    msel = make_msel()
    clients.get_token.side_effect = RuntimeError("identity down")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    pushed, _, _ = _reload(session_factory, msel.id)
    assert pushed.player_view_id is None
    assert pushed.status == ItemStatus.PENDING
    player_client.create_view.assert_not_called()


def test_missing_msel_is_abandoned(worker_context, player_client, status_channel):
    worker_context.in_flight.acquire("missing")

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id="missing"))

    player_client.create_view.assert_not_called()
    assert status_channel.messages == []
    assert "missing" not in worker_context.in_flight


def test_resume_after_failed_default_move_delete_keeps_the_evaluation(
    worker_context, session_factory, make_msel, status_channel, cite_client
):
    msel = make_msel()
    cite_client.delete_move.side_effect = RuntimeError("cite down")
    workflow = IntegrationWorkflow(worker_context)
    workflow.run(IntegrationJob(msel_id=msel.id))

    pushed, _, _ = _reload(session_factory, msel.id)
    assert pushed.cite_evaluation_id == "evaluation-1"
    assert pushed.integration_started_step == IntegrationStep.CITE_EVALUATION
    assert pushed.integration_step == IntegrationStep.GALLERY_ARTICLES

    cite_client.delete_move.side_effect = None
    status_channel.messages.clear()
    workflow.run(IntegrationJob(msel_id=msel.id, resume=True))

    cite_client.create_evaluation.assert_called_once()
    assert status_channel.for_topic(msel.id)[-1] == msel.id
    pushed, _, _ = _reload(session_factory, msel.id)
    assert pushed.cite_evaluation_id == "evaluation-1"
    assert pushed.integration_step == IntegrationStep.PLAYER_APPLICATIONS


def test_resume_skips_interrupted_article_step(
    worker_context, session_factory, make_msel, status_channel, gallery_client, cite_client
):
    msel = make_msel()
    calls = []

    def share_article(team_article):
        calls.append(team_article)
        if len(calls) == 2:
            raise RuntimeError("gallery down")
        return {"id": f"team-article-{len(calls)}"}

    gallery_client.create_team_article.side_effect = share_article
    workflow = IntegrationWorkflow(worker_context)
    workflow.run(IntegrationJob(msel_id=msel.id))

    pushed, _, _ = _reload(session_factory, msel.id)
    assert pushed.integration_started_step == IntegrationStep.GALLERY_ARTICLES
    assert pushed.integration_step == IntegrationStep.GALLERY_CARDS
    cite_client.create_evaluation.assert_not_called()

    gallery_client.create_team_article.side_effect = None
    status_channel.messages.clear()
    workflow.run(IntegrationJob(msel_id=msel.id, resume=True))

    gallery_client.create_article.assert_called_once()
    cite_client.create_evaluation.assert_called_once()
    messages = status_channel.for_topic(msel.id)
    assert f"{msel.id},Pushing Articles to Gallery" not in messages
    assert messages[1] == f"{msel.id},Pushing Evaluation to CITE"
    assert messages[-1] == msel.id


def test_push_records_started_and_completed_steps(worker_context, session_factory, make_msel):
    msel = make_msel()

    IntegrationWorkflow(worker_context).run(IntegrationJob(msel_id=msel.id))

    pushed, _, _ = _reload(session_factory, msel.id)
    assert pushed.integration_started_step == IntegrationStep.PLAYER_APPLICATIONS
    assert pushed.integration_step == IntegrationStep.PLAYER_APPLICATIONS


def test_only_steps_with_per_record_ids_are_repeatable():
    assert IntegrationStep.GALLERY_CARDS.repeatable
    assert IntegrationStep.CITE_EVALUATION.repeatable
    assert IntegrationStep.CITE_TEAMS.repeatable
    assert not IntegrationStep.GALLERY_ARTICLES.repeatable
    assert not IntegrationStep.CITE_MOVES.repeatable
    assert not IntegrationStep.CITE_ADVANCE.repeatable
    assert not IntegrationStep.PLAYER_APPLICATIONS.repeatable
