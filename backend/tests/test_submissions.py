"""Submission ledger: atomic creation, review transitions and resubmission."""

import pytest
from sqlalchemy import func, select

from app.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from app.models import Campaign, CampaignSubmission, SubmissionAsset
from app.services import submissions
from app.services.submissions import AssetInput

from conftest import accept


def _assets(n=1):
    return [AssetInput(type="video", url=f"https://cdn.example.com/reel-{i}.mp4") for i in range(n)]


async def _count(session, model):
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _submit(session, notifier, world, who="alice", n=1, requirement="r1"):
    return await submissions.submit(
        session,
        notifier,
        world[who],
        world["campaign_id"],
        requirement,
        "Reel",
        "Instagram",
        _assets(n),
        quantity=1,
    )


@pytest.mark.anyio
async def test_submit_creates_submission_with_assets(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)

    submission = await submissions.submit(
        session,
        recorder,
        world["alice"],
        world["campaign_id"],
        "r1",
        "Reel",
        "Instagram",
        _assets(3),
    )

    assert submission.status == "pending"
    assert submission.quantity == 3
    assert [a.position for a in submission.assets] == [0, 1, 2]
    assert await _count(session, SubmissionAsset) == 3
    assert recorder.types() == ["submission_created"]
    assert recorder.events[0].recipient_id == world["brand"].user_id


@pytest.mark.anyio
async def test_pending_creator_cannot_submit(session, world, recorder):
    from app.services import applications

    await applications.apply(session, recorder, world["alice"], world["campaign_id"], "hi")

    with pytest.raises(Forbidden):
        await _submit(session, recorder, world)


@pytest.mark.anyio
async def test_submit_validates_input(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)

    with pytest.raises(InvalidInput):
        await submissions.submit(
            session, recorder, world["alice"], world["campaign_id"], "r1", "Reel", "Instagram", []
        )
    with pytest.raises(InvalidInput):
        await submissions.submit(
            session, recorder, world["alice"], world["campaign_id"], "  ", "Reel", "Instagram", _assets()
        )
    with pytest.raises(InvalidInput):
        await submissions.submit(
            session,
            recorder,
            world["alice"],
            world["campaign_id"],
            "r1",
            "Reel",
            "Instagram",
            [AssetInput(type="audio", url="https://cdn.example.com/a.mp3")],
        )
    assert await _count(session, CampaignSubmission) == 0


@pytest.mark.anyio
async def test_partial_asset_failure_leaves_no_submission(session, world, recorder, monkeypatch):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    real_insert = submissions._insert_assets

    async def flaky_insert(session, submission, assets):
        await real_insert(session, submission, assets[:1])
        raise RuntimeError("storage hiccup")

    monkeypatch.setattr(submissions, "_insert_assets", flaky_insert)

    with pytest.raises(RuntimeError):
        await _submit(session, recorder, world, n=2)

    assert await _count(session, CampaignSubmission) == 0
    assert await _count(session, SubmissionAsset) == 0
    assert recorder.events == []


@pytest.mark.anyio
async def test_review_approve_then_reject_clears_approved_date(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    submission = await _submit(session, recorder, world)
    submission_id = submission.id

    approved = await submissions.review(session, recorder, world["brand"], submission_id, "approved")
    assert approved.status == "approved"
    assert approved.approved_date is not None
    assert approved.rejection_comment is None

    rejected = await submissions.review(
        session, recorder, world["brand"], submission_id, "rejected", "Too dark"
    )
    assert rejected.status == "rejected"
    assert rejected.approved_date is None
    assert rejected.rejection_comment == "Too dark"

    again = await submissions.review(session, recorder, world["brand"], submission_id, "approved")
    assert again.rejection_comment is None
    assert again.approved_date is not None


@pytest.mark.anyio
async def test_rejection_notice_includes_reason(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    submission = await _submit(session, recorder, world)
    recorder.events.clear()

    await submissions.review(
        session, recorder, world["brand"], submission.id, "rejected", "Needs more sunlight"
    )

    [event] = recorder.events
    assert event.type.value == "submission_rejected"
    assert "Needs more sunlight" in event.context["rejection_note"]


@pytest.mark.anyio
async def test_review_guards(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    submission = await _submit(session, recorder, world)
    submission_id = submission.id

    with pytest.raises(NotFound):
        await submissions.review(session, recorder, world["brand"], "nope", "approved")
    with pytest.raises(Forbidden):
        await submissions.review(session, recorder, world["alice"], submission_id, "approved")
    with pytest.raises(InvalidInput):
        await submissions.review(session, recorder, world["brand"], submission_id, "pending")


@pytest.mark.anyio
async def test_completing_approval_emits_campaign_completed(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    first = await _submit(session, recorder, world)
    second = await _submit(session, recorder, world)
    first_id, second_id = first.id, second.id
    recorder.events.clear()

    await submissions.review(session, recorder, world["brand"], first_id, "approved")
    assert recorder.types() == ["submission_approved"]

    recorder.events.clear()
    await submissions.review(session, recorder, world["brand"], second_id, "approved")
    assert recorder.types() == ["submission_approved", "campaign_completed", "campaign_completed"]
    assert {e.recipient_id for e in recorder.events[1:]} == {
        world["alice"].user_id,
        world["brand"].user_id,
    }

    # Already eligible: re-approving does not announce completion again.
    recorder.events.clear()
    await submissions.review(session, recorder, world["brand"], second_id, "approved")
    assert recorder.types() == ["submission_approved"]


@pytest.mark.anyio
async def test_resubmit_replaces_assets_and_resets_status(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    submission = await _submit(session, recorder, world, n=2)
    submission_id = submission.id
    await submissions.review(session, recorder, world["brand"], submission_id, "rejected", "Blurry")
    recorder.events.clear()

    updated = await submissions.resubmit(
        session,
        recorder,
        world["alice"],
        submission_id,
        [AssetInput(type="image", url="https://cdn.example.com/sharp.jpg")],
    )

    assert updated.status == "pending"
    assert updated.rejection_comment is None
    assert [a.url for a in updated.assets] == ["https://cdn.example.com/sharp.jpg"]
    assert await _count(session, SubmissionAsset) == 1
    assert recorder.types() == ["submission_updated"]


@pytest.mark.anyio
async def test_resubmit_rules(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    await accept(session, world["campaign_id"], world["bob"].user_id)
    submission = await _submit(session, recorder, world)
    submission_id = submission.id

    with pytest.raises(Forbidden):
        await submissions.resubmit(session, recorder, world["bob"], submission_id, _assets())

    await submissions.review(session, recorder, world["brand"], submission_id, "approved")
    with pytest.raises(InvalidState):
        await submissions.resubmit(session, recorder, world["alice"], submission_id, _assets())


@pytest.mark.anyio
async def test_listing_filters(session, world, recorder):
    await accept(session, world["campaign_id"], world["alice"].user_id)
    first_id = (await _submit(session, recorder, world)).id
    await _submit(session, recorder, world)
    await submissions.review(session, recorder, world["brand"], first_id, "approved")

    approved = await submissions.list_for_campaign(
        session, world["brand"], world["campaign_id"], "approved"
    )
    assert [s.id for s in approved] == [first_id]

    mine = await submissions.list_for_creator(session, world["alice"], world["campaign_id"])
    assert len(mine) == 2
    assert all(s.assets for s in mine)

    with pytest.raises(Forbidden):
        await submissions.list_for_campaign(session, world["alice"], world["campaign_id"])


async def _store_requirement(session, campaign_id, **overrides):
    campaign = await session.get(Campaign, campaign_id)
    campaign.content_items = [
        {"id": "r1", "socialChannel": "Instagram", "contentType": "Reel", "quantity": 2, **overrides}
    ]
    await session.commit()


@pytest.mark.anyio
async def test_review_tolerates_string_quantity_in_stored_brief(session, world, recorder):
    await _store_requirement(session, world["campaign_id"], quantity="2")
    await accept(session, world["campaign_id"], world["alice"].user_id)
    first_id = (await _submit(session, recorder, world)).id
    second_id = (await _submit(session, recorder, world)).id
    recorder.events.clear()

    await submissions.review(session, recorder, world["brand"], first_id, "approved")
    await submissions.review(session, recorder, world["brand"], second_id, "approved")

    statuses = (
        await session.execute(
            select(CampaignSubmission.status).where(
                CampaignSubmission.id.in_([first_id, second_id])
            )
        )
    ).scalars().all()
    assert statuses == ["approved", "approved"]
    assert recorder.types().count("campaign_completed") == 2


@pytest.mark.anyio
async def test_numeric_requirement_id_completes_on_approval(session, world, recorder):
    await _store_requirement(session, world["campaign_id"], id=1717000000000, quantity=1)
    await accept(session, world["campaign_id"], world["alice"].user_id)
    submission_id = (
        await _submit(session, recorder, world, requirement="1717000000000")
    ).id
    recorder.events.clear()

    await submissions.review(session, recorder, world["brand"], submission_id, "approved")

    assert recorder.types() == ["submission_approved", "campaign_completed", "campaign_completed"]
