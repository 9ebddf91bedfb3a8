"""Pure matcher tests: requirement matching, legacy fallback, eligibility."""

from datetime import datetime

from app.services.fulfillment import (
    ContentRequirement,
    SubmissionRecord,
    campaign_requirements,
    evaluate_creator,
    match_requirement,
)

REEL = ContentRequirement(id="r1", social_channel="Instagram", content_type="Reel", quantity=2)


def _sub(sid: str, task_id: str, *, quantity=1, ctype="reel", channel="instagram", approved=None):
    return SubmissionRecord(
        id=sid,
        task_id=task_id,
        content_type=ctype,
        social_channel=channel,
        quantity=quantity,
        approved_date=approved,
        submitted_date=datetime(2024, 1, 1),
    )


def test_two_matching_submissions_make_creator_eligible():
    result = evaluate_creator("c1", [REEL], [_sub("s1", "r1"), _sub("s2", "r1")])

    assert result.eligible is True
    assert result.requirements[0].approved == 2
    assert result.requirements[0].satisfied is True
    assert result.submission_count == 2
    assert result.total_requirements == 1


def test_one_submission_is_not_enough():
    result = evaluate_creator("c1", [REEL], [_sub("s1", "r1")])

    assert result.eligible is False
    assert result.completed_at is None
    assert result.requirements[0].approved == 1


def test_legacy_positional_task_id_still_counts():
    result = evaluate_creator("c1", [REEL], [_sub("s1", "r1"), _sub("s2", "1")])

    assert result.eligible is True
    assert result.requirements[0].matched_submission_ids == ["s1", "s2"]


def test_legacy_pass_uses_one_based_position():
    story = ContentRequirement(id="r2", social_channel="TikTok", content_type="Video", quantity=1)
    progress = match_requirement(
        story, 1, [_sub("s1", "1", ctype="video", channel="tiktok")]
    )
    assert progress.satisfied is False

    progress = match_requirement(
        story, 1, [_sub("s1", "2", ctype="video", channel="tiktok")]
    )
    assert progress.satisfied is True


def test_type_and_channel_must_match_case_insensitively():
    wrong_channel = _sub("s1", "r1", quantity=2, channel="tiktok")
    result = evaluate_creator("c1", [REEL], [wrong_channel])
    assert result.eligible is False

    shouting = _sub("s2", "r1", quantity=2, ctype="REEL", channel="INSTAGRAM")
    assert evaluate_creator("c1", [REEL], [shouting]).eligible is True


def test_submission_quantity_is_summed():
    result = evaluate_creator("c1", [REEL], [_sub("s1", "r1", quantity=2)])
    assert result.eligible is True


def test_missing_quantities_default_to_one():
    requirement = ContentRequirement(id="r1", social_channel="Instagram", content_type="Reel", quantity=0)
    result = evaluate_creator("c1", [requirement], [_sub("s1", "r1", quantity=None)])

    assert result.requirements[0].required == 1
    assert result.eligible is True


def test_requirement_without_id_only_matches_by_position():
    requirement = ContentRequirement(id=None, social_channel="Instagram", content_type="Reel", quantity=1)

    assert evaluate_creator("c1", [requirement], [_sub("s1", "r1")]).eligible is False
    assert evaluate_creator("c1", [requirement], [_sub("s1", "1")]).eligible is True


def test_empty_requirements_are_never_eligible():
    assert evaluate_creator("c1", [], [_sub("s1", "r1")]).eligible is False
    assert evaluate_creator("c1", None, []).eligible is False


def test_every_requirement_must_be_satisfied():
    story = ContentRequirement(id="r2", social_channel="Instagram", content_type="Story", quantity=1)
    result = evaluate_creator("c1", [REEL, story], [_sub("s1", "r1", quantity=2)])

    assert [p.satisfied for p in result.requirements] == [True, False]
    assert result.eligible is False


def test_completed_at_is_latest_approval_or_submission_date():
    early = _sub("s1", "r1", approved=datetime(2024, 3, 1))
    late = _sub("s2", "r1", approved=datetime(2024, 3, 5))
    unapproved_date = _sub("s3", "other")  # falls back to submitted_date

    result = evaluate_creator("c1", [REEL], [early, late, unapproved_date])

    assert result.eligible is True
    assert result.completed_at == datetime(2024, 3, 5)


def test_requirement_from_stored_item():
    requirement = ContentRequirement.from_item(
        {"id": "r9", "socialChannel": "YouTube", "contentType": "Short", "description": "x"}
    )
    assert requirement.quantity == 1
    assert requirement.social_channel == "YouTube"


def test_stored_string_quantity_is_coerced():
    requirement = ContentRequirement.from_item(
        {"id": "r1", "socialChannel": "Instagram", "contentType": "Reel", "quantity": "2"}
    )
    assert requirement.quantity == 2

    result = evaluate_creator("c1", [requirement], [_sub("s1", "r1"), _sub("s2", "r1")])
    assert result.eligible is True


def test_unusable_quantity_falls_back_to_one():
    for raw in ("two", None, 0, -3, [2]):
        requirement = ContentRequirement.from_item(
            {"id": "r1", "socialChannel": "Instagram", "contentType": "Reel", "quantity": raw}
        )
        assert requirement.quantity == 1


def test_numeric_requirement_id_matches_string_task_id():
    requirement = ContentRequirement.from_item(
        {"id": 1717000000000, "socialChannel": "Instagram", "contentType": "Reel"}
    )
    assert requirement.id == "1717000000000"

    result = evaluate_creator("c1", [requirement], [_sub("s1", "1717000000000")])
    assert result.eligible is True


def test_non_dict_content_items_are_skipped():
    requirements = campaign_requirements(
        ["r1", None, {"id": "r1", "socialChannel": "Instagram", "contentType": "Reel"}]
    )
    assert [r.id for r in requirements] == ["r1"]
    assert campaign_requirements({"id": "r1"}) == []
