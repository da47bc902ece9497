# File: tests/test_upvotes.py

import pytest

from portal.core.errors import AlreadyVoted, Blocked, NotFound, SelfUpvoteForbidden
from portal.models.enums import Role
from portal.services import issue_service


@pytest.fixture
def issue(db, citizen, issue_payload):
    return issue_service.create_issue(db, citizen, issue_payload())


def test_second_upvote_from_same_user_rejected(db, other_citizen, issue):
    voted = issue_service.upvote_issue(db, other_citizen, issue.id)
    assert voted.upvotes == 1

    with pytest.raises(AlreadyVoted):
        issue_service.upvote_issue(db, other_citizen, issue.id)

    db.refresh(issue)
    assert issue.upvotes == 1
    assert issue_service.list_votes(db, issue.id) == [other_citizen.id]


def test_each_user_counts_once(db, make_user, admin, issue):
    voters = [make_user(Role.CITIZEN), make_user(Role.STAFF), admin]
    for voter in voters:
        issue_service.upvote_issue(db, voter, issue.id)

    db.refresh(issue)
    assert issue.upvotes == 3
    assert sorted(issue_service.list_votes(db, issue.id)) == sorted(v.id for v in voters)


def test_owner_cannot_upvote(db, citizen, issue):
    with pytest.raises(SelfUpvoteForbidden):
        issue_service.upvote_issue(db, citizen, issue.id)
    db.refresh(issue)
    assert issue.upvotes == 0


@pytest.mark.parametrize("role", [Role.CITIZEN, Role.STAFF])
def test_blocked_user_cannot_upvote(db, make_user, issue, role):
    with pytest.raises(Blocked):
        issue_service.upvote_issue(db, make_user(role, blocked=True), issue.id)


def test_blocked_owner_gets_blocked_not_self_upvote(db, citizen, issue):
    citizen.is_blocked = True
    db.commit()
    with pytest.raises(Blocked):
        issue_service.upvote_issue(db, citizen, issue.id)


def test_upvote_missing_issue(db, other_citizen):
    with pytest.raises(NotFound):
        issue_service.upvote_issue(db, other_citizen, 4242)
